"""
Security and authentication
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param
from sqlmodel import Session
from app.config import settings
from app.core.logging import get_logger
from app.db import get_db
from app.models.db_models import Doctor

logger = get_logger(__name__)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class SecurityManager:
    """Token issuing and verification"""

    def __init__(self):
        self.secret_key = settings.api_secret_key
        self.algorithm = settings.token_algorithm

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

        to_encode.update({"exp": expire})
        encoded_jwt = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        return encoded_jwt

    def create_doctor_token(self, doctor: Doctor) -> str:
        return self.create_access_token({"sub": doctor.id, "email": doctor.email})

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify a JWT token, returning its payload or None"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return payload
        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            return None

    def generate_request_id(self) -> str:
        """Generate a unique request ID"""
        return secrets.token_urlsafe(16)


# Global security manager instance
security_manager = SecurityManager()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_doctor(request: Request, session: Session = Depends(get_db)) -> Doctor:
    """
    Dependency for authenticated routes.
    Resolves the bearer JWT from the Authorization header to a Doctor.
    """
    auth_header = request.headers.get("Authorization")
    scheme, credentials = get_authorization_scheme_param(auth_header)
    if not auth_header or scheme.lower() != "bearer" or not credentials:
        logger.warning("Authentication failed: no bearer token provided.")
        raise _unauthorized("Missing authentication token")

    payload = security_manager.verify_token(credentials)
    if not payload or not payload.get("sub"):
        raise _unauthorized("Invalid or expired token")

    doctor = session.get(Doctor, payload["sub"])
    if not doctor:
        logger.warning(f"Token subject {payload['sub']} does not match any doctor.")
        raise _unauthorized("Invalid or expired token")

    request.state.doctor_id = doctor.id
    return doctor


def hash_password(password: str) -> str:
    """Hash a password"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    return pwd_context.verify(plain_password, hashed_password)
