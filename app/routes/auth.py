"""
Doctor signup and login
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.logging import get_logger
from app.core.rate_limit import limiter, default_limit
from app.core.security import hash_password, security_manager, verify_password
from app.db import get_db
from app.models.db_models import Doctor
from app.models.requests import DoctorLoginRequest, DoctorSignupRequest
from app.models.responses import AuthResponse, DoctorPublic

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup-doctor", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup_doctor(payload: DoctorSignupRequest, session: Session = Depends(get_db)):
    missing = [name for name in ("name", "email", "password") if not getattr(payload, name)]
    if missing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Missing required fields: {', '.join(missing)}")

    email = payload.email.strip().lower()
    logger.info(f"Signup attempt for {email}")

    try:
        if session.exec(select(Doctor).where(Doctor.email == email)).first():
            logger.info(f"Email already in use: {email}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")

        doctor = Doctor(
            name=payload.name,
            email=email,
            password_hash=hash_password(payload.password),
            specialization=payload.specialization,
            qualification=payload.qualification,
            college=payload.college,
            experience_years=payload.experience_years,
        )
        session.add(doctor)
        session.commit()
        session.refresh(doctor)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Signup failed for {email}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error during signup")

    token = security_manager.create_doctor_token(doctor)
    return AuthResponse(
        token=token,
        doctor=DoctorPublic(id=doctor.id, name=doctor.name, email=doctor.email),
    )


@router.post("/login-doctor", response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(default_limit)
async def login_doctor(request: Request, payload: DoctorLoginRequest, session: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email and password are required")

    try:
        doctor = session.exec(select(Doctor).where(Doctor.email == payload.email.strip().lower())).first()
    except SQLAlchemyError as e:
        logger.error(f"Login lookup failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error during login")

    if not doctor or not verify_password(payload.password, doctor.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    return AuthResponse(
        token=security_manager.create_doctor_token(doctor),
        doctor=DoctorPublic.model_validate(doctor),
    )
