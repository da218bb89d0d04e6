"""
Request rate limiting shared by the routers
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from app.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

default_limit = f"{settings.rate_limit_requests}/{settings.rate_limit_window} seconds"
