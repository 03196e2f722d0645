"""
Authentication Middleware
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from outreach.config import get_settings
from outreach.utils import verify_access_token

security = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Dependency returning the authenticated user id from the bearer token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    user_id = verify_access_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


async def require_cron_secret(
    x_cron_secret: Optional[str] = Header(default=None),
) -> None:
    """Guard for externally triggered maintenance endpoints"""
    expected = get_settings().CRON_SECRET
    if not expected or x_cron_secret != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )
