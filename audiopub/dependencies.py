"""
Shared Dependencies for Audiopub.

Provides:
- Authentication dependencies (get_current_user, get_optional_user, require_admin)
- The process-wide play tracker
- Request helpers (AI mirror flag)
"""

import logging
from datetime import timedelta
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .auth import decode_access_token
from .config import settings
from .constants import FROM_AI_HEADER
from .database import get_db
from .db_models import DBUser
from .exceptions import BannedUserError, PermissionDeniedError
from .play_tracker import PlayTracker

logger = logging.getLogger(__name__)

# =============================================================================
# OAuth2 Scheme
# =============================================================================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)

# =============================================================================
# Service Instances
# =============================================================================

play_tracker = PlayTracker(
    window=timedelta(hours=settings.play_window_hours),
    max_entries=settings.play_tracker_max_entries,
)


def get_play_tracker() -> PlayTracker:
    """Get the shared play tracker."""
    return play_tracker

# =============================================================================
# Authentication Dependencies
# =============================================================================

def _load_token_user(token: str, db: Session) -> Optional[DBUser]:
    """Resolve a token to its user; None if stale, unknown or malformed."""
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        return None
    user = db.get(DBUser, user_id)
    if user is None or user.version != payload.get("ver"):
        return None
    return user


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> DBUser:
    """
    Get current user from JWT token.

    Raises:
        HTTPException 401: If token is invalid, outdated or user not found
        BannedUserError: If the account is banned
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user = _load_token_user(token, db)
    except ValueError:
        raise credentials_exception
    if user is None:
        raise credentials_exception

    if user.is_banned:
        raise BannedUserError()
    return user


def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[DBUser]:
    """Like get_current_user, but anonymous (None) instead of 401 for a missing or bad token."""
    if not token:
        return None
    try:
        user = _load_token_user(token, db)
    except ValueError:
        logger.debug("Ignoring invalid token on anonymous-capable endpoint")
        return None

    if user is not None and user.is_banned:
        raise BannedUserError()
    return user


def require_admin(current_user: DBUser = Depends(get_current_user)) -> DBUser:
    """Only admins get past this dependency."""
    if not current_user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return current_user


def require_trusted(current_user: DBUser = Depends(get_current_user)) -> DBUser:
    """Only trusted (or admin) accounts get past this dependency."""
    if not (current_user.is_trusted or current_user.is_admin):
        raise PermissionDeniedError("Please wait for your account to be reviewed.")
    return current_user

# =============================================================================
# Request Helpers
# =============================================================================

def is_from_ai(request: Request) -> bool:
    """Any value in the X-From-AI header selects the AI mirror."""
    return bool(request.headers.get(FROM_AI_HEADER))

