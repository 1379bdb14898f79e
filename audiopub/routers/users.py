"""
Users Router for Audiopub.

Endpoints:
- GET /users/{user_id} - Public profile with paginated uploads
- GET /@{name} - Redirect a username to its profile
- POST /users/{user_id}/ban - Ban an account (admin)
- POST /users/{user_id}/warn - Warn an account (admin)
- POST /users/{user_id}/trust - Trust an account (admin)
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session, joinedload

from .. import moderation
from ..constants import AUDIOS_PER_PAGE
from ..database import get_db
from ..db_models import DBAudio, DBUser
from ..dependencies import get_optional_user, require_admin
from ..feed import to_audio_out
from ..models import ModerationAction, UserPrivate, UserProfile, UserPublic

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


def _load_user(db: Session, user_id: str) -> DBUser:
    user = db.get(DBUser, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user

# =============================================================================
# Profiles
# =============================================================================

@router.get("/users/{user_id}", response_model=UserProfile)
async def get_profile(
    user_id: str,
    page: int = Query(1, ge=1),
    current_user: Optional[DBUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    A user's profile and their uploads, newest first.

    Uploads of an untrusted account are only listed for admins and the
    account itself.
    """
    user = _load_user(db, user_id)
    can_see_uploads = (
        user.is_trusted
        or (current_user is not None and (current_user.is_admin or current_user.id == user.id))
    )

    audios, total = [], 0
    if can_see_uploads:
        query = db.query(DBAudio).options(joinedload(DBAudio.user)).filter(DBAudio.user_id == user.id)
        total = query.count()
        audios = (
            query.order_by(DBAudio.created_at.desc())
            .offset((page - 1) * AUDIOS_PER_PAGE)
            .limit(AUDIOS_PER_PAGE)
            .all()
        )

    return UserProfile(
        user=UserPublic.model_validate(user),
        audios=to_audio_out(db, audios, current_user),
        page=page,
        has_more=page * AUDIOS_PER_PAGE < total,
    )


@router.get("/@{name}")
async def profile_by_name(name: str, request: Request, db: Session = Depends(get_db)):
    """Redirect to /users/{id}, keeping the query string."""
    user = db.query(DBUser).filter(DBUser.name == name.lower()).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    destination = f"/users/{user.id}"
    if request.url.query:
        destination = f"{destination}?{request.url.query}"
    return RedirectResponse(destination, status_code=status.HTTP_302_FOUND)

# =============================================================================
# Moderation (admin)
# =============================================================================

@router.post("/users/{user_id}/ban")
async def ban(
    user_id: str,
    action: ModerationAction,
    admin: DBUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Ban an account.

    An untrusted account also loses its audios and comments.
    """
    removed = moderation.ban_user(db, admin, user_id, action.reason, action.message)
    return {"banned": True, "removed": removed}


@router.post("/users/{user_id}/warn")
async def warn(
    user_id: str,
    action: ModerationAction,
    admin: DBUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    moderation.warn_user(db, admin, user_id, action.reason, action.message)
    return {"warned": True}


@router.post("/users/{user_id}/trust", response_model=UserPrivate)
async def trust(
    user_id: str,
    admin: DBUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return UserPrivate.model_validate(moderation.trust_user(db, admin, user_id))
