"""
Favorites Router for Audiopub.

Endpoints:
- POST /audios/{audio_id}/favorite - Favorite an audio (trusted accounts)
- DELETE /audios/{audio_id}/favorite - Remove a favorite (trusted accounts)
- GET /favorites - The current user's favorites, newest first
- POST /audios/{audio_id}/follow - Follow an audio's comments
- DELETE /audios/{audio_id}/follow - Stop following
"""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import favorites
from ..constants import AUDIOS_PER_PAGE
from ..database import get_db
from ..db_models import DBUser
from ..dependencies import get_current_user, require_trusted
from ..feed import to_audio_out
from ..models import AudioPage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["favorites"])

# =============================================================================
# Favorites
# =============================================================================

@router.post("/audios/{audio_id}/favorite")
async def favorite_audio(
    audio_id: str,
    current_user: DBUser = Depends(require_trusted),
    db: Session = Depends(get_db),
):
    """Favorite an audio. Favoriting twice is not an error."""
    favorite = favorites.create_favorite(db, current_user.id, audio_id)
    return {
        "favorited": True,
        "created": favorite is not None,
        "favorite_count": favorites.get_favorite_count(db, audio_id),
    }


@router.delete("/audios/{audio_id}/favorite")
async def unfavorite_audio(
    audio_id: str,
    current_user: DBUser = Depends(require_trusted),
    db: Session = Depends(get_db),
):
    removed = favorites.remove_favorite(db, current_user.id, audio_id)
    return {
        "favorited": False,
        "removed": removed,
        "favorite_count": favorites.get_favorite_count(db, audio_id),
    }


@router.get("/favorites", response_model=AudioPage)
async def list_favorites(
    page: int = Query(1, ge=1),
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    audios, total = favorites.get_user_favorites(
        db, current_user.id, page=page, limit=AUDIOS_PER_PAGE, is_admin=current_user.is_admin
    )
    return AudioPage(
        audios=to_audio_out(db, audios, current_user),
        page=page,
        has_more=page * AUDIOS_PER_PAGE < total,
    )

# =============================================================================
# Follows
# =============================================================================

@router.post("/audios/{audio_id}/follow")
async def follow(
    audio_id: str,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    created = favorites.follow_audio(db, current_user.id, audio_id)
    return {"following": True, "created": created}


@router.delete("/audios/{audio_id}/follow")
async def unfollow(
    audio_id: str,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    removed = favorites.unfollow_audio(db, current_user.id, audio_id)
    return {"following": False, "removed": removed}
