"""
Audios Router for Audiopub.

Endpoints:
- GET /audios - Sorted, paginated listing
- POST /audios - Upload an audio (base64 payload)
- GET /audios/{audio_id} - Audio with its comment threads
- PATCH /audios/{audio_id} - Edit title/description
- DELETE /audios/{audio_id} - Delete audio and file
- GET /audios/{audio_id}/history - Edit history (admin)
- POST /audios/{audio_id}/history/{history_id}/revert - Revert an edit (admin)
- POST /audios/{audio_id}/plays - Register a play
- POST /audios/{audio_id}/move_to_ai - Move to the AI mirror
- POST /audios/{audio_id}/move_to_main - Move back to the main listing (admin)

Requests carrying an X-From-AI header are served the AI mirror.
"""

import base64
import binascii
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import audio_actions
from ..constants import AUDIOS_PER_PAGE, MAX_DESCRIPTION_LENGTH
from ..database import get_db
from ..db_models import DBAudio, DBAudioEditHistory, DBUser
from ..dependencies import (
    get_current_user,
    get_optional_user,
    get_play_tracker,
    is_from_ai,
    require_admin,
)
from ..favorites import is_following
from ..feed import list_audios, to_audio_out
from ..interactions import get_comment_threads
from ..models import (
    AudioDetail,
    AudioOut,
    AudioPage,
    AudioUpdate,
    AudioUpload,
    CommentThread,
    EditHistoryOut,
    PlayReport,
    PlayResult,
)
from ..play_tracker import PlayTracker
from ..sanitization import audio_extension, sanitize_text_content

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audios", tags=["audios"])


def _load_audio(db: Session, audio_id: str) -> DBAudio:
    audio = db.get(DBAudio, audio_id)
    if audio is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Audio not found")
    return audio

# =============================================================================
# Listing & Upload
# =============================================================================

@router.get("", response_model=AudioPage)
async def get_audios(
    page: int = Query(1, ge=1),
    sort: Optional[str] = None,
    order: Optional[str] = None,
    from_ai: bool = Depends(is_from_ai),
    current_user: Optional[DBUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """List audios. Unknown sort fields or orders fall back to newest first."""
    audios, total = list_audios(
        db, page=page, sort=sort, order=order, viewer=current_user, is_from_ai=from_ai
    )
    return AudioPage(audios=audios, page=page, has_more=page * AUDIOS_PER_PAGE < total)


@router.post("", response_model=AudioOut, status_code=status.HTTP_201_CREATED)
async def upload_audio(
    upload: AudioUpload,
    from_ai: bool = Depends(is_from_ai),
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Upload an audio file encoded as base64.

    Raises:
        HTTPException 400: If the file is missing, not audio, or not valid base64
    """
    extension = audio_extension(upload.filename)
    description = sanitize_text_content(upload.description, MAX_DESCRIPTION_LENGTH)
    try:
        data = base64.b64decode(upload.content, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="File content is not valid base64")

    audio = audio_actions.upload_audio(
        db,
        current_user,
        title=upload.title,
        description=description,
        extension=extension,
        data=data,
        is_from_ai=from_ai,
    )
    return to_audio_out(db, [audio], current_user)[0]

# =============================================================================
# Single Audio
# =============================================================================

@router.get("/{audio_id}", response_model=AudioDetail)
async def get_audio(
    audio_id: str,
    from_ai: bool = Depends(is_from_ai),
    current_user: Optional[DBUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """An audio with its comment threads, oldest first at every level."""
    audio = _load_audio(db, audio_id)
    if audio.is_from_ai != from_ai:
        mirror = "AI" if audio.is_from_ai else "main"
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"This audio is not in this mirror. It is listed on the {mirror} site.",
        )

    threads = get_comment_threads(db, audio.id, current_user)
    return AudioDetail(
        audio=to_audio_out(db, [audio], current_user)[0],
        comments=[CommentThread.from_node(node) for node in threads],
        is_following=is_following(db, current_user.id, audio.id) if current_user else False,
    )


@router.patch("/{audio_id}", response_model=AudioOut)
async def edit_audio(
    audio_id: str,
    update: AudioUpdate,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    audio = audio_actions.edit_audio(db, current_user, audio_id, update.title, update.description)
    return to_audio_out(db, [audio], current_user)[0]


@router.delete("/{audio_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_audio(
    audio_id: str,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    audio_actions.delete_audio(db, current_user, audio_id)

# =============================================================================
# Edit History (admin)
# =============================================================================

@router.get("/{audio_id}/history", response_model=List[EditHistoryOut])
async def get_history(
    audio_id: str,
    admin: DBUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Edits of an audio, newest first."""
    return [EditHistoryOut.model_validate(h) for h in audio_actions.get_edit_history(db, audio_id)]


@router.post("/{audio_id}/history/{history_id}/revert", response_model=AudioOut)
async def revert_edit(
    audio_id: str,
    history_id: str,
    admin: DBUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    history = db.get(DBAudioEditHistory, history_id)
    if history is None or history.audio_id != audio_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="History entry not found")
    audio = audio_actions.revert_audio(db, admin, history_id)
    return to_audio_out(db, [audio], admin)[0]

# =============================================================================
# Plays
# =============================================================================

@router.post("/{audio_id}/plays", response_model=PlayResult)
async def register_play(
    audio_id: str,
    report: Optional[PlayReport] = None,
    current_user: DBUser = Depends(get_current_user),
    tracker: PlayTracker = Depends(get_play_tracker),
    db: Session = Depends(get_db),
):
    """Count a play; repeated plays by the same user within the window are ignored."""
    audio = _load_audio(db, audio_id)
    report = report or PlayReport()
    counted = audio_actions.register_play(
        db, tracker, current_user.id, audio,
        position=report.position, duration=report.duration,
    )
    return PlayResult(counted=counted, plays=audio.plays)

# =============================================================================
# AI Mirror
# =============================================================================

@router.post("/{audio_id}/move_to_ai", response_model=AudioOut)
async def move_to_ai(
    audio_id: str,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    audio = audio_actions.move_to_ai(db, current_user, audio_id)
    return to_audio_out(db, [audio], current_user)[0]


@router.post("/{audio_id}/move_to_main", response_model=AudioOut)
async def move_to_main(
    audio_id: str,
    admin: DBUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    audio = audio_actions.move_to_main(db, admin, audio_id)
    return to_audio_out(db, [audio], admin)[0]
