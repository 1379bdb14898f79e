"""
Comments Router for Audiopub.

Endpoints:
- GET /audios/{audio_id}/comments - Comment threads of an audio
- POST /audios/{audio_id}/comments - Comment on an audio or reply to a comment
- DELETE /comments/{comment_id} - Delete (or tombstone) a comment
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..db_models import DBAudio, DBUser
from ..dependencies import get_current_user, get_optional_user
from ..interactions import (
    create_comment_with_notifications,
    delete_comment,
    get_comment_threads,
)
from ..models import CommentCreate, CommentOut, CommentThread

logger = logging.getLogger(__name__)

router = APIRouter(tags=["comments"])

# =============================================================================
# Audio Comments
# =============================================================================

@router.get("/audios/{audio_id}/comments", response_model=List[CommentThread])
async def list_comments(
    audio_id: str,
    current_user: Optional[DBUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Threads of visible comments, oldest first at every level."""
    if db.get(DBAudio, audio_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Audio not found")
    return [CommentThread.from_node(node) for node in get_comment_threads(db, audio_id, current_user)]


@router.post(
    "/audios/{audio_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    audio_id: str,
    body: CommentCreate,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Comment on an audio, or reply when parent_id is given.

    Raises:
        UnverifiedUserError: If the account is not verified
        NotFoundError: If the audio or parent does not exist
        ValidationFailedError: If the content or parent is invalid
    """
    comment = create_comment_with_notifications(
        db, current_user, audio_id, body.content, parent_id=body.parent_id
    )
    return CommentOut.model_validate(comment)

# =============================================================================
# Single Comment
# =============================================================================

@router.delete("/comments/{comment_id}")
async def remove_comment(
    comment_id: str,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = delete_comment(db, current_user, comment_id)
    return {"result": result}
