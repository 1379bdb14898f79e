"""
Audio mutations: upload, edit/revert with history, plays, mirror moves, delete.

Non-admin uploaders get a limited number of edits per audio; every edit and
every admin revert is recorded in the edit history.
"""

import logging
from pathlib import Path
from typing import List, Optional

from sqlalchemy.orm import Session

from .config import settings
from .constants import MAX_UPLOAD_SIZE_BYTES, MIN_TITLE_LENGTH, MAX_TITLE_LENGTH, MAX_DESCRIPTION_LENGTH
from .db_models import DBAudio, DBAudioEditHistory, DBUser
from .exceptions import (
    ConfigurationError,
    EditLimitReachedError,
    NotFoundError,
    PermissionDeniedError,
    UnverifiedUserError,
    ValidationFailedError,
)
from .notifications import create_system
from .play_tracker import PlayTracker, minimum_listen_seconds

logger = logging.getLogger(__name__)

# =============================================================================
# File Storage
# =============================================================================

def audio_storage_dir() -> Path:
    """Directory uploads are written to, created on first use."""
    directory = Path(settings.audio_dir)
    if directory.exists() and not directory.is_dir():
        raise ConfigurationError("audio_dir", f"{directory} is not a directory")
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def audio_file_path(audio: DBAudio) -> Path:
    return audio_storage_dir() / audio.id


def _get_audio(db: Session, audio_id: str) -> DBAudio:
    audio = db.get(DBAudio, audio_id)
    if audio is None:
        raise NotFoundError("Audio", audio_id)
    return audio

# =============================================================================
# Upload
# =============================================================================

def upload_audio(
    db: Session,
    user: DBUser,
    title: str,
    description: str,
    extension: str,
    data: bytes,
    is_from_ai: bool = False,
) -> DBAudio:
    """
    Store a new audio and its file.

    Untrusted accounts may upload a single audio until an admin reviews them.

    Raises:
        UnverifiedUserError: If the uploader has not verified their email
        PermissionDeniedError: If an untrusted uploader already has an audio
        ValidationFailedError: If the file is empty or too large
    """
    if not user.is_verified:
        raise UnverifiedUserError()
    if not user.is_trusted and not user.is_admin:
        existing = db.query(DBAudio).filter(DBAudio.user_id == user.id).count()
        if existing >= 1:
            raise PermissionDeniedError("Please wait for your account to be reviewed.")

    if not data:
        raise ValidationFailedError("Audio file is required")
    if len(data) > MAX_UPLOAD_SIZE_BYTES:
        raise ValidationFailedError("File size exceeds 500MB limit")

    audio = DBAudio(
        title=title,
        description=description or "",
        has_file=True,
        user_id=user.id,
        extension=extension,
        is_from_ai=is_from_ai,
    )
    db.add(audio)
    db.flush()

    path = audio_file_path(audio)
    try:
        path.write_bytes(data)
    except OSError as e:
        db.rollback()
        logger.error(f"Failed to store audio file {path}: {e}")
        raise

    db.commit()
    db.refresh(audio)
    logger.info(f"User {user.id} uploaded audio {audio.id} ({len(data)} bytes, .{extension})")
    return audio


def delete_audio(db: Session, user: DBUser, audio_id: str) -> None:
    """Delete an audio and its stored file. Owner or admin only."""
    audio = _get_audio(db, audio_id)
    if not user.is_admin and audio.user_id != user.id:
        raise PermissionDeniedError("Only the uploader or an admin can delete this audio")

    remove_audio_file(audio)
    db.delete(audio)
    db.commit()
    logger.info(f"Audio {audio_id} deleted by {user.id}")


def remove_audio_file(audio: DBAudio) -> None:
    path = audio_file_path(audio)
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning(f"Audio file {path} already missing")

# =============================================================================
# Edit History
# =============================================================================

def edit_audio(db: Session, user: DBUser, audio_id: str, title: str, description: str) -> DBAudio:
    """
    Change an audio's title and description, recording the edit.

    Raises:
        PermissionDeniedError: If the user is neither owner nor admin
        EditLimitReachedError: If a non-admin has no edits left
        ValidationFailedError: If the new title or description is invalid
    """
    audio = _get_audio(db, audio_id)
    is_admin = user.is_admin
    if not is_admin and audio.user_id != user.id:
        raise PermissionDeniedError("Only the uploader or an admin can edit this audio")

    if not is_admin and (audio.edit_count or 0) >= settings.max_user_edits:
        raise EditLimitReachedError(settings.max_user_edits)

    title = (title or "").strip()
    description = description or ""
    if len(title) < MIN_TITLE_LENGTH:
        raise ValidationFailedError(f"Title must be at least {MIN_TITLE_LENGTH} characters long")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationFailedError(f"Title must be at most {MAX_TITLE_LENGTH} characters long")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationFailedError("Description is too long")

    db.add(DBAudioEditHistory(
        audio_id=audio.id,
        old_title=audio.title,
        old_description=audio.description,
        new_title=title,
        new_description=description,
    ))
    audio.title = title
    audio.description = description
    if not is_admin:
        audio.edit_count = (audio.edit_count or 0) + 1

    db.commit()
    db.refresh(audio)
    logger.info(f"Audio {audio.id} edited by {user.id} (edit_count={audio.edit_count})")
    return audio


def revert_audio(db: Session, admin: DBUser, history_id: str) -> DBAudio:
    """
    Restore the title and description an edit replaced. Admin only.

    The revert is itself recorded; the uploader's edit count is unchanged.
    """
    if not admin.is_admin:
        raise PermissionDeniedError("Admin access required")

    history = db.get(DBAudioEditHistory, history_id)
    if history is None:
        raise NotFoundError("History entry", history_id)
    audio = _get_audio(db, history.audio_id)

    db.add(DBAudioEditHistory(
        audio_id=audio.id,
        old_title=audio.title,
        old_description=audio.description,
        new_title=history.old_title,
        new_description=history.old_description,
    ))
    audio.title = history.old_title
    audio.description = history.old_description

    db.commit()
    db.refresh(audio)
    logger.info(f"Audio {audio.id} reverted to history {history_id} by {admin.id}")
    return audio


def get_edit_history(db: Session, audio_id: str) -> List[DBAudioEditHistory]:
    _get_audio(db, audio_id)
    return (
        db.query(DBAudioEditHistory)
        .filter(DBAudioEditHistory.audio_id == audio_id)
        .order_by(DBAudioEditHistory.created_at.desc())
        .all()
    )

# =============================================================================
# Plays
# =============================================================================

def register_play(
    db: Session,
    tracker: PlayTracker,
    viewer: str,
    audio: DBAudio,
    position: Optional[float] = None,
    duration: Optional[float] = None,
) -> bool:
    """
    Count a play unless this viewer already played the audio within the window.

    When the client reports a position and duration, plays stopped before the
    minimum listen time are ignored.
    """
    if position is not None and duration is not None and position < minimum_listen_seconds(duration):
        return False

    if not tracker.register(viewer, audio.id):
        return False

    db.query(DBAudio).filter(DBAudio.id == audio.id).update(
        {DBAudio.plays: DBAudio.plays + 1}, synchronize_session=False
    )
    db.commit()
    db.refresh(audio)
    return True

# =============================================================================
# AI Mirror
# =============================================================================

def move_to_ai(db: Session, user: DBUser, audio_id: str) -> DBAudio:
    """Move an audio to the AI mirror. Owner or admin; an admin move notifies the uploader."""
    audio = _get_audio(db, audio_id)
    if not user.is_admin and audio.user_id != user.id:
        raise PermissionDeniedError("Only the uploader or an admin can move this audio")

    audio.is_from_ai = True
    db.commit()

    if user.is_admin and audio.user_id != user.id:
        create_system(
            db,
            f'Your audio "{audio.title}" was moved to the AI mirror by an admin. '
            "It is still public, just listed separately.",
            metadata={"audio_id": audio.id},
            user_id=audio.user_id,
        )
    logger.info(f"Audio {audio.id} moved to AI mirror by {user.id}")
    return audio


def move_to_main(db: Session, admin: DBUser, audio_id: str) -> DBAudio:
    """Move an audio back to the main listing. Admin only; notifies the uploader."""
    if not admin.is_admin:
        raise PermissionDeniedError("Admin access required")
    audio = _get_audio(db, audio_id)

    audio.is_from_ai = False
    db.commit()

    create_system(
        db,
        f'Your audio "{audio.title}" was moved back to the main listing by an admin.',
        metadata={"audio_id": audio.id},
        user_id=audio.user_id,
    )
    logger.info(f"Audio {audio.id} moved to main listing by {admin.id}")
    return audio
