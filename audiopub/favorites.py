"""
Favorites and follows.

Favoriting an audio notifies its uploader, unless that user already has a
favorite notification for the audio from inside the notification window.
Unfavoriting withdraws the notification. Following an audio subscribes to
its comment activity.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .config import settings
from .constants import AUDIOS_PER_PAGE
from .db_models import DBAudio, DBAudioFavorite, DBAudioFollow, DBNotification, DBUser
from .exceptions import NotFoundError

logger = logging.getLogger(__name__)


def _favorite_notification_query(db: Session, owner_id: str, actor_id: str, audio_id: str):
    return db.query(DBNotification).filter(
        DBNotification.user_id == owner_id,
        DBNotification.actor_id == actor_id,
        DBNotification.type == "favorite",
        DBNotification.target_type == "audio",
        DBNotification.target_id == audio_id,
    )


def create_favorite(
    db: Session,
    user_id: str,
    audio_id: str,
    now: Optional[datetime] = None,
) -> Optional[DBAudioFavorite]:
    """
    Favorite an audio for a user.

    Returns:
        The new favorite, or None if the user had already favorited it.

    Raises:
        NotFoundError: If the audio does not exist
    """
    audio = db.get(DBAudio, audio_id)
    if audio is None:
        raise NotFoundError("Audio", audio_id)

    if is_user_favorite(db, user_id, audio_id):
        return None

    favorite = DBAudioFavorite(user_id=user_id, audio_id=audio_id)
    db.add(favorite)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent favorite of the same audio
        db.rollback()
        logger.debug(f"User {user_id} already favorited audio {audio_id}")
        return None

    if audio.user_id != user_id:
        now = now or datetime.utcnow()
        window_start = now - timedelta(minutes=settings.favorite_notification_window_minutes)
        recent = (
            _favorite_notification_query(db, audio.user_id, user_id, audio_id)
            .filter(DBNotification.created_at >= window_start)
            .first()
        )
        if recent is None:
            db.add(DBNotification(
                user_id=audio.user_id,
                actor_id=user_id,
                type="favorite",
                target_type="audio",
                target_id=audio_id,
                created_at=now,
            ))

    db.commit()
    db.refresh(favorite)
    logger.info(f"User {user_id} favorited audio {audio_id}")
    return favorite


def remove_favorite(db: Session, user_id: str, audio_id: str) -> bool:
    """Unfavorite an audio. Also withdraws the uploader's favorite notification."""
    removed = db.query(DBAudioFavorite).filter(
        DBAudioFavorite.user_id == user_id,
        DBAudioFavorite.audio_id == audio_id,
    ).delete(synchronize_session=False)

    if removed:
        audio = db.get(DBAudio, audio_id)
        if audio is not None and audio.user_id != user_id:
            _favorite_notification_query(db, audio.user_id, user_id, audio_id).delete(
                synchronize_session=False
            )
        logger.info(f"User {user_id} unfavorited audio {audio_id}")

    db.commit()
    return removed > 0


def get_favorite_count(db: Session, audio_id: str) -> int:
    return db.query(DBAudioFavorite).filter(DBAudioFavorite.audio_id == audio_id).count()


def get_favorite_counts(db: Session, audio_ids: Iterable[str]) -> Dict[str, int]:
    """Favorite counts for many audios in one query. Missing ids count 0."""
    audio_ids = list(audio_ids)
    counts = {audio_id: 0 for audio_id in audio_ids}
    if not audio_ids:
        return counts
    rows = (
        db.query(DBAudioFavorite.audio_id, func.count(DBAudioFavorite.id))
        .filter(DBAudioFavorite.audio_id.in_(audio_ids))
        .group_by(DBAudioFavorite.audio_id)
        .all()
    )
    for audio_id, count in rows:
        counts[audio_id] = count
    return counts


def get_user_favorite_ids(db: Session, user_id: str, audio_ids: Iterable[str]) -> Set[str]:
    """Which of the given audios the user has favorited."""
    audio_ids = list(audio_ids)
    if not audio_ids:
        return set()
    rows = (
        db.query(DBAudioFavorite.audio_id)
        .filter(DBAudioFavorite.user_id == user_id, DBAudioFavorite.audio_id.in_(audio_ids))
        .all()
    )
    return {row[0] for row in rows}


def is_user_favorite(db: Session, user_id: str, audio_id: str) -> bool:
    return audio_id in get_user_favorite_ids(db, user_id, [audio_id])


def get_user_favorites(
    db: Session,
    user_id: str,
    page: int = 1,
    limit: int = AUDIOS_PER_PAGE,
    is_admin: bool = False,
) -> Tuple[List[DBAudio], int]:
    """
    A user's favorited audios, most recently favorited first.

    Audios by untrusted uploaders are left out unless the viewer is an admin
    or the uploader is the user themselves.

    Returns:
        (audios on this page, total favorites matching)
    """
    page = max(page, 1)
    query = (
        db.query(DBAudioFavorite)
        .join(DBAudio, DBAudioFavorite.audio_id == DBAudio.id)
        .join(DBUser, DBAudio.user_id == DBUser.id)
        .filter(DBAudioFavorite.user_id == user_id)
    )
    if not is_admin:
        query = query.filter(or_(DBUser.is_trusted.is_(True), DBUser.id == user_id))

    total = query.count()
    favorites = (
        query.options(joinedload(DBAudioFavorite.audio).joinedload(DBAudio.user))
        .order_by(DBAudioFavorite.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [fav.audio for fav in favorites], total

# =============================================================================
# Follows
# =============================================================================

def follow_audio(db: Session, user_id: str, audio_id: str) -> bool:
    """Follow an audio's comments. Returns False if already following."""
    if db.get(DBAudio, audio_id) is None:
        raise NotFoundError("Audio", audio_id)
    if is_following(db, user_id, audio_id):
        return False
    db.add(DBAudioFollow(user_id=user_id, audio_id=audio_id))
    db.commit()
    logger.info(f"User {user_id} followed audio {audio_id}")
    return True


def unfollow_audio(db: Session, user_id: str, audio_id: str) -> bool:
    removed = db.query(DBAudioFollow).filter(
        DBAudioFollow.user_id == user_id,
        DBAudioFollow.audio_id == audio_id,
    ).delete(synchronize_session=False)
    db.commit()
    return removed > 0


def is_following(db: Session, user_id: str, audio_id: str) -> bool:
    return db.query(DBAudioFollow.id).filter(
        DBAudioFollow.user_id == user_id,
        DBAudioFollow.audio_id == audio_id,
    ).first() is not None
