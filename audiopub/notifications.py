"""
Notification queries and resolution.

A notification points at its target by (target_type, target_id) rather than
a foreign key, so targets can disappear underneath it. resolve_many batch-loads
actors and targets for a page of notifications and deletes the ones whose
target is gone.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from .constants import MAX_NOTIFICATIONS
from .db_models import DBAudio, DBComment, DBNotification, DBUser
from .exceptions import NotFoundError
from .models import AudioOut, CommentOut, NotificationOut, UserPublic

logger = logging.getLogger(__name__)


def resolve_many(db: Session, notifications: List[DBNotification]) -> List[NotificationOut]:
    """
    Attach actor and target to each notification, three queries in total.

    Notifications whose target no longer exists are still returned (without a
    target) this once, then deleted.
    """
    if not notifications:
        return []

    actor_ids = {n.actor_id for n in notifications if n.actor_id}
    audio_ids = {n.target_id for n in notifications if n.target_type == "audio" and n.target_id}
    comment_ids = {n.target_id for n in notifications if n.target_type == "comment" and n.target_id}

    actors = {u.id: u for u in db.query(DBUser).filter(DBUser.id.in_(actor_ids)).all()} if actor_ids else {}
    audios = (
        {a.id: a for a in db.query(DBAudio).options(joinedload(DBAudio.user)).filter(DBAudio.id.in_(audio_ids)).all()}
        if audio_ids else {}
    )
    comments = (
        {c.id: c for c in db.query(DBComment).options(joinedload(DBComment.user)).filter(DBComment.id.in_(comment_ids)).all()}
        if comment_ids else {}
    )

    resolved = []
    stale = []
    for n in notifications:
        target: Optional[Dict[str, Any]] = None
        if n.target_type == "audio" and n.target_id:
            audio = audios.get(n.target_id)
            if audio is None:
                stale.append(n.id)
            else:
                target = AudioOut.model_validate(audio).model_dump(mode="json")
        elif n.target_type == "comment" and n.target_id:
            comment = comments.get(n.target_id)
            if comment is None:
                stale.append(n.id)
            else:
                target = CommentOut.model_validate(comment).model_dump(mode="json")

        actor = actors.get(n.actor_id) if n.actor_id else None
        resolved.append(NotificationOut(
            id=n.id,
            type=n.type,
            target_type=n.target_type,
            target_id=n.target_id,
            metadata=n.meta,
            actor=UserPublic.model_validate(actor) if actor else None,
            target=target,
            read_at=n.read_at,
            created_at=n.created_at,
        ))

    if stale:
        db.query(DBNotification).filter(DBNotification.id.in_(stale)).delete(synchronize_session=False)
        db.commit()
        logger.info(f"Removed {len(stale)} notifications with missing targets")

    return resolved


def create_system(
    db: Session,
    message: str,
    metadata: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
) -> DBNotification:
    """
    Create a system notification.

    Args:
        message: Text shown to the recipient
        metadata: Extra fields merged next to the message
        user_id: Recipient; None broadcasts to every user
    """
    notification = DBNotification(
        user_id=user_id,
        actor_id=None,
        type="system",
        target_type=None,
        target_id=None,
        meta={"message": message, **(metadata or {})},
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info(f"System notification {notification.id} created for {user_id or 'everyone'}")
    return notification


def list_for_user(db: Session, user: DBUser, mark_read: bool = True) -> List[NotificationOut]:
    """Newest notifications addressed to the user or broadcast. Marks the user's own as read."""
    notifications = (
        db.query(DBNotification)
        .filter(or_(DBNotification.user_id == user.id, DBNotification.user_id.is_(None)))
        .order_by(DBNotification.created_at.desc())
        .limit(MAX_NOTIFICATIONS)
        .all()
    )
    resolved = resolve_many(db, notifications)

    if mark_read:
        db.query(DBNotification).filter(
            DBNotification.user_id == user.id,
            DBNotification.read_at.is_(None),
        ).update({DBNotification.read_at: datetime.utcnow()}, synchronize_session=False)
        db.commit()

    return resolved


def unread_count(db: Session, user: DBUser) -> int:
    """Unread notifications from trusted actors or the system."""
    return (
        db.query(DBNotification)
        .outerjoin(DBUser, DBNotification.actor_id == DBUser.id)
        .filter(
            DBNotification.user_id == user.id,
            DBNotification.read_at.is_(None),
            or_(DBUser.is_trusted.is_(True), DBNotification.actor_id.is_(None)),
        )
        .count()
    )


def clear_all(db: Session, user: DBUser) -> int:
    """Delete all of the user's own notifications. Broadcasts are untouched."""
    deleted = db.query(DBNotification).filter(DBNotification.user_id == user.id).delete(
        synchronize_session=False
    )
    db.commit()
    return deleted


def delete_one(db: Session, user: DBUser, notification_id: str) -> None:
    deleted = db.query(DBNotification).filter(
        DBNotification.id == notification_id,
        DBNotification.user_id == user.id,
    ).delete(synchronize_session=False)
    if not deleted:
        raise NotFoundError("Notification", notification_id)
    db.commit()
