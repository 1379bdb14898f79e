"""
Admin moderation of accounts: ban, warn, trust.

Moderation messages would be emailed; email delivery is not wired up, so
they are delivered as notifications addressed to the user and logged.
"""

import logging

from sqlalchemy.orm import Session

from .audio_actions import remove_audio_file
from .db_models import DBAudio, DBComment, DBUser
from .exceptions import NotFoundError, PermissionDeniedError
from .interactions import prune_tombstones
from .notifications import create_system

logger = logging.getLogger(__name__)


def _get_target(db: Session, admin: DBUser, user_id: str) -> DBUser:
    if not admin.is_admin:
        raise PermissionDeniedError("Admin access required")
    user = db.get(DBUser, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def ban_user(db: Session, admin: DBUser, user_id: str, reason: str, message: str = "") -> dict:
    """
    Ban an account. An untrusted account also loses all its audios and comments,
    and tombstones that only had replies from that account are pruned.

    Returns:
        Counts of removed audios and comments
    """
    user = _get_target(db, admin, user_id)
    if user.id == admin.id:
        raise PermissionDeniedError("Admins cannot ban themselves")

    user.is_banned = True
    removed = {"audios": 0, "comments": 0}

    if not user.is_trusted:
        audios = db.query(DBAudio).filter(DBAudio.user_id == user.id).all()
        for audio in audios:
            remove_audio_file(audio)
            db.delete(audio)
        removed["audios"] = len(audios)
        db.flush()

        own_comments = db.query(DBComment.id, DBComment.parent_id).filter(DBComment.user_id == user.id).all()
        own_ids = {comment_id for comment_id, _ in own_comments}
        parent_ids = {parent_id for _, parent_id in own_comments if parent_id} - own_ids

        # Replies by other users stay; their parent reference is nulled
        removed["comments"] = db.query(DBComment).filter(DBComment.user_id == user.id).delete(
            synchronize_session=False
        )
        db.expire_all()
        for parent_id in sorted(parent_ids):
            prune_tombstones(db, parent_id)
    db.commit()

    create_system(
        db,
        f"Your account has been banned from Audiopub for {reason}.",
        metadata={"reason": reason, "body": message, "action": "ban"},
        user_id=user.id,
    )
    logger.warning(
        f"User {user.id} banned by {admin.id} for '{reason}' "
        f"(removed {removed['audios']} audios, {removed['comments']} comments)"
    )
    return removed


def warn_user(db: Session, admin: DBUser, user_id: str, reason: str, message: str = "") -> None:
    user = _get_target(db, admin, user_id)
    create_system(
        db,
        f"You have been warned on Audiopub for {reason}.",
        metadata={"reason": reason, "body": message, "action": "warn"},
        user_id=user.id,
    )
    logger.warning(f"User {user.id} warned by {admin.id} for '{reason}'")


def trust_user(db: Session, admin: DBUser, user_id: str) -> DBUser:
    user = _get_target(db, admin, user_id)
    user.is_trusted = True
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} trusted by {admin.id}")
    return user
