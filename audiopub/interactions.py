"""
Comment interactions shared by the listen page API and the quickfeed.

Creating a comment notifies the audio's owner and followers. Deleting a
comment that still has replies leaves a tombstone so the replies keep their
place in the thread.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from .constants import MIN_COMMENT_LENGTH, MAX_COMMENT_LENGTH
from .db_models import DBAudio, DBAudioFollow, DBComment, DBNotification, DBUser
from .exceptions import NotFoundError, PermissionDeniedError, UnverifiedUserError, ValidationFailedError
from .threads import ThreadNode, build_threads

logger = logging.getLogger(__name__)


def validate_comment_content(content: Optional[str]) -> str:
    """
    Check comment length (3-4000 characters).

    Raises:
        ValidationFailedError: If the comment is missing or out of range
    """
    if not content:
        raise ValidationFailedError("Comment is required")
    if '\x00' in content:
        raise ValidationFailedError("Comment contains forbidden null bytes")
    if len(content) < MIN_COMMENT_LENGTH or len(content) > MAX_COMMENT_LENGTH:
        raise ValidationFailedError(
            f"Comment must be between {MIN_COMMENT_LENGTH} and {MAX_COMMENT_LENGTH} characters"
        )
    return content


def create_comment_with_notifications(
    db: Session,
    user: DBUser,
    audio_id: str,
    content: str,
    parent_id: Optional[str] = None,
) -> DBComment:
    """
    Create a comment (or reply) and notify the audio owner and followers.

    The commenter never notifies themselves.

    Raises:
        UnverifiedUserError: If the commenter has not verified their email
        ValidationFailedError: If the content is invalid or the parent is unusable
        NotFoundError: If the audio or parent comment does not exist
    """
    if not user.is_verified:
        raise UnverifiedUserError()
    content = validate_comment_content(content)

    audio = db.get(DBAudio, audio_id)
    if audio is None:
        raise NotFoundError("Audio", audio_id)

    if parent_id:
        parent = db.get(DBComment, parent_id)
        if parent is None:
            raise NotFoundError("Parent comment", parent_id)
        if parent.audio_id != audio.id:
            raise ValidationFailedError("Replies must belong to the same audio")
        if parent.is_deleted:
            raise ValidationFailedError("Cannot reply to a deleted comment")

    comment = DBComment(
        user_id=user.id,
        audio_id=audio.id,
        parent_id=parent_id or None,
        content=content,
    )
    db.add(comment)
    db.flush()

    recipients = {
        follow.user_id
        for follow in db.query(DBAudioFollow).filter(DBAudioFollow.audio_id == audio.id).all()
    }
    recipients.add(audio.user_id)
    recipients.discard(user.id)

    db.add_all([
        DBNotification(
            user_id=recipient_id,
            actor_id=user.id,
            type="comment",
            target_type="comment",
            target_id=comment.id,
            meta={"audio_id": audio.id},
        )
        for recipient_id in sorted(recipients)
    ])
    db.commit()
    db.refresh(comment)

    logger.info(
        f"User {user.id} commented {comment.id} on audio {audio.id} "
        f"(parent={parent_id}, notified={len(recipients)})"
    )
    return comment


def delete_comment(db: Session, user: DBUser, comment_id: str) -> str:
    """
    Delete a comment. Only its author or an admin may do this.

    Returns:
        "tombstoned" if replies kept the comment in place, otherwise "deleted"
    """
    comment = db.get(DBComment, comment_id)
    if comment is None:
        raise NotFoundError("Comment", comment_id)
    if not user.is_admin and comment.user_id != user.id:
        raise PermissionDeniedError("Only the author or an admin can delete this comment")

    db.query(DBNotification).filter(
        DBNotification.target_type == "comment",
        DBNotification.target_id == comment.id,
    ).delete(synchronize_session=False)

    if _has_replies(db, comment.id):
        comment.content = ""
        comment.deleted_at = comment.deleted_at or datetime.utcnow()
        db.commit()
        logger.info(f"Comment {comment_id} tombstoned by {user.id}")
        return "tombstoned"

    parent_id = comment.parent_id
    db.delete(comment)
    db.flush()
    prune_tombstones(db, parent_id)
    db.commit()
    logger.info(f"Comment {comment_id} deleted by {user.id}")
    return "deleted"


def _has_replies(db: Session, comment_id: str) -> bool:
    return db.query(DBComment.id).filter(DBComment.parent_id == comment_id).first() is not None


def prune_tombstones(db: Session, comment_id: Optional[str]) -> None:
    """
    Remove tombstones that lost their last reply, walking up the chain.

    Flushes but does not commit; callers own the transaction.
    """
    seen = set()
    while comment_id and comment_id not in seen:
        seen.add(comment_id)
        comment = db.get(DBComment, comment_id)
        if comment is None or not comment.is_deleted or _has_replies(db, comment.id):
            return
        comment_id = comment.parent_id
        db.delete(comment)
        db.flush()


def visible_comments_query(db: Session, viewer: Optional[DBUser] = None):
    """
    Comments the viewer may see, oldest first, with authors loaded.

    Untrusted authors are hidden from everyone but admins and themselves.
    Tombstones are kept so their replies still have a parent.
    """
    query = (
        db.query(DBComment)
        .join(DBUser, DBComment.user_id == DBUser.id)
        .options(joinedload(DBComment.user))
    )
    if viewer is None:
        query = query.filter(DBUser.is_trusted.is_(True))
    elif not viewer.is_admin:
        query = query.filter(or_(DBUser.is_trusted.is_(True), DBComment.user_id == viewer.id))
    return query.order_by(DBComment.created_at.asc())


def get_visible_comments(db: Session, audio_id: str, viewer: Optional[DBUser] = None) -> List[DBComment]:
    """Comments on an audio that the viewer may see."""
    return visible_comments_query(db, viewer).filter(DBComment.audio_id == audio_id).all()


def get_comment_threads(db: Session, audio_id: str, viewer: Optional[DBUser] = None) -> List[ThreadNode]:
    """Visible comments of an audio arranged into reply threads."""
    return build_threads(get_visible_comments(db, audio_id, viewer))
