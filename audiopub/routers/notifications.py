"""
Notifications Router for Audiopub.

Endpoints:
- GET /notifications - Latest notifications (marks them read)
- GET /notifications/unread - Unread count
- DELETE /notifications - Clear all of the user's notifications
- DELETE /notifications/{notification_id} - Delete one notification
- POST /notifications/system - Send a system notification (admin)
"""

import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import notifications
from ..database import get_db
from ..db_models import DBUser
from ..dependencies import get_current_user, require_admin
from ..models import NotificationOut, SystemNotificationCreate, UnreadCount

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Newest first, at most 100. The user's unread notifications become read."""
    return notifications.list_for_user(db, current_user)


@router.get("/unread", response_model=UnreadCount)
async def get_unread_count(
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UnreadCount(unread=notifications.unread_count(db, current_user))


@router.delete("")
async def clear_notifications(
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted = notifications.clear_all(db, current_user)
    logger.info(f"User {current_user.id} cleared {deleted} notifications")
    return {"deleted": deleted}


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notifications.delete_one(db, current_user, notification_id)


@router.post("/system", response_model=NotificationOut, status_code=status.HTTP_201_CREATED)
async def send_system_notification(
    body: SystemNotificationCreate,
    admin: DBUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Send a system notification to one user, or to everyone when user_id is omitted.

    Raises:
        HTTPException 404: If user_id names no account
    """
    if body.user_id is not None and db.get(DBUser, body.user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    notification = notifications.create_system(
        db, body.message, metadata=body.metadata, user_id=body.user_id
    )
    return notifications.resolve_many(db, [notification])[0]
