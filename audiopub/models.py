"""Data models and schemas for Audiopub."""

from enum import Enum
from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime

from .constants import (
    MIN_USERNAME_LENGTH, MAX_USERNAME_LENGTH,
    MIN_PASSWORD_LENGTH, MAX_PASSWORD_LENGTH,
    MIN_DISPLAY_NAME_LENGTH, MAX_DISPLAY_NAME_LENGTH,
    MIN_TITLE_LENGTH, MAX_TITLE_LENGTH, MAX_DESCRIPTION_LENGTH,
    MAX_BIO_LENGTH, MAX_SYSTEM_MESSAGE_LENGTH,
    MAX_RENDERED_THREAD_DEPTH,
)
from .threads import iter_nodes


# =============================================================================
# Enums for validated parameters
# =============================================================================

class NotificationType(str, Enum):
    COMMENT = "comment"
    UPLOAD = "upload"
    SYSTEM = "system"
    FAVORITE = "favorite"


class NotificationTargetType(str, Enum):
    AUDIO = "audio"
    COMMENT = "comment"


def _check_email(v: str) -> str:
    v = v.strip().lower()
    local, _, domain = v.partition("@")
    if not local or "." not in domain or " " in v:
        raise ValueError('Invalid email address')
    return v


def _check_password(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH or len(v) > MAX_PASSWORD_LENGTH:
        raise ValueError(
            f'Password must be between {MIN_PASSWORD_LENGTH} and {MAX_PASSWORD_LENGTH} characters.'
        )
    return v


# =============================================================================
# Authentication Models
# =============================================================================

class UserCreate(BaseModel):
    """Schema for creating a new user."""
    email: str
    username: str
    password: str

    @field_validator('email')
    @classmethod
    def email_valid(cls, v):
        return _check_email(v)

    @field_validator('username')
    @classmethod
    def username_valid(cls, v):
        """Validate username length; characters are checked by sanitize_username."""
        v = v.strip()
        if len(v) < MIN_USERNAME_LENGTH or len(v) > MAX_USERNAME_LENGTH:
            raise ValueError(
                f'Username must be between {MIN_USERNAME_LENGTH} and {MAX_USERNAME_LENGTH} characters.'
            )
        return v

    @field_validator('password')
    @classmethod
    def password_valid(cls, v):
        return _check_password(v)


class UserLogin(BaseModel):
    """Schema for user login."""
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class Token(BaseModel):
    """Representation of an authentication token returned after login."""
    access_token: str
    token_type: str = "bearer"


class VerifyRequest(BaseModel):
    token: str


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    password: str

    @field_validator('password')
    @classmethod
    def password_valid(cls, v):
        return _check_password(v)


class ProfileUpdate(BaseModel):
    """Partial profile update. Omitted fields are left alone."""
    email: Optional[str] = None
    display_name: Optional[str] = None
    password: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=MAX_BIO_LENGTH)

    @field_validator('email')
    @classmethod
    def email_valid(cls, v):
        return _check_email(v) if v is not None else v

    @field_validator('display_name')
    @classmethod
    def display_name_valid(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) < MIN_DISPLAY_NAME_LENGTH or len(v) > MAX_DISPLAY_NAME_LENGTH:
            raise ValueError(
                f'Display name must be between {MIN_DISPLAY_NAME_LENGTH} and {MAX_DISPLAY_NAME_LENGTH} characters.'
            )
        return v

    @field_validator('password')
    @classmethod
    def password_valid(cls, v):
        return _check_password(v) if v is not None else v


# =============================================================================
# User Models
# =============================================================================

class UserPublic(BaseModel):
    """Public representation of a user."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    display_name: Optional[str] = None
    is_banned: bool = False
    is_verified: bool = False
    bio: Optional[str] = None


class UserPrivate(UserPublic):
    """What a user sees about their own account."""
    email: str
    is_trusted: bool
    is_admin: bool
    created_at: datetime


class ProfileUpdateResponse(BaseModel):
    user: UserPrivate
    access_token: Optional[str] = None
    token_type: str = "bearer"


class ModerationAction(BaseModel):
    """Admin ban/warn request."""
    reason: str = Field(..., min_length=1, max_length=200)
    message: str = Field("", max_length=MAX_SYSTEM_MESSAGE_LENGTH)


# =============================================================================
# Audio Models
# =============================================================================

class AudioUpload(BaseModel):
    """Schema for uploading an audio file encoded as base64 bytes."""
    filename: str
    content: str  # base64 encoded
    title: str
    description: str = ""

    @field_validator('title')
    @classmethod
    def title_valid(cls, v):
        v = v.strip()
        if len(v) < MIN_TITLE_LENGTH or len(v) > MAX_TITLE_LENGTH:
            raise ValueError(f'Title must be between {MIN_TITLE_LENGTH} and {MAX_TITLE_LENGTH} characters')
        return v

    @field_validator('description')
    @classmethod
    def description_valid(cls, v):
        if len(v) > MAX_DESCRIPTION_LENGTH:
            raise ValueError('Description is too long')
        return v


class AudioUpdate(BaseModel):
    title: str
    description: str = Field("", max_length=MAX_DESCRIPTION_LENGTH)


class AudioOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    extension: str
    path: str
    transcoded_path: str
    mime_type: str
    plays: int
    plays_string: str
    is_from_ai: bool
    edit_count: int
    created_at: datetime
    user: Optional[UserPublic] = None
    favorite_count: int = 0
    is_favorited: bool = False


class AudioPage(BaseModel):
    audios: List[AudioOut]
    page: int
    has_more: bool = False


class PlayReport(BaseModel):
    """Client report that playback passed the minimum listen time."""
    position: Optional[float] = Field(None, ge=0)
    duration: Optional[float] = Field(None, ge=0)


class PlayResult(BaseModel):
    counted: bool
    plays: int


class EditHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    audio_id: str
    old_title: str
    new_title: str
    old_description: str
    new_description: str
    created_at: datetime


# =============================================================================
# Comment Models
# =============================================================================

class CommentCreate(BaseModel):
    content: str
    parent_id: Optional[str] = None


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str
    audio_id: str
    parent_id: Optional[str] = None
    user: Optional[UserPublic] = None
    is_deleted: bool = False
    created_at: datetime


class CommentThread(CommentOut):
    """A comment with its replies, nested recursively."""
    replies: List["CommentThread"] = []

    @classmethod
    def from_node(cls, node, max_depth: int = MAX_RENDERED_THREAD_DEPTH) -> "CommentThread":
        """
        Convert a threads.ThreadNode (wrapping a DBComment) into a schema.

        Nesting stops at max_depth: a comment at that depth lists all of its
        descendants as direct replies, oldest first. Their parent_id still
        names the comment they actually answer.
        """
        # Pre-order (node, depth) pairs down to max_depth; built bottom-up below
        order = []
        stack = [(node, 1)]
        while stack:
            current, depth = stack.pop()
            order.append((current, depth))
            if depth < max_depth:
                stack.extend((child, depth + 1) for child in reversed(current.replies))

        built = {}
        for current, depth in reversed(order):
            if depth < max_depth:
                replies = [built.pop(id(child)) for child in current.replies]
            else:
                descendants = sorted(iter_nodes(current.replies), key=lambda n: n.comment.created_at)
                replies = [cls._from_comment(n.comment, []) for n in descendants]
            built[id(current)] = cls._from_comment(current.comment, replies)
        return built[id(node)]

    @classmethod
    def _from_comment(cls, comment, replies: List["CommentThread"]) -> "CommentThread":
        return cls(
            id=comment.id,
            content=comment.content,
            audio_id=comment.audio_id,
            parent_id=comment.parent_id,
            user=None if comment.is_deleted else UserPublic.model_validate(comment.user),
            is_deleted=comment.is_deleted,
            created_at=comment.created_at,
            replies=replies,
        )


CommentThread.model_rebuild()


class AudioDetail(BaseModel):
    audio: AudioOut
    comments: List[CommentThread]
    is_following: bool = False


class QuickfeedItem(BaseModel):
    audio: AudioOut
    comments: List[CommentThread]


class QuickfeedPage(BaseModel):
    items: List[QuickfeedItem]
    page: int
    has_more: bool


class UserProfile(BaseModel):
    user: UserPublic
    audios: List[AudioOut]
    page: int
    has_more: bool


# =============================================================================
# Notification Models
# =============================================================================

class NotificationOut(BaseModel):
    id: str
    type: NotificationType
    target_type: Optional[NotificationTargetType] = None
    target_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    actor: Optional[UserPublic] = None
    target: Optional[Dict[str, Any]] = None
    read_at: Optional[datetime] = None
    created_at: datetime


class UnreadCount(BaseModel):
    unread: int


class SystemNotificationCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=MAX_SYSTEM_MESSAGE_LENGTH)
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
