"""
SQLAlchemy database models.

Maps Audiopub domain objects to relational tables.
Separate from Pydantic models (models.py) which handle API validation.
"""

import mimetypes
import uuid
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, Boolean, Index, UniqueConstraint
from sqlalchemy.orm import relationship, declarative_base
from datetime import datetime

Base = declarative_base()


def generate_uuid() -> str:
    return str(uuid.uuid4())


class DBUser(Base):
    """User account table."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(24), unique=True, nullable=False, index=True)  # lower-cased handle
    display_name = Column(String(30), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    # None means the address has been verified
    verification_token = Column(String(36), nullable=True, default=generate_uuid)
    verification_attempts = Column(Integer, default=0, nullable=False)
    reset_password_token = Column(String(36), nullable=True)

    is_banned = Column(Boolean, default=False, nullable=False)
    is_trusted = Column(Boolean, default=False, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    # Bumped whenever credentials change; tokens carrying an older version are rejected
    version = Column(Integer, default=0, nullable=False)
    bio = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    audios = relationship("DBAudio", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    comments = relationship("DBComment", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_verified(self) -> bool:
        return self.verification_token is None

    @property
    def visible_name(self) -> str:
        return self.display_name or self.name

    def __repr__(self):
        return f"<DBUser(id={self.id}, name='{self.name}')>"


class DBAudio(Base):
    """Uploaded audio clip table."""
    __tablename__ = "audios"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(120), nullable=False, index=True)
    description = Column(Text, default="", nullable=False)
    has_file = Column(Boolean, default=False, nullable=False)
    plays = Column(Integer, default=0, nullable=False)
    extension = Column(String(16), default="aac", nullable=False)
    is_from_ai = Column(Boolean, default=False, nullable=False, index=True)
    edit_count = Column(Integer, default=0, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("DBUser", back_populates="audios")
    comments = relationship("DBComment", back_populates="audio", cascade="all, delete-orphan", passive_deletes=True)
    follows = relationship("DBAudioFollow", back_populates="audio", cascade="all, delete-orphan", passive_deletes=True)
    favorites = relationship("DBAudioFavorite", back_populates="audio", cascade="all, delete-orphan", passive_deletes=True)
    edit_history = relationship("DBAudioEditHistory", back_populates="audio", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index('idx_audio_user_created', 'user_id', 'created_at'),
    )

    @property
    def path(self) -> str:
        """Public URL path of the uploaded file."""
        return f"audio/{self.id}"

    @property
    def transcoded_path(self) -> str:
        return f"audio/{self.id}.aac"

    @property
    def mime_type(self) -> str:
        ext = (self.extension or "").lstrip(".")
        return mimetypes.types_map.get(f".{ext}", "audio/aac") if ext else "audio/aac"

    @property
    def plays_string(self) -> str:
        if self.plays <= 0:
            return "No registered plays"
        if self.plays == 1:
            return "Played 1 time"
        return f"Played {self.plays} times"

    def __repr__(self):
        return f"<DBAudio(id={self.id}, title='{self.title}')>"


class DBComment(Base):
    """Comment table. parent_id makes comments threaded."""
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    content = Column(Text, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    audio_id = Column(String(36), ForeignKey("audios.id", ondelete="CASCADE"), nullable=False, index=True)
    # Hard-deleting a parent leaves its replies as orphans; they render as roots
    parent_id = Column(String(36), ForeignKey("comments.id", ondelete="SET NULL"), nullable=True, index=True)
    deleted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("DBUser", back_populates="comments")
    audio = relationship("DBAudio", back_populates="comments")

    __table_args__ = (
        Index('idx_comment_audio_created', 'audio_id', 'created_at'),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self):
        return f"<DBComment(id={self.id}, audio_id={self.audio_id}, parent_id={self.parent_id})>"


class DBNotification(Base):
    """Notification table. A null user_id is a broadcast to everyone."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    actor_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(20), nullable=False)  # comment, upload, system, favorite
    target_type = Column(String(20), nullable=True)  # audio, comment
    target_id = Column(String(36), nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    actor = relationship("DBUser", foreign_keys=[actor_id])

    __table_args__ = (
        Index('idx_notification_user_read', 'user_id', 'read_at'),
        Index('idx_notification_target', 'target_type', 'target_id'),
    )

    def __repr__(self):
        return f"<DBNotification(id={self.id}, type='{self.type}', user_id={self.user_id})>"


class DBAudioFollow(Base):
    """A user following an audio's comment activity."""
    __tablename__ = "audio_follows"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    audio_id = Column(String(36), ForeignKey("audios.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    audio = relationship("DBAudio", back_populates="follows")

    __table_args__ = (
        UniqueConstraint('user_id', 'audio_id', name='uq_audio_follow_user_audio'),
    )


class DBAudioFavorite(Base):
    """A user's favorite audio."""
    __tablename__ = "audio_favorites"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    audio_id = Column(String(36), ForeignKey("audios.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    audio = relationship("DBAudio", back_populates="favorites")

    __table_args__ = (
        UniqueConstraint('user_id', 'audio_id', name='uq_audio_favorite_user_audio'),
    )


class DBAudioEditHistory(Base):
    """Snapshot of an audio's title/description before and after an edit."""
    __tablename__ = "audio_edit_history"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    audio_id = Column(String(36), ForeignKey("audios.id", ondelete="CASCADE"), nullable=False, index=True)
    old_title = Column(String(120), nullable=False)
    new_title = Column(String(120), nullable=False)
    old_description = Column(Text, nullable=False, default="")
    new_description = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    audio = relationship("DBAudio", back_populates="edit_history")

    def __repr__(self):
        return f"<DBAudioEditHistory(id={self.id}, audio_id={self.audio_id})>"
