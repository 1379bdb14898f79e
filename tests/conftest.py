"""
Shared test fixtures for all test modules.

Provides:
- Test environment setup (TESTING=true, secret key, in-memory database)
- db_session: SQLite in-memory database session with foreign keys enforced
- client: TestClient whose database dependency uses db_session
- make_user / make_audio / make_comment factories and auth_headers
"""

import os
from datetime import datetime, timedelta

import pytest

# =============================================================================
# Test Environment Configuration
# =============================================================================

# Must be set before anything from audiopub is imported
os.environ['TESTING'] = 'true'
os.environ['AUDIOPUB_SECRET_KEY'] = os.environ.get('AUDIOPUB_SECRET_KEY', 'test-secret-key-for-testing')
os.environ['DATABASE_URL'] = 'sqlite://'

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from audiopub.auth import hash_password, create_user_token
from audiopub.config import settings
from audiopub.database import create_db_engine, get_db
from audiopub.db_models import Base, DBAudio, DBComment, DBUser
from audiopub.dependencies import play_tracker

TEST_PASSWORD = "correct-horse-battery"

# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def db_session() -> Session:
    """
    Create test database session with in-memory SQLite.

    Creates fresh database with all tables for each test.
    """
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def audio_dir(tmp_path, monkeypatch):
    """Point audio storage at a temporary directory."""
    directory = tmp_path / "audio"
    monkeypatch.setattr(settings, "audio_dir", str(directory))
    return directory


@pytest.fixture
def client(db_session, audio_dir):
    """TestClient sharing db_session with the test."""
    from audiopub.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    play_tracker.clear()

    yield TestClient(app)

    app.dependency_overrides.clear()
    play_tracker.clear()

# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def plain_password():
    return TEST_PASSWORD


@pytest.fixture(scope="session")
def password_hash():
    """bcrypt is slow; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def make_user(db_session, password_hash):
    """Create a user. Trusted and verified unless told otherwise."""
    counter = {"n": 0}

    def _make_user(
        name=None,
        trusted=True,
        verified=True,
        admin=False,
        banned=False,
        email=None,
    ):
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        user = DBUser(
            name=name.lower(),
            display_name=name,
            email=email or f"{name.lower()}@example.com",
            hashed_password=password_hash,
            is_trusted=trusted,
            is_admin=admin,
            is_banned=banned,
        )
        db_session.add(user)
        db_session.commit()
        if verified:
            user.verification_token = None
            db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_audio(db_session):
    """Create an audio row (no file on disk)."""
    counter = {"n": 0}
    base_time = datetime(2024, 1, 1, 12, 0, 0)

    def _make_audio(user, title=None, description="", is_from_ai=False, plays=0, created_at=None):
        counter["n"] += 1
        audio = DBAudio(
            user_id=user.id,
            title=title or f"Audio number {counter['n']}",
            description=description,
            is_from_ai=is_from_ai,
            plays=plays,
            has_file=True,
            extension="mp3",
            created_at=created_at or base_time + timedelta(minutes=counter["n"]),
        )
        db_session.add(audio)
        db_session.commit()
        db_session.refresh(audio)
        return audio

    return _make_audio


@pytest.fixture
def make_comment(db_session):
    """Create a comment row directly, bypassing notifications."""
    base_time = datetime(2024, 1, 1, 12, 0, 0)
    counter = {"n": 0}

    def _make_comment(user, audio, content="A fine comment", parent=None, created_at=None):
        counter["n"] += 1
        comment = DBComment(
            user_id=user.id,
            audio_id=audio.id,
            parent_id=parent.id if parent is not None else None,
            content=content,
            created_at=created_at or base_time + timedelta(minutes=counter["n"]),
        )
        db_session.add(comment)
        db_session.commit()
        db_session.refresh(comment)
        return comment

    return _make_comment


def auth_headers(user) -> dict:
    """Bearer header for a user's current credential version."""
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def headers_for():
    return auth_headers
