"""
Tests for audio uploads, edits, reverts, plays, mirror moves and deletion.
"""

import pytest
from datetime import timedelta

from audiopub.audio_actions import (
    audio_file_path,
    delete_audio,
    edit_audio,
    get_edit_history,
    move_to_ai,
    move_to_main,
    register_play,
    revert_audio,
    upload_audio,
)
from audiopub.db_models import DBAudio, DBAudioEditHistory, DBNotification
from audiopub.exceptions import (
    ConfigurationError,
    EditLimitReachedError,
    NotFoundError,
    PermissionDeniedError,
    UnverifiedUserError,
    ValidationFailedError,
)
from audiopub.play_tracker import PlayTracker


# =============================================================================
# Upload & Delete
# =============================================================================

class TestUpload:

    def test_writes_file(self, db_session, make_user, audio_dir):
        user = make_user()
        audio = upload_audio(db_session, user, "My first take", "", "mp3", b"ID3-bytes")

        assert audio.has_file
        assert audio.extension == "mp3"
        assert audio.user_id == user.id
        assert audio_file_path(audio).read_bytes() == b"ID3-bytes"
        assert audio_file_path(audio).parent == audio_dir

    def test_unverified_rejected(self, db_session, make_user, audio_dir):
        with pytest.raises(UnverifiedUserError):
            upload_audio(db_session, make_user(verified=False), "Title here", "", "mp3", b"x")

    def test_untrusted_limited_to_one(self, db_session, make_user, audio_dir):
        newbie = make_user(trusted=False)
        upload_audio(db_session, newbie, "First upload", "", "ogg", b"x")
        with pytest.raises(PermissionDeniedError) as exc:
            upload_audio(db_session, newbie, "Second upload", "", "ogg", b"x")
        assert "reviewed" in exc.value.message

    def test_empty_file_rejected(self, db_session, make_user, audio_dir):
        with pytest.raises(ValidationFailedError):
            upload_audio(db_session, make_user(), "Silence", "", "wav", b"")

    def test_storage_path_must_be_directory(self, db_session, make_user, tmp_path, monkeypatch):
        from audiopub.config import settings
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("occupied")
        monkeypatch.setattr(settings, "audio_dir", str(not_a_dir))
        with pytest.raises(ConfigurationError):
            upload_audio(db_session, make_user(), "Anything", "", "mp3", b"x")


class TestDelete:

    def test_owner_deletes_row_and_file(self, db_session, make_user, audio_dir):
        user = make_user()
        audio = upload_audio(db_session, user, "Short lived", "", "mp3", b"x")
        path = audio_file_path(audio)

        delete_audio(db_session, user, audio.id)
        assert db_session.get(DBAudio, audio.id) is None
        assert not path.exists()

    def test_missing_file_is_fine(self, db_session, make_user, make_audio, audio_dir):
        user = make_user()
        audio = make_audio(user)
        delete_audio(db_session, user, audio.id)
        assert db_session.get(DBAudio, audio.id) is None

    def test_stranger_cannot_delete(self, db_session, make_user, make_audio, audio_dir):
        audio = make_audio(make_user("owner"))
        with pytest.raises(PermissionDeniedError):
            delete_audio(db_session, make_user("stranger"), audio.id)


# =============================================================================
# Edits & Reverts
# =============================================================================

class TestEdit:

    def test_edit_records_history(self, db_session, make_user, make_audio):
        user = make_user()
        audio = make_audio(user, title="Old title", description="old")

        edited = edit_audio(db_session, user, audio.id, "  New title  ", "new")

        assert edited.title == "New title"
        assert edited.description == "new"
        assert edited.edit_count == 1
        (entry,) = get_edit_history(db_session, audio.id)
        assert (entry.old_title, entry.new_title) == ("Old title", "New title")
        assert (entry.old_description, entry.new_description) == ("old", "new")

    def test_non_admin_limited(self, db_session, make_user, make_audio):
        user = make_user()
        audio = make_audio(user)
        for i in range(3):
            edit_audio(db_session, user, audio.id, f"Title {i}", "")
        with pytest.raises(EditLimitReachedError):
            edit_audio(db_session, user, audio.id, "One too many", "")

    def test_admin_not_limited_and_not_counted(self, db_session, make_user, make_audio):
        audio = make_audio(make_user("owner"))
        admin = make_user("mod", admin=True)
        for i in range(5):
            edit_audio(db_session, admin, audio.id, f"Admin title {i}", "")
        assert db_session.get(DBAudio, audio.id).edit_count == 0

    def test_short_title_rejected(self, db_session, make_user, make_audio):
        user = make_user()
        audio = make_audio(user)
        with pytest.raises(ValidationFailedError):
            edit_audio(db_session, user, audio.id, "ab", "")

    def test_stranger_cannot_edit(self, db_session, make_user, make_audio):
        audio = make_audio(make_user("owner"))
        with pytest.raises(PermissionDeniedError):
            edit_audio(db_session, make_user("stranger"), audio.id, "Hijacked", "")


class TestRevert:

    def test_revert_restores_and_records(self, db_session, make_user, make_audio):
        user = make_user()
        admin = make_user("mod", admin=True)
        audio = make_audio(user, title="Original", description="first")
        edit_audio(db_session, user, audio.id, "Vandalised", "second")
        entry = db_session.query(DBAudioEditHistory).one()

        reverted = revert_audio(db_session, admin, entry.id)

        assert reverted.title == "Original"
        assert reverted.description == "first"
        assert reverted.edit_count == 1
        assert db_session.query(DBAudioEditHistory).count() == 2

    def test_non_admin_cannot_revert(self, db_session, make_user, make_audio):
        user = make_user()
        audio = make_audio(user)
        edit_audio(db_session, user, audio.id, "Changed it", "")
        entry = db_session.query(DBAudioEditHistory).one()
        with pytest.raises(PermissionDeniedError):
            revert_audio(db_session, user, entry.id)

    def test_unknown_history(self, db_session, make_user):
        with pytest.raises(NotFoundError):
            revert_audio(db_session, make_user(admin=True), "missing")


# =============================================================================
# Plays
# =============================================================================

class TestRegisterPlay:

    def test_counts_once_per_window(self, db_session, make_user, make_audio):
        audio = make_audio(make_user("owner"))
        tracker = PlayTracker(window=timedelta(hours=12))

        assert register_play(db_session, tracker, "listener", audio) is True
        assert register_play(db_session, tracker, "listener", audio) is False
        assert register_play(db_session, tracker, "someone-else", audio) is True
        assert audio.plays == 2

    def test_short_listen_not_counted(self, db_session, make_user, make_audio):
        audio = make_audio(make_user("owner"))
        tracker = PlayTracker()
        assert register_play(db_session, tracker, "listener", audio, position=1.0, duration=60.0) is False
        assert audio.plays == 0
        # Not remembered either, so a full listen still counts
        assert register_play(db_session, tracker, "listener", audio, position=30.0, duration=60.0) is True
        assert audio.plays == 1


# =============================================================================
# AI Mirror
# =============================================================================

class TestMirrorMoves:

    def test_owner_moves_to_ai_silently(self, db_session, make_user, make_audio):
        owner = make_user("owner")
        audio = make_audio(owner)
        assert move_to_ai(db_session, owner, audio.id).is_from_ai is True
        assert db_session.query(DBNotification).count() == 0

    def test_admin_move_notifies_owner(self, db_session, make_user, make_audio):
        owner = make_user("owner")
        admin = make_user("mod", admin=True)
        audio = make_audio(owner)

        move_to_ai(db_session, admin, audio.id)
        move_to_main(db_session, admin, audio.id)

        notes = db_session.query(DBNotification).filter(DBNotification.user_id == owner.id).all()
        assert len(notes) == 2
        assert all(n.type == "system" for n in notes)
        assert db_session.get(DBAudio, audio.id).is_from_ai is False

    def test_stranger_cannot_move(self, db_session, make_user, make_audio):
        audio = make_audio(make_user("owner"))
        with pytest.raises(PermissionDeniedError):
            move_to_ai(db_session, make_user("stranger"), audio.id)

    def test_owner_cannot_move_back(self, db_session, make_user, make_audio):
        owner = make_user("owner")
        audio = make_audio(owner, is_from_ai=True)
        with pytest.raises(PermissionDeniedError):
            move_to_main(db_session, owner, audio.id)
