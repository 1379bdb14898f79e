"""
Tests for favorites, favorite notifications and follows.
"""

import pytest
from datetime import datetime, timedelta

from audiopub.db_models import DBAudioFavorite, DBNotification
from audiopub.exceptions import NotFoundError
from audiopub.favorites import (
    create_favorite,
    follow_audio,
    get_favorite_count,
    get_favorite_counts,
    get_user_favorite_ids,
    get_user_favorites,
    is_following,
    is_user_favorite,
    remove_favorite,
    unfollow_audio,
)

T0 = datetime(2024, 6, 1, 18, 0, 0)


def favorite_notifications(db_session):
    return db_session.query(DBNotification).filter(DBNotification.type == "favorite").all()


# =============================================================================
# Favorites
# =============================================================================

class TestCreateFavorite:

    def test_creates_favorite_and_notifies_owner(self, db_session, make_user, make_audio):
        owner, fan = make_user("owner"), make_user("fan")
        audio = make_audio(owner)

        favorite = create_favorite(db_session, fan.id, audio.id, now=T0)

        assert favorite is not None
        assert is_user_favorite(db_session, fan.id, audio.id)
        notes = favorite_notifications(db_session)
        assert len(notes) == 1
        assert notes[0].user_id == owner.id
        assert notes[0].actor_id == fan.id
        assert notes[0].target_type == "audio"
        assert notes[0].target_id == audio.id

    def test_duplicate_returns_none(self, db_session, make_user, make_audio):
        fan = make_user("fan")
        audio = make_audio(make_user("owner"))
        create_favorite(db_session, fan.id, audio.id, now=T0)
        assert create_favorite(db_session, fan.id, audio.id, now=T0) is None
        assert get_favorite_count(db_session, audio.id) == 1

    def test_own_audio_does_not_notify(self, db_session, make_user, make_audio):
        owner = make_user("owner")
        audio = make_audio(owner)
        assert create_favorite(db_session, owner.id, audio.id, now=T0) is not None
        assert favorite_notifications(db_session) == []

    def test_unknown_audio(self, db_session, make_user):
        with pytest.raises(NotFoundError):
            create_favorite(db_session, make_user().id, "missing")

    def test_recent_notification_not_repeated(self, db_session, make_user, make_audio):
        owner, fan = make_user("owner"), make_user("fan")
        audio = make_audio(owner)
        db_session.add(DBNotification(
            user_id=owner.id, actor_id=fan.id, type="favorite",
            target_type="audio", target_id=audio.id,
            created_at=T0 - timedelta(minutes=2),
        ))
        db_session.commit()

        create_favorite(db_session, fan.id, audio.id, now=T0)
        assert len(favorite_notifications(db_session)) == 1

    def test_old_notification_does_not_suppress(self, db_session, make_user, make_audio):
        owner, fan = make_user("owner"), make_user("fan")
        audio = make_audio(owner)
        db_session.add(DBNotification(
            user_id=owner.id, actor_id=fan.id, type="favorite",
            target_type="audio", target_id=audio.id,
            created_at=T0 - timedelta(minutes=10),
        ))
        db_session.commit()

        create_favorite(db_session, fan.id, audio.id, now=T0)
        assert len(favorite_notifications(db_session)) == 2


class TestRemoveFavorite:

    def test_removes_favorite_and_notification(self, db_session, make_user, make_audio):
        owner, fan = make_user("owner"), make_user("fan")
        audio = make_audio(owner)
        create_favorite(db_session, fan.id, audio.id, now=T0)

        assert remove_favorite(db_session, fan.id, audio.id) is True
        assert not is_user_favorite(db_session, fan.id, audio.id)
        assert favorite_notifications(db_session) == []

    def test_not_favorited(self, db_session, make_user, make_audio):
        audio = make_audio(make_user("owner"))
        assert remove_favorite(db_session, make_user("fan").id, audio.id) is False


class TestFavoriteQueries:

    def test_counts_and_ids(self, db_session, make_user, make_audio):
        owner, a, b = make_user("owner"), make_user("a"), make_user("b")
        first, second, third = make_audio(owner), make_audio(owner), make_audio(owner)
        create_favorite(db_session, a.id, first.id)
        create_favorite(db_session, b.id, first.id)
        create_favorite(db_session, a.id, second.id)

        counts = get_favorite_counts(db_session, [first.id, second.id, third.id])
        assert counts == {first.id: 2, second.id: 1, third.id: 0}
        assert get_user_favorite_ids(db_session, a.id, [first.id, second.id, third.id]) == {first.id, second.id}
        assert get_favorite_counts(db_session, []) == {}

    def test_user_favorites_newest_first(self, db_session, make_user, make_audio):
        owner, fan = make_user("owner"), make_user("fan")
        older, newer = make_audio(owner), make_audio(owner)
        db_session.add_all([
            DBAudioFavorite(user_id=fan.id, audio_id=older.id, created_at=T0),
            DBAudioFavorite(user_id=fan.id, audio_id=newer.id, created_at=T0 + timedelta(hours=1)),
        ])
        db_session.commit()

        audios, total = get_user_favorites(db_session, fan.id)
        assert total == 2
        assert [a.id for a in audios] == [newer.id, older.id]

    def test_user_favorites_hide_untrusted_uploaders(self, db_session, make_user, make_audio):
        fan = make_user("fan")
        shady = make_user("shady", trusted=False)
        hidden = make_audio(shady)
        own = make_audio(fan)
        create_favorite(db_session, fan.id, hidden.id)
        create_favorite(db_session, fan.id, own.id)

        audios, total = get_user_favorites(db_session, fan.id)
        assert [a.id for a in audios] == [own.id]
        assert total == 1

        audios, total = get_user_favorites(db_session, fan.id, is_admin=True)
        assert total == 2


# =============================================================================
# Follows
# =============================================================================

class TestFollows:

    def test_follow_is_idempotent(self, db_session, make_user, make_audio):
        user = make_user()
        audio = make_audio(make_user("owner"))
        assert follow_audio(db_session, user.id, audio.id) is True
        assert follow_audio(db_session, user.id, audio.id) is False
        assert is_following(db_session, user.id, audio.id)

    def test_unfollow(self, db_session, make_user, make_audio):
        user = make_user()
        audio = make_audio(make_user("owner"))
        follow_audio(db_session, user.id, audio.id)
        assert unfollow_audio(db_session, user.id, audio.id) is True
        assert unfollow_audio(db_session, user.id, audio.id) is False
        assert not is_following(db_session, user.id, audio.id)

    def test_follow_unknown_audio(self, db_session, make_user):
        with pytest.raises(NotFoundError):
            follow_audio(db_session, make_user().id, "missing")
