"""
Tests for audios router endpoints.

Upload, listing, detail with threads, edits, history, plays and mirror moves.
"""

import base64

import pytest

from audiopub.db_models import DBAudio, DBAudioEditHistory


def upload_body(title="Morning birds", filename="birds.mp3", data=b"fake-mp3-bytes", description=""):
    return {
        "filename": filename,
        "content": base64.b64encode(data).decode(),
        "title": title,
        "description": description,
    }


# =============================================================================
# Upload
# =============================================================================

class TestUpload:

    def test_upload(self, client, make_user, headers_for, audio_dir):
        user = make_user("uploader")
        response = client.post("/audios", headers=headers_for(user), json=upload_body())

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Morning birds"
        assert body["extension"] == "mp3"
        assert body["mime_type"] == "audio/mpeg"
        assert body["plays_string"] == "No registered plays"
        assert body["user"]["name"] == "uploader"
        assert body["is_from_ai"] is False
        assert (audio_dir / body["id"]).read_bytes() == b"fake-mp3-bytes"

    def test_upload_to_ai_mirror(self, client, make_user, headers_for):
        user = make_user()
        headers = {**headers_for(user), "X-From-AI": "1"}
        response = client.post("/audios", headers=headers, json=upload_body())
        assert response.json()["is_from_ai"] is True

    def test_requires_login(self, client):
        assert client.post("/audios", json=upload_body()).status_code == 401

    def test_invalid_base64(self, client, make_user, headers_for):
        body = upload_body()
        body["content"] = "***not base64***"
        response = client.post("/audios", headers=headers_for(make_user()), json=body)
        assert response.status_code == 400

    def test_unsupported_extension(self, client, make_user, headers_for):
        response = client.post("/audios", headers=headers_for(make_user()), json=upload_body(filename="virus.exe"))
        assert response.status_code == 400

    def test_title_too_short(self, client, make_user, headers_for):
        response = client.post("/audios", headers=headers_for(make_user()), json=upload_body(title="ab"))
        assert response.status_code == 422

    def test_unverified(self, client, make_user, headers_for):
        user = make_user(verified=False)
        response = client.post("/audios", headers=headers_for(user), json=upload_body())
        assert response.status_code == 403
        assert response.json()["error"] == "unverified_user"

    def test_untrusted_second_upload(self, client, make_user, headers_for):
        headers = headers_for(make_user(trusted=False))
        assert client.post("/audios", headers=headers, json=upload_body()).status_code == 201
        response = client.post("/audios", headers=headers, json=upload_body(title="Evening birds"))
        assert response.status_code == 403
        assert response.json()["detail"] == "Please wait for your account to be reviewed."


# =============================================================================
# Listing & Detail
# =============================================================================

class TestListing:

    def test_list_and_sort(self, client, make_user, make_audio):
        user = make_user()
        quiet = make_audio(user, plays=1)
        loud = make_audio(user, plays=9)

        newest_first = client.get("/audios").json()
        assert [a["id"] for a in newest_first["audios"]] == [loud.id, quiet.id]
        assert newest_first["page"] == 1
        assert newest_first["has_more"] is False

        by_plays = client.get("/audios", params={"sort": "plays", "order": "asc"}).json()
        assert [a["id"] for a in by_plays["audios"]] == [quiet.id, loud.id]

    def test_invalid_sort_falls_back(self, client, make_user, make_audio):
        user = make_user()
        older, newer = make_audio(user), make_audio(user)
        response = client.get("/audios", params={"sort": "hashed_password", "order": "up"})
        assert response.status_code == 200
        assert [a["id"] for a in response.json()["audios"]] == [newer.id, older.id]

    def test_ai_header_selects_mirror(self, client, make_user, make_audio):
        user = make_user()
        make_audio(user)
        machine = make_audio(user, is_from_ai=True)
        response = client.get("/audios", headers={"X-From-AI": "yes"})
        assert [a["id"] for a in response.json()["audios"]] == [machine.id]


class TestDetail:

    def test_detail_with_threads(self, client, make_user, make_audio, make_comment):
        owner = make_user("owner")
        audio = make_audio(owner)
        root = make_comment(owner, audio, content="Root comment")
        reply = make_comment(owner, audio, content="Reply comment", parent=root)

        body = client.get(f"/audios/{audio.id}").json()
        assert body["audio"]["id"] == audio.id
        assert body["is_following"] is False
        (thread,) = body["comments"]
        assert thread["id"] == root.id
        assert thread["user"]["name"] == "owner"
        assert [r["id"] for r in thread["replies"]] == [reply.id]

    def test_mirror_mismatch(self, client, make_user, make_audio):
        audio = make_audio(make_user(), is_from_ai=True)
        response = client.get(f"/audios/{audio.id}")
        assert response.status_code == 404
        assert "AI" in response.json()["detail"]
        assert client.get(f"/audios/{audio.id}", headers={"X-From-AI": "1"}).status_code == 200

    def test_unknown(self, client):
        assert client.get("/audios/does-not-exist").status_code == 404


# =============================================================================
# Edit, Delete, History
# =============================================================================

class TestEditAndDelete:

    def test_edit_limit(self, client, make_user, make_audio, headers_for):
        user = make_user()
        audio = make_audio(user)
        headers = headers_for(user)
        for i in range(3):
            response = client.patch(f"/audios/{audio.id}", headers=headers, json={"title": f"Edit number {i}"})
            assert response.status_code == 200
        response = client.patch(f"/audios/{audio.id}", headers=headers, json={"title": "One more"})
        assert response.status_code == 403
        assert response.json()["error"] == "edit_limit_reached"

    def test_edit_by_stranger(self, client, make_user, make_audio, headers_for):
        audio = make_audio(make_user("owner"))
        response = client.patch(f"/audios/{audio.id}", headers=headers_for(make_user("other")),
                                json={"title": "Not mine"})
        assert response.status_code == 403

    def test_delete(self, client, make_user, make_audio, headers_for, db_session):
        user = make_user()
        audio = make_audio(user)
        response = client.delete(f"/audios/{audio.id}", headers=headers_for(user))
        assert response.status_code == 204
        assert db_session.get(DBAudio, audio.id) is None

    def test_history_and_revert(self, client, make_user, make_audio, headers_for, db_session):
        user = make_user()
        admin = make_user("mod", admin=True)
        audio = make_audio(user, title="Honest title")
        client.patch(f"/audios/{audio.id}", headers=headers_for(user), json={"title": "Click bait"})

        assert client.get(f"/audios/{audio.id}/history", headers=headers_for(user)).status_code == 403
        history = client.get(f"/audios/{audio.id}/history", headers=headers_for(admin)).json()
        assert len(history) == 1
        assert history[0]["old_title"] == "Honest title"

        response = client.post(
            f"/audios/{audio.id}/history/{history[0]['id']}/revert", headers=headers_for(admin)
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Honest title"

    def test_revert_rejects_history_of_other_audio(self, client, make_user, make_audio, headers_for, db_session):
        user = make_user()
        admin = make_user("mod", admin=True)
        edited, other = make_audio(user, title="First one"), make_audio(user, title="Second one")
        client.patch(f"/audios/{edited.id}", headers=headers_for(user), json={"title": "First edited"})
        entry = db_session.query(DBAudioEditHistory).one()

        response = client.post(f"/audios/{other.id}/history/{entry.id}/revert", headers=headers_for(admin))
        assert response.status_code == 404
        db_session.refresh(edited)
        assert edited.title == "First edited"


# =============================================================================
# Plays
# =============================================================================

class TestPlays:

    def test_counted_once_per_window(self, client, make_user, make_audio, headers_for):
        audio = make_audio(make_user("owner"))
        listener = headers_for(make_user("listener"))

        first = client.post(f"/audios/{audio.id}/plays", headers=listener)
        assert first.json() == {"counted": True, "plays": 1}
        second = client.post(f"/audios/{audio.id}/plays", headers=listener)
        assert second.json() == {"counted": False, "plays": 1}

    def test_short_listen(self, client, make_user, make_audio, headers_for):
        audio = make_audio(make_user("owner"))
        response = client.post(f"/audios/{audio.id}/plays", headers=headers_for(make_user("listener")),
                               json={"position": 2, "duration": 100})
        assert response.json() == {"counted": False, "plays": 0}

    def test_requires_login(self, client, make_user, make_audio):
        audio = make_audio(make_user("owner"))
        assert client.post(f"/audios/{audio.id}/plays").status_code == 401

    def test_unknown_audio(self, client, make_user, headers_for):
        response = client.post("/audios/missing/plays", headers=headers_for(make_user()))
        assert response.status_code == 404


# =============================================================================
# AI Mirror Moves
# =============================================================================

class TestMirrorMoves:

    def test_owner_moves_to_ai_admin_moves_back(self, client, make_user, make_audio, headers_for):
        owner = make_user("owner")
        admin = make_user("mod", admin=True)
        audio = make_audio(owner)

        response = client.post(f"/audios/{audio.id}/move_to_ai", headers=headers_for(owner))
        assert response.json()["is_from_ai"] is True

        assert client.post(f"/audios/{audio.id}/move_to_main", headers=headers_for(owner)).status_code == 403
        response = client.post(f"/audios/{audio.id}/move_to_main", headers=headers_for(admin))
        assert response.json()["is_from_ai"] is False

    @pytest.mark.parametrize("endpoint", ["move_to_ai", "move_to_main"])
    def test_unknown_audio(self, client, make_user, headers_for, endpoint):
        response = client.post(f"/audios/missing/{endpoint}", headers=headers_for(make_user("mod", admin=True)))
        assert response.status_code == 404
