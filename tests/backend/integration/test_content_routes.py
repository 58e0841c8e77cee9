"""
Integration tests for playbooks, team members, events and profile updates.
"""
import json

import pytest
import pytest_asyncio

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def admin_headers(create_admin, auth_header_factory):
    admin, password = await create_admin()
    return await auth_header_factory(admin["email"], password)


# ------------------------------------------------------------------------------
# Playbooks
# ------------------------------------------------------------------------------
async def test_playbook_upload_download_delete(client, admin_headers, create_user, auth_header_factory,
                                               storage, db):
    resp = await client.post(
        "/api/playbooks",
        data={"title": "Audit playbook", "framework": "ISO 27001"},
        files={"file": ("Audit Plan.xlsx", b"sheet-bytes", "application/octet-stream")},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["file_type"] == "xlsx"
    assert resp.json()["category"] == "Guide"
    playbook_id = resp.json()["id"]

    row = await db.fetch_one("SELECT * FROM playbooks WHERE id = ?", [playbook_id])
    assert row["blob_name"].startswith("documents/playbooks/")
    assert row["file_name"] == "Audit Plan.xlsx"

    listing = (await client.get("/api/playbooks")).json()
    assert [p["title"] for p in listing] == ["Audit playbook"]
    assert "file_path" not in listing[0]

    assert (await client.get(f"/api/playbooks/{playbook_id}/download")).status_code == 401

    user, password = await create_user()
    user_headers = await auth_header_factory(user["email"], password)
    download = await client.get(f"/api/playbooks/{playbook_id}/download", headers=user_headers)
    assert download.status_code == 200
    assert download.content == b"sheet-bytes"
    assert "Audit%20Plan.xlsx" in download.headers["content-disposition"]
    counted = await db.fetch_one("SELECT download_count FROM playbooks WHERE id = ?", [playbook_id])
    assert counted["download_count"] == 1

    stored_path = storage.path_for(row["blob_name"])
    deleted = await client.delete(f"/api/playbooks/{playbook_id}", headers=admin_headers)
    assert deleted.json() == {"message": "Playbook deleted"}
    assert not stored_path.exists()
    assert (await client.get(f"/api/playbooks/{playbook_id}/download", headers=user_headers)).status_code == 404


async def test_playbook_validation(client, admin_headers):
    missing_file = await client.post("/api/playbooks", data={"title": "t", "framework": "f"}, headers=admin_headers)
    assert missing_file.status_code == 400
    assert missing_file.json() == {"error": "Title, framework, and file are required"}

    bad_ext = await client.post(
        "/api/playbooks",
        data={"title": "t", "framework": "f"},
        files={"file": ("clip.mp4", b"x", "video/mp4")},
        headers=admin_headers,
    )
    assert bad_ext.status_code == 400
    assert bad_ext.json() == {"error": "File type .mp4 not allowed"}


async def test_playbook_remote_file_redirects(client, admin_headers, db):
    result = await db.run(
        "INSERT INTO playbooks (title, framework, file_path, file_name) VALUES ('r', 'f', ?, 'r.pdf')",
        ["https://cdn.example.com/documents/playbooks/r.pdf"],
    )
    resp = await client.get(f"/api/playbooks/{result.insert_id}/download", headers=admin_headers)
    assert resp.status_code == 302
    assert resp.headers["location"] == "https://cdn.example.com/documents/playbooks/r.pdf"


async def test_playbook_missing_on_disk(client, admin_headers, db):
    result = await db.run(
        "INSERT INTO playbooks (title, framework, file_path, blob_name) VALUES ('gone', 'f', ?, ?)",
        ["/uploads/documents/playbooks/gone.pdf", "documents/playbooks/gone.pdf"],
    )
    resp = await client.get(f"/api/playbooks/{result.insert_id}/download", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "File not found on server"}


# ------------------------------------------------------------------------------
# Team
# ------------------------------------------------------------------------------
async def test_team_member_lifecycle(client, admin_headers, storage):
    created = await client.post(
        "/api/team",
        data={"name": "Dana", "role": "Chair", "categories": '["leadership", "advisors"]'},
        files={"image": ("dana.jpg", b"jpeg-1", "image/jpeg")},
        headers=admin_headers,
    )
    assert created.status_code == 201
    member = created.json()
    assert member["image_url"].startswith("/uploads/images/team/")
    assert json.loads(member["categories"]) == ["leadership", "advisors"]
    first_photo = storage.path_for(member["image_url"].removeprefix("/uploads/"))
    assert first_photo.read_bytes() == b"jpeg-1"

    updated = await client.put(
        f"/api/team/{member['id']}",
        data={"name": "Dana R.", "role": "Chair"},
        files={"image": ("dana2.png", b"png-2", "image/png")},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert not first_photo.exists()

    team = (await client.get("/api/team")).json()
    assert team[0]["name"] == "Dana R."
    assert team[0]["image_url"] == updated.json()["image_url"]
    # Categories are kept when the form leaves them out
    assert json.loads(team[0]["categories"]) == ["leadership", "advisors"]

    second_photo = storage.path_for(team[0]["blob_name"])
    assert (await client.delete(f"/api/team/{member['id']}", headers=admin_headers)).status_code == 200
    assert not second_photo.exists()
    assert (await client.get("/api/team")).json() == []


async def test_team_validation(client, admin_headers):
    assert (await client.post("/api/team", data={"name": "No role"}, headers=admin_headers)).status_code == 400
    bad_categories = await client.post("/api/team", data={"name": "A", "role": "B", "categories": "leadership"},
                                       headers=admin_headers)
    assert bad_categories.status_code == 400
    default = await client.post("/api/team", data={"name": "A", "role": "B"}, headers=admin_headers)
    assert default.json()["categories"] == '["leadership"]'
    assert (await client.put("/api/team/999", data={"name": "A", "role": "B"}, headers=admin_headers)).status_code == 404
    assert (await client.post("/api/team", data={"name": "A", "role": "B"})).status_code == 401


# ------------------------------------------------------------------------------
# Events
# ------------------------------------------------------------------------------
async def test_event_lifecycle(client, admin_headers):
    first = await client.post(
        "/api/events",
        json={"title": "Webinar", "date": "Saturday 28th February, 2026", "location": "Online"},
        headers=admin_headers,
    )
    assert first.status_code == 201
    assert first.json()["type"] == "upcoming"
    assert first.json()["category"] == "webinar"
    assert first.json()["is_featured"] == 0

    featured = await client.post(
        "/api/events",
        json={"title": "Summit", "date": "May", "location": "Delhi", "is_featured": True, "type": "upcoming"},
        headers=admin_headers,
    )
    assert featured.json()["is_featured"] == 1

    titles = [e["title"] for e in (await client.get("/api/events")).json()]
    assert titles == ["Summit", "Webinar"]

    updated = await client.put(
        f"/api/events/{first.json()['id']}",
        json={"type": "past", "recording_url": "https://video.example.com/r"},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["type"] == "past"
    assert updated.json()["title"] == "Webinar"
    assert updated.json()["recording_url"] == "https://video.example.com/r"

    assert (await client.delete(f"/api/events/{first.json()['id']}", headers=admin_headers)).status_code == 200
    assert (await client.delete(f"/api/events/{first.json()['id']}", headers=admin_headers)).status_code == 404


async def test_event_validation(client, admin_headers, create_user, auth_header_factory):
    missing = await client.post("/api/events", json={"title": "No date"}, headers=admin_headers)
    assert missing.status_code == 400
    bad_type = await client.post("/api/events", json={"title": "t", "date": "d", "location": "l", "type": "someday"},
                                 headers=admin_headers)
    assert bad_type.status_code == 400

    user, password = await create_user(role="member")
    headers = await auth_header_factory(user["email"], password)
    forbidden = await client.post("/api/events", json={"title": "t", "date": "d", "location": "l"}, headers=headers)
    assert forbidden.status_code == 403


# ------------------------------------------------------------------------------
# Own profile
# ------------------------------------------------------------------------------
async def test_profile_update_with_image(client, create_user, auth_header_factory, storage):
    user, password = await create_user()
    headers = await auth_header_factory(user["email"], password)

    nothing = await client.put("/api/users/me/profile", data={}, headers=headers)
    assert nothing.status_code == 400
    assert nothing.json() == {"error": "No fields to update"}

    first = await client.put(
        "/api/users/me/profile",
        data={"bio": "Hello", "name": "New Name"},
        files={"profile_image": ("me.png", b"png-1", "image/png")},
        headers=headers,
    )
    assert first.status_code == 200
    profile = first.json()
    assert profile["bio"] == "Hello"
    assert profile["name"] == "New Name"
    assert profile["profile_image"].startswith("/uploads/images/profiles/")
    assert "password_hash" not in profile
    first_image = storage.path_for(profile["profile_image"].removeprefix("/uploads/"))

    second = await client.put(
        "/api/users/me/profile",
        files={"profile_image": ("me.webp", b"webp-2", "image/webp")},
        headers=headers,
    )
    assert second.status_code == 200
    assert not first_image.exists()
    assert second.json()["bio"] == "Hello"

    not_image = await client.put(
        "/api/users/me/profile",
        files={"profile_image": ("cv.pdf", b"%PDF", "application/pdf")},
        headers=headers,
    )
    assert not_image.status_code == 400

    fetched = await client.get("/api/users/me/profile", headers=headers)
    assert fetched.json() == second.json()


async def test_profile_image_size_limit(client, create_user, auth_header_factory):
    user, password = await create_user()
    headers = await auth_header_factory(user["email"], password)
    too_big = b"\x00" * (5 * 1024 * 1024 + 1)
    resp = await client.put(
        "/api/users/me/profile",
        files={"profile_image": ("big.jpg", too_big, "image/jpeg")},
        headers=headers,
    )
    assert resp.status_code == 413
    assert resp.json() == {"error": "File too large"}


async def test_my_answers(client, create_user, auth_header_factory):
    user, password = await create_user()
    headers = await auth_header_factory(user["email"], password)
    question = await client.post("/api/questions", json={"title": "Q"}, headers=headers)
    await client.post("/api/answers", json={"question_id": question.json()["id"], "content": "A"}, headers=headers)

    answers = (await client.get("/api/users/me/answers", headers=headers)).json()
    assert [(a["content"], a["question_title"]) for a in answers] == [("A", "Q")]
    questions = (await client.get("/api/users/me/questions", headers=headers)).json()
    assert questions[0]["answer_count"] == 1
