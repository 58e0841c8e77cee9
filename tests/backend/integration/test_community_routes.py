"""
Integration tests for questions, answers and categories.
"""
import pytest

pytestmark = pytest.mark.asyncio


async def _post_question(client, headers=None, **body):
    return await client.post("/api/questions", json={"title": "How do I join?", **body}, headers=headers)


async def test_guest_question_creates_guest_account(client, db):
    resp = await _post_question(client, email="Visitor@Example.com", name="Visitor")
    assert resp.status_code == 201
    assert resp.json()["message"] == "Question posted"

    guest = await db.fetch_one("SELECT * FROM users WHERE email = 'visitor@example.com'")
    assert guest["name"] == "Visitor"
    assert guest["password_hash"] is None

    # Second post with the same email reuses the account
    await _post_question(client, email="visitor@example.com")
    count = await db.fetch_one("SELECT COUNT(*) AS n FROM users WHERE email = 'visitor@example.com'")
    assert count["n"] == 1


async def test_guest_must_give_email(client):
    resp = await _post_question(client)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Email required for guests"}


async def test_title_is_required(client):
    resp = await client.post("/api/questions", json={"email": "a@example.com"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Title is required"}


async def test_guest_post_with_registered_email_attaches_to_that_account(client, create_user):
    user, _ = await create_user()
    resp = await _post_question(client, email=user["email"])
    question = (await client.get(f"/api/questions/{resp.json()['id']}")).json()
    assert question["user_id"] == user["id"]


async def test_question_category_resolved_by_name(client, db, create_user, auth_header_factory):
    category = await db.run("INSERT INTO categories (name) VALUES ('Certification')")
    user, password = await create_user()
    headers = await auth_header_factory(user["email"], password)

    resp = await _post_question(client, headers=headers, category="Certification", details="Steps?")
    row = await db.fetch_one("SELECT * FROM questions WHERE id = ?", [resp.json()["id"]])
    assert row["category_id"] == category.insert_id
    assert row["user_id"] == user["id"]

    unknown = await _post_question(client, headers=headers, category="Nope")
    row = await db.fetch_one("SELECT category_id FROM questions WHERE id = ?", [unknown.json()["id"]])
    assert row["category_id"] is None


async def test_official_answers_come_first_and_mark_answered(client, create_user, create_admin,
                                                             auth_header_factory):
    member, member_password = await create_user(role="member")
    admin, admin_password = await create_admin(role="executive")
    member_headers = await auth_header_factory(member["email"], member_password)
    admin_headers = await auth_header_factory(admin["email"], admin_password)

    question_id = (await _post_question(client, headers=member_headers)).json()["id"]

    community = await client.post(f"/api/questions/{question_id}/answers", json={"content": " I think so "},
                                  headers=member_headers)
    assert community.status_code == 201
    assert community.json()["is_official"] == 0

    official = await client.post(f"/api/questions/{question_id}/answers", json={"content": "Yes."},
                                 headers=admin_headers)
    assert official.json()["is_official"] == 1

    detail = (await client.get(f"/api/questions/{question_id}")).json()
    assert detail["status"] == "answered"
    assert detail["author_name"] == member["name"]
    assert [a["content"] for a in detail["answers"]] == ["Yes.", "I think so"]
    assert (await client.get(f"/api/questions/{question_id}/answers")).json() == detail["answers"]


async def test_answer_requires_content_and_existing_question(client, create_user, auth_header_factory):
    user, password = await create_user()
    headers = await auth_header_factory(user["email"], password)

    empty = await client.post("/api/questions/1/answers", json={"content": "   "}, headers=headers)
    assert empty.status_code == 400
    missing = await client.post("/api/questions/999/answers", json={"content": "hi"}, headers=headers)
    assert missing.status_code == 404
    anonymous = await client.post("/api/questions/1/answers", json={"content": "hi"})
    assert anonymous.status_code == 401


async def test_guest_answer_via_answers_router(client, db):
    question_id = (await _post_question(client, email="asker@example.com")).json()["id"]

    resp = await client.post("/api/answers", json={"question_id": question_id, "content": "Try this",
                                                   "email": "helper@example.com"})
    assert resp.status_code == 201
    assert resp.json()["is_official"] == 0

    helper = await db.fetch_one("SELECT name, password_hash FROM users WHERE email = 'helper@example.com'")
    assert helper == {"name": "Guest", "password_hash": None}

    missing = await client.post("/api/answers", json={"question_id": 999, "content": "x", "email": "h@example.com"})
    assert missing.status_code == 404
    incomplete = await client.post("/api/answers", json={"content": "x"})
    assert incomplete.status_code == 400


async def test_delete_question_owner_or_admin(client, create_user, create_admin, auth_header_factory):
    owner, owner_password = await create_user()
    other, other_password = await create_user()
    admin, admin_password = await create_admin()
    owner_headers = await auth_header_factory(owner["email"], owner_password)
    other_headers = await auth_header_factory(other["email"], other_password)
    admin_headers = await auth_header_factory(admin["email"], admin_password)

    first = (await _post_question(client, headers=owner_headers)).json()["id"]
    second = (await _post_question(client, headers=owner_headers)).json()["id"]

    forbidden = await client.delete(f"/api/questions/{first}", headers=other_headers)
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "Not authorized"}

    assert (await client.delete(f"/api/questions/{first}", headers=owner_headers)).status_code == 200
    assert (await client.delete(f"/api/questions/{second}", headers=admin_headers)).status_code == 200
    assert (await client.delete(f"/api/questions/{second}", headers=admin_headers)).status_code == 404
    assert (await client.get(f"/api/questions/{first}")).status_code == 404


async def test_delete_answer_owner_or_admin(client, create_user, create_admin, auth_header_factory):
    owner, owner_password = await create_user()
    other, other_password = await create_user()
    owner_headers = await auth_header_factory(owner["email"], owner_password)
    other_headers = await auth_header_factory(other["email"], other_password)

    question_id = (await _post_question(client, headers=owner_headers)).json()["id"]
    answer_id = (await client.post("/api/answers", json={"question_id": question_id, "content": "mine"},
                                   headers=owner_headers)).json()["id"]

    assert (await client.delete(f"/api/answers/{answer_id}", headers=other_headers)).status_code == 403
    assert (await client.delete(f"/api/answers/{answer_id}", headers=owner_headers)).status_code == 200
    assert (await client.delete(f"/api/answers/{answer_id}", headers=owner_headers)).status_code == 404


async def test_search_and_my_questions(client, create_user, auth_header_factory):
    user, password = await create_user()
    headers = await auth_header_factory(user["email"], password)
    await _post_question(client, headers=headers, title="Membership fees", details="How much?")
    await _post_question(client, email="g@example.com", title="Event dates", details="When is the summit?")

    short = await client.get("/api/questions/search", params={"q": "a"})
    assert short.status_code == 400
    assert short.json() == {"error": "Query too short"}

    found = await client.get("/api/questions/search", params={"q": "summit"})
    assert [q["title"] for q in found.json()] == ["Event dates"]

    mine = await client.get("/api/questions/my", headers=headers)
    assert [q["title"] for q in mine.json()["questions"]] == ["Membership fees"]
    assert mine.json()["answers"] == []

    everything = await client.get("/api/questions")
    assert {q["title"] for q in everything.json()} == {"Membership fees", "Event dates"}


async def test_question_status_is_admin_only(client, create_admin, auth_header_factory):
    admin, admin_password = await create_admin()
    headers = await auth_header_factory(admin["email"], admin_password)
    question_id = (await _post_question(client, email="q@example.com")).json()["id"]

    assert (await client.patch(f"/api/questions/{question_id}/status", json={"status": "closed"})).status_code == 401
    bad = await client.patch(f"/api/questions/{question_id}/status", json={"status": "gone"}, headers=headers)
    assert bad.status_code == 400
    ok = await client.patch(f"/api/questions/{question_id}/status", json={"status": "closed"}, headers=headers)
    assert ok.status_code == 200
    assert (await client.get(f"/api/questions/{question_id}")).json()["status"] == "closed"


async def test_categories(client, create_admin, auth_header_factory):
    admin, admin_password = await create_admin()
    headers = await auth_header_factory(admin["email"], admin_password)

    assert (await client.post("/api/categories", json={"name": "Z"})).status_code == 401
    created = await client.post("/api/categories", json={"name": "Zeta", "description": "last"}, headers=headers)
    assert created.status_code == 201
    assert created.json()["description"] == "last"
    await client.post("/api/categories", json={"name": "Alpha"}, headers=headers)
    assert (await client.post("/api/categories", json={}, headers=headers)).status_code == 400

    names = [c["name"] for c in (await client.get("/api/categories")).json()]
    assert names == ["Alpha", "Zeta"]

    deleted = await client.delete(f"/api/categories/{created.json()['id']}", headers=headers)
    assert deleted.status_code == 200
    assert (await client.delete(f"/api/categories/{created.json()['id']}", headers=headers)).status_code == 404
