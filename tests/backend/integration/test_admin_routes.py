import pytest

from portal.core.security import issue_token

pytestmark = pytest.mark.asyncio


async def test_missing_token_is_unauthenticated(client):
    resp = await client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Authentication required"}


async def test_garbage_token_is_rejected(client):
    resp = await client.get("/api/admin/users", headers={"Authorization": "Bearer not.a.token"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid or expired token"}


async def test_non_admin_is_forbidden(client, create_user, auth_header_factory):
    user, password = await create_user(role="member")
    headers = await auth_header_factory(user["email"], password)

    resp = await client.get("/api/admin/users", headers=headers)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Admin access required"}


@pytest.mark.parametrize("role", ["admin", "executive"])
async def test_admin_roles_list_users(client, create_admin, create_user, auth_header_factory, role):
    admin, admin_password = await create_admin(role=role)
    member, _ = await create_user(role="member")
    headers = await auth_header_factory(admin["email"], admin_password)

    resp = await client.get("/api/admin/users", headers=headers)
    assert resp.status_code == 200
    emails = {u["email"] for u in resp.json()}
    assert {admin["email"], member["email"]} <= emails
    assert all("password_hash" not in u for u in resp.json())

    # Same listing through the users router
    assert (await client.get("/api/users", headers=headers)).json() == resp.json()


async def test_claims_are_a_snapshot(client, app, create_user):
    user, _ = await create_user(role="user")
    claims = {k: user[k] for k in ("id", "name", "email", "role", "approval_status")}
    token = issue_token({**claims, "role": "admin"}, app.state.jwt_secret)
    # The row says "user", the token says "admin": the token wins until it expires
    resp = await client.get("/api/admin/users", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


async def test_role_and_ban_management(client, create_admin, create_user, auth_header_factory, db):
    admin, admin_password = await create_admin()
    user, user_password = await create_user()
    headers = await auth_header_factory(admin["email"], admin_password)

    resp = await client.patch(f"/api/admin/users/{user['id']}/role", json={"role": "member"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Role updated to member"}
    assert (await db.fetch_one("SELECT role FROM users WHERE id = ?", [user["id"]]))["role"] == "member"

    bad = await client.patch(f"/api/users/{user['id']}/role", json={"role": "superuser"}, headers=headers)
    assert bad.status_code == 400
    assert bad.json() == {"error": "Invalid role."}

    missing = await client.patch("/api/admin/users/99999/role", json={"role": "member"}, headers=headers)
    assert missing.status_code == 404

    ban = await client.patch(f"/api/admin/users/{user['id']}/ban", json={"is_banned": True}, headers=headers)
    assert ban.json() == {"message": "User banned"}
    login = await client.post("/api/auth/login", json={"email": user["email"], "password": user_password})
    assert login.status_code == 403

    unban = await client.patch(f"/api/users/{user['id']}/ban", json={"is_banned": False}, headers=headers)
    assert unban.json() == {"message": "User unbanned"}
    login = await client.post("/api/auth/login", json={"email": user["email"], "password": user_password})
    assert login.status_code == 200


async def test_approval_status_and_delete(client, create_admin, create_user, auth_header_factory, db):
    admin, admin_password = await create_admin()
    user, _ = await create_user(approval_status="pending")
    headers = await auth_header_factory(admin["email"], admin_password)

    resp = await client.patch(f"/api/users/{user['id']}/approval_status", json={"status": "approved"},
                              headers=headers)
    assert resp.status_code == 200
    bad = await client.patch(f"/api/users/{user['id']}/approval_status", json={"status": "maybe"},
                             headers=headers)
    assert bad.status_code == 400

    deleted = await client.delete(f"/api/users/{user['id']}", headers=headers)
    assert deleted.status_code == 200
    assert await db.fetch_one("SELECT id FROM users WHERE id = ?", [user["id"]]) is None
    assert (await client.delete(f"/api/users/{user['id']}", headers=headers)).status_code == 404


async def test_admin_creates_approved_user(client, create_admin, auth_header_factory):
    admin, admin_password = await create_admin()
    headers = await auth_header_factory(admin["email"], admin_password)
    body = {"name": "Exec", "email": "exec@example.com", "password": "Exec#1234", "role": "executive"}

    resp = await client.post("/api/users", json=body, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["message"] == "User created successfully"

    login = await client.post("/api/auth/login", json={"email": "exec@example.com", "password": "Exec#1234"})
    assert login.json()["user"]["role"] == "executive"
    assert login.json()["user"]["approval_status"] == "approved"

    dup = await client.post("/api/users", json=body, headers=headers)
    assert dup.status_code == 409


async def test_stats(client, create_admin, create_user, auth_header_factory, db):
    admin, admin_password = await create_admin()
    await create_user(approval_status="pending")
    await db.run("INSERT INTO resources (title, status) VALUES ('r', 'pending')")
    await db.run("INSERT INTO events (title, date, location) VALUES ('e', 'soon', 'online')")
    headers = await auth_header_factory(admin["email"], admin_password)

    resp = await client.get("/api/admin/stats", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {
        "users": 2,
        "pending_users": 1,
        "pending_resources": 1,
        "questions": 0,
        "open_questions": 0,
        "events": 1,
    }
