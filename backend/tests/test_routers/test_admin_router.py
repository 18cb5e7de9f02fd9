import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_check_admin_is_public(client: AsyncClient):
    response = await client.get("/api/admin/check-admin")
    assert response.status_code == 200
    assert response.json() == {"admin_exists": False}


@pytest.mark.asyncio
async def test_admin_routes_require_admin(client: AsyncClient, manager):
    for path in ("/api/admin/stats", "/api/admin/users", "/api/admin/analytics"):
        response = await client.get(path, headers=manager.headers)
        assert response.status_code == 403, path


@pytest.mark.asyncio
async def test_promoting_second_admin_fails(client: AsyncClient, admin, manager):
    response = await client.put(
        f"/api/admin/users/{manager.user.id}/role",
        json={"role": "admin"},
        headers=admin.headers,
    )
    assert response.status_code == 400

    admins = await client.get("/api/admin/users?role=admin", headers=admin.headers)
    assert [u["id"] for u in admins.json()["items"]] == [str(admin.user.id)]
    me = await client.get("/api/auth/me", headers=manager.headers)
    assert me.json()["role"] == "operations_manager"


@pytest.mark.asyncio
async def test_change_role(client: AsyncClient, admin, end_user):
    response = await client.put(
        f"/api/admin/users/{end_user.user.id}/role",
        json={"role": "operations_manager"},
        headers=admin.headers,
    )
    assert response.status_code == 200
    assert response.json()["role"] == "operations_manager"


@pytest.mark.asyncio
async def test_admin_cannot_demote_self(client: AsyncClient, admin):
    response = await client.put(
        f"/api/admin/users/{admin.user.id}/role", json={"role": "user"}, headers=admin.headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_deactivated_user_is_locked_out(client: AsyncClient, admin, end_user):
    response = await client.put(
        f"/api/admin/users/{end_user.user.id}/status",
        json={"is_active": False},
        headers=admin.headers,
    )
    assert response.json()["is_active"] is False

    me = await client.get("/api/auth/me", headers=end_user.headers)
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_delete_user(client: AsyncClient, admin, end_user):
    response = await client.delete(f"/api/admin/users/{end_user.user.id}", headers=admin.headers)
    assert response.json() == {"message": "User deleted"}

    listing = await client.get("/api/admin/users", headers=admin.headers)
    assert str(end_user.user.id) not in {u["id"] for u in listing.json()["items"]}

    self_delete = await client.delete(f"/api/admin/users/{admin.user.id}", headers=admin.headers)
    assert self_delete.status_code == 400


@pytest.mark.asyncio
async def test_delete_user_keeps_audit_trail(client: AsyncClient, admin, end_user):
    created = await client.post(
        "/api/reports",
        data={"title": "Shared", "assigned_users": str(end_user.user.id)},
        files=[("files", ("note.txt", b"hi", "text/plain"))],
        headers=admin.headers,
    )
    report_id = created.json()["report_id"]
    file_id = created.json()["files"][0]["file_id"]
    await client.get(
        f"/api/reports/{report_id}/files/{file_id}/download", headers=end_user.headers
    )

    deleted = await client.delete(f"/api/admin/users/{end_user.user.id}", headers=admin.headers)
    assert deleted.status_code == 200

    logs = await client.get("/api/audit?action=download_file", headers=admin.headers)
    assert [e["performed_by_id"] for e in logs.json()["items"]] == [str(end_user.user.id)]

    export = await client.get("/api/audit/export/csv?action=download_file", headers=admin.headers)
    assert f'"{end_user.user.id}"' in export.text.splitlines()[1]


@pytest.mark.asyncio
async def test_user_search(client: AsyncClient, admin, manager, end_user):
    response = await client.get("/api/admin/users?search=MANAGER@", headers=admin.headers)
    assert [u["email"] for u in response.json()["items"]] == ["manager@example.com"]


@pytest.mark.asyncio
async def test_admin_report_oversight(client: AsyncClient, admin, manager):
    created = await client.post(
        "/api/reports", data={"title": "Review me"}, headers=manager.headers
    )
    report_id = created.json()["report_id"]

    edited = await client.put(
        f"/api/admin/reports/{report_id}", json={"description": "checked"}, headers=admin.headers
    )
    assert edited.json()["description"] == "checked"
    assert edited.json()["approval_status"] == "pending"

    deleted = await client.delete(f"/api/admin/reports/{report_id}", headers=admin.headers)
    assert deleted.json()["lifecycle"] == "pending_deletion"

    listing = await client.get("/api/admin/reports", headers=admin.headers)
    assert listing.json()["items"] == []


@pytest.mark.asyncio
async def test_stats_and_analytics(client: AsyncClient, admin, manager, end_user):
    await client.post(
        "/api/bills",
        json={"title": "Gas", "amount": "30", "category": "gas"},
        headers=manager.headers,
    )
    await client.post("/api/reports", data={"title": "R"}, headers=admin.headers)

    stats = (await client.get("/api/admin/stats", headers=admin.headers)).json()
    assert stats["users"]["total"] == 3
    assert stats["users"]["by_role"] == {"admin": 1, "operations_manager": 1, "user": 1}
    assert stats["reports"]["approved"] == 1
    assert stats["bills"]["by_approval_status"] == {"pending": 1}
    assert stats["trends"]["monthly_bills"][0]["count"] == 1

    analytics = (await client.get("/api/admin/analytics?period=7", headers=admin.headers)).json()
    assert analytics["period"] == 7
    assert analytics["category_breakdown"][0]["category"] == "gas"
    assert sum(d["count"] for d in analytics["user_analytics"]) == 3
