from decimal import Decimal

import pytest
from httpx import AsyncClient


async def _create(client: AsyncClient, actor, **fields):
    body = {"title": "Electricity March", "amount": "120.50", "category": "electricity"}
    body.update(fields)
    return await client.post("/api/bills", json=body, headers=actor.headers)


@pytest.mark.asyncio
async def test_bill_flow_from_creation_to_payment(client: AsyncClient, admin, manager, end_user):
    """Manager creates, admin approves, assigned user sees and pays it."""
    created = await _create(client, manager, assigned_users=[str(end_user.user.id)], tags="home")
    assert created.status_code == 201
    bill = created.json()
    bill_id = bill["bill_id"]
    assert bill_id.startswith("bill_")
    assert bill["approval_status"] == "pending"
    assert bill["tags"] == ["home"]

    before = await client.get("/api/bills/my-bills", headers=end_user.headers)
    assert before.json()["items"] == []
    assert (await client.get(f"/api/bills/{bill_id}", headers=end_user.headers)).status_code == 403

    queue = await client.get("/api/bills/pending-approval", headers=admin.headers)
    assert [b["bill_id"] for b in queue.json()["items"]] == [bill_id]
    approved = await client.put(f"/api/bills/{bill_id}/approve", headers=admin.headers)
    assert approved.json()["approval_status"] == "approved"

    mine = await client.get("/api/bills/my-bills", headers=end_user.headers)
    assert [b["bill_id"] for b in mine.json()["items"]] == [bill_id]

    paid = await client.patch(
        f"/api/bills/{bill_id}/status",
        json={
            "status": "paid",
            "payment_info": {"payment_method": "bank transfer", "payment_date": "2026-03-15"},
        },
        headers=end_user.headers,
    )
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["payment_info"]["payment_method"] == "bank transfer"

    analytics = await client.get("/api/bills/analytics", headers=end_user.headers)
    data = analytics.json()
    assert data["total_bills"] == 1
    assert data["status_breakdown"] == {"paid": 1}
    assert Decimal(str(data["total_amount"])) == Decimal("120.50")


@pytest.mark.asyncio
async def test_create_requires_category(client: AsyncClient, manager):
    response = await client.post(
        "/api/bills", json={"title": "No category", "amount": "1"}, headers=manager.headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_end_user_cannot_create_bill(client: AsyncClient, end_user):
    response = await _create(client, end_user)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_reject_bill(client: AsyncClient, admin, manager):
    bill_id = (await _create(client, manager)).json()["bill_id"]
    response = await client.put(
        f"/api/bills/{bill_id}/reject", json={"reason": "Duplicate"}, headers=admin.headers
    )
    assert response.json()["approval_status"] == "rejected"

    again = await client.put(f"/api/bills/{bill_id}/approve", headers=admin.headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_stranger_cannot_update_status(client: AsyncClient, admin, end_user, other_user):
    bill_id = (await _create(client, admin, assigned_users=[str(end_user.user.id)])).json()["bill_id"]
    response = await client.patch(
        f"/api/bills/{bill_id}/status", json={"status": "paid"}, headers=other_user.headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_bill_files_and_delete(client: AsyncClient, admin, end_user, storage):
    bill_id = (await _create(client, admin, assigned_users=[str(end_user.user.id)])).json()["bill_id"]

    uploaded = await client.post(
        f"/api/bills/{bill_id}/files",
        files=[("files", ("receipt.jpg", b"\xff\xd8\xff", "image/jpeg"))],
        headers=end_user.headers,
    )
    assert uploaded.status_code == 201
    attachment = uploaded.json()[0]
    assert attachment["file_type"] == "jpeg"

    download = await client.get(
        f"/api/bills/{bill_id}/files/{attachment['file_id']}/download", headers=end_user.headers
    )
    assert download.content == b"\xff\xd8\xff"

    deleted = await client.delete(f"/api/bills/{bill_id}", headers=admin.headers)
    assert deleted.json() == {"message": "Bill deleted"}
    assert not await storage.exists(attachment["file_name"])
    assert (await client.get(f"/api/bills/{bill_id}", headers=admin.headers)).status_code == 404


@pytest.mark.asyncio
async def test_bill_listing_filters(client: AsyncClient, admin):
    await _create(client, admin)
    await _create(client, admin, title="Fiber", category="internet", status="pending")

    response = await client.get("/api/bills?status=pending", headers=admin.headers)
    assert [b["title"] for b in response.json()["items"]] == ["Fiber"]

    admin_view = await client.get("/api/admin/bills?category=electricity", headers=admin.headers)
    assert admin_view.json()["pagination"]["total"] == 1
