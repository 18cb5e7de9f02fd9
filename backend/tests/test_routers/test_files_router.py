import pytest
from httpx import AsyncClient


async def _report(client: AsyncClient, actor, **fields) -> str:
    data = {"title": "Attachments"}
    data.update(fields)
    response = await client.post("/api/reports", data=data, headers=actor.headers)
    return response.json()["report_id"]


@pytest.mark.asyncio
async def test_upload_download_round_trip(client: AsyncClient, admin, end_user, storage):
    report_id = await _report(client, admin, assigned_users=str(end_user.user.id))
    payload = b"quarterly numbers\n1,2,3\n"

    uploaded = await client.post(
        f"/api/files/upload/{report_id}",
        files={"file": ("numbers.txt", payload, "text/plain")},
        headers=admin.headers,
    )
    assert uploaded.status_code == 201
    meta = uploaded.json()
    assert meta["original_name"] == "numbers.txt"
    assert meta["file_size"] == len(payload)
    assert meta["file_url"] == f"/uploads/{meta['file_name']}"
    assert meta["file_name"].endswith("-numbers.txt")

    for expected_count in (1, 2):
        download = await client.get(f"/api/files/download/{meta['file_id']}", headers=end_user.headers)
        assert download.status_code == 200
        assert download.content == payload
        info = await client.get(f"/api/files/{meta['file_id']}", headers=end_user.headers)
        assert info.json()["download_count"] == expected_count

    listing = await client.get(f"/api/files/report/{report_id}", headers=end_user.headers)
    assert [f["file_id"] for f in listing.json()] == [meta["file_id"]]


@pytest.mark.asyncio
async def test_non_ascii_filename_download(client: AsyncClient, admin):
    report_id = await _report(client, admin)
    uploaded = await client.post(
        f"/api/files/upload/{report_id}",
        files={"file": ("résumé.pdf", b"%PDF", "application/pdf")},
        headers=admin.headers,
    )
    file_id = uploaded.json()["file_id"]
    response = await client.get(f"/api/files/download/{file_id}", headers=admin.headers)
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="')
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in disposition


@pytest.mark.asyncio
async def test_upload_rejects_unsupported_type(client: AsyncClient, admin):
    report_id = await _report(client, admin)
    response = await client.post(
        f"/api/files/upload/{report_id}",
        files={"file": ("page.html", b"<html>", "text/html")},
        headers=admin.headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_with_too_many_files(client: AsyncClient, manager):
    files = [("files", (f"{i}.txt", b"x", "text/plain")) for i in range(6)]
    response = await client.post(
        "/api/reports", data={"title": "Too many"}, files=files, headers=manager.headers
    )
    assert response.status_code == 400
    assert "Too many files" in response.json()["detail"]


@pytest.mark.asyncio
async def test_stranger_cannot_download(client: AsyncClient, admin, other_user):
    report_id = await _report(client, admin)
    uploaded = await client.post(
        f"/api/files/upload/{report_id}",
        files={"file": ("a.txt", b"secret", "text/plain")},
        headers=admin.headers,
    )
    file_id = uploaded.json()["file_id"]
    response = await client.get(f"/api/files/download/{file_id}", headers=other_user.headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_file(client: AsyncClient, manager, storage):
    report_id = await _report(client, manager)
    uploaded = await client.post(
        f"/api/files/upload/{report_id}",
        files={"file": ("a.png", b"\x89PNG", "image/png")},
        headers=manager.headers,
    )
    meta = uploaded.json()

    response = await client.delete(f"/api/files/{meta['file_id']}", headers=manager.headers)
    assert response.status_code == 204
    assert not await storage.exists(meta["file_name"])
    missing = await client.get(f"/api/files/{meta['file_id']}", headers=manager.headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_unknown_file(client: AsyncClient, admin):
    response = await client.get("/api/files/file_0_missing", headers=admin.headers)
    assert response.status_code == 404
