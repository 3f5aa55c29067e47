"""Integration tests for the records CRUD demo."""
import pytest
from httpx import AsyncClient
from sqlalchemy import text


@pytest.mark.asyncio
async def test_record_lifecycle_publishes_one_event_per_mutation(client: AsyncClient, subscriber) -> None:
    """Add, rename and delete a record; each step announces exactly one change."""

    created = await client.post("/records", json={"name": "  Payroll  "})
    assert created.status_code == 201
    record = created.json()
    assert record["name"] == "Payroll"

    updated = await client.put(f"/records/{record['id']}", json={"name": "Payroll 2024"})
    assert updated.status_code == 200
    assert updated.json() == {"id": record["id"], "name": "Payroll 2024"}

    listing = await client.get("/records")
    assert [r["name"] for r in listing.json()] == ["Payroll 2024"]

    deleted = await client.delete(f"/records/{record['id']}")
    assert deleted.status_code == 200
    assert deleted.json()["id"] == record["id"]
    assert (await client.get("/records")).json() == []

    changes = await subscriber.changes()
    assert [(c["event"], c["payload"]) for c in changes] == [
        ("added", {"id": record["id"], "name": "Payroll"}),
        ("updated", {"id": record["id"], "name": "Payroll 2024"}),
        ("deleted", {"id": record["id"]}),
    ]


@pytest.mark.asyncio
async def test_blank_name_is_rejected_without_event(client: AsyncClient, subscriber) -> None:
    response = await client.post("/records", json={"name": "   "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Name is required"

    missing_body = await client.post("/records", content=b"not json", headers={"content-type": "application/json"})
    assert missing_body.status_code == 400

    assert await subscriber.frames() == []


@pytest.mark.asyncio
async def test_missing_record_is_404_without_event(client: AsyncClient, subscriber) -> None:
    update = await client.put("/records/999", json={"name": "Ghost"})
    assert update.status_code == 404

    delete = await client.delete("/records/999")
    assert delete.status_code == 404
    assert delete.json()["detail"] == "Record not found"

    assert await subscriber.frames() == []


@pytest.mark.asyncio
async def test_database_failure_is_500_without_event(client: AsyncClient, subscriber, db_engine) -> None:
    async with db_engine.begin() as conn:
        await conn.execute(text("DROP TABLE records"))

    response = await client.post("/records", json={"name": "Payroll"})
    assert response.status_code == 500
    body = response.json()
    assert body["detail"] == "Database error"
    assert "no such table" in body["details"]

    assert await subscriber.frames() == []
