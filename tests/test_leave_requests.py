"""Integration tests for leave requests and the notifications they raise."""
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from hris_backend.auth import hash_password
from hris_backend.models import Notification, User

LEAVE = {
    "employee_id": 5,
    "leave_type": "Sick",
    "start_date": "2024-01-01",
    "end_date": "2024-01-03",
}


async def _add_employee(session_factory, user_id: int = 5) -> None:
    async with session_factory() as session:
        session.add(
            User(
                id=user_id,
                email=f"emp{user_id}@example.com",
                username=f"emp{user_id}",
                role="employee",
                password=hash_password("pw"),
                f_name="Maria",
                l_name="Reyes",
            )
        )
        await session.commit()


@pytest.mark.asyncio
async def test_approving_leave_records_and_broadcasts_notification(
    client: AsyncClient, subscriber, session_factory
) -> None:
    await _add_employee(session_factory)

    created = await client.post("/api/leave-request", json=LEAVE)
    assert created.status_code == 200
    body = created.json()
    assert body["success"] is True
    leave_id = body["id"]

    listing = (await client.get("/leave_requests")).json()
    assert listing[0]["status"] == "Pending"

    updated = await client.put(f"/leave_requests/{leave_id}", json={"status": "Approved"})
    assert updated.status_code == 200
    assert updated.json() == {"id": leave_id, "status": "Approved"}

    async with session_factory() as session:
        rows = (await session.execute(select(Notification))).scalars().all()
    assert [(n.user_id, n.leave_request_id, n.status) for n in rows] == [(5, leave_id, "Approved")]

    frames = await subscriber.frames()
    assert [f["type"] for f in frames] == ["db_change", "db_change", "notification"]
    assert frames[0]["event"] == "leave_request_created"
    assert frames[1]["event"] == "leave_request_status_updated"
    assert frames[1]["payload"] == {"id": leave_id, "status": "Approved"}

    joined = frames[2]["payload"]
    assert joined["user_id"] == 5
    assert joined["leave_request_id"] == leave_id
    assert joined["f_name"] == "Maria"
    assert joined["leave_type"] == "Sick"
    assert joined["start_date"] == "2024-01-01"
    assert "password" not in joined


@pytest.mark.asyncio
async def test_notifications_are_listed_newest_first(client: AsyncClient, session_factory) -> None:
    await _add_employee(session_factory)
    leave_id = (await client.post("/api/leave-request", json=LEAVE)).json()["id"]

    await client.put(f"/leave_requests/{leave_id}", json={"status": "Rejected"})
    await client.put(f"/leave_requests/{leave_id}", json={"status": "Approved"})

    notifications = (await client.get("/notifications")).json()
    assert [n["status"] for n in notifications] == ["Approved", "Rejected"]
    assert notifications[0]["username"] == "emp5"
    assert notifications[0]["end_date"] == "2024-01-03"


@pytest.mark.asyncio
async def test_invalid_status_is_400_without_event(client: AsyncClient, subscriber, session_factory) -> None:
    await _add_employee(session_factory)
    leave_id = (await client.post("/api/leave-request", json=LEAVE)).json()["id"]
    before = len(await subscriber.frames())

    response = await client.put(f"/leave_requests/{leave_id}", json={"status": "Maybe"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid status value"

    missing = await client.put("/leave_requests/999", json={"status": "Approved"})
    assert missing.status_code == 404

    assert len(await subscriber.frames()) == before
    async with session_factory() as session:
        assert (await session.execute(select(Notification))).first() is None


@pytest.mark.asyncio
async def test_leave_request_validation(client: AsyncClient, subscriber) -> None:
    incomplete = await client.post("/api/leave-request", json={"employee_id": 5, "leave_type": "Sick"})
    assert incomplete.status_code == 400

    backwards = await client.post("/api/leave-request", json={**LEAVE, "end_date": "2023-12-31"})
    assert backwards.status_code == 400

    assert await subscriber.frames() == []


@pytest.mark.asyncio
async def test_status_update_for_unknown_employee_skips_joined_event(client: AsyncClient, subscriber) -> None:
    leave_id = (await client.post("/api/leave-request", json={**LEAVE, "employee_id": 77})).json()["id"]

    response = await client.put(f"/leave_requests/{leave_id}", json={"status": "Approved"})
    assert response.status_code == 200

    frames = await subscriber.frames()
    assert [f.get("event") for f in frames] == ["leave_request_created", "leave_request_status_updated"]
