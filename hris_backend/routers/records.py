"""CRUD endpoints for the generic records demo."""
from typing import Sequence

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db_session, get_notifier
from ..enums import ChangeKind
from ..errors import NotFoundError, ValidationError
from ..events import ChangeEvent
from ..models import Record
from ..notifier import ChangeNotifier
from ..schemas import RecordRead, RecordWrite

router = APIRouter(prefix="/records", tags=["records"])


async def _get_record(session: AsyncSession, record_id: int) -> Record:
    record = await session.get(Record, record_id)
    if record is None:
        raise NotFoundError("Record not found")
    return record


def _require_name(payload: RecordWrite) -> str:
    if not payload.name:
        raise ValidationError("Name is required")
    return payload.name


@router.get("", response_model=list[RecordRead])
async def list_records(session: AsyncSession = Depends(get_db_session)) -> Sequence[Record]:
    """Return every record ordered by id."""

    result = await session.execute(select(Record).order_by(Record.id))
    return list(result.scalars().all())


@router.post("", response_model=RecordRead, status_code=status.HTTP_201_CREATED)
async def create_record(
    payload: RecordWrite,
    session: AsyncSession = Depends(get_db_session),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> Record:
    name = _require_name(payload)
    record = Record(name=name)
    session.add(record)
    await session.commit()

    notifier.publish(ChangeEvent(kind=ChangeKind.ADDED, payload={"id": record.id, "name": record.name}))
    return record


@router.put("/{record_id}", response_model=RecordRead)
async def update_record(
    record_id: int,
    payload: RecordWrite,
    session: AsyncSession = Depends(get_db_session),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> Record:
    name = _require_name(payload)
    record = await _get_record(session, record_id)
    record.name = name
    await session.commit()

    notifier.publish(ChangeEvent(kind=ChangeKind.UPDATED, payload={"id": record.id, "name": record.name}))
    return record


@router.delete("/{record_id}")
async def delete_record(
    record_id: int,
    session: AsyncSession = Depends(get_db_session),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> dict[str, object]:
    record = await _get_record(session, record_id)
    await session.delete(record)
    await session.commit()

    notifier.publish(ChangeEvent(kind=ChangeKind.DELETED, payload={"id": record_id}))
    return {"id": record_id, "message": "Record deleted"}
