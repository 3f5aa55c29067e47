"""Leave request endpoints and the status workflow that raises notifications."""
import logging
from typing import Any, Dict, Optional, Sequence

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db_session, get_notifier
from ..enums import ChangeKind, LeaveStatus
from ..errors import NotFoundError, ValidationError
from ..events import ChangeEvent
from ..models import LeaveRequest, Notification, User
from ..notifier import ChangeNotifier
from ..schemas import (
    LeaveRequestCreate,
    LeaveRequestCreated,
    LeaveRequestRead,
    LeaveStatusRead,
    LeaveStatusUpdate,
    NotificationRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["leave requests"])

VALID_STATUSES = {member.value for member in LeaveStatus}


def notification_query():
    """Select notifications joined with their user and leave request."""

    return (
        select(
            Notification.id,
            Notification.user_id,
            Notification.leave_request_id,
            Notification.status,
            Notification.created_at,
            User.f_name,
            User.l_name,
            User.username,
            User.email,
            User.role,
            User.p_pic,
            LeaveRequest.leave_type,
            LeaveRequest.start_date,
            LeaveRequest.end_date,
        )
        .join(User, Notification.user_id == User.id)
        .join(LeaveRequest, Notification.leave_request_id == LeaveRequest.id)
    )


async def load_notification(session: AsyncSession, notification_id: int) -> Optional[Dict[str, Any]]:
    result = await session.execute(notification_query().where(Notification.id == notification_id))
    row = result.mappings().first()
    if row is None:
        return None
    return NotificationRead.model_validate(dict(row)).model_dump()


@router.get("/leave_requests", response_model=list[LeaveRequestRead])
async def list_leave_requests(
    session: AsyncSession = Depends(get_db_session),
) -> Sequence[LeaveRequest]:
    result = await session.execute(select(LeaveRequest).order_by(LeaveRequest.id))
    return list(result.scalars().all())


@router.post("/api/leave-request", response_model=LeaveRequestCreated)
async def create_leave_request(
    payload: LeaveRequestCreate,
    session: AsyncSession = Depends(get_db_session),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> LeaveRequestCreated:
    """File a new leave request in the ``Pending`` state."""

    leave = LeaveRequest(
        employee_id=payload.employee_id,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=LeaveStatus.PENDING.value,
    )
    session.add(leave)
    await session.commit()

    notifier.publish(
        ChangeEvent(
            kind=ChangeKind.LEAVE_REQUEST_CREATED,
            payload=LeaveRequestRead.model_validate(leave).model_dump(),
        )
    )
    return LeaveRequestCreated(id=leave.id)


@router.put("/leave_requests/{leave_id}", response_model=LeaveStatusRead)
async def update_leave_status(
    leave_id: int,
    payload: LeaveStatusUpdate,
    session: AsyncSession = Depends(get_db_session),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> LeaveStatusRead:
    """Approve, reject or reopen a leave request.

    The status change and its notification row commit together. Straight
    after the commit a ``leave_request_status_updated`` change event is
    published, followed by the joined notification row on the
    ``notification`` channel.
    """

    if payload.status not in VALID_STATUSES:
        raise ValidationError("Invalid status value")

    leave = await session.get(LeaveRequest, leave_id)
    if leave is None:
        raise NotFoundError("Leave request not found")

    leave.status = payload.status
    notification = Notification(
        user_id=leave.employee_id,
        leave_request_id=leave.id,
        status=payload.status,
    )
    session.add(notification)
    await session.flush()
    joined = await load_notification(session, notification.id)
    await session.commit()

    notifier.publish(
        ChangeEvent(
            kind=ChangeKind.LEAVE_REQUEST_STATUS_UPDATED,
            payload={"id": leave_id, "status": payload.status},
        )
    )
    if joined is not None:
        notifier.announce(joined)
    else:
        logger.warning(
            "Notification %s has no matching user %s; not broadcasting it",
            notification.id,
            notification.user_id,
        )

    return LeaveStatusRead(id=leave_id, status=payload.status)
