"""Read access to the notification audit trail."""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db_session
from ..models import Notification
from ..schemas import NotificationRead
from .leave_requests import notification_query

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
async def list_notifications(
    session: AsyncSession = Depends(get_db_session),
) -> List[Dict[str, Any]]:
    """Return notifications joined with user and leave details, newest first."""

    result = await session.execute(
        notification_query().order_by(desc(Notification.created_at), desc(Notification.id))
    )
    return [dict(row) for row in result.mappings().all()]
