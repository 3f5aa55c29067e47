"""SQLAlchemy models exposed by the backend."""
from .base import Base
from .leave_request import LeaveRequest
from .notification import Notification
from .record import Record
from .user import User

__all__ = ["Base", "LeaveRequest", "Notification", "Record", "User"]
