"""Enumerations shared by models, schemas and events."""
from enum import Enum


class LeaveStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ChangeKind(str, Enum):
    """Names of the mutations announced on the ``db_change`` channel."""

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_PICTURE_UPDATED = "user_picture_updated"
    LEAVE_REQUEST_CREATED = "leave_request_created"
    LEAVE_REQUEST_STATUS_UPDATED = "leave_request_status_updated"
