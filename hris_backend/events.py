"""Change events announced to connected clients."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import ChangeKind

DB_CHANGE = "db_change"
NOTIFICATION = "notification"


class ChangeEvent(BaseModel):
    """One completed mutation. Built after commit, handed to the notifier, discarded."""

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    payload: dict[str, Any] = Field(default_factory=dict)
