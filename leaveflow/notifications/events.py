"""Domain events emitted by the leave request state machine.

Events are immutable and self-describing; subscribers (in-app
notifications, e-mail, webhooks) consume them without reaching back into
the lifecycle code.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID


@dataclass(frozen=True)
class LeaveEvent:
    request_id: UUID
    employee_id: UUID
    organization_id: UUID
    actor_id: UUID
    leave_type: str
    start_date: date
    end_date: date
    days: int
    occurred_at: datetime

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        data = _serialize(asdict(self))
        data["event_type"] = self.event_type
        return data


@dataclass(frozen=True)
class LeaveRequested(LeaveEvent):
    approver_id: Optional[UUID] = None
    notify_users: tuple[UUID, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LeaveApproved(LeaveEvent):
    remarks: Optional[str] = None


@dataclass(frozen=True)
class LeaveRejected(LeaveEvent):
    remarks: Optional[str] = None


@dataclass(frozen=True)
class LeaveCancelled(LeaveEvent):
    approver_id: Optional[UUID] = None


def _serialize(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj
