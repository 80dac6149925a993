"""Event bus and in-app notifications for the leave lifecycle."""

from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import NotificationType
from leaveflow.notifications.events import (
    LeaveApproved,
    LeaveCancelled,
    LeaveEvent,
    LeaveRejected,
    LeaveRequested,
)
from leaveflow.notifications.models import Notification

logger = logging.getLogger(__name__)

EventHandler = Callable[[AsyncSession, LeaveEvent], Awaitable[None]]


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification


# ── Event bus ───────────────────────────────────────────────────────


class EventBus:
    """Routes leave events to subscribers, in order, inside the caller's
    transaction. A failing subscriber fails the whole operation."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = {}

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event: LeaveEvent) -> list[EventHandler]:
        matched: list[EventHandler] = []
        for event_type, handlers in self._handlers.items():
            if isinstance(event, event_type):
                matched.extend(handlers)
        return matched

    async def publish(self, db: AsyncSession, event: LeaveEvent) -> None:
        logger.info(
            "%s request=%s employee=%s actor=%s",
            event.event_type, event.request_id, event.employee_id, event.actor_id,
        )
        for handler in self.handlers_for(event):
            await handler(db, event)


# ── In-app notification subscriber ──────────────────────────────────


def _period(event: LeaveEvent) -> str:
    return (
        f"{event.leave_type} leave from {event.start_date.isoformat()} to "
        f"{event.end_date.isoformat()} ({event.days} day(s))"
    )


async def notify_recipients(db: AsyncSession, event: LeaveEvent) -> None:
    """Persist one ``Notification`` per recipient of *event*."""
    common = dict(entity_type="leave_request", entity_id=event.request_id)

    if isinstance(event, LeaveRequested):
        if event.approver_id is not None:
            await NotificationService.create_notification(
                db,
                recipient_id=event.approver_id,
                type=NotificationType.action_required,
                title="New Leave Request",
                message=f"A {_period(event)} requires your approval.",
                **common,
            )
        seen = {event.employee_id, event.approver_id}
        for user_id in event.notify_users:
            if user_id in seen:
                continue
            seen.add(user_id)
            await NotificationService.create_notification(
                db,
                recipient_id=user_id,
                title="Colleague On Leave",
                message=f"A colleague has requested {_period(event)}.",
                **common,
            )

    elif isinstance(event, LeaveApproved):
        await NotificationService.create_notification(
            db,
            recipient_id=event.employee_id,
            type=NotificationType.approval,
            title="Leave Request Approved",
            message=f"Your {_period(event)} has been approved.",
            **common,
        )

    elif isinstance(event, LeaveRejected):
        suffix = f" Remarks: {event.remarks}" if event.remarks else ""
        await NotificationService.create_notification(
            db,
            recipient_id=event.employee_id,
            type=NotificationType.alert,
            title="Leave Request Rejected",
            message=f"Your {_period(event)} was rejected.{suffix}",
            **common,
        )

    elif isinstance(event, LeaveCancelled):
        if event.approver_id is not None and event.approver_id != event.employee_id:
            await NotificationService.create_notification(
                db,
                recipient_id=event.approver_id,
                title="Leave Request Cancelled",
                message=f"A {_period(event)} awaiting your review was cancelled.",
                **common,
            )


event_bus = EventBus()
event_bus.subscribe(LeaveEvent, notify_recipients)
