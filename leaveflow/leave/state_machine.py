"""
Leave request state machine.

Valid transitions:
    PENDING  -> APPROVED   (approve)
    PENDING  -> REJECTED   (reject, releases the reservation)
    PENDING  -> CANCELLED  (cancel by requester, releases the reservation)

APPROVED, REJECTED and CANCELLED are terminal. Deletion is not a transition;
it removes the row and releases whatever reservation the status still holds.
"""

from __future__ import annotations

from typing import ClassVar

from leaveflow.common.constants import LeaveStatus
from leaveflow.common.exceptions import StateConflictException


class LeaveStateMachine:
    VALID_TRANSITIONS: ClassVar[dict[LeaveStatus, set[LeaveStatus]]] = {
        LeaveStatus.PENDING: {
            LeaveStatus.APPROVED,
            LeaveStatus.REJECTED,
            LeaveStatus.CANCELLED,
        },
        LeaveStatus.APPROVED: set(),
        LeaveStatus.REJECTED: set(),
        LeaveStatus.CANCELLED: set(),
    }

    # Statuses whose days are still counted in used_days
    HOLDS_RESERVATION: ClassVar[frozenset[LeaveStatus]] = frozenset(
        {LeaveStatus.PENDING, LeaveStatus.APPROVED},
    )

    # Transitions after which the reservation must be given back
    RELEASING_TRANSITIONS: ClassVar[frozenset[LeaveStatus]] = frozenset(
        {LeaveStatus.REJECTED, LeaveStatus.CANCELLED},
    )

    @classmethod
    def can_transition(cls, from_status: LeaveStatus, to_status: LeaveStatus) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status: LeaveStatus, to_status: LeaveStatus) -> None:
        """Raise ``StateConflictException`` unless the move is in the table."""
        if not cls.can_transition(from_status, to_status):
            if from_status != LeaveStatus.PENDING:
                detail = f"Leave request is not pending (currently {from_status.value})."
            else:
                detail = f"Cannot move leave request from {from_status.value} to {to_status.value}."
            raise StateConflictException(detail)

    @classmethod
    def releases_on(cls, to_status: LeaveStatus) -> bool:
        return to_status in cls.RELEASING_TRANSITIONS

    @classmethod
    def holds_reservation(cls, status: LeaveStatus) -> bool:
        return status in cls.HOLDS_RESERVATION
