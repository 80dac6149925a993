"""The authenticated actor as seen by the leave core."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from leaveflow.common.constants import ORG_WIDE_ROLES, UserRole


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    organization_id: uuid.UUID
    role: UserRole

    @property
    def is_org_admin(self) -> bool:
        """ADMIN or HR: may act on any request in the organization."""
        return self.role in ORG_WIDE_ROLES

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(
            user_id=user.id,
            organization_id=user.organization_id,
            role=user.role,
        )
