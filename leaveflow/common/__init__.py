"""Common module: shared utilities for Leaveflow."""

from leaveflow.common.audit import AuditTrail, record_audit
from leaveflow.common.constants import (
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ORG_WIDE_ROLES,
    REVIEWER_ROLES,
    HolidayType,
    LeaveStatus,
    NotificationType,
    UserRole,
)
from leaveflow.common.exceptions import (
    AppException,
    ConsistencyFault,
    EligibilityException,
    ForbiddenException,
    InsufficientBalanceException,
    NotFoundException,
    StateConflictException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from leaveflow.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "record_audit",
    # Constants / Enums
    "HolidayType",
    "LeaveStatus",
    "NotificationType",
    "UserRole",
    "ORG_WIDE_ROLES",
    "REVIEWER_ROLES",
    "DATE_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConsistencyFault",
    "EligibilityException",
    "ForbiddenException",
    "InsufficientBalanceException",
    "NotFoundException",
    "StateConflictException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
