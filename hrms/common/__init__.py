"""Common module — shared utilities for the HRMS API."""

from hrms.common.audit import AuditTrail, client_info, create_audit_entry, snapshot
from hrms.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PERMISSIONS,
    ROLE_LEVELS,
    ArrivalStatus,
    AttendanceSessionStatus,
    DepartmentStatus,
    LeaveStatus,
    NotificationType,
    ShiftStatus,
    TaskPriority,
    TaskStatus,
    UserRole,
)
from hrms.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from hrms.common.filters import apply_filters, apply_search, apply_sorting
from hrms.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)
from hrms.common.responses import success_response

__all__ = [
    # Audit
    "AuditTrail",
    "client_info",
    "create_audit_entry",
    "snapshot",
    # Constants / Enums
    "ArrivalStatus",
    "AttendanceSessionStatus",
    "DepartmentStatus",
    "LeaveStatus",
    "NotificationType",
    "ShiftStatus",
    "TaskPriority",
    "TaskStatus",
    "UserRole",
    "PERMISSIONS",
    "ROLE_LEVELS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    "apply_sorting",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
    # Responses
    "success_response",
]
