"""Common module — shared utilities for SIRTIS."""

from sirtis.common.audit import AuditLog, apply_changes, create_audit_entry, diff_values
from sirtis.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ROLE_DOCUMENT_LEVEL,
    ROLE_FLAGS,
    ROLE_MODULE_ACCESS,
    AccessLevel,
    DocumentLevel,
    Module,
    UserRole,
    has_access,
    module_access,
)
from sirtis.common.exceptions import (
    AppException,
    BadRequestException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from sirtis.common.filters import apply_filters, apply_search
from sirtis.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditLog",
    "apply_changes",
    "create_audit_entry",
    "diff_values",
    # Constants / access matrix
    "AccessLevel",
    "DocumentLevel",
    "Module",
    "UserRole",
    "ROLE_DOCUMENT_LEVEL",
    "ROLE_FLAGS",
    "ROLE_MODULE_ACCESS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "has_access",
    "module_access",
    # Exceptions
    "AppException",
    "BadRequestException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
