"""
Error taxonomy for the RBAC core.

Every error carries a stable ``error_code``, a human readable ``message`` and
a ``details`` dict. Host applications map them to their transport; the core
itself never produces status codes.
"""
from typing import Any, Dict, Optional


class RBACError(Exception):
    """Base class for all errors raised by the RBAC core."""

    error_code = "rbac_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(RBACError):
    """
    Entity is absent or belongs to another organization.

    The two cases are intentionally indistinguishable so callers cannot probe
    for the existence of other tenants' roles.
    """

    error_code = "not_found"


class ConflictError(RBACError):
    """Duplicate user-role assignment or duplicate role name."""

    error_code = "conflict"


class ProtectedRoleError(RBACError):
    """Attempted deletion or rename of a default role."""

    error_code = "protected_role"


class DependencyExistsError(RBACError):
    """Role deletion blocked by active user-role assignments."""

    error_code = "dependency_exists"


class ValidationError(RBACError):
    """Malformed input, e.g. an empty role name or unknown permission id."""

    error_code = "validation_error"


class DuplicateRoleNameError(ConflictError, ValidationError):
    """Role name already used in the organization."""

    error_code = "duplicate_role_name"


class StorageUnavailableError(RBACError):
    """Transient storage failure. Retryable by the caller; the core never retries."""

    error_code = "storage_unavailable"


class AuditWriteError(StorageUnavailableError):
    """An audit event could not be persisted, so the guarded operation did not happen."""

    error_code = "audit_write_failed"
