"""Domain errors shared by the RBAC services."""

from __future__ import annotations


class RbacError(Exception):
    """Base class for RBAC service errors."""

    code = "RBAC_ERROR"


class NotFoundError(RbacError):
    """Raised when a role, permission, module, menu item or assignment is missing."""

    code = "NOT_FOUND"


class DuplicateNameError(RbacError):
    """Raised when a create or rename would violate a uniqueness constraint."""

    code = "DUPLICATE_NAME"


class ProtectedEntityError(RbacError):
    """Raised when a locked field of a system entity is targeted."""

    code = "PROTECTED_ENTITY"


class ValidationError(RbacError):
    """Raised when a payload breaks a domain rule."""

    code = "VALIDATION_ERROR"


class StoreUnavailableError(RbacError):
    """Raised by the store adapter when the backing database cannot be reached."""

    code = "STORE_UNAVAILABLE"


class AuditWriteError(StoreUnavailableError):
    """Raised when an audit record cannot be written; the mutation is rolled back."""

    code = "AUDIT_WRITE_FAILED"
