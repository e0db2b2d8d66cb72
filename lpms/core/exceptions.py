"""
Service-wide exception hierarchy.

Every error the lifecycle core can produce is an ``LpmsError`` subclass with
a stable machine-readable ``code`` and a default HTTP ``status``. Services
raise these; blueprints register one handler (see
``lpms.utils.errors.register_service_error_handlers``) and get consistent
responses everywhere.

Usage:
    from lpms.core.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError(resource="ReserveProject", resource_id=42)
    raise InvalidTransitionError(record_id=42, action="submission", current="draft")
"""

from __future__ import annotations

from lpms.utils.errors import E, default_status


class LpmsError(Exception):
    """Base class. ``details`` is structured context for API responses and logs."""

    code = E.INTERNAL

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    @property
    def status(self) -> int:
        return default_status(self.code)


class NotFoundError(LpmsError):
    """Raised when a requested record, user or object does not exist.

    Args:
        resource: Human-readable entity name (e.g. "ReserveProject", "User").
        resource_id: The key that was looked up.
    """

    code = E.NOT_FOUND

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg, {"resource": resource, "id": resource_id})


class InvalidTransitionError(LpmsError):
    """Raised when a lifecycle action does not match the record's current status."""

    code = E.INVALID_TRANSITION

    def __init__(self, record_id: int, action: str, current: str, reason: str | None = None) -> None:
        self.record_id = record_id
        self.action = action
        self.current_status = current
        self.reason = reason
        msg = f"Cannot '{action}' reserve project {record_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, {"id": record_id, "action": action, "status": current})


class WindowClosedError(LpmsError):
    """Raised when a gated transition is requested outside every configured window.

    This is an expected business outcome, not a server fault.
    """

    code = E.WINDOW_CLOSED

    def __init__(self, record_id: int, action: str, now: str) -> None:
        self.record_id = record_id
        self.action = action
        super().__init__(
            f"'{action}' for reserve project {record_id} is outside the configured window period",
            {"id": record_id, "action": action, "now": now},
        )


class InvalidWindowConfigError(LpmsError):
    """Raised when a window set is malformed or contains overlapping windows."""

    code = E.INVALID_WINDOW


class InvalidArgumentError(LpmsError):
    """Raised for malformed input: bad id lists, unknown filters, invalid fields."""

    code = E.INVALID_ARGUMENT


class ForbiddenError(LpmsError):
    """Raised when the caller lacks the administrator flag an action requires."""

    code = E.FORBIDDEN


class ObjectStoreError(LpmsError):
    """Raised when deleting or writing a stored artifact fails."""

    code = E.OBJECT_STORE

    def __init__(self, object_id: str | None, reason: str) -> None:
        self.object_id = object_id
        super().__init__(f"Object store failure for object {object_id}: {reason}", {"object_id": object_id})


class PersistenceError(LpmsError):
    """Raised when the database rejects a read or write."""

    code = E.DATABASE

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        super().__init__(f"Database error during {operation}: {reason}", {"operation": operation})


class UnmarshalError(LpmsError):
    """Raised when stored data cannot be shaped into a response (e.g. malformed JSON)."""

    code = E.UNMARSHAL


class BulkOperationError(LpmsError):
    """Raised when a bulk operation stops at a failing record.

    Records listed in ``completed_ids`` were already committed and stay that
    way; records after ``failed_id`` were never attempted. The code and HTTP
    status are those of the underlying ``cause``.
    """

    def __init__(
        self,
        operation: str,
        failed_id: int,
        completed_ids: list[int],
        cause: LpmsError,
    ) -> None:
        self.operation = operation
        self.failed_id = failed_id
        self.completed_ids = list(completed_ids)
        self.cause = cause
        self.code = cause.code
        super().__init__(
            f"{operation} stopped at id={failed_id}: {cause}",
            {
                "failed_id": failed_id,
                "completed_ids": self.completed_ids,
                "cause": cause.details,
            },
        )
