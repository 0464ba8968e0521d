"""
Tracker-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
(see ``sample_tracker.utils.errors.register_error_handlers``) and get
consistent HTTP status codes everywhere.

Usage:
    from sample_tracker.core.exceptions import NotFoundError, InvalidTransition

    raise NotFoundError(resource="Request", resource_id=rid)
    raise InvalidTransition("SMP-1001", "draft", "received")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist (or is not visible).

    Args:
        resource: Human-readable entity name (e.g. "Request", "Profile").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is missing or malformed at the service boundary.

    Never reaches the store: raised before any mutation.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown (field name → description).
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a unique constraint."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class InvalidTransition(Exception):
    """Raised when a transition is not in the state table for the current status."""

    def __init__(self, request_number: str, current: str, target: str, reason: str | None = None):
        msg = f"Cannot move request {request_number} from '{current}' to '{target}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.request_number = request_number
        self.current_status = current
        self.target_status = target
        self.reason = reason


class DeadlineExceeded(Exception):
    """Raised when the required-by date has passed and the actor cannot override it."""

    def __init__(self, request_number: str, required_by, target: str):
        super().__init__(
            f"Request {request_number} passed its required-by date ({required_by.isoformat()}); "
            f"contact a coordinator to move it to '{target}'"
        )
        self.request_number = request_number
        self.required_by = required_by
        self.target_status = target


class PermissionDenied(Exception):
    """Raised when the actor's role or ownership does not allow the action.

    Also raised when a mutation reported success but the re-read row does not
    hold the expected state.
    """

    def __init__(self, actor_id: str | None, action: str, reason: str | None = None):
        msg = f"User {actor_id} does not have permission for '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.actor_id = actor_id
        self.action = action
        self.reason = reason


class StaleWrite(Exception):
    """Raised when the caller's version no longer matches the stored row."""

    def __init__(self, request_number: str, expected: int | None, actual: int | None):
        super().__init__(
            f"Request {request_number} was modified concurrently "
            f"(expected version {expected}, found {actual}); reload and retry"
        )
        self.request_number = request_number
        self.expected_version = expected
        self.actual_version = actual


class StoreUnavailable(Exception):
    """Raised on transport-level database failures. Never retried automatically."""


class OrphanRollbackFailure(Exception):
    """Raised when rolling back a failed multi-row write itself fails.

    This is a data-integrity alarm: a parent request may exist without items.
    """

    def __init__(self, request_number: str | None, cause: Exception):
        super().__init__(
            f"Rollback failed after partial write of request {request_number}: {cause}"
        )
        self.request_number = request_number
        self.cause = cause
