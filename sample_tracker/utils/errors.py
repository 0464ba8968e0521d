"""Standardised API error responses.

Usage
-----
    from sample_tracker.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Request not found")
    return api_error(E.VALIDATION_REQUIRED, "target_status is required")

Blueprints call ``register_error_handlers(bp)`` once so that every exception
from ``sample_tracker.core.exceptions`` maps to the same JSON body and status.
"""

from __future__ import annotations

import logging

from flask import jsonify
from sqlalchemy.exc import OperationalError

from sample_tracker.core.exceptions import (
    ConflictError,
    DeadlineExceeded,
    InvalidTransition,
    NotFoundError,
    OrphanRollbackFailure,
    PermissionDenied,
    StaleWrite,
    StoreUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    DEADLINE_EXCEEDED = "ERR_DEADLINE_EXCEEDED"
    STALE_WRITE = "ERR_STALE_WRITE"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Server – HTTP 5xx
    DATABASE = "ERR_DATABASE"
    STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.DEADLINE_EXCEEDED: 409,
    E.STALE_WRITE: 409,
    E.FORBIDDEN: 403,
    E.DATABASE: 500,
    E.STORE_UNAVAILABLE: 503,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for the UI.
    status : int, optional
        HTTP status override. Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, versions, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


# ── Exception → response mapping ──────────────────────────────────────

def _rollback():
    from sample_tracker.models import db
    db.session.rollback()


def register_error_handlers(bp):
    """Attach domain-exception handlers to a blueprint.

    Every handler rolls back the session so the affected state is left
    untouched.
    """

    @bp.errorhandler(ValidationError)
    def _validation(exc):
        _rollback()
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)

    @bp.errorhandler(NotFoundError)
    def _not_found(exc):
        _rollback()
        return api_error(E.NOT_FOUND, str(exc))

    @bp.errorhandler(InvalidTransition)
    def _invalid_transition(exc):
        _rollback()
        return api_error(
            E.CONFLICT_STATE, str(exc),
            details={"current_status": exc.current_status, "target_status": exc.target_status},
        )

    @bp.errorhandler(DeadlineExceeded)
    def _deadline(exc):
        _rollback()
        return api_error(E.DEADLINE_EXCEEDED, str(exc))

    @bp.errorhandler(StaleWrite)
    def _stale(exc):
        _rollback()
        return api_error(
            E.STALE_WRITE, str(exc),
            details={"expected_version": exc.expected_version, "actual_version": exc.actual_version},
        )

    @bp.errorhandler(ConflictError)
    def _conflict(exc):
        _rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(exc))

    @bp.errorhandler(PermissionDenied)
    def _forbidden(exc):
        _rollback()
        return api_error(E.FORBIDDEN, str(exc))

    @bp.errorhandler(StoreUnavailable)
    def _store_unavailable(exc):
        _rollback()
        return api_error(E.STORE_UNAVAILABLE, "Data store unavailable, please try again")

    @bp.errorhandler(OperationalError)
    def _operational(exc):
        _rollback()
        logger.exception("Database operational error")
        return api_error(E.STORE_UNAVAILABLE, "Data store unavailable, please try again")

    @bp.errorhandler(OrphanRollbackFailure)
    def _orphan(exc):
        return api_error(E.DATABASE, str(exc))
