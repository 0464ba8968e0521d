"""Shared utility functions for blueprints and services.

parse_datetime_input:  ISO / date-only strings → aware UTC datetime (raises ValidationError)
parse_bool:            query-string flags ("true", "1", "yes")
db_commit_or_error:    commit helper returning an error response on failure
"""
import logging
from datetime import date, datetime, time, timezone

from sample_tracker.core.exceptions import ValidationError
from sample_tracker.models import as_utc, db

logger = logging.getLogger(__name__)


def parse_datetime_input(value, field="date"):
    """Parse a timestamp into an aware UTC datetime.

    Accepts datetime/date objects, ISO-8601 strings (``Z`` suffix allowed)
    and bare ``YYYY-MM-DD`` dates (taken as midnight UTC). Naive values are
    taken as UTC. Returns None for empty input.

    Raises:
        ValidationError: on anything else.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    try:
        return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid {field}. Use ISO-8601 (YYYY-MM-DDTHH:MM[:SS][+HH:MM]).",
            details={field: str(value)},
        ) from exc


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure — ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    OperationalError → 503 (connection / lock issues, caller may retry manually)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    from sample_tracker.utils.errors import E, api_error

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.STORE_UNAVAILABLE, "Data store unavailable, please try again")
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, "Database error")
