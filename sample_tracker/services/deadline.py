"""
Deadline Compliance Gate

- ``check_deadline_gate``: evaluated before every forward transition except
  submission (rejection is exempt). Once ``required_by`` has passed, only
  coordinator-class roles may move the request forward.
- ``update_deadline``: coordinator-only edit of ``required_by``. The previous
  value is read under a row lock and appended to ``required_by_history``
  before the new date is written.
- ``is_overdue`` / ``overdue_filter``: the derived "overdue" predicate, in
  memory and as a SQL expression for listings.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, select
from sqlalchemy.exc import OperationalError

from sample_tracker.core.exceptions import DeadlineExceeded, NotFoundError, StoreUnavailable, ValidationError
from sample_tracker.models import as_utc, db, iso
from sample_tracker.models.request import ACTIVE_STATUSES, SampleRequest
from sample_tracker.services.permission import check_permission, get_actor, is_coordinator
from sample_tracker.utils.helpers import parse_datetime_input

logger = logging.getLogger(__name__)

# Transitions that never pass through the gate
GATE_EXEMPT_ACTIONS = frozenset({"submit", "reject"})


def deadline_passed(request: SampleRequest, now: datetime | None = None) -> bool:
    """True when ``required_by`` is set and already behind *now*."""
    if request.required_by is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now > as_utc(request.required_by)


def check_deadline_gate(request: SampleRequest, actor, action: str, target: str,
                        now: datetime | None = None) -> None:
    """
    Block a forward transition for non-coordinators once the deadline passed.

    Raises:
        DeadlineExceeded: deadline passed and *actor* cannot override it.
    """
    if action in GATE_EXEMPT_ACTIONS:
        return
    if not deadline_passed(request, now):
        return
    if is_coordinator(actor):
        logger.info(
            "Deadline override: %s moved %s to %s past required_by %s",
            actor.id, request.request_number, target, iso(request.required_by),
        )
        return
    logger.warning(
        "Deadline gate blocked %s (%s) on %s → %s",
        actor.id, actor.role, request.request_number, target,
    )
    raise DeadlineExceeded(request.request_number, as_utc(request.required_by), target)


def is_overdue(request: SampleRequest, now: datetime | None = None) -> bool:
    """In-flight request whose deadline has passed. Terminal requests never are."""
    return request.status in ACTIVE_STATUSES and deadline_passed(request, now)


def overdue_filter(now: datetime | None = None):
    """SQL expression equivalent of ``is_overdue``."""
    now = now or datetime.now(timezone.utc)
    return and_(
        SampleRequest.required_by.isnot(None),
        SampleRequest.required_by < now,
        SampleRequest.status.in_(ACTIVE_STATUSES),
    )


def same_minute(a: datetime | None, b: datetime | None) -> bool:
    if a is None or b is None:
        return a is b
    return as_utc(a).replace(second=0, microsecond=0) == as_utc(b).replace(second=0, microsecond=0)


def apply_deadline_edit(request: SampleRequest, new_date: datetime, reason: str,
                        changed_by_name: str) -> dict:
    """Append the audit entry and set the new deadline on an already-locked row."""
    entry = {
        "old_date": iso(request.required_by),
        "new_date": iso(new_date),
        "reason": reason,
        "changed_by_name": changed_by_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    # Assign a new list so the JSON column is flagged dirty
    request.required_by_history = list(request.required_by_history or []) + [entry]
    request.required_by = new_date
    return entry


def validate_deadline_edit(new_date, reason):
    """Parse and check a deadline edit payload. Returns (aware datetime, stripped reason)."""
    errors = {}
    parsed = None
    if not new_date:
        errors["new_date"] = "new_date is required"
    else:
        parsed = parse_datetime_input(new_date, field="new_date")
    if not (reason or "").strip():
        errors["reason"] = "A reason is required to change the required-by date"
    if errors:
        raise ValidationError("Invalid deadline edit", details=errors)
    return parsed, reason.strip()


def lock_request(request_id: str) -> SampleRequest:
    """Fetch a request with a row lock (``SELECT … FOR UPDATE`` where supported).

    Raises:
        NotFoundError: no such request.
        StoreUnavailable: the database could not be reached.
    """
    try:
        req = db.session.execute(
            select(SampleRequest)
            .where(SampleRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
    except OperationalError as exc:
        logger.error("Store unavailable while loading request %s: %s", request_id, exc)
        raise StoreUnavailable(str(exc.orig or exc)) from exc
    if req is None:
        raise NotFoundError(resource="Request", resource_id=request_id)
    return req


def update_deadline(request_id: str, new_date, reason: str, actor_id: str,
                    changed_by_name: str | None = None) -> dict:
    """
    Coordinator-only deadline edit with audit trail.

    Args:
        request_id: Request to edit.
        new_date: New required-by timestamp (datetime or ISO string).
        reason: Mandatory free-text reason.
        actor_id: Profile performing the edit.
        changed_by_name: Display name for the audit entry (defaults to the
            actor's full name).

    Returns:
        {"request": <request dict>, "entry": <appended history entry>}

    Raises:
        PermissionDenied, ValidationError, NotFoundError
    """
    actor = get_actor(actor_id)
    parsed, reason = validate_deadline_edit(new_date, reason)
    req = lock_request(request_id)
    check_permission(actor, "edit_deadline", req)

    entry = apply_deadline_edit(req, parsed, reason, changed_by_name or actor.full_name)
    db.session.flush()

    logger.info(
        "Deadline of %s moved %s → %s by %s",
        req.request_number, entry["old_date"], entry["new_date"], actor.id,
        extra={"request_number": req.request_number, "actor_id": actor.id},
    )
    return {"request": req.to_dict(), "entry": entry}
