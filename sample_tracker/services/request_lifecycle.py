"""
Request Lifecycle Service

Manages sample request status transitions with:
  - Transition validation (REQUEST_TRANSITIONS plus the self-pickup rules)
  - Deadline compliance gate (services.deadline)
  - Permission checks (services.permission)
  - Side effects (timestamps set once, messages, maker assignment)
  - Status history, one row per transition

8 actions, addressed by target status:
  submit, approve, reject, assign, start_production, complete, dispatch, receive

Check order: existence → transition validity → deadline gate → role
permission → action preconditions → mutation. Nothing is written before the
last step, so every failure leaves the stored request untouched.

Usage:
    from sample_tracker.services.request_lifecycle import transition_request

    result = transition_request(
        request_id="abc",
        target_status="approved",
        actor_id="coordinator-1",
        message="Looks good",
    )
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from sample_tracker.core.exceptions import (
    InvalidTransition,
    PermissionDenied,
    StaleWrite,
    ValidationError,
)
from sample_tracker.models import db
from sample_tracker.models.profile import COORDINATOR_ROLES, Profile
from sample_tracker.models.request import (
    ACTION_BY_TARGET,
    REQUEST_TRANSITIONS,
    TERMINAL_STATUSES,
    RequestStatusHistory,
    SampleRequest,
)
from sample_tracker.services.deadline import (
    GATE_EXEMPT_ACTIONS,
    apply_deadline_edit,
    check_deadline_gate,
    deadline_passed,
    lock_request,
    same_minute,
    validate_deadline_edit,
)
from sample_tracker.services.permission import check_permission, get_actor, has_permission, is_coordinator

logger = logging.getLogger(__name__)

# Roles a request may be assigned to
ASSIGNABLE_ROLES = frozenset({"maker"}) | COORDINATOR_ROLES


def validate_transition(request: SampleRequest, target_status: str) -> dict:
    """
    Validate whether *target_status* is reachable from the request's current state.

    Returns:
        {"valid": bool, "from": str, "to": str, "action": str|None, "reason": str|None}
    """
    current = request.status
    action = ACTION_BY_TARGET.get(target_status)
    result = {"valid": False, "from": current, "to": target_status, "action": action, "reason": None}

    if action is None:
        result["reason"] = f"Unknown target status: {target_status}"
        return result
    if current in TERMINAL_STATUSES:
        result["reason"] = f"'{current}' is a terminal status"
        return result
    if current not in REQUEST_TRANSITIONS[action]["from"]:
        result["reason"] = f"Cannot '{action}' from status '{current}'"
        return result
    if action == "receive" and current == "ready" and not request.is_self_pickup:
        result["reason"] = "Only self-pickup requests can be received directly from 'ready'"
        return result
    if action == "dispatch" and request.is_self_pickup:
        result["reason"] = "Self-pickup requests are collected, not dispatched"
        return result

    result["valid"] = True
    return result


def _derive_category(request: SampleRequest) -> str:
    categories = {item.product_type for item in request.items}
    if not categories:
        raise ValidationError(
            f"Request {request.request_number} has no items",
            details={"items": "At least one item is required to submit"},
        )
    if len(categories) > 1:
        raise ValidationError(
            f"Request {request.request_number} mixes marble and magro items",
            details={"items": "All items of a request must belong to one category"},
        )
    return categories.pop()


def _resolve_maker(maker_id: str | None) -> Profile:
    if not maker_id:
        raise ValidationError("maker_id is required to assign a request",
                              details={"maker_id": "required"})
    maker = db.session.get(Profile, maker_id)
    if maker is None or not maker.is_active or maker.role not in ASSIGNABLE_ROLES:
        raise ValidationError("maker_id must reference an active maker or coordinator",
                              details={"maker_id": maker_id})
    return maker


def transition_request(
    request_id: str,
    target_status: str,
    actor_id: str,
    *,
    message: str | None = None,
    dispatch_notes: str | None = None,
    maker_id: str | None = None,
    deadline_edit: dict | None = None,
    expected_version: int | None = None,
) -> dict:
    """
    Execute a request lifecycle transition.

    Args:
        request_id: UUID of the request
        target_status: Desired status; mapped to its action
        actor_id: Profile performing the transition
        message: Requester message (submit) or coordinator message (approve/reject)
        dispatch_notes: Stored on dispatch
        maker_id: Required for assign
        deadline_edit: {"new_date", "reason", "changed_by_name"?}; approve only
        expected_version: Version the caller last saw; mismatch → StaleWrite

    Returns:
        {"request_id", "request_number", "previous_status", "new_status",
         "action", "request"}

    Raises:
        NotFoundError, InvalidTransition, DeadlineExceeded, PermissionDenied,
        ValidationError, StaleWrite
    """
    # 1. Existence (row locked until commit where the backend supports it)
    req = lock_request(request_id)
    request_number = req.request_number
    actor = get_actor(actor_id)

    if expected_version is not None and int(expected_version) != req.version:
        raise StaleWrite(req.request_number, int(expected_version), req.version)

    # 2. Validate transition
    validation = validate_transition(req, target_status)
    if not validation["valid"]:
        raise InvalidTransition(req.request_number, req.status, target_status, validation["reason"])
    action = validation["action"]

    # 3. Deadline gate
    check_deadline_gate(req, actor, action, target_status)

    # 4. Permission check
    check_permission(actor, action, req)

    # 5. Preconditions
    category = None
    maker = None
    edit = None
    if action == "submit":
        category = _derive_category(req)
    elif action == "assign":
        maker = _resolve_maker(maker_id)
    if deadline_edit:
        if action != "approve":
            raise ValidationError("deadline_edit is only accepted when approving",
                                  details={"deadline_edit": "unexpected"})
        check_permission(actor, "edit_deadline", req)
        new_date, reason = validate_deadline_edit(deadline_edit.get("new_date"), deadline_edit.get("reason"))
        if not same_minute(new_date, req.required_by):
            edit = (new_date, reason, deadline_edit.get("changed_by_name") or actor.full_name)

    # 6. Execute transition
    now = datetime.now(timezone.utc)
    previous_status = req.status
    if edit:
        apply_deadline_edit(req, *edit)
    req.status = target_status

    # 7. Side effects
    notes = message
    if action == "submit":
        req.category = category
        if message is not None:
            req.requester_message = message
    elif action in ("approve", "reject"):
        if message is not None:
            req.coordinator_message = message
    elif action == "assign":
        req.assigned_to = maker.id
    elif action == "complete":
        req.completed_at = req.completed_at or now
    elif action == "dispatch":
        req.dispatched_at = req.dispatched_at or now
        if dispatch_notes is not None:
            req.dispatch_notes = dispatch_notes
        notes = dispatch_notes or message
    elif action == "receive":
        req.received_at = req.received_at or now
        req.received_by = req.received_by or actor.id

    db.session.add(RequestStatusHistory(
        request_id=req.id,
        status=target_status,
        changed_at=now,
        changed_by=actor.id,
        notes=notes,
    ))

    try:
        db.session.flush()
    except StaleDataError as exc:
        # The session rolled back and expired req; only locals are safe here
        raise StaleWrite(request_number, expected_version, None) from exc

    # 8. Confirm the row holds the new status
    stored = db.session.execute(
        select(SampleRequest.status).where(SampleRequest.id == req.id)
    ).scalar_one_or_none()
    if stored != target_status:
        raise PermissionDenied(actor.id, action, "the update did not take effect")

    log_extra = {"request_number": request_number, "actor_id": actor.id}
    logger.info(
        "Request %s: %s → %s by %s (%s)",
        request_number, previous_status, target_status, actor.id, actor.role,
        extra=log_extra,
    )
    if edit:
        logger.info("Request %s: required_by moved during approval", request_number, extra=log_extra)

    return {
        "request_id": req.id,
        "request_number": req.request_number,
        "previous_status": previous_status,
        "new_status": req.status,
        "action": action,
        "request": req.to_dict(),
    }


def get_available_transitions(request: SampleRequest, actor: Profile) -> list[dict]:
    """
    List transitions *actor* can perform on *request* right now.

    Returns:
        [{"action": str, "target_status": str}, ...]
    """
    blocked_by_deadline = deadline_passed(request) and not is_coordinator(actor)
    available = []
    for action, rule in REQUEST_TRANSITIONS.items():
        target = rule["to"]
        if not validate_transition(request, target)["valid"]:
            continue
        if blocked_by_deadline and action not in GATE_EXEMPT_ACTIONS:
            continue
        if not has_permission(actor, action, request):
            continue
        available.append({"action": action, "target_status": target})
    return available
