"""
Role-Based Access Control for request lifecycle actions.

PERMISSION_MATRIX says which roles may attempt an action at all; the
ownership rules then narrow it down to a specific request:

  - submit            only the request's creator
  - receive           the creator, or any coordinator-class role
  - start_production,
    complete          the assigned maker, or any coordinator-class role
  - dispatch          coordinators; dispatchers only for field_boy requests
  - category coordinators only act on requests of their own category

Usage:
    from sample_tracker.services.permission import check_permission

    check_permission(actor, "approve", request)      # raises PermissionDenied
    if has_permission(actor, "dispatch", request):
        ...
"""

from sample_tracker.core.exceptions import NotFoundError, PermissionDenied
from sample_tracker.models import db
from sample_tracker.models.profile import CATEGORY_COORDINATOR_ROLES, COORDINATOR_ROLES, Profile

_COORDINATOR_ACTIONS = {
    "submit",
    "approve",
    "reject",
    "assign",
    "start_production",
    "complete",
    "dispatch",
    "receive",
    "edit_deadline",
}

PERMISSION_MATRIX = {
    "admin": _COORDINATOR_ACTIONS | {"delete_any_draft"},
    "coordinator": set(_COORDINATOR_ACTIONS),
    "marble_coordinator": set(_COORDINATOR_ACTIONS),
    "magro_coordinator": set(_COORDINATOR_ACTIONS),
    "requester": {"submit", "receive"},
    "maker": {"start_production", "complete"},
    "dispatcher": {"dispatch"},
}


def get_actor(actor_id: str | None) -> Profile:
    """Load the acting profile.

    Raises:
        NotFoundError: unknown profile id.
        PermissionDenied: the profile is deactivated.
    """
    if not actor_id:
        raise PermissionDenied(None, "act", "no acting user supplied")
    actor = db.session.get(Profile, actor_id)
    if actor is None:
        raise NotFoundError(resource="Profile", resource_id=actor_id)
    if not actor.is_active:
        raise PermissionDenied(actor.id, "act", "profile is inactive")
    return actor


def is_coordinator(actor: Profile) -> bool:
    return actor.role in COORDINATOR_ROLES


def _denial_reason(actor: Profile, action: str, request) -> str | None:
    """Return why *actor* may not perform *action* on *request*, or None if allowed."""
    allowed_actions = PERMISSION_MATRIX.get(actor.role, set())
    if action not in allowed_actions:
        return f"role '{actor.role}' cannot {action}"

    if request is None:
        return None

    if action == "submit":
        if request.created_by != actor.id:
            return "only the requester who created the request can submit it"
        return None

    category = CATEGORY_COORDINATOR_ROLES.get(actor.role)
    if category and request.category and request.category != category:
        return f"request belongs to the {request.category} category"

    if is_coordinator(actor):
        return None

    if action == "receive" and request.created_by != actor.id:
        return "only the original requester can confirm receipt"
    if action in ("start_production", "complete") and request.assigned_to != actor.id:
        return "request is not assigned to this maker"
    if action == "dispatch" and request.pickup_responsibility != "field_boy":
        return "dispatchers only handle field_boy deliveries"
    return None


def has_permission(actor: Profile, action: str, request=None) -> bool:
    """Return True if *actor* may perform *action* (optionally on *request*)."""
    return _denial_reason(actor, action, request) is None


def check_permission(actor: Profile, action: str, request=None) -> None:
    """
    Assert the actor has permission; raise PermissionDenied if not.

    Raises:
        PermissionDenied: If the role or ownership check fails.
    """
    reason = _denial_reason(actor, action, request)
    if reason:
        raise PermissionDenied(actor.id, action, reason)
