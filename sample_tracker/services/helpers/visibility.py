"""
Role-based row visibility for request listings.

Every listing entry point (lists, stats, duplicate lookups shown to staff)
filters through ``visibility_predicate`` so the rules live in one place:

  requester            own requests (drafts included)
  maker                requests assigned to them
  dispatcher           field_boy requests in ready / dispatched / received
  admin, coordinator   everything except drafts
  marble_coordinator,
  magro_coordinator    non-draft requests of their category
  anything else        nothing

Usage:
    stmt = select(SampleRequest).where(visibility_predicate(role, actor_id))
"""

from sqlalchemy import and_, false

from sample_tracker.models.profile import CATEGORY_COORDINATOR_ROLES
from sample_tracker.models.request import SampleRequest

DISPATCHER_STATUSES = ("ready", "dispatched", "received")


def visibility_predicate(actor_role: str | None, actor_id: str | None):
    """Return a SQL boolean expression selecting the requests *actor* may see."""
    if actor_role == "requester":
        return SampleRequest.created_by == actor_id
    if actor_role == "maker":
        return SampleRequest.assigned_to == actor_id
    if actor_role == "dispatcher":
        return and_(
            SampleRequest.pickup_responsibility == "field_boy",
            SampleRequest.status.in_(DISPATCHER_STATUSES),
        )
    if actor_role in ("admin", "coordinator"):
        return SampleRequest.status != "draft"
    category = CATEGORY_COORDINATOR_ROLES.get(actor_role)
    if category:
        return and_(SampleRequest.status != "draft", SampleRequest.category == category)
    return false()
