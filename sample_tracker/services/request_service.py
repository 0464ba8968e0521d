"""
Request Service — multi-item aggregate, listings, timeline and dashboard stats.

A request is one logical order bundling N product items. Create and draft
update write the parent row and every item in one database transaction: if
any step fails the session is rolled back, so a parent is never visible
without its items and ``item_count`` always equals the number of item rows.

Services flush; the calling blueprint commits.
"""

import logging
from datetime import datetime, time, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.orm.exc import StaleDataError

from sample_tracker.core.exceptions import (
    InvalidTransition,
    NotFoundError,
    OrphanRollbackFailure,
    PermissionDenied,
    StaleWrite,
    ValidationError,
)
from sample_tracker.models import db
from sample_tracker.models.profile import COORDINATOR_ROLES, Profile
from sample_tracker.models.request import (
    CATEGORIES,
    CLIENT_TYPES,
    MAGRO_SUB_CATEGORIES,
    PICKUP_RESPONSIBILITIES,
    PRIORITIES,
    PRODUCT_TYPES,
    REQUEST_STATUSES,
    RequestItem,
    RequestStatusHistory,
    SampleRequest,
)
from sample_tracker.services.code_generator import generate_request_number
from sample_tracker.services.deadline import lock_request, overdue_filter
from sample_tracker.services.helpers.visibility import visibility_predicate
from sample_tracker.services.permission import get_actor, has_permission
from sample_tracker.services.request_lifecycle import get_available_transitions, transition_request
from sample_tracker.utils.helpers import parse_bool, parse_datetime_input

logger = logging.getLogger(__name__)

# Writable request columns (everything else is owned by the lifecycle)
REQUEST_FIELDS = (
    "priority",
    "required_by",
    "department",
    "mobile_no",
    "client_type",
    "client_type_remarks",
    "client_contact_name",
    "client_phone",
    "client_email",
    "firm_name",
    "site_location",
    "purpose",
    "packing_details",
    "packing_remarks",
    "pickup_responsibility",
    "pickup_remarks",
    "delivery_address",
    "is_address_edited",
    "address_edit_remark",
    "is_delivery_method_edited",
    "delivery_method_remark",
    "requester_message",
)

ITEM_FIELDS = (
    "product_type",
    "sub_category",
    "quality",
    "quality_custom",
    "sample_size",
    "sample_size_remarks",
    "thickness",
    "thickness_remarks",
    "finish",
    "finish_remarks",
    "quantity",
    "image_url",
)

_BOOL_FIELDS = {"is_address_edited", "is_delivery_method_edited"}

IN_PROGRESS_STATUSES = ("pending_approval", "approved", "assigned", "in_production", "ready")


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════


def _clean_fields(fields: dict) -> dict:
    """Keep writable request fields and validate the enumerated ones."""
    errors = {}
    cleaned = {}
    for key in REQUEST_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if isinstance(value, str):
            value = value.strip() or None
        if key in _BOOL_FIELDS:
            value = parse_bool(value)
        elif key == "required_by":
            value = parse_datetime_input(value, field="required_by")
        cleaned[key] = value

    if "priority" in cleaned:
        cleaned["priority"] = cleaned["priority"] or "normal"
        if cleaned["priority"] not in PRIORITIES:
            errors["priority"] = f"Must be one of {sorted(PRIORITIES)}"
    if cleaned.get("client_type") and cleaned["client_type"] not in CLIENT_TYPES:
        errors["client_type"] = f"Must be one of {sorted(CLIENT_TYPES)}"
    if cleaned.get("pickup_responsibility") and cleaned["pickup_responsibility"] not in PICKUP_RESPONSIBILITIES:
        errors["pickup_responsibility"] = f"Must be one of {sorted(PICKUP_RESPONSIBILITIES)}"

    if errors:
        raise ValidationError("Invalid request fields", details=errors)
    return cleaned


def _positive_int(value):
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if str(value).strip() != str(number) and not isinstance(value, int):
        return None
    return number if number > 0 else None


def validate_items(items) -> list[dict]:
    """
    Validate a list of item payloads.

    Rules: at least one item; product_type marble|magro; magro items need a
    sub_category, marble items must not have one; quality, sample_size and
    thickness are required; quantity is a positive integer.

    Returns:
        Cleaned item dicts in submission order.

    Raises:
        ValidationError with per-item details ({"items[2].quantity": ...}).
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required", details={"items": "required"})

    errors = {}
    cleaned = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            errors[f"items[{idx}]"] = "must be an object"
            continue
        item = {}
        for key in ITEM_FIELDS:
            value = raw.get(key)
            if isinstance(value, str):
                value = value.strip() or None
            item[key] = value

        if item["product_type"] not in PRODUCT_TYPES:
            errors[f"items[{idx}].product_type"] = f"Must be one of {sorted(PRODUCT_TYPES)}"
        elif item["product_type"] == "magro":
            if item["sub_category"] not in MAGRO_SUB_CATEGORIES:
                errors[f"items[{idx}].sub_category"] = f"Must be one of {sorted(MAGRO_SUB_CATEGORIES)}"
        elif item["sub_category"] is not None:
            errors[f"items[{idx}].sub_category"] = "Marble items have no sub-category"

        for key in ("quality", "sample_size", "thickness"):
            if not item[key]:
                errors[f"items[{idx}].{key}"] = "required"

        quantity = _positive_int(item["quantity"] if item["quantity"] is not None else 1)
        if quantity is None:
            errors[f"items[{idx}].quantity"] = "Must be a positive integer"
        item["quantity"] = quantity
        cleaned.append(item)

    if errors:
        raise ValidationError("Invalid request items", details=errors)
    return cleaned


# ═════════════════════════════════════════════════════════════════════════════
# Aggregate writes
# ═════════════════════════════════════════════════════════════════════════════


def _insert_items(req: SampleRequest, items: list[dict]) -> None:
    for index, item in enumerate(items):
        req.items.append(RequestItem(item_index=index, **item))
    db.session.flush()


def _rollback_unit(request_number: str | None, cause: Exception) -> None:
    """Roll back a failed multi-row write; escalate if the rollback itself fails."""
    try:
        db.session.rollback()
    except Exception as rollback_exc:
        logger.critical(
            "Rollback failed after partial write of %s: %s (original error: %s)",
            request_number, rollback_exc, cause,
        )
        raise OrphanRollbackFailure(request_number, rollback_exc) from cause
    logger.warning("Request write for %s rolled back: %s", request_number, cause)


def create_request_with_items(fields: dict, items, actor_id: str, *, submit: bool = False) -> dict:
    """
    Create a request and all of its items in one transaction.

    Args:
        fields: Request columns (see REQUEST_FIELDS).
        items: Non-empty list of item payloads.
        actor_id: Creating profile; becomes ``created_by``.
        submit: Run the submission transition in the same unit of work.

    Returns:
        The request dict with items.

    Raises:
        ValidationError, PermissionDenied, OrphanRollbackFailure
    """
    actor = get_actor(actor_id)
    cleaned_fields = _clean_fields(fields or {})
    cleaned_items = validate_items(items)

    request_number = None
    try:
        request_number = generate_request_number()
        req = SampleRequest(
            request_number=request_number,
            status="draft",
            created_by=actor.id,
            item_count=len(cleaned_items),
            **cleaned_fields,
        )
        db.session.add(req)
        db.session.flush()

        _insert_items(req, cleaned_items)

        if submit:
            transition_request(
                req.id, "pending_approval", actor.id,
                message=cleaned_fields.get("requester_message"),
            )
    except Exception as exc:
        _rollback_unit(request_number, exc)
        raise

    logger.info(
        "Request %s created by %s with %d item(s)%s",
        req.request_number, actor.id, req.item_count, " and submitted" if submit else "",
        extra={"request_number": req.request_number, "actor_id": actor.id},
    )
    return req.to_dict(include_items=True)


def update_draft_with_items(request_id: str, fields: dict, items, actor_id: str) -> dict:
    """
    Update a draft's fields and replace its items wholesale.

    Only drafts can be edited, and only by their creator or an admin.
    ``items=None`` leaves the existing items untouched.

    Raises:
        NotFoundError, InvalidTransition, PermissionDenied, ValidationError,
        StaleWrite, OrphanRollbackFailure
    """
    actor = get_actor(actor_id)
    req = lock_request(request_id)
    request_number = req.request_number
    if req.status != "draft":
        raise InvalidTransition(request_number, req.status, "draft", "only drafts can be edited")
    if req.created_by != actor.id and actor.role != "admin":
        raise PermissionDenied(actor.id, "update_draft", "only the creator can edit a draft")

    cleaned_fields = _clean_fields(fields or {})
    cleaned_items = validate_items(items) if items is not None else None

    try:
        for key, value in cleaned_fields.items():
            setattr(req, key, value)
        if cleaned_items is not None:
            req.items.clear()
            db.session.flush()
            req.item_count = len(cleaned_items)
            _insert_items(req, cleaned_items)
        db.session.flush()
    except Exception as exc:
        _rollback_unit(request_number, exc)
        if isinstance(exc, StaleDataError):
            raise StaleWrite(request_number, None, None) from exc
        raise

    logger.info(
        "Draft %s updated by %s (%d item(s))", request_number, actor.id, req.item_count,
        extra={"request_number": request_number, "actor_id": actor.id},
    )
    return req.to_dict(include_items=True)


def delete_draft(request_id: str, actor_id: str) -> None:
    """Delete a draft (items cascade). Creator or admin only."""
    actor = get_actor(actor_id)
    req = lock_request(request_id)
    if req.status != "draft":
        raise InvalidTransition(req.request_number, req.status, "draft", "only drafts can be deleted")
    if req.created_by != actor.id and not has_permission(actor, "delete_any_draft"):
        raise PermissionDenied(actor.id, "delete_draft", "only the creator can delete a draft")

    number = req.request_number
    db.session.delete(req)
    db.session.flush()
    logger.info("Draft %s deleted by %s", number, actor.id)


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


def _visible(req: SampleRequest, actor: Profile) -> bool:
    stmt = select(SampleRequest.id).where(
        SampleRequest.id == req.id, visibility_predicate(actor.role, actor.id),
    )
    return db.session.execute(stmt).first() is not None


def get_request_with_items(request_id: str, actor_id: str | None = None) -> dict:
    """
    Fetch a request with items.

    With an actor, requests outside their visibility raise NotFoundError and
    the result carries ``available_transitions`` for that actor.
    """
    req = db.session.get(SampleRequest, request_id)
    if req is None:
        raise NotFoundError(resource="Request", resource_id=request_id)

    result = req.to_dict(include_items=True)
    if actor_id:
        actor = get_actor(actor_id)
        if not _visible(req, actor):
            raise NotFoundError(resource="Request", resource_id=request_id)
        result["available_transitions"] = get_available_transitions(req, actor)
    return result


def get_request_timeline(request_id: str, actor_id: str | None = None) -> list[dict]:
    """Status history for one request, oldest first.

    With an actor, requests outside their visibility raise NotFoundError.
    """
    req = db.session.get(SampleRequest, request_id)
    if req is None or (actor_id and not _visible(req, get_actor(actor_id))):
        raise NotFoundError(resource="Request", resource_id=request_id)
    rows = db.session.execute(
        select(RequestStatusHistory)
        .where(RequestStatusHistory.request_id == request_id)
        .order_by(RequestStatusHistory.changed_at, RequestStatusHistory.id)
    ).scalars().all()
    return [row.to_dict() for row in rows]


def _page_args(filters: dict, default_size: int, max_size: int) -> tuple[int, int]:
    try:
        page = max(int(filters.get("page") or 1), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(filters.get("page_size") or default_size)
    except (TypeError, ValueError):
        page_size = default_size
    return page, min(max(page_size, 1), max_size)


def list_requests(filters: dict, *, default_page_size: int = 15, max_page_size: int = 100) -> dict:
    """
    Paginated, role-scoped request listing, newest first.

    Filters:
        actor_id, actor_role   whose view (role looked up when omitted)
        page, page_size        1-based page, size capped at max_page_size
        search                 free text (fields depend on the role)
        status                 single status or list
        priority, category, product_type
        overdue                only in-flight requests past required_by

    Returns:
        {"items", "total_count", "page", "page_size", "total_pages"}
    """
    actor_id = filters.get("actor_id")
    actor_role = filters.get("actor_role")
    if actor_id and not actor_role:
        actor_role = get_actor(actor_id).role

    stmt = select(SampleRequest).where(visibility_predicate(actor_role, actor_id))

    statuses = filters.get("status")
    if statuses:
        if isinstance(statuses, str):
            statuses = [s for s in statuses.split(",") if s]
        unknown = [s for s in statuses if s not in REQUEST_STATUSES]
        if unknown:
            raise ValidationError("Unknown status filter", details={"status": unknown})
        stmt = stmt.where(SampleRequest.status.in_(statuses))
    if filters.get("priority"):
        stmt = stmt.where(SampleRequest.priority == filters["priority"])
    if filters.get("category"):
        if filters["category"] not in CATEGORIES:
            raise ValidationError("Unknown category filter", details={"category": filters["category"]})
        stmt = stmt.where(SampleRequest.category == filters["category"])
    if filters.get("product_type"):
        stmt = stmt.where(SampleRequest.items.any(RequestItem.product_type == filters["product_type"]))
    if parse_bool(filters.get("overdue")):
        stmt = stmt.where(overdue_filter())

    search = (filters.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        if actor_role == "requester":
            stmt = stmt.where(or_(
                SampleRequest.request_number.ilike(like),
                SampleRequest.client_contact_name.ilike(like),
                SampleRequest.firm_name.ilike(like),
            ))
        else:
            stmt = stmt.where(or_(
                SampleRequest.request_number.ilike(like),
                SampleRequest.creator.has(Profile.full_name.ilike(like)),
            ))

    page, page_size = _page_args(filters, default_page_size, max_page_size)
    total = db.session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar() or 0
    rows = db.session.execute(
        stmt.order_by(SampleRequest.created_at.desc(), SampleRequest.request_number.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    ).scalars().all()

    return {
        "items": [r.to_dict() for r in rows],
        "total_count": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Dashboard stats
# ═════════════════════════════════════════════════════════════════════════════


def _status_counts(predicate) -> dict:
    rows = db.session.execute(
        select(SampleRequest.status, func.count(SampleRequest.id))
        .where(predicate)
        .group_by(SampleRequest.status)
    ).all()
    return {status: count for status, count in rows}


def _dispatch_count(actor_id: str, since: datetime | None = None) -> int:
    stmt = select(func.count(RequestStatusHistory.id)).where(
        RequestStatusHistory.status == "dispatched",
        RequestStatusHistory.changed_by == actor_id,
    )
    if since is not None:
        stmt = stmt.where(RequestStatusHistory.changed_at >= since)
    return db.session.execute(stmt).scalar() or 0


def dashboard_stats(actor_id: str) -> dict:
    """Role-specific dashboard counters for *actor_id*."""
    actor = get_actor(actor_id)
    role = actor.role

    if role == "requester":
        counts = _status_counts(SampleRequest.created_by == actor.id)
        return {
            "role": role,
            "total": sum(c for s, c in counts.items() if s != "draft"),
            "drafts": counts.get("draft", 0),
            "in_progress": sum(counts.get(s, 0) for s in IN_PROGRESS_STATUSES),
            "dispatched": counts.get("dispatched", 0),
            "rejected": counts.get("rejected", 0),
            "received": counts.get("received", 0),
        }

    if role in COORDINATOR_ROLES:
        predicate = visibility_predicate(role, actor.id)
        counts = _status_counts(predicate)
        overdue = db.session.execute(
            select(func.count(SampleRequest.id)).where(predicate, overdue_filter())
        ).scalar() or 0
        return {
            "role": role,
            "total": sum(counts.values()),
            "pending": counts.get("pending_approval", 0),
            "approved": counts.get("approved", 0),
            "assigned": counts.get("assigned", 0),
            "in_production": counts.get("in_production", 0),
            "ready": counts.get("ready", 0),
            "dispatched": counts.get("dispatched", 0),
            "received": counts.get("received", 0),
            "rejected": counts.get("rejected", 0),
            "overdue": overdue,
        }

    if role == "maker":
        counts = _status_counts(SampleRequest.assigned_to == actor.id)
        return {
            "role": role,
            "assigned": counts.get("assigned", 0),
            "in_progress": counts.get("in_production", 0),
            "completed": sum(counts.get(s, 0) for s in ("ready", "dispatched", "received")),
        }

    if role == "dispatcher":
        counts = _status_counts(visibility_predicate(role, actor.id))
        today = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)
        return {
            "role": role,
            "ready_for_pickup": counts.get("ready", 0),
            "dispatched_today": _dispatch_count(actor.id, since=today),
            "total_dispatched": _dispatch_count(actor.id),
        }

    return {"role": role}
