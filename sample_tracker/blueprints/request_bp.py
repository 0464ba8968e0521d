"""
Sample request endpoints: CRUD on drafts, lifecycle transitions, deadline
edits, timeline, duplicate check, listing and dashboard stats.

Blueprint: requests_bp
Prefix: /api/v1

Endpoints:
  - GET/POST           /requests                    list, create (optionally submit)
  - GET/PUT/DELETE     /requests/<id>               detail, update draft, delete draft
  - POST               /requests/<id>/transition
  - PUT                /requests/<id>/required-by
  - GET                /requests/<id>/timeline
  - POST               /requests/duplicate-check
  - GET                /requests/stats
"""

from flask import Blueprint, current_app, jsonify, request

from sample_tracker.blueprints import commit_and_invalidate, current_actor_id
from sample_tracker.services import cache_service
from sample_tracker.services.deadline import update_deadline
from sample_tracker.services.duplicate_check import check_for_duplicates
from sample_tracker.services.request_lifecycle import transition_request
from sample_tracker.services.request_service import (
    REQUEST_FIELDS,
    create_request_with_items,
    dashboard_stats,
    delete_draft,
    get_request_timeline,
    get_request_with_items,
    list_requests,
    update_draft_with_items,
)
from sample_tracker.utils.errors import E, api_error, register_error_handlers
from sample_tracker.utils.helpers import parse_bool

requests_bp = Blueprint("requests", __name__, url_prefix="/api/v1")
register_error_handlers(requests_bp)


# ═════════════════════════════════════════════════════════════════════════════
# Listing & stats
# ═════════════════════════════════════════════════════════════════════════════


@requests_bp.route("/requests", methods=["GET"])
def list_requests_endpoint():
    """Paginated, role-scoped listing."""
    actor_id = current_actor_id()
    if not actor_id:
        return api_error(E.VALIDATION_REQUIRED, "X-User-Id header is required")

    filters = {
        "actor_id": actor_id,
        "page": request.args.get("page"),
        "page_size": request.args.get("page_size"),
        "search": request.args.get("search"),
        "status": request.args.getlist("status") or None,
        "priority": request.args.get("priority"),
        "category": request.args.get("category"),
        "product_type": request.args.get("product_type"),
        "overdue": request.args.get("overdue"),
    }
    if filters["status"] and len(filters["status"]) == 1:
        filters["status"] = filters["status"][0]

    cfg = current_app.config
    result = cache_service.cached(
        cache_service.LIST_PREFIX,
        filters,
        lambda: list_requests(
            filters,
            default_page_size=cfg["DEFAULT_PAGE_SIZE"],
            max_page_size=cfg["MAX_PAGE_SIZE"],
        ),
    )
    return jsonify(result)


@requests_bp.route("/requests/stats", methods=["GET"])
def stats_endpoint():
    actor_id = current_actor_id()
    if not actor_id:
        return api_error(E.VALIDATION_REQUIRED, "X-User-Id header is required")
    result = cache_service.cached(cache_service.STATS_PREFIX, {"actor_id": actor_id},
                                  lambda: dashboard_stats(actor_id))
    return jsonify(result)


# ═════════════════════════════════════════════════════════════════════════════
# Aggregate CRUD
# ═════════════════════════════════════════════════════════════════════════════


@requests_bp.route("/requests", methods=["POST"])
def create_request_endpoint():
    """Create a request with its items; ``submit: true`` submits it in the same transaction."""
    data = request.get_json(silent=True) or {}
    fields = {k: data[k] for k in REQUEST_FIELDS if k in data}
    result = create_request_with_items(
        fields, data.get("items"), current_actor_id(), submit=parse_bool(data.get("submit")),
    )
    err = commit_and_invalidate("create_request")
    if err:
        return err
    return jsonify(result), 201


@requests_bp.route("/requests/<request_id>", methods=["GET"])
def get_request_endpoint(request_id):
    actor_id = current_actor_id()
    if not actor_id:
        return api_error(E.VALIDATION_REQUIRED, "X-User-Id header is required")
    result = cache_service.cached(
        cache_service.DETAIL_PREFIX,
        {"request_id": request_id, "actor_id": actor_id},
        lambda: get_request_with_items(request_id, actor_id),
    )
    return jsonify(result)


@requests_bp.route("/requests/<request_id>", methods=["PUT"])
def update_request_endpoint(request_id):
    """Update a draft; ``items`` (when present) replaces all items."""
    data = request.get_json(silent=True) or {}
    fields = {k: data[k] for k in REQUEST_FIELDS if k in data}
    result = update_draft_with_items(request_id, fields, data.get("items"), current_actor_id())
    err = commit_and_invalidate("update_draft")
    if err:
        return err
    return jsonify(result)


@requests_bp.route("/requests/<request_id>", methods=["DELETE"])
def delete_request_endpoint(request_id):
    delete_draft(request_id, current_actor_id())
    err = commit_and_invalidate("delete_draft")
    if err:
        return err
    return jsonify({"deleted": True, "id": request_id})


# ═════════════════════════════════════════════════════════════════════════════
# Lifecycle
# ═════════════════════════════════════════════════════════════════════════════


@requests_bp.route("/requests/<request_id>/transition", methods=["POST"])
def transition_request_endpoint(request_id):
    """Execute a lifecycle transition addressed by target status."""
    data = request.get_json(silent=True) or {}
    target_status = data.get("target_status")
    if not target_status:
        return api_error(E.VALIDATION_REQUIRED, "target_status is required")

    result = transition_request(
        request_id,
        target_status,
        current_actor_id(),
        message=data.get("message"),
        dispatch_notes=data.get("dispatch_notes"),
        maker_id=data.get("maker_id"),
        deadline_edit=data.get("deadline_edit"),
        expected_version=data.get("expected_version"),
    )
    err = commit_and_invalidate("transition")
    if err:
        return err
    return jsonify(result)


@requests_bp.route("/requests/<request_id>/required-by", methods=["PUT"])
def update_required_by_endpoint(request_id):
    """Coordinator deadline edit with audit trail."""
    data = request.get_json(silent=True) or {}
    result = update_deadline(
        request_id,
        data.get("new_date"),
        data.get("reason"),
        current_actor_id(),
        changed_by_name=data.get("changed_by_name"),
    )
    err = commit_and_invalidate("update_deadline")
    if err:
        return err
    return jsonify(result)


@requests_bp.route("/requests/<request_id>/timeline", methods=["GET"])
def timeline_endpoint(request_id):
    actor_id = current_actor_id()
    if not actor_id:
        return api_error(E.VALIDATION_REQUIRED, "X-User-Id header is required")
    result = cache_service.cached(
        cache_service.TIMELINE_PREFIX,
        {"request_id": request_id, "actor_id": actor_id},
        lambda: get_request_timeline(request_id, actor_id),
    )
    return jsonify(result)


@requests_bp.route("/requests/duplicate-check", methods=["POST"])
def duplicate_check_endpoint():
    """Advisory duplicate classification for a candidate request."""
    data = request.get_json(silent=True) or {}
    return jsonify(check_for_duplicates(data))
