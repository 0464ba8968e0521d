"""
Product template endpoints. Every call acts on the caller's own templates.

Blueprint: templates_bp
Prefix: /api/v1

Endpoints:
  - GET/POST           /templates
  - PUT/DELETE         /templates/<id>
"""

from flask import Blueprint, jsonify, request

from sample_tracker.blueprints import commit_and_invalidate, current_actor_id
from sample_tracker.services import cache_service
from sample_tracker.services.template_service import (
    create_template,
    delete_template,
    list_templates,
    update_template,
)
from sample_tracker.utils.errors import register_error_handlers

templates_bp = Blueprint("templates", __name__, url_prefix="/api/v1")
register_error_handlers(templates_bp)


@templates_bp.route("/templates", methods=["GET"])
def list_templates_endpoint():
    user_id = current_actor_id()
    result = cache_service.cached(cache_service.TEMPLATES_PREFIX, {"user_id": user_id},
                                  lambda: list_templates(user_id))
    return jsonify(result)


@templates_bp.route("/templates", methods=["POST"])
def create_template_endpoint():
    data = request.get_json(silent=True) or {}
    result = create_template(current_actor_id(), data.get("template_name"), data.get("items"))
    err = commit_and_invalidate("template_change")
    if err:
        return err
    return jsonify(result), 201


@templates_bp.route("/templates/<template_id>", methods=["PUT"])
def update_template_endpoint(template_id):
    data = request.get_json(silent=True) or {}
    result = update_template(
        template_id, current_actor_id(),
        template_name=data.get("template_name"), items=data.get("items"),
    )
    err = commit_and_invalidate("template_change")
    if err:
        return err
    return jsonify(result)


@templates_bp.route("/templates/<template_id>", methods=["DELETE"])
def delete_template_endpoint(template_id):
    delete_template(template_id, current_actor_id())
    err = commit_and_invalidate("template_change")
    if err:
        return err
    return jsonify({"deleted": True, "id": template_id})
