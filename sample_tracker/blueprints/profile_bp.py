"""
Profile lookup for assignment pickers.

Blueprint: profiles_bp
Prefix: /api/v1

Endpoints:
  - GET /profiles?role=maker      active profiles, optionally filtered by role
"""

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from sample_tracker.models import db
from sample_tracker.models.profile import ROLES, Profile
from sample_tracker.utils.errors import E, api_error, register_error_handlers

profiles_bp = Blueprint("profiles", __name__, url_prefix="/api/v1")
register_error_handlers(profiles_bp)


@profiles_bp.route("/profiles", methods=["GET"])
def list_profiles():
    roles = request.args.getlist("role")
    unknown = [r for r in roles if r not in ROLES]
    if unknown:
        return api_error(E.VALIDATION_INVALID, "Unknown role filter", details={"role": unknown})

    stmt = select(Profile).where(Profile.is_active.is_(True))
    if roles:
        stmt = stmt.where(Profile.role.in_(roles))
    profiles = db.session.execute(stmt.order_by(Profile.full_name)).scalars().all()
    return jsonify([p.to_dict() for p in profiles])
