"""
Duplicate Request Detection

Advisory pre-submission check. A candidate is compared against recent
requests for the same client (name + phone, trimmed, case-insensitive):

  exact_match   an existing item has the same quality, sample size,
                thickness and quantity
  client_match  same client, different specs
  (none)        no recent request for the client

Window, compared fields and excluded statuses come from app config
(DUPLICATE_WINDOW_DAYS, DUPLICATE_SPEC_FIELDS, DUPLICATE_EXCLUDED_STATUSES).
Creation never calls this implicitly.
"""

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import func, select

from sample_tracker.core.exceptions import ValidationError
from sample_tracker.models import db, iso
from sample_tracker.models.request import SampleRequest

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 14
DEFAULT_SPEC_FIELDS = ("quality", "sample_size", "thickness", "quantity")
DEFAULT_EXCLUDED_STATUSES = ("draft", "rejected")


def _norm(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _normalise_quantity(value):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("quantity must be an integer", details={"quantity": str(value)}) from exc


def _summary(request: SampleRequest, item=None) -> dict:
    item = item or (request.items[0] if request.items else None)
    return {
        "request_number": request.request_number,
        "created_at": iso(request.created_at),
        "requester_name": request.creator.full_name if request.creator else None,
        "status": request.status,
        "client_contact_name": request.client_contact_name,
        "product_type": item.product_type if item else None,
        "quality": item.quality if item else None,
        "sample_size": item.sample_size if item else None,
        "thickness": item.thickness if item else None,
        "quantity": item.quantity if item else None,
    }


def _specs_match(item, candidate: dict, fields) -> bool:
    return all(_norm(getattr(item, f)) == _norm(candidate.get(f)) for f in fields)


def check_for_duplicates(candidate: dict, now: datetime | None = None) -> dict:
    """
    Classify *candidate* against recent requests.

    Args:
        candidate: {"client_name", "client_phone", "quality", "sample_size",
                    "thickness", "quantity"}

    Returns:
        {"is_duplicate": bool, "duplicate_type": "exact_match"|"client_match"|None,
         "existing_request": dict|None}
    """
    client_name = _norm(candidate.get("client_name"))
    client_phone = _norm(candidate.get("client_phone"))
    if not client_name or not client_phone:
        raise ValidationError(
            "client_name and client_phone are required",
            details={k: "required" for k in ("client_name", "client_phone") if not _norm(candidate.get(k))},
        )

    cfg = current_app.config
    window_days = int(cfg.get("DUPLICATE_WINDOW_DAYS", DEFAULT_WINDOW_DAYS))
    fields = tuple(cfg.get("DUPLICATE_SPEC_FIELDS", DEFAULT_SPEC_FIELDS))
    excluded = tuple(cfg.get("DUPLICATE_EXCLUDED_STATUSES", DEFAULT_EXCLUDED_STATUSES))

    specs = dict(candidate)
    specs["quantity"] = _normalise_quantity(candidate.get("quantity"))

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=window_days)
    matches = db.session.execute(
        select(SampleRequest)
        .where(
            func.lower(func.trim(SampleRequest.client_contact_name)) == client_name,
            func.lower(func.trim(SampleRequest.client_phone)) == client_phone,
            SampleRequest.created_at >= cutoff,
            SampleRequest.status.notin_(excluded),
        )
        .order_by(SampleRequest.created_at.desc())
    ).scalars().all()

    if not matches:
        return {"is_duplicate": False, "duplicate_type": None, "existing_request": None}

    for req in matches:
        for item in req.items:
            if _specs_match(item, specs, fields):
                logger.info("Duplicate check: exact match with %s", req.request_number)
                return {
                    "is_duplicate": True,
                    "duplicate_type": "exact_match",
                    "existing_request": _summary(req, item),
                }

    logger.info("Duplicate check: client match with %s", matches[0].request_number)
    return {
        "is_duplicate": True,
        "duplicate_type": "client_match",
        "existing_request": _summary(matches[0]),
    }
