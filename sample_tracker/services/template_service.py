"""
Product Template Service

Named, reusable item specification lists owned by one profile. Templates
store cleaned spec snapshots only (no images) and never touch requests.
"""

import logging

from sqlalchemy import select

from sample_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from sample_tracker.models import db
from sample_tracker.models.template import ProductTemplate
from sample_tracker.services.permission import get_actor

logger = logging.getLogger(__name__)

TEMPLATE_ITEM_FIELDS = (
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
)


def _clean_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("A template needs at least one item", details={"items": "required"})
    cleaned = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Invalid template item", details={f"items[{idx}]": "must be an object"})
        cleaned.append({key: item.get(key) for key in TEMPLATE_ITEM_FIELDS})
    return cleaned


def _clean_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("template_name is required", details={"template_name": "required"})
    if len(name) > 200:
        raise ValidationError("template_name is too long", details={"template_name": "max 200 characters"})
    return name


def _ensure_unique(user_id: str, name: str, exclude_id: str | None = None) -> None:
    stmt = select(ProductTemplate.id).where(
        ProductTemplate.user_id == user_id, ProductTemplate.template_name == name,
    )
    if exclude_id:
        stmt = stmt.where(ProductTemplate.id != exclude_id)
    if db.session.execute(stmt).first() is not None:
        raise ConflictError("Template", "template_name", name)


def _get_owned(template_id: str, user_id: str) -> ProductTemplate:
    tpl = db.session.get(ProductTemplate, template_id)
    if tpl is None or tpl.user_id != user_id:
        raise NotFoundError(resource="Template", resource_id=template_id)
    return tpl


def list_templates(user_id: str) -> list[dict]:
    """Templates of *user_id*, newest first."""
    actor = get_actor(user_id)
    rows = db.session.execute(
        select(ProductTemplate)
        .where(ProductTemplate.user_id == actor.id)
        .order_by(ProductTemplate.created_at.desc())
    ).scalars().all()
    return [t.to_dict() for t in rows]


def create_template(user_id: str, template_name: str, items) -> dict:
    actor = get_actor(user_id)
    name = _clean_name(template_name)
    _ensure_unique(actor.id, name)
    tpl = ProductTemplate(user_id=actor.id, template_name=name, items=_clean_items(items))
    db.session.add(tpl)
    db.session.flush()
    logger.info("Template %r created by %s", name, actor.id)
    return tpl.to_dict()


def update_template(template_id: str, user_id: str, *, template_name=None, items=None) -> dict:
    """Rename a template and/or replace its items. Owner only."""
    actor = get_actor(user_id)
    tpl = _get_owned(template_id, actor.id)
    if template_name is not None:
        name = _clean_name(template_name)
        _ensure_unique(actor.id, name, exclude_id=tpl.id)
        tpl.template_name = name
    if items is not None:
        tpl.items = _clean_items(items)
    db.session.flush()
    return tpl.to_dict()


def delete_template(template_id: str, user_id: str) -> None:
    actor = get_actor(user_id)
    tpl = _get_owned(template_id, actor.id)
    db.session.delete(tpl)
    db.session.flush()
    logger.info("Template %s deleted by %s", template_id, actor.id)
