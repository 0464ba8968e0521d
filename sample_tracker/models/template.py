"""
Sample Request Tracker
Product template model.

Models:
    - ProductTemplate: a named, reusable list of item specifications owned by
      one profile. Independent of the request lifecycle.
"""

from sample_tracker.models import _utcnow, _uuid, db, iso


class ProductTemplate(db.Model):
    __tablename__ = "product_templates"
    __table_args__ = (
        db.UniqueConstraint("user_id", "template_name", name="uq_template_name_per_user"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    template_name = db.Column(db.String(200), nullable=False)
    items = db.Column(db.JSON, nullable=False, default=list, comment="Item spec snapshots, no images")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "template_name": self.template_name,
            "items": list(self.items or []),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ProductTemplate {self.template_name!r}>"
