"""
Sample Request Tracker
Request domain model.

Models:
    - SampleRequest: one logical sample order, tracked through REQUEST_TRANSITIONS
    - RequestItem: one product line inside a request
    - RequestStatusHistory: append-only log, one row per status transition

Lifecycle:
    draft → pending_approval → approved → assigned → in_production → ready
          → dispatched → received
    pending_approval → rejected (terminal)
    ready → received (self-pickup only)
"""

from sample_tracker.models import _utcnow, _uuid, db, iso

# ── Constants ────────────────────────────────────────────────────────────────

REQUEST_STATUSES = (
    "draft",
    "pending_approval",
    "approved",
    "assigned",
    "in_production",
    "ready",
    "dispatched",
    "received",
    "rejected",
)

TERMINAL_STATUSES = frozenset({"received", "rejected"})

# Still in flight: eligible for the overdue filter
ACTIVE_STATUSES = (
    "pending_approval",
    "approved",
    "assigned",
    "in_production",
    "ready",
    "dispatched",
)

PRIORITIES = {"urgent", "normal"}

CATEGORIES = {"marble", "magro"}

PICKUP_RESPONSIBILITIES = {
    "self_pickup",
    "courier",
    "company_vehicle",
    "field_boy",
    "3rd_party",
    "other",
}

CLIENT_TYPES = {"retail", "architect", "project", "others"}

# Item product types and the magro sub-categories
PRODUCT_TYPES = {"marble", "magro"}
MAGRO_SUB_CATEGORIES = {"tile", "stone", "quartz", "terrazzo"}

# action → {from: [...], to: status}
REQUEST_TRANSITIONS = {
    "submit": {"from": ["draft"], "to": "pending_approval"},
    "approve": {"from": ["pending_approval"], "to": "approved"},
    "reject": {"from": ["pending_approval"], "to": "rejected"},
    "assign": {"from": ["approved"], "to": "assigned"},
    "start_production": {"from": ["assigned"], "to": "in_production"},
    "complete": {"from": ["in_production"], "to": "ready"},
    "dispatch": {"from": ["ready"], "to": "dispatched"},
    # ready → received is restricted to self-pickup (checked in the lifecycle service)
    "receive": {"from": ["dispatched", "ready"], "to": "received"},
}

# Each target status is produced by exactly one action
ACTION_BY_TARGET = {rule["to"]: action for action, rule in REQUEST_TRANSITIONS.items()}


class SampleRequest(db.Model):
    """
    Central aggregate. ``item_count`` mirrors the number of RequestItem rows;
    ``required_by_history`` is append-only; ``version`` is bumped on every
    UPDATE and guards against concurrent writers.
    """

    __tablename__ = "requests"
    __table_args__ = (
        db.Index("idx_requests_status_created", "status", "created_at"),
        db.Index("idx_requests_created_by", "created_by"),
        db.Index("idx_requests_assigned_to", "assigned_to"),
        db.Index("idx_requests_category", "category"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    request_number = db.Column(db.String(20), nullable=False, unique=True, comment="Auto: SMP-{seq}")
    status = db.Column(db.String(30), nullable=False, default="draft")

    created_by = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    assigned_to = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    category = db.Column(db.String(20), nullable=True, comment="marble | magro, set at submission")
    priority = db.Column(db.String(20), nullable=False, default="normal")
    required_by = db.Column(db.DateTime(timezone=True), nullable=True)
    required_by_history = db.Column(db.JSON, nullable=False, default=list)

    # Requester details
    department = db.Column(db.String(50), nullable=True)
    mobile_no = db.Column(db.String(40), nullable=True)

    # Client details
    client_type = db.Column(db.String(30), nullable=True)
    client_type_remarks = db.Column(db.Text, nullable=True)
    client_contact_name = db.Column(db.String(200), nullable=True)
    client_phone = db.Column(db.String(40), nullable=True)
    client_email = db.Column(db.String(200), nullable=True)
    firm_name = db.Column(db.String(200), nullable=True)
    site_location = db.Column(db.String(300), nullable=True)
    purpose = db.Column(db.String(50), nullable=True)
    packing_details = db.Column(db.String(50), nullable=True)
    packing_remarks = db.Column(db.Text, nullable=True)

    # Delivery
    pickup_responsibility = db.Column(db.String(30), nullable=True)
    pickup_remarks = db.Column(db.Text, nullable=True)
    delivery_address = db.Column(db.Text, nullable=True)
    is_address_edited = db.Column(db.Boolean, nullable=False, default=False)
    address_edit_remark = db.Column(db.Text, nullable=True)
    is_delivery_method_edited = db.Column(db.Boolean, nullable=False, default=False)
    delivery_method_remark = db.Column(db.Text, nullable=True)

    # Messages, each written by one transition
    requester_message = db.Column(db.Text, nullable=True)
    coordinator_message = db.Column(db.Text, nullable=True)
    dispatch_notes = db.Column(db.Text, nullable=True)

    item_count = db.Column(db.Integer, nullable=False, default=0)
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_by = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    items = db.relationship(
        "RequestItem",
        back_populates="request",
        order_by="RequestItem.item_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    history = db.relationship(
        "RequestStatusHistory",
        back_populates="request",
        order_by=lambda: (RequestStatusHistory.changed_at, RequestStatusHistory.id),
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    creator = db.relationship("Profile", foreign_keys=[created_by])
    maker = db.relationship("Profile", foreign_keys=[assigned_to])

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_self_pickup(self) -> bool:
        return self.pickup_responsibility == "self_pickup"

    def to_dict(self, include_items=False):
        d = {
            "id": self.id,
            "request_number": self.request_number,
            "status": self.status,
            "created_by": self.created_by,
            "assigned_to": self.assigned_to,
            "category": self.category,
            "priority": self.priority,
            "required_by": iso(self.required_by),
            "required_by_history": list(self.required_by_history or []),
            "department": self.department,
            "mobile_no": self.mobile_no,
            "client_type": self.client_type,
            "client_type_remarks": self.client_type_remarks,
            "client_contact_name": self.client_contact_name,
            "client_phone": self.client_phone,
            "client_email": self.client_email,
            "firm_name": self.firm_name,
            "site_location": self.site_location,
            "purpose": self.purpose,
            "packing_details": self.packing_details,
            "packing_remarks": self.packing_remarks,
            "pickup_responsibility": self.pickup_responsibility,
            "pickup_remarks": self.pickup_remarks,
            "delivery_address": self.delivery_address,
            "is_address_edited": self.is_address_edited,
            "address_edit_remark": self.address_edit_remark,
            "is_delivery_method_edited": self.is_delivery_method_edited,
            "delivery_method_remark": self.delivery_method_remark,
            "requester_message": self.requester_message,
            "coordinator_message": self.coordinator_message,
            "dispatch_notes": self.dispatch_notes,
            "item_count": self.item_count,
            "version": self.version,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "completed_at": iso(self.completed_at),
            "dispatched_at": iso(self.dispatched_at),
            "received_at": iso(self.received_at),
            "received_by": self.received_by,
            "creator": _profile_summary(self.creator),
            "maker": _profile_summary(self.maker),
        }
        if include_items:
            d["items"] = [i.to_dict() for i in self.items]
        return d

    def __repr__(self):
        return f"<SampleRequest {self.request_number} [{self.status}]>"


def _profile_summary(profile):
    if profile is None:
        return None
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "role": profile.role,
        "department": profile.department,
    }


class RequestItem(db.Model):
    """One product line. Rows are only ever inserted in a batch or replaced wholesale."""

    __tablename__ = "request_items"
    __table_args__ = (
        db.UniqueConstraint("request_id", "item_index", name="uq_request_items_index"),
        db.CheckConstraint("quantity > 0", name="ck_request_items_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    request_id = db.Column(
        db.String(36), db.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    item_index = db.Column(db.Integer, nullable=False)

    product_type = db.Column(db.String(20), nullable=False, comment="marble | magro")
    sub_category = db.Column(db.String(20), nullable=True, comment="magro only: tile | stone | quartz | terrazzo")
    quality = db.Column(db.String(200), nullable=False)
    quality_custom = db.Column(db.String(200), nullable=True)
    sample_size = db.Column(db.String(50), nullable=False)
    sample_size_remarks = db.Column(db.Text, nullable=True)
    thickness = db.Column(db.String(50), nullable=False)
    thickness_remarks = db.Column(db.Text, nullable=True)
    finish = db.Column(db.String(50), nullable=True)
    finish_remarks = db.Column(db.Text, nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    image_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    request = db.relationship("SampleRequest", back_populates="items")

    def to_dict(self):
        return {
            "id": self.id,
            "request_id": self.request_id,
            "item_index": self.item_index,
            "product_type": self.product_type,
            "sub_category": self.sub_category,
            "quality": self.quality,
            "quality_custom": self.quality_custom,
            "sample_size": self.sample_size,
            "sample_size_remarks": self.sample_size_remarks,
            "thickness": self.thickness,
            "thickness_remarks": self.thickness_remarks,
            "finish": self.finish,
            "finish_remarks": self.finish_remarks,
            "quantity": self.quantity,
            "image_url": self.image_url,
            "created_at": iso(self.created_at),
        }


class RequestStatusHistory(db.Model):
    """Immutable audit row written by every lifecycle transition."""

    __tablename__ = "request_status_history"
    __table_args__ = (
        db.Index("idx_history_request_changed", "request_id", "changed_at"),
        db.Index("idx_history_status_changed_by", "status", "changed_by"),
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.String(36), db.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False,
    )
    status = db.Column(db.String(30), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    changed_by = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    request = db.relationship("SampleRequest", back_populates="history")
    changer = db.relationship("Profile", foreign_keys=[changed_by])

    def to_dict(self):
        return {
            "id": self.id,
            "request_id": self.request_id,
            "status": self.status,
            "changed_at": iso(self.changed_at),
            "changed_by": self.changed_by,
            "changer_name": self.changer.full_name if self.changer else None,
            "notes": self.notes,
        }
