"""
Sample Request Tracker
Profile domain model.

Models:
    - Profile: a user of the tracker with exactly one role.
"""

from sample_tracker.models import _utcnow, _uuid, db, iso

# ── Constants ────────────────────────────────────────────────────────────────

ROLES = {
    "admin",
    "coordinator",
    "marble_coordinator",
    "magro_coordinator",
    "requester",
    "maker",
    "dispatcher",
}

# Roles allowed to approve, reject, assign, dispatch and override deadlines
COORDINATOR_ROLES = frozenset({"admin", "coordinator", "marble_coordinator", "magro_coordinator"})

# Category coordinators only see requests routed to their category
CATEGORY_COORDINATOR_ROLES = {
    "marble_coordinator": "marble",
    "magro_coordinator": "magro",
}


class Profile(db.Model):
    """A tracker user. Identity is managed externally; only the role matters here."""

    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    role = db.Column(db.String(30), nullable=False, default="requester", index=True)
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(40), nullable=True)
    department = db.Column(db.String(50), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def is_coordinator(self) -> bool:
        return self.role in COORDINATOR_ROLES

    def to_dict(self):
        return {
            "id": self.id,
            "role": self.role,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "department": self.department,
            "is_active": self.is_active,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<Profile {self.id}: {self.full_name} ({self.role})>"
