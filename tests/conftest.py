"""
Shared pytest fixtures for the Sample Request Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - profiles: One committed profile per role, keyed by name
    - make_request: Factory that creates a request and walks it to a status
"""

from datetime import datetime, timedelta, timezone

import pytest

from sample_tracker import create_app
from sample_tracker.models import db as _db
from sample_tracker.models.profile import Profile
from sample_tracker.models.request import SampleRequest
from sample_tracker.services.cache_service import invalidate_all_cache
from sample_tracker.services.request_lifecycle import transition_request
from sample_tracker.services.request_service import create_request_with_items

# name → (role, full name)
PROFILE_SEED = {
    "requester": ("requester", "Riya Requester"),
    "requester2": ("requester", "Rohan Requester"),
    "coordinator": ("coordinator", "Chitra Coordinator"),
    "marble_coordinator": ("marble_coordinator", "Manav Marble"),
    "magro_coordinator": ("magro_coordinator", "Meera Magro"),
    "maker": ("maker", "Mohan Maker"),
    "maker2": ("maker", "Mira Maker"),
    "dispatcher": ("dispatcher", "Dev Dispatcher"),
    "admin": ("admin", "Asha Admin"),
}

# Forward path; each step is (target status, acting profile name)
_WALK = [
    ("pending_approval", "creator"),
    ("approved", "coordinator"),
    ("assigned", "coordinator"),
    ("in_production", "maker"),
    ("ready", "maker"),
    ("dispatched", "coordinator"),
    ("received", "creator"),
]


def marble_item(**overrides):
    item = {
        "product_type": "marble",
        "quality": "Statuario",
        "sample_size": "12x12",
        "thickness": "18mm",
        "finish": "polished",
        "quantity": 2,
    }
    item.update(overrides)
    return item


def magro_item(**overrides):
    item = {
        "product_type": "magro",
        "sub_category": "tile",
        "quality": "Premium",
        "sample_size": "12x12",
        "thickness": "20mm",
        "quantity": 5,
    }
    item.update(overrides)
    return item


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        invalidate_all_cache()
        yield
        invalidate_all_cache()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def profiles():
    """Create one profile per seed entry; returns {name: profile_id}."""
    ids = {}
    for name, (role, full_name) in PROFILE_SEED.items():
        profile = Profile(id=f"{name}-id", role=role, full_name=full_name)
        _db.session.add(profile)
        ids[name] = profile.id
    _db.session.commit()
    return ids


@pytest.fixture()
def make_request(profiles):
    """Factory: create a request and walk it forward to *status*.

    Returns the request id. ``required_by`` is written after the walk so a
    past deadline never blocks the setup itself.
    """

    def _make(status="draft", *, creator="requester", items=None, maker="maker",
              pickup="courier", required_by=None, **fields):
        creator_id = profiles[creator]
        fields.setdefault("client_contact_name", "Acme Co")
        fields.setdefault("client_phone", "+1-555-0100")
        fields["pickup_responsibility"] = pickup
        result = create_request_with_items(fields, items or [marble_item()], creator_id)
        _db.session.commit()
        request_id = result["id"]

        if status == "rejected":
            transition_request(request_id, "pending_approval", creator_id)
            transition_request(request_id, "rejected", profiles["coordinator"], message="Not now")
        elif status != "draft":
            for target, who in _WALK:
                if target == "dispatched" and pickup == "self_pickup":
                    continue
                actor = creator_id if who == "creator" else profiles[maker if who == "maker" else who]
                transition_request(
                    request_id, target, actor,
                    maker_id=profiles[maker] if target == "assigned" else None,
                )
                if target == status:
                    break
        _db.session.commit()

        if required_by is not None:
            req = _db.session.get(SampleRequest, request_id)
            req.required_by = required_by
            _db.session.commit()
        return request_id

    return _make


@pytest.fixture()
def past():
    return datetime.now(timezone.utc) - timedelta(days=1)


@pytest.fixture()
def future():
    return datetime.now(timezone.utc) + timedelta(days=3)
