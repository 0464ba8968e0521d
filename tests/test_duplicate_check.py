"""
Duplicate Detection Tests — coverage for:
  - exact_match / client_match / none classification (Acme Co fixture)
  - Case and whitespace insensitive client matching
  - Recency window and excluded statuses
  - Window configuration
  - Duplicate-check endpoint
"""

from datetime import datetime, timedelta, timezone

import pytest

from sample_tracker.core.exceptions import ValidationError
from sample_tracker.models import db
from sample_tracker.models.request import SampleRequest
from sample_tracker.services.duplicate_check import check_for_duplicates

ACME_SPECS = {"quality": "Premium", "sample_size": "12x12", "thickness": "20mm", "quantity": 5}


def _acme_item(**overrides):
    item = {"product_type": "magro", "sub_category": "tile", **ACME_SPECS}
    item.update(overrides)
    return item


def _candidate(**overrides):
    candidate = {"client_name": "Acme Co", "client_phone": "+1-555-0100", **ACME_SPECS}
    candidate.update(overrides)
    return candidate


@pytest.fixture()
def acme(make_request):
    """A recent, submitted request for Acme Co with the reference specs."""
    return make_request("pending_approval", items=[_acme_item()])


def _age(request_id, days):
    req = db.session.get(SampleRequest, request_id)
    req.created_at = datetime.now(timezone.utc) - timedelta(days=days)
    db.session.commit()


class TestClassification:
    def test_exact_match(self, acme):
        result = check_for_duplicates(_candidate())
        assert result["is_duplicate"] is True
        assert result["duplicate_type"] == "exact_match"
        existing = result["existing_request"]
        assert existing["request_number"] == db.session.get(SampleRequest, acme).request_number
        assert existing["requester_name"] == "Riya Requester"
        assert existing["status"] == "pending_approval"
        assert existing["quality"] == "Premium"
        assert existing["quantity"] == 5

    def test_client_match_with_different_specs(self, acme):
        result = check_for_duplicates(_candidate(thickness="30mm"))
        assert result["is_duplicate"] is True
        assert result["duplicate_type"] == "client_match"

    def test_quantity_difference_is_client_match(self, acme):
        result = check_for_duplicates(_candidate(quantity=6))
        assert result["duplicate_type"] == "client_match"

    def test_different_client_is_not_duplicate(self, acme):
        result = check_for_duplicates(_candidate(client_name="Globex", client_phone="+1-555-0199"))
        assert result == {"is_duplicate": False, "duplicate_type": None, "existing_request": None}

    def test_same_name_different_phone_is_not_duplicate(self, acme):
        result = check_for_duplicates(_candidate(client_phone="+1-555-0101"))
        assert result["is_duplicate"] is False

    def test_matching_ignores_case_and_whitespace(self, acme):
        result = check_for_duplicates(_candidate(
            client_name="  ACME co ", quality="premium ", sample_size=" 12X12", quantity="5",
        ))
        assert result["duplicate_type"] == "exact_match"

    def test_exact_match_on_any_item(self, make_request):
        make_request("approved", items=[_acme_item(quality="Basic"), _acme_item()])
        assert check_for_duplicates(_candidate())["duplicate_type"] == "exact_match"


class TestCandidateSelection:
    @pytest.mark.parametrize("status", ["draft", "rejected"])
    def test_excluded_statuses(self, make_request, status):
        make_request(status, items=[_acme_item()])
        assert check_for_duplicates(_candidate())["is_duplicate"] is False

    @pytest.mark.parametrize("status", ["approved", "in_production", "received"])
    def test_included_statuses(self, make_request, status):
        make_request(status, items=[_acme_item()])
        assert check_for_duplicates(_candidate())["duplicate_type"] == "exact_match"

    def test_outside_window_ignored(self, acme):
        _age(acme, 20)
        assert check_for_duplicates(_candidate())["is_duplicate"] is False

    def test_inside_window_found(self, acme):
        _age(acme, 13)
        assert check_for_duplicates(_candidate())["is_duplicate"] is True

    def test_window_is_configurable(self, app, acme):
        _age(acme, 20)
        app.config["DUPLICATE_WINDOW_DAYS"] = 30
        try:
            assert check_for_duplicates(_candidate())["is_duplicate"] is True
        finally:
            app.config["DUPLICATE_WINDOW_DAYS"] = 14

    def test_most_recent_client_match_reported(self, make_request):
        older = make_request("approved", items=[_acme_item(quality="Old")])
        _age(older, 5)
        newer = make_request("approved", items=[_acme_item(quality="New")])
        result = check_for_duplicates(_candidate(quality="Other"))
        assert result["existing_request"]["request_number"] == db.session.get(SampleRequest, newer).request_number

    def test_client_details_required(self):
        with pytest.raises(ValidationError):
            check_for_duplicates({"client_name": "Acme Co"})


class TestDuplicateCheckEndpoint:
    def test_endpoint_classifies(self, client, acme):
        res = client.post("/api/v1/requests/duplicate-check", json=_candidate())
        assert res.status_code == 200
        assert res.get_json()["duplicate_type"] == "exact_match"

    def test_endpoint_validation(self, client):
        res = client.post("/api/v1/requests/duplicate-check", json={"quality": "Premium"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
