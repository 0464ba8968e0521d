"""
Deadline Compliance Tests — coverage for:
  - Gate symmetry: non-coordinators blocked past required_by, coordinators pass
  - Gate exemptions (submission, rejection) and null deadlines
  - Deadline edit: permissions, validation, append-only history
  - Approval with a deadline edit (minute-precision no-op)
  - Overdue predicate, in memory and as a SQL filter
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from sample_tracker.core.exceptions import DeadlineExceeded, PermissionDenied, ValidationError
from sample_tracker.models import as_utc, db
from sample_tracker.models.request import SampleRequest
from sample_tracker.services.deadline import is_overdue, overdue_filter, same_minute, update_deadline
from sample_tracker.services.request_lifecycle import transition_request


def _req(rid):
    return db.session.get(SampleRequest, rid)


# ═══════════════════════════════════════════════════════════════════════════
# Gate
# ═══════════════════════════════════════════════════════════════════════════


class TestDeadlineGate:
    def test_requester_blocked_at_ready(self, make_request, profiles, past):
        rid = make_request("ready", pickup="self_pickup", required_by=past)
        with pytest.raises(DeadlineExceeded):
            transition_request(rid, "received", profiles["requester"])
        db.session.rollback()
        assert _req(rid).status == "ready"

    def test_maker_blocked_at_ready(self, make_request, profiles, past):
        rid = make_request("ready", required_by=past)
        with pytest.raises(DeadlineExceeded):
            transition_request(rid, "dispatched", profiles["maker"])
        db.session.rollback()
        assert _req(rid).status == "ready"

    def test_maker_blocked_before_production(self, make_request, profiles, past):
        rid = make_request("assigned", required_by=past)
        with pytest.raises(DeadlineExceeded):
            transition_request(rid, "in_production", profiles["maker"])

    @pytest.mark.parametrize("role", ["coordinator", "admin", "marble_coordinator"])
    def test_coordinators_override(self, make_request, profiles, past, role):
        rid = make_request("ready", required_by=past)
        transition_request(rid, "dispatched", profiles[role], dispatch_notes="late but sent")
        assert _req(rid).status == "dispatched"

    def test_future_deadline_passes(self, make_request, profiles, future):
        rid = make_request("assigned", required_by=future)
        transition_request(rid, "in_production", profiles["maker"])
        assert _req(rid).status == "in_production"

    def test_no_deadline_passes(self, make_request, profiles):
        rid = make_request("assigned")
        transition_request(rid, "in_production", profiles["maker"])
        assert _req(rid).status == "in_production"

    def test_submission_is_exempt(self, make_request, profiles, past):
        rid = make_request("draft", required_by=past)
        transition_request(rid, "pending_approval", profiles["requester"])
        assert _req(rid).status == "pending_approval"

    def test_rejection_is_exempt(self, make_request, profiles, past):
        rid = make_request("pending_approval", required_by=past)
        transition_request(rid, "rejected", profiles["coordinator"])
        assert _req(rid).status == "rejected"

    def test_gate_runs_before_role_check(self, make_request, profiles, past):
        """A requester trying a coordinator move past the deadline hits the gate first."""
        rid = make_request("approved", required_by=past)
        with pytest.raises(DeadlineExceeded):
            transition_request(rid, "assigned", profiles["requester"], maker_id=profiles["maker"])


# ═══════════════════════════════════════════════════════════════════════════
# Deadline edits
# ═══════════════════════════════════════════════════════════════════════════


class TestDeadlineEdit:
    def test_history_monotonicity(self, make_request, profiles):
        start = datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)
        rid = make_request("approved", required_by=start)

        dates = [start + timedelta(days=n) for n in (2, 5, 9)]
        snapshots = []
        for n, new_date in enumerate(dates):
            prior = as_utc(_req(rid).required_by)
            update_deadline(rid, new_date, f"reason {n}", profiles["coordinator"])
            db.session.commit()
            history = _req(rid).required_by_history
            assert len(history) == n + 1
            assert history[-1]["old_date"] == prior.isoformat()
            assert history[-1]["new_date"] == new_date.isoformat()
            assert history[:-1] == snapshots
            snapshots = list(history)

        assert as_utc(_req(rid).required_by) == dates[-1]
        assert [e["reason"] for e in snapshots] == ["reason 0", "reason 1", "reason 2"]

    def test_first_edit_records_null_old_date(self, make_request, profiles, future):
        rid = make_request("approved")
        result = update_deadline(rid, future, "client asked", profiles["coordinator"])
        assert result["entry"]["old_date"] is None
        assert result["entry"]["changed_by_name"] == "Chitra Coordinator"

    def test_changed_by_name_override(self, make_request, profiles, future):
        rid = make_request("approved")
        result = update_deadline(rid, future, "client asked", profiles["admin"], changed_by_name="Ops Desk")
        assert result["entry"]["changed_by_name"] == "Ops Desk"

    @pytest.mark.parametrize("who", ["requester", "maker", "dispatcher"])
    def test_non_coordinators_denied(self, make_request, profiles, future, who):
        rid = make_request("approved")
        with pytest.raises(PermissionDenied):
            update_deadline(rid, future, "please", profiles[who])
        db.session.rollback()
        assert _req(rid).required_by_history == []

    def test_reason_required(self, make_request, profiles, future):
        rid = make_request("approved")
        with pytest.raises(ValidationError):
            update_deadline(rid, future, "   ", profiles["coordinator"])

    def test_date_required(self, make_request, profiles):
        rid = make_request("approved")
        with pytest.raises(ValidationError):
            update_deadline(rid, None, "reason", profiles["coordinator"])

    def test_bad_date_rejected(self, make_request, profiles):
        rid = make_request("approved")
        with pytest.raises(ValidationError):
            update_deadline(rid, "next tuesday", "reason", profiles["coordinator"])


class TestApproveWithDeadlineEdit:
    def test_edit_applied_before_approval(self, make_request, profiles, future):
        rid = make_request("pending_approval", required_by=future)
        later = future + timedelta(days=7)
        transition_request(
            rid, "approved", profiles["coordinator"],
            deadline_edit={"new_date": later.isoformat(), "reason": "client requested delay"},
        )
        req = _req(rid)
        assert req.status == "approved"
        assert same_minute(req.required_by, later)
        assert len(req.required_by_history) == 1
        assert req.required_by_history[0]["reason"] == "client requested delay"

    def test_same_minute_is_not_an_edit(self, make_request, profiles, future):
        rid = make_request("pending_approval", required_by=future.replace(second=0, microsecond=0))
        transition_request(
            rid, "approved", profiles["coordinator"],
            deadline_edit={"new_date": future.replace(second=30).isoformat(), "reason": "no-op"},
        )
        assert _req(rid).required_by_history == []

    def test_edit_without_reason_rejected(self, make_request, profiles, future):
        rid = make_request("pending_approval")
        with pytest.raises(ValidationError):
            transition_request(
                rid, "approved", profiles["coordinator"],
                deadline_edit={"new_date": future.isoformat()},
            )
        db.session.rollback()
        assert _req(rid).status == "pending_approval"


# ═══════════════════════════════════════════════════════════════════════════
# Overdue
# ═══════════════════════════════════════════════════════════════════════════


class TestOverdue:
    def test_in_memory_predicate(self, make_request, past, future):
        late = make_request("in_production", required_by=past)
        on_time = make_request("in_production", required_by=future)
        done = make_request("received", required_by=past)
        undated = make_request("in_production")
        assert is_overdue(_req(late))
        assert not is_overdue(_req(on_time))
        assert not is_overdue(_req(done))
        assert not is_overdue(_req(undated))

    def test_sql_filter_matches_predicate(self, make_request, past, future):
        late = make_request("approved", required_by=past)
        make_request("approved", required_by=future)
        make_request("rejected", required_by=past)
        make_request("draft", required_by=past)
        ids = db.session.execute(select(SampleRequest.id).where(overdue_filter())).scalars().all()
        assert ids == [late]
