"""
Tests for the best-effort activity recorder
"""
import threading

import pytest

from app.core.audit import (
    SERIALIZATION_FAILED,
    ActivitySink,
    RequestContext,
    record_activity,
    serialize_details,
    set_activity_sink,
)
from app.models.activity import UserActivity


def _context(user_id=1, name="Sita"):
    return RequestContext(
        user_id=user_id,
        user_name=name,
        user_role="Secretary",
        http_method="POST",
        endpoint="/api/loan",
        ip_address="127.0.0.1",
        user_agent="pytest",
    )


@pytest.fixture
def unstarted_sink(session_factory):
    """Sink whose writer never runs, so the queue only fills"""
    sink = ActivitySink(session_factory, maxsize=1)
    set_activity_sink(sink)
    yield sink
    set_activity_sink(None)


class TestSerializeDetails:

    def test_none_stays_none(self):
        assert serialize_details(None) is None

    def test_compact_json(self):
        assert serialize_details({"amount": 10, "ok": True}) == '{"amount":10,"ok":true}'

    def test_dates_fall_back_to_str(self):
        from datetime import date
        assert serialize_details({"due": date(2024, 6, 1)}) == '{"due":"2024-06-01"}'

    def test_unserializable_keys_become_placeholder(self):
        assert serialize_details({(1, 2): "tuple key"}) == SERIALIZATION_FAILED

    def test_circular_reference_becomes_placeholder(self):
        details = {}
        details["self"] = details
        assert serialize_details(details) == SERIALIZATION_FAILED


class TestRecordActivity:

    def test_no_sink_returns_none(self):
        set_activity_sink(None)
        assert record_activity(_context(), "Create", "Loan") is None

    def test_entry_is_written(self, db_session, activity_sink):
        entry = record_activity(
            _context(), "Create", "Loan", entity_id=7,
            description="Created loan", details={"amount": 500}, status_code=201,
        )
        activity_sink.join()

        assert entry.details == '{"amount":500}'
        row = db_session.query(UserActivity).one()
        assert row.action == "Create"
        assert row.entity_type == "Loan"
        assert row.entity_id == 7
        assert row.user_name == "Sita"
        assert row.http_method == "POST"
        assert row.endpoint == "/api/loan"
        assert row.status_code == 201
        assert row.is_success is True
        assert row.duration is not None and row.duration >= 0

    def test_failed_operation_is_recorded(self, db_session, activity_sink):
        record_activity(_context(), "Process", "LoanRequest", status_code=400,
                        is_success=False, error_message="already processed")
        activity_sink.join()

        row = db_session.query(UserActivity).one()
        assert row.is_success is False
        assert row.error_message == "already processed"

    def test_long_headers_are_clipped_to_column_width(self, db_session, activity_sink):
        context = RequestContext(
            user_id=1,
            http_method="GET",
            endpoint="/api/meeting/" + "x" * 400,
            user_agent="Mozilla/5.0 " + "A" * 1000,
        )
        entry = record_activity(context, "Read", "Meeting")
        activity_sink.join()

        assert len(entry.endpoint) == 255
        assert len(entry.user_agent) == 500
        row = db_session.query(UserActivity).one()
        assert row.user_agent.startswith("Mozilla/5.0 ")
        assert len(row.user_agent) == 500

    def test_short_values_are_untouched(self, unstarted_sink):
        entry = record_activity(_context(), "Create", "Loan")
        assert entry.endpoint == "/api/loan"
        assert entry.user_agent == "pytest"


class TestActivitySink:

    def test_write_failure_does_not_stop_writer(self, db_session, session_factory):
        calls = {"n": 0}

        def flaky_factory():
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("database unavailable")
            return session_factory()

        sink = ActivitySink(flaky_factory, maxsize=10)
        sink.start()
        set_activity_sink(sink)
        try:
            record_activity(_context(), "First", "User")
            record_activity(_context(), "Second", "User")
            sink.join()
            assert sink.running
        finally:
            sink.stop()
            set_activity_sink(None)

        actions = [a.action for a in db_session.query(UserActivity).all()]
        assert actions == ["Second"]

    def test_commit_failure_is_swallowed(self, db_session, activity_sink):
        # action is NOT NULL, so this entry fails on commit
        record_activity(_context(), None, "User")
        record_activity(_context(), "Login", "User")
        activity_sink.join()

        assert activity_sink.running
        assert [a.action for a in db_session.query(UserActivity).all()] == ["Login"]

    def test_full_queue_drops_entries(self, unstarted_sink):
        first = record_activity(_context(), "Create", "Meeting")
        second = record_activity(_context(), "Update", "Meeting")

        assert first is not None
        assert second is not None
        assert unstarted_sink.dropped == 1

    def test_enqueue_reports_drop(self, unstarted_sink):
        entry = record_activity(_context(), "Create", "Meeting")
        assert unstarted_sink.enqueue(entry) is False

    def test_stop_drains_queue(self, db_session, session_factory):
        sink = ActivitySink(session_factory, maxsize=50)
        sink.start()
        set_activity_sink(sink)
        try:
            for i in range(10):
                record_activity(_context(), f"Action{i}", "User")
        finally:
            sink.stop()
            set_activity_sink(None)

        assert not sink.running
        assert db_session.query(UserActivity).count() == 10

    def test_concurrent_requests_keep_their_own_actor(self, db_session, activity_sink):
        def worker(user_id):
            context = _context(user_id=user_id, name=f"user-{user_id}")
            for _ in range(5):
                record_activity(context, "Read", "Loan", entity_id=user_id)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(1, 11)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        activity_sink.join()

        rows = db_session.query(UserActivity).all()
        assert len(rows) == 50
        for row in rows:
            assert row.user_name == f"user-{row.user_id}"
            assert row.entity_id == row.user_id


class TestRequestContext:

    def test_for_user_replaces_actor_only(self, secretary):
        context = RequestContext(http_method="POST", endpoint="/api/user/login")
        attributed = context.for_user(secretary)

        assert attributed.user_id == secretary.id
        assert attributed.user_role == "Secretary"
        assert attributed.endpoint == "/api/user/login"
        assert context.user_id is None


class TestBrokenAuditStorage:
    """A failing audit store never changes the HTTP response"""

    def _payload(self, member, loan_type):
        return {
            "userId": member.id,
            "loanTypeId": loan_type.id,
            "date": "2024-05-01",
            "dueDate": "2024-06-30",
            "amount": 10000,
            "chequeNumber": "CHQ-77",
        }

    def test_create_loan_response_is_unchanged(self, client, db_session, activity_sink, secretary_headers,
                                               member, personal_loan_type):
        healthy = client.post("/api/loan", json=self._payload(member, personal_loan_type), headers=secretary_headers)
        activity_sink.join()

        def broken_factory():
            raise RuntimeError("audit database unavailable")

        broken = ActivitySink(broken_factory, maxsize=10)
        broken.start()
        set_activity_sink(broken)
        try:
            response = client.post(
                "/api/loan", json=self._payload(member, personal_loan_type), headers=secretary_headers
            )
            broken.join()
        finally:
            broken.stop()
            set_activity_sink(activity_sink)

        assert response.status_code == healthy.status_code == 201
        body, expected = response.json(), healthy.json()
        assert body.pop("id") != expected.pop("id")
        assert body == expected
        assert broken.running is False
        assert db_session.query(UserActivity).filter(UserActivity.entity_type == "Loan").count() == 1
