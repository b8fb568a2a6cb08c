"""
Tests for the weekly reminder and overdue-report job
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from app.models.loan import LoanStatus
from app.services import scheduler
from app.services.interest import compute_interest
from tests.conftest import make_loan


TODAY = date(2024, 6, 10)


@pytest.fixture
def outbox(monkeypatch):
    """Capture outgoing mail instead of talking to SMTP"""
    sent = {"reminders": [], "reports": []}

    def fake_reminder(to_email, user_name, amount, due_date, days_until_due):
        sent["reminders"].append({"to": to_email, "due_date": due_date, "days": days_until_due})
        return True

    def fake_report(to_emails, overdue_loans):
        sent["reports"].append({"to": list(to_emails), "loans": overdue_loans})
        return len(to_emails)

    monkeypatch.setattr(scheduler, "send_loan_due_reminder_email", fake_reminder)
    monkeypatch.setattr(scheduler, "send_weekly_report", fake_report)
    return sent


@pytest.fixture
def loans(db_session, member, secretary, personal_loan_type):
    issued = date(2024, 5, 1)
    return {
        "soon": make_loan(db_session, member, personal_loan_type, issued, TODAY + timedelta(days=2)),
        "today": make_loan(db_session, member, personal_loan_type, issued, TODAY),
        "overdue": make_loan(db_session, secretary, personal_loan_type, issued, TODAY - timedelta(days=9)),
        "later": make_loan(db_session, member, personal_loan_type, issued, TODAY + timedelta(days=20)),
        "closed": make_loan(db_session, member, personal_loan_type, issued, TODAY + timedelta(days=2),
                            status=LoanStatus.CLOSED, closed_date=TODAY - timedelta(days=1)),
    }


class TestRunWeeklyTasks:

    def test_reminders_and_report(self, session_factory, outbox, loans):
        summary = scheduler.run_weekly_tasks(session_factory, today=TODAY)

        assert summary == {"date": "2024-06-10", "reminders_sent": 2, "reports_sent": 1, "errors": []}
        assert sorted(r["days"] for r in outbox["reminders"]) == [0, 2]
        assert {r["to"] for r in outbox["reminders"]} == {"member@sangam.org"}

        report = outbox["reports"][0]
        assert report["to"] == ["secretary@sangam.org"]
        assert len(report["loans"]) == 1
        item = report["loans"][0]
        assert item["loan_id"] == loans["overdue"].id
        assert item["days_overdue"] == 9
        assert item["interest"] == float(compute_interest(Decimal("2.5"), Decimal("10000"), date(2024, 5, 1), TODAY))

    def test_reminder_failure_does_not_block_report(self, session_factory, outbox, loans, monkeypatch):
        def broken_reminder(**kwargs):
            raise RuntimeError("smtp exploded")

        monkeypatch.setattr(scheduler, "send_loan_due_reminder_email", broken_reminder)
        summary = scheduler.run_weekly_tasks(session_factory, today=TODAY)

        assert summary["reminders_sent"] == 0
        assert summary["reports_sent"] == 1
        assert summary["errors"] == ["due_reminders: smtp exploded"]

    def test_no_committee_recipients(self, session_factory, db_session, outbox, member, personal_loan_type):
        make_loan(db_session, member, personal_loan_type, date(2024, 5, 1), TODAY - timedelta(days=1))

        summary = scheduler.run_weekly_tasks(session_factory, today=TODAY)

        assert summary["reports_sent"] == 0
        assert outbox["reports"] == []

    def test_report_sent_when_nothing_overdue(self, session_factory, outbox, secretary):
        summary = scheduler.run_weekly_tasks(session_factory, today=TODAY)

        assert summary["reminders_sent"] == 0
        assert summary["reports_sent"] == 1
        assert outbox["reports"][0]["loans"] == []


class TestManualRun:

    def test_committee_can_trigger(self, client, secretary_headers, outbox):
        response = client.post("/api/dashboard/weekly-job/run", headers=secretary_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["date"] == date.today().isoformat()
        assert data["errors"] == []

    def test_member_cannot_trigger(self, client, member_headers, outbox):
        assert client.post("/api/dashboard/weekly-job/run", headers=member_headers).status_code == 403


class TestSchedulerStatus:

    def test_not_running_by_default(self):
        assert scheduler.get_scheduler_status() == {"running": False, "jobs": []}
