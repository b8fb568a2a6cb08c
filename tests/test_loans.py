"""
API tests for loans, repayments and the loans-due dashboard
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from app.models.loan import LoanStatus
from app.services.interest import compute_interest
from tests.conftest import make_loan


TODAY = date.today()


class TestLoanCrud:

    def test_create_loan(self, client, secretary_headers, member, personal_loan_type):
        payload = {
            "userId": member.id,
            "loanTypeId": personal_loan_type.id,
            "date": (TODAY - timedelta(days=30)).isoformat(),
            "dueDate": (TODAY + timedelta(days=30)).isoformat(),
            "amount": 10000,
            "chequeNumber": "CHQ-001",
        }
        response = client.post("/api/loan", json=payload, headers=secretary_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "active"
        assert data["userName"] == "Mohan Member"
        assert data["interestRate"] == 2.5
        # 60 days to the due date at 2.5% a month
        assert data["interestAmount"] == 500.0
        assert data["totalAmount"] == 10500.0
        assert data["interestAsOf"] == payload["dueDate"]
        assert data["isClosed"] is False
        assert data["isOverdue"] is False

    def test_member_cannot_create_loan(self, client, member_headers, member, personal_loan_type):
        payload = {
            "userId": member.id,
            "loanTypeId": personal_loan_type.id,
            "date": TODAY.isoformat(),
            "dueDate": (TODAY + timedelta(days=30)).isoformat(),
            "amount": 1000,
        }
        assert client.post("/api/loan", json=payload, headers=member_headers).status_code == 403

    def test_due_before_issue_is_400(self, client, secretary_headers, member, personal_loan_type):
        payload = {
            "userId": member.id,
            "loanTypeId": personal_loan_type.id,
            "date": TODAY.isoformat(),
            "dueDate": (TODAY - timedelta(days=1)).isoformat(),
            "amount": 1000,
        }
        assert client.post("/api/loan", json=payload, headers=secretary_headers).status_code == 400

    def test_unknown_borrower_is_404(self, client, secretary_headers, personal_loan_type):
        payload = {
            "userId": 9999,
            "loanTypeId": personal_loan_type.id,
            "date": TODAY.isoformat(),
            "dueDate": (TODAY + timedelta(days=30)).isoformat(),
            "amount": 1000,
        }
        assert client.post("/api/loan", json=payload, headers=secretary_headers).status_code == 404

    def test_non_positive_amount_is_422(self, client, secretary_headers, member, personal_loan_type):
        payload = {
            "userId": member.id,
            "loanTypeId": personal_loan_type.id,
            "date": TODAY.isoformat(),
            "dueDate": (TODAY + timedelta(days=30)).isoformat(),
            "amount": 0,
        }
        assert client.post("/api/loan", json=payload, headers=secretary_headers).status_code == 422

    def test_loan_types(self, client, member_headers):
        response = client.get("/api/loan/types", headers=member_headers)
        assert response.status_code == 200
        rates = {t["loanTypeName"]: t["interestRate"] for t in response.json()}
        assert rates == {"Marriage Loan": 1.5, "Personal Loan": 2.5}

    def test_delete_loan(self, client, db_session, secretary_headers, member, personal_loan_type):
        loan = make_loan(db_session, member, personal_loan_type, TODAY, TODAY + timedelta(days=30))

        assert client.delete(f"/api/loan/{loan.id}", headers=secretary_headers).status_code == 200
        assert client.get(f"/api/loan/{loan.id}", headers=secretary_headers).status_code == 404

    def test_get_loan_reports_interest_amount(self, client, db_session, secretary_headers, member,
                                              personal_loan_type):
        loan = make_loan(db_session, member, personal_loan_type, TODAY - timedelta(days=60), TODAY - timedelta(days=30))

        data = client.get(f"/api/loan/{loan.id}", headers=secretary_headers).json()

        assert "interest" not in data
        assert data["interestAmount"] == 250.0
        assert data["isOverdue"] is True

    @pytest.mark.parametrize("field", ["date", "dueDate", "amount", "loanTypeId", "status"])
    def test_update_with_null_leaves_field_unchanged(self, client, db_session, secretary_headers, member,
                                                     personal_loan_type, field):
        loan = make_loan(db_session, member, personal_loan_type, TODAY, TODAY + timedelta(days=30))

        response = client.put(f"/api/loan/{loan.id}", json={field: None}, headers=secretary_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["date"] == TODAY.isoformat()
        assert data["dueDate"] == (TODAY + timedelta(days=30)).isoformat()
        assert data["amount"] == 10000.0
        assert data["status"] == "active"

    def test_update_can_clear_cheque_number(self, client, db_session, secretary_headers, member,
                                            personal_loan_type):
        loan = make_loan(db_session, member, personal_loan_type, TODAY, TODAY + timedelta(days=30))
        client.put(f"/api/loan/{loan.id}", json={"chequeNumber": "CHQ-5"}, headers=secretary_headers)

        data = client.put(f"/api/loan/{loan.id}", json={"chequeNumber": None}, headers=secretary_headers).json()

        assert data["chequeNumber"] is None


class TestRepayment:

    def test_repayment_closes_loan(self, client, secretary_headers, db_session, member, personal_loan_type):
        issued = TODAY - timedelta(days=30)
        loan = make_loan(db_session, member, personal_loan_type, issued, TODAY + timedelta(days=30))

        response = client.post(
            "/api/loan/repayment",
            json={"loanId": loan.id, "closedDate": TODAY.isoformat(), "interestReceived": 250},
            headers=secretary_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["isClosed"] is True
        assert data["status"] == "closed"
        assert data["interestReceived"] == 250.0
        # interest accrues to the closed date
        assert data["interestAsOf"] == TODAY.isoformat()
        assert data["interestAmount"] == 250.0

    def test_repaying_closed_loan_is_400(self, client, secretary_headers, db_session, member, personal_loan_type):
        loan = make_loan(
            db_session, member, personal_loan_type, TODAY - timedelta(days=10), TODAY,
            status=LoanStatus.CLOSED, closed_date=TODAY,
        )
        response = client.post(
            "/api/loan/repayment",
            json={"loanId": loan.id, "closedDate": TODAY.isoformat()},
            headers=secretary_headers,
        )
        assert response.status_code == 400

    def test_repaying_missing_loan_is_404(self, client, secretary_headers):
        response = client.post(
            "/api/loan/repayment",
            json={"loanId": 9999, "closedDate": TODAY.isoformat()},
            headers=secretary_headers,
        )
        assert response.status_code == 404


class TestLoansDue:

    @pytest.fixture
    def loans(self, db_session, member, secretary, personal_loan_type):
        issued = TODAY - timedelta(days=40)
        return {
            "overdue": make_loan(db_session, member, personal_loan_type, issued, TODAY - timedelta(days=3)),
            "today": make_loan(db_session, member, personal_loan_type, issued, TODAY, amount="2000"),
            "week": make_loan(db_session, secretary, personal_loan_type, issued, TODAY + timedelta(days=5)),
            "later": make_loan(db_session, member, personal_loan_type, issued, TODAY + timedelta(days=20)),
            "closed": make_loan(
                db_session, member, personal_loan_type, issued, TODAY - timedelta(days=10),
                status=LoanStatus.CLOSED, closed_date=TODAY - timedelta(days=10),
            ),
        }

    def test_buckets(self, client, secretary_headers, loans):
        response = client.get("/api/dashboard/loans-due", headers=secretary_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["asOf"] == TODAY.isoformat()
        assert [l["id"] for l in data["overdueLoans"]] == [loans["overdue"].id]
        assert [l["id"] for l in data["dueTodayLoans"]] == [loans["today"].id]
        assert [l["id"] for l in data["dueThisWeekLoans"]] == [loans["week"].id]

        overdue = data["overdueLoans"][0]
        assert overdue["daysOverdue"] == 3
        assert overdue["interestAsOf"] == TODAY.isoformat()

    def test_overdue_totals_accrue_to_today(self, client, secretary_headers, loans):
        data = client.get("/api/dashboard/loans-due", headers=secretary_headers).json()

        expected = compute_interest(Decimal("2.5"), Decimal("10000"), TODAY - timedelta(days=40), TODAY)
        assert data["totalOverdueAmount"] == 10000.0
        assert data["totalOverdueInterest"] == float(expected)

    def test_member_sees_only_own_loans(self, client, member_headers, loans):
        data = client.get("/api/dashboard/loans-due", headers=member_headers).json()

        assert len(data["overdueLoans"]) == 1
        assert len(data["dueTodayLoans"]) == 1
        assert data["dueThisWeekLoans"] == []

    def test_member_cannot_query_other_user(self, client, member_headers, secretary, loans):
        response = client.get(f"/api/dashboard/loans-due?userId={secretary.id}", headers=member_headers)
        assert response.status_code == 403

    def test_committee_can_filter_by_user(self, client, secretary_headers, secretary, loans):
        data = client.get(f"/api/dashboard/loans-due?userId={secretary.id}", headers=secretary_headers).json()

        assert data["overdueLoans"] == []
        assert [l["id"] for l in data["dueThisWeekLoans"]] == [loans["week"].id]

    def test_dashboard_loans_scoped_for_members(self, client, member_headers, secretary_headers, loans):
        mine = client.get("/api/dashboard/loans", headers=member_headers).json()
        everyone = client.get("/api/dashboard/loans", headers=secretary_headers).json()

        assert len(mine) == 4
        assert len(everyone) == 5
