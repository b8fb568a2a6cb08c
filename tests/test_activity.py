"""
Tests for the activity log read side: filtering, statistics and decorations
"""
import pytest
from datetime import datetime, timedelta

from app.models.activity import UserActivity
from app.schemas.activity import ActivityFilter
from app.services import activity as activity_service


BASE = datetime(2024, 6, 1, 9, 0, 0)


def _activity(**overrides):
    values = dict(
        user_id=1,
        user_name="Sita Secretary",
        user_role="Secretary",
        action="Create",
        entity_type="Loan",
        http_method="POST",
        endpoint="/api/loan",
        ip_address="10.0.0.1",
        user_agent="pytest",
        status_code=200,
        is_success=True,
        timestamp=BASE,
        duration=50,
    )
    values.update(overrides)
    return UserActivity(**values)


@pytest.fixture
def activities(db_session, secretary, member):
    rows = [
        _activity(user_id=secretary.id, action="Login", entity_type="User", endpoint="/api/user/login",
                  timestamp=BASE, duration=20),
        _activity(user_id=secretary.id, action="Create", entity_type="Loan", details='{"amount":5000}',
                  timestamp=BASE + timedelta(hours=1), duration=250),
        _activity(user_id=member.id, user_name="Mohan Member", user_role="Member", action="Create",
                  entity_type="LoanRequest", endpoint="/api/dashboard/loan-requests",
                  timestamp=BASE + timedelta(days=1), duration=700),
        _activity(user_id=member.id, user_name="Mohan Member", user_role="Member", action="Process",
                  entity_type="LoanRequest", http_method="POST", status_code=403, is_success=False,
                  error_message="forbidden", timestamp=BASE + timedelta(days=1, hours=2), duration=1500),
        _activity(user_id=None, user_name=None, user_role=None, action="Login", entity_type="User",
                  status_code=401, is_success=False, description="Failed login for ghost_user",
                  timestamp=BASE + timedelta(days=2), duration=6000),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


class TestDisplayHelpers:

    @pytest.mark.parametrize("ms,expected", [(None, "0ms"), (999, "999ms"), (1500, "1.5s"), (90000, "1.5m")])
    def test_format_duration(self, ms, expected):
        assert activity_service.format_duration(ms) == expected

    @pytest.mark.parametrize("code,expected", [
        (201, "Success"), (302, "Redirect"), (404, "Client Error"), (503, "Server Error"), (100, "Unknown"),
    ])
    def test_status_code_category(self, code, expected):
        assert activity_service.status_code_category(code) == expected

    @pytest.mark.parametrize("ms,expected", [
        (99, "Excellent"), (100, "Good"), (500, "Average"), (1000, "Slow"), (5000, "Very Slow"),
    ])
    def test_performance_category(self, ms, expected):
        assert activity_service.performance_category(ms) == expected

    def test_parse_details(self):
        assert activity_service.parse_details('{"a":1}') == {"a": 1}
        assert activity_service.parse_details("Serialization failed") == "Serialization failed"
        assert activity_service.parse_details(None) is None


class TestFilterActivities:

    def test_defaults_newest_first(self, db_session, activities):
        result = activity_service.filter_activities(db_session, ActivityFilter())

        assert result.total_count == 5
        assert result.activities[0].timestamp == BASE + timedelta(days=2)
        assert result.has_next_page is False
        assert result.has_previous_page is False
        assert result.performance_metrics is None

    def test_failures_only(self, db_session, activities):
        result = activity_service.filter_activities(db_session, ActivityFilter(is_success=False))

        assert result.total_count == 2
        assert {a.status_code for a in result.activities} == {401, 403}

    def test_status_code_range_and_user(self, db_session, activities, member):
        result = activity_service.filter_activities(
            db_session, ActivityFilter(user_id=member.id, min_status_code=400, max_status_code=499),
        )
        assert [a.action for a in result.activities] == ["Process"]

    def test_substring_filters(self, db_session, activities):
        by_endpoint = activity_service.filter_activities(db_session, ActivityFilter(endpoint="loan-requests"))
        by_details = activity_service.filter_activities(db_session, ActivityFilter(details_search="5000"))
        by_description = activity_service.filter_activities(db_session, ActivityFilter(description="ghost"))

        assert by_endpoint.total_count == 1
        assert by_details.total_count == 1
        assert by_description.total_count == 1

    def test_substring_filter_escapes_wildcards(self, db_session, activities):
        result = activity_service.filter_activities(db_session, ActivityFilter(description="ghost%"))
        assert result.total_count == 0

    def test_duration_and_date_window(self, db_session, activities):
        result = activity_service.filter_activities(
            db_session,
            ActivityFilter(min_duration_ms=100, max_duration_ms=1000,
                           start_date=BASE, end_date=BASE + timedelta(days=1)),
        )
        assert result.total_count == 2

    def test_sort_ascending_by_duration(self, db_session, activities):
        result = activity_service.filter_activities(
            db_session, ActivityFilter(sort_by="DurationMs", sort_direction="asc"),
        )
        durations = [a.duration for a in result.activities]
        assert durations == sorted(durations)

    def test_unknown_sort_falls_back_to_timestamp(self, db_session, activities):
        result = activity_service.filter_activities(db_session, ActivityFilter(sort_by="Nonsense"))
        assert result.activities[0].timestamp == BASE + timedelta(days=2)

    def test_paging_is_clamped(self, db_session, activities):
        result = activity_service.filter_activities(db_session, ActivityFilter(page=0, page_size=5000))

        assert result.page == 1
        assert result.page_size == 1000
        assert result.applied_filters.page_size == 1000

    def test_second_page(self, db_session, activities):
        result = activity_service.filter_activities(db_session, ActivityFilter(page=2, page_size=2))

        assert len(result.activities) == 2
        assert result.total_pages == 3
        assert result.has_next_page is True
        assert result.has_previous_page is True

    def test_decorations(self, db_session, activities, member):
        result = activity_service.filter_activities(
            db_session,
            ActivityFilter(
                user_id=member.id,
                sort_direction="asc",
                include_user_details=True,
                include_formatted_details=True,
                include_performance_metrics=True,
            ),
        )

        first, second = result.activities
        assert first.formatted_duration == "700ms"
        assert first.performance_category == "Average"
        assert second.status_code_category == "Client Error"
        assert first.user.email == "member@sangam.org"

        metrics = result.performance_metrics
        assert metrics["averageDurationMs"] == 1100
        assert metrics["successRate"] == 50
        assert result.summary["uniqueUsers"] == 1
        assert result.summary["failureCount"] == 1

    def test_formatted_details_are_parsed(self, db_session, activities):
        result = activity_service.filter_activities(
            db_session, ActivityFilter(details_search="amount", include_formatted_details=True),
        )
        assert result.activities[0].formatted_details == {"amount": 5000}


class TestStatistics:

    def test_window_is_inclusive(self, db_session, activities):
        stats = activity_service.get_statistics(db_session, BASE, BASE + timedelta(days=1))

        assert stats.total_activities == 3
        assert stats.successful_activities == 3
        assert stats.by_day == {"2024-06-01": 2, "2024-06-02": 1}

    def test_breakdowns(self, db_session, activities):
        stats = activity_service.get_statistics(db_session)

        assert stats.total_activities == 5
        assert stats.failed_activities == 2
        assert stats.success_rate == 60.0
        assert stats.by_action == {"Login": 2, "Create": 2, "Process": 1}
        assert stats.by_entity_type["LoanRequest"] == 2
        assert stats.by_status_code["200"] == 3
        assert stats.average_duration == 1694.0

    def test_empty_window(self, db_session, activities):
        stats = activity_service.get_statistics(db_session, datetime(2020, 1, 1), datetime(2020, 1, 2))
        assert stats.total_activities == 0
        assert stats.success_rate == 0.0


class TestActivityApi:

    def test_member_forbidden(self, client, member_headers):
        assert client.get("/api/useractivity", headers=member_headers).status_code == 403

    def test_simple_listing(self, client, secretary_headers, activities):
        data = client.get("/api/useractivity?pageSize=2", headers=secretary_headers).json()

        assert data["totalCount"] == 5
        assert data["totalPages"] == 3
        assert len(data["activities"]) == 2

    def test_failed(self, client, secretary_headers, activities):
        data = client.get("/api/useractivity/failed", headers=secretary_headers).json()
        assert data["totalCount"] == 2

    def test_filter_endpoint_accepts_camel_case(self, client, secretary_headers, activities):
        response = client.post(
            "/api/useractivity/filter",
            json={"entityType": "LoanRequest", "includePerformanceMetrics": True},
            headers=secretary_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["totalCount"] == 2
        assert data["performanceMetrics"] is not None
        assert data["appliedFilters"]["entityType"] == "LoanRequest"

    def test_filter_options(self, client, secretary_headers, activities):
        data = client.get("/api/useractivity/filter-options", headers=secretary_headers).json()

        assert data["actions"] == ["Create", "Login", "Process"]
        assert data["statusCodes"] == [200, 401, 403]
        assert "Timestamp" in data["sortOptions"]

    def test_statistics_endpoint(self, client, secretary_headers, activities):
        response = client.get(
            "/api/useractivity/statistics?startDate=2024-06-01T00:00:00&endDate=2024-06-30T00:00:00",
            headers=secretary_headers,
        )
        assert response.status_code == 200
        assert response.json()["totalActivities"] == 5
