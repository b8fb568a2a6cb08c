"""Read side of the activity log: filtering, statistics and display helpers."""
import json
import logging
import math
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.activity import UserActivity
from app.models.user import User
from app.schemas.activity import (
    ActivityDetail,
    ActivityFilter,
    ActivityFilterOptions,
    ActivityFilterResponse,
    ActivityResponse,
    ActivityStatistics,
    ActivityUser,
)

logger = logging.getLogger(__name__)

MAX_FILTER_PAGE_SIZE = 1000

SORT_COLUMNS = {
    "timestamp": UserActivity.timestamp,
    "userid": UserActivity.user_id,
    "username": UserActivity.user_name,
    "action": UserActivity.action,
    "entitytype": UserActivity.entity_type,
    "statuscode": UserActivity.status_code,
    "durationms": UserActivity.duration,
    "duration": UserActivity.duration,
}
SORT_OPTIONS = ["Timestamp", "UserId", "UserName", "Action", "EntityType", "StatusCode", "DurationMs"]


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def format_duration(duration_ms: Optional[int]) -> str:
    ms = duration_ms or 0
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60000:
        return f"{ms / 1000.0:.1f}s"
    return f"{ms / 60000.0:.1f}m"


def status_code_category(status_code: int) -> str:
    if 200 <= status_code < 300:
        return "Success"
    if 300 <= status_code < 400:
        return "Redirect"
    if 400 <= status_code < 500:
        return "Client Error"
    if status_code >= 500:
        return "Server Error"
    return "Unknown"


def performance_category(duration_ms: Optional[int]) -> str:
    ms = duration_ms or 0
    if ms < 100:
        return "Excellent"
    if ms < 500:
        return "Good"
    if ms < 1000:
        return "Average"
    if ms < 5000:
        return "Slow"
    return "Very Slow"


def parse_details(details: Optional[str]) -> Any:
    """Parsed JSON details, or the raw string when it is not JSON."""
    if not details:
        return None
    try:
        return json.loads(details)
    except ValueError:
        return details


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size else 0


def get_activities(
    db: Session,
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    is_success: Optional[bool] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[UserActivity], int]:
    """Simple filter, newest first."""
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_FILTER_PAGE_SIZE)
    query = db.query(UserActivity)
    if user_id is not None:
        query = query.filter(UserActivity.user_id == user_id)
    if action:
        query = query.filter(UserActivity.action == action)
    if entity_type:
        query = query.filter(UserActivity.entity_type == entity_type)
    if start_date:
        query = query.filter(UserActivity.timestamp >= start_date)
    if end_date:
        query = query.filter(UserActivity.timestamp <= end_date)
    if is_success is not None:
        query = query.filter(UserActivity.is_success == is_success)

    total = query.count()
    activities = (
        query.order_by(UserActivity.timestamp.desc(), UserActivity.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return activities, total


def paged_activities(activities: List[UserActivity], total: int, page: int, page_size: int) -> dict:
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_FILTER_PAGE_SIZE)
    return {
        "activities": [ActivityResponse.model_validate(a).model_dump(by_alias=True, mode="json") for a in activities],
        "totalCount": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": _total_pages(total, page_size),
    }


def get_recent_activities(db: Session, limit: int = 100) -> List[UserActivity]:
    limit = min(max(limit, 1), MAX_FILTER_PAGE_SIZE)
    return (
        db.query(UserActivity)
        .order_by(UserActivity.timestamp.desc(), UserActivity.id.desc())
        .limit(limit)
        .all()
    )


def _contains(column, text: str):
    return column.isnot(None) & column.contains(text, autoescape=True)


def apply_filter(query, flt: ActivityFilter):
    """Apply every set field of the filter descriptor to an activity query."""
    if flt.user_id is not None:
        query = query.filter(UserActivity.user_id == flt.user_id)
    if flt.user_name:
        query = query.filter(_contains(UserActivity.user_name, flt.user_name))
    if flt.user_role:
        query = query.filter(UserActivity.user_role == flt.user_role)
    if flt.action:
        query = query.filter(UserActivity.action == flt.action)
    if flt.entity_type:
        query = query.filter(UserActivity.entity_type == flt.entity_type)
    if flt.entity_id is not None:
        query = query.filter(UserActivity.entity_id == flt.entity_id)
    if flt.http_method:
        query = query.filter(UserActivity.http_method == flt.http_method.upper())
    if flt.endpoint:
        query = query.filter(_contains(UserActivity.endpoint, flt.endpoint))
    if flt.ip_address:
        query = query.filter(_contains(UserActivity.ip_address, flt.ip_address))
    if flt.is_success is not None:
        query = query.filter(UserActivity.is_success == flt.is_success)
    if flt.status_code is not None:
        query = query.filter(UserActivity.status_code == flt.status_code)
    if flt.min_status_code is not None:
        query = query.filter(UserActivity.status_code >= flt.min_status_code)
    if flt.max_status_code is not None:
        query = query.filter(UserActivity.status_code <= flt.max_status_code)
    if flt.min_duration_ms is not None:
        query = query.filter(UserActivity.duration >= flt.min_duration_ms)
    if flt.max_duration_ms is not None:
        query = query.filter(UserActivity.duration <= flt.max_duration_ms)
    if flt.start_date is not None:
        query = query.filter(UserActivity.timestamp >= flt.start_date)
    if flt.end_date is not None:
        query = query.filter(UserActivity.timestamp <= flt.end_date)
    if flt.description:
        query = query.filter(_contains(UserActivity.description, flt.description))
    if flt.error_message:
        query = query.filter(_contains(UserActivity.error_message, flt.error_message))
    if flt.user_agent:
        query = query.filter(_contains(UserActivity.user_agent, flt.user_agent))
    if flt.details_search:
        query = query.filter(_contains(UserActivity.details, flt.details_search))
    return query


def apply_sort(query, sort_by: Optional[str], sort_direction: Optional[str]):
    column = SORT_COLUMNS.get((sort_by or "timestamp").lower(), UserActivity.timestamp)
    if (sort_direction or "desc").lower() == "asc":
        return query.order_by(column.asc(), UserActivity.id.asc())
    return query.order_by(column.desc(), UserActivity.id.desc())


def normalize_filter(flt: ActivityFilter) -> ActivityFilter:
    """Clamp page to >= 1 and page size to 1..1000."""
    return flt.model_copy(update={
        "page": max(flt.page, 1),
        "page_size": min(max(flt.page_size, 1), MAX_FILTER_PAGE_SIZE),
    })


def _to_detail(activity: UserActivity, flt: ActivityFilter, users: Dict[int, User]) -> ActivityDetail:
    detail = ActivityDetail.model_validate(activity)
    detail.formatted_duration = format_duration(activity.duration)
    detail.status_code_category = status_code_category(activity.status_code)
    detail.performance_category = performance_category(activity.duration)
    if flt.include_formatted_details:
        detail.formatted_details = parse_details(activity.details)
    if flt.include_user_details:
        user = users.get(activity.user_id)
        detail.user = ActivityUser(
            id=user.id if user else 0,
            name=user.name if user else (activity.user_name or ""),
            email=user.email if user else "",
            address=(user.address or "") if user else "",
            phone=(user.phone or "") if user else "",
            user_role_id=user.user_role_id if user else 0,
        )
    return detail


def _summary(activities: List[UserActivity], total: int) -> Dict[str, Any]:
    timestamps = [a.timestamp for a in activities]
    return {
        "totalActivities": total,
        "retrievedActivities": len(activities),
        "successCount": sum(1 for a in activities if a.is_success),
        "failureCount": sum(1 for a in activities if not a.is_success),
        "uniqueUsers": len({a.user_id for a in activities}),
        "uniqueActions": len({a.action for a in activities}),
        "uniqueEntityTypes": len({a.entity_type for a in activities}),
        "dateRange": {
            "earliest": min(timestamps).isoformat(),
            "latest": max(timestamps).isoformat(),
        } if timestamps else None,
    }


def _performance_metrics(activities: List[UserActivity]) -> Dict[str, Any]:
    if not activities:
        return {
            "averageDurationMs": 0,
            "minDurationMs": 0,
            "maxDurationMs": 0,
            "successRate": 0,
            "averageStatusCode": 0,
        }
    durations = [a.duration or 0 for a in activities]
    return {
        "averageDurationMs": sum(durations) / len(durations),
        "minDurationMs": min(durations),
        "maxDurationMs": max(durations),
        "successRate": sum(1 for a in activities if a.is_success) / len(activities) * 100,
        "averageStatusCode": sum(a.status_code for a in activities) / len(activities),
    }


def filter_activities(db: Session, flt: ActivityFilter) -> ActivityFilterResponse:
    """Full descriptor filter with decorations, summary and optional metrics.

    Summary and metrics describe the retrieved page; totals cover the whole
    filtered set.
    """
    flt = normalize_filter(flt)
    query = apply_filter(db.query(UserActivity), flt)
    total = query.count()
    activities = (
        apply_sort(query, flt.sort_by, flt.sort_direction)
        .offset((flt.page - 1) * flt.page_size)
        .limit(flt.page_size)
        .all()
    )

    users: Dict[int, User] = {}
    if flt.include_user_details:
        user_ids = {a.user_id for a in activities if a.user_id is not None}
        if user_ids:
            users = {u.id: u for u in db.query(User).filter(User.id.in_(user_ids)).all()}

    total_pages = _total_pages(total, flt.page_size)
    return ActivityFilterResponse(
        activities=[_to_detail(a, flt, users) for a in activities],
        total_count=total,
        page=flt.page,
        page_size=flt.page_size,
        total_pages=total_pages,
        has_next_page=flt.page < total_pages,
        has_previous_page=flt.page > 1,
        applied_filters=flt,
        summary=_summary(activities, total),
        performance_metrics=_performance_metrics(activities) if flt.include_performance_metrics else None,
    )


def get_statistics(
    db: Session,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> ActivityStatistics:
    """Aggregate counts over a timestamp window (bounds inclusive)."""
    query = db.query(UserActivity)
    if start_date is not None:
        query = query.filter(UserActivity.timestamp >= start_date)
    if end_date is not None:
        query = query.filter(UserActivity.timestamp <= end_date)
    activities = query.all()

    total = len(activities)
    successful = sum(1 for a in activities if a.is_success)
    durations = [a.duration or 0 for a in activities]

    def breakdown(key) -> Dict[str, int]:
        return dict(Counter(key(a) for a in activities).most_common())

    by_day = Counter(a.timestamp.date().isoformat() for a in activities)
    return ActivityStatistics(
        start_date=start_date,
        end_date=end_date,
        total_activities=total,
        successful_activities=successful,
        failed_activities=total - successful,
        success_rate=round(successful / total * 100, 2) if total else 0.0,
        average_duration=round(sum(durations) / total, 2) if total else 0.0,
        by_action=breakdown(lambda a: a.action),
        by_entity_type=breakdown(lambda a: a.entity_type),
        by_user=breakdown(lambda a: a.user_name or f"User {a.user_id}"),
        by_day=dict(sorted(by_day.items())),
        by_status_code=breakdown(lambda a: str(a.status_code)),
    )


def get_filter_options(db: Session) -> ActivityFilterOptions:
    def distinct(column) -> list:
        rows = db.query(column).filter(column.isnot(None)).distinct().order_by(column).all()
        return [row[0] for row in rows]

    users = (
        db.query(UserActivity.user_id, func.max(UserActivity.user_name))
        .filter(UserActivity.user_id.isnot(None))
        .group_by(UserActivity.user_id)
        .order_by(UserActivity.user_id)
        .all()
    )
    return ActivityFilterOptions(
        actions=distinct(UserActivity.action),
        entity_types=distinct(UserActivity.entity_type),
        http_methods=distinct(UserActivity.http_method),
        user_roles=distinct(UserActivity.user_role),
        status_codes=distinct(UserActivity.status_code),
        users=[{"id": user_id, "name": name} for user_id, name in users],
        sort_options=SORT_OPTIONS,
        sort_directions=["asc", "desc"],
    )
