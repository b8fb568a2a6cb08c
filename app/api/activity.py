import logging
from datetime import datetime, timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.db.base import get_db
from app.core.dependencies import require_committee
from app.models.user import User
from app.schemas.activity import (
    ActivityFilter,
    ActivityFilterOptions,
    ActivityFilterResponse,
    ActivityResponse,
    ActivityStatistics,
)
from app.services import activity as activity_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/useractivity", tags=["useractivity"])


@router.get("")
def get_activities(
    user_id: Optional[int] = Query(None, alias="userId"),
    action: Optional[str] = None,
    entity_type: Optional[str] = Query(None, alias="entityType"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = 1,
    page_size: int = Query(50, alias="pageSize"),
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    activities, total = activity_service.get_activities(
        db, user_id=user_id, action=action, entity_type=entity_type,
        start_date=start_date, end_date=end_date, page=page, page_size=page_size,
    )
    logger.info("Retrieved %d user activities out of %d", len(activities), total)
    return activity_service.paged_activities(activities, total, page, page_size)


@router.get("/statistics", response_model=ActivityStatistics)
def get_statistics(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    """Aggregates over a window; defaults to the last 30 days."""
    if end_date is None:
        end_date = datetime.utcnow()
    if start_date is None:
        start_date = end_date - timedelta(days=30)
    return activity_service.get_statistics(db, start_date, end_date)


@router.get("/recent", response_model=List[ActivityResponse])
def get_recent(
    limit: int = 100,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return activity_service.get_recent_activities(db, limit)


@router.get("/user/{user_id}")
def get_user_activities(
    user_id: int,
    page: int = 1,
    page_size: int = Query(50, alias="pageSize"),
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    activities, total = activity_service.get_activities(db, user_id=user_id, page=page, page_size=page_size)
    return activity_service.paged_activities(activities, total, page, page_size)


@router.get("/failed")
def get_failed_activities(
    page: int = 1,
    page_size: int = Query(50, alias="pageSize"),
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    activities, total = activity_service.get_activities(db, is_success=False, page=page, page_size=page_size)
    return activity_service.paged_activities(activities, total, page, page_size)


@router.post("/filter", response_model=ActivityFilterResponse)
def filter_activities(
    activity_filter: ActivityFilter,
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    """Comprehensive filter with decorated records, summary and optional metrics."""
    response = activity_service.filter_activities(db, activity_filter)
    logger.info(
        "Retrieved %d user activities out of %d with comprehensive filter",
        len(response.activities), response.total_count,
    )
    return response


@router.get("/filter-options", response_model=ActivityFilterOptions)
def get_filter_options(
    current_user: User = Depends(require_committee),
    db: Session = Depends(get_db)
):
    return activity_service.get_filter_options(db)
