from pydantic import Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from app.schemas.common import CamelModel


class ActivityResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    description: Optional[str] = None
    details: Optional[str] = None
    http_method: Optional[str] = None
    endpoint: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    status_code: int
    is_success: bool
    error_message: Optional[str] = None
    timestamp: datetime
    duration: Optional[int] = Field(None, description="Milliseconds")


class ActivityUser(CamelModel):
    id: int
    name: str
    email: str
    address: str
    phone: str
    user_role_id: int


class ActivityDetail(ActivityResponse):
    formatted_details: Optional[Any] = None
    formatted_duration: Optional[str] = None
    status_code_category: Optional[str] = None
    performance_category: Optional[str] = None
    user: Optional[ActivityUser] = None


class ActivityFilter(CamelModel):
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    action: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    http_method: Optional[str] = None
    endpoint: Optional[str] = None
    ip_address: Optional[str] = None
    is_success: Optional[bool] = None
    status_code: Optional[int] = None
    min_status_code: Optional[int] = None
    max_status_code: Optional[int] = None
    min_duration_ms: Optional[int] = None
    max_duration_ms: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None
    error_message: Optional[str] = None
    user_agent: Optional[str] = None
    details_search: Optional[str] = None
    sort_by: str = "Timestamp"
    sort_direction: str = "desc"
    page: int = 1
    page_size: int = 50
    include_user_details: bool = False
    include_formatted_details: bool = False
    include_performance_metrics: bool = False


class ActivityFilterResponse(CamelModel):
    activities: List[ActivityDetail]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool
    applied_filters: ActivityFilter
    summary: Optional[Dict[str, Any]] = None
    performance_metrics: Optional[Dict[str, Any]] = None


class ActivityStatistics(CamelModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    total_activities: int
    successful_activities: int
    failed_activities: int
    success_rate: float
    average_duration: float
    by_action: Dict[str, int]
    by_entity_type: Dict[str, int]
    by_user: Dict[str, int]
    by_day: Dict[str, int]
    by_status_code: Dict[str, int]


class ActivityFilterOptions(CamelModel):
    actions: List[str]
    entity_types: List[str]
    http_methods: List[str]
    user_roles: List[str]
    status_codes: List[int]
    users: List[Dict[str, Any]]
    sort_options: List[str]
    sort_directions: List[str]
