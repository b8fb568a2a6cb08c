from pydantic import Field
from typing import Optional, List
import datetime as dt
from app.schemas.common import CamelModel


class MeetingCreate(CamelModel):
    date: dt.date
    time: dt.time
    description: Optional[str] = None
    location: Optional[str] = None


class MeetingUpdate(CamelModel):
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    description: Optional[str] = None
    location: Optional[str] = None


class MeetingResponse(CamelModel):
    id: int
    date: dt.date
    time: dt.time
    description: Optional[str] = None
    location: Optional[str] = None
    meeting_minutes: Optional[str] = None


class MeetingMinutesRequest(CamelModel):
    meeting_id: int
    minutes: str


class MeetingMinutesResponse(CamelModel):
    meeting_id: int
    date: dt.date
    minutes: Optional[str] = None


class MeetingSummary(CamelModel):
    meeting_id: int
    date: dt.date
    time: dt.time
    description: Optional[str] = None
    location: Optional[str] = None
    total_main_payment: float
    total_weekly_payment: float
    present_count: int
    absent_count: int
    total_attendees: int


class MeetingAttendee(CamelModel):
    user_id: int
    name: str
    email: str
    phone: str
    is_present: bool
    main_payment: float = 0.0
    weekly_payment: float = 0.0
    absence_reason: Optional[str] = None


class ComprehensiveMeetingSummary(CamelModel):
    meeting: MeetingResponse
    total_eligible_users: int
    attended_count: int
    absent_count: int
    attendance_percentage: float
    total_main_payment: float
    total_weekly_payment: float
    attended_users: List[MeetingAttendee]
    absent_users: List[MeetingAttendee]


class AttendanceCreate(CamelModel):
    user_id: int
    meeting_id: int
    is_present: bool = True


class AttendanceUpdate(CamelModel):
    is_present: bool


class AttendanceResponse(CamelModel):
    id: int
    user_id: int
    meeting_id: int
    is_present: bool
    user_name: Optional[str] = None


class BulkAttendanceItem(CamelModel):
    user_id: int
    is_present: bool = True


class BulkAttendanceRequest(CamelModel):
    meeting_id: int
    attendances: List[BulkAttendanceItem]


class MeetingPaymentCreate(CamelModel):
    user_id: int
    meeting_id: int
    main_payment: float = Field(0, ge=0)
    weekly_payment: float = Field(0, ge=0)


class MeetingPaymentUpdate(CamelModel):
    main_payment: Optional[float] = Field(None, ge=0)
    weekly_payment: Optional[float] = Field(None, ge=0)


class MeetingPaymentResponse(CamelModel):
    id: int
    user_id: int
    meeting_id: int
    main_payment: float
    weekly_payment: float
    user_name: Optional[str] = None


class BulkPaymentItem(CamelModel):
    user_id: int
    main_payment: float = 0
    weekly_payment: float = 0


class BulkMeetingPaymentRequest(CamelModel):
    meeting_id: int
    payments: List[BulkPaymentItem]
