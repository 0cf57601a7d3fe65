from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum

from rollcall.models.timestamps import as_utc


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"


class CheckInRejection(str, Enum):
    ACTIVITY_UNAVAILABLE = "ACTIVITY_UNAVAILABLE"
    ACTIVITY_NOT_YET_OPEN = "ACTIVITY_NOT_YET_OPEN"
    ACTIVITY_ENDED = "ACTIVITY_ENDED"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"
    PHOTO_REQUIRED = "PHOTO_REQUIRED"


REJECTION_MESSAGES = {
    CheckInRejection.ACTIVITY_UNAVAILABLE: "This activity is not open",
    CheckInRejection.ACTIVITY_NOT_YET_OPEN: "This activity has not started",
    CheckInRejection.ACTIVITY_ENDED: "This activity has ended",
    CheckInRejection.NOT_ELIGIBLE: "You are not eligible for this activity",
    CheckInRejection.ALREADY_CHECKED_IN: "You have already checked in",
    CheckInRejection.PHOTO_REQUIRED: "A photo is required to check in to this activity",
}


class AttendanceRecord(BaseModel):
    """One profile checked into one activity (row of ``attendance_records``)."""
    id: Optional[str] = None
    student_id: str
    activity_id: str
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    photo_url: Optional[str] = None
    status: AttendanceStatus = AttendanceStatus.PRESENT
    # Snapshot of the student's placement at check-in time
    classroom_id: Optional[str] = None
    department_id: Optional[str] = None
    year_level: Optional[int] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @field_validator('check_in_time', 'check_out_time')
    @classmethod
    def normalize_times(cls, v):
        return as_utc(v)

    def to_row(self) -> dict:
        row = self.model_dump(mode="json", exclude_none=True)
        row.pop("id", None)
        return row


class Attendee(BaseModel):
    """An attendance record enriched with the attendee's profile for the admin roster."""
    record_id: str
    student_id: str
    activity_id: str
    check_in_time: datetime
    status: AttendanceStatus = AttendanceStatus.PRESENT
    photo_url: Optional[str] = None
    full_name: str = ""
    student_code: Optional[str] = None
    classroom_id: Optional[str] = None
    classroom_name: Optional[str] = None
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    year_level: Optional[int] = None
    activity_title: Optional[str] = None

    @field_validator('check_in_time')
    @classmethod
    def normalize_check_in_time(cls, v: datetime) -> datetime:
        return as_utc(v)


class CheckInHistoryItem(AttendanceRecord):
    """One of the current user's own check-ins, with the activity it belongs to."""
    activity_title: Optional[str] = None
    activity_location: Optional[str] = None


class CheckInRequest(BaseModel):
    photo_url: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('photo_url')
    @classmethod
    def blank_photo_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class CheckInOutcome(BaseModel):
    admitted: bool
    reason: Optional[CheckInRejection] = None
    message: str
    record: Optional[AttendanceRecord] = None

    @property
    def photo_required(self) -> bool:
        return self.reason == CheckInRejection.PHOTO_REQUIRED

    @classmethod
    def reject(cls, reason: CheckInRejection) -> "CheckInOutcome":
        return cls(admitted=False, reason=reason, message=REJECTION_MESSAGES[reason])

    @classmethod
    def admit(cls, record: AttendanceRecord) -> "CheckInOutcome":
        return cls(admitted=True, message="Check-in successful", record=record)


class CheckInResponse(BaseModel):
    admitted: bool
    reason: Optional[CheckInRejection] = None
    message: str
    photo_required: bool = False
    record: Optional[AttendanceRecord] = None


class RosterResponse(BaseModel):
    activity_id: str
    total: int
    attendees: List[Attendee]
