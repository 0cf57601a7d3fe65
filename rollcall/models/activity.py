"""
Activity Models for the RollCall check-in service
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum

from rollcall.models.timestamps import as_utc


class ActivityStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class ActivityTimeState(str, Enum):
    UPCOMING = "upcoming"
    OPEN = "open"
    ENDED = "ended"
    UNAVAILABLE = "unavailable"


def _empty_if_none(v):
    return [] if v is None else v


def _check_year_levels(levels: Optional[List[int]]) -> Optional[List[int]]:
    if levels:
        for level in levels:
            if level < 1 or level > 5:
                raise ValueError(f"Year level must be between 1 and 5, got {level}")
    return levels


class Activity(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    activity_type: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: ActivityStatus = ActivityStatus.ACTIVE
    requires_photo: bool = False
    target_classrooms: List[str] = Field(default_factory=list)
    target_departments: List[str] = Field(default_factory=list)
    target_year_levels: List[int] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @field_validator('target_classrooms', 'target_departments', 'target_year_levels', mode='before')
    @classmethod
    def normalize_targets(cls, v):
        # Rows written by older clients may carry NULL instead of an empty array
        return _empty_if_none(v)

    @field_validator('start_time', 'end_time', 'created_at')
    @classmethod
    def normalize_times(cls, v):
        return as_utc(v)


class ActivityCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    activity_type: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: ActivityStatus = ActivityStatus.ACTIVE
    requires_photo: bool = False
    target_classrooms: List[str] = Field(default_factory=list)
    target_departments: List[str] = Field(default_factory=list)
    target_year_levels: List[int] = Field(default_factory=list)

    @field_validator('target_year_levels')
    @classmethod
    def validate_year_levels(cls, v: List[int]) -> List[int]:
        return _check_year_levels(v)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_times(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode='after')
    def validate_window(self) -> "ActivityCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ActivityUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    activity_type: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[ActivityStatus] = None
    requires_photo: Optional[bool] = None
    target_classrooms: Optional[List[str]] = None
    target_departments: Optional[List[str]] = None
    target_year_levels: Optional[List[int]] = None

    @field_validator('target_year_levels')
    @classmethod
    def validate_year_levels(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        return _check_year_levels(v)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode='after')
    def validate_window(self) -> "ActivityUpdate":
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ActivityStatusUpdate(BaseModel):
    status: ActivityStatus


class ActivityForUser(Activity):
    """An activity as shown in the check-in list of one user."""
    time_state: ActivityTimeState
    is_eligible: bool
    already_checked_in: bool = False
