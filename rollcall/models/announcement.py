"""
Announcement Models for the RollCall check-in service
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum

from rollcall.models.timestamps import as_utc


class TargetAudience(str, Enum):
    ALL = "all"
    STUDENTS = "students"
    TEACHERS = "teachers"
    STAFF = "staff"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Announcement(BaseModel):
    id: str
    title: str
    content: str = ""
    announcement_type: Optional[str] = None
    priority: Priority = Priority.NORMAL
    target_audience: Optional[TargetAudience] = None
    target_classrooms: List[str] = Field(default_factory=list)
    target_departments: List[str] = Field(default_factory=list)
    target_year_levels: List[int] = Field(default_factory=list)
    is_published: bool = False
    is_pinned: bool = False
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @field_validator('target_classrooms', 'target_departments', 'target_year_levels', mode='before')
    @classmethod
    def normalize_targets(cls, v):
        return [] if v is None else v

    @field_validator('published_at', 'expires_at', 'created_at')
    @classmethod
    def normalize_times(cls, v):
        return as_utc(v)


class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    announcement_type: Optional[str] = "general"
    priority: Priority = Priority.NORMAL
    target_audience: TargetAudience = TargetAudience.ALL
    target_classrooms: List[str] = Field(default_factory=list)
    target_departments: List[str] = Field(default_factory=list)
    target_year_levels: List[int] = Field(default_factory=list)
    is_published: bool = False
    is_pinned: bool = False
    expires_at: Optional[datetime] = None

    @field_validator('expires_at')
    @classmethod
    def normalize_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    announcement_type: Optional[str] = None
    priority: Optional[Priority] = None
    target_audience: Optional[TargetAudience] = None
    target_classrooms: Optional[List[str]] = None
    target_departments: Optional[List[str]] = None
    target_year_levels: Optional[List[int]] = None
    is_pinned: Optional[bool] = None
    expires_at: Optional[datetime] = None

    @field_validator('expires_at')
    @classmethod
    def normalize_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class PublishUpdate(BaseModel):
    is_published: bool


class FeedAnnouncement(Announcement):
    """A published announcement in a user's feed, labelled when past expiry."""
    is_expired: bool = False
