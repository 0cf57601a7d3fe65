"""In-memory test doubles and builders shared by the test modules."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from rollcall.core.exceptions import ConflictError
from rollcall.models.activity import Activity, ActivityStatus
from rollcall.models.announcement import Announcement
from rollcall.models.attendance import AttendanceRecord, Attendee, CheckInHistoryItem
from rollcall.models.organization import Classroom, Department
from rollcall.models.profile import ProfileResponse, UserRole
from rollcall.services.store import Store, Subscription, attendee_from_row


def at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    """A time on 2024-01-01 (UTC), the day all activity fixtures run."""
    return datetime(2024, 1, 1, hour, minute, second, tzinfo=timezone.utc)


def make_activity(**overrides) -> Activity:
    data = dict(
        id="A1",
        title="Morning assembly",
        start_time=at(8, 0),
        end_time=at(8, 30),
        status=ActivityStatus.ACTIVE,
        requires_photo=False,
    )
    data.update(overrides)
    return Activity(**data)


def make_profile(**overrides) -> ProfileResponse:
    data = dict(id="P1", role=UserRole.STUDENT, full_name="Somchai Student")
    data.update(overrides)
    return ProfileResponse(**data)


class FakeStore(Store):
    """In-memory store with a unique (student_id, activity_id) constraint."""

    def __init__(self):
        self.profiles: Dict[str, ProfileResponse] = {}
        self.activities: Dict[str, Activity] = {}
        self.records: List[AttendanceRecord] = []
        self.announcements: Dict[str, Announcement] = {}
        self.passwords: Dict[str, str] = {}
        self.subscriptions: List[Dict[str, Any]] = []
        self.departments: Dict[str, Department] = {}
        self.classrooms: Dict[str, Classroom] = {}

    async def sign_in(self, email: str, password: str) -> str:
        raise NotImplementedError

    async def fetch_profile(self, profile_id: str) -> Optional[ProfileResponse]:
        return self.profiles.get(profile_id)

    async def fetch_activity(self, activity_id: str) -> Optional[Activity]:
        return self.activities.get(activity_id)

    async def query_activities(self, status: Optional[ActivityStatus] = None) -> List[Activity]:
        found = [a for a in self.activities.values() if status is None or a.status == status]
        return sorted(found, key=lambda a: a.start_time)

    async def create_activity(self, data):
        activity = Activity(id=str(uuid.uuid4()), **data)
        self.activities[activity.id] = activity
        return activity

    async def update_activity(self, activity_id, data):
        if activity_id not in self.activities:
            return None
        self.activities[activity_id] = Activity(**{**self.activities[activity_id].model_dump(), **data})
        return self.activities[activity_id]

    async def delete_activity(self, activity_id) -> bool:
        return self.activities.pop(activity_id, None) is not None

    async def find_attendance_record(self, profile_id, activity_id):
        for record in self.records:
            if record.student_id == profile_id and record.activity_id == activity_id:
                return record
        return None

    async def checked_in_activity_ids(self, profile_id) -> Set[str]:
        return {r.activity_id for r in self.records if r.student_id == profile_id}

    async def insert_attendance_record(self, record: AttendanceRecord) -> AttendanceRecord:
        if await self.find_attendance_record(record.student_id, record.activity_id):
            raise ConflictError("duplicate key value", error_code="DUPLICATE")
        saved = record.model_copy(update={"id": f"rec-{len(self.records) + 1}"})
        self.records.append(saved)
        return saved

    async def query_attendance_records(self, activity_id: str) -> List[Attendee]:
        rows = [r for r in self.records if r.activity_id == activity_id]
        rows.sort(key=lambda r: r.check_in_time, reverse=True)
        return [
            attendee_from_row(r.model_dump(), self.profiles.get(r.student_id))
            for r in rows
        ]

    async def subscribe_to_inserts(self, table, filter, callback) -> Subscription:
        entry = {"table": table, "filter": filter, "callback": callback, "released": False}
        self.subscriptions.append(entry)

        async def release():
            entry["released"] = True

        return Subscription(release)

    async def query_announcements(self, published_only: bool = False):
        return [a for a in self.announcements.values() if a.is_published or not published_only]

    async def create_announcement(self, data):
        announcement = Announcement(id=str(uuid.uuid4()), **data)
        self.announcements[announcement.id] = announcement
        return announcement

    async def update_announcement(self, announcement_id, data):
        if announcement_id not in self.announcements:
            return None
        updated = Announcement(**{**self.announcements[announcement_id].model_dump(), **data})
        self.announcements[announcement_id] = updated
        return updated

    async def delete_announcement(self, announcement_id) -> bool:
        return self.announcements.pop(announcement_id, None) is not None

    async def query_profiles(self, role=None, department_id=None, year_level=None):
        found = [
            p for p in self.profiles.values()
            if (role is None or p.role == role)
            and (not department_id or p.department_id == department_id)
            and (year_level is None or p.year_level == year_level)
        ]
        return sorted(found, key=lambda p: p.student_code or "")

    async def update_profile(self, profile_id, data):
        if profile_id not in self.profiles:
            return None
        self.profiles[profile_id] = self.profiles[profile_id].model_copy(update=data)
        return self.profiles[profile_id]

    async def list_attendance(self, activity_id=None):
        rows = [r for r in self.records if activity_id is None or r.activity_id == activity_id]
        rows.sort(key=lambda r: r.check_in_time, reverse=True)
        attendees = []
        for r in rows:
            activity = self.activities.get(r.activity_id)
            row = {**r.model_dump(), "activity": {"title": activity.title} if activity else None}
            attendees.append(attendee_from_row(row, self.profiles.get(r.student_id)))
        return attendees

    async def delete_attendance_record(self, record_id) -> bool:
        kept = [r for r in self.records if r.id != record_id]
        deleted = len(kept) != len(self.records)
        self.records = kept
        return deleted

    async def query_check_in_history(self, profile_id, limit=50):
        rows = [r for r in self.records if r.student_id == profile_id]
        rows.sort(key=lambda r: r.check_in_time, reverse=True)
        items = []
        for r in rows[:limit]:
            activity = self.activities.get(r.activity_id)
            items.append(CheckInHistoryItem(
                **r.model_dump(),
                activity_title=activity.title if activity else None,
                activity_location=activity.location if activity else None,
            ))
        return items

    async def query_departments(self):
        return sorted(self.departments.values(), key=lambda d: d.name)

    async def create_department(self, data):
        department = Department(id=str(uuid.uuid4()), **data)
        self.departments[department.id] = department
        return department

    async def delete_department(self, department_id) -> bool:
        if department_id not in self.departments:
            return False
        if any(c.department_id == department_id for c in self.classrooms.values()):
            raise ConflictError("Row is still referenced, cannot delete department", error_code="IN_USE")
        del self.departments[department_id]
        return True

    async def query_classrooms(self, department_id=None, year_level=None):
        found = [
            c for c in self.classrooms.values()
            if (not department_id or c.department_id == department_id)
            and (year_level is None or c.year_level == year_level)
        ]
        return sorted(found, key=lambda c: (c.department_id or "", c.year_level or 0, c.name))

    async def create_classroom(self, data):
        department = self.departments.get(data.get("department_id"))
        classroom = Classroom(
            id=str(uuid.uuid4()),
            department_name=department.name if department else None,
            **data,
        )
        self.classrooms[classroom.id] = classroom
        return classroom

    async def delete_classroom(self, classroom_id) -> bool:
        return self.classrooms.pop(classroom_id, None) is not None
