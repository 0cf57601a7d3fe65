"""External store capabilities backed by Supabase (PostgREST + Realtime)."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from rollcall.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ConnectivityError,
    DatabaseError,
)
from rollcall.core.logging_config import get_logger
from rollcall.models.activity import Activity, ActivityStatus
from rollcall.models.announcement import Announcement
from rollcall.models.attendance import AttendanceRecord, Attendee, CheckInHistoryItem
from rollcall.models.organization import Classroom, Department
from rollcall.models.profile import ProfileResponse, UserRole

logger = get_logger(__name__)

PROFILES = "profiles"
ACTIVITIES = "activities"
ANNOUNCEMENTS = "announcements"
ATTENDANCE = "attendance_records"
DEPARTMENTS = "departments"
CLASSROOMS = "classrooms"

PROFILE_DETAIL = "*, department:departments(name), classroom:classrooms(name)"
ATTENDEE_SELECT = (
    "id, student_id, activity_id, check_in_time, status, photo_url, "
    f"profile:profiles({PROFILE_DETAIL})"
)
ATTENDANCE_LIST_SELECT = f"{ATTENDEE_SELECT}, activity:activities(title)"
HISTORY_SELECT = "*, activity:activities(title, location)"

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

ChangeCallback = Callable[[Dict[str, Any]], None]


def _nested_name(value, key: str = "name") -> Optional[str]:
    if isinstance(value, dict):
        return value.get(key)
    if isinstance(value, list) and value:
        return _nested_name(value[0], key)
    return None


def profile_from_row(row: Dict[str, Any]) -> ProfileResponse:
    data = dict(row)
    data["department_name"] = _nested_name(data.pop("department", None))
    data["classroom_name"] = _nested_name(data.pop("classroom", None))
    return ProfileResponse(**data)


def attendee_from_row(row: Dict[str, Any], profile: Optional[ProfileResponse] = None) -> Attendee:
    """Build an Attendee from an attendance row, joining its profile.

    ``profile`` overrides the embedded ``profile`` key (used when the profile
    was fetched separately, as for live notifications).
    """
    if profile is None:
        embedded = row.get("profile") or row.get("profiles")
        if isinstance(embedded, list):
            embedded = embedded[0] if embedded else None
        profile = profile_from_row(embedded) if embedded else None

    attendee = Attendee(
        record_id=str(row["id"]),
        student_id=str(row["student_id"]),
        activity_id=str(row["activity_id"]),
        check_in_time=row.get("check_in_time") or datetime.now(timezone.utc),
        status=row.get("status") or "present",
        photo_url=row.get("photo_url"),
        activity_title=_nested_name(row.get("activity"), "title"),
    )
    if profile is not None:
        attendee.full_name = profile.full_name
        attendee.student_code = profile.student_code
        attendee.classroom_id = profile.classroom_id
        attendee.classroom_name = profile.classroom_name
        attendee.department_id = profile.department_id
        attendee.department_name = profile.department_name
        attendee.year_level = profile.year_level
    return attendee


def record_from_change(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Pull the inserted row out of a realtime ``postgres_changes`` payload."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("record"), dict):
        return data["record"]
    for key in ("record", "new"):
        if isinstance(payload.get(key), dict):
            return payload[key]
    return None


def history_item_from_row(row: Dict[str, Any]) -> CheckInHistoryItem:
    data = dict(row)
    activity = data.pop("activity", None)
    data["activity_title"] = _nested_name(activity, "title")
    data["activity_location"] = _nested_name(activity, "location")
    return CheckInHistoryItem(**data)


def classroom_from_row(row: Dict[str, Any]) -> Classroom:
    data = dict(row)
    data["department_name"] = _nested_name(data.pop("department", None))
    return Classroom(**data)


class Subscription:
    """Handle returned by ``subscribe_to_inserts``; call ``unsubscribe`` to release it."""

    def __init__(self, release: Callable[[], Awaitable[None]]):
        self._release = release
        self.active = True

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        await self._release()


class Store(ABC):
    """Capabilities the check-in components need from the backing store."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> str:
        """Authenticate and return the profile id."""

    @abstractmethod
    async def fetch_profile(self, profile_id: str) -> Optional[ProfileResponse]: ...

    @abstractmethod
    async def fetch_activity(self, activity_id: str) -> Optional[Activity]: ...

    @abstractmethod
    async def query_activities(self, status: Optional[ActivityStatus] = None) -> List[Activity]: ...

    @abstractmethod
    async def create_activity(self, data: Dict[str, Any]) -> Activity: ...

    @abstractmethod
    async def update_activity(self, activity_id: str, data: Dict[str, Any]) -> Optional[Activity]: ...

    @abstractmethod
    async def delete_activity(self, activity_id: str) -> bool: ...

    @abstractmethod
    async def find_attendance_record(self, profile_id: str, activity_id: str) -> Optional[AttendanceRecord]: ...

    @abstractmethod
    async def checked_in_activity_ids(self, profile_id: str) -> Set[str]: ...

    @abstractmethod
    async def insert_attendance_record(self, record: AttendanceRecord) -> AttendanceRecord: ...

    @abstractmethod
    async def query_attendance_records(self, activity_id: str) -> List[Attendee]: ...

    @abstractmethod
    async def subscribe_to_inserts(self, table: str, filter: str, callback: ChangeCallback) -> Subscription: ...

    @abstractmethod
    async def query_announcements(self, published_only: bool = False) -> List[Announcement]: ...

    @abstractmethod
    async def create_announcement(self, data: Dict[str, Any]) -> Announcement: ...

    @abstractmethod
    async def update_announcement(self, announcement_id: str, data: Dict[str, Any]) -> Optional[Announcement]: ...

    @abstractmethod
    async def delete_announcement(self, announcement_id: str) -> bool: ...

    @abstractmethod
    async def query_profiles(
        self,
        role: Optional[UserRole] = None,
        department_id: Optional[str] = None,
        year_level: Optional[int] = None,
    ) -> List[ProfileResponse]: ...

    @abstractmethod
    async def update_profile(self, profile_id: str, data: Dict[str, Any]) -> Optional[ProfileResponse]: ...

    @abstractmethod
    async def list_attendance(self, activity_id: Optional[str] = None) -> List[Attendee]: ...

    @abstractmethod
    async def delete_attendance_record(self, record_id: str) -> bool: ...

    @abstractmethod
    async def query_check_in_history(self, profile_id: str, limit: int = 50) -> List[CheckInHistoryItem]: ...

    @abstractmethod
    async def query_departments(self) -> List[Department]: ...

    @abstractmethod
    async def create_department(self, data: Dict[str, Any]) -> Department: ...

    @abstractmethod
    async def delete_department(self, department_id: str) -> bool: ...

    @abstractmethod
    async def query_classrooms(
        self,
        department_id: Optional[str] = None,
        year_level: Optional[int] = None,
    ) -> List[Classroom]: ...

    @abstractmethod
    async def create_classroom(self, data: Dict[str, Any]) -> Classroom: ...

    @abstractmethod
    async def delete_classroom(self, classroom_id: str) -> bool: ...


class SupabaseStore(Store):
    def __init__(
        self,
        client: AsyncClient,
        auth_client_factory: Optional[Callable[[], Awaitable[AsyncClient]]] = None,
    ):
        self.client = client
        self.auth_client_factory = auth_client_factory

    async def _execute(self, query, action: str):
        try:
            return await query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictError(
                    f"Duplicate row while trying to {action}",
                    error_code="DUPLICATE",
                    details={"code": e.code},
                ) from e
            if e.code == FOREIGN_KEY_VIOLATION:
                raise ConflictError(
                    f"Row is still referenced, cannot {action}",
                    error_code="IN_USE",
                    details={"code": e.code},
                ) from e
            logger.error(f"Store rejected request ({action}): {e.message}")
            raise DatabaseError(
                f"Failed to {action}",
                error_code="STORE_ERROR",
                details={"code": e.code, "message": e.message},
            ) from e
        except httpx.HTTPError as e:
            logger.exception(f"Could not reach store while trying to {action}")
            raise ConnectivityError(details={"action": action}) from e

    async def sign_in(self, email: str, password: str) -> str:
        auth_client = await self.auth_client_factory() if self.auth_client_factory else self.client
        try:
            response = await auth_client.auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
        except httpx.HTTPError as e:
            raise ConnectivityError(details={"action": "sign in"}) from e
        except Exception as e:
            logger.warning(f"Login failed for {email}: {e}")
            raise AuthenticationError("Invalid email or password", error_code="INVALID_CREDENTIALS") from e

        if not response.user:
            raise AuthenticationError("Invalid email or password", error_code="INVALID_CREDENTIALS")
        return response.user.id

    async def fetch_profile(self, profile_id: str) -> Optional[ProfileResponse]:
        response = await self._execute(
            self.client.table(PROFILES).select(PROFILE_DETAIL).eq("id", profile_id).limit(1),
            "fetch profile",
        )
        return profile_from_row(response.data[0]) if response.data else None

    async def fetch_activity(self, activity_id: str) -> Optional[Activity]:
        response = await self._execute(
            self.client.table(ACTIVITIES).select("*").eq("id", activity_id).limit(1),
            "fetch activity",
        )
        return Activity(**response.data[0]) if response.data else None

    async def query_activities(self, status: Optional[ActivityStatus] = None) -> List[Activity]:
        query = self.client.table(ACTIVITIES).select("*")
        if status is not None:
            query = query.eq("status", status.value)
        response = await self._execute(query.order("start_time", desc=False), "list activities")
        return [Activity(**row) for row in response.data]

    async def create_activity(self, data: Dict[str, Any]) -> Activity:
        response = await self._execute(self.client.table(ACTIVITIES).insert(data), "create activity")
        if not response.data:
            raise DatabaseError("Failed to create activity", error_code="ACTIVITY_CREATE_FAILED")
        return Activity(**response.data[0])

    async def update_activity(self, activity_id: str, data: Dict[str, Any]) -> Optional[Activity]:
        response = await self._execute(
            self.client.table(ACTIVITIES).update(data).eq("id", activity_id),
            "update activity",
        )
        return Activity(**response.data[0]) if response.data else None

    async def delete_activity(self, activity_id: str) -> bool:
        response = await self._execute(
            self.client.table(ACTIVITIES).delete().eq("id", activity_id),
            "delete activity",
        )
        return bool(response.data)

    async def find_attendance_record(self, profile_id: str, activity_id: str) -> Optional[AttendanceRecord]:
        response = await self._execute(
            self.client.table(ATTENDANCE).select("*")
            .eq("student_id", profile_id).eq("activity_id", activity_id).limit(1),
            "look up attendance",
        )
        return AttendanceRecord(**response.data[0]) if response.data else None

    async def checked_in_activity_ids(self, profile_id: str) -> Set[str]:
        response = await self._execute(
            self.client.table(ATTENDANCE).select("activity_id").eq("student_id", profile_id),
            "list check-ins",
        )
        return {str(row["activity_id"]) for row in response.data}

    async def insert_attendance_record(self, record: AttendanceRecord) -> AttendanceRecord:
        response = await self._execute(
            self.client.table(ATTENDANCE).insert(record.to_row()),
            "record check-in",
        )
        if not response.data:
            raise DatabaseError("Failed to create attendance record", error_code="ATTENDANCE_CREATE_FAILED")
        return AttendanceRecord(**response.data[0])

    async def query_attendance_records(self, activity_id: str) -> List[Attendee]:
        response = await self._execute(
            self.client.table(ATTENDANCE).select(ATTENDEE_SELECT)
            .eq("activity_id", activity_id).order("check_in_time", desc=True),
            "load attendees",
        )
        return [attendee_from_row(row) for row in response.data]

    async def subscribe_to_inserts(self, table: str, filter: str, callback: ChangeCallback) -> Subscription:
        channel = self.client.channel(f"realtime:{table}:{filter}")
        channel.on_postgres_changes(
            "INSERT",
            callback=callback,
            table=table,
            schema="public",
            filter=filter,
        )
        await channel.subscribe()
        logger.info(f"Subscribed to inserts on {table} ({filter})")

        async def release() -> None:
            await self.client.remove_channel(channel)
            logger.info(f"Unsubscribed from inserts on {table} ({filter})")

        return Subscription(release)

    async def query_announcements(self, published_only: bool = False) -> List[Announcement]:
        query = self.client.table(ANNOUNCEMENTS).select("*")
        if published_only:
            query = query.eq("is_published", True)
        response = await self._execute(query.order("created_at", desc=True), "list announcements")
        return [Announcement(**row) for row in response.data]

    async def create_announcement(self, data: Dict[str, Any]) -> Announcement:
        response = await self._execute(self.client.table(ANNOUNCEMENTS).insert(data), "create announcement")
        if not response.data:
            raise DatabaseError("Failed to create announcement", error_code="ANNOUNCEMENT_CREATE_FAILED")
        return Announcement(**response.data[0])

    async def update_announcement(self, announcement_id: str, data: Dict[str, Any]) -> Optional[Announcement]:
        response = await self._execute(
            self.client.table(ANNOUNCEMENTS).update(data).eq("id", announcement_id),
            "update announcement",
        )
        return Announcement(**response.data[0]) if response.data else None

    async def delete_announcement(self, announcement_id: str) -> bool:
        response = await self._execute(
            self.client.table(ANNOUNCEMENTS).delete().eq("id", announcement_id),
            "delete announcement",
        )
        return bool(response.data)

    async def query_profiles(
        self,
        role: Optional[UserRole] = None,
        department_id: Optional[str] = None,
        year_level: Optional[int] = None,
    ) -> List[ProfileResponse]:
        query = self.client.table(PROFILES).select(PROFILE_DETAIL)
        if role is not None:
            query = query.eq("role", role.value)
        if department_id:
            query = query.eq("department_id", department_id)
        if year_level is not None:
            query = query.eq("year_level", year_level)
        response = await self._execute(query.order("student_code", desc=False), "list profiles")
        return [profile_from_row(row) for row in response.data]

    async def update_profile(self, profile_id: str, data: Dict[str, Any]) -> Optional[ProfileResponse]:
        response = await self._execute(
            self.client.table(PROFILES).update(data).eq("id", profile_id),
            "update profile",
        )
        if not response.data:
            return None
        return await self.fetch_profile(profile_id)

    async def list_attendance(self, activity_id: Optional[str] = None) -> List[Attendee]:
        query = self.client.table(ATTENDANCE).select(ATTENDANCE_LIST_SELECT)
        if activity_id:
            query = query.eq("activity_id", activity_id)
        response = await self._execute(query.order("check_in_time", desc=True), "list attendance")
        return [attendee_from_row(row) for row in response.data]

    async def delete_attendance_record(self, record_id: str) -> bool:
        response = await self._execute(
            self.client.table(ATTENDANCE).delete().eq("id", record_id),
            "delete attendance record",
        )
        return bool(response.data)

    async def query_check_in_history(self, profile_id: str, limit: int = 50) -> List[CheckInHistoryItem]:
        response = await self._execute(
            self.client.table(ATTENDANCE).select(HISTORY_SELECT)
            .eq("student_id", profile_id).order("check_in_time", desc=True).limit(limit),
            "load check-in history",
        )
        return [history_item_from_row(row) for row in response.data]

    async def query_departments(self) -> List[Department]:
        response = await self._execute(
            self.client.table(DEPARTMENTS).select("*").order("name", desc=False),
            "list departments",
        )
        return [Department(**row) for row in response.data]

    async def create_department(self, data: Dict[str, Any]) -> Department:
        response = await self._execute(self.client.table(DEPARTMENTS).insert(data), "create department")
        if not response.data:
            raise DatabaseError("Failed to create department", error_code="DEPARTMENT_CREATE_FAILED")
        return Department(**response.data[0])

    async def delete_department(self, department_id: str) -> bool:
        response = await self._execute(
            self.client.table(DEPARTMENTS).delete().eq("id", department_id),
            "delete department",
        )
        return bool(response.data)

    async def query_classrooms(
        self,
        department_id: Optional[str] = None,
        year_level: Optional[int] = None,
    ) -> List[Classroom]:
        query = self.client.table(CLASSROOMS).select("*, department:departments(name)")
        if department_id:
            query = query.eq("department_id", department_id)
        if year_level is not None:
            query = query.eq("year_level", year_level)
        query = query.order("department_id", desc=False).order("year_level", desc=False).order("name", desc=False)
        response = await self._execute(query, "list classrooms")
        return [classroom_from_row(row) for row in response.data]

    async def create_classroom(self, data: Dict[str, Any]) -> Classroom:
        response = await self._execute(self.client.table(CLASSROOMS).insert(data), "create classroom")
        if not response.data:
            raise DatabaseError("Failed to create classroom", error_code="CLASSROOM_CREATE_FAILED")
        return classroom_from_row(response.data[0])

    async def delete_classroom(self, classroom_id: str) -> bool:
        response = await self._execute(
            self.client.table(CLASSROOMS).delete().eq("id", classroom_id),
            "delete classroom",
        )
        return bool(response.data)
