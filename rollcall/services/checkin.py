"""Check-in admission: time window, eligibility, deduplication and photo gating."""

from datetime import datetime, timezone
from typing import List, Optional

from rollcall.core.exceptions import ConflictError, NotFoundError
from rollcall.core.logging_config import get_logger
from rollcall.models.activity import Activity, ActivityForUser, ActivityStatus, ActivityTimeState
from rollcall.models.attendance import (
    AttendanceRecord,
    AttendanceStatus,
    CheckInOutcome,
    CheckInRejection,
)
from rollcall.models.profile import Profile
from rollcall.services.store import Store
from rollcall.services.targeting import is_eligible

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def activity_time_state(activity: Activity, now: datetime) -> ActivityTimeState:
    """Derive the activity state at ``now``; both window bounds are inclusive."""
    if activity.status != ActivityStatus.ACTIVE:
        return ActivityTimeState.UNAVAILABLE
    if now < activity.start_time:
        return ActivityTimeState.UPCOMING
    if now > activity.end_time:
        return ActivityTimeState.ENDED
    return ActivityTimeState.OPEN


def evaluate_check_in(
    profile: Profile,
    activity: Activity,
    photo_url: Optional[str],
    already_checked_in: bool,
    now: datetime,
) -> Optional[CheckInRejection]:
    """Run the admission checks in order; return the first failure or None."""
    state = activity_time_state(activity, now)
    if state == ActivityTimeState.UNAVAILABLE:
        return CheckInRejection.ACTIVITY_UNAVAILABLE
    if state == ActivityTimeState.UPCOMING:
        return CheckInRejection.ACTIVITY_NOT_YET_OPEN
    if state == ActivityTimeState.ENDED:
        return CheckInRejection.ACTIVITY_ENDED
    if not is_eligible(profile, activity):
        return CheckInRejection.NOT_ELIGIBLE
    if already_checked_in:
        return CheckInRejection.ALREADY_CHECKED_IN
    if activity.requires_photo and not photo_url:
        return CheckInRejection.PHOTO_REQUIRED
    return None


def build_attendance_record(
    profile: Profile,
    activity: Activity,
    photo_url: Optional[str],
    now: datetime,
) -> AttendanceRecord:
    return AttendanceRecord(
        student_id=profile.id,
        activity_id=activity.id,
        check_in_time=now,
        photo_url=photo_url,
        status=AttendanceStatus.PRESENT,
        classroom_id=profile.classroom_id,
        department_id=profile.department_id,
        year_level=profile.year_level,
    )


class CheckInService:
    """Admission controller for check-in attempts.

    The prior-record lookup is only a fast pre-check. The store's unique
    constraint on (student_id, activity_id) decides races between two
    concurrent attempts; a violation comes back as ALREADY_CHECKED_IN.
    """

    def __init__(self, store: Store):
        self.store = store

    async def get_activity(self, activity_id: str) -> Activity:
        activity = await self.store.fetch_activity(activity_id)
        if activity is None:
            raise NotFoundError("Activity not found", error_code="ACTIVITY_NOT_FOUND")
        return activity

    async def check_in(
        self,
        profile: Profile,
        activity_id: str,
        photo_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CheckInOutcome:
        now = now or utcnow()
        activity = await self.get_activity(activity_id)

        # Steps before the store lookup need no round-trip
        rejection = evaluate_check_in(profile, activity, photo_url, False, now)
        if rejection in (None, CheckInRejection.PHOTO_REQUIRED):
            existing = await self.store.find_attendance_record(profile.id, activity.id)
            if existing is not None:
                rejection = CheckInRejection.ALREADY_CHECKED_IN

        if rejection is not None:
            logger.info(
                f"Check-in rejected: student={profile.id}, activity={activity.id}, reason={rejection.value}"
            )
            return CheckInOutcome.reject(rejection)

        record = build_attendance_record(profile, activity, photo_url, now)
        try:
            saved = await self.store.insert_attendance_record(record)
        except ConflictError:
            logger.info(
                f"Check-in lost race to an existing record: student={profile.id}, activity={activity.id}"
            )
            return CheckInOutcome.reject(CheckInRejection.ALREADY_CHECKED_IN)

        logger.info(f"Check-in admitted: student={profile.id}, activity={activity.id}, record={saved.id}")
        return CheckInOutcome.admit(saved)

    async def list_activities_for(
        self,
        profile: Profile,
        now: Optional[datetime] = None,
    ) -> List[ActivityForUser]:
        """Active activities by start time, annotated for ``profile``'s check-in list."""
        now = now or utcnow()
        activities = await self.store.query_activities(status=ActivityStatus.ACTIVE)
        checked_in = await self.store.checked_in_activity_ids(profile.id)
        return [
            ActivityForUser(
                **activity.model_dump(),
                time_state=activity_time_state(activity, now),
                is_eligible=is_eligible(profile, activity),
                already_checked_in=activity.id in checked_in,
            )
            for activity in activities
        ]
