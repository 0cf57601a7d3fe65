"""
Audience targeting for activities and announcements.

Targeting is a union across axes: a profile is eligible when it matches ANY
non-empty targeting set (classroom, department or year level). The admin
roster filter in services/roster.py is conjunctive instead.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from rollcall.models.activity import Activity
from rollcall.models.announcement import Announcement, FeedAnnouncement, Priority, TargetAudience
from rollcall.models.profile import Profile, UserRole

Targetable = Union[Activity, Announcement]

ROLE_AUDIENCE = {
    UserRole.STUDENT: TargetAudience.STUDENTS,
    UserRole.TEACHER: TargetAudience.TEACHERS,
    UserRole.STAFF: TargetAudience.STAFF,
}

PRIORITY_ORDER = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.NORMAL: 2,
    Priority.LOW: 3,
}


def _member(value, targets) -> bool:
    if value is None or not targets:
        return False
    try:
        return value in targets
    except TypeError:
        return False


def is_eligible(profile: Optional[Profile], item: Targetable) -> bool:
    """Return True when ``item`` is relevant to ``profile``.

    Never raises: a missing profile is not eligible, and a missing classroom,
    department or year level just cannot satisfy that axis.
    """
    if profile is None:
        return False

    audience = getattr(item, "target_audience", None)
    if audience is not None:
        if audience == TargetAudience.ALL:
            return True
        if audience == ROLE_AUDIENCE.get(profile.role):
            return True

    classrooms = set(item.target_classrooms or ())
    departments = set(item.target_departments or ())
    year_levels = set(item.target_year_levels or ())

    # No restriction declared. Only applies when the item does not name an
    # audience category; a category that did not match above stays closed.
    if audience is None and not (classrooms or departments or year_levels):
        return True

    return (
        _member(profile.classroom_id, classrooms)
        or _member(profile.department_id, departments)
        or _member(profile.year_level, year_levels)
    )


def is_expired(announcement: Announcement, now: Optional[datetime] = None) -> bool:
    if announcement.expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return announcement.expires_at < now


def is_announcement_visible(profile: Optional[Profile], announcement: Announcement) -> bool:
    return announcement.is_published and is_eligible(profile, announcement)


def build_feed(
    profile: Optional[Profile],
    announcements: Iterable[Announcement],
    now: Optional[datetime] = None,
) -> List[FeedAnnouncement]:
    """Published, relevant announcements for ``profile``.

    Expired items are kept and labelled. Pinned items come first, then by
    priority, then newest publication first.
    """
    now = now or datetime.now(timezone.utc)
    feed = [
        FeedAnnouncement(**a.model_dump(), is_expired=is_expired(a, now))
        for a in announcements
        if is_announcement_visible(profile, a)
    ]

    def published_key(a: FeedAnnouncement) -> float:
        stamp = a.published_at or a.created_at
        return stamp.timestamp() if stamp else 0.0

    feed.sort(key=published_key, reverse=True)
    feed.sort(key=lambda a: (not a.is_pinned, PRIORITY_ORDER.get(a.priority, 2)))
    return feed
