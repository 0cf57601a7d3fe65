from datetime import datetime, timedelta

import pytest

from fakes import at, make_activity, make_profile
from rollcall.models.announcement import Announcement, Priority, TargetAudience
from rollcall.models.profile import UserRole
from rollcall.services.targeting import build_feed, is_eligible, is_expired


def make_announcement(**overrides) -> Announcement:
    data = dict(id="N1", title="Midterm exams", content="Starts Monday", is_published=True)
    data.update(overrides)
    return Announcement(**data)


class TestActivityEligibility:

    @pytest.mark.parametrize("profile_kwargs", [
        {},
        {"classroom_id": "C9", "department_id": "D9", "year_level": 5},
        {"role": UserRole.TEACHER},
    ])
    def test_unrestricted_activity_is_open_to_everyone(self, profile_kwargs):
        assert is_eligible(make_profile(**profile_kwargs), make_activity())

    def test_department_match_is_enough_even_when_classroom_differs(self):
        activity = make_activity(target_departments=["D1"])
        profile = make_profile(department_id="D1", classroom_id="C7")
        assert is_eligible(profile, activity)

    def test_no_axis_matching_is_not_eligible(self):
        activity = make_activity(target_departments=["D1"])
        profile = make_profile(department_id="D2", classroom_id="C7", year_level=3)
        assert not is_eligible(profile, activity)

    def test_axes_are_combined_with_or(self):
        activity = make_activity(
            target_classrooms=["C1"],
            target_departments=["D1"],
            target_year_levels=[4, 5],
        )
        assert is_eligible(make_profile(classroom_id="C1", department_id="D9", year_level=1), activity)
        assert is_eligible(make_profile(classroom_id="C9", department_id="D9", year_level=4), activity)
        assert not is_eligible(make_profile(classroom_id="C9", department_id="D9", year_level=1), activity)

    def test_missing_profile_fields_never_match_and_never_raise(self):
        activity = make_activity(target_classrooms=["C1"], target_year_levels=[1])
        assert not is_eligible(make_profile(), activity)

    def test_no_profile_is_not_eligible(self):
        assert not is_eligible(None, make_activity())

    def test_null_target_lists_from_store_count_as_unrestricted(self):
        activity = make_activity(target_classrooms=None, target_departments=None, target_year_levels=None)
        assert activity.target_classrooms == []
        assert is_eligible(make_profile(), activity)


class TestAnnouncementEligibility:

    def test_audience_all_short_circuits_targeting_sets(self):
        announcement = make_announcement(target_audience=TargetAudience.ALL, target_classrooms=["C1"])
        assert is_eligible(make_profile(classroom_id="C2"), announcement)

    def test_audience_matching_role_class(self):
        announcement = make_announcement(target_audience=TargetAudience.STUDENTS)
        assert is_eligible(make_profile(role=UserRole.STUDENT), announcement)
        assert not is_eligible(make_profile(role=UserRole.TEACHER), announcement)

    def test_staff_and_teachers_audiences(self):
        assert is_eligible(
            make_profile(role=UserRole.STAFF),
            make_announcement(target_audience=TargetAudience.STAFF),
        )
        assert is_eligible(
            make_profile(role=UserRole.TEACHER),
            make_announcement(target_audience=TargetAudience.TEACHERS),
        )

    def test_targeting_sets_widen_a_non_matching_audience(self):
        announcement = make_announcement(target_audience=TargetAudience.TEACHERS, target_year_levels=[2])
        assert is_eligible(make_profile(role=UserRole.STUDENT, year_level=2), announcement)
        assert not is_eligible(make_profile(role=UserRole.STUDENT, year_level=3), announcement)

    def test_admin_only_sees_everyone_announcements(self):
        admin = make_profile(role=UserRole.ADMIN)
        assert is_eligible(admin, make_announcement(target_audience=TargetAudience.ALL))
        assert not is_eligible(admin, make_announcement(target_audience=TargetAudience.STUDENTS))


class TestFeed:

    def test_expiry_is_labelled_not_enforced(self):
        now = at(12)
        expired = make_announcement(id="old", expires_at=now - timedelta(seconds=1), target_audience="all")
        current = make_announcement(id="new", expires_at=now + timedelta(days=1), target_audience="all")

        feed = build_feed(make_profile(), [expired, current], now=now)

        labels = {a.id: a.is_expired for a in feed}
        assert labels == {"old": True, "new": False}

    def test_expiry_boundary(self):
        now = at(12)
        assert not is_expired(make_announcement(expires_at=now), now)
        assert not is_expired(make_announcement(expires_at=None), now)

    def test_naive_expiry_is_compared_as_utc(self):
        now = at(12)
        announcement = make_announcement(expires_at=datetime(2024, 1, 1, 11, 59))

        assert announcement.expires_at.tzinfo is not None
        assert is_expired(announcement, now)

    def test_drafts_and_irrelevant_items_are_left_out(self):
        profile = make_profile(role=UserRole.STUDENT)
        draft = make_announcement(id="draft", is_published=False, target_audience="all")
        for_teachers = make_announcement(id="teachers", target_audience="teachers")
        for_students = make_announcement(id="students", target_audience="students")

        feed = build_feed(profile, [draft, for_teachers, for_students], now=at(12))

        assert [a.id for a in feed] == ["students"]

    def test_order_pinned_then_priority_then_newest(self):
        common = dict(target_audience="all")
        items = [
            make_announcement(id="low-new", priority=Priority.LOW, published_at=at(11), **common),
            make_announcement(id="normal-old", published_at=at(9), **common),
            make_announcement(id="normal-new", published_at=at(10), **common),
            make_announcement(id="urgent", priority=Priority.URGENT, published_at=at(8), **common),
            make_announcement(id="pinned-low", priority=Priority.LOW, is_pinned=True, published_at=at(7), **common),
        ]

        feed = build_feed(make_profile(), items, now=at(12))

        assert [a.id for a in feed] == ["pinned-low", "urgent", "normal-new", "normal-old", "low-new"]
