from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from fakes import at
from rollcall.core.exceptions import ConflictError, ConnectivityError, DatabaseError
from rollcall.models.activity import ActivityStatus
from rollcall.models.profile import UserRole
from rollcall.services.store import (
    SupabaseStore,
    attendee_from_row,
    classroom_from_row,
    history_item_from_row,
    profile_from_row,
    record_from_change,
)


class FakeQuery:
    """Chainable stand-in for a PostgREST request builder."""

    def __init__(self, data=None, error=None):
        self.data = data if data is not None else []
        self.error = error
        self.calls = []

    def __getattr__(self, name):
        def chain(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return chain

    async def execute(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.data)


def client_returning(query: FakeQuery) -> MagicMock:
    client = MagicMock()
    client.table.return_value = query
    return client


def api_error(code: str) -> APIError:
    return APIError({"message": "request failed", "code": code, "hint": None, "details": None})


class TestRowMapping:

    def test_profile_from_row_flattens_joined_names(self):
        profile = profile_from_row({
            "id": "P1",
            "role": "student",
            "full_name": "Somchai",
            "classroom_id": "C1",
            "classroom": {"name": "M.1/1"},
            "department": [{"name": "Science"}],
        })
        assert profile.classroom_name == "M.1/1"
        assert profile.department_name == "Science"

    def test_attendee_from_row_with_embedded_profile(self):
        attendee = attendee_from_row({
            "id": "r1",
            "student_id": "P1",
            "activity_id": "A1",
            "check_in_time": at(8, 5).isoformat(),
            "status": "late",
            "profile": {
                "id": "P1",
                "full_name": "Somchai",
                "student_code": "S001",
                "year_level": 2,
                "department_id": "D1",
                "department": {"name": "Science"},
            },
        })
        assert attendee.record_id == "r1"
        assert attendee.status.value == "late"
        assert attendee.full_name == "Somchai"
        assert attendee.student_code == "S001"
        assert attendee.year_level == 2
        assert attendee.department_name == "Science"

    def test_attendee_from_row_without_profile_keeps_record_fields(self):
        attendee = attendee_from_row({"id": 7, "student_id": "P1", "activity_id": "A1", "check_in_time": at(8)})
        assert attendee.record_id == "7"
        assert attendee.full_name == ""
        assert attendee.department_id is None

    def test_attendee_from_row_picks_up_activity_title(self):
        attendee = attendee_from_row({
            "id": "r1",
            "student_id": "P1",
            "activity_id": "A1",
            "check_in_time": "2024-01-01T08:05:00",
            "activity": {"title": "Assembly"},
        })
        assert attendee.activity_title == "Assembly"
        assert attendee.check_in_time.utcoffset().total_seconds() == 0

    def test_history_item_from_row_flattens_activity(self):
        item = history_item_from_row({
            "id": "r1",
            "student_id": "P1",
            "activity_id": "A1",
            "check_in_time": at(8, 5).isoformat(),
            "activity": [{"title": "Assembly", "location": "Main hall"}],
        })
        assert item.activity_title == "Assembly"
        assert item.activity_location == "Main hall"
        assert item.status == "present"

    def test_classroom_from_row_flattens_department_name(self):
        classroom = classroom_from_row({
            "id": "C1",
            "name": "M.1/1",
            "department_id": "D1",
            "year_level": 1,
            "department": {"name": "Science"},
        })
        assert classroom.department_name == "Science"
        assert classroom.year_level == 1

    @pytest.mark.parametrize("payload", [
        {"data": {"record": {"id": "r1"}}},
        {"record": {"id": "r1"}},
        {"new": {"id": "r1"}},
    ])
    def test_record_from_change_payload_shapes(self, payload):
        assert record_from_change(payload) == {"id": "r1"}

    @pytest.mark.parametrize("payload", [None, "INSERT", {}, {"data": {"record": None}}])
    def test_record_from_change_without_record(self, payload):
        assert record_from_change(payload) is None


class TestSupabaseStore:

    @pytest.mark.asyncio
    async def test_unique_violation_maps_to_conflict(self):
        store = SupabaseStore(client_returning(FakeQuery(error=api_error("23505"))))

        with pytest.raises(ConflictError) as exc_info:
            await store.create_activity({"title": "x"})
        assert exc_info.value.error_code == "DUPLICATE"

    @pytest.mark.asyncio
    async def test_other_api_errors_map_to_database_error(self):
        store = SupabaseStore(client_returning(FakeQuery(error=api_error("42501"))))

        with pytest.raises(DatabaseError) as exc_info:
            await store.query_activities()
        assert not isinstance(exc_info.value, ConnectivityError)
        assert exc_info.value.error_code == "STORE_ERROR"

    @pytest.mark.asyncio
    async def test_transport_errors_map_to_connectivity_error(self):
        store = SupabaseStore(client_returning(FakeQuery(error=httpx.ConnectError("connection refused"))))

        with pytest.raises(ConnectivityError) as exc_info:
            await store.fetch_activity("A1")
        assert exc_info.value.message == "Could not connect, please try again."

    @pytest.mark.asyncio
    async def test_fetch_activity_returns_none_when_missing(self):
        query = FakeQuery(data=[])
        store = SupabaseStore(client_returning(query))

        assert await store.fetch_activity("A1") is None
        assert ("eq", ("id", "A1"), {}) in query.calls

    @pytest.mark.asyncio
    async def test_query_activities_filters_by_status_and_orders_by_start(self):
        query = FakeQuery(data=[{
            "id": "A1",
            "title": "Assembly",
            "start_time": at(8).isoformat(),
            "end_time": at(8, 30).isoformat(),
            "target_year_levels": None,
        }])
        store = SupabaseStore(client_returning(query))

        activities = await store.query_activities(status=ActivityStatus.ACTIVE)

        assert activities[0].target_year_levels == []
        assert ("eq", ("status", "active"), {}) in query.calls
        assert ("order", ("start_time",), {"desc": False}) in query.calls

    @pytest.mark.asyncio
    async def test_subscribe_to_inserts_registers_and_releases_channel(self):
        client = MagicMock()
        channel = client.channel.return_value
        channel.subscribe = AsyncMock()
        client.remove_channel = AsyncMock()
        store = SupabaseStore(client)
        callback = MagicMock()

        subscription = await store.subscribe_to_inserts("attendance_records", "activity_id=eq.A1", callback)

        channel.on_postgres_changes.assert_called_once_with(
            "INSERT",
            callback=callback,
            table="attendance_records",
            schema="public",
            filter="activity_id=eq.A1",
        )
        channel.subscribe.assert_awaited_once()

        await subscription.unsubscribe()
        await subscription.unsubscribe()
        client.remove_channel.assert_awaited_once_with(channel)

    @pytest.mark.asyncio
    async def test_foreign_key_violation_maps_to_in_use_conflict(self):
        store = SupabaseStore(client_returning(FakeQuery(error=api_error("23503"))))

        with pytest.raises(ConflictError) as exc_info:
            await store.delete_department("D1")
        assert exc_info.value.error_code == "IN_USE"

    @pytest.mark.asyncio
    async def test_query_profiles_applies_filters(self):
        query = FakeQuery(data=[{"id": "P1", "role": "student", "full_name": "Somchai", "year_level": 2}])
        store = SupabaseStore(client_returning(query))

        profiles = await store.query_profiles(role=UserRole.STUDENT, department_id="D1", year_level=2)

        assert [p.id for p in profiles] == ["P1"]
        assert ("eq", ("role", "student"), {}) in query.calls
        assert ("eq", ("department_id", "D1"), {}) in query.calls
        assert ("eq", ("year_level", 2), {}) in query.calls
        assert ("order", ("student_code",), {"desc": False}) in query.calls

    @pytest.mark.asyncio
    async def test_update_profile_returns_none_for_unknown_profile(self):
        store = SupabaseStore(client_returning(FakeQuery(data=[])))

        assert await store.update_profile("nope", {"is_active": False}) is None

    @pytest.mark.asyncio
    async def test_check_in_history_is_newest_first_and_limited(self):
        query = FakeQuery(data=[])
        store = SupabaseStore(client_returning(query))

        await store.query_check_in_history("P1", limit=5)

        assert ("eq", ("student_id", "P1"), {}) in query.calls
        assert ("order", ("check_in_time",), {"desc": True}) in query.calls
        assert ("limit", (5,), {}) in query.calls
