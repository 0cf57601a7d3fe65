"""Live attendee roster for one activity (admin view)."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Set

from rollcall.core.exceptions import EnrichmentError
from rollcall.core.logging_config import get_logger
from rollcall.models.attendance import Attendee
from rollcall.services.store import ATTENDANCE, Store, Subscription, attendee_from_row, record_from_change

logger = get_logger(__name__)

RosterListener = Callable[[List[Attendee]], Any]


class RosterFilter:
    """Conjunctive facet filter: every supplied, non-empty field must match."""

    def __init__(
        self,
        department: Optional[str] = None,
        classroom: Optional[str] = None,
        year_level: Optional[int] = None,
    ):
        self.department = department or None
        self.classroom = classroom or None
        self.year_level = year_level

    def matches(self, attendee: Attendee) -> bool:
        if self.department and attendee.department_id != self.department:
            return False
        if self.classroom and attendee.classroom_id != self.classroom:
            return False
        if self.year_level is not None and attendee.year_level != self.year_level:
            return False
        return True


class LiveRoster:
    """Snapshot plus live insert notifications, kept newest first.

    Entries are keyed by attendance record id, so a notification for a row
    that the snapshot already returned is not counted twice. The merged list
    is re-sorted by check-in time after every change, which makes the result
    independent of whether notifications land before or after the snapshot.
    """

    def __init__(self, store: Store, activity_id: str):
        self.store = store
        self.activity_id = activity_id
        self._entries: Dict[str, Attendee] = {}
        self._live_ids: Set[str] = set()
        self._all: List[Attendee] = []
        self._visible: List[Attendee] = []
        self._filter = RosterFilter()
        self._listeners: List[RosterListener] = []
        self._pending: Set[asyncio.Task] = set()
        self._subscription: Optional[Subscription] = None

    @property
    def all_attendees(self) -> List[Attendee]:
        return list(self._all)

    @property
    def visible_attendees(self) -> List[Attendee]:
        return list(self._visible)

    def add_listener(self, listener: RosterListener) -> None:
        self._listeners.append(listener)

    async def load_snapshot(self) -> None:
        """Replace the roster with a fresh bulk query. Safe to repeat on reconnect."""
        snapshot = await self.store.query_attendance_records(self.activity_id)
        entries = {a.record_id: a for a in snapshot}
        # Notifications enriched before the snapshot returned are kept
        for attendee in self._all:
            if attendee.record_id in self._live_ids:
                entries.setdefault(attendee.record_id, attendee)
        self._entries = entries
        self._rebuild()
        logger.info(f"Roster snapshot loaded for activity {self.activity_id}: {len(self._all)} attendees")

    def on_insert_notification(self, payload: Dict[str, Any]) -> asyncio.Task:
        """Schedule enrichment of a raw insert event without blocking the caller."""
        task = asyncio.get_running_loop().create_task(self._enrich_and_add(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _enrich_and_add(self, payload: Dict[str, Any]) -> Optional[Attendee]:
        try:
            attendee = await self._enrich(payload)
        except EnrichmentError as e:
            logger.warning(f"Dropping roster notification for activity {self.activity_id}: {e.message}")
            return None
        except Exception:
            logger.exception(f"Dropping roster notification for activity {self.activity_id}")
            return None

        if attendee.record_id in self._entries:
            return None
        self._entries[attendee.record_id] = attendee
        self._live_ids.add(attendee.record_id)
        self._rebuild()
        return attendee

    async def _enrich(self, payload: Dict[str, Any]) -> Attendee:
        row = record_from_change(payload)
        if not row or not row.get("id") or not row.get("student_id"):
            raise EnrichmentError("Notification carries no attendance record", error_code="ENRICHMENT_FAILED")
        if str(row.get("activity_id")) != str(self.activity_id):
            raise EnrichmentError(
                f"Notification belongs to activity {row.get('activity_id')}",
                error_code="ENRICHMENT_FAILED",
            )
        profile = await self.store.fetch_profile(str(row["student_id"]))
        if profile is None:
            raise EnrichmentError(
                f"Profile {row['student_id']} not found",
                error_code="ENRICHMENT_FAILED",
            )
        return attendee_from_row(row, profile)

    def apply_filter(
        self,
        department: Optional[str] = None,
        classroom: Optional[str] = None,
        year_level: Optional[int] = None,
    ) -> List[Attendee]:
        self._filter = RosterFilter(department, classroom, year_level)
        self._refresh_visible()
        return self.visible_attendees

    def _rebuild(self) -> None:
        # sort is stable, equal timestamps keep insertion order
        self._all = sorted(self._entries.values(), key=lambda a: a.check_in_time, reverse=True)
        self._refresh_visible()

    def _refresh_visible(self) -> None:
        self._visible = [a for a in self._all if self._filter.matches(a)]
        for listener in list(self._listeners):
            try:
                result = listener(self.visible_attendees)
                if asyncio.iscoroutine(result):
                    task = asyncio.get_running_loop().create_task(result)
                    self._pending.add(task)
                    task.add_done_callback(self._pending.discard)
            except Exception:
                logger.exception("Roster listener failed")

    async def start(self) -> None:
        """Subscribe to live inserts, then load the snapshot."""
        if self._subscription is None:
            self._subscription = await self.store.subscribe_to_inserts(
                ATTENDANCE,
                f"activity_id=eq.{self.activity_id}",
                self.on_insert_notification,
            )
        await self.load_snapshot()

    async def drain(self) -> None:
        """Wait for in-flight enrichments to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def stop(self) -> None:
        """Release the live subscription and cancel in-flight work. Idempotent."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self._listeners.clear()
