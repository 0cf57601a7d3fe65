"""
Activities API Endpoints: listing, admin management, check-in and live roster
"""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, WebSocket, WebSocketDisconnect, status

from rollcall.api.dependencies import get_checkin_service, get_store
from rollcall.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    RollCallException,
    ValidationError,
)
from rollcall.core.logging_config import get_logger
from rollcall.core.security import get_current_session, get_session_ttl, guard_session, require_admin
from rollcall.models.activity import (
    Activity,
    ActivityCreate,
    ActivityForUser,
    ActivityStatus,
    ActivityStatusUpdate,
    ActivityUpdate,
)
from rollcall.models.attendance import Attendee, CheckInRequest, CheckInResponse, RosterResponse
from rollcall.models.profile import UserRole
from rollcall.models.session import Session
from rollcall.services.checkin import CheckInService
from rollcall.services.roster import LiveRoster
from rollcall.services.store import Store

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=List[ActivityForUser])
async def list_activities(
    session: Session = Depends(get_current_session),
    service: CheckInService = Depends(get_checkin_service),
):
    """Active activities for the check-in list, annotated with state and eligibility"""
    return await service.list_activities_for(session.profile)


@router.get("/all", response_model=List[Activity])
async def list_all_activities(
    status_filter: Optional[str] = Query(None, alias="status"),
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """All activities regardless of status (admin panel)"""
    activity_status = None
    if status_filter:
        try:
            activity_status = ActivityStatus(status_filter)
        except ValueError:
            raise ValidationError(f"Unknown activity status: {status_filter}", error_code="INVALID_STATUS")
    return await store.query_activities(status=activity_status)


@router.post("", response_model=Activity, status_code=status.HTTP_201_CREATED)
async def create_activity(
    activity_data: ActivityCreate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Create a new activity"""
    record = activity_data.model_dump(mode="json")
    record["created_by"] = session.profile.id
    activity = await store.create_activity(record)
    logger.info(f"Activity created: {activity.id} by {session.profile.id}")
    return activity


@router.get("/{activity_id}", response_model=Activity)
async def get_activity(
    activity_id: str,
    session: Session = Depends(get_current_session),
    service: CheckInService = Depends(get_checkin_service),
):
    """Get a specific activity"""
    return await service.get_activity(activity_id)


@router.put("/{activity_id}", response_model=Activity)
async def update_activity(
    activity_id: str,
    activity_data: ActivityUpdate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Update an activity"""
    update_data = activity_data.model_dump(mode="json", exclude_unset=True)
    if not update_data:
        raise ValidationError("No update data provided", error_code="EMPTY_UPDATE")

    # A single bound can still invert the stored window
    if activity_data.start_time or activity_data.end_time:
        current = await store.fetch_activity(activity_id)
        if current is None:
            raise NotFoundError("Activity not found", error_code="ACTIVITY_NOT_FOUND")
        start_time = activity_data.start_time or current.start_time
        end_time = activity_data.end_time or current.end_time
        if end_time <= start_time:
            raise ValidationError(
                "end_time must be after start_time",
                error_code="INVALID_TIME_WINDOW",
                details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
            )

    activity = await store.update_activity(activity_id, update_data)
    if activity is None:
        raise NotFoundError("Activity not found", error_code="ACTIVITY_NOT_FOUND")
    return activity


@router.patch("/{activity_id}/status", response_model=Activity)
async def set_activity_status(
    activity_id: str,
    status_data: ActivityStatusUpdate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Open, close or cancel an activity"""
    activity = await store.update_activity(activity_id, {"status": status_data.status.value})
    if activity is None:
        raise NotFoundError("Activity not found", error_code="ACTIVITY_NOT_FOUND")
    logger.info(f"Activity {activity_id} status set to {status_data.status.value}")
    return activity


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity(
    activity_id: str,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Delete an activity"""
    if not await store.delete_activity(activity_id):
        raise NotFoundError("Activity not found", error_code="ACTIVITY_NOT_FOUND")
    logger.info(f"Activity deleted: {activity_id} by {session.profile.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{activity_id}/check-in", response_model=CheckInResponse)
async def check_in(
    activity_id: str,
    request_data: CheckInRequest,
    session: Session = Depends(get_current_session),
    service: CheckInService = Depends(get_checkin_service),
):
    """Check the current user into an activity.

    Business rule rejections come back as ``admitted: false`` with a reason
    code. ``photo_required: true`` means the client should capture a photo
    and retry with ``photo_url``.
    """
    outcome = await service.check_in(session.profile, activity_id, request_data.photo_url)
    return CheckInResponse(
        admitted=outcome.admitted,
        reason=outcome.reason,
        message=outcome.message,
        photo_required=outcome.photo_required,
        record=outcome.record,
    )


@router.get("/{activity_id}/attendees", response_model=RosterResponse)
async def list_attendees(
    activity_id: str,
    department: Optional[str] = Query(None),
    classroom: Optional[str] = Query(None),
    year_level: Optional[int] = Query(None, ge=1, le=5),
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Attendees of an activity, newest first, with optional facet filters"""
    roster = LiveRoster(store, activity_id)
    await roster.load_snapshot()
    attendees = roster.apply_filter(department, classroom, year_level)
    return RosterResponse(activity_id=activity_id, total=len(attendees), attendees=attendees)


def _roster_message(activity_id: str, attendees: List[Attendee]) -> dict:
    return {
        "activity_id": activity_id,
        "total": len(attendees),
        "attendees": [a.model_dump(mode="json") for a in attendees],
    }


def _parse_year_level(value) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@router.websocket("/{activity_id}/live")
async def live_roster(
    websocket: WebSocket,
    activity_id: str,
    token: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    classroom: Optional[str] = Query(None),
    year_level: Optional[int] = Query(None),
):
    """Push the filtered roster on connect and after every change.

    Clients may send ``{"department", "classroom", "year_level"}`` to change
    the filter while connected.
    """
    try:
        guard_session(token, websocket.app.state.session_store, UserRole.ADMIN, get_session_ttl())
    except (AuthenticationError, AuthorizationError) as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    roster = LiveRoster(websocket.app.state.store, activity_id)
    roster.apply_filter(department, classroom, year_level)
    updates: asyncio.Queue = asyncio.Queue()
    roster.add_listener(updates.put_nowait)

    async def push() -> None:
        while True:
            attendees = await updates.get()
            # Only the latest projection matters
            while not updates.empty():
                attendees = updates.get_nowait()
            await websocket.send_json(_roster_message(activity_id, attendees))

    async def receive() -> None:
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict):
                roster.apply_filter(
                    message.get("department"),
                    message.get("classroom"),
                    _parse_year_level(message.get("year_level")),
                )

    tasks = []
    try:
        await roster.start()
        tasks = [asyncio.create_task(push()), asyncio.create_task(receive())]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error(f"Live roster for activity {activity_id} stopped: {error!r}")
    except RollCallException as e:
        logger.error(f"Live roster for activity {activity_id} failed to start: {e.message}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason=e.message)
    finally:
        for task in tasks:
            task.cancel()
        await roster.stop()
