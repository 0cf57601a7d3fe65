"""
Attendance records API Endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from rollcall.api.dependencies import get_store
from rollcall.core.exceptions import NotFoundError
from rollcall.core.logging_config import get_logger
from rollcall.core.security import get_current_session, require_admin
from rollcall.models.attendance import Attendee, CheckInHistoryItem
from rollcall.models.session import Session
from rollcall.services.store import Store

logger = get_logger(__name__)
router = APIRouter()


@router.get("/me", response_model=List[CheckInHistoryItem])
async def my_check_ins(
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(get_current_session),
    store: Store = Depends(get_store),
):
    """The current user's own check-ins, newest first"""
    return await store.query_check_in_history(session.profile.id, limit=limit)


@router.get("", response_model=List[Attendee])
async def list_attendance(
    activity_id: Optional[str] = Query(None),
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """All attendance records, optionally for one activity (admin panel)"""
    return await store.list_attendance(activity_id=activity_id)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attendance_record(
    record_id: str,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Delete an attendance record"""
    if not await store.delete_attendance_record(record_id):
        raise NotFoundError("Attendance record not found", error_code="ATTENDANCE_NOT_FOUND")
    logger.info(f"Attendance record deleted: {record_id} by {session.profile.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
