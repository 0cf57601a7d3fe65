"""
Student management API Endpoints (admin panel)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from rollcall.api.dependencies import get_store
from rollcall.core.exceptions import NotFoundError, ValidationError
from rollcall.core.logging_config import get_logger
from rollcall.core.security import get_session_store, require_admin
from rollcall.core.sessions import SessionStore
from rollcall.models.profile import ProfileResponse, ProfileStatusUpdate, UserRole
from rollcall.models.session import Session
from rollcall.services.store import Store

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=List[ProfileResponse])
async def list_students(
    department: Optional[str] = Query(None),
    year_level: Optional[int] = Query(None, ge=1, le=5),
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Student profiles with optional department and year filters"""
    return await store.query_profiles(role=UserRole.STUDENT, department_id=department, year_level=year_level)


@router.patch("/{profile_id}/status", response_model=ProfileResponse)
async def set_student_status(
    profile_id: str,
    status_data: ProfileStatusUpdate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
    sessions: SessionStore = Depends(get_session_store),
):
    """Activate or deactivate an account.

    Deactivating also ends the account's open sessions, so the change takes
    effect on its next request rather than when the session would expire.
    """
    if profile_id == session.profile.id and not status_data.is_active:
        raise ValidationError("You cannot deactivate your own account", error_code="SELF_DEACTIVATION")

    profile = await store.update_profile(profile_id, {"is_active": status_data.is_active})
    if profile is None:
        raise NotFoundError("Student not found", error_code="PROFILE_NOT_FOUND")

    if not status_data.is_active:
        dropped = sessions.clear_for_profile(profile_id)
        logger.info(f"Profile {profile_id} deactivated by {session.profile.id}, {dropped} session(s) ended")
    else:
        logger.info(f"Profile {profile_id} activated by {session.profile.id}")
    return profile
