from datetime import timedelta

from fastapi import APIRouter, Depends, Response, status

from rollcall.api.dependencies import get_store
from rollcall.core.exceptions import AuthenticationError, AuthorizationError
from rollcall.core.logging_config import get_logger
from rollcall.core.security import get_current_session, get_session_store, get_session_ttl
from rollcall.core.sessions import SessionStore, new_session
from rollcall.models.profile import Profile, UserLogin, UserRole
from rollcall.models.session import Session, SessionResponse
from rollcall.services.store import Store

logger = get_logger(__name__)
router = APIRouter()


async def _open_session(
    credentials: UserLogin,
    store: Store,
    sessions: SessionStore,
    ttl: timedelta,
    admin_only: bool = False,
) -> SessionResponse:
    profile_id = await store.sign_in(credentials.email, credentials.password)
    profile = await store.fetch_profile(profile_id)
    if profile is None:
        raise AuthenticationError("User profile not found", error_code="PROFILE_NOT_FOUND")
    if not profile.is_active:
        raise AuthenticationError("This account has been disabled", error_code="ACCOUNT_DISABLED")
    if admin_only and profile.role != UserRole.ADMIN:
        raise AuthorizationError("Only administrators can use the admin panel", error_code="WRONG_ROLE")

    session = new_session(Profile(**profile.model_dump(include=set(Profile.model_fields))))
    sessions.persist(session)
    logger.info(f"User logged in successfully: {credentials.email} ({profile.role.value})")

    return SessionResponse(
        access_token=session.token,
        issued_at=session.issued_at,
        expires_at=session.issued_at + ttl,
        profile=session.profile,
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    credentials: UserLogin,
    store: Store = Depends(get_store),
    sessions: SessionStore = Depends(get_session_store),
    ttl: timedelta = Depends(get_session_ttl),
):
    """Login with email and password (check-in app)"""
    return await _open_session(credentials, store, sessions, ttl)


@router.post("/admin/login", response_model=SessionResponse)
async def admin_login(
    credentials: UserLogin,
    store: Store = Depends(get_store),
    sessions: SessionStore = Depends(get_session_store),
    ttl: timedelta = Depends(get_session_ttl),
):
    """Login to the admin panel; the profile must have the admin role"""
    return await _open_session(credentials, store, sessions, ttl, admin_only=True)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    session: Session = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
):
    """Logout current user"""
    sessions.clear(session.token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=Profile)
async def get_current_user_profile(session: Session = Depends(get_current_session)):
    """Profile snapshot cached in the current session"""
    return session.profile
