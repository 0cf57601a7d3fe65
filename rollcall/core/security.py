"""Session guard: one canonical expiry and role check for every protected route."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from rollcall.core.config import get_settings
from rollcall.core.exceptions import AuthenticationError, AuthorizationError
from rollcall.core.logging_config import get_logger
from rollcall.core.sessions import SessionStore
from rollcall.models.profile import ROLE_RANK, UserRole
from rollcall.models.session import Session

logger = get_logger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=24)

bearer_scheme = HTTPBearer(auto_error=False)


class SessionState(str, Enum):
    VALID = "valid"
    NO_SESSION = "no_session"
    EXPIRED = "expired"
    WRONG_ROLE = "wrong_role"


def is_expired(session: Session, ttl: timedelta, now: datetime) -> bool:
    """A session issued exactly ``ttl`` ago is already expired."""
    return now - session.issued_at >= ttl


def has_role(role: UserRole, required_role: UserRole) -> bool:
    return ROLE_RANK.get(role, -1) >= ROLE_RANK[required_role]


def evaluate_session(
    session: Optional[Session],
    required_role: UserRole,
    ttl: timedelta,
    now: Optional[datetime] = None,
) -> SessionState:
    """Classify a cached session. Read-only: never refreshes or extends it."""
    if session is None:
        return SessionState.NO_SESSION
    now = now or datetime.now(timezone.utc)
    if is_expired(session, ttl, now):
        return SessionState.EXPIRED
    if not has_role(session.profile.role, required_role):
        return SessionState.WRONG_ROLE
    return SessionState.VALID


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_session_ttl() -> timedelta:
    settings = get_settings()
    if settings is None:
        return DEFAULT_SESSION_TTL
    return timedelta(hours=settings.SESSION_TTL_HOURS)


def guard_session(
    token: Optional[str],
    store: SessionStore,
    required_role: UserRole,
    ttl: timedelta,
    now: Optional[datetime] = None,
) -> Session:
    """Return the valid session for ``token`` or raise.

    An expired session is cleared from the store before raising.
    """
    session = store.load(token) if token else None
    state = evaluate_session(session, required_role, ttl, now)

    if state == SessionState.NO_SESSION:
        raise AuthenticationError("Please login to continue", error_code="NO_SESSION")
    if state == SessionState.EXPIRED:
        store.clear(token)
        logger.info(f"Session expired for profile {session.profile.id}")
        raise AuthenticationError("Your session has expired, please login again", error_code="SESSION_EXPIRED")
    if state == SessionState.WRONG_ROLE:
        logger.warning(
            f"Profile {session.profile.id} ({session.profile.role.value}) "
            f"denied access requiring {required_role.value}"
        )
        raise AuthorizationError("You do not have permission to access this page", error_code="WRONG_ROLE")
    return session


def require_role(required_role: UserRole):
    """Dependency factory guarding a route with the minimum ``required_role``."""

    def dependency(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
        store: SessionStore = Depends(get_session_store),
        ttl: timedelta = Depends(get_session_ttl),
    ) -> Session:
        token = credentials.credentials if credentials else None
        return guard_session(token, store, required_role, ttl)

    return dependency


get_current_session = require_role(UserRole.STUDENT)
require_admin = require_role(UserRole.ADMIN)
