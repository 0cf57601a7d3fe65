"""Session storage capability used by the session guard."""

import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

from rollcall.models.profile import Profile
from rollcall.models.session import Session


class SessionStore(ABC):
    @abstractmethod
    def persist(self, session: Session) -> None: ...

    @abstractmethod
    def load(self, token: str) -> Optional[Session]: ...

    @abstractmethod
    def clear(self, token: str) -> None: ...

    @abstractmethod
    def clear_for_profile(self, profile_id: str) -> int:
        """Drop every session of ``profile_id``; return how many were dropped."""


class InMemorySessionStore(SessionStore):
    """Process-local session store.

    Fine for a single worker; run one worker per store or swap in a shared
    implementation when scaling out.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def persist(self, session: Session) -> None:
        self._sessions[session.token] = session

    def load(self, token: str) -> Optional[Session]:
        return self._sessions.get(token)

    def clear(self, token: str) -> None:
        self._sessions.pop(token, None)

    def clear_for_profile(self, profile_id: str) -> int:
        tokens = [t for t, s in self._sessions.items() if s.profile.id == profile_id]
        for token in tokens:
            del self._sessions[token]
        return len(tokens)


def new_session(profile: Profile, now: Optional[datetime] = None) -> Session:
    return Session(
        token=secrets.token_urlsafe(32),
        profile=profile,
        issued_at=now or datetime.now(timezone.utc),
    )
