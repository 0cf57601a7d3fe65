from pydantic import BaseModel, field_validator
from datetime import datetime

from rollcall.models.profile import Profile
from rollcall.models.timestamps import as_utc


class Session(BaseModel):
    """A cached credential bundle: profile snapshot plus issue time."""
    token: str
    profile: Profile
    issued_at: datetime

    @field_validator('issued_at')
    @classmethod
    def normalize_issued_at(cls, v: datetime) -> datetime:
        return as_utc(v)


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    issued_at: datetime
    expires_at: datetime
    profile: Profile
