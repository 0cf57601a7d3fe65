from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    STAFF = "staff"
    ADMIN = "admin"


# Privilege ladder used by the session guard
ROLE_RANK = {
    UserRole.STUDENT: 0,
    UserRole.TEACHER: 1,
    UserRole.STAFF: 1,
    UserRole.ADMIN: 2,
}


class Profile(BaseModel):
    """A person record as stored in the ``profiles`` table.

    Classroom, department and year level are optional; a missing value simply
    never matches a targeting rule on that axis.
    """
    id: str
    role: UserRole = UserRole.STUDENT
    full_name: str = ""
    email: Optional[str] = None
    student_code: Optional[str] = None
    classroom_id: Optional[str] = None
    department_id: Optional[str] = None
    year_level: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class ProfileResponse(Profile):
    classroom_name: Optional[str] = None
    department_name: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileStatusUpdate(BaseModel):
    is_active: bool
