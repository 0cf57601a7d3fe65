"""
Department and Classroom Models (lookup data behind targeting and roster filters)
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class Department(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class Classroom(BaseModel):
    id: str
    name: str
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    year_level: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class ClassroomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    department_id: str = Field(..., min_length=1)
    year_level: int = Field(1, ge=1, le=5)
