"""
Departments and Classrooms API Endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from rollcall.api.dependencies import get_store
from rollcall.core.exceptions import NotFoundError
from rollcall.core.logging_config import get_logger
from rollcall.core.security import get_current_session, require_admin
from rollcall.models.organization import Classroom, ClassroomCreate, Department, DepartmentCreate
from rollcall.models.session import Session
from rollcall.services.store import Store

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=List[Department])
async def list_departments(
    session: Session = Depends(get_current_session),
    store: Store = Depends(get_store),
):
    """Departments by name"""
    return await store.query_departments()


@router.post("", response_model=Department, status_code=status.HTTP_201_CREATED)
async def create_department(
    department_data: DepartmentCreate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    department = await store.create_department(department_data.model_dump())
    logger.info(f"Department created: {department.id} ({department.name})")
    return department


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_department(
    department_id: str,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Delete a department; fails with 409 while classrooms or profiles still use it"""
    if not await store.delete_department(department_id):
        raise NotFoundError("Department not found", error_code="DEPARTMENT_NOT_FOUND")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/classrooms", response_model=List[Classroom])
async def list_classrooms(
    department_id: Optional[str] = Query(None),
    year_level: Optional[int] = Query(None, ge=1, le=5),
    session: Session = Depends(get_current_session),
    store: Store = Depends(get_store),
):
    """Classrooms ordered by department, year and name"""
    return await store.query_classrooms(department_id=department_id, year_level=year_level)


@router.post("/classrooms", response_model=Classroom, status_code=status.HTTP_201_CREATED)
async def create_classroom(
    classroom_data: ClassroomCreate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    classroom = await store.create_classroom(classroom_data.model_dump())
    logger.info(f"Classroom created: {classroom.id} ({classroom.name})")
    return classroom


@router.delete("/classrooms/{classroom_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_classroom(
    classroom_id: str,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    if not await store.delete_classroom(classroom_id):
        raise NotFoundError("Classroom not found", error_code="CLASSROOM_NOT_FOUND")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
