from fastapi import APIRouter
from rollcall.api.v1.endpoints import auth, activities, announcements, attendance, departments, students

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(activities.router, prefix="/activities", tags=["Activities"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(announcements.router, prefix="/announcements", tags=["Announcements"])
api_router.include_router(students.router, prefix="/students", tags=["Students"])
api_router.include_router(departments.router, prefix="/departments", tags=["Departments"])
