from fastapi import Depends, Request

from rollcall.services.checkin import CheckInService
from rollcall.services.store import Store


def get_store(request: Request) -> Store:
    """Shared store created at startup and kept on the application state."""
    return request.app.state.store


def get_checkin_service(store: Store = Depends(get_store)) -> CheckInService:
    return CheckInService(store)
