# tests/conftest.py
from unittest.mock import AsyncMock

import pytest

from fakes import FakeStore, make_profile
from rollcall.models.profile import Profile, ProfileResponse, UserRole
from rollcall.services.store import Store


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def mock_store() -> AsyncMock:
    return AsyncMock(spec=Store)


@pytest.fixture
def student() -> ProfileResponse:
    return make_profile(
        id="P1",
        classroom_id="C1",
        department_id="D1",
        year_level=1,
        classroom_name="M.1/1",
        department_name="Science",
    )


@pytest.fixture
def admin() -> Profile:
    return Profile(id="ADMIN", role=UserRole.ADMIN, full_name="Admin User")
