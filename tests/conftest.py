import asyncio
import itertools
from typing import Any, List, Optional, Tuple

import pytest

from dairydesk.auth.demo import default_demo_registry
from dairydesk.auth.models import Profile, StaffLoginResponse, ValidateSessionResponse
from dairydesk.auth.service import AuthenticationService
from dairydesk.stores.session_store import MemorySessionStore


def make_profile(**overrides: Any) -> Profile:
    data = {
        "id": "u-100",
        "full_name": "Ravi Kumar",
        "phone": "9123456789",
        "role": "manager",
        "is_active": True,
        "created_at": "2024-03-01T08:00:00",
        "updated_at": "2024-03-01T08:00:00",
    }
    data.update(overrides)
    return Profile(**data)


class FakeBackend:
    """Scriptable stand-in for the auth RPCs. Records every call."""

    def __init__(self):
        self.calls: List[Tuple[str, Any]] = []
        self.login_response: Optional[StaffLoginResponse] = StaffLoginResponse(
            success=False, message="User not found"
        )
        self.login_error: Optional[BaseException] = None
        self.validate_response = ValidateSessionResponse(success=True, user=make_profile())
        self.validate_error: Optional[BaseException] = None
        self.logout_error: Optional[BaseException] = None
        # when set, staff_login / validate_session wait on them before answering
        self.validate_gate: Optional[asyncio.Event] = None
        self.login_gate: Optional[asyncio.Event] = None

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def staff_login(self, phone: str, pin: str) -> StaffLoginResponse:
        self.calls.append(("staff_login", phone))
        if self.login_gate is not None:
            await self.login_gate.wait()
        await asyncio.sleep(0)
        if self.login_error:
            raise self.login_error
        return self.login_response

    async def validate_session(self, session_token: str) -> ValidateSessionResponse:
        self.calls.append(("validate_session", session_token))
        if self.validate_gate is not None:
            await self.validate_gate.wait()
        await asyncio.sleep(0)
        if self.validate_error:
            raise self.validate_error
        return self.validate_response

    async def logout_session(self, session_token: str) -> None:
        self.calls.append(("logout_session", session_token))
        await asyncio.sleep(0)
        if self.logout_error:
            raise self.logout_error


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def id_generator():
    counter = itertools.count(1)
    return lambda: f"{next(counter):04d}"


@pytest.fixture
def service(store, backend, id_generator) -> AuthenticationService:
    return AuthenticationService(
        store=store,
        registry=default_demo_registry(),
        backend=backend,
        id_generator=id_generator,
    )


@pytest.fixture
def profile_factory():
    return make_profile
