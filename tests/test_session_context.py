"""Tests for SessionContext state, scope and concurrency guards"""

import asyncio

import pytest

from dairydesk.auth.models import FailureKind, StaffLoginResponse
from dairydesk.core.session_context import MSG_LOGIN_SUPERSEDED, SessionContext
from dairydesk.utils.exceptions import MisuseError, TransportError


def test_loading_until_first_refresh(service):
    async def run():
        context = SessionContext(service)
        opening = asyncio.ensure_future(context.open())
        await asyncio.sleep(0)
        assert context.is_loading
        await opening
        return context

    context = asyncio.run(run())
    assert not context.is_loading
    assert not context.is_authenticated
    assert context.user is None
    assert context.token is None


def test_login_sets_authenticated_state(service, store):
    async def run():
        async with SessionContext(service) as context:
            result = await context.login("9876543210", "123456")
            return result, context.is_authenticated, context.token, context.user

    result, authenticated, token, user = asyncio.run(run())
    assert result.success
    assert authenticated
    assert token == result.token
    assert user.role.value == "super_admin"
    assert store.get_token() is not None


def test_failed_login_keeps_state(service, backend):
    async def run():
        async with SessionContext(service) as context:
            result = await context.login("9123456789", "654321")
            return result, context.is_authenticated

    result, authenticated = asyncio.run(run())
    assert not result.success
    assert not authenticated


def test_logout_twice_leaves_same_state(service, store, backend, profile_factory):
    store.save("tok-abc", profile_factory())
    backend.logout_error = TransportError("offline")

    async def run():
        async with SessionContext(service) as context:
            assert context.is_authenticated
            states = []
            for _ in range(2):
                await context.logout()
                states.append((context.is_authenticated, context.user, context.token))
            return states

    first, second = asyncio.run(run())
    assert first == second == (False, None, None)
    assert store.get_token() is None


def test_demo_session_restored_on_open(service, store, backend):
    asyncio.run(service.login("7897716792", "101101"))

    async def run():
        async with SessionContext(service) as context:
            return context.is_authenticated, context.is_demo, context.user.full_name

    assert asyncio.run(run()) == (True, True, "Awadh Dairy Admin")
    assert "validate_session" not in backend.names()


@pytest.mark.parametrize("cached, expected", [(True, True), (False, False)])
def test_offline_refresh_depends_on_cached_profile(service, store, backend, profile_factory, cached, expected):
    if cached:
        store.save("tok-abc", profile_factory())
    else:
        store._token = "tok-abc"
    backend.validate_error = TransportError("offline")

    async def run():
        async with SessionContext(service) as context:
            return context.is_loading, context.is_authenticated

    assert asyncio.run(run()) == (False, expected)


def test_concurrent_refreshes_share_one_validation(service, store, backend, profile_factory):
    store.save("tok-abc", profile_factory())

    async def run():
        async with SessionContext(service) as context:
            backend.calls.clear()
            backend.validate_gate = asyncio.Event()
            refreshes = [asyncio.ensure_future(context.refresh_session()) for _ in range(3)]
            await asyncio.sleep(0)
            backend.validate_gate.set()
            await asyncio.gather(*refreshes)
            return context.is_authenticated

    assert asyncio.run(run())
    assert backend.names() == ["validate_session"]


def test_login_waits_for_running_refresh(service, store, backend, profile_factory):
    store.save("tok-abc", profile_factory())
    backend.validate_error = TransportError("offline")

    async def run():
        context = SessionContext(service)
        backend.validate_gate = asyncio.Event()
        opening = asyncio.ensure_future(context.open())
        await asyncio.sleep(0)
        login = asyncio.ensure_future(context.login("9876543210", "123456"))
        await asyncio.sleep(0)
        # login is queued behind the refresh holding the session lock
        assert store.get_token() == "tok-abc"
        backend.validate_gate.set()
        await opening
        result = await login
        return context, result

    context, result = asyncio.run(run())
    assert result.success
    assert context.token == result.token
    assert store.get_token() == result.token


def test_result_after_close_is_discarded(service, store, backend, profile_factory):
    store.save("tok-abc", profile_factory())

    async def run():
        context = SessionContext(service)
        backend.validate_gate = asyncio.Event()
        opening = asyncio.ensure_future(context.open())
        await asyncio.sleep(0)
        context.close()
        backend.validate_gate.set()
        await opening
        return context

    context = asyncio.run(run())
    assert not context.is_open
    assert context._user is None
    assert context._token is None


def test_state_outside_scope_raises():
    from dairydesk.auth.service import AuthenticationService
    from dairydesk.stores.session_store import MemorySessionStore

    context = SessionContext(AuthenticationService(store=MemorySessionStore()))
    with pytest.raises(MisuseError):
        context.is_authenticated
    with pytest.raises(MisuseError):
        asyncio.run(context.login("9876543210", "123456"))


def test_closed_context_raises(service):
    async def run():
        async with SessionContext(service) as context:
            pass
        return context

    context = asyncio.run(run())
    with pytest.raises(MisuseError):
        context.user


def test_open_twice_raises(service):
    async def run():
        async with SessionContext(service) as context:
            await context.open()

    with pytest.raises(MisuseError):
        asyncio.run(run())


def test_logout_queues_behind_slow_login(service, store, backend, profile_factory):
    backend.login_response = StaffLoginResponse(success=True, session_token="tok-new", user=profile_factory())

    async def run():
        async with SessionContext(service) as context:
            backend.login_gate = asyncio.Event()
            login = asyncio.ensure_future(context.login("9123456789", "654321"))
            await asyncio.sleep(0.01)
            logout = asyncio.ensure_future(context.logout())
            await asyncio.sleep(0.01)
            assert not logout.done()
            backend.login_gate.set()
            result = await login
            await logout
            return result, context.is_authenticated, context.token

    result, authenticated, token = asyncio.run(run())
    assert result.success
    assert not authenticated
    assert token is None
    assert store.get_token() is None
    assert ("logout_session", "tok-new") in backend.calls


def test_logout_with_lock_timeout_clears_behind_slow_login(service, store, backend, profile_factory):
    backend.login_response = StaffLoginResponse(success=True, session_token="tok-new", user=profile_factory())

    async def run():
        async with SessionContext(service, lock_timeout=0.05) as context:
            backend.login_gate = asyncio.Event()
            login = asyncio.ensure_future(context.login("9123456789", "654321"))
            await asyncio.sleep(0.01)
            await context.logout()
            after_logout = (context.is_authenticated, store.get_token())
            backend.login_gate.set()
            result = await login
            return after_logout, result, context.is_authenticated

    after_logout, result, authenticated = asyncio.run(run())
    assert after_logout == (False, None)
    assert not result.success
    assert result.failure is FailureKind.SESSION_INVALID
    assert result.message == MSG_LOGIN_SUPERSEDED
    assert not authenticated
    assert store.get_token() is None
    # the token issued to the superseded login is revoked too
    assert ("logout_session", "tok-new") in backend.calls


def test_refresh_with_lock_timeout_skips_behind_slow_login(service, store, backend, profile_factory):
    backend.login_response = StaffLoginResponse(success=True, session_token="tok-new", user=profile_factory())

    async def run():
        async with SessionContext(service, lock_timeout=0.05) as context:
            backend.login_gate = asyncio.Event()
            login = asyncio.ensure_future(context.login("9123456789", "654321"))
            await asyncio.sleep(0.01)
            await context.refresh_session()
            skipped = (context.is_authenticated, context.is_loading)
            backend.login_gate.set()
            result = await login
            return skipped, result, context.token

    skipped, result, token = asyncio.run(run())
    assert skipped == (False, False)
    assert "validate_session" not in backend.names()
    assert result.success
    assert token == "tok-new"
