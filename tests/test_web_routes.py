"""Tests for the dashboard routes and route guards"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dairydesk.auth.models import StaffLoginResponse
from dairydesk.core.session_context import SessionContext
from dairydesk.utils.exceptions import MisuseError, TransportError
from dairydesk_web.auth_routes import router as auth_router
from dairydesk_web.main import create_app


@pytest.fixture
def context(service):
    return SessionContext(service)


@pytest.fixture
def client(context):
    with TestClient(create_app(context=context), follow_redirects=False) as test_client:
        yield test_client


def test_anonymous_dashboard_redirects_to_login(client):
    res = client.get("/dashboard")
    assert res.status_code == 303
    assert res.headers["location"] == "/login"


def test_login_page_is_public(client):
    res = client.get("/login")
    assert res.status_code == 200
    assert "Staff Login" in res.text


def test_demo_login_flow(client, backend):
    res = client.post("/login", data={"phone": "9876543210", "pin": "123456"})
    assert res.status_code == 303
    assert res.headers["location"] == "/dashboard"

    res = client.get("/dashboard")
    assert res.status_code == 200, res.text
    assert res.json()["user"]["role"] == "super_admin"

    # signed-in staff are sent away from the login page
    res = client.get("/login")
    assert res.status_code == 303
    assert res.headers["location"] == "/dashboard"

    state = client.get("/session").json()
    assert state["is_authenticated"] and state["demo"]
    assert backend.calls == []


def test_login_failure_returns_message(client, backend):
    backend.login_response = StaffLoginResponse(success=False, message="Invalid PIN")
    res = client.post("/login", data={"phone": "9123456789", "pin": "654321"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Invalid PIN", "failure": "auth_rejected"}


def test_login_backend_down(client, backend):
    backend.login_error = TransportError("offline")
    res = client.post("/login", data={"phone": "9123456789", "pin": "654321"})
    assert res.status_code == 401
    assert res.json()["failure"] == "transport_error"


@pytest.mark.parametrize("phone, pin", [("98765", "123456"), ("9876543210", "12"), ("98765abcde", "123456")])
def test_login_input_format(client, backend, phone, pin):
    res = client.post("/login", data={"phone": phone, "pin": pin})
    assert res.status_code == 400
    assert backend.calls == []


def test_logout_returns_to_login(client, backend):
    client.post("/login", data={"phone": "9876543210", "pin": "123456"})
    res = client.post("/logout")
    assert res.status_code == 303
    assert res.headers["location"] == "/login"
    assert client.get("/session").json()["is_authenticated"] is False
    assert client.get("/dashboard").status_code == 303


def test_session_restored_on_startup(store, service, backend, profile_factory):
    store.save("tok-abc", profile_factory())
    backend.validate_error = TransportError("offline")
    with TestClient(create_app(context=SessionContext(service)), follow_redirects=False) as client:
        state = client.get("/session").json()
    assert state["is_authenticated"]
    assert not state["is_loading"]
    assert state["user"]["full_name"] == "Ravi Kumar"


def test_refresh_endpoint_drops_revoked_session(client, store, backend, profile_factory):
    store.save("tok-abc", profile_factory())
    backend.validate_response = backend.validate_response.model_copy(update={"success": False})
    state = client.post("/session/refresh").json()
    assert state["is_authenticated"] is False
    assert store.get_token() is None


def test_router_without_context_fails_loudly():
    app = FastAPI()
    app.include_router(auth_router)
    with TestClient(app) as client:
        with pytest.raises(MisuseError):
            client.get("/session")
