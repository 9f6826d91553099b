"""
FastAPI routes for staff sign-in.

    GET  /login             login form (public; signed-in staff are redirected)
    POST /login             phone + PIN form
    POST /logout            always clears the local session
    GET  /dashboard         protected landing page
    GET  /session           current auth state
    POST /session/refresh   re-run session refresh
"""

from __future__ import annotations

import re
from typing import Any, Dict

from fastapi import APIRouter, Depends, Form, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from dairydesk.auth.models import Profile
from dairydesk.core.session_context import SessionContext
from .auth_middleware import (
    HOME_PATH,
    LOGIN_PATH,
    get_session_context,
    redirect_if_authenticated,
    require_login,
)

router = APIRouter(tags=["auth"])

PHONE_RE = re.compile(r"^\d{10}$")
PIN_RE = re.compile(r"^\d{6}$")

LOGIN_PAGE = """<!doctype html>
<html>
<head><title>DairyDesk - Staff Login</title></head>
<body>
  <h1>Staff Login</h1>
  <p>Enter your phone number and PIN to access your account</p>
  <form method="post" action="/login">
    <input name="phone" inputmode="numeric" maxlength="10" placeholder="10-digit phone" required>
    <input name="pin" type="password" inputmode="numeric" maxlength="6" placeholder="6-digit PIN" required>
    <button type="submit">Sign in</button>
  </form>
</body>
</html>
"""


def _session_state(context: SessionContext) -> Dict[str, Any]:
    user = context.user
    return {
        "user": user.model_dump(mode="json") if user else None,
        "is_loading": context.is_loading,
        "is_authenticated": context.is_authenticated,
        "demo": context.is_demo,
    }


@router.get(LOGIN_PATH, response_class=HTMLResponse)
async def login_page(_: SessionContext = Depends(redirect_if_authenticated)) -> Any:
    return HTMLResponse(LOGIN_PAGE)


@router.post(LOGIN_PATH)
async def login(
    phone: str = Form(...),
    pin: str = Form(...),
    context: SessionContext = Depends(redirect_if_authenticated),
) -> Any:
    """
    Sign in with phone + PIN.

    400 on malformed input, 401 with {success, message, failure} when the
    login fails, 303 to /dashboard on success.
    """
    phone = phone.strip()
    pin = pin.strip()
    if not PHONE_RE.match(phone):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Please enter a valid 10-digit phone number"},
        )
    if not PIN_RE.match(pin):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Please enter a 6-digit PIN"},
        )

    result = await context.login(phone, pin)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=result.model_dump(mode="json", include={"success", "message", "failure"}),
        )
    return RedirectResponse(HOME_PATH, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/logout")
async def logout(context: SessionContext = Depends(get_session_context)) -> Any:
    await context.logout()
    return RedirectResponse(LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)


@router.get(HOME_PATH)
async def dashboard(user: Profile = Depends(require_login)) -> Any:
    return {"welcome": user.full_name, "user": user.model_dump(mode="json")}


@router.get("/session")
async def session_state(context: SessionContext = Depends(get_session_context)) -> Any:
    return _session_state(context)


@router.post("/session/refresh")
async def refresh_session(context: SessionContext = Depends(get_session_context)) -> Any:
    await context.refresh_session()
    return _session_state(context)
