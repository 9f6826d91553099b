"""
Route guards.

- get_session_context(): the SessionContext installed on the app
- require_login(): protected routes; anonymous visitors go to /login
- redirect_if_authenticated(): the public login route; signed-in staff go
  to /dashboard

While the startup refresh is still running both guards answer 503 with
Retry-After instead of guessing.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from dairydesk.auth.models import Profile
from dairydesk.core.session_context import SessionContext
from dairydesk.utils.exceptions import MisuseError

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"


class RedirectRequired(Exception):
    """Raised by guards; turned into a 303 by the app's exception handler."""

    def __init__(self, location: str):
        self.location = location
        super().__init__(location)


def get_session_context(request: Request) -> SessionContext:
    context = getattr(request.app.state, "session_context", None)
    if context is None:
        raise MisuseError("No SessionContext installed on this app; build it with create_app()")
    if not context.is_open:
        raise MisuseError(f"SessionContext {context.name!r} is not open")
    return context


def _wait_for_loading(context: SessionContext) -> None:
    if context.is_loading:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session is loading",
            headers={"Retry-After": "1"},
        )


async def require_login(context: SessionContext = Depends(get_session_context)) -> Profile:
    """Dependency for protected routes. Returns the signed-in profile."""
    _wait_for_loading(context)
    if not context.is_authenticated:
        raise RedirectRequired(LOGIN_PATH)
    return context.user


async def redirect_if_authenticated(context: SessionContext = Depends(get_session_context)) -> SessionContext:
    """Dependency for the login page."""
    _wait_for_loading(context)
    if context.is_authenticated:
        raise RedirectRequired(HOME_PATH)
    return context
