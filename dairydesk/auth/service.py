"""
Session authentication service.

Mediates between the demo credential registry, the client-side session
store and the remote auth RPCs:
- login: demo table first (no network), then staff_login
- logout: best-effort logout_session, local clear always
- refresh_session: restore the stored session, revalidating real tokens

None of the three raise for backend faults. login reports them in a
LoginResult; logout and refresh_session resolve them into store state.
"""

from __future__ import annotations

from typing import Callable, Optional
from uuid import uuid4

from ..api.rpc_client import RpcBackend
from ..stores.session_store import SessionStore
from ..utils.exceptions import BackendUnconfigured, TransportError
from ..utils.logger import get_logger, mask_phone
from .demo import DemoCredentialRegistry, EmptyDemoRegistry
from .models import (
    DEMO_TOKEN_PREFIX,
    FailureKind,
    LoginResult,
    Profile,
    Session,
    is_demo_token,
)

logger = get_logger(__name__)

MSG_BACKEND_UNAVAILABLE = "Unable to reach the server. Check your connection and try again."
MSG_BACKEND_UNCONFIGURED = (
    "The login service is not configured yet. Use the demo credentials to sign in."
)
MSG_LOGIN_FAILED = "Login failed"
MSG_INVALID_PIN = "Invalid PIN"
MSG_USER_NOT_FOUND = "User not found"


def _uuid_hex() -> str:
    return uuid4().hex


class AuthenticationService:
    """Owns login, logout and session refresh for one client session."""

    def __init__(
        self,
        store: SessionStore,
        registry: Optional[DemoCredentialRegistry] = None,
        backend: Optional[RpcBackend] = None,
        id_generator: Callable[[], str] = _uuid_hex,
    ):
        self.store = store
        self.registry = registry or EmptyDemoRegistry()
        self.backend = backend
        self._new_id = id_generator

    def _demo_token(self) -> str:
        return f"{DEMO_TOKEN_PREFIX}{self._new_id()}"

    async def login(self, phone: str, pin: str) -> LoginResult:
        # Demo accounts short-circuit before any await
        account = self.registry.lookup(phone)
        if account is not None:
            if not account.profile.is_active:
                logger.info("Demo login rejected: inactive account", phone=mask_phone(phone))
                return LoginResult.failed(FailureKind.AUTH_REJECTED, MSG_USER_NOT_FOUND)
            if not account.matches(pin):
                logger.info("Demo login rejected", phone=mask_phone(phone))
                return LoginResult.failed(FailureKind.AUTH_REJECTED, MSG_INVALID_PIN)
            token = self._demo_token()
            if not self._persist(token, account.profile):
                return LoginResult.failed(FailureKind.UNEXPECTED_FAILURE, MSG_LOGIN_FAILED)
            logger.info("Login succeeded", phone=mask_phone(phone), demo=True, role=account.profile.role.value)
            return LoginResult.ok(token, account.profile)

        if self.backend is None:
            logger.warning("Login attempted with no backend configured", phone=mask_phone(phone))
            return LoginResult.failed(FailureKind.BACKEND_UNCONFIGURED, MSG_BACKEND_UNCONFIGURED)

        try:
            response = await self.backend.staff_login(phone, pin)
        except TransportError as e:
            logger.warning("Login failed: backend unreachable", phone=mask_phone(phone), error=str(e))
            return LoginResult.failed(FailureKind.TRANSPORT_ERROR, MSG_BACKEND_UNAVAILABLE)
        except BackendUnconfigured as e:
            logger.warning("Login failed: backend not configured", phone=mask_phone(phone), error=str(e))
            return LoginResult.failed(FailureKind.BACKEND_UNCONFIGURED, MSG_BACKEND_UNCONFIGURED)
        except Exception as e:
            logger.error("Login failed: unexpected error", phone=mask_phone(phone), error=str(e), exc_info=True)
            return LoginResult.failed(FailureKind.UNEXPECTED_FAILURE, MSG_LOGIN_FAILED)

        if not response.success:
            logger.info("Login rejected by backend", phone=mask_phone(phone))
            return LoginResult.failed(FailureKind.AUTH_REJECTED, response.message or MSG_LOGIN_FAILED)

        if not response.session_token or response.user is None:
            logger.error("Login response missing token or user", phone=mask_phone(phone))
            return LoginResult.failed(FailureKind.UNEXPECTED_FAILURE, MSG_LOGIN_FAILED)

        if not self._persist(response.session_token, response.user):
            return LoginResult.failed(FailureKind.UNEXPECTED_FAILURE, MSG_LOGIN_FAILED)
        logger.info("Login succeeded", phone=mask_phone(phone), demo=False, role=response.user.role.value)
        return LoginResult.ok(response.session_token, response.user)

    async def logout(self) -> None:
        token = self.store.get_token()
        try:
            if token and not is_demo_token(token) and self.backend is not None:
                await self.backend.logout_session(token)
        except Exception as e:
            # Local logout must not depend on the backend
            logger.warning("Remote logout failed", error=str(e))
        finally:
            self.store.clear()
        logger.info("Logged out", had_session=bool(token))

    async def refresh_session(self) -> Optional[Session]:
        """Restore the stored session. Returns None when unauthenticated."""
        token = self.store.get_token()
        cached = self.store.get_cached_profile()

        if not token:
            return None

        if is_demo_token(token):
            if cached is None:
                # a demo session cannot be re-derived without its profile
                self.store.clear()
                return None
            logger.debug("Restored demo session", user_id=cached.id)
            return Session(token=token, user=cached)

        if self.backend is None:
            return self._trust_cached(token, cached, reason="no backend configured")

        try:
            response = await self.backend.validate_session(token)
        except TransportError as e:
            logger.warning("Session validation unreachable", error=str(e), has_cached_profile=cached is not None)
            return self._trust_cached(token, cached, reason="backend unreachable")
        except BackendUnconfigured as e:
            logger.warning("Session validation not provisioned", error=str(e))
            self.store.clear()
            return None
        except Exception as e:
            logger.error("Session validation failed unexpectedly", error=str(e), exc_info=True)
            self.store.clear()
            return None

        if not response.success:
            logger.info("Session rejected by backend")
            self.store.clear()
            return None

        user = cached or response.user
        if user is None:
            logger.error("Session validated without a profile")
            self.store.clear()
            return None
        if cached is None:
            self._persist(token, user)
        return Session(token=token, user=user)

    def _persist(self, token: str, profile: Profile) -> bool:
        try:
            self.store.save(token, profile)
        except OSError as e:
            logger.error("Could not persist session", error=str(e))
            return False
        return True

    def _trust_cached(self, token: str, cached: Optional[Profile], reason: str) -> Optional[Session]:
        if cached is None:
            self.store.clear()
            return None
        logger.info("Trusting cached profile", reason=reason, user_id=cached.id)
        return Session(token=token, user=cached)
