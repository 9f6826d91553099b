"""
Session context.

The one object the rest of the application reads auth state from. It is
built explicitly and passed to whatever needs it; nothing is global.

    async with SessionContext(service) as session:
        if not session.is_authenticated:
            await session.login(phone, pin)

Entering the scope runs the initial refresh_session. Reading state or
calling operations outside the scope raises MisuseError.
"""

from __future__ import annotations

from typing import Optional

from ..auth.models import FailureKind, LoginResult, Profile, Session, is_demo_token
from ..auth.service import AuthenticationService
from ..utils.exceptions import MisuseError
from ..utils.logger import get_logger
from .locks import KeyedLocks, SingleFlight, lock_key_session

logger = get_logger(__name__)

MSG_LOGIN_SUPERSEDED = "Signed out while the login was in progress"


class SessionContext:
    """
    Reactive auth state: user, token, is_loading, is_authenticated.

    Every operation holds the session lock, so the store is never mutated by
    two operations at once. Each operation also records the generation it
    sees once it holds the lock and only applies its result if the context
    was not closed meanwhile.

    With a finite ``lock_timeout``, a logout that cannot get the lock still
    clears the store and state, and a refresh that cannot get it leaves the
    state alone. Neither raises.
    """

    def __init__(
        self,
        service: AuthenticationService,
        name: str = "default",
        locks: Optional[KeyedLocks] = None,
        lock_timeout: Optional[float] = None,
    ):
        self.service = service
        self.name = name
        # None: operations queue behind a slow login for as long as it takes
        self.lock_timeout = lock_timeout
        self._locks = locks or KeyedLocks()
        self._flight = SingleFlight()
        self._lock_key = lock_key_session(name)

        self._user: Optional[Profile] = None
        self._token: Optional[str] = None
        self._is_loading = True
        self._generation = 0
        self._open = False

    # --- scope -------------------------------------------------------------

    async def __aenter__(self) -> "SessionContext":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def open(self) -> None:
        if self._open:
            raise MisuseError(f"Session context {self.name!r} is already open")
        self._open = True
        self._is_loading = True
        await self.refresh_session()

    def close(self) -> None:
        """Leave scope. In-flight operations finish but their results are dropped."""
        self._open = False
        self._generation += 1
        self._user = None
        self._token = None

    @property
    def is_open(self) -> bool:
        return self._open

    def _require_open(self) -> None:
        if not self._open:
            raise MisuseError(
                f"Session context {self.name!r} used outside its scope; "
                "open it with 'async with SessionContext(...)' first"
            )

    # --- state -------------------------------------------------------------

    @property
    def user(self) -> Optional[Profile]:
        self._require_open()
        return self._user

    @property
    def token(self) -> Optional[str]:
        self._require_open()
        return self._token

    @property
    def is_loading(self) -> bool:
        self._require_open()
        return self._is_loading

    @property
    def is_authenticated(self) -> bool:
        self._require_open()
        return self._user is not None and self._token is not None

    @property
    def is_demo(self) -> bool:
        self._require_open()
        return is_demo_token(self._token)

    def _apply(self, generation: int, session: Optional[Session]) -> bool:
        """Publish ``session`` as current state. False if the result is stale."""
        if generation != self._generation or not self._open:
            logger.info("Discarding stale session result", context=self.name)
            return False
        self._generation += 1
        self._token = session.token if session else None
        self._user = session.user if session else None
        return True

    # --- operations --------------------------------------------------------

    async def login(self, phone: str, pin: str) -> LoginResult:
        self._require_open()
        async with self._locks.acquire(self._lock_key, timeout_seconds=self.lock_timeout):
            generation = self._generation
            result = await self.service.login(phone, pin)
            if result.success:
                applied = self._apply(generation, Session(token=result.token, user=result.user))
                if not applied and self._open:
                    # a logout went ahead while this login was in flight
                    await self.service.logout()
                    return LoginResult.failed(FailureKind.SESSION_INVALID, MSG_LOGIN_SUPERSEDED)
        return result

    async def logout(self) -> None:
        self._require_open()
        try:
            async with self._locks.acquire(self._lock_key, timeout_seconds=self.lock_timeout):
                generation = self._generation
                await self.service.logout()
                self._apply(generation, None)
                return
        except TimeoutError:
            logger.warning("Session busy; logging out without the session lock", context=self.name)
        # local cleanup must not wait on an operation stuck behind the backend
        await self.service.logout()
        self._apply(self._generation, None)

    async def refresh_session(self) -> None:
        self._require_open()
        await self._flight.do(self._lock_key, self._refresh)

    async def _refresh(self) -> None:
        try:
            async with self._locks.acquire(self._lock_key, timeout_seconds=self.lock_timeout):
                generation = self._generation
                session = await self.service.refresh_session()
                self._apply(generation, session)
        except TimeoutError:
            logger.warning("Session busy; refresh skipped", context=self.name)
        finally:
            self._is_loading = False
