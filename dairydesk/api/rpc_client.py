"""Auth RPC client for the DairyDesk backend (PostgREST / Supabase style)"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Protocol

import requests
from pydantic import ValidationError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..auth.models import StaffLoginResponse, ValidateSessionResponse
from ..utils.exceptions import BackendUnconfigured, TransportError, UnexpectedFailure
from ..utils.logger import get_logger

logger = get_logger(__name__)

# PostgREST: "Could not find the function ... in the schema cache"
PGRST_FUNCTION_NOT_FOUND = "PGRST202"
# Postgres: undefined_function
PG_UNDEFINED_FUNCTION = "42883"


class RpcBackend(Protocol):
    """The three remote procedures the session layer consumes."""

    async def staff_login(self, phone: str, pin: str) -> StaffLoginResponse:
        ...

    async def validate_session(self, session_token: str) -> ValidateSessionResponse:
        ...

    async def logout_session(self, session_token: str) -> None:
        ...


def _is_function_missing(status_code: int, body: Dict[str, Any]) -> bool:
    if status_code == 404:
        return True
    code = str(body.get("code") or "")
    if code in (PGRST_FUNCTION_NOT_FOUND, PG_UNDEFINED_FUNCTION):
        return True
    message = str(body.get("message") or body.get("error") or "").lower()
    return "function" in message and ("not found" in message or "does not exist" in message or "could not find" in message)


class HttpRpcBackend:
    """
    Calls ``POST {base_url}/rpc/{procedure}`` with a JSON body.

    Fault discrimination:
    - connection errors, timeouts, 5xx, non-JSON bodies -> TransportError (retried)
    - missing procedure (404, PGRST202, 42883)          -> BackendUnconfigured
    - other 4xx carrying ``success: false``              -> returned as logical failure
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        retry_wait_min: float = 1.0,
        retry_wait_max: float = 8.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout_seconds
        self.max_retries = max(1, int(max_retries))
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })

    def _request(self, procedure: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/rpc/{procedure}"
        try:
            logger.debug("Calling auth RPC", procedure=procedure)
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error("RPC timeout", procedure=procedure, timeout=self.timeout, error=str(e))
            raise TransportError(f"{procedure} timed out after {self.timeout} seconds")
        except requests.exceptions.RequestException as e:
            logger.error("RPC request failed", procedure=procedure, error=str(e))
            raise TransportError(f"{procedure} request failed: {e}")

        status_code = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None

        if status_code >= 500:
            raise TransportError(f"{procedure} returned HTTP {status_code}", status_code=status_code)

        if status_code >= 400:
            detail = body if isinstance(body, dict) else {}
            if _is_function_missing(status_code, detail):
                logger.warning("RPC procedure not provisioned", procedure=procedure, status_code=status_code)
                raise BackendUnconfigured(f"{procedure} is not available on the backend", procedure=procedure)
            if detail.get("success") is False:
                return detail
            raise TransportError(f"{procedure} returned HTTP {status_code}", status_code=status_code)

        if body is None:
            raise TransportError(f"{procedure} returned a non-JSON body", status_code=status_code)
        # PostgREST wraps set-returning functions in a list
        if isinstance(body, list):
            body = body[0] if body else {}
        if not isinstance(body, dict):
            raise UnexpectedFailure(f"{procedure} returned an unexpected payload")
        return body

    def call(self, procedure: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Blocking call with retry on TransportError."""
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=self.retry_wait_min, max=self.retry_wait_max),
            retry=retry_if_exception_type(TransportError),
            reraise=True,
        )
        return retrying(self._request, procedure, payload)

    async def staff_login(self, phone: str, pin: str) -> StaffLoginResponse:
        body = await asyncio.to_thread(self.call, "staff_login", {"phone": phone, "pin": pin})
        try:
            return StaffLoginResponse.model_validate(body)
        except ValidationError as e:
            raise UnexpectedFailure(f"staff_login returned a malformed payload: {e}") from e

    async def validate_session(self, session_token: str) -> ValidateSessionResponse:
        body = await asyncio.to_thread(self.call, "validate_session", {"session_token": session_token})
        try:
            return ValidateSessionResponse.model_validate(body)
        except ValidationError as e:
            raise UnexpectedFailure(f"validate_session returned a malformed payload: {e}") from e

    async def logout_session(self, session_token: str) -> None:
        await asyncio.to_thread(self.call, "logout_session", {"session_token": session_token})
