"""
Client-side session persistence.

Holds exactly one current session: the token and a cached copy of the
profile it authenticates. Single writer; callers serialize access through
the session lock (see core.locks).
"""

from __future__ import annotations

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from ..auth.models import Profile
from ..utils.logger import get_logger

logger = get_logger(__name__)

TOKEN_KEY = "session_token"
USER_KEY = "user"


class SessionStore(Protocol):
    def get_token(self) -> Optional[str]:
        ...

    def get_cached_profile(self) -> Optional[Profile]:
        ...

    def save(self, token: str, profile: Profile) -> None:
        ...

    def clear(self) -> None:
        ...


class MemorySessionStore:
    """In-process store. Nothing survives a restart."""

    def __init__(self, token: Optional[str] = None, profile: Optional[Profile] = None):
        self._token = token
        self._profile = profile

    def get_token(self) -> Optional[str]:
        return self._token

    def get_cached_profile(self) -> Optional[Profile]:
        return self._profile

    def save(self, token: str, profile: Profile) -> None:
        self._token = token
        self._profile = profile

    def clear(self) -> None:
        self._token = None
        self._profile = None


def _atomic_write(path: Path, payload: Dict[str, Any]) -> None:
    """Atomically write JSON to the target path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w", dir=str(path.parent), delete=False, encoding="utf-8"
    ) as tf:
        json.dump(payload, tf, indent=2, ensure_ascii=False, default=str)
        temp_path = Path(tf.name)
    try:
        shutil.move(str(temp_path), str(path))
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


class JsonFileSessionStore:
    """
    Session persisted as one JSON document:

        {"session_token": "...", "user": {...profile...}}

    A missing, unreadable or corrupt file reads as "no session".
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Unreadable session file", path=str(self.path), error=str(e))
            return {}
        return raw if isinstance(raw, dict) else {}

    def get_token(self) -> Optional[str]:
        token = self._read().get(TOKEN_KEY)
        return token if isinstance(token, str) and token else None

    def get_cached_profile(self) -> Optional[Profile]:
        data = self._read().get(USER_KEY)
        if not data:
            return None
        try:
            return Profile.model_validate(data)
        except ValidationError as e:
            logger.warning("Discarding invalid cached profile", path=str(self.path), error=str(e))
            return None

    def save(self, token: str, profile: Profile) -> None:
        _atomic_write(self.path, {TOKEN_KEY: token, USER_KEY: profile.model_dump(mode="json")})

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
