"""
Demo credential registry.

Demo mode lets staff sign in when no backend is reachable or provisioned.
The registry is injected into AuthenticationService so deployments can swap
the table (YAML file) or switch it off (EmptyDemoRegistry) and tests can
supply their own accounts.

Seed accounts (change or disable in production):
    9876543210 / 123456   Admin User           super_admin
    7897716792 / 101101   Awadh Dairy Admin    super_admin
"""

from __future__ import annotations

import secrets
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol

import bcrypt
import yaml
from pydantic import BaseModel, ConfigDict, model_validator

from ..utils.exceptions import ConfigError
from ..utils.logger import get_logger, mask_phone
from .models import Profile, Role

logger = get_logger(__name__)

_SEEDED_AT = datetime(2024, 1, 1)


class DemoAccount(BaseModel):
    """A phone -> (PIN, profile) entry. Either ``pin`` or a bcrypt ``pin_hash`` is set."""

    model_config = ConfigDict(frozen=True)

    pin: Optional[str] = None
    pin_hash: Optional[str] = None
    profile: Profile

    @model_validator(mode="after")
    def _require_pin(self) -> "DemoAccount":
        if not self.pin and not self.pin_hash:
            raise ValueError("demo account needs a pin or pin_hash")
        return self

    @property
    def phone(self) -> str:
        return self.profile.phone

    def matches(self, pin: str) -> bool:
        """Exact PIN comparison, constant time."""
        if self.pin is not None:
            return secrets.compare_digest(self.pin.encode("utf-8"), pin.encode("utf-8"))
        try:
            return bcrypt.checkpw(pin.encode("utf-8"), self.pin_hash.encode("utf-8"))
        except ValueError:
            return False


class DemoCredentialRegistry(Protocol):
    def lookup(self, phone: str) -> Optional[DemoAccount]:
        ...


class StaticDemoRegistry:
    """Read-only registry built once from a list of accounts."""

    def __init__(self, accounts: Iterable[DemoAccount]):
        self._accounts: Dict[str, DemoAccount] = {}
        for account in accounts:
            if account.phone in self._accounts:
                raise ConfigError(f"Duplicate demo phone: {mask_phone(account.phone)}")
            self._accounts[account.phone] = account

    def lookup(self, phone: str) -> Optional[DemoAccount]:
        return self._accounts.get(phone)

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self):
        return iter(self._accounts.values())


class EmptyDemoRegistry:
    """Demo mode disabled."""

    def lookup(self, phone: str) -> Optional[DemoAccount]:
        return None


def _seed(account_id: str, full_name: str, phone: str, pin: str, role: Role) -> DemoAccount:
    return DemoAccount(
        pin=pin,
        profile=Profile(
            id=account_id,
            full_name=full_name,
            phone=phone,
            role=role,
            is_active=True,
            created_at=_SEEDED_AT,
            updated_at=_SEEDED_AT,
        ),
    )


DEFAULT_DEMO_ACCOUNTS = (
    _seed("demo-admin", "Admin User", "9876543210", "123456", Role.SUPER_ADMIN),
    _seed("demo-owner", "Awadh Dairy Admin", "7897716792", "101101", Role.SUPER_ADMIN),
    _seed("demo-manager", "Demo Manager", "9000000001", "111111", Role.MANAGER),
    _seed("demo-accountant", "Demo Accountant", "9000000002", "222222", Role.ACCOUNTANT),
    _seed("demo-delivery", "Demo Delivery Staff", "9000000003", "333333", Role.DELIVERY_STAFF),
    _seed("demo-farm", "Demo Farm Worker", "9000000004", "444444", Role.FARM_WORKER),
    _seed("demo-vet", "Demo Vet Staff", "9000000005", "555555", Role.VET_STAFF),
    _seed("demo-auditor", "Demo Auditor", "9000000006", "666666", Role.AUDITOR),
)


def default_demo_registry() -> StaticDemoRegistry:
    return StaticDemoRegistry(DEFAULT_DEMO_ACCOUNTS)


def load_demo_registry(path: Path) -> StaticDemoRegistry:
    """
    Load demo accounts from YAML. Invalid entries are skipped so one bad
    account does not break startup.

        accounts:
          - phone: "9876543210"
            pin: "123456"            # or pin_hash: "$2b$12$..."
            full_name: Admin User
            role: super_admin
    """
    if not path.exists():
        raise ConfigError(f"Demo accounts file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid demo accounts file {path}: {e}") from e

    accounts = []
    for i, item in enumerate(raw.get("accounts") or []):
        item = item or {}
        try:
            accounts.append(
                DemoAccount(
                    pin=str(item["pin"]) if item.get("pin") is not None else None,
                    pin_hash=item.get("pin_hash"),
                    profile=Profile(
                        id=str(item.get("id") or f"demo-{i}"),
                        full_name=item["full_name"],
                        phone=str(item["phone"]),
                        role=item.get("role", Role.FARM_WORKER.value),
                        is_active=item.get("is_active", True),
                        created_at=_SEEDED_AT,
                        updated_at=_SEEDED_AT,
                    ),
                )
            )
        except (KeyError, ValueError) as e:
            logger.warning(
                "Skipping invalid demo account",
                index=i,
                phone=mask_phone(str(item.get("phone") or "")),
                error=str(e),
            )
    logger.info("Demo accounts loaded", path=str(path), count=len(accounts))
    return StaticDemoRegistry(accounts)
