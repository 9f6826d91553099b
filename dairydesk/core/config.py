"""
Configuration with schema validation.

Sources, later wins:
1. defaults below
2. data/settings.yaml (optional), with ${VAR} / ${VAR:default} substitution
3. DAIRYDESK_* environment variables (.env is loaded first)
"""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from ..utils.exceptions import ConfigError
from ..utils.logger import get_logger

logger = get_logger(__name__)

load_dotenv()

DATA_DIR = Path("data")
SETTINGS_FILE = DATA_DIR / "settings.yaml"


class AppSettings(BaseModel):
    name: str = "DairyDesk"
    version: str = "1.0.0"
    environment: str = "development"


class BackendSettings(BaseModel):
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 10.0
    max_retries: int = 3

    @property
    def configured(self) -> bool:
        return bool(self.base_url)


class SessionSettings(BaseModel):
    store: Literal["file", "memory"] = "file"
    file_path: str = "data/session.json"


class DemoSettings(BaseModel):
    enabled: bool = True
    accounts_file: Optional[str] = None


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    demo: DemoSettings = Field(default_factory=DemoSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# env var -> (section, key)
ENV_OVERRIDES = {
    "DAIRYDESK_BACKEND_URL": ("backend", "base_url"),
    "DAIRYDESK_API_KEY": ("backend", "api_key"),
    "DAIRYDESK_DEMO_ENABLED": ("demo", "enabled"),
    "DAIRYDESK_DEMO_ACCOUNTS_FILE": ("demo", "accounts_file"),
    "DAIRYDESK_SESSION_FILE": ("session", "file_path"),
    "DAIRYDESK_LOG_LEVEL": ("logging", "level"),
}


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} and ${VAR:default}"""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            var_expr = value[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name.strip(), default.strip())
            return os.getenv(var_expr, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value is None or value == "":
            continue
        data[section] = {**(data.get(section) or {}), key: value}
    return data


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load and validate settings. A missing file means defaults."""
    settings_path = Path(path) if path else SETTINGS_FILE
    raw: Dict[str, Any] = {}
    if settings_path.exists():
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid settings file {settings_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Settings file {settings_path} must contain a mapping")

    data = _apply_env_overrides(_substitute_env_vars(raw))
    try:
        settings = Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e

    logger.debug(
        "Settings loaded",
        path=str(settings_path),
        backend_configured=settings.backend.configured,
        demo_enabled=settings.demo.enabled,
        session_store=settings.session.store,
    )
    return settings
