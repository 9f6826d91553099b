"""Wires settings into a ready-to-open SessionContext"""

from pathlib import Path
from typing import Optional

from .api.rpc_client import HttpRpcBackend
from .auth.demo import EmptyDemoRegistry, default_demo_registry, load_demo_registry
from .auth.service import AuthenticationService
from .core.config import Settings, load_settings
from .core.session_context import SessionContext
from .stores.session_store import JsonFileSessionStore, MemorySessionStore
from .utils.logger import get_logger, setup_logger

logger = get_logger(__name__)


def build_auth_service(settings: Settings) -> AuthenticationService:
    if settings.session.store == "memory":
        store = MemorySessionStore()
    else:
        store = JsonFileSessionStore(Path(settings.session.file_path))

    if not settings.demo.enabled:
        registry = EmptyDemoRegistry()
    elif settings.demo.accounts_file:
        registry = load_demo_registry(Path(settings.demo.accounts_file))
    else:
        registry = default_demo_registry()

    backend = None
    if settings.backend.configured:
        backend = HttpRpcBackend(
            base_url=settings.backend.base_url,
            api_key=settings.backend.api_key,
            timeout_seconds=settings.backend.timeout_seconds,
            max_retries=settings.backend.max_retries,
        )

    logger.info(
        "Auth service ready",
        backend_configured=backend is not None,
        demo_enabled=settings.demo.enabled,
        session_store=settings.session.store,
    )
    return AuthenticationService(store=store, registry=registry, backend=backend)


def build_session_context(settings: Settings, name: str = "default") -> SessionContext:
    """Context is returned unopened; enter it with ``async with``."""
    return SessionContext(build_auth_service(settings), name=name)


def initialize(settings_path: Optional[Path] = None) -> Settings:
    """Load settings and set up logging. Call once per process."""
    settings = load_settings(settings_path)
    setup_logger(
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        file_path=settings.logging.file_path,
        max_bytes=settings.logging.max_bytes,
        backup_count=settings.logging.backup_count,
    )
    logger.info(
        "Configuration loaded",
        app_name=settings.app.name,
        version=settings.app.version,
        environment=settings.app.environment,
    )
    return settings
