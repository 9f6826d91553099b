"""Custom exceptions for the DairyDesk session layer"""

from typing import Optional


class DairyDeskError(Exception):
    """Base exception for DairyDesk"""
    pass


class TransportError(DairyDeskError):
    """Backend unreachable: connection refused, timeout, 5xx, unreadable body"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class BackendUnconfigured(DairyDeskError):
    """RPC procedure missing or backend not provisioned"""

    def __init__(self, message: str, procedure: Optional[str] = None):
        self.procedure = procedure
        super().__init__(message)


class AuthRejected(DairyDeskError):
    """Credentials do not match"""
    pass


class SessionInvalid(DairyDeskError):
    """Session token expired or revoked server-side"""
    pass


class UnexpectedFailure(DairyDeskError):
    """Any other failure while talking to the backend"""
    pass


class MisuseError(DairyDeskError):
    """Session context consumed outside of its scope"""
    pass


class ConfigError(DairyDeskError):
    """Configuration error"""
    pass
