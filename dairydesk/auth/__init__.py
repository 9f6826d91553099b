"""
Auth module - phone + PIN staff login, demo mode, session refresh.
"""

from .models import DEMO_TOKEN_PREFIX, FailureKind, LoginResult, Profile, Role, Session
from .demo import DemoAccount, EmptyDemoRegistry, StaticDemoRegistry, default_demo_registry

__all__ = [
    "DEMO_TOKEN_PREFIX",
    "FailureKind",
    "LoginResult",
    "Profile",
    "Role",
    "Session",
    "DemoAccount",
    "EmptyDemoRegistry",
    "StaticDemoRegistry",
    "default_demo_registry",
]
