"""Shared domain models for SafeSpace platform."""
from .school import (
    DEFAULT_BUILDINGS,
    Role,
    School,
    Session,
    utcnow,
)
from .alert import (
    GENESIS_HASH,
    AlertEventKind,
    AlertState,
    AlertEvent,
    StatusSnapshot,
    Message,
)

__all__ = [
    "DEFAULT_BUILDINGS",
    "Role",
    "School",
    "Session",
    "utcnow",
    "GENESIS_HASH",
    "AlertEventKind",
    "AlertState",
    "AlertEvent",
    "StatusSnapshot",
    "Message",
]
