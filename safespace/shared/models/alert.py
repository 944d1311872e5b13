"""Alert, ledger and chat domain models.

AlertEvent and Message are immutable once written. AlertState is the
live projection of the ledger for one principal.
"""
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .school import Role, utcnow


GENESIS_HASH = "genesis"


class AlertEventKind(Enum):
    """Ledger transition kinds."""
    TRIGGERED = "triggered"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AlertState:
    """An active distress signal for one principal in one school."""
    school_id: str
    principal_ref: str
    building: str
    room: Optional[str]
    started_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principal_ref": self.principal_ref,
            "building": self.building,
            "room": self.room,
            "started_at": self.started_at.isoformat(),
        }


@dataclass(frozen=True)
class AlertEvent:
    """Immutable ledger entry.

    ``sequence`` and the hash fields are assigned by the HistoryLedger at
    write time; callers build events with the defaults.
    """
    school_id: str
    kind: AlertEventKind
    principal_ref: str
    building: str
    room: Optional[str] = None
    actor_role: Role = Role.STUDENT
    timestamp: datetime = field(default_factory=utcnow)
    sequence: int = 0
    previous_hash: str = ""
    entry_hash: str = ""

    def compute_hash(self) -> str:
        """Compute SHA-256 hash of the entry, chained to ``previous_hash``.

        The timestamp is hashed as UTC regardless of its offset.

        Returns:
            Hex-encoded hash string
        """
        content = {
            "school_id": self.school_id,
            "kind": self.kind.value,
            "principal_ref": self.principal_ref,
            "building": self.building,
            "room": self.room,
            "actor_role": self.actor_role.value,
            "timestamp": self.timestamp.astimezone(timezone.utc).isoformat(),
            "sequence": self.sequence,
            "previous_hash": self.previous_hash,
        }
        content_str = json.dumps(content, sort_keys=True)
        return hashlib.sha256(content_str.encode()).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "school_id": self.school_id,
            "kind": self.kind.value,
            "principal_ref": self.principal_ref,
            "building": self.building,
            "room": self.room,
            "actor_role": self.actor_role.value,
            "timestamp": self.timestamp.isoformat(),
            "sequence": self.sequence,
            "entry_hash": self.entry_hash,
        }


@dataclass(frozen=True)
class StatusSnapshot:
    """Full live state of one school as of ledger ``sequence``.

    Snapshots are idempotent: receiving the same one twice is harmless.
    """
    school_id: str
    alerts: Tuple[AlertState, ...]
    sequence: int
    taken_at: datetime = field(default_factory=utcnow)

    @property
    def active_count(self) -> int:
        return len(self.alerts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "school_id": self.school_id,
            "sequence": self.sequence,
            "active_count": self.active_count,
            "alerts": [a.to_dict() for a in self.alerts],
            "taken_at": self.taken_at.isoformat(),
        }


@dataclass(frozen=True)
class Message:
    """Chat entry relayed within a school."""
    school_id: str
    sender_role: Role
    text: str
    sequence: int
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "school_id": self.school_id,
            "sender_role": self.sender_role.value,
            "text": self.text,
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
        }
