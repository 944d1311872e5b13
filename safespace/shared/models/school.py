"""School and session domain models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


DEFAULT_BUILDINGS: Tuple[str, ...] = ("Main",)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(Enum):
    """Role a session was issued for."""
    STUDENT = "student"
    ADMIN = "admin"


@dataclass(frozen=True)
class School:
    """A registered school.

    Records are replaced, never mutated: adding a building produces a new
    School with the same id. Secrets are excluded from repr.
    """
    id: str
    name: str
    join_secret: str = field(repr=False)
    admin_secret: str = field(repr=False)
    district: Optional[str] = None
    buildings: Tuple[str, ...] = DEFAULT_BUILDINGS
    created_at: datetime = field(default_factory=utcnow)

    def has_building(self, name: str) -> bool:
        return name in self.buildings

    def to_public_dict(self) -> Dict[str, Any]:
        """Serializable view without credentials."""
        return {
            "id": self.id,
            "name": self.name,
            "district": self.district,
            "buildings": list(self.buildings),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Session:
    """Capability issued after a successful credential check.

    Holding a session proves the check passed at ``established_at``; it
    carries no further mutable state. ``principal_ref`` is the salted
    hash of ``session_id`` and is what alerts are keyed by.
    """
    session_id: str = field(repr=False)
    school_id: str
    role: Role
    principal_ref: str
    established_at: datetime = field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_token": self.session_id,
            "school_id": self.school_id,
            "role": self.role.value,
            "principal_ref": self.principal_ref,
            "established_at": self.established_at.isoformat(),
        }
