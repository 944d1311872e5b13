"""School registry - catalog of schools and their credentials.

The in-memory catalog is authoritative for reads. When a repository is
configured every write goes to PostgreSQL first and the catalog is only
updated after the write succeeds.
"""
import logging
import threading
import uuid
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from safespace.shared.database import RepositoryError
from safespace.shared.errors import NotFoundError, StorageError, ValidationError
from safespace.shared.models import DEFAULT_BUILDINGS, School

from .school_repository import SchoolRepository

logger = logging.getLogger(__name__)


def _clean_buildings(buildings: Optional[Iterable[str]]) -> tuple:
    if buildings is None:
        return DEFAULT_BUILDINGS

    cleaned = []
    for name in buildings:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Building names must be non-empty")
        name = name.strip()
        if name in cleaned:
            raise ValidationError(f"Duplicate building: {name}")
        cleaned.append(name)

    return tuple(cleaned) or DEFAULT_BUILDINGS


class SchoolRegistry:
    """Owns School records.

    Records are immutable; updates swap in a replacement under a single
    write lock. Reads never take the lock.
    """

    def __init__(self, repository: Optional[SchoolRepository] = None):
        """Initialize registry.

        Args:
            repository: Durable store. Catalog is hydrated from it when given.
        """
        self.repository = repository
        self._lock = threading.Lock()
        self._schools: Dict[str, School] = {}

        if repository is not None:
            for school in repository.find_all():
                self._schools[school.id] = school

        logger.info(
            "SCHOOL_REGISTRY_INITIALIZED",
            extra={
                "backend": "postgresql" if repository else "memory",
                "school_count": len(self._schools),
            }
        )

    def register(
        self,
        name: str,
        join_secret: str,
        admin_secret: str,
        district: Optional[str] = None,
        buildings: Optional[Iterable[str]] = None,
    ) -> School:
        """Register a new school.

        Args:
            name: Display name
            join_secret: Code students present to join
            admin_secret: Code administrators present; must differ from join_secret
            district: Optional district name
            buildings: Building names; defaults to ("Main",)

        Returns:
            The new School with its assigned id

        Raises:
            ValidationError: Missing name/secrets, equal secrets, bad buildings
            StorageError: If the durable write fails
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("School name is required")
        if not isinstance(join_secret, str) or not join_secret.strip():
            raise ValidationError("Join code is required")
        if not isinstance(admin_secret, str) or not admin_secret.strip():
            raise ValidationError("Admin code is required")
        if join_secret == admin_secret:
            raise ValidationError("Join code and admin code must differ")

        school = School(
            id=f"school_{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            district=district.strip() if isinstance(district, str) and district.strip() else None,
            buildings=_clean_buildings(buildings),
            join_secret=join_secret,
            admin_secret=admin_secret,
        )

        with self._lock:
            self._persist(school, new=True)
            self._schools[school.id] = school

        logger.info(
            "SCHOOL_REGISTERED",
            extra={
                "school_id": school.id,
                "building_count": len(school.buildings),
                "has_district": school.district is not None,
            }
        )
        return school

    def search(self, query: str = "") -> List[School]:
        """Case-insensitive substring match on name, in registration order."""
        schools = sorted(self._schools.values(), key=lambda s: s.created_at)
        needle = (query or "").strip().casefold()
        if not needle:
            return schools
        return [s for s in schools if needle in s.name.casefold()]

    def get(self, school_id: str) -> School:
        """Look up a school.

        Raises:
            NotFoundError: If no school has this id
        """
        school = self._schools.get(school_id)
        if school is None:
            raise NotFoundError(f"School not found: {school_id}")
        return school

    def add_building(self, school_id: str, name: str) -> School:
        """Add a building to a school.

        Raises:
            ValidationError: Blank name or building already present
            NotFoundError: Unknown school
            StorageError: If the durable write fails
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Building name is required")
        name = name.strip()

        with self._lock:
            school = self.get(school_id)
            if school.has_building(name):
                raise ValidationError(f"Building already exists: {name}")

            updated = replace(school, buildings=school.buildings + (name,))
            self._persist(updated, new=False)
            self._schools[school_id] = updated

        logger.info(
            "SCHOOL_BUILDING_ADDED",
            extra={
                "school_id": school_id,
                "building_count": len(updated.buildings),
            }
        )
        return updated

    def __len__(self) -> int:
        return len(self._schools)

    def _persist(self, school: School, new: bool) -> None:
        if self.repository is None:
            return
        try:
            if new:
                self.repository.insert(school)
            else:
                self.repository.save(school)
        except RepositoryError as e:
            logger.error(
                "SCHOOL_PERSIST_FAILED",
                extra={"school_id": school.id, "error": str(e)}
            )
            raise StorageError(f"Failed to store school {school.id}") from e
