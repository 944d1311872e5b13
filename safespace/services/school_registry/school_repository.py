"""PostgreSQL storage for School records."""
import logging
from typing import Any, Dict

from safespace.shared.database import BaseRepository, ConnectionManager
from safespace.shared.models import School

logger = logging.getLogger(__name__)


CREATE_SCHOOLS_TABLE = """
    CREATE TABLE IF NOT EXISTS schools (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        district TEXT,
        buildings TEXT[] NOT NULL,
        join_secret TEXT NOT NULL,
        admin_secret TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        CHECK (join_secret <> admin_secret)
    )
"""


class SchoolRepository(BaseRepository[School]):
    """Durable School table keyed by id.

    Rows are upserted: adding a building rewrites the buildings column.
    """

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "schools")

    def create_table(self) -> None:
        self._execute(CREATE_SCHOOLS_TABLE, commit=True)
        logger.info("SCHOOLS_TABLE_READY")

    def _row_to_entity(self, row: tuple) -> School:
        return School(
            id=row[0],
            name=row[1],
            district=row[2],
            buildings=tuple(row[3]),
            join_secret=row[4],
            admin_secret=row[5],
            created_at=row[6],
        )

    def _entity_to_params(self, entity: School) -> Dict[str, Any]:
        return {
            "id": entity.id,
            "name": entity.name,
            "district": entity.district,
            "buildings": list(entity.buildings),
            "join_secret": entity.join_secret,
            "admin_secret": entity.admin_secret,
            "created_at": entity.created_at,
        }
