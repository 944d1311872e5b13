"""Durable storage for the alert ledger.

PostgreSQL append-only table keyed by (school_id, sequence). The
application role is expected to hold INSERT/SELECT only; there is no
update or delete path here.
"""
import logging
from datetime import timezone
from typing import Any, Dict, List

from safespace.shared.database import BaseRepository, ConnectionManager, RepositoryError
from safespace.shared.models import AlertEvent, AlertEventKind, Role

logger = logging.getLogger(__name__)


CREATE_ALERT_EVENTS_TABLE = """
    CREATE TABLE IF NOT EXISTS alert_events (
        school_id TEXT NOT NULL,
        sequence BIGINT NOT NULL,
        kind TEXT NOT NULL,
        principal_ref TEXT NOT NULL,
        building TEXT NOT NULL,
        room TEXT,
        actor_role TEXT NOT NULL,
        occurred_at TIMESTAMPTZ NOT NULL,
        previous_hash TEXT NOT NULL,
        entry_hash TEXT NOT NULL,
        PRIMARY KEY (school_id, sequence)
    )
"""


class LedgerRepository(BaseRepository[AlertEvent]):
    """Append-only AlertEvent log.

    The primary key makes a second write of the same sequence fail with
    DuplicateError instead of silently overwriting.
    """

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "alert_events")

    def create_table(self) -> None:
        self._execute(CREATE_ALERT_EVENTS_TABLE, commit=True)
        logger.info("ALERT_EVENTS_TABLE_READY")

    def append(self, event: AlertEvent) -> None:
        """Append one stamped event.

        Raises:
            DuplicateError: Sequence already taken for this school
            RepositoryError: Any other failure, including statement timeout
        """
        self.insert(event)

        logger.debug(
            "ALERT_EVENT_STORED_POSTGRES",
            extra={
                "school_id": event.school_id,
                "sequence": event.sequence,
                "kind": event.kind.value,
            }
        )

    def find_by_id(self, entity_id: str):
        raise RepositoryError("alert_events is keyed by (school_id, sequence); use find_all")

    def save(self, entity: AlertEvent):
        raise RepositoryError("alert_events is append-only; use append")

    def find_all(self) -> List[AlertEvent]:
        """Every event, grouped by school and ascending by sequence."""
        rows = self._execute(
            f"SELECT * FROM {self.table_name} ORDER BY school_id ASC, sequence ASC",
            fetch="all",
        )
        return [self._row_to_entity(row) for row in rows or []]

    def _row_to_entity(self, row: tuple) -> AlertEvent:
        return AlertEvent(
            school_id=row[0],
            sequence=row[1],
            kind=AlertEventKind(row[2]),
            principal_ref=row[3],
            building=row[4],
            room=row[5],
            actor_role=Role(row[6]),
            timestamp=row[7].astimezone(timezone.utc),
            previous_hash=row[8],
            entry_hash=row[9],
        )

    def _entity_to_params(self, entity: AlertEvent) -> Dict[str, Any]:
        return {
            "school_id": entity.school_id,
            "sequence": entity.sequence,
            "kind": entity.kind.value,
            "principal_ref": entity.principal_ref,
            "building": entity.building,
            "room": entity.room,
            "actor_role": entity.actor_role.value,
            "occurred_at": entity.timestamp,
            "previous_hash": entity.previous_hash,
            "entry_hash": entity.entry_hash,
        }
