"""History ledger - append-only record of alert transitions.

The ledger is the only writer of ``sequence``. Each school has its own
monotonic counter and its own SHA-256 hash chain so tampering with a
stored entry is detectable.
"""
import logging
from dataclasses import replace
from typing import Dict, List, Optional

from safespace.shared.database import RepositoryError
from safespace.shared.errors import StorageError, ValidationError
from safespace.shared.models import GENESIS_HASH, AlertEvent
from safespace.shared.utils import SchoolLocks

from .ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)


class HistoryLedger:
    """Per-school append-only AlertEvent log.

    Appends for one school are serialized; appends for different schools
    proceed independently. Readers copy the log and never take a lock.
    """

    def __init__(self, repository: Optional[LedgerRepository] = None):
        """Initialize ledger.

        Args:
            repository: Durable store. Logs are hydrated from it when given.
        """
        self.repository = repository
        self._locks = SchoolLocks()
        self._events: Dict[str, List[AlertEvent]] = {}

        if repository is not None:
            for event in repository.find_all():
                self._events.setdefault(event.school_id, []).append(event)

        logger.info(
            "HISTORY_LEDGER_INITIALIZED",
            extra={
                "backend": "postgresql" if repository else "memory",
                "school_count": len(self._events),
            }
        )

    def append(self, event: AlertEvent) -> int:
        """Append an event and return its assigned sequence.

        The event is visible to readers only after the durable write
        succeeded. Nothing is retried: a retry could duplicate the entry.

        Args:
            event: Unstamped event (sequence and hashes are assigned here)

        Returns:
            The sequence number assigned to the event

        Raises:
            StorageError: If the durable write fails or times out
        """
        with self._locks.get(event.school_id):
            log = self._events.get(event.school_id, [])
            previous = log[-1] if log else None

            stamped = replace(
                event,
                sequence=previous.sequence + 1 if previous else 1,
                previous_hash=previous.entry_hash if previous else GENESIS_HASH,
            )
            stamped = replace(stamped, entry_hash=stamped.compute_hash())

            if self.repository is not None:
                try:
                    self.repository.append(stamped)
                except RepositoryError as e:
                    logger.critical(
                        "LEDGER_APPEND_FAILED",
                        extra={
                            "school_id": stamped.school_id,
                            "sequence": stamped.sequence,
                            "kind": stamped.kind.value,
                            "error": str(e),
                            "action": "REQUEST_FAILED_NOT_RETRIED",
                        }
                    )
                    raise StorageError(
                        f"Failed to record {stamped.kind.value} event for {stamped.school_id}"
                    ) from e

            if previous is None:
                self._events[event.school_id] = log
            log.append(stamped)

        logger.info(
            "LEDGER_EVENT_APPENDED",
            extra={
                "school_id": stamped.school_id,
                "sequence": stamped.sequence,
                "kind": stamped.kind.value,
                "principal_ref": stamped.principal_ref[:16],
                "entry_hash": stamped.entry_hash[:16],
            }
        )
        return stamped.sequence

    def read_since(self, school_id: str, sequence: int = 0) -> List[AlertEvent]:
        """Events with sequence greater than ``sequence``, ascending.

        Raises:
            ValidationError: If ``sequence`` is negative
        """
        if sequence < 0:
            raise ValidationError("sequence must be >= 0")

        # Sequences are contiguous from 1, so sequence n sits at index n-1
        return list(self._events.get(school_id, ()))[sequence:]

    def last_sequence(self, school_id: str) -> int:
        log = self._events.get(school_id)
        return log[-1].sequence if log else 0

    def school_ids(self) -> List[str]:
        return list(self._events.keys())

    def verify_chain(self, school_id: str) -> bool:
        """Verify integrity of one school's hash chain.

        Returns:
            True if chain is valid, False if tampered
        """
        expected_prev = GENESIS_HASH
        expected_seq = 1
        events = self.read_since(school_id)

        for event in events:
            if event.sequence != expected_seq or event.previous_hash != expected_prev:
                logger.critical(
                    "LEDGER_CHAIN_BROKEN",
                    extra={
                        "school_id": school_id,
                        "sequence": event.sequence,
                        "expected_sequence": expected_seq,
                        "expected_prev": expected_prev[:16],
                        "actual_prev": event.previous_hash[:16],
                    }
                )
                return False

            computed = event.compute_hash()
            if computed != event.entry_hash:
                logger.critical(
                    "LEDGER_ENTRY_TAMPERED",
                    extra={
                        "school_id": school_id,
                        "sequence": event.sequence,
                        "computed": computed[:16],
                        "stored": event.entry_hash[:16],
                    }
                )
                return False

            expected_prev = event.entry_hash
            expected_seq += 1

        logger.info(
            "LEDGER_CHAIN_VERIFIED",
            extra={"school_id": school_id, "entry_count": len(events)}
        )
        return True
