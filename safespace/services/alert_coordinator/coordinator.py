"""Alert coordinator - per-school alert state machine.

Each (school, principal) pair is either Idle or Active. Live status is
the set of Active principals for a school, keyed by principal so several
students in different rooms can signal at once and be told apart.

Every transition is written to the HistoryLedger before the live set
changes. If the ledger write fails the live set is left untouched.
"""
import logging
from typing import Callable, Dict, FrozenSet, Iterable, NamedTuple, Optional

from safespace.shared.errors import AuthError, InvalidStateError, ValidationError
from safespace.shared.models import (
    AlertEvent,
    AlertEventKind,
    AlertState,
    Role,
    Session,
    StatusSnapshot,
    utcnow,
)
from safespace.shared.utils import SchoolLocks
from safespace.services.history_ledger import HistoryLedger
from safespace.services.notification_hub import NotificationHub, Subscription
from safespace.services.school_registry import SchoolRegistry

logger = logging.getLogger(__name__)


class _SchoolStatus(NamedTuple):
    """Live alerts of one school and the ledger sequence they reflect.

    Replaced wholesale on every write so readers always see a matching pair.
    """
    sequence: int
    alerts: Dict[str, AlertState]


_IDLE = _SchoolStatus(sequence=0, alerts={})


def project_live_state(events: Iterable[AlertEvent]) -> Dict[str, AlertState]:
    """Rebuild one school's live alerts from its ledger events.

    Args:
        events: Events of a single school in ascending sequence order

    Returns:
        principal_ref -> AlertState for every unmatched ``triggered`` event
    """
    live: Dict[str, AlertState] = {}
    for event in events:
        if event.kind == AlertEventKind.TRIGGERED:
            live[event.principal_ref] = AlertState(
                school_id=event.school_id,
                principal_ref=event.principal_ref,
                building=event.building,
                room=event.room,
                started_at=event.timestamp,
            )
        else:
            live.pop(event.principal_ref, None)
    return live


class AlertCoordinator:
    """Raises, cancels and reports alerts for every school.

    Writes to one school are serialized by that school's lock; schools
    never contend with each other. Reads take no lock.
    """

    def __init__(
        self,
        registry: SchoolRegistry,
        ledger: HistoryLedger,
        hub: Optional[NotificationHub] = None,
        clock: Callable = utcnow,
    ):
        """Initialize coordinator with dependencies.

        Args:
            registry: School catalog, used to validate buildings
            ledger: Where every transition is recorded
            hub: Where new status snapshots are published
            clock: Returns the current aware datetime
        """
        self.registry = registry
        self.ledger = ledger
        self.hub = hub
        self._clock = clock
        self._locks = SchoolLocks()
        self._status: Dict[str, _SchoolStatus] = {}

        logger.info("ALERT_COORDINATOR_INITIALIZED")

    def trigger(
        self,
        session: Session,
        building: str,
        room: Optional[str] = None,
    ) -> AlertState:
        """Raise an alert for the session's principal.

        Re-triggering while Active returns the existing AlertState with its
        original ``started_at``; nothing is recorded or published.

        Args:
            session: Student session raising the alert
            building: One of the school's registered buildings
            room: Optional room within the building

        Returns:
            The active AlertState

        Raises:
            AuthError: Session is not a student session
            NotFoundError: Session's school no longer exists
            ValidationError: Unknown building
            StorageError: Ledger write failed; no alert was raised
        """
        if session.role != Role.STUDENT:
            raise AuthError("Only student sessions can raise alerts")

        school = self.registry.get(session.school_id)
        building = building.strip() if isinstance(building, str) else ""
        if not school.has_building(building):
            raise ValidationError(f"Unknown building: {building or '<empty>'}")
        room = room.strip() or None if isinstance(room, str) else None

        school_id = session.school_id
        principal_ref = session.principal_ref

        with self._locks.get(school_id):
            status = self._status.get(school_id, _IDLE)
            existing = status.alerts.get(principal_ref)
            if existing is not None:
                logger.info(
                    "ALERT_RETRIGGER_ABSORBED",
                    extra={
                        "school_id": school_id,
                        "principal_ref": principal_ref[:16],
                        "started_at": existing.started_at.isoformat(),
                    }
                )
                return existing

            started_at = self._clock()
            sequence = self.ledger.append(AlertEvent(
                school_id=school_id,
                kind=AlertEventKind.TRIGGERED,
                principal_ref=principal_ref,
                building=building,
                room=room,
                actor_role=Role.STUDENT,
                timestamp=started_at,
            ))

            state = AlertState(
                school_id=school_id,
                principal_ref=principal_ref,
                building=building,
                room=room,
                started_at=started_at,
            )
            alerts = dict(status.alerts)
            alerts[principal_ref] = state
            self._commit(school_id, _SchoolStatus(sequence, alerts))

        logger.critical(
            "ALERT_TRIGGERED",
            extra={
                "school_id": school_id,
                "principal_ref": principal_ref[:16],
                "building": building,
                "room": room,
                "sequence": sequence,
                "active_count": len(alerts),
            }
        )
        return state

    def cancel(self, session: Session) -> None:
        """Cancel the session principal's active alert.

        Raises:
            InvalidStateError: No active alert for this principal
            StorageError: Ledger write failed; the alert stays active
        """
        self._clear(session.school_id, session.principal_ref, session.role)

    def resolve(self, session: Session, principal_ref: str) -> None:
        """Clear another principal's alert on behalf of an administrator.

        Used when the student who raised it can no longer cancel it, e.g.
        after their session was lost.

        Raises:
            AuthError: Session is not an admin session
            InvalidStateError: Principal has no active alert in this school
            StorageError: Ledger write failed; the alert stays active
        """
        if session.role != Role.ADMIN:
            raise AuthError("Only admin sessions can resolve alerts")
        self._clear(session.school_id, principal_ref, Role.ADMIN)

    def active_alert(self, session: Session) -> Optional[AlertState]:
        """The session principal's active alert, if any."""
        status = self._status.get(session.school_id, _IDLE)
        return status.alerts.get(session.principal_ref)

    def live_status(self, school_id: str) -> FrozenSet[AlertState]:
        """Point-in-time set of active alerts.

        Raises:
            NotFoundError: Unknown school
        """
        self.registry.get(school_id)
        return frozenset(self._status.get(school_id, _IDLE).alerts.values())

    def snapshot(self, school_id: str) -> StatusSnapshot:
        """Live status as a StatusSnapshot ordered by start time.

        Raises:
            NotFoundError: Unknown school
        """
        self.registry.get(school_id)
        return self._snapshot_of(school_id, self._status.get(school_id, _IDLE))

    def subscribe(self, school_id: str) -> Subscription:
        """Open a live status subscription seeded with the current snapshot.

        The snapshot is taken and the subscriber registered under the school
        lock, so no transition can be published between the two.

        Raises:
            NotFoundError: Unknown school
            RuntimeError: No notification hub configured
        """
        self.registry.get(school_id)
        if self.hub is None:
            raise RuntimeError("AlertCoordinator has no notification hub")

        with self._locks.get(school_id):
            initial = self._snapshot_of(school_id, self._status.get(school_id, _IDLE))
            return self.hub.subscribe(school_id, initial=initial)

    def recover(self) -> int:
        """Rebuild live status for every school by replaying the ledger.

        Replayed alerts keep their original ``started_at`` and are not
        expired; an administrator resolves stale ones explicitly.

        Returns:
            Number of alerts restored as active
        """
        restored = 0
        for school_id in self.ledger.school_ids():
            with self._locks.get(school_id):
                events = self.ledger.read_since(school_id)
                alerts = project_live_state(events)
                sequence = events[-1].sequence if events else 0
                self._status[school_id] = _SchoolStatus(sequence, alerts)
            restored += len(alerts)

            if alerts:
                logger.warning(
                    "ALERT_STATE_RECOVERED",
                    extra={
                        "school_id": school_id,
                        "active_count": len(alerts),
                        "sequence": sequence,
                    }
                )

        logger.info(
            "ALERT_RECOVERY_COMPLETE",
            extra={"restored": restored}
        )
        return restored

    def _clear(self, school_id: str, principal_ref: str, actor_role: Role) -> None:
        with self._locks.get(school_id):
            status = self._status.get(school_id, _IDLE)
            existing = status.alerts.get(principal_ref)
            if existing is None:
                logger.warning(
                    "ALERT_CANCEL_WHEN_IDLE",
                    extra={
                        "school_id": school_id,
                        "principal_ref": principal_ref[:16],
                        "actor_role": actor_role.value,
                    }
                )
                raise InvalidStateError("No active alert to cancel")

            sequence = self.ledger.append(AlertEvent(
                school_id=school_id,
                kind=AlertEventKind.CANCELLED,
                principal_ref=principal_ref,
                building=existing.building,
                room=existing.room,
                actor_role=actor_role,
                timestamp=self._clock(),
            ))

            alerts = dict(status.alerts)
            del alerts[principal_ref]
            self._commit(school_id, _SchoolStatus(sequence, alerts))

        logger.info(
            "ALERT_CANCELLED",
            extra={
                "school_id": school_id,
                "principal_ref": principal_ref[:16],
                "actor_role": actor_role.value,
                "sequence": sequence,
                "active_seconds": (self._clock() - existing.started_at).total_seconds(),
                "active_count": len(alerts),
            }
        )

    def _commit(self, school_id: str, status: _SchoolStatus) -> None:
        # Caller holds the school lock, so snapshots publish in sequence order
        self._status[school_id] = status
        if self.hub is not None:
            self.hub.publish(self._snapshot_of(school_id, status))

    def _snapshot_of(self, school_id: str, status: _SchoolStatus) -> StatusSnapshot:
        alerts = sorted(
            status.alerts.values(),
            key=lambda a: (a.started_at, a.principal_ref),
        )
        return StatusSnapshot(
            school_id=school_id,
            alerts=tuple(alerts),
            sequence=status.sequence,
            taken_at=self._clock(),
        )
