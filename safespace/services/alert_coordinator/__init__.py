"""Alert Coordinator: the per-school distress-signal state machine.

Students trigger and cancel alerts; every transition is recorded in the
History Ledger and the new live status is fanned out through the
Notification Hub to administrator dashboards.

States per (school, principal): Idle -> Active -> Idle.
"""

from .coordinator import AlertCoordinator, project_live_state

__all__ = [
    "AlertCoordinator",
    "project_live_state",
]
