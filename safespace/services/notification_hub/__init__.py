"""Notification Hub: at-least-once fan-out of live status to observers.

Administrator dashboards subscribe per school and receive full-state
snapshots after every alert transition. A slow subscriber never blocks
the student raising the alert.
"""

from .hub import NotificationHub, Subscription

__all__ = [
    "NotificationHub",
    "Subscription",
]
