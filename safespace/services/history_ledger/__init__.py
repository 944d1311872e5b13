"""History Ledger: append-only, sequence-ordered alert audit trail.

This service provides:
- Atomic per-school sequence assignment
- A SHA-256 hash chain per school for tamper detection
- Ordered, restartable reads used by administrator history views and by
  live-state recovery after a restart
"""

from .ledger import HistoryLedger
from .ledger_repository import LedgerRepository

__all__ = [
    "HistoryLedger",
    "LedgerRepository",
]
