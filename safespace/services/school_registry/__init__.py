"""School Registry: catalog of schools and their shared-secret credentials.

This service provides:
- Registration with a student join code and a distinct admin code
- Case-insensitive name search in registration order
- Building management (buildings are only ever added)
"""

from .registry import SchoolRegistry
from .school_repository import SchoolRepository

__all__ = [
    "SchoolRegistry",
    "SchoolRepository",
]
