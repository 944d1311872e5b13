"""Error taxonomy shared by all SafeSpace services.

Every error is the caller's to handle. Nothing in the core recovers
from these silently.
"""


class SafeSpaceError(Exception):
    """Base exception for SafeSpace domain errors."""
    pass


class ValidationError(SafeSpaceError):
    """Malformed or missing required input."""
    pass


class NotFoundError(SafeSpaceError):
    """Unknown school or other referenced entity."""
    pass


class AuthError(SafeSpaceError):
    """Credential mismatch or a session not permitted for the operation."""
    pass


class InvalidStateError(SafeSpaceError):
    """Operation illegal in the current state (e.g. cancel when idle)."""
    pass


class StorageError(SafeSpaceError):
    """Durable write failed. Fatal to the request, never retried."""
    pass
