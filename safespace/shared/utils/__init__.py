"""Shared utilities for SafeSpace platform."""
from .pii import hash_pii, configure_pii_salt
from .credentials import digest_secret, secrets_match
from .locks import SchoolLocks

__all__ = [
    "hash_pii",
    "configure_pii_salt",
    "digest_secret",
    "secrets_match",
    "SchoolLocks",
]
