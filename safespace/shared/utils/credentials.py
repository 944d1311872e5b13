"""Shared-secret comparison for join and admin codes."""
import hashlib
import hmac


def digest_secret(value: str) -> bytes:
    """SHA-256 digest of a secret. Always 32 bytes."""
    return hashlib.sha256(value.encode("utf-8")).digest()


def secrets_match(presented: str, expected: str) -> bool:
    """Compare a presented code against a stored secret in constant time.

    Both sides are digested first so the comparison runs over equal
    length inputs no matter how long the presented code is.
    """
    if presented is None:
        return False
    return hmac.compare_digest(digest_secret(presented), digest_secret(expected))
