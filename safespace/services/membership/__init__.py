"""Membership: join/admin code verification and session issuance.

Codes are compared in constant time. A Session proves a successful check
at issuance; expiry and revocation are handled by the SessionStore.
"""

from .authenticator import MembershipAuthenticator, INVALID_CODE_MESSAGE
from .session_store import SessionStore

__all__ = [
    "MembershipAuthenticator",
    "INVALID_CODE_MESSAGE",
    "SessionStore",
]
