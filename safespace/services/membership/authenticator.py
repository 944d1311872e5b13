"""Membership authenticator - credential-gated access to a school.

Verifies a presented join or admin code and issues a role-scoped
Session. Failures are reported once and never retried.
"""
import logging
import secrets
from typing import Optional

from safespace.shared.errors import AuthError
from safespace.shared.models import Role, Session
from safespace.shared.utils import hash_pii, secrets_match
from safespace.services.school_registry import SchoolRegistry

from .session_store import SessionStore

logger = logging.getLogger(__name__)

# Same message for both roles so a failure never hints that the code
# belongs to the other role.
INVALID_CODE_MESSAGE = "Invalid access code"


class MembershipAuthenticator:
    """Issues sessions for students and administrators."""

    def __init__(
        self,
        registry: SchoolRegistry,
        session_store: Optional[SessionStore] = None,
    ):
        """Initialize authenticator.

        Args:
            registry: School catalog to check codes against
            session_store: Where issued sessions are registered, if anywhere
        """
        self.registry = registry
        self.session_store = session_store

        logger.info("MEMBERSHIP_AUTHENTICATOR_INITIALIZED")

    def verify_join(self, school_id: str, presented_code: str) -> Session:
        """Verify a student join code.

        Raises:
            NotFoundError: Unknown school
            AuthError: Code does not match
        """
        school = self.registry.get(school_id)
        return self._verify(school_id, presented_code, school.join_secret, Role.STUDENT)

    def verify_admin(self, school_id: str, presented_code: str) -> Session:
        """Verify an administrator code.

        Raises:
            NotFoundError: Unknown school
            AuthError: Code does not match
        """
        school = self.registry.get(school_id)
        return self._verify(school_id, presented_code, school.admin_secret, Role.ADMIN)

    def _verify(
        self,
        school_id: str,
        presented_code: str,
        expected: str,
        role: Role,
    ) -> Session:
        if not isinstance(presented_code, str) or not secrets_match(presented_code, expected):
            logger.warning(
                "MEMBERSHIP_AUTH_FAILED",
                extra={"school_id": school_id, "role": role.value}
            )
            raise AuthError(INVALID_CODE_MESSAGE)

        session_id = secrets.token_urlsafe(32)
        session = Session(
            session_id=session_id,
            school_id=school_id,
            role=role,
            principal_ref=hash_pii(session_id),
        )

        if self.session_store is not None:
            self.session_store.add(session)

        logger.info(
            "MEMBERSHIP_SESSION_ISSUED",
            extra={
                "school_id": school_id,
                "role": role.value,
                "principal_ref": session.principal_ref[:16],
            }
        )
        return session
