"""Tests for MembershipAuthenticator and SessionStore."""
import pytest
from datetime import datetime, timedelta, timezone

from safespace.shared.errors import AuthError, NotFoundError
from safespace.shared.models import Role
from safespace.shared.utils import configure_pii_salt, hash_pii
from safespace.services.membership import (
    INVALID_CODE_MESSAGE,
    MembershipAuthenticator,
    SessionStore,
)
from safespace.services.school_registry import SchoolRegistry


@pytest.fixture(autouse=True)
def setup_pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def registry():
    return SchoolRegistry()


@pytest.fixture
def school(registry):
    return registry.register(
        name="Chavez MS",
        join_secret="CHAVEZ2026",
        admin_secret="ADMIN99",
        buildings=["Main", "Gym"],
    )


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def authenticator(registry, store):
    return MembershipAuthenticator(registry, session_store=store)


class TestVerifyJoin:
    def test_correct_code_issues_student_session(self, authenticator, school):
        session = authenticator.verify_join(school.id, "CHAVEZ2026")

        assert session.role == Role.STUDENT
        assert session.school_id == school.id
        assert session.established_at is not None

    def test_wrong_code(self, authenticator, school):
        with pytest.raises(AuthError):
            authenticator.verify_join(school.id, "wrong")

    def test_admin_code_does_not_grant_student(self, authenticator, school):
        with pytest.raises(AuthError) as exc:
            authenticator.verify_join(school.id, "ADMIN99")
        assert str(exc.value) == INVALID_CODE_MESSAGE

    def test_unknown_school(self, authenticator):
        with pytest.raises(NotFoundError):
            authenticator.verify_join("school_missing", "CHAVEZ2026")

    def test_none_code(self, authenticator, school):
        with pytest.raises(AuthError):
            authenticator.verify_join(school.id, None)

    def test_code_is_case_sensitive(self, authenticator, school):
        with pytest.raises(AuthError):
            authenticator.verify_join(school.id, "chavez2026")


class TestVerifyAdmin:
    def test_correct_code_issues_admin_session(self, authenticator, school):
        session = authenticator.verify_admin(school.id, "ADMIN99")

        assert session.role == Role.ADMIN
        assert session.is_admin

    def test_join_code_does_not_grant_admin(self, authenticator, school):
        with pytest.raises(AuthError) as exc:
            authenticator.verify_admin(school.id, "CHAVEZ2026")
        assert str(exc.value) == INVALID_CODE_MESSAGE


class TestSessions:
    def test_each_login_is_a_distinct_principal(self, authenticator, school):
        first = authenticator.verify_join(school.id, "CHAVEZ2026")
        second = authenticator.verify_join(school.id, "CHAVEZ2026")

        assert first.session_id != second.session_id
        assert first.principal_ref != second.principal_ref

    def test_principal_ref_is_hashed_token(self, authenticator, school):
        session = authenticator.verify_join(school.id, "CHAVEZ2026")

        assert session.principal_ref == hash_pii(session.session_id)
        assert session.session_id not in repr(session)

    def test_session_registered_in_store(self, authenticator, store, school):
        session = authenticator.verify_join(school.id, "CHAVEZ2026")

        assert store.resolve(session.session_id) == session

    def test_failed_login_registers_nothing(self, authenticator, store, school):
        with pytest.raises(AuthError):
            authenticator.verify_join(school.id, "wrong")
        assert len(store) == 0

    def test_works_without_store(self, registry, school):
        authenticator = MembershipAuthenticator(registry)
        session = authenticator.verify_join(school.id, "CHAVEZ2026")
        assert session.role == Role.STUDENT


class TestSessionStore:
    def test_unknown_token(self, store):
        with pytest.raises(AuthError):
            store.resolve("nope")

    def test_missing_token(self, store):
        with pytest.raises(AuthError):
            store.resolve(None)

    def test_revoke(self, authenticator, store, school):
        session = authenticator.verify_join(school.id, "CHAVEZ2026")

        assert store.revoke(session.session_id) is True
        assert store.revoke(session.session_id) is False
        with pytest.raises(AuthError):
            store.resolve(session.session_id)

    def test_expiry(self, registry, school):
        now = [datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)]
        store = SessionStore(ttl_seconds=60, clock=lambda: now[0])
        authenticator = MembershipAuthenticator(registry, session_store=store)
        session = authenticator.verify_join(school.id, "CHAVEZ2026")

        now[0] = session.established_at + timedelta(seconds=30)
        assert store.resolve(session.session_id) == session

        now[0] = session.established_at + timedelta(seconds=61)
        with pytest.raises(AuthError):
            store.resolve(session.session_id)
        assert len(store) == 0
