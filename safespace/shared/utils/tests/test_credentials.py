"""Tests for secret comparison, identifier hashing and school locks."""
import threading
import pytest

from safespace.shared.utils import (
    SchoolLocks,
    configure_pii_salt,
    digest_secret,
    hash_pii,
    secrets_match,
)
from safespace.shared.utils import pii


@pytest.fixture(autouse=True)
def setup_pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


class TestSecretsMatch:

    def test_equal_secrets_match(self):
        assert secrets_match("CHAVEZ2026", "CHAVEZ2026")

    def test_different_secrets_do_not_match(self):
        assert not secrets_match("CHAVEZ2025", "CHAVEZ2026")

    def test_case_sensitive(self):
        assert not secrets_match("chavez2026", "CHAVEZ2026")

    def test_none_never_matches(self):
        assert not secrets_match(None, "CHAVEZ2026")

    def test_empty_against_secret(self):
        assert not secrets_match("", "CHAVEZ2026")

    def test_digest_length_is_fixed(self):
        assert len(digest_secret("a")) == len(digest_secret("a" * 10000)) == 32


class TestHashPii:

    def test_hash_is_deterministic(self):
        assert hash_pii("token-1") == hash_pii("token-1")

    def test_hash_differs_per_value(self):
        assert hash_pii("token-1") != hash_pii("token-2")

    def test_hash_is_hex_digest(self):
        digest = hash_pii("token-1")
        assert len(digest) == 64
        assert "token-1" not in digest

    def test_salt_changes_hash(self):
        before = hash_pii("token-1")
        configure_pii_salt("another_salt_that_is_at_least_32_chars_long")
        assert hash_pii("token-1") != before

    def test_short_salt_rejected(self):
        with pytest.raises(ValueError):
            configure_pii_salt("short")

    def test_unconfigured_salt_raises(self, monkeypatch):
        monkeypatch.setattr(pii, "_PII_SALT", None)
        with pytest.raises(RuntimeError):
            hash_pii("token-1")


class TestSchoolLocks:

    def test_same_school_same_lock(self):
        locks = SchoolLocks()
        assert locks.get("school_001") is locks.get("school_001")
        assert len(locks) == 1

    def test_different_schools_different_locks(self):
        locks = SchoolLocks()
        assert locks.get("school_001") is not locks.get("school_002")

    def test_concurrent_get_creates_one_lock(self):
        locks = SchoolLocks()
        seen = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            seen.append(locks.get("school_001"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(lock) for lock in seen}) == 1
