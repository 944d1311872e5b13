"""Tests for LedgerRepository against a mocked PostgreSQL connection."""
import pytest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from psycopg2 import errors as pg_errors

from safespace.shared.database import DuplicateError, RepositoryError
from safespace.shared.models import AlertEvent, AlertEventKind, Role
from safespace.services.history_ledger import LedgerRepository


OCCURRED_AT = datetime(2026, 3, 2, 10, 15, tzinfo=timezone.utc)


@pytest.fixture
def connection_manager():
    return MagicMock()


@pytest.fixture
def cursor(connection_manager):
    conn = connection_manager.get_connection.return_value.__enter__.return_value
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture
def repository(connection_manager):
    return LedgerRepository(connection_manager)


@pytest.fixture
def stamped_event():
    event = AlertEvent(
        school_id="school_001",
        kind=AlertEventKind.TRIGGERED,
        principal_ref="hash_p1",
        building="Gym",
        room=None,
        timestamp=OCCURRED_AT,
        sequence=1,
        previous_hash="genesis",
    )
    return replace(event, entry_hash=event.compute_hash())


class TestAppend:
    def test_append_inserts_row(self, repository, cursor, connection_manager, stamped_event):
        repository.append(stamped_event)

        query, params = cursor.execute.call_args.args
        assert "INSERT INTO alert_events" in query
        assert "ON CONFLICT" not in query
        assert params[:3] == ["school_001", 1, "triggered"]
        conn = connection_manager.get_connection.return_value.__enter__.return_value
        conn.commit.assert_called_once()

    def test_unique_violation_is_duplicate(self, repository, cursor, stamped_event):
        cursor.execute.side_effect = pg_errors.UniqueViolation("duplicate key")

        with pytest.raises(DuplicateError):
            repository.append(stamped_event)

    def test_timeout_is_repository_error(self, repository, cursor, stamped_event):
        cursor.execute.side_effect = pg_errors.QueryCanceled("statement timeout")

        with pytest.raises(RepositoryError):
            repository.append(stamped_event)


class TestRead:
    def test_row_round_trip(self, repository, cursor, stamped_event):
        cursor.fetchall.return_value = [
            ("school_001", 1, "triggered", "hash_p1", "Gym", None, "student",
             OCCURRED_AT, "genesis", stamped_event.entry_hash),
        ]

        events = repository.find_all()

        assert events == [stamped_event]
        assert events[0].actor_role == Role.STUDENT
        assert "ORDER BY school_id ASC, sequence ASC" in cursor.execute.call_args.args[0]

    def test_empty_table(self, repository, cursor):
        cursor.fetchall.return_value = []
        assert repository.find_all() == []

    def test_row_in_session_time_zone_is_read_as_utc(self, repository, cursor, stamped_event):
        mountain = timezone(timedelta(hours=-7))
        cursor.fetchall.return_value = [
            ("school_001", 1, "triggered", "hash_p1", "Gym", None, "student",
             OCCURRED_AT.astimezone(mountain), "genesis", stamped_event.entry_hash),
        ]

        event = repository.find_all()[0]

        assert event.timestamp.utcoffset() == timedelta(0)
        assert event.compute_hash() == stamped_event.entry_hash


class TestSchema:
    def test_create_table(self, repository, cursor):
        repository.create_table()

        ddl = cursor.execute.call_args.args[0]
        assert "CREATE TABLE IF NOT EXISTS alert_events" in ddl
        assert "PRIMARY KEY (school_id, sequence)" in ddl


class TestAppendOnly:
    def test_save_is_refused(self, repository, cursor, stamped_event):
        with pytest.raises(RepositoryError):
            repository.save(stamped_event)
        cursor.execute.assert_not_called()

    def test_find_by_id_is_refused(self, repository, cursor):
        with pytest.raises(RepositoryError):
            repository.find_by_id("school_001")
        cursor.execute.assert_not_called()
