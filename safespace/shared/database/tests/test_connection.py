"""Tests for database connection manager."""
import json
import pytest
from unittest.mock import MagicMock, patch

from safespace.shared.database import connection as connection_module
from safespace.shared.database.connection import (
    DatabaseConfig,
    ConnectionManager,
    get_connection_manager,
)


class TestDatabaseConfig:
    """Tests for DatabaseConfig dataclass."""

    def test_default_values(self):
        config = DatabaseConfig(host="localhost")

        assert config.host == "localhost"
        assert config.port == 5432
        assert config.database == "safespace"
        assert config.min_connections == 2
        assert config.max_connections == 10
        assert config.statement_timeout_ms == 5000
        assert config.ssl_mode == "require"

    def test_from_env(self):
        with patch.dict("os.environ", {
            "DB_HOST": "env-host",
            "DB_PORT": "5434",
            "DB_NAME": "env_db",
            "DB_USER": "env_user",
            "DB_PASSWORD": "env_pass",
            "DB_STATEMENT_TIMEOUT_MS": "750",
        }):
            config = DatabaseConfig.from_env()

            assert config.host == "env-host"
            assert config.port == 5434
            assert config.database == "env_db"
            assert config.username == "env_user"
            assert config.password == "env_pass"
            assert config.statement_timeout_ms == 750

    def test_from_env_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            config = DatabaseConfig.from_env()

            assert config.host == "localhost"
            assert config.port == 5432
            assert config.database == "safespace"

    def test_from_secrets_manager(self):
        secret = {"host": "rds-host", "port": 5433, "dbname": "campus",
                  "username": "svc", "password": "pw"}
        with patch("boto3.client") as client_factory:
            client_factory.return_value.get_secret_value.return_value = {
                "SecretString": json.dumps(secret)
            }
            config = DatabaseConfig.from_secrets_manager("arn:secret", region="us-west-2")

        client_factory.assert_called_once_with("secretsmanager", region_name="us-west-2")
        assert config.host == "rds-host"
        assert config.port == 5433
        assert config.database == "campus"
        assert config.username == "svc"

    def test_from_secrets_manager_failure_propagates(self):
        with patch("boto3.client") as client_factory:
            client_factory.return_value.get_secret_value.side_effect = RuntimeError("denied")
            with pytest.raises(RuntimeError):
                DatabaseConfig.from_secrets_manager("arn:secret")


class TestConnectionManager:
    """Tests for ConnectionManager class."""

    def test_initialization(self):
        config = DatabaseConfig(host="localhost")
        manager = ConnectionManager(config)

        assert manager.config == config
        assert manager._initialized is False

    def test_initialize_creates_pool_with_statement_timeout(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost", statement_timeout_ms=1234))

        with patch("psycopg2.pool.ThreadedConnectionPool") as pool_cls:
            manager.initialize()
            manager.initialize()

        pool_cls.assert_called_once()
        assert pool_cls.call_args.kwargs["options"] == "-c statement_timeout=1234"
        assert manager._initialized is True

    def test_initialize_failure_propagates(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost"))

        with patch("psycopg2.pool.ThreadedConnectionPool", side_effect=RuntimeError("refused")):
            with pytest.raises(RuntimeError):
                manager.initialize()

        assert manager._initialized is False

    def test_get_connection_returns_to_pool(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost"))
        manager._pool = MagicMock()
        manager._initialized = True
        conn = manager._pool.getconn.return_value

        with manager.get_connection() as got:
            assert got is conn

        manager._pool.putconn.assert_called_once_with(conn)
        conn.rollback.assert_not_called()

    def test_get_connection_rolls_back_on_error(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost"))
        manager._pool = MagicMock()
        manager._initialized = True
        conn = manager._pool.getconn.return_value

        with pytest.raises(ValueError):
            with manager.get_connection():
                raise ValueError("boom")

        conn.rollback.assert_called_once()
        manager._pool.putconn.assert_called_once_with(conn)

    def test_health_check_not_initialized(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost"))

        health = manager.health_check()

        assert health["status"] == "not_initialized"
        assert health["healthy"] is False

    def test_health_check_connected(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost"))
        manager._pool = MagicMock()
        manager._initialized = True

        health = manager.health_check()

        assert health["status"] == "connected"
        assert health["healthy"] is True

    def test_health_check_error(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost"))
        manager._pool = MagicMock()
        manager._pool.getconn.side_effect = RuntimeError("pool exhausted")
        manager._initialized = True

        health = manager.health_check()

        assert health["status"] == "error"
        assert health["healthy"] is False

    def test_close(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost"))
        pool = MagicMock()
        manager._pool = pool
        manager._initialized = True

        manager.close()

        pool.closeall.assert_called_once()
        assert manager._initialized is False


class TestGetConnectionManager:

    @pytest.fixture(autouse=True)
    def reset_global(self):
        connection_module._connection_manager = None
        yield
        connection_module._connection_manager = None

    def test_uses_environment_without_secret(self):
        with patch.dict("os.environ", {"DB_HOST": "env-host"}, clear=True):
            manager = get_connection_manager()

        assert manager.config.host == "env-host"
        assert get_connection_manager() is manager

    def test_uses_secrets_manager_when_arn_set(self):
        with patch.dict("os.environ", {"DB_SECRET_ARN": "arn:secret"}, clear=True), \
                patch.object(DatabaseConfig, "from_secrets_manager",
                             return_value=DatabaseConfig(host="rds-host")) as loader:
            manager = get_connection_manager()

        loader.assert_called_once_with("arn:secret", region="us-east-1")
        assert manager.config.host == "rds-host"
