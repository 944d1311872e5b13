"""Base repository pattern for database operations.

Provides the PostgreSQL operations shared by the school catalog and the
alert ledger. Driver exceptions never escape: they are wrapped in
RepositoryError so callers deal with one failure type.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from psycopg2 import errors as pg_errors

from .connection import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class DuplicateError(RepositoryError):
    """Duplicate entity already exists."""
    pass


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository with common operations.

    Subclasses implement entity-specific logic while inheriting:
    - Connection management
    - Error handling
    - Logging patterns
    """

    #: Column holding the primary key used by find_by_id/save
    key_column = "id"

    def __init__(
        self,
        connection_manager: ConnectionManager,
        table_name: str,
    ):
        """Initialize repository.

        Args:
            connection_manager: Database connection manager
            table_name: Name of the database table
        """
        self.connection_manager = connection_manager
        self.table_name = table_name

        logger.info(
            "REPOSITORY_INITIALIZED",
            extra={"table_name": table_name}
        )

    @abstractmethod
    def _row_to_entity(self, row: tuple) -> T:
        """Convert database row to entity."""
        pass

    @abstractmethod
    def _entity_to_params(self, entity: T) -> Dict[str, Any]:
        """Convert entity to a column -> value mapping."""
        pass

    def _execute(
        self,
        query: str,
        params: Sequence[Any] = (),
        fetch: Optional[str] = None,
        commit: bool = False,
    ):
        """Run one statement, wrapping driver errors.

        Args:
            query: SQL statement
            params: Statement parameters
            fetch: "one", "all" or None
            commit: Commit after executing

        Raises:
            DuplicateError: On unique constraint violation
            RepositoryError: On any other database failure
        """
        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    result = None
                    if fetch == "one":
                        result = cur.fetchone()
                    elif fetch == "all":
                        result = cur.fetchall()
                    if commit:
                        conn.commit()
                    return result
        except pg_errors.UniqueViolation as e:
            raise DuplicateError(f"Duplicate row in {self.table_name}: {e}") from e
        except RepositoryError:
            raise
        except Exception as e:
            logger.error(
                "REPOSITORY_QUERY_FAILED",
                extra={
                    "table_name": self.table_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            raise RepositoryError(f"Query on {self.table_name} failed: {e}") from e

    def find_by_id(self, entity_id: str) -> Optional[T]:
        """Find entity by primary key.

        Returns:
            Entity if found, None otherwise
        """
        row = self._execute(
            f"SELECT * FROM {self.table_name} WHERE {self.key_column} = %s",
            (entity_id,),
            fetch="one",
        )
        if row is None:
            return None
        return self._row_to_entity(row)

    def find_all(self) -> List[T]:
        """Find all entities in insertion order."""
        rows = self._execute(
            f"SELECT * FROM {self.table_name} ORDER BY created_at ASC",
            fetch="all",
        )
        return [self._row_to_entity(row) for row in rows or []]

    def insert(self, entity: T) -> None:
        """Insert a new row. Never overwrites.

        Raises:
            DuplicateError: If the key already exists
        """
        params = self._entity_to_params(entity)
        columns = list(params.keys())
        placeholders = ["%s"] * len(columns)

        query = f"""
            INSERT INTO {self.table_name} ({", ".join(columns)})
            VALUES ({", ".join(placeholders)})
        """
        self._execute(query, list(params.values()), commit=True)

    def save(self, entity: T) -> T:
        """Save entity (insert or update)."""
        params = self._entity_to_params(entity)
        columns = list(params.keys())
        placeholders = ["%s"] * len(columns)

        update_clause = ", ".join(
            f"{col} = EXCLUDED.{col}" for col in columns if col != self.key_column
        )

        query = f"""
            INSERT INTO {self.table_name} ({", ".join(columns)})
            VALUES ({", ".join(placeholders)})
            ON CONFLICT ({self.key_column}) DO UPDATE SET {update_clause}
        """
        self._execute(query, list(params.values()), commit=True)
        return entity

    def count(self) -> int:
        """Count total entities."""
        row = self._execute(
            f"SELECT COUNT(*) FROM {self.table_name}",
            fetch="one",
        )
        return row[0] if row else 0
