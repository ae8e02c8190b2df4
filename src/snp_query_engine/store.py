"""In-memory SQLite dataset store and the engine context that owns it."""

import logging
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .errors import InvalidDatasetImage, QueryExecutionFailed, StoreNotLoaded

logger = logging.getLogger(__name__)

SNP_TABLE = "snps"

# SQLite's compile-time default before 3.32; used when the limit can't be read.
DEFAULT_MAX_PARAMETERS = 999

NOCASE_INDEX = "snps_rsid_nocase"


def _table_has_rowid(conn: sqlite3.Connection) -> bool:
    """False for WITHOUT ROWID tables."""
    try:
        conn.execute(f"SELECT rowid FROM {SNP_TABLE} LIMIT 0")
    except sqlite3.OperationalError:
        return False
    return True


class DatasetStore:
    """A fully materialized, read-only SNP dataset.

    Instances are only created through from_image, so a store either holds
    a complete dataset or does not exist.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        has_mixed_case_keys: bool = False,
        has_rowid: bool = True,
    ):
        self._conn = conn
        self._conn.row_factory = sqlite3.Row
        self.has_mixed_case_keys = has_mixed_case_keys
        self.has_rowid = has_rowid

    @classmethod
    def from_image(cls, image: bytes) -> "DatasetStore":
        """Materialize a store from a serialized SQLite database.

        Datasets whose rsIDs are not all lowercase get a NOCASE index on
        rsid before the store is locked, so case-insensitive key lookups
        stay indexed.

        Raises:
            InvalidDatasetImage: If the buffer is not a database holding the snps table.
        """
        if not image:
            raise InvalidDatasetImage("Dataset image is empty")

        conn = sqlite3.connect(":memory:")
        try:
            conn.deserialize(image)
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
                (SNP_TABLE,),
            ).fetchone()
            if row is None:
                raise InvalidDatasetImage(f"Dataset image has no '{SNP_TABLE}' table")

            has_rowid = _table_has_rowid(conn)
            has_mixed_case_keys = bool(
                conn.execute(
                    f"SELECT EXISTS (SELECT 1 FROM {SNP_TABLE} WHERE rsid <> lower(rsid))"
                ).fetchone()[0]
            )
            if has_mixed_case_keys:
                logger.info("Dataset has mixed-case rsIDs; building case-insensitive index")
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS {NOCASE_INDEX} "
                    f"ON {SNP_TABLE} (rsid COLLATE NOCASE)"
                )

            conn.execute("PRAGMA query_only = ON")
        except InvalidDatasetImage:
            conn.close()
            raise
        except (sqlite3.Error, OverflowError) as e:
            conn.close()
            raise InvalidDatasetImage(f"Dataset image could not be opened: {e}") from e

        return cls(conn, has_mixed_case_keys=has_mixed_case_keys, has_rowid=has_rowid)

    @property
    def max_parameters(self) -> int:
        """Maximum number of bound parameters a single statement may use."""
        try:
            return self._conn.getlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER)
        except (AttributeError, sqlite3.Error):
            return DEFAULT_MAX_PARAMETERS

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a parameterized query and return every row as a dict."""
        try:
            cursor = self._conn.execute(sql, tuple(params))
            try:
                return [dict(row) for row in cursor.fetchall()]
            finally:
                cursor.close()
        except sqlite3.Error as e:
            raise QueryExecutionFailed(str(e)) from e

    def fetch_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Run a parameterized query and return the first column of the first row."""
        try:
            row = self._conn.execute(sql, tuple(params)).fetchone()
        except sqlite3.Error as e:
            raise QueryExecutionFailed(str(e)) from e
        return row[0] if row is not None else None

    def row_count(self) -> int:
        return self.fetch_scalar(f"SELECT COUNT(*) FROM {SNP_TABLE}") or 0

    def close(self) -> None:
        self._conn.close()


@dataclass
class EngineContext:
    """Holds the resident store, if any, for one execution context."""

    store: DatasetStore | None = None

    @property
    def is_loaded(self) -> bool:
        return self.store is not None

    def require_store(self) -> DatasetStore:
        """Return the resident store.

        Raises:
            StoreNotLoaded: If no dataset has been loaded yet.
        """
        if self.store is None:
            raise StoreNotLoaded("Database not loaded. Call load_database first.")
        return self.store

    def install(self, store: DatasetStore) -> None:
        if self.store is not None:
            logger.warning("Replacing an already loaded dataset")
            self.store.close()
        self.store = store

    def clear(self) -> None:
        if self.store is not None:
            self.store.close()
        self.store = None
