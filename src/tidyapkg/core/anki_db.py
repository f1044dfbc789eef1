"""Database connection utilities for Anki collection files."""

import logging
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from unidecode import unidecode

from tidyapkg.core.errors import StorageError

logger = logging.getLogger(__name__)

SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")


def unicase_compare(x, y):
    """Custom collation function for unicase comparison."""
    x_ = unidecode(x).lower()
    y_ = unidecode(y).lower()
    return 1 if x_ > y_ else -1 if x_ < y_ else 0


def ids2str(ids: Iterable[int]) -> str:
    """Render ids as an SQL list literal, e.g. ``(1,2,3)``."""
    return "(" + ",".join(str(int(i)) for i in ids) + ")"


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as e:
        raise StorageError(f"Failed to {action}: {e}") from e


def _connect(anki_db_path) -> sqlite3.Connection:
    with _storage_errors(f"open {anki_db_path}"):
        conn = sqlite3.connect(str(anki_db_path))
        conn.row_factory = sqlite3.Row
        conn.create_collation("unicase", unicase_compare)
    return conn


@contextmanager
def setup_anki_connection(anki_db_path):
    """Set up SQLite connection with custom collations for Anki database."""
    conn = _connect(anki_db_path)
    try:
        yield conn
    finally:
        conn.close()


def store_files(path: Path) -> list[Path]:
    """The store file itself plus any SQLite sidecar files next to it."""
    path = Path(path)
    return [path] + [path.with_name(path.name + suffix) for suffix in SIDECAR_SUFFIXES]


def remove_store_files(path: Path) -> None:
    """Delete a store and its sidecars. Failures are logged, never raised."""
    for candidate in store_files(path):
        try:
            candidate.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove {candidate}: {e}")


class AnkiDB:
    """A single SQLite connection to an Anki collection file.

    All sqlite errors surface as StorageError.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._conn = _connect(self.path)

    def execute(self, sql: str, *args: Any) -> None:
        with _storage_errors("execute statement"):
            self._conn.execute(sql, args)

    def execute_many(self, sql: str, rows: Iterable[Sequence[Any]]) -> None:
        with _storage_errors("execute batch statement"):
            self._conn.executemany(sql, rows)

    def execute_script(self, script: str) -> None:
        with _storage_errors("execute script"):
            self._conn.executescript(script)

    def all(self, sql: str, *args: Any) -> list[sqlite3.Row]:
        with _storage_errors("query"):
            return self._conn.execute(sql, args).fetchall()

    def first(self, sql: str, *args: Any) -> sqlite3.Row | None:
        with _storage_errors("query"):
            return self._conn.execute(sql, args).fetchone()

    def query_column(self, sql: str, *args: Any) -> list[Any]:
        return [row[0] for row in self.all(sql, *args)]

    def scalar(self, sql: str, *args: Any) -> Any:
        row = self.first(sql, *args)
        return row[0] if row is not None else None

    def databases(self) -> list[str]:
        """Names of the databases on this connection, ``main`` first."""
        return [row["name"] for row in self.all("PRAGMA database_list")]

    def attach(self, path: Path, alias: str) -> None:
        # sqlite refuses ATTACH inside an open transaction
        self.commit()
        with _storage_errors(f"attach {path} as {alias}"):
            self._conn.execute(f"ATTACH DATABASE ? AS {alias}", (str(path),))

    def detach(self, alias: str) -> None:
        self.commit()
        with _storage_errors(f"detach {alias}"):
            self._conn.execute(f"DETACH DATABASE {alias}")

    def commit(self) -> None:
        with _storage_errors("commit"):
            self._conn.commit()

    def rollback(self) -> None:
        with _storage_errors("roll back"):
            self._conn.rollback()

    def close(self) -> None:
        with _storage_errors(f"close {self.path}"):
            self._conn.close()
