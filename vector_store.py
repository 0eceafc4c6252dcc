"""LanceDB-backed table of memory records."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa

from models import TABLE_NAME, memory_model
from utils import escape_filter_value, log


@dataclass(frozen=True, slots=True)
class Eq:
    """Equality predicate on a single column.

    Values are escaped when rendered, so callers never build predicate strings.
    """

    column: str
    value: str

    def to_sql(self) -> str:
        return f"{self.column} = '{escape_filter_value(self.value)}'"


def _table_names(db: lancedb.DBConnection) -> list[str]:
    try:
        names = db.list_tables()
    except AttributeError:
        names = db.table_names()
    # Newer lancedb wraps the names in a response object
    return list(getattr(names, "tables", names))


class VectorStore:
    """Persistent ``memories`` table rooted at a directory.

    Not thread-safe on its own; ``LocalMemoryClient`` serialises creation and
    drop of the table.
    """

    def __init__(self, path: str | Path, table_name: str = TABLE_NAME):
        self.path = Path(path)
        self.table_name = table_name
        self._db: lancedb.DBConnection | None = None
        self._table: lancedb.table.Table | None = None

    @property
    def connected(self) -> bool:
        return self._db is not None

    @property
    def has_table(self) -> bool:
        return self._table is not None

    @property
    def dimension(self) -> int | None:
        """Vector dimension bound to the table, or None without a table."""
        if self._table is None:
            return None
        vector_type = self._table.schema.field("vector").type
        if pa.types.is_fixed_size_list(vector_type):
            return vector_type.list_size
        return None

    def connect(self) -> None:
        """Open the database, creating directories and picking up an existing table."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._db = lancedb.connect(str(self.path))
        self._table = self._open_existing()
        log.debug("database initialized at %s (table: %s)", self.path, self.has_table)

    def _open_existing(self) -> lancedb.table.Table | None:
        assert self._db is not None
        try:
            return self._db.open_table(self.table_name)
        except Exception:
            if self.table_name in _table_names(self._db):
                raise
            return None

    def _require_db(self) -> lancedb.DBConnection:
        if self._db is None:
            raise RuntimeError("Database not initialized")
        return self._db

    def ensure_table(self, dimension: int) -> lancedb.table.Table:
        """Create the table at ``dimension`` unless one is already cached."""
        if self._table is not None:
            return self._table
        db = self._require_db()
        self._table = db.create_table(self.table_name, schema=memory_model(dimension), exist_ok=True)
        log.info("created table %s (dimension %d)", self.table_name, dimension)
        return self._table

    def add(self, record: dict[str, Any]) -> None:
        if self._table is None:
            raise RuntimeError("Table not created")
        self._table.add([record])

    def delete(self, where: Eq) -> None:
        """Delete rows matching ``where``; missing rows are not an error."""
        if self._table is None:
            return
        self._table.delete(where.to_sql())

    def vector_search(self, vector: list[float], limit: int) -> list[dict[str, Any]]:
        """Nearest rows by cosine distance, closest first."""
        if self._table is None:
            return []
        return self._table.search(vector).metric("cosine").limit(limit).to_list()

    def count_rows(self) -> int:
        if self._table is None:
            return 0
        return self._table.count_rows()

    def list_records(self, limit: int = 1000) -> list[dict[str, Any]]:
        """All rows (up to ``limit``) without their vectors, newest first."""
        if self._table is None:
            return []
        rows = self._table.search().limit(limit).to_list()
        for row in rows:
            row.pop("vector", None)
        return sorted(rows, key=lambda r: r.get("createdAt", ""), reverse=True)

    def drop_table(self) -> None:
        if self._table is None:
            return
        self._require_db().drop_table(self.table_name)
        self._table = None
        log.info("dropped table %s", self.table_name)

    def close(self) -> None:
        self._table = None
        self._db = None
