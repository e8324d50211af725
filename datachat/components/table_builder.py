"""Type inference and transactional table creation"""
import logging
from typing import Any, Dict, List, Sequence

from datachat.components.dsv import Record, to_iso
from datachat.components.errors import EmptyDataset
from datachat.components.store import DataStore

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Double-quote an SQLite identifier"""
    return '"' + str(name).replace('"', '""') + '"'


def infer_sql_type(sample: Any) -> str:
    """Map one sample value to a declared SQLite column type."""
    # bool before int: bool is an int subclass
    if isinstance(sample, bool):
        return "INTEGER"
    if isinstance(sample, int):
        return "INTEGER"
    if isinstance(sample, float):
        return "INTEGER" if sample.is_integer() else "REAL"
    # dates are stored as ISO-8601 text
    return "TEXT"


def infer_column_types(rows: Sequence[Record]) -> Dict[str, str]:
    """Infer column types from the first record only; later rows are never consulted."""
    if not rows:
        raise EmptyDataset("Cannot infer columns from an empty dataset")
    first = rows[0]
    return {col: infer_sql_type(value) for col, value in first.items()}


def build_create_statement(table_name: str, types: Dict[str, str]) -> str:
    columns = ", ".join(f"{quote_identifier(col)} {sql_type}" for col, sql_type in types.items())
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name)} ({columns})"


class TableBuilder:
    """Creates typed tables and bulk-inserts records into the store"""

    def __init__(self, store: DataStore):
        self.store = store

    def insert_rows(self, table_name: str, rows: List[Record]) -> str:
        """Create ``table_name`` from ``rows`` and insert them all.

        Column types come from the first record.  Date/time values become
        ISO-8601 strings; everything else is bound unchanged, so a row the
        engine rejects rolls back the whole batch.
        """
        types = infer_column_types(rows)
        columns = list(types.keys())
        create_sql = build_create_statement(table_name, types)

        with self.store.lock:
            self.store.execute(create_sql)
            with self.store.transaction() as conn:
                self.copy_rows(conn, table_name, columns, rows)

        logger.info("Imported table %s: %d rows, %d columns", table_name, len(rows), len(columns))
        return table_name

    @staticmethod
    def copy_rows(conn, table_name: str, columns: List[str], rows: Sequence[Record]) -> int:
        """Insert ``rows`` in ``columns`` order on an open transaction."""
        if not rows:
            return 0
        placeholders = ", ".join("?" for _ in columns)
        insert_sql = (
            f"INSERT INTO {quote_identifier(table_name)} "
            f"({', '.join(quote_identifier(c) for c in columns)}) VALUES ({placeholders})"
        )
        params = [tuple(to_iso(row.get(c)) for c in columns) for row in rows]
        conn.exec_driver_sql(insert_sql, params)
        return len(params)
