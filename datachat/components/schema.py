"""Schema inspection and fingerprinting of the session store"""
import json
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from datachat.components.store import DataStore
from datachat.components.table_builder import quote_identifier


@dataclass
class ColumnInfo:
    name: str
    type: str
    notnull: bool = False
    default: Optional[str] = None
    pk: bool = False


@dataclass
class TableSchema:
    name: str
    sql: str
    columns: List[ColumnInfo] = field(default_factory=list)


class SchemaInspector:
    """Reads the live table / column metadata; never caches."""

    TABLES_SQL = "SELECT name, sql FROM sqlite_master WHERE type='table'"

    def __init__(self, store: DataStore):
        self.store = store

    def snapshot(self) -> List[TableSchema]:
        """Return the current schema, read fresh from the store"""
        tables = []
        with self.store.connection() as conn:
            for row in DataStore.fetch(conn, self.TABLES_SQL):
                info = DataStore.fetch(conn, f"PRAGMA table_info({quote_identifier(row['name'])})")
                columns = [
                    ColumnInfo(
                        name=col["name"],
                        type=col["type"],
                        notnull=bool(col["notnull"]),
                        default=col["dflt_value"],
                        pk=bool(col["pk"]),
                    )
                    for col in info
                ]
                tables.append(TableSchema(name=row["name"], sql=row["sql"] or "", columns=columns))
        return tables


def fingerprint(snapshot: List[TableSchema]) -> str:
    """Stable serialization used as the staleness key for cached questions."""
    return json.dumps([asdict(t) for t in snapshot], sort_keys=True, default=str)


def create_statements(snapshot: List[TableSchema]) -> str:
    """Every table's create statement, separated by blank lines."""
    return "\n\n".join(t.sql for t in snapshot)


def format_schema_markdown(snapshot: List[TableSchema]) -> str:
    """Schema overview for the schema explorer panel"""
    lines = []
    for table in snapshot:
        lines.append(f"### {table.name}")
        lines.append(f"```sql\n{table.sql}\n```")
        lines.append("| Column | Type | Not Null | Default | Primary Key |")
        lines.append("|--------|------|----------|---------|-------------|")
        for col in table.columns:
            lines.append(
                f"| {col.name} | {col.type or ''} | {'Yes' if col.notnull else 'No'} "
                f"| {col.default if col.default is not None else 'NULL'} | {'Yes' if col.pk else 'No'} |"
            )
        lines.append("")
    return "\n".join(lines)
