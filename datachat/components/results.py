"""Current query result and the read-only views derived from it"""
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

from datachat.components.dsv import Record, format_dsv
from datachat.components.errors import NoCurrentResult


@dataclass(frozen=True)
class QueryResult:
    rows: List[Record] = field(default_factory=list)
    sql: str = ""
    question: str = ""


class ResultState:
    """Holds exactly one current result.

    A successful query replaces it; a failed one keeps it but disables the
    derived actions until the next success.
    """

    def __init__(self, preview_rows: int = 100):
        self.preview_rows = preview_rows
        self.current: Optional[QueryResult] = None
        self.available = False

    def replace(self, result: QueryResult) -> None:
        if not result.rows:
            raise ValueError("A current result must have at least one row")
        self.current = result
        self.available = True

    def mark_failed(self) -> None:
        self.available = False

    def require(self) -> QueryResult:
        """The current result, or ``NoCurrentResult`` if actions are disabled"""
        if self.current is None or not self.current.rows or not self.available:
            raise NoCurrentResult("No results to show. Run a query first.")
        return self.current

    def preview(self) -> List[Record]:
        return self.require().rows[: self.preview_rows]

    def sql_text(self) -> str:
        return self.require().sql

    def to_csv(self) -> str:
        return format_dsv(self.require().rows, ",")

    def export_csv(self) -> str:
        """Write the full result to a temp CSV file and return its path."""
        content = self.to_csv()
        tmp = tempfile.NamedTemporaryFile(
            mode="w", suffix=".csv", delete=False, prefix="datachat_", encoding="utf-8", newline=""
        )
        tmp.write(content)
        tmp.close()
        return tmp.name

    def chart_request(self) -> QueryResult:
        """Snapshot handed to the chart orchestrator"""
        return self.require()
