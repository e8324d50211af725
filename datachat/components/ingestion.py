"""Upload dispatch: delimited text and SQLite files into the session store"""
import logging
import os
import re
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from datachat.components.dsv import Record, parse_dsv
from datachat.components.errors import DataChatError, IngestionFault, UnsupportedFileType
from datachat.components.store import ENGINE_ERRORS, DataStore, engine_message
from datachat.components.table_builder import TableBuilder, quote_identifier

logger = logging.getLogger(__name__)

SQLITE_EXTENSIONS = (".sqlite3", ".sqlite", ".db", ".s3db", ".sl3")
DELIMITERS = {".csv": ",", ".tsv": "\t"}


@dataclass
class Artifact:
    """An uploaded file: its name and raw bytes"""

    name: str
    content: bytes


@dataclass
class IngestReport:
    name: str
    tables: List[str] = field(default_factory=list)
    error: Optional[str] = None
    category: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


def table_name_for(filename: str) -> str:
    """Table name from a file name: stem with non-alphanumerics as underscores."""
    stem = os.path.splitext(os.path.basename(filename))[0]
    return re.sub(r"[^a-zA-Z0-9_]", "_", stem)


def decode_text(content: bytes) -> str:
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise IngestionFault("Could not decode file as text")


def read_artifact(path: str) -> Artifact:
    with open(path, "rb") as f:
        return Artifact(name=os.path.basename(path), content=f.read())


class IngestionCoordinator:
    """Routes uploaded artifacts to the right parser and into the store"""

    def __init__(self, store: DataStore, builder: Optional[TableBuilder] = None, max_workers: int = 4):
        self.store = store
        self.builder = builder or TableBuilder(store)
        self.max_workers = max_workers
        # Parsed rows of the most recent delimited upload (dataset summaries)
        self.last_rows: List[Record] = []

    def upload(self, artifact: Artifact) -> IngestReport:
        """Ingest one artifact; failures are reported, never raised."""
        try:
            tables = self._dispatch(artifact)
        except DataChatError as e:
            logger.warning("Upload failed: file=%s category=%s error=%s", artifact.name, e.category, e)
            return IngestReport(name=artifact.name, error=str(e), category=e.category)
        except ENGINE_ERRORS as e:
            logger.warning("Upload failed: file=%s engine error=%s", artifact.name, engine_message(e))
            return IngestReport(
                name=artifact.name, error=engine_message(e), category=IngestionFault.category
            )
        return IngestReport(name=artifact.name, tables=tables)

    def upload_batch(self, paths: Sequence[str]) -> List[IngestReport]:
        """Read files concurrently, then ingest them one transaction at a time.

        Returns only after every artifact's transaction has committed or
        rolled back, so a schema read afterwards sees the whole batch.
        """
        if not paths:
            return []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(read_artifact, path) for path in paths]

        reports = []
        for path, future in zip(paths, futures):
            try:
                artifact = future.result()
            except OSError as e:
                logger.warning("Could not read upload %s: %s", path, e)
                reports.append(IngestReport(
                    name=os.path.basename(path), error=str(e), category=IngestionFault.category
                ))
                continue
            reports.append(self.upload(artifact))
        return reports

    def _dispatch(self, artifact: Artifact) -> List[str]:
        lower = artifact.name.lower()
        if lower.endswith(SQLITE_EXTENSIONS):
            return self.import_sqlite(artifact)
        ext = os.path.splitext(lower)[1]
        if ext in DELIMITERS:
            return [self.import_dsv(artifact, DELIMITERS[ext])]
        raise UnsupportedFileType(f"Unknown file type: {artifact.name}")

    def import_dsv(self, artifact: Artifact, delimiter: str) -> str:
        rows = parse_dsv(decode_text(artifact.content), delimiter)
        table_name = table_name_for(artifact.name)
        self.builder.insert_rows(table_name, rows)
        self.last_rows = rows
        return table_name

    def import_sqlite(self, artifact: Artifact) -> List[str]:
        """Copy every table of an uploaded SQLite file, replacing same-named tables."""
        fd, path = tempfile.mkstemp(suffix=".sqlite3", prefix="datachat_upload_")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(artifact.content)
            source = DataStore.open_readonly(path)
            try:
                return self._copy_tables(source)
            finally:
                source.close()
        finally:
            os.remove(path)

    def _copy_tables(self, source: DataStore) -> List[str]:
        tables = source.query(
            "SELECT name, sql FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'"
        )
        copied = []
        for table in tables:
            name = table["name"]
            columns = self.insertable_columns(source, name)
            rows = []
            if columns:
                select_list = ", ".join(quote_identifier(c) for c in columns)
                rows = source.query(f"SELECT {select_list} FROM {quote_identifier(name)}")
            # drop, create and copy commit together or not at all
            with self.store.transaction() as conn:
                conn.exec_driver_sql(f"DROP TABLE IF EXISTS {quote_identifier(name)}")
                conn.exec_driver_sql(table["sql"])
                if rows:
                    self.builder.copy_rows(conn, name, columns, rows)
            logger.info("Imported SQLite table %s: %d rows", name, len(rows))
            copied.append(name)
        return copied

    @staticmethod
    def insertable_columns(source: DataStore, table_name: str) -> List[str]:
        """Column names in source order, without generated or hidden columns."""
        info = source.query(f"PRAGMA table_xinfo({quote_identifier(table_name)})")
        return [col["name"] for col in info if not col["hidden"]]
