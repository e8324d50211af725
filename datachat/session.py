"""Per-user session: one store plus every component wired around it"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from datachat.components.charts import DEFAULT_CHART_INTENT, ChartOrchestrator, ChartOutcome
from datachat.components.demos import Demo, summarize_columns
from datachat.components.ingestion import IngestionCoordinator, IngestReport
from datachat.components.llm_client import TextGenerator
from datachat.components.query_orchestrator import QueryOrchestrator, QueryOutcome
from datachat.components.questions import QuestionCache, QuestionInfo
from datachat.components.results import ResultState
from datachat.components.schema import SchemaInspector, TableSchema
from datachat.components.store import DataStore
from datachat.components.table_builder import TableBuilder

logger = logging.getLogger(__name__)


class DataChatSession:
    """Session context holding the store, cached questions, current result and chart."""

    def __init__(
        self,
        generator,
        database_url: str = "sqlite://",
        preview_rows: int = 100,
        question_count: int = 5,
        chart_prompt_max_rows: int = 1000,
    ):
        self.generator = generator
        self.store = DataStore(database_url)
        self.builder = TableBuilder(self.store)
        self.ingestion = IngestionCoordinator(self.store, self.builder)
        self.inspector = SchemaInspector(self.store)
        self.question_cache = QuestionCache(self.inspector, generator, count=question_count)
        self.results = ResultState(preview_rows=preview_rows)
        self.query = QueryOrchestrator(self.store, self.inspector, generator, self.results)
        self.charts = ChartOrchestrator(generator, self.results, max_prompt_rows=chart_prompt_max_rows)
        self.context = ""
        self.demo: Optional[Demo] = None

    @classmethod
    def from_settings(cls, settings, generator=None) -> "DataChatSession":
        return cls(
            generator or TextGenerator.from_settings(settings),
            database_url=settings.database_url,
            preview_rows=settings.preview_rows,
            question_count=settings.question_count,
            chart_prompt_max_rows=settings.chart_prompt_max_rows,
        )

    def upload(self, paths: Sequence[str]) -> List[IngestReport]:
        """Ingest a batch of files; returns after every transaction has finished."""
        reports = self.ingestion.upload_batch(paths)
        for report in reports:
            if report.success:
                logger.info("Uploaded %s -> tables %s", report.name, report.tables)
        return reports

    def load_demo(self, demo: Demo) -> List[IngestReport]:
        reports = self.upload([demo.file])
        if all(r.success for r in reports) and demo.questions:
            self.question_cache.seed(demo.questions)
        self.context = demo.context
        self.demo = demo
        return reports

    def schema(self) -> List[TableSchema]:
        return self.inspector.snapshot()

    def questions(self) -> QuestionInfo:
        return self.question_cache.questions()

    def ask(self, question: str) -> QueryOutcome:
        return self.query.ask(question, context=self.context)

    def draw(self, intent: str = DEFAULT_CHART_INTENT) -> ChartOutcome:
        return self.charts.draw(intent)

    def dataset_summary(self) -> List[Dict[str, Any]]:
        if self.demo is None:
            return []
        return summarize_columns(self.demo, self.ingestion.last_rows)

    def close(self) -> None:
        self.charts.clear()
        self.store.close()
