"""Natural-language question to SQL, executed against the session store"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from langchain_core.prompts import PromptTemplate

from datachat.components.errors import GenerationServiceError, QueryExecutionFault
from datachat.components.fences import extract_sql
from datachat.components.flight import SingleFlight
from datachat.components.results import QueryResult, ResultState
from datachat.components.schema import SchemaInspector, TableSchema, create_statements
from datachat.components.store import DataStore

logger = logging.getLogger(__name__)

NO_RESULTS = "no_results"
OK = "ok"


class SQLPromptBuilder:
    """Builds the SQL-writing system prompt from dataset context and schema."""

    SQL_SYSTEM_TEMPLATE = PromptTemplate(
        input_variables=["context", "schema"],
        template=(
            "You are an expert SQLite query writer. The user has a SQLite dataset.\n\n"
            "{context}\n\n"
            "This is their SQLite schema:\n\n"
            "{schema}\n\n"
            "Answer the user's question following these steps:\n\n"
            "1. Guess their objective in asking this.\n"
            "2. Describe the steps to achieve this objective in SQL.\n"
            "3. Build the logic for the SQL query by identifying the necessary tables "
            "and relationships. Select the appropriate columns based on the user's "
            "question and the dataset.\n"
            "4. Write SQL to answer the question. Use SQLite syntax. Put the single "
            "query in one ```sql code fence.\n\n"
            "Replace generic filter values (e.g. \"a location\", \"specific region\", etc.) "
            "by querying a random value from data.\n"
            "Always use [Table].[Column].\n"
        ),
    )

    @staticmethod
    def build(context: str, snapshot: List[TableSchema]) -> str:
        return SQLPromptBuilder.SQL_SYSTEM_TEMPLATE.format(
            context=context or "",
            schema=create_statements(snapshot),
        )


@dataclass
class QueryOutcome:
    status: str
    message: str
    question: str = ""
    sql: str = ""
    response: str = ""
    result: Optional[QueryResult] = None

    @property
    def success(self) -> bool:
        return self.status == OK


def summarize_rows(row_count: int) -> str:
    if row_count == 0:
        return "No results found."
    elif row_count == 1:
        return "1 result found."
    return f"{row_count} results found."


class QueryOrchestrator:
    """Turns a question plus the live schema into SQL and runs it.

    Generation errors and engine faults are reported on the returned
    ``QueryOutcome``; neither is retried and neither clears the current
    result.
    """

    def __init__(self, store: DataStore, inspector: SchemaInspector, generator, results: ResultState):
        self.store = store
        self.inspector = inspector
        self.generator = generator
        self.results = results
        self.flight = SingleFlight("query")
        self.prompt_builder = SQLPromptBuilder()

    @property
    def state(self):
        return self.flight.state

    def ask(self, question: str, context: str = "") -> QueryOutcome:
        """Generate SQL for ``question`` and execute it.

        Raises ``RequestPending`` if another ``ask`` is still running.
        """
        with self.flight.request():
            snapshot = self.inspector.snapshot()
            system = self.prompt_builder.build(context, snapshot)
            response = self.generator.complete(system=system, user=question)

            if not response.ok:
                self.results.mark_failed()
                self.flight.fail()
                return QueryOutcome(
                    status=GenerationServiceError.category,
                    message=response.error,
                    question=question,
                )

            sql = extract_sql(response.content)
            logger.debug("Generated SQL for %r: %s", question, sql)

            try:
                rows = self.store.run_readonly(sql)
            except QueryExecutionFault as e:
                self.results.mark_failed()
                self.flight.fail()
                return QueryOutcome(
                    status=e.category,
                    message=str(e),
                    question=question,
                    sql=sql,
                    response=response.content,
                )

            if not rows:
                self.flight.succeed()
                return QueryOutcome(
                    status=NO_RESULTS,
                    message=summarize_rows(0),
                    question=question,
                    sql=sql,
                    response=response.content,
                )

            result = QueryResult(rows=rows, sql=sql, question=question)
            self.results.replace(result)
            self.flight.succeed()
            logger.info("Query succeeded: rows=%d", len(rows))
            return QueryOutcome(
                status=OK,
                message=summarize_rows(len(rows)),
                question=question,
                sql=sql,
                response=response.content,
                result=result,
            )
