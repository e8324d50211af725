"""LLM-written matplotlib charts over the current query result"""
import builtins
import json
import logging
import textwrap
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from datachat.components.dsv import Record
from datachat.components.errors import (
    ChartExecutionFault,
    GenerationServiceError,
    NoChartCodeGenerated,
    NoCurrentResult,
)
from datachat.components.fences import extract_python
from datachat.components.flight import SingleFlight
from datachat.components.results import ResultState

logger = logging.getLogger(__name__)

DEFAULT_CHART_INTENT = "Draw the most appropriate chart to visualize this data"


def build_chart_system_prompt(canvas: str, sample: List[Record]) -> str:
    sample_json = json.dumps(sample, default=str)
    return f"""Write Python code to draw a matplotlib chart.
Write the code inside a ```python code fence.
`plt` (matplotlib.pyplot) is already imported.
Data is ALREADY available as `data`, a list of dicts, one per row. Do not create it. Just use it.
The first rows look like this:

data = {sample_json}

The code runs as the body of a function. Draw on the figure named "{canvas}" and return it, like this:

```python
fig = plt.figure("{canvas}", figsize=(8, 4))
ax = fig.add_subplot()
...
return fig
```
"""


def build_chart_user_prompt(question: str, rows: List[Record], intent: str, max_rows: int) -> str:
    return (
        f"Question: {question}\n\n"
        f"# Result rows\n"
        f"data = {json.dumps(rows[:max_rows], default=str)}\n\n"
        f"IMPORTANT: {intent or DEFAULT_CHART_INTENT}\n"
    )


def evaluate_with_bindings(code: str, bindings: Dict[str, Any]) -> Any:
    """Run ``code`` as the body of a fresh function whose only parameters are ``bindings``."""
    source = f"def _draw({', '.join(bindings)}):\n" + textwrap.indent(code, "    ")
    namespace = {"__builtins__": builtins}
    exec(compile(source, "<chart>", "exec"), namespace)
    return namespace["_draw"](**bindings)


@dataclass
class ChartOutcome:
    status: str
    message: str
    code: str = ""
    figure: Optional[Figure] = None

    @property
    def success(self) -> bool:
        return self.figure is not None


class ChartOrchestrator:
    """Generates chart code for the current result and owns the drawn figure."""

    def __init__(self, generator, results: ResultState, max_prompt_rows: int = 1000):
        self.generator = generator
        self.results = results
        self.max_prompt_rows = max_prompt_rows
        self.canvas = f"chart-{uuid.uuid4().hex[:8]}"
        self.figure: Optional[Figure] = None
        self.flight = SingleFlight("chart")

    @property
    def state(self):
        return self.flight.state

    def clear(self) -> None:
        """Destroy the current figure, if any"""
        if self.figure is not None:
            plt.close(self.figure)
            self.figure = None

    def draw(self, intent: str = DEFAULT_CHART_INTENT) -> ChartOutcome:
        """Ask for chart code and evaluate it against the current rows.

        Raises ``RequestPending`` if another ``draw`` is still running.
        """
        with self.flight.request():
            try:
                current = self.results.chart_request()
            except NoCurrentResult as e:
                self.flight.fail()
                return ChartOutcome(status=e.category, message=str(e))

            rows = [dict(row) for row in current.rows]
            response = self.generator.complete(
                system=build_chart_system_prompt(self.canvas, rows[:3]),
                user=build_chart_user_prompt(current.question, rows, intent, self.max_prompt_rows),
            )
            if not response.ok:
                self.flight.fail()
                return ChartOutcome(status=GenerationServiceError.category, message=response.error)

            code = extract_python(response.content)
            if code is None:
                self.flight.fail()
                logger.warning("No chart code in completion (%d chars)", len(response.content))
                return ChartOutcome(
                    status=NoChartCodeGenerated.category,
                    message="Could not generate chart code",
                )

            self.clear()
            before = set(plt.get_fignums())
            try:
                figure = self._evaluate(code, rows)
            except ChartExecutionFault as e:
                self._close_new_figures(before)
                self.flight.fail()
                logger.warning("Chart code failed: %s", e)
                return ChartOutcome(status=e.category, message=f"Failed to draw chart: {e}", code=code)

            self._close_new_figures(before, keep=figure)
            self.figure = figure
            self.flight.succeed()
            return ChartOutcome(status="ok", message="Chart drawn", code=code, figure=figure)

    def _evaluate(self, code: str, rows: List[Record]) -> Figure:
        before = set(plt.get_fignums())
        try:
            result = evaluate_with_bindings(code, {"plt": plt, "data": rows})
        except Exception as e:
            raise ChartExecutionFault(f"{type(e).__name__}: {e}") from e
        if isinstance(result, Figure):
            return result
        # tolerate code that drew on the canvas but forgot to return it
        for num in set(plt.get_fignums()) - before:
            fig = plt.figure(num)
            if fig.get_label() == self.canvas:
                return fig
        raise ChartExecutionFault("Chart code did not return a matplotlib figure")

    @staticmethod
    def _close_new_figures(before, keep: Optional[Figure] = None) -> None:
        for num in set(plt.get_fignums()) - before:
            fig = plt.figure(num)
            if fig is not keep:
                plt.close(fig)
