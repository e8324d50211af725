"""Shared fixtures: an offline text generator and in-memory sessions"""
import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pytest

from datachat.components.llm_client import GenerationResult
from datachat.session import DataChatSession

DEMOS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "demos")


class FakeGenerator:
    """Stands in for TextGenerator: records calls and replays queued results."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def queue(self, *results):
        self.results.extend(results)

    def complete(self, system, user, output_shape=None):
        self.calls.append({"system": system, "user": user, "output_shape": output_shape})
        if not self.results:
            raise AssertionError("FakeGenerator has no queued result")
        result = self.results.pop(0)
        if isinstance(result, GenerationResult):
            return result
        return GenerationResult(content=result)


def sql_reply(sql: str) -> str:
    return f"Objective: answer the question.\n\n```sql\n{sql}\n```\n"


def chart_reply(code: str) -> str:
    return f"Here is the chart.\n\n```python\n{code}\n```\n"


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def session(generator):
    s = DataChatSession(generator)
    yield s
    s.close()


@pytest.fixture
def write_file(tmp_path):
    """Write a file under tmp_path and return its path"""

    def _write(name, content):
        path = tmp_path / name
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        return str(path)

    return _write


@pytest.fixture
def sales_csv():
    return os.path.join(DEMOS_DIR, "sales.csv")


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")
