"""Demo dataset catalog loaded from a JSON config file"""
import json
import logging
import math
import os
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from datachat.components.dsv import Record

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


class Demo(BaseModel):
    """One demo card: a dataset file plus preset questions and context.

    ``columns`` maps a column name to ``[description, "yes" | "no"]``, the
    flag marking columns that get average / min / max statistics.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str
    body: str = ""
    file: str
    questions: List[str] = Field(default_factory=list)
    context: str = ""
    columns: Dict[str, List[str]] = Field(default_factory=dict, alias="dict")


class DemoCatalog(BaseModel):
    demos: List[Demo] = Field(default_factory=list)


def load_demos(path: str) -> List[Demo]:
    """Load demos; relative file paths resolve against the config's directory."""
    if not path or not os.path.exists(path):
        logger.info("No demo catalog at %s", path)
        return []
    try:
        with open(path, encoding="utf-8") as f:
            catalog = DemoCatalog.model_validate(json.load(f))
    except (OSError, ValueError, ValidationError) as e:
        logger.warning("Could not load demo catalog %s: %s", path, e)
        return []

    base_dir = os.path.dirname(os.path.abspath(path))
    for demo in catalog.demos:
        if not os.path.isabs(demo.file):
            demo.file = os.path.join(base_dir, demo.file)
    return catalog.demos


def column_stats(rows: List[Record], column: str) -> Dict[str, str]:
    values = []
    for row in rows:
        value = row.get(column)
        if isinstance(value, bool) or value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if not math.isnan(number):
            values.append(number)
    if not values:
        return {"avg": NOT_AVAILABLE, "min": NOT_AVAILABLE, "max": NOT_AVAILABLE}
    return {
        "avg": f"{sum(values) / len(values):.2f}",
        "min": f"{min(values):.2f}",
        "max": f"{max(values):.2f}",
    }


def summarize_columns(demo: Demo, rows: List[Record]) -> List[Dict[str, Any]]:
    """Rows of the dataset-context table: description plus numeric stats."""
    summary = []
    for column, entry in demo.columns.items():
        description = entry[0] if entry else ""
        numeric = len(entry) > 1 and entry[1].strip().lower() == "yes"
        stats = column_stats(rows, column) if numeric else {
            "avg": NOT_AVAILABLE, "min": NOT_AVAILABLE, "max": NOT_AVAILABLE,
        }
        summary.append({"column": column, "description": description, **stats})
    return summary
