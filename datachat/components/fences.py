"""Extraction of fenced code blocks from LLM completions"""
import re
from typing import Optional

_FENCE_RE = re.compile(r"```.*?\n(.*?)```", re.DOTALL)
_PYTHON_FENCE_RE = re.compile(r"```(?:python|py)[ \t]*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def extract_fenced(text: str) -> Optional[str]:
    """Content of the first fenced block, whatever its language tag."""
    match = _FENCE_RE.search(text or "")
    return match.group(1) if match else None


def extract_sql(text: str) -> str:
    """The first fenced block, or the whole completion when there is none."""
    fenced = extract_fenced(text)
    return (fenced if fenced is not None else text or "").strip()


def extract_python(text: str) -> Optional[str]:
    """Content of the first ```python block, or None."""
    match = _PYTHON_FENCE_RE.search(text or "")
    return match.group(1) if match else None
