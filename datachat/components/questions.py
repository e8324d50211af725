"""Suggested questions, regenerated only when the schema fingerprint changes"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from datachat.components.errors import MalformedGenerationOutput
from datachat.components.schema import SchemaInspector, create_statements, fingerprint

logger = logging.getLogger(__name__)

QUESTIONS_SYSTEM_PROMPT = (
    "Suggest {count} diverse, useful questions that a user can answer "
    "from this dataset using SQLite"
)

QUESTIONS_SHAPE = {
    "type": "object",
    "properties": {
        "questions": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["questions"],
    "additionalProperties": False,
}


@dataclass
class QuestionInfo:
    fingerprint: Optional[str] = None
    questions: List[str] = field(default_factory=list)
    error: Optional[str] = None


def parse_questions(payload: Any, count: int) -> List[str]:
    """Validate a structured completion and return its first ``count`` questions.

    Fewer than ``count`` questions is malformed, as is any entry that is not a
    non-empty string.
    """
    questions = payload.get("questions") if isinstance(payload, dict) else None
    if not isinstance(questions, list) or not questions:
        raise MalformedGenerationOutput("Expected a non-empty 'questions' list")
    if len(questions) < count:
        raise MalformedGenerationOutput(f"Expected {count} questions, got {len(questions)}")
    if not all(isinstance(q, str) and q.strip() for q in questions):
        raise MalformedGenerationOutput("Every question must be a non-empty string")
    return [q.strip() for q in questions[:count]]


class QuestionCache:
    """Keeps one ``QuestionInfo`` per session, keyed by schema fingerprint."""

    def __init__(self, inspector: SchemaInspector, generator, count: int = 5):
        self.inspector = inspector
        self.generator = generator
        self.count = count
        self.info = QuestionInfo()

    def is_stale(self, current: str) -> bool:
        return self.info.fingerprint != current

    def questions(self) -> QuestionInfo:
        """Return cached questions, regenerating them if the schema changed.

        A failed regeneration keeps the previous questions but records the
        error, which callers show instead of the list.  The fingerprint is
        stored either way so an unchanged schema never triggers a second
        request.
        """
        snapshot = self.inspector.snapshot()
        current = fingerprint(snapshot)
        if not self.is_stale(current):
            return self.info
        if not snapshot:
            self.info = QuestionInfo(fingerprint=current)
            return self.info

        result = self.generator.complete(
            system=QUESTIONS_SYSTEM_PROMPT.format(count=self.count),
            user=create_statements(snapshot),
            output_shape=QUESTIONS_SHAPE,
        )
        if not result.ok:
            self.info.error = result.error
        else:
            try:
                self.info.questions = parse_questions(result.content, self.count)
                self.info.error = None
            except MalformedGenerationOutput as e:
                logger.warning("Suggested questions rejected: %s", e)
                self.info.error = str(e)
        self.info.fingerprint = current
        return self.info

    def seed(self, questions: List[str]) -> None:
        """Install preset questions for the current schema without generating."""
        current = fingerprint(self.inspector.snapshot())
        self.info = QuestionInfo(fingerprint=current, questions=list(questions))
