"""Unit tests for the schema fingerprint and suggested-question cache"""
import pytest

from conftest import FakeGenerator
from datachat.components.errors import MalformedGenerationOutput
from datachat.components.llm_client import GenerationResult
from datachat.components.questions import QUESTIONS_SHAPE, QuestionCache, parse_questions
from datachat.components.schema import SchemaInspector, create_statements, fingerprint
from datachat.components.store import DataStore
from datachat.components.table_builder import TableBuilder

QUESTIONS = {"questions": ["Q1?", "Q2?", "Q3?", "Q4?", "Q5?"]}
NEW_QUESTIONS = {"questions": ["N1?", "N2?", "N3?", "N4?", "N5?"]}


@pytest.fixture
def store():
    s = DataStore()
    yield s
    s.close()


@pytest.fixture
def inspector(store):
    TableBuilder(store).insert_rows("sales", [{"id": 1, "amount": 2.5}])
    return SchemaInspector(store)


class TestSchemaFingerprint:

    def test_stable_for_unchanged_schema(self, inspector):
        assert fingerprint(inspector.snapshot()) == fingerprint(inspector.snapshot())

    def test_changes_when_table_added(self, store, inspector):
        before = fingerprint(inspector.snapshot())
        TableBuilder(store).insert_rows("other", [{"x": "a"}])
        assert fingerprint(inspector.snapshot()) != before

    def test_unaffected_by_row_inserts(self, store, inspector):
        before = fingerprint(inspector.snapshot())
        TableBuilder(store).insert_rows("sales", [{"id": 2, "amount": 3.5}])
        assert fingerprint(inspector.snapshot()) == before

    def test_create_statements(self, store, inspector):
        TableBuilder(store).insert_rows("other", [{"x": "a"}])
        statements = create_statements(inspector.snapshot())
        assert statements.count("CREATE TABLE") == 2
        assert "\n\n" in statements


class TestParseQuestions:

    def test_caps_at_count(self):
        assert parse_questions(QUESTIONS, 3) == ["Q1?", "Q2?", "Q3?"]

    @pytest.mark.parametrize("payload", [
        None,
        [],
        {},
        {"questions": []},
        {"questions": "Q1?"},
        {"questions": ["ok", 3]},
        {"questions": ["ok", "  "]},
    ])
    def test_malformed(self, payload):
        with pytest.raises(MalformedGenerationOutput):
            parse_questions(payload, 5)


class TestQuestionCache:

    def test_generates_once_per_fingerprint(self, inspector):
        generator = FakeGenerator(QUESTIONS)
        cache = QuestionCache(inspector, generator)

        first = cache.questions()
        second = cache.questions()

        assert len(generator.calls) == 1
        assert first.questions == QUESTIONS["questions"]
        assert second is first
        assert first.error is None

    def test_request_shape(self, inspector):
        generator = FakeGenerator(QUESTIONS)
        QuestionCache(inspector, generator).questions()

        call = generator.calls[0]
        assert call["system"].startswith("Suggest 5 diverse, useful questions")
        assert call["user"] == create_statements(inspector.snapshot())
        assert call["output_shape"] == QUESTIONS_SHAPE

    def test_regenerates_after_schema_change(self, store, inspector):
        generator = FakeGenerator(QUESTIONS, NEW_QUESTIONS)
        cache = QuestionCache(inspector, generator)
        cache.questions()

        TableBuilder(store).insert_rows("other", [{"x": "a"}])
        info = cache.questions()

        assert len(generator.calls) == 2
        assert info.questions == NEW_QUESTIONS["questions"]

    def test_error_keeps_previous_questions(self, store, inspector):
        generator = FakeGenerator(
            QUESTIONS,
            GenerationResult(error="Request timed out.", category="timeout"),
        )
        cache = QuestionCache(inspector, generator)
        cache.questions()
        TableBuilder(store).insert_rows("other", [{"x": "a"}])

        info = cache.questions()
        assert info.error == "Request timed out."
        assert info.questions == QUESTIONS["questions"]

        # same schema: the failure is not retried
        cache.questions()
        assert len(generator.calls) == 2

    def test_success_clears_error(self, store, inspector):
        generator = FakeGenerator(GenerationResult(error="boom"), QUESTIONS)
        cache = QuestionCache(inspector, generator)
        assert cache.questions().error == "boom"

        TableBuilder(store).insert_rows("other", [{"x": "a"}])
        info = cache.questions()
        assert info.error is None
        assert info.questions == QUESTIONS["questions"]

    def test_short_list_is_malformed(self, inspector):
        generator = FakeGenerator({"questions": ["Q1?", "Q2?"]})
        info = QuestionCache(inspector, generator).questions()
        assert info.error == "Expected 5 questions, got 2"
        assert info.questions == []

    def test_malformed_payload_recorded_as_error(self, inspector):
        generator = FakeGenerator({"items": ["Q?"]})
        info = QuestionCache(inspector, generator).questions()
        assert info.error
        assert info.questions == []

    def test_empty_schema_issues_no_request(self, store):
        generator = FakeGenerator()
        info = QuestionCache(SchemaInspector(store), generator).questions()
        assert info.questions == []
        assert generator.calls == []

    def test_seed_installs_questions_without_request(self, inspector):
        generator = FakeGenerator()
        cache = QuestionCache(inspector, generator)
        cache.seed(["Preset?"])

        info = cache.questions()
        assert info.questions == ["Preset?"]
        assert generator.calls == []
