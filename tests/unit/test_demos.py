"""Unit tests for the demo catalog and dataset summaries"""
import json
import os

from datachat.components.demos import Demo, column_stats, load_demos, summarize_columns


class TestLoadDemos:

    def test_bundled_catalog(self, sales_csv):
        demos = load_demos(os.path.join(os.path.dirname(sales_csv), "config.json"))
        assert [d.title for d in demos] == ["Sales"]
        assert demos[0].file == sales_csv
        assert len(demos[0].questions) == 5
        assert demos[0].columns["amount"] == ["Order value in US dollars", "yes"]

    def test_relative_paths_resolve_against_config(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"demos": [{"title": "T", "file": "data/t.csv"}]}))
        demos = load_demos(str(config))
        assert demos[0].file == os.path.join(str(tmp_path), "data", "t.csv")

    def test_missing_file(self, tmp_path):
        assert load_demos(str(tmp_path / "nope.json")) == []

    def test_invalid_catalog(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text('{"demos": [{"body": "no title"}]}')
        assert load_demos(str(config)) == []


class TestSummaries:

    def test_column_stats(self):
        rows = [{"v": 1}, {"v": 2.5}, {"v": None}, {"v": "x"}]
        assert column_stats(rows, "v") == {"avg": "1.75", "min": "1.00", "max": "2.50"}

    def test_column_stats_without_numbers(self):
        assert column_stats([{"v": "a"}], "v")["avg"] == "N/A"

    def test_summarize_columns(self):
        demo = Demo(
            title="T",
            file="t.csv",
            dict={"name": ["Customer name", "no"], "amount": ["Order value", "yes"]},
        )
        rows = [{"name": "a", "amount": 10}, {"name": "b", "amount": 30}]
        assert summarize_columns(demo, rows) == [
            {"column": "name", "description": "Customer name", "avg": "N/A", "min": "N/A", "max": "N/A"},
            {"column": "amount", "description": "Order value", "avg": "20.00", "min": "10.00", "max": "30.00"},
        ]
