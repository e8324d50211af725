"""End-to-end integration tests"""
import os

from conftest import FakeGenerator, chart_reply, sql_reply
from datachat.app import DataChatApp
from datachat.components.demos import load_demos
from datachat.components.dsv import parse_dsv
from datachat.config import Settings
from datachat.session import DataChatSession

QUESTIONS = {"questions": ["Total by region?", "Top day?", "Average amount?", "Orders per region?", "Largest sale?"]}

TOTAL_BY_DATE = 'SELECT [sales].[date], SUM([sales].[amount]) AS total FROM sales GROUP BY [sales].[date] ORDER BY [sales].[date]'


class TestEndToEnd:
    """Upload, suggest, ask, export and chart in one session"""

    def test_csv_session_flow(self, session, generator, sales_csv):
        reports = session.upload([sales_csv])
        assert [r.tables for r in reports] == [["sales"]]

        generator.queue(QUESTIONS)
        info = session.questions()
        assert info.questions == QUESTIONS["questions"]
        session.questions()
        assert len(generator.calls) == 1

        generator.queue(sql_reply(TOTAL_BY_DATE))
        outcome = session.ask("What is the total amount by date?")
        assert outcome.success
        assert outcome.message == "5 results found."
        assert outcome.result.rows[0]["date"] == "2024-01-01T00:00:00.000Z"

        path = session.results.export_csv()
        try:
            with open(path, encoding="utf-8") as f:
                exported = parse_dsv(f.read())
        finally:
            os.remove(path)
        assert len(exported) == 5
        assert list(exported[0]) == ["date", "total"]

        canvas = session.charts.canvas
        generator.queue(chart_reply(
            f'fig = plt.figure("{canvas}")\n'
            "ax = fig.add_subplot()\n"
            'ax.plot([r["date"] for r in data], [r["total"] for r in data])\n'
            "return fig"
        ))
        chart = session.draw()
        assert chart.success
        assert "Question: What is the total amount by date?" in generator.calls[-1]["user"]

    def test_failed_query_keeps_previous_result(self, session, generator, sales_csv):
        session.upload([sales_csv])
        generator.queue(sql_reply("SELECT COUNT(*) AS n FROM sales"), sql_reply("SELECT * FROM missing"))

        first = session.ask("How many orders?")
        second = session.ask("Broken")

        assert second.status == "query_error"
        assert session.results.current is first.result
        assert not session.results.available

    def test_demo_flow(self, generator, sales_csv):
        demo = load_demos(os.path.join(os.path.dirname(sales_csv), "config.json"))[0]
        session = DataChatSession(generator)
        try:
            reports = session.load_demo(demo)
            assert all(r.success for r in reports)
            assert session.context == demo.context

            info = session.questions()
            assert info.questions == demo.questions
            assert generator.calls == []

            summary = {s["column"]: s for s in session.dataset_summary()}
            assert summary["amount"]["max"] == "310.00"
            assert summary["region"]["avg"] == "N/A"

            generator.queue(sql_reply("SELECT region FROM sales GROUP BY region ORDER BY region"))
            session.ask("Regions?")
            assert demo.context in generator.calls[0]["system"]
        finally:
            session.close()

    def test_sessions_are_isolated(self, sales_csv):
        one = DataChatSession(FakeGenerator())
        two = DataChatSession(FakeGenerator())
        try:
            one.upload([sales_csv])
            assert [t.name for t in one.schema()] == ["sales"]
            assert two.schema() == []
        finally:
            one.close()
            two.close()


class TestApp:
    """Gradio handlers driven directly, without launching a server"""

    def make_app(self, generator, tmp_path):
        app_settings = Settings(OPENAI_API_KEY="sk-test", DEMOS_CONFIG=str(tmp_path / "none.json"))
        return DataChatApp(app_settings=app_settings, generator=generator)

    def test_upload_and_query(self, tmp_path, sales_csv):
        generator = FakeGenerator(sql_reply("SELECT id, amount FROM sales WHERE id <= 2 ORDER BY id"))
        app = self.make_app(generator, tmp_path)

        schema, _, session = app.handle_upload([sales_csv], None)
        assert "### sales" in schema

        status, explanation, actions, session = app.process_query("First two orders?", session)
        assert status.startswith("✅")
        assert "2 results found." in status
        assert "```sql" in explanation
        assert actions["visible"] is True

        sql_update = app.show_sql(session)
        assert sql_update["value"] == "SELECT id, amount FROM sales WHERE id <= 2 ORDER BY id"

        table = app.show_output(session)["value"]
        assert table["headers"] == ["id", "amount"]
        assert table["data"] == [["1", "10.50"], ["2", "250.00"]]
        session.close()

    def test_missing_chart_code_keeps_displayed_chart(self, tmp_path, sales_csv):
        generator = FakeGenerator(sql_reply("SELECT region, amount FROM sales ORDER BY id"))
        app = self.make_app(generator, tmp_path)
        _, _, session = app.handle_upload([sales_csv], None)
        app.process_query("Amounts?", session)

        canvas = session.charts.canvas
        generator.queue(
            chart_reply(f'fig = plt.figure("{canvas}")\nfig.add_subplot().bar([1, 2], [3, 4])\nreturn fig'),
            "No chart for you.",
        )
        plot, _, session = app.draw_chart("bar chart", session)
        first = session.charts.figure
        assert plot["value"] is first

        plot, code, session = app.draw_chart("bar chart", session)
        assert "value" not in plot
        assert "value" not in code
        assert session.charts.figure is first
        session.close()

    def test_query_error_hides_actions(self, tmp_path, sales_csv):
        generator = FakeGenerator(sql_reply("SELECT * FROM nowhere"))
        app = self.make_app(generator, tmp_path)
        _, _, session = app.handle_upload([sales_csv], None)

        status, _, actions, session = app.process_query("Broken?", session)
        assert "no such table" in status
        assert actions["visible"] is False
        session.close()
