"""Gradio web interface for DataChat"""
import logging
from typing import List, Optional

import gradio as gr

from datachat.config import settings
from datachat.components.charts import DEFAULT_CHART_INTENT
from datachat.components.demos import load_demos
from datachat.components.errors import NoCurrentResult, RequestPending
from datachat.components.ingestion import SQLITE_EXTENSIONS
from datachat.components.llm_client import TextGenerator
from datachat.components.query_orchestrator import NO_RESULTS
from datachat.components.schema import format_schema_markdown
from datachat.session import DataChatSession

logger = logging.getLogger(__name__)

UPLOAD_TYPES = [".csv", ".tsv", *SQLITE_EXTENSIONS]


class DataChatApp:
    """Main application class for DataChat"""

    def __init__(self, app_settings=None, generator=None):
        self.settings = app_settings or settings
        self.generator = generator or TextGenerator.from_settings(self.settings)
        self.demos = load_demos(self.settings.demos_config)

        logger.info(
            "Startup config: model=%s timeout=%s key_present=%s demos=%d database=%s",
            self.settings.openai_model,
            self.settings.openai_timeout,
            bool(self.settings.openai_api_key.strip()),
            len(self.demos),
            self.settings.database_url,
        )

    # ------------------------------------------------------------------
    # Session State Management (per-user isolation)
    # ------------------------------------------------------------------

    def create_session_state(self) -> DataChatSession:
        return DataChatSession.from_settings(self.settings, generator=self.generator)

    def _ensure_session(self, session: Optional[DataChatSession]) -> DataChatSession:
        return session if session is not None else self.create_session_state()

    # ------------------------------------------------------------------
    # Formatting Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_cell(value) -> str:
        if value is None:
            return "NULL"
        if isinstance(value, float):
            return f"{value:.2f}"
        return str(value)

    def _table_value(self, rows: List[dict]) -> dict:
        headers = list(rows[0].keys()) if rows else []
        return {
            "headers": headers,
            "data": [[self._format_cell(row.get(h)) for h in headers] for row in rows],
        }

    @staticmethod
    def _schema_text(session: DataChatSession) -> str:
        snapshot = session.schema()
        if not snapshot:
            return "*No tables yet. Upload a CSV, TSV or SQLite file, or pick a demo.*"
        return format_schema_markdown(snapshot)

    def _summary_update(self, session: DataChatSession):
        summary = session.dataset_summary()
        if not summary:
            return gr.update(visible=False)
        return gr.update(
            value={
                "headers": ["Column", "Description", "Average", "Minimum", "Maximum"],
                "data": [[s["column"], s["description"], s["avg"], s["min"], s["max"]] for s in summary],
            },
            visible=True,
        )

    @staticmethod
    def _notify_reports(reports) -> None:
        for report in reports:
            if report.success:
                gr.Info(f"Imported {report.name}: {', '.join(report.tables) or 'no tables'}")
            else:
                gr.Warning(f"{report.name}: {report.error}")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def handle_upload(self, files, session):
        session = self._ensure_session(session)
        paths = [f if isinstance(f, str) else f.name for f in (files or [])]
        reports = session.upload(paths)
        self._notify_reports(reports)
        return self._schema_text(session), self._summary_update(session), session

    def handle_demo(self, title, session):
        session = self._ensure_session(session)
        demo = next((d for d in self.demos if d.title == title), None)
        if demo is None:
            gr.Info("Pick a demo first.")
            return self._schema_text(session), session.context, self._summary_update(session), session
        reports = session.load_demo(demo)
        self._notify_reports(reports)
        return self._schema_text(session), session.context, self._summary_update(session), session

    def handle_questions(self, session):
        """Refresh suggested questions; runs only after an upload batch finished."""
        session = self._ensure_session(session)
        if not session.schema():
            return "", gr.update(choices=[], value=None, visible=False), session
        info = session.questions()
        if info.error:
            gr.Warning(info.error)
            return f"**Error:** {info.error}", gr.update(choices=[], value=None, visible=False), session
        return "#### Sample questions", gr.update(choices=info.questions, value=None, visible=True), session

    def handle_context(self, text, session):
        session = self._ensure_session(session)
        session.context = text or ""
        return session

    def process_query(self, question, session):
        """Run one question; returns status, explanation, actions visibility, session."""
        session = self._ensure_session(session)
        question = (question or "").strip()
        if not question:
            gr.Info("Type a question first.")
            return "", "", gr.update(visible=session.results.available), session
        try:
            outcome = session.ask(question)
        except RequestPending as e:
            gr.Warning(str(e))
            return "", "", gr.update(), session

        if outcome.success:
            status = f"✅ {outcome.message}"
        elif outcome.status == NO_RESULTS:
            status = outcome.message
        else:
            status = f"❌ **Error:** {outcome.message}"
        return status, outcome.response, gr.update(visible=session.results.available), session

    def show_output(self, session):
        session = self._ensure_session(session)
        try:
            return gr.update(value=self._table_value(session.results.preview()), visible=True)
        except NoCurrentResult as e:
            gr.Info(str(e))
            return gr.update(visible=False)

    def show_sql(self, session):
        session = self._ensure_session(session)
        try:
            return gr.update(value=session.results.sql_text(), visible=True)
        except NoCurrentResult as e:
            gr.Info(str(e))
            return gr.update(visible=False)

    def export_csv(self, session):
        session = self._ensure_session(session)
        try:
            return gr.File(value=session.results.export_csv(), visible=True)
        except NoCurrentResult as e:
            gr.Info(str(e))
            return gr.File(visible=False)

    def draw_chart(self, intent, session):
        session = self._ensure_session(session)
        try:
            outcome = session.draw(intent or DEFAULT_CHART_INTENT)
        except RequestPending as e:
            gr.Warning(str(e))
            return gr.update(), "", session
        if not outcome.success:
            gr.Warning(outcome.message)
            if session.charts.figure is not None:
                # the previous chart is still open, keep showing it
                return gr.update(), gr.update(), session
            return gr.update(value=None), outcome.code, session
        return gr.update(value=outcome.figure, visible=True), outcome.code, session

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------

    def create_interface(self) -> gr.Blocks:
        """Create Gradio interface"""
        with gr.Blocks(title="DataChat") as demo:
            session_state = gr.State(None)

            gr.Markdown("# DataChat\nUpload a dataset, ask questions in plain English, chart the answers.")

            with gr.Row():
                demo_choice = gr.Dropdown(
                    choices=[d.title for d in self.demos],
                    label="Demo datasets",
                    visible=bool(self.demos),
                )
                load_demo_btn = gr.Button("Load demo", visible=bool(self.demos))
            upload = gr.File(
                label="Upload CSV / TSV / SQLite",
                file_count="multiple",
                file_types=UPLOAD_TYPES,
                type="filepath",
            )

            with gr.Accordion("Schema", open=False):
                schema_md = gr.Markdown()
            context_box = gr.Textbox(label="Context about the dataset", lines=3)
            summary_table = gr.Dataframe(label="Dataset columns", visible=False, interactive=False)

            questions_md = gr.Markdown()
            question_choices = gr.Radio(choices=[], label="", visible=False)

            question_box = gr.Textbox(label="Ask a question about your data", lines=3)
            submit_btn = gr.Button("Submit", variant="primary")
            status_md = gr.Markdown()

            with gr.Row(visible=False) as actions_row:
                download_btn = gr.Button("Download CSV")
                sql_btn = gr.Button("Show SQL")
                output_btn = gr.Button("Show Output")

            export_file = gr.File(label="Download Results", visible=False)
            sql_code = gr.Code(language="sql", label="Generated SQL", visible=False)
            output_table = gr.Dataframe(label="Result (first rows)", visible=False, interactive=False)
            with gr.Accordion("How the query was written", open=False):
                explanation_md = gr.Markdown()

            with gr.Row():
                chart_intent = gr.Textbox(
                    value=DEFAULT_CHART_INTENT,
                    label="Describe what you want to chart",
                    scale=4,
                )
                draw_btn = gr.Button("Draw chart", scale=1)
            chart_plot = gr.Plot(label="Chart")
            with gr.Accordion("Chart code", open=False):
                chart_code = gr.Code(language="python")

            query_buttons = [submit_btn, draw_btn, upload, load_demo_btn]

            def _disable():
                return [gr.update(interactive=False)] * len(query_buttons)

            def _enable():
                return [gr.update(interactive=True)] * len(query_buttons)

            # Schema / questions are recomputed only after the whole batch committed
            upload.upload(
                _disable, outputs=query_buttons, queue=False
            ).then(
                self.handle_upload, [upload, session_state], [schema_md, summary_table, session_state]
            ).then(
                self.handle_questions, [session_state], [questions_md, question_choices, session_state]
            ).then(_enable, outputs=query_buttons)

            load_demo_btn.click(
                _disable, outputs=query_buttons, queue=False
            ).then(
                self.handle_demo, [demo_choice, session_state],
                [schema_md, context_box, summary_table, session_state],
            ).then(
                self.handle_questions, [session_state], [questions_md, question_choices, session_state]
            ).then(_enable, outputs=query_buttons)

            context_box.input(self.handle_context, [context_box, session_state], [session_state])

            query_outputs = [status_md, explanation_md, actions_row, session_state]

            def _run_query(question, session):
                status, explanation, actions, session = self.process_query(question, session)
                return status, explanation, actions, session, gr.update(visible=False), gr.update(visible=False)

            for trigger in (submit_btn.click, question_box.submit):
                trigger(
                    _disable, outputs=query_buttons, queue=False
                ).then(
                    _run_query, [question_box, session_state],
                    query_outputs + [output_table, sql_code],
                ).then(_enable, outputs=query_buttons)

            def _pick_question(choice):
                return choice or ""

            question_choices.select(
                _pick_question, [question_choices], [question_box]
            ).then(
                _disable, outputs=query_buttons, queue=False
            ).then(
                _run_query, [question_box, session_state],
                query_outputs + [output_table, sql_code],
            ).then(_enable, outputs=query_buttons)

            download_btn.click(self.export_csv, [session_state], [export_file])
            sql_btn.click(self.show_sql, [session_state], [sql_code])
            output_btn.click(self.show_output, [session_state], [output_table])

            draw_btn.click(
                _disable, outputs=query_buttons, queue=False
            ).then(
                self.draw_chart, [chart_intent, session_state], [chart_plot, chart_code, session_state]
            ).then(_enable, outputs=query_buttons)

            def _on_load(session):
                session = self._ensure_session(session)
                return self._schema_text(session), session

            demo.load(_on_load, [session_state], [schema_md, session_state])

        return demo


def main():
    """Main entry point"""
    app = DataChatApp()
    demo = app.create_interface()

    demo.queue(default_concurrency_limit=1)
    demo.launch(
        server_name=settings.server_host,
        server_port=settings.gradio_server_port,
        share=settings.gradio_share,
    )


if __name__ == "__main__":
    main()
