#!/usr/bin/env python3
"""
Vault export panel - Gradio interface for previewing and running exports.
"""
from datetime import date

import gradio as gr
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from config import load_config, vault_config_from_dict
from exporter import VaultExporter, format_week_summary
from logging_utils import setup_logging
from models import PreviewData, WeekSummary
from store import JsonSessionStore

PATH_COLUMNS = ["Kind", "Path"]


def apply_chart_theme(fig):
    """Dark layout shared by every chart in the panel."""
    fig.update_layout(
        paper_bgcolor='#000000',
        plot_bgcolor='#000000',
        font=dict(color='#00ff00', family='Courier New'),
        title_font=dict(color='#00ff00'),
        xaxis=dict(gridcolor='#003300', linecolor='#00ff00'),
        yaxis=dict(gridcolor='#003300', linecolor='#00ff00'),
    )
    return fig


# =============================================================================
# VIEW HELPERS
# =============================================================================

def path_kind(path: str) -> str:
    parts = path.split("/")
    if "Index" in parts:
        return "index"
    for folder, kind in (("Daily", "daily"), ("Sessions", "session"),
                         ("Weekly", "weekly"), ("Assets", "asset")):
        if folder in parts:
            return kind
    return "other"


def build_paths_frame(preview: PreviewData) -> pd.DataFrame:
    """Table of vault-relative paths an export would write."""
    rows = [[path_kind(p), p] for p in preview.generated_paths]
    return pd.DataFrame(rows, columns=PATH_COLUMNS)


def category_chart(week: WeekSummary | None):
    """Minutes per category for the week, largest first."""
    if week is None or not week.category_minutes:
        return apply_chart_theme(go.Figure())

    frame = pd.DataFrame(
        sorted(week.category_minutes.items(), key=lambda kv: (-kv[1], kv[0])),
        columns=["Category", "Minutes"],
    )
    fig = px.bar(frame, x="Category", y="Minutes", title=f"Minutes by category, {week.label}",
                 color_discrete_sequence=['#00ff00'])
    return apply_chart_theme(fig)


def format_preview_markdown(preview: PreviewData) -> str:
    if not preview.enabled:
        return f"**Export disabled.** {preview.message}".strip()

    lines = [f"**Vault:** `{preview.vault_path}`", f"**State:** {preview.state.value}"]
    if preview.message:
        lines.append(f"**Notice:** {preview.message}")
    if preview.week_summary:
        lines.append(format_week_summary(preview.week_summary))
    return "\n\n".join(lines)


# =============================================================================
# APP
# =============================================================================

def create_app(exporter: VaultExporter = None):
    """Create the Gradio app around an exporter."""
    if exporter is None:
        config = load_config()
        setup_logging(config.get("log_dir", "logs"))
        exporter = VaultExporter(vault_config_from_dict(config),
                                 JsonSessionStore(config.get("data_dir", "data")))

    with gr.Blocks(title="Screen Analyzer Vault") as app:
        gr.Markdown("# Vault Export")

        with gr.Row():
            day_box = gr.Textbox(label="Date (YYYY-MM-DD)", value=date.today().isoformat())
            preview_btn = gr.Button("Preview")
            export_btn = gr.Button("Export", variant="primary")

        status = gr.Markdown()
        paths_table = gr.Dataframe(headers=PATH_COLUMNS, interactive=False)
        chart = gr.Plot(label="Week categories")
        output_log = gr.Textbox(label="Export result", lines=12, interactive=False)

        def on_preview(day):
            preview = exporter.preview(day)
            return (format_preview_markdown(preview), build_paths_frame(preview),
                    category_chart(preview.week_summary))

        def on_export(day):
            result = exporter.export_day(day)
            return result.render_message(), category_chart(result.week_summary)

        preview_btn.click(fn=on_preview, inputs=[day_box], outputs=[status, paths_table, chart])
        export_btn.click(fn=on_export, inputs=[day_box], outputs=[output_log, chart])

    return app


if __name__ == "__main__":
    app = create_app()
    app.launch(share=False)
