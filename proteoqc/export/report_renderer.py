"""Report rendering (PDF and/or HTML).

Page order:
  1) Title page (input, output files, package versions)
  2) Score heatmap
  3) Raw file name mapping
  4) Metric status (skipped / failed units with reason)
  5) Every unit's plots, in registry order
"""

import base64
import io
import platform
from datetime import datetime
from pathlib import Path
from typing import List

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import polars
import seaborn as sns
import sklearn
from jinja2 import Environment, FileSystemLoader, select_autoescape
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure

import proteoqc
from proteoqc.dataset.report_context import ReportContext
from proteoqc.export.heatmap import heatmap_names
from proteoqc.export.plot_utils import plot_score_heatmap, plot_table_page
from proteoqc.metrics.base import MetricRegistry, MetricState
from proteoqc.utils.utils import log_info, log_time

matplotlib.use("Agg")


def _template_env() -> Environment:
    templates_path = Path(__file__).resolve().parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(templates_path)),
        autoescape=select_autoescape(enabled_extensions=("html", "html.j2")),
        trim_blocks=True,
        lstrip_blocks=True,
    )


class ReportRenderer:
    """Collects all report pages once and writes them in every requested format."""

    def __init__(self, context: ReportContext, registry: MetricRegistry, matrix: pd.DataFrame):
        self.context = context
        self.registry = registry
        self.matrix = matrix
        self.page_numbers = bool(context.config.get("report.page_numbers"))

    @log_time("Rendering report")
    def render(self) -> List[str]:
        """Write the report in all configured formats; returns the written paths."""
        formats = self.context.config.output_formats()
        if not formats:
            log_info("No output format requested, skipping report rendering.")
            return []
        pages = self.pages()
        written = []
        try:
            if "plainPDF" in formats:
                written.append(self.write_pdf(pages, self.context.filenames.report_file_pdf))
            if "html" in formats:
                written.append(self.write_html(pages, self.context.filenames.report_file_html))
        finally:
            for fig in pages:
                plt.close(fig)
            for unit in self.registry:
                for fig in unit.plots:
                    plt.close(fig)
        return written

    # ------------------------------------------------------------------ pages
    def pages(self) -> List[Figure]:
        pages = [self._plot_title_page()]
        if not self.matrix.empty:
            pages.append(plot_score_heatmap(self.matrix, heatmap_names(self.matrix, self.registry),
                                            title="Overview: quality scores"))
        mapping = self.context.raw_file_map.to_frame().to_pandas()
        pages.append(plot_table_page(mapping, "Raw file name mapping", max_rows=50))
        pages.append(self._plot_status_page())
        for unit in self.registry:
            pages.extend(unit.plots)
        return pages

    def _plot_status_page(self) -> Figure:
        rows = [
            {"metric": u.metric_id, "state": u.state.value, "reason": u.reason}
            for u in self.registry
            if u.state in (MetricState.SKIPPED, MetricState.FAILED)
        ]
        df = pd.DataFrame(rows, columns=["metric", "state", "reason"])
        return plot_table_page(df, "Metrics not shown", max_rows=45, col_width=90)

    def _plot_title_page(self) -> Figure:
        """Title, input, generated files and package versions."""
        fig = plt.figure(figsize=(8.27, 11.69))
        fig.patch.set_facecolor("white")
        x0, y = 0.05, 0.95
        line_height = 0.03
        names = self.context.filenames

        fig.text(0.5, y, "Proteomics Quality Control Report", ha="center", va="top", fontsize=20, weight="bold")
        y -= 1.5 * line_height
        fig.text(0.5, y, datetime.now().strftime("%Y-%m-%d"), ha="center", va="top", fontsize=13)
        y -= 2 * line_height

        fig.text(x0, y, "Input: ", ha="left", va="top", fontsize=12, weight="semibold")
        kind = "mzTab file" if self.context.mztab_mode else "txt folder"
        fig.text(x0 + 0.1, y, f"{self.context.input_path} ({kind})", ha="left", va="top", fontsize=10)
        y -= line_height
        fig.text(x0, y, f"Raw files: {len(self.context.raw_file_map)}", ha="left", va="top", fontsize=12)
        y -= 1.5 * line_height

        fig.text(x0, y, "Output files:", ha="left", va="top", fontsize=14, weight="semibold")
        y -= line_height
        for path, what in (
            (names.heatmap_values_file, "score matrix"),
            (names.mzqc_file, "mzQC"),
            (names.yaml_file, "full configuration, edit and re-run"),
            (names.filename_sorting, "raw file name mapping, edit and re-run"),
        ):
            fig.text(x0 + 0.05, y, f"- {path.name} ({what})", ha="left", va="top", fontsize=11)
            y -= 0.8 * line_height
        y -= line_height

        states = pd.Series([u.state.value for u in self.registry]).value_counts()
        fig.text(x0, y, "Metrics: " + ", ".join(f"{n} {s}" for s, n in states.items()),
                 ha="left", va="top", fontsize=12)
        y -= 2 * line_height

        fig.text(x0, y, "Key package versions:", ha="left", va="top", fontsize=14, weight="semibold")
        y -= line_height
        pkgs = {
            "python": platform.python_version(),
            "proteoqc": proteoqc.__version__,
            "numpy": np.__version__,
            "pandas": pd.__version__,
            "polars": polars.__version__,
            "matplotlib": matplotlib.__version__,
            "seaborn": sns.__version__,
            "scikit-learn": sklearn.__version__,
        }
        for name, ver in pkgs.items():
            fig.text(x0 + 0.02, y, f"- {name}: {ver}", ha="left", va="top", fontsize=12)
            y -= 0.8 * line_height

        if self.context.warnings:
            y -= line_height
            fig.text(x0, y, f"{len(self.context.warnings)} warning(s) during the run, see the log.",
                     ha="left", va="top", fontsize=12, color="firebrick")
        return fig

    # ------------------------------------------------------------------ writers
    def write_pdf(self, pages: List[Figure], path) -> str:
        with PdfPages(path) as pdf:
            for i, fig in enumerate(pages, start=1):
                footer = None
                if self.page_numbers:
                    footer = fig.text(0.5, 0.01, f"{path.name}, page {i}", ha="center", va="bottom",
                                      fontsize=8, style="italic", color="gray")
                pdf.savefig(fig)
                if footer is not None:
                    footer.remove()
        log_info(f"PDF report written to '{path.name}'.")
        return str(path)

    def write_html(self, pages: List[Figure], path) -> str:
        encoded = []
        for fig in pages:
            buf = io.BytesIO()
            fig.savefig(buf, format="png", dpi=90)
            encoded.append(base64.b64encode(buf.getvalue()).decode("ascii"))

        template = _template_env().get_template("report.html.j2")
        rendered = template.render(
            title=path.stem,
            generated_at=datetime.now().strftime("%Y-%m-%d %H:%M"),
            version=proteoqc.__version__,
            pages=encoded,
            warnings=self.context.warnings,
        )
        path.write_text(rendered, encoding="utf-8")
        log_info(f"HTML report written to '{path.name}'.")
        return str(path)
