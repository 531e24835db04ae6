import matplotlib.pyplot as plt
import pandas as pd

from proteoqc.dataset.report_context import ReportContext, ReportFilenames
from proteoqc.export.report_renderer import ReportRenderer
from proteoqc.metrics.base import MetricRegistry
from proteoqc.workflow.config import QCConfig


def test_html_pages_and_escaped_warnings(tmp_path):
    context = ReportContext.create(QCConfig(), txt_folder=tmp_path, report_filenames=ReportFilenames(tmp_path / "qc"))
    context.warnings.append("evd_charge: <no charge column>")
    renderer = ReportRenderer(context, MetricRegistry(), pd.DataFrame())

    fig, _ = plt.subplots()
    path = tmp_path / "report.html"
    renderer.write_html([fig, fig], path)
    plt.close(fig)

    html = path.read_text()
    assert html.count('alt="page') == 2
    assert "evd_charge: &lt;no charge column&gt;" in html
    assert "<no charge column>" not in html
