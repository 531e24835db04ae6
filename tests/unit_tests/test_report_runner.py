import json

import polars as pl
import pytest
from conftest import make_txt_folder

from proteoqc.dataset.report_context import ReportContext, ReportFilenames
from proteoqc.exceptions import ConfigError, InputNotFoundError, MissingColumnError
from proteoqc.export.heatmap import read_heatmap_table
from proteoqc.main import create_report
from proteoqc.metrics.base import MetricRegistry, MetricState, MetricUnit
from proteoqc.metrics.registry import build_registry
from proteoqc.metrics.summary import SummaryIdRate
from proteoqc.utils.semantics import TABLE_SUMMARY
from proteoqc.workflow.config import QCConfig
from proteoqc.workflow.report_runner import ReportRunner
from proteoqc.workflow.table_reader import TxtTableReader


class Exploding(MetricUnit):
    metric_id = "exploding"
    TABLE = TABLE_SUMMARY
    INPUTS = ("df_smy",)

    def _compute(self, df_smy):
        raise KeyError("no such column")


class StructurallyBroken(Exploding):
    metric_id = "structurally_broken"

    def _compute(self, df_smy):
        raise MissingColumnError("summary.txt: raw_file")


def runner_for(folder, tmp_path, units, config=None):
    config = config or QCConfig()
    context = ReportContext.create(config, txt_folder=folder, report_filenames=ReportFilenames(tmp_path / "qc"))
    return ReportRunner(context, TxtTableReader(folder), MetricRegistry(units))


def test_minimal_folder_end_to_end(txt_folder_minimal, tmp_path):
    names = ReportFilenames(tmp_path / "qc")
    matrix = create_report(txt_folder=txt_folder_minimal, report_filenames=names,
                           config={"report": {"output_formats": "plainPDF html"}})

    for path in (names.report_file_pdf, names.report_file_html, names.yaml_file, names.heatmap_values_file,
                 names.filename_sorting, names.mzqc_file):
        assert path.is_file(), path.name

    assert "sm_id_rate" in matrix.index
    assert not [m for m in matrix.index if m.startswith(("evd_", "msms_"))]
    assert matrix.shape[1] == 3

    on_disk = read_heatmap_table(names.heatmap_values_file)
    assert on_disk.index.to_list() == matrix.index.to_list()

    mapping = pl.read_csv(names.filename_sorting, separator="\t", comment_prefix="#")
    assert mapping.height == 3

    html = names.report_file_html.read_text()
    assert html.count("<img src=\"data:image/png;base64,") >= 4
    assert f"<title>{names.report_file_html.stem}</title>" in html

    mzqc = json.loads(names.mzqc_file.read_text())
    assert len(mzqc["mzQC"]["runQualities"]) == 3


def test_full_folder_scores_every_table(txt_folder_full, tmp_path):
    config = QCConfig({"report": {"keep_tables": True}})
    folder = txt_folder_full
    context = ReportContext.create(config, txt_folder=folder, report_filenames=ReportFilenames(tmp_path / "qc"))
    registry = build_registry(config)
    runner = ReportRunner(context, TxtTableReader(folder), registry)
    matrix = runner.run()

    for metric_id in ("sm_id_rate", "pg_contaminants", "evd_peptide_count", "evd_protein_count",
                      "msms_decal", "msms_scans_topn"):
        assert registry[metric_id].state == MetricState.SCORED, registry[metric_id].reason
        assert metric_id in matrix.index

    assert registry["msms_scans_topn"].score.round(6).to_list() == [0.8, 0.8, 0.8]
    assert registry["evd_peptide_count"].out_data["transferred"].to_list() == [8.0, 8.0, 8.0]
    assert runner.tables["df_evd_tf"].height == 24


def test_failing_unit_does_not_stop_the_report(txt_folder_minimal, tmp_path):
    config = QCConfig()
    exploding, id_rate = Exploding(config), SummaryIdRate(config)
    runner = runner_for(txt_folder_minimal, tmp_path, [exploding, id_rate], config)
    matrix = runner.run()

    assert exploding.state == MetricState.FAILED
    assert "KeyError" in exploding.reason
    assert id_rate.state == MetricState.SCORED
    assert matrix.index.to_list() == ["sm_id_rate"]
    assert any(w.startswith("exploding:") for w in runner.context.warnings)


def test_structural_errors_are_fatal(txt_folder_minimal, tmp_path):
    config = QCConfig()
    runner = runner_for(txt_folder_minimal, tmp_path, [StructurallyBroken(config)], config)
    with pytest.raises(MissingColumnError):
        runner.run()
    # the name mapping is still written
    assert (tmp_path / "qc_filename_sort.txt").is_file()


def test_empty_folder_raises(tmp_path):
    folder = make_txt_folder(tmp_path, ())
    runner = runner_for(folder, tmp_path, [SummaryIdRate(QCConfig())])
    with pytest.raises(InputNotFoundError):
        runner.run()


def test_too_few_scored_units_only_warns(txt_folder_minimal, tmp_path):
    config = QCConfig({"report": {"min_scored_units": 5}})
    runner = runner_for(txt_folder_minimal, tmp_path, [SummaryIdRate(config)], config)
    runner.run()
    assert not (tmp_path / "qc.mzQC").exists()
    assert any("mzQC" in w for w in runner.context.warnings)


def test_manual_short_names_are_used(txt_folder_minimal, tmp_path):
    names = ReportFilenames(tmp_path / "qc")
    create_report(txt_folder=txt_folder_minimal, report_filenames=names)

    mapping = pl.read_csv(names.filename_sorting, separator="\t", comment_prefix="#")
    mapping = mapping.with_columns(pl.Series("new.name", ["first", "second", "third"]))
    mapping.write_csv(names.filename_sorting, separator="\t")

    matrix = create_report(txt_folder=txt_folder_minimal, report_filenames=names)
    assert matrix.columns.to_list() == ["first", "second", "third"]


def test_exactly_one_input_is_required(txt_folder_minimal):
    with pytest.raises(ConfigError):
        create_report()
    with pytest.raises(ConfigError):
        create_report(txt_folder=txt_folder_minimal, mztab_file="x.mzTab")
