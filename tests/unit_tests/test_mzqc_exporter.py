import json

import pandas as pd
import pytest
from conftest import RAW_FILES

from proteoqc.dataset.report_context import ReportContext, ReportFilenames
from proteoqc.exceptions import ExportError
from proteoqc.export.mzqc_exporter import MZQC_VERSION, assemble_mzqc, write_mzqc
from proteoqc.metrics.base import MetricState, MetricUnit
from proteoqc.workflow.config import QCConfig


class StaticUnit(MetricUnit):
    def __init__(self, metric_id, score, state=MetricState.SCORED, out_data=None, qualifier=None):
        super().__init__(QCConfig())
        self.metric_id = metric_id
        self.score = score
        self.state = state
        self.out_data = out_data or {}
        self.QUALIFIER = qualifier


@pytest.fixture
def context(tmp_path):
    ctx = ReportContext.create(QCConfig(), txt_folder=tmp_path, report_filenames=ReportFilenames(tmp_path / "qc"))
    ctx.raw_file_map.add_raw_files(RAW_FILES)
    return ctx


def test_one_run_quality_per_raw_file(context):
    samples = context.raw_file_map.short_names()
    units = [
        StaticUnit("sm_id_rate", pd.Series([1.0, 0.5, 0.25], index=samples),
                   out_data={"id_rate": pd.Series([40.0, 30.0, 10.0], index=samples)}, qualifier="id_rate"),
        StaticUnit("pg_contaminants", 0.75),
        StaticUnit("evd_charge", None, state=MetricState.SKIPPED),
    ]
    doc = assemble_mzqc(units, context)["mzQC"]

    assert doc["version"] == MZQC_VERSION
    runs = doc["runQualities"]
    assert [r["metadata"]["label"] for r in runs] == samples
    assert [r["metadata"]["inputFiles"][0]["name"] for r in runs] == RAW_FILES

    first = {m["accession"]: m for m in runs[0]["qualityMetrics"]}
    assert set(first) == {"PQC:sm_id_rate", "PQC:pg_contaminants"}
    assert first["PQC:sm_id_rate"]["value"] == 1.0
    assert first["PQC:sm_id_rate"]["description"] == "id_rate: 40"
    assert "qualifier" not in first["PQC:sm_id_rate"]
    assert first["PQC:pg_contaminants"]["value"] == 0.75
    assert "description" not in first["PQC:pg_contaminants"]

    vocabularies = {cv["name"]: cv for cv in doc["controlledVocabularies"]}
    assert vocabularies["proteoqc metrics"]["uri"] == "urn:proteoqc:metrics"
    assert len(vocabularies) == 2


def test_samples_without_score_are_left_out(context):
    samples = context.raw_file_map.short_names()
    units = [StaticUnit("partial", pd.Series([0.5], index=samples[:1]))]
    runs = assemble_mzqc(units, context)["mzQC"]["runQualities"]
    assert len(runs[0]["qualityMetrics"]) == 1
    assert runs[1]["qualityMetrics"] == []


def test_no_scored_unit_raises(context):
    with pytest.raises(ExportError):
        assemble_mzqc([StaticUnit("x", None, state=MetricState.SKIPPED)], context)


def test_minimum_number_of_scored_units(tmp_path):
    config = QCConfig({"report": {"min_scored_units": 3}})
    ctx = ReportContext.create(config, txt_folder=tmp_path, report_filenames=ReportFilenames(tmp_path / "qc"))
    with pytest.raises(ExportError):
        assemble_mzqc([StaticUnit("a", 1.0), StaticUnit("b", 1.0)], ctx)


def test_without_raw_files_the_input_is_the_run(tmp_path):
    ctx = ReportContext.create(QCConfig(), txt_folder=tmp_path, report_filenames=ReportFilenames(tmp_path / "qc"))
    runs = assemble_mzqc([StaticUnit("a", 1.0)], ctx)["mzQC"]["runQualities"]
    assert len(runs) == 1
    assert runs[0]["metadata"]["label"] == tmp_path.name


def test_written_document_is_json(context, tmp_path):
    path = tmp_path / "out.mzQC"
    write_mzqc(assemble_mzqc([StaticUnit("a", 1.0)], context), path)
    assert json.loads(path.read_text())["mzQC"]["runQualities"][0]["qualityMetrics"][0]["value"] == 1.0
