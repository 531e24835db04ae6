import pytest

from proteoqc.exceptions import InputNotFoundError
from proteoqc.utils.semantics import (
    TABLE_EVIDENCE,
    TABLE_KINDS,
    TABLE_MSMS,
    TABLE_MSMS_SCANS,
    TABLE_PARAMETERS,
    TABLE_PROTEIN_GROUPS,
    TABLE_SUMMARY,
)
from proteoqc.workflow.mztab_reader import MzTabReader
from proteoqc.workflow.table_reader import split_evidence

MZTAB_LINES = [
    ["MTD", "mzTab-version", "1.0.0"],
    ["MTD", "ms_run[1]-location", "file:///data/run_A01.mzML"],
    ["MTD", "ms_run[2]-location", "file:///data/run_B02.mzML"],
    ["MTD", "assay[1]-ms_run_ref", "ms_run[1]"],
    ["MTD", "assay[2]-ms_run_ref", "ms_run[2]"],
    [],
    ["PRH", "accession", "description", "protein_abundance_assay[1]", "protein_abundance_assay[2]"],
    ["PRT", "P1", "human protein", "1000000", "2000000"],
    ["PRT", "CON__P2", "keratin", "500000", "null"],
    ["PRT", "REV__P3", "decoy", "1", "1"],
    [],
    ["PSH", "sequence", "PSM_ID", "accession", "charge", "exp_mass_to_charge", "calc_mass_to_charge",
     "retention_time", "spectra_ref", "opt_global_match_type"],
    ["PSM", "PEPTIDEK", "1", "P1", "2", "500.0005", "500.0", "600", "ms_run[1]:scan=1", "MULTI-MSMS"],
    ["PSM", "PEPTIDER", "2", "P1", "2", "600.0", "600.0", "1200", "ms_run[1]:scan=2", "MULTI-MATCH"],
    ["PSM", "null", "3", "null", "null", "400.0", "null", "900", "ms_run[1]:scan=3", "null"],
    ["PSM", "ANOTHERK", "4", "REV__P3", "3", "700.0", "700.0", "1500", "ms_run[2]:scan=1", "MULTI-MSMS"],
    ["PSM", "SEQK", "5", "P1", "2", "350.0", "350.0", "300", "ms_run[2]:scan=2", "MULTI-MSMS"],
]


@pytest.fixture
def mztab_file(tmp_path):
    path = tmp_path / "experiment.mzTab"
    path.write_text("\n".join("\t".join(parts) for parts in MZTAB_LINES) + "\n")
    return path


@pytest.fixture
def reader(mztab_file):
    reader = MzTabReader()
    reader.read_all(mztab_file)
    return reader


def test_runs_and_available_tables(reader):
    assert reader.raw_files() == ["run_A01", "run_B02"]
    assert reader.available() == list(TABLE_KINDS)


def test_parameters_are_the_metadata(reader):
    df = reader.read(TABLE_PARAMETERS)
    assert dict(zip(df["parameter"], df["value"]))["mzTab-version"] == "1.0.0"


def test_summary_id_rate_per_run(reader):
    df = reader.read(TABLE_SUMMARY)
    rates = dict(zip(df["raw_file"], df["ms_ms_identified_pct"]))
    assert rates["run_A01"] == pytest.approx(200 / 3)
    assert rates["run_B02"] == pytest.approx(100.0)


def test_proteins(reader):
    df = reader.read(TABLE_PROTEIN_GROUPS)
    assert df["protein_ids"].to_list() == ["P1", "CON__P2"]
    assert df["contaminant"].to_list() == [False, True]
    assert [c for c in df.columns if c.startswith("intensity.")] == ["intensity.run.a01", "intensity.run.b02"]
    assert df["intensity.run.b02"].to_list() == [2000000.0, None]


def test_evidence(reader):
    df = reader.read(TABLE_EVIDENCE)
    assert df["sequence"].to_list() == ["PEPTIDEK", "PEPTIDER", "SEQK"]
    assert df["raw_file"].to_list() == ["run_A01", "run_A01", "run_B02"]
    # seconds -> minutes
    assert df["retention_time"].to_list() == [10.0, 20.0, 5.0]
    assert df["mass_error_ppm"][0] == pytest.approx(1.0)

    genuine, transferred = split_evidence(df)
    assert genuine.height == 2
    assert transferred["sequence"].to_list() == ["PEPTIDER"]


def test_msms_and_scans(reader):
    assert reader.read(TABLE_MSMS).height == 4
    scans = reader.read(TABLE_MSMS_SCANS)
    assert scans.height == 5
    assert scans["identified"].sum() == 4


def test_decoys_can_be_kept(mztab_file):
    reader = MzTabReader(filter_reverse=False)
    reader.read_all(mztab_file)
    assert reader.read(TABLE_EVIDENCE).height == 4
    assert reader.read(TABLE_PROTEIN_GROUPS).height == 3


def test_errors():
    with pytest.raises(InputNotFoundError):
        MzTabReader().read(TABLE_SUMMARY)
    with pytest.raises(InputNotFoundError):
        MzTabReader().read_all("does_not_exist.mzTab")
