import os

import polars as pl
import pytest
from conftest import make_txt_folder, mock_msms_scans_df, write_table

from proteoqc.exceptions import InputNotFoundError, LocaleError
from proteoqc.utils.semantics import (
    TABLE_EVIDENCE,
    TABLE_MSMS_SCANS,
    TABLE_PARAMETERS,
    TABLE_PROTEIN_GROUPS,
    TABLE_SUMMARY,
)
from proteoqc.workflow.table_reader import TxtTableReader, repair_scan_events, split_evidence


def test_missing_folder_raises(tmp_path):
    with pytest.raises(InputNotFoundError):
        TxtTableReader(tmp_path / "does_not_exist")


def test_missing_table_is_none(txt_folder_minimal):
    reader = TxtTableReader(txt_folder_minimal)
    assert reader.available() == [TABLE_PARAMETERS, TABLE_SUMMARY, TABLE_PROTEIN_GROUPS]
    assert reader.read(TABLE_EVIDENCE) is None


@pytest.mark.parametrize("load_method", ["polars", "pyarrow", "pandas"])
def test_load_methods_give_the_same_table(txt_folder_minimal, load_method):
    reference = TxtTableReader(txt_folder_minimal).read(TABLE_SUMMARY)
    df = TxtTableReader(txt_folder_minimal, load_method=load_method).read(TABLE_SUMMARY)
    assert df.equals(reference)


def test_summary_drops_total_row(txt_folder_minimal):
    df = TxtTableReader(txt_folder_minimal).read(TABLE_SUMMARY)
    assert "Total" not in df["raw_file"].to_list()
    assert df.height == 3
    assert df["ms_ms_identified_pct"].to_list() == [40.0, 30.0, 10.0]


def test_reverse_hits_are_removed(txt_folder_minimal):
    df = TxtTableReader(txt_folder_minimal).read(TABLE_PROTEIN_GROUPS)
    assert df.height == 59
    assert not df["reverse"].any()

    kept = TxtTableReader(txt_folder_minimal, filter_reverse=False).read(TABLE_PROTEIN_GROUPS)
    assert kept.height == 60


def test_wrong_locale_is_fatal(tmp_path):
    folder = make_txt_folder(tmp_path, ())
    with open(os.path.join(folder, "summary.txt"), "w") as fh:
        fh.write("Raw file\tMS/MS Identified [%]\n")
        fh.write("run1\t35,2\nrun2\t12,9\n")
    with pytest.raises(LocaleError):
        TxtTableReader(folder).read(TABLE_SUMMARY)


def test_msms_scans_without_usable_header_is_skipped(tmp_path):
    folder = make_txt_folder(tmp_path, ())
    with open(os.path.join(folder, "msmsScans.txt"), "w") as fh:
        fh.write("Raw file\tRetention time\tScan number\n")
        fh.write("run1\t1.0\t1\n")
    assert TxtTableReader(folder).read(TABLE_MSMS_SCANS) is None


def test_msms_scans_get_rt_bins(tmp_path):
    folder = make_txt_folder(tmp_path, ("msms_scans",))
    df = TxtTableReader(folder).read(TABLE_MSMS_SCANS)
    assert "rrt" in df.columns
    assert set(df["rrt"].to_list()) <= {float(x) for x in range(0, 100, 2)}
    assert df.schema["identified"] == pl.Boolean


def test_scan_event_number_is_reconstructed(tmp_path):
    folder = make_txt_folder(tmp_path, ())
    scans = mock_msms_scans_df().drop(columns=["Scan event number"])
    scans["Scan index"] = range(len(scans))
    scans["MS scan index"] = 0
    write_table(scans, os.path.join(folder, "msmsScans.txt"))

    df = TxtTableReader(folder).read(TABLE_MSMS_SCANS)
    assert "scan_event_number" in df.columns
    assert df["scan_event_number"].to_list()[:3] == [0.0, 1.0, 2.0]


def test_repair_scan_events_keeps_existing_column():
    df = pl.DataFrame({"scan_event_number": [1.0], "scan_index": [9.0], "ms_scan_index": [1.0]})
    assert repair_scan_events(df)["scan_event_number"].to_list() == [1.0]


def test_split_evidence():
    df = pl.DataFrame({"type": ["MULTI-MSMS", "MULTI-MATCH", None], "sequence": ["A", "B", "C"]})
    genuine, transferred = split_evidence(df)
    assert genuine["sequence"].to_list() == ["A", "C"]
    assert transferred["sequence"].to_list() == ["B"]

    genuine, transferred = split_evidence(df.drop("type"))
    assert genuine.height == 3
    assert transferred.height == 0
    assert transferred.columns == ["sequence"]
