import polars as pl
import pytest

from proteoqc.dataset.column_group_map import ColumnGroupMap, union_group_maps
from proteoqc.exceptions import LocaleError, MissingColumnError
from proteoqc.utils.semantics import FAMILY_LFQ, FAMILY_RAW, FAMILY_REPORTER
from proteoqc.workflow.column_resolver import (
    ColumnResolver,
    channel_suffix,
    normalize_name,
    select_channel_columns,
    select_ratio_columns,
)
from proteoqc.workflow.column_schema import EVIDENCE_SCHEMA, PROTEIN_GROUPS_SCHEMA, SUMMARY_SCHEMA


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("MS/MS Identified [%]", "ms.ms.identified.pct"),
        ("Raw file", "raw.file"),
        ("raw_file", "raw.file"),
        ("Mass Error [ppm]", "mass.error.ppm"),
        ("m/z", "m.z"),
        ("Intensity H CondA", "intensity.h.conda"),
        ("  Potential contaminant ", "potential.contaminant"),
    ],
)
def test_normalize_name(raw, expected):
    assert normalize_name(raw) == expected


def test_label_tier_drops_bare_label_columns():
    columns = ["intensity.h", "intensity.l", "intensity.h.conda", "intensity.l.conda"]
    assert select_channel_columns(columns, FAMILY_RAW) == ["intensity.h.conda", "intensity.l.conda"]


def test_label_tier_keeps_bare_label_columns_if_alone():
    columns = ["intensity", "intensity.h", "intensity.l"]
    assert select_channel_columns(columns, FAMILY_RAW) == ["intensity.h", "intensity.l"]


def test_condition_tier_selected_with_distinct_short_names():
    columns = ["intensity", "intensity.conda", "intensity.condb"]
    assert select_channel_columns(columns, FAMILY_RAW) == ["intensity.conda", "intensity.condb"]

    gmap = ColumnGroupMap.from_columns(columns, FAMILY_RAW)
    assert gmap.short_names() == ["conda", "condb"]
    gmap.validate()


def test_bare_intensity_is_the_last_resort():
    assert select_channel_columns(["intensity", "protein.ids"], FAMILY_RAW) == ["intensity"]
    gmap = ColumnGroupMap.from_columns(["intensity"], FAMILY_RAW)
    assert gmap.to_short() == {"intensity": FAMILY_RAW}


def test_channel_names_drop_common_prefix_and_suffix():
    columns = ["intensity.20240101.qe.hela.rep01.treated", "intensity.20240101.qe.hela.rep02.treated"]
    gmap = ColumnGroupMap.from_columns(columns, FAMILY_RAW, min_length=4)
    assert gmap.short_names() == ["1.tr", "2.tr"]

    capped = ColumnGroupMap.from_columns(columns, FAMILY_RAW, min_length=8, max_length=3)
    assert capped.short_names() == ["1.t", "2.t"]


def test_lfq_and_reporter_families():
    columns = ["lfq.intensity.a", "lfq.intensity.b", "reporter.intensity.0", "reporter.intensity.1",
               "reporter.intensity.count.0", "intensity.a"]
    assert select_channel_columns(columns, FAMILY_LFQ) == ["lfq.intensity.a", "lfq.intensity.b"]
    assert select_channel_columns(columns, FAMILY_REPORTER) == ["reporter.intensity.0", "reporter.intensity.1"]
    assert select_channel_columns(["intensity.a"], FAMILY_LFQ) == []


def test_unknown_family_raises():
    with pytest.raises(ValueError):
        select_channel_columns(["intensity.a"], "silac")


def test_channel_suffix():
    assert channel_suffix("intensity.h.conda", FAMILY_RAW) == "h.conda"
    assert channel_suffix("intensity", FAMILY_RAW) is None
    assert channel_suffix("reporter.intensity.3", FAMILY_REPORTER) == "3"


def test_ratio_columns_exclude_sub_properties():
    columns = ["ratio.h.l", "ratio.h.l.normalized", "ratio.h.l.count", "ratio.m.l.conda",
               "ratio.h.l.variability.pct", "ratio.h.m"]
    assert select_ratio_columns(columns) == ["ratio.h.l", "ratio.m.l.conda"]


def test_union_group_maps_disambiguates_across_families():
    raw = ColumnGroupMap.from_columns(["intensity.a", "intensity.b"], FAMILY_RAW)
    lfq = ColumnGroupMap.from_columns(["lfq.intensity.a", "lfq.intensity.b"], FAMILY_LFQ)
    names = union_group_maps([raw, lfq])
    assert names["short"].tolist() == ["a [raw]", "b [raw]", "a [lfq]", "b [lfq]"]
    assert names["short"].is_unique


def test_resolve_renames_and_casts():
    df = pl.DataFrame(
        {
            "Raw file": ["f1", "f2", "Total"],
            "MS/MS Identified [%]": ["35.5", "12", "20"],
            "Unrelated column": ["x", "y", "z"],
        }
    )
    out = ColumnResolver(SUMMARY_SCHEMA, "summary").resolve(df, "summary.txt")
    assert out.columns == ["raw_file", "ms_ms_identified_pct"]
    assert out.schema["ms_ms_identified_pct"] == pl.Float64
    assert out["ms_ms_identified_pct"].to_list() == [35.5, 12.0, 20.0]


def test_resolve_literal_alternative_and_flags():
    df = pl.DataFrame(
        {
            "accession": ["P1", "P2", "P3"],
            "Potential contaminant": ["+", None, ""],
            "Reverse": [None, "+", None],
            "Intensity A": ["1", "2", "3"],
        }
    )
    out = ColumnResolver(PROTEIN_GROUPS_SCHEMA, "protein_groups").resolve(df)
    assert out["protein_ids"].to_list() == ["P1", "P2", "P3"]
    assert out["contaminant"].to_list() == [True, False, False]
    assert out["reverse"].to_list() == [False, True, False]
    assert "intensity.a" in out.columns


def test_missing_required_column_raises():
    df = pl.DataFrame({"Sequence": ["PEPTIDE"], "Charge": ["2"]})
    with pytest.raises(MissingColumnError) as err:
        ColumnResolver(EVIDENCE_SCHEMA, "evidence").resolve(df, "evidence.txt")
    assert "raw_file" in str(err.value)


def test_comma_decimal_separator_raises_locale_error():
    df = pl.DataFrame({"Raw file": ["f1", "f2"], "MS/MS Identified [%]": ["35,5", "12,1"]})
    with pytest.raises(LocaleError):
        ColumnResolver(SUMMARY_SCHEMA, "summary").resolve(df, "summary.txt")


def test_partially_unparsable_numbers_become_null():
    df = pl.DataFrame({"Raw file": ["f1", "f2"], "MS/MS Identified [%]": ["35.5", "n/a"]})
    out = ColumnResolver(SUMMARY_SCHEMA, "summary").resolve(df)
    assert out["ms_ms_identified_pct"].to_list() == [35.5, None]


def test_needed_columns_returns_original_names():
    header = ["Sequence", "Raw file", "Whatever", "Mass Error [ppm]", "Reporter intensity 0"]
    needed = ColumnResolver(EVIDENCE_SCHEMA, "evidence").needed_columns(header)
    assert set(needed) == {"Sequence", "Raw file", "Mass Error [ppm]", "Reporter intensity 0"}
