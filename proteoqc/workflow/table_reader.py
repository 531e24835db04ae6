"""
Readers for the canonical input tables.

A reader turns one input source into canonical tables (`read(kind)`):
  - TxtTableReader: a folder of tab-delimited search engine tables
  - MzTabReader (see mztab_reader.py): a single mzTab file

Both hand their raw tables to the same ColumnResolver and post-processing, so
metrics never see source specific column names.
"""

import csv
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd
import polars as pl
import pyarrow as pa
import pyarrow.csv as pv_csv

from proteoqc.exceptions import InputNotFoundError
from proteoqc.utils.semantics import (
    MATCH_TYPE_TRANSFERRED,
    MIN_MSMS_SCANS_COLUMNS,
    RT_BIN_MINUTES,
    TABLE_EVIDENCE,
    TABLE_MSMS_SCANS,
    TABLE_PROTEIN_GROUPS,
    TABLE_SUMMARY,
    TXT_FILES,
)
from proteoqc.utils.utils import log_info, log_warning
from proteoqc.workflow.column_resolver import ColumnResolver
from proteoqc.workflow.column_schema import SCHEMAS


def split_evidence(df: pl.DataFrame) -> Tuple[pl.DataFrame, pl.DataFrame]:
    """(genuine, transferred) evidence. Without a 'type' column everything is genuine."""
    if "type" not in df.columns:
        return df, df.clear()
    is_transfer = pl.col("type").fill_null("") == MATCH_TYPE_TRANSFERRED
    return df.filter(~is_transfer), df.filter(is_transfer)


def repair_scan_events(df: pl.DataFrame) -> pl.DataFrame:
    """Reconstruct 'scan_event_number' from scan indices where the column is missing."""
    if "scan_event_number" in df.columns:
        return df
    if {"scan_index", "ms_scan_index"} <= set(df.columns):
        log_info("Reconstructing 'scan event number' from scan indices.")
        return df.with_columns(
            (pl.col("scan_index") - pl.col("ms_scan_index")).alias("scan_event_number")
        )
    return df


def add_rt_bins(df: pl.DataFrame, width: float = RT_BIN_MINUTES) -> pl.DataFrame:
    """'rrt': retention time rounded to `width` minute bins."""
    if "retention_time" not in df.columns:
        return df
    return df.with_columns(((pl.col("retention_time") / width).round(0) * width).alias("rrt"))


class TableReader:
    """Shared resolution and clean-up for all input sources."""

    def __init__(self, filter_reverse: bool = True):
        self.filter_reverse = filter_reverse

    def read(self, kind: str) -> Optional[pl.DataFrame]:
        raise NotImplementedError

    def available(self) -> List[str]:
        raise NotImplementedError

    def _finalize(self, kind: str, df: pl.DataFrame, source: str) -> pl.DataFrame:
        df = ColumnResolver(SCHEMAS[kind], kind).resolve(df, source)

        if self.filter_reverse and kind in (TABLE_PROTEIN_GROUPS, TABLE_EVIDENCE) and "reverse" in df.columns:
            n = df.height
            df = df.filter(~pl.col("reverse"))
            if n != df.height:
                log_info(f"{source}: removed {n - df.height} reverse hit(s).")

        if kind == TABLE_SUMMARY:
            # experiment and total rows carry no raw file
            df = df.filter(pl.col("raw_file").is_not_null() & (pl.col("raw_file") != "Total"))

        if kind == TABLE_MSMS_SCANS:
            df = add_rt_bins(repair_scan_events(df))

        log_info(f"{source}: {df.height} rows, {df.width} columns.")
        return df


class TxtTableReader(TableReader):
    """Reads the tables of a search engine 'txt' output folder."""

    def __init__(self, txt_folder, load_method: str = "polars", filter_reverse: bool = True):
        super().__init__(filter_reverse)
        self.txt_folder = Path(txt_folder)
        if not self.txt_folder.is_dir():
            raise InputNotFoundError(str(self.txt_folder), "The txt folder does not exist.")
        self.load_method = load_method

    def path(self, kind: str) -> Path:
        return self.txt_folder / TXT_FILES[kind]

    def available(self) -> List[str]:
        return [kind for kind in TXT_FILES if self.path(kind).is_file()]

    @staticmethod
    def header(path: Path) -> List[str]:
        with open(path, encoding="utf-8", errors="replace") as fh:
            line = fh.readline().rstrip("\r\n")
        return line.split("\t")

    def read(self, kind: str) -> Optional[pl.DataFrame]:
        path = self.path(kind)
        if not path.is_file():
            log_info(f"{path.name} not found, skipping.")
            return None

        header = self.header(path)
        if kind == TABLE_MSMS_SCANS and len(header) < MIN_MSMS_SCANS_COLUMNS:
            log_warning(f"{path.name} has only {len(header)} column(s) and cannot be used.")
            return None

        columns = ColumnResolver(SCHEMAS[kind], kind).needed_columns(header)
        # nothing usable: let the resolver report the missing required columns
        df = self._load_rawdata(path, columns) if columns else pl.DataFrame()
        return self._finalize(kind, df, path.name)

    def _load_rawdata(self, path: Path, columns: List[str]) -> pl.DataFrame:
        """Load the given columns as strings, using the configured library."""
        if self.load_method == "polars":
            return pl.read_csv(
                path,
                separator="\t",
                columns=columns,
                infer_schema_length=0,
                quote_char=None,
                truncate_ragged_lines=True,
                encoding="utf8-lossy",
            )
        elif self.load_method == "pyarrow":
            parse_options = pv_csv.ParseOptions(delimiter="\t", quote_char=False)
            convert_options = pv_csv.ConvertOptions(
                include_columns=columns,
                column_types={c: pa.string() for c in columns},
                strings_can_be_null=True,
            )
            table = pv_csv.read_csv(path, parse_options=parse_options, convert_options=convert_options)
            return pl.from_arrow(table)
        elif self.load_method == "pandas":
            df = pd.read_csv(path, sep="\t", usecols=columns, dtype=str, quoting=csv.QUOTE_NONE)
            return pl.from_pandas(df[columns])
        else:
            raise ValueError(f"Unknown load method: {self.load_method}")
