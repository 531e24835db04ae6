"""
mzTab input.

An mzTab file holds one metadata section (MTD) and several row sections
(PRT proteins, PSM spectrum matches, ...). The canonical tables are views on it:

  parameters     <- MTD key/value pairs
  summary        <- per run: identified/total spectra, TIC
  protein_groups <- PRT, one 'intensity.<run>' column per assay abundance
  evidence       <- identified PSMs (split by the optional match-type column)
  msms           <- identified PSMs
  msms_scans     <- all PSM rows (identified or not)

Retention times are converted from seconds to minutes.
"""

import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

import polars as pl

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
from proteoqc.utils.utils import log_info, log_time
from proteoqc.workflow.table_reader import TableReader

ROW_SECTIONS = {"PRH": "PRT", "PEH": "PEP", "PSH": "PSM", "SMH": "SML"}

REVERSE_PREFIXES = ("REV__", "DECOY_", "rev_", "decoy_")
CONTAMINANT_PREFIXES = ("CON__", "CONTAMINANT_")
DECOY_COLUMN = "opt_global_cv_MS:1002217_decoy_peptide"

# optional PSM columns and their canonical name
PSM_OPTIONAL = {
    "opt_global_match_type": "type",
    "opt_global_modified_sequence": "modified_sequence",
    "opt_global_missed_cleavages": "missed_cleavages",
    "opt_global_intensity": "intensity",
    "opt_global_feature_intensity": "intensity",
    "opt_global_ion_injection_time": "ion_injection_time",
    "opt_global_ScanEventNumber": "scan_event_number",
    "opt_global_TIC": "total_ion_current",
    "opt_global_base_peak_intensity": "base_peak_intensity",
    "opt_global_mass_analyzer": "mass_analyzer",
    "opt_global_fragment_mass_error_da": "mass_deviations_da",
    "opt_global_retention_time_calibration": "retention_time_calibration",
    "opt_global_calibrated_retention_time": "retention_time_calibration",
}

_RUN_REF = re.compile(r"ms_run\[(\d+)\]")


def _run_name(location: str) -> str:
    """'file:///data/run_01.mzML' -> 'run_01'"""
    base = location.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
    return base.rsplit(".", 1)[0] if "." in base else base


def _has_prefix(col: pl.Expr, prefixes) -> pl.Expr:
    out = pl.lit(False)
    for p in prefixes:
        out = out | col.str.starts_with(p)
    return out.fill_null(False)


class MzTabReader(TableReader):
    """Canonical tables from a single mzTab file."""

    def __init__(self, filter_reverse: bool = True):
        super().__init__(filter_reverse)
        self.path: Optional[Path] = None
        self.metadata: Dict[str, str] = {}
        self.sections: Dict[str, pl.DataFrame] = {}
        self.runs: Dict[int, str] = {}
        self.assays: Dict[int, int] = {}

    # ------------------------------------------------------------------ parsing
    @log_time("Reading mzTab")
    def read_all(self, path) -> None:
        path = Path(path)
        if not path.is_file():
            raise InputNotFoundError(str(path), "The mzTab file does not exist.")
        self.path = path

        headers: Dict[str, List[str]] = {}
        rows: Dict[str, List[List[str]]] = defaultdict(list)
        with open(path, encoding="utf-8", errors="replace") as fh:
            for line in fh:
                parts = line.rstrip("\r\n").split("\t")
                tag = parts[0]
                if tag == "MTD" and len(parts) >= 3:
                    self.metadata[parts[1]] = parts[2]
                elif tag in ROW_SECTIONS:
                    headers[ROW_SECTIONS[tag]] = parts[1:]
                elif tag in ROW_SECTIONS.values():
                    rows[tag].append(parts[1:])

        self.sections = {
            tag: self._to_frame(headers[tag], rows.get(tag, []))
            for tag in headers
        }

        for key, value in self.metadata.items():
            m = re.fullmatch(r"ms_run\[(\d+)\]-location", key)
            if m:
                self.runs[int(m.group(1))] = _run_name(value)
            m = re.fullmatch(r"assay\[(\d+)\]-ms_run_ref", key)
            if m:
                ref = _RUN_REF.search(value)
                if ref:
                    self.assays[int(m.group(1))] = int(ref.group(1))

        log_info(f"{path.name}: {len(self.runs)} run(s), sections {sorted(self.sections)}.")

    @staticmethod
    def _to_frame(header: List[str], rows: List[List[str]]) -> pl.DataFrame:
        data = {}
        for i, name in enumerate(header):
            if name in data:
                continue
            data[name] = [
                (r[i] if i < len(r) and r[i] not in ("", "null") else None) for r in rows
            ]
        return pl.DataFrame(data, schema={c: pl.Utf8 for c in data})

    def raw_files(self) -> List[str]:
        return [self.runs[i] for i in sorted(self.runs)]

    def available(self) -> List[str]:
        present = {TABLE_PARAMETERS}
        if "PSM" in self.sections:
            present |= {TABLE_SUMMARY, TABLE_EVIDENCE, TABLE_MSMS, TABLE_MSMS_SCANS}
        if "PRT" in self.sections:
            present.add(TABLE_PROTEIN_GROUPS)
        return [kind for kind in TABLE_KINDS if kind in present]

    # ------------------------------------------------------------------ views
    def _psm(self) -> Optional[pl.DataFrame]:
        psm = self.sections.get("PSM")
        if psm is None:
            return None

        runs = {str(i): name for i, name in self.runs.items()}
        ref = pl.col("spectra_ref") if "spectra_ref" in psm.columns else pl.lit(None, dtype=pl.Utf8)
        exprs = [
            ref.str.extract(r"ms_run\[(\d+)\]", 1).replace_strict(runs, default=None, return_dtype=pl.Utf8).alias("raw_file"),
            ref.alias("spectra_ref"),
        ]

        def num(name):
            return pl.col(name).cast(pl.Float64, strict=False) if name in psm.columns else pl.lit(None, dtype=pl.Float64)

        def txt(name):
            return pl.col(name) if name in psm.columns else pl.lit(None, dtype=pl.Utf8)

        exprs += [
            txt("sequence").alias("sequence"),
            txt("accession").alias("proteins"),
            txt("PSM_ID").alias("id_text"),
            (txt(DECOY_COLUMN) == "1").fill_null(False).alias("decoy_flag"),
            txt("modifications").alias("modifications"),
            num("charge").alias("charge"),
            num("exp_mass_to_charge").alias("mz"),
            num("search_engine_score[1]").alias("score"),
            (num("retention_time") / 60.0).alias("retention_time"),
            ((num("exp_mass_to_charge") - num("calc_mass_to_charge"))
             / num("calc_mass_to_charge") * 1e6).alias("mass_error_ppm"),
        ]
        seen = set()
        for src, target in PSM_OPTIONAL.items():
            if src in psm.columns and target not in seen:
                seen.add(target)
                if target in ("type", "modified_sequence", "mass_analyzer", "mass_deviations_da"):
                    exprs.append(pl.col(src).alias(target))
                else:
                    exprs.append(pl.col(src).cast(pl.Float64, strict=False).alias(target))

        out = psm.select(exprs)
        if "retention_time_calibration" in out.columns:
            out = out.with_columns((pl.col("retention_time_calibration") / 60.0))
        return out.with_columns(
            pl.int_range(pl.len()).cast(pl.Float64).alias("id"),
            pl.col("sequence").is_not_null().alias("identified"),
            (_has_prefix(pl.col("proteins"), REVERSE_PREFIXES) | pl.col("decoy_flag")).alias("reverse"),
            _has_prefix(pl.col("proteins"), CONTAMINANT_PREFIXES).alias("contaminant"),
        ).drop("id_text", "decoy_flag")

    def get_parameters(self) -> pl.DataFrame:
        return pl.DataFrame(
            {"parameter": list(self.metadata.keys()), "value": list(self.metadata.values())},
            schema={"parameter": pl.Utf8, "value": pl.Utf8},
        )

    def get_summary(self) -> Optional[pl.DataFrame]:
        psm = self._psm()
        if psm is None:
            return None
        spectra = psm.unique(subset=["raw_file", "spectra_ref"], keep="first", maintain_order=True)
        aggs = [
            pl.len().cast(pl.Float64).alias("ms_ms"),
            (pl.col("identified").sum() / pl.len() * 100).alias("ms_ms_identified_pct"),
        ]
        if "total_ion_current" in spectra.columns:
            aggs.append(pl.col("total_ion_current").sum().alias("tic"))
        out = spectra.group_by("raw_file", maintain_order=True).agg(aggs)
        # runs without any spectrum still appear in the summary
        missing = [r for r in self.raw_files() if r not in out["raw_file"].to_list()]
        if missing:
            out = pl.concat([out, pl.DataFrame({"raw_file": missing})], how="diagonal")
        return out

    def get_proteins(self) -> Optional[pl.DataFrame]:
        prt = self.sections.get("PRT")
        if prt is None:
            return None
        exprs = [pl.col("accession").alias("protein_ids")]
        if "description" in prt.columns:
            exprs.append(pl.col("description").alias("fasta_headers"))
        for col in prt.columns:
            m = re.fullmatch(r"protein_abundance_assay\[(\d+)\]", col)
            if not m:
                continue
            assay = int(m.group(1))
            run = self.runs.get(self.assays.get(assay, assay), f"assay{assay}")
            exprs.append(pl.col(col).cast(pl.Float64, strict=False).alias(f"intensity.{run}"))
        return prt.select(exprs).with_columns(
            _has_prefix(pl.col("protein_ids"), REVERSE_PREFIXES).alias("reverse"),
            _has_prefix(pl.col("protein_ids"), CONTAMINANT_PREFIXES).alias("contaminant"),
        )

    def get_evidence(self) -> Optional[pl.DataFrame]:
        psm = self._psm()
        if psm is None:
            return None
        return psm.filter(pl.col("identified")).drop("identified", "spectra_ref")

    def get_msms_scans(self, identified_only: bool = False) -> Optional[pl.DataFrame]:
        psm = self._psm()
        if psm is None:
            return None
        if identified_only:
            psm = psm.filter(pl.col("identified"))
        return psm.unique(subset=["raw_file", "spectra_ref"], keep="first", maintain_order=True).drop("spectra_ref")

    # ------------------------------------------------------------------ TableReader
    def read(self, kind: str) -> Optional[pl.DataFrame]:
        if self.path is None:
            raise InputNotFoundError("mzTab", "read_all() has to be called first.")
        getters = {
            TABLE_PARAMETERS: self.get_parameters,
            TABLE_SUMMARY: self.get_summary,
            TABLE_PROTEIN_GROUPS: self.get_proteins,
            TABLE_EVIDENCE: self.get_evidence,
            TABLE_MSMS: lambda: self.get_msms_scans(identified_only=True),
            TABLE_MSMS_SCANS: lambda: self.get_msms_scans(identified_only=False),
        }
        df = getters[kind]()
        if df is None:
            log_info(f"{self.path.name}: no data for '{kind}', skipping.")
            return None
        return self._finalize(kind, df, f"{self.path.name} [{kind}]")
