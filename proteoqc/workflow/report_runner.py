"""
Report orchestration.

Tables are read one at a time in canonical order. Directly after a table is
resolved, every unit registered for it runs (registry order); tables which no
later unit needs are released afterwards to keep memory low.
"""

from typing import Dict, Optional

import pandas as pd
import polars as pl

from proteoqc.dataset.report_context import ReportContext
from proteoqc.exceptions import ExportError, InputNotFoundError, StructuralError
from proteoqc.export.heatmap import build_heatmap, write_heatmap_table
from proteoqc.export.mzqc_exporter import assemble_mzqc, write_mzqc
from proteoqc.export.report_renderer import ReportRenderer
from proteoqc.metrics.base import MetricRegistry
from proteoqc.utils.semantics import (
    EVIDENCE_KEEP_COLUMNS,
    PROTEIN_GROUPS_KEEP_COLUMNS,
    TABLE_EVIDENCE,
    TABLE_KINDS,
    TABLE_MSMS,
    TABLE_MSMS_SCANS,
    TABLE_PARAMETERS,
    TABLE_PROTEIN_GROUPS,
    TABLE_SUMMARY,
)
from proteoqc.utils.utils import log_indent, log_info, log_time, log_warning
from proteoqc.workflow.table_reader import TableReader, split_evidence

# input name under which each table is handed to the units
INPUT_NAMES = {
    TABLE_PARAMETERS: "df_par",
    TABLE_SUMMARY: "df_smy",
    TABLE_PROTEIN_GROUPS: "df_pg",
    TABLE_EVIDENCE: "df_evd",
    TABLE_MSMS: "df_msms",
    TABLE_MSMS_SCANS: "df_msms_s",
}
TRANSFERRED_EVIDENCE = "df_evd_tf"


class ReportRunner:
    """Reads all tables, runs the metric units and writes every report output."""

    def __init__(self, context: ReportContext, reader: TableReader, registry: MetricRegistry):
        self.context = context
        self.reader = reader
        self.registry = registry
        self.keep_tables = bool(context.config.get("report.keep_tables"))
        self.tables: Dict[str, Optional[pl.DataFrame]] = {}
        self.matrix: Optional[pd.DataFrame] = None

    # ------------------------------------------------------------------ pipeline
    @log_time("Creating report")
    def run(self) -> pd.DataFrame:
        """Compute all metrics and write heatmap, mzQC and the rendered report. Returns the score matrix."""
        if not self.reader.available():
            raise InputNotFoundError(str(self.context.input_path), "No input table could be found.")

        raw_file_map = self.context.raw_file_map
        mapping_file = self.context.filenames.filename_sorting
        try:
            self.compute()

            self.matrix = build_heatmap(self.registry, raw_file_map)
            write_heatmap_table(self.matrix, self.context.filenames.heatmap_values_file)
            log_info(f"Heatmap values written to '{self.context.filenames.heatmap_values_file.name}'.")

            try:
                write_mzqc(assemble_mzqc(self.registry, self.context), self.context.filenames.mzqc_file)
            except ExportError as err:
                self.context.warn(f"mzQC not written: {err}")

            ReportRenderer(self.context, self.registry, self.matrix).render()
        finally:
            if len(raw_file_map):
                raw_file_map.write_mapping_file(mapping_file)

        self.log_summary()
        return self.matrix

    @log_time("Computing metrics")
    def compute(self) -> None:
        raw_file_map = self.context.raw_file_map
        mapping_written = False
        n_read = 0

        for kind in TABLE_KINDS:
            df = self.reader.read(kind)
            if df is not None:
                n_read += 1
                if "raw_file" in df.columns:
                    df = raw_file_map.annotate(df)
                    if not mapping_written:
                        raw_file_map.write_mapping_file(self.context.filenames.filename_sorting)
                        mapping_written = True

            if kind == TABLE_EVIDENCE:
                genuine, transferred = split_evidence(df) if df is not None else (None, None)
                self.tables[INPUT_NAMES[kind]] = genuine
                self.tables[TRANSFERRED_EVIDENCE] = transferred
                if transferred is not None:
                    log_info(f"Evidence: {genuine.height} genuine, {transferred.height} transferred.")
            else:
                self.tables[INPUT_NAMES[kind]] = df

            self.run_units(kind)
            if not self.keep_tables:
                self.release(kind)

        if n_read == 0:
            raise InputNotFoundError(str(self.context.input_path), "No input table could be read.")

    def run_units(self, kind: str) -> None:
        units = self.registry.units_for(kind)
        if not units:
            return
        log_info(f"Metrics for '{kind}' ({len(units)}):")
        with log_indent():
            for unit in units:
                try:
                    state = unit.set_data(registry=self.registry, **self.tables)
                except StructuralError:
                    raise
                except Exception as err:
                    unit.fail(err)
                    self.context.warn(f"{unit.metric_id}: {err}")
                    continue
                log_info(f"{unit.metric_id}: {state.value}")

    def release(self, kind: str) -> None:
        """Drop (or trim) tables no later unit needs."""
        tables = self.tables
        if kind == TABLE_EVIDENCE:
            evd = tables.get("df_evd")
            if evd is not None:
                tables["df_evd"] = evd.select([c for c in EVIDENCE_KEEP_COLUMNS if c in evd.columns])
            tables[TRANSFERRED_EVIDENCE] = None
            tables["df_pg"] = None
        elif kind == TABLE_PROTEIN_GROUPS:
            pg = tables.get("df_pg")
            if pg is not None:
                tables["df_pg"] = pg.select([c for c in PROTEIN_GROUPS_KEEP_COLUMNS if c in pg.columns])
        elif kind == TABLE_MSMS:
            tables["df_msms"] = None
            tables["df_evd"] = None
        elif kind == TABLE_MSMS_SCANS:
            tables["df_msms_s"] = None

    def log_summary(self) -> None:
        states = pd.Series([u.state.value for u in self.registry]).value_counts()
        log_info("Metric states: " + ", ".join(f"{n} {s}" for s, n in states.items()))
        if self.context.warnings:
            log_warning(f"{len(self.context.warnings)} warning(s) during the run:")
            with log_indent():
                for msg in self.context.warnings:
                    log_warning(msg)
