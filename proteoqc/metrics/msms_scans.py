"""
MS/MS scan metrics.

All units read `df_msms_s`, which carries the 2-minute retention time bins (`rrt`)
and, where it could be reconstructed, the scan event number (position within a
top-N cycle).
"""

import pandas as pd
import polars as pl

from proteoqc.export.plot_utils import new_figure, plot_line_on_axis, plot_sample_bars, plot_table_page
from proteoqc.metrics.base import MetricUnit, per_sample
from proteoqc.metrics.qualities import qual_uniform
from proteoqc.utils.semantics import TABLE_MSMS_SCANS


class _ScanUnit(MetricUnit):
    TABLE = TABLE_MSMS_SCANS
    INPUTS = ("df_msms_s",)


def line_page(title: str, data: pd.DataFrame, x: str, y: str, xlabel: str, ylabel: str, hue="fc_raw_file"):
    fig, ax = new_figure(title)
    plot_line_on_axis(ax, data, x=x, y=y, hue=hue, title="", xlabel=xlabel, ylabel=ylabel)
    fig.tight_layout()
    return fig, ax


class ScansTopNOverRT(_ScanUnit):
    metric_id = "msms_scans_topn_over_rt"
    heatmap_name = "MSMS scans: TopN over RT"
    title = "MSMS scans: TopN over RT"
    REQUIRED_COLUMNS = {"df_msms_s": ("fc_raw_file", "rrt", "scan_event_number")}

    def _compute(self, df_msms_s: pl.DataFrame) -> None:
        data = (
            df_msms_s.group_by("fc_raw_file", "rrt", maintain_order=True)
            .agg(pl.col("scan_event_number").max().alias("topn"))
            .sort("rrt")
            .to_pandas()
        )
        self.out_data["topn_over_rt"] = data
        fig, _ = line_page(self.title, data, "rrt", "topn", "retention time [min]", "highest scan event")
        self.plots.append(fig)


class ScansIonInjectionTime(_ScanUnit):
    metric_id = "msms_scans_ion_injection_time"
    heatmap_name = "MSMS scans: Ion injection time"
    title = "MSMS scans: Ion injection time over RT"
    REQUIRED_COLUMNS = {"df_msms_s": ("fc_raw_file", "rrt", "ion_injection_time")}
    QUALIFIER = "median_ion_injection_time"

    def _compute(self, df_msms_s: pl.DataFrame) -> None:
        threshold = float(self.config.threshold("msms_scans_ion_injection"))
        df = df_msms_s.filter(pl.col("ion_injection_time").is_not_null())
        median = per_sample(df, pl.col("ion_injection_time").median(), "median_ion_injection_time")
        below = per_sample(df, (pl.col("ion_injection_time") <= threshold).mean(), "below_threshold")

        over_rt = (
            df.group_by("fc_raw_file", "rrt", maintain_order=True)
            .agg(pl.col("ion_injection_time").mean())
            .sort("rrt")
            .to_pandas()
        )
        fig, ax = line_page(f"{self.title} (threshold {threshold:g} ms)", over_rt, "rrt", "ion_injection_time",
                            "retention time [min]", "mean ion injection time [ms]")
        ax.axhline(threshold, color="red", linestyle=":", linewidth=1.2)
        self.plots.append(fig)

        self.out_data["median_ion_injection_time"] = median
        self.out_data["below_threshold"] = below
        self.score = below


class ScansIntensity(_ScanUnit):
    """Total ion current (or base peak intensity) of MS/MS scans over RT."""

    metric_id = "msms_scans_intensity"
    heatmap_name = "MSMS scans: Intensity"
    title = "MSMS scans: Intensity over RT"
    REQUIRED_COLUMNS = {"df_msms_s": ("fc_raw_file", "rrt")}

    @staticmethod
    def intensity_column(df: pl.DataFrame):
        for c in ("total_ion_current", "base_peak_intensity"):
            if c in df.columns:
                return c
        return None

    def precondition(self, df_msms_s=None, **_):
        if df_msms_s is not None and self.intensity_column(df_msms_s) is None:
            return "neither TIC nor base peak intensity reported"
        return None

    def _compute(self, df_msms_s: pl.DataFrame) -> None:
        col = self.intensity_column(df_msms_s)
        data = (
            df_msms_s.filter(pl.col(col) > 0)
            .group_by("fc_raw_file", "rrt", maintain_order=True)
            .agg(pl.col(col).median().log10().alias("log10_intensity"))
            .sort("rrt")
            .to_pandas()
        )
        self.out_data["intensity_column"] = col
        self.out_data["intensity_over_rt"] = data
        label = "TIC" if col == "total_ion_current" else "base peak intensity"
        fig, _ = line_page(f"{self.title} ({label})", data, "rrt", "log10_intensity",
                           "retention time [min]", f"log10 median {label}")
        self.plots.append(fig)


def with_cycles(df: pl.DataFrame) -> pl.DataFrame:
    """Number top-N cycles per raw file; a cycle starts at scan event 1."""
    return df.with_columns(
        (pl.col("scan_event_number") == 1).cast(pl.Int64).cum_sum().over("fc_raw_file").alias("cycle")
    )


class ScansTopN(_ScanUnit):
    metric_id = "msms_scans_topn"
    heatmap_name = "MSMS scans: TopN"
    title = "MSMS scans: Cycles reaching TopN"
    REQUIRED_COLUMNS = {"df_msms_s": ("fc_raw_file", "scan_event_number")}
    QUALIFIER = "topn"

    def _compute(self, df_msms_s: pl.DataFrame) -> None:
        cycles = (
            with_cycles(df_msms_s.filter(pl.col("scan_event_number").is_not_null()))
            .group_by("fc_raw_file", "cycle", maintain_order=True)
            .agg(pl.col("scan_event_number").max().alias("reached"))
        )
        top = per_sample(cycles, pl.col("reached").max(), "topn")
        cycles = cycles.join(
            pl.DataFrame({"fc_raw_file": top.index.tolist(), "topn": top.to_numpy()}), on="fc_raw_file"
        )
        full = per_sample(cycles, (pl.col("reached") == pl.col("topn")).mean(), "full_cycles")

        self.plots.append(plot_sample_bars(100 * full, self.title, "cycles reaching TopN [%]"))
        self.out_data["topn"] = top
        self.out_data["full_cycles"] = full
        self.score = full


class ScansTopNId(_ScanUnit):
    """Identification rate per scan event; should not drop towards the end of a cycle."""

    metric_id = "msms_scans_topn_id"
    heatmap_name = "MSMS scans: TopN ID rate"
    title = "MSMS scans: ID rate per scan event"
    REQUIRED_COLUMNS = {"df_msms_s": ("fc_raw_file", "scan_event_number", "identified")}

    def _compute(self, df_msms_s: pl.DataFrame) -> None:
        data = (
            df_msms_s.filter(pl.col("scan_event_number").is_not_null())
            .group_by("fc_raw_file", "scan_event_number", maintain_order=True)
            .agg((100 * pl.col("identified").mean()).alias("id_rate"))
            .sort("scan_event_number")
            .to_pandas()
        )
        fig, _ = line_page(self.title, data, "scan_event_number", "id_rate", "scan event", "identified [%]")
        self.plots.append(fig)

        self.out_data["id_rate_per_event"] = data
        self.score = data.groupby("fc_raw_file", sort=False)["id_rate"].apply(qual_uniform).astype(float)


class ScansDependentPeptides(_ScanUnit):
    metric_id = "msms_scans_dep_pep"
    heatmap_name = "MSMS scans: Dependent peptides"
    title = "MSMS scans: Dependent peptide modifications"
    REQUIRED_COLUMNS = {"df_msms_s": ("fc_raw_file", "dp_modification")}

    def _compute(self, df_msms_s: pl.DataFrame) -> None:
        has_dp = pl.col("dp_modification").fill_null("").str.strip_chars() != ""
        fraction = per_sample(df_msms_s, 100 * has_dp.mean(), "dp_pct")
        top = (
            df_msms_s.filter(has_dp)
            .group_by("dp_modification").len("scans")
            .sort("scans", descending=True)
            .head(25)
            .to_pandas()
        )
        self.out_data["dp_pct"] = fraction
        self.out_data["top_modifications"] = top
        self.plots.append(plot_sample_bars(fraction, self.title, "scans with dependent peptide [%]"))
        self.plots.append(plot_table_page(top, f"{self.title} (top {len(top)})"))
