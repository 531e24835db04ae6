"""
Evidence metrics (per raw file).

Genuine evidence (`df_evd`) and evidence transferred by match-between-runs
(`df_evd_tf`) are separate inputs. Samples are short raw file names (`fc_raw_file`).
"""

from typing import List, Optional

import numpy as np
import pandas as pd
import polars as pl

from proteoqc.export.plot_utils import (
    new_figure,
    plot_bar_on_axis,
    plot_box_on_axis,
    plot_line_on_axis,
    plot_sample_bars,
    plot_table_page,
)
from proteoqc.metrics.base import MetricUnit, per_sample
from proteoqc.metrics.qualities import (
    qual_centered_ref,
    qual_highest,
    qual_lin_thresh,
    qual_median_dist,
    qual_uniform,
)
from proteoqc.utils.semantics import FAMILY_REPORTER, RT_BIN_MINUTES, TABLE_EVIDENCE
from proteoqc.workflow.column_resolver import select_channel_columns

PLOT_MAX_ROWS = 200_000


def peptide_column(df: pl.DataFrame) -> str:
    return "modified_sequence" if "modified_sequence" in df.columns else "sequence"


def peptide_key(df: pl.DataFrame) -> List[str]:
    key = [peptide_column(df)]
    if "charge" in df.columns:
        key.append("charge")
    return key


def plot_rows(df: pl.DataFrame, columns: List[str]) -> pd.DataFrame:
    """Columns for plotting, randomly thinned out for very large tables."""
    sub = df.select(columns)
    if sub.height > PLOT_MAX_ROWS:
        sub = sub.sample(n=PLOT_MAX_ROWS, seed=42)
    return sub.to_pandas()


def stacked_bars(table: pd.DataFrame, title: str, ylabel: str):
    """rows = samples, columns = stacked categories."""
    fig, ax = new_figure(title)
    table.plot(kind="bar", stacked=True, ax=ax, width=0.8, colormap="tab20")
    ax.set_xlabel("")
    ax.set_ylabel(ylabel)
    ax.grid(True, axis="y", linestyle="--", linewidth=0.5, alpha=0.7)
    ax.legend(fontsize=7, loc="upper right")
    ax.tick_params(axis="x", rotation=45, labelsize=8)
    fig.tight_layout()
    return fig


class _EvidenceUnit(MetricUnit):
    TABLE = TABLE_EVIDENCE
    INPUTS = ("df_evd",)


class EVDUserContaminant(_EvidenceUnit):
    """Share of evidence matching user-defined contaminant patterns (e.g. mycoplasma)."""

    metric_id = "evd_user_contaminant"
    heatmap_name = "EVD: User contaminant"
    title = "EVD: User defined contaminants"
    OPTIONAL_INPUTS = ("df_pg",)
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file",)}
    QUALIFIER = "contaminant_pct"

    PG_TEXT = ("protein_ids", "fasta_headers", "protein_names", "majority_protein_ids")
    EVD_TEXT = ("proteins", "protein_names")

    def precondition(self, df_evd=None, df_pg=None, **_):
        if not self.config.contaminants():
            return "no user contaminants configured"
        if df_evd is not None and not any(c in df_evd.columns for c in self.EVD_TEXT):
            return "evidence has no protein columns"
        return None

    def _match(self, df_evd: pl.DataFrame, df_pg: Optional[pl.DataFrame], pattern: str) -> pl.Expr:
        needle = pattern.lower()
        if df_pg is not None and "proteins" in df_evd.columns and "protein_ids" in df_pg.columns:
            cols = [c for c in self.PG_TEXT if c in df_pg.columns]
            hit = pl.any_horizontal(
                [pl.col(c).fill_null("").str.to_lowercase().str.contains(needle, literal=True) for c in cols]
            )
            ids = (
                df_pg.filter(hit)["protein_ids"].drop_nulls()
                .str.split(";").explode().str.strip_chars().unique().to_list()
            )
            return (
                pl.col("proteins").fill_null("").str.split(";")
                .list.eval(pl.element().str.strip_chars().is_in(ids)).list.any()
            )
        cols = [c for c in self.EVD_TEXT if c in df_evd.columns]
        return pl.any_horizontal(
            [pl.col(c).fill_null("").str.to_lowercase().str.contains(needle, literal=True) for c in cols]
        )

    def _compute(self, df_evd: pl.DataFrame, df_pg: Optional[pl.DataFrame] = None) -> None:
        use_intensity = "intensity" in df_evd.columns
        pct_all, scores = {}, []
        for name, entry in self.config.contaminants().items():
            df = df_evd.with_columns(self._match(df_evd, df_pg, entry["pattern"]).alias("hit"))
            if use_intensity:
                share = pl.col("intensity").filter(pl.col("hit")).sum() / pl.col("intensity").sum()
            else:
                share = pl.col("hit").mean()
            pct = per_sample(df, share * 100, name).fillna(0)
            pct_all[name] = pct
            scores.append((pct <= entry["threshold"]).astype(float))

        table = pd.DataFrame(pct_all)
        self.out_data["contaminant_table"] = table
        self.out_data["contaminant_pct"] = table.max(axis=1)
        self.score = pd.concat(scores, axis=1).min(axis=1)

        thresholds = [e["threshold"] for e in self.config.contaminants().values()]
        fig, ax = new_figure(self.title)
        long = table.reset_index(names="sample").melt(id_vars="sample", var_name="contaminant", value_name="pct")
        plot_bar_on_axis(ax, long, x="sample", y="pct", hue="contaminant", palette="Set2", title="",
                         xlabel="", ylabel="matching evidence [%]", threshold=min(thresholds))
        fig.tight_layout()
        self.plots.append(fig)


class EVDPeptideIntensity(_EvidenceUnit):
    metric_id = "evd_peptide_intensity"
    heatmap_name = "EVD: Peptide intensity"
    title = "EVD: Peptide intensity distribution"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "intensity")}
    QUALIFIER = "median_log2_intensity"

    def _compute(self, df_evd: pl.DataFrame) -> None:
        threshold = float(self.config.threshold("evd_intensity"))
        df = df_evd.filter(pl.col("intensity") > 0).with_columns(pl.col("intensity").log(2).alias("log2_intensity"))
        medians = per_sample(df, pl.col("log2_intensity").median(), "median_log2_intensity")

        fig, ax = new_figure(self.title)
        plot_box_on_axis(ax, plot_rows(df, ["fc_raw_file", "log2_intensity"]), x="fc_raw_file",
                         y="log2_intensity", title=f"target: {threshold:g}", xlabel="",
                         ylabel="log2 intensity", threshold=threshold)
        fig.tight_layout()
        self.plots.append(fig)

        self.out_data["median_log2_intensity"] = medians
        self.score = qual_lin_thresh(medians, threshold)


class EVDReporterIntensity(_EvidenceUnit):
    metric_id = "evd_reporter_intensity"
    heatmap_name = "EVD: Reporter intensity"
    title = "EVD: Reporter intensity per channel"

    def precondition(self, df_evd=None, **_):
        if df_evd is not None and not select_channel_columns(df_evd.columns, FAMILY_REPORTER):
            return "no reporter intensity columns"
        return None

    def _compute(self, df_evd: pl.DataFrame) -> None:
        cols = select_channel_columns(df_evd.columns, FAMILY_REPORTER)
        long = (
            df_evd.select(cols).unpivot(variable_name="channel", value_name="intensity")
            .filter(pl.col("intensity") > 0)
            .with_columns(pl.col("intensity").log(2).alias("log2_intensity"))
        )
        self.out_data["median_log2_intensity"] = long.to_pandas().groupby("channel", sort=False)["log2_intensity"].median()
        fig, ax = new_figure(self.title)
        plot_box_on_axis(ax, plot_rows(long, ["channel", "log2_intensity"]), x="channel", y="log2_intensity",
                         title="", xlabel="", ylabel="log2 reporter intensity")
        fig.tight_layout()
        self.plots.append(fig)


class EVDModTable(_EvidenceUnit):
    metric_id = "evd_mod_table"
    heatmap_name = "EVD: Modifications"
    title = "EVD: Modifications per Raw file [%]"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "modifications")}

    def _compute(self, df_evd: pl.DataFrame) -> None:
        totals = df_evd.group_by("fc_raw_file").len("total")
        mods = (
            df_evd.select("fc_raw_file", pl.col("modifications").fill_null("Unmodified").str.split(","))
            .with_row_index("row")
            .explode("modifications")
            .with_columns(pl.col("modifications").str.strip_chars().str.replace(r"^\d+\s+", ""))
            # '2 Oxidation (M)' counts once per evidence
            .unique(maintain_order=True)
            .group_by("fc_raw_file", "modifications").len("n")
            .join(totals, on="fc_raw_file")
            .with_columns((100 * pl.col("n") / pl.col("total")).round(1).alias("pct"))
            .to_pandas()
        )
        table = mods.pivot_table(index="modifications", columns="fc_raw_file", values="pct", fill_value=0)
        self.out_data["mod_pct"] = table
        self.plots.append(plot_table_page(table.reset_index(), self.title))


class _EVDCount(_EvidenceUnit):
    """Unique identifiers per raw file, genuine plus those only seen via transfer."""

    INPUTS = ("df_evd",)
    OPTIONAL_INPUTS = ("df_evd_tf",)
    THRESHOLD_KEY = ""
    WHAT = ""

    def id_column(self, df: pl.DataFrame) -> Optional[str]:
        raise NotImplementedError

    def precondition(self, df_evd=None, **_):
        if df_evd is not None and self.id_column(df_evd) is None:
            return f"no {self.WHAT} identifier column"
        return None

    def _unique(self, df: pl.DataFrame, col: str) -> pl.DataFrame:
        return (
            df.select("fc_raw_file", pl.col(col).cast(pl.Utf8).str.split(";"))
            .explode(col).drop_nulls().unique()
        )

    def _compute(self, df_evd: pl.DataFrame, df_evd_tf: Optional[pl.DataFrame] = None) -> None:
        threshold = float(self.config.threshold(self.THRESHOLD_KEY))
        col = self.id_column(df_evd)
        genuine = self._unique(df_evd, col)
        counts = per_sample(genuine, pl.len(), "genuine")

        transferred = pd.Series(0.0, index=counts.index)
        if df_evd_tf is not None and df_evd_tf.height and col in df_evd_tf.columns:
            extra = self._unique(df_evd_tf, col).join(genuine, on=["fc_raw_file", col], how="anti")
            transferred = per_sample(extra, pl.len(), "transferred").reindex(counts.index).fillna(0)

        table = pd.DataFrame({"genuine": counts, "transferred": transferred})
        self.plots.append(stacked_bars(table, f"{self.title} (target: {threshold:g})", f"# {self.WHAT}"))
        self.out_data[self.QUALIFIER] = counts
        self.out_data["transferred"] = transferred
        self.score = qual_lin_thresh(counts, threshold)


class EVDProteinCount(_EVDCount):
    metric_id = "evd_protein_count"
    heatmap_name = "EVD: Protein count"
    title = "EVD: Protein groups per Raw file"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file",)}
    QUALIFIER = "protein_count"
    THRESHOLD_KEY = "evd_proteins"
    WHAT = "protein groups"

    def id_column(self, df):
        for c in ("protein_group_ids", "proteins"):
            if c in df.columns:
                return c
        return None


class EVDPeptideCount(_EVDCount):
    metric_id = "evd_peptide_count"
    heatmap_name = "EVD: Peptide count"
    title = "EVD: Peptides per Raw file"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file",)}
    QUALIFIER = "peptide_count"
    THRESHOLD_KEY = "evd_peptides"
    WHAT = "peptides"

    def id_column(self, df):
        return peptide_column(df)


class EVDRTPeakWidth(_EvidenceUnit):
    metric_id = "evd_rt_peak_width"
    heatmap_name = "EVD: RT peak width"
    title = "EVD: Peak width over RT"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "retention_time", "retention_length")}
    QUALIFIER = "avg_peak_width"

    def _compute(self, df_evd: pl.DataFrame) -> None:
        df = df_evd.filter(pl.col("retention_length").is_not_null())
        width = per_sample(df, pl.col("retention_length").median(), "avg_peak_width")
        over_rt = (
            df.with_columns(((pl.col("retention_time") / RT_BIN_MINUTES).round(0) * RT_BIN_MINUTES).alias("rrt"))
            .group_by("fc_raw_file", "rrt").agg(pl.col("retention_length").median().alias("peak_width"))
            .sort("fc_raw_file", "rrt")
            .to_pandas()
        )
        fig, ax = new_figure(self.title)
        plot_line_on_axis(ax, over_rt, x="rrt", y="peak_width", hue="fc_raw_file", title="",
                          xlabel="retention time [min]", ylabel="median peak width [min]")
        fig.tight_layout()
        self.plots.append(fig)

        self.out_data["avg_peak_width"] = width
        self.score = qual_median_dist(width)


class _MBRUnit(_EvidenceUnit):
    """Runs only when match-between-runs was used and produced transferred evidence."""

    INPUTS = ("df_evd", "df_evd_tf")
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "retention_time", "retention_time_calibration")}

    def precondition(self, df_evd_tf=None, **_):
        mbr = self.config.threshold("evd_mbr")
        if mbr is False or str(mbr).lower() in ("false", "off", "no"):
            return "match-between-runs metrics disabled (thresholds.evd_mbr)"
        if df_evd_tf is None or df_evd_tf.height == 0:
            return "no transferred evidence"
        return None


class EVDMBRAlign(_MBRUnit):
    metric_id = "evd_mbr_align"
    heatmap_name = "EVD: MBR alignment"
    title = "EVD: MBR alignment (calibrated RT vs. reference)"
    QUALIFIER = "within_tolerance"

    def _compute(self, df_evd: pl.DataFrame, df_evd_tf: pl.DataFrame) -> None:
        tol = float(self.config.threshold("evd_matching_tolerance"))
        key = peptide_key(df_evd)
        df = df_evd.filter(pl.col("retention_time_calibration").is_not_null()).with_columns(
            (pl.col("retention_time") + pl.col("retention_time_calibration")).alias("calibrated_rt")
        )
        ref = (
            df.group_by(key)
            .agg(pl.col("calibrated_rt").median().alias("ref_rt"), pl.col("fc_raw_file").n_unique().alias("n_files"))
            .filter(pl.col("n_files") >= 2)
        )
        df = df.join(ref, on=key).with_columns((pl.col("calibrated_rt") - pl.col("ref_rt")).alias("rt_diff"))
        if df.height == 0:
            self.skip("no peptides shared between raw files")
            return

        within = per_sample(df, (pl.col("rt_diff").abs() <= tol).mean(), "within_tolerance")
        fig, ax = new_figure(self.title)
        plot_box_on_axis(ax, plot_rows(df, ["fc_raw_file", "rt_diff"]), x="fc_raw_file", y="rt_diff",
                         title=f"matching tolerance: +-{tol:g} min", xlabel="", ylabel="RT - reference RT [min]",
                         draw_median_line=False)
        for t in (-tol, tol):
            ax.axhline(t, color="red", linestyle=":", linewidth=1)
        fig.tight_layout()
        self.plots.append(fig)

        self.out_data["within_tolerance"] = within
        self.score = within


class EVDMBRIdTransfer(_MBRUnit):
    """Transferred peptides which are ambiguous (seen more than once, further apart than a peak width)."""

    metric_id = "evd_mbr_id_transfer"
    heatmap_name = "EVD: MBR ID transfer"
    title = "EVD: MBR ID transfer ambiguity"
    DEPENDS_ON = (("evd_rt_peak_width", "avg_peak_width"),)
    QUALIFIER = "ambiguous_fraction"

    def _compute(self, df_evd: pl.DataFrame, df_evd_tf: pl.DataFrame) -> None:
        width = self.dependency("evd_rt_peak_width", "avg_peak_width")
        width = float(np.nanmedian(width)) if isinstance(width, pd.Series) else float(width)
        key = peptide_key(df_evd)
        cols = ["fc_raw_file", *key, "retention_time"]
        both = pl.concat([
            df_evd.select(cols).with_columns(pl.lit(False).alias("is_transferred")),
            df_evd_tf.select(cols).with_columns(pl.lit(True).alias("is_transferred")),
        ], how="vertical_relaxed")
        groups = (
            both.group_by(["fc_raw_file", *key])
            .agg(
                pl.col("is_transferred").sum().alias("n_transferred"),
                (~pl.col("is_transferred")).sum().alias("n_genuine"),
                (pl.col("retention_time").max() - pl.col("retention_time").min()).alias("rt_span"),
            )
            .filter(pl.col("n_transferred") > 0)
            .with_columns(
                (((pl.col("n_genuine") > 0) | (pl.col("n_transferred") > 1))
                 & (pl.col("rt_span").fill_null(0) > width)).alias("ambiguous")
            )
        )
        ambiguous = per_sample(groups, pl.col("ambiguous").mean(), "ambiguous_fraction")

        self.plots.append(plot_sample_bars(100 * ambiguous, f"{self.title} (peak width {width:.2f} min)",
                                           "ambiguous transfers [%]"))
        self.out_data["ambiguous_fraction"] = ambiguous
        self.score = 1 - ambiguous


class EVDMBRAux(_MBRUnit):
    metric_id = "evd_mbr_aux"
    heatmap_name = "EVD: MBR evidence"
    title = "EVD: Evidence gained by MBR"

    def _compute(self, df_evd: pl.DataFrame, df_evd_tf: pl.DataFrame) -> None:
        genuine = per_sample(df_evd, pl.len(), "genuine")
        transferred = per_sample(df_evd_tf, pl.len(), "transferred").reindex(genuine.index).fillna(0)
        fraction = transferred / (genuine + transferred)
        self.out_data["transferred_fraction"] = fraction
        self.plots.append(plot_sample_bars(100 * fraction, self.title, "transferred evidence [%]"))


class EVDCharge(_EvidenceUnit):
    metric_id = "evd_charge"
    heatmap_name = "EVD: Charge"
    title = "EVD: Charge distribution"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "charge")}
    QUALIFIER = "main_charge_fraction"

    def _compute(self, df_evd: pl.DataFrame) -> None:
        df = df_evd.select("fc_raw_file", "charge").drop_nulls().to_pandas()
        df["charge"] = df["charge"].astype(int)
        counts = pd.crosstab(df["fc_raw_file"], df["charge"])
        main = counts.apply(qual_highest, axis=1)

        self.plots.append(stacked_bars(counts.div(counts.sum(axis=1), axis=0) * 100, self.title, "evidence [%]"))
        self.out_data["charge_counts"] = counts
        self.out_data["main_charge_fraction"] = main
        self.score = qual_median_dist(main)


class EVDIdOverRT(_EvidenceUnit):
    metric_id = "evd_id_over_rt"
    heatmap_name = "EVD: IDs over RT"
    title = "EVD: Identifications over RT"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "retention_time")}

    def _compute(self, df_evd: pl.DataFrame) -> None:
        counts = (
            df_evd.filter(pl.col("retention_time").is_not_null())
            .with_columns(((pl.col("retention_time") / RT_BIN_MINUTES).round(0) * RT_BIN_MINUTES).alias("rrt"))
            .group_by("fc_raw_file", "rrt").len("ids")
            .sort("fc_raw_file", "rrt")
            .to_pandas()
        )
        fig, ax = new_figure(self.title)
        plot_line_on_axis(ax, counts, x="rrt", y="ids", hue="fc_raw_file", title="",
                          xlabel="retention time [min]", ylabel="# IDs")
        fig.tight_layout()
        self.plots.append(fig)

        uniformity = counts.groupby("fc_raw_file", sort=False)["ids"].apply(qual_uniform)
        self.out_data["ids_over_rt"] = counts
        self.score = uniformity.astype(float)


class EVDUpSet(_EvidenceUnit):
    """How many raw files share each peptide."""

    metric_id = "evd_upset"
    heatmap_name = "EVD: Peptide overlap"
    title = "EVD: Peptide overlap between Raw files"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "sequence")}

    def _compute(self, df_evd: pl.DataFrame) -> None:
        n_files = df_evd["fc_raw_file"].n_unique()
        shared = (
            df_evd.select("fc_raw_file", "sequence").unique()
            .group_by("sequence").len("n_files")
            .group_by("n_files").len("peptides")
            .sort("n_files")
            .to_pandas()
        )
        fig, ax = new_figure(self.title)
        plot_bar_on_axis(ax, shared.astype({"n_files": str}), x="n_files", y="peptides", title="",
                         xlabel="found in # Raw files", ylabel="# peptides", xtick_rotation=None,
                         annotate_values=True)
        fig.tight_layout()
        self.plots.append(fig)
        self.out_data["overlap"] = shared
        self.out_data["shared_by_all"] = int(shared.loc[shared["n_files"] == n_files, "peptides"].sum())


class _EVDMassError(_EvidenceUnit):
    COLUMN = ""
    TOL_KEY = ""
    QUALIFIER = "median_ppm"

    def _compute(self, df_evd: pl.DataFrame, **extra) -> None:
        tol = float(self.config.threshold(self.TOL_KEY))
        df = df_evd.filter(pl.col(self.COLUMN).is_not_null() & pl.col(self.COLUMN).is_finite())
        median = per_sample(df, pl.col(self.COLUMN).median(), "median_ppm")
        sd = per_sample(df, pl.col(self.COLUMN).std(), "sd_ppm")

        fig, ax = new_figure(self.title)
        plot_box_on_axis(ax, plot_rows(df, ["fc_raw_file", self.COLUMN]), x="fc_raw_file", y=self.COLUMN,
                         title=f"tolerance: +-{tol:g} ppm", xlabel="", ylabel="mass error [ppm]",
                         draw_median_line=False)
        for t in (-tol, tol):
            ax.axhline(t, color="red", linestyle=":", linewidth=1)
        fig.tight_layout()
        self.plots.append(fig)

        self.out_data["median_ppm"] = median
        self.out_data["sd_ppm"] = sd
        self.score = qual_centered_ref(median, tol)


class EVDPreCal(_EVDMassError):
    """Uncalibrated precursor mass error; flags Raw files whose tolerance window was too narrow."""

    metric_id = "evd_pre_cal"
    heatmap_name = "EVD: Pre-calibration"
    title = "EVD: Uncalibrated mass error"
    OPTIONAL_INPUTS = ("df_smy",)
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "uncalibrated_mass_error_ppm")}
    COLUMN = "uncalibrated_mass_error_ppm"
    TOL_KEY = "evd_precursor_tol_ppm"

    def _compute(self, df_evd: pl.DataFrame, df_smy: Optional[pl.DataFrame] = None) -> None:
        super()._compute(df_evd)
        tol = float(self.config.threshold(self.TOL_KEY))
        n_sd = float(self.config.threshold("evd_precursor_out_of_cal_sd"))
        median, sd = self.out_data["median_ppm"], self.out_data["sd_ppm"].fillna(0)
        out_of_cal = (median.abs() + n_sd * sd) > tol
        self.out_data["out_of_calibration"] = out_of_cal
        score = self.score.where(~out_of_cal, 0.0)

        # an ID rate below 1% means the mass errors cannot be trusted, so the file is not scored
        if df_smy is not None and {"fc_raw_file", "ms_ms_identified_pct"} <= set(df_smy.columns):
            rate = per_sample(df_smy, pl.col("ms_ms_identified_pct").mean(), "id_rate")
            low = sorted(rate[rate < 1].index.tolist())
            self.out_data["low_id_rate"] = low
            score = score.mask(score.index.isin(low))
        self.score = score


class EVDPostCal(_EVDMassError):
    metric_id = "evd_post_cal"
    heatmap_name = "EVD: Post-calibration"
    title = "EVD: Calibrated mass error"
    OPTIONAL_INPUTS = ("df_smy",)
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "mass_error_ppm")}
    COLUMN = "mass_error_ppm"
    TOL_KEY = "evd_precursor_tol_ppm_main_search"

    def _compute(self, df_evd: pl.DataFrame, df_smy: Optional[pl.DataFrame] = None) -> None:
        super()._compute(df_evd)


class EVDTop5Contaminants(_EvidenceUnit):
    metric_id = "evd_top5_contaminants"
    heatmap_name = "EVD: Contaminants"
    title = "EVD: Top5 contaminants per Raw file"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "contaminant")}
    QUALIFIER = "contaminant_pct"

    def precondition(self, df_evd=None, **_):
        if df_evd is not None and not {"protein_names", "proteins"} & set(df_evd.columns):
            return "no protein column"
        return None

    def _compute(self, df_evd: pl.DataFrame) -> None:
        threshold = float(self.config.threshold("evd_contaminant_pct"))
        label = "protein_names" if "protein_names" in df_evd.columns else "proteins"
        weight = pl.col("intensity").fill_null(0) if "intensity" in df_evd.columns else pl.lit(1.0)
        df = df_evd.select("fc_raw_file", "contaminant", pl.col(label).fill_null("unknown").alias("protein"),
                           weight.alias("w"))

        totals = df.group_by("fc_raw_file").agg(pl.col("w").sum().alias("total"))
        cont = (
            df.filter(pl.col("contaminant"))
            .group_by("fc_raw_file", "protein").agg(pl.col("w").sum())
            .join(totals, on="fc_raw_file")
            .with_columns((100 * pl.col("w") / pl.col("total")).alias("pct"))
            .to_pandas()
        )
        if cont.empty:
            table = pd.DataFrame()
        else:
            table = cont.pivot_table(index="fc_raw_file", columns="protein", values="pct", fill_value=0,
                                     aggfunc="sum")
        pct = df.group_by("fc_raw_file", maintain_order=True).agg(
            (pl.col("w").filter(pl.col("contaminant")).sum() / pl.col("w").sum() * 100).alias("pct")
        )
        pct = pd.Series(pct["pct"].to_list(), index=pct["fc_raw_file"].to_list(), dtype=float).fillna(0)

        top5 = table.sum().sort_values(ascending=False).index[:5].tolist()
        shown = table.reindex(index=pct.index, columns=top5).fillna(0)
        shown["other"] = (pct - shown.sum(axis=1)).clip(lower=0)
        self.plots.append(stacked_bars(shown, f"{self.title} (threshold {threshold:g}%)", "intensity [%]"))

        self.out_data["top5"] = top5
        self.out_data["contaminant_pct"] = pct
        self.score = qual_centered_ref((pct - threshold).clip(lower=0), threshold)


class EVDMS2Oversampling(_EvidenceUnit):
    metric_id = "evd_ms2_oversampling"
    heatmap_name = "EVD: MS2 oversampling"
    title = "EVD: MS/MS counts per 3D-peak"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "ms_ms_count")}
    QUALIFIER = "single_msms_fraction"

    def _compute(self, df_evd: pl.DataFrame) -> None:
        df = (
            df_evd.filter(pl.col("ms_ms_count") >= 1)
            .with_columns(pl.col("ms_ms_count").clip(upper_bound=3).cast(pl.Int64))
            .select("fc_raw_file", "ms_ms_count").to_pandas()
        )
        counts = pd.crosstab(df["fc_raw_file"], df["ms_ms_count"]).rename(columns={3: ">=3"})
        fraction = counts.div(counts.sum(axis=1), axis=0)
        single = fraction[1] if 1 in fraction.columns else pd.Series(0.0, index=fraction.index)

        self.plots.append(stacked_bars(fraction * 100, self.title, "evidence [%]"))
        self.out_data["single_msms_fraction"] = single
        self.score = single.astype(float)


class EVDMissingValues(_EvidenceUnit):
    """Fraction of all peptides (seen in any Raw file) that each Raw file identified."""

    metric_id = "evd_missing_values"
    heatmap_name = "EVD: Missing values"
    title = "EVD: Peptide completeness per Raw file"
    REQUIRED_COLUMNS = {"df_evd": ("fc_raw_file", "sequence")}
    QUALIFIER = "completeness"

    def precondition(self, df_evd=None, **_):
        if df_evd is not None and df_evd["fc_raw_file"].n_unique() < 2:
            return "needs at least two Raw files"
        return None

    def _compute(self, df_evd: pl.DataFrame) -> None:
        col = peptide_column(df_evd)
        peptides = df_evd.select("fc_raw_file", col).drop_nulls().unique()
        total = peptides[col].n_unique()
        completeness = per_sample(peptides, pl.len() / total, "completeness")
        self.plots.append(plot_sample_bars(100 * completeness, self.title, "peptides present [%]"))
        self.out_data["completeness"] = completeness
        self.score = completeness
