from typing import Optional

import pandas as pd
import polars as pl

from proteoqc.export.plot_utils import new_figure, plot_box_on_axis
from proteoqc.metrics.base import MetricUnit, per_sample
from proteoqc.metrics.evidence import plot_rows, stacked_bars
from proteoqc.metrics.qualities import qual_lin_thresh
from proteoqc.utils.semantics import FRAGMENT_TOLERANCE_DA, FRAGMENT_TOLERANCE_DEFAULT_DA, TABLE_MSMS


def fragment_tolerance(analyzer: Optional[str]) -> float:
    if not analyzer:
        return FRAGMENT_TOLERANCE_DEFAULT_DA
    for name, tol in FRAGMENT_TOLERANCE_DA.items():
        if name in str(analyzer).upper():
            return tol
    return FRAGMENT_TOLERANCE_DEFAULT_DA


class MSMSDecalibration(MetricUnit):
    """Fragment mass deviations; scored against the tolerance of the mass analyzer."""

    metric_id = "msms_decal"
    heatmap_name = "MSMS: Fragment calibration"
    title = "MSMS: Fragment mass deviation [Da]"
    TABLE = TABLE_MSMS
    INPUTS = ("df_msms",)
    REQUIRED_COLUMNS = {"df_msms": ("fc_raw_file", "mass_deviations_da")}
    QUALIFIER = "median_abs_deviation_da"

    def _compute(self, df_msms: pl.DataFrame) -> None:
        deviations = (
            df_msms.select("fc_raw_file", pl.col("mass_deviations_da").str.split(";").alias("deviation"))
            .explode("deviation")
            .with_columns(pl.col("deviation").str.strip_chars().cast(pl.Float64, strict=False))
            .filter(pl.col("deviation").is_not_null() & pl.col("deviation").is_finite())
        )
        if deviations.height == 0:
            self.skip("no fragment mass deviations")
            return

        median = per_sample(deviations, pl.col("deviation").abs().median(), "median_abs_deviation_da")
        if "mass_analyzer" in df_msms.columns:
            analyzer = df_msms.group_by("fc_raw_file").agg(pl.col("mass_analyzer").drop_nulls().mode().first())
            analyzer = dict(zip(analyzer["fc_raw_file"].to_list(), analyzer["mass_analyzer"].to_list()))
        else:
            analyzer = {}
        tolerance = pd.Series({s: fragment_tolerance(analyzer.get(s)) for s in median.index}, dtype=float)

        fig, ax = new_figure(self.title)
        plot_box_on_axis(ax, plot_rows(deviations, ["fc_raw_file", "deviation"]), x="fc_raw_file", y="deviation",
                         title="", xlabel="", ylabel="fragment mass deviation [Da]", draw_median_line=False)
        ax.axhline(0, color="gray", linestyle="--", linewidth=1)
        fig.tight_layout()
        self.plots.append(fig)

        self.out_data["median_abs_deviation_da"] = median
        self.out_data["tolerance_da"] = tolerance
        self.score = (1 - median / tolerance).clip(lower=0.0, upper=1.0)


class MSMSMissedCleavages(MetricUnit):
    """
    Missed cleavages per raw file.

    Uses the MS/MS table when it carries missed cleavages, otherwise the (trimmed)
    evidence table with contaminants removed.
    """

    metric_id = "msms_missed_cleavages"
    heatmap_name = "MSMS: Missed cleavages"
    title = "MSMS: Missed cleavages per Raw file"
    TABLE = TABLE_MSMS
    OPTIONAL_INPUTS = ("df_msms", "df_evd")
    QUALIFIER = "zero_missed_fraction"

    @staticmethod
    def _usable(df: Optional[pl.DataFrame]) -> bool:
        return df is not None and {"fc_raw_file", "missed_cleavages"} <= set(df.columns)

    def precondition(self, df_msms=None, df_evd=None, **_):
        if not (self._usable(df_msms) or self._usable(df_evd)):
            return "no table with missed cleavages"
        return None

    def _compute(self, df_msms: Optional[pl.DataFrame] = None, df_evd: Optional[pl.DataFrame] = None) -> None:
        threshold = float(self.config.threshold("msms_missed_cleavages"))
        if self._usable(df_msms):
            df = df_msms
            if "reverse" in df.columns:
                df = df.filter(~pl.col("reverse"))
            self.out_data["source"] = "msms"
        else:
            df = df_evd
            if "contaminant" in df.columns:
                df = df.filter(~pl.col("contaminant"))
            self.out_data["source"] = "evidence"

        data = (
            df.filter(pl.col("missed_cleavages").is_not_null())
            .with_columns(pl.col("missed_cleavages").clip(upper_bound=3).cast(pl.Int64))
            .select("fc_raw_file", "missed_cleavages").to_pandas()
        )
        counts = pd.crosstab(data["fc_raw_file"], data["missed_cleavages"])
        fraction = counts.div(counts.sum(axis=1), axis=0)
        zero = fraction[0] if 0 in fraction.columns else pd.Series(0.0, index=fraction.index)

        shown = (fraction * 100).rename(columns={3: ">=3"})
        shown.columns = [str(c) for c in shown.columns]
        self.plots.append(stacked_bars(shown, f"{self.title} (target: {100 * threshold:g}% without)",
                                       "peptides [%]"))
        self.out_data["missed_cleavages"] = fraction
        self.out_data["zero_missed_fraction"] = zero.astype(float)
        self.score = qual_lin_thresh(zero.astype(float), threshold)
