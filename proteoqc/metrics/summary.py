import numpy as np
import pandas as pd
import polars as pl

from proteoqc.export.plot_utils import new_figure, plot_bar_on_axis, plot_sample_bars
from proteoqc.metrics.base import MetricUnit, per_sample
from proteoqc.metrics.qualities import qual_lin_thresh
from proteoqc.utils.semantics import TABLE_SUMMARY

ID_RATE_PALETTE = {"bad": "#d73027", "ok": "#fee08b", "great": "#1a9850"}


def id_rate_category(rate: float, bad: float, great: float) -> str:
    if rate < bad:
        return "bad"
    if rate < great:
        return "ok"
    return "great"


class SummaryIdRate(MetricUnit):
    """MS/MS identification rate per raw file, categorized as bad / ok / great."""

    metric_id = "sm_id_rate"
    heatmap_name = "SM: MS/MS ID rate"
    title = "SM: MS/MS identified per Raw file"
    TABLE = TABLE_SUMMARY
    INPUTS = ("df_smy",)
    REQUIRED_COLUMNS = {"df_smy": ("fc_raw_file", "ms_ms_identified_pct")}
    QUALIFIER = "id_rate"

    def _compute(self, df_smy: pl.DataFrame) -> None:
        bad = float(self.config.threshold("id_rate_bad"))
        great = float(self.config.threshold("id_rate_great"))
        if not 0 < bad < great:
            raise ValueError(f"id_rate thresholds must satisfy 0 < bad < great, got {bad} / {great}")

        rate = per_sample(df_smy, pl.col("ms_ms_identified_pct").mean(), "id_rate")
        category = rate.apply(lambda r: id_rate_category(r, bad, great) if pd.notna(r) else "bad")

        data = pd.DataFrame({"sample": rate.index, "id_rate": rate.values, "category": category.values})
        fig, ax = new_figure(self.title)
        plot_bar_on_axis(ax, data, x="sample", y="id_rate", hue="category", palette=ID_RATE_PALETTE,
                         title=f"bad < {bad:g}% <= ok < {great:g}% <= great", xlabel="",
                         ylabel="MS/MS identified [%]")
        ax.axhline(bad, color=ID_RATE_PALETTE["bad"], linestyle="--", linewidth=1)
        ax.axhline(great, color=ID_RATE_PALETTE["great"], linestyle="--", linewidth=1)
        fig.tight_layout()
        self.plots.append(fig)

        self.out_data["id_rate"] = rate
        self.out_data["category"] = category
        self.score = qual_lin_thresh(rate.fillna(0), great)


class SummaryTIC(MetricUnit):
    """Total ion current per raw file (not every search engine reports it)."""

    metric_id = "sm_tic"
    heatmap_name = "SM: TIC"
    title = "SM: Total ion current per Raw file"
    TABLE = TABLE_SUMMARY
    INPUTS = ("df_smy",)
    REQUIRED_COLUMNS = {"df_smy": ("fc_raw_file", "tic")}

    def precondition(self, df_smy=None, **_):
        if df_smy is not None and df_smy["tic"].drop_nulls().len() == 0:
            return "no TIC values reported"
        return None

    def _compute(self, df_smy: pl.DataFrame) -> None:
        tic = per_sample(df_smy, pl.col("tic").sum(), "tic")
        self.out_data["tic"] = tic
        self.out_data["median_tic"] = float(np.nanmedian(tic)) if len(tic) else np.nan
        self.plots.append(plot_sample_bars(tic, self.title, "TIC", log_scale=True))
