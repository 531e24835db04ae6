"""
Protein group metrics.

Samples here are intensity *columns* (channels), not raw files: scores are
aggregated into a single value which the heatmap spreads across all samples.
"""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import polars as pl
from sklearn.decomposition import PCA

from proteoqc.dataset.column_group_map import ColumnGroupMap, union_group_maps
from proteoqc.export.plot_utils import (
    new_figure,
    plot_box_on_axis,
    plot_histogram_on_axis,
    plot_sample_bars,
    plot_scatter_on_axis,
)
from proteoqc.metrics.base import MetricUnit
from proteoqc.metrics.qualities import qual_centered_ref, qual_lin_thresh
from proteoqc.utils.name_shortener import shorten_names
from proteoqc.utils.semantics import FAMILY_LFQ, FAMILY_RAW, FAMILY_REPORTER, TABLE_PROTEIN_GROUPS
from proteoqc.workflow.column_resolver import select_ratio_columns
from proteoqc.workflow.config import QCConfig


def channel_map(df_pg: pl.DataFrame, family: str, config: QCConfig) -> ColumnGroupMap:
    return ColumnGroupMap.from_columns(
        df_pg.columns,
        family,
        min_length=int(config.get("report.name_min_length")),
        max_length=config.get("report.name_max_length"),
    )


def log2_long(df_pg: pl.DataFrame, group_map: ColumnGroupMap) -> pd.DataFrame:
    """Positive intensities of the mapped columns as long table (sample, log2_intensity)."""
    mapping = group_map.to_short()
    long = (
        df_pg.select(list(mapping))
        .unpivot(variable_name="column", value_name="intensity")
        .filter(pl.col("intensity") > 0)
        .with_columns(
            pl.col("column").replace_strict(mapping).alias("sample"),
            pl.col("intensity").log(2).alias("log2_intensity"),
        )
    )
    return long.select("sample", "log2_intensity").to_pandas()


class _PGIntensity(MetricUnit):
    """Shared logic of the raw / LFQ / reporter intensity distributions."""

    TABLE = TABLE_PROTEIN_GROUPS
    INPUTS = ("df_pg",)
    FAMILY = FAMILY_RAW
    QUALIFIER = "median_log2_intensity"

    def group_map(self, df_pg: pl.DataFrame) -> ColumnGroupMap:
        return channel_map(df_pg, self.FAMILY, self.config)

    def precondition(self, df_pg=None, **_):
        if df_pg is not None and not len(self.group_map(df_pg)):
            return f"no {self.FAMILY} intensity columns"
        return None

    def _compute(self, df_pg: pl.DataFrame) -> None:
        threshold = float(self.config.threshold("pg_intensity"))
        gmap = self.group_map(df_pg)
        data = log2_long(df_pg, gmap)

        medians = data.groupby("sample", sort=False)["log2_intensity"].median()
        medians = medians.reindex(gmap.short_names())

        fig, ax = new_figure(self.title)
        plot_box_on_axis(ax, data, x="sample", y="log2_intensity", title=f"target: {threshold:g}",
                         xlabel="", ylabel="log2 intensity", threshold=threshold)
        fig.tight_layout()
        self.plots.append(fig)

        self.out_data["group_map"] = gmap.table
        self.out_data["median_per_column"] = medians
        self.out_data["median_log2_intensity"] = float(np.nanmedian(medians)) if medians.notna().any() else np.nan
        self.score = float(qual_lin_thresh(medians.fillna(0), threshold).mean())


class PGRawIntensity(_PGIntensity):
    metric_id = "pg_raw_intensity"
    heatmap_name = "PG: Intensity"
    title = "PG: Raw intensity distribution"
    FAMILY = FAMILY_RAW


class PGLFQIntensity(_PGIntensity):
    metric_id = "pg_lfq_intensity"
    heatmap_name = "PG: LFQ intensity"
    title = "PG: LFQ intensity distribution"
    FAMILY = FAMILY_LFQ


class PGReporterIntensity(_PGIntensity):
    metric_id = "pg_reporter_intensity"
    heatmap_name = "PG: Reporter intensity"
    title = "PG: Reporter intensity distribution"
    FAMILY = FAMILY_REPORTER


class PGContaminants(MetricUnit):
    """Share of raw intensity coming from contaminant protein groups, per channel."""

    metric_id = "pg_contaminants"
    heatmap_name = "PG: Contaminants"
    title = "PG: Contaminant intensity per channel"
    TABLE = TABLE_PROTEIN_GROUPS
    INPUTS = ("df_pg",)
    REQUIRED_COLUMNS = {"df_pg": ("contaminant",)}
    QUALIFIER = "max_contaminant_pct"

    def precondition(self, df_pg=None, **_):
        if df_pg is not None and not len(channel_map(df_pg, FAMILY_RAW, self.config)):
            return "no raw intensity columns"
        return None

    def _compute(self, df_pg: pl.DataFrame) -> None:
        threshold = float(self.config.threshold("evd_contaminant_pct"))
        gmap = channel_map(df_pg, FAMILY_RAW, self.config)
        mapping = gmap.to_short()

        totals = df_pg.select([pl.col(c).fill_null(0).sum().alias(c) for c in mapping])
        cont = df_pg.filter(pl.col("contaminant")).select([pl.col(c).fill_null(0).sum().alias(c) for c in mapping])
        pct = pd.Series(
            {mapping[c]: (100.0 * cont[c][0] / totals[c][0]) if totals[c][0] else np.nan for c in mapping},
            name="contaminant_pct",
        )

        self.plots.append(plot_sample_bars(pct, self.title, "contaminant intensity [%]", threshold=threshold))
        self.out_data["contaminant_pct"] = pct
        self.out_data["max_contaminant_pct"] = float(pct.max()) if pct.notna().any() else np.nan
        self.score = float((pct.fillna(100) <= threshold).mean())


class PGPca(MetricUnit):
    """PCA of all intensity families (channels as points), for clustering by eye."""

    metric_id = "pg_pca"
    heatmap_name = "PG: PCA"
    title = "PG: PCA of intensities"
    TABLE = TABLE_PROTEIN_GROUPS
    INPUTS = ("df_pg",)

    def group_maps(self, df_pg: pl.DataFrame) -> List[ColumnGroupMap]:
        return [channel_map(df_pg, f, self.config) for f in (FAMILY_RAW, FAMILY_LFQ, FAMILY_REPORTER)]

    def precondition(self, df_pg=None, **_):
        if df_pg is not None and not any(len(m) >= 2 for m in self.group_maps(df_pg)):
            return "fewer than two intensity columns in every family"
        return None

    @staticmethod
    def project(matrix: np.ndarray) -> Optional[Dict[str, np.ndarray]]:
        """rows = proteins, columns = channels; only complete rows are used."""
        complete = matrix[np.all(np.isfinite(matrix), axis=1)]
        if complete.shape[0] < 2 or complete.shape[1] < 2:
            return None
        pca = PCA(n_components=2)
        coords = pca.fit_transform(complete.T)
        return {"coords": coords, "explained": pca.explained_variance_ratio_}

    def _compute(self, df_pg: pl.DataFrame) -> None:
        maps = [m for m in self.group_maps(df_pg) if len(m) >= 2]
        names = union_group_maps(maps)
        self.out_data["group_map"] = names
        explained = {}

        for gmap in maps:
            cols = gmap.long_names()
            values = df_pg.select([pl.col(c).cast(pl.Float64) for c in cols]).to_numpy()
            with np.errstate(divide="ignore", invalid="ignore"):
                values = np.where(values > 0, np.log2(values), np.nan)
            result = self.project(values)
            if result is None:
                continue
            labels = names.loc[names["family"] == gmap.family, "short"].tolist()
            data = pd.DataFrame({"PC1": result["coords"][:, 0], "PC2": result["coords"][:, 1], "sample": labels})
            var = result["explained"]
            fig, ax = new_figure(f"{self.title} ({gmap.family})")
            plot_scatter_on_axis(ax, data, x="PC1", y="PC2", hue="sample", annotate="sample",
                                 title="", xlabel=f"PC1 ({100 * var[0]:.1f}%)", ylabel=f"PC2 ({100 * var[1]:.1f}%)")
            if ax.get_legend() is not None:
                ax.get_legend().remove()
            fig.tight_layout()
            self.plots.append(fig)
            explained[gmap.family] = [float(v) for v in var]

        self.out_data["explained_variance"] = explained


class PGRatio(MetricUnit):
    """Distribution of log2 label ratios (H/L, M/L).

    A ratio column whose median |log2 ratio| reaches `pg_ratio_lab_inc_thresh` is
    taken as a label incorporation test and scores its labelled share; every other
    column is expected to be centred around 0.
    """

    metric_id = "pg_ratio"
    heatmap_name = "PG: Ratios"
    title = "PG: Ratio distribution"
    TABLE = TABLE_PROTEIN_GROUPS
    INPUTS = ("df_pg",)

    def precondition(self, df_pg=None, **_):
        if df_pg is not None and not select_ratio_columns(df_pg.columns):
            return "no ratio columns"
        return None

    def ratio_names(self, columns: List[str]) -> Dict[str, str]:
        suffixes = {c: c[len("ratio."):] for c in columns}
        shorts = shorten_names(
            suffixes.values(),
            min_length=int(self.config.get("report.name_min_length")),
            max_length=self.config.get("report.name_max_length"),
        )
        return {c: shorts[s] for c, s in suffixes.items()}

    def _compute(self, df_pg: pl.DataFrame) -> None:
        threshold = float(self.config.threshold("pg_ratio_lab_inc_thresh"))
        mapping = self.ratio_names(select_ratio_columns(df_pg.columns))
        long = (
            df_pg.select([pl.col(c).cast(pl.Float64) for c in mapping])
            .unpivot(variable_name="column", value_name="value")
            .filter(pl.col("value") > 0)
            .with_columns(
                pl.col("column").replace_strict(mapping).alias("ratio"),
                pl.col("value").log(2).alias("log2_ratio"),
                (pl.col("value") / (1 + pl.col("value"))).alias("heavy_share"),
            )
        )
        stats = (
            long.group_by("ratio", maintain_order=True)
            .agg(pl.col("log2_ratio").median(), pl.col("heavy_share").median())
            .to_pandas()
            .set_index("ratio")
            .reindex(list(mapping.values()))
        )

        median = stats["log2_ratio"]
        # labelled share: H/(H+L) for H/L ratios above 1, L/(H+L) below
        incorporation = 100 * stats["heavy_share"].where(median >= 0, 1 - stats["heavy_share"])
        lab_inc = median.abs() >= threshold
        per_ratio = qual_centered_ref(median, threshold).where(~lab_inc, incorporation / 100)

        subtitle = ", ".join(
            f"{name}: {incorporation[name]:.1f}% labelled" for name in median.index[lab_inc.to_numpy()]
        )
        fig, ax = new_figure(self.title)
        plot_histogram_on_axis(ax, long.select("ratio", "log2_ratio").to_pandas(), x="log2_ratio", hue="ratio",
                               title=subtitle, xlabel="log2 ratio")
        fig.tight_layout()
        self.plots.append(fig)

        self.out_data["median_log2_ratio"] = median
        self.out_data["label_incorporation_pct"] = incorporation[lab_inc]
        self.out_data["score_per_ratio"] = per_ratio
        if per_ratio.notna().any():
            self.score = float(per_ratio.mean())
