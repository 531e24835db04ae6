"""Score matrix (metric x sample) and its tab-delimited serialization."""

from pathlib import Path
from typing import Iterable

import pandas as pd

from proteoqc.dataset.raw_file_map import RawFileMap
from proteoqc.metrics.base import MetricState, MetricUnit

ALL_SAMPLES = "all"


def build_heatmap(units: Iterable[MetricUnit], raw_file_map: RawFileMap) -> pd.DataFrame:
    """
    One row per scored unit (registry order), one column per sample short name.

    Per-sample scores are placed by short name; a single aggregate score is
    broadcast across all columns. Without samples there is one column 'all'.
    """
    samples = raw_file_map.short_names() or [ALL_SAMPLES]
    rows = {}
    for unit in units:
        if unit.state != MetricState.SCORED:
            continue
        if isinstance(unit.score, pd.Series):
            score = unit.score.astype(float)
            score = score[~score.index.duplicated()]
            rows[unit.metric_id] = score.reindex(samples)
        else:
            rows[unit.metric_id] = pd.Series(float(unit.score), index=samples)

    matrix = pd.DataFrame(rows, index=samples, dtype=float).T
    matrix.index.name = "metric"
    return matrix


def heatmap_names(matrix: pd.DataFrame, units: Iterable[MetricUnit]) -> list:
    """Display names for the matrix rows."""
    names = {u.metric_id: u.heatmap_name or u.metric_id for u in units}
    return [names.get(i, i) for i in matrix.index]


def write_heatmap_table(matrix: pd.DataFrame, path) -> None:
    """Tab-delimited: 'metric' column plus one column per sample, empty cells are null."""
    out = matrix.copy()
    out.index.name = "metric"
    out.to_csv(Path(path), sep="\t", na_rep="")


def read_heatmap_table(path) -> pd.DataFrame:
    matrix = pd.read_csv(Path(path), sep="\t", index_col="metric", keep_default_na=False,
                         na_values=[""], dtype={"metric": str})
    matrix.columns = [str(c) for c in matrix.columns]
    return matrix.astype(float)
