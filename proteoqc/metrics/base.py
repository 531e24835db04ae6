"""
Metric unit base class and the ordered registry.

A unit declares which canonical tables it reads (INPUTS / OPTIONAL_INPUTS), which
columns must be present (REQUIRED_COLUMNS) and which earlier units' statistics it
depends on (DEPENDS_ON). `set_data` gates on all of these before computing:

    uninitialized -> populated -> scored | skipped | failed

Units are write-once: a second `set_data` call raises.
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import polars as pl
from matplotlib.figure import Figure

from proteoqc.utils.utils import log_info, log_warning
from proteoqc.workflow.config import QCConfig


class MetricState(str, Enum):
    UNINITIALIZED = "uninitialized"
    POPULATED = "populated"
    SCORED = "scored"
    SKIPPED = "skipped"
    FAILED = "failed"


Score = Union[pd.Series, float, None]


class MetricUnit:
    """One QC metric: plots, named statistics (`out_data`) and an optional score."""

    metric_id: str = ""
    heatmap_name: str = ""
    title: str = ""

    TABLE: str = ""                                 # table whose arrival triggers the unit
    INPUTS: Tuple[str, ...] = ()                    # required input tables
    OPTIONAL_INPUTS: Tuple[str, ...] = ()
    REQUIRED_COLUMNS: Dict[str, Tuple[str, ...]] = {}
    DEPENDS_ON: Tuple[Tuple[str, str], ...] = ()    # (metric_id, out_data key)
    QUALIFIER: Optional[str] = None                 # out_data key reported next to the score

    def __init__(self, config: QCConfig):
        self.config = config
        self.state = MetricState.UNINITIALIZED
        self.plots: List[Figure] = []
        self.out_data: Dict[str, Any] = {}
        self.score: Score = None
        self.reason = ""
        self._registry: Optional["MetricRegistry"] = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.metric_id!r}, state={self.state.value})"

    # ------------------------------------------------------------------ lifecycle
    def set_data(self, registry: Optional["MetricRegistry"] = None, **inputs) -> MetricState:
        """Gate, then compute. Exceptions from the computation propagate to the caller."""
        if self.state != MetricState.UNINITIALIZED:
            raise RuntimeError(f"Metric '{self.metric_id}' was already populated ({self.state.value}).")
        self._registry = registry

        reason = self._gate(inputs)
        if reason:
            return self.skip(reason)

        self.state = MetricState.POPULATED
        self._compute(**{k: v for k, v in inputs.items() if k in self.INPUTS + self.OPTIONAL_INPUTS})
        if self.state == MetricState.SKIPPED:
            return self.state
        if self.score is not None:
            self.state = MetricState.SCORED
        return self.state

    def skip(self, reason: str) -> MetricState:
        self.state = MetricState.SKIPPED
        self.reason = reason
        log_info(f"{self.metric_id}: skipped ({reason})")
        return self.state

    def fail(self, error: BaseException) -> None:
        self.state = MetricState.FAILED
        self.reason = f"{type(error).__name__}: {error}"
        self.score = None
        self.out_data = {}
        for fig in self.plots:
            plt.close(fig)
        self.plots = []

    def _gate(self, inputs: Dict[str, Any]) -> Optional[str]:
        for name in self.INPUTS:
            if inputs.get(name) is None:
                return f"input '{name}' not available"
        for name, cols in self.REQUIRED_COLUMNS.items():
            df = inputs.get(name)
            if df is None:
                continue
            missing = [c for c in cols if c not in df.columns]
            if missing:
                return f"column(s) {missing} missing in '{name}'"
        for metric_id, key in self.DEPENDS_ON:
            if self.dependency(metric_id, key) is None:
                msg = f"{self.metric_id}: requires '{key}' from '{metric_id}', which did not complete"
                log_warning(msg)
                return msg
        return self.precondition(**inputs)

    def precondition(self, **inputs) -> Optional[str]:
        """Unit specific gate; return a reason to skip."""
        return None

    def dependency(self, metric_id: str, key: str) -> Any:
        """`key` from an earlier unit; None unless that unit completed (populated or scored)."""
        if self._registry is None or metric_id not in self._registry:
            return None
        upstream = self._registry[metric_id]
        if upstream.state not in (MetricState.POPULATED, MetricState.SCORED):
            return None
        return upstream.out_data.get(key)

    def _compute(self, **inputs) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------ helpers
    def qualifier_value(self, sample: Optional[str] = None) -> Any:
        if self.QUALIFIER is None or self.QUALIFIER not in self.out_data:
            return None
        value = self.out_data[self.QUALIFIER]
        if isinstance(value, pd.Series):
            value = value.get(sample) if sample is not None else None
        if value is None or pd.isna(value):
            return None
        return float(value) if isinstance(value, (int, float, np.number)) else value

    def score_for(self, sample: str) -> Optional[float]:
        if isinstance(self.score, pd.Series):
            value = self.score.get(sample)
        else:
            value = self.score
        if value is None or pd.isna(value):
            return None
        return float(value)


class MetricRegistry:
    """Insertion ordered metric_id -> unit. Order is execution and report order."""

    def __init__(self, units: Optional[List[MetricUnit]] = None):
        self._units: Dict[str, MetricUnit] = {}
        for unit in units or []:
            self.add(unit)

    def add(self, unit: MetricUnit) -> None:
        if not unit.metric_id:
            raise ValueError(f"{type(unit).__name__} has no metric_id.")
        if unit.metric_id in self._units:
            raise ValueError(f"Duplicate metric id '{unit.metric_id}'.")
        self._units[unit.metric_id] = unit

    def __getitem__(self, metric_id: str) -> MetricUnit:
        return self._units[metric_id]

    def __contains__(self, metric_id: str) -> bool:
        return metric_id in self._units

    def __iter__(self) -> Iterator[MetricUnit]:
        return iter(self._units.values())

    def __len__(self) -> int:
        return len(self._units)

    def ids(self) -> List[str]:
        return list(self._units)

    def units_for(self, table: str) -> List[MetricUnit]:
        return [u for u in self._units.values() if u.TABLE == table]

    def states(self) -> Dict[str, MetricState]:
        return {k: u.state for k, u in self._units.items()}


def per_sample(df: pl.DataFrame, expr: pl.Expr, name: str, by: str = "fc_raw_file") -> pd.Series:
    """One value per sample (short raw file name), in order of first appearance."""
    out = df.group_by(by, maintain_order=True).agg(expr.alias(name))
    return pd.Series(out[name].to_list(), index=out[by].to_list(), name=name, dtype=float)
