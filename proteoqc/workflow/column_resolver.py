import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import polars as pl

from proteoqc.exceptions import LocaleError, MissingColumnError
from proteoqc.utils.semantics import FAMILY_LFQ, FAMILY_RAW, FAMILY_REPORTER
from proteoqc.utils.utils import log_warning
from proteoqc.workflow.column_schema import (
    FLAG,
    NUMERIC,
    RATIO_EXCLUDE,
    ColumnFamily,
    ColumnPattern,
    SchemaEntry,
)

FLAG_TRUE = ("+", "true", "1", "yes")


def normalize_name(name: str) -> str:
    """'MS/MS Identified [%]' -> 'ms.ms.identified.pct'"""
    out = str(name).lower().replace("%", "pct")
    out = re.sub(r"[^0-9a-z]+", ".", out)
    return out.strip(".")


class ColumnResolver:
    """Selects, renames and casts the columns of one raw table according to a schema."""

    def __init__(self, schema: Sequence[SchemaEntry], table: str = ""):
        self.schema = tuple(schema)
        self.table = table

    def plan(self, columns: Iterable[str]) -> Dict[str, Tuple[str, str]]:
        """normalized raw column -> (canonical name, dtype), in schema order.

        First match wins per semantic name; a raw column is claimed at most once.
        """
        columns = list(dict.fromkeys(columns))
        claimed: Dict[str, Tuple[str, str]] = {}

        for entry in self.schema:
            if isinstance(entry, ColumnPattern):
                hit = None
                for literal in (entry.semantic, *entry.names):
                    if literal in columns and literal not in claimed:
                        hit = literal
                        break
                if hit is None and entry.regex:
                    hit = next(
                        (c for c in columns if c not in claimed and re.search(entry.regex, c)),
                        None,
                    )
                if hit is not None:
                    claimed[hit] = (entry.semantic, entry.dtype)
            elif isinstance(entry, ColumnFamily):
                for c in columns:
                    if c in claimed or not re.search(entry.regex, c):
                        continue
                    if any(re.search(x, c) for x in entry.exclude):
                        continue
                    claimed[c] = (c, entry.dtype)
        return claimed

    def missing_required(self, columns: Iterable[str]) -> List[str]:
        found = {target for target, _ in self.plan(columns).values()}
        return [
            e.semantic for e in self.schema
            if isinstance(e, ColumnPattern) and e.required and e.semantic not in found
        ]

    def needed_columns(self, raw_header: Sequence[str]) -> List[str]:
        """Original header names which have to be read (first occurrence per normalized name)."""
        by_norm: Dict[str, str] = {}
        for name in raw_header:
            by_norm.setdefault(normalize_name(name), name)
        plan = self.plan(by_norm.keys())
        return [by_norm[n] for n in plan]

    def resolve(self, df: pl.DataFrame, source: str = "") -> pl.DataFrame:
        """Return the canonical table: only planned columns, renamed and cast.

        Raises MissingColumnError for required columns and LocaleError for numeric
        columns without a single parsable value.
        """
        source = source or self.table

        # normalize names, dropping later duplicates
        keep, seen = [], set()
        for c in df.columns:
            n = normalize_name(c)
            if n in seen:
                continue
            seen.add(n)
            keep.append(c)
        df = df.select(keep).rename({c: normalize_name(c) for c in keep})

        missing = self.missing_required(df.columns)
        if missing:
            raise MissingColumnError(
                f"{source}: {', '.join(missing)}",
                f"Available columns: {', '.join(df.columns[:30])}",
            )

        plan = self.plan(df.columns)
        exprs = []
        for raw, (target, dtype) in plan.items():
            if dtype == NUMERIC:
                exprs.append(self._numeric(df, raw, source).alias(target))
            elif dtype == FLAG:
                exprs.append(self._flag(df, raw).alias(target))
            else:
                exprs.append(pl.col(raw).cast(pl.Utf8).alias(target))
        return df.select(exprs)

    @staticmethod
    def _numeric(df: pl.DataFrame, col: str, source: str) -> pl.Expr:
        if df.schema[col].is_numeric():
            return pl.col(col).cast(pl.Float64).fill_nan(None)

        text = df[col].cast(pl.Utf8).str.strip_chars()
        parsed = text.cast(pl.Float64, strict=False)
        n_text = int((text.is_not_null() & (text != "")).sum())
        if n_text > 0 and parsed.null_count() == len(parsed):
            raise LocaleError(
                f"{source}: column '{col}'",
                f"First values: {text.drop_nulls().head(3).to_list()}",
            )
        if n_text > 0 and parsed.is_not_null().sum() < n_text:
            log_warning(f"{source}: {n_text - parsed.is_not_null().sum()} value(s) of '{col}' are not numeric.")
        return pl.col(col).cast(pl.Utf8).str.strip_chars().cast(pl.Float64, strict=False).fill_nan(None)

    @staticmethod
    def _flag(df: pl.DataFrame, col: str) -> pl.Expr:
        if df.schema[col] == pl.Boolean:
            return pl.col(col).fill_null(False)
        return (
            pl.col(col).cast(pl.Utf8).str.strip_chars().str.to_lowercase()
            .is_in(list(FLAG_TRUE)).fill_null(False)
        )


# ---------------------------------------------------------------------------
# Channel selection (condition / isotopic label / reporter tiers)
# ---------------------------------------------------------------------------

_FAMILY_PREFIX = {
    FAMILY_RAW: r"intensity",
    FAMILY_LFQ: r"lfq\.intensity",
}


def select_channel_columns(columns: Iterable[str], family: str) -> List[str]:
    """Pick the intensity columns that represent one physical channel each.

    raw:      label tier ('intensity.h[.cond]'), else condition tier ('intensity.<cond>'),
              else the bare 'intensity' column.
    lfq:      label tier, else condition tier.
    reporter: 'reporter.intensity.<n>'.

    Within the label tier, bare label columns ('intensity.h') are dropped as soon as any
    condition-qualified label column exists, since both describe the same channel.
    """
    columns = list(columns)
    if family == FAMILY_REPORTER:
        return [c for c in columns if re.search(r"^reporter\.intensity\.[0-9]", c)]
    if family not in _FAMILY_PREFIX:
        raise ValueError(f"Unknown intensity family '{family}'.")

    prefix = _FAMILY_PREFIX[family]
    tier1 = [c for c in columns if re.search(rf"^{prefix}\.[hlm](\.|$)", c)]
    if tier1:
        if family == FAMILY_LFQ:
            return tier1
        bare = [c for c in tier1 if re.search(rf"^{prefix}\.[hlm]$", c)]
        if len(bare) == len(tier1):
            return tier1
        return [c for c in tier1 if c not in bare]

    tier2 = [c for c in columns if re.search(rf"^{prefix}\..", c)]
    if tier2:
        return tier2
    if family == FAMILY_RAW and "intensity" in columns:
        return ["intensity"]
    return []


def select_ratio_columns(columns: Iterable[str]) -> List[str]:
    return [
        c for c in columns
        if re.search(r"^ratio\.[hm]\.l", c) and not any(re.search(x, c) for x in RATIO_EXCLUDE)
    ]


def channel_suffix(column: str, family: str) -> Optional[str]:
    """'intensity.h.conda' -> 'h.conda'; None for the bare column."""
    prefix = {FAMILY_RAW: "intensity", FAMILY_LFQ: "lfq.intensity",
              FAMILY_REPORTER: "reporter.intensity"}[family]
    rest = column[len(prefix):].lstrip(".")
    return rest or None
