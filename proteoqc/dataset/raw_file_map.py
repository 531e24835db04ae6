"""Bidirectional mapping between raw file names and short display names.

The mapping is persisted as a small tab-separated file next to the report, so users
can rename (or reorder) samples by hand. Manual entries always win over
auto-detected short names as long as the raw file still exists in the data.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import polars as pl

from proteoqc.exceptions import ConfigError, NameCollisionError
from proteoqc.utils.name_shortener import shorten_names
from proteoqc.utils.utils import log_info, log_warning

MAPPING_HEADER = (
    "# This file can be used to manually substitute raw file names within the report.\n"
    "# Edit the 'new.name' column (names must stay unique) and/or the 'order.by' column.\n"
)


class RawFileMap:
    """raw file name <-> short name, one entry per raw file."""

    COL_LONG = "orig.name"
    COL_SHORT = "new.name"
    COL_ORDER = "order.by"

    def __init__(self, min_length: int = 8, max_length: Optional[int] = 10):
        self.min_length = min_length
        self.max_length = max_length
        self._short: Dict[str, str] = {}
        self._order: Dict[str, int] = {}
        self._manual: set[str] = set()
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._short)

    def __contains__(self, long_name: str) -> bool:
        return long_name in self._short

    # ------------------------------------------------------------------ persistence
    def read_mapping_file(self, path) -> bool:
        """Seed the mapping from a previous run. Returns False if there is no file."""
        path = Path(path)
        if not path.is_file():
            return False

        df = pl.read_csv(path, separator="\t", infer_schema_length=0, comment_prefix="#")
        missing = [c for c in (self.COL_LONG, self.COL_SHORT) if c not in df.columns]
        if missing:
            raise NameCollisionError(
                f"Mapping file '{path}' is missing column(s) {missing}.",
                "Delete the file to have it re-created.",
            )

        longs, shorts, orders = [], {}, {}
        for row, entry in enumerate(df.iter_rows(named=True), start=1):
            long_name = (entry[self.COL_LONG] or "").strip()
            if not long_name:
                log_warning(f"Mapping file '{path.name}', row {row}: no raw file name, row ignored.")
                continue
            longs.append(long_name)
            order = self._parse_order(entry.get(self.COL_ORDER), row, path)
            orders[long_name] = row if order is None else order
            # a blank short name is derived again
            short = (entry[self.COL_SHORT] or "").strip()
            if short:
                shorts[long_name] = short

        self._check_unique(longs, "raw file names", path)
        self._check_unique(list(shorts.values()), "short names", path)

        self._short = shorts
        self._order = orders
        self._manual = set(shorts)
        log_info(f"Read {len(longs)} raw file name mapping(s) from '{path.name}'.")
        return True

    @staticmethod
    def _parse_order(value, row: int, path) -> Optional[int]:
        if value is None or str(value).strip() == "":
            return None
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            raise ConfigError(
                f"Mapping file '{path}', row {row}: 'order.by' value '{value}' is not a number.",
                "Use whole numbers in the 'order.by' column, or leave it empty.",
            ) from None

    @staticmethod
    def _check_unique(values: List[str], what: str, path) -> None:
        dups = sorted({v for v in values if values.count(v) > 1})
        if dups:
            raise NameCollisionError(
                f"Mapping file '{path}' contains duplicated {what}: {dups}.",
                "Every raw file must map to exactly one unique short name.",
            )

    def write_mapping_file(self, path) -> None:
        """Write the mapping; entries whose raw file vanished from the data are dropped."""
        frame = self.to_frame()
        Path(path).write_text(MAPPING_HEADER + frame.write_csv(separator="\t"), encoding="utf-8")

    # ------------------------------------------------------------------ mapping
    def add_raw_files(self, names: Iterable[str]) -> None:
        """Register raw files seen in a table; new ones get an auto-derived short name."""
        names = [str(n) for n in dict.fromkeys(names) if n is not None and str(n) != ""]
        self._seen.update(names)
        new = [n for n in names if n not in self._short]
        if not new:
            return

        auto_pool = [n for n in self._seen if n not in self._manual]
        auto_pool = sorted(auto_pool, key=lambda n: (self._order.get(n, 10**9), n))
        candidates = shorten_names(auto_pool, self.min_length, self.max_length)

        used = set(self._short.values())
        next_order = max(self._order.values(), default=0) + 1
        for name in new:
            short = candidates.get(name, name)
            if short in used:
                short = self._disambiguate(name, used)
            self._short[name] = short
            used.add(short)
            if name not in self._order:
                self._order[name] = next_order
                next_order += 1

        if any(n in self._manual for n in self._seen):
            log_info(f"Added {len(new)} raw file(s) to an existing name mapping.")

    @staticmethod
    def _disambiguate(name: str, used: set[str]) -> str:
        if name not in used:
            return name
        i = 2
        while f"{name}_{i}" in used:
            i += 1
        log_warning(f"Short name for '{name}' clashes with an existing one; using '{name}_{i}'.")
        return f"{name}_{i}"

    def _active(self) -> List[str]:
        """Raw files of this run (or all known ones, if no data was seen yet), in report order."""
        pool = [n for n in self._short if n in self._seen] if self._seen else list(self._short)
        return sorted(pool, key=lambda n: (self._order.get(n, 10**9), n))

    def to_short(self, long_name: str) -> str:
        return self._short[long_name]

    def mapping(self) -> Dict[str, str]:
        return {n: self._short[n] for n in self._active()}

    def short_names(self) -> List[str]:
        return [self._short[n] for n in self._active()]

    def is_manual(self, long_name: str) -> bool:
        return long_name in self._manual

    def to_frame(self) -> pl.DataFrame:
        active = self._active()
        return pl.DataFrame(
            {
                self.COL_LONG: active,
                self.COL_SHORT: [self._short[n] for n in active],
                self.COL_ORDER: [self._order[n] for n in active],
            },
            schema={self.COL_LONG: pl.Utf8, self.COL_SHORT: pl.Utf8, self.COL_ORDER: pl.Int64},
        )

    def annotate(self, df: Optional[pl.DataFrame], column: str = "raw_file") -> Optional[pl.DataFrame]:
        """Add `fc_raw_file` (short name) next to `column`."""
        if df is None or column not in df.columns:
            return df
        self.add_raw_files(df[column].unique(maintain_order=True).to_list())
        return df.with_columns(
            pl.col(column).replace(self._short).alias("fc_raw_file")
        )
