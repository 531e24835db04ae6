from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from proteoqc.exceptions import NameCollisionError
from proteoqc.utils.name_shortener import shorten_names
from proteoqc.workflow.column_resolver import channel_suffix, select_channel_columns


@dataclass
class ColumnGroupMap:
    """long column name -> short channel name, for one intensity family."""
    family: str
    table: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame({"long": pd.Series(dtype=str), "short": pd.Series(dtype=str)})
    )

    @classmethod
    def from_columns(
        cls,
        columns: Iterable[str],
        family: str,
        min_length: int = 8,
        max_length: Optional[int] = None,
    ) -> "ColumnGroupMap":
        """Select the family's channel columns; short names are the shortened column suffixes."""
        selected = select_channel_columns(columns, family)
        suffixes = [channel_suffix(c, family) or family for c in selected]
        auto = shorten_names(suffixes, min_length=min_length, max_length=max_length)
        shorts = [auto[s] for s in suffixes]
        return cls(family, pd.DataFrame({"long": selected, "short": shorts}))

    def __len__(self) -> int:
        return len(self.table)

    def long_names(self) -> List[str]:
        return self.table["long"].tolist()

    def short_names(self) -> List[str]:
        return self.table["short"].tolist()

    def to_short(self) -> Dict[str, str]:
        return dict(zip(self.table["long"], self.table["short"]))

    def validate(self) -> None:
        for col in ("long", "short"):
            dups = self.table[col][self.table[col].duplicated()].tolist()
            if dups:
                raise NameCollisionError(f"{self.family}: duplicated {col} name(s) {dups}")


def union_group_maps(maps: Sequence[ColumnGroupMap]) -> pd.DataFrame:
    """Stack several families; short names that clash across families get ' [<family>]' appended."""
    frames = [m.table.assign(family=m.family) for m in maps if len(m)]
    if not frames:
        return pd.DataFrame(columns=["long", "short", "family"])
    out = pd.concat(frames, ignore_index=True)
    clash = out["short"].duplicated(keep=False)
    out.loc[clash, "short"] = out.loc[clash, "short"] + " [" + out.loc[clash, "family"] + "]"
    return out
