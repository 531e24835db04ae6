"""Derive short, unique display names from long, redundant names.

Every short name is tracked as a (start, end) window into its original string, so
the result is always a contiguous piece of the original and can be widened again
when two short names collide.
"""

import os
from collections import defaultdict
from typing import Dict, Iterable, Optional, Tuple

Window = Tuple[int, int]


def _common_prefix_length(strings: list[str]) -> int:
    return len(os.path.commonprefix(strings))


def _common_suffix_length(strings: list[str]) -> int:
    return len(os.path.commonprefix([s[::-1] for s in strings]))


def _pad_window(name: str, window: Window, min_length: int) -> Window:
    """Restore suffix characters first, then prefix characters, until `min_length` is met."""
    start, end = window
    while end - start < min_length and (start > 0 or end < len(name)):
        if end < len(name):
            end += 1
        else:
            start -= 1
    return start, end


def _resolve_collisions(windows: Dict[str, Window]) -> Dict[str, Window]:
    """Widen colliding windows on both ends until all short names differ."""
    while True:
        groups = defaultdict(list)
        for name, (start, end) in windows.items():
            groups[name[start:end]].append(name)
        clashes = [members for members in groups.values() if len(members) > 1]
        if not clashes:
            return windows
        for members in clashes:
            for name in members:
                start, end = windows[name]
                windows[name] = (max(0, start - 1), min(len(name), end + 1))


def shorten_names(
    names: Iterable[str],
    min_length: int = 8,
    max_length: Optional[int] = None,
) -> Dict[str, str]:
    """Map each (unique) name to a short, unique label.

    Steps:
      1) strip the longest common prefix
      2) strip the longest common suffix of what is left
      3) pad names shorter than `min_length` (suffix characters first, then prefix)
      4) widen colliding results on both ends until they diverge
      5) truncate to `max_length`, but only if all names stay unique

    A single name is kept as is (modulo `max_length`).
    """
    ordered = list(dict.fromkeys(str(n) for n in names))
    if not ordered:
        return {}

    min_length = max(1, int(min_length))

    if len(ordered) == 1:
        windows = {ordered[0]: (0, len(ordered[0]))}
    else:
        prefix = _common_prefix_length(ordered)
        suffix = _common_suffix_length([n[prefix:] for n in ordered])
        windows = {
            n: _pad_window(n, (prefix, len(n) - suffix), min_length) for n in ordered
        }

    windows = _resolve_collisions(windows)
    shorts = {n: n[start:end] for n, (start, end) in windows.items()}

    if max_length is not None and max_length >= min_length:
        truncated = {n: s[:max_length] for n, s in shorts.items()}
        if len(set(truncated.values())) == len(truncated):
            shorts = truncated

    return shorts
