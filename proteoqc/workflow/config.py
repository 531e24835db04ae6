"""Report configuration.

The configuration is a nested dict (usually loaded from YAML). Every value the
pipeline asks for is recorded together with its effective value, so the complete
configuration (defaults + user overrides) can be written back for the user to edit.
Unknown keys are ignored.
"""

import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from proteoqc.exceptions import ConfigError, UnsupportedOutputFormatError
from proteoqc.utils.semantics import OUTPUT_FORMATS_SUPPORTED
from proteoqc.utils.utils import log_warning

DEFAULTS: Dict[str, Any] = {
    "report": {
        "extended_filename": True,
        "output_formats": "plainPDF",
        "page_numbers": True,
        "name_min_length": 8,
        "name_max_length": 10,
        "keep_tables": False,
        "min_scored_units": 1,
    },
    "input": {
        "load_method": "polars",
        "filter_reverse": True,
    },
    "thresholds": {
        "id_rate_bad": 20,
        "id_rate_great": 35,
        "pg_intensity": 25,
        "pg_ratio_lab_inc_thresh": 4,
        "evd_intensity": 23,
        "evd_proteins": 3500,
        "evd_peptides": 15000,
        "evd_mbr": "auto",
        "evd_matching_tolerance": 1.0,
        "evd_precursor_tol_ppm": 20,
        "evd_precursor_out_of_cal_sd": 2,
        "evd_precursor_tol_ppm_main_search": 4.5,
        "evd_contaminant_pct": 5,
        "msms_missed_cleavages": 0.75,
        "msms_scans_ion_injection": 10,
    },
    "contaminants": {
        "cont_MYCO": {"pattern": "MYCOPLASMA", "threshold": 1},
    },
}

LOAD_METHODS = ("polars", "pyarrow", "pandas")


class QCConfig:
    """Read-through view on a user config; remembers every resolved value."""

    def __init__(self, user_config: Optional[dict] = None):
        if user_config is None:
            user_config = {}
        if not isinstance(user_config, dict):
            raise ConfigError(f"Configuration must be a mapping, got {type(user_config).__name__}.")
        self._user = deepcopy(user_config)
        self.resolved: Dict[str, Any] = {}

        # resolve the fixed sections eagerly so the written file is always complete
        for section, values in DEFAULTS.items():
            if section == "contaminants":
                self.contaminants()
                continue
            for key in values:
                self.get(f"{section}.{key}")

        fmt = self.get("input.load_method")
        if fmt not in LOAD_METHODS:
            raise ConfigError(f"Unknown input.load_method '{fmt}'. Options: {', '.join(LOAD_METHODS)}")
        self.output_formats()

    @classmethod
    def from_yaml(cls, path) -> "QCConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return cls(data)

    # ------------------------------------------------------------------ lookups
    def _lookup(self, tree: dict, keys: List[str]):
        node = tree
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return False, None
            node = node[key]
        return True, node

    def _record(self, keys: List[str], value: Any) -> None:
        node = self.resolved
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Return the value at dotted `path` (user value, else built-in default, else `default`)."""
        keys = path.split(".")
        found, value = self._lookup(self._user, keys)
        if not found:
            found, value = self._lookup(DEFAULTS, keys)
            value = deepcopy(value) if found else default
        self._record(keys, value)
        return value

    def threshold(self, key: str) -> Any:
        return self.get(f"thresholds.{key}")

    def metric_enabled(self, metric_id: str) -> bool:
        return bool(self.get(f"metrics.{metric_id}.enabled", True))

    def contaminants(self) -> Dict[str, Dict[str, Any]]:
        """User contaminants as {name: {pattern, threshold}}; an empty mapping disables the check."""
        found, value = self._lookup(self._user, ["contaminants"])
        if not found:
            value = deepcopy(DEFAULTS["contaminants"])
        if not value:
            self.resolved["contaminants"] = {}
            return {}
        if not isinstance(value, dict):
            raise ConfigError("'contaminants' must map a name to {pattern, threshold}.")

        out = {}
        for name, entry in value.items():
            if isinstance(entry, (list, tuple)) and len(entry) == 2:
                entry = {"pattern": entry[0], "threshold": entry[1]}
            if not isinstance(entry, dict) or "pattern" not in entry:
                log_warning(f"Contaminant entry '{name}' has no 'pattern' and is ignored.")
                continue
            out[str(name)] = {"pattern": str(entry["pattern"]),
                              "threshold": float(entry.get("threshold", 1))}
        self.resolved["contaminants"] = deepcopy(out)
        return out

    def output_formats(self) -> List[str]:
        """Requested report formats; raises for anything not supported."""
        raw = self.get("report.output_formats")
        if isinstance(raw, (list, tuple)):
            requested = [str(x).strip() for x in raw if str(x).strip()]
        else:
            requested = [x for x in re.split(r"[ ,]+", str(raw or "")) if x]
        unsupported = [f for f in requested if f not in OUTPUT_FORMATS_SUPPORTED]
        if unsupported:
            raise UnsupportedOutputFormatError(
                f"'{', '.join(unsupported)}'",
                f"Supported formats: {', '.join(OUTPUT_FORMATS_SUPPORTED)}",
            )
        return requested

    # ------------------------------------------------------------------ output
    def to_dict(self) -> Dict[str, Any]:
        return deepcopy(self.resolved)

    def write_yaml(self, path) -> None:
        """Write the full resolved configuration (so users can inspect/edit every tunable)."""
        Path(path).write_text(yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False))
