"""Per-run report context: output file names, configuration, raw file mapping, input metadata.

Built once at the start of a report and handed to the runner and the exporters.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import polars as pl

import proteoqc
from proteoqc.dataset.raw_file_map import RawFileMap
from proteoqc.utils.semantics import MQPAR_FILE
from proteoqc.utils.utils import log_info, log_warning
from proteoqc.workflow.config import QCConfig


@dataclass
class ReportFilenames:
    prefix: Path

    @classmethod
    def create(cls, base_folder, extended: bool = True, mztab_file=None,
               version: Optional[str] = None) -> "ReportFilenames":
        """report_v<version>[_<name>] in `base_folder`.

        <name> is the mzTab file name, or the folder holding the txt folder.
        """
        base_folder = Path(base_folder)
        version = version or proteoqc.__version__
        name = f"report_v{version}"
        if extended:
            if mztab_file is not None:
                suffix = Path(mztab_file).stem
            else:
                resolved = base_folder.resolve()
                suffix = resolved.parent.name if resolved.name.lower() == "txt" else resolved.name
            suffix = re.sub(r"[^0-9A-Za-z._-]+", "_", suffix)
            if suffix:
                name += f"_{suffix}"
        return cls(base_folder / name)

    def _with(self, ending: str) -> Path:
        return self.prefix.parent / f"{self.prefix.name}{ending}"

    @property
    def report_file_pdf(self) -> Path:
        return self._with(".pdf")

    @property
    def report_file_html(self) -> Path:
        return self._with(".html")

    @property
    def yaml_file(self) -> Path:
        return self._with("_config.yaml")

    @property
    def heatmap_values_file(self) -> Path:
        return self._with("_heatmap.txt")

    @property
    def filename_sorting(self) -> Path:
        return self._with("_filename_sort.txt")

    @property
    def mzqc_file(self) -> Path:
        return self._with(".mzQC")

    @property
    def log_file(self) -> Path:
        return self._with(".log")


def read_mqpar_filenames(mqpar_path) -> Optional[pl.DataFrame]:
    """Full raw file paths from a search engine parameter file (None if unavailable)."""
    mqpar_path = Path(mqpar_path)
    if not mqpar_path.is_file():
        return None
    try:
        root = ET.parse(mqpar_path).getroot()
    except ET.ParseError as err:
        log_warning(f"Cannot parse '{mqpar_path.name}' ({err}); raw file paths are not reported.")
        return None

    paths = [
        el.text.strip()
        for block in root.iter("filePaths")
        for el in block.iter("string")
        if el.text and el.text.strip()
    ]
    if not paths:
        return None
    names = [re.split(r"[\\/]", p)[-1] for p in paths]
    names = [n.rsplit(".", 1)[0] if "." in n else n for n in names]
    log_info(f"Found {len(paths)} raw file path(s) in '{mqpar_path.name}'.")
    return pl.DataFrame({"file": paths, "raw_file": names})


@dataclass
class ReportContext:
    """Everything a report run shares between components."""
    filenames: ReportFilenames
    config: QCConfig
    raw_file_map: RawFileMap
    input_path: Path
    mztab_mode: bool = False
    file_meta: Optional[pl.DataFrame] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def create(cls, config: QCConfig, txt_folder=None, mztab_file=None,
               report_filenames: Optional[ReportFilenames] = None) -> "ReportContext":
        mztab_mode = mztab_file is not None
        input_path = Path(mztab_file if mztab_mode else txt_folder)
        base_folder = input_path.parent if mztab_mode else input_path

        if report_filenames is None:
            report_filenames = ReportFilenames.create(
                base_folder,
                extended=bool(config.get("report.extended_filename")),
                mztab_file=mztab_file,
            )

        raw_file_map = RawFileMap(
            min_length=int(config.get("report.name_min_length")),
            max_length=config.get("report.name_max_length"),
        )
        raw_file_map.read_mapping_file(report_filenames.filename_sorting)

        file_meta = None if mztab_mode else read_mqpar_filenames(base_folder / MQPAR_FILE)
        return cls(report_filenames, config, raw_file_map, input_path, mztab_mode, file_meta)

    def input_files(self) -> List[Dict[str, str]]:
        """One entry per raw file of this run (for the interchange document)."""
        full = {}
        if self.file_meta is not None:
            full = dict(zip(self.file_meta["raw_file"].to_list(), self.file_meta["file"].to_list()))
        return [
            {"name": long_name, "location": full.get(long_name, long_name), "short": short}
            for long_name, short in self.raw_file_map.mapping().items()
        ]

    def warn(self, msg: str) -> None:
        log_warning(msg)
        self.warnings.append(msg)
