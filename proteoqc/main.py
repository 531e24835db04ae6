from pathlib import Path
from typing import Optional, Union

import pandas as pd

from proteoqc.dataset.report_context import ReportContext, ReportFilenames
from proteoqc.exceptions import ConfigError
from proteoqc.metrics.registry import build_registry
from proteoqc.utils.utils import log_info, setup_logging, teardown_logging
from proteoqc.workflow.config import QCConfig
from proteoqc.workflow.mztab_reader import MzTabReader
from proteoqc.workflow.report_runner import ReportRunner
from proteoqc.workflow.table_reader import TxtTableReader


def create_report(
    txt_folder: Optional[Union[str, Path]] = None,
    mztab_file: Optional[Union[str, Path]] = None,
    config: Optional[Union[dict, QCConfig]] = None,
    report_filenames: Optional[ReportFilenames] = None,
    enable_log: bool = False,
) -> pd.DataFrame:
    """
    Create a QC report for a search engine txt folder or an mzTab file.

    Exactly one of `txt_folder` / `mztab_file` must be given. All outputs (report,
    heatmap values, mzQC, name mapping, resolved config) are written next to the
    input. Returns the score matrix.
    """
    if (txt_folder is None) == (mztab_file is None):
        raise ConfigError("Specify exactly one input: a txt folder or an mzTab file.")
    if not isinstance(config, QCConfig):
        config = QCConfig(config)

    context = ReportContext.create(config, txt_folder=txt_folder, mztab_file=mztab_file,
                                   report_filenames=report_filenames)
    handler = setup_logging(str(context.filenames.log_file)) if enable_log else None
    try:
        log_info(f"Input: {context.input_path}")
        filter_reverse = bool(config.get("input.filter_reverse"))
        if context.mztab_mode:
            reader = MzTabReader(filter_reverse=filter_reverse)
            reader.read_all(mztab_file)
        else:
            reader = TxtTableReader(txt_folder, load_method=config.get("input.load_method"),
                                    filter_reverse=filter_reverse)

        registry = build_registry(config)
        # every tunable is resolved by now; write them for the user to edit
        config.write_yaml(context.filenames.yaml_file)

        return ReportRunner(context, reader, registry).run()
    finally:
        teardown_logging(handler)
