"""mzQC (JSON) interchange document: one run quality per raw file."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List

import proteoqc
from proteoqc.dataset.report_context import ReportContext
from proteoqc.exceptions import ExportError
from proteoqc.metrics.base import MetricState, MetricUnit
from proteoqc.utils.utils import log_info

MZQC_VERSION = "1.0.0"
ACCESSION_PREFIX = "PQC"

CONTROLLED_VOCABULARIES = [
    {
        "name": "Proteomics Standards Initiative Mass Spectrometry Ontology",
        "uri": "https://github.com/HUPO-PSI/psi-ms-CV/releases/download/v4.1.130/psi-ms.obo",
        "version": "4.1.130",
    }
]


def _local_vocabulary() -> Dict[str, str]:
    """Declares the `PQC:` accessions; every metric id is a term."""
    return {"name": "proteoqc metrics", "uri": "urn:proteoqc:metrics", "version": proteoqc.__version__}


def _software() -> Dict[str, str]:
    return {"accession": "MS:1000799", "name": "proteoqc", "version": proteoqc.__version__}


def _description(unit: MetricUnit, sample) -> str:
    parts = [unit.title] if unit.title else []
    qualifier = unit.qualifier_value(sample)
    if qualifier is not None:
        text = f"{qualifier:g}" if isinstance(qualifier, float) else str(qualifier)
        parts.append(f"{unit.QUALIFIER}: {text}")
    return "; ".join(parts)


def _metric(unit: MetricUnit, sample) -> Dict[str, Any]:
    metric = {
        "accession": f"{ACCESSION_PREFIX}:{unit.metric_id}",
        "name": unit.heatmap_name or unit.metric_id,
        "value": unit.score_for(sample),
    }
    description = _description(unit, sample)
    if description:
        metric["description"] = description
    return metric


def assemble_mzqc(units: Iterable[MetricUnit], context: ReportContext) -> Dict[str, Any]:
    """
    Build the mzQC document from all scored units.

    Raises ExportError when fewer than `report.min_scored_units` units produced a score.
    """
    scored = [u for u in units if u.state == MetricState.SCORED]
    min_units = int(context.config.get("report.min_scored_units"))
    if len(scored) < max(1, min_units):
        raise ExportError(
            f"{len(scored)} scored metric(s), at least {max(1, min_units)} required.",
            "Check the warnings above for metrics which were skipped or failed.",
        )

    files = context.input_files()
    if not files:
        files = [{"name": str(context.input_path.name), "location": str(context.input_path), "short": None}]

    run_qualities: List[Dict[str, Any]] = []
    for entry in files:
        metrics = [_metric(u, entry["short"]) for u in scored]
        run_qualities.append({
            "metadata": {
                "label": entry["short"] or entry["name"],
                "inputFiles": [{
                    "location": entry["location"],
                    "name": entry["name"],
                    "fileFormat": {"accession": "MS:1000584", "name": "mzML format"},
                }],
                "analysisSoftware": [_software()],
            },
            "qualityMetrics": [m for m in metrics if m["value"] is not None],
        })

    return {
        "mzQC": {
            "version": MZQC_VERSION,
            "creationDate": datetime.now().isoformat(timespec="seconds"),
            "contactName": "",
            "description": f"Quality report of '{context.input_path.name}'",
            "runQualities": run_qualities,
            "controlledVocabularies": CONTROLLED_VOCABULARIES + [_local_vocabulary()],
        }
    }


def write_mzqc(document: Dict[str, Any], path) -> None:
    Path(path).write_text(json.dumps(document, indent=2, default=str), encoding="utf-8")
    log_info(f"mzQC written to '{Path(path).name}'.")
