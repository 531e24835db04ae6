"""
Declarative column table for all canonical tables.

Every column the metrics use is declared here, once. Names are matched after
normalization (see `normalize_name`): literal alternatives first (the semantic
name itself included), then the regex. Since '_' normalizes to '.', tables that
already use canonical names (mzTab) go through the same resolver unchanged.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from proteoqc.utils.semantics import (
    TABLE_EVIDENCE,
    TABLE_MSMS,
    TABLE_MSMS_SCANS,
    TABLE_PARAMETERS,
    TABLE_PROTEIN_GROUPS,
    TABLE_SUMMARY,
)

TEXT = "text"
NUMERIC = "numeric"
FLAG = "flag"


@dataclass(frozen=True)
class ColumnPattern:
    """One semantic column. First match (literal names, then regex) wins."""
    semantic: str
    regex: Optional[str] = None
    names: Tuple[str, ...] = ()
    dtype: str = TEXT
    required: bool = False


@dataclass(frozen=True)
class ColumnFamily:
    """A family of sibling columns (e.g. intensity per sample) kept under their own names."""
    family: str
    regex: str
    dtype: str = NUMERIC
    exclude: Tuple[str, ...] = ()


SchemaEntry = Union[ColumnPattern, ColumnFamily]

# ratio sub-properties which are not ratios themselves
RATIO_EXCLUDE = (
    r"^ratio\.[hm]\.l\.normalized",
    r"^ratio\.[hm]\.l\.count",
    r"^ratio\.[hm]\.l\.variability",
    r"^ratio\.[hm]\.l\.significance\.a",
    r"^ratio\.[hm]\.l\.significance\.b",
    r"^ratio\.[hm]\.l\.iso\.count",
    r"^ratio\.[hm]\.l\.type",
)


PARAMETERS_SCHEMA: Tuple[SchemaEntry, ...] = (
    ColumnPattern("parameter", r"^parameter$", required=True),
    ColumnPattern("value", r"^value$", required=True),
)

SUMMARY_SCHEMA: Tuple[SchemaEntry, ...] = (
    ColumnPattern("raw_file", r"^raw\.file$", required=True),
    ColumnPattern("experiment", r"^experiment$"),
    ColumnPattern("ms_ms_identified_pct", r"^ms\.ms\.identified\.pct$", dtype=NUMERIC),
    ColumnPattern("ms", r"^ms$", dtype=NUMERIC),
    ColumnPattern("ms_ms", r"^ms\.ms$", dtype=NUMERIC),
    ColumnPattern("tic", r"^(total\.ion\.current|tic)$", dtype=NUMERIC),
)

PROTEIN_GROUPS_SCHEMA: Tuple[SchemaEntry, ...] = (
    ColumnPattern("protein_ids", r"^protein\.ids$", names=("accession",), required=True),
    ColumnPattern("majority_protein_ids", r"^majority\.protein\.ids$"),
    ColumnPattern("fasta_headers", r"^fasta\.headers$", names=("description",)),
    ColumnPattern("protein_names", r"^protein\.names$"),
    ColumnPattern("gene_names", r"^gene\.names$"),
    ColumnPattern("contaminant", r"^(potential\.)?contaminant$", dtype=FLAG),
    ColumnPattern("reverse", r"^reverse$", dtype=FLAG),
    ColumnFamily("intensity", r"^intensity(\.|$)"),
    ColumnFamily("lfq_intensity", r"^lfq\.intensity\."),
    ColumnFamily("reporter_intensity", r"^reporter\.intensity\.[0-9]"),
    ColumnFamily("ratio", r"^ratio\.[hm]\.l", exclude=RATIO_EXCLUDE),
)

EVIDENCE_SCHEMA: Tuple[SchemaEntry, ...] = (
    ColumnPattern("raw_file", r"^raw\.file$", required=True),
    ColumnPattern("sequence", r"^sequence$", required=True),
    ColumnPattern("id", r"^id$", dtype=NUMERIC),
    ColumnPattern("type", r"^type$"),
    ColumnPattern("proteins", r"^proteins$"),
    ColumnPattern("protein_names", r"^protein\.names$"),
    ColumnPattern("protein_group_ids", r"^protein\.group\.ids$"),
    ColumnPattern("contaminant", r"^(potential\.)?contaminant$", dtype=FLAG),
    ColumnPattern("reverse", r"^reverse$", dtype=FLAG),
    ColumnPattern("modified_sequence", r"^modified\.sequence$"),
    ColumnPattern("modifications", r"^modifications$"),
    ColumnPattern("charge", r"^charge$", dtype=NUMERIC),
    ColumnPattern("mz", r"^m\.z$", dtype=NUMERIC),
    ColumnPattern("mass", r"^mass$", dtype=NUMERIC),
    ColumnPattern("score", r"^score$", dtype=NUMERIC),
    ColumnPattern("fraction", r"^fraction$", dtype=NUMERIC),
    ColumnPattern("intensity", r"^intensity$", dtype=NUMERIC),
    ColumnPattern("retention_time", r"^retention\.time$", dtype=NUMERIC),
    ColumnPattern("retention_length", r"^retention\.length$", dtype=NUMERIC),
    ColumnPattern("retention_time_calibration", r"^retention\.time\.calibration$", dtype=NUMERIC),
    ColumnPattern("match_time_difference", r"^match\.time\.difference$", dtype=NUMERIC),
    ColumnPattern("mass_error_ppm", r"^mass\.error\.ppm$", dtype=NUMERIC),
    # older versions only report the uncalibrated mass error
    ColumnPattern(
        "uncalibrated_mass_error_ppm",
        r"^uncalibrated\.mass\.error\.ppm$",
        names=("uncalibrated.calibrated.m.z.ppm",),
        dtype=NUMERIC,
    ),
    ColumnPattern("ms_ms_count", r"^ms\.ms\.count$", dtype=NUMERIC),
    ColumnPattern("missed_cleavages", r"^missed\.cleavages$", dtype=NUMERIC),
    ColumnFamily("reporter_intensity", r"^reporter\.intensity\.[0-9]"),
)

MSMS_SCHEMA: Tuple[SchemaEntry, ...] = (
    ColumnPattern("raw_file", r"^raw\.file$", required=True),
    ColumnPattern("id", r"^id$", dtype=NUMERIC),
    ColumnPattern("sequence", r"^sequence$"),
    ColumnPattern("missed_cleavages", r"^missed\.cleavages$", dtype=NUMERIC),
    ColumnPattern("mass_deviations_da", r"^mass\.deviations\.da$"),
    ColumnPattern("mass_deviations_ppm", r"^mass\.deviations\.ppm$"),
    ColumnPattern("masses", r"^masses$"),
    ColumnPattern("mass_analyzer", r"^mass\.analyzer$"),
    ColumnPattern("fragmentation", r"^fragmentation$"),
    ColumnPattern("reverse", r"^reverse$", dtype=FLAG),
    ColumnPattern("evidence_id", r"^evidence\.id$", dtype=NUMERIC),
)

MSMS_SCANS_SCHEMA: Tuple[SchemaEntry, ...] = (
    ColumnPattern("raw_file", r"^raw\.file$", required=True),
    ColumnPattern("retention_time", r"^retention\.time$", dtype=NUMERIC, required=True),
    ColumnPattern("ion_injection_time", r"^ion\.injection\.time", dtype=NUMERIC),
    ColumnPattern("identified", r"^identified$", dtype=FLAG),
    ColumnPattern("scan_event_number", r"^scan\.event\.number$", dtype=NUMERIC),
    ColumnPattern("scan_index", r"^scan\.index$", dtype=NUMERIC),
    ColumnPattern("ms_scan_index", r"^ms\.scan\.index$", dtype=NUMERIC),
    ColumnPattern("total_ion_current", r"^total\.ion\.current$", dtype=NUMERIC),
    ColumnPattern("base_peak_intensity", r"^base\.?peak\.intensity$", dtype=NUMERIC),
    ColumnPattern("dp_aa", r"^dp\.aa$"),
    ColumnPattern("dp_modification", r"^dp\.modification$"),
)

SCHEMAS: Dict[str, Tuple[SchemaEntry, ...]] = {
    TABLE_PARAMETERS: PARAMETERS_SCHEMA,
    TABLE_SUMMARY: SUMMARY_SCHEMA,
    TABLE_PROTEIN_GROUPS: PROTEIN_GROUPS_SCHEMA,
    TABLE_EVIDENCE: EVIDENCE_SCHEMA,
    TABLE_MSMS: MSMS_SCHEMA,
    TABLE_MSMS_SCANS: MSMS_SCANS_SCHEMA,
}
