"""
Canonical semantics for proteoqc.

This module is intentionally small and declarative:
  - Canonical table kinds and the file names they are read from
  - Supported report formats
  - Match-type values and scan-table constants

Implementation details live elsewhere (readers, resolver, metrics).
"""

TABLE_PARAMETERS = "parameters"
TABLE_SUMMARY = "summary"
TABLE_PROTEIN_GROUPS = "protein_groups"
TABLE_EVIDENCE = "evidence"
TABLE_MSMS = "msms"
TABLE_MSMS_SCANS = "msms_scans"

TABLE_KINDS = (
    TABLE_PARAMETERS,
    TABLE_SUMMARY,
    TABLE_PROTEIN_GROUPS,
    TABLE_EVIDENCE,
    TABLE_MSMS,
    TABLE_MSMS_SCANS,
)

TXT_FILES = {
    TABLE_PARAMETERS: "parameters.txt",
    TABLE_SUMMARY: "summary.txt",
    TABLE_PROTEIN_GROUPS: "proteinGroups.txt",
    TABLE_EVIDENCE: "evidence.txt",
    TABLE_MSMS: "msms.txt",
    TABLE_MSMS_SCANS: "msmsScans.txt",
}
MQPAR_FILE = "mqpar.xml"

# evidence rows with this type were transferred by match-between-runs
MATCH_TYPE_TRANSFERRED = "MULTI-MATCH"

OUTPUT_FORMATS_SUPPORTED = ("plainPDF", "html")

# intensity families used for condition/channel grouping
FAMILY_RAW = "raw"
FAMILY_LFQ = "lfq"
FAMILY_REPORTER = "reporter"

# 'contaminant' and 'fc_raw_file' are needed by msms metrics after evidence is released
EVIDENCE_KEEP_COLUMNS = ("id", "contaminant", "fc_raw_file", "sequence", "missed_cleavages")
PROTEIN_GROUPS_KEEP_COLUMNS = ("protein_ids", "majority_protein_ids", "fasta_headers", "protein_names")

# MS/MS scans tables of very old search engine versions have no usable header
MIN_MSMS_SCANS_COLUMNS = 4
RT_BIN_MINUTES = 2

# fragment mass tolerance (Da) per mass analyzer, used to score MS2 decalibration
FRAGMENT_TOLERANCE_DA = {"FTMS": 0.05, "TOF": 0.1, "ITMS": 0.5}
FRAGMENT_TOLERANCE_DEFAULT_DA = 0.5
