"""The fixed, ordered set of metric units. Order is execution and report order."""

from typing import List, Type

from proteoqc.metrics.base import MetricRegistry, MetricUnit
from proteoqc.metrics.evidence import (
    EVDCharge,
    EVDIdOverRT,
    EVDMBRAlign,
    EVDMBRAux,
    EVDMBRIdTransfer,
    EVDMissingValues,
    EVDModTable,
    EVDMS2Oversampling,
    EVDPeptideCount,
    EVDPeptideIntensity,
    EVDPostCal,
    EVDPreCal,
    EVDProteinCount,
    EVDReporterIntensity,
    EVDRTPeakWidth,
    EVDTop5Contaminants,
    EVDUpSet,
    EVDUserContaminant,
)
from proteoqc.metrics.msms import MSMSDecalibration, MSMSMissedCleavages
from proteoqc.metrics.msms_scans import (
    ScansDependentPeptides,
    ScansIntensity,
    ScansIonInjectionTime,
    ScansTopN,
    ScansTopNId,
    ScansTopNOverRT,
)
from proteoqc.metrics.parameters import ParameterTable
from proteoqc.metrics.protein_groups import (
    PGContaminants,
    PGLFQIntensity,
    PGPca,
    PGRatio,
    PGRawIntensity,
    PGReporterIntensity,
)
from proteoqc.metrics.summary import SummaryIdRate, SummaryTIC
from proteoqc.utils.utils import log_info
from proteoqc.workflow.config import QCConfig

ALL_UNITS: List[Type[MetricUnit]] = [
    ParameterTable,
    SummaryIdRate,
    SummaryTIC,
    PGContaminants,
    PGRawIntensity,
    PGLFQIntensity,
    PGReporterIntensity,
    PGPca,
    PGRatio,
    EVDUserContaminant,
    EVDPeptideIntensity,
    EVDReporterIntensity,
    EVDModTable,
    EVDProteinCount,
    EVDPeptideCount,
    EVDRTPeakWidth,
    EVDMBRAlign,
    EVDMBRIdTransfer,
    EVDMBRAux,
    EVDCharge,
    EVDIdOverRT,
    EVDUpSet,
    EVDPreCal,
    EVDPostCal,
    EVDTop5Contaminants,
    EVDMS2Oversampling,
    EVDMissingValues,
    MSMSDecalibration,
    MSMSMissedCleavages,
    ScansTopNOverRT,
    ScansIonInjectionTime,
    ScansIntensity,
    ScansTopN,
    ScansTopNId,
    ScansDependentPeptides,
]


def build_registry(config: QCConfig) -> MetricRegistry:
    """Instantiate every unit not disabled via `metrics.<metric_id>.enabled: false`."""
    registry = MetricRegistry()
    for cls in ALL_UNITS:
        if not config.metric_enabled(cls.metric_id):
            log_info(f"{cls.metric_id}: disabled by configuration.")
            continue
        registry.add(cls(config))
    return registry
