"""Core building blocks: tolerance arithmetic and the in-memory data model."""

from dispfix.core import tolerance
from dispfix.core.models import (
    Axis,
    AXES,
    ValidationStatus,
    Severity,
    CorrectionKind,
    AdjustmentType,
    CorrectionStatus,
    CascadeState,
    SourceFile,
    PeriodData,
    MonitoringPoint,
    ValidationResult,
    DataCorrection,
)

__all__ = [
    'tolerance',
    'Axis',
    'AXES',
    'ValidationStatus',
    'Severity',
    'CorrectionKind',
    'AdjustmentType',
    'CorrectionStatus',
    'CascadeState',
    'SourceFile',
    'PeriodData',
    'MonitoringPoint',
    'ValidationResult',
    'DataCorrection',
]
