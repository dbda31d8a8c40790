"""Validation, correction and I/O for displacement-monitoring batches."""

from dispfix.monitoring.validator import (
    InvariantValidator,
    ComparisonIndex,
    ValidationStatistics,
    validate_point,
    failure_cells,
    results_to_frame,
)
from dispfix.monitoring.ledger import AdjustmentRecord, AdjustmentLedger, CorrectionStatistics
from dispfix.monitoring.corrector import (
    PointSeries,
    RngFactory,
    CorrectionCascade,
    PointCorrectionResult,
    CorrectionResult,
    global_corrections,
    aggressive_corrections,
    partial_corrections,
    final_corrections,
    select_escalation_tier,
    apply_corrections,
)
from dispfix.monitoring.grouping import group_by_point, check_integrity, IntegrityReport
from dispfix.monitoring.loader import SpreadsheetLoader
from dispfix.monitoring.writer import CorrectedWorkbookWriter, write_report

__all__ = [
    'InvariantValidator',
    'ComparisonIndex',
    'ValidationStatistics',
    'validate_point',
    'failure_cells',
    'results_to_frame',
    'AdjustmentRecord',
    'AdjustmentLedger',
    'CorrectionStatistics',
    'PointSeries',
    'RngFactory',
    'CorrectionCascade',
    'PointCorrectionResult',
    'CorrectionResult',
    'global_corrections',
    'aggressive_corrections',
    'partial_corrections',
    'final_corrections',
    'select_escalation_tier',
    'apply_corrections',
    'group_by_point',
    'check_integrity',
    'IntegrityReport',
    'SpreadsheetLoader',
    'CorrectedWorkbookWriter',
    'write_report',
]
