"""Batch processing: validate, correct, re-validate.

Runs one in-memory batch of monitoring points through the invariant
validator and the correction cascade, checks stage contracts at every
boundary, and collects statistics for reporting.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, TYPE_CHECKING

import pandas as pd

from dispfix.contracts import ContractViolation, assert_time_ordered
from dispfix.core.models import MonitoringPoint, ValidationResult
from dispfix.monitoring.corrector import CorrectionCascade, CorrectionResult
from dispfix.monitoring.ledger import AdjustmentLedger, CorrectionStatistics
from dispfix.monitoring.validator import (
    ComparisonIndex,
    InvariantValidator,
    ValidationStatistics,
    results_to_frame,
)

if TYPE_CHECKING:
    from dispfix.schemas import InternalConfig

__all__ = ['BatchProcessor', 'BatchOutcome']

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """Everything one batch run produced."""
    validation_results: List[ValidationResult]
    correction_result: CorrectionResult
    revalidation_results: List[ValidationResult]
    validation_statistics: ValidationStatistics
    revalidation_statistics: ValidationStatistics
    ledger_statistics: CorrectionStatistics

    @property
    def persistable_points(self) -> List[str]:
        return [r.point_name for r in self.correction_result.point_results if r.can_persist]


class BatchProcessor:
    """Validate and correct a batch of monitoring points.

    **Stages:**

    1. **Validate**: recurrence and magnitude checks per point, optionally
       cross-checked against a comparison source.
    2. **Correct**: four-tier cascade for points with adjustable violations;
       every applied correction is appended to the ledger.
    3. **Re-validate**: final check of the corrected values.

    Contracts are enforced between stages. A :class:`ContractViolation`
    means a bug in the correction logic: it is logged as critical and
    re-raised. Ordinary per-point failures are contained and reported in
    the results.

    Parameters
    ----------
    config : InternalConfig
        Fully validated runtime configuration.
    ledger : AdjustmentLedger, optional
        Ledger shared across batches; a new one is created when omitted.
    rng_factory : RngFactory, optional
        Overrides the seeded generator source of the cascade.

    Example usage::

        processor = BatchProcessor(config)
        outcome = processor.process(points)
        print(outcome.correction_result.summary())
    """

    def __init__(self, config: "InternalConfig", ledger: Optional[AdjustmentLedger] = None,
                 rng_factory=None):
        self.config = config
        self.ledger = ledger if ledger is not None else AdjustmentLedger()
        self.validator = InvariantValidator(config)
        self.cascade = CorrectionCascade(config, self.ledger, rng_factory)
        self.output_lock = threading.Lock()

    def process(self, points: List[MonitoringPoint], comparison: Optional[ComparisonIndex] = None,
                progress: Optional[Callable[[int, int], None]] = None) -> BatchOutcome:
        """Run validate -> correct -> re-validate over ``points``.

        Raises
        ------
        ContractViolation
            If any stage broke its guarantees.
        """
        try:
            for point in points:
                assert_time_ordered(point)

            validation_results = self.validator.validate_points(points, comparison, progress)
            validation_stats = ValidationStatistics.from_results(validation_results)

            correction_result = self.cascade.correct_points(
                points, validation_results, progress, workers=self.config.processor.workers)

            revalidation_results = self.validator.validate_corrected(points)
            revalidation_stats = ValidationStatistics.from_results(revalidation_results)

        except ContractViolation as e:
            logger.critical("CRITICAL: Pipeline contract violated: %s", e)
            logger.critical("This indicates a bug in correction logic. Stopping batch.")
            raise

        ledger_stats = self.ledger.statistics()
        logger.info(correction_result.summary())
        logger.info(ledger_stats.summary())

        return BatchOutcome(
            validation_results=validation_results,
            correction_result=correction_result,
            revalidation_results=revalidation_results,
            validation_statistics=validation_stats,
            revalidation_statistics=revalidation_stats,
            ledger_statistics=ledger_stats,
        )

    def save_results(self, results: List[ValidationResult], path) -> Optional[Path]:
        """Persist validation results to Parquet.

        Parameters
        ----------
        results : list of ValidationResult
            Results to store (one row each).
        path : str or Path
            Target ``.parquet`` file.

        Returns
        -------
        Path or None
            Written file, or None when there was nothing to write.
        """
        with self.output_lock:
            df = results_to_frame(results)
            if df.empty:
                logger.info("No validation results to save")
                return None

            df["timestamp"] = pd.to_datetime(df["timestamp"])
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            compression = self.config.output.compression
            df.to_parquet(path, engine="pyarrow",
                          compression=None if compression == "none" else compression,
                          index=False)
            logger.info("Saved %d validation results to %s", len(df), path)
            return path
