"""Pipeline orchestration for one correction run.

Loads workbooks, groups them into monitoring points, runs the batch
processor and writes every output artefact of the run.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, TYPE_CHECKING

from dispfix.monitoring.grouping import check_integrity, group_by_point
from dispfix.monitoring.ledger import AdjustmentLedger
from dispfix.monitoring.loader import SpreadsheetLoader
from dispfix.monitoring.writer import CorrectedWorkbookWriter, write_report
from dispfix.pipeline.processor import BatchOutcome, BatchProcessor
from dispfix.setup_directories import get_ledger_path, setup_output_directories

if TYPE_CHECKING:
    from dispfix.schemas import InternalConfig

__all__ = ['PipelineOrchestrator']

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Run the full validate-and-correct pipeline once.

    **Steps:**

    1. Discover and read the input workbooks.
    2. Read the optional comparison workbooks into a lookup index.
    3. Group records by monitoring point and check their integrity.
    4. Validate, correct and re-validate (:class:`BatchProcessor`).
    5. Write corrected workbooks (persistable points only).
    6. Export the adjustment ledger and validation results.
    7. Write the text report.

    **Outputs** (under ``config.base_dir``):

    - ``corrected/``: rewritten workbooks
    - ``ledger/adjustments_<run_id>.<fmt>``: adjustment ledger
    - ``reports/``: validation results (Parquet) and the text report
    - ``logs/dispfix_<run_id>.log``: run log

    Example usage::

        config = init_runtime_config(args)
        outcome = PipelineOrchestrator(config).run()
    """

    def __init__(self, config: "InternalConfig", output_dirs: Optional[Dict[str, Path]] = None):
        """
        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        output_dirs : dict, optional
            Output directories; defaults to ``config.output_dirs`` or a fresh
            layout under ``config.base_dir``.
        """
        self.config = config
        if output_dirs is None:
            output_dirs = config.output_dirs or setup_output_directories(config.base_dir)
        self.output_dirs = {k: Path(v) for k, v in output_dirs.items()}
        self.run_id = config.run_id or "latest"

        self.ledger = AdjustmentLedger()
        self.loader = SpreadsheetLoader(config)
        self.processor = BatchProcessor(config, self.ledger)
        self.writer = CorrectedWorkbookWriter(config)

    def _setup_logging(self):
        """Configure the root logger with file and console handlers.

        Level comes from ``config.logging.level``; the log file lives in the
        ``logs`` output directory.
        """
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        log_dir = self.output_dirs.get("logs", Path("."))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"dispfix_{self.run_id}.log"

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        # File handler
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        # Console handler
        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

    def run(self) -> BatchOutcome:
        """Execute the pipeline and return the batch outcome.

        Raises
        ------
        ValueError
            If no input directory is configured.
        FileNotFoundError
            If the input directory does not exist.
        ContractViolation
            If a stage broke its guarantees.
        """
        self._setup_logging()

        logger.info("=" * 60)
        logger.info("Starting displacement correction run %s", self.run_id)
        logger.info("=" * 60)

        if not self.config.input_dir:
            raise ValueError("input_dir is not configured")

        periods = self.loader.load_directory(self.config.input_dir)

        comparison = None
        if self.config.comparison_dir:
            comparison = self.loader.load_comparison(self.config.comparison_dir)

        points = group_by_point(periods)
        if comparison is not None:
            for point in points:
                point.set_comparison(comparison.latest_for(point.point_name))

        integrity = check_integrity(points, self.config.validation)

        outcome = self.processor.process(points, comparison)

        if self.config.output.write_workbooks:
            self.writer.write(points, outcome.correction_result,
                              self.config.input_dir, self.output_dirs["corrected"])

        ledger_path = get_ledger_path(self.output_dirs, self.run_id, self.config.output.ledger_format)
        self.ledger.export(ledger_path, self.config.output.compression)

        reports_dir = self.output_dirs["reports"]
        self.processor.save_results(outcome.revalidation_results,
                                    reports_dir / f"validation_{self.run_id}.parquet")
        write_report(
            reports_dir / self.config.output.report_name,
            outcome.validation_statistics,
            outcome.correction_result,
            outcome.ledger_statistics,
            outcome.revalidation_statistics,
            integrity,
            run_id=self.run_id,
        )

        logger.info("=" * 60)
        logger.info("Run complete: %s", outcome.correction_result.summary())
        logger.info("=" * 60)
        return outcome
