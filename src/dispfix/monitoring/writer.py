"""Write corrected workbooks and the plain-text run report."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, TYPE_CHECKING

from openpyxl import load_workbook

from dispfix.core.models import AXES, MonitoringPoint, PeriodData

if TYPE_CHECKING:
    from dispfix.schemas import InternalConfig
    from dispfix.monitoring.corrector import CorrectionResult
    from dispfix.monitoring.ledger import CorrectionStatistics
    from dispfix.monitoring.validator import ValidationStatistics
    from dispfix.monitoring.grouping import IntegrityReport

__all__ = ['CorrectedWorkbookWriter', 'write_report']

logger = logging.getLogger(__name__)


class CorrectedWorkbookWriter:
    """Rewrite source workbooks with corrected values.

    Every source workbook is copied into the output directory. Corrected
    delta and cumulative values are written back at their original row and
    columns, but only for points whose correction result may be persisted;
    all other rows keep their original contents.

    Parameters
    ----------
    config : InternalConfig
        Uses ``config.reader`` for sheet index and column layout.
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        self.reader = config.reader

    def _persistable(self, points: List[MonitoringPoint],
                     result: Optional["CorrectionResult"]) -> Dict[str, List[PeriodData]]:
        """Adjusted periods per source file name for persistable points."""
        by_file: Dict[str, List[PeriodData]] = {}
        for point in points:
            point_result = result.result_for(point.point_name) if result is not None else None
            if point_result is None or not point_result.can_persist:
                continue
            for period in point.periods:
                if period.has_been_adjusted and period.source_file:
                    by_file.setdefault(period.source_file, []).append(period)
        return by_file

    def write(self, points: List[MonitoringPoint], result: Optional["CorrectionResult"],
              source_dir, output_dir) -> List[Path]:
        """Copy every workbook from ``source_dir`` into ``output_dir`` with corrections.

        Returns
        -------
        list of Path
            Written workbooks.
        """
        source_dir = Path(source_dir)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        updates = self._persistable(points, result)
        columns = self.reader.columns
        written = []

        sources = sorted(p for p in source_dir.glob(self.reader.file_pattern)
                         if p.is_file() and not p.name.startswith("~$"))
        for path in sources:
            wb = load_workbook(path)
            try:
                ws = wb.worksheets[self.reader.sheet_index]
                periods = updates.get(path.name, [])
                for period in periods:
                    for position, axis in enumerate(AXES):
                        ws.cell(row=period.row_number, column=columns.current_period[position] + 1,
                                value=period.current_period(axis))
                        ws.cell(row=period.row_number, column=columns.cumulative[position] + 1,
                                value=period.cumulative(axis))
                target = output_dir / path.name
                wb.save(target)
            finally:
                wb.close()
            written.append(target)
            if periods:
                logger.info("Wrote %s (%d corrected rows)", target.name, len(periods))

        logger.info("Wrote %d workbooks to %s", len(written), output_dir)
        return written


def write_report(path, validation_stats: "ValidationStatistics",
                 correction_result: Optional["CorrectionResult"] = None,
                 ledger_stats: Optional["CorrectionStatistics"] = None,
                 revalidation_stats: Optional["ValidationStatistics"] = None,
                 integrity: Optional["IntegrityReport"] = None,
                 run_id: Optional[str] = None) -> Path:
    """Write a plain-text summary of one run.

    Parameters
    ----------
    path : str or Path
        Report file.
    validation_stats : ValidationStatistics
        Statistics of the initial validation.
    correction_result : CorrectionResult, optional
        Batch correction outcome; unrepairable points are listed.
    ledger_stats : CorrectionStatistics, optional
        Ledger aggregates.
    revalidation_stats : ValidationStatistics, optional
        Statistics of the final re-validation.
    integrity : IntegrityReport, optional
        Grouping integrity findings.
    run_id : str, optional
        Identifier printed in the header.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rule = "=" * 70
    lines = [
        rule,
        "Displacement data correction report",
        f"Generated: {datetime.now():%Y-%m-%d %H:%M:%S}",
    ]
    if run_id:
        lines.append(f"Run ID: {run_id}")
    lines.append(rule)

    if integrity is not None:
        lines += ["", integrity.summary()]
        for issue_type, count in sorted(integrity.by_type().items()):
            lines.append(f"  {issue_type}: {count}")

    lines += ["", validation_stats.detailed_report()]

    if correction_result is not None:
        lines += ["", correction_result.summary()]
        for point_result in correction_result.point_results:
            if point_result.can_persist:
                continue
            lines.append(f"  [{point_result.status.value}] {point_result.point_name}: {point_result.message}")
            for violation in point_result.unrepairable[:5]:
                lines.append(f"      {violation.summary()}")

    if ledger_stats is not None:
        lines += ["", ledger_stats.detailed_report()]

    if revalidation_stats is not None:
        lines += ["", "After correction:", revalidation_stats.detailed_report()]

    lines += ["", rule]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info("Report written: %s", path)
    return path
