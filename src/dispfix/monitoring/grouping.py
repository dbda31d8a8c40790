"""Group period records by monitoring point and check batch integrity."""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, TYPE_CHECKING

from dispfix.core.models import MonitoringPoint, PeriodData, Severity

if TYPE_CHECKING:
    from dispfix.schemas import ValidationOptions

__all__ = ['group_by_point', 'check_integrity', 'IntegrityIssue', 'IntegrityReport']

logger = logging.getLogger(__name__)

MIN_MILEAGE = 0.0
MAX_MILEAGE = 100000.0

EMPTY_POINT_NAME = "empty point name"
INVALID_MILEAGE = "invalid mileage"
NO_PERIOD_DATA = "no period data"
DUPLICATE_DATA = "duplicate data"
TIME_GAP = "time gap"


def group_by_point(periods: Iterable[PeriodData]) -> List[MonitoringPoint]:
    """Group records into time-sorted monitoring points.

    Names are trimmed and matched case-insensitively; the first spelling
    seen wins. Records without a name are skipped with a warning. A point's
    mileage is the first non-zero mileage among its records.
    """
    groups: "OrderedDict[str, List[PeriodData]]" = OrderedDict()
    names: Dict[str, str] = {}
    skipped = 0

    for period in periods:
        name = (period.point_name or "").strip()
        if not name:
            skipped += 1
            continue
        period.point_name = name
        key = name.casefold()
        names.setdefault(key, name)
        groups.setdefault(key, []).append(period)

    if skipped:
        logger.warning("Skipped %d records without a point name", skipped)

    points = []
    for key, records in groups.items():
        mileage = next((p.mileage for p in records if p.mileage != 0), 0.0)
        point = MonitoringPoint(point_name=names[key], mileage=mileage)
        point.periods = list(records)
        point.sort_periods()
        points.append(point)

    logger.info("Grouped %d records into %d monitoring points",
                sum(len(p.periods) for p in points), len(points))
    return points


@dataclass(frozen=True)
class IntegrityIssue:
    point_name: str
    issue_type: str
    description: str
    severity: Severity = Severity.WARNING


@dataclass
class IntegrityReport:
    """Batch-level data integrity findings."""
    point_count: int = 0
    period_count: int = 0
    issues: List[IntegrityIssue] = field(default_factory=list)

    @property
    def issue_count(self) -> int:
        return len(self.issues)

    @property
    def has_critical(self) -> bool:
        return any(issue.severity == Severity.CRITICAL for issue in self.issues)

    def by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for issue in self.issues:
            counts[issue.issue_type] = counts.get(issue.issue_type, 0) + 1
        return counts

    def summary(self) -> str:
        return (f"integrity: {self.point_count} points, {self.period_count} periods, "
                f"{self.issue_count} issues")


def check_integrity(points: Iterable[MonitoringPoint],
                    options: Optional["ValidationOptions"] = None) -> IntegrityReport:
    """Report structural problems in grouped data.

    Checks empty names, mileage outside ``[0, 100000]``, points without
    periods, repeated timestamps and, when ``options`` is given, gaps between
    consecutive epochs longer than ``options.max_time_interval`` days.
    """
    points = list(points)
    report = IntegrityReport(point_count=len(points),
                             period_count=sum(p.period_count for p in points))
    max_gap = timedelta(days=options.max_time_interval) if options is not None else None

    for point in points:
        name = point.point_name
        if not name or not name.strip():
            report.issues.append(IntegrityIssue(name, EMPTY_POINT_NAME,
                                                "monitoring point name is empty", Severity.CRITICAL))
            continue

        if point.mileage < MIN_MILEAGE or point.mileage > MAX_MILEAGE:
            report.issues.append(IntegrityIssue(name, INVALID_MILEAGE,
                                                f"mileage out of range: {point.mileage}"))

        if not point.has_periods:
            report.issues.append(IntegrityIssue(name, NO_PERIOD_DATA,
                                                "monitoring point has no period data", Severity.CRITICAL))
            continue

        ordered = point.ordered_periods()
        seen = set()
        for period in ordered:
            if period.timestamp in seen:
                report.issues.append(IntegrityIssue(
                    name, DUPLICATE_DATA,
                    f"duplicate epoch {period.formatted_time} (row {period.row_number}, {period.source_file})"))
            seen.add(period.timestamp)

        if max_gap is not None:
            for previous, current in zip(ordered, ordered[1:]):
                gap = current.timestamp - previous.timestamp
                if gap > max_gap:
                    report.issues.append(IntegrityIssue(
                        name, TIME_GAP,
                        f"{gap.days} days between {previous.formatted_time} and {current.formatted_time}"))

    if report.issues:
        logger.warning(report.summary())
    else:
        logger.info(report.summary())
    return report
