"""Recurrence and magnitude validation of monitoring-point series.

For every monitoring point the validator walks the time-ordered epochs and
checks, per axis X/Y/Z:

- the cumulative recurrence ``cum[i] == cum[i-1] + delta[i]`` (epochs 1..n-1,
  within ``cumulative_tolerance``), with severity escalated by how far off
  the cumulative is;
- the magnitude bounds ``|delta| <= max_current_period_value`` and
  ``|cum| <= max_cumulative_value`` (every epoch, baseline included);
- every delta and cumulative is a finite number; NaN or infinity is a
  critical, non-adjustable violation (and also fails the recurrence).

Recurrence violations may be cross-checked against an independent comparison
source: a violation is adjustable unless the comparison source holds a record
for the same point and epoch. Magnitude violations are never adjustable.

Expected data problems are returned as :class:`ValidationResult` objects and
never raised.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, TYPE_CHECKING

import pandas as pd

from dispfix.core import tolerance
from dispfix.core.models import (
    AXES,
    Axis,
    MonitoringPoint,
    PeriodData,
    Severity,
    ValidationResult,
    ValidationStatus,
)

if TYPE_CHECKING:
    from dispfix.schemas import InternalConfig, ValidationOptions

__all__ = [
    'InvariantValidator',
    'ComparisonIndex',
    'ValidationStatistics',
    'validate_point',
    'failure_cells',
    'results_to_frame',
    'CUMULATIVE_MISMATCH',
    'PERIOD_OUT_OF_RANGE',
    'CUMULATIVE_OUT_OF_RANGE',
    'UNORDERABLE_RECORD',
    'MISSING_DATA',
    'NON_FINITE_VALUE',
    'VALIDATION_ERROR',
]

logger = logging.getLogger(__name__)

CUMULATIVE_MISMATCH = "cumulative mismatch"
PERIOD_OUT_OF_RANGE = "period value out of range"
CUMULATIVE_OUT_OF_RANGE = "cumulative value out of range"
UNORDERABLE_RECORD = "unorderable record"
MISSING_DATA = "missing data"
NON_FINITE_VALUE = "non-finite value"
VALIDATION_ERROR = "validation error"

MAGNITUDE_ERRORS = (PERIOD_OUT_OF_RANGE, CUMULATIVE_OUT_OF_RANGE, NON_FINITE_VALUE)


def _name_key(point_name: str) -> str:
    return point_name.strip().casefold()


class ComparisonIndex:
    """Lookup of comparison-source epochs keyed by (point name, timestamp).

    Point names are matched case-insensitively; records without a name or a
    timestamp cannot be looked up and are ignored.
    """

    def __init__(self, periods: Iterable[PeriodData] = ()):
        self._records: Dict[Tuple[str, datetime], PeriodData] = {}
        for period in periods:
            self.add(period)

    def add(self, period: PeriodData) -> None:
        if not period.point_name or not period.point_name.strip() or period.timestamp is None:
            return
        self._records[(_name_key(period.point_name), period.timestamp)] = period

    def get(self, point_name: str, timestamp: Optional[datetime]) -> Optional[PeriodData]:
        if timestamp is None:
            return None
        return self._records.get((_name_key(point_name), timestamp))

    def has_record(self, point_name: str, timestamp: Optional[datetime]) -> bool:
        return self.get(point_name, timestamp) is not None

    def latest_for(self, point_name: str) -> Optional[PeriodData]:
        """Most recent comparison epoch for a point, if any."""
        key = _name_key(point_name)
        matches = [p for (name, _), p in self._records.items() if name == key]
        if not matches:
            return None
        return max(matches, key=lambda p: p.timestamp)

    def __len__(self) -> int:
        return len(self._records)


# =============================================================================
# Point validation
# =============================================================================

def _severity_for(diff: float, options: "ValidationOptions") -> Severity:
    if not tolerance.is_finite(diff) or tolerance.is_greater_than(diff, options.critical_threshold):
        return Severity.CRITICAL
    if tolerance.is_greater_than(diff, options.error_threshold):
        return Severity.ERROR
    return Severity.WARNING


def _check_recurrence(point_name: str, ordered: List[PeriodData],
                      options: "ValidationOptions") -> List[ValidationResult]:
    results = []
    for i in range(1, len(ordered)):
        previous, current = ordered[i - 1], ordered[i]
        for axis in AXES:
            previous_cum = previous.cumulative(axis)
            delta = current.current_period(axis)
            actual = current.cumulative(axis)
            expected = tolerance.safe_add(previous_cum, delta)
            diff = tolerance.abs_diff(expected, actual)

            # NaN never compares equal, so a non-finite operand fails here
            if tolerance.is_less_or_equal(diff, options.cumulative_tolerance):
                continue

            results.append(ValidationResult.violation(
                point_name,
                CUMULATIVE_MISMATCH,
                f"第{i + 1}期 {axis.value} axis cumulative mismatch: "
                f"expected {tolerance.format_number(expected)}, "
                f"actual {tolerance.format_number(actual)}",
                severity=_severity_for(diff, options),
                period=current,
                axis=axis,
                period_index=i,
                rule="cum[i] = cum[i-1] + delta[i]",
                expected_value=expected,
                actual_value=actual,
                difference=diff,
                details={"previous_cumulative": previous_cum, "current_period": delta},
            ))
    return results


def _non_finite(point_name: str, i: int, period: PeriodData, axis: Axis,
                field_name: str, value: float) -> ValidationResult:
    return ValidationResult.violation(
        point_name,
        NON_FINITE_VALUE,
        f"第{i + 1}期 {axis.value} axis {field_name} is not a finite number ({value})",
        severity=Severity.CRITICAL,
        period=period,
        axis=axis,
        period_index=i,
        rule=f"{field_name} is finite",
        actual_value=value,
        can_adjust=False,
    )


def _check_magnitude(point_name: str, ordered: List[PeriodData],
                     options: "ValidationOptions") -> List[ValidationResult]:
    results = []
    for i, period in enumerate(ordered):
        for axis in AXES:
            delta = period.current_period(axis)
            if not tolerance.is_finite(delta):
                results.append(_non_finite(point_name, i, period, axis, "period value", delta))
            elif not tolerance.is_less_or_equal(tolerance.safe_abs(delta), options.max_current_period_value):
                results.append(ValidationResult.violation(
                    point_name,
                    PERIOD_OUT_OF_RANGE,
                    f"第{i + 1}期 {axis.value} axis period value {tolerance.format_number(delta)} "
                    f"exceeds ±{options.max_current_period_value}",
                    severity=Severity.ERROR,
                    period=period,
                    axis=axis,
                    period_index=i,
                    rule="|delta| <= max_current_period_value",
                    expected_value=options.max_current_period_value,
                    actual_value=delta,
                    can_adjust=False,
                ))

            cumulative = period.cumulative(axis)
            if not tolerance.is_finite(cumulative):
                results.append(_non_finite(point_name, i, period, axis, "cumulative value", cumulative))
            elif not tolerance.is_less_or_equal(tolerance.safe_abs(cumulative), options.max_cumulative_value):
                results.append(ValidationResult.violation(
                    point_name,
                    CUMULATIVE_OUT_OF_RANGE,
                    f"第{i + 1}期 {axis.value} axis cumulative value {tolerance.format_number(cumulative)} "
                    f"exceeds ±{options.max_cumulative_value}",
                    severity=Severity.ERROR,
                    period=period,
                    axis=axis,
                    period_index=i,
                    rule="|cum| <= max_cumulative_value",
                    expected_value=options.max_cumulative_value,
                    actual_value=cumulative,
                    can_adjust=False,
                ))
    return results


def _cross_check(point: MonitoringPoint, violations: List[ValidationResult],
                 comparison: Optional[ComparisonIndex]) -> List[ValidationResult]:
    """Mark recurrence violations adjustable where nothing independent confirms them."""
    checked = []
    for result in violations:
        if comparison is None:
            adjustable = True
        else:
            has_predecessor = result.period_index is not None and result.period_index > 0
            adjustable = (not comparison.has_record(point.point_name, result.timestamp)
                          or not has_predecessor)
        checked.append(_with_can_adjust(result, adjustable))
    return checked


def _with_can_adjust(result: ValidationResult, can_adjust: bool) -> ValidationResult:
    if result.can_adjust == can_adjust:
        return result
    values = {name: getattr(result, name) for name in result.__dataclass_fields__}
    values["can_adjust"] = can_adjust
    return ValidationResult(**values)


def validate_point(point: MonitoringPoint, options: "ValidationOptions",
                   comparison: Optional[ComparisonIndex] = None) -> List[ValidationResult]:
    """Validate one monitoring point.

    Parameters
    ----------
    point : MonitoringPoint
        Point to check. Its periods are re-sorted in place.
    options : ValidationOptions
        Tolerance, severity thresholds and magnitude bounds.
    comparison : ComparisonIndex, optional
        Independent source used to decide which recurrence violations are
        adjustable. Without one, every recurrence violation is adjustable.

    Returns
    -------
    list of ValidationResult
        One result per violation, or a single Valid result when the point
        passes every check.
    """
    if not point.has_periods:
        return [ValidationResult.violation(
            point.point_name,
            MISSING_DATA,
            "monitoring point has no period data",
            severity=Severity.CRITICAL,
        )]

    point.sort_periods()
    ordered = point.ordered_periods()

    results = [
        ValidationResult.violation(
            point.point_name,
            UNORDERABLE_RECORD,
            f"record at row {period.row_number} has no timestamp and cannot be ordered",
            severity=Severity.WARNING,
            period=period,
            can_adjust=False,
        )
        for period in point.unorderable_periods()
    ]

    if len(ordered) < 2:
        if results:
            return results
        return [ValidationResult.valid(point.point_name, "fewer than two epochs, nothing to check")]

    recurrence = _cross_check(point, _check_recurrence(point.point_name, ordered, options), comparison)
    results.extend(recurrence)
    results.extend(_check_magnitude(point.point_name, ordered, options))

    if not results:
        return [ValidationResult.valid(point.point_name)]
    return results


def failure_cells(results: Iterable[ValidationResult],
                  include_magnitude: bool = False) -> Set[Tuple[int, Axis]]:
    """Distinct (period_index, axis) cells that fail validation.

    Only recurrence failures are counted unless ``include_magnitude`` is set.
    Results that are not scoped to a cell are ignored.
    """
    wanted = {CUMULATIVE_MISMATCH}
    if include_magnitude:
        wanted.update(MAGNITUDE_ERRORS)

    cells = set()
    for result in results:
        if result.is_valid or result.error_type not in wanted:
            continue
        cell = result.cell
        if cell is not None:
            cells.add((cell[0], Axis(cell[1])))
    return cells


# =============================================================================
# Statistics
# =============================================================================

RESULT_COLUMNS = [
    "point_name", "status", "severity", "error_type", "axis", "period_index",
    "row_number", "source_file", "timestamp", "expected_value", "actual_value",
    "difference", "can_adjust", "description",
]


def results_to_frame(results: Iterable[ValidationResult]) -> pd.DataFrame:
    """Flatten validation results into a DataFrame (one row per result)."""
    rows = []
    for r in results:
        rows.append({
            "point_name": r.point_name,
            "status": ValidationStatus(r.status).value,
            "severity": Severity(r.severity).value,
            "error_type": r.error_type,
            "axis": Axis(r.axis).value if r.axis is not None else None,
            "period_index": r.period_index,
            "row_number": r.row_number,
            "source_file": r.source_file,
            "timestamp": r.timestamp,
            "expected_value": r.expected_value,
            "actual_value": r.actual_value,
            "difference": r.difference,
            "can_adjust": r.can_adjust,
            "description": r.description,
        })
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


@dataclass
class ValidationStatistics:
    """Aggregate counts over a batch of validation results."""
    total: int = 0
    valid_count: int = 0
    invalid_count: int = 0
    needs_adjustment_count: int = 0
    by_severity: Dict[str, int] = field(default_factory=dict)
    by_error_type: Dict[str, int] = field(default_factory=dict)
    by_point: Dict[str, int] = field(default_factory=dict)
    by_file: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_results(cls, results: Iterable[ValidationResult]) -> "ValidationStatistics":
        df = results_to_frame(results)
        if df.empty:
            return cls()

        status_counts = df["status"].value_counts()
        failing = df[df["status"] != ValidationStatus.VALID.value]
        files = failing[failing["source_file"] != ""]

        return cls(
            total=len(df),
            valid_count=int(status_counts.get(ValidationStatus.VALID.value, 0)),
            invalid_count=int(status_counts.get(ValidationStatus.INVALID.value, 0)),
            needs_adjustment_count=int(status_counts.get(ValidationStatus.NEEDS_ADJUSTMENT.value, 0)),
            by_severity={k: int(v) for k, v in df["severity"].value_counts().items()},
            by_error_type={k: int(v) for k, v in failing["error_type"].value_counts().items()},
            by_point={k: int(v) for k, v in failing["point_name"].value_counts().items()},
            by_file={k: int(v) for k, v in files["source_file"].value_counts().items()},
        )

    @property
    def critical_count(self) -> int:
        return self.by_severity.get(Severity.CRITICAL.value, 0)

    def summary(self) -> str:
        return (f"validation: {self.total} results, {self.valid_count} valid, "
                f"{self.invalid_count} invalid, {self.needs_adjustment_count} need adjustment")

    def detailed_report(self, top: int = 10) -> str:
        lines = [
            "Validation statistics",
            f"  total results:      {self.total}",
            f"  valid:              {self.valid_count}",
            f"  invalid:            {self.invalid_count}",
            f"  needs adjustment:   {self.needs_adjustment_count}",
        ]
        for severity in Severity:
            lines.append(f"  {severity.value + ':':20s}{self.by_severity.get(severity.value, 0)}")

        for title, counts in (("by error type", self.by_error_type),
                              (f"by point (top {top})", self.by_point),
                              (f"by file (top {top})", self.by_file)):
            if counts:
                lines.append(f"\n  {title}:")
                ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
                for key, count in ranked[:top]:
                    lines.append(f"    {key}: {count}")
        return "\n".join(lines)


# =============================================================================
# Batch wrapper
# =============================================================================

class InvariantValidator:
    """Validate batches of monitoring points with configured options.

    Besides returning results, the validator annotates each ``PeriodData``
    with its validation status, error messages and adjustability so that
    downstream writers can report per-row outcomes.

    Parameters
    ----------
    config : InternalConfig
        Uses ``config.validation`` and ``config.processor.progress_interval``.
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        self.options = config.validation
        self.progress_interval = config.processor.progress_interval

    def validate_point(self, point: MonitoringPoint,
                       comparison: Optional[ComparisonIndex] = None) -> List[ValidationResult]:
        results = validate_point(point, self.options, comparison)
        self._annotate(point, results)
        return results

    def validate_points(self, points: List[MonitoringPoint],
                        comparison: Optional[ComparisonIndex] = None,
                        progress: Optional[Callable[[int, int], None]] = None) -> List[ValidationResult]:
        """Validate every point; a failing point yields a Critical result."""
        total = len(points)
        results: List[ValidationResult] = []
        logger.info("Validating %d monitoring points", total)

        for done, point in enumerate(points, start=1):
            try:
                results.extend(self.validate_point(point, comparison))
            except Exception as e:
                logger.exception("Validation failed for point %s", point.point_name)
                results.append(ValidationResult.violation(
                    point.point_name,
                    VALIDATION_ERROR,
                    f"exception during validation: {e}",
                    severity=Severity.CRITICAL,
                ))

            if done % self.progress_interval == 0 or done == total:
                logger.info("Validation progress: %d/%d", done, total)
            if progress is not None:
                progress(done, total)

        stats = ValidationStatistics.from_results(results)
        logger.info(stats.summary())
        return results

    def validate_corrected(self, points: List[MonitoringPoint]) -> List[ValidationResult]:
        """Re-validate corrected points (no cross-check)."""
        logger.info("Re-validating %d corrected points", len(points))
        return self.validate_points(points)

    @staticmethod
    def _annotate(point: MonitoringPoint, results: List[ValidationResult]) -> None:
        for period in point.periods:
            period.clear_validation_errors()
            period.can_adjust = False

        ordered = point.ordered_periods()
        for result in results:
            if result.is_valid:
                continue
            if result.period_index is not None and result.period_index < len(ordered):
                period = ordered[result.period_index]
            elif result.error_type == UNORDERABLE_RECORD:
                period = next((p for p in point.unorderable_periods()
                               if p.row_number == result.row_number), None)
            else:
                period = None
            if period is None:
                continue
            period.add_validation_error(result.description)
            if result.can_adjust:
                period.can_adjust = True
