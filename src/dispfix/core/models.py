"""In-memory data model for displacement-monitoring batches.

A batch is a list of :class:`MonitoringPoint` objects, each owning a
time-ordered list of :class:`PeriodData` epochs. Every epoch carries, for each
axis X/Y/Z, a per-period delta and a running cumulative value:

    cumulative[i] == cumulative[i-1] + current_period[i]    (i > 0)

Validation produces :class:`ValidationResult` records; correction produces
immutable :class:`DataCorrection` proposals which are applied to the
``PeriodData`` objects in place.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

__all__ = [
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


# =============================================================================
# Enumerations
# =============================================================================

class Axis(str, Enum):
    """Measurement direction."""
    X = "X"
    Y = "Y"
    Z = "Z"

    @property
    def position(self) -> int:
        """Column of this axis in ``(n, 3)`` series arrays."""
        return AXES.index(self)


AXES: Tuple[Axis, Axis, Axis] = (Axis.X, Axis.Y, Axis.Z)


class ValidationStatus(str, Enum):
    NOT_VALIDATED = "not_validated"
    VALID = "valid"
    INVALID = "invalid"
    NEEDS_ADJUSTMENT = "needs_adjustment"


class Severity(str, Enum):
    """Validation severity, ordered by :attr:`rank`."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.WARNING: 1,
    Severity.ERROR: 2,
    Severity.CRITICAL: 3,
}


class CorrectionKind(str, Enum):
    """What a :class:`DataCorrection` rewrites."""
    NO_OP = "no_op"
    PERIOD_VALUE_ONLY = "period_value_only"
    CUMULATIVE_VALUE_ONLY = "cumulative_value_only"
    BOTH = "both"


class AdjustmentType(str, Enum):
    """Audit category of an :class:`~dispfix.monitoring.ledger.AdjustmentRecord`."""
    NONE = "none"
    CURRENT_PERIOD = "current_period"
    CUMULATIVE = "cumulative"


class CorrectionStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class CascadeState(str, Enum):
    """States of the per-point correction cascade.

    ``UNCHECKED -> GLOBAL_APPLIED -> {VERIFIED | NEEDS_ESCALATION}
    -> AGGRESSIVE_APPLIED -> {VERIFIED | NEEDS_FURTHER_ESCALATION}
    -> {PARTIAL_APPLIED | FINAL_APPLIED} -> RECORDED``
    """
    UNCHECKED = "unchecked"
    GLOBAL_APPLIED = "global_applied"
    VERIFIED = "verified"
    NEEDS_ESCALATION = "needs_escalation"
    AGGRESSIVE_APPLIED = "aggressive_applied"
    NEEDS_FURTHER_ESCALATION = "needs_further_escalation"
    PARTIAL_APPLIED = "partial_applied"
    FINAL_APPLIED = "final_applied"
    RECORDED = "recorded"


# =============================================================================
# Source files
# =============================================================================

# e.g. "2025.7.1-00云港城项目4#地块.xlsx"
_FILENAME_PATTERN = re.compile(r"^(\d{4})\.(\d{1,2})\.(\d{1,2})-(\d{2})(.+)$")

UNKNOWN_PROJECT = "unknown project"


@dataclass(frozen=True)
class SourceFile:
    """Provenance of one spreadsheet: acquisition date, hour and project.

    Instances order by ``(date, hour)`` so a list of files sorts into
    acquisition order.
    """
    path: Path
    date: date
    hour: int
    project_name: str

    @classmethod
    def from_path(cls, path) -> "SourceFile":
        """Parse ``YYYY.M.D-HH<project>.<ext>`` file names.

        Names that do not match fall back to the file's modification time
        (or the epoch when the file does not exist).
        """
        path = Path(path)
        match = _FILENAME_PATTERN.match(path.stem)
        if match:
            year, month, day, hour, project = match.groups()
            try:
                return cls(
                    path=path,
                    date=date(int(year), int(month), int(day)),
                    hour=int(hour),
                    project_name=project.strip(),
                )
            except ValueError:
                pass

        try:
            modified = datetime.fromtimestamp(path.stat().st_mtime)
        except OSError:
            modified = datetime(1970, 1, 1)
        return cls(path=path, date=modified.date(), hour=modified.hour,
                   project_name=UNKNOWN_PROJECT)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def timestamp(self) -> datetime:
        return datetime(self.date.year, self.date.month, self.date.day) + timedelta(hours=self.hour)

    @property
    def formatted_time(self) -> str:
        return f"{self.date:%Y-%m-%d} {self.hour:02d}:00"

    def __lt__(self, other: "SourceFile") -> bool:
        return (self.date, self.hour) < (other.date, other.hour)


# =============================================================================
# Observations
# =============================================================================

@dataclass
class PeriodData:
    """One observation epoch for one monitoring point.

    ``timestamp`` may be None; such a record cannot be ordered and does not
    take part in recurrence checks.
    """
    point_name: str
    timestamp: Optional[datetime] = None
    row_number: int = 0
    source_file: str = ""
    mileage: float = 0.0
    current_period_x: float = 0.0
    current_period_y: float = 0.0
    current_period_z: float = 0.0
    cumulative_x: float = 0.0
    cumulative_y: float = 0.0
    cumulative_z: float = 0.0
    daily_x: float = 0.0
    daily_y: float = 0.0
    daily_z: float = 0.0
    validation_status: ValidationStatus = ValidationStatus.NOT_VALIDATED
    validation_errors: List[str] = field(default_factory=list)
    can_adjust: bool = False
    adjustments: List[Any] = field(default_factory=list)

    def current_period(self, axis: Axis) -> float:
        return getattr(self, f"current_period_{Axis(axis).value.lower()}")

    def set_current_period(self, axis: Axis, value: float) -> None:
        setattr(self, f"current_period_{Axis(axis).value.lower()}", float(value))

    def cumulative(self, axis: Axis) -> float:
        return getattr(self, f"cumulative_{Axis(axis).value.lower()}")

    def set_cumulative(self, axis: Axis, value: float) -> None:
        setattr(self, f"cumulative_{Axis(axis).value.lower()}", float(value))

    def daily(self, axis: Axis) -> float:
        return getattr(self, f"daily_{Axis(axis).value.lower()}")

    def snapshot(self) -> Tuple[float, ...]:
        """Exact copy of the six corrected fields (deltas then cumulatives)."""
        return (
            self.current_period_x, self.current_period_y, self.current_period_z,
            self.cumulative_x, self.cumulative_y, self.cumulative_z,
        )

    def add_validation_error(self, message: str) -> None:
        self.validation_errors.append(message)
        self.validation_status = ValidationStatus.INVALID

    def clear_validation_errors(self) -> None:
        self.validation_errors.clear()
        self.validation_status = ValidationStatus.VALID

    @property
    def has_been_adjusted(self) -> bool:
        return len(self.adjustments) > 0

    @property
    def formatted_time(self) -> str:
        if self.timestamp is None:
            return "unknown time"
        return f"{self.timestamp:%Y-%m-%d %H:00}"

    def copy(self) -> "PeriodData":
        clone = PeriodData(**{
            name: getattr(self, name) for name in self.__dataclass_fields__
        })
        clone.validation_errors = list(self.validation_errors)
        clone.adjustments = list(self.adjustments)
        return clone

    def __str__(self) -> str:
        return f"{self.point_name} - {self.formatted_time} - row {self.row_number}"


def _period_sort_key(item: Tuple[int, PeriodData]):
    position, period = item
    if period.timestamp is None:
        return (1, datetime.min, position)
    return (0, period.timestamp, position)


@dataclass
class MonitoringPoint:
    """A physical monitoring point and its time-ordered epochs."""
    point_name: str
    mileage: float = 0.0
    periods: List[PeriodData] = field(default_factory=list)
    comparison: Optional[PeriodData] = None

    def add_period(self, period: PeriodData) -> None:
        """Append an epoch and keep the list time-ordered.

        Raises
        ------
        ValueError
            If the epoch belongs to a different point (case-insensitive).
        """
        if not period.point_name or not period.point_name.strip():
            raise ValueError("Period point name must not be empty")
        if period.point_name.strip().casefold() != self.point_name.strip().casefold():
            raise ValueError(
                f"Period point name {period.point_name!r} does not match "
                f"monitoring point {self.point_name!r}"
            )
        self.periods.append(period)
        self.sort_periods()

    def sort_periods(self) -> None:
        """Stable sort by timestamp; records without a timestamp go last."""
        self.periods = [p for _, p in sorted(enumerate(self.periods), key=_period_sort_key)]

    def ordered_periods(self) -> List[PeriodData]:
        """Timestamped epochs in ascending order (unorderable ones dropped)."""
        return [p for p in self.periods if p.timestamp is not None]

    def unorderable_periods(self) -> List[PeriodData]:
        return [p for p in self.periods if p.timestamp is None]

    def period_at(self, timestamp: datetime) -> Optional[PeriodData]:
        for period in self.periods:
            if period.timestamp == timestamp:
                return period
        return None

    def set_comparison(self, comparison: Optional[PeriodData]) -> None:
        if comparison is not None and \
                comparison.point_name.strip().casefold() != self.point_name.strip().casefold():
            raise ValueError(
                f"Comparison point name {comparison.point_name!r} does not match "
                f"monitoring point {self.point_name!r}"
            )
        self.comparison = comparison

    @property
    def period_count(self) -> int:
        return len(self.periods)

    @property
    def has_periods(self) -> bool:
        return len(self.periods) > 0

    @property
    def earliest_time(self) -> Optional[datetime]:
        ordered = self.ordered_periods()
        return ordered[0].timestamp if ordered else None

    @property
    def latest_time(self) -> Optional[datetime]:
        ordered = self.ordered_periods()
        return ordered[-1].timestamp if ordered else None

    @property
    def total_adjustment_count(self) -> int:
        return sum(len(p.adjustments) for p in self.periods)


# =============================================================================
# Validation results
# =============================================================================

@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single check.

    Build instances through :meth:`valid` or :meth:`violation`; the status and
    severity are fixed at construction time.
    """
    status: ValidationStatus
    severity: Severity
    error_type: str
    description: str
    point_name: str = ""
    axis: Optional[Axis] = None
    period_index: Optional[int] = None
    row_number: int = 0
    source_file: str = ""
    timestamp: Optional[datetime] = None
    rule: str = ""
    expected_value: Optional[float] = None
    actual_value: Optional[float] = None
    difference: Optional[float] = None
    can_adjust: bool = False
    details: Dict[str, Any] = field(default_factory=dict)
    validated_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def valid(cls, point_name: str, description: str = "all checks passed",
              error_type: str = "consistency") -> "ValidationResult":
        return cls(
            status=ValidationStatus.VALID,
            severity=Severity.INFO,
            error_type=error_type,
            description=description,
            point_name=point_name,
        )

    @classmethod
    def violation(cls, point_name: str, error_type: str, description: str,
                  severity: Severity = Severity.WARNING,
                  status: ValidationStatus = ValidationStatus.INVALID,
                  period: Optional[PeriodData] = None,
                  **kwargs) -> "ValidationResult":
        """Create a failing result, copying provenance from ``period``."""
        if period is not None:
            kwargs.setdefault("row_number", period.row_number)
            kwargs.setdefault("source_file", period.source_file)
            kwargs.setdefault("timestamp", period.timestamp)
        return cls(
            status=status,
            severity=severity,
            error_type=error_type,
            description=description,
            point_name=point_name,
            **kwargs,
        )

    @property
    def is_valid(self) -> bool:
        return self.status == ValidationStatus.VALID

    @property
    def cell(self) -> Optional[Tuple[int, Axis]]:
        """(period_index, axis) this result refers to, if cell-scoped."""
        if self.period_index is None or self.axis is None:
            return None
        return (self.period_index, self.axis)

    def summary(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.point_name}"]
        if self.axis is not None:
            parts.append(f"{self.axis.value}")
        if self.row_number:
            parts.append(f"row {self.row_number}")
        parts.append(f"{self.error_type}: {self.description}")
        return " ".join(parts)


# =============================================================================
# Corrections
# =============================================================================

@dataclass(frozen=True)
class DataCorrection:
    """An immutable, proposed edit to one (epoch, axis) cell.

    ``original_value``/``corrected_value`` refer to the per-period delta for
    ``PERIOD_VALUE_ONLY`` and ``BOTH``, and to the cumulative value for
    ``CUMULATIVE_VALUE_ONLY``. A ``BOTH`` correction additionally carries the
    new cumulative in ``paired_cumulative`` (and the replaced one in
    ``original_cumulative``).
    """
    point_name: str
    period_index: int
    axis: Axis
    kind: CorrectionKind
    original_value: float
    corrected_value: float
    reason: str
    tier: str = ""
    paired_cumulative: Optional[float] = None
    original_cumulative: Optional[float] = None

    def __post_init__(self):
        if self.kind == CorrectionKind.BOTH and self.paired_cumulative is None:
            raise ValueError("BOTH correction requires paired_cumulative")
        if self.kind != CorrectionKind.BOTH and self.paired_cumulative is not None:
            raise ValueError(f"{self.kind.value} correction cannot carry paired_cumulative")

    @classmethod
    def no_op(cls, point_name: str, period_index: int, axis: Axis, value: float,
              reason: str, tier: str = "") -> "DataCorrection":
        return cls(point_name, period_index, Axis(axis), CorrectionKind.NO_OP,
                   value, value, reason, tier)

    @classmethod
    def period_value(cls, point_name: str, period_index: int, axis: Axis,
                     original: float, corrected: float, reason: str,
                     tier: str = "") -> "DataCorrection":
        return cls(point_name, period_index, Axis(axis), CorrectionKind.PERIOD_VALUE_ONLY,
                   original, corrected, reason, tier)

    @classmethod
    def cumulative_value(cls, point_name: str, period_index: int, axis: Axis,
                         original: float, corrected: float, reason: str,
                         tier: str = "") -> "DataCorrection":
        return cls(point_name, period_index, Axis(axis), CorrectionKind.CUMULATIVE_VALUE_ONLY,
                   original, corrected, reason, tier)

    @classmethod
    def both(cls, point_name: str, period_index: int, axis: Axis,
             original_delta: float, corrected_delta: float,
             original_cumulative: float, corrected_cumulative: float,
             reason: str, tier: str = "") -> "DataCorrection":
        return cls(point_name, period_index, Axis(axis), CorrectionKind.BOTH,
                   original_delta, corrected_delta, reason, tier,
                   paired_cumulative=corrected_cumulative,
                   original_cumulative=original_cumulative)

    @property
    def is_no_op(self) -> bool:
        return self.kind == CorrectionKind.NO_OP

    @property
    def sets_period_value(self) -> bool:
        return self.kind in (CorrectionKind.PERIOD_VALUE_ONLY, CorrectionKind.BOTH)

    @property
    def sets_cumulative(self) -> bool:
        return self.kind in (CorrectionKind.CUMULATIVE_VALUE_ONLY, CorrectionKind.BOTH)

    @property
    def new_cumulative(self) -> Optional[float]:
        if self.kind == CorrectionKind.CUMULATIVE_VALUE_ONLY:
            return self.corrected_value
        if self.kind == CorrectionKind.BOTH:
            return self.paired_cumulative
        return None
