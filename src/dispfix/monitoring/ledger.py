"""Append-only audit ledger of applied corrections.

Every :class:`~dispfix.core.models.DataCorrection` applied by the cascade,
NO_OP ones included, becomes exactly one :class:`AdjustmentRecord`. Records
are immutable and the ledger only ever grows; it can be summarized with
:meth:`AdjustmentLedger.statistics` and exported to Parquet (pyarrow),
Excel (openpyxl) or CSV for reporting.
"""

import json
import logging
import math
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import pandas as pd

from dispfix.core import tolerance
from dispfix.core.models import (
    AdjustmentType,
    Axis,
    CorrectionKind,
    DataCorrection,
    PeriodData,
)

__all__ = ['AdjustmentRecord', 'AdjustmentLedger', 'CorrectionStatistics']

logger = logging.getLogger(__name__)

_TYPE_BY_KIND = {
    CorrectionKind.NO_OP: AdjustmentType.NONE,
    CorrectionKind.PERIOD_VALUE_ONLY: AdjustmentType.CURRENT_PERIOD,
    CorrectionKind.CUMULATIVE_VALUE_ONLY: AdjustmentType.CUMULATIVE,
    CorrectionKind.BOTH: AdjustmentType.CUMULATIVE,
}


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AdjustmentRecord:
    """Permanent audit entry for one applied correction.

    For ``BOTH`` corrections ``original_value``/``adjusted_value`` hold the
    cumulative pair; the rewritten delta is kept in
    ``original_period_value``/``adjusted_period_value``.
    """
    point_name: str
    period_index: int
    axis: Axis
    adjustment_type: AdjustmentType
    original_value: float
    adjusted_value: float
    adjustment_amount: float = 0.0
    reason: str = ""
    description: str = ""
    tier: str = ""
    source_file: str = ""
    row_number: int = 0
    original_period_value: Optional[float] = None
    adjusted_period_value: Optional[float] = None
    is_successful: bool = True
    failure_reason: str = ""
    constraints: Dict[str, float] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)
    adjusted_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_correction(cls, correction: DataCorrection,
                        period: Optional[PeriodData] = None,
                        constraints: Optional[Dict[str, float]] = None) -> "AdjustmentRecord":
        kind = CorrectionKind(correction.kind)
        original_period = adjusted_period = None

        if kind == CorrectionKind.BOTH:
            original = correction.original_cumulative
            if original is None:
                original = math.nan
            adjusted = correction.paired_cumulative
            original_period = correction.original_value
            adjusted_period = correction.corrected_value
        else:
            original = correction.original_value
            adjusted = correction.corrected_value

        amount = 0.0
        if kind != CorrectionKind.NO_OP and not math.isnan(original):
            amount = tolerance.safe_subtract(adjusted, original)

        axis = Axis(correction.axis)
        description = (f"{correction.point_name} {axis.value} epoch {correction.period_index}: "
                       f"{tolerance.format_number(original, 3)} -> {tolerance.format_number(adjusted, 3)}")
        if adjusted_period is not None:
            description += (f" (period {tolerance.format_number(original_period, 3)} -> "
                            f"{tolerance.format_number(adjusted_period, 3)})")

        return cls(
            point_name=correction.point_name,
            period_index=correction.period_index,
            axis=axis,
            adjustment_type=_TYPE_BY_KIND[kind],
            original_value=original,
            adjusted_value=adjusted,
            adjustment_amount=amount,
            reason=correction.reason,
            description=description,
            tier=correction.tier,
            source_file=period.source_file if period is not None else "",
            row_number=period.row_number if period is not None else 0,
            original_period_value=original_period,
            adjusted_period_value=adjusted_period,
            constraints=dict(constraints or {}),
        )

    def summary(self) -> str:
        return (f"{self.point_name} [{self.axis.value}] {self.adjustment_type.value}: "
                f"{self.original_value:.3f} -> {self.adjusted_value:.3f} "
                f"({self.adjustment_amount:+.3f}) {self.reason}")


@dataclass
class CorrectionStatistics:
    """Aggregate view of a ledger for reporting."""
    total: int = 0
    point_count: int = 0
    file_count: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    by_axis: Dict[str, int] = field(default_factory=dict)
    by_point: Dict[str, int] = field(default_factory=dict)

    def summary(self) -> str:
        return (f"adjustments: {self.total} records across {self.point_count} points "
                f"in {self.file_count} files")

    def detailed_report(self, top: int = 10) -> str:
        lines = [
            "Adjustment statistics",
            f"  total records: {self.total}",
            f"  points:        {self.point_count}",
            f"  files:         {self.file_count}",
        ]
        for title, counts in (("by type", self.by_type), ("by axis", self.by_axis),
                              (f"by point (top {top})", self.by_point)):
            if counts:
                lines.append(f"\n  {title}:")
                ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
                for key, count in ranked[:top]:
                    lines.append(f"    {key}: {count}")
        return "\n".join(lines)


LEDGER_COLUMNS = [
    "id", "adjusted_at", "point_name", "period_index", "axis", "adjustment_type",
    "original_value", "adjusted_value", "adjustment_amount",
    "original_period_value", "adjusted_period_value", "reason", "description",
    "tier", "source_file", "row_number", "is_successful", "failure_reason",
    "constraints",
]


class AdjustmentLedger:
    """Thread-safe, append-only collection of :class:`AdjustmentRecord`.

    Workers may append concurrently; :meth:`merge` appends per-point record
    lists in the order given so batch output can follow input order.
    """

    def __init__(self, records: Iterable[AdjustmentRecord] = ()):
        self._records: List[AdjustmentRecord] = list(records)
        self._lock = threading.Lock()

    def append(self, record: AdjustmentRecord) -> None:
        with self._lock:
            self._records.append(record)

    def extend(self, records: Iterable[AdjustmentRecord]) -> None:
        records = list(records)
        with self._lock:
            self._records.extend(records)

    def merge(self, point_records: Iterable[Iterable[AdjustmentRecord]]) -> int:
        """Append several per-point record lists atomically, in order."""
        flattened = [record for records in point_records for record in records]
        with self._lock:
            self._records.extend(flattened)
        return len(flattened)

    def records(self) -> Tuple[AdjustmentRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[AdjustmentRecord]:
        return iter(self.records())

    def statistics(self) -> CorrectionStatistics:
        records = self.records()
        if not records:
            return CorrectionStatistics()

        df = self.to_frame(records)
        files = df.loc[df["source_file"] != "", "source_file"]
        return CorrectionStatistics(
            total=len(df),
            point_count=int(df["point_name"].nunique()),
            file_count=int(files.nunique()),
            by_type={k: int(v) for k, v in df["adjustment_type"].value_counts().items()},
            by_axis={k: int(v) for k, v in df["axis"].value_counts().items()},
            by_point={k: int(v) for k, v in df["point_name"].value_counts().items()},
        )

    def to_frame(self, records: Optional[Iterable[AdjustmentRecord]] = None) -> pd.DataFrame:
        """One row per record; enums as strings, constraints as JSON text."""
        if records is None:
            records = self.records()
        rows = []
        for r in records:
            rows.append({
                "id": r.id,
                "adjusted_at": r.adjusted_at,
                "point_name": r.point_name,
                "period_index": r.period_index,
                "axis": Axis(r.axis).value,
                "adjustment_type": AdjustmentType(r.adjustment_type).value,
                "original_value": r.original_value,
                "adjusted_value": r.adjusted_value,
                "adjustment_amount": r.adjustment_amount,
                "original_period_value": r.original_period_value,
                "adjusted_period_value": r.adjusted_period_value,
                "reason": r.reason,
                "description": r.description,
                "tier": r.tier,
                "source_file": r.source_file,
                "row_number": r.row_number,
                "is_successful": r.is_successful,
                "failure_reason": r.failure_reason,
                "constraints": json.dumps(r.constraints, sort_keys=True),
            })
        df = pd.DataFrame(rows, columns=LEDGER_COLUMNS)
        for column in ("original_period_value", "adjusted_period_value"):
            df[column] = pd.to_numeric(df[column], errors="coerce")
        return df

    def export(self, path, compression: str = "snappy") -> Path:
        """Write the ledger to ``path``; the suffix picks the format.

        Parameters
        ----------
        path : str or Path
            ``.parquet`` (pyarrow), ``.xlsx`` (openpyxl) or ``.csv``.
        compression : str
            Parquet codec: 'snappy', 'gzip', 'zstd' or 'none'.

        Returns
        -------
        Path
            The written file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        df = self.to_frame()
        suffix = path.suffix.lower()

        if suffix == ".parquet":
            df.to_parquet(
                path,
                engine="pyarrow",
                compression=None if compression == "none" else compression,
                index=False,
            )
        elif suffix == ".xlsx":
            # Excel cannot store timezone-aware datetimes
            df["adjusted_at"] = pd.to_datetime(df["adjusted_at"], utc=True).dt.tz_localize(None)
            df.to_excel(path, engine="openpyxl", index=False, sheet_name="adjustments")
        elif suffix == ".csv":
            df.to_csv(path, index=False)
        else:
            raise ValueError(f"Unsupported ledger format: {path.suffix!r}")

        logger.info("Ledger exported: %s (%d records)", path, len(df))
        return path
