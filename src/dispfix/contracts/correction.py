"""Correction stage contracts.

Enforces well-formed correction lists, magnitude containment of adjusted
cells and one-to-one correspondence between corrections and ledger records.
"""

from typing import Iterable

from dispfix.contracts.base import require
from dispfix.core import tolerance
from dispfix.core.models import AXES, CorrectionKind, DataCorrection, MonitoringPoint


def assert_corrections_well_formed(corrections: Iterable[DataCorrection], n_periods: int) -> None:
    """Enforce that corrections address existing cells and spare the baseline.

    Raises
    ------
    ContractViolation
        On an out-of-range index, a non-NO_OP edit of epoch 0, or a BOTH
        correction without a paired cumulative.
    """
    for correction in corrections:
        if correction is None:
            continue
        require(
            0 <= correction.period_index < n_periods,
            f"Correction contract violated: period index {correction.period_index} "
            f"out of range for {n_periods} epochs ({correction.point_name!r})"
        )
        require(
            correction.period_index != 0 or correction.kind == CorrectionKind.NO_OP,
            f"Correction contract violated: {correction.kind.value} correction "
            f"targets the baseline epoch of {correction.point_name!r}"
        )
        require(
            correction.kind != CorrectionKind.BOTH or correction.paired_cumulative is not None,
            f"Correction contract violated: BOTH correction without paired cumulative "
            f"({correction.point_name!r}, epoch {correction.period_index})"
        )


def assert_within_bounds(point: MonitoringPoint, options) -> None:
    """Enforce magnitude containment on every adjusted cell.

    A cell whose delta was rewritten must satisfy
    ``|delta| <= max_current_period_value``. A cell whose cumulative was
    rewritten must satisfy ``|cum| <= max(max_cumulative_value, |cum_0|,
    |cum_prev|)``: a correction never pushes a value further out of range
    than the data it starts from.

    Parameters
    ----------
    point : MonitoringPoint
        Point after the cascade; ``PeriodData.adjustments`` holds the
        applied corrections.
    options : CorrectionOptions
        Bounds in force.
    """
    ordered = point.ordered_periods()
    if not ordered:
        return

    max_current = options.max_current_period_value
    max_cumulative = options.max_cumulative_value
    tol = tolerance.ENGINEERING_TOLERANCE

    for axis in AXES:
        baseline = tolerance.safe_abs(ordered[0].cumulative(axis))
        for i, period in enumerate(ordered[1:], start=1):
            applied = [c for c in period.adjustments
                       if isinstance(c, DataCorrection) and c.axis == axis and not c.is_no_op]
            if not applied:
                continue

            if any(c.sets_period_value for c in applied):
                delta = tolerance.safe_abs(period.current_period(axis))
                require(
                    tolerance.is_less_or_equal(delta, max_current, tol),
                    f"Bounds contract violated: {point.point_name!r} epoch {i} axis "
                    f"{axis.value} delta {delta} exceeds {max_current}"
                )

            if any(c.sets_cumulative for c in applied):
                previous = tolerance.safe_abs(ordered[i - 1].cumulative(axis))
                limit = max(max_cumulative, baseline, previous)
                cumulative = tolerance.safe_abs(period.cumulative(axis))
                require(
                    tolerance.is_less_or_equal(cumulative, limit, tol),
                    f"Bounds contract violated: {point.point_name!r} epoch {i} axis "
                    f"{axis.value} cumulative {cumulative} exceeds {limit}"
                )


def assert_ledger_consistent(result, ledger) -> None:
    """Enforce one ledger record per applied correction.

    Parameters
    ----------
    result : CorrectionResult
        Batch result from the cascade.
    ledger : AdjustmentLedger
        Ledger the cascade appended to.
    """
    corrections = 0
    for point_result in result.point_results:
        applied = [c for c in point_result.corrections if c is not None]
        require(
            len(applied) == len(point_result.records),
            f"Ledger contract violated: {point_result.point_name!r} has "
            f"{len(applied)} corrections but {len(point_result.records)} records"
        )
        corrections += len(applied)

    require(
        corrections == len(result.adjustment_records),
        f"Ledger contract violated: {corrections} corrections but "
        f"{len(result.adjustment_records)} batch records"
    )

    known = {record.id for record in ledger.records()}
    missing = [record.id for record in result.adjustment_records if record.id not in known]
    require(
        not missing,
        f"Ledger contract violated: {len(missing)} records missing from the ledger"
    )
