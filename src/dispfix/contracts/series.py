"""Series stage contracts.

Enforces ordering of a monitoring point's epochs and immutability of the
baseline epoch across the correction cascade.
"""

from typing import Sequence

import numpy as np

from dispfix.contracts.base import require
from dispfix.core.models import MonitoringPoint


def assert_time_ordered(point: MonitoringPoint) -> None:
    """Enforce that orderable epochs are sorted and unorderable ones trail.

    Raises
    ------
    ContractViolation
        If timestamps decrease, or a timestamped epoch follows one without.
    """
    seen_unorderable = False
    previous = None
    for position, period in enumerate(point.periods):
        if period.timestamp is None:
            seen_unorderable = True
            continue
        require(
            not seen_unorderable,
            f"Series contract violated: {point.point_name!r} has a timestamped epoch "
            f"at position {position} after an unorderable one"
        )
        require(
            previous is None or period.timestamp >= previous,
            f"Series contract violated: {point.point_name!r} timestamps decrease "
            f"at position {position} ({previous} -> {period.timestamp})"
        )
        previous = period.timestamp


def assert_baseline_preserved(before: Sequence[float], after: Sequence[float],
                              point_name: str = "") -> None:
    """Enforce bit-identical baseline values.

    Parameters
    ----------
    before, after : sequence of float
        ``PeriodData.snapshot()`` of epoch 0 taken before and after correction.

    Raises
    ------
    ContractViolation
        If any of the six values differs at the bit level.
    """
    lhs = np.asarray(before, dtype=np.float64)
    rhs = np.asarray(after, dtype=np.float64)
    require(
        lhs.shape == rhs.shape and lhs.tobytes() == rhs.tobytes(),
        f"Correction contract violated: baseline epoch of {point_name!r} changed "
        f"({tuple(lhs)} -> {tuple(rhs)})"
    )
