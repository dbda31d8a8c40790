"""NaN/Infinity-aware floating point arithmetic and tolerance comparisons.

Every comparison between doubles in ``dispfix`` goes through this module.
Equality combines absolute and relative error so that values near zero and
values of large magnitude are both compared sensibly:

- both magnitudes below ``tol``: ``|a - b| < tol``
- otherwise: ``|a - b| / max(|a|, |b|) < tol``

NaN compares unequal to everything (itself included). Infinities compare by
IEEE equality, so ``+inf == +inf``.

Addition, subtraction and rounding go through :class:`decimal.Decimal` built
from the shortest ``repr`` of each operand. ``safe_add(0.1, 0.2)`` therefore
returns ``0.3`` and ``safe_round(2.675, 2)`` returns ``2.68``, which is what a
person reading the spreadsheet expects.

Examples
--------
>>> from dispfix.core import tolerance as tol
>>> tol.are_equal(1.0, 1.0 + 1e-12)
True
>>> tol.are_equal(float("nan"), float("nan"))
False
>>> tol.safe_round(-2.5, 0)
-3.0
"""

import math
from decimal import Decimal, ROUND_HALF_UP, ROUND_DOWN, InvalidOperation
from typing import Iterable

import numpy as np

__all__ = [
    'DEFAULT_TOLERANCE',
    'ENGINEERING_TOLERANCE',
    'HIGH_PRECISION_TOLERANCE',
    'are_equal',
    'are_not_equal',
    'is_greater_than',
    'is_less_than',
    'is_greater_or_equal',
    'is_less_or_equal',
    'is_zero',
    'is_positive',
    'is_negative',
    'is_in_range',
    'is_finite',
    'safe_add',
    'safe_subtract',
    'abs_diff',
    'safe_abs',
    'safe_sign',
    'safe_clamp',
    'safe_round',
    'safe_truncate',
    'safe_max',
    'safe_min',
    'safe_sqrt',
    'safe_log',
    'safe_cos',
    'safe_sum',
    'safe_mean',
    'safe_std',
    'format_number',
]

DEFAULT_TOLERANCE = 1e-10
ENGINEERING_TOLERANCE = 1e-6
HIGH_PRECISION_TOLERANCE = 1e-12


def _is_finite(value: float) -> bool:
    return not (math.isnan(value) or math.isinf(value))


def is_finite(value: float) -> bool:
    """False for NaN and for either infinity."""
    return _is_finite(float(value))


def _to_decimal(value: float) -> Decimal:
    if not _is_finite(value):
        raise ValueError(f"Cannot convert non-finite value to Decimal: {value}")
    return Decimal(repr(float(value)))


# =============================================================================
# Comparisons
# =============================================================================

def are_equal(a: float, b: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    """Compare two doubles with combined absolute/relative tolerance.

    Parameters
    ----------
    a, b : float
        Operands.
    tol : float, optional
        Absolute tolerance near zero, relative tolerance elsewhere.

    Returns
    -------
    bool
        False whenever either operand is NaN.
    """
    if math.isnan(a) or math.isnan(b):
        return False

    if math.isinf(a) or math.isinf(b):
        return a == b

    diff = abs(a - b)
    if abs(a) < tol and abs(b) < tol:
        return diff < tol

    return diff / max(abs(a), abs(b)) < tol


def are_not_equal(a: float, b: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    return not are_equal(a, b, tol)


def is_greater_than(a: float, b: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    """True when ``a > b`` and the two are not equal within ``tol``."""
    return a > b and not are_equal(a, b, tol)


def is_less_than(a: float, b: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    """True when ``a < b`` and the two are not equal within ``tol``."""
    return a < b and not are_equal(a, b, tol)


def is_greater_or_equal(a: float, b: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    return a > b or are_equal(a, b, tol)


def is_less_or_equal(a: float, b: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    return a < b or are_equal(a, b, tol)


def is_zero(value: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    return are_equal(value, 0.0, tol)


def is_positive(value: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    return is_greater_than(value, 0.0, tol)


def is_negative(value: float, tol: float = DEFAULT_TOLERANCE) -> bool:
    return is_less_than(value, 0.0, tol)


def is_in_range(value: float, lower: float, upper: float) -> bool:
    """Inclusive range check; NaN and infinities are never in range."""
    if not _is_finite(value):
        return False
    return lower <= value <= upper


# =============================================================================
# Arithmetic
# =============================================================================

def safe_add(a: float, b: float) -> float:
    """Decimal-backed addition; falls back to IEEE for non-finite operands."""
    if not (_is_finite(a) and _is_finite(b)):
        return a + b
    return float(_to_decimal(a) + _to_decimal(b))


def safe_subtract(a: float, b: float) -> float:
    """Decimal-backed subtraction; falls back to IEEE for non-finite operands."""
    if not (_is_finite(a) and _is_finite(b)):
        return a - b
    return float(_to_decimal(a) - _to_decimal(b))


def abs_diff(a: float, b: float) -> float:
    """Absolute difference ``|a - b|`` without binary round-off noise."""
    return abs(safe_subtract(a, b))


def safe_abs(value: float) -> float:
    if math.isnan(value):
        return math.nan
    if math.isinf(value):
        return math.inf
    return abs(value)


def safe_sign(value: float) -> float:
    """Sign of ``value`` as a float.

    Returns NaN for NaN, ``±1.0`` for infinities and ``0.0`` for anything
    equal to zero within :data:`DEFAULT_TOLERANCE`.
    """
    if math.isnan(value):
        return math.nan
    if math.isinf(value):
        return 1.0 if value > 0 else -1.0
    if is_zero(value):
        return 0.0
    return 1.0 if value > 0 else -1.0


def safe_max(a: float, b: float) -> float:
    if math.isnan(a) or math.isnan(b):
        return math.nan
    if math.isinf(a):
        return a if a > 0 else b
    if math.isinf(b):
        return b if b > 0 else a
    return max(a, b)


def safe_min(a: float, b: float) -> float:
    if math.isnan(a) or math.isnan(b):
        return math.nan
    if math.isinf(a):
        return a if a < 0 else b
    if math.isinf(b):
        return b if b < 0 else a
    return min(a, b)


def safe_clamp(value: float, lower: float, upper: float) -> float:
    """Clamp ``value`` into ``[lower, upper]``.

    NaN stays NaN, ``+inf`` maps to ``upper`` and ``-inf`` to ``lower``.
    """
    if math.isnan(value):
        return math.nan
    if math.isinf(value):
        return upper if value > 0 else lower
    return safe_max(lower, safe_min(value, upper))


def safe_round(value: float, digits: int = 0) -> float:
    """Round half away from zero at ``digits`` decimal places.

    Python's built-in ``round`` uses banker's rounding and operates on the
    binary value, so ``round(2.675, 2) == 2.67``. This helper returns 2.68.
    """
    if not _is_finite(value):
        return value
    try:
        quantum = Decimal(1).scaleb(-digits)
        return float(_to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return value


def safe_truncate(value: float, digits: int = 0) -> float:
    """Truncate toward zero at ``digits`` decimal places."""
    if not _is_finite(value):
        return value
    try:
        quantum = Decimal(1).scaleb(-digits)
        return float(_to_decimal(value).quantize(quantum, rounding=ROUND_DOWN))
    except InvalidOperation:
        return value


def safe_sqrt(value: float) -> float:
    if math.isnan(value) or value < 0:
        return math.nan
    if math.isinf(value):
        return math.inf
    if is_zero(value):
        return 0.0
    return math.sqrt(value)


def safe_log(value: float) -> float:
    if math.isnan(value) or value <= 0:
        return math.nan
    if math.isinf(value):
        return math.inf
    return math.log(value)


def safe_cos(value: float) -> float:
    if not _is_finite(value):
        return math.nan
    return math.cos(value)


# =============================================================================
# Aggregates
# =============================================================================

def _finite_array(values: Iterable[float]) -> np.ndarray:
    arr = np.asarray(list(values), dtype=float)
    return arr[np.isfinite(arr)]


def safe_sum(values: Iterable[float]) -> float:
    """Decimal-backed sum of the finite values (0.0 for empty input)."""
    finite = _finite_array(values)
    total = Decimal(0)
    for v in finite:
        total += _to_decimal(float(v))
    return float(total)


def safe_mean(values: Iterable[float]) -> float:
    """Mean of the finite values; NaN when there are none."""
    finite = _finite_array(values)
    if finite.size == 0:
        return math.nan
    return safe_sum(finite) / finite.size


def safe_std(values: Iterable[float]) -> float:
    """Sample (n-1) standard deviation of the finite values.

    Returns 0.0 when fewer than two finite values are present.
    """
    finite = _finite_array(values)
    if finite.size <= 1:
        return 0.0
    return float(np.std(finite, ddof=1))


def format_number(value: float, digits: int = 6) -> str:
    """Fixed-point string using half-away-from-zero rounding."""
    if not _is_finite(value):
        return str(value)
    return f"{safe_round(value, digits):.{digits}f}"
