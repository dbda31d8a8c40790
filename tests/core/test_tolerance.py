"""Tests for NaN/Infinity-aware tolerance arithmetic."""

import math

import pytest

pytestmark = pytest.mark.unit

from dispfix.core import tolerance as tol


NAN = float("nan")
INF = float("inf")


class TestComparisons:
    """Equality and ordering with combined absolute/relative tolerance."""

    def test_near_zero_uses_absolute_difference(self):
        """Values below the tolerance compare by absolute difference."""
        assert tol.are_equal(1e-12, -1e-12)
        assert tol.are_equal(0.0, 5e-11)

    def test_large_values_use_relative_difference(self):
        """Large magnitudes compare by relative difference."""
        assert tol.are_equal(1e12, 1e12 + 1.0)
        assert not tol.are_equal(1.0, 1.001)

    def test_nan_is_never_equal(self):
        """NaN is unequal to everything, itself included."""
        assert not tol.are_equal(NAN, NAN)
        assert not tol.are_equal(NAN, 1.0)
        assert tol.are_not_equal(NAN, NAN)

    def test_infinities_compare_by_ieee(self):
        """Same-signed infinities are equal, opposite ones are not."""
        assert tol.are_equal(INF, INF)
        assert not tol.are_equal(INF, -INF)
        assert not tol.are_equal(INF, 1e308)

    def test_strict_ordering_excludes_near_equal(self):
        """is_greater_than is false for values equal within tolerance."""
        assert tol.is_greater_than(1.1, 1.0)
        assert not tol.is_greater_than(1.0 + 1e-12, 1.0)
        assert tol.is_less_than(0.9, 1.0)
        assert not tol.is_less_than(1.0 - 1e-12, 1.0)

    def test_inclusive_ordering_accepts_near_equal(self):
        assert tol.is_greater_or_equal(1.0 - 1e-12, 1.0)
        assert tol.is_less_or_equal(1.0 + 1e-12, 1.0)

    def test_nan_ordering_is_false(self):
        """Every ordering involving NaN is false."""
        assert not tol.is_greater_than(NAN, 0.0)
        assert not tol.is_less_than(NAN, 0.0)
        assert not tol.is_greater_or_equal(NAN, 0.0)
        assert not tol.is_less_or_equal(NAN, 0.0)

    def test_sign_predicates(self):
        assert tol.is_zero(1e-11)
        assert tol.is_positive(0.5)
        assert not tol.is_positive(1e-11)
        assert tol.is_negative(-0.5)

    def test_is_in_range_is_inclusive_and_rejects_non_finite(self):
        assert tol.is_in_range(1.0, 1.0, 2.0)
        assert tol.is_in_range(2.0, 1.0, 2.0)
        assert not tol.is_in_range(NAN, 0.0, 1.0)
        assert not tol.is_in_range(INF, 0.0, INF)

    def test_is_finite(self):
        assert tol.is_finite(0.0)
        assert tol.is_finite(-1e308)
        assert not tol.is_finite(NAN)
        assert not tol.is_finite(-INF)


class TestArithmetic:
    """Decimal-backed arithmetic and rounding."""

    def test_safe_add_avoids_binary_noise(self):
        """0.1 + 0.2 is exactly 0.3."""
        assert tol.safe_add(0.1, 0.2) == 0.3
        assert tol.safe_subtract(0.3, 0.1) == 0.2

    def test_non_finite_operands_follow_ieee(self):
        assert tol.safe_add(INF, 1.0) == INF
        assert math.isnan(tol.safe_add(NAN, 1.0))

    def test_abs_diff(self):
        assert tol.abs_diff(1.2, 2.5) == 1.3

    def test_round_half_away_from_zero(self):
        """Rounding uses the decimal representation, half away from zero."""
        assert tol.safe_round(2.675, 2) == 2.68
        assert tol.safe_round(-2.5, 0) == -3.0
        assert tol.safe_round(0.5, 0) == 1.0

    def test_round_passes_non_finite_through(self):
        assert math.isnan(tol.safe_round(NAN, 2))
        assert tol.safe_round(-INF, 2) == -INF

    def test_truncate_toward_zero(self):
        assert tol.safe_truncate(1.999, 2) == 1.99
        assert tol.safe_truncate(-1.999, 2) == -1.99

    def test_clamp(self):
        """Clamping maps infinities to the bounds and keeps NaN."""
        assert tol.safe_clamp(5.0, -1.0, 1.0) == 1.0
        assert tol.safe_clamp(-5.0, -1.0, 1.0) == -1.0
        assert tol.safe_clamp(INF, -1.0, 1.0) == 1.0
        assert tol.safe_clamp(-INF, -1.0, 1.0) == -1.0
        assert math.isnan(tol.safe_clamp(NAN, -1.0, 1.0))

    def test_sign(self):
        assert tol.safe_sign(3.0) == 1.0
        assert tol.safe_sign(-3.0) == -1.0
        assert tol.safe_sign(1e-12) == 0.0
        assert tol.safe_sign(-INF) == -1.0
        assert math.isnan(tol.safe_sign(NAN))

    def test_max_min_with_infinities(self):
        assert tol.safe_max(INF, 1.0) == INF
        assert tol.safe_max(-INF, 1.0) == 1.0
        assert tol.safe_min(-INF, 1.0) == -INF
        assert math.isnan(tol.safe_min(NAN, 1.0))

    def test_sqrt_and_log_domains(self):
        assert tol.safe_sqrt(4.0) == 2.0
        assert math.isnan(tol.safe_sqrt(-1.0))
        assert math.isnan(tol.safe_log(0.0))
        assert tol.safe_log(INF) == INF
        assert math.isnan(tol.safe_cos(INF))


class TestAggregates:
    """Aggregates ignore non-finite values."""

    def test_sum_and_mean_skip_non_finite(self):
        values = [0.1, 0.2, NAN, INF]
        assert tol.safe_sum(values) == 0.3
        assert tol.safe_mean(values) == pytest.approx(0.15)

    def test_empty_aggregates(self):
        assert tol.safe_sum([]) == 0.0
        assert math.isnan(tol.safe_mean([]))
        assert tol.safe_std([1.0]) == 0.0

    def test_std_is_sample_std(self):
        assert tol.safe_std([1.0, 2.0, 3.0, 4.0]) == pytest.approx(1.2909944, rel=1e-6)

    def test_format_number(self):
        assert tol.format_number(2.5) == "2.500000"
        assert tol.format_number(1.2345, 2) == "1.23"
        assert tol.format_number(NAN) == "nan"
