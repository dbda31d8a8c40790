"""Four-tier correction cascade for monitoring-point series.

The cascade repairs one monitoring point at a time so that, per axis,

    cum[i] == cum[i-1] + delta[i]                (within tolerance)
    |delta[i]| <= max_current_period_value
    |cum[i]|   <= max_cumulative_value

while never touching the baseline epoch 0.

Tiers
-----
1. **Global** (:func:`global_corrections`): minimal edits. Follow the forward
   recurrence seeded by ``cum[0]`` and rewrite only mismatching cumulatives;
   if the expected value is out of bounds, clip it and back-solve the delta.
2. **Aggressive** (:func:`aggressive_corrections`): regenerate every delta
   from a normal distribution fitted to the original deltas and re-accumulate
   the cumulatives from the current baseline.
3. **Partial** (:func:`partial_corrections`): small uniform edits on the
   still-failing cells only. Chosen when the failure ratio is below
   ``failure_ratio_threshold``.
4. **Final** (:func:`final_corrections`): regenerate the whole series from
   outlier-filtered statistics with a 20% safety margin on the delta bound.

Tier functions are pure: they read a :class:`PointSeries` and return a list
of :class:`~dispfix.core.models.DataCorrection`. :class:`CorrectionCascade`
applies them in order, re-validating between tiers. Tiers are layered: a
later tier starts from the values an earlier tier wrote and nothing is
rolled back.

All randomness comes from an explicit ``numpy.random.Generator``; a batch
derives one independent generator per point from a single seed, so results
are reproducible regardless of worker count.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, TYPE_CHECKING

import numpy as np

from dispfix.contracts import (
    ContractViolation,
    assert_baseline_preserved,
    assert_corrections_well_formed,
    assert_ledger_consistent,
    assert_time_ordered,
    assert_within_bounds,
)
from dispfix.core import tolerance
from dispfix.core.models import (
    AXES,
    Axis,
    CascadeState,
    CorrectionStatus,
    DataCorrection,
    MonitoringPoint,
    PeriodData,
    ValidationResult,
)
from dispfix.monitoring.ledger import AdjustmentLedger, AdjustmentRecord
from dispfix.monitoring.validator import NON_FINITE_VALUE, failure_cells, validate_point

if TYPE_CHECKING:
    from dispfix.schemas import CorrectionOptions, InternalConfig

__all__ = [
    'PointSeries',
    'RngFactory',
    'CorrectionCascade',
    'PointCorrectionResult',
    'CorrectionResult',
    'global_corrections',
    'aggressive_corrections',
    'partial_corrections',
    'final_corrections',
    'failure_ratio',
    'select_escalation_tier',
    'apply_corrections',
]

logger = logging.getLogger(__name__)

TIER_GLOBAL = "global"
TIER_AGGRESSIVE = "aggressive"
TIER_PARTIAL = "partial"
TIER_FINAL = "final"

MIN_SAMPLE_MAGNITUDE = 0.001
DEGENERATE_STD = 0.1
PARTIAL_DELTA_LIMIT = 0.5
FINAL_SAFETY_MARGIN = 0.8


def _round6(value: float) -> float:
    return tolerance.safe_round(value, 6)


# =============================================================================
# Series view
# =============================================================================

@dataclass
class PointSeries:
    """Array view of a point's ordered epochs.

    ``deltas`` and ``cumulatives`` are ``(n, 3)`` arrays in axis order X, Y, Z
    holding the current values; ``original_deltas`` holds the deltas as they
    were before the cascade started.
    """
    point_name: str
    deltas: np.ndarray
    cumulatives: np.ndarray
    original_deltas: Optional[np.ndarray] = None

    def __post_init__(self):
        self.deltas = np.asarray(self.deltas, dtype=float).reshape(-1, 3)
        self.cumulatives = np.asarray(self.cumulatives, dtype=float).reshape(-1, 3)
        if self.original_deltas is None:
            self.original_deltas = self.deltas.copy()
        else:
            self.original_deltas = np.asarray(self.original_deltas, dtype=float).reshape(-1, 3)

    @classmethod
    def from_periods(cls, point_name: str, periods: Sequence[PeriodData],
                     original_deltas: Optional[np.ndarray] = None) -> "PointSeries":
        deltas = np.array([[p.current_period(axis) for axis in AXES] for p in periods], dtype=float)
        cumulatives = np.array([[p.cumulative(axis) for axis in AXES] for p in periods], dtype=float)
        return cls(point_name, deltas.reshape(-1, 3), cumulatives.reshape(-1, 3), original_deltas)

    @classmethod
    def from_point(cls, point: MonitoringPoint,
                   original_deltas: Optional[np.ndarray] = None) -> "PointSeries":
        return cls.from_periods(point.point_name, point.ordered_periods(), original_deltas)

    @property
    def n_periods(self) -> int:
        return self.deltas.shape[0]


class RngFactory:
    """Deterministic source of independent generators.

    Each call to :meth:`spawn` hands out fresh children of one
    ``numpy.random.SeedSequence``; with a fixed seed the sequence of
    generators is reproducible. ``seed=None`` draws OS entropy.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._sequence = np.random.SeedSequence(seed)

    def spawn(self, count: int) -> List[np.random.Generator]:
        return [np.random.default_rng(child) for child in self._sequence.spawn(count)]

    def __call__(self) -> np.random.Generator:
        return self.spawn(1)[0]


# =============================================================================
# Sampling helpers
# =============================================================================

def _standard_normal(rng: np.random.Generator) -> float:
    """Box-Muller transform of two uniform draws."""
    u1 = 1.0 - rng.random()  # (0, 1]
    u2 = rng.random()
    radius = tolerance.safe_sqrt(-2.0 * tolerance.safe_log(u1))
    return radius * tolerance.safe_cos(2.0 * np.pi * u2)


def _clip(value: float, bound: float) -> float:
    return tolerance.safe_clamp(value, -bound, bound)


def _accumulate(previous: float, value: float, options: "CorrectionOptions") -> Tuple[float, float]:
    """Add ``value`` to ``previous`` within the configured bounds.

    Returns ``(delta, cumulative)`` satisfying the recurrence. The cumulative
    is clipped to ``max_cumulative_value`` (back-solving the delta); the delta
    is then clamped to ``max_current_period_value``, which can only happen
    when ``previous`` is itself out of range.
    """
    max_cum = options.max_cumulative_value
    max_cur = options.max_current_period_value

    cumulative = _round6(tolerance.safe_add(previous, value))
    if tolerance.is_greater_than(tolerance.safe_abs(cumulative), max_cum):
        cumulative = _clip(cumulative, max_cum)
        value = _round6(tolerance.safe_subtract(cumulative, previous))

    if tolerance.is_greater_than(tolerance.safe_abs(value), max_cur):
        value = _clip(value, max_cur)
        cumulative = _round6(tolerance.safe_add(previous, value))

    return value, cumulative


def _distribution(values: np.ndarray) -> Tuple[float, float, float]:
    """Mean, sample std and largest magnitude of the finite values."""
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return 0.0, 0.0, 0.0
    mean = tolerance.safe_mean(finite)
    std = tolerance.safe_std(finite)
    observed_max = tolerance.safe_max(tolerance.safe_abs(float(finite.max())),
                                      tolerance.safe_abs(float(finite.min())))
    return mean, std, observed_max


def _sample_delta(mean: float, std: float, limit: float,
                  options: "CorrectionOptions", rng: np.random.Generator) -> float:
    max_cur = options.max_current_period_value
    attempts = options.max_sample_attempts
    widen_at = attempts // 2

    for attempt in range(attempts):
        if attempt == widen_at:
            std = max(1.5 * std, DEGENERATE_STD)
        value = _round6(mean + _standard_normal(rng) * std)
        value = _clip(_clip(value, limit), max_cur)
        if tolerance.is_greater_or_equal(tolerance.safe_abs(value), MIN_SAMPLE_MAGNITUDE):
            return value

    fallback = tolerance.safe_sign(mean) * tolerance.safe_max(0.1, tolerance.safe_abs(mean))
    return _clip(_clip(_round6(fallback), limit), max_cur)


# =============================================================================
# Tier 1: global (minimal) corrections
# =============================================================================

def global_corrections(series: PointSeries, options: "CorrectionOptions",
                       rng: Optional[np.random.Generator] = None) -> List[DataCorrection]:
    """Rewrite mismatching cumulatives along the forward recurrence.

    Per axis the expected chain starts at ``cum[0]``. At a mismatch the
    cumulative is set to the expected value when that is within
    ``max_cumulative_value`` (CUMULATIVE_VALUE_ONLY); otherwise it is clipped
    to the bound and the delta back-solved from the previous expected value
    (BOTH), provided the new delta respects ``max_current_period_value``.
    Cells that cannot be fixed this way, and cells with a NaN or infinite
    operand, are left for escalation.

    Returns an empty list when minimal modification is disabled.
    """
    if not options.enable_minimal_modification:
        return []

    corrections = []
    max_cum = options.max_cumulative_value
    max_cur = options.max_current_period_value

    for axis in AXES:
        col = axis.position
        expected_previous = float(series.cumulatives[0, col])

        for i in range(1, series.n_periods):
            delta = float(series.deltas[i, col])
            actual = float(series.cumulatives[i, col])
            expected = tolerance.safe_add(expected_previous, delta)

            if not (tolerance.is_finite(expected) and tolerance.is_finite(actual)):
                # keep the chain on the last finite value
                logger.debug("%s %s epoch %d: non-finite operand, left for escalation",
                             series.point_name, axis.value, i)
                if tolerance.is_finite(expected):
                    expected_previous = expected
                elif tolerance.is_finite(actual):
                    expected_previous = actual
                continue

            if tolerance.is_less_or_equal(tolerance.abs_diff(expected, actual),
                                          options.cumulative_tolerance):
                expected_previous = expected
                continue

            if tolerance.is_less_or_equal(tolerance.safe_abs(expected), max_cum):
                corrected = _round6(expected)
                corrections.append(DataCorrection.cumulative_value(
                    series.point_name, i, axis, actual, corrected,
                    f"cumulative recomputed from recurrence (expected {tolerance.format_number(expected)})",
                    tier=TIER_GLOBAL,
                ))
                expected_previous = corrected
                continue

            clipped = _clip(expected, max_cum)
            new_delta = _round6(tolerance.safe_subtract(clipped, expected_previous))
            if tolerance.is_less_or_equal(tolerance.safe_abs(new_delta), max_cur):
                corrections.append(DataCorrection.both(
                    series.point_name, i, axis, delta, new_delta, actual, clipped,
                    f"cumulative clipped to ±{max_cum}, period value back-solved",
                    tier=TIER_GLOBAL,
                ))
                expected_previous = clipped
            else:
                logger.debug("%s %s epoch %d: back-solved delta %.6f exceeds ±%s, left for escalation",
                             series.point_name, axis.value, i, new_delta, max_cur)
                expected_previous = actual

    return corrections


# =============================================================================
# Tier 2: aggressive (statistical) corrections
# =============================================================================

def aggressive_corrections(series: PointSeries, options: "CorrectionOptions",
                           rng: np.random.Generator) -> List[DataCorrection]:
    """Regenerate every delta from the original delta distribution.

    The baseline gets a NO_OP per axis. For epochs 1..n-1 each axis draws a
    normal sample from the mean/std of the original deltas (std replaced by
    ``0.3 * observed max`` when below 0.1), clipped to
    ``±max(2 * observed max, 1.0)`` and to the delta bound, and accumulates
    it from the current baseline cumulative. Every epoch yields a BOTH
    correction.
    """
    corrections = [
        DataCorrection.no_op(series.point_name, 0, axis, float(series.deltas[0, axis.position]),
                             "baseline epoch is never modified", tier=TIER_AGGRESSIVE)
        for axis in AXES
    ]

    for axis in AXES:
        col = axis.position
        mean, std, observed_max = _distribution(series.original_deltas[1:, col])
        if tolerance.is_less_than(std, DEGENERATE_STD, options.cumulative_tolerance):
            std = 0.3 * observed_max
        limit = max(2.0 * observed_max, 1.0)

        previous = float(series.cumulatives[0, col])
        for i in range(1, series.n_periods):
            sample = _sample_delta(mean, std, limit, options, rng)
            delta, cumulative = _accumulate(previous, sample, options)
            corrections.append(DataCorrection.both(
                series.point_name, i, axis,
                float(series.deltas[i, col]), delta,
                float(series.cumulatives[i, col]), cumulative,
                f"regenerated from original distribution (mean {mean:.3f}, std {std:.3f})",
                tier=TIER_AGGRESSIVE,
            ))
            previous = cumulative

    return corrections


# =============================================================================
# Escalation
# =============================================================================

def failure_ratio(cells: Iterable[Tuple[int, Axis]], n_periods: int) -> float:
    """Share of (epoch, axis) cells still failing, in ``(0, 1]``.

    At least one failing cell is assumed, since the ratio is only computed
    for points that are still invalid.
    """
    total = max(1, n_periods * len(AXES))
    return min(1.0, max(1, len(set(cells))) / total)


def select_escalation_tier(cells: Iterable[Tuple[int, Axis]], n_periods: int,
                           threshold: float) -> Tuple[str, float]:
    """Pick the tier after the aggressive pass.

    Returns ``("partial", ratio)`` when ``ratio < threshold`` and
    ``("final", ratio)`` otherwise.
    """
    ratio = failure_ratio(cells, n_periods)
    if tolerance.is_less_than(ratio, threshold):
        return TIER_PARTIAL, ratio
    return TIER_FINAL, ratio


# =============================================================================
# Tier 3: partial corrections
# =============================================================================

def partial_corrections(series: PointSeries, options: "CorrectionOptions",
                        rng: np.random.Generator,
                        cells: Iterable[Tuple[int, Axis]]) -> List[DataCorrection]:
    """Nudge only the failing cells by a small uniform amount.

    For each failing ``(i, axis)`` with ``i >= 1``, in epoch order, draw
    ``delta`` uniformly in ``±random_change_range`` and set
    ``cum = cum[i-1] + delta`` using the working (already nudged) previous
    cumulative. A delta that ends up above 0.5 (or the delta bound) collapses
    to 0 with the cumulative held at the previous value.
    """
    working = series.cumulatives.copy()
    max_cum = options.max_cumulative_value
    delta_limit = min(PARTIAL_DELTA_LIMIT, options.max_current_period_value)
    corrections = []

    for i, axis in sorted(set(cells), key=lambda cell: (cell[0], Axis(cell[1]).position)):
        axis = Axis(axis)
        if i <= 0 or i >= series.n_periods:
            continue
        col = axis.position
        previous = float(working[i - 1, col])

        delta = _round6((rng.random() - 0.5) * 2.0 * options.random_change_range)
        cumulative = _round6(tolerance.safe_add(previous, delta))
        if tolerance.is_greater_than(tolerance.safe_abs(cumulative), max_cum):
            cumulative = _clip(cumulative, max_cum)
            delta = _round6(tolerance.safe_subtract(cumulative, previous))
        if tolerance.is_greater_than(tolerance.safe_abs(delta), delta_limit):
            delta = 0.0
            cumulative = previous

        working[i, col] = cumulative
        corrections.append(DataCorrection.both(
            series.point_name, i, axis,
            float(series.deltas[i, col]), delta,
            float(series.cumulatives[i, col]), cumulative,
            "small random change on failing cell",
            tier=TIER_PARTIAL,
        ))

    return corrections


# =============================================================================
# Tier 4: final corrections
# =============================================================================

def _final_sample(mean: float, std: float, has_data: bool, limit: float,
                  rng: np.random.Generator, tol: float = tolerance.DEFAULT_TOLERANCE) -> float:
    if not has_data:
        value = _round6(rng.uniform(-0.1, 0.1))
    elif tolerance.is_less_than(tolerance.safe_abs(mean), 0.1, tol):
        value = _round6(rng.uniform(-0.2, 0.2))
    else:
        value = _clip(_round6(mean + _standard_normal(rng) * std * 0.5), limit)

    if tolerance.is_less_than(tolerance.safe_abs(value), MIN_SAMPLE_MAGNITUDE, tol):
        value = tolerance.safe_sign(mean) * MIN_SAMPLE_MAGNITUDE
    return value


def final_corrections(series: PointSeries, options: "CorrectionOptions",
                      rng: np.random.Generator) -> List[DataCorrection]:
    """Regenerate epochs 1..n-1 from outlier-filtered statistics.

    Per axis, original deltas beyond ``2 * max_current_period_value`` are
    dropped before fitting mean/std. Samples are limited to 80% of the delta
    bound and accumulated from the baseline cumulative. Only cells whose
    values actually change produce a correction.
    """
    max_cur = options.max_current_period_value
    limit = FINAL_SAFETY_MARGIN * max_cur
    corrections = []

    for axis in AXES:
        col = axis.position
        original = series.original_deltas[1:, col]
        kept = original[np.isfinite(original) & (np.abs(original) <= 2.0 * max_cur)]
        mean, std, _ = _distribution(kept)
        has_data = kept.size > 0

        previous = float(series.cumulatives[0, col])
        for i in range(1, series.n_periods):
            sample = _final_sample(mean, std, has_data, limit, rng, options.cumulative_tolerance)
            delta, cumulative = _accumulate(previous, sample, options)

            old_delta = float(series.deltas[i, col])
            old_cumulative = float(series.cumulatives[i, col])
            if tolerance.are_not_equal(delta, old_delta) or tolerance.are_not_equal(cumulative, old_cumulative):
                corrections.append(DataCorrection.both(
                    series.point_name, i, axis, old_delta, delta, old_cumulative, cumulative,
                    "regenerated from filtered distribution",
                    tier=TIER_FINAL,
                ))
            previous = cumulative

    return corrections


# =============================================================================
# Application
# =============================================================================

def apply_corrections(point: MonitoringPoint, corrections: Iterable[Optional[DataCorrection]]) -> int:
    """Write corrections into the point's ordered epochs in place.

    ``None`` entries are skipped. Every applied correction (NO_OP included)
    is appended to the epoch's ``adjustments``.

    Returns
    -------
    int
        Number of corrections applied.
    """
    ordered = point.ordered_periods()
    applied = 0
    for correction in corrections:
        if correction is None:
            continue
        period = ordered[correction.period_index]
        if correction.sets_period_value:
            period.set_current_period(correction.axis, correction.corrected_value)
        if correction.sets_cumulative:
            period.set_cumulative(correction.axis, correction.new_cumulative)
        period.adjustments.append(correction)
        applied += 1
    return applied


# =============================================================================
# Results
# =============================================================================

@dataclass
class PointCorrectionResult:
    """Outcome of the cascade for one monitoring point."""
    point_name: str
    status: CorrectionStatus
    message: str = ""
    corrections: List[DataCorrection] = field(default_factory=list)
    records: List[AdjustmentRecord] = field(default_factory=list)
    final_state: CascadeState = CascadeState.UNCHECKED
    states: List[CascadeState] = field(default_factory=list)
    tiers: List[str] = field(default_factory=list)
    failure_ratio: Optional[float] = None
    verified: bool = False
    unrepairable: List[ValidationResult] = field(default_factory=list)

    @property
    def can_persist(self) -> bool:
        return self.status == CorrectionStatus.SUCCESS and self.verified

    @property
    def changed_count(self) -> int:
        return sum(1 for c in self.corrections if not c.is_no_op)


@dataclass
class CorrectionResult:
    """Outcome of a batch correction run."""
    status: CorrectionStatus
    message: str = ""
    point_results: List[PointCorrectionResult] = field(default_factory=list)
    adjustment_records: List[AdjustmentRecord] = field(default_factory=list)

    def _count(self, status: CorrectionStatus) -> int:
        return sum(1 for r in self.point_results if r.status == status)

    @property
    def success_count(self) -> int:
        return self._count(CorrectionStatus.SUCCESS)

    @property
    def skipped_count(self) -> int:
        return self._count(CorrectionStatus.SKIPPED)

    @property
    def error_count(self) -> int:
        return self._count(CorrectionStatus.ERROR)

    @property
    def corrected_value_count(self) -> int:
        return sum(r.changed_count for r in self.point_results)

    def result_for(self, point_name: str) -> Optional[PointCorrectionResult]:
        key = point_name.strip().casefold()
        for result in self.point_results:
            if result.point_name.strip().casefold() == key:
                return result
        return None

    def summary(self) -> str:
        return (f"correction {CorrectionStatus(self.status).value}: {len(self.point_results)} points, "
                f"{self.success_count} succeeded, {self.skipped_count} skipped, "
                f"{self.error_count} failed, {self.corrected_value_count} values changed, "
                f"{len(self.adjustment_records)} ledger records")


# =============================================================================
# Cascade
# =============================================================================

class CorrectionCascade:
    """Run the four-tier cascade over monitoring points.

    Parameters
    ----------
    config : InternalConfig
        Uses ``config.correction`` for bounds and sampling,
        ``config.validation`` for re-validation between tiers and
        ``config.processor`` for progress and worker count.
    ledger : AdjustmentLedger, optional
        Ledger receiving one record per applied correction. A fresh one is
        created when omitted.
    rng_factory : callable, optional
        Source of per-point generators; defaults to
        ``RngFactory(config.correction.seed)``. Must provide ``spawn(n)``
        and be callable with no arguments.

    Example usage::

        ledger = AdjustmentLedger()
        cascade = CorrectionCascade(config, ledger)
        result = cascade.correct_points(points, validation_results)
        print(result.summary())
    """

    def __init__(self, config: "InternalConfig", ledger: Optional[AdjustmentLedger] = None,
                 rng_factory: Optional[RngFactory] = None):
        self.config = config
        self.options = config.correction
        self.ledger = ledger if ledger is not None else AdjustmentLedger()
        self.rng_factory = rng_factory if rng_factory is not None else RngFactory(self.options.seed)
        self.progress_interval = config.processor.progress_interval

        # Re-validation between tiers uses the correction bounds
        self.verify_options = config.validation.model_copy(update={
            "cumulative_tolerance": self.options.cumulative_tolerance,
            "max_current_period_value": self.options.max_current_period_value,
            "max_cumulative_value": self.options.max_cumulative_value,
        })

    # -------------------------------------------------------------------------
    # Single point
    # -------------------------------------------------------------------------

    def _verify(self, point: MonitoringPoint) -> Tuple[List[ValidationResult], Set[Tuple[int, Axis]]]:
        results = validate_point(point, self.verify_options)
        fixable = {(i, axis) for i, axis in failure_cells(results, include_magnitude=True) if i >= 1}
        return results, fixable

    def _apply(self, point: MonitoringPoint, corrections: List[DataCorrection],
               applied: List[DataCorrection]) -> None:
        assert_corrections_well_formed(corrections, len(point.ordered_periods()))
        apply_corrections(point, corrections)
        applied.extend(c for c in corrections if c is not None)

    def correct_point(self, point: MonitoringPoint,
                      violations: Optional[List[ValidationResult]] = None,
                      rng: Optional[np.random.Generator] = None,
                      record: bool = True) -> PointCorrectionResult:
        """Run the cascade on one point, mutating its epochs in place.

        Parameters
        ----------
        point : MonitoringPoint
            Point to repair.
        violations : list of ValidationResult, optional
            Results that triggered the correction (used for reporting only;
            the cascade re-validates itself).
        rng : numpy.random.Generator, optional
            Generator for Tiers 2-4. Defaults to the next generator from the
            cascade's factory.
        record : bool
            Append the resulting records to the ledger. Batch runs pass False
            and merge records in input order afterwards.

        Returns
        -------
        PointCorrectionResult
            ``SUCCESS`` with ``final_state=RECORDED``; ``verified`` tells
            whether the point passed the final re-validation. ``SKIPPED``,
            with the point untouched, when any epoch holds a NaN or infinite
            value.

        Raises
        ------
        ContractViolation
            If the baseline changed or an adjusted value escaped its bounds.
        """
        if rng is None:
            rng = self.rng_factory()

        point.sort_periods()
        assert_time_ordered(point)
        ordered = point.ordered_periods()
        n_periods = len(ordered)
        triggered = len([v for v in (violations or []) if not v.is_valid])

        if n_periods < 2:
            results, _ = self._verify(point)
            remaining = [r for r in results if not r.is_valid]
            return PointCorrectionResult(
                point.point_name, CorrectionStatus.SUCCESS,
                "fewer than two epochs, nothing to correct",
                final_state=CascadeState.RECORDED,
                states=[CascadeState.UNCHECKED, CascadeState.RECORDED],
                verified=not remaining, unrepairable=remaining,
            )

        results, _ = self._verify(point)
        non_finite = [r for r in results if r.error_type == NON_FINITE_VALUE]
        if non_finite:
            logger.warning("%s: %d non-finite values, point left uncorrected",
                           point.point_name, len(non_finite))
            return PointCorrectionResult(
                point.point_name, CorrectionStatus.SKIPPED,
                f"{len(non_finite)} non-finite values, cannot correct",
                states=[CascadeState.UNCHECKED],
                unrepairable=[r for r in results if not r.is_valid],
            )

        baseline = ordered[0].snapshot()
        original = PointSeries.from_periods(point.point_name, ordered)
        states = [CascadeState.UNCHECKED]
        tiers: List[str] = []
        applied: List[DataCorrection] = []
        ratio = None

        # Tier 1
        self._apply(point, global_corrections(original, self.options, rng), applied)
        tiers.append(TIER_GLOBAL)
        states.append(CascadeState.GLOBAL_APPLIED)
        results, fixable = self._verify(point)

        if not fixable:
            states.append(CascadeState.VERIFIED)
        else:
            states.append(CascadeState.NEEDS_ESCALATION)
            logger.debug("%s: %d cells still failing after global pass", point.point_name, len(fixable))

            # Tier 2
            series = PointSeries.from_point(point, original.original_deltas)
            self._apply(point, aggressive_corrections(series, self.options, rng), applied)
            tiers.append(TIER_AGGRESSIVE)
            states.append(CascadeState.AGGRESSIVE_APPLIED)
            results, fixable = self._verify(point)

            if not fixable:
                states.append(CascadeState.VERIFIED)
            else:
                states.append(CascadeState.NEEDS_FURTHER_ESCALATION)
                tier, ratio = select_escalation_tier(
                    failure_cells(results), n_periods, self.options.failure_ratio_threshold)
                logger.debug("%s: failure ratio %.3f after aggressive pass, escalating to %s",
                             point.point_name, ratio, tier)

                series = PointSeries.from_point(point, original.original_deltas)
                if tier == TIER_PARTIAL:
                    corrections = partial_corrections(series, self.options, rng, fixable)
                    states.append(CascadeState.PARTIAL_APPLIED)
                else:
                    corrections = final_corrections(series, self.options, rng)
                    states.append(CascadeState.FINAL_APPLIED)
                self._apply(point, corrections, applied)
                tiers.append(tier)

        records = [AdjustmentRecord.from_correction(
            c, ordered[c.period_index],
            constraints={
                "max_current_period_value": self.options.max_current_period_value,
                "max_cumulative_value": self.options.max_cumulative_value,
            },
        ) for c in applied]
        if record:
            self.ledger.extend(records)
        states.append(CascadeState.RECORDED)

        assert_baseline_preserved(baseline, ordered[0].snapshot(), point.point_name)
        assert_within_bounds(point, self.options)

        final_results, _ = self._verify(point)
        unrepairable = [r for r in final_results if not r.is_valid]
        changed = sum(1 for c in applied if not c.is_no_op)
        message = f"{changed} values changed via {' -> '.join(tiers)}"
        if triggered:
            message += f" ({triggered} violations reported)"
        if unrepairable:
            message += f"; {len(unrepairable)} violations remain"
            logger.warning("%s: %d violations remain after correction", point.point_name, len(unrepairable))

        return PointCorrectionResult(
            point_name=point.point_name,
            status=CorrectionStatus.SUCCESS,
            message=message,
            corrections=applied,
            records=records,
            final_state=CascadeState.RECORDED,
            states=states,
            tiers=tiers,
            failure_ratio=ratio,
            verified=not unrepairable,
            unrepairable=unrepairable,
        )

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def _correct_one(self, point: MonitoringPoint, results: List[ValidationResult],
                     rng: np.random.Generator) -> PointCorrectionResult:
        if not point.point_name or not point.point_name.strip():
            logger.warning("Skipping monitoring point with empty name")
            return PointCorrectionResult(point.point_name, CorrectionStatus.SKIPPED,
                                         "monitoring point name is empty")

        failing = [r for r in results if not r.is_valid]
        if not failing:
            return PointCorrectionResult(point.point_name, CorrectionStatus.SUCCESS,
                                         "no correction needed",
                                         final_state=CascadeState.VERIFIED, verified=True)

        if not any(r.can_adjust for r in failing):
            return PointCorrectionResult(point.point_name, CorrectionStatus.SKIPPED,
                                         f"{len(failing)} errors outside permitted range",
                                         unrepairable=failing)

        try:
            return self.correct_point(point, failing, rng, record=False)
        except ContractViolation:
            raise
        except Exception as e:
            logger.exception("Correction failed for point %s", point.point_name)
            return PointCorrectionResult(point.point_name, CorrectionStatus.ERROR,
                                         f"exception during correction: {e}")

    def correct_points(self, points: List[MonitoringPoint], validation_results: List[ValidationResult],
                       progress: Optional[Callable[[int, int], None]] = None,
                       workers: Optional[int] = None) -> CorrectionResult:
        """Correct a batch of points.

        Points are independent; with ``workers > 1`` they run on a thread
        pool, each with its own generator spawned in input order, and ledger
        records are merged in input order afterwards.

        Parameters
        ----------
        points : list of MonitoringPoint
            Points to correct (mutated in place).
        validation_results : list of ValidationResult
            Results from the validator, grouped here by point name.
        progress : callable, optional
            Called as ``progress(done, total)`` after each point.
        workers : int, optional
            Thread count. Defaults to ``config.processor.workers``.

        Returns
        -------
        CorrectionResult
            ``ERROR`` status only for batch-level failures; per-point
            failures are reported in ``point_results``.
        """
        point_results: List[PointCorrectionResult] = []
        try:
            if points is None:
                raise ValueError("points must not be None")
            if workers is None:
                workers = self.config.processor.workers

            by_point: Dict[str, List[ValidationResult]] = {}
            for result in validation_results or []:
                by_point.setdefault(result.point_name.strip().casefold(), []).append(result)

            total = len(points)
            rngs = self.rng_factory.spawn(total)
            logger.info("Correcting %d monitoring points (%d workers)", total, workers)

            def task(index: int) -> PointCorrectionResult:
                point = points[index]
                key = (point.point_name or "").strip().casefold()
                return self._correct_one(point, by_point.get(key, []), rngs[index])

            if workers > 1 and total > 1:
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dispfix") as pool:
                    for done, result in enumerate(pool.map(task, range(total)), start=1):
                        point_results.append(result)
                        self._report_progress(done, total, progress)
            else:
                for index in range(total):
                    point_results.append(task(index))
                    self._report_progress(index + 1, total, progress)

            self.ledger.merge(r.records for r in point_results)
            records = [record for r in point_results for record in r.records]
            batch = CorrectionResult(CorrectionStatus.SUCCESS, "", point_results, records)
            batch.message = batch.summary()
            assert_ledger_consistent(batch, self.ledger)
            logger.info(batch.summary())
            return batch

        except ContractViolation:
            raise
        except Exception as e:
            logger.exception("Batch correction failed")
            records = [record for r in point_results for record in r.records]
            return CorrectionResult(CorrectionStatus.ERROR, f"batch correction failed: {e}",
                                    point_results, records)

    def _report_progress(self, done: int, total: int,
                         progress: Optional[Callable[[int, int], None]]) -> None:
        if done % self.progress_interval == 0 or done == total:
            logger.info("Correction progress: %d/%d", done, total)
        if progress is not None:
            progress(done, total)
