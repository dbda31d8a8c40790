"""Tests for the in-memory monitoring data model."""

from datetime import date, datetime

import pytest

pytestmark = pytest.mark.unit

from dispfix.core.models import (
    Axis,
    CorrectionKind,
    DataCorrection,
    MonitoringPoint,
    PeriodData,
    Severity,
    SourceFile,
    ValidationResult,
    ValidationStatus,
)


class TestSourceFile:
    """File-name parsing of acquisition time and project."""

    def test_parses_date_hour_and_project(self):
        """'2025.7.1-08<project>.xlsx' yields date, hour and project name."""
        source = SourceFile.from_path("/data/2025.7.1-08云港城项目4#地块.xlsx")

        assert source.date == date(2025, 7, 1)
        assert source.hour == 8
        assert source.project_name == "云港城项目4#地块"
        assert source.timestamp == datetime(2025, 7, 1, 8)
        assert source.formatted_time == "2025-07-01 08:00"

    def test_unmatched_name_falls_back_to_mtime(self, temp_dir):
        """Names without the date prefix use the file modification time."""
        path = temp_dir / "survey.xlsx"
        path.write_bytes(b"")

        source = SourceFile.from_path(path)

        assert source.project_name == "unknown project"
        assert source.date == datetime.fromtimestamp(path.stat().st_mtime).date()

    def test_invalid_calendar_date_falls_back(self):
        source = SourceFile.from_path("/nowhere/2025.2.30-00proj.xlsx")
        assert source.project_name == "unknown project"
        assert source.date == date(1970, 1, 1)

    def test_ordering_by_date_then_hour(self):
        early = SourceFile.from_path("2025.7.1-08p.xlsx")
        late = SourceFile.from_path("2025.7.1-20p.xlsx")
        next_day = SourceFile.from_path("2025.7.2-00p.xlsx")

        assert sorted([next_day, late, early]) == [early, late, next_day]


class TestPeriodData:
    """Axis accessors and bookkeeping on one epoch."""

    def test_axis_accessors(self):
        period = PeriodData(point_name="P1")
        period.set_current_period(Axis.Y, 0.25)
        period.set_cumulative("Z", -1.5)

        assert period.current_period(Axis.Y) == 0.25
        assert period.current_period_y == 0.25
        assert period.cumulative(Axis.Z) == -1.5

    def test_snapshot_order(self):
        period = PeriodData(point_name="P1", current_period_x=1.0, cumulative_z=6.0)
        assert period.snapshot() == (1.0, 0.0, 0.0, 0.0, 0.0, 6.0)

    def test_validation_error_bookkeeping(self):
        period = PeriodData(point_name="P1")
        period.add_validation_error("bad")
        assert period.validation_status == ValidationStatus.INVALID
        period.clear_validation_errors()
        assert period.validation_status == ValidationStatus.VALID
        assert period.validation_errors == []

    def test_copy_is_independent(self):
        period = PeriodData(point_name="P1", timestamp=datetime(2025, 7, 1))
        clone = period.copy()
        clone.adjustments.append("x")
        clone.set_cumulative(Axis.X, 3.0)

        assert period.adjustments == []
        assert period.cumulative_x == 0.0
        assert clone.has_been_adjusted


class TestMonitoringPoint:
    """Period ownership and ordering."""

    def test_add_period_keeps_time_order(self):
        point = MonitoringPoint("P1")
        point.add_period(PeriodData("P1", timestamp=datetime(2025, 7, 3)))
        point.add_period(PeriodData("p1", timestamp=datetime(2025, 7, 1)))
        point.add_period(PeriodData("P1", timestamp=None, row_number=9))

        assert [p.timestamp for p in point.periods] == [
            datetime(2025, 7, 1), datetime(2025, 7, 3), None]
        assert len(point.ordered_periods()) == 2
        assert point.unorderable_periods()[0].row_number == 9
        assert point.earliest_time == datetime(2025, 7, 1)
        assert point.latest_time == datetime(2025, 7, 3)

    def test_add_period_rejects_other_point(self):
        point = MonitoringPoint("P1")
        with pytest.raises(ValueError, match="does not match"):
            point.add_period(PeriodData("P2", timestamp=datetime(2025, 7, 1)))

    def test_add_period_rejects_empty_name(self):
        with pytest.raises(ValueError, match="must not be empty"):
            MonitoringPoint("P1").add_period(PeriodData("  "))

    def test_period_at(self, make_point):
        point = make_point("P1", [(0.0, 0.0), (0.1, 0.1)])
        assert point.period_at(datetime(2025, 7, 2)) is point.periods[1]
        assert point.period_at(datetime(2030, 1, 1)) is None

    def test_set_comparison_checks_name(self):
        point = MonitoringPoint("P1")
        point.set_comparison(PeriodData(" p1 "))
        assert point.comparison is not None
        with pytest.raises(ValueError):
            point.set_comparison(PeriodData("P2"))


class TestValidationResult:

    def test_valid_factory(self):
        result = ValidationResult.valid("P1")
        assert result.is_valid
        assert result.severity == Severity.INFO
        assert result.cell is None

    def test_violation_copies_provenance(self):
        period = PeriodData("P1", timestamp=datetime(2025, 7, 2), row_number=7, source_file="a.xlsx")
        result = ValidationResult.violation(
            "P1", "cumulative mismatch", "off", severity=Severity.ERROR,
            period=period, axis=Axis.X, period_index=1)

        assert not result.is_valid
        assert result.row_number == 7
        assert result.source_file == "a.xlsx"
        assert result.timestamp == datetime(2025, 7, 2)
        assert result.cell == (1, Axis.X)
        assert "[ERROR] P1 X row 7" in result.summary()


class TestDataCorrection:
    """Tagged correction variants."""

    def test_both_carries_paired_cumulative(self):
        correction = DataCorrection.both("P1", 1, Axis.X, 2.5, 2.0, 1.2, 2.0, "clip")

        assert correction.kind == CorrectionKind.BOTH
        assert correction.sets_period_value and correction.sets_cumulative
        assert correction.new_cumulative == 2.0
        assert correction.original_cumulative == 1.2

    def test_cumulative_only(self):
        correction = DataCorrection.cumulative_value("P1", 1, "Y", 1.2, 2.5, "recompute")
        assert correction.axis is Axis.Y
        assert not correction.sets_period_value
        assert correction.new_cumulative == 2.5

    def test_no_op(self):
        correction = DataCorrection.no_op("P1", 0, Axis.Z, 0.3, "baseline")
        assert correction.is_no_op
        assert correction.corrected_value == correction.original_value
        assert correction.new_cumulative is None

    def test_both_requires_paired_cumulative(self):
        with pytest.raises(ValueError, match="paired_cumulative"):
            DataCorrection("P1", 1, Axis.X, CorrectionKind.BOTH, 1.0, 2.0, "r")

    def test_other_kinds_reject_paired_cumulative(self):
        with pytest.raises(ValueError):
            DataCorrection("P1", 1, Axis.X, CorrectionKind.PERIOD_VALUE_ONLY, 1.0, 2.0, "r",
                           paired_cumulative=3.0)

    def test_is_immutable(self):
        correction = DataCorrection.period_value("P1", 1, Axis.X, 1.0, 0.5, "r")
        with pytest.raises(AttributeError):
            correction.corrected_value = 0.0
