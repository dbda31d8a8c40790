"""Tests for grouping records into monitoring points and integrity checks."""

from datetime import datetime

import pytest

pytestmark = pytest.mark.unit

from dispfix.core.models import MonitoringPoint, PeriodData
from dispfix.monitoring.grouping import (
    DUPLICATE_DATA,
    EMPTY_POINT_NAME,
    INVALID_MILEAGE,
    NO_PERIOD_DATA,
    TIME_GAP,
    check_integrity,
    group_by_point,
)


def record(name, day, mileage=0.0, row=5):
    return PeriodData(name, timestamp=datetime(2025, 7, day), mileage=mileage, row_number=row)


class TestGroupByPoint:

    def test_groups_case_insensitively_first_spelling_wins(self):
        points = group_by_point([
            record("JC-01 ", 3),
            record("jc-01", 1, mileage=12.5),
            record("JC-02", 2),
        ])

        assert [p.point_name for p in points] == ["JC-01", "JC-02"]
        jc01 = points[0]
        assert [p.timestamp.day for p in jc01.periods] == [1, 3]
        assert jc01.mileage == 12.5

    def test_records_without_name_are_skipped(self):
        points = group_by_point([record("", 1), record("   ", 2), record("P1", 3)])
        assert [p.point_name for p in points] == ["P1"]

    def test_names_are_trimmed_on_records(self):
        period = record("  P1  ", 1)
        group_by_point([period])
        assert period.point_name == "P1"


class TestCheckIntegrity:
    """Structural problems reported without stopping the run."""

    def test_clean_batch(self, internal_config, consistent_point):
        report = check_integrity([consistent_point], internal_config.validation)

        assert report.issue_count == 0
        assert report.point_count == 1
        assert report.period_count == 3

    def test_reports_each_issue_type(self, internal_config):
        duplicated = MonitoringPoint("DUP", mileage=1.0, periods=[record("DUP", 1), record("DUP", 1, row=6)])
        gapped = MonitoringPoint("GAP", mileage=1.0, periods=[record("GAP", 1), record("GAP", 31)])
        far = MonitoringPoint("FAR", mileage=200000.0, periods=[record("FAR", 1)])
        empty = MonitoringPoint("EMPTY")
        nameless = MonitoringPoint("")

        report = check_integrity([duplicated, gapped, far, empty, nameless],
                                 internal_config.validation)

        # 30 days apart is within the default interval
        assert report.by_type() == {
            DUPLICATE_DATA: 1,
            INVALID_MILEAGE: 1,
            NO_PERIOD_DATA: 1,
            EMPTY_POINT_NAME: 1,
        }
        assert report.has_critical

    def test_time_gap_uses_configured_interval(self, make_config):
        options = make_config(validation={"max_time_interval": 10}).validation
        point = MonitoringPoint("GAP", mileage=1.0, periods=[record("GAP", 1), record("GAP", 20)])

        report = check_integrity([point], options)

        assert report.by_type() == {TIME_GAP: 1}
        assert not report.has_critical

    def test_time_gap_skipped_without_options(self):
        point = MonitoringPoint("GAP", mileage=1.0, periods=[record("GAP", 1), record("GAP", 30)])
        assert check_integrity([point]).issue_count == 0
