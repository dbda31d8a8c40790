"""Tests for workbook ingestion and corrected workbook output."""

from datetime import datetime

import pytest
from openpyxl import load_workbook

pytestmark = pytest.mark.unit

from dispfix.core.models import Axis
from dispfix.monitoring.corrector import CorrectionCascade
from dispfix.monitoring.grouping import group_by_point
from dispfix.monitoring.loader import SpreadsheetLoader
from dispfix.monitoring.validator import InvariantValidator, ValidationStatistics
from dispfix.monitoring.writer import CorrectedWorkbookWriter, write_report


def row(name, delta_x, cum_x, mileage=12.5):
    return [name, mileage, delta_x, 0.0, 0.0, cum_x, 0.0, 0.0, 0.01, 0.0, 0.0]


@pytest.fixture
def input_dir(temp_dir, make_workbook):
    d = temp_dir / "input"
    d.mkdir()
    make_workbook(d / "2025.7.1-00proj.xlsx", [row("P1", 0.0, 0.0), row("P2", 0.0, 0.0)])
    make_workbook(d / "2025.7.2-00proj.xlsx", [row("P1", 0.5, 0.9), row("P2", 1.5, 1.5)])
    return d


class TestSpreadsheetLoader:

    def test_discover_orders_by_acquisition_and_skips_lock_files(self, internal_config, temp_dir,
                                                                 make_workbook):
        make_workbook(temp_dir / "2025.7.2-00proj.xlsx", [])
        make_workbook(temp_dir / "2025.7.1-08proj.xlsx", [])
        (temp_dir / "~$2025.7.1-08proj.xlsx").write_bytes(b"lock")

        files = SpreadsheetLoader(internal_config).discover(temp_dir)

        assert [f.name for f in files] == ["2025.7.1-08proj.xlsx", "2025.7.2-00proj.xlsx"]

    def test_discover_missing_directory(self, internal_config, temp_dir):
        with pytest.raises(FileNotFoundError):
            SpreadsheetLoader(internal_config).discover(temp_dir / "missing")

    def test_load_file_reads_data_window(self, internal_config, temp_dir, make_workbook):
        """Rows keep their worksheet row number; blank rows are skipped."""
        path = make_workbook(temp_dir / "2025.7.1-08proj.xlsx", [
            row("P1", 0.1, 0.1),
            [],
            ["P2", "n/a", "x", 0.2, 0.3, 1.0, 2.0, 3.0],
        ])

        periods = SpreadsheetLoader(internal_config).load_file(path)

        assert [p.point_name for p in periods] == ["P1", "P2"]
        p1, p2 = periods
        assert p1.row_number == 5
        assert p1.timestamp == datetime(2025, 7, 1, 8)
        assert p1.source_file == "2025.7.1-08proj.xlsx"
        assert p1.mileage == 12.5
        assert p1.current_period(Axis.X) == 0.1
        assert p1.daily_x == 0.01
        assert p2.row_number == 7
        assert p2.mileage == 0.0
        assert p2.current_period(Axis.X) == 0.0
        assert p2.cumulative(Axis.Z) == 3.0
        assert p2.daily_z == 0.0

    def test_unreadable_workbook_is_skipped(self, internal_config, input_dir):
        (input_dir / "2025.7.3-00proj.xlsx").write_bytes(b"not a workbook")

        periods = SpreadsheetLoader(internal_config).load_directory(input_dir)

        assert len(periods) == 4

    def test_load_comparison(self, internal_config, input_dir):
        index = SpreadsheetLoader(internal_config).load_comparison(input_dir)

        assert len(index) == 4
        assert index.has_record("p1", datetime(2025, 7, 2))


class TestCorrectedWorkbookWriter:
    """Round trip: load, correct, write back."""

    def test_only_persistable_points_are_written(self, internal_config, input_dir, temp_dir):
        points = group_by_point(SpreadsheetLoader(internal_config).load_directory(input_dir))
        results = InvariantValidator(internal_config).validate_points(points)
        correction = CorrectionCascade(internal_config).correct_points(points, results)

        written = CorrectedWorkbookWriter(internal_config).write(
            points, correction, input_dir, temp_dir / "corrected")

        assert [p.name for p in written] == ["2025.7.1-00proj.xlsx", "2025.7.2-00proj.xlsx"]
        wb = load_workbook(temp_dir / "corrected" / "2025.7.2-00proj.xlsx")
        try:
            ws = wb.active
            assert ws.cell(row=5, column=1).value == "P1"
            assert ws.cell(row=5, column=6).value == 0.5
            assert ws.cell(row=6, column=3).value == 1.5
            assert ws.cell(row=6, column=6).value == 1.5
            assert ws.cell(row=1, column=1).value == "Displacement monitoring"
        finally:
            wb.close()

    def test_write_report(self, internal_config, input_dir, temp_dir):
        points = group_by_point(SpreadsheetLoader(internal_config).load_directory(input_dir))
        validator = InvariantValidator(internal_config)
        results = validator.validate_points(points)
        correction = CorrectionCascade(internal_config).correct_points(points, results)

        path = write_report(temp_dir / "reports" / "report.txt",
                            ValidationStatistics.from_results(results),
                            correction, run_id="test-run")

        text = path.read_text(encoding="utf-8")
        assert "Run ID: test-run" in text
        assert "[skipped] P2" in text
        assert "period value out of range" in text
