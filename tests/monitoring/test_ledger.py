"""Tests for the adjustment ledger."""

import json
import math
import threading
from datetime import datetime

import pandas as pd
import pytest

pytestmark = pytest.mark.unit

from dispfix.core.models import AdjustmentType, Axis, DataCorrection, PeriodData
from dispfix.monitoring.ledger import LEDGER_COLUMNS, AdjustmentLedger, AdjustmentRecord


@pytest.fixture
def period():
    return PeriodData("P1", timestamp=datetime(2025, 7, 2), row_number=6,
                      source_file="2025.7.2-00proj.xlsx")


@pytest.fixture
def records(period):
    return [
        AdjustmentRecord.from_correction(
            DataCorrection.cumulative_value("P1", 1, Axis.X, 1.2, 2.5, "recompute", tier="global"),
            period, constraints={"max_cumulative_value": 10.0}),
        AdjustmentRecord.from_correction(
            DataCorrection.both("P1", 1, Axis.Y, 2.5, 2.0, 1.2, 2.0, "clip", tier="global"), period),
        AdjustmentRecord.from_correction(
            DataCorrection.no_op("P2", 0, Axis.Z, 0.0, "baseline", tier="aggressive")),
    ]


class TestAdjustmentRecord:
    """Mapping of corrections to audit records."""

    def test_cumulative_correction(self, records):
        record = records[0]

        assert record.adjustment_type == AdjustmentType.CUMULATIVE
        assert record.original_value == 1.2
        assert record.adjusted_value == 2.5
        assert record.adjustment_amount == 1.3
        assert record.row_number == 6
        assert record.source_file == "2025.7.2-00proj.xlsx"
        assert record.constraints == {"max_cumulative_value": 10.0}
        assert record.original_period_value is None

    def test_both_correction_keeps_delta_pair(self, records):
        record = records[1]

        assert record.adjustment_type == AdjustmentType.CUMULATIVE
        assert (record.original_value, record.adjusted_value) == (1.2, 2.0)
        assert (record.original_period_value, record.adjusted_period_value) == (2.5, 2.0)
        assert "period 2.500 -> 2.000" in record.description

    def test_no_op_correction(self, records):
        record = records[2]
        assert record.adjustment_type == AdjustmentType.NONE
        assert record.adjustment_amount == 0.0
        assert record.source_file == ""

    def test_records_are_unique_and_immutable(self, records):
        assert len({r.id for r in records}) == 3
        assert records[0].adjusted_at.tzinfo is not None
        with pytest.raises(AttributeError):
            records[0].adjusted_value = 0.0


class TestAdjustmentLedger:
    """Append-only collection, statistics and export."""

    def test_append_only_views(self, records):
        ledger = AdjustmentLedger()
        ledger.append(records[0])
        ledger.extend(records[1:])

        snapshot = ledger.records()
        assert isinstance(snapshot, tuple)
        assert len(ledger) == 3
        assert list(ledger) == records

    def test_merge_keeps_given_order(self, records):
        ledger = AdjustmentLedger()
        count = ledger.merge([[records[2]], [records[0], records[1]]])

        assert count == 3
        assert [r.id for r in ledger] == [records[2].id, records[0].id, records[1].id]

    def test_concurrent_appends(self, records):
        ledger = AdjustmentLedger()

        def worker():
            for _ in range(200):
                ledger.append(records[0])

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ledger) == 800

    def test_statistics(self, records):
        stats = AdjustmentLedger(records).statistics()

        assert stats.total == 3
        assert stats.point_count == 2
        assert stats.file_count == 1
        assert stats.by_type == {"cumulative": 2, "none": 1}
        assert stats.by_axis == {"X": 1, "Y": 1, "Z": 1}
        assert "total records: 3" in stats.detailed_report()

    def test_empty_statistics(self):
        stats = AdjustmentLedger().statistics()
        assert stats.total == 0
        assert stats.summary().startswith("adjustments: 0 records")

    def test_to_frame(self, records):
        df = AdjustmentLedger(records).to_frame()

        assert list(df.columns) == LEDGER_COLUMNS
        assert df.loc[1, "adjusted_period_value"] == 2.0
        assert math.isnan(df.loc[0, "adjusted_period_value"])
        assert json.loads(df.loc[0, "constraints"]) == {"max_cumulative_value": 10.0}

    @pytest.mark.parametrize("suffix", [".parquet", ".xlsx", ".csv"])
    def test_export_formats(self, records, temp_dir, suffix):
        path = AdjustmentLedger(records).export(temp_dir / "out" / f"ledger{suffix}")

        assert path.exists()
        if suffix == ".parquet":
            df = pd.read_parquet(path, engine="pyarrow")
        elif suffix == ".xlsx":
            df = pd.read_excel(path, engine="openpyxl")
        else:
            df = pd.read_csv(path)
        assert len(df) == 3
        assert list(df["point_name"]) == ["P1", "P1", "P2"]

    def test_export_rejects_unknown_format(self, records, temp_dir):
        with pytest.raises(ValueError, match="Unsupported ledger format"):
            AdjustmentLedger(records).export(temp_dir / "ledger.json")
