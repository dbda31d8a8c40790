"""Root-level pytest fixtures for the dispfix test suite.

Provides shared configuration fixtures following the Pydantic-based
architecture, plus builders for monitoring points and workbooks.
All tests must use these fixtures instead of creating raw dict configs.
"""

import logging

import pytest
from datetime import datetime, timedelta
from pathlib import Path
import tempfile
import shutil

from openpyxl import Workbook

from dispfix.core.models import AXES, MonitoringPoint, PeriodData
from dispfix.schemas import ParamConfig, UserConfig, resolve_config


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using make_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides).

    Use this when tests don't care about specific config values and just
    need a valid InternalConfig to pass to constructors.

    Examples
    --------
    >>> def test_validator_init(internal_config):
    ...     validator = InvariantValidator(internal_config)
    ...     assert validator.options.cumulative_tolerance == 0.01
    """
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_custom_bounds(make_config):
    ...     config = make_config(max_cumulative_value=2.0, seed=7)
    ...     assert config.correction.max_cumulative_value == 2.0
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        else:
            return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def restore_logging():
    """Undo the root handlers installed by the orchestrator."""
    root = logging.getLogger()
    saved = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in saved:
            handler.close()
            root.removeHandler(handler)
    for handler in saved:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


# =============================================================================
# Data Builders
# =============================================================================

START = datetime(2025, 7, 1)


def build_point(name, x, y=None, z=None, start=START, step=timedelta(days=1)):
    """Monitoring point from per-axis ``(delta, cumulative)`` sequences.

    Axes left as None are all zeros (and therefore consistent).
    """
    n = len(x)
    series = {"X": x, "Y": y or [(0.0, 0.0)] * n, "Z": z or [(0.0, 0.0)] * n}
    point = MonitoringPoint(point_name=name, mileage=12.5)
    for i in range(n):
        stamp = start + i * step
        period = PeriodData(
            point_name=name,
            timestamp=stamp,
            row_number=5 + i,
            source_file=f"{stamp.year}.{stamp.month}.{stamp.day}-00proj.xlsx",
            mileage=12.5,
        )
        for axis in AXES:
            delta, cumulative = series[axis.value][i]
            period.set_current_period(axis, delta)
            period.set_cumulative(axis, cumulative)
        point.periods.append(period)
    point.sort_periods()
    return point


@pytest.fixture
def make_point():
    """Factory fixture for monitoring points.

    Examples
    --------
    >>> point = make_point("P1", [(0.0, 0.0), (2.5, 1.2)])
    >>> point.period_count
    2
    """
    return build_point


@pytest.fixture
def consistent_point(make_point):
    """Three epochs that already satisfy the recurrence on every axis."""
    return make_point("P-OK", [(0.0, 0.0), (1.0, 1.0), (-0.5, 0.5)])


def write_workbook(path, rows, first_row=5):
    """Write a monitoring workbook with ``rows`` starting at ``first_row``.

    Each row is ``[name, mileage, dX, dY, dZ, cX, cY, cZ, rX, rY, rZ]``.
    Rows above the data window hold a title and column headers.
    """
    wb = Workbook()
    ws = wb.active
    ws.cell(row=1, column=1, value="Displacement monitoring")
    ws.cell(row=first_row - 1, column=1, value="point")
    for offset, row in enumerate(rows):
        for col, value in enumerate(row, start=1):
            ws.cell(row=first_row + offset, column=col, value=value)
    wb.save(path)
    wb.close()
    return Path(path)


@pytest.fixture
def make_workbook():
    """Factory fixture writing monitoring workbooks (see write_workbook)."""
    return write_workbook
