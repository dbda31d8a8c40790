import pytest

from dispfix.schemas import InternalConfig
from dispfix.setup_directories import setup_output_directories


def _row(name, delta_x, cum_x):
    return [name, 12.5, delta_x, 0.0, 0.0, cum_x, 0.0, 0.0, 0.0, 0.0, 0.0]


@pytest.fixture
def input_dir(temp_dir, make_workbook):
    """Two epochs: P1 has a fixable cumulative, P2 an out-of-range delta, P3 is clean."""
    d = temp_dir / "input"
    d.mkdir()
    make_workbook(d / "2025.7.1-00proj.xlsx",
                  [_row("P1", 0.0, 0.0), _row("P2", 0.0, 0.0), _row("P3", 0.0, 0.0)])
    make_workbook(d / "2025.7.2-00proj.xlsx",
                  [_row("P1", 0.5, 0.9), _row("P2", 1.5, 1.5), _row("P3", 0.2, 0.2)])
    return d


@pytest.fixture
def pipeline_config(temp_dir, input_dir, make_config) -> InternalConfig:
    """InternalConfig for pipeline tests."""
    base = temp_dir / "output"
    dirs = setup_output_directories(base)
    config = make_config(input_dir=str(input_dir), base_dir=str(base), seed=11)
    return config.model_copy(update={
        "output_dirs": {k: str(v) for k, v in dirs.items()},
        "run_id": "test",
    })

