"""
Directory setup for the correction pipeline.

One flat run layout under a base directory:
- corrected/  rewritten workbooks (only points that may be persisted)
- ledger/     adjustment ledger exports
- reports/    text reports and runtime config snapshots
- logs/       pipeline log files
"""

from pathlib import Path
from datetime import datetime


def setup_output_directories(base_output_dir=None):
    """
    Set up organized output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. If None, uses ``./dispfix_output``.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'corrected', 'ledger', 'reports', 'logs'
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / "dispfix_output"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "corrected": base_output_dir / "corrected",
        "ledger": base_output_dir / "ledger",
        "reports": base_output_dir / "reports",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    print("\nOutput directories created:")
    for key, path in directories.items():
        print(f"  {key:12s}: {path}")
    print("=" * 70 + "\n")

    return directories


def get_ledger_path(output_dirs, run_id=None, ledger_format="parquet"):
    """
    Get the ledger export path for a run.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    run_id : str, optional
        Run identifier. If None, a timestamp is used.
    ledger_format : str
        File type: 'parquet', 'xlsx' or 'csv'

    Returns
    -------
    Path
        Full path: ledger/adjustments_<run_id>.<ext>

    Example
    -------
    >>> get_ledger_path(dirs, run_id='20250701_120000')
    Path('output/ledger/adjustments_20250701_120000.parquet')
    """
    if run_id is None:
        run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    ledger_dir = Path(output_dirs["ledger"])
    ledger_dir.mkdir(parents=True, exist_ok=True)
    return ledger_dir / f"adjustments_{run_id}.{ledger_format}"
