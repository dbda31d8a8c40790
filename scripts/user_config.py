"""dispfix User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the correction run. Expert defaults live in src/dispfix/schemas/param.py

Usage:
    python scripts/run_displacement_fix.py scripts/user_config.py
    python scripts/run_displacement_fix.py scripts/user_config.py --seed 42
    python scripts/run_displacement_fix.py scripts/user_config.py --workers 4
"""

CONFIG = {
    # ========================================================================
    # LOCATIONS
    # ========================================================================
    "INPUT_DIR": "./data/monitoring",     # Workbooks named like 2025.7.1-00<project>.xlsx
    "COMPARISON_DIR": None,               # Optional independent source for cross-checks
    "BASE_DIR": "./dispfix_output",       # All outputs go here

    # ========================================================================
    # LIMITS (shared by validation and correction)
    # ========================================================================
    "TOLERANCE": 0.01,                    # |cum[i] - (cum[i-1] + delta[i])| allowed
    "MAX_CURRENT_PERIOD": 1.0,            # |delta| bound per epoch
    "MAX_CUMULATIVE": 4.0,                # |cumulative| bound

    # ========================================================================
    # VALIDATION SEVERITY
    # ========================================================================
    "CRITICAL_THRESHOLD": 1.0,            # mismatch above this is Critical
    "ERROR_THRESHOLD": 0.5,               # mismatch above this is Error

    # ========================================================================
    # CORRECTION
    # ========================================================================
    "SEED": 20250701,                     # None = fresh entropy each run
    "MINIMAL_MODIFICATION": True,         # Try the minimal global pass first
    "RANDOM_CHANGE_RANGE": 0.3,           # Partial-tier nudge range

    # ========================================================================
    # PROCESSING & OUTPUT
    # ========================================================================
    "WORKERS": 1,
    "LEDGER_FORMAT": "parquet",           # "parquet", "xlsx" or "csv"
    "LOG_LEVEL": "INFO",
}
