#!/usr/bin/env python3
"""dispfix displacement correction runner.

Usage:
    python scripts/run_displacement_fix.py scripts/user_config.py
    python scripts/run_displacement_fix.py scripts/user_config.py --input-dir ./data/2025-07
    python scripts/run_displacement_fix.py scripts/user_config.py --seed 42 --rerun

Note: User config in scripts/user_config.py, expert defaults in src/dispfix/schemas/param.py
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from dispfix.cli.run_fix import main


if __name__ == "__main__":
    sys.exit(main())
