"""Core displacement-correction execution logic.

This module contains the actual pipeline runner, separated from argument
parsing. Scripts are thin wrappers; this is the real implementation.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from dispfix.contracts import ContractViolation
from dispfix.pipeline.orchestrator import PipelineOrchestrator
from dispfix.pipeline.processor import BatchOutcome
from dispfix.schemas.initialization import init_runtime_config

__all__ = ['build_parser', 'run_fix', 'main']

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dispfix",
        description="Validate and correct displacement-monitoring workbooks",
    )
    parser.add_argument("config", help="Path to user config file (Python file with a CONFIG dict)")
    parser.add_argument("--input-dir", help="Directory of workbooks to correct")
    parser.add_argument("--comparison-dir", help="Directory of independent comparison workbooks")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible corrections")
    parser.add_argument("--workers", type=int, help="Number of worker threads")
    parser.add_argument("--rerun", action="store_true", help="Delete output directories before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def run_fix(args: argparse.Namespace) -> BatchOutcome:
    """Execute one correction run.

    This is the core execution function. It:
    1. Resolves configuration (Param < User < CLI), cleans and sets up
       output directories, and persists the runtime config
    2. Instantiates the pipeline orchestrator
    3. Runs it to completion

    Parameters
    ----------
    args : argparse.Namespace
        Parsed arguments from :func:`build_parser`.

    Returns
    -------
    BatchOutcome
        Results of the run.

    Raises
    ------
    FileNotFoundError
        If the config file or the input directory does not exist.
    ValueError
        If configuration validation fails.
    """
    config = init_runtime_config(args)

    print(f"\n{'=' * 60}")
    print("Displacement Data Correction")
    print('=' * 60)
    print(f"Config: {args.config}")
    print(f"Input:  {config.input_dir}")
    if config.comparison_dir:
        print(f"Compare: {config.comparison_dir}")
    print(f"Output: {config.base_dir}")
    print(f"Seed:   {config.correction.seed}")
    print('=' * 60)

    if args.verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2, default=str))
        print('=' * 60)

    orchestrator = PipelineOrchestrator(config)
    return orchestrator.run()


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point. Returns a process exit code."""
    args = build_parser().parse_args(argv)
    try:
        outcome = run_fix(args)
    except ContractViolation as e:
        print(f"Pipeline contract violated: {e}", file=sys.stderr)
        return 2
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(outcome.correction_result.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
