"""Console entry point for correction runs; ``scripts/`` only wraps it."""

from dispfix.cli.run_fix import run_fix, main

__all__ = ['run_fix', 'main']
