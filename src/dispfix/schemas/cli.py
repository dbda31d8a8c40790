"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: input and output locations, seed, worker count, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from pydantic import Field
from dispfix.schemas.base import DispfixBaseModel


class CLIConfig(DispfixBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(
            input_dir="/data/monitoring/2025-07",
            base_dir="/scratch/dispfix_output",
            seed=7,
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    input_dir: Optional[str] = None
    comparison_dir: Optional[str] = None
    base_dir: Optional[str] = None
    seed: Optional[int] = Field(None, ge=0)
    workers: Optional[int] = Field(None, ge=1)
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        for key in ("input_dir", "comparison_dir", "base_dir"):
            value = getattr(self, key)
            if value is not None:
                overrides[key] = str(value)

        if self.seed is not None:
            overrides["correction"] = {"seed": self.seed}

        if self.workers is not None:
            overrides["processor"] = {"workers": self.workers}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
