"""Pydantic configuration schemas for the dispfix pipeline.

This module provides strictly typed configuration models for the
validation and correction pipeline. All configuration validation, coercion,
and normalization happens at schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ValidationOptions, CorrectionOptions : class
    Runtime option blocks consumed by the validator and the cascade
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from dispfix.schemas.resolve import resolve_config
from dispfix.schemas.internal import InternalConfig, ValidationOptions, CorrectionOptions
from dispfix.schemas.param import ParamConfig
from dispfix.schemas.user import UserConfig
from dispfix.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ValidationOptions',
    'CorrectionOptions',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
