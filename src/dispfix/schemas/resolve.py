"""Merge the configuration layers into one frozen InternalConfig.

Layers, lowest precedence first:

1. ``ParamConfig``: complete expert defaults
2. ``UserConfig``: the CONFIG dict of the user's file
3. ``CLIConfig``: command-line overrides

Each layer is validated on its own before merging, so an invalid user value
is reported against the user schema rather than the internal one.
"""

from typing import Optional, Type, TypeVar, Union

from pydantic import BaseModel

from dispfix.schemas.cli import CLIConfig
from dispfix.schemas.internal import InternalConfig
from dispfix.schemas.param import ParamConfig
from dispfix.schemas.user import UserConfig

ModelT = TypeVar("ModelT", bound=BaseModel)


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Return ``base`` updated by each of ``overrides`` in turn.

    Nested dicts merge key by key; any other value replaces what was there.
    None of the inputs is modified.

    Examples
    --------
    >>> deep_merge({"correction": {"seed": 1, "max_sample_attempts": 100}},
    ...            {"correction": {"seed": 7}})
    {'correction': {'seed': 7, 'max_sample_attempts': 100}}
    """
    merged = dict(base)
    for override in overrides:
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = deep_merge(current, value)
            else:
                merged[key] = value
    return merged


def _as_layer(model: Type[ModelT], value: Optional[Union[dict, ModelT]]) -> ModelT:
    if isinstance(value, model):
        return value
    return model.model_validate(value or {})


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> InternalConfig:
    """Build the runtime configuration.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert defaults.
    user_cfg : dict or UserConfig, optional
        User overrides; flat aliases such as ``TOLERANCE`` fan out to both
        the validation and correction sections.
    cli_cfg : dict or CLIConfig, optional
        Command-line overrides.

    Returns
    -------
    InternalConfig
        Immutable configuration handed to every runtime component.

    Raises
    ------
    pydantic.ValidationError
        If a layer or the merged result is invalid.

    Examples
    --------
    >>> config = resolve_config(ParamConfig(), UserConfig(TOLERANCE=0.005, SEED=42))
    >>> config.validation.cumulative_tolerance, config.correction.cumulative_tolerance
    (0.005, 0.005)
    """
    param = _as_layer(ParamConfig, param_cfg)
    user = _as_layer(UserConfig, user_cfg)
    cli = _as_layer(CLIConfig, cli_cfg)

    merged = deep_merge(
        param.model_dump(),
        user.to_internal_overrides(),
        cli.to_internal_overrides(),
    )
    return InternalConfig.model_validate(merged)
