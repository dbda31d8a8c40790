"""Shared pydantic base for every dispfix configuration layer."""

from pydantic import BaseModel, ConfigDict


class DispfixBaseModel(BaseModel):
    """Strict base: unknown keys are errors and assignments are re-validated.

    ``UserConfig`` relaxes ``extra`` so that old config files with retired
    keys still load; every other layer keeps these settings.
    """

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )
