"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with aliases
for common naming patterns (e.g., INPUT_DIR → input_dir, SEED → seed).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Flat limit keys such as TOLERANCE or
MAX_CUMULATIVE apply to both the validator and the correction cascade so the
two never disagree about what "valid" means.
"""

from typing import Literal, Optional, Any
from pydantic import Field, field_validator
from dispfix.schemas.base import DispfixBaseModel


class UserReaderConfig(DispfixBaseModel):
    """User-facing reader config."""
    file_pattern: Optional[str] = None
    sheet_index: Optional[int] = None
    data_start_row: Optional[int] = None
    data_end_row: Optional[int] = None
    columns: Optional[dict[str, Any]] = None


class UserValidationConfig(DispfixBaseModel):
    """User-facing validation config."""
    cumulative_tolerance: Optional[float] = None
    critical_threshold: Optional[float] = None
    error_threshold: Optional[float] = None
    min_value_threshold: Optional[float] = None
    max_current_period_value: Optional[float] = None
    max_cumulative_value: Optional[float] = None
    mileage_tolerance: Optional[float] = None
    max_time_interval: Optional[float] = None


class UserCorrectionConfig(DispfixBaseModel):
    """User-facing correction config."""
    max_current_period_value: Optional[float] = None
    max_cumulative_value: Optional[float] = None
    enable_minimal_modification: Optional[bool] = None
    cumulative_tolerance: Optional[float] = None
    random_change_range: Optional[float] = None
    failure_ratio_threshold: Optional[float] = None
    max_sample_attempts: Optional[int] = None
    seed: Optional[int] = None


class UserOutputConfig(DispfixBaseModel):
    """User-facing output config."""
    write_workbooks: Optional[bool] = None
    ledger_format: Optional[str] = None
    compression: Optional[str] = None
    report_name: Optional[str] = None

    @field_validator("ledger_format", "compression", mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize format names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserConfig(DispfixBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            input_dir="/data/monitoring/2025-07",
            base_dir="/data/dispfix",
            tolerance=0.005,
            seed=42,
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Locations
    input_dir: Optional[str] = Field(None, alias="INPUT_DIR")
    comparison_dir: Optional[str] = Field(None, alias="COMPARISON_DIR")
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")

    # Limits (flat aliases, fan out to validation and correction)
    tolerance: Optional[float] = Field(None, alias="TOLERANCE")
    max_current_period_value: Optional[float] = Field(None, alias="MAX_CURRENT_PERIOD")
    max_cumulative_value: Optional[float] = Field(None, alias="MAX_CUMULATIVE")

    # Validation severities
    critical_threshold: Optional[float] = Field(None, alias="CRITICAL_THRESHOLD")
    error_threshold: Optional[float] = Field(None, alias="ERROR_THRESHOLD")

    # Correction
    seed: Optional[int] = Field(None, alias="SEED")
    random_change_range: Optional[float] = Field(None, alias="RANDOM_CHANGE_RANGE")
    minimal_modification: Optional[bool] = Field(None, alias="MINIMAL_MODIFICATION")

    # Processing
    workers: Optional[int] = Field(None, alias="WORKERS")
    ledger_format: Optional[Literal["parquet", "xlsx", "csv"]] = Field(None, alias="LEDGER_FORMAT")
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(None, alias="LOG_LEVEL")

    # Nested overrides (advanced users)
    reader: Optional[UserReaderConfig] = None
    validation: Optional[UserValidationConfig] = None
    correction: Optional[UserCorrectionConfig] = None
    output: Optional[UserOutputConfig] = None

    model_config = DispfixBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("tolerance", "max_current_period_value", "max_cumulative_value",
                     "critical_threshold", "error_threshold", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if v is not None:
            return float(v)
        return v

    @field_validator("ledger_format", mode="before")
    @classmethod
    def normalize_ledger_format(cls, v):
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

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

        # Limits shared by validator and cascade
        shared = {}
        if self.tolerance is not None:
            shared["cumulative_tolerance"] = self.tolerance
        if self.max_current_period_value is not None:
            shared["max_current_period_value"] = self.max_current_period_value
        if self.max_cumulative_value is not None:
            shared["max_cumulative_value"] = self.max_cumulative_value

        # Validation section
        validation = dict(shared)
        if self.critical_threshold is not None:
            validation["critical_threshold"] = self.critical_threshold
        if self.error_threshold is not None:
            validation["error_threshold"] = self.error_threshold
        if self.validation is not None:
            validation.update(self.validation.model_dump(exclude_none=True))
        if validation:
            overrides["validation"] = validation

        # Correction section
        correction = dict(shared)
        if self.seed is not None:
            correction["seed"] = self.seed
        if self.random_change_range is not None:
            correction["random_change_range"] = self.random_change_range
        if self.minimal_modification is not None:
            correction["enable_minimal_modification"] = self.minimal_modification
        if self.correction is not None:
            correction.update(self.correction.model_dump(exclude_none=True))
        if correction:
            overrides["correction"] = correction

        if self.reader is not None:
            reader = self.reader.model_dump(exclude_none=True)
            if reader:
                overrides["reader"] = reader

        if self.workers is not None:
            overrides["processor"] = {"workers": self.workers}

        output = {}
        if self.ledger_format is not None:
            output["ledger_format"] = self.ledger_format
        if self.output is not None:
            output.update(self.output.model_dump(exclude_none=True))
        if output:
            overrides["output"] = output

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
