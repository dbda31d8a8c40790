"""ParamConfig: Expert defaults for the dispfix pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from dispfix.schemas.base import DispfixBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class ColumnLayoutConfig(DispfixBaseModel):
    """Zero-based spreadsheet column positions."""
    point_name: int = Field(0, ge=0)
    mileage: int = Field(1, ge=0)
    current_period: tuple[int, int, int] = (2, 3, 4)
    cumulative: tuple[int, int, int] = (5, 6, 7)
    daily: tuple[int, int, int] = (8, 9, 10)


class ReaderConfig(DispfixBaseModel):
    """Spreadsheet reader configuration."""
    file_pattern: str = "*.xlsx"
    sheet_index: int = Field(0, ge=0)
    data_start_row: int = Field(5, ge=1, description="First data row (1-based)")
    data_end_row: int = Field(364, ge=1, description="Last data row (1-based, inclusive)")
    columns: ColumnLayoutConfig = Field(default_factory=ColumnLayoutConfig)

    @model_validator(mode="after")
    def check_row_window(self):
        if self.data_end_row < self.data_start_row:
            raise ValueError(
                f"data_end_row ({self.data_end_row}) must not precede "
                f"data_start_row ({self.data_start_row})"
            )
        return self


class ValidationConfig(DispfixBaseModel):
    """Invariant validator thresholds."""
    cumulative_tolerance: float = Field(0.01, gt=0)
    critical_threshold: float = Field(1.0, gt=0)
    error_threshold: float = Field(0.5, gt=0)
    min_value_threshold: float = Field(0.01, ge=0)
    max_current_period_value: float = Field(1.0, gt=0)
    max_cumulative_value: float = Field(4.0, gt=0)
    mileage_tolerance: float = Field(0.01, ge=0)
    max_time_interval: float = Field(30.0, gt=0, description="Maximum gap between epochs in days")

    @field_validator("cumulative_tolerance", "critical_threshold", "error_threshold",
                     "max_current_period_value", "max_cumulative_value", mode="before")
    @classmethod
    def coerce_to_float(cls, v):
        """Allow int or float."""
        return float(v)

    @model_validator(mode="after")
    def check_severity_order(self):
        if self.error_threshold > self.critical_threshold:
            raise ValueError(
                f"error_threshold ({self.error_threshold}) must not exceed "
                f"critical_threshold ({self.critical_threshold})"
            )
        return self


class CorrectionConfig(DispfixBaseModel):
    """Correction cascade configuration."""
    max_current_period_value: float = Field(1.0, gt=0)
    max_cumulative_value: float = Field(4.0, gt=0)
    enable_minimal_modification: bool = True
    cumulative_tolerance: float = Field(0.01, gt=0)
    random_change_range: float = Field(0.3, gt=0)
    failure_ratio_threshold: float = Field(0.2, gt=0, le=1.0)
    max_sample_attempts: int = Field(100, ge=2)
    seed: Optional[int] = Field(None, ge=0, description="Base seed; None draws fresh entropy")

    @field_validator("max_current_period_value", "max_cumulative_value",
                     "cumulative_tolerance", mode="before")
    @classmethod
    def coerce_to_float(cls, v):
        """Allow int or float."""
        return float(v)


class ProcessorConfig(DispfixBaseModel):
    """Batch processor configuration."""
    workers: int = Field(1, ge=1, le=32)
    progress_interval: int = Field(100, ge=1)


class OutputConfig(DispfixBaseModel):
    """Output file configuration."""
    write_workbooks: bool = True
    ledger_format: Literal["parquet", "xlsx", "csv"] = "parquet"
    compression: Literal["snappy", "gzip", "zstd", "none"] = "snappy"
    report_name: str = "correction_report.txt"


class LoggingConfig(DispfixBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(DispfixBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    input_dir: Optional[str] = None
    comparison_dir: Optional[str] = None
    base_dir: Optional[str] = None
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    correction: CorrectionConfig = Field(default_factory=CorrectionConfig)
    processor: ProcessorConfig = Field(default_factory=ProcessorConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
