"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional
from pydantic import Field, ConfigDict, model_validator
from dispfix.schemas.base import DispfixBaseModel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalColumnLayoutConfig(DispfixBaseModel):
    """Runtime spreadsheet column positions."""
    point_name: int
    mileage: int
    current_period: tuple[int, int, int]
    cumulative: tuple[int, int, int]
    daily: tuple[int, int, int]


class InternalReaderConfig(DispfixBaseModel):
    """Runtime reader configuration."""
    file_pattern: str
    sheet_index: int
    data_start_row: int = Field(ge=1)
    data_end_row: int = Field(ge=1)
    columns: InternalColumnLayoutConfig


class ValidationOptions(DispfixBaseModel):
    """Runtime invariant validator options."""
    cumulative_tolerance: float = Field(gt=0)
    critical_threshold: float
    error_threshold: float
    min_value_threshold: float
    max_current_period_value: float = Field(gt=0)
    max_cumulative_value: float = Field(gt=0)
    mileage_tolerance: float
    max_time_interval: float

    @model_validator(mode="after")
    def check_severity_order(self):
        if self.error_threshold > self.critical_threshold:
            raise ValueError("error_threshold must not exceed critical_threshold")
        return self


class CorrectionOptions(DispfixBaseModel):
    """Runtime correction cascade options."""
    max_current_period_value: float = Field(gt=0)
    max_cumulative_value: float = Field(gt=0)
    enable_minimal_modification: bool
    cumulative_tolerance: float = Field(gt=0)
    random_change_range: float = Field(gt=0)
    failure_ratio_threshold: float = Field(gt=0, le=1.0)
    max_sample_attempts: int = Field(ge=2)
    seed: Optional[int]


class InternalProcessorConfig(DispfixBaseModel):
    """Runtime batch processor configuration."""
    workers: int = Field(ge=1, le=32)
    progress_interval: int = Field(ge=1)


class InternalOutputConfig(DispfixBaseModel):
    """Runtime output configuration."""
    write_workbooks: bool
    ledger_format: Literal["parquet", "xlsx", "csv"]
    compression: Literal["snappy", "gzip", "zstd", "none"]
    report_name: str


class InternalLoggingConfig(DispfixBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(DispfixBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters (no None for fields that runtime depends on).

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.options = config.validation          # NOT .get()
            self.workers = config.processor.workers

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO type checking
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    input_dir: Optional[str]  # Required at runtime (validated in init_runtime_config)
    comparison_dir: Optional[str]
    base_dir: Optional[str]  # Required at runtime (validated in init_runtime_config)
    reader: InternalReaderConfig
    validation: ValidationOptions
    correction: CorrectionOptions
    processor: InternalProcessorConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig
    output_dirs: Optional[dict[str, str]] = None
    run_id: Optional[str] = None

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
