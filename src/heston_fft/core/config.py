"""
Configuration management for the Heston FFT pricing engine.

Loads and validates configuration from YAML files using Pydantic.
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class GridConfig(BaseModel):
    """
    Carr-Madan FFT grid configuration.

    Owned by a pricing session; adjusted copies are made with ``model_copy``
    rather than mutating a shared instance.
    """

    model_config = ConfigDict(frozen=True)

    fft_n: int = Field(default=4096, description="FFT length (power of two)", gt=0)
    eta: float = Field(default=0.05, description="Frequency step", gt=0)
    alpha: float = Field(default=1.5, description="Carr-Madan damping factor", gt=0)
    log_strike_range: float = Field(
        default=3.0, description="Half-width of the log-strike grid around ln(S)", gt=0
    )
    cache_tolerance: float = Field(
        default=1e-5, description="Tolerance for cache key comparison", gt=0
    )

    @field_validator("fft_n")
    @classmethod
    def validate_power_of_two(cls, v: int) -> int:
        """Ensure FFT length is a power of two."""
        if v & (v - 1) != 0:
            raise ValueError(f"fft_n must be a power of two, got {v}")
        return v


def _default_presets() -> list[GridConfig]:
    return [
        GridConfig(fft_n=8192, alpha=1.0, eta=0.1),
        GridConfig(fft_n=2048, alpha=1.25, eta=0.075),
    ]


class CalibrationConfig(BaseModel):
    """Grid-search calibration configuration."""

    model_config = ConfigDict(frozen=True)

    v0_multipliers: tuple[float, ...] = Field(
        default=(1.0, 0.85, 1.15, 0.7, 1.3), description="Multipliers of the initial v0"
    )
    kappa_multipliers: tuple[float, ...] = Field(
        default=(1.0, 1.5, 0.5), description="Multipliers of the initial kappa"
    )
    sigma_values: tuple[float, ...] = Field(
        default=(0.2, 0.4, 0.6), description="Vol-of-vol candidates"
    )
    rho_values: tuple[float, ...] = Field(
        default=(-0.7, -0.4, 0.0), description="Correlation candidates"
    )
    early_exit_fraction: float = Field(
        default=0.005, description="Stop once |diff| < fraction * market price", gt=0, lt=1
    )
    acceptance_fraction: float = Field(
        default=0.10, description="Blend with BS anchor above fraction * market price", gt=0
    )
    degenerate_match_abs: float = Field(
        default=0.01, description="Absolute diff on first candidate that returns BS anchor", ge=0
    )
    min_implied_vol: float = Field(default=0.05, description="Lower IV bound", gt=0)
    max_implied_vol: float = Field(default=1.5, description="Upper IV bound", gt=0)

    @field_validator("v0_multipliers", "kappa_multipliers", "sigma_values")
    @classmethod
    def validate_positive(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        """Ensure candidate values are non-empty and positive."""
        if not v:
            raise ValueError("candidate list must not be empty")
        if any(x <= 0 for x in v):
            raise ValueError(f"candidate values must be positive, got {v}")
        return v

    @field_validator("rho_values")
    @classmethod
    def validate_rho(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        """Ensure correlation candidates lie in [-1, 1]."""
        if not v:
            raise ValueError("candidate list must not be empty")
        if any(not -1.0 <= x <= 1.0 for x in v):
            raise ValueError(f"rho candidates must be within [-1, 1], got {v}")
        return v

    @model_validator(mode="after")
    def validate_bounds(self) -> "CalibrationConfig":
        """Ensure the implied vol band is ordered."""
        if self.min_implied_vol >= self.max_implied_vol:
            raise ValueError(
                f"min_implied_vol ({self.min_implied_vol}) must be < "
                f"max_implied_vol ({self.max_implied_vol})"
            )
        return self

    @property
    def max_evaluations(self) -> int:
        """Size of the candidate grid."""
        return (
            len(self.v0_multipliers)
            * len(self.kappa_multipliers)
            * len(self.sigma_values)
            * len(self.rho_values)
        )


class RecoveryConfig(BaseModel):
    """Fallback chain configuration."""

    model_config = ConfigDict(frozen=True)

    presets: list[GridConfig] = Field(
        default_factory=_default_presets, description="Alternate grids tried on failure"
    )
    max_attempts: int = Field(
        default=3, description="Attempts including the primary grid", ge=1, le=10
    )
    bs_fallback: bool = Field(
        default=True, description="Return the Black-Scholes anchor when retries are exhausted"
    )


class EngineConfig(BaseModel):
    """Capability flags for the pricing engine."""

    model_config = ConfigDict(frozen=True)

    adaptive_grid: bool = Field(default=True, description="Adapt grid for challenging inputs")
    cache_capacity: int = Field(default=1, description="Cached transform slots", ge=1)
    verbose_diagnostics: bool = Field(
        default=False, description="Log per-sample numerical-stability substitutions"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(default="text", description="Log format (json, text)")
    log_dir: Optional[Path] = Field(default=None, description="Directory for JSON log files")
    console_output: bool = Field(default=True, description="Enable console logging")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Ensure valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Level must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Ensure valid log format."""
        valid_formats = {"json", "text"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Format must be one of {valid_formats}")
        return v_lower


class Config(BaseModel):
    """
    Main configuration container.

    Aggregates all sub-configurations for the pricing engine.
    """

    model_config = ConfigDict(frozen=True)

    grid: GridConfig = Field(default_factory=GridConfig)
    calibration: CalibrationConfig = Field(default_factory=CalibrationConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Validated Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}

        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Path to save YAML configuration
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="python")

        def convert_for_yaml(obj: Any) -> Any:
            """Convert non-serializable types for YAML."""
            if isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, dict):
                return {k: convert_for_yaml(v) for k, v in obj.items()}
            elif isinstance(obj, (list, tuple)):
                return [convert_for_yaml(item) for item in obj]
            return obj

        yaml_data = convert_for_yaml(data)

        with open(path, "w") as f:
            yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file or use defaults.

    Args:
        config_path: Optional path to config file. If None, uses config/default.yaml

    Returns:
        Validated Config instance
    """
    if config_path is None:
        config_path = Path("config/default.yaml")

    if config_path.exists():
        return Config.from_yaml(config_path)
    else:
        return Config()
