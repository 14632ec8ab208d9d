"""Core types, configuration and errors for the pricing engine."""

from heston_fft.core.config import (
    CalibrationConfig,
    Config,
    EngineConfig,
    GridConfig,
    LoggingConfig,
    RecoveryConfig,
    load_config,
)
from heston_fft.core.errors import (
    AllocationFailureError,
    BlackScholesAnchorError,
    InputValidationError,
    NumericInstabilityError,
    PricingError,
)
from heston_fft.core.types import (
    CalibrationResult,
    ContractParams,
    FallbackReason,
    HestonParams,
)

__all__ = [
    "CalibrationConfig",
    "Config",
    "EngineConfig",
    "GridConfig",
    "LoggingConfig",
    "RecoveryConfig",
    "load_config",
    "AllocationFailureError",
    "BlackScholesAnchorError",
    "InputValidationError",
    "NumericInstabilityError",
    "PricingError",
    "CalibrationResult",
    "ContractParams",
    "FallbackReason",
    "HestonParams",
]
