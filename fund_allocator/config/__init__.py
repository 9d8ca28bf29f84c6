# Config module - Fund configuration system
from .exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .loader import ConfigLoader, load_config
from .models import BPS_DENOMINATOR, BaseConfig, FundConfig, PoolConfig, TimeoutSettings

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    # Loader
    "ConfigLoader",
    "load_config",
    # Models
    "BaseConfig",
    "FundConfig",
    "PoolConfig",
    "TimeoutSettings",
    "BPS_DENOMINATOR",
]
