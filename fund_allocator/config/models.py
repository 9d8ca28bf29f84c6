"""
Fund Configuration Models.

Pydantic models for fund parameters and the simulated pools a fund is
built with. String values support ${VAR} and ${VAR:default} substitution.
"""

import os
import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Pattern for environment variable substitution: ${VAR} or ${VAR:default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

BPS_DENOMINATOR = 10_000


def substitute_env_vars(value: str) -> str:
    """
    Substitute environment variables in a string.

    Supports formats:
    - ${VAR} - substitutes with VAR value, empty if not set
    - ${VAR:default} - substitutes with VAR value, or 'default' if not set
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value
        elif default_value is not None:
            return default_value
        else:
            return ""

    return ENV_VAR_PATTERN.sub(replace_match, value)


def process_value(value: Any) -> Any:
    """Process a value, substituting env vars if it's a string."""
    if isinstance(value, str):
        return substitute_env_vars(value)
    elif isinstance(value, dict):
        return {k: process_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [process_value(item) for item in value]
    return value


class BaseConfig(BaseModel):
    """
    Base configuration model with common functionality.

    Features:
    - Environment variable substitution: ${VAR} or ${VAR:default}
    - Immutable by default (frozen)
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )

    @model_validator(mode="before")
    @classmethod
    def substitute_environment_variables(cls, data: Any) -> Any:
        """Substitute environment variables in all string values."""
        if isinstance(data, dict):
            return process_value(data)
        return data


class TimeoutSettings(BaseConfig):
    """Timeouts for external pool calls, in seconds."""

    pool_call: float = Field(default=15.0, gt=0)


class PoolConfig(BaseConfig):
    """
    Simulated pool definition.

    Example:
        >>> PoolConfig(address="pool-a", weight=50, share_price=1_000_000, decimals=6)
    """

    address: str = Field(min_length=1, description="Pool address/handle")
    weight: int = Field(default=0, ge=0, description="Target weight")
    share_price: Optional[int] = Field(
        default=None,
        gt=0,
        description="Initial asset units per share, scaled by 10**decimals",
    )
    decimals: int = Field(default=18, ge=0, le=36)


class FundConfig(BaseConfig):
    """
    Fund configuration.

    Example:
        >>> config = FundConfig(
        ...     asset="USDC",
        ...     deposit_fee_bps=25,
        ...     fee_recipient="treasury",
        ...     pools=[PoolConfig(address="pool-a", weight=100)],
        ... )
    """

    asset: str = Field(default="ASSET", min_length=1, description="Underlying asset id")
    fund_address: str = Field(
        default="fund",
        min_length=1,
        description="Address the fund holds its idle balance and pool shares under",
    )
    max_pools: int = Field(default=1000, ge=1, description="Registry capacity")

    # Fees
    deposit_fee_bps: int = Field(default=0, ge=0, le=BPS_DENOMINATOR)
    max_deposit_fee_bps: int = Field(default=1000, ge=0, le=BPS_DENOMINATOR)
    fee_recipient: Optional[str] = Field(default=None)

    # Minimum-output guard; None sends a zero minimum on every pool call
    max_slippage_bps: Optional[int] = Field(default=None, ge=0, le=BPS_DENOMINATOR)

    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)

    # Access control
    admins: List[str] = Field(default_factory=lambda: ["admin"])
    rebalancers: List[str] = Field(default_factory=list)

    pools: List[PoolConfig] = Field(default_factory=list)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("fee_recipient", mode="before")
    @classmethod
    def empty_recipient_is_none(cls, v: Any) -> Any:
        """Treat an empty (unset env var) recipient as no recipient."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_consistency(self) -> "FundConfig":
        """Cross-field checks."""
        if self.deposit_fee_bps > self.max_deposit_fee_bps:
            raise ValueError(
                f"deposit_fee_bps {self.deposit_fee_bps} exceeds "
                f"max_deposit_fee_bps {self.max_deposit_fee_bps}"
            )
        addresses = [p.address for p in self.pools]
        if len(addresses) != len(set(addresses)):
            raise ValueError("pool addresses must be unique")
        if len(addresses) > self.max_pools:
            raise ValueError(
                f"{len(addresses)} pools configured, max_pools is {self.max_pools}"
            )
        if self.fund_address in addresses:
            raise ValueError("fund_address must differ from every pool address")
        return self
