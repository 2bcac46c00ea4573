"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Loan engine configuration"""

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Rounding configuration
    currency: str = "KES"  # Precision used when generating schedules
    rate_precision: int = 4  # Decimal places of an implied interest rate

    # Harmonization tolerances
    rate_tolerance: Decimal = Decimal("0.01")  # Percentage points
    amount_tolerance: Decimal = Decimal("0.01")  # Per installment rounding slack
    rate_solver_iterations: int = 200

    # Repayment configuration
    default_repayment_strategy: str = "penalties_fees_interest_principal"

    @field_validator("rate_tolerance", "amount_tolerance")
    @classmethod
    def _non_negative(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("tolerance must not be negative")
        return value

    @field_validator("rate_precision", "rate_solver_iterations")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    class Config:
        env_prefix = "LOAN_ENGINE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = EngineConfig()


def get_config() -> EngineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> EngineConfig:
    """Reload configuration from environment"""
    global config
    config = EngineConfig()
    return config
