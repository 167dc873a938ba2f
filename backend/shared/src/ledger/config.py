"""Environment-driven configuration for the ledger services.

Values are read once per process from environment variables:

    ENVIRONMENT                     dev | staging | prod (default: dev)
    LEDGER_COMMISSION_PERCENT       platform commission kept on partial refunds (default: 15)
    LEDGER_CASCADE_BOOKING_STATUS   mirror transaction status onto the booking (default: false)
    LEDGER_DEFAULT_CURRENCY         currency for withdrawals without one (default: usd)
    LEDGER_CORS_ORIGINS             comma-separated browser origins for the API

Usage:
    from ledger.config import get_config

    config = get_config()
    config.commission_percent  # Decimal("15")
"""

import os
from decimal import Decimal
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field

_TRUTHY = {"1", "true", "yes", "on"}


def _split(value: str | None) -> tuple[str, ...]:
    return tuple(part.strip() for part in (value or "").split(",") if part.strip())


class LedgerConfig(BaseModel):
    """Runtime settings shared by the ledger services."""

    model_config = ConfigDict(frozen=True)

    environment: str = Field(default="dev", description="Deployment environment")
    commission_percent: Decimal = Field(
        default=Decimal("15"),
        ge=0,
        le=100,
        description="Commission retained by the platform on partial refunds",
    )
    cascade_booking_status: bool = Field(
        default=False,
        description="Propagate transaction status updates to the owning booking",
    )
    default_currency: str = Field(default="usd", description="Fallback ISO currency")
    cors_origins: tuple[str, ...] = Field(
        default=("http://localhost:3000", "http://127.0.0.1:3000"),
        description="Origins allowed by the API CORS middleware",
    )

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Build a config from the process environment."""
        return cls(
            environment=os.getenv("ENVIRONMENT", "dev"),
            commission_percent=Decimal(os.getenv("LEDGER_COMMISSION_PERCENT", "15")),
            cascade_booking_status=(
                os.getenv("LEDGER_CASCADE_BOOKING_STATUS", "false").strip().lower()
                in _TRUTHY
            ),
            default_currency=os.getenv("LEDGER_DEFAULT_CURRENCY", "usd").lower(),
            cors_origins=_split(os.getenv("LEDGER_CORS_ORIGINS")) or cls().cors_origins,
        )


@lru_cache(maxsize=1)
def get_config() -> LedgerConfig:
    """Get the process-wide LedgerConfig.

    Call ``get_config.cache_clear()`` after changing environment variables
    in tests.
    """
    return LedgerConfig.from_env()
