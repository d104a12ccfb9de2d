"""
Weekly Pay Configuration Schema.

Settings the weekly pay facade passes into kernel services.  Values come
from ``payroll_config.get_active_config()`` in production and from
``with_defaults()`` in tests.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from payroll_config import get_active_config
from payroll_config.schema import PayrollSettings
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.weekly_pay.config")


@dataclass
class WeeklyPayConfig:
    """
    Configuration schema for the weekly pay module.

        config = WeeklyPayConfig(hourly_rate=Decimal("2500"))
    """

    # Pay per hour when the resolved benchmark has no pay_per_hour
    hourly_rate: Decimal = Decimal("2000")

    # Week start day for newly registered workers (0 = Sunday)
    default_week_start_day: int = 2

    # Listing limits
    default_page_limit: int = 50
    max_page_limit: int = 500

    def __post_init__(self):
        if self.hourly_rate <= 0:
            raise ValueError("hourly_rate must be positive")
        if not 0 <= self.default_week_start_day <= 6:
            raise ValueError(
                f"default_week_start_day must be 0..6, got {self.default_week_start_day}"
            )
        if self.max_page_limit < 1:
            raise ValueError("max_page_limit must be >= 1")
        if not 1 <= self.default_page_limit <= self.max_page_limit:
            raise ValueError("default_page_limit must be between 1 and max_page_limit")

        logger.debug(
            "weekly_pay_config_initialized",
            extra={
                "hourly_rate": str(self.hourly_rate),
                "default_week_start_day": self.default_week_start_day,
                "max_page_limit": self.max_page_limit,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the stock defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. a YAML section)."""
        logger.info(
            "weekly_pay_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        values = dict(data)
        if "hourly_rate" in values:
            values["hourly_rate"] = Decimal(str(values["hourly_rate"]))
        return cls(**values)

    @classmethod
    def from_settings(cls, settings: PayrollSettings) -> Self:
        """Create config from the ``payroll`` section of the active config."""
        return cls(
            hourly_rate=settings.hourly_rate,
            default_week_start_day=settings.default_week_start_day,
            default_page_limit=settings.default_page_limit,
            max_page_limit=settings.max_page_limit,
        )

    @classmethod
    def from_active_config(cls) -> Self:
        """Create config from ``payroll_config.get_active_config()``."""
        return cls.from_settings(get_active_config().payroll)
