"""
Configuration schema (``payroll_config.schema``).

Frozen dataclasses for every configuration section.  Each section checks
its own values in ``__post_init__`` so an invalid file fails at load time
rather than at the first payment run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url cannot be empty")
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(f"database.max_overflow must be >= 0, got {self.max_overflow}")


@dataclass(frozen=True)
class PayrollSettings:
    hourly_rate: Decimal = Decimal("2000")
    default_week_start_day: int = 2
    default_page_limit: int = 50
    max_page_limit: int = 500

    def __post_init__(self) -> None:
        if self.hourly_rate <= 0:
            raise ValueError(f"payroll.hourly_rate must be positive, got {self.hourly_rate}")
        if not 0 <= self.default_week_start_day <= 6:
            raise ValueError(
                "payroll.default_week_start_day must be 0..6, "
                f"got {self.default_week_start_day}"
            )
        if self.max_page_limit < 1:
            raise ValueError(f"payroll.max_page_limit must be >= 1, got {self.max_page_limit}")
        if not 1 <= self.default_page_limit <= self.max_page_limit:
            raise ValueError(
                "payroll.default_page_limit must be between 1 and max_page_limit, "
                f"got {self.default_page_limit}"
            )


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ValueError(f"logging.level is not a logging level: {self.level!r}")

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level.upper())


@dataclass(frozen=True)
class PayrollConfig:
    """The complete runtime configuration."""

    config_id: str
    version: int
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    payroll: PayrollSettings = field(default_factory=PayrollSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
