"""
payroll_config -- single public entrypoint for payroll configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  Sits beside ``payroll_kernel`` and below
    ``payroll_modules``.  The kernel never imports from ``payroll_config``;
    the weekly pay facade passes plain values (rate, week start day, page
    limit) into kernel services.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic checksum: the same effective settings always produce
      the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ValueError`` -- schema validation or environment override failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PAYROLL_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each payout run to the settings that governed it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from payroll_config.loader import load_config
from payroll_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    PayrollConfig,
    PayrollSettings,
)

_logger = logging.getLogger("payroll_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "payroll.yaml"

# Environment variable naming an alternative configuration file
CONFIG_PATH_ENV = "PAYROLL_CONFIG"


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> PayrollConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to ``$PAYROLL_CONFIG``,
            then the packaged ``defaults/payroll.yaml``.
        environ: Environment used for overrides.  Defaults to ``os.environ``.

    Returns:
        PayrollConfig with environment overrides applied.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If validation fails.
    """
    env = os.environ if environ is None else environ
    path = config_path or Path(env.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)

    config = load_config(Path(path), env)

    _logger.info(
        "PAYROLL_CONFIG_TRACE",
        extra={
            "trace_type": "PAYROLL_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "database_dialect": config.database.url.split(":", 1)[0],
            "hourly_rate": config.payroll.hourly_rate,
            "default_week_start_day": config.payroll.default_week_start_day,
        },
    )
    return config


__all__ = [
    "DatabaseSettings",
    "LoggingSettings",
    "PayrollConfig",
    "PayrollSettings",
    "get_active_config",
]
