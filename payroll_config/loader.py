"""
Configuration Loader (``payroll_config.loader``).

Responsibility
--------------
Reads the YAML configuration file, applies environment overrides and
parses the result into the frozen dataclasses of ``payroll_config.schema``.
Runtime code does not call this module; it goes through
``payroll_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Environment overrides are applied to the raw mapping before parsing,
  so they pass the same validation as file values.
* ``compute_checksum`` is deterministic over the effective (overridden)
  mapping.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError`` from the schema.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    PayrollConfig,
    PayrollSettings,
)

# Environment variable -> (section, key, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "DATABASE_URL": ("database", "url", str),
    "PAYROLL_HOURLY_RATE": ("payroll", "hourly_rate", str),
    "PAYROLL_WEEK_START_DAY": ("payroll", "default_week_start_day", int),
    "PAYROLL_LOG_LEVEL": ("logging", "level", str),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """
    Return a copy of ``data`` with environment overrides applied.

    Empty environment values are ignored.

    Raises:
        ValueError: if an override cannot be parsed.
    """
    result = copy.deepcopy(data)
    for var, (section, key, parser) in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw.strip() == "":
            continue
        try:
            value = parser(raw.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from exc
        result.setdefault(section, {})[key] = value
    return result


def parse_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"{name} is not a number: {value!r}") from exc


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=data.get("url", "sqlite://"),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
    )


def parse_payroll(data: dict[str, Any]) -> PayrollSettings:
    return PayrollSettings(
        hourly_rate=parse_decimal(data.get("hourly_rate", "2000"), "payroll.hourly_rate"),
        default_week_start_day=int(data.get("default_week_start_day", 2)),
        default_page_limit=int(data.get("default_page_limit", 50)),
        max_page_limit=int(data.get("max_page_limit", 500)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", "INFO")))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> PayrollConfig:
    """
    Parse an effective configuration mapping.

    Raises:
        KeyError: ``config_id`` or ``version`` missing.
        ValueError: any section out of range.
    """
    return PayrollConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        database=parse_database(data.get("database") or {}),
        payroll=parse_payroll(data.get("payroll") or {}),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: Path, environ: Mapping[str, str] | None = None) -> PayrollConfig:
    """Load ``path``, apply ``environ`` overrides and parse."""
    data = load_yaml_file(path)
    if environ is not None:
        data = apply_env_overrides(data, environ)
    return parse_config(data)
