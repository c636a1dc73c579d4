"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Load a YAML configuration set and parse it into the frozen dataclasses of
``ledger_config.schema``.  The runtime entry point is
``ledger_config.get_active_config()``; this module is its implementation.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Numeric settings are validated (non-negative, integer counts); bad
  values raise ``ConfigError`` naming the offending key.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  file contents for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML or invalid values  -> ``ConfigError``.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    LedgerConfig,
    ReportSettings,
    SeedCatalog,
    SyncSettings,
)
from ledger_kernel.domain.records import Hub, PriceHistory, Product
from ledger_kernel.domain.snapshot import dedupe_usernames
from ledger_kernel.exceptions import ConfigError, InvalidRecordError

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigError: if the file is not valid YAML or not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(str(path), f"invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    return data


def compute_checksum(raw: bytes) -> str:
    """SHA-256 hex digest of the configuration file contents."""
    return hashlib.sha256(raw).hexdigest()


def _section(data: Mapping[str, Any], key: str, path: str) -> Mapping[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(path, f"'{key}' must be a mapping")
    return value


def _number(section: Mapping[str, Any], key: str, default: float, path: str) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(path, f"'{key}' must be a non-negative number, got {value!r}")
    return float(value)


def _count(section: Mapping[str, Any], key: str, default: int, path: str) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(path, f"'{key}' must be a non-negative integer, got {value!r}")
    return value


def parse_sync(data: Mapping[str, Any], path: str) -> SyncSettings:
    section = _section(data, "sync", path)
    defaults = SyncSettings()
    return SyncSettings(
        debounce_seconds=_number(section, "debounce_seconds", defaults.debounce_seconds, path),
        max_retries=_count(section, "max_retries", defaults.max_retries, path),
        backoff_seconds=_number(section, "backoff_seconds", defaults.backoff_seconds, path),
    )


def parse_reports(data: Mapping[str, Any], path: str) -> ReportSettings:
    section = _section(data, "reports", path)
    defaults = ReportSettings()
    raw_threshold = section.get("low_stock_threshold", defaults.low_stock_threshold)
    try:
        threshold = Decimal(str(raw_threshold))
    except (InvalidOperation, ValueError) as exc:
        raise ConfigError(path, f"'low_stock_threshold' is not a number: {raw_threshold!r}") from exc
    if isinstance(raw_threshold, bool) or not threshold.is_finite() or threshold < 0:
        raise ConfigError(path, f"'low_stock_threshold' must be non-negative, got {raw_threshold!r}")
    return ReportSettings(
        low_stock_threshold=threshold,
        top_client_count=_count(section, "top_client_count", defaults.top_client_count, path),
        recent_consignment_count=_count(
            section, "recent_consignment_count", defaults.recent_consignment_count, path
        ),
        recent_activity_count=_count(
            section, "recent_activity_count", defaults.recent_activity_count, path
        ),
    )


def parse_seed(data: Mapping[str, Any], path: str) -> SeedCatalog:
    """
    Parse the seed catalog.

    Entries use the same keys as persisted records (snake_case or camelCase).
    """
    section = _section(data, "seed", path)

    def records(key: str, record_type: type) -> tuple:
        items = section.get(key) or []
        if not isinstance(items, list):
            raise ConfigError(path, f"'seed.{key}' must be a list")
        parsed = []
        for item in items:
            if not isinstance(item, Mapping) or not item.get("id"):
                raise ConfigError(path, f"'seed.{key}' entries need an 'id'")
            try:
                parsed.append(record_type.from_dict(item))
            except InvalidRecordError as exc:
                raise ConfigError(path, f"'seed.{key}': {exc}") from exc
        return tuple(parsed)

    return SeedCatalog(
        hubs=records("hubs", Hub),
        products=records("products", Product),
        price_history=records("price_history", PriceHistory),
    )


def parse_config(data: Mapping[str, Any], name: str, path: str, checksum: str) -> LedgerConfig:
    """Parse a configuration mapping into a ``LedgerConfig``."""
    database_url = data.get("database_url")
    if not isinstance(database_url, str) or not database_url.strip():
        raise ConfigError(path, "'database_url' is required")

    log_level = str(data.get("log_level", "INFO")).upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError(path, f"'log_level' must be one of {sorted(_LOG_LEVELS)}")

    admins = data.get("admin_usernames") or []
    if not isinstance(admins, list) or not all(isinstance(a, str) for a in admins):
        raise ConfigError(path, "'admin_usernames' must be a list of strings")

    cache_path = data.get("cache_path")
    if cache_path is not None and not isinstance(cache_path, str):
        raise ConfigError(path, "'cache_path' must be a string")

    return LedgerConfig(
        name=name,
        database_url=database_url.strip(),
        cache_path=cache_path,
        log_level=log_level,
        admin_usernames=dedupe_usernames(admins),
        sync=parse_sync(data, path),
        reports=parse_reports(data, path),
        seed=parse_seed(data, path),
        checksum=checksum,
    )


def load_config_file(path: Path, name: str) -> LedgerConfig:
    """
    Read, checksum and parse one configuration file.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        ConfigError: if the contents are invalid.
    """
    raw = path.read_bytes()
    data = load_yaml_file(path)
    return parse_config(data, name, str(path), compute_checksum(raw))
