"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.  Returns a frozen ``LedgerConfig``.

Architecture position:
    Configuration -- YAML-driven settings.  This package sits above
    ``ledger_kernel`` and below ``ledger_services`` / scripts.  The kernel
    and engines MUST NEVER import from ``ledger_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - ``LEDGER_DATABASE_URL`` in the environment overrides ``database_url``.
    - Deterministic identity: the same file always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ConfigError`` -- YAML or value validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LEDGER_CONFIG_TRACE`` log entry with the set name, checksum and the
    main settings, tying each session to the configuration that governed it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from ledger_config.loader import load_config_file
from ledger_config.schema import LedgerConfig, ReportSettings, SeedCatalog, SyncSettings

_logger = logging.getLogger("ledger_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "LEDGER_DATABASE_URL"


def get_active_config(
    config_dir: Path | str | None = None,
    name: str = "default",
) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Override path to the configuration sets directory.
            Defaults to ledger_config/sets/.
        name: Configuration set name; the file read is ``<name>.yaml``.

    Returns:
        LedgerConfig with the environment override applied.

    Raises:
        FileNotFoundError: If ``<config_dir>/<name>.yaml`` does not exist.
        ConfigError: If configuration validation fails.
    """
    sets_dir = Path(config_dir) if config_dir else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_config_file(path, name)

    override = os.environ.get(DATABASE_URL_ENV, "").strip()
    if override:
        config = replace(config, database_url=override)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_name": config.name,
            "checksum": config.checksum,
            "database_url_overridden": bool(override),
            "admin_count": len(config.admin_usernames),
            "seed_product_count": len(config.seed.products),
            "debounce_seconds": config.sync.debounce_seconds,
        },
    )
    return config


__all__ = [
    "DATABASE_URL_ENV",
    "LedgerConfig",
    "ReportSettings",
    "SeedCatalog",
    "SyncSettings",
    "get_active_config",
]
