"""
Ledger configuration schema.

Frozen dataclasses produced by ``ledger_config.loader`` from a YAML
configuration set.  The runtime only ever sees a ``LedgerConfig``; it never
reads YAML or environment variables itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ledger_kernel.domain.records import Hub, PriceHistory, Product
from ledger_kernel.domain.snapshot import RecordStore, dedupe_by_id

# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyncSettings:
    """Debounce and retry policy for the background snapshot writer."""

    debounce_seconds: float = 1.0
    max_retries: int = 3
    backoff_seconds: float = 0.5


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReportSettings:
    low_stock_threshold: Decimal = Decimal("10")
    top_client_count: int = 10
    recent_consignment_count: int = 10
    recent_activity_count: int = 5


# ---------------------------------------------------------------------------
# Seed catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SeedCatalog:
    """Default master data used when the database has none."""

    hubs: tuple[Hub, ...] = ()
    products: tuple[Product, ...] = ()
    price_history: tuple[PriceHistory, ...] = ()

    def to_store(self, admin_usernames: tuple[str, ...] = ()) -> RecordStore:
        return RecordStore(
            hubs=dedupe_by_id(self.hubs),
            products=dedupe_by_id(self.products),
            price_history=dedupe_by_id(self.price_history),
            admin_usernames=admin_usernames,
        )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    """A loaded, validated configuration set."""

    name: str
    database_url: str
    cache_path: str | None = None
    log_level: str = "INFO"
    admin_usernames: tuple[str, ...] = ()
    sync: SyncSettings = field(default_factory=SyncSettings)
    reports: ReportSettings = field(default_factory=ReportSettings)
    seed: SeedCatalog = field(default_factory=SeedCatalog)
    checksum: str = ""

    def seed_store(self) -> RecordStore:
        return self.seed.to_store(self.admin_usernames)
