"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for ledger_services
    and scripts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel (domain, values, logging).
    MUST NOT import ledger_services or ledger_config.

Invariants enforced:
    - Purity: engines never read the wall clock.  ``as_of_date`` is always
      passed in by the caller.
    - Decimal-only arithmetic for quantities and money.
    - Determinism: identical snapshots always produce identical outputs.

Failure modes:
    - Engines do not raise for data-quality issues; see each module.

Usage:
    from ledger_engines import inventory_metrics, outstanding_balance, customer_ledger
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines")

from ledger_engines.dashboard import (  # noqa: E402
    Activity,
    ActivityKind,
    DailySales,
    DashboardSummary,
    ProductVolume,
    dashboard_summary,
)
from ledger_engines.pricing import latest_price  # noqa: E402
from ledger_engines.receivables import (  # noqa: E402
    BalanceBreakdown,
    Settlement,
    balance_breakdown,
    outstanding_balance,
    suggested_settlement,
    total_receivables,
)
from ledger_engines.statement import (  # noqa: E402
    BusinessTotals,
    ClientSummary,
    ConsolidatedReport,
    EntryType,
    LedgerEntry,
    PricingMatrix,
    PricingRow,
    RecentConsignment,
    consolidated_report,
    customer_ledger,
    pricing_matrix,
)
from ledger_engines.tracer import traced_engine  # noqa: E402
from ledger_engines.valuation import (  # noqa: E402
    ALL_HUBS,
    CostLayer,
    InventoryMetrics,
    StockAlert,
    StockRow,
    inventory_metrics,
    stock_alerts,
    stock_matrix,
)

__all__ = [
    # Pricing
    "latest_price",
    # Valuation
    "ALL_HUBS",
    "CostLayer",
    "InventoryMetrics",
    "StockAlert",
    "StockRow",
    "inventory_metrics",
    "stock_alerts",
    "stock_matrix",
    # Receivables
    "BalanceBreakdown",
    "Settlement",
    "balance_breakdown",
    "outstanding_balance",
    "suggested_settlement",
    "total_receivables",
    # Statement
    "BusinessTotals",
    "ClientSummary",
    "ConsolidatedReport",
    "EntryType",
    "LedgerEntry",
    "PricingMatrix",
    "PricingRow",
    "RecentConsignment",
    "consolidated_report",
    "customer_ledger",
    "pricing_matrix",
    # Dashboard
    "Activity",
    "ActivityKind",
    "DailySales",
    "DashboardSummary",
    "ProductVolume",
    "dashboard_summary",
    # Tracing
    "traced_engine",
]
