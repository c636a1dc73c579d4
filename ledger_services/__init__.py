"""
Ledger services: the imperative shell around the pure engines.

- access: actor/role resolution and mutation gating
- ledger_service: OperationsLedger, owner of the current snapshot
- persistence: SnapshotRepository (database, cache file, seed fallback)
- sync_writer: SnapshotWriter (debounced background saves with retry)
"""

from ledger_services.access import (
    MUTATION_ACTIONS,
    Actor,
    Role,
    check_mutation_allowed,
    require_admin,
    resolve_actor,
)
from ledger_services.ledger_service import LineItem, OperationsLedger
from ledger_services.persistence import LoadResult, SnapshotRepository
from ledger_services.sync_writer import SnapshotWriter

__all__ = [
    "MUTATION_ACTIONS",
    "Actor",
    "Role",
    "check_mutation_allowed",
    "require_admin",
    "resolve_actor",
    "LineItem",
    "OperationsLedger",
    "LoadResult",
    "SnapshotRepository",
    "SnapshotWriter",
]
