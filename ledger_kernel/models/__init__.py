"""ORM models for the ledger kernel."""

from ledger_kernel.models.ledger_record import LedgerRecordModel

__all__ = ["LedgerRecordModel"]
