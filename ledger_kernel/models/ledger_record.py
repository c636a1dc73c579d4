"""
Module: ledger_kernel.models.ledger_record
Responsibility: SQLAlchemy ORM model persisting snapshot records.  One row per
    (collection, record id), payload stored as JSON in the camelCase shape
    produced by ``record.to_dict()``.

Architecture position: Kernel > Models.  Inherits from TrackedBase
    (ledger_kernel.db.base).  Read and written only by
    ledger_services.persistence.SnapshotRepository.

Invariants enforced:
    - (collection, record_id) is unique: saving a record upserts on its id,
      matching last-write-wins semantics of the snapshot.
    - ``position`` preserves collection order across a save/load round trip.
"""

from typing import Any

from sqlalchemy import JSON, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class LedgerRecordModel(TrackedBase):
    """
    ORM model for one record of one snapshot collection.

    Maps to: any ledger_kernel.domain.records type via ``from_dict``/``to_dict``.
    The ``admin_users`` collection stores ``{"username": ...}`` payloads.
    """

    __tablename__ = "ledger_records"

    __table_args__ = (
        UniqueConstraint("collection", "record_id", name="uq_ledger_record"),
        Index("idx_ledger_record_collection", "collection"),
    )

    collection: Mapped[str] = mapped_column(String(50), nullable=False)
    record_id: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    # index within the collection; snapshot order is significant
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<LedgerRecordModel {self.collection}/{self.record_id}>"
