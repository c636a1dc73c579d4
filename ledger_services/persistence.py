"""
ledger_services.persistence -- SnapshotRepository, the persistence collaborator.

Responsibility:
    Load a complete RecordStore snapshot from the database (falling back to
    a local JSON cache, then to the seeded default catalog) and save a
    complete snapshot back, upserting each record by id and deleting rows
    for records that no longer exist.

Architecture position:
    Services -- I/O boundary.  Reads and writes LedgerRecordModel rows
    through an injected SQLAlchemy session factory.  Called by the
    SnapshotWriter (saves) and at startup (loads).

Invariants enforced:
    - One row per (collection, record id); saving is last-write-wins.
    - Collection order survives a round trip (``position`` column).
    - A snapshot is saved in one transaction: either every row changes or
      none does.
    - The seeded catalog only fills collections that are empty in the
      database (products, price history); it never overwrites data.

Failure modes:
    - ``load`` never raises for database failures: it falls back to the
      cache, then the seed, and reports which via ``LoadResult.source``.
    - ``save`` never raises for database failures: it logs
      ``snapshot_save_failed`` and returns False.
    - ``load_from_database`` / ``save_or_raise`` are the raising variants
      (SnapshotLoadError / SnapshotSaveError).
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.domain.snapshot import COLLECTIONS, RecordStore, dedupe_usernames, username_key
from ledger_kernel.exceptions import SnapshotLoadError, SnapshotSaveError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.ledger_record import LedgerRecordModel

logger = get_logger("services.persistence")

ADMIN_COLLECTION = "admin_users"

LoadSource = Literal["database", "cache", "seed"]


@dataclass(frozen=True)
class LoadResult:
    snapshot: RecordStore
    source: LoadSource


def _rows(snapshot: RecordStore) -> Iterator[tuple[str, str, dict[str, Any], int]]:
    """(collection, record_id, payload, position) for every persisted row."""
    for name, _ in COLLECTIONS:
        for position, record in enumerate(getattr(snapshot, name)):
            yield name, record.id, record.to_dict(), position
    for position, username in enumerate(dedupe_usernames(snapshot.admin_usernames)):
        yield ADMIN_COLLECTION, username_key(username), {"username": username}, position


class SnapshotRepository:
    """
    Full-snapshot load/save over the ``ledger_records`` table.

    Contract:
        Receives a session factory via constructor injection; opens one
        session per call and always closes it.
    Guarantees:
        - ``load`` returns a usable snapshot in every case.
        - ``save`` returns True only after a committed transaction.
    Non-goals:
        - No merge of concurrent writers; the last save wins.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        cache_path: str | Path | None = None,
        seed: RecordStore | None = None,
    ):
        self._session_factory = session_factory
        self._cache_path = Path(cache_path) if cache_path else None
        self._seed = seed or RecordStore.empty()

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def load(self) -> LoadResult:
        """Load from the database, else the cache file, else the seed."""
        try:
            snapshot = self.load_from_database()
        except SnapshotLoadError as exc:
            logger.warning("snapshot_load_fallback", extra={"reason": exc.reason})
            cached = self.read_cache()
            if cached is not None:
                logger.info("snapshot_loaded", extra={"source": "cache", "revision": cached.revision})
                return LoadResult(cached, "cache")
            logger.info("snapshot_loaded", extra={"source": "seed"})
            return LoadResult(self._seed, "seed")

        snapshot = self._with_seed_catalog(snapshot)
        self.write_cache(snapshot)
        logger.info("snapshot_loaded", extra={
            "source": "database",
            "record_count": sum(len(getattr(snapshot, name)) for name, _ in COLLECTIONS),
        })
        return LoadResult(snapshot, "database")

    def load_from_database(self) -> RecordStore:
        """
        Read every row into a snapshot.

        Raises:
            SnapshotLoadError: wrapping any SQLAlchemyError.
        """
        session = self._session_factory()
        try:
            models = session.scalars(
                select(LedgerRecordModel).order_by(
                    LedgerRecordModel.collection, LedgerRecordModel.position,
                )
            ).all()
        except SQLAlchemyError as exc:
            raise SnapshotLoadError(str(exc)) from exc
        finally:
            session.close()

        data: dict[str, list[Any]] = {name: [] for name, _ in COLLECTIONS}
        admins: list[str] = []
        for model in models:
            if model.collection == ADMIN_COLLECTION:
                admins.append(str(model.payload.get("username") or model.record_id))
            elif model.collection in data:
                data[model.collection].append(model.payload)
            else:
                logger.warning("unknown_collection_skipped", extra={
                    "collection": model.collection,
                    "record_id": model.record_id,
                })
        return RecordStore.from_dict({**data, "admin_usernames": admins})

    def _with_seed_catalog(self, snapshot: RecordStore) -> RecordStore:
        changes: dict[str, Any] = {}
        if not snapshot.products and self._seed.products:
            changes["products"] = self._seed.products
        if not snapshot.price_history and self._seed.price_history:
            changes["price_history"] = self._seed.price_history
        if not changes:
            return snapshot
        logger.info("seed_catalog_applied", extra={"collections": sorted(changes)})
        return replace(snapshot, **changes)

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def read_cache(self) -> RecordStore | None:
        if self._cache_path is None or not self._cache_path.exists():
            return None
        try:
            data = json.loads(self._cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("cache_read_failed", extra={
                "path": str(self._cache_path),
                "error": str(exc),
            })
            return None
        return RecordStore.from_dict(data)

    def write_cache(self, snapshot: RecordStore) -> None:
        if self._cache_path is None:
            return
        tmp = self._cache_path.with_suffix(self._cache_path.suffix + ".tmp")
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(snapshot.to_dict(), ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self._cache_path)
        except OSError as exc:
            logger.warning("cache_write_failed", extra={
                "path": str(self._cache_path),
                "error": str(exc),
            })

    # -------------------------------------------------------------------------
    # Save
    # -------------------------------------------------------------------------

    def save(self, snapshot: RecordStore, updated_by: str | None = None) -> bool:
        """Persist ``snapshot``; returns False instead of raising on failure."""
        try:
            self.save_or_raise(snapshot, updated_by)
        except SnapshotSaveError as exc:
            logger.error("snapshot_save_failed", extra={
                "revision": exc.revision,
                "reason": exc.reason,
            })
            return False
        self.write_cache(snapshot)
        return True

    def save_or_raise(self, snapshot: RecordStore, updated_by: str | None = None) -> None:
        """
        Upsert every record and delete rows no longer in ``snapshot``.

        Raises:
            SnapshotSaveError: wrapping any SQLAlchemyError (the transaction
                is rolled back).
        """
        session = self._session_factory()
        try:
            existing = {
                (model.collection, model.record_id): model
                for model in session.scalars(select(LedgerRecordModel))
            }
            inserted = updated = 0
            seen: set[tuple[str, str]] = set()
            for collection, record_id, payload, position in _rows(snapshot):
                key = (collection, record_id)
                seen.add(key)
                model = existing.get(key)
                if model is None:
                    session.add(LedgerRecordModel(
                        collection=collection,
                        record_id=record_id,
                        payload=payload,
                        position=position,
                        updated_by=updated_by,
                    ))
                    inserted += 1
                elif model.payload != payload or model.position != position:
                    model.payload = payload
                    model.position = position
                    model.updated_by = updated_by
                    updated += 1

            stale = [model for key, model in existing.items() if key not in seen]
            for model in stale:
                session.delete(model)

            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise SnapshotSaveError(snapshot.revision, str(exc)) from exc
        finally:
            session.close()

        logger.info("snapshot_saved", extra={
            "revision": snapshot.revision,
            "inserted": inserted,
            "updated": updated,
            "deleted": len(stale),
        })
