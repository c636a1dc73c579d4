"""
SnapshotWriter -- Debounced background writer for snapshots.

Contract:
    Receives snapshots from OperationsLedger via ``submit()``, keeps only
    the latest, and persists it through SnapshotRepository after a quiet
    period.  ``flush()`` performs the save with retry and linear backoff.

Architecture: ledger_services.  Uses ledger_services.persistence for I/O.

Invariants enforced:
    - Coalescing: a burst of submits results in one save of the newest
      snapshot; an older revision never overwrites a newer one.
    - Single writer: saves are serialised by ``_flush_lock``.
    - Graceful shutdown: ``stop()`` flushes anything still pending.
    - Failures surface as the ``sync_error`` flag, never as exceptions to
      the submitting thread.
"""

from __future__ import annotations

import threading
import time

from ledger_kernel.domain.snapshot import RecordStore
from ledger_kernel.logging_config import get_logger
from ledger_services.persistence import SnapshotRepository

logger = get_logger("services.sync_writer")


class SnapshotWriter:
    """Debounced, retrying, single-writer snapshot persistence.

    Contract:
        - ``submit()`` is cheap and non-blocking.
        - ``flush()`` saves the pending snapshot now (public for testing).
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a multi-process coordinator (last write wins in the database).
    """

    def __init__(
        self,
        repository: SnapshotRepository,
        debounce_seconds: float = 1.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        sleep=time.sleep,
    ):
        self._repository = repository
        self._debounce = debounce_seconds
        self._max_retries = max(0, max_retries)
        self._backoff = backoff_seconds
        self._sleep = sleep
        self._pending: RecordStore | None = None
        self._pending_by: str | None = None
        self._last_saved_revision: int | None = None
        self._sync_error = False
        self._state_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def sync_error(self) -> bool:
        return self._sync_error

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def last_saved_revision(self) -> int | None:
        return self._last_saved_revision

    def submit(self, snapshot: RecordStore, updated_by: str | None = None) -> None:
        """Queue ``snapshot`` for saving, replacing any pending one.

        ``updated_by`` is the user whose change produced the snapshot; it is
        stamped on the rows the save touches.
        """
        with self._state_lock:
            if self._pending is not None and self._pending.revision > snapshot.revision:
                logger.debug("stale_snapshot_ignored", extra={
                    "pending_revision": self._pending.revision,
                    "submitted_revision": snapshot.revision,
                })
                return
            self._pending = snapshot
            self._pending_by = updated_by
        self._wake.set()

    def flush(self) -> bool:
        """Save the pending snapshot now.

        Returns True when nothing was pending or the save succeeded.
        """
        with self._flush_lock:
            with self._state_lock:
                snapshot, updated_by = self._pending, self._pending_by
                self._pending = None
            if snapshot is None:
                return True

            attempts = self._max_retries + 1
            for attempt in range(1, attempts + 1):
                if self._repository.save(snapshot, updated_by=updated_by):
                    self._last_saved_revision = snapshot.revision
                    if self._sync_error:
                        logger.info("sync_recovered", extra={"revision": snapshot.revision})
                    self._sync_error = False
                    return True
                if attempt < attempts:
                    delay = self._backoff * attempt
                    logger.warning("sync_retry", extra={
                        "revision": snapshot.revision,
                        "attempt": attempt,
                        "delay_seconds": delay,
                    })
                    self._sleep(delay)

            self._sync_error = True
            logger.error("sync_failed", extra={
                "revision": snapshot.revision,
                "attempts": attempts,
            })
            # Keep the failed snapshot unless a newer one arrived meanwhile
            with self._state_lock:
                if self._pending is None:
                    self._pending, self._pending_by = snapshot, updated_by
            return False

    def start(self) -> None:
        """Start the writer in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="snapshot-writer",
            daemon=True,
        )
        self._thread.start()
        logger.info("sync_writer_started", extra={"debounce_seconds": self._debounce})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop, wait for the thread, then flush what is left.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        self._wake.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self.flush()
        logger.info("sync_writer_stopped", extra={"sync_error": self._sync_error})

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Wait for a submit, let the debounce window pass, then flush."""
        while not self._stop_event.is_set():
            self._wake.wait()
            if self._stop_event.is_set():
                break
            # Restart the window while submits keep arriving
            self._wake.clear()
            while not self._stop_event.wait(timeout=self._debounce):
                if not self._wake.is_set():
                    break
                self._wake.clear()
            if self._stop_event.is_set():
                break
            try:
                failed = not self.flush()
            except Exception:
                logger.exception("sync_flush_exception")
                failed = True
            if failed:
                # Retry later without spinning
                self._stop_event.wait(timeout=max(self._debounce, self._backoff))
                if self.has_pending:
                    self._wake.set()
