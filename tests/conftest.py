"""
Pytest fixtures for the ledger test suite.

Provides:
- Structured logging configuration and a JSON log capture fixture
- A deterministic clock
- Snapshot builders for the standard scenarios
- In-memory SQLite session factories for persistence tests
"""

import json
import logging
from datetime import date
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from ledger_kernel.db.engine import build_engine, create_tables
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.builders import StoreBuilder, scenario_a

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "snapshot_saved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and snapshots
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2025-02-01."""
    return DeterministicClock.on(date(2025, 2, 1))


@pytest.fixture
def builder() -> StoreBuilder:
    return StoreBuilder()


@pytest.fixture
def scenario_a_builder() -> StoreBuilder:
    return scenario_a()


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def sqlite_engine():
    engine = build_engine("sqlite:///:memory:")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return sessionmaker(bind=sqlite_engine, expire_on_commit=False)
