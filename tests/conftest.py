"""
Pytest fixtures for the account transfer test suite.

Provides:
- Two in-memory SQLite databases standing in for the main store (source,
  cross-reference and target tables) and the lookup store (customer info)
- Seeding and read-back helpers for those tables
- A deterministic clock and a ready-made orchestrator factory
- Structured log capture
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from transfer_config.schema import TransferConfig
from transfer_kernel.db.engine import LOOKUP, MAIN, register_engine, reset_engines
from transfer_kernel.domain.clock import DeterministicClock
from transfer_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from transfer_pipeline.services.orchestrator import TransferOrchestrator

FIXED_NOW = datetime(2024, 6, 1, 9, 30, 0, tzinfo=timezone.utc)

MAIN_DDL = (
    """
    CREATE TABLE BANCS_MIN_CLNA (
        clna_cust_id_no TEXT,
        clna_bsb_no TEXT,
        clna_acct_no TEXT,
        clna_nom_acct_type TEXT,
        clna_last_maint_date TEXT,
        transfer_note TEXT,
        issync TEXT
    )
    """,
    "CREATE TABLE XREF (extn_ref_no TEXT, intn_ref_no TEXT)",
    """
    CREATE TABLE TRANSFERACCOUNT (
        userid TEXT, brchid TEXT, accountno TEXT, updatedate TEXT,
        memo TEXT, email TEXT, receivermemo TEXT, synchancode TEXT
    )
    """,
    """
    CREATE TABLE CUSTSETTRANSACCT (
        userid TEXT, useridtype TEXT, brchid TEXT, accountno TEXT,
        updatedate TEXT, memo TEXT, email TEXT, receivermemo TEXT
    )
    """,
)

LOOKUP_DDL = ("CREATE TABLE BANCS_SK_CUST_INFO (sk_cust_id TEXT, ts_cust_id TEXT, cust_id_type TEXT)",)


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
    Capture transfer logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, run_transfer):
            run_transfer()
            logs = captured_logs()
            assert any(r["message"] == "transfer_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("transfer")
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
# Databases
# =============================================================================


def _create_schema(engine, ddl):
    with engine.begin() as conn:
        for stmt in ddl:
            conn.execute(text(stmt))
    return engine


def _memory_engine(ddl):
    # StaticPool: every session sees the same in-memory database
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    return _create_schema(engine, ddl)


@pytest.fixture
def main_engine():
    engine = _memory_engine(MAIN_DDL)
    yield engine
    engine.dispose()


@pytest.fixture
def lookup_engine():
    engine = _memory_engine(LOOKUP_DDL)
    yield engine
    engine.dispose()


@pytest.fixture
def main_session(main_engine):
    session = sessionmaker(bind=main_engine, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def lookup_session(lookup_engine):
    session = sessionmaker(bind=lookup_engine, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def registered_engines(main_engine, lookup_engine):
    """Register both engines with the kernel registry for the test."""
    register_engine(main_engine, MAIN)
    register_engine(lookup_engine, LOOKUP)
    yield
    reset_engines()


# =============================================================================
# Seeding helpers
# =============================================================================


class Stores:
    """Seeds and reads back the two fixture databases."""

    def __init__(self, main_engine, lookup_engine):
        self.main = main_engine
        self.lookup = lookup_engine

    @staticmethod
    def _insert(engine, sql, params):
        # An empty list would run the statement once with no binds
        if not params:
            return
        with engine.begin() as conn:
            conn.execute(text(sql), params)

    def add_source_rows(self, rows):
        """rows: (customer_key, routing_code, account_no, discriminator, maint_date, note) tuples."""
        self._insert(
            self.main,
            "INSERT INTO BANCS_MIN_CLNA (clna_cust_id_no, clna_bsb_no, clna_acct_no, "
            "clna_nom_acct_type, clna_last_maint_date, transfer_note, issync) "
            "VALUES (:c, :b, :a, :d, :m, :n, NULL)",
            [dict(zip("cbadmn", row)) for row in rows],
        )

    def add_xref(self, mapping):
        self._insert(
            self.main,
            "INSERT INTO XREF (extn_ref_no, intn_ref_no) VALUES (:e, :i)",
            [{"e": e, "i": i} for e, i in mapping.items()],
        )

    def add_customers(self, customers):
        """customers: {sk_cust_id: (ts_cust_id, cust_id_type)}."""
        self._insert(
            self.lookup,
            "INSERT INTO BANCS_SK_CUST_INFO (sk_cust_id, ts_cust_id, cust_id_type) VALUES (:k, :t, :y)",
            [{"k": k, "t": t, "y": y} for k, (t, y) in customers.items()],
        )

    def fetch(self, sql, engine=None):
        with (engine or self.main).connect() as conn:
            return [tuple(r) for r in conn.execute(text(sql)).all()]

    def zero_rows(self):
        return self.fetch(
            "SELECT userid, brchid, accountno, updatedate, memo, email, receivermemo, synchancode "
            "FROM TRANSFERACCOUNT ORDER BY userid, accountno"
        )

    def one_rows(self):
        return self.fetch(
            "SELECT userid, useridtype, brchid, accountno, updatedate, memo, email, receivermemo "
            "FROM CUSTSETTRANSACCT ORDER BY userid, accountno"
        )

    def clear(self):
        with self.main.begin() as conn:
            for table in ("BANCS_MIN_CLNA", "XREF", "TRANSFERACCOUNT", "CUSTSETTRANSACCT"):
                conn.execute(text(f"DELETE FROM {table}"))
        with self.lookup.begin() as conn:
            conn.execute(text("DELETE FROM BANCS_SK_CUST_INFO"))

    def synced_accounts(self):
        return [
            r[0]
            for r in self.fetch("SELECT clna_acct_no FROM BANCS_MIN_CLNA WHERE issync = 'Y' ORDER BY clna_acct_no")
        ]


@pytest.fixture
def stores(main_engine, lookup_engine):
    return Stores(main_engine, lookup_engine)


@pytest.fixture
def file_stores(tmp_path):
    """File-backed stores for code that opens its own engines from URLs.

    Yields ``(main_url, lookup_url, stores)``.
    """
    main_url = f"sqlite:///{tmp_path / 'main.db'}"
    lookup_url = f"sqlite:///{tmp_path / 'lookup.db'}"
    main = _create_schema(create_engine(main_url), MAIN_DDL)
    lookup = _create_schema(create_engine(lookup_url), LOOKUP_DDL)
    yield main_url, lookup_url, Stores(main, lookup)
    reset_engines()
    main.dispose()
    lookup.dispose()


# =============================================================================
# Pipeline fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def transfer_config():
    """Default production layout with test-sized pages and batches."""
    return TransferConfig(name="test-transfer", page_size=1000, batch_size=500)


@pytest.fixture
def make_orchestrator(main_session, lookup_session, deterministic_clock, transfer_config):
    """Factory: build an orchestrator over the fixture sessions."""

    def _make(config=None, **kwargs):
        return TransferOrchestrator(
            config or transfer_config,
            main_session,
            lookup_session,
            clock=kwargs.pop("clock", deterministic_clock),
            **kwargs,
        )

    return _make


@pytest.fixture
def run_transfer(make_orchestrator):
    """Run one transfer and return its TransferRunResult."""

    def _run(config=None, **kwargs):
        return make_orchestrator(config, **kwargs).run()

    return _run
