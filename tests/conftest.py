"""
Pytest fixtures for the fund kernel test suite.

Provides:
- A database session per test, rolled back at teardown
- An organization with a full Developer > Engineer > Supervisor > Worker chain
- Row factories for allocations and ledger entries
- Services wired to a deterministic clock

Environment Variables:
- DATABASE_URL: database URL.  Defaults to in-memory SQLite.  Point it at a
  PostgreSQL database to run the whole suite there, including the tests
  marked ``postgres``.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session

from fund_kernel.db.base import Base
from fund_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from fund_kernel.domain.authority import Role
from fund_kernel.domain.clock import DeterministicClock
from fund_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from fund_kernel.models import FundAllocation, Organization, Site, User, WorkerLedgerEntry
from fund_kernel.selectors.balance_selector import BalanceSelector
from fund_kernel.selectors.hierarchy_selector import HierarchySelector
from fund_kernel.services.allocation_service import AllocationService
from fund_kernel.services.contract_service import ContractService
from fund_kernel.services.ledger_service import LedgerService
from fund_kernel.services.settlement_service import SettlementService
from fund_kernel.services.spend_service import SpendService

DEFAULT_DATABASE_URL = "sqlite://"

# Date the deterministic clock reports
TODAY = date(2024, 1, 1)


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def is_postgres_url(url: str) -> bool:
    return url.startswith("postgresql")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


def pytest_collection_modifyitems(config, items):
    if is_postgres_url(get_database_url()):
        return
    skip_pg = pytest.mark.skip(reason="requires DATABASE_URL pointing at PostgreSQL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_pg)


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
    Capture fund_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, settlement_service):
            settlement_service.pay_salary(...)
            logs = captured_logs()
            assert any(r["message"] == "worker_salary_settled" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fund_kernel")
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
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(
        get_database_url(), echo=False,
        pool_size=30, max_overflow=20, pool_timeout=10,
    )
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


def _truncate_all_tables(engine):
    """Delete every row; used by tests that perform real commits."""
    with engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(text(f"DELETE FROM {table.name}"))
        conn.commit()


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Opens a dedicated connection with an outer transaction and a session
    that joins it through a savepoint.  At teardown the outer transaction
    is rolled back, undoing every write the test made.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture(scope="function")
def pg_session_factory(db_engine, db_tables):
    """Sessions that really commit, for concurrency tests; rows deleted at teardown."""
    sessions: list[Session] = []

    def _factory() -> Session:
        sess = Session(bind=db_engine, expire_on_commit=False)
        sessions.append(sess)
        return sess

    yield _factory

    for sess in sessions:
        sess.close()
    _truncate_all_tables(db_engine)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Organization, hierarchy and sites
# =============================================================================


@pytest.fixture
def org(session) -> Organization:
    organization = Organization(name="Shree Constructions")
    session.add(organization)
    session.flush()
    return organization


@pytest.fixture
def make_user(session, org):
    """Factory: make_user(role, parent=None, name=None, organization=None) -> User."""

    def _make(role: Role, parent: User | None = None, name: str | None = None,
              organization: Organization | None = None) -> User:
        organization = organization or org
        label = name or f"{role.name.lower()}-{uuid4().hex[:6]}"
        user = User(
            organization_id=organization.id,
            name=label,
            email=f"{label}-{uuid4().hex[:8]}@example.test",
            role=int(role),
            parent_id=parent.id if parent else None,
            daily_rate=Decimal("500.00") if role == Role.WORKER else None,
        )
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture
def developer(make_user) -> User:
    return make_user(Role.DEVELOPER, name="dev")


@pytest.fixture
def engineer(make_user, developer) -> User:
    return make_user(Role.ENGINEER, parent=developer, name="engineer")


@pytest.fixture
def supervisor(make_user, engineer) -> User:
    return make_user(Role.SUPERVISOR, parent=engineer, name="supervisor")


@pytest.fixture
def worker(make_user, supervisor) -> User:
    return make_user(Role.WORKER, parent=supervisor, name="worker")


@pytest.fixture
def second_worker(make_user, supervisor) -> User:
    return make_user(Role.WORKER, parent=supervisor, name="worker-2")


@pytest.fixture
def third_worker(make_user, supervisor) -> User:
    return make_user(Role.WORKER, parent=supervisor, name="worker-3")


@pytest.fixture
def outside_supervisor(make_user, engineer) -> User:
    """A supervisor beside ``supervisor``; neither has authority over the other's team."""
    return make_user(Role.SUPERVISOR, parent=engineer, name="other-supervisor")


@pytest.fixture
def outside_worker(make_user, outside_supervisor) -> User:
    return make_user(Role.WORKER, parent=outside_supervisor, name="other-worker")


@pytest.fixture
def site(session, org) -> Site:
    s = Site(organization_id=org.id, name="Tower A", location="Pune")
    session.add(s)
    session.flush()
    return s


@pytest.fixture
def actor_for(session):
    """Factory: actor_for(user) -> Actor with the user's subordinate set."""
    selector = HierarchySelector(session)

    def _actor(user: User):
        return selector.actor(user.id)

    return _actor


# =============================================================================
# Row factories (bypass services to set up state directly)
# =============================================================================


@pytest.fixture
def make_allocation(session, org):
    """Factory: make_allocation(from_user, to_user, amount, status="disbursed", ...)."""

    def _make(from_user: User, to_user: User, amount, status: str = "disbursed",
              source: FundAllocation | None = None, site: Site | None = None) -> FundAllocation:
        allocation = FundAllocation(
            organization_id=org.id,
            from_user_id=from_user.id,
            to_user_id=to_user.id,
            site_id=site.id if site else None,
            source_allocation_id=source.id if source else None,
            amount=Decimal(str(amount)),
            purpose="labor_expense",
            status=status,
            allocation_date=TODAY,
            created_by_id=from_user.id,
        )
        session.add(allocation)
        session.flush()
        return allocation

    return _make


@pytest.fixture
def make_entry(session, org):
    """Factory: make_entry(worker, entry_type, category, amount, creator, ...)."""

    def _make(worker: User, entry_type: str, category: str, amount, creator: User,
              status: str | None = None, allocation: FundAllocation | None = None,
              linked_advance: WorkerLedgerEntry | None = None, site: Site | None = None,
              transaction_date: date = TODAY) -> WorkerLedgerEntry:
        if status is None:
            status = "pending" if category == "pending_salary" else "paid"
        entry = WorkerLedgerEntry(
            organization_id=org.id,
            worker_id=worker.id,
            site_id=site.id if site else None,
            fund_allocation_id=allocation.id if allocation else None,
            linked_advance_id=linked_advance.id if linked_advance else None,
            entry_type=entry_type,
            category=category,
            status=status,
            amount=Decimal(str(amount)),
            transaction_date=transaction_date,
            created_by_id=creator.id,
        )
        session.add(entry)
        session.flush()
        return entry

    return _make


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def balances(session) -> BalanceSelector:
    return BalanceSelector(session)


@pytest.fixture
def allocation_service(session, deterministic_clock) -> AllocationService:
    return AllocationService(session, deterministic_clock)


@pytest.fixture
def ledger_service(session, deterministic_clock) -> LedgerService:
    return LedgerService(session, deterministic_clock)


@pytest.fixture
def settlement_service(session, deterministic_clock) -> SettlementService:
    return SettlementService(session, deterministic_clock)


@pytest.fixture
def spend_service(session, deterministic_clock) -> SpendService:
    return SpendService(session, deterministic_clock)


@pytest.fixture
def contract_service(session, deterministic_clock) -> ContractService:
    return ContractService(session, deterministic_clock)
