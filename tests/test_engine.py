"""Unit-of-work boundary: session_scope commits on success, rolls back on error."""

import pytest

from fund_kernel.db.engine import get_engine, session_scope
from fund_kernel.models import Organization


@pytest.fixture
def committed_org_ids(db_tables):
    ids = []
    yield ids
    with session_scope() as session:
        for org_id in ids:
            org = session.get(Organization, org_id)
            if org is not None:
                session.delete(org)


class TestSessionScope:

    def test_commits_on_success(self, committed_org_ids):
        with session_scope() as session:
            org = Organization(name="Committed Builders")
            session.add(org)
            session.flush()
            committed_org_ids.append(org.id)

        with session_scope() as session:
            assert session.get(Organization, committed_org_ids[0]) is not None

    def test_rolls_back_and_reraises(self, committed_org_ids, captured_logs):
        with pytest.raises(ValueError):
            with session_scope() as session:
                org = Organization(name="Abandoned Builders")
                session.add(org)
                session.flush()
                committed_org_ids.append(org.id)
                raise ValueError("caller failed")

        with session_scope() as session:
            assert session.get(Organization, committed_org_ids[0]) is None
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())

    def test_engine_is_initialized(self, db_engine):
        assert get_engine() is db_engine
