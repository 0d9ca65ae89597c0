"""
Shared fixtures: every test gets its own SQLite file database.
"""

import pytest

from policy_store.config import Settings
from policy_store.db import create_db_engine, create_session_factory, init_db
from policy_store.pdp.engine import DecisionEngine
from policy_store.rules.registry import RuleRegistry
from policy_store.rules.versions import VersionStore


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway database."""
    return Settings(
        db_url=f"sqlite:///{tmp_path / 'policy_store.db'}",
        lock_timeout=30,
    )


@pytest.fixture
def db_engine(settings):
    engine = create_db_engine(settings.db_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def registry(session_factory):
    return RuleRegistry(session_factory)


@pytest.fixture
def store(session_factory, settings):
    return VersionStore(session_factory, lock_timeout=settings.lock_timeout)


@pytest.fixture
def engine(registry, store, settings):
    """Decision engine consulting the 'finance' ruleset."""
    return DecisionEngine(registry, store, rulesets=["finance"], settings=settings)


@pytest.fixture
def approval_policy():
    """Single-clause policy allowing manager approvals up to 2000."""
    return {
        "version": "1.0",
        "clauses": [
            {
                "id": "manager_limit",
                "action": "approve",
                "role": "manager",
                "amount_max": 2000,
                "effect": "allow",
                "reason": "Managers approve up to 2000",
            },
        ],
    }
