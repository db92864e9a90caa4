"""
Pytest configuration and fixtures for IBRL tests.

Every test gets its own SQLite file under tmp_path and in-memory
collaborators; nothing touches the network.
"""
import pytest
from fastapi.testclient import TestClient

from ibrl.agent.engine import ProposalEngine
from ibrl.core.config import Settings
from ibrl.db.init_db import init_db
from ibrl.db.session import Database
from ibrl.main import create_app
from ibrl_ai import IntentExtractor
from tests.helpers import StubChain, StubOracle, StubRouter


@pytest.fixture
def test_settings(tmp_path):
    settings = Settings()
    settings.DATABASE_URL = f"sqlite:///{tmp_path / 'ibrl.db'}"
    settings.GROQ_API_KEY = ""
    settings.AUTONOMY_ENABLED = False
    settings.TICK_MAX_WORKERS = 4
    settings.OWNER_EVAL_TIMEOUT_SECONDS = 10
    settings.PROPOSAL_STALE_SECONDS = 120
    settings.RATE_LIMIT_REQUESTS = 1000
    return settings


@pytest.fixture
def database(test_settings):
    database = Database(test_settings.DATABASE_URL)
    init_db(database)
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    with database.session() as session:
        yield session


@pytest.fixture
def oracle():
    return StubOracle(price=150.0)


@pytest.fixture
def chain():
    return StubChain(sol=2, usdc=100)


@pytest.fixture
def router():
    return StubRouter(price=150.0)


@pytest.fixture
def engine(database, oracle, chain, router, test_settings):
    return ProposalEngine(database, oracle, chain, router, test_settings)


@pytest.fixture
def client(test_settings, database, oracle, chain, router):
    app = create_app(
        test_settings,
        database=database,
        oracle=oracle,
        chain=chain,
        router=router,
        extractor=IntentExtractor(),
    )
    with TestClient(app) as test_client:
        yield test_client
