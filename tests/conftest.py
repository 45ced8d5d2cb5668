"""
Pytest configuration and fixtures for the elimination pool engine
"""
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import models  # noqa: E402,F401
from database import Base, get_db  # noqa: E402
from core.pool_manager import PoolManager  # noqa: E402
from core.registry_manager import CatalogueManager, PlayerRegistry  # noqa: E402
from core.round_manager import RoundManager  # noqa: E402

OPERATOR = "quiz-night@example.com"
EPL_TEAMS = ("Arsenal", "Brentford", "Chelsea")


@pytest.fixture()
def engine():
    """Fresh in-memory SQLite database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def catalogue(db):
    """Catalogue {Arsenal, Brentford, Chelsea}; returns (catalogue, {name: team})"""
    cat = CatalogueManager.create_catalogue(db, OPERATOR, "Premier League")
    teams = {name: CatalogueManager.create_team(db, cat.id, name) for name in EPL_TEAMS}
    return cat, teams


@pytest.fixture()
def players(db):
    names = ["Ann", "Bob", "Cat", "Dan"]
    for name in names:
        PlayerRegistry.create_player(db, OPERATOR, name)
    return names


@pytest.fixture()
def make_pool(db, catalogue, players):
    """Factory: make_pool(["Ann", "Bob"], winner_mode="single", ...)"""
    cat, _ = catalogue

    def _make(roster=("Ann", "Bob"), **config):
        return PoolManager.create_pool(db, OPERATOR, "Friday LMS", cat.id, list(roster), **config)

    return _make


@pytest.fixture()
def play_round(db):
    """
    Factory: play one round of a pool end to end.

        play_round(pool_id, picks={"Ann": team_id}, results={"Ann": "win"})

    Missing picks are auto-assigned by finalize; results are keyed by
    player name. Returns the CloseOutcome.
    """
    def _play(pool_id, picks=None, results=None, **close_kwargs):
        round_id = PoolManager.get_pool(db, pool_id).current_round_id
        if picks:
            RoundManager.upsert_picks(db, round_id, list(picks.items()))
        RoundManager.finalize_picks(db, round_id)
        by_player = {p.player_name: p.id for p in RoundManager.get_picks(db, round_id)}
        if results:
            RoundManager.record_results(
                db, round_id, [(by_player[name], result) for name, result in results.items()]
            )
        return RoundManager.close_round(db, round_id, **close_kwargs)

    return _play


@pytest.fixture()
def client(session_factory):
    """FastAPI TestClient bound to the in-memory database"""
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    test_client.headers.update({"X-Operator-Id": OPERATOR})
    yield test_client
    app.dependency_overrides.clear()
