"""Pytest configuration and fixtures for the reflect garden tests."""

import random
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reflect_app.persistence import seed_catalog
from reflect_app.persistence.models import Base

SAMPLE_CATALOG = [
    {"id": "plant_a", "name": "Plant A", "description": "First", "points_to_bloom": 10, "is_active": True},
    {"id": "plant_b", "name": "Plant B", "description": "Second", "points_to_bloom": 20, "is_active": True},
    {"id": "plant_c", "name": "Plant C", "description": "Third", "points_to_bloom": 5, "is_active": True},
    {"id": "plant_x", "name": "Retired", "description": "Inactive", "points_to_bloom": 8, "is_active": False},
]

ACTIVE_IDS = {"plant_a", "plant_b", "plant_c"}

NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def db_engine():
    """In-memory SQLite shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_rng():
    """Provide a deterministic RNG for tests."""
    return random.Random(42)


@pytest.fixture
def catalog(db):
    seed_catalog(db, [dict(entry) for entry in SAMPLE_CATALOG])
    return ACTIVE_IDS


@pytest.fixture
def growth_engine(db, catalog, seeded_rng):
    from reflect_app.modules.plant_growth import PlantGrowthEngine

    return PlantGrowthEngine(db, rng=seeded_rng, default_points_to_bloom=10)


@pytest.fixture
def client(session_factory, catalog):
    """FastAPI TestClient whose requests use the in-memory database."""
    from fastapi.testclient import TestClient

    from reflect_app.main import app
    from reflect_app.persistence.database import get_db

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
