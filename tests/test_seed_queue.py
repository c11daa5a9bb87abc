import pytest
from sqlalchemy.exc import OperationalError

from reflect_app.core.errors import CatalogReadDegraded, NoActivePlantTypes
from reflect_app.modules.plant_growth import PlantGrowthEngine
from reflect_app.modules.seed_queue import SeedQueueManager
from reflect_app.persistence.models import GrowthEventLog, UserGardenModel


def test_refill_contains_every_active_plant_once(db, catalog, seeded_rng):
    manager = SeedQueueManager(db, rng=seeded_rng)
    queue = manager.refill("user-1")
    assert sorted(queue) == sorted(catalog)
    assert "plant_x" not in queue


def test_first_draw_refills_and_leaves_the_rest(db, catalog, seeded_rng):
    manager = SeedQueueManager(db, rng=seeded_rng)
    drawn = manager.next_plant("user-1")

    remaining = manager.peek_queue("user-1")
    assert drawn in catalog
    assert len(remaining) == 2
    assert set(remaining) | {drawn} == catalog


def test_queue_deals_every_plant_before_repeating(db, catalog, seeded_rng):
    manager = SeedQueueManager(db, rng=seeded_rng)
    first_round = [manager.next_plant("user-1") for _ in range(3)]
    assert sorted(first_round) == sorted(catalog)
    assert manager.peek_queue("user-1") == []

    manager.next_plant("user-1")
    assert len(manager.peek_queue("user-1")) == 2


def test_empty_catalog_raises_and_persists_nothing(db):
    manager = SeedQueueManager(db)
    with pytest.raises(NoActivePlantTypes):
        manager.next_plant("user-1")
    assert db.get(UserGardenModel, "user-1") is None


def test_initialize_with_empty_catalog_persists_nothing(db):
    engine = PlantGrowthEngine(db)
    with pytest.raises(NoActivePlantTypes):
        engine.initialize("user-1")
    assert db.get(UserGardenModel, "user-1") is None
    assert db.query(GrowthEventLog).count() == 0


def test_failed_catalog_query_raises_and_persists_nothing(db, catalog, monkeypatch):
    manager = SeedQueueManager(db)

    def lost_connection():
        raise OperationalError("SELECT plant_types.id", {}, Exception("connection lost"))

    monkeypatch.setattr(manager.catalog, "get_active_plant_ids", lost_connection)
    with pytest.raises(CatalogReadDegraded):
        manager.next_plant("user-1")
    assert db.get(UserGardenModel, "user-1") is None
