import json
import logging

from .database import engine, SessionLocal, get_db
from .models import (
    Base,
    UserGardenModel,
    PlantTypeModel,
    CompletedPlantModel,
    JournalEntryModel,
    TimeCapsuleModel,
    GrowthEventLog,
)
from .repository import (
    GardenRepository,
    PlantTypeRepository,
    JournalEntryRepository,
    TimeCapsuleRepository,
    GrowthEventLogRepository,
)

logger = logging.getLogger(__name__)


def load_sample_catalog(path=None) -> list:
    """Reads the bundled plant type catalog."""
    from reflect_app.config.constants import PLANT_TYPES_FILE

    with open(path or PLANT_TYPES_FILE, "r", encoding="utf-8") as f:
        return json.load(f)


def seed_catalog(db, entries=None) -> int:
    """Loads catalog entries into an empty plant_types table. Returns rows added."""
    repo = PlantTypeRepository(db)
    if repo.count() > 0:
        logger.info("Plant type catalog already populated; skipping seed.")
        return 0
    entries = entries if entries is not None else load_sample_catalog()
    for entry in entries:
        repo.upsert_plant_type(entry)
    logger.info("Seeded plant type catalog with %d entries.", len(entries))
    return len(entries)


def init_db(bind=None, seed: bool = True):
    """
    Initializes the database by creating all tables, then seeds the plant
    catalog if it is empty. Call at application startup.
    """
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    if seed:
        db = SessionLocal(bind=bind)
        try:
            seed_catalog(db)
        finally:
            db.close()


__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "Base",
    "UserGardenModel",
    "PlantTypeModel",
    "CompletedPlantModel",
    "JournalEntryModel",
    "TimeCapsuleModel",
    "GrowthEventLog",
    "GardenRepository",
    "PlantTypeRepository",
    "JournalEntryRepository",
    "TimeCapsuleRepository",
    "GrowthEventLogRepository",
    "load_sample_catalog",
    "seed_catalog",
    "init_db",
]
