# reflect_app/persistence/repository.py

import logging
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional, Dict, Any, List

from .models import (
    UserGardenModel,
    PlantTypeModel,
    CompletedPlantModel,
    JournalEntryModel,
    TimeCapsuleModel,
    GrowthEventLog,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# --- GardenRepository ---
class GardenRepository:
    """
    Repository for the per-user garden document and the garden archive.

    Write methods only stage changes on the session; the caller decides
    when a group of them is committed so that archive + reassignment land
    in a single transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_garden(self, user_id: str) -> Optional[UserGardenModel]:
        """Retrieves the garden document for the specified user."""
        try:
            return self.db.get(UserGardenModel, user_id)
        except SQLAlchemyError as e:
            logger.error("Database error retrieving garden for user %s: %s", user_id, e)
            raise

    def get_or_create_garden(self, user_id: str) -> UserGardenModel:
        """Returns the user's garden document, staging a new one if absent."""
        garden = self.get_garden(user_id)
        if garden is None:
            garden = UserGardenModel(
                user_id=user_id,
                current_plant=None,
                seed_queue=[],
                total_check_ins=0,
                total_reflections=0,
                total_quick_thoughts=0,
            )
            self.db.add(garden)
            logger.info("Staged new garden document for user %s", user_id)
        return garden

    def save_current_plant(self, garden: UserGardenModel, plant: Optional[Dict[str, Any]]) -> None:
        # Always assign a fresh dict so the JSON column is flagged dirty.
        garden.current_plant = dict(plant) if plant is not None else None

    def save_seed_queue(self, garden: UserGardenModel, queue: List[str]) -> None:
        garden.seed_queue = list(queue)

    def increment_counters(self, garden: UserGardenModel, **deltas: int) -> None:
        for field, delta in deltas.items():
            setattr(garden, field, (getattr(garden, field) or 0) + delta)

    def add_completed_plant(self, user_id: str, record: Dict[str, Any]) -> CompletedPlantModel:
        """Stages an append-only garden archive row."""
        model = CompletedPlantModel(user_id=user_id, **record)
        self.db.add(model)
        return model

    def list_completed_plants(self, user_id: str) -> List[CompletedPlantModel]:
        """Retrieves a user's completed plants, most recent first."""
        try:
            return (
                self.db.query(CompletedPlantModel)
                .filter(CompletedPlantModel.user_id == user_id)
                .order_by(CompletedPlantModel.completed_at.desc(), CompletedPlantModel.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Database error retrieving garden archive for user %s: %s", user_id, e)
            raise

    def flush(self) -> None:
        """Sends staged garden changes to the database without committing."""
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error flushing garden changes: %s", e)
            raise

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error committing garden changes: %s", e)
            raise

    def rollback(self) -> None:
        self.db.rollback()


# --- PlantTypeRepository ---
class PlantTypeRepository:
    """Repository for the shared plant type catalog."""

    def __init__(self, db: Session):
        self.db = db

    def savepoint(self):
        """
        SAVEPOINT for a catalog read. A failed query rolls back only the
        savepoint, so the caller's garden transaction stays usable on
        backends that abort a transaction after an error.
        """
        return self.db.begin_nested()

    def get_plant_type(self, plant_id: str) -> Optional[PlantTypeModel]:
        try:
            return self.db.get(PlantTypeModel, plant_id)
        except SQLAlchemyError as e:
            logger.error("Database error retrieving plant type %s: %s", plant_id, e)
            raise

    def get_active_plant_ids(self) -> List[str]:
        """Ids of every active catalog entry, in a stable order."""
        try:
            rows = (
                self.db.query(PlantTypeModel.id)
                .filter(PlantTypeModel.is_active.is_(True))
                .order_by(PlantTypeModel.id.asc())
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            logger.error("Database error listing active plant types: %s", e)
            raise

    def list_plant_types(self, active_only: bool = False) -> List[PlantTypeModel]:
        try:
            query = self.db.query(PlantTypeModel)
            if active_only:
                query = query.filter(PlantTypeModel.is_active.is_(True))
            return query.order_by(PlantTypeModel.id.asc()).all()
        except SQLAlchemyError as e:
            logger.error("Database error listing plant types: %s", e)
            raise

    def count(self) -> int:
        return self.db.query(PlantTypeModel).count()

    def upsert_plant_type(self, data: Dict[str, Any]) -> PlantTypeModel:
        """Creates or replaces a catalog entry."""
        if not data.get("id"):
            raise ValueError("Plant type id is required.")
        model = self.db.get(PlantTypeModel, data["id"])
        try:
            if model is None:
                model = PlantTypeModel(**data)
                self.db.add(model)
            else:
                for key, value in data.items():
                    setattr(model, key, value)
            self.db.commit()
            self.db.refresh(model)
            logger.info("Upserted plant type %s", model.id)
            return model
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error upserting plant type %s: %s", data.get("id"), e)
            raise


# --- JournalEntryRepository ---
class JournalEntryRepository:
    """Repository for journal entry documents."""

    def __init__(self, db: Session):
        self.db = db

    def create_entry(
        self,
        entry_id: str,
        user_id: str,
        entry_type: str,
        document: Dict[str, Any],
        schema_version: int,
        created_at: datetime,
    ) -> JournalEntryModel:
        model = JournalEntryModel(
            id=entry_id,
            user_id=user_id,
            entry_type=entry_type,
            document=document,
            schema_version=schema_version,
            created_at=created_at,
        )
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
            logger.info("Created %s entry %s for user %s", entry_type, entry_id, user_id)
            return model
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error creating entry for user %s: %s", user_id, e)
            raise

    def bulk_create(self, models: List[JournalEntryModel]) -> int:
        try:
            self.db.add_all(models)
            self.db.commit()
            logger.info("Imported %d journal entries", len(models))
            return len(models)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error importing %d entries: %s", len(models), e)
            raise

    def existing_ids(self, entry_ids: List[str]) -> List[str]:
        """Which of *entry_ids* are already taken, by any user."""
        if not entry_ids:
            return []
        try:
            rows = self.db.query(JournalEntryModel.id).filter(JournalEntryModel.id.in_(entry_ids)).all()
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            logger.error("Database error checking entry ids: %s", e)
            raise

    def get_entry(self, entry_id: str) -> Optional[JournalEntryModel]:
        return self.db.get(JournalEntryModel, entry_id)

    def list_entries(self, user_id: str) -> List[JournalEntryModel]:
        try:
            return (
                self.db.query(JournalEntryModel)
                .filter(JournalEntryModel.user_id == user_id)
                .order_by(JournalEntryModel.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing entries for user %s: %s", user_id, e)
            raise

    def list_entries_between(self, user_id: str, start: datetime, end: datetime) -> List[JournalEntryModel]:
        try:
            return (
                self.db.query(JournalEntryModel)
                .filter(
                    JournalEntryModel.user_id == user_id,
                    JournalEntryModel.created_at >= start,
                    JournalEntryModel.created_at <= end,
                )
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing entries for user %s: %s", user_id, e)
            raise

    def delete_entry(self, model: JournalEntryModel) -> None:
        entry_id = model.id
        try:
            self.db.delete(model)
            self.db.commit()
            logger.info("Deleted entry %s", entry_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error deleting entry %s: %s", entry_id, e)
            raise


# --- TimeCapsuleRepository ---
class TimeCapsuleRepository:
    """Repository for time capsules."""

    def __init__(self, db: Session):
        self.db = db

    def create_capsule(self, data: Dict[str, Any]) -> TimeCapsuleModel:
        model = TimeCapsuleModel(**data)
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
            logger.info("Sealed time capsule %s for user %s", model.id, model.user_id)
            return model
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error creating time capsule for user %s: %s", data.get("user_id"), e)
            raise

    def get_capsule(self, capsule_id: str) -> Optional[TimeCapsuleModel]:
        return self.db.get(TimeCapsuleModel, capsule_id)

    def list_capsules(self, user_id: str) -> List[TimeCapsuleModel]:
        try:
            return (
                self.db.query(TimeCapsuleModel)
                .filter(TimeCapsuleModel.user_id == user_id)
                .order_by(TimeCapsuleModel.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing time capsules for user %s: %s", user_id, e)
            raise

    def list_opened_between(self, user_id: str, start: datetime, end: datetime) -> List[TimeCapsuleModel]:
        try:
            return (
                self.db.query(TimeCapsuleModel)
                .filter(
                    TimeCapsuleModel.user_id == user_id,
                    TimeCapsuleModel.status == "opened",
                    TimeCapsuleModel.open_date >= start,
                    TimeCapsuleModel.open_date <= end,
                )
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing opened capsules for user %s: %s", user_id, e)
            raise

    def update_capsule(self, model: TimeCapsuleModel, **fields) -> TimeCapsuleModel:
        for key, value in fields.items():
            setattr(model, key, value)
        try:
            self.db.commit()
            self.db.refresh(model)
            logger.info("Updated time capsule %s fields: %s", model.id, ", ".join(fields))
            return model
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error updating time capsule %s: %s", model.id, e)
            raise

    def delete_capsule(self, model: TimeCapsuleModel) -> None:
        capsule_id = model.id
        try:
            self.db.delete(model)
            self.db.commit()
            logger.info("Deleted time capsule %s", capsule_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error deleting time capsule %s: %s", capsule_id, e)
            raise


# --- GrowthEventLogRepository ---
class GrowthEventLogRepository:
    """Repository for GrowthEventLog rows; staged alongside garden writes."""

    def __init__(self, db: Session):
        self.db = db

    def add_log(self, log_data: Dict[str, Any]) -> Optional[GrowthEventLog]:
        if not log_data.get("user_id") or not log_data.get("event_type"):
            logger.error("User ID and Event Type are required for Growth Event Log.")
            return None
        log_entry = GrowthEventLog(**log_data)
        self.db.add(log_entry)
        return log_entry

    def get_logs_for_user(self, user_id: str) -> List[GrowthEventLog]:
        try:
            return (
                self.db.query(GrowthEventLog)
                .filter(GrowthEventLog.user_id == user_id)
                .order_by(GrowthEventLog.timestamp.asc(), GrowthEventLog.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Database error retrieving growth logs for user %s: %s", user_id, e)
            raise
