# reflect_app/persistence/models.py

import logging
from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base

from reflect_app.core.utils import utcnow

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()


# --- Per-user garden document (current plant + seed queue + counters) ---
class UserGardenModel(Base):
    __tablename__ = "user_gardens"

    user_id = Column(String, primary_key=True, index=True)
    # {"plant_id", "current_points", "max_points", "started_at", "degraded"}
    current_plant = Column(JSON, nullable=True)
    seed_queue = Column(JSON, nullable=False, default=lambda: [])

    total_check_ins = Column(Integer, nullable=False, default=0)
    total_reflections = Column(Integer, nullable=False, default=0)
    total_quick_thoughts = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Optimistic concurrency: every UPDATE checks and bumps this counter.
    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<UserGardenModel(user_id={self.user_id}, version={self.version})>"


# --- Shared plant type catalog (read-only to the growth engine) ---
class PlantTypeModel(Base):
    __tablename__ = "plant_types"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    points_to_bloom = Column(Integer, nullable=False)
    difficulty = Column(String, nullable=True)
    rarity = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    # Overrides the image folder (defaults to the plant id)
    storage_folder = Column(String, nullable=True)

    def __repr__(self):
        return f"<PlantTypeModel(id={self.id}, active={self.is_active})>"


# --- Garden archive: one immutable row per bloom ---
class CompletedPlantModel(Base):
    __tablename__ = "completed_plants"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    plant_id = Column(String, nullable=False)
    plant_type = Column(String, nullable=False)  # display name snapshot
    final_points = Column(Integer, nullable=False)
    max_points = Column(Integer, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f"<CompletedPlantModel(id={self.id}, user_id={self.user_id}, plant_id={self.plant_id})>"


# --- Journal entries, stored as versioned documents ---
class JournalEntryModel(Base):
    __tablename__ = "journal_entries"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    entry_type = Column(String, nullable=False)
    schema_version = Column(Integer, nullable=False, default=2)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f"<JournalEntryModel(id={self.id}, user_id={self.user_id}, type={self.entry_type})>"


# --- Time capsules: messages to the future self ---
class TimeCapsuleModel(Base):
    __tablename__ = "time_capsules"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    text = Column(Text, nullable=False)
    moods = Column(JSON, nullable=False, default=lambda: [])
    categories = Column(JSON, nullable=False, default=lambda: [])
    include_reply = Column(Boolean, nullable=False, default=False)
    reply_text = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="sealed")  # sealed | opened
    created_at = Column(DateTime, default=utcnow, index=True)
    open_date = Column(DateTime, nullable=False, index=True)
    opened_at = Column(DateTime, nullable=True)
    replied_at = Column(DateTime, nullable=True)
    opened_prematurely = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<TimeCapsuleModel(id={self.id}, user_id={self.user_id}, status={self.status})>"


# --- Growth event log ---
class GrowthEventLog(Base):
    """SQLAlchemy model for logging plant growth events."""

    __tablename__ = "growth_event_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    event_type = Column(
        String, nullable=False
    )  # e.g., plant_assigned, points_added, bloomed, catalog_degraded
    plant_id = Column(String, index=True, nullable=True)
    points_delta = Column(Integer, nullable=True)
    points_after = Column(Integer, nullable=True)
    timestamp = Column(DateTime, default=utcnow, index=True)

    # e.g. {"final_points": 11, "reason": "catalog entry missing"}
    event_metadata = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<GrowthEventLog(id={self.id}, user_id={self.user_id}, event='{self.event_type}')>"
