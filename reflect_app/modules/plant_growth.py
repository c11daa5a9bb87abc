# reflect_app/modules/plant_growth.py

"""
PlantGrowthEngine: point accumulation, bloom detection, garden archival
and provisioning of the next plant.

Per-user state machine over ``UserGardenModel.current_plant``::

    (no plant) --initialize--> Growing
    Growing --add_points (total < max)--> Growing
    Growing --add_points (total >= max)--> Blooming --archive + draw--> Growing (new plant)

``Blooming`` is never persisted: the archive row, the replacement plant
and the shortened seed queue are committed in one transaction, or the
whole operation is rolled back and reported as ``PersistenceFailure``.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reflect_app.config.constants import DEFAULT_PLANT_ID, DEFAULT_PLANT_NAME, SEED_STAGE
from reflect_app.config.settings import settings
from reflect_app.core.errors import (
    CatalogReadDegraded,
    InvalidDelta,
    NoActivePlantTypes,
    PersistenceFailure,
)
from reflect_app.core.subscriptions import SnapshotHub
from reflect_app.core.utils import utcnow
from reflect_app.modules.growth_stages import describe_progress, get_plant_stage
from reflect_app.modules.seed_queue import SeedQueueManager
from reflect_app.persistence.models import PlantTypeModel, UserGardenModel
from reflect_app.persistence.repository import (
    GardenRepository,
    GrowthEventLogRepository,
    PlantTypeRepository,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        logger.warning("Unparseable plant start timestamp %r; archiving without it.", value)
        return None


def completed_plant_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "plant_id": model.plant_id,
        "plant_type": model.plant_type,
        "final_points": model.final_points,
        "max_points": model.max_points,
        "started_at": model.started_at.isoformat() if model.started_at else None,
        "completed_at": model.completed_at.isoformat() if model.completed_at else None,
    }


class PlantGrowthEngine:
    """Orchestrates the current plant of each user. All calls take an explicit ``user_id``."""

    def __init__(
        self,
        db: Session,
        rng: Optional[random.Random] = None,
        hub: Optional[SnapshotHub] = None,
        default_points_to_bloom: Optional[int] = None,
    ):
        self.gardens = GardenRepository(db)
        self.catalog = PlantTypeRepository(db)
        self.events = GrowthEventLogRepository(db)
        self.seed_queue = SeedQueueManager(db, rng=rng)
        self.hub = hub
        self.default_points_to_bloom = default_points_to_bloom or settings.default_points_to_bloom

    # ───────────────────────────── catalog access ─────────────────────────────

    def _lookup_plant_type(self, plant_id: str) -> PlantTypeModel:
        """Catalog entry for *plant_id*, or ``CatalogReadDegraded`` if it cannot be used."""
        self.gardens.flush()
        try:
            with self.catalog.savepoint():
                entry = self.catalog.get_plant_type(plant_id)
        except SQLAlchemyError as e:
            raise CatalogReadDegraded(plant_id, f"lookup failed: {e}") from e
        if entry is None:
            raise CatalogReadDegraded(plant_id, "entry not found")
        threshold = entry.points_to_bloom
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold <= 0:
            raise CatalogReadDegraded(plant_id, f"invalid pointsToBloom {threshold!r}")
        return entry

    def _plant_display_name(self, plant_id: str) -> str:
        try:
            return self._lookup_plant_type(plant_id).name
        except CatalogReadDegraded as e:
            logger.warning("%s; archiving as '%s'.", e, DEFAULT_PLANT_NAME)
            return DEFAULT_PLANT_NAME

    # ─────────────────────────── state construction ───────────────────────────

    def _new_plant_state(self, garden: UserGardenModel) -> Dict[str, Any]:
        """Draw the next plant and build a fresh zero-point state (staged, not committed)."""
        user_id = garden.user_id
        try:
            plant_id = self.seed_queue.draw(garden)
        except CatalogReadDegraded as e:
            logger.warning("Seed queue degraded for user %s (%s); using '%s'.", user_id, e, DEFAULT_PLANT_ID)
            plant_id = DEFAULT_PLANT_ID

        degraded = False
        try:
            max_points = self._lookup_plant_type(plant_id).points_to_bloom
        except CatalogReadDegraded as e:
            degraded = True
            max_points = self.default_points_to_bloom
            logger.warning(
                "%s; user %s gets default threshold %d for this plant.", e, user_id, max_points
            )
            self.events.add_log(
                {
                    "user_id": user_id,
                    "event_type": "catalog_degraded",
                    "plant_id": plant_id,
                    "event_metadata": {"reason": e.reason, "default_max_points": max_points},
                }
            )

        plant = {
            "plant_id": plant_id,
            "current_points": 0,
            "max_points": max_points,
            "started_at": utcnow().isoformat(),
            "degraded": degraded,
        }
        self.events.add_log(
            {
                "user_id": user_id,
                "event_type": "plant_assigned",
                "plant_id": plant_id,
                "points_after": 0,
                "event_metadata": {"max_points": max_points},
            }
        )
        return plant

    def _commit(self, user_id: str, action: str) -> None:
        try:
            self.gardens.commit()
        except SQLAlchemyError as e:
            self.gardens.rollback()
            logger.error("Rolled back garden of user %s while %s: %s", user_id, action, e)
            raise PersistenceFailure.from_exception(e, user_id, action) from e

    def _publish(self, user_id: str) -> None:
        if self.hub is not None and self.hub.listener_count(user_id):
            self.hub.publish(user_id, self.snapshot(user_id))

    # ──────────────────────────────── operations ──────────────────────────────

    def initialize(self, user_id: str) -> Dict[str, Any]:
        """
        Ensure the user has a current plant. Idempotent: an existing plant is
        returned untouched.
        """
        try:
            garden = self.gardens.get_or_create_garden(user_id)
            if garden.current_plant:
                return dict(garden.current_plant)

            plant = self._new_plant_state(garden)
            self.gardens.save_current_plant(garden, plant)
        except NoActivePlantTypes:
            self.gardens.rollback()
            raise
        except SQLAlchemyError as e:
            self.gardens.rollback()
            raise PersistenceFailure.from_exception(e, user_id, "assigning the first plant") from e

        self._commit(user_id, "assigning the first plant")
        logger.info(
            "Initialized plant '%s' for user %s (bloom at %d).",
            plant["plant_id"], user_id, plant["max_points"],
        )
        self._publish(user_id)
        return plant

    def add_points(self, user_id: str, delta: int) -> Dict[str, Any]:
        """
        Add *delta* points to the user's plant.

        Returns ``{"plant": <current plant>, "bloomed": <archive record or None>,
        "points_added": delta}``. Overshoot past the threshold is kept on the
        archive record (``final_points``) and not carried into the next plant.
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
            raise InvalidDelta(delta)

        bloomed = None
        try:
            garden = self.gardens.get_or_create_garden(user_id)
            plant = dict(garden.current_plant) if garden.current_plant else self._new_plant_state(garden)

            new_total = plant["current_points"] + delta
            if new_total < plant["max_points"]:
                plant["current_points"] = new_total
                self.gardens.save_current_plant(garden, plant)
                self.events.add_log(
                    {
                        "user_id": user_id,
                        "event_type": "points_added",
                        "plant_id": plant["plant_id"],
                        "points_delta": delta,
                        "points_after": new_total,
                    }
                )
            else:
                bloomed = self.gardens.add_completed_plant(
                    user_id,
                    {
                        "plant_id": plant["plant_id"],
                        "plant_type": self._plant_display_name(plant["plant_id"]),
                        "final_points": new_total,
                        "max_points": plant["max_points"],
                        "started_at": _parse_iso(plant.get("started_at")),
                        "completed_at": utcnow(),
                    },
                )
                self.events.add_log(
                    {
                        "user_id": user_id,
                        "event_type": "bloomed",
                        "plant_id": plant["plant_id"],
                        "points_delta": delta,
                        "points_after": new_total,
                        "event_metadata": {"final_points": new_total, "max_points": plant["max_points"]},
                    }
                )
                plant = self._new_plant_state(garden)
                self.gardens.save_current_plant(garden, plant)
        except NoActivePlantTypes:
            self.gardens.rollback()
            raise
        except SQLAlchemyError as e:
            self.gardens.rollback()
            raise PersistenceFailure.from_exception(e, user_id, "adding points") from e

        self._commit(user_id, "blooming a plant" if bloomed is not None else "adding points")

        if bloomed is not None:
            logger.info(
                "User %s's '%s' bloomed with %d/%d points; next plant '%s'.",
                user_id, bloomed.plant_id, bloomed.final_points, bloomed.max_points, plant["plant_id"],
            )
        else:
            logger.info("Added %d point(s) for user %s (%d/%d).",
                        delta, user_id, plant["current_points"], plant["max_points"])

        self._publish(user_id)
        return {
            "plant": plant,
            "bloomed": completed_plant_to_dict(bloomed) if bloomed is not None else None,
            "points_added": delta,
        }

    # ───────────────────────────────── queries ────────────────────────────────

    def current_plant(self, user_id: str) -> Optional[Dict[str, Any]]:
        garden = self.gardens.get_garden(user_id)
        if garden is None or not garden.current_plant:
            return None
        return dict(garden.current_plant)

    def current_stage(self, user_id: str) -> int:
        plant = self.current_plant(user_id)
        if plant is None:
            return SEED_STAGE
        return get_plant_stage(plant["current_points"], plant["max_points"])

    def completed_plants(self, user_id: str) -> List[Dict[str, Any]]:
        return [completed_plant_to_dict(m) for m in self.gardens.list_completed_plants(user_id)]

    def snapshot(self, user_id: str) -> Dict[str, Any]:
        """Everything a client needs to draw the garden, as plain JSON data."""
        garden = self.gardens.get_garden(user_id)
        plant = dict(garden.current_plant) if garden and garden.current_plant else None

        plant_type = None
        progress = None
        if plant:
            progress = describe_progress(plant["current_points"], plant["max_points"])
            try:
                entry = self._lookup_plant_type(plant["plant_id"])
                plant_type = {
                    "id": entry.id,
                    "name": entry.name,
                    "description": entry.description,
                    "storage_folder": entry.storage_folder,
                }
            except CatalogReadDegraded as e:
                logger.debug("No catalog details for snapshot: %s", e)

        return {
            "user_id": user_id,
            "plant": plant,
            "plant_type": plant_type,
            "progress": progress,
            "seed_queue_length": len(garden.seed_queue or []) if garden else 0,
            "total_check_ins": garden.total_check_ins if garden else 0,
            "total_reflections": garden.total_reflections if garden else 0,
            "total_quick_thoughts": garden.total_quick_thoughts if garden else 0,
        }
