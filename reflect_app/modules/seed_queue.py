# reflect_app/modules/seed_queue.py

import logging
import random
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reflect_app.core.errors import CatalogReadDegraded, NoActivePlantTypes, PersistenceFailure
from reflect_app.core.utils import shuffle_sequence
from reflect_app.persistence.models import UserGardenModel
from reflect_app.persistence.repository import GardenRepository, PlantTypeRepository

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class SeedQueueManager:
    """
    Deals plant types to a user like a deck of cards.

    The queue holds a shuffled copy of every active catalog id and is
    consumed front to back. It is only refilled, in full, once empty, so a
    user sees every active plant before any repeats.
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.gardens = GardenRepository(db)
        self.catalog = PlantTypeRepository(db)
        self.rng = rng

    def refill(self, user_id: str) -> List[str]:
        """Shuffled list of all active plant ids. Never touches the catalog rows."""
        self.gardens.flush()
        try:
            with self.catalog.savepoint():
                plant_ids = self.catalog.get_active_plant_ids()
        except SQLAlchemyError as e:
            raise CatalogReadDegraded("*", f"active plant query failed: {e}") from e

        if not plant_ids:
            logger.warning("No active plant types found; cannot refill queue for user %s.", user_id)
            raise NoActivePlantTypes(user_id)

        queue = shuffle_sequence(plant_ids, self.rng)
        logger.info("Refilled seed queue for user %s with %d plant types.", user_id, len(queue))
        return queue

    def draw(self, garden: UserGardenModel) -> str:
        """
        Pop the front plant id off the garden's queue, refilling first if it
        is empty. Stages the remainder on the session without committing, so
        the refill and the first draw are saved together by the caller.
        """
        queue = list(garden.seed_queue or [])
        if not queue:
            queue = self.refill(garden.user_id)

        plant_id, remaining = queue[0], queue[1:]
        self.gardens.save_seed_queue(garden, remaining)
        logger.info(
            "Drew plant '%s' for user %s (%d left in queue).", plant_id, garden.user_id, len(remaining)
        )
        return plant_id

    def next_plant(self, user_id: str) -> str:
        """
        Draw and persist in one step. Nothing is saved if the draw fails.

        ``CatalogReadDegraded`` propagates from here; ``PlantGrowthEngine``
        is the layer that recovers from it with the default plant.
        """
        try:
            garden = self.gardens.get_or_create_garden(user_id)
            plant_id = self.draw(garden)
            self.gardens.commit()
            return plant_id
        except (NoActivePlantTypes, CatalogReadDegraded):
            self.gardens.rollback()
            raise
        except SQLAlchemyError as e:
            self.gardens.rollback()
            logger.error("Failed to persist seed queue for user %s: %s", user_id, e)
            raise PersistenceFailure.from_exception(e, user_id, "drawing the next plant") from e

    def peek_queue(self, user_id: str) -> List[str]:
        garden = self.gardens.get_garden(user_id)
        return list(garden.seed_queue or []) if garden else []
