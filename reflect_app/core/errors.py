# reflect_app/core/errors.py

from typing import Optional

from sqlalchemy.orm.exc import StaleDataError


class GrowthError(Exception):
    """Base class for plant growth and seed queue failures."""


class InvalidThreshold(GrowthError):
    """Raised when a bloom threshold (max points) is not a positive integer."""

    def __init__(self, max_points):
        self.max_points = max_points
        super().__init__(f"Bloom threshold must be a positive integer, got {max_points!r}.")


class InvalidDelta(GrowthError):
    """Raised when a point delta is not a positive integer."""

    def __init__(self, delta):
        self.delta = delta
        super().__init__(f"Point delta must be a positive integer, got {delta!r}.")


class NoActivePlantTypes(GrowthError):
    """Raised when the seed queue needs a refill but the catalog has no active entries."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No active plant types available to refill seed queue for user {user_id}.")


class PersistenceFailure(GrowthError):
    """Raised when a write to the store failed and was rolled back."""

    def __init__(self, message: str, user_id: Optional[str] = None, conflict: bool = False):
        self.user_id = user_id
        self.conflict = conflict
        super().__init__(message)

    @classmethod
    def from_exception(cls, exc: Exception, user_id: str, action: str) -> "PersistenceFailure":
        conflict = isinstance(exc, StaleDataError)
        if conflict:
            message = f"Concurrent update to garden of user {user_id} while {action}; nothing was saved."
        else:
            message = f"Failed to persist garden of user {user_id} while {action}: {exc}"
        return cls(message, user_id=user_id, conflict=conflict)


class CatalogReadDegraded(GrowthError):
    """
    Non-fatal: the catalog entry for a plant could not be read.
    Callers recover with the default bloom threshold.
    """

    def __init__(self, plant_id: str, reason: str):
        self.plant_id = plant_id
        self.reason = reason
        super().__init__(f"Catalog entry '{plant_id}' unreadable: {reason}")


class ResourceNotFound(LookupError):
    """A journal entry or time capsule does not exist or belongs to another user."""

    def __init__(self, kind: str, resource_id: str):
        self.kind = kind
        self.resource_id = resource_id
        super().__init__(f"{kind} {resource_id} not found.")
