# reflect_app/modules/time_capsules.py

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from reflect_app.config.constants import CAPSULE_DURATIONS, CAPSULE_OPENED, CAPSULE_SEALED
from reflect_app.core.errors import ResourceNotFound
from reflect_app.core.utils import as_list, to_naive_utc, utcnow
from reflect_app.persistence.models import TimeCapsuleModel
from reflect_app.persistence.repository import TimeCapsuleRepository

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def is_delivered(capsule: TimeCapsuleModel, now: datetime) -> bool:
    """A capsule is delivered once its open date has passed or it was opened early."""
    return capsule.status == CAPSULE_OPENED or capsule.open_date <= now


def capsule_to_dict(capsule: TimeCapsuleModel, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    return {
        "id": capsule.id,
        "user_id": capsule.user_id,
        "text": capsule.text,
        "moods": list(capsule.moods or []),
        "categories": list(capsule.categories or []),
        "include_reply": capsule.include_reply,
        "reply_text": capsule.reply_text,
        "status": capsule.status,
        "delivered": is_delivered(capsule, now),
        "created_at": _iso(capsule.created_at),
        "open_date": _iso(capsule.open_date),
        "opened_at": _iso(capsule.opened_at),
        "replied_at": _iso(capsule.replied_at),
        "opened_prematurely": capsule.opened_prematurely,
    }


class TimeCapsuleService:
    """Create, open, reply to and delete messages addressed to the user's future self."""

    def __init__(self, db: Session):
        self.repo = TimeCapsuleRepository(db)

    def _get_owned(self, user_id: str, capsule_id: str) -> TimeCapsuleModel:
        capsule = self.repo.get_capsule(capsule_id)
        if capsule is None or capsule.user_id != user_id:
            raise ResourceNotFound("Time capsule", capsule_id)
        return capsule

    def create(
        self,
        user_id: str,
        text: str,
        open_date: Optional[datetime] = None,
        duration: Optional[str] = None,
        moods=None,
        categories=None,
        include_reply: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or utcnow()
        text = (text or "").strip()
        if not text:
            raise ValueError("A time capsule needs a message.")

        if duration is not None:
            if duration not in CAPSULE_DURATIONS:
                raise ValueError(f"Unknown capsule duration '{duration}'.")
            open_date = now + timedelta(days=CAPSULE_DURATIONS[duration])
        elif open_date is None:
            raise ValueError("Either open_date or duration is required.")
        else:
            open_date = to_naive_utc(open_date)
            if open_date <= now:
                raise ValueError("open_date must be in the future.")

        capsule = self.repo.create_capsule(
            {
                "id": str(uuid.uuid4()),
                "user_id": user_id,
                "text": text,
                "moods": as_list(moods),
                "categories": as_list(categories),
                "include_reply": bool(include_reply),
                "reply_text": "",
                "status": CAPSULE_SEALED,
                "created_at": now,
                "open_date": open_date,
                "opened_at": None,
                "replied_at": None,
                "opened_prematurely": False,
            }
        )
        return capsule_to_dict(capsule, now)

    def list_capsules(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Split the user's capsules into sealed and delivered, newest first."""
        now = now or utcnow()
        sealed, delivered = [], []
        for capsule in self.repo.list_capsules(user_id):
            (delivered if is_delivered(capsule, now) else sealed).append(capsule_to_dict(capsule, now))
        return {"sealed": sealed, "delivered": delivered}

    def delivered_models(self, user_id: str, now: Optional[datetime] = None) -> List[TimeCapsuleModel]:
        now = now or utcnow()
        return [c for c in self.repo.list_capsules(user_id) if is_delivered(c, now)]

    def open(self, user_id: str, capsule_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        capsule = self._get_owned(user_id, capsule_id)
        if capsule.status == CAPSULE_OPENED:
            return capsule_to_dict(capsule, now)

        premature = now < capsule.open_date
        capsule = self.repo.update_capsule(
            capsule, status=CAPSULE_OPENED, opened_at=now, opened_prematurely=premature
        )
        if premature:
            logger.info("User %s opened capsule %s before its open date.", user_id, capsule_id)
        return capsule_to_dict(capsule, now)

    def reply(self, user_id: str, capsule_id: str, reply_text: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        capsule = self._get_owned(user_id, capsule_id)
        if not is_delivered(capsule, now):
            raise ValueError("Sealed capsules cannot be replied to yet.")
        reply_text = (reply_text or "").strip()
        if not reply_text:
            raise ValueError("Reply text is required.")
        capsule = self.repo.update_capsule(capsule, reply_text=reply_text, replied_at=now)
        return capsule_to_dict(capsule, now)

    def delete(self, user_id: str, capsule_id: str) -> None:
        capsule = self._get_owned(user_id, capsule_id)
        self.repo.delete_capsule(capsule)
