# reflect_app/modules/journal.py

"""
Journal entries (quick thoughts and daily reflections) and the combined
journal feed.

Entries are stored as versioned documents. Schema 1 is the legacy shape
with single-valued ``mood`` / ``category`` / ``thoughtCategory`` /
``bodyLocation`` fields and camelCase keys; schema 2 is list-valued and
snake_case. Documents are upgraded to schema 2 as they are read, so
nothing past ``entry_from_record`` ever branches on legacy fields.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from reflect_app.config.constants import (
    ENTRY_SCHEMA_CURRENT,
    ENTRY_SCHEMA_LEGACY,
    ENTRY_TYPE_QUICK_THOUGHT,
    ENTRY_TYPE_REFLECTION,
    QUICK_THOUGHT_POINTS,
    REFLECTION_POINTS,
)
from reflect_app.core.errors import NoActivePlantTypes, PersistenceFailure, ResourceNotFound
from reflect_app.core.utils import as_list, to_naive_utc, utcnow
from reflect_app.modules.plant_growth import PlantGrowthEngine
from reflect_app.modules.time_capsules import TimeCapsuleService, capsule_to_dict
from reflect_app.persistence.models import JournalEntryModel
from reflect_app.persistence.repository import JournalEntryRepository

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Keys whose presence marks a document as schema 1 when it carries no version.
LEGACY_KEYS = {
    "mood", "category", "thoughtCategory", "thought_category",
    "bodyLocation", "body_location", "authorUid", "entryType", "createdAt",
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ SCHEMAS ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class EntryDocument(BaseModel):
    """Schema 2: the only shape business logic sees."""

    model_config = ConfigDict(extra="ignore")

    schema_version: Literal[2] = 2
    text: str = ""
    moods: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    meditation_type: Optional[str] = None
    meditation_name: Optional[str] = None
    meditation_duration: Optional[int] = None
    thought_categories: List[str] = Field(default_factory=list)
    thought_content: Optional[str] = None
    body_locations: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    photo_url: Optional[str] = None
    created_date: Optional[str] = None
    created_month: Optional[int] = None
    created_day: Optional[int] = None


class LegacyEntryDocument(BaseModel):
    """Schema 1: single-valued tags, camelCase keys from the old document store."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    schema_version: Literal[1] = 1
    text: str = ""
    entry_type: Optional[str] = Field(None, alias="entryType")
    quick_thought: Optional[bool] = Field(None, alias="quickThought")
    mood: Optional[str] = None
    moods: Optional[List[str]] = None
    category: Optional[str] = None
    thought_category: Optional[str] = Field(None, alias="thoughtCategory")
    thought_categories: Optional[List[str]] = Field(None, alias="thoughtCategories")
    thought_content: Optional[str] = Field(None, alias="thoughtContent")
    body_location: Optional[str] = Field(None, alias="bodyLocation")
    body_locations: Optional[List[str]] = Field(None, alias="bodyLocations")
    meditation_type: Optional[str] = Field(None, alias="meditationType")
    meditation_name: Optional[str] = Field(None, alias="meditationName")
    meditation_duration: Optional[int] = Field(None, alias="meditationDuration")
    tags: List[str] = Field(default_factory=list)
    photo_url: Optional[str] = Field(None, alias="photoUrl")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    created_date: Optional[str] = Field(None, alias="createdDate")
    created_month: Optional[int] = Field(None, alias="createdMonth")
    created_day: Optional[int] = Field(None, alias="createdDay")

    def resolved_entry_type(self) -> str:
        if self.entry_type in (ENTRY_TYPE_QUICK_THOUGHT, ENTRY_TYPE_REFLECTION):
            return self.entry_type
        return ENTRY_TYPE_QUICK_THOUGHT if self.quick_thought else ENTRY_TYPE_REFLECTION

    def upgrade(self) -> EntryDocument:
        return EntryDocument(
            text=self.text,
            moods=as_list(self.moods) or as_list(self.mood),
            categories=as_list(self.category),
            meditation_type=self.meditation_type,
            meditation_name=self.meditation_name,
            meditation_duration=self.meditation_duration,
            thought_categories=as_list(self.thought_categories) or as_list(self.thought_category),
            thought_content=self.thought_content,
            body_locations=as_list(self.body_locations) or as_list(self.body_location),
            tags=self.tags,
            photo_url=self.photo_url,
            created_date=self.created_date,
            created_month=self.created_month,
            created_day=self.created_day,
        )


class JournalEntry(EntryDocument):
    """A stored entry as returned to callers."""

    id: str
    user_id: str
    entry_type: str
    created_at: datetime


AnyEntryDocument = Union[EntryDocument, LegacyEntryDocument]


def detect_schema_version(document: Dict[str, Any]) -> int:
    version = document.get("schema_version")
    if version in (ENTRY_SCHEMA_LEGACY, ENTRY_SCHEMA_CURRENT):
        return version
    return ENTRY_SCHEMA_LEGACY if LEGACY_KEYS & set(document) else ENTRY_SCHEMA_CURRENT


def parse_entry_document(document: Dict[str, Any], schema_version: int) -> AnyEntryDocument:
    data = {k: v for k, v in document.items() if k != "schema_version"}
    if schema_version == ENTRY_SCHEMA_LEGACY:
        return LegacyEntryDocument.model_validate(data)
    return EntryDocument.model_validate(data)


def normalize_entry_document(document: Dict[str, Any], schema_version: Optional[int] = None) -> EntryDocument:
    """Any stored document version -> schema 2."""
    if schema_version is None:
        schema_version = detect_schema_version(document)
    parsed = parse_entry_document(document, schema_version)
    return parsed.upgrade() if isinstance(parsed, LegacyEntryDocument) else parsed


def entry_from_record(model: JournalEntryModel) -> JournalEntry:
    doc = normalize_entry_document(model.document or {}, model.schema_version)
    created_at = model.created_at
    fields = doc.model_dump()
    if not fields.get("created_date") and created_at:
        fields.update(
            created_date=created_at.date().isoformat(),
            created_month=created_at.month,
            created_day=created_at.day,
        )
    return JournalEntry(
        id=model.id,
        user_id=model.user_id,
        entry_type=model.entry_type,
        created_at=created_at,
        **fields,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ SERVICE ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class JournalService:
    """Saves check-ins, awards their growth points and builds the journal feed."""

    def __init__(self, db: Session, growth: PlantGrowthEngine):
        self.repo = JournalEntryRepository(db)
        self.growth = growth
        self.capsules = TimeCapsuleService(db)

    def _save(
        self,
        user_id: str,
        entry_type: str,
        document: EntryDocument,
        points: int,
        counters: Dict[str, int],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or utcnow()
        document.created_date = now.date().isoformat()
        document.created_month = now.month
        document.created_day = now.day

        # Counters ride along with the entry's commit.
        try:
            garden = self.growth.gardens.get_or_create_garden(user_id)
            self.growth.gardens.increment_counters(garden, **counters)
            model = self.repo.create_entry(
                entry_id=str(uuid.uuid4()),
                user_id=user_id,
                entry_type=entry_type,
                document=document.model_dump(mode="json"),
                schema_version=ENTRY_SCHEMA_CURRENT,
                created_at=now,
            )
        except SQLAlchemyError as e:
            raise PersistenceFailure.from_exception(e, user_id, f"saving a {entry_type} entry") from e
        entry = entry_from_record(model)

        # The entry is already saved; a growth failure is reported, not raised.
        growth, growth_error = None, None
        try:
            growth = self.growth.add_points(user_id, points)
        except (NoActivePlantTypes, PersistenceFailure) as e:
            logger.error("Entry %s saved but growth update failed for user %s: %s", entry.id, user_id, e)
            growth_error = str(e)

        return {"entry": entry, "growth": growth, "growth_error": growth_error}

    def save_quick_thought(self, user_id: str, text: str, moods=None, categories=None, now=None) -> Dict[str, Any]:
        text = (text or "").strip()
        if not text:
            raise ValueError("A quick thought needs some text.")
        document = EntryDocument(text=text, moods=as_list(moods), categories=as_list(categories))
        return self._save(
            user_id,
            ENTRY_TYPE_QUICK_THOUGHT,
            document,
            QUICK_THOUGHT_POINTS,
            {"total_check_ins": 1, "total_quick_thoughts": 1},
            now,
        )

    def save_reflection(
        self,
        user_id: str,
        text: str,
        moods,
        meditation_type: Optional[str] = None,
        meditation_name: Optional[str] = None,
        meditation_duration: Optional[int] = None,
        thought_categories=None,
        thought_content: Optional[str] = None,
        body_locations=None,
        now=None,
    ) -> Dict[str, Any]:
        text = (text or "").strip()
        moods = as_list(moods)
        if not text or not moods:
            raise ValueError("Please share a thought and choose how you feel.")
        document = EntryDocument(
            text=text,
            moods=moods,
            meditation_type=meditation_type,
            meditation_name=meditation_name,
            meditation_duration=meditation_duration,
            thought_categories=as_list(thought_categories),
            thought_content=thought_content,
            body_locations=as_list(body_locations),
        )
        return self._save(
            user_id,
            ENTRY_TYPE_REFLECTION,
            document,
            REFLECTION_POINTS,
            {"total_check_ins": 1, "total_reflections": 1},
            now,
        )

    def list_entries(self, user_id: str) -> List[JournalEntry]:
        return [entry_from_record(m) for m in self.repo.list_entries(user_id)]

    def feed(self, user_id: str, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Entries and delivered capsules, newest first."""
        now = now or utcnow()
        items = []
        for entry in self.list_entries(user_id):
            items.append({"type": "entry", "timestamp": entry.created_at, "item": entry.model_dump(mode="json")})
        for capsule in self.capsules.delivered_models(user_id, now):
            items.append(
                {
                    "type": "time_capsule",
                    "timestamp": capsule.opened_at or capsule.open_date,
                    "item": capsule_to_dict(capsule, now),
                }
            )
        items.sort(key=lambda i: i["timestamp"], reverse=True)
        for item in items:
            item["timestamp"] = item["timestamp"].isoformat()
        return items

    def delete_entry(self, user_id: str, entry_id: str) -> None:
        model = self.repo.get_entry(entry_id)
        if model is None or model.user_id != user_id:
            raise ResourceNotFound("Journal entry", entry_id)
        self.repo.delete_entry(model)

    def import_entries(self, user_id: str, documents: List[Dict[str, Any]]) -> int:
        """
        Store raw documents of either schema as-is; they are normalized on
        read. Invalid documents and ids that repeat or are already stored
        abort the whole batch with ``ValueError``.
        """
        models = []
        for index, document in enumerate(documents):
            version = detect_schema_version(document)
            try:
                parsed = parse_entry_document(document, version)
            except ValidationError as e:
                raise ValueError(f"Document {index} is not a valid journal entry: {e}") from e

            if isinstance(parsed, LegacyEntryDocument):
                entry_type = parsed.resolved_entry_type()
                created_at = parsed.created_at
            else:
                entry_type = document.get("entry_type") or ENTRY_TYPE_QUICK_THOUGHT
                created_at = None
            raw_created = document.get("created_at")
            if created_at is None and isinstance(raw_created, str):
                try:
                    created_at = datetime.fromisoformat(raw_created)
                except ValueError:
                    created_at = None
            created_at = to_naive_utc(created_at) if created_at else utcnow()

            stored = {k: v for k, v in document.items() if k not in ("id", "user_id", "authorUid")}
            models.append(
                JournalEntryModel(
                    id=str(document.get("id") or uuid.uuid4()),
                    user_id=user_id,
                    entry_type=entry_type,
                    schema_version=version,
                    document=stored,
                    created_at=created_at,
                )
            )
        ids = [model.id for model in models]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate entry ids in import: {', '.join(duplicates)}")
        taken = self.repo.existing_ids(ids)
        if taken:
            raise ValueError(f"Entry ids already exist: {', '.join(sorted(taken))}")
        try:
            return self.repo.bulk_create(models)
        except IntegrityError as e:
            raise ValueError(f"Import conflicts with stored entries: {e.orig}") from e
