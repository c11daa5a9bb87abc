# reflect_app/main.py

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from reflect_app.config.settings import settings
from reflect_app.core.errors import (
    GrowthError,
    InvalidDelta,
    InvalidThreshold,
    NoActivePlantTypes,
    PersistenceFailure,
    ResourceNotFound,
)
from reflect_app.core.subscriptions import garden_hub
from reflect_app.modules.growth_stages import get_plant_stage
from reflect_app.modules.journal import JournalEntry, JournalService
from reflect_app.modules.meditation import MEDITATIONS, meditation_to_dict, suggest_meditations
from reflect_app.modules.on_this_day import on_this_day
from reflect_app.modules.plant_growth import PlantGrowthEngine
from reflect_app.modules.plant_images import default_storage_client, resolve_plant_image
from reflect_app.modules.time_capsules import TimeCapsuleService
from reflect_app.persistence import init_db
from reflect_app.persistence.database import get_db
from reflect_app.persistence.repository import PlantTypeRepository

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed the plant catalog on startup."""
    init_db()
    logger.info("Database initialized.")
    yield


app = FastAPI(title="Reflect Garden API", version="1.0", lifespan=lifespan)


# --- Pydantic models ---
class UserRequest(BaseModel):
    user_id: str


class AddPointsRequest(BaseModel):
    user_id: str
    delta: int = Field(..., description="Positive number of growth points to add.")


class QuickThoughtRequest(BaseModel):
    user_id: str
    text: str
    moods: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)


class ReflectionRequest(BaseModel):
    user_id: str
    text: str
    moods: List[str] = Field(..., description="At least one mood.")
    meditation_type: Optional[str] = None
    meditation_name: Optional[str] = None
    meditation_duration: Optional[int] = None
    thought_categories: List[str] = Field(default_factory=list)
    thought_content: Optional[str] = None
    body_locations: List[str] = Field(default_factory=list)


class SaveEntryResponse(BaseModel):
    entry: JournalEntry
    growth: Optional[Dict[str, Any]] = None
    growth_error: Optional[str] = None


class ImportEntriesRequest(BaseModel):
    user_id: str
    documents: List[Dict[str, Any]]


class CreateCapsuleRequest(BaseModel):
    user_id: str
    text: str
    open_date: Optional[datetime] = None
    duration: Optional[str] = Field(None, description="One of 1-week, 1-month, 3-months, 6-months, 1-year, 2-years.")
    moods: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    include_reply: bool = False


class CapsuleReplyRequest(BaseModel):
    user_id: str
    reply_text: str


class MeditationSuggestRequest(BaseModel):
    thought_categories: List[str] = Field(default_factory=list)
    body_locations: List[str] = Field(default_factory=list)


# --- Dependencies ---
def get_growth_engine(db: Session = Depends(get_db)) -> PlantGrowthEngine:
    return PlantGrowthEngine(db, hub=garden_hub)


def get_journal_service(
    db: Session = Depends(get_db), engine: PlantGrowthEngine = Depends(get_growth_engine)
) -> JournalService:
    return JournalService(db, engine)


def get_capsule_service(db: Session = Depends(get_db)) -> TimeCapsuleService:
    return TimeCapsuleService(db)


# --- Error handling ---
def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


@app.exception_handler(InvalidDelta)
@app.exception_handler(InvalidThreshold)
async def invalid_input_handler(request, exc):
    return _error(422, exc)


@app.exception_handler(NoActivePlantTypes)
async def no_plant_types_handler(request, exc):
    logger.error("Catalog empty: %s", exc)
    return _error(503, exc)


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request, exc):
    return _error(409 if exc.conflict else 500, exc)


@app.exception_handler(GrowthError)
async def growth_error_handler(request, exc):
    logger.error("Unhandled growth error: %s", exc)
    return _error(500, exc)


@app.exception_handler(ResourceNotFound)
async def not_found_handler(request, exc):
    return _error(404, exc)


# --- Garden ---
@app.post("/garden/initialize")
async def initialize_garden(request: UserRequest, engine: PlantGrowthEngine = Depends(get_growth_engine)):
    """Assigns the user's first plant if they have none; existing plants are untouched."""
    engine.initialize(request.user_id)
    return engine.snapshot(request.user_id)


@app.get("/garden/{user_id}")
async def get_garden(user_id: str, engine: PlantGrowthEngine = Depends(get_growth_engine)):
    """Current plant, stage progress and artwork for the user's garden."""
    snapshot = engine.snapshot(user_id)
    plant = snapshot["plant"]
    if plant is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} has no plant yet. Call /garden/initialize.")

    stage = get_plant_stage(plant["current_points"], plant["max_points"])
    storage_folder = (snapshot["plant_type"] or {}).get("storage_folder")
    snapshot["image"] = await run_in_threadpool(
        resolve_plant_image, plant["plant_id"], stage, storage_folder, default_storage_client()
    )
    return snapshot


@app.post("/garden/points")
async def add_points(request: AddPointsRequest, engine: PlantGrowthEngine = Depends(get_growth_engine)):
    return engine.add_points(request.user_id, request.delta)


@app.get("/garden/{user_id}/completed")
async def completed_plants(user_id: str, engine: PlantGrowthEngine = Depends(get_growth_engine)):
    return engine.completed_plants(user_id)


@app.get("/catalog")
async def list_catalog(active_only: bool = False, db: Session = Depends(get_db)):
    return [
        {
            "id": p.id,
            "name": p.name,
            "description": p.description,
            "points_to_bloom": p.points_to_bloom,
            "difficulty": p.difficulty,
            "rarity": p.rarity,
            "is_active": p.is_active,
        }
        for p in PlantTypeRepository(db).list_plant_types(active_only=active_only)
    ]


# --- Journal ---
@app.post("/entries/quick_thought", response_model=SaveEntryResponse)
async def save_quick_thought(request: QuickThoughtRequest, journal: JournalService = Depends(get_journal_service)):
    try:
        return journal.save_quick_thought(request.user_id, request.text, request.moods, request.categories)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/entries/reflection", response_model=SaveEntryResponse)
async def save_reflection(request: ReflectionRequest, journal: JournalService = Depends(get_journal_service)):
    try:
        return journal.save_reflection(
            request.user_id,
            request.text,
            request.moods,
            meditation_type=request.meditation_type,
            meditation_name=request.meditation_name,
            meditation_duration=request.meditation_duration,
            thought_categories=request.thought_categories,
            thought_content=request.thought_content,
            body_locations=request.body_locations,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/entries/import")
async def import_entries(request: ImportEntriesRequest, journal: JournalService = Depends(get_journal_service)):
    try:
        imported = journal.import_entries(request.user_id, request.documents)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"imported": imported}


@app.get("/entries/{user_id}", response_model=List[JournalEntry])
async def list_entries(user_id: str, journal: JournalService = Depends(get_journal_service)):
    return journal.list_entries(user_id)


@app.get("/entries/{user_id}/feed")
async def journal_feed(user_id: str, journal: JournalService = Depends(get_journal_service)):
    """Entries and delivered time capsules, newest first."""
    return journal.feed(user_id)


@app.get("/entries/{user_id}/on_this_day")
async def memories_on_this_day(user_id: str, db: Session = Depends(get_db)):
    return on_this_day(db, user_id)


@app.delete("/entries/{user_id}/{entry_id}", status_code=204)
async def delete_entry(user_id: str, entry_id: str, journal: JournalService = Depends(get_journal_service)):
    journal.delete_entry(user_id, entry_id)


# --- Time capsules ---
@app.post("/capsules", status_code=201)
async def create_capsule(request: CreateCapsuleRequest, capsules: TimeCapsuleService = Depends(get_capsule_service)):
    try:
        return capsules.create(
            request.user_id,
            request.text,
            open_date=request.open_date,
            duration=request.duration,
            moods=request.moods,
            categories=request.categories,
            include_reply=request.include_reply,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/capsules/{user_id}")
async def list_capsules(user_id: str, capsules: TimeCapsuleService = Depends(get_capsule_service)):
    return capsules.list_capsules(user_id)


@app.post("/capsules/{capsule_id}/open")
async def open_capsule(
    capsule_id: str, request: UserRequest, capsules: TimeCapsuleService = Depends(get_capsule_service)
):
    return capsules.open(request.user_id, capsule_id)


@app.post("/capsules/{capsule_id}/reply")
async def reply_to_capsule(
    capsule_id: str, request: CapsuleReplyRequest, capsules: TimeCapsuleService = Depends(get_capsule_service)
):
    try:
        return capsules.reply(request.user_id, capsule_id, request.reply_text)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.delete("/capsules/{user_id}/{capsule_id}", status_code=204)
async def delete_capsule(user_id: str, capsule_id: str, capsules: TimeCapsuleService = Depends(get_capsule_service)):
    capsules.delete(user_id, capsule_id)


# --- Meditations ---
@app.get("/meditations")
async def list_meditations():
    return [meditation_to_dict(m) for m in MEDITATIONS]


@app.post("/meditations/suggest")
async def suggest(request: MeditationSuggestRequest):
    try:
        return suggest_meditations(request.thought_categories, request.body_locations)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


# --- Live garden updates ---
def log_stream_failure(user_id: str):
    """Done-callback for a websocket sender task; reports why it stopped early."""

    def callback(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Garden update stream for user %s stopped: %r", user_id, error)

    return callback


@app.websocket("/ws/garden/{user_id}")
async def garden_updates(websocket: WebSocket, user_id: str, db: Session = Depends(get_db)):
    """Sends the current garden snapshot, then one message per committed change."""
    await websocket.accept()
    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()

    # Publishers may run on worker threads.
    def on_snapshot(snapshot):
        loop.call_soon_threadsafe(updates.put_nowait, snapshot)

    unsubscribe = garden_hub.subscribe(user_id, on_snapshot)
    sender = None
    try:
        await websocket.send_json(PlantGrowthEngine(db).snapshot(user_id))

        async def forward():
            while True:
                await websocket.send_json(await updates.get())

        sender = asyncio.ensure_future(forward())
        sender.add_done_callback(log_stream_failure(user_id))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Garden subscriber for user %s disconnected.", user_id)
    finally:
        if sender is not None:
            sender.cancel()
        unsubscribe()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
