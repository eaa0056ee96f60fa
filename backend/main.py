"""
FastAPI Application for the MathMaster Backend
"""

import json
import logging
from typing import Any, Dict, Literal, Optional
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

import reducer
from config import settings
from errors import (
    IncompleteSolutionError,
    MathSolverError,
    PersistenceError,
    SavedSolutionNotFound,
    SessionNotFound,
    UploadError,
)
from math_text import is_image_type
from preferences import PreferencesStore
from redis_client import close_redis, init_redis
from saved_solutions import SavedSolutionStore
from schemas import Preferences, Solution
from session_store import SessionStore
from solver import MathSolver
from state import PANELS, Provider
from uploads import UPLOAD_ROUTE, ImageUploader, read_limited
from workflow import SolveWorkflow

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ============================================================================
# PYDANTIC MODELS
# ============================================================================

class CreateSessionRequest(BaseModel):
    provider: Optional[Provider] = None

class SessionResponse(BaseModel):
    session_id: str
    state: Dict[str, Any]

class SolveRequest(BaseModel):
    text: str = Field(...)

class InputRequest(BaseModel):
    text: str = Field(...)

class NotesDraftRequest(BaseModel):
    notes: str = Field(...)

class SaveCurrentRequest(BaseModel):
    notes: Optional[str] = None

class SaveRequest(BaseModel):
    equation: str = Field(..., min_length=1)
    solution: Solution
    notes: str = ""

class FavoriteToggleRequest(BaseModel):
    current: bool = Field(..., description="Favorite status before the toggle")

class FavoriteRequest(BaseModel):
    is_favorite: bool

class NotesUpdateRequest(BaseModel):
    notes: str

class LegacySolutionsRequest(BaseModel):
    """Body of the multiplexed /api/math-solutions endpoint."""
    method: Literal["GET", "POST", "PATCH"]
    id: Optional[int] = None
    equation: Optional[str] = None
    solution: Optional[Solution] = None
    notes: Optional[str] = None
    is_favorite: Optional[bool] = None

class ShareResponse(BaseModel):
    text: Optional[str] = None
    url: str

class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"
    environment: str

# ============================================================================
# LIFECYCLE & APP
# ============================================================================

session_store: Optional[SessionStore] = None
saved_store: Optional[SavedSolutionStore] = None
preferences_store: Optional[PreferencesStore] = None
solve_workflow: Optional[SolveWorkflow] = None

@asynccontextmanager
async def lifespan(app: FastAPI):
    global session_store, saved_store, preferences_store, solve_workflow
    logger.info("Starting up MathMaster Backend...")

    try:
        client = await init_redis(settings.redis_url)
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise

    session_store = SessionStore(client, ttl_seconds=settings.session_ttl_seconds)
    saved_store = SavedSolutionStore(client)
    preferences_store = PreferencesStore(client)
    solve_workflow = SolveWorkflow(
        sessions=session_store,
        solver=MathSolver(),
        saved=saved_store,
        uploader=ImageUploader(settings.upload_dir, settings.max_upload_bytes, settings.upload_base_url),
        history_limit=settings.history_limit
    )
    logger.info(f"Solver ready (default provider={settings.default_provider})")

    yield

    # Cleanup
    logger.info("Shutting down...")
    await close_redis()

app = FastAPI(
    title="MathMaster API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(UPLOAD_ROUTE, StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_sessions() -> SessionStore:
    if session_store is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Session store not initialized")
    return session_store

def get_workflow() -> SolveWorkflow:
    if solve_workflow is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Solver not initialized")
    return solve_workflow

def get_preferences_store() -> PreferencesStore:
    if preferences_store is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Preferences store not initialized")
    return preferences_store

def to_http_error(error: MathSolverError) -> HTTPException:
    if isinstance(error, (SessionNotFound, SavedSolutionNotFound)):
        return HTTPException(status.HTTP_404_NOT_FOUND, error.message)
    if isinstance(error, PersistenceError):
        return HTTPException(status.HTTP_502_BAD_GATEWAY, error.message)
    if isinstance(error, IncompleteSolutionError):
        return HTTPException(status.HTTP_409_CONFLICT, error.message)
    return HTTPException(status.HTTP_400_BAD_REQUEST, error.message)

def sse_pack(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"

def event_stream(events) -> StreamingResponse:
    async def event_gen():
        async for event in events:
            yield sse_pack(event)
        yield sse_pack({"type": "done"})

    return StreamingResponse(event_gen(), media_type="text/event-stream")

# ============================================================================
# ENDPOINTS
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="healthy", environment=settings.environment)

# --- Sessions ---

@app.post("/v1/sessions", response_model=SessionResponse)
async def create_session(
    request: Optional[CreateSessionRequest] = None,
    sessions: SessionStore = Depends(get_sessions),
):
    provider = (request.provider if request else None) or settings.default_provider
    session_id, state = await sessions.create(provider)
    return SessionResponse(session_id=session_id, state=state)

@app.get("/v1/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    sessions: SessionStore = Depends(get_sessions),
    workflow: SolveWorkflow = Depends(get_workflow),
):
    """Return session state, loading the saved collection as on first page load."""
    try:
        await sessions.load(session_id)
        try:
            await workflow.refresh_saved(session_id)
        except PersistenceError as e:
            logger.warning(f"[Session] Saved solutions unavailable: {e.message}")
        state = await sessions.load(session_id)
    except SessionNotFound as e:
        raise to_http_error(e)
    return SessionResponse(session_id=session_id, state=state)

async def _apply(sessions: SessionStore, session_id: str, transition, *args) -> SessionResponse:
    try:
        state = await sessions.apply(session_id, transition, *args)
    except SessionNotFound as e:
        raise to_http_error(e)
    return SessionResponse(session_id=session_id, state=state)

@app.put("/v1/sessions/{session_id}/input", response_model=SessionResponse)
async def set_input(session_id: str, request: InputRequest, sessions: SessionStore = Depends(get_sessions)):
    return await _apply(sessions, session_id, reducer.input_changed, request.text)

@app.post("/v1/sessions/{session_id}/provider/toggle", response_model=SessionResponse)
async def toggle_provider(session_id: str, sessions: SessionStore = Depends(get_sessions)):
    return await _apply(sessions, session_id, reducer.provider_toggled)

@app.post("/v1/sessions/{session_id}/panels/{panel}/toggle", response_model=SessionResponse)
async def toggle_panel(session_id: str, panel: str, sessions: SessionStore = Depends(get_sessions)):
    if panel not in PANELS:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Unknown panel: {panel}")
    return await _apply(sessions, session_id, reducer.panel_toggled, panel)

@app.post("/v1/sessions/{session_id}/clear", response_model=SessionResponse)
async def clear_session(session_id: str, sessions: SessionStore = Depends(get_sessions)):
    return await _apply(sessions, session_id, reducer.cleared)

@app.put("/v1/sessions/{session_id}/notes", response_model=SessionResponse)
async def set_notes_draft(session_id: str, request: NotesDraftRequest, sessions: SessionStore = Depends(get_sessions)):
    return await _apply(sessions, session_id, reducer.notes_changed, request.notes)

@app.post("/v1/sessions/{session_id}/saved/{solution_id}/select", response_model=SessionResponse)
async def select_saved(session_id: str, solution_id: int, sessions: SessionStore = Depends(get_sessions)):
    return await _apply(sessions, session_id, reducer.saved_selected, solution_id)

@app.get("/v1/sessions/{session_id}/history")
async def get_history(session_id: str, sessions: SessionStore = Depends(get_sessions)):
    try:
        state = await sessions.load(session_id)
    except SessionNotFound as e:
        raise to_http_error(e)
    return state["history"]

@app.get("/v1/sessions/{session_id}/share", response_model=ShareResponse)
async def share_solution(session_id: str, workflow: SolveWorkflow = Depends(get_workflow)):
    try:
        text = await workflow.share_text(session_id, settings.public_url)
    except SessionNotFound as e:
        raise to_http_error(e)
    return ShareResponse(text=text, url=settings.public_url)

# --- Solving ---

@app.post("/v1/sessions/{session_id}/solve")
async def solve(
    session_id: str,
    request: SolveRequest,
    sessions: SessionStore = Depends(get_sessions),
    workflow: SolveWorkflow = Depends(get_workflow),
):
    """Solve a text problem, streaming chunk, solution and enrichment events."""
    try:
        await sessions.load(session_id)
    except SessionNotFound as e:
        raise to_http_error(e)
    logger.info(f"[Solve] Session: {session_id}")
    return event_stream(workflow.solve(session_id, request.text))

@app.post("/v1/sessions/{session_id}/image")
async def solve_image(
    session_id: str,
    file: UploadFile = File(...),
    sessions: SessionStore = Depends(get_sessions),
    workflow: SolveWorkflow = Depends(get_workflow),
):
    """Transcribe the problem in an uploaded image and solve it."""
    try:
        await sessions.load(session_id)
        if not is_image_type(file.content_type):
            await sessions.apply(session_id, reducer.error_reported, UploadError.message)
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "File provided is not an image.")
    except SessionNotFound as e:
        raise to_http_error(e)

    max_bytes = workflow.uploader.max_bytes if workflow.uploader else settings.max_upload_bytes
    data = await read_limited(file, max_bytes)
    if data is None:
        logger.warning(f"[Image] Session: {session_id}, upload over {max_bytes} bytes rejected")
        await sessions.apply(session_id, reducer.error_reported, UploadError.message)
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"File larger than {max_bytes} bytes.")

    logger.info(f"[Image] Session: {session_id}, {file.content_type}, {len(data)} bytes")
    return event_stream(workflow.solve_image(session_id, data, file.content_type))

@app.post("/v1/sessions/{session_id}/alternatives", response_model=SessionResponse)
async def generate_alternatives(session_id: str, workflow: SolveWorkflow = Depends(get_workflow)):
    try:
        state = await workflow.generate_alternatives(session_id)
    except SessionNotFound as e:
        raise to_http_error(e)
    return SessionResponse(session_id=session_id, state=state)

@app.post("/v1/sessions/{session_id}/practice", response_model=SessionResponse)
async def generate_practice(session_id: str, workflow: SolveWorkflow = Depends(get_workflow)):
    try:
        state = await workflow.generate_practice(session_id)
    except SessionNotFound as e:
        raise to_http_error(e)
    return SessionResponse(session_id=session_id, state=state)

@app.post("/v1/sessions/{session_id}/save")
async def save_current(
    session_id: str,
    request: Optional[SaveCurrentRequest] = None,
    workflow: SolveWorkflow = Depends(get_workflow),
):
    """Save the current solution with the notes draft; returns the full collection."""
    try:
        return await workflow.save_current(session_id, request.notes if request else None)
    except MathSolverError as e:
        raise to_http_error(e)

# --- Saved solutions ---

@app.get("/v1/saved")
async def list_saved(session_id: Optional[str] = None, workflow: SolveWorkflow = Depends(get_workflow)):
    try:
        return await workflow.refresh_saved(session_id)
    except MathSolverError as e:
        raise to_http_error(e)

@app.post("/v1/saved")
async def create_saved(
    request: SaveRequest,
    session_id: Optional[str] = None,
    workflow: SolveWorkflow = Depends(get_workflow),
):
    try:
        return await workflow.save_solution(session_id, request.equation, request.solution, request.notes)
    except MathSolverError as e:
        raise to_http_error(e)

@app.post("/v1/saved/{solution_id}/favorite/toggle")
async def toggle_favorite(
    solution_id: int,
    request: FavoriteToggleRequest,
    session_id: Optional[str] = None,
    workflow: SolveWorkflow = Depends(get_workflow),
):
    try:
        return await workflow.toggle_favorite(session_id, solution_id, request.current)
    except MathSolverError as e:
        raise to_http_error(e)

@app.patch("/v1/saved/{solution_id}/favorite")
async def set_favorite(
    solution_id: int,
    request: FavoriteRequest,
    session_id: Optional[str] = None,
    workflow: SolveWorkflow = Depends(get_workflow),
):
    try:
        return await workflow.set_favorite(session_id, solution_id, request.is_favorite)
    except MathSolverError as e:
        raise to_http_error(e)

@app.patch("/v1/saved/{solution_id}/notes")
async def update_notes(
    solution_id: int,
    request: NotesUpdateRequest,
    session_id: Optional[str] = None,
    workflow: SolveWorkflow = Depends(get_workflow),
):
    try:
        return await workflow.update_notes(session_id, solution_id, request.notes)
    except MathSolverError as e:
        raise to_http_error(e)

@app.post("/api/math-solutions")
async def legacy_math_solutions(request: LegacySolutionsRequest, workflow: SolveWorkflow = Depends(get_workflow)):
    """
    Compatibility endpoint taking {method: GET|POST|PATCH, ...} in the body.
    Every call answers with the full saved collection.
    """
    try:
        if request.method == "GET":
            return await workflow.refresh_saved()

        if request.method == "POST":
            if not request.equation or request.solution is None:
                raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "equation and solution are required")
            return await workflow.save_solution(None, request.equation, request.solution, request.notes or "")

        if request.id is None:
            raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "id is required")
        if request.is_favorite is None and request.notes is None:
            raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "nothing to update")
        items = None
        if request.is_favorite is not None:
            items = await workflow.set_favorite(None, request.id, request.is_favorite)
        if request.notes is not None:
            items = await workflow.update_notes(None, request.id, request.notes)
        return items
    except MathSolverError as e:
        raise to_http_error(e)

# --- Preferences ---

@app.get("/v1/preferences", response_model=Preferences)
async def get_preferences(store: PreferencesStore = Depends(get_preferences_store)):
    return await store.load()

@app.put("/v1/preferences", response_model=Preferences)
async def put_preferences(prefs: Preferences, store: PreferencesStore = Depends(get_preferences_store)):
    return await store.save(prefs)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=settings.backend_port, reload=True)
