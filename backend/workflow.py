"""
Solve workflow for MathMaster

Ties the solver, the stores and the reducer together:
- text or image entry (image is uploaded, transcribed, then solved)
- streamed solve with reconciliation into session state
- concurrent enrichment once a solution is committed
- saved-solution mutations followed by a full re-fetch

Every operation yields or returns plain event dicts that the HTTP layer
forwards to the browser.
"""

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, Callable, List, Optional

import reducer
from errors import (
    EmptyInputError,
    EnrichmentError,
    IncompleteSolutionError,
    MathSolverError,
    PersistenceError,
    UploadError,
)
from math_text import build_share_text, detect_math_topic
from saved_solutions import SAVE_FAILED, SavedSolutionStore
from schemas import Solution
from session_store import SessionStore
from solver import MathSolver
from state import SessionState
from uploads import ImageUploader

logger = logging.getLogger(__name__)


def local_timestamp() -> str:
    return datetime.now().strftime("%m/%d/%Y, %I:%M:%S %p")


class SolveWorkflow:
    """Runs user operations for one session at a time against shared stores."""

    def __init__(
        self,
        sessions: SessionStore,
        solver: MathSolver,
        saved: SavedSolutionStore,
        uploader: Optional[ImageUploader] = None,
        history_limit: int = 5,
        clock: Callable[[], str] = local_timestamp,
    ):
        self.sessions = sessions
        self.solver = solver
        self.saved = saved
        self.uploader = uploader
        self.history_limit = history_limit
        self.clock = clock

    # ========================================================================
    # SOLVE
    # ========================================================================

    async def solve(self, session_id: str, text: str) -> AsyncIterator[dict]:
        """Solve ``text`` and stream progress events."""
        if not text.strip():
            await self.sessions.apply(session_id, reducer.error_reported, EmptyInputError.message)
            yield {"type": "error", "message": EmptyInputError.message}
            return

        topic = detect_math_topic(text)
        state = await self.sessions.apply(session_id, reducer.solve_started, text, topic)
        generation = state["generation"]
        yield {"type": "started", "generation": generation, "topic": topic, "provider": state["provider"]}

        accumulated = ""
        try:
            async for accumulated in self.solver.stream_solution(text, state["provider"]):
                await self.sessions.apply(session_id, reducer.chunk_received, generation, accumulated)
                yield {"type": "chunk", "text": accumulated}
            solution = reducer.parse_solution(accumulated)
        except MathSolverError as e:
            logger.warning(f"[Solve] Generation {generation} failed: {e.message}")
            state = await self.sessions.apply(session_id, reducer.solve_failed, generation, e.message)
            if state["generation"] == generation:
                yield {"type": "error", "message": e.message}
            return

        state = await self.sessions.apply(
            session_id,
            reducer.solution_committed,
            generation,
            text,
            solution,
            self.clock(),
            self.history_limit
        )
        if state["generation"] != generation:
            logger.info(f"[Solve] Generation {generation} superseded, dropping result")
            return

        logger.info(f"[Solve] Committed solution with {len(solution.steps)} steps")
        yield {"type": "solution", "solution": state["solution"], "topic": topic}

        for event in await self._enrich(session_id, text, generation):
            yield event

    async def solve_image(self, session_id: str, data: bytes, content_type: Optional[str]) -> AsyncIterator[dict]:
        """Upload an image, transcribe the problem in it and solve that."""
        if self.uploader is None:
            raise RuntimeError("Image uploads are not configured")

        result = await self.uploader.upload(data, content_type)
        if result.error:
            logger.warning(f"[Image] Upload rejected: {result.error}")
            await self.sessions.apply(session_id, reducer.error_reported, UploadError.message)
            yield {"type": "error", "message": UploadError.message}
            return

        await self.sessions.apply(session_id, reducer.image_uploaded, result.url)
        yield {"type": "preview", "url": result.url}

        try:
            equation = await self.solver.transcribe_image(result.model_url)
        except UploadError as e:
            await self.sessions.apply(session_id, reducer.error_reported, e.message)
            yield {"type": "error", "message": e.message}
            return

        await self.sessions.apply(session_id, reducer.input_changed, equation)
        yield {"type": "input", "text": equation}

        async for event in self.solve(session_id, equation):
            yield event

    # ========================================================================
    # ENRICHMENT
    # ========================================================================

    async def _enrich(self, session_id: str, problem: str, generation: int) -> List[dict]:
        """Fetch alternative methods and practice problems concurrently."""
        return list(await asyncio.gather(
            self._alternatives(session_id, problem, generation),
            self._practice(session_id, problem, generation)
        ))

    async def _alternatives(self, session_id: str, problem: str, generation: int) -> dict:
        try:
            methods = await self.solver.alternative_methods(problem)
        except EnrichmentError as e:
            await self.sessions.apply(session_id, reducer.enrichment_failed, generation, e.message)
            return {"type": "error", "message": e.message}
        await self.sessions.apply(session_id, reducer.alternatives_loaded, generation, methods)
        return {"type": "alternatives", "methods": methods}

    async def _practice(self, session_id: str, problem: str, generation: int) -> dict:
        try:
            problems = await self.solver.practice_problems(problem)
        except EnrichmentError as e:
            await self.sessions.apply(session_id, reducer.enrichment_failed, generation, e.message)
            return {"type": "error", "message": e.message}
        await self.sessions.apply(session_id, reducer.practice_loaded, generation, problems)
        return {"type": "practice", "problems": problems}

    async def generate_alternatives(self, session_id: str) -> SessionState:
        state = await self.sessions.load(session_id)
        await self._alternatives(session_id, state["input"], state["generation"])
        return await self.sessions.load(session_id)

    async def generate_practice(self, session_id: str) -> SessionState:
        state = await self.sessions.load(session_id)
        await self._practice(session_id, state["input"], state["generation"])
        return await self.sessions.load(session_id)

    # ========================================================================
    # SAVED SOLUTIONS
    # ========================================================================

    async def _report(self, session_id: Optional[str], error: MathSolverError) -> None:
        if session_id is not None:
            await self.sessions.apply(session_id, reducer.error_reported, error.message)

    async def refresh_saved(self, session_id: Optional[str] = None) -> List[dict]:
        """Re-fetch the full saved collection into the session cache."""
        try:
            items = [s.model_dump() for s in await self.saved.list_all()]
        except PersistenceError as e:
            await self._report(session_id, e)
            raise
        if session_id is not None:
            await self.sessions.apply(session_id, reducer.saved_loaded, items)
        return items

    async def save_solution(
        self,
        session_id: Optional[str],
        equation: str,
        solution: Solution,
        notes: str = "",
    ) -> List[dict]:
        try:
            await self.saved.create(equation, solution, notes)
        except PersistenceError as e:
            await self._report(session_id, e)
            raise
        if session_id is not None:
            await self.sessions.apply(session_id, reducer.notes_changed, "")
        return await self.refresh_saved(session_id)

    async def save_current(self, session_id: str, notes: Optional[str] = None) -> List[dict]:
        """Save the session's current solution with the notes draft."""
        state = await self.sessions.load(session_id)
        if state["solution"] is None:
            error = IncompleteSolutionError(SAVE_FAILED)
            await self._report(session_id, error)
            raise error
        return await self.save_solution(
            session_id,
            state["solution_input"],
            Solution.model_validate(state["solution"]),
            state["notes"] if notes is None else notes
        )

    async def toggle_favorite(self, session_id: Optional[str], solution_id: int, current: bool) -> List[dict]:
        return await self.set_favorite(session_id, solution_id, not current)

    async def set_favorite(self, session_id: Optional[str], solution_id: int, is_favorite: bool) -> List[dict]:
        try:
            await self.saved.set_favorite(solution_id, is_favorite)
        except PersistenceError as e:
            await self._report(session_id, e)
            raise
        return await self.refresh_saved(session_id)

    async def update_notes(self, session_id: Optional[str], solution_id: int, notes: str) -> List[dict]:
        try:
            await self.saved.update_notes(solution_id, notes)
        except PersistenceError as e:
            await self._report(session_id, e)
            raise
        return await self.refresh_saved(session_id)

    # ========================================================================
    # SHARE
    # ========================================================================

    async def share_text(self, session_id: str, url: str) -> Optional[str]:
        state = await self.sessions.load(session_id)
        if state["solution"] is None:
            return None
        return build_share_text(state["solution_input"], state["solution"]["final_answer"], url)
