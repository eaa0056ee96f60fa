"""
Saved-solution persistence backed by Redis.

Four explicit operations: list, create, update favorite, update notes.

Keys used:
- saved_solutions:next_id  → id counter
- saved_solutions:index    → sorted set of ids scored by creation time
- saved_solution:{id}      → JSON SavedSolution
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

import redis.asyncio as redis
from pydantic import ValidationError

from errors import PersistenceError, SavedSolutionNotFound
from schemas import SavedSolution, Solution

logger = logging.getLogger(__name__)

LOAD_FAILED = "Failed to load saved solutions"
SAVE_FAILED = "Failed to save solution"
FAVORITE_FAILED = "Failed to update favorite status"
NOTES_FAILED = "Failed to update notes"

INDEX_KEY = "saved_solutions:index"
NEXT_ID_KEY = "saved_solutions:next_id"


class SavedSolutionStore:
    """Saved solutions, newest first."""

    def __init__(self, client: redis.Redis):
        self._client = client

    @staticmethod
    def _key(solution_id: int) -> str:
        return f"saved_solution:{solution_id}"

    async def list_all(self) -> List[SavedSolution]:
        try:
            ids = await self._client.zrevrange(INDEX_KEY, 0, -1)
            if not ids:
                return []
            rows = await self._client.mget([self._key(int(i)) for i in ids])
        except redis.RedisError as e:
            logger.error(f"[Saved] List failed: {e}")
            raise PersistenceError(LOAD_FAILED) from e
        try:
            return [SavedSolution.model_validate_json(row) for row in rows if row is not None]
        except ValidationError as e:
            logger.error(f"[Saved] Unreadable record in collection: {e}")
            raise PersistenceError(LOAD_FAILED) from e

    async def create(self, equation: str, solution: Solution, notes: str = "") -> SavedSolution:
        try:
            solution_id = await self._client.incr(NEXT_ID_KEY)
            record = SavedSolution(
                id=solution_id,
                equation=equation,
                solution=solution,
                notes=notes,
                is_favorite=False,
                created_at=datetime.now(timezone.utc).isoformat()
            )
            pipe = self._client.pipeline()
            pipe.set(self._key(solution_id), record.model_dump_json())
            pipe.zadd(INDEX_KEY, {str(solution_id): time.time()})
            await pipe.execute()
        except redis.RedisError as e:
            logger.error(f"[Saved] Create failed: {e}")
            raise PersistenceError(SAVE_FAILED) from e
        logger.info(f"[Saved] Created solution {solution_id}")
        return record

    async def _update(self, solution_id: int, message: str, **changes) -> SavedSolution:
        """Read-modify-write one record inside a WATCH/MULTI transaction."""
        key = self._key(solution_id)
        record: Optional[SavedSolution] = None

        async def _apply(pipe) -> None:
            nonlocal record
            raw = await pipe.get(key)
            if raw is None:
                raise SavedSolutionNotFound()
            record = SavedSolution.model_validate_json(raw).model_copy(update=changes)
            pipe.multi()
            pipe.set(key, record.model_dump_json())

        try:
            await self._client.transaction(_apply, key)
        except redis.RedisError as e:
            logger.error(f"[Saved] Update of {solution_id} failed: {e}")
            raise PersistenceError(message) from e
        except ValidationError as e:
            logger.error(f"[Saved] Record {solution_id} is unreadable: {e}")
            raise PersistenceError(message) from e
        return record

    async def set_favorite(self, solution_id: int, is_favorite: bool) -> SavedSolution:
        return await self._update(solution_id, FAVORITE_FAILED, is_favorite=is_favorite)

    async def update_notes(self, solution_id: int, notes: str) -> SavedSolution:
        return await self._update(solution_id, NOTES_FAILED, notes=notes)
