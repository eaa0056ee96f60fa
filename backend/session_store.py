"""
Redis-backed storage for session state documents.

Keys used:
- session:{session_id}  → JSON SessionState, expires after the session TTL

Transitions are applied inside an optimistic transaction (WATCH/MULTI), so
two requests touching the same session never overwrite each other's update.
"""

import json
import logging
import uuid
from typing import Callable, Optional

import redis.asyncio as redis

from errors import SessionNotFound
from state import Provider, SessionState, new_session_state

logger = logging.getLogger(__name__)


class SessionStore:
    """Loads, saves and transforms session state."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 86400):
        self._client = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"session:{session_id}"

    async def create(self, provider: Provider = "gemini") -> tuple[str, SessionState]:
        session_id = str(uuid.uuid4())
        state = new_session_state(provider)
        await self._client.set(self._key(session_id), json.dumps(state), ex=self.ttl_seconds)
        logger.info(f"[Session] Created {session_id}")
        return session_id, state

    async def load(self, session_id: str) -> SessionState:
        raw = await self._client.get(self._key(session_id))
        if raw is None:
            raise SessionNotFound()
        return json.loads(raw)

    async def apply(
        self,
        session_id: str,
        transition: Callable[..., SessionState],
        *args,
        **kwargs
    ) -> SessionState:
        """Apply a reducer transition and persist the result atomically."""
        key = self._key(session_id)
        result: Optional[SessionState] = None

        async def _update(pipe) -> None:
            nonlocal result
            raw = await pipe.get(key)
            if raw is None:
                raise SessionNotFound()
            result = transition(json.loads(raw), *args, **kwargs)
            pipe.multi()
            pipe.set(key, json.dumps(result), ex=self.ttl_seconds)

        await self._client.transaction(_update, key)
        return result
