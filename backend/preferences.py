"""
Display preferences (theme, font size, contrast) stored under one key.
"""

import logging

import redis.asyncio as redis
from pydantic import ValidationError

from schemas import Preferences

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "mathmaster_prefs"


class PreferencesStore:

    def __init__(self, client: redis.Redis):
        self._client = client

    async def load(self) -> Preferences:
        raw = await self._client.get(PREFERENCES_KEY)
        if not raw:
            return Preferences()
        try:
            return Preferences.model_validate_json(raw)
        except ValidationError:
            logger.warning("[Preferences] Stored preferences unreadable, using defaults")
            return Preferences()

    async def save(self, prefs: Preferences) -> Preferences:
        await self._client.set(PREFERENCES_KEY, prefs.model_dump_json())
        return prefs
