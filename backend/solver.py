"""
Model calls for solving, enrichment and image transcription.

The solver streams the primary solution and returns enrichment content as
validated dicts. It never touches session state; workflow.py decides what to
commit.
"""

import json
import logging
from typing import AsyncIterator, Callable, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from pydantic import BaseModel, ValidationError

from config import settings
from errors import (
    AlternativeMethodsError,
    EnrichmentError,
    PracticeProblemsError,
    TransportError,
    UploadError,
)
from llm import get_chat_model, get_vision_model
from prompts import (
    IMAGE_TRANSCRIPTION_PROMPT,
    alternative_methods_prompt,
    practice_problems_prompt,
    solve_prompt,
)
from schemas import AlternativeMethods, PracticeProblems

logger = logging.getLogger(__name__)

ModelFactory = Callable[..., BaseChatModel]


def content_text(content) -> str:
    """Flatten message content (plain string or list of parts) into text."""
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


_HEX_DIGITS = "0123456789abcdefABCDEF"


def _is_json_escape(s: str, i: int) -> bool:
    # \frac, \times, \neq are LaTeX even though \f, \t, \n are JSON escapes
    next_char = s[i + 1]
    if next_char in '"\\/':
        return True
    if next_char in 'bfnrt':
        return not s[i + 2:i + 3].isalpha()
    if next_char == 'u':
        digits = s[i + 2:i + 6]
        return len(digits) == 4 and all(c in _HEX_DIGITS for c in digits)
    return False


def _fix_backslashes(s: str) -> str:
    # Models often return LaTeX with bare backslashes inside JSON strings
    result = []
    i = 0
    while i < len(s):
        if s[i] == '\\' and i + 1 < len(s):
            if _is_json_escape(s, i):
                result.append(s[i:i + 2])
                i += 2
            else:
                result.append('\\\\')
                i += 1
        else:
            result.append(s[i])
            i += 1
    return ''.join(result)


def extract_json_object(response_text: str) -> dict:
    """Pull the first balanced JSON object out of a model reply."""
    start_idx = response_text.find('{')
    if start_idx == -1:
        raise ValueError("No JSON in response")

    brace_count = 0
    end_idx = None
    for i, char in enumerate(response_text[start_idx:], start_idx):
        if char == '{':
            brace_count += 1
        elif char == '}':
            brace_count -= 1
            if brace_count == 0:
                end_idx = i
                break
    if end_idx is None:
        raise ValueError("Unterminated JSON in response")

    return json.loads(_fix_backslashes(response_text[start_idx:end_idx + 1]))


class MathSolver:
    """Talks to the solving, enrichment and vision models."""

    def __init__(
        self,
        model_factory: ModelFactory = get_chat_model,
        vision_factory: Callable[[], BaseChatModel] = get_vision_model,
        enrichment_provider: Optional[str] = None,
    ):
        self.model_factory = model_factory
        self.vision_factory = vision_factory
        self.enrichment_provider = enrichment_provider or settings.default_provider

    async def stream_solution(self, problem: str, provider: str) -> AsyncIterator[str]:
        """
        Stream a solution for ``problem``.

        Yields the full accumulated text after every chunk, so each value
        supersedes the previous one. Model or network failures surface as
        TransportError.
        """
        logger.info(f"[Solve] Provider: {provider}, Problem: {problem[:50]}")
        accumulated = ""
        try:
            llm = self.model_factory(provider, json_mode=True, temperature=0.2)
            async for chunk in llm.astream([HumanMessage(content=solve_prompt(problem))]):
                text = content_text(chunk.content)
                if not text:
                    continue
                accumulated += text
                yield accumulated
        except Exception as e:
            logger.error(f"[Solve] Provider {provider} failed: {e}", exc_info=True)
            raise TransportError() from e

    async def _structured(self, prompt: str, schema: type[BaseModel], error: type[EnrichmentError]) -> BaseModel:
        try:
            llm = self.model_factory(self.enrichment_provider, json_mode=True, temperature=0.7)
            result = await llm.ainvoke([HumanMessage(content=prompt)])
        except Exception as e:
            logger.error(f"[Enrichment] {schema.__name__} request failed: {e}", exc_info=True)
            raise error() from e

        try:
            data = extract_json_object(content_text(result.content))
            return schema.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"[Enrichment] Unusable {schema.__name__} payload: {e}")
            raise error() from e

    async def alternative_methods(self, problem: str) -> List[dict]:
        result = await self._structured(
            alternative_methods_prompt(problem), AlternativeMethods, AlternativeMethodsError
        )
        logger.info(f"[Enrichment] Generated {len(result.methods)} alternative methods")
        return [m.model_dump() for m in result.methods]

    async def practice_problems(self, problem: str) -> List[dict]:
        result = await self._structured(
            practice_problems_prompt(problem), PracticeProblems, PracticeProblemsError
        )
        logger.info(f"[Enrichment] Generated {len(result.problems)} practice problems")
        return [p.model_dump() for p in result.problems]

    async def transcribe_image(self, image_url: str) -> str:
        """Ask the vision model for the equation shown in an image."""
        message = HumanMessage(
            content=[
                {"type": "text", "text": IMAGE_TRANSCRIPTION_PROMPT},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]
        )
        try:
            llm = self.vision_factory()
            result = await llm.ainvoke([message])
        except Exception as e:
            logger.error(f"[Vision] Transcription failed: {e}", exc_info=True)
            raise UploadError() from e

        equation = content_text(result.content).strip()
        if not equation:
            raise UploadError()
        logger.info(f"[Vision] Extracted: {equation[:80]}")
        return equation
