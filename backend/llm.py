"""
Chat model construction for the two interchangeable solving providers and
the vision-capable transcription model.
"""

import logging
from typing import Optional

from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from config import settings

logger = logging.getLogger(__name__)

PROVIDERS = ("gemini", "gpt")


def get_chat_model(
    provider: str,
    json_mode: bool = True,
    temperature: float = 0.2,
    model: Optional[str] = None,
) -> BaseChatModel:
    """
    Build a chat model for a provider.

    With json_mode the provider is asked for a bare JSON object, which is
    what the solution and enrichment parsers expect.
    """
    if provider == "gemini":
        kwargs = {"response_mime_type": "application/json"} if json_mode else {}
        return ChatGoogleGenerativeAI(
            model=model or settings.gemini_model,
            google_api_key=settings.google_api_key,
            temperature=temperature,
            **kwargs
        )
    if provider == "gpt":
        model_kwargs = {"response_format": {"type": "json_object"}} if json_mode else {}
        return ChatOpenAI(
            model=model or settings.gpt_model,
            api_key=settings.openai_api_key,
            temperature=temperature,
            model_kwargs=model_kwargs
        )
    raise ValueError(f"Unknown provider: {provider}")


def get_vision_model() -> BaseChatModel:
    logger.debug(f"[LLM] Vision model: {settings.vision_provider}/{settings.vision_model}")
    return get_chat_model(
        settings.vision_provider,
        json_mode=False,
        temperature=0,
        model=settings.vision_model
    )
