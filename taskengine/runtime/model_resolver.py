"""Oracle model wiring using environment-derived settings."""

from __future__ import annotations

from typing import Dict

from langchain_openai import ChatOpenAI

from taskengine.agents.interfaces import ModelResolver
from taskengine.config.settings import ModelSettings


def _chat_kwargs(settings: ModelSettings, model_id: str) -> Dict[str, object]:
    if not settings.api_key:
        raise RuntimeError(f"Missing API key for model {model_id}; set MODEL_API_KEY in .env")
    kwargs: Dict[str, object] = {
        "model": model_id,
        "api_key": settings.api_key,
        "temperature": settings.temperature,
    }
    if settings.base_url:
        kwargs["base_url"] = settings.base_url
    return kwargs


def build_model_resolver(settings: ModelSettings) -> ModelResolver:
    """Construct a resolver that returns ChatOpenAI-compatible clients."""

    def resolver(model_id: str):
        return ChatOpenAI(**_chat_kwargs(settings, model_id or settings.model_id))

    return resolver
