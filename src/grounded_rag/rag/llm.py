"""Chat model factory shared by synthesis, summaries and document Q&A.

With ``LLM_BASE_URL`` set, requests go to that OpenAI-compatible server
(vLLM, LiteLLM, a gateway); otherwise to OpenAI with ``OPENAI_API_KEY``.
Every model carries the backend timeout.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from grounded_rag.config import settings
from grounded_rag.errors import ConfigurationError

logger = logging.getLogger(__name__)


def build_chat_model(
    temperature: float = settings.llm_temperature,
    max_tokens: int = settings.llm_max_tokens,
) -> ChatOpenAI:
    """Return the configured chat model.

    Raises
    ------
    ConfigurationError
        When neither an API key nor a custom base URL is configured.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "timeout": settings.backend_timeout,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # Self-hosted servers ignore the key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    elif settings.openai_api_key:
        kwargs["api_key"] = settings.openai_api_key
    else:
        raise ConfigurationError("OPENAI_API_KEY or LLM_BASE_URL must be set")

    return ChatOpenAI(**kwargs)
