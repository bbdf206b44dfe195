"""LLM document summaries for newly ingested files."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import BaseModel, Field

from grounded_rag.config import settings
from grounded_rag.rag.prompts import build_summary_messages

logger = logging.getLogger(__name__)

SUMMARY_UNAVAILABLE = "Summary unavailable: the document was stored, but an automatic summary could not be generated."


class Summary(BaseModel):
    text: str
    usage: dict[str, int] = Field(default_factory=dict)
    error: str | None = None


class Summarizer:
    """Produce a markdown summary; never raises.

    *llm* should be configured for the summary budget (see
    :func:`~grounded_rag.rag.llm.build_chat_model`); ``None`` disables
    summarisation.
    """

    def __init__(self, llm: Any | None, *, timeout: float = settings.backend_timeout) -> None:
        self._llm = llm
        self.timeout = timeout

    async def summarize(self, text: str) -> Summary:
        if self._llm is None:
            return Summary(text=SUMMARY_UNAVAILABLE, error="language model not configured")
        try:
            response = await asyncio.wait_for(self._llm.ainvoke(build_summary_messages(text)), timeout=self.timeout)
        except Exception as exc:
            logger.warning("Summary generation failed: %s", exc)
            return Summary(text=SUMMARY_UNAVAILABLE, error=str(exc) or type(exc).__name__)

        content = response.content if isinstance(response.content, str) else ""
        usage = {k: v for k, v in (getattr(response, "usage_metadata", None) or {}).items() if isinstance(v, int)}
        return Summary(text=content.strip() or "No summary returned.", usage=usage)
