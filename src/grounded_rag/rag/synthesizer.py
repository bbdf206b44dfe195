"""Answer synthesis — grounded, cited answers from an LLM.

The model output is parsed exactly once by :func:`parse_llm_answer`
into one of two variants, :class:`StructuredAnswer` (the JSON
``{answer, thoughts}`` object was honoured) or :class:`PlainAnswer`
(anything else, kept verbatim).
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any, Union

from pydantic import BaseModel, Field

from grounded_rag.config import settings
from grounded_rag.rag.prompts import build_rag_messages
from grounded_rag.rag.state import ConversationTurn

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = "I couldn't find any relevant information about that in the documents."
LLM_UNAVAILABLE_ANSWER = (
    "I found relevant information in the documents but could not generate an "
    "answer right now. Please try again shortly."
)


class StructuredAnswer(BaseModel):
    answer: str
    thoughts: list[str]


class PlainAnswer(BaseModel):
    text: str


ParsedAnswer = Union[StructuredAnswer, PlainAnswer]


class SynthesisResult(BaseModel):
    """Final answer plus optional reasoning.

    ``thoughts`` is ``None`` when thoughts were not requested; otherwise
    it is never empty.  ``notes`` records degraded steps.
    """

    answer: str
    thoughts: list[str] | None = None
    notes: list[str] = Field(default_factory=list)
    usage: dict[str, int] = Field(default_factory=dict)


def parse_llm_answer(raw: str) -> ParsedAnswer:
    """Decide between the two answer variants.

    A reply wrapped in a markdown code fence is unwrapped before
    parsing.  Only a JSON object with a string ``answer`` and a list
    ``thoughts`` counts as structured.

    >>> parse_llm_answer('{"answer": "Yes", "thoughts": ["a"]}')
    StructuredAnswer(answer='Yes', thoughts=['a'])
    >>> parse_llm_answer("not json")
    PlainAnswer(text='not json')
    """
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.index("\n") if "\n" in cleaned else 3
        cleaned = cleaned[first_newline + 1 :]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()
    try:
        data = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError):
        return PlainAnswer(text=raw)

    if isinstance(data, dict) and isinstance(data.get("answer"), str) and isinstance(data.get("thoughts"), list):
        return StructuredAnswer(answer=data["answer"], thoughts=[str(t) for t in data["thoughts"]])
    return PlainAnswer(text=raw)


def heuristic_thoughts(source_count: int) -> list[str]:
    """Fixed reasoning summary used when the model gave none."""
    return [
        f"Analyzed {source_count} source(s) retrieved for this question.",
        "Identified the passages most relevant to the question.",
        "Composed the answer from those passages, citing sources by name.",
    ]


def select_history(turns: Sequence[ConversationTurn | dict[str, Any]], window: int) -> list[tuple[str, str]]:
    """Keep the last *window* turns, then drop invalid ones.

    A turn is valid when its role is ``user``, ``assistant`` or
    ``system`` and its content is a string.
    """
    recent = list(turns)[-window:] if window > 0 else []
    history: list[tuple[str, str]] = []
    for turn in recent:
        if isinstance(turn, dict):
            turn = ConversationTurn.model_validate(turn)
        if isinstance(turn, ConversationTurn) and turn.is_valid:
            history.append((turn.role, turn.content))
    return history


class AnswerSynthesizer:
    """Generate an answer constrained to the assembled context.

    Parameters
    ----------
    llm:
        LangChain chat model (``ainvoke`` / ``bind``).  Temperature and
        token limits are configured on the model itself.
    history_window:
        Number of prior conversation turns considered.
    timeout:
        Upper bound in seconds for the model call.
    """

    def __init__(
        self,
        llm: Any,
        *,
        history_window: int = settings.history_window,
        timeout: float = settings.backend_timeout,
    ) -> None:
        self._llm = llm
        self.history_window = history_window
        self.timeout = timeout

    async def synthesize(
        self,
        query: str,
        prompt_context: str,
        recent_turns: Sequence[ConversationTurn | dict[str, Any]] = (),
        want_thoughts: bool = False,
        source_count: int = 0,
    ) -> SynthesisResult:
        if source_count == 0:
            logger.info("No sources for query; skipping LLM call")
            return SynthesisResult(
                answer=NO_RESULTS_ANSWER,
                thoughts=["The search returned no matching documents, so no answer was generated."]
                if want_thoughts
                else None,
            )

        history = select_history(recent_turns, self.history_window)
        messages = build_rag_messages(query, prompt_context, history, want_thoughts=want_thoughts)
        model = self._llm.bind(response_format={"type": "json_object"}) if want_thoughts else self._llm

        try:
            response = await asyncio.wait_for(model.ainvoke(messages), timeout=self.timeout)
        except Exception as exc:
            reason = "timed out" if isinstance(exc, asyncio.TimeoutError) else str(exc) or type(exc).__name__
            logger.warning("Answer generation failed: %s", reason)
            return SynthesisResult(
                answer=LLM_UNAVAILABLE_ANSWER,
                thoughts=heuristic_thoughts(source_count) if want_thoughts else None,
                notes=[f"Language model unavailable ({reason}); sources are listed without a generated answer."],
            )

        raw = _message_text(response)
        usage = {
            k: v for k, v in (getattr(response, "usage_metadata", None) or {}).items() if isinstance(v, int)
        }

        if not want_thoughts:
            return SynthesisResult(answer=raw, usage=usage)

        parsed = parse_llm_answer(raw)
        if isinstance(parsed, StructuredAnswer):
            return SynthesisResult(
                answer=parsed.answer,
                thoughts=parsed.thoughts or heuristic_thoughts(source_count),
                usage=usage,
            )

        logger.warning("Model reply was not the requested JSON object; using raw text (%.200s)", raw)
        return SynthesisResult(
            answer=parsed.text,
            thoughts=heuristic_thoughts(source_count),
            notes=["Structured reasoning was unavailable; the answer is shown as generated."],
            usage=usage,
        )


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    # Multi-part content: keep the text parts.
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)
