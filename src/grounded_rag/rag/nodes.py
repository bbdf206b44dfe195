"""Graph nodes — each function is one step in the RAG workflow.

Node contract
-------------
* Accepts the full :class:`RagState` dict.
* Returns a *partial* dict with **only the keys that changed**.
* Collaborators (retriever, assembler, synthesizer) are bound through
  :func:`make_nodes`, so every node can be tested with fakes.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from grounded_rag.errors import InvalidRequestError
from grounded_rag.rag.context import AssembledContext, ContextAssembler
from grounded_rag.rag.state import RagState
from grounded_rag.rag.synthesizer import AnswerSynthesizer
from grounded_rag.retrieval.models import SearchResponse
from grounded_rag.retrieval.retriever import Retriever

logger = logging.getLogger(__name__)

Node = Callable[[RagState], Awaitable[dict[str, Any]]]


def make_nodes(
    retriever: Retriever,
    assembler: ContextAssembler,
    synthesizer: AnswerSynthesizer,
) -> dict[str, Node]:
    """Bind the workflow nodes to their collaborators."""

    # ── 1. RETRIEVE ───────────────────────────────────────────────────

    async def retrieve(state: RagState) -> dict[str, Any]:
        """Search the collection; an unreachable index counts as no results."""
        try:
            search = await retriever.search(state["query"], state["collection_id"])
        except InvalidRequestError:
            raise
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            logger.warning("Search failed for collection %s: %s", state["collection_id"], reason)
            return {
                "search": SearchResponse(),
                "notes": [f"Document search was unavailable ({reason})."],
            }
        return {"search": search}

    # ── 2. ASSEMBLE ───────────────────────────────────────────────────

    async def assemble(state: RagState) -> dict[str, Any]:
        """Enrich results with document detail and build the prompt context."""
        context = await assembler.assemble(state["search"], query=state["query"])
        notes = [
            f"{s.file_name}: {s.narrative[-1]}"
            for s in context.sources
            if s.document_id and not s.detail_available and s.narrative
        ]
        return {"context": context, "notes": notes}

    # ── 3. SYNTHESIZE ─────────────────────────────────────────────────

    async def synthesize(state: RagState) -> dict[str, Any]:
        """Generate the cited answer from the assembled context."""
        context = state["context"]
        result = await synthesizer.synthesize(
            state["query"],
            context.prompt_context,
            state.get("turns", []),
            want_thoughts=state.get("want_thoughts", False),
            source_count=len(context.sources),
        )
        return {
            "answer": result.answer,
            "thoughts": result.thoughts,
            "usage": result.usage,
            "notes": result.notes,
        }

    # ── 4. NO RESULTS ─────────────────────────────────────────────────

    async def no_results(state: RagState) -> dict[str, Any]:
        """Answer without calling the model when nothing was found."""
        result = await synthesizer.synthesize(
            state["query"],
            "",
            want_thoughts=state.get("want_thoughts", False),
            source_count=0,
        )
        return {
            "context": AssembledContext(),
            "answer": result.answer,
            "thoughts": result.thoughts,
            "usage": {},
        }

    return {
        "retrieve": retrieve,
        "assemble": assemble,
        "synthesize": synthesize,
        "no_results": no_results,
    }


# ── ROUTING (conditional edge) ────────────────────────────────────────


def route_after_retrieve(state: RagState) -> str:
    """Conditional edge after ``retrieve``.

    Returns
    -------
    str
        ``"no_results"`` when the search returned nothing, otherwise
        ``"assemble"``.
    """
    search = state.get("search")
    if search is None or search.result_count == 0:
        return "no_results"
    return "assemble"
