"""RAG workflow state — shared across all graph nodes.

The state is the single source of truth flowing through the LangGraph
workflow.  Each field is documented so that new nodes can be added
without guessing what data is available.
"""

from __future__ import annotations

from typing import Annotated, Any, TypedDict

from pydantic import BaseModel

from grounded_rag.rag.context import AssembledContext
from grounded_rag.retrieval.models import SearchResponse

VALID_ROLES = frozenset({"user", "assistant", "system"})


class ConversationTurn(BaseModel):
    """A prior chat turn as received from the client.

    Role and content are accepted loosely so that malformed turns can be
    filtered out instead of failing the whole request.
    """

    role: Any = None
    content: Any = None

    @property
    def is_valid(self) -> bool:
        return self.role in VALID_ROLES and isinstance(self.content, str)


# ---------------------------------------------------------------------------
# Reducers
# ---------------------------------------------------------------------------


def _append_list(existing: list[Any], new: list[Any]) -> list[Any]:
    """Reducer that appends *new* items to the *existing* list."""
    return existing + new


# ---------------------------------------------------------------------------
# Workflow state
# ---------------------------------------------------------------------------


class RagState(TypedDict):
    """Typed state that flows through the RAG graph.

    Attributes
    ----------
    query:
        The user's current question.
    collection_id:
        Search collection to query.
    turns:
        Prior conversation turns (unvalidated).
    want_thoughts:
        Whether the answer should carry a reasoning summary.
    search:
        Output of the ``retrieve`` node.
    context:
        Output of the ``assemble`` node.
    answer / thoughts / usage:
        Output of the ``synthesize`` (or ``no_results``) node.
    notes:
        Degradation notes appended by any node.
    """

    query: str
    collection_id: str
    turns: list[ConversationTurn]
    want_thoughts: bool
    search: SearchResponse
    context: AssembledContext
    answer: str
    thoughts: list[str] | None
    usage: dict[str, int]
    notes: Annotated[list[str], _append_list]
