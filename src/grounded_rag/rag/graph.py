"""LangGraph graph definition — the retrieval-augmented answer workflow.

This module wires the nodes from :mod:`grounded_rag.rag.nodes` into a
compiled :class:`StateGraph`:

1. **Retrieve** passages for the query from the search collection.
2. **Assemble** enriched sources and the citable prompt context.
3. **Synthesise** a grounded answer (optionally with thoughts).

When retrieval yields nothing the graph short-circuits to a fixed
answer without calling the model.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from langgraph.graph import END, StateGraph
from pydantic import BaseModel, Field

from grounded_rag.errors import InvalidRequestError
from grounded_rag.rag.context import AssembledContext, ContextAssembler
from grounded_rag.rag.nodes import make_nodes, route_after_retrieve
from grounded_rag.rag.state import ConversationTurn, RagState
from grounded_rag.rag.synthesizer import AnswerSynthesizer
from grounded_rag.retrieval.models import SearchResponse, Source
from grounded_rag.retrieval.retriever import Retriever


class RagAnswer(BaseModel):
    """Result of one full workflow run."""

    query: str
    answer: str
    thoughts: list[str] | None = None
    sources: list[Source] = Field(default_factory=list)
    result_count: int = 0
    notes: list[str] = Field(default_factory=list)
    usage: dict[str, int] = Field(default_factory=dict)


def build_graph(
    retriever: Retriever,
    assembler: ContextAssembler,
    synthesizer: AnswerSynthesizer,
) -> Any:
    """Construct and return the compiled LangGraph workflow.

    Graph topology::

        ┌─────────┐
        │ retrieve │
        └────┬─────┘
             │ results?
       ┌─────┴──────┐
       ▼            ▼
    ┌────────┐  ┌────────────┐
    │assemble│  │ no_results │
    └───┬────┘  └─────┬──────┘
        ▼             │
    ┌──────────┐      │
    │synthesize│      │
    └───┬──────┘      │
        ▼             ▼
             [ END ]

    Returns
    -------
    CompiledGraph
        A compiled workflow ready for ``.ainvoke()``.
    """
    nodes = make_nodes(retriever, assembler, synthesizer)
    workflow = StateGraph(RagState)

    # -- Nodes ---------------------------------------------------------------
    for name, fn in nodes.items():
        workflow.add_node(name, fn)

    # -- Edges ---------------------------------------------------------------
    workflow.set_entry_point("retrieve")
    workflow.add_conditional_edges(
        "retrieve",
        route_after_retrieve,
        {
            "assemble": "assemble",
            "no_results": "no_results",
        },
    )
    workflow.add_edge("assemble", "synthesize")
    workflow.add_edge("synthesize", END)
    workflow.add_edge("no_results", END)

    return workflow.compile()


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def create_initial_state(
    query: str,
    collection_id: str | int,
    *,
    turns: Sequence[ConversationTurn | dict[str, Any]] = (),
    want_thoughts: bool = False,
) -> dict[str, Any]:
    """Build the initial state dict for ``graph.ainvoke()``.

    Usage::

        graph = build_graph(retriever, assembler, synthesizer)
        state = create_initial_state("What is the notice period?", "1234")
        result = await graph.ainvoke(state)
        print(result["answer"])
    """
    return {
        "query": query,
        "collection_id": str(collection_id),
        "turns": [t if isinstance(t, ConversationTurn) else ConversationTurn.model_validate(t) for t in turns],
        "want_thoughts": want_thoughts,
        "search": SearchResponse(),
        "context": AssembledContext(),
        "answer": "",
        "thoughts": None,
        "usage": {},
        "notes": [],
    }


async def run_rag(
    graph: Any,
    query: str,
    collection_id: str | int | None,
    *,
    turns: Sequence[ConversationTurn | dict[str, Any]] = (),
    want_thoughts: bool = False,
) -> RagAnswer:
    """Validate the request, run *graph*, and collect a :class:`RagAnswer`.

    Raises
    ------
    InvalidRequestError
        If the query or collection id is missing.
    """
    if not query or not str(query).strip():
        raise InvalidRequestError("Query is required")
    if collection_id is None or not str(collection_id).strip():
        raise InvalidRequestError("Collection id is required")

    state = create_initial_state(query, collection_id, turns=turns, want_thoughts=want_thoughts)
    result = await graph.ainvoke(state)
    context: AssembledContext = result.get("context") or AssembledContext()
    return RagAnswer(
        query=query,
        answer=result.get("answer", ""),
        thoughts=result.get("thoughts"),
        sources=context.sources,
        result_count=result["search"].result_count if result.get("search") else 0,
        notes=result.get("notes", []),
        usage=result.get("usage", {}),
    )
