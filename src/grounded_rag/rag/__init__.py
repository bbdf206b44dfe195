"""
RAG — context assembly, answer synthesis, and the LangGraph workflow.

Public API
----------
- :func:`build_graph` — compile the retrieve → assemble → synthesize workflow.
- :func:`create_initial_state` / :func:`run_rag` — run it.
- :class:`ContextAssembler`, :class:`AnswerSynthesizer` — the workflow stages.
- :class:`DocumentQuestionAnswerer` — single-document question answering.
"""

from grounded_rag.rag.context import AssembledContext, ContextAssembler
from grounded_rag.rag.graph import RagAnswer, build_graph, create_initial_state, run_rag
from grounded_rag.rag.question import DocumentAnswer, DocumentQuestionAnswerer
from grounded_rag.rag.state import ConversationTurn, RagState
from grounded_rag.rag.synthesizer import (
    AnswerSynthesizer,
    PlainAnswer,
    StructuredAnswer,
    SynthesisResult,
    parse_llm_answer,
)

__all__ = [
    "AnswerSynthesizer",
    "AssembledContext",
    "ContextAssembler",
    "ConversationTurn",
    "DocumentAnswer",
    "DocumentQuestionAnswerer",
    "PlainAnswer",
    "RagAnswer",
    "RagState",
    "StructuredAnswer",
    "SynthesisResult",
    "build_graph",
    "create_initial_state",
    "parse_llm_answer",
    "run_rag",
]
