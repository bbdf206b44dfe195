"""Service container — builds the pipeline components from settings.

Components are constructed on first use, so missing search or chat
credentials only fail the routes that need them (with
:class:`ConfigurationError`).  Missing embedding or summary credentials
degrade ingestion instead.  Tests pass pre-built components.
"""

from __future__ import annotations

import logging
from functools import cached_property
from typing import Any

from grounded_rag.config import settings
from grounded_rag.errors import ConfigurationError
from grounded_rag.ingestion.embedder import EmbeddingGenerator, build_embedding_client
from grounded_rag.ingestion.service import IngestionService
from grounded_rag.ingestion.summarizer import Summarizer
from grounded_rag.rag.context import ContextAssembler
from grounded_rag.rag.graph import build_graph
from grounded_rag.rag.llm import build_chat_model
from grounded_rag.rag.question import DocumentQuestionAnswerer
from grounded_rag.rag.synthesizer import AnswerSynthesizer
from grounded_rag.retrieval.groundx_client import GroundXClient
from grounded_rag.retrieval.retriever import Retriever
from grounded_rag.storage import DocumentStore, build_document_backend

logger = logging.getLogger(__name__)


class Services:
    """Lazily-built application components.

    Any argument left as ``None`` is created from the global settings
    the first time it is needed.
    """

    def __init__(
        self,
        *,
        store: DocumentStore | None = None,
        ingestion: IngestionService | None = None,
        rag_graph: Any = None,
        question_answerer: DocumentQuestionAnswerer | None = None,
    ) -> None:
        for name, value in (
            ("store", store),
            ("ingestion", ingestion),
            ("rag_graph", rag_graph),
            ("question_answerer", question_answerer),
        ):
            if value is not None:
                # Pre-seed cached_property slots.
                self.__dict__[name] = value

    @cached_property
    def store(self) -> DocumentStore:
        logger.info("Using %s document backend", settings.document_backend)
        return DocumentStore(build_document_backend())

    @cached_property
    def embedder(self) -> EmbeddingGenerator:
        try:
            client = build_embedding_client()
        except ConfigurationError as exc:
            # Documents are still stored; their chunks just lack vectors.
            logger.warning("Embeddings disabled: %s", exc)
            client = None
        return EmbeddingGenerator(
            client,
            batch_size=settings.embedding_batch_size,
            batch_delay=settings.embedding_batch_delay,
        )

    @cached_property
    def ingestion(self) -> IngestionService:
        try:
            summary_llm = build_chat_model(temperature=settings.llm_temperature, max_tokens=settings.summary_max_tokens)
        except ConfigurationError as exc:
            logger.warning("Summaries disabled: %s", exc)
            summary_llm = None
        return IngestionService(self.store, self.embedder, Summarizer(summary_llm))

    @cached_property
    def rag_graph(self) -> Any:
        client = GroundXClient()
        return build_graph(
            Retriever(client),
            ContextAssembler(client),
            AnswerSynthesizer(build_chat_model()),
        )

    @cached_property
    def question_answerer(self) -> DocumentQuestionAnswerer:
        return DocumentQuestionAnswerer(self.store, self.embedder, build_chat_model())
