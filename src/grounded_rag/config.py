"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible chat API. Leave empty to use "
            "OpenAI cloud."
        ),
    )
    llm_temperature: float = 0.3
    llm_max_tokens: int = 2000
    summary_max_tokens: int = 1000

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = 20
    embedding_batch_delay: float = Field(default=0.2, description="Pause between embedding batches (seconds)")

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Search / document-detail service
    search_api_url: str = "https://api.groundx.ai/api"
    search_api_key: str = ""
    search_result_limit: int = 10

    # Timeouts for every outbound call
    backend_timeout: float = 30.0

    # Document store
    document_backend: str = Field(default="memory", description="'memory' or 'chroma'")
    chroma_host: str = ""
    chroma_port: int = 8000
    chroma_persist_dir: str = ""
    chroma_collection_prefix: str = "grounded_rag"
    chunked_storage_threshold: int = 500_000
    preview_chars: int = 4000
    document_read_retries: int = 2
    document_retry_delay: float = 0.5

    # Conversation
    history_window: int = 8

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def configure_logging(level: str = "INFO") -> None:
    """Install a root handler once; later calls only adjust the level."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(level.upper())


# Module-level singleton; import `settings` wherever needed.
settings = Settings()
