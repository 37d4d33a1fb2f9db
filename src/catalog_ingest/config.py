"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file.

    Connection parameters double as feature switches: leaving the Pinecone,
    Chroma or Neo4j fields empty disables that sink without failing the run.
    """

    # Embedding
    embedding_provider: str = Field(default="openai", pattern="^(openai|huggingface)$")
    openai_api_key: str = Field(default="", description="OpenAI API key for the embeddings endpoint")
    embedding_model: str = "text-embedding-3-small"
    embedding_base_url: str = "https://api.openai.com/v1"
    vector_dimension: int | None = Field(
        default=None,
        description="Expected embedding length; derived from the model when unset.",
    )

    # Chunking
    chunk_words: int = 800
    overlap_words: int = 128
    summary_chars: int = 300

    # Raw file storage / checksum ledger
    ingest_base_dir: Path = Path("data")

    # Vector store
    vector_store: str = Field(default="pinecone", pattern="^(pinecone|chroma|pgvector)$")
    pinecone_upsert_url: str = ""
    pinecone_api_key: str = ""
    pinecone_namespace: str = "default"
    chroma_host: str = ""
    chroma_port: int = 8000
    chroma_collection: str = "catalog_chunks"
    database_url: str = ""
    pg_table: str = "vectors"

    # Graph store
    neo4j_uri: str = ""
    neo4j_user: str = ""
    neo4j_password: str = ""
    graph_document_policy: str = Field(default="append", pattern="^(append|replace)$")

    # Catalog
    catalog_base_url: str = "https://open.canada.ca/data/en/api/3/action"
    catalog_source_id: str = "open_canada"
    catalog_name: str = "OpenCanada"
    max_datasets: int = 50

    # Transport / execution
    request_timeout: float = 60.0
    max_retries: int = 3
    max_workers: int = 1

    # Serving
    api_secret: str = ""
    port: int = 3001
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Process-wide settings instance.
settings = Settings()


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger for the CLI and the HTTP app."""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
