"""Explicit dependency objects built once per process.

Store clients, the embedder and the checksum ledger are constructed here from
:class:`~catalog_ingest.config.Settings` and passed into the pipeline; nothing
downstream reaches for module-level connection state.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

import requests

from catalog_ingest.config import Settings
from catalog_ingest.ingestion.checksum import FileChecksumStore
from catalog_ingest.ingestion.chunker import ChunkingParams
from catalog_ingest.ingestion.embedder import Embedder, build_embedder, resolve_dimension
from catalog_ingest.ingestion.fetcher import new_session
from catalog_ingest.models import SourceInfo
from catalog_ingest.sinks.base import GraphSinkBase, VectorSinkBase

logger = logging.getLogger(__name__)


@dataclass
class SinkSet:
    """Which downstream stores a run writes to; ``None`` disables a sink."""

    vector: VectorSinkBase | None = None
    graph: GraphSinkBase | None = None

    def close(self) -> None:
        for sink in (self.vector, self.graph):
            if sink is not None:
                sink.close()


@dataclass
class IngestContext:
    """Everything one ingestion run depends on."""

    source: SourceInfo
    embedder: Embedder
    dimension: int
    checksums: FileChecksumStore
    sinks: SinkSet = field(default_factory=SinkSet)
    chunking: ChunkingParams = field(default_factory=ChunkingParams)
    session: requests.Session = field(default_factory=new_session)
    request_timeout: float = 60.0
    max_retries: int = 3
    max_workers: int = 1
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        """Stop every in-flight and future run on this context (shutdown, interrupt)."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def close(self) -> None:
        self.sinks.close()
        self.session.close()


def build_vector_sink(
    settings: Settings,
    session: requests.Session | None = None,
    dimension: int | None = None,
) -> VectorSinkBase | None:
    """Return the configured vector sink, or ``None`` when its connection params are absent."""
    if settings.vector_store == "pgvector":
        if not settings.database_url:
            logger.warning("DATABASE_URL not set; vectors will not be upserted.")
            return None
        from catalog_ingest.sinks.pgvector_sink import PgVectorSink

        return PgVectorSink(settings.database_url, table=settings.pg_table, dimension=dimension)

    if settings.vector_store == "pinecone":
        if not (settings.pinecone_upsert_url and settings.pinecone_api_key):
            logger.warning(
                "Pinecone config missing; vectors will not be upserted. "
                "Set PINECONE_UPSERT_URL and PINECONE_API_KEY to enable."
            )
            return None
        from catalog_ingest.sinks.pinecone_sink import PineconeVectorSink

        return PineconeVectorSink(
            settings.pinecone_upsert_url,
            settings.pinecone_api_key,
            namespace=settings.pinecone_namespace,
            timeout=settings.request_timeout,
            session=session,
        )

    if not settings.chroma_host:
        logger.warning("Chroma host not set; vectors will not be upserted.")
        return None
    from catalog_ingest.sinks.chroma_sink import ChromaVectorSink

    return ChromaVectorSink(
        settings.chroma_collection,
        host=settings.chroma_host,
        port=settings.chroma_port,
    )


def build_graph_sink(settings: Settings) -> GraphSinkBase | None:
    """Return the Neo4j sink, or ``None`` when any connection field is empty."""
    if not (settings.neo4j_uri and settings.neo4j_user and settings.neo4j_password):
        logger.warning("Neo4j not configured; skipping graph node creation.")
        return None
    from catalog_ingest.sinks.neo4j_sink import Neo4jGraphSink

    return Neo4jGraphSink(
        settings.neo4j_uri,
        settings.neo4j_user,
        settings.neo4j_password,
        document_policy=settings.graph_document_policy,
        connection_timeout=settings.request_timeout,
    )


def build_context(settings: Settings) -> IngestContext:
    """Validate *settings* and construct every collaborator of a run.

    Raises
    ------
    ConfigError
        On invalid chunking parameters, an inconsistent vector dimension, or
        a missing embedding credential; no store connection is opened first.
    """
    chunking = ChunkingParams(settings.chunk_words, settings.overlap_words, settings.summary_chars)
    chunking.validate()
    dimension = resolve_dimension(settings.embedding_model, settings.vector_dimension)

    session = new_session()
    embedder = build_embedder(settings, session=session)
    sinks = SinkSet(
        vector=build_vector_sink(settings, session, dimension),
        graph=build_graph_sink(settings),
    )

    return IngestContext(
        source=SourceInfo(
            source_id=settings.catalog_source_id,
            name=settings.catalog_name,
            base_url=settings.catalog_base_url,
        ),
        embedder=embedder,
        dimension=dimension,
        checksums=FileChecksumStore(settings.ingest_base_dir),
        sinks=sinks,
        chunking=chunking,
        session=session,
        request_timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        max_workers=settings.max_workers,
    )
