"""
Sinks — downstream stores receiving pipeline output.

Public surface
--------------
- :class:`VectorSinkBase` — abstract vector backend (subclass for new stores).
- :class:`GraphSinkBase` — abstract graph backend.
- :class:`ChromaVectorSink`, :class:`PineconeVectorSink`, :class:`PgVectorSink`, :class:`Neo4jGraphSink` — concrete backends.
"""

from catalog_ingest.sinks.base import GraphSinkBase, VectorSinkBase

__all__ = [
    "ChromaVectorSink",
    "GraphSinkBase",
    "Neo4jGraphSink",
    "PgVectorSink",
    "PineconeVectorSink",
    "VectorSinkBase",
]

_LAZY = {
    "ChromaVectorSink": "catalog_ingest.sinks.chroma_sink",
    "Neo4jGraphSink": "catalog_ingest.sinks.neo4j_sink",
    "PgVectorSink": "catalog_ingest.sinks.pgvector_sink",
    "PineconeVectorSink": "catalog_ingest.sinks.pinecone_sink",
}


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import concrete backends to avoid pulling in their clients at import time."""
    if name in _LAZY:
        import importlib

        return getattr(importlib.import_module(_LAZY[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
