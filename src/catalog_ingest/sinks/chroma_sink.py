"""Chroma implementation of the vector sink."""

from __future__ import annotations

import logging
from typing import Any

from catalog_ingest.errors import SinkError
from catalog_ingest.models import EmbeddingVector
from catalog_ingest.sinks.base import VectorSinkBase

logger = logging.getLogger(__name__)


def _flatten_metadata(meta: dict[str, Any]) -> dict[str, str | int | float | bool]:
    # Chroma metadata values must be flat str/int/float/bool
    return {k: v for k, v in meta.items() if isinstance(v, (str, int, float, bool))}


class ChromaVectorSink(VectorSinkBase):
    """Chroma-backed vector sink.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection (created if missing).
    host / port:
        Chroma server location.
    distance_metric:
        ``cosine`` | ``l2`` | ``ip``, applied when the collection is created.
    client:
        Pre-built client; a ``chromadb.HttpClient`` is created when omitted.
    """

    name = "chroma"

    def __init__(
        self,
        collection_name: str,
        *,
        host: str = "localhost",
        port: int = 8000,
        distance_metric: str = "cosine",
        client: Any = None,
    ) -> None:
        if client is None:
            import chromadb

            client = chromadb.HttpClient(host=host, port=port)
        self.collection_name = collection_name
        self._client = client
        self._collection = client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": distance_metric},
        )

    def _write(self, vectors: list[EmbeddingVector]) -> None:
        try:
            self._collection.upsert(
                ids=[v.id for v in vectors],
                embeddings=[v.values for v in vectors],
                documents=[str(v.metadata.get("text_summary", "")) for v in vectors],
                metadatas=[_flatten_metadata(v.metadata) for v in vectors],
            )
        except Exception as exc:
            raise SinkError(self.name, str(exc)) from exc
        logger.info("Upserted %d vectors into collection '%s'", len(vectors), self.collection_name)
