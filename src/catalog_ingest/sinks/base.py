"""Abstract base classes for the pipeline's downstream stores.

Adding a vector backend only requires subclassing :class:`VectorSinkBase`
and implementing :meth:`VectorSinkBase._write`.  Dimension validation and
the empty-batch short-circuit live here so every backend gets them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from catalog_ingest.errors import DimensionMismatchError
from catalog_ingest.models import Chunk, DatasetMetadata, DocumentNode, EmbeddingVector, SourceInfo


def validate_dimensions(vectors: Sequence[EmbeddingVector], expected_dimension: int) -> None:
    """Raise :class:`DimensionMismatchError` for the first vector of the wrong length."""
    for v in vectors:
        if len(v.values) != expected_dimension:
            raise DimensionMismatchError(v.id, expected_dimension, len(v.values))


class VectorSinkBase(ABC):
    """Backend-agnostic vector upsert interface.

    Upserts are keyed by :attr:`EmbeddingVector.id`; an existing id is
    replaced (vector and metadata, no merge).
    """

    name: str = "vector"

    def upsert(self, vectors: Sequence[EmbeddingVector], expected_dimension: int) -> int:
        """Validate every vector, then write them all in one backend call.

        Returns
        -------
        int
            Number of vectors written.

        Raises
        ------
        DimensionMismatchError
            Before anything is written, if any vector has the wrong length.
        SinkError
            If the backend rejects the write.
        """
        if not vectors:
            return 0
        validate_dimensions(vectors, expected_dimension)
        self._write(list(vectors))
        return len(vectors)

    @abstractmethod
    def _write(self, vectors: list[EmbeddingVector]) -> None:
        """Persist already-validated *vectors*."""
        ...

    def close(self) -> None:
        """Release connections.  Optional."""


class GraphSinkBase(ABC):
    """Materializes ``Source → Dataset → Document → Chunk`` in a graph store."""

    name: str = "graph"

    @abstractmethod
    def create_document_graph(
        self,
        source: SourceInfo,
        dataset: DatasetMetadata,
        document: DocumentNode,
        chunks: Sequence[Chunk],
    ) -> None:
        """Merge Source/Dataset nodes and create the Document with its Chunks."""
        ...

    def close(self) -> None:
        """Release connections.  Optional."""
