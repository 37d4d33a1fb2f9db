"""Shared pytest configuration and fixtures.

The fakes below let the whole pipeline run without OpenAI, Chroma,
Pinecone, Neo4j or the network.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence
from unittest.mock import MagicMock

import pytest
import requests

from catalog_ingest.context import IngestContext, SinkSet
from catalog_ingest.errors import EmbeddingProviderError, SinkError
from catalog_ingest.ingestion.checksum import FileChecksumStore
from catalog_ingest.ingestion.chunker import ChunkingParams
from catalog_ingest.ingestion.embedder import Embedder
from catalog_ingest.models import (
    Chunk,
    DatasetMetadata,
    DocumentNode,
    EmbeddingVector,
    ResourceDescriptor,
    ResourceJob,
    SourceInfo,
)
from catalog_ingest.sinks.base import GraphSinkBase, VectorSinkBase

DIM = 4


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ─────────────────────────────────────────────────────────────


class FakeEmbedder(Embedder):
    """Deterministic embedder; fails on the call numbers listed in ``fail_on``."""

    model = "fake-embedding-model"

    def __init__(self, dim: int = DIM, fail_on: Sequence[int] = ()) -> None:
        self.dim = dim
        self.fail_on = set(fail_on)
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        call_no = len(self.calls)
        self.calls.append(text)
        if call_no in self.fail_on:
            raise EmbeddingProviderError("rate limited", status=429)
        return [float(len(text) % 7)] + [0.5] * (self.dim - 1)


class RecordingVectorSink(VectorSinkBase):
    name = "recording-vector"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.batches: list[list[EmbeddingVector]] = []

    def _write(self, vectors: list[EmbeddingVector]) -> None:
        if self.fail:
            raise SinkError(self.name, "connection refused")
        self.batches.append(vectors)

    @property
    def ids(self) -> list[str]:
        return [v.id for batch in self.batches for v in batch]


class RecordingGraphSink(GraphSinkBase):
    name = "recording-graph"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.documents: list[tuple[SourceInfo, DatasetMetadata, DocumentNode, list[Chunk]]] = []

    def create_document_graph(self, source, dataset, document, chunks) -> None:  # noqa: ANN001
        if self.fail:
            raise SinkError(self.name, "session expired")
        self.documents.append((source, dataset, document, list(chunks)))


def http_response(content: bytes | str = b"", status: int = 200) -> MagicMock:
    """A ``requests.Response`` stand-in."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    resp = MagicMock(status_code=status, content=content, ok=status < 400)
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    return resp


class FakeSession:
    """Serves canned bodies per URL; unknown URLs answer 404."""

    def __init__(self, bodies: dict[str, Any] | None = None) -> None:
        self.bodies: dict[str, Any] = dict(bodies or {})
        self.requested: list[str] = []

    def get(self, url: str, **kwargs: Any) -> MagicMock:
        self.requested.append(url)
        body = self.bodies.get(url)
        if body is None:
            return http_response(b"not found", status=404)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, MagicMock):
            return body
        return http_response(body)

    def close(self) -> None:
        pass


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def source() -> SourceInfo:
    return SourceInfo(source_id="open_canada", name="OpenCanada", base_url="https://catalog.test/api")


@pytest.fixture()
def make_job(source: SourceInfo) -> Callable[..., ResourceJob]:
    def _make(
        url: str = "https://files.test/data.txt",
        fmt: str = "txt",
        dataset_id: str = "ds-1",
        resource_id: str = "res-1",
        name: str = "Data file",
    ) -> ResourceJob:
        return ResourceJob(
            source=source,
            dataset=DatasetMetadata(dataset_id=dataset_id, title="Dataset One", description="About"),
            resource=ResourceDescriptor(resource_id=resource_id, url=url, format=fmt, display_name=name),
        )

    return _make


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture()
def vector_sink() -> RecordingVectorSink:
    return RecordingVectorSink()


@pytest.fixture()
def graph_sink() -> RecordingGraphSink:
    return RecordingGraphSink()


@pytest.fixture()
def make_ctx(
    tmp_path, source, fake_session, embedder, vector_sink, graph_sink
) -> Callable[..., IngestContext]:
    """Build an :class:`IngestContext` wired to the fakes; keyword overrides win."""

    def _make(**overrides: Any) -> IngestContext:
        kwargs: dict[str, Any] = {
            "source": source,
            "embedder": embedder,
            "dimension": DIM,
            "checksums": FileChecksumStore(tmp_path / "ledger"),
            "sinks": SinkSet(vector=vector_sink, graph=graph_sink),
            "chunking": ChunkingParams(window_words=10, overlap_words=2, summary_chars=40),
            "session": fake_session,
            "request_timeout": 5.0,
            "max_retries": 1,
        }
        kwargs.update(overrides)
        return IngestContext(**kwargs)

    return _make
