"""Error taxonomy for the ingestion pipeline.

Resource-level errors (:class:`FetchError`, :class:`EmbeddingProviderError`,
:class:`SinkError`) are caught by the resource processor and turned into a
``FAILED`` result.  :class:`ConfigError` is never absorbed; it aborts the run
before (or as soon as) it is detected.
"""

from __future__ import annotations

from dataclasses import dataclass


class IngestError(Exception):
    """Base class for every error raised by :mod:`catalog_ingest`."""


class ConfigError(IngestError):
    """Invalid configuration, e.g. chunk overlap not smaller than the window."""


class DimensionMismatchError(ConfigError):
    """An embedding's length differs from the configured vector dimension."""

    def __init__(self, vector_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Vector {vector_id!r} has dimension {actual}, expected {expected}"
        )
        self.vector_id = vector_id
        self.expected = expected
        self.actual = actual


class FetchError(IngestError):
    """Catalog or resource download failure (transport error or non-2xx)."""

    def __init__(self, url: str, message: str, status: int | None = None) -> None:
        super().__init__(f"Failed to download {url}: {message}")
        self.url = url
        self.status = status


class EmbeddingProviderError(IngestError):
    """The embedding provider answered with a non-success status or was unreachable."""

    def __init__(self, message: str, status: int | None = None) -> None:
        prefix = f"Embedding provider error ({status})" if status else "Embedding provider error"
        super().__init__(f"{prefix}: {message}")
        self.status = status
        self.message = message


class SinkError(IngestError):
    """A vector or graph store rejected a write."""

    def __init__(self, sink: str, message: str) -> None:
        super().__init__(f"{sink} sink failed: {message}")
        self.sink = sink


class IngestCancelled(IngestError):
    """The run was cancelled while this resource was in flight."""


@dataclass(frozen=True)
class ParseFallbackNotice:
    """Non-fatal record that normalization degraded to a lower-precedence branch."""

    branch: str
    reason: str

    def __str__(self) -> str:
        return f"{self.branch} parse failed, falling back: {self.reason}"
