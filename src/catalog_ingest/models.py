"""Domain models flowing through the ingestion pipeline."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_UNSAFE_KEY_CHARS = re.compile(r"[^\w.-]", re.ASCII)


def make_resource_key(dataset_id: str, resource_name: str) -> str:
    """Return the filesystem-safe ledger key for one dataset resource.

    Every character outside ``[A-Za-z0-9_.-]`` is replaced by ``_``.
    """
    return _UNSAFE_KEY_CHARS.sub("_", f"{dataset_id}__{resource_name}")


# ---------------------------------------------------------------------------
# Catalog side
# ---------------------------------------------------------------------------


class SourceInfo(BaseModel):
    """The catalog a dataset was published by (one ``Source`` graph node)."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    name: str
    base_url: str = ""


class ResourceDescriptor(BaseModel):
    """One fetchable artifact inside a dataset.

    Attributes
    ----------
    resource_id:
        Catalog identifier of the resource (may be empty for odd catalogs).
    url:
        Download location.
    format:
        Lower-cased format hint reported by the catalog (``"csv"``, ``"xml"`` …).
    display_name:
        Human-readable name, used in citation labels.
    last_modified:
        Catalog modification timestamp, if any.
    """

    model_config = ConfigDict(frozen=True)

    resource_id: str = ""
    url: str = ""
    format: str = ""
    display_name: str = ""
    last_modified: str | None = None

    @property
    def key_name(self) -> str:
        return self.resource_id or self.display_name


class DatasetMetadata(BaseModel):
    """A catalog entry grouping one or more resources."""

    model_config = ConfigDict(frozen=True)

    dataset_id: str
    title: str = ""
    description: str = ""
    resources: tuple[ResourceDescriptor, ...] = ()


class ResourceJob(BaseModel):
    """Everything the processor needs to ingest one resource."""

    model_config = ConfigDict(frozen=True)

    source: SourceInfo
    dataset: DatasetMetadata
    resource: ResourceDescriptor

    @property
    def resource_key(self) -> str:
        return make_resource_key(self.dataset.dataset_id, self.resource.key_name)

    @property
    def doc_id(self) -> str:
        return f"{self.dataset.dataset_id}:{self.resource.resource_id}"


# ---------------------------------------------------------------------------
# Pipeline-local records
# ---------------------------------------------------------------------------


class NormalizedText(BaseModel):
    """Linear text derived from a raw resource.

    ``degraded`` is set when a parser failed and a lower-precedence branch
    produced the text; ``notices`` says which branch failed and why.
    """

    text: str
    kind: str = "raw"
    degraded: bool = False
    notices: list[str] = Field(default_factory=list)


class Chunk(BaseModel):
    """A bounded, overlapping slice of normalized text — the unit of embedding."""

    chunk_index: int
    text: str
    summary: str
    token_estimate: int
    citation_label: str = ""
    chunk_id: str = ""


class EmbeddingVector(BaseModel):
    """A chunk's vector, keyed by ``{dataset_id}:{resource_id}:chunk:{index}``."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentNode(BaseModel):
    """Fields of the ``Document`` graph node created for one ingested resource."""

    doc_id: str
    title: str
    file_url: str
    mime: str = ""
    published_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ResourceStatus(str, Enum):
    SKIPPED = "skipped"
    DONE = "done"
    FAILED = "failed"


class ResourceStage(str, Enum):
    """Stage at which a resource failed."""

    FETCH = "fetch"
    PERSIST = "persist"
    NORMALIZE = "normalize"
    EMBEDDING = "embedding"
    SINK = "sink"
    COMMIT = "commit"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class ResourceResult(BaseModel):
    """Outcome of processing one resource: ``SKIPPED``, ``DONE(n)`` or ``FAILED(stage, cause)``."""

    dataset_id: str
    resource_id: str
    resource_key: str
    url: str = ""
    status: ResourceStatus
    stage: ResourceStage | None = None
    cause: str | None = None
    chunks_written: int = 0
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return self.status is not ResourceStatus.FAILED


class RunReport(BaseModel):
    """Aggregate report of one ingestion run."""

    results: list[ResourceResult] = Field(default_factory=list)
    dataset_errors: dict[str, str] = Field(default_factory=dict)
    skipped_unsupported: int = 0
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    def _with_status(self, status: ResourceStatus) -> list[ResourceResult]:
        return [r for r in self.results if r.status is status]

    @property
    def succeeded(self) -> list[ResourceResult]:
        return self._with_status(ResourceStatus.DONE)

    @property
    def skipped(self) -> list[ResourceResult]:
        return self._with_status(ResourceStatus.SKIPPED)

    @property
    def failed(self) -> list[ResourceResult]:
        return self._with_status(ResourceStatus.FAILED)

    def summary(self) -> dict[str, Any]:
        """JSON-ready summary returned by the trigger endpoint and the CLI."""
        return {
            "processed": len(self.results),
            "succeeded": len(self.succeeded),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "skipped_unsupported": self.skipped_unsupported,
            "chunks_written": sum(r.chunks_written for r in self.results),
            "dataset_errors": dict(self.dataset_errors),
            "failures": [
                {
                    "resource_key": r.resource_key,
                    "url": r.url,
                    "stage": r.stage.value if r.stage else None,
                    "cause": r.cause,
                }
                for r in self.failed
            ],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
