"""Per-resource state machine and the batch orchestrator.

States, strictly sequential with no retries across states::

    FETCHED → CHECKSUMMED → SKIPPED
                          → PARSED → CHUNKED → EMBEDDED → SUNK(vector) → SUNK(graph) → DONE

Resource-level failures become a ``FAILED(stage, cause)`` result and never
abort the batch.  :class:`~catalog_ingest.errors.ConfigError` is not a
resource failure and propagates to the caller.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Sequence

from catalog_ingest.context import IngestContext
from catalog_ingest.errors import (
    ConfigError,
    EmbeddingProviderError,
    FetchError,
    IngestCancelled,
    SinkError,
)
from catalog_ingest.ingestion.checksum import sha256_bytes
from catalog_ingest.ingestion.chunker import build_chunks
from catalog_ingest.ingestion.embedder import resolve_dimension
from catalog_ingest.ingestion.fetcher import download
from catalog_ingest.ingestion.normalizer import normalize
from catalog_ingest.models import (
    Chunk,
    DocumentNode,
    EmbeddingVector,
    ResourceJob,
    ResourceResult,
    ResourceStage,
    ResourceStatus,
)
from catalog_ingest.sinks.base import validate_dimensions

logger = logging.getLogger(__name__)


class ResourceProcessor:
    """Runs one resource through fetch → checksum → normalize → chunk → embed → sinks → commit."""

    def __init__(self, ctx: IngestContext) -> None:
        self.ctx = ctx

    # -- public API -----------------------------------------------------------

    def process(self, job: ResourceJob, run_cancel: threading.Event | None = None) -> ResourceResult:
        """Process *job* and return its result; only ``ConfigError`` escapes.

        *run_cancel* is the stop signal of the current run, observed in
        addition to the context-wide one.
        """
        key = job.resource_key
        with self.ctx.checksums.lock(key):
            try:
                return self._process(job, run_cancel)
            except IngestCancelled as exc:
                return self._failed(job, ResourceStage.CANCELLED, exc)
            except ConfigError:
                raise
            except Exception as exc:
                logger.exception("Unexpected error processing resource %s", job.resource.url)
                return self._failed(job, ResourceStage.INTERNAL, exc)

    # -- state machine --------------------------------------------------------

    def _check_cancelled(self, run_cancel: threading.Event | None) -> None:
        if self.ctx.cancelled or (run_cancel is not None and run_cancel.is_set()):
            raise IngestCancelled("ingestion run cancelled")

    def _process(self, job: ResourceJob, run_cancel: threading.Event | None) -> ResourceResult:
        ctx = self.ctx
        key = job.resource_key
        url = job.resource.url
        logger.info("Processing resource: %s", url)

        # FETCHED
        self._check_cancelled(run_cancel)
        try:
            raw = download(
                url,
                session=ctx.session,
                timeout=ctx.request_timeout,
                max_retries=ctx.max_retries,
            )
        except FetchError as exc:
            return self._failed(job, ResourceStage.FETCH, exc)

        # CHECKSUMMED
        digest = sha256_bytes(raw)
        if not ctx.checksums.changed(key, digest):
            logger.info("No change since last ingest, skipping: %s", url)
            return self._result(job, ResourceStatus.SKIPPED)

        try:
            ctx.checksums.stage(key, raw, digest)
        except OSError as exc:
            return self._failed(job, ResourceStage.PERSIST, exc)

        # PARSED → CHUNKED
        try:
            normalized = normalize(raw, job.resource.format, url)
            chunks = build_chunks(normalized.text, job, ctx.chunking)
        except ConfigError:
            raise
        except Exception as exc:
            return self._failed(job, ResourceStage.NORMALIZE, exc)
        if normalized.degraded:
            logger.warning("Degraded normalization for %s: %s", url, "; ".join(normalized.notices))

        # EMBEDDED
        try:
            vectors = self._embed_all(job, chunks, run_cancel)
        except EmbeddingProviderError as exc:
            return self._failed(job, ResourceStage.EMBEDDING, exc, degraded=normalized.degraded)

        # SUNK(vector) → SUNK(graph)
        if chunks:
            self._check_cancelled(run_cancel)
            try:
                self._sink(job, chunks, vectors)
            except SinkError as exc:
                return self._failed(job, ResourceStage.SINK, exc, degraded=normalized.degraded)

        # DONE
        try:
            ctx.checksums.put(key, digest)
        except OSError as exc:
            return self._failed(job, ResourceStage.COMMIT, exc, degraded=normalized.degraded)

        logger.info("Ingested %s: %d chunks", job.doc_id, len(chunks))
        return self._result(
            job, ResourceStatus.DONE, chunks_written=len(chunks), degraded=normalized.degraded
        )

    def _embed_all(
        self, job: ResourceJob, chunks: Sequence[Chunk], run_cancel: threading.Event | None
    ) -> list[EmbeddingVector]:
        """Embed chunks one at a time; the first failure discards the whole set."""
        vectors: list[EmbeddingVector] = []
        for chunk in chunks:
            self._check_cancelled(run_cancel)
            values = self.ctx.embedder.embed(chunk.text)
            vector = EmbeddingVector(
                id=f"{job.doc_id}:chunk:{chunk.chunk_index}",
                values=values,
                metadata={
                    "doc_id": job.doc_id,
                    "chunk_id": chunk.chunk_id,
                    "chunk_index": chunk.chunk_index,
                    "dataset_id": job.dataset.dataset_id,
                    "source": job.source.source_id,
                    "file_url": job.resource.url,
                    "citation_label": chunk.citation_label,
                    "text_summary": chunk.summary,
                },
            )
            validate_dimensions([vector], self.ctx.dimension)
            vectors.append(vector)
        return vectors

    def _sink(self, job: ResourceJob, chunks: Sequence[Chunk], vectors: Sequence[EmbeddingVector]) -> None:
        sinks = self.ctx.sinks
        if sinks.vector is not None:
            written = sinks.vector.upsert(vectors, self.ctx.dimension)
            logger.info("Upserted %d vectors for %s", written, job.doc_id)
        else:
            logger.debug("Vector sink not configured; vectors not upserted for %s", job.doc_id)

        if sinks.graph is not None:
            document = DocumentNode(
                doc_id=job.doc_id,
                title=job.resource.display_name or job.resource.resource_id,
                file_url=job.resource.url,
                mime=job.resource.format,
            )
            if job.resource.last_modified:
                document = document.model_copy(update={"published_at": job.resource.last_modified})
            sinks.graph.create_document_graph(job.source, job.dataset, document, chunks)
        else:
            logger.debug("Graph sink not configured; skipping node creation for %s", job.doc_id)

    # -- results --------------------------------------------------------------

    @staticmethod
    def _result(job: ResourceJob, status: ResourceStatus, **kwargs) -> ResourceResult:
        return ResourceResult(
            dataset_id=job.dataset.dataset_id,
            resource_id=job.resource.resource_id,
            resource_key=job.resource_key,
            url=job.resource.url,
            status=status,
            **kwargs,
        )

    def _failed(
        self, job: ResourceJob, stage: ResourceStage, exc: Exception, *, degraded: bool = False
    ) -> ResourceResult:
        logger.error("Error processing resource %s at stage %s: %s", job.resource.url, stage.value, exc)
        return self._result(
            job, ResourceStatus.FAILED, stage=stage, cause=str(exc), degraded=degraded
        )


class IngestPipeline:
    """Processes a list of resources and collects one result per resource.

    With ``ctx.max_workers == 1`` resources run strictly one after another.
    A larger value fans out across resources on a bounded thread pool; the
    chunks of a single resource are always embedded sequentially.

    Each :meth:`run` has its own stop signal: an error escaping one worker
    stops the remaining resources of that run only, and the context stays
    usable for the next run.
    """

    def __init__(self, ctx: IngestContext) -> None:
        ctx.chunking.validate()
        resolve_dimension(ctx.embedder.model, ctx.dimension)
        self.ctx = ctx
        self.processor = ResourceProcessor(ctx)

    def run(self, jobs: Iterable[ResourceJob]) -> list[ResourceResult]:
        """Return results in the same order as *jobs*."""
        jobs = list(jobs)
        run_cancel = threading.Event()
        if self.ctx.max_workers <= 1 or len(jobs) <= 1:
            return [self.processor.process(job, run_cancel) for job in jobs]

        with ThreadPoolExecutor(max_workers=self.ctx.max_workers) as pool:
            try:
                return list(pool.map(lambda job: self.processor.process(job, run_cancel), jobs))
            except BaseException:
                run_cancel.set()
                raise
