"""One full ingestion run: walk the catalog, process every supported resource."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from catalog_ingest.catalog import CkanCatalog, supported_resources
from catalog_ingest.context import IngestContext
from catalog_ingest.errors import FetchError
from catalog_ingest.ingestion.processor import IngestPipeline
from catalog_ingest.models import ResourceJob, RunReport

logger = logging.getLogger(__name__)


def run_ingestion(
    ctx: IngestContext,
    catalog: CkanCatalog,
    *,
    dataset_ids: Sequence[str] | None = None,
    max_datasets: int | None = 50,
) -> RunReport:
    """Ingest the catalog's datasets and return the aggregate report.

    Parameters
    ----------
    ctx:
        Collaborators of the run (see :func:`catalog_ingest.context.build_context`).
    catalog:
        Catalog client to walk.
    dataset_ids:
        Explicit datasets to ingest; the catalog listing is used when omitted.
    max_datasets:
        Upper bound on listed datasets per run (``None`` for no limit).

    Raises
    ------
    FetchError
        If the dataset listing itself cannot be fetched.
    ConfigError
        On invalid configuration, before any resource is touched.
    """
    pipeline = IngestPipeline(ctx)
    report = RunReport()

    if dataset_ids is None:
        logger.info("Listing datasets from %s", catalog.base_url)
        dataset_ids = catalog.list_dataset_ids()
        if max_datasets is not None:
            dataset_ids = dataset_ids[:max_datasets]
    logger.info("Found %d datasets to ingest", len(dataset_ids))

    jobs: list[ResourceJob] = []
    for dataset_id in dataset_ids:
        try:
            dataset = catalog.fetch_dataset_metadata(dataset_id)
        except FetchError as exc:
            logger.error("Error processing dataset %s: %s", dataset_id, exc)
            report.dataset_errors[dataset_id] = str(exc)
            continue
        supported = list(supported_resources(dataset))
        report.skipped_unsupported += len(dataset.resources) - len(supported)
        jobs.extend(ResourceJob(source=ctx.source, dataset=dataset, resource=r) for r in supported)

    report.results = pipeline.run(jobs)
    report.finished_at = datetime.now(timezone.utc)

    logger.info(
        "Ingest completed: %d done, %d skipped, %d failed, %d dataset errors",
        len(report.succeeded),
        len(report.skipped),
        len(report.failed),
        len(report.dataset_errors),
    )
    return report
