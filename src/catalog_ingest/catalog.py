"""CKAN catalog client and resource walker.

Only the two action endpoints the pipeline needs are used::

    GET {base_url}/package_list            -> {"success": true, "result": ["id", ...]}
    GET {base_url}/package_show?id={id}    -> {"success": true, "result": {...}}
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator
from urllib.parse import quote

import requests
from pydantic import ValidationError

from catalog_ingest.errors import FetchError
from catalog_ingest.ingestion.fetcher import download
from catalog_ingest.models import DatasetMetadata, ResourceDescriptor

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("csv", "tsv", "xml", "json", "txt", "text")


def is_supported(resource: ResourceDescriptor) -> bool:
    """``True`` for tabular, markup, structured-record and plain-text resources."""
    fmt = resource.format.lower()
    url = resource.url.lower().split("?", 1)[0]
    return any(f in fmt or url.endswith(f".{f}") for f in SUPPORTED_FORMATS)


def _resource_from_ckan(raw: dict[str, Any]) -> ResourceDescriptor:
    resource_id = raw.get("id") or ""
    return ResourceDescriptor(
        resource_id=resource_id,
        url=raw.get("url") or "",
        format=str(raw.get("format") or raw.get("mimetype") or "").lower(),
        display_name=raw.get("name") or resource_id,
        last_modified=raw.get("last_modified") or raw.get("metadata_modified"),
    )


class CkanCatalog:
    """Thin client for a CKAN action API.

    Parameters
    ----------
    base_url:
        Action API root, e.g. ``https://open.canada.ca/data/en/api/3/action``.
    session:
        Shared HTTP session.
    timeout / max_retries:
        Forwarded to every download.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: requests.Session,
        timeout: float = 60.0,
        max_retries: int = 3,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._timeout = timeout
        self._max_retries = max_retries

    def _action(self, url: str) -> Any:
        body = download(url, session=self._session, timeout=self._timeout, max_retries=self._max_retries)
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise FetchError(url, f"invalid JSON response: {exc}") from exc
        if not isinstance(payload, dict) or not payload.get("success", True):
            error = payload.get("error") if isinstance(payload, dict) else payload
            raise FetchError(url, f"catalog reported failure: {error}")
        return payload.get("result")

    def list_dataset_ids(self) -> list[str]:
        url = f"{self.base_url}/package_list"
        result = self._action(url)
        if result is not None and not isinstance(result, list):
            raise FetchError(url, "unexpected package_list payload")
        return [str(i) for i in result or []]

    def fetch_dataset_metadata(self, dataset_id: str) -> DatasetMetadata:
        """Return the dataset and its resources.

        Raises
        ------
        FetchError
            On transport failure, CKAN ``success: false``, or a payload that
            is not a package object with a list of resource objects.
        """
        url = f"{self.base_url}/package_show?id={quote(dataset_id, safe='')}"
        result = self._action(url) or {}
        if not isinstance(result, dict):
            raise FetchError(url, "unexpected package_show payload")
        resources = result.get("resources") or []
        if not isinstance(resources, list) or not all(isinstance(r, dict) for r in resources):
            raise FetchError(url, "unexpected package_show payload: resources must be objects")
        try:
            return DatasetMetadata(
                dataset_id=dataset_id,
                title=result.get("title") or dataset_id,
                description=result.get("notes") or "",
                resources=tuple(_resource_from_ckan(r) for r in resources),
            )
        except ValidationError as exc:
            raise FetchError(url, f"unexpected package_show payload: {exc}") from exc


def supported_resources(dataset: DatasetMetadata) -> Iterator[ResourceDescriptor]:
    """Yield the resources of *dataset* the pipeline can ingest, logging the rest."""
    for resource in dataset.resources:
        if not resource.url:
            logger.info("Skipping resource %s of %s: no URL", resource.key_name, dataset.dataset_id)
            continue
        if not is_supported(resource):
            logger.info(
                "Skipping resource of unsupported format: %r %s", resource.format, resource.url
            )
            continue
        yield resource
