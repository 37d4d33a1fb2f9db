"""Pinecone vector sink over the REST upsert endpoint."""

from __future__ import annotations

import logging

import requests

from catalog_ingest.errors import SinkError
from catalog_ingest.models import EmbeddingVector
from catalog_ingest.sinks.base import VectorSinkBase

logger = logging.getLogger(__name__)


class PineconeVectorSink(VectorSinkBase):
    """POSTs every vector of a resource in a single ``/vectors/upsert`` request.

    Parameters
    ----------
    upsert_url:
        Full upsert URL of the index, e.g. ``https://<index>.svc.<env>.pinecone.io/vectors/upsert``.
    api_key:
        Pinecone API key, sent as ``Api-Key``.
    namespace:
        Target namespace.
    timeout:
        Per-request timeout in seconds.
    """

    name = "pinecone"

    def __init__(
        self,
        upsert_url: str,
        api_key: str,
        *,
        namespace: str = "default",
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self._url = upsert_url
        self._api_key = api_key
        self.namespace = namespace
        self._timeout = timeout
        self._session = session or requests.Session()

    def _write(self, vectors: list[EmbeddingVector]) -> None:
        payload = {
            "vectors": [{"id": v.id, "values": v.values, "metadata": v.metadata} for v in vectors],
            "namespace": self.namespace,
        }
        try:
            resp = self._session.post(
                self._url,
                json=payload,
                headers={"Api-Key": self._api_key},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise SinkError(self.name, str(exc)) from exc
        if not resp.ok:
            raise SinkError(self.name, f"{resp.status_code} {resp.text}")
        logger.info("Upserted %d vectors to Pinecone namespace '%s'", len(vectors), self.namespace)
