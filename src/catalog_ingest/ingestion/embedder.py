"""Embedding providers — one ``embed(text)`` call per chunk.

The pipeline only depends on :class:`Embedder`; swapping in a batching or
parallel implementation does not touch the processor.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import requests

from catalog_ingest.errors import ConfigError, EmbeddingProviderError

if TYPE_CHECKING:
    from catalog_ingest.config import Settings

logger = logging.getLogger(__name__)

KNOWN_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
}


def resolve_dimension(model: str, configured: int | None = None) -> int:
    """Return the vector dimension for *model*.

    Raises
    ------
    ConfigError
        If *configured* contradicts a known model, or the model is unknown
        and no dimension was configured.
    """
    known = KNOWN_DIMENSIONS.get(model)
    if configured is not None:
        if configured <= 0:
            raise ConfigError(f"vector_dimension must be positive, got {configured}")
        if known is not None and known != configured:
            raise ConfigError(
                f"vector_dimension={configured} does not match model {model!r} (dimension {known})"
            )
        return configured
    if known is None:
        raise ConfigError(f"Unknown embedding model {model!r}; set vector_dimension explicitly")
    return known


class Embedder(ABC):
    """Maps a text to a fixed-length vector."""

    model: str

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*.

        Raises
        ------
        EmbeddingProviderError
            On any non-success response or transport failure.
        """
        ...


class OpenAIEmbedder(Embedder):
    """Calls an OpenAI-compatible ``/embeddings`` endpoint.

    Parameters
    ----------
    api_key:
        Bearer token for the provider.
    model:
        Embedding model identifier.
    base_url:
        API root, e.g. ``https://api.openai.com/v1``.
    timeout:
        Per-call timeout in seconds.
    session:
        Optional shared :class:`requests.Session`.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        *,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.model = model
        self._url = base_url.rstrip("/") + "/embeddings"
        self._api_key = api_key
        self._timeout = timeout
        self._session = session or requests.Session()

    def embed(self, text: str) -> list[float]:
        try:
            resp = self._session.post(
                self._url,
                json={"model": self.model, "input": text},
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise EmbeddingProviderError(str(exc)) from exc

        if not resp.ok:
            raise EmbeddingProviderError(resp.text, status=resp.status_code)

        try:
            return [float(v) for v in resp.json()["data"][0]["embedding"]]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EmbeddingProviderError(
                f"malformed embeddings response: {exc}", status=resp.status_code
            ) from exc


class HuggingFaceEmbedder(Embedder):
    """Local sentence-transformer embeddings via LangChain."""

    def __init__(self, model: str = "sentence-transformers/all-MiniLM-L6-v2") -> None:
        from langchain_huggingface import HuggingFaceEmbeddings

        self.model = model
        self._embeddings = HuggingFaceEmbeddings(model_name=model)

    def embed(self, text: str) -> list[float]:
        try:
            return list(self._embeddings.embed_query(text))
        except Exception as exc:
            raise EmbeddingProviderError(str(exc)) from exc


def build_embedder(settings: Settings, session: requests.Session | None = None) -> Embedder:
    """Return the embedder selected by ``settings.embedding_provider``."""
    if settings.embedding_provider == "huggingface":
        logger.info("Using local HuggingFace embeddings: %s", settings.embedding_model)
        return HuggingFaceEmbedder(settings.embedding_model)

    if not settings.openai_api_key:
        raise ConfigError("OPENAI_API_KEY is required for the openai embedding provider")
    return OpenAIEmbedder(
        settings.openai_api_key,
        settings.embedding_model,
        base_url=settings.embedding_base_url,
        timeout=settings.request_timeout,
        session=session,
    )
