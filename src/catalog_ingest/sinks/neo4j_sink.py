"""Neo4j graph sink — ``(:Source)-[:PUBLISHES]->(:Dataset)-[:HAS_DOCUMENT]->(:Document)-[:HAS_CHUNK]->(:Chunk)``."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from neo4j import GraphDatabase
from neo4j.exceptions import DriverError, Neo4jError

from catalog_ingest.errors import SinkError
from catalog_ingest.models import Chunk, DatasetMetadata, DocumentNode, SourceInfo
from catalog_ingest.sinks.base import GraphSinkBase

logger = logging.getLogger(__name__)

DOCUMENT_POLICIES = ("append", "replace")

MERGE_DATASET_CYPHER = """
MERGE (s:Source {source_id: $source_id})
SET s.name = $source_name, s.base_url = $source_base
MERGE (d:Dataset {dataset_id: $dataset_id})
SET d.title = $dataset_title, d.description = $dataset_desc
MERGE (s)-[:PUBLISHES]->(d)
"""

DELETE_DOCUMENT_CYPHER = """
MATCH (doc:Document {doc_id: $doc_id})
OPTIONAL MATCH (doc)-[:HAS_CHUNK]->(c:Chunk)
DETACH DELETE c, doc
"""

CREATE_DOCUMENT_CYPHER = """
MATCH (d:Dataset {dataset_id: $dataset_id})
CREATE (doc:Document {
  doc_id: $doc_id,
  title: $title,
  file_url: $file_url,
  mime: $mime,
  published_at: datetime($published_at)
})
CREATE (d)-[:HAS_DOCUMENT]->(doc)
WITH doc
UNWIND $chunks AS chunk
CREATE (c:Chunk {
  chunk_id: chunk.chunk_id,
  chunk_index: chunk.chunk_index,
  text_summary: chunk.text_summary,
  token_count: chunk.token_count,
  citation_label: chunk.citation_label
})
CREATE (doc)-[:HAS_CHUNK]->(c)
"""


class Neo4jGraphSink(GraphSinkBase):
    """Writes one resource's document graph per call, in one transaction.

    Parameters
    ----------
    uri / user / password:
        Bolt connection details.
    document_policy:
        ``"append"`` keeps earlier Document subtrees for the same ``doc_id``
        (every changed version accumulates); ``"replace"`` deletes them in
        the same transaction before creating the new one.
    connection_timeout:
        Driver connection timeout in seconds.
    driver:
        Pre-built driver; one is created from the URI when omitted.
    """

    name = "neo4j"

    def __init__(
        self,
        uri: str = "",
        user: str = "",
        password: str = "",
        *,
        document_policy: str = "append",
        connection_timeout: float = 60.0,
        driver: Any = None,
    ) -> None:
        if document_policy not in DOCUMENT_POLICIES:
            raise ValueError(f"Unsupported document_policy={document_policy!r}")
        self.document_policy = document_policy
        self._driver = driver or GraphDatabase.driver(
            uri, auth=(user, password), connection_timeout=connection_timeout
        )

    def close(self) -> None:
        self._driver.close()

    def create_document_graph(
        self,
        source: SourceInfo,
        dataset: DatasetMetadata,
        document: DocumentNode,
        chunks: Sequence[Chunk],
    ) -> None:
        params = {
            "source_id": source.source_id,
            "source_name": source.name,
            "source_base": source.base_url,
            "dataset_id": dataset.dataset_id,
            "dataset_title": dataset.title or dataset.dataset_id,
            "dataset_desc": dataset.description,
            "doc_id": document.doc_id,
            "title": document.title,
            "file_url": document.file_url,
            "mime": document.mime,
            "published_at": document.published_at,
            "chunks": [
                {
                    "chunk_id": c.chunk_id,
                    "chunk_index": c.chunk_index,
                    "text_summary": c.summary,
                    "token_count": c.token_estimate,
                    "citation_label": c.citation_label,
                }
                for c in chunks
            ],
        }
        try:
            with self._driver.session() as session:
                session.execute_write(self._write_document, params, self.document_policy)
        except (Neo4jError, DriverError) as exc:
            raise SinkError(self.name, str(exc)) from exc
        logger.info("Neo4j nodes created for document %s (%d chunks)", document.doc_id, len(chunks))

    @staticmethod
    def _write_document(tx: Any, params: dict[str, Any], policy: str) -> None:
        tx.run(MERGE_DATASET_CYPHER, params)
        if policy == "replace":
            tx.run(DELETE_DOCUMENT_CYPHER, {"doc_id": params["doc_id"]})
        tx.run(CREATE_DOCUMENT_CYPHER, params)
