"""Postgres + pgvector vector sink.

Table layout::

    id text PRIMARY KEY, embedding vector(N), metadata jsonb

Every batch is written inside one transaction: all rows land or none do.
"""

from __future__ import annotations

import logging
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json, execute_values

from catalog_ingest.errors import SinkError
from catalog_ingest.models import EmbeddingVector
from catalog_ingest.sinks.base import VectorSinkBase

logger = logging.getLogger(__name__)

UPSERT_SQL = """
INSERT INTO {table} (id, embedding, metadata)
VALUES %s
ON CONFLICT (id) DO UPDATE SET embedding = EXCLUDED.embedding, metadata = EXCLUDED.metadata
"""

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
  id text PRIMARY KEY,
  embedding vector({dimension}),
  metadata jsonb
)
"""


def to_vector_literal(values: list[float]) -> str:
    """Render *values* in pgvector's text input format, e.g. ``[0.1,0.2]``."""
    return "[" + ",".join(str(float(v)) for v in values) + "]"


class PgVectorSink(VectorSinkBase):
    """Upserts vectors into a pgvector table, one transaction per batch.

    Parameters
    ----------
    database_url:
        libpq connection string, used on first write.
    table:
        Target table name.
    dimension:
        When set, the ``vector`` extension and the table are created on
        first connect if missing.
    connection:
        Pre-opened psycopg2 connection; *database_url* is ignored when given.
    """

    name = "pgvector"

    def __init__(
        self,
        database_url: str = "",
        *,
        table: str = "vectors",
        dimension: int | None = None,
        connection: Any = None,
    ) -> None:
        self.database_url = database_url
        self.table = table
        self.dimension = dimension
        self._conn = connection

    def _connection(self) -> Any:
        if self._conn is None:
            try:
                self._conn = psycopg2.connect(self.database_url)
                if self.dimension:
                    self._ensure_table(self._conn)
            except psycopg2.Error as exc:
                raise SinkError(self.name, str(exc)) from exc
        return self._conn

    def _ensure_table(self, conn: Any) -> None:
        with conn.cursor() as cursor:
            cursor.execute("CREATE EXTENSION IF NOT EXISTS vector")
            cursor.execute(
                sql.SQL(CREATE_TABLE_SQL).format(
                    table=sql.Identifier(self.table),
                    dimension=sql.Literal(self.dimension),
                )
            )
        conn.commit()
        logger.info("pgvector table %s ready (dimension %d)", self.table, self.dimension)

    def _write(self, vectors: list[EmbeddingVector]) -> None:
        conn = self._connection()
        rows = [(v.id, to_vector_literal(v.values), Json(v.metadata)) for v in vectors]
        query = sql.SQL(UPSERT_SQL).format(table=sql.Identifier(self.table))
        try:
            with conn.cursor() as cursor:
                execute_values(cursor, query, rows, template="(%s, %s::vector, %s)")
            conn.commit()
        except psycopg2.Error as exc:
            conn.rollback()
            raise SinkError(self.name, str(exc)) from exc

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
