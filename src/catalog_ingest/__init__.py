"""Catalog ingestion for retrieval-augmented generation.

Walks a CKAN dataset catalog, skips resources whose content digest is
unchanged, normalizes and chunks the rest, embeds every chunk, and writes
the vectors and a Source → Dataset → Document → Chunk graph downstream.
"""

__version__ = "0.1.0"
