"""
Ingestion — change detection, normalization, chunking, embedding, and the
per-resource processor that fans results out to the configured sinks.
"""
