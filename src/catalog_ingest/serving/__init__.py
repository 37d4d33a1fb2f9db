"""
Serving — FastAPI application triggering ingestion runs over HTTP.
"""
