"""
API server package — HTTP query surface over the shared transaction store.

Builds SQL from request filters and returns the store's JSON rows. Reads
only; ingestion happens in the streaming pipeline.
"""
