"""
Core utilities — error taxonomy shared by the fetch client, loader,
streaming pipeline, store and API server.
"""
