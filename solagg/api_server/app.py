"""
FastAPI/ASGI application entrypoint.

The app needs a loaded SharedStore, so it is built by the CLI
(main.py start) rather than imported at module level:

    app = create_app(shared_store)
"""

from solagg.api_server.server import create_app

__all__ = ["create_app"]
