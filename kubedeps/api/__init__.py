"""REST API layer for kubedeps.

Exposes:
    create_app -- FastAPI application factory.
"""

from kubedeps.api.app import create_app

__all__ = ["create_app"]
