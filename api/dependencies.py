"""
api/dependencies.py -- FastAPI Depends() helpers shared by the v1 routers.

require_open_collection() is the single choke point for the namespace guard:
every route that takes a {collection} path parameter declares it, so no data
route reaches the store with a sys.* or system.* collection name.
"""

from __future__ import annotations

from fastapi import Request

from consumers.registry import ConsumerRegistry
from documents.store import DocumentStore
from query.filters import guard_collection


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_registry(request: Request) -> ConsumerRegistry:
    return request.app.state.registry


def require_open_collection(collection: str) -> str:
    """Resolve the {collection} path parameter, rejecting reserved namespaces."""
    return guard_collection(collection)
