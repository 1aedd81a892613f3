"""
api/routes/v1/data.py -- Generic query and document routes over any collection.

Routes:
  GET    /{collection}            -- filtered, paginated query
  POST   /{collection}            -- create a document
  GET    /{collection}/{doc_id}   -- fetch one document
  PUT    /{collection}/{doc_id}   -- merge fields into a document
  DELETE /{collection}/{doc_id}   -- delete a document

Every route resolves {collection} through require_open_collection, so the
namespace guard runs before any compilation or store access.

This router captures any first path segment. api/main.py registers it last so
/consumers, /catalog and /health keep their own handlers.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request

from api.dependencies import get_store, require_open_collection
from api.limiter import QUERY_LIMIT, WRITE_LIMIT, limiter
from api.models import PaginationMeta, QueryResponse
from core.config import get_settings
from core.errors import INVALID_DOCUMENT_ID, NO_DATA_PROVIDED, NotFoundError, ValidationError
from documents.store import DocumentStore
from query.filters import compile_filter
from query.pagination import PageRequest, run_paged_query

logger = logging.getLogger("catalogapi.api.data")

router = APIRouter()


# ---------------------------------------------------------------------------
# GET /{collection} -- run a query
# ---------------------------------------------------------------------------


@limiter.limit(QUERY_LIMIT)
@router.get("/{collection}", response_model=QueryResponse)
def run_query(
    request: Request,
    collection: str = Depends(require_open_collection),
    store: DocumentStore = Depends(get_store),
) -> QueryResponse:
    """Query a collection with field filters and pagination.

    Every query parameter other than page/pageSize is a filter:
      field=value            equality
      field=[gt:v]           also gte, lt, lte; ISO dates compare as dates
      field=[in:a,b]         membership; nin for exclusion
      field=[range:lo|hi]    inclusive range
      field=[regex:p]        case-insensitive match; text is an alias
    Unknown operators are ignored.
    """
    params = dict(request.query_params)
    settings = get_settings()
    page = PageRequest.from_params(
        params.get("page"),
        params.get("pageSize"),
        default_size=settings.default_page_size,
        max_size=settings.max_page_size,
    )
    flt = compile_filter(params)
    logger.info("Run query")
    logger.debug("Run query on %s with filters %s", collection, flt.describe())
    result = run_paged_query(store, collection, flt, page)
    return QueryResponse(results=result.items, pagination=PaginationMeta.from_page(result))


# ---------------------------------------------------------------------------
# POST /{collection} -- create a document
# ---------------------------------------------------------------------------


@limiter.limit(WRITE_LIMIT)
@router.post("/{collection}")
def register_document(
    request: Request,
    collection: str = Depends(require_open_collection),
    body: Optional[dict[str, Any]] = Body(default=None),
    store: DocumentStore = Depends(get_store),
) -> dict:
    """Store a new document. The store assigns its _id."""
    logger.info("Register document")
    if not body:
        raise ValidationError(NO_DATA_PROVIDED)
    return store.insert(collection, body)


# ---------------------------------------------------------------------------
# /{collection}/{doc_id} -- single document access
# ---------------------------------------------------------------------------


@limiter.limit(QUERY_LIMIT)
@router.get("/{collection}/{doc_id}")
def get_document(
    request: Request,
    doc_id: str,
    collection: str = Depends(require_open_collection),
    store: DocumentStore = Depends(get_store),
) -> dict:
    """Return one document by id."""
    logger.info("Retrieve document")
    doc = store.find_by_id(collection, doc_id)
    if doc is None:
        raise NotFoundError(INVALID_DOCUMENT_ID)
    return doc


@limiter.limit(WRITE_LIMIT)
@router.put("/{collection}/{doc_id}")
def update_document(
    request: Request,
    doc_id: str,
    collection: str = Depends(require_open_collection),
    body: Optional[dict[str, Any]] = Body(default=None),
    store: DocumentStore = Depends(get_store),
) -> dict:
    """Merge the body's top-level fields into the document and return it."""
    logger.info("Update document")
    if not body:
        raise ValidationError(NO_DATA_PROVIDED)
    doc = store.update_by_id(collection, doc_id, body)
    if doc is None:
        raise NotFoundError(INVALID_DOCUMENT_ID)
    return doc


@limiter.limit(WRITE_LIMIT)
@router.delete("/{collection}/{doc_id}")
def delete_document(
    request: Request,
    doc_id: str,
    collection: str = Depends(require_open_collection),
    store: DocumentStore = Depends(get_store),
) -> dict:
    """Delete a document and return the removed version."""
    logger.info("Delete document")
    doc = store.delete_by_id(collection, doc_id)
    if doc is None:
        raise NotFoundError(INVALID_DOCUMENT_ID)
    return doc
