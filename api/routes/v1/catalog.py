"""
api/routes/v1/catalog.py -- Dataset catalog metadata.

GET /catalog reads the sys.datasets registry directly. It is the one read
path into a sys.* collection: the namespace guard protects the generic data
routes, and this route exposes only DCAT-rendered metadata, never raw
registry documents.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_store
from api.limiter import QUERY_LIMIT, limiter
from api.models import CatalogResponse, PaginationMeta
from catalog.dcat import catalog_metadata
from core.config import get_settings
from documents.store import DocumentStore
from query.pagination import PageRequest, run_paged_query

DATASETS_COLLECTION = "sys.datasets"

router = APIRouter()


@limiter.limit(QUERY_LIMIT)
@router.get("/catalog", response_model=CatalogResponse)
def catalog_info(
    request: Request,
    page: Optional[str] = None,
    page_size: Optional[str] = Query(default=None, alias="pageSize"),
    store: DocumentStore = Depends(get_store),
) -> CatalogResponse:
    """Return one page of the dataset catalog as a dcat:Catalog document."""
    settings = get_settings()
    page_request = PageRequest.from_params(
        page,
        page_size,
        default_size=settings.default_page_size,
        max_size=settings.max_page_size,
    )
    result = run_paged_query(store, DATASETS_COLLECTION, None, page_request)
    return CatalogResponse(
        metadata=catalog_metadata(settings.catalog_title, settings.catalog_description, result),
        pagination=PaginationMeta.from_page(result),
    )
