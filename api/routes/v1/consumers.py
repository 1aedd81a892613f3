"""
api/routes/v1/consumers.py -- Consumer registration and access key routes.

Routes:
  POST   /consumers                       -- register a consumer (new API key)
  GET    /consumers/{consumer_id}         -- consumer detail
  POST   /consumers/{consumer_id}/keys    -- add an access key
  DELETE /consumers/{consumer_id}/keys/{key_id}  -- remove an access key

Views differ on purpose: registration echoes access keys with their public
material, lookups and removals return access key fingerprints only. Private
key material is never part of any response model.

Errors are raised by ConsumerRegistry as core.errors types and serialized by
the CatalogError handler in api/main.py.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_registry
from api.limiter import QUERY_LIMIT, WRITE_LIMIT, limiter
from api.models import AccessKeyCreate, ConsumerInfoResponse, ConsumerRegister, ConsumerResponse, KeyView
from consumers.registry import ConsumerRegistry

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /consumers -- register a new API consumer
# ---------------------------------------------------------------------------


@limiter.limit(WRITE_LIMIT)
@router.post("/consumers", response_model=ConsumerResponse)
def register_consumer(
    request: Request,
    body: Optional[ConsumerRegister] = None,
    registry: ConsumerRegistry = Depends(get_registry),
) -> ConsumerResponse:
    """Register a consumer and issue its primary API key.

    Optional body fields:
      details   -- free-form object stored with the consumer
      accessKey -- base64 public key; skipped (not rejected) if unusable
    """
    body = body or ConsumerRegister()
    consumer = registry.register(body.details, access_key_text=body.access_key)
    return ConsumerResponse.from_consumer(consumer)


# ---------------------------------------------------------------------------
# GET /consumers/{consumer_id} -- consumer detail
# ---------------------------------------------------------------------------


@limiter.limit(QUERY_LIMIT)
@router.get("/consumers/{consumer_id}", response_model=ConsumerInfoResponse)
def get_consumer(
    request: Request,
    consumer_id: str,
    registry: ConsumerRegistry = Depends(get_registry),
) -> ConsumerInfoResponse:
    """Return the consumer with its API key and access key fingerprints."""
    return ConsumerInfoResponse.from_consumer(registry.get_info(consumer_id))


# ---------------------------------------------------------------------------
# POST /consumers/{consumer_id}/keys -- add an access key
# ---------------------------------------------------------------------------


@limiter.limit(WRITE_LIMIT)
@router.post("/consumers/{consumer_id}/keys", response_model=KeyView)
def add_consumer_key(
    request: Request,
    consumer_id: str,
    body: Optional[AccessKeyCreate] = None,
    registry: ConsumerRegistry = Depends(get_registry),
) -> KeyView:
    """Attach a public-only access key to the consumer.

    Unlike registration, an invalid key here fails with INVALID_PUBLIC_KEY.
    """
    access_key = body.access_key if body is not None else None
    return KeyView.from_key(registry.add_access_key(consumer_id, access_key))


# ---------------------------------------------------------------------------
# DELETE /consumers/{consumer_id}/keys/{key_id} -- remove an access key
# ---------------------------------------------------------------------------


@limiter.limit(WRITE_LIMIT)
@router.delete("/consumers/{consumer_id}/keys/{key_id}", response_model=ConsumerInfoResponse)
def delete_consumer_key(
    request: Request,
    consumer_id: str,
    key_id: str,
    registry: ConsumerRegistry = Depends(get_registry),
) -> ConsumerInfoResponse:
    """Remove one of the consumer's access keys and return the updated consumer."""
    return ConsumerInfoResponse.from_consumer(registry.remove_access_key(consumer_id, key_id))
