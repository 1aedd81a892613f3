"""
API request and response models for the Catalog API REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in consumers/models.py,
which own the internal domain representation. Route handlers map between the
two through the from_* factory methods below.

Key exposure is decided here, by which model a route returns:
  KeyView         id, fingerprint, public
  KeyFingerprint  fingerprint only
No model has a field for private key material, so it cannot leak through a
response even when the domain KeyPair carries it.

JSON field names are camelCase (apiKey, accessKeys, pageSize); Python
attributes stay snake_case via the alias generator.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from consumers.models import Consumer, KeyPair
from query.pagination import PageResult

_CAMEL_FROZEN = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    status: int
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Consumers -- requests
# ---------------------------------------------------------------------------


class ConsumerRegister(BaseModel):
    """Request body for POST /v1/consumers.

    access_key is base64 text of a PEM or DER RSA public key. An unusable key
    does not fail registration; the consumer is created without it. The field
    is untyped so that a non-string value counts as unusable, not as a 422.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    details: dict[str, Any] = Field(default_factory=dict)
    access_key: Any = None


class AccessKeyCreate(BaseModel):
    """Request body for POST /v1/consumers/{id}/keys.

    access_key is optional at the schema level so a missing value is reported
    as MISSING_PARAMETERS rather than a generic validation error.
    It is untyped so a non-string value is reported as INVALID_PUBLIC_KEY.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    access_key: Any = None


# ---------------------------------------------------------------------------
# Consumers -- responses
# ---------------------------------------------------------------------------


class KeyView(BaseModel):
    model_config = _CAMEL_FROZEN

    id: Optional[str]
    fingerprint: str
    public: str

    @classmethod
    def from_key(cls, key: KeyPair) -> "KeyView":
        return cls(id=key.id, fingerprint=key.fingerprint, public=key.public)


class KeyFingerprint(BaseModel):
    model_config = _CAMEL_FROZEN

    fingerprint: str

    @classmethod
    def from_key(cls, key: KeyPair) -> "KeyFingerprint":
        return cls(fingerprint=key.fingerprint)


class ConsumerResponse(BaseModel):
    """Consumer view returned by registration: access keys include public material."""

    model_config = _CAMEL_FROZEN

    id: Optional[str]
    uuid: str
    api_key: KeyView
    access_keys: list[KeyView] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_consumer(cls, consumer: Consumer) -> "ConsumerResponse":
        return cls(
            id=consumer.id,
            uuid=consumer.uuid,
            api_key=KeyView.from_key(consumer.api_key),
            access_keys=[KeyView.from_key(k) for k in consumer.access_keys],
            details=consumer.details,
        )


class ConsumerInfoResponse(BaseModel):
    """Consumer view returned by lookups: access keys show fingerprints only."""

    model_config = _CAMEL_FROZEN

    id: Optional[str]
    uuid: str
    api_key: KeyView
    access_keys: list[KeyFingerprint] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_consumer(cls, consumer: Consumer) -> "ConsumerInfoResponse":
        return cls(
            id=consumer.id,
            uuid=consumer.uuid,
            api_key=KeyView.from_key(consumer.api_key),
            access_keys=[KeyFingerprint.from_key(k) for k in consumer.access_keys],
            details=consumer.details,
        )


# ---------------------------------------------------------------------------
# Queries and catalog
# ---------------------------------------------------------------------------


class PaginationMeta(BaseModel):
    """The {page, pageSize, total} triple that accompanies every list response."""

    model_config = _CAMEL_FROZEN

    page: int
    page_size: int
    total: int

    @classmethod
    def from_page(cls, page: PageResult) -> "PaginationMeta":
        return cls(page=page.page, page_size=page.page_size, total=page.total)


class QueryResponse(BaseModel):
    """Response for GET /v1/{collection}."""

    model_config = _CAMEL_FROZEN

    results: list[dict[str, Any]]
    pagination: PaginationMeta


class CatalogResponse(BaseModel):
    """Response for GET /v1/catalog."""

    model_config = _CAMEL_FROZEN

    metadata: dict[str, Any]
    pagination: PaginationMeta
