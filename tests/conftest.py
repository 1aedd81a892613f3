"""
tests/conftest.py -- Shared test fixtures for the Catalog API test suite.

This module provides:
  - store / keys / registry: isolated in-memory services for unit tests
  - rsa_public_b64 / rsa_private_b64: consumer-side key material
  - _make_test_store(): named shared-memory store for the HTTP tests
  - _patch_lifespan(): wires the test store into app.state
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
HTTP tests because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit tests run on one thread and use plain :memory:.

Environment is set before any project import so get_settings() sees it:
rate limiting off, and 1024-bit API keys to keep key generation fast.
"""

from __future__ import annotations

import base64
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("API_KEY_BITS", "1024")

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from api.main import app
from consumers.keys import KeyPairService
from consumers.registry import ConsumerRegistry
from documents.store import DocumentStore

# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_key():
    """One consumer-side RSA key shared by the whole session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=1024)


@pytest.fixture(scope="session")
def rsa_public_pem(rsa_private_key) -> bytes:
    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture(scope="session")
def rsa_public_b64(rsa_public_pem) -> str:
    """Base64 text of a PEM public key, the form consumers submit."""
    return base64.b64encode(rsa_public_pem).decode("ascii")


@pytest.fixture(scope="session")
def rsa_private_b64(rsa_private_key) -> str:
    """Base64 text of a PEM private key, which must always be refused."""
    pem = rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return base64.b64encode(pem).decode("ascii")


@pytest.fixture
def another_public_b64() -> str:
    """A fresh public key, distinct from rsa_public_b64."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=1024)
    pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(pem).decode("ascii")


# ---------------------------------------------------------------------------
# Unit-test services
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[DocumentStore, None, None]:
    s = DocumentStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def keys() -> KeyPairService:
    return KeyPairService(bits=1024)


@pytest.fixture
def registry(store: DocumentStore, keys: KeyPairService) -> ConsumerRegistry:
    return ConsumerRegistry(store, keys)


# ---------------------------------------------------------------------------
# HTTP test client
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> DocumentStore:
    """Create a named shared-memory store so every worker thread sees one DB.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'health').
    """
    return DocumentStore(db_url=f"sqlite:///file:test_docs_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: DocumentStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.registry = ConsumerRegistry(store, KeyPairService(bits=1024))
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, DocumentStore], None, None]:
    """Yield (client, store) for HTTP integration tests.

    One store per test module. The store is returned alongside the client so
    tests can seed collections (sys.datasets included) without going through
    the guarded routes.
    """
    store = _make_test_store(request.module.__name__.rsplit(".", 1)[-1])
    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store

    store.close()
