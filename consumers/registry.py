"""
consumers/registry.py -- Consumer registration and access key lifecycle.

ConsumerRegistry owns Consumer records and the KeyPair records they
reference. Both live in reserved collections of the DocumentStore:

  sys.keys       {fingerprint, public, private?}
  sys.consumers  {uuid, apiKey: <key id>, accessKeys: [<key id>, ...], details}

The sys.* prefix keeps them out of reach of the public data routes (see
query.filters.guard_collection).

Registration is a saga of three sequential steps:
  1. generate and store the primary API key    -- failure aborts
  2. import and store the optional access key  -- invalid key is skipped
  3. store the consumer record                 -- failure aborts
Every step that writes registers a compensating delete. When a later step
fails, compensations run newest-first so no key is left without an owner,
then the step's error propagates.

Step 2 deliberately differs from add_access_key(): during registration an
unusable access key is logged at CRITICAL and registration continues with
no access keys; the dedicated endpoint rejects the same key with
INVALID_PUBLIC_KEY.

Layer rule: no imports from api/, query/, or catalog/.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from consumers.keys import KeyPairService
from consumers.models import Consumer, KeyPair
from core.errors import (
    ERROR_CREATING_API_KEY,
    ERROR_REMOVING_KEY,
    ERROR_STORING_ACCESS_KEY,
    ERROR_STORING_CONSUMER,
    ERROR_UPDATING_CONSUMER_RECORD,
    INVALID_CONSUMER_ID,
    INVALID_KEY_ID,
    INVALID_PUBLIC_KEY,
    MISSING_PARAMETERS,
    InternalError,
    KeyGenerationError,
    NotFoundError,
    ValidationError,
)
from documents.store import DocumentStore

logger = logging.getLogger("catalogapi.consumers")

KEYS_COLLECTION = "sys.keys"
CONSUMERS_COLLECTION = "sys.consumers"

# Storage failures are translated into the failing step's own InternalError code.
_STORE_ERRORS = (SQLAlchemyError,)


def new_consumer_uuid() -> str:
    """Random 128-bit id rendered as uppercase hex with dashes."""
    return str(uuid.uuid4()).upper()


class ConsumerRegistry:
    """Repository-facing service for consumers and their keys.

    Usage:
        registry = ConsumerRegistry(DocumentStore(), KeyPairService())
        consumer = registry.register({"team": "x"}, access_key_text=None)
        key = registry.add_access_key(consumer.id, base64_public_key)
        registry.remove_access_key(consumer.id, key.id)
    """

    def __init__(self, store: DocumentStore, keys: KeyPairService) -> None:
        self.store = store
        self.keys = keys

    # ------------------------------------------------------------------
    # Registration saga
    # ------------------------------------------------------------------

    def register(self, details: Optional[dict[str, Any]] = None, access_key_text: Any = None) -> Consumer:
        """Create a consumer with a fresh API key and an optional access key."""
        logger.info("Registering a new API consumer")
        compensations: list[Callable[[], None]] = []
        try:
            api_key = self._create_api_key()
            compensations.append(lambda: self._discard_key(api_key.id))

            access_keys: list[KeyPair] = []
            if access_key_text:
                access_key = self._optional_access_key(access_key_text)
                if access_key is not None:
                    compensations.append(lambda: self._discard_key(access_key.id))
                    access_keys.append(access_key)

            consumer = Consumer(
                uuid=new_consumer_uuid(),
                api_key=api_key,
                access_keys=access_keys,
                details=dict(details or {}),
            )
            consumer.id = self._store_consumer(consumer)
        except InternalError as exc:
            logger.critical("Consumer registration error: %s", exc.code)
            self._compensate(compensations)
            raise

        logger.debug("Consumer registration complete (id=%s, access_keys=%d)", consumer.id, len(access_keys))
        return consumer

    def _create_api_key(self) -> KeyPair:
        try:
            api_key = self.keys.generate()
        except KeyGenerationError:
            logger.exception("API key generation failed")
            raise
        api_key.id = self._store_key(api_key, ERROR_CREATING_API_KEY)
        logger.debug("API key created (fingerprint=%s)", api_key.fingerprint)
        return api_key

    def _optional_access_key(self, access_key_text: Any) -> Optional[KeyPair]:
        """Import and store the registration access key, or None if unusable."""
        logger.debug("Registering default access key")
        imported = self.keys.parse_access_key(access_key_text)
        if not imported.ok:
            logger.critical("Invalid access key provided at registration: %s", imported.error.code)
            return None
        key = imported.key
        key.id = self._store_key(key, ERROR_STORING_ACCESS_KEY)
        logger.debug("Default access key added (fingerprint=%s)", key.fingerprint)
        return key

    def _store_consumer(self, consumer: Consumer) -> str:
        try:
            doc = self.store.insert(CONSUMERS_COLLECTION, _consumer_to_document(consumer))
        except _STORE_ERRORS as exc:
            raise InternalError(ERROR_STORING_CONSUMER, detail=str(exc)) from exc
        logger.debug("New consumer registered (uuid=%s)", consumer.uuid)
        return doc["_id"]

    def _compensate(self, compensations: list[Callable[[], None]]) -> None:
        for undo in reversed(compensations):
            try:
                undo()
            except _STORE_ERRORS:
                logger.exception("Compensation step failed; record may be orphaned")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_info(self, consumer_id: str) -> Consumer:
        """Return the consumer with its keys resolved. Raises INVALID_CONSUMER_ID."""
        logger.info("Getting consumer details")
        return self._load_consumer(consumer_id)

    # ------------------------------------------------------------------
    # Access keys
    # ------------------------------------------------------------------

    def add_access_key(self, consumer_id: str, access_key_text: Any) -> KeyPair:
        """Attach a new public-only access key to an existing consumer."""
        logger.info("Add consumer key")
        if not access_key_text:
            raise ValidationError(MISSING_PARAMETERS, detail="accessKey is required.")

        doc = self._consumer_document(consumer_id)

        imported = self.keys.parse_access_key(access_key_text)
        if not imported.ok:
            raise ValidationError(INVALID_PUBLIC_KEY, detail=imported.error.detail) from imported.error
        key = imported.key
        key.id = self._store_key(key, ERROR_STORING_ACCESS_KEY)
        logger.debug("Adding new access key (fingerprint=%s)", key.fingerprint)

        key_ids = list(doc.get("accessKeys", [])) + [key.id]
        try:
            self._update_access_keys(consumer_id, key_ids)
        except InternalError:
            self._compensate([lambda: self._discard_key(key.id)])
            raise
        return key

    def remove_access_key(self, consumer_id: str, key_id: str) -> Consumer:
        """Delete one of the consumer's access keys and return the updated consumer.

        Only ids in this consumer's accessKeys list are accepted: an id that
        belongs to another consumer, or to an API key, is INVALID_KEY_ID.
        """
        logger.info("Delete consumer key")
        doc = self._consumer_document(consumer_id)
        key_ids = list(doc.get("accessKeys", []))
        if key_id not in key_ids:
            raise NotFoundError(INVALID_KEY_ID)

        try:
            self.store.delete_by_id(KEYS_COLLECTION, key_id)
        except _STORE_ERRORS as exc:
            logger.critical("Access key removal error: %s", exc)
            raise InternalError(ERROR_REMOVING_KEY, detail=str(exc)) from exc

        key_ids.remove(key_id)
        self._update_access_keys(consumer_id, key_ids)
        logger.debug("Access key removal complete (consumer=%s, key=%s)", consumer_id, key_id)
        return self._load_consumer(consumer_id)

    # ------------------------------------------------------------------
    # Store helpers
    # ------------------------------------------------------------------

    def _store_key(self, key: KeyPair, error_code: str) -> str:
        try:
            doc = self.store.insert(KEYS_COLLECTION, _key_to_document(key))
        except _STORE_ERRORS as exc:
            raise InternalError(error_code, detail=str(exc)) from exc
        return doc["_id"]

    def _discard_key(self, key_id: Optional[str]) -> None:
        if key_id is not None:
            self.store.delete_by_id(KEYS_COLLECTION, key_id)
            logger.info("Discarded key %s", key_id)

    def _update_access_keys(self, consumer_id: str, key_ids: list[str]) -> None:
        try:
            updated = self.store.update_by_id(CONSUMERS_COLLECTION, consumer_id, {"accessKeys": key_ids})
        except _STORE_ERRORS as exc:
            raise InternalError(ERROR_UPDATING_CONSUMER_RECORD, detail=str(exc)) from exc
        if updated is None:
            raise InternalError(ERROR_UPDATING_CONSUMER_RECORD, detail="Consumer record disappeared.")

    def _consumer_document(self, consumer_id: str) -> dict[str, Any]:
        doc = self.store.find_by_id(CONSUMERS_COLLECTION, consumer_id)
        if doc is None:
            raise NotFoundError(INVALID_CONSUMER_ID)
        return doc

    def _load_key(self, key_id: str) -> Optional[KeyPair]:
        doc = self.store.find_by_id(KEYS_COLLECTION, key_id)
        return _document_to_key(doc) if doc is not None else None

    def _load_consumer(self, consumer_id: str) -> Consumer:
        doc = self._consumer_document(consumer_id)
        api_key = self._load_key(doc["apiKey"])
        if api_key is None:
            raise RuntimeError(f"Consumer {consumer_id} references a missing API key record.")
        access_keys = [k for k in (self._load_key(i) for i in doc.get("accessKeys", [])) if k is not None]
        return Consumer(
            id=doc["_id"],
            uuid=doc["uuid"],
            api_key=api_key,
            access_keys=access_keys,
            details=doc.get("details", {}),
        )


# ---------------------------------------------------------------------------
# Mappers (Data Mapper pattern -- domain dataclass <-> stored document)
# ---------------------------------------------------------------------------


def _key_to_document(key: KeyPair) -> dict[str, Any]:
    doc = {"fingerprint": key.fingerprint, "public": key.public}
    if key.private is not None:
        doc["private"] = key.private
    return doc


def _document_to_key(doc: dict[str, Any]) -> KeyPair:
    return KeyPair(
        id=doc["_id"],
        fingerprint=doc["fingerprint"],
        public=doc["public"],
        private=doc.get("private"),
    )


def _consumer_to_document(consumer: Consumer) -> dict[str, Any]:
    return {
        "uuid": consumer.uuid,
        "apiKey": consumer.api_key.id,
        "accessKeys": [k.id for k in consumer.access_keys],
        "details": consumer.details,
    }
