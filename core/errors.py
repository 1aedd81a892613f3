"""
core/errors.py -- Domain error taxonomy for the Catalog API.

Services raise these; they never raise fastapi.HTTPException. api/main.py
registers a single handler for CatalogError that serializes the standard
ErrorResponse envelope, so every failing request reports exactly one error.

Taxonomy (status_code is the HTTP status the handler uses):
  ValidationError  400 -- client input malformed
  NotFoundError    400 -- referenced entity absent. Semantically a 404, but the
                          published wire contract reports these as 400.
  PolicyError      400 -- request violates an access policy
  InternalError    500 -- storage or crypto failure

Layer rule: core/ is the kernel. No imports from other project packages.
"""

from __future__ import annotations

from typing import Optional

# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

MISSING_PARAMETERS = "MISSING_PARAMETERS"
NO_DATA_PROVIDED = "NO_DATA_PROVIDED"
INVALID_PUBLIC_KEY = "INVALID_PUBLIC_KEY"
INVALID_KEY_FORMAT = "INVALID_KEY_FORMAT"
INVALID_QUERY_PATTERN = "INVALID_QUERY_PATTERN"

INVALID_CONSUMER_ID = "INVALID_CONSUMER_ID"
INVALID_KEY_ID = "INVALID_KEY_ID"
INVALID_DOCUMENT_ID = "INVALID_DOCUMENT_ID"

RESTRICTED_DATA_COLLECTION = "RESTRICTED_DATA_COLLECTION"

ERROR_CREATING_API_KEY = "ERROR_CREATING_API_KEY"
ERROR_STORING_ACCESS_KEY = "ERROR_STORING_ACCESS_KEY"
ERROR_STORING_CONSUMER = "ERROR_STORING_CONSUMER"
ERROR_REMOVING_KEY = "ERROR_REMOVING_KEY"
ERROR_UPDATING_CONSUMER_RECORD = "ERROR_UPDATING_CONSUMER_RECORD"

# Human-readable messages keyed by code. Codes missing here fall back to the
# code itself.
_MESSAGES: dict[str, str] = {
    MISSING_PARAMETERS: "A required parameter is missing.",
    NO_DATA_PROVIDED: "The request body is empty.",
    INVALID_PUBLIC_KEY: "The provided key is not a valid public key.",
    INVALID_KEY_FORMAT: "The provided key could not be decoded.",
    INVALID_QUERY_PATTERN: "The provided search pattern is not a valid regular expression.",
    INVALID_CONSUMER_ID: "No consumer exists with the provided id.",
    INVALID_KEY_ID: "The key id is not registered for this consumer.",
    INVALID_DOCUMENT_ID: "No document exists with the provided id.",
    RESTRICTED_DATA_COLLECTION: "The requested collection is restricted.",
    ERROR_CREATING_API_KEY: "The API key could not be created.",
    ERROR_STORING_ACCESS_KEY: "The access key could not be stored.",
    ERROR_STORING_CONSUMER: "The consumer record could not be stored.",
    ERROR_REMOVING_KEY: "The access key could not be removed.",
    ERROR_UPDATING_CONSUMER_RECORD: "The consumer record could not be updated.",
}


class CatalogError(Exception):
    """Base class for every error the API reports to clients."""

    status_code: int = 500

    def __init__(self, code: str, message: Optional[str] = None, detail: Optional[str] = None) -> None:
        self.code = code
        self.message = message or _MESSAGES.get(code, code)
        self.detail = detail
        super().__init__(code)


class ValidationError(CatalogError):
    status_code = 400


class NotFoundError(CatalogError):
    status_code = 400


class PolicyError(CatalogError):
    status_code = 400


class InternalError(CatalogError):
    status_code = 500


# ---------------------------------------------------------------------------
# Key material errors (raised by consumers/keys.py)
# ---------------------------------------------------------------------------


class InvalidKeyFormat(ValidationError):
    """Bytes or text that cannot be decoded into a supported RSA key."""

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(INVALID_KEY_FORMAT, detail=detail)


class NotAPublicKey(ValidationError):
    """Key material that carries private components."""

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(INVALID_PUBLIC_KEY, detail=detail)


class KeyGenerationError(InternalError):
    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(ERROR_CREATING_API_KEY, detail=detail)
