"""
consumers/keys.py -- RSA key generation, import, fingerprinting and transcoding.

Security design decisions:
  Generation: cryptography's RSA backend with public exponent 65537. The
       modulus size comes from Settings.api_key_bits (default 2048).

  Import: consumers submit base64 text of a PEM or DER public key (SPKI or
       PKCS#1). Anything that parses as a private key -- including an
       encrypted one we cannot open -- is rejected as NotAPublicKey. We never
       store private material a consumer sends us, even by accident.

  Canonical form: every key is re-exported as SubjectPublicKeyInfo PEM before
       it is fingerprinted or stored. Two imports of the same key therefore
       produce identical bytes and identical fingerprints regardless of the
       container format the consumer used.

  Fingerprint: SHA-256 of the canonical public PEM, rendered as colon-separated
       hex pairs. The short form keeps the first 8 bytes for display.

Layer rule: no imports from api/, documents/, query/, or catalog/.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from consumers.models import KeyPair
from core.config import get_settings
from core.errors import CatalogError, InvalidKeyFormat, KeyGenerationError, NotAPublicKey

logger = logging.getLogger("catalogapi.keys")

_PUBLIC_EXPONENT = 65537
_SHORT_FINGERPRINT_BYTES = 8

# ---------------------------------------------------------------------------
# Transcoding
# ---------------------------------------------------------------------------


def encode(data: bytes) -> str:
    """Return standard base64 text for raw bytes."""
    return base64.b64encode(data).decode("ascii")


def decode(text: str) -> bytes:
    """Decode base64 text back to bytes.

    Whitespace (line wrapping from copy/paste) is ignored. Anything else that
    is not strict base64 raises InvalidKeyFormat.
    """
    compact = "".join((text or "").split())
    if not compact:
        raise InvalidKeyFormat("Key text is empty.")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidKeyFormat("Key text is not valid base64.") from exc


# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------


def fingerprint(public_bytes: bytes, short: bool = True) -> str:
    """Return the SHA-256 fingerprint of public key bytes.

    Pure function: the same bytes always give the same string for a given
    value of short.
    """
    digest = hashlib.sha256(public_bytes).digest()
    if short:
        digest = digest[:_SHORT_FINGERPRINT_BYTES]
    return ":".join(f"{b:02x}" for b in digest)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _is_pem(data: bytes) -> bool:
    return data.lstrip().startswith(b"-----BEGIN")


def _load_public(data: bytes):
    """Return a public key object, or None when the bytes are not one."""
    loader = serialization.load_pem_public_key if _is_pem(data) else serialization.load_der_public_key
    try:
        return loader(data)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        return None


def _holds_private_material(data: bytes) -> bool:
    if _is_pem(data):
        try:
            serialization.load_pem_private_key(data, password=None)
        except TypeError:
            # Encrypted private key: we cannot open it, but it is private.
            return True
        except (ValueError, UnsupportedAlgorithm):
            return False
        return True
    try:
        serialization.load_der_private_key(data, password=None)
    except TypeError:
        return True
    except (ValueError, UnsupportedAlgorithm):
        return False
    return True


def _canonical_public_pem(public_key) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


# ---------------------------------------------------------------------------
# Import result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyImport:
    """Outcome of decoding and importing a consumer-supplied key.

    Exactly one of key / error is set. Callers branch on ok instead of
    catching exceptions, so an optional import step can carry on without the
    key while a mandatory one turns error into its own failure.
    """

    key: Optional[KeyPair] = None
    error: Optional[CatalogError] = None

    @property
    def ok(self) -> bool:
        return self.key is not None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class KeyPairService:
    """Creates and validates the RSA keys bound to consumers.

    Usage:
        keys = KeyPairService(bits=2048)
        api_key = keys.generate()
        result = keys.parse_access_key(base64_text)
        if result.ok:
            store(result.key)
    """

    fingerprint = staticmethod(fingerprint)
    encode = staticmethod(encode)
    decode = staticmethod(decode)

    def __init__(self, bits: Optional[int] = None) -> None:
        self.bits = bits or get_settings().api_key_bits

    def generate(self, bits: Optional[int] = None) -> KeyPair:
        """Generate a fresh keypair. Raises KeyGenerationError on backend failure."""
        size = bits or self.bits
        try:
            private_key = rsa.generate_private_key(public_exponent=_PUBLIC_EXPONENT, key_size=size)
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise KeyGenerationError(str(exc)) from exc
        public_pem = _canonical_public_pem(private_key.public_key())
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        logger.debug("Generated %d-bit RSA keypair", size)
        return KeyPair(
            fingerprint=fingerprint(public_pem, short=True),
            public=encode(public_pem),
            private=encode(private_pem),
        )

    def import_public(self, data: bytes) -> KeyPair:
        """Import raw PEM/DER bytes as a public-only KeyPair.

        Raises:
            NotAPublicKey:    the bytes carry private key material.
            InvalidKeyFormat: the bytes are not a parsable RSA public key.
        """
        public_key = _load_public(data)
        if public_key is None:
            if _holds_private_material(data):
                raise NotAPublicKey("Private key material is not accepted.")
            raise InvalidKeyFormat("Bytes are not a PEM or DER public key.")
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise InvalidKeyFormat("Only RSA public keys are supported.")
        public_pem = _canonical_public_pem(public_key)
        return KeyPair(fingerprint=fingerprint(public_pem, short=True), public=encode(public_pem))

    def parse_access_key(self, text: Any) -> KeyImport:
        """Decode base64 text and import it, reporting failure as a value.

        text arrives straight from a JSON body, so non-string values are
        reported as InvalidKeyFormat rather than raised.
        """
        if text is not None and not isinstance(text, str):
            return KeyImport(error=InvalidKeyFormat("Key text must be a string."))
        try:
            return KeyImport(key=self.import_public(decode(text or "")))
        except (InvalidKeyFormat, NotAPublicKey) as exc:
            return KeyImport(error=exc)
