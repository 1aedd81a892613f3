"""
consumers/models.py -- Domain dataclasses for consumers and their keys.

Pattern: Data class (pure data container, zero logic). Stores and the
registry do the work; api/models.py decides which fields leave the process.

Layer rule: no imports from api/, query/, or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class KeyPair:
    """An RSA key identified by the fingerprint of its public half.

    public and private hold base64 text of the PEM encodings
    (SubjectPublicKeyInfo and PKCS#8). private is None for access keys --
    consumers only ever hand us public material.

    id is None before the record is written to the document store.
    """

    fingerprint: str
    public: str
    private: Optional[str] = None
    id: Optional[str] = None

    @property
    def has_private(self) -> bool:
        return self.private is not None


@dataclass
class Consumer:
    """A registered API consumer.

    api_key is fixed at registration and never rotated. access_keys keeps
    insertion order; each entry is a public-only KeyPair.
    """

    uuid: str
    api_key: KeyPair
    access_keys: list[KeyPair] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
