"""
catalog/dcat.py -- Render sys.datasets entries as DCAT metadata.

Each stored dataset document has the shape:
    {
      "metadata": {title, description, keyword, issued, modified, accessLevel,
                   language, license, organization, contactName, contactEmail},
      "data": {"storage": {"collection": "<collection name>"}}
    }

Missing keys render as None rather than failing the whole catalog page: one
incomplete registry entry should not hide every other dataset.
"""

from __future__ import annotations

from typing import Any

from query.pagination import PageResult

ACCESS_URL_PREFIX = "/v1/"


def _storage_collection(dataset: dict[str, Any]) -> str | None:
    return ((dataset.get("data") or {}).get("storage") or {}).get("collection")


def to_dcat(dataset: dict[str, Any]) -> dict[str, Any]:
    """Format one dataset registry document as a dcat:Dataset entry."""
    meta = dataset.get("metadata") or {}
    collection = _storage_collection(dataset)
    return {
        "@type": "dcat:Dataset",
        "title": meta.get("title"),
        "description": meta.get("description"),
        "identifier": collection,
        "keyword": meta.get("keyword"),
        "issued": meta.get("issued"),
        "modified": meta.get("modified"),
        "accessLevel": meta.get("accessLevel"),
        "language": meta.get("language"),
        "license": meta.get("license"),
        "publisher": {
            "@type": "org:Organization",
            "name": meta.get("organization"),
        },
        "contactPoint": {
            "@type": "vcard:Contact",
            "fn": meta.get("contactName"),
            "hasEmail": meta.get("contactEmail"),
        },
        "distribution": [
            {
                "@type": "dcat:Distribution",
                "mediaType": "application/json",
                "accessURL": f"{ACCESS_URL_PREFIX}{collection}" if collection else None,
            }
        ],
    }


def catalog_metadata(title: str, description: str, page: PageResult) -> dict[str, Any]:
    """Wrap one page of dataset documents in a dcat:Catalog envelope."""
    return {
        "@type": "dcat:Catalog",
        "title": title,
        "description": description,
        "dataset": [to_dcat(d) for d in page.items],
    }
