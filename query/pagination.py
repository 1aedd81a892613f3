"""
query/pagination.py -- page/pageSize normalization and paged store reads.

run_paged_query() issues two independent reads against the same filter: a
count, then a bounded fetch. The store may change between them, so total can
be stale relative to the returned page. That is accepted; there is no
transaction spanning the pair.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from query.filters import Filter

if TYPE_CHECKING:
    from documents.store import DocumentStore

logger = logging.getLogger("catalogapi.query")

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 100

# Largest OFFSET or LIMIT the database driver binds (signed 64-bit).
MAX_SQL_INT = 2**63 - 1

# Leading ASCII digits, read the way JavaScript parseInt reads them.
_LEADING_INT_RE = re.compile(r"\s*([+-]?)([0-9]+)")


def _parse_positive(raw: Any) -> Optional[int]:
    """Return the leading integer of raw if it is positive, else None.

    "3abc" reads as 3; "abc", "", "0" and "-2" give None. Only ASCII digits
    count, and "1_0" reads as 1. Values too long for a 64-bit integer read as
    MAX_SQL_INT.
    """
    if raw is None:
        return None
    match = _LEADING_INT_RE.match(str(raw))
    if match is None or match.group(1) == "-":
        return None
    digits = match.group(2).lstrip("0")
    if not digits:
        return None
    # Longer than any 64-bit value; also avoids int()'s digit limit.
    if len(digits) > 19:
        return MAX_SQL_INT
    return int(digits)


@dataclass(frozen=True)
class PageRequest:
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_params(
        cls,
        page: Any = None,
        page_size: Any = None,
        default_size: int = DEFAULT_PAGE_SIZE,
        max_size: Optional[int] = None,
    ) -> "PageRequest":
        """Normalize raw page/pageSize values.

        page absent, non-numeric, zero or negative -> 1.
        page_size absent, non-numeric, zero or negative -> default_size.
        max_size, when given, caps the page size; None leaves it unbounded.
        Both values are clamped so offset and limit fit a 64-bit SQL integer.
        """
        size = _parse_positive(page_size) or default_size
        if max_size is not None:
            size = min(size, max_size)
        size = min(size, MAX_SQL_INT)
        number = _parse_positive(page) or DEFAULT_PAGE
        # Keep (page - 1) * size bindable; anything past this is an empty page anyway.
        number = min(number, MAX_SQL_INT // size + 1)
        return cls(page=number, page_size=size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


@dataclass(frozen=True)
class PageResult:
    page: int
    page_size: int
    total: int
    items: list[dict[str, Any]] = field(default_factory=list)


def run_paged_query(
    store: "DocumentStore",
    collection: str,
    flt: Optional[Filter],
    page: PageRequest,
) -> PageResult:
    """Count matches, then fetch one page of them."""
    total = store.count(collection, flt)
    items = store.find(collection, flt, offset=page.offset, limit=page.limit)
    logger.debug(
        "Paged query on %s: page=%d size=%d total=%d returned=%d",
        collection,
        page.page,
        page.page_size,
        total,
        len(items),
    )
    return PageResult(page=page.page, page_size=page.page_size, total=total, items=items)
