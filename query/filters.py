"""
query/filters.py -- Namespace guard and query-string filter compiler.

compile_filter() turns a flat mapping of query parameters into an immutable
Filter: a tuple of (field, predicate) conditions combined with AND. It is a
pure function -- the caller's mapping is never modified and the same input
always compiles to an equal Filter -- so it is tested without a store.

Operator grammar (whole value must match):
  [gt:v] [gte:v] [lt:v] [lte:v]  -> Compare       v classified (date or raw string)
  [in:a,b,c]                     -> InSet         literal comma-split values
  [nin:a,b,c]                    -> NotInSet      literal comma-split values
  [range:low|high]               -> Range         both bounds classified, inclusive
  [text:p] [regex:p]             -> Matches       case-insensitive, unanchored
  [anything-else:...]            -> field dropped, no error
  plain value                    -> Equals        raw string unchanged

Numbers are never coerced here. Only ISO-8601 dates are reclassified, into a
DateValue that keeps the parsed moment and the text exactly as supplied; how
an operand compares against a stored field is the store's concern (see
documents/store.py).

Layer rule: no imports from api/, consumers/, documents/, or catalog/.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, Mapping, Union

from core.errors import INVALID_QUERY_PATTERN, RESTRICTED_DATA_COLLECTION, PolicyError, ValidationError

logger = logging.getLogger("catalogapi.query")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RESTRICTED_PREFIXES = ("sys.", "system.")

# Query-string keys consumed by pagination, never compiled as fields.
RESERVED_KEYS = frozenset({"page", "pageSize"})

_OPERATOR_RE = re.compile(r"^\[(\w*):(.*)\]$", re.DOTALL)

# Calendar date, optionally followed by a time of day and a UTC offset.
# Week dates and ordinal dates are not accepted.
_ISO_DATE_RE = re.compile(
    r"^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])"
    r"([T ]([01]\d|2[0-3]):[0-5]\d(:[0-5]\d([.,]\d+)?)?"
    r"(Z|z|[+-]([01]\d|2[0-3]):?[0-5]\d)?)?$"
)

# ---------------------------------------------------------------------------
# Filter tree
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DateValue:
    """An ISO-8601 operand: the parsed moment and the text the client sent."""

    moment: datetime
    text: str


Scalar = Union[str, DateValue]


@dataclass(frozen=True)
class Equals:
    value: str


@dataclass(frozen=True)
class Compare:
    op: str  # "gt" | "gte" | "lt" | "lte"
    value: Scalar


@dataclass(frozen=True)
class InSet:
    values: tuple[str, ...]


@dataclass(frozen=True)
class NotInSet:
    values: tuple[str, ...]


@dataclass(frozen=True)
class Range:
    """Inclusive interval: low <= field <= high."""

    low: Scalar
    high: Scalar


@dataclass(frozen=True)
class Matches:
    pattern: str
    case_insensitive: bool = True


Predicate = Union[Equals, Compare, InSet, NotInSet, Range, Matches]


@dataclass(frozen=True)
class Condition:
    field: str
    predicate: Predicate


@dataclass(frozen=True)
class Filter:
    """AND of conditions, in the order the fields were supplied."""

    conditions: tuple[Condition, ...] = ()

    def __iter__(self) -> Iterator[Condition]:
        return iter(self.conditions)

    def __len__(self) -> int:
        return len(self.conditions)

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(c.field for c in self.conditions)

    def describe(self) -> dict[str, str]:
        """Loggable summary, one entry per field."""
        return {c.field: repr(c.predicate) for c in self.conditions}


# ---------------------------------------------------------------------------
# Namespace guard
# ---------------------------------------------------------------------------


def is_restricted(collection: str) -> bool:
    return collection.startswith(RESTRICTED_PREFIXES)


def guard_collection(collection: str) -> str:
    """Return the collection name unchanged, or raise for reserved namespaces.

    Prefix match is exact and case-sensitive: "sys.keys" is rejected,
    "Sys.keys" and "system" are not.
    """
    if is_restricted(collection):
        logger.info("Restricted collection requested")
        logger.debug("Restricted collection: %s", collection)
        raise PolicyError(RESTRICTED_DATA_COLLECTION)
    return collection


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def classify(scalar: str) -> Scalar:
    """Return a DateValue for strict ISO-8601 values, else the string unchanged.

    Strings that match the pattern but name an impossible date
    (2021-02-30) stay strings.
    """
    if not _ISO_DATE_RE.match(scalar):
        return scalar
    try:
        moment = datetime.fromisoformat(scalar)
    except ValueError:
        return scalar
    return DateValue(moment=moment, text=scalar)


def _compile_operator(op: str, payload: str) -> Predicate | None:
    """Compile one [op:payload] expression. None means drop the field."""
    if op in ("gt", "gte", "lt", "lte"):
        return Compare(op=op, value=classify(payload))
    if op == "in":
        return InSet(values=tuple(payload.split(",")))
    if op == "nin":
        return NotInSet(values=tuple(payload.split(",")))
    if op == "range":
        bounds = payload.split("|")
        if len(bounds) != 2:
            return None
        return Range(low=classify(bounds[0]), high=classify(bounds[1]))
    if op in ("text", "regex"):
        try:
            re.compile(payload)
        except re.error as exc:
            raise ValidationError(INVALID_QUERY_PATTERN, detail=str(exc)) from exc
        return Matches(pattern=payload)
    return None


def compile_condition(field: str, raw: Any) -> Condition | None:
    """Compile a single parameter. Returns None when the field is dropped."""
    value = str(raw)
    match = _OPERATOR_RE.match(value)
    if match is None:
        return Condition(field=field, predicate=Equals(value=value))
    op, payload = match.group(1), match.group(2)
    predicate = _compile_operator(op, payload)
    if predicate is None:
        logger.debug("Dropping field %s: unsupported operator expression %r", field, op)
        return None
    return Condition(field=field, predicate=predicate)


def compile_filter(params: Mapping[str, Any]) -> Filter:
    """Compile raw query parameters into an immutable Filter.

    Pagination keys (page, pageSize) are skipped. Fields with unknown or
    malformed operator expressions are left out entirely, exactly as if they
    had not been supplied.
    """
    conditions = []
    for field, raw in params.items():
        if field in RESERVED_KEYS:
            continue
        condition = compile_condition(field, raw)
        if condition is not None:
            conditions.append(condition)
    return Filter(conditions=tuple(conditions))
