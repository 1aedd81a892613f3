"""
documents/store.py -- SQLAlchemy-backed schema-free document store.

Every collection lives in one `documents` table: the collection name is a
column, the document itself is a JSON body. Callers address collections by
name at call time, so new collections need no migration.

Uses SQLAlchemy Core (not ORM), as the rest of the project does. Filters
arrive as the store-agnostic tree from query/filters.py; _condition_clause()
is the only place that knows how a predicate becomes SQL.

Pattern: Repository + Data Mapper. DocumentStore is the repository;
_row_to_document is the mapper. Route handlers never touch SQL directly.

SQLite specifics:
  Field access uses the JSON1 json_extract() function. Dotted field names
  address nested keys ("metadata.title" -> $."metadata"."title"); the field
  name "_id" addresses the document id column.

  REGEXP is not built into SQLite. _register_functions installs a Python
  implementation on every new connection, next to the WAL pragma.

Type handling:
  The query compiler never coerces numbers -- operands arrive as strings or
  DateValues. The store compares numerically when the stored JSON value is a
  number and the operand is a numeric literal, and textually otherwise.
  DateValues bind as the text the client sent, so a stored value written in
  the same ISO-8601 form compares as expected ("Z" against "Z", minutes
  against minutes).

Security: all values and JSON paths use bound parameters. No f-strings in SQL.

Usage:
    store = DocumentStore()                                # SQLite default
    doc = store.insert("widgets", {"name": "bolt", "price": 12})
    store.find("widgets", compile_filter({"price": "[gt:10]"}), offset=0, limit=20)
    store.update_by_id("widgets", doc["_id"], {"price": 14})
    store.close()
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    and_,
    case,
    cast,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine

from core.config import get_settings
from query.filters import Compare, Condition, DateValue, Equals, Filter, InSet, Matches, NotInSet, Range

logger = logging.getLogger("catalogapi.documents")

ID_FIELD = "_id"

_NUMERIC_JSON_TYPES = ("integer", "real")
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_documents = Table(
    "documents",
    metadata,
    # seq gives a stable insertion order for pagination.
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("doc_id", String(32), nullable=False, unique=True),
    Column("collection", String(255), nullable=False, index=True),
    Column("body", Text, nullable=False),  # JSON object serialized as text
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Connection setup
# ---------------------------------------------------------------------------


def _regexp(pattern: Optional[str], value: Optional[str]) -> Optional[bool]:
    if pattern is None or value is None:
        return None
    return re.search(pattern, value) is not None


def _register_functions(dbapi_conn, connection_record) -> None:
    """Enable WAL mode and install REGEXP on a fresh SQLite connection.

    Both are per-connection: SQLite PRAGMAs and user functions are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.create_function("regexp", 2, _regexp)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _json_path(field: str) -> str:
    """Build a JSON1 path with every segment quoted: a.b -> $."a"."b"."""
    return "$" + "".join(f'."{segment}"' for segment in field.split("."))


def _bind_value(value: Any) -> Any:
    """Render an operand for a text comparison against stored values."""
    if isinstance(value, DateValue):
        return value.text
    return value


def _as_number(value: Any) -> Optional[float | int]:
    if not isinstance(value, str) or not _NUMBER_RE.match(value):
        return None
    return float(value) if "." in value else int(value)


def _typed(value_expr, type_expr, build: Callable, *operands):
    """Build a comparison that follows the stored value's JSON type.

    build(expr, *operands) returns the clause. When every operand is a numeric
    literal and the field is known, numbers are compared as numbers and
    everything else as text; otherwise the text clause is used alone.
    """
    texts = [_bind_value(o) for o in operands]
    text_clause = build(value_expr, *texts)
    numbers = [_as_number(t) for t in texts]
    if type_expr is None or any(n is None for n in numbers):
        return text_clause
    return case(
        (type_expr.in_(_NUMERIC_JSON_TYPES), build(value_expr, *numbers)),
        else_=text_clause,
    )


def _field_exprs(field: str):
    """Return (value expression, JSON type expression or None) for a field."""
    if field == ID_FIELD:
        return _documents.c.doc_id, None
    path = _json_path(field)
    return func.json_extract(_documents.c.body, path), func.json_type(_documents.c.body, path)


_COMPARATORS: dict[str, Callable] = {
    "gt": lambda expr, v: expr > v,
    "gte": lambda expr, v: expr >= v,
    "lt": lambda expr, v: expr < v,
    "lte": lambda expr, v: expr <= v,
}


def _condition_clause(condition: Condition):
    """Translate one compiled condition into a SQL boolean clause."""
    value_expr, type_expr = _field_exprs(condition.field)
    predicate = condition.predicate

    if isinstance(predicate, Equals):
        return _typed(value_expr, type_expr, lambda expr, v: expr == v, predicate.value)
    if isinstance(predicate, Compare):
        return _typed(value_expr, type_expr, _COMPARATORS[predicate.op], predicate.value)
    if isinstance(predicate, Range):
        return _typed(
            value_expr,
            type_expr,
            lambda expr, low, high: and_(expr >= low, expr <= high),
            predicate.low,
            predicate.high,
        )
    if isinstance(predicate, InSet):
        return _typed(value_expr, type_expr, lambda expr, *vals: expr.in_(vals), *predicate.values)
    if isinstance(predicate, NotInSet):
        # A document without the field is "not in" any set.
        return or_(
            value_expr.is_(None),
            _typed(value_expr, type_expr, lambda expr, *vals: expr.not_in(vals), *predicate.values),
        )
    if isinstance(predicate, Matches):
        pattern = f"(?i){predicate.pattern}" if predicate.case_insensitive else predicate.pattern
        return cast(value_expr, String).regexp_match(pattern)
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def _where(collection: str, flt: Optional[Filter]):
    clauses = [_documents.c.collection == collection]
    if flt is not None:
        clauses.extend(_condition_clause(c) for c in flt)
    return and_(*clauses)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class DocumentStore:
    """Generic repository: every method takes the collection name first.

    The store applies no namespace policy of its own. Public data routes pass
    collection names through query.filters.guard_collection before calling
    in; internal callers (consumer registry, catalog) use the reserved
    sys.* collections directly.
    """

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().db_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool, so the same pooled
            # connection may be used from more than one thread.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _register_functions)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Single documents
    # ------------------------------------------------------------------

    def insert(self, collection: str, body: dict[str, Any]) -> dict[str, Any]:
        """Store a new document and return it with its assigned _id.

        A caller-supplied _id is ignored; the store owns document ids.
        """
        doc_id = _new_id()
        now = _now_iso()
        data = {k: v for k, v in body.items() if k != ID_FIELD}
        with self.engine.connect() as conn:
            conn.execute(
                _documents.insert().values(
                    doc_id=doc_id,
                    collection=collection,
                    body=json.dumps(data),
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return {ID_FIELD: doc_id, **data}

    def find_by_id(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Fetch one document. Returns None if the id is unknown in this collection."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _documents.select().where(
                    (_documents.c.collection == collection) & (_documents.c.doc_id == doc_id)
                )
            ).fetchone()
        return _row_to_document(row) if row is not None else None

    def update_by_id(self, collection: str, doc_id: str, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Merge top-level keys into a document and return the updated version.

        Keys present in changes replace the stored values; other keys are kept.
        Returns None if the id is unknown in this collection.
        """
        changes = {k: v for k, v in changes.items() if k != ID_FIELD}
        where = (_documents.c.collection == collection) & (_documents.c.doc_id == doc_id)
        with self.engine.connect() as conn:
            row = conn.execute(select(_documents.c.body).where(where)).fetchone()
            if row is None:
                return None
            merged = {**json.loads(row.body), **changes}
            conn.execute(_documents.update().where(where).values(body=json.dumps(merged), updated_at=_now_iso()))
            conn.commit()
        return {ID_FIELD: doc_id, **merged}

    def delete_by_id(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Remove a document and return what was removed, or None if absent."""
        where = (_documents.c.collection == collection) & (_documents.c.doc_id == doc_id)
        with self.engine.connect() as conn:
            row = conn.execute(_documents.select().where(where)).fetchone()
            if row is None:
                return None
            conn.execute(_documents.delete().where(where))
            conn.commit()
        return _row_to_document(row)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find(
        self,
        collection: str,
        flt: Optional[Filter] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Return documents matching the filter in insertion order."""
        stmt = _documents.select().where(_where(collection, flt)).order_by(_documents.c.seq).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_document(r) for r in rows]

    def count(self, collection: str, flt: Optional[Filter] = None) -> int:
        """Return how many documents match the filter."""
        stmt = select(func.count()).select_from(_documents).where(_where(collection, flt))
        with self.engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except Exception:
            logger.exception("Document store ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern -- DB row -> document dict)
# ---------------------------------------------------------------------------


def _row_to_document(row) -> dict[str, Any]:
    return {ID_FIELD: row.doc_id, **json.loads(row.body)}
