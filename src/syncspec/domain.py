"""Minimal query and document model used to write scenarios.

The engine under test owns the real domain model. This module carries just
enough of it for scenario scripts: resource paths, document keys, queries
with a stable canonical id, and documents with a version.

Example:
    >>> from syncspec.domain import doc, query, field_filter
    >>> q = query("rooms", field_filter("size", ">", 2))
    >>> q.canonical_id()
    'rooms|f:size>2|ob:'
    >>> doc("rooms/eros", 1000, {"size": 3}).key.path.canonical_string()
    'rooms/eros'
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from syncspec.models import DomainError

# ── Section 1: Paths and Keys ────────────────────────────────────────────────


class ResourcePath(BaseModel):
    """Slash-separated resource path."""

    model_config = ConfigDict(frozen=True)

    segments: Tuple[str, ...] = ()

    @classmethod
    def from_string(cls, value: str) -> "ResourcePath":
        return cls(segments=tuple(s for s in value.split("/") if s))

    def canonical_string(self) -> str:
        return "/".join(self.segments)

    def is_document_path(self) -> bool:
        return len(self.segments) > 0 and len(self.segments) % 2 == 0

    def __str__(self) -> str:
        return self.canonical_string()


class DocumentKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: ResourcePath

    @field_validator("path")
    @classmethod
    def _require_document_path(cls, v: ResourcePath) -> ResourcePath:
        if not v.is_document_path():
            raise ValueError(
                f"Document keys need an even, non-zero number of segments; "
                f"got {v.canonical_string()!r}"
            )
        return v

    def __str__(self) -> str:
        return self.path.canonical_string()


# ── Section 2: Queries ───────────────────────────────────────────────────────


class Operator(str, Enum):
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    EQUAL = "=="
    GREATER_THAN_OR_EQUAL = ">="
    GREATER_THAN = ">"
    ARRAY_CONTAINS = "array-contains"


class Direction(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


class FieldFilter(BaseModel):
    """Comparison of a field against a literal value."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1)
    op: Operator
    value: Any = None

    def canonical_id(self) -> str:
        return f"{_canonical_value(self.field)}{self.op.value}{_canonical_value(self.value)}"


class OrderBy(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1)
    direction: Direction = Direction.ASCENDING

    def canonical_id(self) -> str:
        return f"{_canonical_value(self.field)}{self.direction.value}"


class Query(BaseModel):
    """A query over a collection, or a single-document query at a key path."""

    model_config = ConfigDict(frozen=True)

    path: ResourcePath
    filters: Tuple[FieldFilter, ...] = ()
    explicit_order_by: Tuple[OrderBy, ...] = ()
    limit: Optional[int] = Field(None, ge=1)

    @classmethod
    def at_path(cls, path: ResourcePath) -> "Query":
        return cls(path=path)

    def has_limit(self) -> bool:
        return self.limit is not None

    def canonical_id(self) -> str:
        """Stable identity used to map the query to a target id."""
        canonical = (
            f"{self.path.canonical_string()}"
            f"|f:{','.join(f.canonical_id() for f in self.filters)}"
            f"|ob:{','.join(o.canonical_id() for o in self.explicit_order_by)}"
        )
        if self.limit is not None:
            canonical += f"|l:{self.limit}"
        return canonical

    def __str__(self) -> str:
        return f"Query({self.canonical_id()})"


def _canonical_value(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


# ── Section 3: Documents ─────────────────────────────────────────────────────


class Document(BaseModel):
    """An existing document at a version (microseconds)."""

    model_config = ConfigDict(frozen=True)

    key: DocumentKey
    version: int = Field(..., ge=0)
    data: Dict[str, Any] = Field(default_factory=dict)
    has_local_mutations: bool = False


class NoDocument(BaseModel):
    """Marker that a document is known not to exist at a version."""

    model_config = ConfigDict(frozen=True)

    key: DocumentKey
    version: int = Field(..., ge=0)


MaybeDocument = Union[Document, NoDocument]


# ── Section 4: Helper Constructors ───────────────────────────────────────────


def path(value: str) -> ResourcePath:
    return ResourcePath.from_string(value)


def key(value: str) -> DocumentKey:
    """Build a DocumentKey from a slash-separated path.

    Raises:
        DomainError: If the path does not name a document.
    """
    resource = path(value)
    if not resource.is_document_path():
        raise DomainError(f"Not a document path: {value!r}")
    return DocumentKey(path=resource)


def field_filter(field: str, op: Union[str, Operator], value: Any) -> FieldFilter:
    try:
        return FieldFilter(field=field, op=Operator(op), value=value)
    except (ValueError, PydanticValidationError) as exc:
        raise DomainError(f"Invalid filter {field!r} {op!r}: {exc}") from exc


def order_by(field: str, direction: Union[str, Direction] = "asc") -> OrderBy:
    try:
        return OrderBy(field=field, direction=Direction(direction))
    except (ValueError, PydanticValidationError) as exc:
        raise DomainError(f"Invalid order by {field!r} {direction!r}: {exc}") from exc


def query(
    resource: Union[str, ResourcePath],
    *constraints: Union[FieldFilter, OrderBy],
    limit: Optional[int] = None,
) -> Query:
    """Build a query from a path plus filters and order-bys in any order.

    Filters and order-bys keep their relative order.
    """
    resource_path = path(resource) if isinstance(resource, str) else resource
    filters = tuple(c for c in constraints if isinstance(c, FieldFilter))
    order_bys = tuple(c for c in constraints if isinstance(c, OrderBy))
    if len(filters) + len(order_bys) != len(constraints):
        raise DomainError(
            f"Query constraints must be filters or order-bys; got {constraints!r}"
        )
    if limit is not None and limit < 1:
        raise DomainError(f"Query limit must be positive; got {limit}")
    return Query(
        path=resource_path,
        filters=filters,
        explicit_order_by=order_bys,
        limit=limit,
    )


def doc(
    key_path: str,
    version: int,
    data: Optional[Dict[str, Any]] = None,
    *,
    has_local_mutations: bool = False,
) -> Document:
    if version < 0:
        raise DomainError(f"Document version must be >= 0; got {version}")
    return Document(
        key=key(key_path),
        version=version,
        data=data or {},
        has_local_mutations=has_local_mutations,
    )


def deleted_doc(key_path: str, version: int) -> NoDocument:
    if version < 0:
        raise DomainError(f"Document version must be >= 0; got {version}")
    return NoDocument(key=key(key_path), version=version)
