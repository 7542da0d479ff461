"""Projections from the domain model to the compact wire representation."""
from __future__ import annotations

from syncspec.domain import Document, DocumentKey, Query
from syncspec.models import SpecDocument, SpecQuery


def query_to_spec(query: Query) -> SpecQuery:
    """Project a query to path, optional limit, filters and order-bys.

    Empty filter and order-by lists are left out.
    """
    filters = tuple(
        (f.field, f.op.value, f.value) for f in query.filters
    )
    order_bys = tuple(
        (o.field, o.direction.value) for o in query.explicit_order_by
    )
    return SpecQuery(
        path=query.path.canonical_string(),
        limit=query.limit,
        filters=filters or None,
        order_bys=order_bys or None,
    )


def key_to_spec(key: DocumentKey) -> str:
    return key.path.canonical_string()


def doc_to_spec(doc: Document) -> SpecDocument:
    """Project a document to (key, version, data), plus "local" if dirty."""
    spec: SpecDocument = (key_to_spec(doc.key), doc.version, dict(doc.data))
    if doc.has_local_mutations:
        spec = spec + ("local",)
    return spec
