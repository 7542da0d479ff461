"""Target bookkeeping applied by the scenario builder.

Each function applies one scripted action to a client's MemoryState and
returns the post-condition the builder records on the step: the resolved
target id(s) and/or the active-targets snapshot after the action. Failing
checks raise before anything is mutated.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Tuple

from syncspec.domain import DocumentKey, Query
from syncspec.memory import MemoryState
from syncspec.models import (
    ActiveTargetMap,
    AmbiguousTargetError,
    DuplicateListenError,
    TargetEntry,
    TargetNotFoundError,
    UnknownQueryError,
)
from syncspec.translate import key_to_spec, query_to_spec

logger = logging.getLogger("syncspec.tracking")


def resolve_target_id(memory: MemoryState, query: Query) -> int:
    """Look up the target id of a listened query or a limbo document.

    Raises:
        AmbiguousTargetError: If both a query target and a limbo target match.
        TargetNotFoundError: If neither matches.
    """
    query_target = memory.query_mapping.get(query.canonical_id())
    limbo_target = memory.limbo_mapping.get(query.path.canonical_string())
    if query_target is not None and limbo_target is not None:
        raise AmbiguousTargetError(
            f"Found both query target {query_target} and limbo target "
            f"{limbo_target} for {query}; not supported"
        )
    if query_target is None and limbo_target is None:
        raise TargetNotFoundError(f"No target ID found for query/limbo doc: {query}")
    return query_target if query_target is not None else limbo_target  # type: ignore[return-value]


def resolve_target_ids(memory: MemoryState, queries: Iterable[Query]) -> Tuple[int, ...]:
    return tuple(resolve_target_id(memory, q) for q in queries)


def register_listen(
    memory: MemoryState,
    query: Query,
    gc_enabled: bool,
    resume_token: Optional[str] = None,
) -> Tuple[int, ActiveTargetMap]:
    """Assign (or reuse) a target id for a new listen and activate it.

    With garbage collection disabled a repeated listen reuses the id kept
    from the earlier listen; the resume token is not compared.

    Raises:
        DuplicateListenError: If GC is enabled and the query is still mapped.
    """
    canonical_id = query.canonical_id()
    existing = memory.query_mapping.get(canonical_id)
    if existing is not None:
        if gc_enabled:
            raise DuplicateListenError(f"Listening to same query twice: {query}")
        target_id = existing
        logger.debug("Reusing target %d for %s", target_id, canonical_id)
    else:
        target_id = memory.query_ids.next()
        logger.debug("Allocated target %d for %s", target_id, canonical_id)

    memory.query_mapping[canonical_id] = target_id
    memory.active_targets[target_id] = TargetEntry(
        query=query_to_spec(query),
        resume_token=resume_token or "",
    )
    return target_id, memory.snapshot_active_targets()


def register_unlisten(
    memory: MemoryState,
    query: Query,
    gc_enabled: bool,
) -> Tuple[int, ActiveTargetMap]:
    """Deactivate a listened query; forget its id only when GC is enabled.

    Raises:
        UnknownQueryError: If the query was never listened to.
    """
    canonical_id = query.canonical_id()
    target_id = memory.query_mapping.get(canonical_id)
    if target_id is None:
        raise UnknownQueryError(f"Unlistening to query not listened to: {query}")
    if gc_enabled:
        del memory.query_mapping[canonical_id]
    memory.active_targets.pop(target_id, None)
    return target_id, memory.snapshot_active_targets()


def restore_listen(
    memory: MemoryState,
    query: Query,
    resume_token: str,
) -> ActiveTargetMap:
    """Reactivate a known query's target after a stream disconnect.

    Raises:
        UnknownQueryError: If the query has no target id.
    """
    target_id = memory.query_mapping.get(query.canonical_id())
    if target_id is None:
        raise UnknownQueryError(f"Can't restore an unknown query: {query}")
    memory.active_targets[target_id] = TargetEntry(
        query=query_to_spec(query),
        resume_token=resume_token,
    )
    return memory.snapshot_active_targets()


def drop_target(memory: MemoryState, target_id: int) -> ActiveTargetMap:
    """Deactivate a target torn down by the backend."""
    memory.active_targets.pop(target_id, None)
    return memory.snapshot_active_targets()


def replace_active_targets(
    memory: MemoryState,
    targets: Sequence[Tuple[Query, str]],
) -> ActiveTargetMap:
    """Replace the active targets with exactly ``targets``.

    All targets are resolved before the map is replaced, so a failed
    resolution leaves the state untouched.
    """
    resolved = [
        (resolve_target_id(memory, q), TargetEntry(query=query_to_spec(q), resume_token=token))
        for q, token in targets
    ]
    memory.active_targets = dict(resolved)
    return memory.snapshot_active_targets()


def replace_limbo_docs(
    memory: MemoryState,
    keys: Sequence[DocumentKey],
) -> Tuple[Tuple[str, ...], ActiveTargetMap]:
    """Make ``keys`` the full set of limbo documents.

    Targets of earlier limbo documents are dropped from the active targets;
    limbo ids already assigned to a path are kept. Limbo targets never carry
    a resume token.
    """
    for target_id in memory.limbo_mapping.values():
        memory.active_targets.pop(target_id, None)

    for doc_key in keys:
        canonical_path = key_to_spec(doc_key)
        if canonical_path not in memory.limbo_mapping:
            memory.limbo_mapping[canonical_path] = memory.limbo_ids.next()
            logger.debug(
                "Allocated limbo target %d for %s",
                memory.limbo_mapping[canonical_path],
                canonical_path,
            )
        memory.active_targets[memory.limbo_mapping[canonical_path]] = TargetEntry(
            query=query_to_spec(Query.at_path(doc_key.path)),
            resume_token="",
        )

    limbo_docs = tuple(key_to_spec(k) for k in keys)
    return limbo_docs, memory.snapshot_active_targets()
