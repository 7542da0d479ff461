"""Expected memory state of one simulated client."""
from __future__ import annotations

import logging
from typing import Dict

from syncspec.models import ActiveTargetMap
from syncspec.target_ids import TargetIdAllocator

logger = logging.getLogger("syncspec.memory")

# canonical query id -> target id
QueryMap = Dict[str, int]
# canonical document path -> target id
LimboMap = Dict[str, int]


class MemoryState:
    """Target bookkeeping for one client: mappings, active targets, allocators.

    ``active_targets`` holds every target the client should be watching: one
    entry per listened query and one per document in limbo. Whenever it
    changes, the builder writes a copy into the open step's state
    expectation.
    """

    query_mapping: QueryMap
    limbo_mapping: LimboMap
    active_targets: ActiveTargetMap
    query_ids: TargetIdAllocator
    limbo_ids: TargetIdAllocator

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Forget every listen, limbo document and issued id."""
        self.query_mapping = {}
        self.limbo_mapping = {}
        self.active_targets = {}
        self.query_ids = TargetIdAllocator.for_queries()
        self.limbo_ids = TargetIdAllocator.for_limbo_documents()
        logger.debug("Memory state reset")

    def snapshot_active_targets(self) -> ActiveTargetMap:
        """Copy of the active targets, ordered by target id."""
        return {tid: self.active_targets[tid] for tid in sorted(self.active_targets)}

    def __repr__(self) -> str:
        return (
            f"MemoryState(queries={len(self.query_mapping)}, "
            f"limbo={len(self.limbo_mapping)}, "
            f"active={sorted(self.active_targets)})"
        )
