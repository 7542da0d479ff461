"""Target id allocation.

Ids are partitioned by their low bit: query targets get even ids (2, 4, 6,
...) and limbo document targets get odd ids (1, 3, 5, ...). Two allocators
for the same client therefore never hand out the same id.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Optional


class TargetIdSpace(IntEnum):
    """Generator id stored in the reserved low bits of every issued id."""

    QUERY = 0
    LIMBO = 1


_RESERVED_BITS = 1
_STRIDE = 1 << _RESERVED_BITS
_MASK = _STRIDE - 1


class TargetIdAllocator:
    """Issues strictly increasing ids from one space."""

    def __init__(self, space: TargetIdSpace, after: int = 0) -> None:
        self._space = space
        candidate = (after & ~_MASK) | int(space)
        if candidate <= after:
            candidate += _STRIDE
        self._next = candidate
        self._last: Optional[int] = None

    @classmethod
    def for_queries(cls) -> "TargetIdAllocator":
        return cls(TargetIdSpace.QUERY)

    @classmethod
    def for_limbo_documents(cls) -> "TargetIdAllocator":
        return cls(TargetIdSpace.LIMBO)

    @property
    def space(self) -> TargetIdSpace:
        return self._space

    @property
    def last_issued(self) -> Optional[int]:
        return self._last

    def next(self) -> int:
        target_id = self._next
        self._next += _STRIDE
        self._last = target_id
        return target_id

    def __repr__(self) -> str:
        return f"TargetIdAllocator(space={self._space.name}, next={self._next})"
