"""Unit tests for target id allocation."""
from __future__ import annotations

from syncspec.target_ids import TargetIdAllocator, TargetIdSpace


class TestQueryAllocator:
    def test_starts_at_two(self) -> None:
        assert TargetIdAllocator.for_queries().next() == 2

    def test_issues_even_ids(self) -> None:
        alloc = TargetIdAllocator.for_queries()
        assert [alloc.next() for _ in range(4)] == [2, 4, 6, 8]

    def test_space(self) -> None:
        assert TargetIdAllocator.for_queries().space is TargetIdSpace.QUERY


class TestLimboAllocator:
    def test_issues_odd_ids(self) -> None:
        alloc = TargetIdAllocator.for_limbo_documents()
        assert [alloc.next() for _ in range(4)] == [1, 3, 5, 7]

    def test_space(self) -> None:
        assert TargetIdAllocator.for_limbo_documents().space is TargetIdSpace.LIMBO


class TestSeeding:
    def test_after_skips_to_next_id_in_space(self) -> None:
        assert TargetIdAllocator(TargetIdSpace.QUERY, after=7).next() == 8
        assert TargetIdAllocator(TargetIdSpace.QUERY, after=8).next() == 10
        assert TargetIdAllocator(TargetIdSpace.LIMBO, after=8).next() == 9
        assert TargetIdAllocator(TargetIdSpace.LIMBO, after=9).next() == 11

    def test_last_issued(self) -> None:
        alloc = TargetIdAllocator.for_queries()
        assert alloc.last_issued is None
        alloc.next()
        alloc.next()
        assert alloc.last_issued == 4

    def test_instances_are_independent(self) -> None:
        a = TargetIdAllocator.for_queries()
        b = TargetIdAllocator.for_queries()
        a.next()
        a.next()
        assert b.next() == 2
