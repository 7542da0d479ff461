"""Shared pytest fixtures for all tests."""
import pytest

from syncspec import ScenarioBuilder, spec
from syncspec.domain import Document, Query, doc, query


def make_builder(gc_enabled: bool = True) -> ScenarioBuilder:
    """Single-client builder with the given garbage collection setting."""
    return spec().with_gc_enabled(gc_enabled)


@pytest.fixture
def rooms() -> Query:
    return query("rooms")


@pytest.fixture
def messages() -> Query:
    return query("messages")


@pytest.fixture
def eros() -> Document:
    return doc("rooms/eros", 1000, {"size": 3})


@pytest.fixture
def builder() -> ScenarioBuilder:
    return make_builder()
