"""
syncspec: scenario builder for sync-engine spec tests.

A scenario describes a simulated client session (listens, writes, watch
stream messages, restarts) together with the events and internal state the
engine under test must show after every step. The builder resolves every
query and limbo document to its target id while the script is written, so
the exported steps can be replayed by any runner.

Example:
    >>> from syncspec import spec
    >>> from syncspec.domain import doc, query
    >>> rooms = query("rooms")
    >>> eros = doc("rooms/eros", 1000, {"size": 3})
    >>> scenario = (
    ...     spec()
    ...     .user_listens(rooms)
    ...     .watch_acks_full(rooms, 1000, eros)
    ...     .expect_events(rooms, added=[eros])
    ...     .build()
    ... )
    >>> scenario.steps[0].to_dict()["userListen"]
    {'targetId': 2, 'query': {'path': 'rooms'}}

Target ids: listened queries get even ids (2, 4, ...) and limbo documents
odd ids (1, 3, ...), independently per client.
"""

__version__ = "1.0.0"

# Builder
from syncspec.builder import (
    SIMULATED_BACKEND_ERROR,
    ScenarioBuilder,
    ScenarioRunner,
    client,
    spec,
)

# Client state
from syncspec.clients import ClientRoster
from syncspec.memory import MemoryState
from syncspec.steps import StepDraft, StepSequencer
from syncspec.target_ids import TargetIdAllocator, TargetIdSpace

# Domain adapter
from syncspec.domain import (
    Direction,
    Document,
    DocumentKey,
    FieldFilter,
    NoDocument,
    Operator,
    OrderBy,
    Query,
    ResourcePath,
    deleted_doc,
    doc,
    field_filter,
    key,
    order_by,
    path,
    query,
)

# Wire models
from syncspec.models import (
    ClientStateChange,
    Code,
    EventExpectation,
    FailWrite,
    ListenTarget,
    RpcError,
    Scenario,
    SpecConfig,
    SpecQuery,
    StateExpectation,
    Step,
    StepKind,
    TargetEntry,
    TimerId,
    UserWrite,
    Visibility,
    WatchCurrent,
    WatchEntity,
    WatchFilter,
    WatchRemove,
    WatchStreamClose,
    WriteAck,
    normalize_code,
    normalize_timer_id,
)

# Errors
from syncspec.models import (
    AmbiguousTargetError,
    ConfigurationError,
    ConflictingExpectationError,
    DomainError,
    DuplicateListenError,
    InvalidInputError,
    NoOpenStepError,
    ScenarioScriptError,
    SyncSpecError,
    TargetNotFoundError,
    UnknownQueryError,
)

# Projections
from syncspec.translate import doc_to_spec, key_to_spec, query_to_spec

__all__ = [
    "__version__",
    # Builder
    "SIMULATED_BACKEND_ERROR",
    "ScenarioBuilder",
    "ScenarioRunner",
    "client",
    "spec",
    # Client state
    "ClientRoster",
    "MemoryState",
    "StepDraft",
    "StepSequencer",
    "TargetIdAllocator",
    "TargetIdSpace",
    # Domain adapter
    "Direction",
    "Document",
    "DocumentKey",
    "FieldFilter",
    "NoDocument",
    "Operator",
    "OrderBy",
    "Query",
    "ResourcePath",
    "deleted_doc",
    "doc",
    "field_filter",
    "key",
    "order_by",
    "path",
    "query",
    # Wire models
    "ClientStateChange",
    "Code",
    "EventExpectation",
    "FailWrite",
    "ListenTarget",
    "RpcError",
    "Scenario",
    "SpecConfig",
    "SpecQuery",
    "StateExpectation",
    "Step",
    "StepKind",
    "TargetEntry",
    "TimerId",
    "UserWrite",
    "Visibility",
    "WatchCurrent",
    "WatchEntity",
    "WatchFilter",
    "WatchRemove",
    "WatchStreamClose",
    "WriteAck",
    "normalize_code",
    "normalize_timer_id",
    # Errors
    "AmbiguousTargetError",
    "ConfigurationError",
    "ConflictingExpectationError",
    "DomainError",
    "DuplicateListenError",
    "InvalidInputError",
    "NoOpenStepError",
    "ScenarioScriptError",
    "SyncSpecError",
    "TargetNotFoundError",
    "UnknownQueryError",
    # Projections
    "doc_to_spec",
    "key_to_spec",
    "query_to_spec",
]
