"""Fluent construction of sync-engine scenarios.

A scenario is a timeline of simulated inputs (user actions, watch stream
messages, timers, lifecycle changes) with the events and internal state the
engine must show after each one. Every input method closes the open step
and opens a new one; every ``expect_*`` method adds to the open step.

Target ids are resolved as the script is written, so the produced steps
never contain an unresolved query. Listens, unlistens, and watch removals
with a cause automatically record the expected active targets.

Example:
    >>> from syncspec import spec
    >>> from syncspec.domain import doc, query
    >>> rooms = query("rooms")
    >>> scenario = (
    ...     spec()
    ...     .user_listens(rooms)
    ...     .watch_acks_full(rooms, 1000, doc("rooms/eros", 1000, {"size": 3}))
    ...     .expect_events(rooms, added=[doc("rooms/eros", 1000, {"size": 3})])
    ...     .build()
    ... )
    >>> len(scenario.steps)
    4
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence, Tuple, Union

from syncspec import tracking
from syncspec.clients import ClientRoster
from syncspec.domain import Document, DocumentKey, MaybeDocument, NoDocument, Query
from syncspec.memory import MemoryState
from syncspec.models import (
    ClientStateChange,
    Code,
    ConfigurationError,
    ConflictingExpectationError,
    EventExpectation,
    FailWrite,
    InvalidInputError,
    ListenTarget,
    RpcError,
    Scenario,
    SpecConfig,
    StepKind,
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
from syncspec.steps import StepDraft, StepSequencer
from syncspec.translate import doc_to_spec, key_to_spec, query_to_spec

logger = logging.getLogger("syncspec.builder")

SIMULATED_BACKEND_ERROR = "Simulated Backend Error"

# A query together with the resume token its target should carry.
ExpectedTarget = Union[Query, Tuple[Query, str]]


class ScenarioRunner(Protocol):
    """Executes a finished scenario against a sync engine."""

    def run_scenario(self, name: str, scenario: Scenario) -> Any:
        ...


def _resume_token_for(version: int) -> str:
    return f"resume-token-{version}"


def _as_rpc_error(error: Union[RpcError, Code, str]) -> RpcError:
    if isinstance(error, RpcError):
        return error
    return RpcError(code=normalize_code(error), message=SIMULATED_BACKEND_ERROR)


def _limbo_query(doc: MaybeDocument) -> Query:
    if not isinstance(doc, (Document, NoDocument)):
        raise InvalidInputError(f"Unknown limbo resolution: {doc!r}")
    return Query.at_path(doc.key.path)


def _docs_to_spec(docs: Optional[Iterable[Document]]) -> Optional[Tuple[Any, ...]]:
    if docs is None:
        return None
    return tuple(doc_to_spec(d) for d in docs)


class ScenarioBuilder:
    """Builds a Scenario one step at a time.

    The builder owns the step log and the scenario configuration; target
    bookkeeping lives in the active client's MemoryState, provided by the
    ClientRoster.
    """

    def __init__(self, roster: Optional[ClientRoster] = None) -> None:
        self._roster = roster if roster is not None else ClientRoster()
        self._config = SpecConfig()
        self._steps = StepSequencer()

    # ── Accessors ────────────────────────────────────────────────────────────

    @property
    def config(self) -> SpecConfig:
        return self._config

    @property
    def roster(self) -> ClientRoster:
        return self._roster

    @property
    def memory_state(self) -> MemoryState:
        return self._roster.memory_state

    @property
    def open_step(self) -> Optional[StepDraft]:
        return self._steps.open_step

    def _begin(self, kind: StepKind, value: Any) -> StepDraft:
        return self._steps.begin(StepDraft(kind=kind, input=value), self._roster.step_tag)

    def _resolve(self, query: Query) -> int:
        return tracking.resolve_target_id(self.memory_state, query)

    # ── Configuration ────────────────────────────────────────────────────────

    def with_gc_enabled(self, gc_enabled: bool) -> "ScenarioBuilder":
        """Turn garbage collection on or off. Default is on."""
        if self._steps.started:
            raise ConfigurationError(
                "with_gc_enabled() must be called before all spec steps."
            )
        self._config = self._config.model_copy(
            update={"use_garbage_collection": gc_enabled}
        )
        return self

    def client(self, client_index: int) -> "ScenarioBuilder":
        """Route the following steps to another client.

        The open step is closed and tagged with the previous client first.
        """
        self._roster.ensure_selectable(client_index)
        self._steps.open_next(self._roster.step_tag)
        self._roster.select(client_index)
        if client_index + 1 > self._config.num_clients:
            self._config = self._config.model_copy(
                update={"num_clients": client_index + 1}
            )
        return self

    # ── User inputs ──────────────────────────────────────────────────────────

    def user_listens(
        self, query: Query, resume_token: Optional[str] = None
    ) -> "ScenarioBuilder":
        target_id, active = tracking.register_listen(
            self.memory_state,
            query,
            self._config.use_garbage_collection,
            resume_token,
        )
        step = self._begin(
            StepKind.USER_LISTEN,
            ListenTarget(target_id=target_id, query=query_to_spec(query)),
        )
        step.expect_state(active_targets=active)
        return self

    def restore_listen(self, query: Query, resume_token: str) -> "ScenarioBuilder":
        """Re-register a target after a stream disconnect.

        Adds to the open step instead of opening one; it is meant to follow
        an input such as enable_network().
        """
        step = self._steps.require_open("Restoring a listen requires previous step")
        active = tracking.restore_listen(self.memory_state, query, resume_token)
        step.expect_state(active_targets=active)
        return self

    def user_unlistens(self, query: Query) -> "ScenarioBuilder":
        target_id, active = tracking.register_unlisten(
            self.memory_state, query, self._config.use_garbage_collection
        )
        step = self._begin(
            StepKind.USER_UNLISTEN,
            ListenTarget(target_id=target_id, query=query_to_spec(query)),
        )
        step.expect_state(active_targets=active)
        return self

    def user_sets(self, key: str, value: Dict[str, Any]) -> "ScenarioBuilder":
        self._begin(StepKind.USER_SET, UserWrite(key=key, value=value))
        return self

    def user_patches(self, key: str, value: Dict[str, Any]) -> "ScenarioBuilder":
        self._begin(StepKind.USER_PATCH, UserWrite(key=key, value=value))
        return self

    def user_deletes(self, key: str) -> "ScenarioBuilder":
        self._begin(StepKind.USER_DELETE, key)
        return self

    def become_hidden(self) -> "ScenarioBuilder":
        self._begin(StepKind.APPLY_CLIENT_STATE, ClientStateChange(visibility=Visibility.HIDDEN))
        return self

    def become_visible(self) -> "ScenarioBuilder":
        self._begin(StepKind.APPLY_CLIENT_STATE, ClientStateChange(visibility=Visibility.VISIBLE))
        return self

    def run_timer(self, timer_id: Union[TimerId, str]) -> "ScenarioBuilder":
        self._begin(StepKind.RUN_TIMER, normalize_timer_id(timer_id))
        return self

    def change_user(self, uid: Optional[str]) -> "ScenarioBuilder":
        self._begin(StepKind.CHANGE_USER, uid)
        return self

    # ── Lifecycle inputs ─────────────────────────────────────────────────────

    def disable_network(self) -> "ScenarioBuilder":
        step = self._begin(StepKind.ENABLE_NETWORK, False)
        step.expect_state(active_targets={}, limbo_docs=())
        return self

    def enable_network(self) -> "ScenarioBuilder":
        self._begin(StepKind.ENABLE_NETWORK, True)
        return self

    def restart(self) -> "ScenarioBuilder":
        return self._teardown(StepKind.RESTART)

    def shutdown(self) -> "ScenarioBuilder":
        return self._teardown(StepKind.SHUTDOWN)

    def _teardown(self, kind: StepKind) -> "ScenarioBuilder":
        step = self._begin(kind, True)
        step.expect_state(active_targets={}, limbo_docs=())
        # All existing listens are forgotten, so are their target ids.
        self.memory_state.reset()
        logger.info(
            "%s: cleared target mappings for client %d",
            kind.value,
            self._roster.active_index,
        )
        return self

    # ── Write stream inputs ──────────────────────────────────────────────────

    def write_acks(self, version: int, expect_user_callback: bool = True) -> "ScenarioBuilder":
        self._begin(
            StepKind.WRITE_ACK,
            WriteAck(version=version, expect_user_callback=expect_user_callback),
        )
        return self

    def fail_write(
        self,
        error: Union[RpcError, Code, str],
        expect_user_callback: bool = True,
    ) -> "ScenarioBuilder":
        self._begin(
            StepKind.FAIL_WRITE,
            FailWrite(error=_as_rpc_error(error), expect_user_callback=expect_user_callback),
        )
        return self

    # ── Watch stream inputs ──────────────────────────────────────────────────

    def watch_acks(self, query: Query) -> "ScenarioBuilder":
        self._begin(StepKind.WATCH_ACK, (self._resolve(query),))
        return self

    def watch_currents(self, query: Query, resume_token: str) -> "ScenarioBuilder":
        target_id = self._resolve(query)
        self._begin(
            StepKind.WATCH_CURRENT,
            WatchCurrent(target_ids=(target_id,), resume_token=resume_token),
        )
        return self

    def watch_removes(
        self, query: Query, cause: Optional[Union[RpcError, Code, str]] = None
    ) -> "ScenarioBuilder":
        """Remove a target. A removal with a cause also deactivates it."""
        target_id = self._resolve(query)
        rpc_cause = _as_rpc_error(cause) if cause is not None else None
        step = self._begin(
            StepKind.WATCH_REMOVE,
            WatchRemove(target_ids=(target_id,), cause=rpc_cause),
        )
        if rpc_cause is not None:
            step.expect_state(
                active_targets=tracking.drop_target(self.memory_state, target_id)
            )
        return self

    def watch_sends(
        self,
        *docs: Document,
        affects: Optional[Sequence[Query]] = None,
        removed: Optional[Sequence[Query]] = None,
    ) -> "ScenarioBuilder":
        affected_ids = (
            tracking.resolve_target_ids(self.memory_state, affects)
            if affects is not None else None
        )
        removed_ids = (
            tracking.resolve_target_ids(self.memory_state, removed)
            if removed is not None else None
        )
        self._begin(
            StepKind.WATCH_ENTITY,
            WatchEntity(
                docs=tuple(doc_to_spec(d) for d in docs),
                targets=affected_ids,
                removed_targets=removed_ids,
            ),
        )
        return self

    def watch_removes_doc(self, key: DocumentKey, *queries: Query) -> "ScenarioBuilder":
        removed_ids = tracking.resolve_target_ids(self.memory_state, queries)
        self._begin(
            StepKind.WATCH_ENTITY,
            WatchEntity(key=key_to_spec(key), removed_targets=removed_ids),
        )
        return self

    def watch_filters(
        self, queries: Sequence[Query], *keys: DocumentKey
    ) -> "ScenarioBuilder":
        target_ids = tracking.resolve_target_ids(self.memory_state, queries)
        self._begin(
            StepKind.WATCH_FILTER,
            WatchFilter(target_ids=target_ids, keys=tuple(key_to_spec(k) for k in keys)),
        )
        return self

    def watch_resets(self, *queries: Query) -> "ScenarioBuilder":
        self._begin(
            StepKind.WATCH_RESET,
            tracking.resolve_target_ids(self.memory_state, queries),
        )
        return self

    def watch_snapshots(self, version: int) -> "ScenarioBuilder":
        step = self._steps.require_open("Watch snapshot requires previous watch step")
        step.watch_snapshot = version
        return self

    def watch_acks_full(
        self, query: Query, version: int, *docs: Document
    ) -> "ScenarioBuilder":
        """Ack a target, send its documents, mark it current and snapshot."""
        self.watch_acks(query)
        self.watch_sends(*docs, affects=[query])
        self.watch_currents(query, _resume_token_for(version))
        self.watch_snapshots(version)
        return self

    def watch_stream_closes(
        self, error: Union[Code, str], run_backoff_timer: bool = True
    ) -> "ScenarioBuilder":
        self._begin(
            StepKind.WATCH_STREAM_CLOSE,
            WatchStreamClose(
                error=_as_rpc_error(error),
                run_backoff_timer=run_backoff_timer,
            ),
        )
        return self

    # ── Limbo helpers ────────────────────────────────────────────────────────

    def ack_limbo(self, version: int, doc: MaybeDocument) -> "ScenarioBuilder":
        """Resolve a limbo document as present (Document) or absent (NoDocument).

        Expands to watch ack, data (for a present document), current and a
        snapshot at ``version``.
        """
        query = _limbo_query(doc)
        self.watch_acks(query)
        if isinstance(doc, Document):
            self.watch_sends(doc, affects=[query])
        self.watch_currents(query, _resume_token_for(version))
        self.watch_snapshots(version)
        return self

    def watch_removes_limbo_target(self, doc: MaybeDocument) -> "ScenarioBuilder":
        return self.watch_removes(_limbo_query(doc))

    # ── Expectations ─────────────────────────────────────────────────────────

    def expect_active_targets(self, *targets: ExpectedTarget) -> "ScenarioBuilder":
        """Assert exactly this set of active targets from now on.

        Each target is a query (empty resume token) or a (query, token) pair.
        """
        step = self._steps.require_open("Active target expectation requires previous step")
        pairs = [t if isinstance(t, tuple) else (t, "") for t in targets]
        step.expect_state(
            active_targets=tracking.replace_active_targets(self.memory_state, pairs)
        )
        return self

    def expect_limbo_docs(self, *keys: DocumentKey) -> "ScenarioBuilder":
        """Assert exactly these documents are in limbo.

        Documents not yet in limbo get a new limbo target id.
        """
        step = self._steps.require_open("Limbo expectation requires previous step")
        limbo_docs, active = tracking.replace_limbo_docs(self.memory_state, keys)
        step.expect_state(limbo_docs=limbo_docs, active_targets=active)
        return self

    def expect_events(
        self,
        query: Query,
        *,
        added: Optional[Sequence[Document]] = None,
        modified: Optional[Sequence[Document]] = None,
        removed: Optional[Sequence[Document]] = None,
        metadata: Optional[Sequence[Document]] = None,
        error_code: Optional[Union[Code, str]] = None,
        from_cache: bool = False,
        has_pending_writes: bool = False,
    ) -> "ScenarioBuilder":
        step = self._steps.require_open("Expectations require previous step")
        if error_code is not None and any(
            docs is not None for docs in (added, modified, removed, metadata)
        ):
            raise ConflictingExpectationError("Can't provide both error and events")
        code = normalize_code(error_code) if error_code is not None else None
        step.expect.append(
            EventExpectation(
                query=query_to_spec(query),
                added=_docs_to_spec(added),
                modified=_docs_to_spec(modified),
                removed=_docs_to_spec(removed),
                metadata=_docs_to_spec(metadata),
                error_code=code,
                from_cache=from_cache,
                has_pending_writes=has_pending_writes,
            )
        )
        return self

    def expect_write_stream_request_count(self, num: int) -> "ScenarioBuilder":
        """Total requests sent on the write stream since the scenario started."""
        step = self._steps.require_open("Expectations require previous step")
        step.expect_state(write_stream_request_count=num)
        return self

    def expect_watch_stream_request_count(self, num: int) -> "ScenarioBuilder":
        """Total requests sent on the watch stream since the scenario started."""
        step = self._steps.require_open("Expectations require previous step")
        step.expect_state(watch_stream_request_count=num)
        return self

    def expect_num_outstanding_writes(self, num: int) -> "ScenarioBuilder":
        step = self._steps.require_open("Expectations require previous step")
        step.expect_state(num_outstanding_writes=num)
        return self

    def expect_num_active_clients(self, num: int) -> "ScenarioBuilder":
        step = self._steps.require_open("Expectations require previous step")
        step.expect_state(num_active_clients=num)
        return self

    def expect_primary_state(self, is_primary: bool) -> "ScenarioBuilder":
        step = self._steps.require_open("Expectations require previous step")
        step.expect_state(is_primary=is_primary)
        return self

    # ── Output ───────────────────────────────────────────────────────────────

    def build(self) -> Scenario:
        """Close the open step and return the scenario."""
        scenario = self._steps.finalize(self._config, self._roster.step_tag)
        logger.debug(
            "Built scenario with %d steps for %d client(s)",
            len(scenario.steps),
            scenario.config.num_clients,
        )
        return scenario

    def to_dict(self) -> Dict[str, Any]:
        return self.build().to_dict()

    def run(self, runner: ScenarioRunner, name: str) -> Any:
        """Hand the finished scenario to ``runner``."""
        return runner.run_scenario(name, self.build())


def spec() -> ScenarioBuilder:
    """Start a single-client scenario."""
    return ScenarioBuilder()


def client(client_index: int) -> ScenarioBuilder:
    """Start a multi-client scenario with ``client_index`` active."""
    return ScenarioBuilder(ClientRoster(multi_client=True)).client(client_index)
