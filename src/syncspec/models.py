"""Step and scenario data models for syncspec.

Everything here is a frozen pydantic model. Field names are snake_case in
Python and camelCase on the wire (``model_dump(by_alias=True)``), which is
the shape an external spec runner consumes.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    GetJsonSchemaHandler,
    TypeAdapter,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic.json_schema import JsonSchemaValue

# ── Section 1: Enums ─────────────────────────────────────────────────────────


class StepKind(str, Enum):
    """The simulated input carried by a step. Values are the wire field names."""

    USER_LISTEN = "userListen"
    USER_UNLISTEN = "userUnlisten"
    USER_SET = "userSet"
    USER_PATCH = "userPatch"
    USER_DELETE = "userDelete"
    APPLY_CLIENT_STATE = "applyClientState"
    RUN_TIMER = "runTimer"
    CHANGE_USER = "changeUser"
    ENABLE_NETWORK = "enableNetwork"
    RESTART = "restart"
    SHUTDOWN = "shutdown"
    WATCH_ACK = "watchAck"
    WATCH_CURRENT = "watchCurrent"
    WATCH_REMOVE = "watchRemove"
    WATCH_ENTITY = "watchEntity"
    WATCH_FILTER = "watchFilter"
    WATCH_RESET = "watchReset"
    WATCH_STREAM_CLOSE = "watchStreamClose"
    WRITE_ACK = "writeAck"
    FAIL_WRITE = "failWrite"


class Code(str, Enum):
    """Canonical RPC status codes, by their client-facing names."""

    OK = "ok"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid-argument"
    DEADLINE_EXCEEDED = "deadline-exceeded"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    PERMISSION_DENIED = "permission-denied"
    RESOURCE_EXHAUSTED = "resource-exhausted"
    FAILED_PRECONDITION = "failed-precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out-of-range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "data-loss"
    UNAUTHENTICATED = "unauthenticated"


class TimerId(str, Enum):
    """Delayed operations a runner can fire on demand."""

    LISTEN_STREAM_IDLE = "listen_stream_idle"
    LISTEN_STREAM_CONNECTION_BACKOFF = "listen_stream_connection_backoff"
    WRITE_STREAM_IDLE = "write_stream_idle"
    WRITE_STREAM_CONNECTION_BACKOFF = "write_stream_connection_backoff"
    ONLINE_STATE_TIMEOUT = "online_state_timeout"
    CLIENT_METADATA_REFRESH = "client_metadata_refresh"


class Visibility(str, Enum):
    HIDDEN = "hidden"
    VISIBLE = "visible"


_E = TypeVar("_E", bound=Enum)


def _normalize(enum_cls: Type[_E], value: Any, label: str) -> _E:
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if member.value == value:
            return member
    raise InvalidInputError(
        f"Unknown {label}: {value!r}. Valid values: {[m.value for m in enum_cls]}"
    )


def normalize_code(value: Union[Code, str]) -> Code:
    """Resolve a status code name such as ``"permission-denied"``.

    Raises:
        InvalidInputError: If value is not a known code.
    """
    return _normalize(Code, value, "status code")


def normalize_timer_id(value: Union[TimerId, str]) -> TimerId:
    """Resolve a timer name such as ``"listen_stream_idle"``.

    Raises:
        InvalidInputError: If value is not a known timer.
    """
    return _normalize(TimerId, value, "timer id")


# ── Section 2: Base Model ────────────────────────────────────────────────────


class WireModel(BaseModel):
    """Frozen model that serializes with camelCase aliases."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire form, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# A document as seen by the runner: (key, version, data[, "local"]).
SpecDocument = Tuple[Any, ...]

# (field, operator name, literal value)
SpecQueryFilter = Tuple[str, str, Any]

# (field, direction name)
SpecQueryOrderBy = Tuple[str, str]


# ── Section 3: Queries and Targets ───────────────────────────────────────────


class SpecQuery(WireModel):
    """Compact projection of a query."""

    path: str
    limit: Optional[int] = Field(None, ge=1)
    filters: Optional[Tuple[SpecQueryFilter, ...]] = None
    order_bys: Optional[Tuple[SpecQueryOrderBy, ...]] = None


class TargetEntry(WireModel):
    """One active watch target as the client is expected to hold it."""

    query: SpecQuery
    resume_token: str = ""


class _TargetIdKeys:
    """JSON object keys are strings; target ids travel as decimal digits."""

    def __get_pydantic_json_schema__(
        self, core_schema: Any, handler: GetJsonSchemaHandler
    ) -> JsonSchemaValue:
        json_schema = handler(core_schema)
        json_schema["propertyNames"] = {"pattern": "^[0-9]+$"}
        return json_schema


ActiveTargetMap = Annotated[Dict[int, TargetEntry], _TargetIdKeys()]


class RpcError(WireModel):
    code: Code
    message: str = ""


# ── Section 4: Step Inputs ───────────────────────────────────────────────────


class ListenTarget(WireModel):
    """Input for userListen / userUnlisten."""

    target_id: int = Field(..., ge=1)
    query: SpecQuery


class UserWrite(WireModel):
    """Input for userSet / userPatch."""

    key: str = Field(..., min_length=1)
    value: Dict[str, Any] = Field(default_factory=dict)


class ClientStateChange(WireModel):
    visibility: Visibility


class WatchCurrent(WireModel):
    target_ids: Tuple[int, ...]
    resume_token: str


class WatchRemove(WireModel):
    target_ids: Tuple[int, ...]
    cause: Optional[RpcError] = None


class WatchEntity(WireModel):
    """A document change (``docs``) or a removal by key (``key``)."""

    docs: Optional[Tuple[SpecDocument, ...]] = None
    key: Optional[str] = None
    targets: Optional[Tuple[int, ...]] = None
    removed_targets: Optional[Tuple[int, ...]] = None


class WatchFilter(WireModel):
    """Existence filter: the listed targets should contain exactly ``keys``."""

    target_ids: Tuple[int, ...]
    keys: Tuple[str, ...] = ()


class WatchStreamClose(WireModel):
    error: RpcError
    run_backoff_timer: bool = True


class WriteAck(WireModel):
    version: int = Field(..., ge=0)
    expect_user_callback: bool = True


class FailWrite(WireModel):
    error: RpcError
    expect_user_callback: bool = True


_TARGET_IDS = TypeAdapter(Tuple[int, ...])

_INPUT_ADAPTERS: Dict[StepKind, TypeAdapter[Any]] = {
    StepKind.USER_LISTEN: TypeAdapter(ListenTarget),
    StepKind.USER_UNLISTEN: TypeAdapter(ListenTarget),
    StepKind.USER_SET: TypeAdapter(UserWrite),
    StepKind.USER_PATCH: TypeAdapter(UserWrite),
    StepKind.USER_DELETE: TypeAdapter(str),
    StepKind.APPLY_CLIENT_STATE: TypeAdapter(ClientStateChange),
    StepKind.RUN_TIMER: TypeAdapter(TimerId),
    StepKind.CHANGE_USER: TypeAdapter(Optional[str]),
    StepKind.ENABLE_NETWORK: TypeAdapter(bool),
    StepKind.RESTART: TypeAdapter(bool),
    StepKind.SHUTDOWN: TypeAdapter(bool),
    StepKind.WATCH_ACK: _TARGET_IDS,
    StepKind.WATCH_CURRENT: TypeAdapter(WatchCurrent),
    StepKind.WATCH_REMOVE: TypeAdapter(WatchRemove),
    StepKind.WATCH_ENTITY: TypeAdapter(WatchEntity),
    StepKind.WATCH_FILTER: TypeAdapter(WatchFilter),
    StepKind.WATCH_RESET: _TARGET_IDS,
    StepKind.WATCH_STREAM_CLOSE: TypeAdapter(WatchStreamClose),
    StepKind.WRITE_ACK: TypeAdapter(WriteAck),
    StepKind.FAIL_WRITE: TypeAdapter(FailWrite),
}

_WIRE_INPUT_KEYS: Tuple[str, ...] = tuple(kind.value for kind in StepKind)


# ── Section 5: Expectations ──────────────────────────────────────────────────


class EventExpectation(WireModel):
    """A snapshot the client must raise for ``query`` while processing a step."""

    query: SpecQuery
    added: Optional[Tuple[SpecDocument, ...]] = None
    modified: Optional[Tuple[SpecDocument, ...]] = None
    removed: Optional[Tuple[SpecDocument, ...]] = None
    metadata: Optional[Tuple[SpecDocument, ...]] = None
    error_code: Optional[Code] = None
    from_cache: bool = False
    has_pending_writes: bool = False


class StateExpectation(WireModel):
    """Internal client state that must hold after a step has been applied."""

    active_targets: Optional[ActiveTargetMap] = None
    limbo_docs: Optional[Tuple[str, ...]] = None
    write_stream_request_count: Optional[int] = Field(None, ge=0)
    watch_stream_request_count: Optional[int] = Field(None, ge=0)
    num_outstanding_writes: Optional[int] = Field(None, ge=0)
    num_active_clients: Optional[int] = Field(None, ge=0)
    is_primary: Optional[bool] = None


# ── Section 6: Steps and Scenarios ───────────────────────────────────────────


def _to_wire(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, (tuple, list)):
        return [_to_wire(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


class Step(WireModel):
    """One closed step of a scenario.

    Carries exactly one simulated input (``kind`` + ``input``). On the wire
    the input is keyed by its kind, e.g. ``{"watchAck": [2]}``; both shapes
    are accepted by ``model_validate``.
    """

    kind: StepKind
    input: Any = None
    watch_snapshot: Optional[int] = Field(None, ge=0)
    expect: Optional[Tuple[EventExpectation, ...]] = None
    state_expect: Optional[StateExpectation] = None
    client_index: Optional[int] = Field(None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _coerce_input(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "kind" not in data:
            present = [k for k in _WIRE_INPUT_KEYS if k in data]
            if len(present) != 1:
                raise ValueError(
                    "A step must carry exactly one input field; "
                    f"found {present or 'none'}"
                )
            data["kind"] = present[0]
            data["input"] = data.pop(present[0])
        kind = StepKind(data["kind"])
        data["input"] = _INPUT_ADAPTERS[kind].validate_python(data.get("input"))
        return data

    def target_ids(self) -> Tuple[int, ...]:
        """Target ids referenced by this step's input, in input order."""
        value = self.input
        if isinstance(value, ListenTarget):
            return (value.target_id,)
        if isinstance(value, (WatchCurrent, WatchRemove, WatchFilter)):
            return value.target_ids
        if isinstance(value, WatchEntity):
            return (value.targets or ()) + (value.removed_targets or ())
        if self.kind in (StepKind.WATCH_ACK, StepKind.WATCH_RESET):
            return tuple(value)
        return ()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {self.kind.value: _to_wire(self.input)}
        out.update(
            self.model_dump(
                mode="json",
                by_alias=True,
                exclude_none=True,
                exclude={"kind", "input"},
            )
        )
        return out

    def __repr__(self) -> str:
        """Human-readable representation."""
        client = "" if self.client_index is None else f", client={self.client_index}"
        return f"Step(kind={self.kind.value}{client})"


class SpecConfig(WireModel):
    """Scenario-wide settings handed to the runner."""

    use_garbage_collection: bool = Field(
        True,
        validation_alias=AliasChoices(
            "useGarbageCollection", "garbageCollectionEnabled", "use_garbage_collection"
        ),
        serialization_alias="useGarbageCollection",
    )
    num_clients: int = Field(1, ge=1)


class Scenario(WireModel):
    """A finalized scenario: configuration plus the ordered closed steps."""

    config: SpecConfig = Field(default_factory=SpecConfig)
    steps: Tuple[Step, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "steps": [step.to_dict() for step in self.steps],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        return cls.model_validate(data)

    def steps_for_client(self, client_index: int) -> List[Step]:
        """Steps applying to one client; untagged steps belong to client 0."""
        return [
            s for s in self.steps
            if (s.client_index if s.client_index is not None else 0) == client_index
        ]


# ── Section 7: Wire Records ──────────────────────────────────────────────────


def _require_one_input(schema: Dict[str, Any]) -> None:
    schema["oneOf"] = [{"required": [kind.value]} for kind in StepKind]


class StepRecord(WireModel):
    """Wire shape of one step, as produced by ``Step.to_dict()``.

    Exactly one input field is set. The exported JSON schema is generated
    from this model and ``ScenarioRecord``.
    """

    model_config = ConfigDict(extra="forbid", json_schema_extra=_require_one_input)

    user_listen: Optional[ListenTarget] = None
    user_unlisten: Optional[ListenTarget] = None
    user_set: Optional[UserWrite] = None
    user_patch: Optional[UserWrite] = None
    user_delete: Optional[str] = None
    apply_client_state: Optional[ClientStateChange] = None
    run_timer: Optional[TimerId] = None
    change_user: Optional[str] = None
    enable_network: Optional[bool] = None
    restart: Optional[bool] = None
    shutdown: Optional[bool] = None
    watch_ack: Optional[Tuple[int, ...]] = None
    watch_current: Optional[WatchCurrent] = None
    watch_remove: Optional[WatchRemove] = None
    watch_entity: Optional[WatchEntity] = None
    watch_filter: Optional[WatchFilter] = None
    watch_reset: Optional[Tuple[int, ...]] = None
    watch_stream_close: Optional[WatchStreamClose] = None
    write_ack: Optional[WriteAck] = None
    fail_write: Optional[FailWrite] = None

    watch_snapshot: Optional[int] = Field(None, ge=0)
    expect: Optional[Tuple[EventExpectation, ...]] = None
    state_expect: Optional[StateExpectation] = None
    client_index: Optional[int] = Field(None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _exactly_one_input(cls, data: Any) -> Any:
        if isinstance(data, dict):
            present = [k for k in _WIRE_INPUT_KEYS if k in data]
            if len(present) != 1:
                raise ValueError(
                    "A step must carry exactly one input field; "
                    f"found {present or 'none'}"
                )
        return data


class ScenarioRecord(WireModel):
    """Wire shape of a scenario, as produced by ``Scenario.to_dict()``."""

    model_config = ConfigDict(extra="forbid")

    config: SpecConfig
    steps: Tuple[StepRecord, ...]


# ── Section 8: Exceptions ────────────────────────────────────────────────────


class SyncSpecError(Exception):
    """Base exception for all library errors."""
    pass


class DomainError(SyncSpecError):
    """A query, key, or document could not be built from the given input."""
    pass


class ScenarioScriptError(SyncSpecError):
    """The scenario script is internally inconsistent."""
    pass


class DuplicateListenError(ScenarioScriptError):
    """Listening to a query that is already listened to with GC enabled."""
    pass


class UnknownQueryError(ScenarioScriptError):
    """Unlistening or restoring a query that was never listened to."""
    pass


class NoOpenStepError(ScenarioScriptError):
    """An expectation was added before any step was opened."""
    pass


class AmbiguousTargetError(ScenarioScriptError):
    """A query resolves to both a query target and a limbo target."""
    pass


class TargetNotFoundError(ScenarioScriptError):
    """No target id is registered for a query or limbo document."""
    pass


class ConflictingExpectationError(ScenarioScriptError):
    """An event expectation mixes an error with document changes."""
    pass


class ConfigurationError(ScenarioScriptError):
    """Scenario configuration was changed at a point where it cannot be."""
    pass


class InvalidInputError(ScenarioScriptError):
    """A builder argument is not a value the scenario format knows."""
    pass
