"""Integration tests: complete scenarios built end to end.

Each scenario is checked for its step layout, its target bookkeeping, and
for passing every conformance layer once exported.
"""
from __future__ import annotations

from syncspec import client, spec
from syncspec.conformance import assert_scenario_conforms
from syncspec.domain import deleted_doc, doc, field_filter, key, query
from syncspec.models import Code, SpecQuery, StepKind, TargetEntry, TimerId

_ROOMS = query("rooms")
_BIG_ROOMS = query("rooms", field_filter("size", ">", 2), limit=5)
_EROS = doc("rooms/eros", 1000, {"size": 3})
_ENTROPY = doc("rooms/entropy", 1000, {"size": 1})


def test_listen_and_receive_document() -> None:
    scenario = (
        spec()
        .user_listens(_ROOMS)
        .expect_active_targets((_ROOMS, ""))
        .watch_acks(_ROOMS)
        .watch_sends(_EROS, affects=[_ROOMS])
        .watch_currents(_ROOMS, "tok1")
        .watch_snapshots(1000)
        .expect_events(_ROOMS, added=[_EROS])
        .build()
    )
    steps = scenario.steps
    assert [s.kind for s in steps] == [
        StepKind.USER_LISTEN,
        StepKind.WATCH_ACK,
        StepKind.WATCH_ENTITY,
        StepKind.WATCH_CURRENT,
    ]
    assert steps[0].state_expect.active_targets == {
        2: TargetEntry(query=SpecQuery(path="rooms"), resume_token="")
    }
    assert steps[-1].watch_snapshot == 1000
    assert len(steps[-1].expect) == 1
    assert steps[-1].expect[0].added == (("rooms/eros", 1000, {"size": 3}),)
    assert_scenario_conforms(scenario)


def test_limbo_resolution_after_deleted_document() -> None:
    scenario = (
        spec()
        .user_listens(_ROOMS)
        .watch_acks_full(_ROOMS, 1000, _EROS, _ENTROPY)
        .expect_events(_ROOMS, added=[_ENTROPY, _EROS])
        .watch_resets(_ROOMS)
        .watch_sends(_ENTROPY, affects=[_ROOMS])
        .watch_currents(_ROOMS, "resume-token-2000")
        .watch_snapshots(2000)
        .expect_limbo_docs(_EROS.key)
        .ack_limbo(3000, deleted_doc("rooms/eros", 3000))
        .expect_limbo_docs()
        .expect_events(_ROOMS, removed=[_EROS])
        .build()
    )
    steps = scenario.steps
    limbo_step = steps[6]
    assert limbo_step.state_expect.limbo_docs == ("rooms/eros",)
    assert sorted(limbo_step.state_expect.active_targets) == [1, 2]
    assert steps[7].input == (1,)
    last = steps[-1]
    assert last.kind is StepKind.WATCH_CURRENT
    assert last.watch_snapshot == 3000
    assert last.state_expect.limbo_docs == ()
    assert list(last.state_expect.active_targets) == [2]
    assert_scenario_conforms(scenario)


def test_network_toggle_restores_targets() -> None:
    scenario = (
        spec()
        .user_listens(_ROOMS)
        .watch_acks_full(_ROOMS, 1000, _EROS)
        .expect_events(_ROOMS, added=[_EROS])
        .disable_network()
        .expect_events(_ROOMS, added=[], from_cache=True)
        .enable_network()
        .restore_listen(_ROOMS, "resume-token-1000")
        .run_timer(TimerId.LISTEN_STREAM_CONNECTION_BACKOFF)
        .build()
    )
    disable, enable = scenario.steps[4], scenario.steps[5]
    assert disable.state_expect.active_targets == {}
    assert enable.state_expect.active_targets == {
        2: TargetEntry(query=SpecQuery(path="rooms"), resume_token="resume-token-1000")
    }
    assert_scenario_conforms(scenario)


def test_removal_with_cause_and_relisten() -> None:
    scenario = (
        spec()
        .user_listens(_BIG_ROOMS)
        .watch_acks(_BIG_ROOMS)
        .watch_removes(_BIG_ROOMS, Code.PERMISSION_DENIED)
        .expect_events(_BIG_ROOMS, error_code=Code.PERMISSION_DENIED)
        .user_unlistens(_BIG_ROOMS)
        .user_listens(_BIG_ROOMS)
        .build()
    )
    listen = scenario.steps[0]
    assert listen.input.query == SpecQuery(
        path="rooms", limit=5, filters=(("size", ">", 2),)
    )
    assert scenario.steps[2].state_expect.active_targets == {}
    assert scenario.steps[-1].input.target_id == 4
    assert_scenario_conforms(scenario)


def test_writes_without_gc() -> None:
    scenario = (
        spec()
        .with_gc_enabled(False)
        .user_listens(_ROOMS)
        .watch_acks_full(_ROOMS, 1000)
        .user_sets("rooms/eros", {"size": 3})
        .expect_events(
            _ROOMS,
            added=[doc("rooms/eros", 0, {"size": 3}, has_local_mutations=True)],
            has_pending_writes=True,
        )
        .expect_num_outstanding_writes(1)
        .write_acks(2000)
        .expect_write_stream_request_count(2)
        .user_unlistens(_ROOMS)
        .user_listens(_ROOMS, "resume-token-1000")
        .build()
    )
    assert scenario.config.use_garbage_collection is False
    assert scenario.steps[-1].input.target_id == 2
    assert scenario.steps[-1].state_expect.active_targets[2].resume_token == "resume-token-1000"
    assert_scenario_conforms(scenario)


def test_restart_forgets_targets() -> None:
    scenario = (
        spec()
        .user_listens(_ROOMS)
        .expect_limbo_docs(key("rooms/eros"))
        .restart()
        .user_listens(_BIG_ROOMS)
        .expect_limbo_docs(key("rooms/entropy"))
        .shutdown()
        .build()
    )
    assert scenario.steps[2].input.target_id == 2
    assert scenario.steps[2].state_expect.active_targets[1].query.path == "rooms/entropy"
    assert scenario.steps[3].state_expect.active_targets == {}
    assert_scenario_conforms(scenario)


def test_multi_client_primary_handover() -> None:
    scenario = (
        client(0)
        .become_visible()
        .expect_primary_state(True)
        .client(1)
        .user_listens(_ROOMS)
        .expect_primary_state(False)
        .client(0)
        .user_listens(_ROOMS)
        .watch_acks_full(_ROOMS, 1000, _EROS)
        .client(1)
        .become_visible()
        .expect_events(_ROOMS, added=[_EROS])
        .client(0)
        .shutdown()
        .client(1)
        .run_timer(TimerId.CLIENT_METADATA_REFRESH)
        .expect_primary_state(True)
        .expect_num_active_clients(1)
        .build()
    )
    assert scenario.config.num_clients == 2
    tags = [s.client_index for s in scenario.steps]
    assert tags == [0, 1, 0, 0, 0, 0, 1, 0, 1]
    assert scenario.steps[1].input.target_id == 2
    assert scenario.steps[2].input.target_id == 2
    assert_scenario_conforms(scenario)
