"""Unit tests for scenario conformance validation."""
from __future__ import annotations

import copy

import pytest

from syncspec import spec
from syncspec.conformance import (
    assert_scenario_conforms,
    assert_scenario_fails,
    check_target_consistency,
    validate_scenario,
)
from syncspec.domain import Document, Query
from syncspec.models import Scenario


@pytest.fixture
def exported(rooms: Query, eros: Document) -> dict:
    return (
        spec()
        .user_listens(rooms)
        .expect_limbo_docs(eros.key)
        .watch_acks_full(rooms, 1000, eros)
        .expect_events(rooms, added=[eros])
        .ack_limbo(2000, eros)
        .to_dict()
    )


class TestValidScenarios:
    def test_built_scenario_conforms(self, exported: dict) -> None:
        result = assert_scenario_conforms(exported)
        assert result.valid
        assert result.model_violations == ()
        assert result.schema_violations == ()
        assert result.consistency_violations == ()

    def test_accepts_scenario_instance(self, rooms: Query) -> None:
        assert validate_scenario(spec().user_listens(rooms).build()).valid


class TestInvalidScenarios:
    def test_two_inputs_in_one_step(self, exported: dict) -> None:
        data = copy.deepcopy(exported)
        data["steps"][1]["watchReset"] = [2]
        result = assert_scenario_fails(data)
        assert result.model_violations
        assert result.schema_violations

    def test_unknown_field(self, exported: dict) -> None:
        data = copy.deepcopy(exported)
        data["steps"][0]["bogus"] = 1
        result = assert_scenario_fails(data)
        assert result.schema_violations

    def test_bad_error_code(self, exported: dict) -> None:
        data = copy.deepcopy(exported)
        data["steps"].append({"failWrite": {"error": {"code": "teapot"}}})
        result = assert_scenario_fails(data)
        assert result.model_violations
        assert any(v.json_path.startswith("$.steps") for v in result.schema_violations)

    def test_dangling_target_id(self, exported: dict) -> None:
        data = copy.deepcopy(exported)
        data["steps"].append({"watchAck": [40]})
        result = assert_scenario_fails(data)
        assert result.model_violations == ()
        assert result.schema_violations == ()
        assert [v.target_id for v in result.consistency_violations] == [40]

    def test_assert_conforms_raises(self, exported: dict) -> None:
        data = copy.deepcopy(exported)
        data["steps"].append({"watchReset": [40]})
        with pytest.raises(AssertionError, match="Targets"):
            assert_scenario_conforms(data)

    def test_assert_fails_raises_on_valid(self, exported: dict) -> None:
        with pytest.raises(AssertionError):
            assert_scenario_fails(exported)


class TestTargetConsistency:
    def test_targets_are_per_client(self) -> None:
        scenario = Scenario.model_validate(
            {
                "config": {"useGarbageCollection": True, "numClients": 2},
                "steps": [
                    {
                        "userListen": {"targetId": 2, "query": {"path": "rooms"}},
                        "stateExpect": {"activeTargets": {"2": {"query": {"path": "rooms"}}}},
                        "clientIndex": 0,
                    },
                    {"watchAck": [2], "clientIndex": 1},
                ],
            }
        )
        violations = check_target_consistency(scenario)
        assert [(v.step_index, v.client_index) for v in violations] == [(1, 1)]

    def test_unlisten_refers_to_announced_target(self, rooms: Query) -> None:
        scenario = spec().user_listens(rooms).user_unlistens(rooms).build()
        assert check_target_consistency(scenario) == ()
