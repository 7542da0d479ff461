"""Unit tests for the generated scenario schema."""
from __future__ import annotations

from jsonschema import Draft202012Validator

from syncspec.models import StepKind, StepRecord
from syncspec.schemas import scenario_schema, step_schema


def test_scenario_schema_metadata() -> None:
    schema = scenario_schema()
    assert schema["$schema"] == "https://json-schema.org/draft/2020-12/schema"
    assert schema["$id"] == "syncspec/scenario"
    assert set(schema["required"]) == {"config", "steps"}


def test_schemas_are_valid_draft_2020_12() -> None:
    Draft202012Validator.check_schema(scenario_schema())
    Draft202012Validator.check_schema(step_schema())


def test_step_inputs_are_exclusive() -> None:
    step = scenario_schema()["$defs"]["StepRecord"]
    required = {tuple(alt["required"]) for alt in step["oneOf"]}
    assert required == {(kind.value,) for kind in StepKind}


def test_step_properties_follow_the_record_model() -> None:
    properties = set(step_schema()["properties"])
    aliases = {f.serialization_alias or f.alias or name for name, f in StepRecord.model_fields.items()}
    assert properties == aliases
    assert {kind.value for kind in StepKind} <= properties


def test_unknown_step_fields_are_rejected() -> None:
    validator = Draft202012Validator(step_schema())
    assert validator.is_valid({"watchAck": [2]})
    assert not validator.is_valid({"watchAck": [2], "bogus": 1})
    assert not validator.is_valid({"watchAck": [2], "watchReset": [2]})
    assert not validator.is_valid({"watchSnapshot": 1})


def test_active_target_keys_are_digit_strings() -> None:
    validator = Draft202012Validator(step_schema())
    entry = {"query": {"path": "rooms"}, "resumeToken": ""}
    assert validator.is_valid({"restart": True, "stateExpect": {"activeTargets": {"2": entry}}})
    assert not validator.is_valid(
        {"restart": True, "stateExpect": {"activeTargets": {"two": entry}}}
    )


def test_schema_is_a_fresh_copy() -> None:
    schema = scenario_schema()
    schema["$id"] = "changed"
    assert scenario_schema()["$id"] == "syncspec/scenario"
