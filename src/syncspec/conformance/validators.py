"""Validation of exported scenarios.

Three layers are checked:
1. Pydantic model validation of the whole scenario (primary layer)
2. JSON Schema validation against the schema generated from the wire records
3. Target consistency: every target id a step refers to must have been
   announced in an active-targets expectation of the same client at or
   before that step
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Set, Tuple, Union

from jsonschema import Draft202012Validator
from pydantic import ValidationError as PydanticValidationError

from syncspec.models import Scenario
from syncspec.schemas import scenario_schema

logger = logging.getLogger("syncspec.conformance")


@dataclass(frozen=True)
class ModelViolation:
    """A violation detected by Pydantic model validation."""

    field: str
    message: str
    violation_type: str
    input_value: object


@dataclass(frozen=True)
class SchemaViolation:
    """A violation detected by JSON Schema validation."""

    json_path: str
    message: str
    validator: str
    validator_value: object
    schema_path: Tuple[Union[str, int], ...]


@dataclass(frozen=True)
class ConsistencyViolation:
    """A step refers to a target id its client never had."""

    step_index: int
    client_index: int
    target_id: int
    message: str


@dataclass(frozen=True)
class ConformanceResult:
    """Result of scenario validation."""

    valid: bool
    model_violations: Tuple[ModelViolation, ...]
    schema_violations: Tuple[SchemaViolation, ...]
    consistency_violations: Tuple[ConsistencyViolation, ...]


def _validate_with_model(
    data: Dict[str, Any],
) -> Tuple[Tuple[ModelViolation, ...], Union[Scenario, None]]:
    try:
        return (), Scenario.model_validate(data)
    except PydanticValidationError as e:
        violations = []
        for error in e.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            violations.append(
                ModelViolation(
                    field=field_path,
                    message=error["msg"],
                    violation_type=error["type"],
                    input_value=error.get("input"),
                )
            )
        return tuple(violations), None


def _validate_with_schema(data: Dict[str, Any]) -> Tuple[SchemaViolation, ...]:
    validator = Draft202012Validator(scenario_schema())
    violations = []
    for error in validator.iter_errors(data):
        json_path = "$" + "".join(
            f"[{p}]" if isinstance(p, int) else f".{p}" for p in error.absolute_path
        )
        violations.append(
            SchemaViolation(
                json_path=json_path,
                message=error.message,
                validator=str(error.validator),
                validator_value=error.validator_value,
                schema_path=tuple(error.absolute_schema_path),
            )
        )
    return tuple(violations)


def check_target_consistency(scenario: Scenario) -> Tuple[ConsistencyViolation, ...]:
    """Find steps that refer to target ids never announced for their client."""
    announced: Dict[int, Set[int]] = {}
    violations = []
    for index, step in enumerate(scenario.steps):
        client_index = step.client_index if step.client_index is not None else 0
        known = announced.setdefault(client_index, set())
        if step.state_expect is not None and step.state_expect.active_targets:
            known.update(step.state_expect.active_targets)
        for target_id in step.target_ids():
            if target_id not in known:
                violations.append(
                    ConsistencyViolation(
                        step_index=index,
                        client_index=client_index,
                        target_id=target_id,
                        message=(
                            f"Step {index} ({step.kind.value}) refers to target "
                            f"{target_id}, which client {client_index} never had"
                        ),
                    )
                )
    return tuple(violations)


def validate_scenario(data: Union[Scenario, Dict[str, Any]]) -> ConformanceResult:
    """Validate an exported scenario.

    Args:
        data: A scenario dict in wire form, or a Scenario (validated via
            its ``to_dict()`` output).

    Returns:
        ConformanceResult with validation status and any violations found.
        Target consistency is only checked when the model layer passes.
    """
    if isinstance(data, Scenario):
        data = data.to_dict()

    model_violations, scenario = _validate_with_model(data)
    schema_violations = _validate_with_schema(data)
    consistency_violations = (
        check_target_consistency(scenario) if scenario is not None else ()
    )

    valid = not (model_violations or schema_violations or consistency_violations)
    if not valid:
        logger.debug(
            "Scenario failed conformance: %d model, %d schema, %d consistency violations",
            len(model_violations),
            len(schema_violations),
            len(consistency_violations),
        )
    return ConformanceResult(
        valid=valid,
        model_violations=model_violations,
        schema_violations=schema_violations,
        consistency_violations=consistency_violations,
    )
