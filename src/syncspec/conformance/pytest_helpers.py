"""Reusable test helpers for scenario conformance.

Consumers can import these to check scenarios they build:
    from syncspec.conformance.pytest_helpers import (
        assert_scenario_conforms,
        assert_scenario_fails,
    )
"""
from __future__ import annotations

from typing import Any, Dict, Union

from syncspec.conformance.validators import ConformanceResult, validate_scenario
from syncspec.models import Scenario


def assert_scenario_conforms(
    scenario: Union[Scenario, Dict[str, Any]],
) -> ConformanceResult:
    """Assert a scenario passes every validation layer."""
    result = validate_scenario(scenario)
    if not result.valid:
        violations = []
        for mv in result.model_violations:
            violations.append(f"  Model: {mv.field}: {mv.message}")
        for sv in result.schema_violations:
            violations.append(f"  Schema: {sv.json_path}: {sv.message}")
        for cv in result.consistency_violations:
            violations.append(f"  Targets: {cv.message}")
        raise AssertionError(
            "Scenario failed conformance:\n" + "\n".join(violations)
        )
    return result


def assert_scenario_fails(
    scenario: Union[Scenario, Dict[str, Any]],
) -> ConformanceResult:
    """Assert a scenario DOES NOT conform (expected invalid)."""
    result = validate_scenario(scenario)
    if result.valid:
        raise AssertionError("Scenario was expected to fail but passed conformance.")
    return result
