"""Conformance checks for exported syncspec scenarios."""
from syncspec.conformance.pytest_helpers import (
    assert_scenario_conforms,
    assert_scenario_fails,
)
from syncspec.conformance.validators import (
    ConformanceResult,
    ConsistencyViolation,
    ModelViolation,
    SchemaViolation,
    check_target_consistency,
    validate_scenario,
)

__all__ = [
    "ConformanceResult",
    "ConsistencyViolation",
    "ModelViolation",
    "SchemaViolation",
    "assert_scenario_conforms",
    "assert_scenario_fails",
    "check_target_consistency",
    "validate_scenario",
]
