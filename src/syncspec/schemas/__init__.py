"""JSON Schema of the exported scenario format.

Generated from ``syncspec.models.ScenarioRecord`` on first use; see
``syncspec.schemas.generate`` for writing the schema files.
"""
from __future__ import annotations

import copy
from functools import lru_cache
from typing import Any, Dict


@lru_cache(maxsize=None)
def _generated(name: str) -> Dict[str, Any]:
    # Imported here so ``python -m syncspec.schemas.generate`` does not
    # find the module already loaded by its package.
    from syncspec.schemas.generate import generate_all_schemas

    return generate_all_schemas()[name]


def scenario_schema() -> Dict[str, Any]:
    """The schema of ``Scenario.to_dict()`` output."""
    return copy.deepcopy(_generated("scenario"))


def step_schema() -> Dict[str, Any]:
    """The schema of ``Step.to_dict()`` output."""
    return copy.deepcopy(_generated("step"))
