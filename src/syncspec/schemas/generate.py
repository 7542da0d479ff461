"""JSON Schema generation for the exported scenario format.

The schemas are generated from the wire record models, so they cannot
disagree with ``Scenario.to_dict()``. Runners written in other languages
can validate exported scenarios against the written files::

    python -m syncspec.schemas.generate --output-dir build/schemas
    python -m syncspec.schemas.generate --output-dir build/schemas --check
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel

from syncspec.models import ScenarioRecord, StepRecord

SCHEMA_DIR = Path(__file__).parent

# Registry of models to generate schemas for
PYDANTIC_MODELS: List[Tuple[str, Type[BaseModel]]] = [
    ("scenario", ScenarioRecord),
    ("step", StepRecord),
]


def generate_schema(name: str, model: Type[BaseModel]) -> Dict[str, Any]:
    """Generate the JSON Schema of a model's serialized form.

    Args:
        name: Schema name for the $id field
        model: Pydantic model class

    Returns:
        JSON Schema dict with $schema and $id fields
    """
    schema = model.model_json_schema(mode="serialization")
    schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
    schema["$id"] = f"syncspec/{name}"
    return schema


def schema_to_json(schema: Dict[str, Any]) -> str:
    """Serialize a schema to deterministic JSON with a trailing newline."""
    return json.dumps(schema, indent=2, sort_keys=True) + "\n"


def generate_all_schemas() -> Dict[str, Dict[str, Any]]:
    return {name: generate_schema(name, model) for name, model in PYDANTIC_MODELS}


def write_all_schemas(schemas: Dict[str, Dict[str, Any]], directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name, schema in schemas.items():
        path = directory / f"{name}.schema.json"
        path.write_text(schema_to_json(schema), encoding="utf-8")
        print(f"Generated {path}")


def check_drift(directory: Path) -> int:
    """Check if generated schemas match the files in ``directory``.

    Returns:
        0 if all schemas match, 1 if any drift detected
    """
    schemas = generate_all_schemas()
    drift_detected = False

    for name, schema in schemas.items():
        path = directory / f"{name}.schema.json"
        expected_content = schema_to_json(schema)

        if not path.exists():
            print(f"ERROR: Missing schema file: {path}", file=sys.stderr)
            drift_detected = True
            continue

        if path.read_text(encoding="utf-8") != expected_content:
            print(f"ERROR: Schema drift detected in {path}", file=sys.stderr)
            drift_detected = True

    # Files left over from models that are no longer registered
    expected_files = {f"{name}.schema.json" for name in schemas}
    actual_files = {p.name for p in directory.glob("*.schema.json")}
    for orphan in sorted(actual_files - expected_files):
        print(f"Orphaned schema {orphan}", file=sys.stderr)
        drift_detected = True

    if drift_detected:
        print("\nSchema drift detected. Run without --check to regenerate.", file=sys.stderr)
        return 1

    print(f"All {len(schemas)} schemas are up to date.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for ``python -m syncspec.schemas.generate``.

    Returns:
        Exit code (0 for success, 1 for drift)
    """
    parser = argparse.ArgumentParser(
        description="Generate JSON schemas for the syncspec scenario format"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=SCHEMA_DIR,
        help="Directory holding the schema files (default: this package)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check for schema drift without writing files (CI mode)",
    )
    args = parser.parse_args(argv)

    if args.check:
        return check_drift(args.output_dir)

    schemas = generate_all_schemas()
    write_all_schemas(schemas, args.output_dir)
    print(f"\nSuccessfully generated {len(schemas)} schemas.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
