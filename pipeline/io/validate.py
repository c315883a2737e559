from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from jsonschema.validators import Draft202012Validator as Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012


def load_schema(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        schema = yaml.safe_load(f)
    Validator.check_schema(schema)
    return schema


def _build_registry(schemas_root: Path) -> Registry:
    resources: list[tuple[str, Resource]] = []
    # Preload all schemas in the root by $id and file uri
    for path in sorted(schemas_root.resolve().glob("*.yaml")):
        with path.open("r", encoding="utf-8") as f:
            s = yaml.safe_load(f)
        if not isinstance(s, dict):
            continue
        resource = Resource.from_contents(s, default_specification=DRAFT202012)
        sid = s.get("$id")
        if sid:
            resources.append((str(sid), resource))
        resources.append((path.as_uri(), resource))
    return Registry().with_resources(resources)


def validate_obj(
    schema: dict[str, Any],
    obj: dict[str, Any],
    *,
    schemas_root: Path | None = None,
) -> None:
    """Validate ``obj`` against ``schema``; raises ``jsonschema.ValidationError``."""
    if schemas_root is None:
        Validator(schema).validate(obj)
        return
    Validator(schema, registry=_build_registry(schemas_root)).validate(obj)
