from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from jsonschema.validators import Draft202012Validator as Validator
from referencing import Registry, Resource


def load_schema(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        schema = yaml.safe_load(f)
    Validator.check_schema(schema)
    return schema


def _registry(schemas_root: Path) -> Registry:
    resources: list[tuple[str, Resource]] = []
    for path in sorted(schemas_root.resolve().glob("*.yaml")):
        with path.open("r", encoding="utf-8") as f:
            s = yaml.safe_load(f)
        resource = Resource.from_contents(s)
        resources.append((path.resolve().as_uri(), resource))
        sid = s.get("$id")
        if sid:
            resources.append((str(sid), resource))
    return Registry().with_resources(resources)


def validate_obj(
    schema: dict[str, Any], obj: dict[str, Any], *, schemas_root: Path | None = None
) -> None:
    """Raise ``jsonschema.ValidationError`` if ``obj`` does not match ``schema``."""
    if schemas_root is not None:
        Validator(schema, registry=_registry(schemas_root)).validate(obj)
    else:
        Validator(schema).validate(obj)
