from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from .errors import FramingError

SCHEMA_DIR = Path(__file__).parent / "schemas"

# Mapping record kind -> schema filename (relative to SCHEMA_DIR)
SCHEMA_REGISTRY: Dict[str, str] = {
    "envelope": "envelope.json",
}


def _schema_path(kind: str) -> Optional[Path]:
    filename = SCHEMA_REGISTRY.get(kind)
    if not filename:
        return None
    path = SCHEMA_DIR / filename
    return path if path.exists() else None


@lru_cache(maxsize=4)
def load_schema(kind: str = "envelope") -> Optional[dict]:
    """Load JSON schema for a record kind if present."""
    path = _schema_path(kind)
    if not path:
        return None
    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


def validate_frame(msg: Dict[str, Any], schema: Optional[dict] = None) -> None:
    """Check a decoded frame against the wire schema."""
    if not schema:
        schema = load_schema("envelope")
    if schema:
        try:
            jsonschema.validate(instance=msg, schema=schema)
        except jsonschema.ValidationError as exc:
            raise FramingError(f"Schema validation failed: {exc.message}") from exc


__all__ = ["load_schema", "validate_frame"]
