"""JSON-schema cleaning for tool declarations.

Backends accept different subsets of JSON Schema. Cleaning is a pure
structural transform driven by a :class:`SchemaRules` value per backend:
keywords in ``drop_keys`` are removed at every level, and ``format`` on
string schemas is kept only when listed in ``string_formats``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

# Keywords whose values map arbitrary names to sub-schemas
_SCHEMA_MAPS = {"properties", "patternProperties", "$defs", "definitions"}


@dataclass(frozen=True)
class SchemaRules:
    drop_keys: frozenset[str] = frozenset()
    string_formats: Optional[frozenset[str]] = None


OPENAI_SCHEMA_RULES = SchemaRules(drop_keys=frozenset({"$schema", "$id", "$comment"}))

GEMINI_SCHEMA_RULES = SchemaRules(
    drop_keys=frozenset(
        {
            "$schema",
            "$id",
            "$comment",
            "additionalProperties",
            "default",
            "exclusiveMinimum",
            "exclusiveMaximum",
        }
    ),
    string_formats=frozenset({"enum", "date-time"}),
)


def _clean_node(node: Any, rules: SchemaRules) -> Any:
    if isinstance(node, list):
        return [_clean_node(item, rules) for item in node]
    if not isinstance(node, Mapping):
        return node

    cleaned: dict[str, Any] = {}
    for key, value in node.items():
        if key in rules.drop_keys:
            continue
        if key in _SCHEMA_MAPS and isinstance(value, Mapping):
            # Property names are data, not keywords: never filter them
            cleaned[key] = {name: _clean_node(sub, rules) for name, sub in value.items()}
        else:
            cleaned[key] = _clean_node(value, rules)

    if (
        rules.string_formats is not None
        and cleaned.get("type") == "string"
        and "format" in cleaned
        and cleaned["format"] not in rules.string_formats
    ):
        del cleaned["format"]
    return cleaned


def clean_json_schema(schema: Any, rules: SchemaRules) -> dict[str, Any]:
    """Return a cleaned copy of ``schema``; non-dict input gives ``{}``."""
    if not isinstance(schema, Mapping):
        return {}
    return _clean_node(schema, rules)
