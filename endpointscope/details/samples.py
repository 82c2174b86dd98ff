"""Best-effort JSON schema and example payloads built from declared types.

Types are resolved through the project's symbol index. Properties come from
instance fields, or from ``getX``/``isX`` accessors when a type declares no
fields. Nesting stops at :data:`MAX_DEPTH` and a type already on the current
path renders as an empty object.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from ..project import SymbolIndex
from ..symbols import ClassSymbol

MAX_DEPTH = 3

_STRING_TYPES = {"string", "charsequence", "char"}
_INTEGER_TYPES = {"byte", "short", "int", "integer", "long"}
_DECIMAL_TYPES = {"float", "double", "bigdecimal"}
_BOOLEAN_TYPES = {"boolean"}
_NULL_TYPES = {"unit", "void"}

_VARIANCE = re.compile(r"\b(?:out|in)\s+")


class SampleMode(str, Enum):
    SCHEMA = "schema"
    EXAMPLE = "example"


@dataclass(frozen=True)
class JsonSamples:
    schema_json: str
    example_json: str


def normalize_type_text(type_text: Optional[str]) -> Optional[str]:
    if type_text is None:
        return None
    raw = _VARIANCE.sub("", type_text)
    for prefix in ("? super ", "? extends "):
        if raw.startswith(prefix):
            raw = raw[len(prefix) :]
    raw = raw.strip().rstrip("?").strip()
    return raw or None


def raw_type_name(type_text: str) -> str:
    start = type_text.find("<")
    base = type_text[:start] if start >= 0 else type_text
    return base.strip().rstrip("?")


def split_generic_arguments(type_text: str) -> List[str]:
    start = type_text.find("<")
    end = type_text.rfind(">")
    if start < 0 or end <= start:
        return []
    result: List[str] = []
    current: List[str] = []
    depth = 0
    for char in type_text[start + 1 : end]:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        elif char == "," and depth == 0:
            result.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        result.append(tail)
    return result


def number_sample(field_name: Optional[str]) -> int:
    lowered = (field_name or "").lower()
    if "expire" in lowered or "ttl" in lowered or "duration" in lowered:
        return 3600
    return 1


def string_sample(field_name: Optional[str], mode: SampleMode) -> str:
    if mode is SampleMode.SCHEMA:
        return "string"
    lowered = (field_name or "").lower()
    if "email" in lowered:
        return "test@example.com"
    if "password" in lowered or "passcode" in lowered:
        return "********"
    if "token" in lowered:
        return "token_value"
    if "device" in lowered and "id" in lowered:
        return "A1B2C3"
    if lowered == "code":
        return "INVALID_CREDENTIALS"
    if lowered == "message":
        return "string"
    if lowered.endswith("id"):
        return "A1B2C3"
    if "url" in lowered:
        return "https://example.com"
    return "string"


_MISSING = object()


def primitive_value(type_text: str, mode: SampleMode, field_name: Optional[str]) -> Any:
    """Sample for a primitive-like type, or ``_MISSING`` when the type is not one."""
    lowered = type_text.rsplit(".", 1)[-1].lower()
    if lowered in _STRING_TYPES:
        return string_sample(field_name, mode)
    if lowered in _INTEGER_TYPES:
        return 0 if mode is SampleMode.SCHEMA else number_sample(field_name)
    if lowered in _DECIMAL_TYPES:
        return 0.0 if mode is SampleMode.SCHEMA else 1.0
    if lowered in _BOOLEAN_TYPES:
        return mode is SampleMode.EXAMPLE
    if lowered in _NULL_TYPES:
        return None
    return _MISSING


_ARRAY_TYPES = {
    "array",
    "booleanarray",
    "bytearray",
    "chararray",
    "doublearray",
    "floatarray",
    "intarray",
    "longarray",
    "shortarray",
}
_COLLECTION_TYPES = {
    "arraydeque",
    "arraylist",
    "collection",
    "deque",
    "hashset",
    "iterable",
    "linkedhashset",
    "linkedlist",
    "list",
    "mutablecollection",
    "mutableiterable",
    "mutablelist",
    "mutableset",
    "queue",
    "sequence",
    "set",
    "sortedset",
    "treeset",
}
_MAP_TYPES = {
    "concurrenthashmap",
    "hashmap",
    "linkedhashmap",
    "map",
    "mutablemap",
    "sortedmap",
    "treemap",
}


def _simple_lower(raw: str) -> str:
    return raw.rsplit(".", 1)[-1].lower()


def getter_property_name(name: str) -> Optional[str]:
    if name.startswith("get") and len(name) > 3:
        rest = name[3:]
    elif name.startswith("is") and len(name) > 2:
        rest = name[2:]
    else:
        return None
    return rest[0].lower() + rest[1:]


def extract_properties(cls: ClassSymbol) -> List[Tuple[str, str]]:
    seen: Set[str] = set()
    properties: List[Tuple[str, str]] = []
    for item in cls.fields:
        if item.is_static or "$" in item.name or item.name == "serialVersionUID":
            continue
        if item.name not in seen:
            seen.add(item.name)
            properties.append((item.name, item.type_text))
    if properties:
        return properties
    for method in cls.methods:
        if method.is_static or method.parameters or not method.return_type:
            continue
        if method.name == "getClass":
            continue
        name = getter_property_name(method.name)
        if name is None or name in seen:
            continue
        seen.add(name)
        properties.append((name, method.return_type))
    return properties


class SampleBuilder:
    """Builds sample values for type names against one symbol index."""

    def __init__(self, symbols: SymbolIndex, max_depth: int = MAX_DEPTH) -> None:
        self._symbols = symbols
        self._max_depth = max_depth

    def build(self, type_text: Optional[str]) -> Optional[JsonSamples]:
        normalized = normalize_type_text(type_text)
        if normalized is None:
            return None
        schema = self.value(normalized, SampleMode.SCHEMA, None, 0, set())
        example = self.value(normalized, SampleMode.EXAMPLE, None, 0, set())
        return JsonSamples(schema_json=render_json(schema), example_json=render_json(example))

    def value(
        self,
        type_text: str,
        mode: SampleMode,
        field_name: Optional[str],
        depth: int,
        visited: Set[str],
    ) -> Any:
        if depth >= self._max_depth:
            return {}
        cleaned = normalize_type_text(type_text)
        if cleaned is None:
            return "string"
        primitive = primitive_value(cleaned, mode, field_name)
        if primitive is not _MISSING:
            return primitive

        raw = raw_type_name(cleaned)
        arguments = split_generic_arguments(cleaned)
        simple = _simple_lower(raw)

        if simple in _ARRAY_TYPES or cleaned.endswith("[]"):
            if arguments:
                item_type = arguments[0]
            elif cleaned.endswith("[]"):
                item_type = cleaned[:-2].strip() or "String"
            else:
                item_type = _primitive_array_item(raw) or "String"
            return [self.value(item_type, mode, field_name, depth + 1, visited)]

        if simple in _COLLECTION_TYPES:
            element = arguments[0] if arguments else "String"
            return [self.value(element, mode, field_name, depth + 1, visited)]

        if simple in _MAP_TYPES:
            if len(arguments) > 1:
                value_type = arguments[1]
            else:
                value_type = arguments[0] if arguments else "String"
            return {"key": self.value(value_type, mode, "value", depth + 1, visited)}

        cls = self.resolve_class(raw)
        if cls is None or cls.fqn in visited:
            return {}
        visited.add(cls.fqn)

        if cls.is_enum:
            if mode is SampleMode.SCHEMA:
                return "string"
            return cls.enum_constants[0] if cls.enum_constants else "VALUE"

        result: Dict[str, Any] = {}
        for name, property_type in extract_properties(cls):
            result[name] = self.value(property_type, mode, name, depth + 1, set(visited))
        return result

    def resolve_class(self, type_name: str) -> Optional[ClassSymbol]:
        candidate = type_name.strip()
        if "." in candidate:
            found = self._symbols.find_class(candidate)
            if found is not None:
                return found
        matches = self._symbols.find_classes_by_short_name(candidate.rsplit(".", 1)[-1])
        return matches[0] if matches else None


def _primitive_array_item(raw: str) -> Optional[str]:
    # IntArray, LongArray, BooleanArray, ...
    prefix = raw.rsplit(".", 1)[-1][: -len("Array")]
    return prefix or None


def render_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


__all__ = [
    "JsonSamples",
    "MAX_DEPTH",
    "SampleBuilder",
    "SampleMode",
    "extract_properties",
    "getter_property_name",
    "normalize_type_text",
    "number_sample",
    "primitive_value",
    "raw_type_name",
    "render_json",
    "split_generic_arguments",
    "string_sample",
]
