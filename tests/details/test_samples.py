"""Tests for JSON schema and example generation."""

from __future__ import annotations

import json

from endpointscope.details.samples import SampleBuilder, getter_property_name, split_generic_arguments
from endpointscope.symbols import ClassSymbol, FieldSymbol, InMemorySymbolIndex, MethodSymbol

USER = ClassSymbol(
    fqn="com.x.User",
    kind="data_class",
    fields=(
        FieldSymbol("id", "String"),
        FieldSymbol("email", "String?"),
        FieldSymbol("age", "Int"),
        FieldSymbol("roles", "List<Role>"),
        FieldSymbol("attributes", "Map<String, Long>"),
        FieldSymbol("manager", "User?"),
        FieldSymbol("CACHE", "String", is_static=True),
    ),
)
ROLE = ClassSymbol(fqn="com.x.Role", kind="enum", enum_constants=("ADMIN", "MEMBER"))
TOKEN = ClassSymbol(
    fqn="com.x.Token",
    methods=(
        MethodSymbol("getAccessToken", "com.x.Token", return_type="String"),
        MethodSymbol("isExpired", "com.x.Token", return_type="boolean"),
        MethodSymbol("getClass", "com.x.Token", return_type="Class<?>"),
        MethodSymbol("getInstance", "com.x.Token", return_type="Token", is_static=True),
    ),
)


def _builder(*classes: ClassSymbol) -> SampleBuilder:
    return SampleBuilder(InMemorySymbolIndex(classes or (USER, ROLE, TOKEN)))


def test_data_class_schema_and_example() -> None:
    samples = _builder().build("User")

    assert samples is not None
    assert json.loads(samples.schema_json) == {
        "id": "string",
        "email": "string",
        "age": 0,
        "roles": ["string"],
        "attributes": {"key": 0},
        "manager": {},
    }
    assert json.loads(samples.example_json) == {
        "id": "A1B2C3",
        "email": "test@example.com",
        "age": 1,
        "roles": ["ADMIN"],
        "attributes": {"key": 1},
        "manager": {},
    }


def test_getter_properties_when_no_fields() -> None:
    samples = _builder().build("com.x.Token")

    assert samples is not None
    assert json.loads(samples.schema_json) == {"accessToken": "string", "expired": False}
    assert json.loads(samples.example_json) == {"accessToken": "token_value", "expired": True}


def test_collections_arrays_and_primitives() -> None:
    builder = _builder()

    assert json.loads(builder.build("List<String>").example_json) == ["string"]  # type: ignore[union-attr]
    assert json.loads(builder.build("IntArray").schema_json) == [0]  # type: ignore[union-attr]
    assert json.loads(builder.build("String[]").schema_json) == ["string"]  # type: ignore[union-attr]
    assert json.loads(builder.build("Unit").example_json) is None  # type: ignore[union-attr]
    assert json.loads(builder.build("Unknown").example_json) == {}  # type: ignore[union-attr]
    assert builder.build(None) is None
    assert builder.build("  ") is None


def test_nesting_stops_at_max_depth() -> None:
    chain = [
        ClassSymbol("com.x.A", fields=(FieldSymbol("b", "B"),)),
        ClassSymbol("com.x.B", fields=(FieldSymbol("c", "C"),)),
        ClassSymbol("com.x.C", fields=(FieldSymbol("d", "D"),)),
        ClassSymbol("com.x.D", fields=(FieldSymbol("value", "String"),)),
    ]

    samples = _builder(*chain).build("A")

    assert json.loads(samples.schema_json) == {"b": {"c": {"d": {}}}}  # type: ignore[union-attr]


def test_example_json_is_indented() -> None:
    samples = _builder().build("Role")

    assert samples is not None
    assert samples.schema_json == '"string"'
    assert samples.example_json == '"ADMIN"'
    assert _builder().build("Token").example_json.startswith('{\n  "accessToken"')  # type: ignore[union-attr]


def test_helpers() -> None:
    assert split_generic_arguments("Map<String, List<Int>>") == ["String", "List<Int>"]
    assert split_generic_arguments("String") == []
    assert getter_property_name("getUserName") == "userName"
    assert getter_property_name("isActive") == "active"
    assert getter_property_name("get") is None
    assert getter_property_name("fetch") is None


def test_types_named_like_containers_stay_objects() -> None:
    builder = _builder(
        ClassSymbol("com.x.Asset", fields=(FieldSymbol("name", "String"),)),
        ClassSymbol("com.x.Sitemap", fields=(FieldSymbol("url", "String"),)),
        ClassSymbol("com.x.Bitmap", fields=(FieldSymbol("width", "Int"),)),
        ClassSymbol("com.x.UserList", fields=(FieldSymbol("total", "Long"),)),
    )

    assert json.loads(builder.build("Asset").schema_json) == {"name": "string"}  # type: ignore[union-attr]
    assert json.loads(builder.build("Sitemap").example_json) == {"url": "https://example.com"}  # type: ignore[union-attr]
    assert json.loads(builder.build("Bitmap").schema_json) == {"width": 0}  # type: ignore[union-attr]
    assert json.loads(builder.build("UserList").schema_json) == {"total": 0}  # type: ignore[union-attr]


def test_known_container_types() -> None:
    builder = _builder()

    assert json.loads(builder.build("MutableList<Int>").schema_json) == [0]  # type: ignore[union-attr]
    assert json.loads(builder.build("java.util.HashMap<String, Boolean>").schema_json) == {"key": False}  # type: ignore[union-attr]
    assert json.loads(builder.build("ArrayList<String>").example_json) == ["string"]  # type: ignore[union-attr]
