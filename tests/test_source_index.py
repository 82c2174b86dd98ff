"""Tests for endpointscope.source_index."""

from __future__ import annotations

import textwrap

from endpointscope.source_index import (
    SourceTextIndex,
    collect_string_constants,
    line_of,
    lookup_constant,
    package_of,
)

KOTLIN_SOURCE = textwrap.dedent(
    """
    package com.example.net

    class Client(private val http: OkHttpClient) {

        fun fetch(id: String): Call<User> {
            val request = Request.Builder().url("https://h/users/" + id).get().build()
            return http.newCall(request)
        }

        suspend fun upload(body: RequestBody) {
            val request = Request.Builder().url("https://h/upload").post(body).build()
        }
    }
    """
).lstrip("\n")


def _index(text: str = KOTLIN_SOURCE) -> SourceTextIndex:
    return SourceTextIndex.build("src/Client.kt", package_of(text), text)


def test_package_and_qualify() -> None:
    index = _index()

    assert index.package_name == "com.example.net"
    assert index.file_base_name == "Client"
    assert index.qualify("Client") == "com.example.net.Client"


def test_context_for_offset_uses_nearest_declarations() -> None:
    index = _index()
    offset = KOTLIN_SOURCE.index('Request.Builder().url("https://h/upload")')

    context = index.context_for_offset(offset)

    assert context.service_fqn == "com.example.net.Client"
    assert context.function_name == "upload"
    assert context.declared_response_type is None


def test_context_captures_declared_return_type() -> None:
    index = _index()
    offset = KOTLIN_SOURCE.index('Request.Builder().url("https://h/users/"')

    context = index.context_for_offset(offset)

    assert context.function_name == "fetch"
    assert context.declared_response_type == "Call<User>"


def test_offset_before_any_function_gets_synthetic_name() -> None:
    text = 'val request = Request.Builder().url("https://h/x").get().build()\n'
    index = SourceTextIndex.build("Script.kt", "", text)

    context = index.context_for_offset(0)

    assert context.service_fqn == "Script"
    assert context.function_name == "requestAt0"


def test_function_spans_end_at_next_declaration() -> None:
    index = _index()

    spans = index.function_spans("fetch")

    assert len(spans) == 1
    start, end = spans[0]
    body = KOTLIN_SOURCE[start:end]
    assert "fun fetch" in body
    assert "fun upload" not in body


def test_java_methods_are_indexed() -> None:
    text = textwrap.dedent(
        """
        package com.example;

        public class Gateway {
            public Response<Order> load(String id) {
                Request request = new Request.Builder().url(BASE + "/orders").get().build();
                return null;
            }
        }
        """
    ).lstrip("\n")
    index = SourceTextIndex.build("Gateway.java", package_of(text), text)

    context = index.context_for_offset(text.index("new Request.Builder()"))

    assert context.service_fqn == "com.example.Gateway"
    assert context.function_name == "load"
    assert context.declared_response_type == "Response<Order>"


def test_collect_string_constants_keeps_first_definition() -> None:
    text = (
        'const val BASE_URL = "https://api.example.com"\n'
        'val BASE_URL = "https://other.example.com"\n'
        'static final String USERS = "/users";\n'
    )

    constants = collect_string_constants(text)

    assert constants == {"BASE_URL": "https://api.example.com", "USERS": "/users"}


def test_lookup_constant_falls_back_to_short_name() -> None:
    constants = {"BASE_URL": "https://api.example.com"}

    assert lookup_constant("Config.BASE_URL", constants) == "https://api.example.com"
    assert lookup_constant("MISSING", constants) is None


def test_line_of_is_one_based() -> None:
    text = "a\nb\nc"

    assert line_of(text, 0) == 1
    assert line_of(text, text.index("c")) == 3
