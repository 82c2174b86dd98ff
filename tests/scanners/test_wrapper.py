"""Tests for the builder wrapper-method strategy."""

from __future__ import annotations

import textwrap
from typing import Dict, List

from endpointscope.models import Endpoint
from endpointscope.project import in_memory_project
from endpointscope.scanners.base import ScanContext
from endpointscope.scanners.wrapper import ClassHeader, WrapperMethodStrategy, class_headers


def _scan(files: Dict[str, str], base_url: str | None = "https://api.example.com") -> List[Endpoint]:
    project = in_memory_project({path: textwrap.dedent(text).lstrip("\n") for path, text in files.items()})
    return list(WrapperMethodStrategy().scan(ScanContext(project=project, base_url=base_url)))


def test_constructor_parameter_supplies_the_url() -> None:
    results = _scan(
        {
            "src/com/x/net/UploadRequest.kt": """
            package com.x.net

            import okhttp3.Request
            import okhttp3.RequestBody

            class UploadRequest(val uploadUrl: String, val payload: RequestBody) : ApiRequest {
                override fun configure(builder: Request.Builder) {
                    builder.post(payload)
                }
            }
            """,
        }
    )

    assert results == [
        Endpoint(
            http_method="POST",
            path="/{uploadUrl}",
            service_fqn="com.x.net.UploadRequest",
            function_name="configure",
            request_type="RequestBody",
            response_type=None,
            base_url="https://api.example.com",
        )
    ]


def test_url_call_in_body_wins_over_parameters() -> None:
    (endpoint,) = _scan(
        {
            "Api.kt": """
            package com.x

            import okhttp3.Request

            class Api {
                fun applyGet(builder: Request.Builder, id: String) {
                    builder.url("https://items.example.com/items/" + id)
                    builder.get()
                }
            }
            """,
        }
    )

    assert endpoint.http_method == "GET"
    assert endpoint.path == "/items/{id}"
    assert endpoint.base_url == "https://items.example.com"
    assert endpoint.service_fqn == "com.x.Api"
    assert endpoint.function_name == "applyGet"
    assert endpoint.request_type is None


def test_java_wrapper_uses_method_parameter() -> None:
    (endpoint,) = _scan(
        {
            "src/com/x/Requests.java": """
            package com.x;

            import okhttp3.Request;

            public class Requests {
                public void applyPut(Request.Builder builder, String resourcePath, RequestBody body) {
                    builder.put(body);
                }
            }
            """,
        },
        base_url=None,
    )

    assert endpoint.http_method == "PUT"
    assert endpoint.path == "/{resourcePath}"
    assert endpoint.service_fqn == "com.x.Requests"
    assert endpoint.request_type == "RequestBody"
    assert endpoint.base_url is None


def test_wrapper_without_any_url_source_is_skipped() -> None:
    results = _scan(
        {
            "Tracing.kt": """
            package com.x

            import okhttp3.Request

            class Tracing {
                fun decorate(builder: Request.Builder) {
                    builder.header("X-Trace", "1").get()
                }
            }
            """,
        }
    )

    assert results == []


def test_class_headers() -> None:
    text = "class A(val x: String)\nclass B\nclass C(private val url: String, n: Int)"

    assert class_headers(text) == [
        ClassHeader(0, "A", "val x: String"),
        ClassHeader(text.index("class C"), "C", "private val url: String, n: Int"),
    ]
