"""Tests for endpoint normalization and merging."""

from __future__ import annotations

from typing import Iterable, List

from endpointscope.models import Endpoint
from endpointscope.project import in_memory_project
from endpointscope.scanners.base import ScanContext
from endpointscope.scanners.core import (
    EndpointCollector,
    StrategyRegistry,
    identity_key,
    method_upper,
    normalize_path,
    sort_key,
)


def _endpoint(method: str, path: str, service: str = "com.x.Api", function: str = "call", **kwargs) -> Endpoint:
    return Endpoint(http_method=method, path=path, service_fqn=service, function_name=function, **kwargs)


class _FixedStrategy:
    def __init__(self, name: str, endpoints: List[Endpoint]) -> None:
        self.name = name
        self._endpoints = endpoints

    def scan(self, context: ScanContext) -> Iterable[Endpoint]:
        return list(self._endpoints)


def test_normalize_path() -> None:
    assert normalize_path("") == "/"
    assert normalize_path(None) == "/"
    assert normalize_path("   ") == "/"
    assert normalize_path("foo") == "/foo"
    assert normalize_path("/foo") == "/foo"
    assert normalize_path("//foo") == "/foo"
    assert normalize_path("https://h.example.com/x") == "https://h.example.com/x"


def test_method_upper() -> None:
    assert method_upper(" post ") == "POST"
    assert method_upper(None) == ""


def test_collector_keeps_first_endpoint_per_identity() -> None:
    collector = EndpointCollector()
    first = _endpoint("GET", "/users", response_type="User")
    second = _endpoint("get", "users", response_type="Other")

    assert collector.add(first) is True
    assert collector.add(second) is False

    results = collector.results()
    assert results == [first]
    assert identity_key(results[0]) == ("GET", "com.x.Api", "call", "/users")


def test_collector_normalizes_and_sorts() -> None:
    collector = EndpointCollector()
    added = collector.extend(
        [
            _endpoint("post", "b", service="com.x.B", function="z"),
            _endpoint("GET", "/a", service="com.x.B", function="y"),
            _endpoint("GET", "/a", service="com.x.B", function="x"),
            _endpoint("GET", "/z", service="com.x.A", function="w"),
        ]
    )

    assert added == 4
    results = collector.results()
    assert [(ep.service_fqn, ep.path, ep.function_name) for ep in results] == [
        ("com.x.A", "/z", "w"),
        ("com.x.B", "/a", "x"),
        ("com.x.B", "/a", "y"),
        ("com.x.B", "/b", "z"),
    ]
    assert results[-1].http_method == "POST"
    assert _endpoint("POST", "/b", service="com.x.B", function="z") in collector


def test_registry_merges_strategies_in_order() -> None:
    shared = _endpoint("GET", "/users", request_type=None, response_type="User")
    duplicate = _endpoint("GET", "/users", response_type="Ignored")
    extra = _endpoint("DELETE", "/users/{id}", function="remove")
    registry = StrategyRegistry(
        [_FixedStrategy("first", [shared]), _FixedStrategy("second", [duplicate, extra])]
    )
    context = ScanContext(project=in_memory_project())

    results = registry.run(context)

    assert registry.names == ["first", "second"]
    assert results == [shared, extra]
    assert results[0].response_type == "User"


def test_registry_output_is_independent_of_visit_order() -> None:
    endpoints = [
        _endpoint("GET", "/b", function="b"),
        _endpoint("GET", "/a", function="a"),
        _endpoint("PUT", "/c", service="com.x.Other", function="c"),
    ]
    context = ScanContext(project=in_memory_project())

    forward = StrategyRegistry([_FixedStrategy("s", endpoints)]).run(context)
    backward = StrategyRegistry([_FixedStrategy("s", list(reversed(endpoints)))]).run(context)

    assert forward == backward


def test_method_breaks_ties_between_same_function_and_path() -> None:
    put = _endpoint("PUT", "/items", function="save")
    post = _endpoint("POST", "/items", function="save")
    collector = EndpointCollector()

    collector.extend([put, post])

    assert [ep.http_method for ep in collector.results()] == ["POST", "PUT"]
    assert sorted([put, post], key=sort_key) == [post, put]
