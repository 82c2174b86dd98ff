"""Tests for applying override documents to endpoints."""

from __future__ import annotations

from endpointscope.config import EndpointConfig
from endpointscope.models import Endpoint
from endpointscope.project import in_memory_project
from endpointscope.resolvers.overrides import OverrideResolver, apply_config

CONFIG = EndpointConfig(
    global_base_url="https://global.example.com",
    environments={"prod": "https://prod.example.com"},
    service_base_urls={
        "com.x.Api": "prod",
        "com.x.Api#special": "https://special.example.com/",
    },
    service_paths={
        "com.x.AuthApi#login": "https://auth.example.com/v1/login",
        "com.x.Api#renamed": "v2/renamed",
    },
    service_request_types={"com.x.Api": "ServiceRequest", "com.x.Api#create": "CreateRequest"},
    service_response_types={"com.x.Api#create": "Created"},
)


def test_function_keys_beat_service_keys() -> None:
    listing = Endpoint("GET", "/users", "com.x.Api", "list", None, "User", "https://scan.example.com")
    create = Endpoint("POST", "/users", "com.x.Api", "create", "Body", None, None)
    special = Endpoint("GET", "/s", "com.x.Api", "special")

    listing_out, create_out, special_out = apply_config(CONFIG, [listing, create, special])

    assert listing_out.base_url == "https://prod.example.com"
    assert listing_out.request_type == "ServiceRequest"
    assert listing_out.response_type == "User"
    assert create_out.request_type == "CreateRequest"
    assert create_out.response_type == "Created"
    assert special_out.base_url == "https://special.example.com"


def test_absolute_service_path_supplies_base_url() -> None:
    login = Endpoint("POST", "/login", "com.x.AuthApi", "login", base_url="https://scan.example.com")

    (result,) = apply_config(CONFIG, [login])

    assert result.path == "/v1/login"
    assert result.base_url == "https://auth.example.com"


def test_relative_service_path_is_normalized() -> None:
    (result,) = apply_config(CONFIG, [Endpoint("GET", "/old", "com.x.Api", "renamed")])

    assert result.path == "/v2/renamed"


def test_global_base_url_applies_to_unlisted_services() -> None:
    (result,) = apply_config(CONFIG, [Endpoint("GET", "/other", "com.x.Other", "x")])

    assert result.base_url == "https://global.example.com"


def test_empty_config_leaves_endpoints_untouched() -> None:
    endpoints = [Endpoint("GET", "/a", "com.x.Api", "a", "Req", "Res", "https://scan.example.com")]

    assert apply_config(EndpointConfig(), endpoints) == endpoints


def test_inputs_are_not_modified() -> None:
    endpoints = [Endpoint("GET", "/users", "com.x.Api", "list")]
    snapshot = list(endpoints)

    results = apply_config(CONFIG, endpoints)

    assert endpoints == snapshot
    assert results[0] is not endpoints[0]


def test_resolver_reads_project_override_file(repo_builder) -> None:  # type: ignore[no-untyped-def]
    repo_builder.write(
        {
            "endpointscope.yaml": """
            servicePaths:
              com.x.AuthApi#login: https://auth.example.com/v1/login
            """,
            "Api.kt": "class AuthApi\n",
        }
    )
    project = repo_builder.project()
    resolver = OverrideResolver()
    login = Endpoint("POST", "/login", "com.x.AuthApi", "login")

    (result,) = resolver.apply(project, [login])

    assert (result.base_url, result.path) == ("https://auth.example.com", "/v1/login")
    assert resolver.load(project) is resolver.load(project)


def test_alternate_override_file_name(repo_builder) -> None:  # type: ignore[no-untyped-def]
    repo_builder.write({".endpointscope.yaml": "baseUrl: https://alt.example.com\n", "Api.kt": "class Api\n"})

    (result,) = OverrideResolver().apply(repo_builder.project(), [Endpoint("GET", "/", "Api", "root")])

    assert result.base_url == "https://alt.example.com"


def test_missing_override_file_returns_input(repo_builder) -> None:  # type: ignore[no-untyped-def]
    repo_builder.write({"Api.kt": "class Api\n"})
    endpoints = [Endpoint("GET", "/", "Api", "root")]

    assert OverrideResolver().apply(repo_builder.project(), endpoints) is endpoints
    assert OverrideResolver().load(in_memory_project()) is None
