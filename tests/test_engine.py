"""Tests for the engine entry points and the refresh service."""

from __future__ import annotations

from typing import Dict

import pytest

from endpointscope.config import EngineSettings
from endpointscope.details import DetailResolver
from endpointscope.engine import EndpointEngine, EndpointService
from endpointscope.models import AuthRequirement, BaseUrlSource, Endpoint, EndpointDocDetails
from endpointscope.project import Project, in_memory_project

SOURCES: Dict[str, str] = {
    "endpointscope.yaml": """
    baseUrl: https://api.example.com
    servicePaths:
      com.x.AuthApi#login: https://auth.example.com/v1/login
    """,
    "src/com/x/UserApi.kt": """
    package com.x

    import retrofit2.Call
    import retrofit2.http.*

    interface UserApi {
        @GET("users/{id}")
        fun getUser(@Path("id") id: String, @Query("expand") expand: Boolean?): Call<User>

        @POST("users")
        fun createUser(@Body body: CreateUser): Call<User>
    }
    """,
    "src/com/x/AuthApi.kt": """
    package com.x

    import retrofit2.Call
    import retrofit2.http.Body
    import retrofit2.http.POST

    interface AuthApi {
        @POST("login")
        fun login(@Body body: LoginRequest): Call<Token>
    }
    """,
    "src/com/x/net/UserClient.kt": """
    package com.x.net

    import okhttp3.Request
    import okhttp3.RequestBody

    class UserClient(private val client: OkHttpClient) {
        fun doPost(body: RequestBody) {
            val request = Request.Builder().url("https://h/x/" + id).post(body).build()
            client.newCall(request).execute()
        }
    }
    """,
}


def _engine(**settings) -> EndpointEngine:  # type: ignore[no-untyped-def]
    return EndpointEngine(EngineSettings(use_syntax_tree=False, **settings))


@pytest.fixture
def project(repo_builder) -> Project:  # type: ignore[no-untyped-def]
    repo_builder.write(SOURCES)
    return repo_builder.project()


def test_scan_merges_strategies_and_applies_overrides(project: Project) -> None:
    endpoints = _engine().scan(project)

    assert [(ep.service_fqn, ep.path, ep.function_name) for ep in endpoints] == [
        ("com.x.AuthApi", "/v1/login", "login"),
        ("com.x.UserApi", "/users", "createUser"),
        ("com.x.UserApi", "/users/{id}", "getUser"),
        ("com.x.net.UserClient", "/x/{id}", "doPost"),
    ]
    login, create, get_user, do_post = endpoints
    assert login.base_url == "https://auth.example.com"
    assert (login.request_type, login.response_type) == ("LoginRequest", "Token")
    assert (create.http_method, create.request_type, create.response_type) == ("POST", "CreateUser", "User")
    assert get_user.base_url == "https://api.example.com"
    assert do_post.http_method == "POST"
    assert do_post.request_type == "RequestBody"
    assert do_post.base_url == "https://api.example.com"


def test_scan_is_idempotent(project: Project) -> None:
    engine = _engine()

    assert engine.scan(project) == engine.scan(project)


def test_strategy_selection(project: Project) -> None:
    endpoints = _engine(strategies=["annotation"]).scan(project)

    assert {ep.function_name for ep in endpoints} == {"login", "createUser", "getUser"}

    with pytest.raises(ValueError):
        _engine(strategies=["annotation", "graphql"])


def test_scan_reflects_in_memory_edits() -> None:
    project = in_memory_project({"Api.kt": "package com.x\n\ninterface Api {\n}\n"})
    engine = _engine()

    assert engine.scan(project) == []

    project.files.write(
        "Api.kt",
        'package com.x\n\nimport retrofit2.http.GET\n\ninterface Api {\n    @GET("ping")\n    fun ping(): Call<Unit>\n}\n',
    )

    assert [(ep.http_method, ep.path) for ep in engine.scan(project)] == [("GET", "/ping")]


def test_resolve_base_url(project: Project) -> None:
    engine = _engine()

    assert engine.resolve_base_url(project) == "https://api.example.com"
    assert engine.resolve_base_url_with_source(project).source is BaseUrlSource.CONFIG


def test_find_endpoint(project: Project) -> None:
    engine = _engine()
    endpoints = engine.scan(project)

    found = engine.find_endpoint(endpoints, service="com.x.UserApi", function="getUser", method="get")

    assert found.path == "/users/{id}"
    with pytest.raises(LookupError):
        engine.find_endpoint(endpoints, service="com.x.UserApi", function="getUser", method="DELETE")
    with pytest.raises(LookupError):
        engine.find_endpoint(endpoints, service="com.x.Nope", function="x")


def test_resolve_details_through_engine(project: Project) -> None:
    engine = _engine()
    get_user = engine.find_endpoint(engine.scan(project), service="com.x.UserApi", function="getUser")

    details = engine.resolve_details(project, get_user)

    assert details.query_params == ("expand",)
    assert details.path_params == ("id",)
    assert details.base_url_from_config


def test_list_metadata(project: Project) -> None:
    engine = _engine()
    endpoints = engine.scan(project)

    metadata = engine.list_metadata(project, endpoints)

    assert len(metadata) == len(endpoints)
    by_function = {ep.function_name: meta for ep, meta in zip(endpoints, metadata)}
    assert by_function["getUser"].query_count == 1
    assert by_function["getUser"].auth_requirement is AuthRequirement.NONE
    assert by_function["getUser"].base_url_resolved
    assert not any(meta.partial for meta in metadata)


class _FailingDetails(DetailResolver):
    def resolve(self, project: Project, endpoint: Endpoint) -> EndpointDocDetails:
        raise RuntimeError("unreadable")


def test_list_metadata_degrades_to_partial_records() -> None:
    engine = EndpointEngine(EngineSettings(use_syntax_tree=False), details=_FailingDetails())
    endpoint = Endpoint("GET", "/a", "com.x.Api", "a", base_url="https://api.example.com")

    (meta,) = engine.list_metadata(in_memory_project(), [endpoint])

    assert meta.partial
    assert meta.auth_requirement is None
    assert meta.query_count == 0
    assert meta.base_url_resolved


def test_service_only_commits_latest_refresh(project: Project) -> None:
    service = EndpointService(_engine())
    stale = service.begin_refresh()
    latest = service.begin_refresh()
    endpoints = [Endpoint("GET", "/a", "com.x.Api", "a"), Endpoint("GET", "/b", "com.x.Api", "b")]

    assert not service.commit(stale, endpoints)
    assert service.endpoints == []
    assert service.last_refresh_status is None
    assert not service.is_current(stale)

    assert service.commit(latest, endpoints)
    assert service.endpoints == endpoints
    assert service.last_refresh_status == "Found 2 endpoints"

    assert service.refresh(project)
    assert len(service.endpoints) == 4
    assert service.last_refresh_status == "Found 4 endpoints"


def test_use_syntax_tree_setting() -> None:
    assert EndpointEngine(EngineSettings(use_syntax_tree=False)).use_syntax_tree is False


def test_resolve_details_sees_disk_edits_without_rescan(repo_builder) -> None:  # type: ignore[no-untyped-def]
    repo_builder.write(SOURCES)
    project = repo_builder.project()
    engine = _engine()
    get_user = engine.find_endpoint(engine.scan(project), service="com.x.UserApi", function="getUser")

    assert engine.resolve_details(project, get_user).query_params == ("expand",)

    source = repo_builder.path() / "src/com/x/UserApi.kt"
    source.write_text(
        source.read_text(encoding="utf-8").replace('@Query("expand")', '@Query("includeDeleted")'),
        encoding="utf-8",
    )

    assert engine.resolve_details(project, get_user).query_params == ("includeDeleted",)
