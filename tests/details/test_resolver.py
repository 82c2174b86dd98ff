"""Tests for per-endpoint detail resolution."""

from __future__ import annotations

import json
import textwrap

from endpointscope.details import DetailResolver, auth_requirement
from endpointscope.details.resolver import same_owner
from endpointscope.models import AuthRequirement, Endpoint, EndpointDocDetails
from endpointscope.project import in_memory_project

USER_API = textwrap.dedent(
    """
    package com.x

    import retrofit2.Call
    import retrofit2.http.*

    @Headers("Accept: application/json")
    interface UserApi {
        @Headers("Authorization: Bearer static")
        @GET("users/{id}")
        fun getUser(@Path("id") userId: String, @Query("expand") expand: Boolean?, @QueryMap filters: Map<String, String>, @Header("X-Trace") trace: String): Call<User>

        @Multipart
        @POST("uploads")
        fun upload(@Part("file") file: RequestBody, @PartMap extras: Map<String, RequestBody>, @HeaderMap headers: Map<String, String>): Call<Unit>

        @FormUrlEncoded
        @POST("login")
        fun login(@Field("username") user: String, @Field password: String, @Header("authorization") token: String): Call<Token>

        @GET
        fun follow(@Url url: String): Call<User>
    }

    data class User(val id: String, val email: String)
    """
).lstrip("\n")

ORDER_CLIENT = textwrap.dedent(
    """
    package com.x

    import okhttp3.*

    class OrderClient(private val client: OkHttpClient) {
        fun createOrder(token: String, payload: String): Order {
            val body = MultipartBody.Builder()
                .addFormDataPart("item", payload)
                .addFormDataPart("note", "n")
                .addPart(extra)
                .build()
            val request = Request.Builder()
                .url("https://shop.example.com/orders?draft=true")
                .addHeader("Authorization", "Bearer " + token)
                .header("Accept", "application/json")
                .post(body)
                .build()
            return parse(client.newCall(request).execute())
        }
    }
    """
).lstrip("\n")

API_PATH = "src/com/x/UserApi.kt"


def _line_containing(text: str, needle: str) -> int:
    return next(number for number, line in enumerate(text.splitlines(), start=1) if needle in line)


def _api_endpoint(method: str, path: str, function: str, **kwargs) -> Endpoint:  # type: ignore[no-untyped-def]
    return Endpoint(method, path, "com.x.UserApi", function, **kwargs)


def test_annotation_details_for_query_and_headers() -> None:
    project = in_memory_project({API_PATH: USER_API})
    endpoint = _api_endpoint("GET", "/users/{id}", "getUser", response_type="User")

    details = DetailResolver().resolve(project, endpoint)

    assert details.provider == "Retrofit"
    assert details.source_file == API_PATH
    assert details.source_line == _line_containing(USER_API, "fun getUser")
    assert details.path_params == ("id",)
    assert details.query_params == ("expand",)
    assert details.has_query_map
    assert details.header_params == ("X-Trace",)
    assert details.static_headers == ("Accept: application/json", "Authorization: Bearer static")
    assert details.auth_requirement is AuthRequirement.REQUIRED
    assert not details.has_body
    assert not details.has_dynamic_url
    assert details.request_schema_json is None
    assert json.loads(details.response_example_json or "") == {"id": "A1B2C3", "email": "test@example.com"}
    assert json.loads(details.response_schema_json or "") == {"id": "string", "email": "string"}


def test_annotation_details_for_multipart_form_and_dynamic_url() -> None:
    project = in_memory_project({API_PATH: USER_API})
    resolver = DetailResolver()

    upload = resolver.resolve(project, _api_endpoint("POST", "/uploads", "upload"))
    login = resolver.resolve(project, _api_endpoint("POST", "/login", "login"))
    follow = resolver.resolve(project, _api_endpoint("GET", "/", "follow"))

    assert upload.part_params == ("file",)
    assert upload.has_part_map
    assert upload.has_header_map
    assert upload.auth_requirement is AuthRequirement.OPTIONAL

    assert login.field_params == ("username", "password")
    assert login.header_params == ("authorization",)
    assert login.auth_requirement is AuthRequirement.REQUIRED

    assert follow.has_dynamic_url
    assert follow.auth_requirement is AuthRequirement.NONE


def test_builder_details_from_function_text() -> None:
    path = "src/com/x/OrderClient.kt"
    project = in_memory_project({path: ORDER_CLIENT})
    endpoint = Endpoint(
        "POST",
        "/orders?draft=true",
        "com.x.OrderClient",
        "createOrder",
        "RequestBody",
        "Order",
        "https://shop.example.com",
    )

    details = DetailResolver().resolve(project, endpoint)

    assert details.provider == "OkHttp"
    assert details.source_file == path
    assert details.source_line == _line_containing(ORDER_CLIENT, "fun createOrder")
    assert details.query_params == ("draft",)
    assert details.header_params == ("Authorization",)
    assert details.static_headers == ("Accept: application/json",)
    assert details.auth_requirement is AuthRequirement.REQUIRED
    assert details.part_params == ("item", "note")
    assert details.has_part_map
    assert details.has_body
    assert not details.has_dynamic_url
    assert details.response_example_json == "{}"


def test_builder_details_for_top_level_request() -> None:
    text = (
        "import okhttp3.Request\n\n"
        'const val BASE = "https://h.example.com"\n\n'
        'val req = Request.Builder().url(BASE + "/items/" + itemId).delete().build()\n'
    )
    offset = text.index("Request.Builder")
    project = in_memory_project({"Script.kt": text})
    endpoint = Endpoint(
        "DELETE", "/items/{itemId}", "Script", f"requestAt{offset}", "RequestBody", None, "https://h.example.com"
    )

    details = DetailResolver().resolve(project, endpoint)

    assert details.provider == "OkHttp"
    assert details.has_dynamic_url
    assert details.path_params == ("itemId",)
    assert details.source_line == 5


def test_unknown_endpoint_yields_empty_details() -> None:
    project = in_memory_project({API_PATH: USER_API})

    details = DetailResolver().resolve(project, Endpoint("GET", "/nope", "com.x.Missing", "nope"))

    assert details == EndpointDocDetails.empty()


def test_details_are_cached_per_project_version() -> None:
    project = in_memory_project({API_PATH: USER_API})
    resolver = DetailResolver()
    endpoint = _api_endpoint("GET", "/users/{id}", "getUser", response_type="User")

    first = resolver.resolve(project, endpoint)

    assert resolver.resolve(project, endpoint) is first

    project.files.write(API_PATH, USER_API.replace('@Query("expand")', '@Query("include")'))
    updated = resolver.resolve(project, endpoint)

    assert updated is not first
    assert updated.query_params == ("include",)


def test_base_url_from_config(repo_builder) -> None:  # type: ignore[no-untyped-def]
    repo_builder.write(
        {
            "endpointscope.yaml": """
            baseUrl: https://cfg.example.com
            serviceBaseUrls:
              com.x.UserApi#follow: https://follow.example.com
            """,
            API_PATH: USER_API,
        }
    )
    project = repo_builder.project()
    resolver = DetailResolver()

    configured = resolver.resolve(project, _api_endpoint("GET", "/users/{id}", "getUser", base_url="https://cfg.example.com"))
    scoped = resolver.resolve(project, _api_endpoint("GET", "/", "follow", base_url="https://follow.example.com"))
    elsewhere = resolver.resolve(project, _api_endpoint("POST", "/login", "login", base_url="https://other.example.com"))
    missing = resolver.resolve(project, _api_endpoint("POST", "/uploads", "upload"))

    assert configured.base_url_from_config
    assert scoped.base_url_from_config
    assert not elsewhere.base_url_from_config
    assert not missing.base_url_from_config


def test_auth_requirement_rules() -> None:
    assert auth_requirement(["authorization: token"], [], False) is AuthRequirement.REQUIRED
    assert auth_requirement([], ["AUTHORIZATION"], True) is AuthRequirement.REQUIRED
    assert auth_requirement(["Accept: */*"], ["X-Trace"], True) is AuthRequirement.OPTIONAL
    assert auth_requirement([], [], False) is AuthRequirement.NONE


def test_details_to_dict() -> None:
    details = EndpointDocDetails(path_params=("id",), auth_requirement=AuthRequirement.OPTIONAL)

    data = details.to_dict()

    assert data["auth_requirement"] == "optional"
    assert data["path_params"] == ["id"]
    assert data["request_schema_json"] is None


NESTED_CLIENT = textwrap.dedent(
    """
    package com.x

    import okhttp3.Request

    class Outer {
        class Inner(private val client: OkHttpClient) {
            fun ping() {
                val request = Request.Builder().url("https://h.example.com/ping?full=1").head().build()
                client.newCall(request).execute()
            }
        }
    }
    """
).lstrip("\n")


def test_builder_details_for_nested_class_owner() -> None:
    path = "src/com/x/Outer.kt"
    project = in_memory_project({path: NESTED_CLIENT})
    endpoint = Endpoint("HEAD", "/ping?full=1", "com.x.Outer.Inner", "ping", None, None, "https://h.example.com")

    details = DetailResolver().resolve(project, endpoint)

    assert details.provider == "OkHttp"
    assert details.source_file == path
    assert details.source_line == _line_containing(NESTED_CLIENT, "fun ping")
    assert details.query_params == ("full",)


def test_same_owner_accepts_enclosing_classes_only() -> None:
    assert same_owner("com.x.Inner", "com.x.Inner")
    assert same_owner("com.x.Inner", "com.x.Outer.Inner")
    assert same_owner("Inner", "Outer.Inner")
    assert not same_owner("com.x.Inner", "com.x.sub.Inner")
    assert not same_owner("com.x.Inner", "com.y.Outer.Inner")
    assert not same_owner("com.x.Inner", "com.x.Other")
