"""Tests for endpointscope.symbols."""

from __future__ import annotations

import textwrap

from endpointscope.project import in_memory_project
from endpointscope.symbols import (
    AnnotationSymbol,
    ClassSymbol,
    InMemorySymbolIndex,
    MethodSymbol,
    mask_source,
    parse_declarations,
    split_top_level,
)

RETROFIT_API = textwrap.dedent(
    """
    package com.x

    import retrofit2.Call
    import retrofit2.http.*

    @Headers("Accept: application/json")
    interface Api {
        // @GET("commented/out")
        @GET("users/{id}")
        fun getUser(@Path("id") id: String, @Query("expand") expand: Boolean?): Call<User>

        @POST("users")
        suspend fun createUser(@Body body: CreateUser): User
    }
    """
).lstrip("\n")


def _single(classes, fqn):  # type: ignore[no-untyped-def]
    return next(cls for cls in classes if cls.fqn == fqn)


def test_kotlin_interface_methods_and_annotations() -> None:
    classes = parse_declarations("src/Api.kt", RETROFIT_API)
    api = _single(classes, "com.x.Api")

    assert api.kind == "interface"
    assert [ann.fqn for ann in api.annotations] == ["retrofit2.http.Headers"]
    assert [method.name for method in api.methods] == ["getUser", "createUser"]

    get_user = api.methods[0]
    assert get_user.owner_fqn == "com.x.Api"
    assert get_user.return_type == "Call<User>"
    assert get_user.file == "src/Api.kt"
    assert get_user.line == RETROFIT_API.splitlines().index('    @GET("users/{id}")') + 2
    assert [ann.fqn for ann in get_user.annotations] == ["retrofit2.http.GET"]
    assert get_user.annotations[0].string_value() == "users/{id}"

    id_param, expand_param = get_user.parameters
    assert (id_param.name, id_param.type_text) == ("id", "String")
    assert id_param.annotation("retrofit2.http.Path").string_value() == "id"
    assert (expand_param.name, expand_param.type_text) == ("expand", "Boolean?")

    create_user = api.methods[1]
    assert create_user.return_type == "User"
    assert create_user.parameters[0].annotation("retrofit2.http.Body") is not None


def test_java_class_fields_getters_and_static_members() -> None:
    text = textwrap.dedent(
        """
        package com.x.model;

        public class Profile {
            private static final long serialVersionUID = 1L;
            public static String TAG = "profile";
            private String email;
            private int age;

            public String getEmail() {
                String local = "ignored";
                return email;
            }

            public static Profile empty() {
                return new Profile();
            }
        }
        """
    ).lstrip("\n")

    profile = _single(parse_declarations("Profile.java", text), "com.x.model.Profile")

    instance_fields = [(f.name, f.type_text) for f in profile.fields if not f.is_static]
    assert instance_fields == [("email", "String"), ("age", "int")]
    assert {f.name for f in profile.fields if f.is_static} == {"serialVersionUID", "TAG"}

    methods = {method.name: method for method in profile.methods}
    assert set(methods) == {"getEmail", "empty"}
    assert methods["getEmail"].return_type == "String"
    assert methods["empty"].is_static


def test_kotlin_data_class_and_enum() -> None:
    text = textwrap.dedent(
        """
        package com.x.model

        data class User(val id: String, val name: String?, val role: Role)

        enum class Role { ADMIN, MEMBER }
        """
    ).lstrip("\n")

    classes = parse_declarations("Models.kt", text)
    user = _single(classes, "com.x.model.User")
    role = _single(classes, "com.x.model.Role")

    assert [(f.name, f.type_text) for f in user.fields] == [
        ("id", "String"),
        ("name", "String?"),
        ("role", "Role"),
    ]
    assert role.is_enum
    assert role.enum_constants == ("ADMIN", "MEMBER")


def test_nested_classes_get_outer_qualified_names() -> None:
    text = textwrap.dedent(
        """
        package com.x

        class Outer {
            interface Inner {
                @retrofit2.http.GET("inner")
                fun ping(): Call<Unit>
            }
        }
        """
    ).lstrip("\n")

    classes = parse_declarations("Outer.kt", text)
    inner = _single(classes, "com.x.Outer.Inner")

    assert [m.name for m in inner.methods] == ["ping"]
    assert inner.methods[0].annotations[0].fqn == "retrofit2.http.GET"
    assert _single(classes, "com.x.Outer").methods == ()


def test_annotation_arguments() -> None:
    annotation = AnnotationSymbol(
        fqn="retrofit2.http.HTTP",
        arguments=(("method", '"DELETE"'), ("path", '"items/{id}"'), ("hasBody", "true")),
    )

    assert annotation.short_name == "HTTP"
    assert annotation.string_value("method") == "DELETE"
    assert annotation.string_value("path") == "items/{id}"
    assert annotation.string_value() is None
    assert AnnotationSymbol("x.Headers", ((None, '{"A: 1", "B: 2"}'),)).string_values() == ["A: 1", "B: 2"]


def test_mask_source_preserves_offsets() -> None:
    text = 'val a = "x{y}" // note {\nval b = 1'

    masked = mask_source(text)

    assert len(masked) == len(text)
    assert "{" not in masked
    assert masked.index("val b") == text.index("val b")


def test_split_top_level_ignores_nested_commas() -> None:
    assert split_top_level('a: Map<String, Int>, @Query("x,y") b: String') == [
        "a: Map<String, Int>",
        '@Query("x,y") b: String',
    ]


def test_in_memory_index_lookups() -> None:
    method = MethodSymbol(
        name="list",
        owner_fqn="com.x.Api",
        annotations=(AnnotationSymbol("retrofit2.http.GET", ((None, '"items"'),)),),
    )
    index = InMemorySymbolIndex([ClassSymbol(fqn="com.x.Api", kind="interface", methods=(method,))])

    assert index.find_class("com.x.Api") is not None
    assert index.find_classes_by_short_name("Api")[0].fqn == "com.x.Api"
    assert list(index.find_annotated_methods("retrofit2.http.GET")) == [method]
    assert list(index.find_annotated_methods("retrofit2.http.POST")) == []


def test_source_index_rebuilds_after_edit() -> None:
    project = in_memory_project({"Api.kt": RETROFIT_API})

    assert project.symbols.find_class("com.x.Api") is not None
    assert project.symbols.find_class("com.x.Other") is None

    project.files.write("Other.kt", "package com.x\n\ninterface Other {\n}\n")

    assert project.symbols.find_class("com.x.Other") is not None
