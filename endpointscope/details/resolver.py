"""Per-endpoint detail resolution.

Details are re-derived on demand for one endpoint. Annotation-style endpoints
are located through the symbol index; builder-style endpoints are located by
re-reading the owning file and slicing out the function's text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import config_mtime_ns, resolve_config_path, split_absolute_url
from ..logging import get_logger
from ..models import AuthRequirement, BaseUrlSource, Endpoint, EndpointDocDetails, EndpointKey
from ..project import Project
from ..resolvers.base_url import BaseUrlResolver
from ..resolvers.overrides import OverrideResolver
from ..scanners.annotations import HTTP_VERB_ANNOTATIONS, extract_http_info
from ..scanners.base import SourceUnit
from ..scanners.builder_chain import URL_CALL
from ..scanners.core import method_upper
from ..scanners.urls import (
    BODY_METHODS,
    extract_http_method,
    extract_string_literal,
    infer_request_type,
    resolve_url_expression,
)
from ..source_index import line_of
from ..symbols import RETROFIT_HTTP_PACKAGE, AnnotationSymbol, ClassSymbol, MethodSymbol
from .samples import SampleBuilder

_logger = get_logger("details")

AUTHORIZATION_HEADER = "Authorization"
PROVIDER_RETROFIT = "Retrofit"
PROVIDER_OKHTTP = "OkHttp"

HEURISTIC_WINDOW = 2500

_SYNTHETIC_FUNCTION = re.compile(r"requestAt(\d+)$")
_HEADER_CALL = re.compile(r"\.(?:addHeader|header)\s*\(\s*\"([^\"]+)\"\s*,\s*([^)]+?)\s*\)")
_HEADERS_OBJECT_CALL = re.compile(r"\.headers\s*\(")
_QUERY_PARAMETER_CALL = re.compile(r"\.(?:addQueryParameter|setQueryParameter|addEncodedQueryParameter)\s*\(\s*\"([^\"]+)\"")
_FORM_PART_CALL = re.compile(r"\.addFormDataPart\s*\(\s*\"([^\"]+)\"")
_PART_CALL = re.compile(r"\.addPart\s*\(")
_FORM_FIELD_CALL = re.compile(r"\.(?:add|addEncoded)\s*\(\s*\"([^\"]+)\"")
_PATH_TOKEN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_SINGLE_PLACEHOLDER = re.compile(r"/\{[^}/]+\}")


def _ann(name: str) -> str:
    return f"{RETROFIT_HTTP_PACKAGE}.{name}"


@dataclass
class _Collected:
    path_params: List[str] = field(default_factory=list)
    query_params: List[str] = field(default_factory=list)
    header_params: List[str] = field(default_factory=list)
    field_params: List[str] = field(default_factory=list)
    part_params: List[str] = field(default_factory=list)
    static_headers: List[str] = field(default_factory=list)
    has_query_map: bool = False
    has_header_map: bool = False
    has_field_map: bool = False
    has_part_map: bool = False
    has_dynamic_url: bool = False
    has_body: bool = False


def _distinct(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def auth_requirement(
    static_headers: Sequence[str], header_params: Sequence[str], has_header_map: bool
) -> AuthRequirement:
    """REQUIRED when an Authorization header is declared or passed, OPTIONAL for a header map."""
    wanted = AUTHORIZATION_HEADER.lower()
    if any(line.split(":", 1)[0].strip().lower() == wanted for line in static_headers):
        return AuthRequirement.REQUIRED
    if any(name.strip().lower() == wanted for name in header_params):
        return AuthRequirement.REQUIRED
    if has_header_map:
        return AuthRequirement.OPTIONAL
    return AuthRequirement.NONE


def annotation_name_or_fallback(annotation: AnnotationSymbol, fallback: str) -> str:
    named = annotation.string_value("value")
    if named and named.strip():
        return named.strip()
    return fallback


def header_values(annotation: AnnotationSymbol) -> List[str]:
    return annotation.string_values()


class DetailResolver:
    """Resolves and caches :class:`EndpointDocDetails` for single endpoints."""

    def __init__(
        self,
        base_urls: Optional[BaseUrlResolver] = None,
        overrides: Optional[OverrideResolver] = None,
    ) -> None:
        self._base_urls = base_urls or BaseUrlResolver()
        self._overrides = overrides or OverrideResolver()

    def resolve(self, project: Project, endpoint: Endpoint) -> EndpointDocDetails:
        config_path = resolve_config_path(project.root) if project.root is not None else None
        key = (
            project.identity,
            project.version,
            config_mtime_ns(config_path),
            EndpointKey.from_endpoint(endpoint),
            endpoint.request_type,
            endpoint.response_type,
        )
        cached = project.caches.details.get(key)
        if cached is not None:
            _logger.debug("Detail cache hit for %s#%s", endpoint.service_fqn, endpoint.function_name)
            return cached
        details = self._compute(project, endpoint)
        project.caches.details.store(key, details)
        return details

    # ------------------------------------------------------------------

    def _compute(self, project: Project, endpoint: Endpoint) -> EndpointDocDetails:
        method = find_annotated_method(project, endpoint)
        if method is not None:
            details = self._from_annotations(project, method)
        else:
            details = self._from_source_text(project, endpoint) or EndpointDocDetails.empty()

        samples = SampleBuilder(project.symbols)
        request = samples.build(endpoint.request_type)
        response = samples.build(endpoint.response_type)
        return replace(
            details,
            base_url_from_config=self._base_url_from_config(project, endpoint),
            request_schema_json=request.schema_json if request else None,
            request_example_json=request.example_json if request else None,
            response_schema_json=response.schema_json if response else None,
            response_example_json=response.example_json if response else None,
        )

    def _base_url_from_config(self, project: Project, endpoint: Endpoint) -> bool:
        if not endpoint.base_url:
            return False
        config = self._overrides.load(project)
        if config is not None:
            endpoint_key = f"{endpoint.service_fqn}#{endpoint.function_name}"
            candidates = [
                config.resolve_base_url(config.service_base_urls.get(endpoint_key)),
                config.resolve_base_url(config.service_base_urls.get(endpoint.service_fqn)),
                config.global_base_url,
            ]
            for path_key in (endpoint_key, endpoint.service_fqn):
                absolute = split_absolute_url(config.service_paths.get(path_key, ""))
                if absolute is not None:
                    candidates.append(absolute[0])
            if endpoint.base_url in candidates:
                return True
        resolved = self._base_urls.resolve_with_source(project)
        return resolved.source is BaseUrlSource.CONFIG and resolved.url == endpoint.base_url

    def _from_annotations(self, project: Project, method: MethodSymbol) -> EndpointDocDetails:
        collected = _Collected()
        for parameter in method.parameters:
            for annotation in parameter.annotations:
                short = annotation.short_name if annotation.fqn.startswith(RETROFIT_HTTP_PACKAGE + ".") else ""
                if short in {"Path", "Param"}:
                    collected.path_params.append(annotation_name_or_fallback(annotation, parameter.name or "path"))
                elif short == "Query":
                    collected.query_params.append(annotation_name_or_fallback(annotation, parameter.name or "query"))
                elif short == "QueryMap":
                    collected.has_query_map = True
                elif short == "Header":
                    collected.header_params.append(annotation_name_or_fallback(annotation, parameter.name or "header"))
                elif short == "HeaderMap":
                    collected.has_header_map = True
                elif short == "Field":
                    collected.field_params.append(annotation_name_or_fallback(annotation, parameter.name or "field"))
                elif short == "FieldMap":
                    collected.has_field_map = True
                elif short == "Part":
                    collected.part_params.append(annotation_name_or_fallback(annotation, parameter.name or "part"))
                elif short == "PartMap":
                    collected.has_part_map = True
                elif short == "Url":
                    collected.has_dynamic_url = True
                elif short == "Body":
                    collected.has_body = True

        owner = project.symbols.find_class(method.owner_fqn)
        collected.static_headers = static_headers(owner, method)
        return _details(collected, PROVIDER_RETROFIT, method.file, method.line)

    def _from_source_text(self, project: Project, endpoint: Endpoint) -> Optional[EndpointDocDetails]:
        located = locate_function_text(project, endpoint)
        if located is None:
            return None
        unit, start, end = located
        text = unit.text[start:end]

        collected = _Collected()
        url_match = URL_CALL.search(text)
        if url_match is not None:
            expression = url_match.group(1).strip()
            for suffix in (".toHttpUrl()", ".toHttpUrlOrNull()"):
                if expression.endswith(suffix):
                    expression = expression[: -len(suffix)].strip()
            collected.has_dynamic_url = extract_string_literal(expression) is None
            resolved = resolve_url_expression(expression, unit.constants, None)
            collected.query_params.extend(query_names(resolved.path))
        else:
            collected.has_dynamic_url = bool(_SINGLE_PLACEHOLDER.fullmatch(endpoint.path))
        collected.query_params.extend(query_names(endpoint.path))
        collected.query_params.extend(match.group(1) for match in _QUERY_PARAMETER_CALL.finditer(text))

        for match in _HEADER_CALL.finditer(text):
            name, value = match.group(1), match.group(2)
            literal = extract_string_literal(value)
            if literal is not None:
                collected.static_headers.append(f"{name}: {literal}")
            else:
                collected.header_params.append(name)
        collected.has_header_map = bool(_HEADERS_OBJECT_CALL.search(text))

        if "MultipartBody.Builder" in text:
            collected.part_params.extend(match.group(1) for match in _FORM_PART_CALL.finditer(text))
            collected.has_part_map = bool(_PART_CALL.search(text))
        if "FormBody.Builder" in text:
            collected.field_params.extend(match.group(1) for match in _FORM_FIELD_CALL.finditer(text))

        collected.path_params.extend(_PATH_TOKEN.findall(endpoint.path.split("?", 1)[0]))
        verb = method_upper(endpoint.http_method)
        collected.has_body = bool(endpoint.request_type) or (
            verb in BODY_METHODS and infer_request_type(text) is not None
        )
        anchor = text.find(endpoint.function_name)
        line = line_of(unit.text, start + anchor if anchor >= 0 else start)
        return _details(collected, PROVIDER_OKHTTP, unit.path, line)


def _details(
    collected: _Collected, provider: str, source_file: Optional[str], source_line: Optional[int]
) -> EndpointDocDetails:
    headers = _distinct(collected.static_headers)
    header_params = _distinct(collected.header_params)
    return EndpointDocDetails(
        provider=provider,
        source_file=source_file,
        source_line=source_line,
        path_params=_distinct(collected.path_params),
        query_params=_distinct(collected.query_params),
        has_query_map=collected.has_query_map,
        header_params=header_params,
        has_header_map=collected.has_header_map,
        field_params=_distinct(collected.field_params),
        has_field_map=collected.has_field_map,
        part_params=_distinct(collected.part_params),
        has_part_map=collected.has_part_map,
        has_dynamic_url=collected.has_dynamic_url,
        has_body=collected.has_body,
        static_headers=headers,
        auth_requirement=auth_requirement(headers, header_params, collected.has_header_map),
    )


def query_names(path: str) -> List[str]:
    if "?" not in path:
        return []
    names: List[str] = []
    for pair in path.split("?", 1)[1].split("&"):
        name = pair.split("=", 1)[0].strip()
        if name:
            names.append(name)
    return names


def static_headers(owner: Optional[ClassSymbol], method: MethodSymbol) -> List[str]:
    headers: List[str] = []
    annotations: List[AnnotationSymbol] = list(owner.annotations) if owner is not None else []
    annotations.extend(method.annotations)
    for annotation in annotations:
        if annotation.fqn == _ann("Headers"):
            headers.extend(header_values(annotation))
    return headers


def _has_http_annotation(method: MethodSymbol) -> bool:
    return any(annotation.fqn in HTTP_VERB_ANNOTATIONS for annotation in method.annotations)


def find_annotated_method(project: Project, endpoint: Endpoint) -> Optional[MethodSymbol]:
    """The endpoint's declaring method, preferring an exact verb and path match."""
    owner = project.symbols.find_class(endpoint.service_fqn)
    if owner is None:
        return None
    candidates = [
        method
        for method in owner.methods
        if method.name == endpoint.function_name and _has_http_annotation(method)
    ]
    wanted_method = method_upper(endpoint.http_method)
    for candidate in candidates:
        info = extract_http_info(candidate)
        if info is not None and method_upper(info.method) == wanted_method and info.path == endpoint.path:
            return candidate
    return candidates[0] if candidates else None


def locate_function_text(project: Project, endpoint: Endpoint) -> Optional[Tuple[SourceUnit, int, int]]:
    """Find the text span of a builder-style endpoint's function."""
    files = project.files
    fallback: Optional[Tuple[SourceUnit, int, int]] = None
    synthetic = _SYNTHETIC_FUNCTION.fullmatch(endpoint.function_name)
    wanted_method = method_upper(endpoint.http_method)
    for source in files.iter_source_files():
        if not source.path.endswith((".kt", ".java")):
            continue
        try:
            text = files.read_text(source.path)
        except (OSError, UnicodeDecodeError) as exc:
            _logger.debug("Skipping unreadable file %s: %s", source.path, exc)
            continue
        if text is None:
            continue
        unit = SourceUnit(file=source, text=text)
        if not _file_may_own(unit, endpoint.service_fqn):
            continue
        index = unit.index
        if synthetic is not None:
            offset = int(synthetic.group(1))
            if offset < len(text) and same_owner(index.context_for_offset(offset).service_fqn, endpoint.service_fqn):
                return unit, offset, min(len(text), offset + HEURISTIC_WINDOW)
            continue
        for start, end in index.function_spans(endpoint.function_name):
            if not same_owner(index.context_for_offset(start).service_fqn, endpoint.service_fqn):
                continue
            if extract_http_method(text[start:end]) == wanted_method:
                return unit, start, end
            if fallback is None:
                fallback = (unit, start, end)
    return fallback


def same_owner(found: str, wanted: str) -> bool:
    """Whether a text-index owner such as `pkg.Inner` names `wanted`.

    The text index only knows the nearest class, so `pkg.Inner` also stands for
    nested owners like `pkg.Outer.Inner`.
    """
    if found == wanted:
        return True
    package, _, simple = found.rpartition(".")
    prefix = f"{package}." if package else ""
    if not wanted.startswith(prefix) or not wanted.endswith(f".{simple}"):
        return False
    enclosing = wanted[len(prefix) : -len(simple) - 1]
    return bool(enclosing) and all(part[:1].isupper() for part in enclosing.split("."))


def _file_may_own(unit: SourceUnit, service_fqn: str) -> bool:
    index = unit.index
    if same_owner(index.qualify(index.file_base_name), service_fqn):
        return True
    return any(same_owner(index.qualify(name), service_fqn) for _, name in index.class_decls)


__all__ = [
    "AUTHORIZATION_HEADER",
    "DetailResolver",
    "PROVIDER_OKHTTP",
    "PROVIDER_RETROFIT",
    "auth_requirement",
    "find_annotated_method",
    "locate_function_text",
    "query_names",
    "same_owner",
    "static_headers",
]
