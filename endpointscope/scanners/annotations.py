"""Annotation strategy: Retrofit-style interface methods from the symbol index."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..logging import get_logger
from ..models import Endpoint
from ..symbols import RETROFIT_HTTP_PACKAGE, MethodSymbol
from .base import ScanContext
from .core import EndpointCollector, normalize_path

_logger = get_logger("scanners.annotations")

HTTP_VERB_ANNOTATIONS: Tuple[str, ...] = tuple(
    f"{RETROFIT_HTTP_PACKAGE}.{name}"
    for name in ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "HTTP")
)
BODY_ANNOTATION = f"{RETROFIT_HTTP_PACKAGE}.Body"

_CONTINUATION = re.compile(r"(?:kotlin\.coroutines\.)?Continuation<(.+)>")


@dataclass(frozen=True)
class HttpInfo:
    method: str
    path: str


def extract_http_info(method: MethodSymbol) -> Optional[HttpInfo]:
    """Verb and path from the first HTTP annotation on ``method``."""
    for annotation in method.annotations:
        if annotation.fqn not in HTTP_VERB_ANNOTATIONS:
            continue
        raw_path = annotation.string_value("value") or ""
        if annotation.short_name == "HTTP":
            verb = annotation.string_value("method") or "GET"
            path = annotation.string_value("path")
            return HttpInfo(verb.upper(), normalize_path(raw_path if path is None else path))
        return HttpInfo(annotation.short_name, normalize_path(raw_path))
    return None


def extract_body_type(method: MethodSymbol) -> Optional[str]:
    for parameter in method.parameters:
        if parameter.annotation(BODY_ANNOTATION) is not None:
            return parameter.type_text
    return None


def extract_response_type(method: MethodSymbol) -> Optional[str]:
    """Declared return type with ``Call``/``Response`` unwrapped.

    Suspend functions seen through their compiled signature return ``Object``;
    the real type then comes from the trailing ``Continuation`` parameter.
    """
    if not method.return_type:
        return None
    presentable = method.return_type.strip()
    if presentable.endswith("?"):
        presentable = presentable[:-1]
    for wrapper in ("Call", "Response"):
        prefix = f"{wrapper}<"
        if presentable.startswith(prefix) and presentable.endswith(">"):
            return presentable[len(prefix) : -1]
    if presentable in {"Object", "Any"}:
        continuation = _continuation_type(method)
        if continuation is not None:
            return continuation
    return presentable


def _continuation_type(method: MethodSymbol) -> Optional[str]:
    if not method.parameters:
        return None
    match = _CONTINUATION.fullmatch(method.parameters[-1].type_text.strip())
    if not match:
        return None
    raw = match.group(1)
    for prefix in ("? super ", "? extends "):
        if raw.startswith(prefix):
            raw = raw[len(prefix) :]
    raw = raw.strip()
    return raw or None


class AnnotationStrategy:
    """Finds methods carrying an HTTP verb annotation."""

    name = "annotation"

    def scan(self, context: ScanContext) -> Iterable[Endpoint]:
        symbols = context.project.symbols
        collector = EndpointCollector()
        for annotation_fqn in HTTP_VERB_ANNOTATIONS:
            for method in symbols.find_annotated_methods(annotation_fqn):
                info = extract_http_info(method)
                if info is None:
                    continue
                collector.add(
                    Endpoint(
                        http_method=info.method,
                        path=info.path,
                        service_fqn=method.owner_fqn or "Unknown",
                        function_name=method.name,
                        request_type=extract_body_type(method),
                        response_type=extract_response_type(method),
                        base_url=context.base_url,
                    )
                )
        results: List[Endpoint] = sorted(
            collector.results(), key=lambda endpoint: (endpoint.service_fqn, endpoint.path)
        )
        _logger.debug("Annotation strategy found %d endpoints", len(results))
        return results


__all__ = [
    "AnnotationStrategy",
    "BODY_ANNOTATION",
    "HTTP_VERB_ANNOTATIONS",
    "HttpInfo",
    "extract_body_type",
    "extract_http_info",
    "extract_response_type",
]
