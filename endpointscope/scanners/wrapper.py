"""Wrapper-method strategy: thin functions that receive a ``Request.Builder``.

Used when no literal builder chain is visible. The URL comes from a ``.url(...)``
call in the body when there is one, otherwise from a URL-ish string parameter of
the method or of the enclosing class constructor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..logging import get_logger
from ..models import Endpoint
from .base import ScanContext, SourceUnit
from .builder_chain import URL_CALL, looks_relevant
from .core import EndpointCollector
from .urls import (
    extract_http_method,
    extract_request_body_type,
    infer_request_type,
    infer_url_from_parameters,
    resolve_url_expression,
)

_logger = get_logger("scanners.wrapper")

KOTLIN_BUILDER_METHOD = re.compile(
    r"fun\s+([A-Za-z_][A-Za-z0-9_]*)\s*\(([^)]*Request\.Builder[^)]*)\)\s*\{([\s\S]{0,1200}?)\n\s*\}"
)
JAVA_BUILDER_METHOD = re.compile(
    r"[A-Za-z_][A-Za-z0-9_<>,.?\[\]\s]*\s+([A-Za-z_][A-Za-z0-9_]*)\s*\(([^)]*Request\.Builder[^)]*)\)\s*\{([\s\S]{0,1200}?)\n\s*\}"
)
CLASS_HEADER = re.compile(r"class\s+([A-Za-z_][A-Za-z0-9_]*)\s*\(([^)]*)\)")


@dataclass(frozen=True)
class ClassHeader:
    offset: int
    class_name: str
    constructor_params: str


def class_headers(text: str) -> List[ClassHeader]:
    return [
        ClassHeader(match.start(), match.group(1).strip(), match.group(2))
        for match in CLASS_HEADER.finditer(text)
    ]


class WrapperMethodStrategy:
    """Recognizes builder wrapper methods by their signature and body."""

    name = "wrapper"

    def scan(self, context: ScanContext) -> Iterable[Endpoint]:
        collector = EndpointCollector()
        for unit in context.units():
            if not looks_relevant(unit.text):
                continue
            collector.extend(self.unit_endpoints(unit, context.base_url))
        results = collector.results()
        _logger.debug("Wrapper strategy found %d endpoints", len(results))
        return results

    def unit_endpoints(self, unit: SourceUnit, base_url: Optional[str]) -> List[Endpoint]:
        headers = class_headers(unit.text)
        pattern = KOTLIN_BUILDER_METHOD if unit.is_kotlin else JAVA_BUILDER_METHOD
        endpoints: List[Endpoint] = []
        for match in pattern.finditer(unit.text):
            endpoint = self._endpoint(
                unit,
                headers,
                method_name=match.group(1).strip(),
                signature=match.group(2),
                body=match.group(3),
                offset=match.start(),
                base_url=base_url,
            )
            if endpoint is not None:
                endpoints.append(endpoint)
        return endpoints

    def _endpoint(
        self,
        unit: SourceUnit,
        headers: List[ClassHeader],
        *,
        method_name: str,
        signature: str,
        body: str,
        offset: int,
        base_url: Optional[str],
    ) -> Optional[Endpoint]:
        http_method = extract_http_method(body)
        if http_method is None:
            return None
        header = next((item for item in reversed(headers) if item.offset <= offset), None)
        constructor_params = header.constructor_params if header is not None else ""

        url_match = URL_CALL.search(body)
        if url_match is not None:
            resolved = resolve_url_expression(url_match.group(1).strip(), unit.constants, base_url)
        else:
            inferred = infer_url_from_parameters(signature, constructor_params, base_url)
            if inferred is None:
                return None
            resolved = inferred

        if header is not None:
            service_fqn = unit.index.qualify(header.class_name)
        else:
            service_fqn = unit.index.context_for_offset(offset).service_fqn

        request_type = (
            infer_request_type(body)
            or extract_request_body_type(signature)
            or (extract_request_body_type(constructor_params) if constructor_params else None)
        )
        return Endpoint(
            http_method=http_method,
            path=resolved.path,
            service_fqn=service_fqn,
            function_name=method_name,
            request_type=request_type,
            response_type=None,
            base_url=resolved.base_url or base_url,
        )


__all__ = [
    "CLASS_HEADER",
    "ClassHeader",
    "JAVA_BUILDER_METHOD",
    "KOTLIN_BUILDER_METHOD",
    "WrapperMethodStrategy",
    "class_headers",
]
