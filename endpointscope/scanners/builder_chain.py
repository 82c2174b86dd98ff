"""Builder-chain strategy: OkHttp ``Request.Builder`` usage in source text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from ..logging import get_logger
from ..models import Endpoint
from .base import ScanContext, SourceUnit
from .core import EndpointCollector
from .syntax import MethodSyntax, SyntaxReader
from .urls import (
    BODY_METHODS,
    extract_http_method,
    extract_string_literal,
    infer_request_type,
    infer_url_from_parameters,
    normalize_declared_type,
    resolve_url_expression,
)

_logger = get_logger("scanners.builder_chain")

BUILDER_TYPE = "Request.Builder"

REQUEST_BUILDER_BLOCK = re.compile(r"Request\s*\.\s*Builder\s*\(\s*\)([\s\S]{0,2500}?)\.build\s*\(\s*\)")
URL_CALL = re.compile(r"\.url\s*\(\s*([^)]+?)\s*\)")

_BUILDER_VARIABLE = re.compile(
    r"(?:val|var|Request\.Builder)\s+([A-Za-z_]\w*)\s*(?::\s*Request\.Builder\s*)?=\s*(?:new\s+)?Request\s*\.\s*Builder\s*\("
)
_RECEIVER_ROOT = re.compile(r"\s*(?:this\s*\.\s*)?([A-Za-z_]\w*)")
_VERBS = {"get", "post", "put", "patch", "delete", "head"}


def looks_relevant(text: str) -> bool:
    """Cheap pre-filter for files that may build OkHttp requests."""
    return "okhttp3" in text or BUILDER_TYPE in text or "newCall(" in text


@dataclass
class MethodSignals:
    http_method: Optional[str] = None
    url_expression: Optional[str] = None
    request_type: Optional[str] = None
    saw_builder_call: bool = False


def _body_type(argument: str) -> Optional[str]:
    text = argument.strip()
    if not text or text.lower() == "null":
        return None
    return infer_request_type(text) or "RequestBody"


def _builder_names(method: MethodSyntax) -> Set[str]:
    names = {name for name, type_text in method.parameters if BUILDER_TYPE in type_text}
    names.update(match.group(1) for match in _BUILDER_VARIABLE.finditer(method.source))
    return names


def _touches_builder(receiver: str, builder_names: Set[str]) -> bool:
    if BUILDER_TYPE in receiver.replace(" ", ""):
        return True
    root = _RECEIVER_ROOT.match(receiver)
    return bool(root and root.group(1) in builder_names)


def collect_signals(method: MethodSyntax) -> MethodSignals:
    """Verb, URL and body signals from calls made on a request builder."""
    signals = MethodSignals()
    builder_names = _builder_names(method)
    for call in method.calls:
        if not _touches_builder(call.receiver, builder_names):
            continue
        name = call.method_name.lower()
        if name not in _VERBS and name not in {"url", "method"}:
            continue
        signals.saw_builder_call = True
        if name == "url":
            if call.arguments and call.arguments[0].strip() and signals.url_expression is None:
                signals.url_expression = call.arguments[0].strip()
        elif name in _VERBS:
            signals.http_method = name.upper()
            if signals.http_method in BODY_METHODS and call.arguments:
                body = _body_type(call.arguments[0])
                if body is not None:
                    signals.request_type = body
        else:
            explicit = extract_string_literal(call.arguments[0]) if call.arguments else None
            if explicit:
                signals.http_method = explicit.upper()
            if len(call.arguments) > 1:
                body = _body_type(call.arguments[1])
                if body is not None:
                    signals.request_type = body
    return signals


def owner_fqn(unit: SourceUnit, owner: Iterable[str]) -> str:
    names = list(owner)
    if not names:
        names = [unit.index.file_base_name]
    return unit.index.qualify(".".join(names))


class BuilderChainStrategy:
    """Declarative pass over method syntax (when available) plus the regex block pass."""

    name = "builder_chain"

    def __init__(self, syntax: Optional[SyntaxReader] = None) -> None:
        self._syntax = syntax

    def scan(self, context: ScanContext) -> Iterable[Endpoint]:
        collector = EndpointCollector()
        reader = self._syntax
        if reader is None and context.use_syntax_tree:
            reader = SyntaxReader()
        for unit in context.units():
            if not looks_relevant(unit.text):
                continue
            if reader is not None and reader.enabled:
                try:
                    methods = reader.methods(unit.path, unit.text)
                except Exception as exc:  # pragma: no cover - parser failures are per file
                    _logger.debug("Syntax pass failed for %s: %s", unit.path, exc)
                    methods = []
                collector.extend(self.declarative_endpoints(unit, methods, context.base_url))
            collector.extend(self.block_endpoints(unit, context.base_url))
        results = collector.results()
        _logger.debug("Builder-chain strategy found %d endpoints", len(results))
        return results

    def declarative_endpoints(
        self,
        unit: SourceUnit,
        methods: Iterable[MethodSyntax],
        base_url: Optional[str],
    ) -> List[Endpoint]:
        endpoints: List[Endpoint] = []
        for method in methods:
            signals = collect_signals(method)
            http_method = signals.http_method or extract_http_method(method.source)
            if http_method is None:
                continue
            if not signals.saw_builder_call and BUILDER_TYPE not in method.source:
                continue
            if signals.url_expression is not None:
                resolved = resolve_url_expression(signals.url_expression, unit.constants, base_url)
            else:
                resolved = infer_url_from_parameters(method.signature_text(), method.source, base_url)
                if resolved is None:
                    continue
            endpoints.append(
                Endpoint(
                    http_method=http_method,
                    path=resolved.path,
                    service_fqn=owner_fqn(unit, method.owner),
                    function_name=method.name,
                    request_type=signals.request_type or infer_request_type(method.source),
                    response_type=normalize_declared_type(method.return_type),
                    base_url=resolved.base_url or base_url,
                )
            )
        return endpoints

    def block_endpoints(self, unit: SourceUnit, base_url: Optional[str]) -> List[Endpoint]:
        endpoints: List[Endpoint] = []
        for match in REQUEST_BUILDER_BLOCK.finditer(unit.text):
            block = match.group(0)
            url_match = URL_CALL.search(block)
            if url_match is None:
                continue
            http_method = extract_http_method(block)
            if http_method is None:
                continue
            resolved = resolve_url_expression(url_match.group(1).strip(), unit.constants, base_url)
            owner = unit.index.context_for_offset(match.start())
            endpoints.append(
                Endpoint(
                    http_method=http_method,
                    path=resolved.path,
                    service_fqn=owner.service_fqn,
                    function_name=owner.function_name,
                    request_type=infer_request_type(block),
                    response_type=normalize_declared_type(owner.declared_response_type),
                    base_url=resolved.base_url or base_url,
                )
            )
        return endpoints


__all__ = [
    "BUILDER_TYPE",
    "BuilderChainStrategy",
    "MethodSignals",
    "REQUEST_BUILDER_BLOCK",
    "URL_CALL",
    "collect_signals",
    "looks_relevant",
    "owner_fqn",
]
