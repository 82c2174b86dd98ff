"""URL-expression resolution shared by the heuristic strategies."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional

from ..config import split_absolute_url
from ..source_index import lookup_constant
from .core import is_absolute_url, normalize_path

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
URL_LIKE_NAMES = ("url", "uri", "path", "endpoint", "route")

_CONCAT_SPLIT = re.compile(r"\s*\+\s*")
_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_TEMPLATE_BLOCK = re.compile(r"\$\{([^}]+)\}")
_TEMPLATE_NAME = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")
_METHOD_OVERRIDE = re.compile(r"\.method\s*\(\s*\"([A-Za-z]+)\"\s*,\s*([^)]+)\)")
_VERB_CALL = re.compile(r"\.(get|post|put|patch|delete|head)\s*\(", re.IGNORECASE)
_WRAPPED_TYPE = re.compile(r"(?:retrofit2\.)?(?:Call|Response)<(.+)>")
_PARAM_DECL = re.compile(r"(?:val|var)?\s*([A-Za-z_][A-Za-z0-9_]*)\s*:\s*([^=,\n)]+)")
_JAVA_PARAM_DECL = re.compile(
    r"(?:final\s+)?([A-Za-z_][A-Za-z0-9_.<>?\[\]]*)\s+([A-Za-z_][A-Za-z0-9_]*)\s*(?:,|$)"
)


@dataclass(frozen=True)
class ResolvedUrl:
    path: str
    base_url: Optional[str]


def extract_string_literal(expression: str) -> Optional[str]:
    """Return the content of a double-quoted literal, or ``None``."""
    trimmed = expression.strip()
    if len(trimmed) < 2 or not (trimmed.startswith('"') and trimmed.endswith('"')):
        return None
    return trimmed[1:-1]


def token_to_placeholder(token: str) -> Optional[str]:
    clean = token.strip()
    if not clean or not _IDENTIFIER.fullmatch(clean):
        return None
    return "{" + clean.rsplit(".", 1)[-1] + "}"


def to_placeholders(value: str) -> str:
    """Turn ``${expr}`` and ``$name`` string-template markers into ``{name}``."""

    def _block(match: re.Match[str]) -> str:
        key = match.group(1).strip().rsplit(".", 1)[-1]
        return "{" + (key or "value") + "}"

    normalized = _TEMPLATE_BLOCK.sub(_block, value)
    return _TEMPLATE_NAME.sub(lambda match: "{" + match.group(1) + "}", normalized)


def normalize_url_candidate(raw_value: str, base_url_fallback: Optional[str]) -> ResolvedUrl:
    """Split an absolute URL into origin and path; relative values keep the fallback origin."""
    value = raw_value.strip()
    if not value:
        return ResolvedUrl(path="/", base_url=base_url_fallback)
    if is_absolute_url(value):
        split = split_absolute_url(value)
        if split is not None:
            origin, path = split
            return ResolvedUrl(path=normalize_path(path), base_url=origin)
    return ResolvedUrl(path=normalize_path(value), base_url=base_url_fallback)


def resolve_url_expression(
    expression: str,
    constants: Mapping[str, str],
    base_url_fallback: Optional[str],
) -> ResolvedUrl:
    """Resolve a ``.url(...)`` argument into a path and base URL."""
    raw = expression.strip()
    for suffix in (".toHttpUrl()", ".toHttpUrlOrNull()"):
        if raw.endswith(suffix):
            raw = raw[: -len(suffix)].strip()

    literal = extract_string_literal(raw)
    if literal is not None:
        return normalize_url_candidate(to_placeholders(literal), base_url_fallback)

    pieces = []
    for token in _CONCAT_SPLIT.split(raw):
        cleaned = token.strip()
        if cleaned.startswith("("):
            cleaned = cleaned[1:]
        if cleaned.endswith(")"):
            cleaned = cleaned[:-1]
        resolved = extract_string_literal(cleaned)
        if resolved is None:
            resolved = lookup_constant(cleaned, constants)
        if resolved is None:
            resolved = token_to_placeholder(cleaned)
        if resolved is not None:
            pieces.append(resolved)
    joined = "".join(pieces).strip()
    if joined:
        return normalize_url_candidate(to_placeholders(joined), base_url_fallback)
    return ResolvedUrl(path="/", base_url=base_url_fallback)


def extract_http_method(block: str) -> Optional[str]:
    """Verb named by a ``.method("VERB", ...)`` override, else the first verb call."""
    override = _METHOD_OVERRIDE.search(block)
    if override and override.group(1).strip():
        return override.group(1).strip().upper()
    verb = _VERB_CALL.search(block)
    if verb:
        return verb.group(1).upper()
    return None


def infer_request_type(block: str) -> Optional[str]:
    if "MultipartBody.Builder" in block:
        return "MultipartBody"
    if "FormBody.Builder" in block:
        return "FormBody"
    if "RequestBody.create" in block or "toRequestBody(" in block:
        return "RequestBody"
    if _VERB_CALL.search(block) and extract_http_method(block) in BODY_METHODS:
        return "RequestBody"
    return None


def normalize_declared_type(type_text: Optional[str]) -> Optional[str]:
    """Strip nullability and unwrap one ``Call<T>``/``Response<T>`` layer."""
    if type_text is None:
        return None
    raw = type_text.strip()
    if raw.endswith("?"):
        raw = raw[:-1].strip()
    if not raw:
        return None
    wrapped = _WRAPPED_TYPE.fullmatch(raw)
    if wrapped:
        return wrapped.group(1).strip()
    return raw


def _parameter_pairs(param_text: str):
    """Yield ``(name, type)`` pairs from Kotlin or Java parameter text."""
    kotlin = list(_PARAM_DECL.finditer(param_text))
    if kotlin:
        for match in kotlin:
            yield match.group(1).strip(), match.group(2).strip()
        return
    for part in param_text.split(","):
        java = _JAVA_PARAM_DECL.search(part.strip())
        if java:
            yield java.group(2).strip(), java.group(1).strip()


def find_url_like_parameter(param_text: str) -> Optional[str]:
    """First string-typed parameter whose name suggests a URL."""
    for name, type_text in _parameter_pairs(param_text):
        if not name or not type_text or "String" not in type_text:
            continue
        lowered = name.lower()
        if any(token in lowered for token in URL_LIKE_NAMES):
            return name
    return None


def extract_request_body_type(param_text: str) -> Optional[str]:
    for _, type_text in _parameter_pairs(param_text):
        cleaned = type_text.strip()
        if cleaned.endswith("?"):
            cleaned = cleaned[:-1]
        if "RequestBody" in cleaned:
            return cleaned.rsplit(".", 1)[-1]
        if "MultipartBody" in cleaned:
            return "MultipartBody"
        if "FormBody" in cleaned:
            return "FormBody"
    return None


def infer_url_from_parameters(
    signature_text: str,
    fallback_text: str,
    base_url_fallback: Optional[str],
) -> Optional[ResolvedUrl]:
    """Synthesize a ``{name}`` path from a URL-ish parameter of the method or its class."""
    name = find_url_like_parameter(signature_text) or find_url_like_parameter(fallback_text)
    if name is None:
        return None
    return ResolvedUrl(path=normalize_path("{" + name + "}"), base_url=base_url_fallback)


__all__ = [
    "BODY_METHODS",
    "ResolvedUrl",
    "URL_LIKE_NAMES",
    "extract_http_method",
    "extract_request_body_type",
    "extract_string_literal",
    "find_url_like_parameter",
    "infer_request_type",
    "infer_url_from_parameters",
    "normalize_declared_type",
    "normalize_url_candidate",
    "resolve_url_expression",
    "to_placeholders",
    "token_to_placeholder",
]
