"""Override document loading for endpointscope (endpointscope.yaml).

The override file is read with PyYAML: top-level scalars such as ``baseUrl``
and one level of mappings such as ``servicePaths``. When the text is not
valid YAML, a line-oriented reader takes over so that a single bad line only
costs that line:

* ``key: value`` at column zero sets a scalar.
* ``key:`` with an empty value at column zero opens a section; indented
  ``subkey: value`` lines below it populate that section's map.
* ``key: {a: b, c: d}`` is accepted as a one-line section.
* ``#`` starts a comment at the start of a line or after whitespace, never
  inside a quoted string, so ``service#function`` keys need no quoting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import yaml

from .logging import get_logger

CONFIG_FILE = "endpointscope.yaml"
ALT_CONFIG_FILE = ".endpointscope.yaml"

_logger = get_logger("config")


class ConfigError(RuntimeError):
    """Raised when a strict load of the override file cannot be read or parsed."""


@dataclass(frozen=True)
class ParsedDocument:
    """Raw scalars and sections keyed by their canonical names."""

    scalars: Dict[str, str] = field(default_factory=dict)
    sections: Dict[str, Dict[str, str]] = field(default_factory=dict)


@dataclass(frozen=True)
class EndpointConfig:
    """Parsed override document.

    Map sections are keyed either by a bare service FQN or by ``service#function``.
    """

    global_base_url: Optional[str] = None
    environments: Dict[str, str] = field(default_factory=dict)
    service_base_urls: Dict[str, str] = field(default_factory=dict)
    service_paths: Dict[str, str] = field(default_factory=dict)
    service_request_types: Dict[str, str] = field(default_factory=dict)
    service_response_types: Dict[str, str] = field(default_factory=dict)

    def resolve_base_url(self, reference: Optional[str]) -> Optional[str]:
        """Resolve an absolute URL or an environment alias into a base URL."""
        return resolve_base_url_reference(reference, self.environments)


@dataclass
class EngineSettings:
    """Runtime knobs for the discovery engine."""

    strategies: List[str] = field(
        default_factory=lambda: ["annotation", "builder_chain", "wrapper"]
    )
    detail_cache_size: int = 256
    max_file_bytes: int = 2 * 1024 * 1024
    use_syntax_tree: Optional[bool] = None


# ---------------------------------------------------------------------------
# File discovery
# ---------------------------------------------------------------------------


def resolve_config_path(root: Path) -> Optional[Path]:
    """Return the first override file found in ``root``, preferring the primary name."""
    primary = root / CONFIG_FILE
    if primary.is_file():
        return primary
    alternate = root / ALT_CONFIG_FILE
    if alternate.is_file():
        return alternate
    return None


def default_config_path(root: Path) -> Path:
    """Return where a new override file should be created."""
    return root / CONFIG_FILE


def config_mtime_ns(path: Optional[Path]) -> int:
    """Modification stamp of ``path`` or ``-1`` when it is missing or unreadable."""
    if path is None:
        return -1
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return -1


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def load_endpoint_config(path: Path, *, strict: bool = False) -> Optional[EndpointConfig]:
    """Read and parse an override file, returning ``None`` when it cannot be read."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        if strict:
            raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
        _logger.debug("Unable to read override file %s: %s", path, exc)
        return None
    return parse_endpoint_config(text, strict=strict)


def parse_endpoint_config(text: str, *, strict: bool = False) -> EndpointConfig:
    """Parse override document text into an :class:`EndpointConfig`."""
    document = parse_document(text, strict=strict)

    environments: Dict[str, str] = {}
    for name, value in _section(document, "environments").items():
        normalized = normalize_base_url(value)
        if normalized is None or not name.strip():
            continue
        environments[name.strip()] = normalized

    default_env = _scalar(document, "defaultEnv", "default_env")
    configured_base = _scalar(document, "baseUrl", "base_url")

    return EndpointConfig(
        global_base_url=resolve_base_url_reference(configured_base or default_env, environments),
        environments=environments,
        service_base_urls=_section(document, "serviceBaseUrls", "service_base_urls"),
        service_paths=_section(document, "servicePaths", "service_paths"),
        service_request_types=_section(document, "serviceRequestTypes", "service_request_types"),
        service_response_types=_section(
            document, "serviceResponseTypes", "service_response_types"
        ),
    )


def parse_document(text: str, *, strict: bool = False) -> ParsedDocument:
    """Split the document into top-level scalars and one-level sections.

    The text is loaded with ``yaml.safe_load``. Files that are not valid YAML
    raise :class:`ConfigError` when ``strict`` and are otherwise read line by
    line, so a single stray line does not discard the rest of the overrides.
    """
    if not text.strip():
        return ParsedDocument()
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        if strict:
            raise ConfigError(f"Failed to parse override file: {exc}") from exc
        _logger.debug("Override file is not valid YAML, reading it line by line: %s", exc)
        return parse_lines(text)
    if loaded is None:
        return ParsedDocument()
    if not isinstance(loaded, dict):
        if strict:
            raise ConfigError("Override file must contain a mapping at the top level")
        _logger.debug("Override file holds a %s, reading it line by line", type(loaded).__name__)
        return parse_lines(text)
    return _document_from_mapping(loaded)


def _document_from_mapping(loaded: Dict[Any, Any]) -> ParsedDocument:
    scalars: Dict[str, str] = {}
    sections: Dict[str, Dict[str, str]] = {}
    for key, value in loaded.items():
        canonical = canonical_key(str(key))
        if isinstance(value, dict):
            section = sections.setdefault(canonical, {})
            for entry_key, entry_value in value.items():
                text = _yaml_text(entry_value)
                if text:
                    section[str(entry_key).strip()] = text
        elif value is None:
            sections.setdefault(canonical, {})
        elif isinstance(value, list):
            _logger.debug("Ignoring list value for override key %s", key)
        else:
            scalars[canonical] = _yaml_text(value)
    return ParsedDocument(scalars=scalars, sections=sections)


def _yaml_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def parse_lines(text: str) -> ParsedDocument:
    """Line-oriented reader for override files that YAML rejects.

    Understands ``key: value`` scalars, ``key:`` sections with indented
    entries and inline ``{k: v}`` mappings; anything else is skipped.
    """
    scalars: Dict[str, str] = {}
    sections: Dict[str, Dict[str, str]] = {}
    active_section: Optional[str] = None

    for number, raw_line in enumerate(text.splitlines(), start=1):
        content = strip_inline_comment(raw_line)
        if not content.strip():
            continue

        indent = len(content) - len(content.lstrip())
        stripped = content.strip()
        delimiter = stripped.find(":")
        if delimiter <= 0:
            _logger.debug("Skipping malformed override line %d: %r", number, raw_line)
            continue

        key = unquote(stripped[:delimiter])
        value = stripped[delimiter + 1 :].strip()

        if indent == 0:
            canonical = canonical_key(key)
            if not value:
                active_section = canonical
                sections.setdefault(canonical, {})
            elif value.startswith("{") and value.endswith("}"):
                active_section = None
                sections.setdefault(canonical, {}).update(_parse_inline_mapping(value))
            else:
                scalars[canonical] = unquote(value)
                active_section = None
            continue

        if active_section is None or not value:
            continue
        sections[active_section][key] = unquote(value)

    return ParsedDocument(scalars=scalars, sections=sections)


def _parse_inline_mapping(value: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for part in _split_outside_quotes(value[1:-1], ","):
        delimiter = _find_outside_quotes(part, ":")
        if delimiter <= 0:
            continue
        key = unquote(part[:delimiter])
        item = unquote(part[delimiter + 1 :])
        if key and item:
            result[key] = item
    return result


def _split_outside_quotes(text: str, separator: str) -> List[str]:
    parts: List[str] = []
    current: List[str] = []
    in_quote: Optional[str] = None
    for char in text:
        if char in {'"', "'"}:
            if in_quote == char:
                in_quote = None
            elif in_quote is None:
                in_quote = char
        if char == separator and in_quote is None:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


def _find_outside_quotes(text: str, target: str) -> int:
    in_quote: Optional[str] = None
    for index, char in enumerate(text):
        if char in {'"', "'"}:
            if in_quote == char:
                in_quote = None
            elif in_quote is None:
                in_quote = char
            continue
        if char == target and in_quote is None:
            return index
    return -1


def strip_inline_comment(line: str) -> str:
    """Drop a trailing ``#`` comment while keeping ``#`` inside quoted strings.

    As in YAML, a ``#`` only opens a comment at the start of the line or after
    whitespace, so unquoted ``service#function`` keys survive.
    """
    quote: Optional[str] = None
    escaped = False
    for index, char in enumerate(line):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if quote is not None:
            if char == quote:
                quote = None
            continue
        if char in {'"', "'"}:
            quote = char
            continue
        if char == "#" and (index == 0 or line[index - 1].isspace()):
            return line[:index]
    return line


def unquote(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        value = value[1:-1]
    return value.strip()


def canonical_key(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


def normalize_base_url(raw: Optional[str]) -> Optional[str]:
    """Strip quotes and trailing slashes; reject anything without an http(s) scheme."""
    if raw is None:
        return None
    value = unquote(raw)
    if not value:
        return None
    if not value.startswith(("http://", "https://")):
        return None
    return value.rstrip("/")


def resolve_base_url_reference(
    reference: Optional[str], environments: Mapping[str, str]
) -> Optional[str]:
    """Resolve an absolute URL directly, otherwise look it up as an environment name."""
    if reference is None or not reference.strip():
        return None
    direct = normalize_base_url(reference)
    if direct is not None:
        return direct
    wanted = reference.strip().lower()
    for name, url in environments.items():
        if name.lower() == wanted:
            return url
    return None


def split_absolute_url(raw: str) -> Optional[Tuple[str, str]]:
    """Split ``https://host/a?b`` into ``("https://host", "/a?b")``."""
    value = raw.strip()
    if not value.startswith(("http://", "https://")):
        return None
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    if not path.startswith("/"):
        path = "/" + path
    return f"{parts.scheme}://{parts.netloc}".rstrip("/"), path


def read_base_url_scalar(path: Path) -> Optional[str]:
    """Return the normalized ``baseUrl``/``base_url`` scalar from the override file."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        _logger.debug("Unable to read %s: %s", path, exc)
        return None
    return normalize_base_url(_scalar(parse_document(text), "baseUrl", "base_url"))


def _section(document: ParsedDocument, *names: str) -> Dict[str, str]:
    for name in names:
        found = document.sections.get(canonical_key(name))
        if found:
            return dict(found)
    return {}


def _scalar(document: ParsedDocument, *names: str) -> Optional[str]:
    for name in names:
        value = document.scalars.get(canonical_key(name))
        if value and value.strip():
            return value
    return None


def template_content() -> str:
    """Default content for a newly created override file."""
    return _TEMPLATE


_TEMPLATE = """\
# endpointscope manual overrides
#
# Keep this minimal (only baseUrl) or add targeted overrides.

baseUrl: https://api.example.com
# defaultEnv: dev

# environments:
#   dev: https://dev.api.example.com
#   stage: https://stage.api.example.com
#   prod: https://api.example.com

# serviceBaseUrls:
#   com.example.api.UserApi: prod
#   com.example.api.AuthApi#login: https://auth.api.example.com

# servicePaths:
#   com.example.api.AuthApi#login: /v1/login

# serviceRequestTypes:
#   com.example.api.AuthApi#login: LoginRequest

# serviceResponseTypes:
#   com.example.api.AuthApi#login: TokenResponse
"""


__all__: Sequence[str] = [
    "ALT_CONFIG_FILE",
    "CONFIG_FILE",
    "ConfigError",
    "EndpointConfig",
    "EngineSettings",
    "ParsedDocument",
    "config_mtime_ns",
    "default_config_path",
    "load_endpoint_config",
    "normalize_base_url",
    "parse_document",
    "parse_endpoint_config",
    "parse_lines",
    "read_base_url_scalar",
    "resolve_base_url_reference",
    "resolve_config_path",
    "split_absolute_url",
    "strip_inline_comment",
    "template_content",
]
