"""Project-wide base URL resolution.

Resolution order, first hit wins:

1. ``baseUrl``/``base_url`` scalar in ``endpointscope.yaml`` at the project root.
2. ``.baseUrl(...)`` builder calls in Kotlin/Java sources. Direct string literals
   are preferred; otherwise an identifier argument is resolved against simple
   string constants by exact name, then by its last dotted segment.
3. ``None``.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config import CONFIG_FILE, config_mtime_ns, normalize_base_url, read_base_url_scalar
from ..logging import get_logger
from ..models import BaseUrlSource, ResolvedBaseUrl
from ..project import Project
from ..source_index import collect_string_constants

_logger = get_logger("resolvers.base_url")

BASE_URL_CALL = re.compile(r"\.baseUrl\s*\(\s*([^)]+?)\s*\)")
_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")


def primary_config_path(project: Project) -> Optional[Path]:
    if project.root is None:
        return None
    path = project.root / CONFIG_FILE
    return path if path.is_file() else None


class BaseUrlResolver:
    """Resolves and caches the best-effort base URL of a project."""

    def resolve(self, project: Project) -> Optional[str]:
        return self.resolve_with_source(project).url

    def resolve_with_source(self, project: Project) -> ResolvedBaseUrl:
        config_path = primary_config_path(project)
        version: Tuple[int, int] = (project.version, config_mtime_ns(config_path))
        cached = project.caches.base_url.get(project.identity, version=version)
        if cached is not None:
            _logger.debug("Base URL cache hit for %s", project.identity)
            return cached.value

        resolved = self._compute(project, config_path)
        project.caches.base_url.store(project.identity, version=version, value=resolved)
        _logger.debug("Resolved base URL for %s: %s (%s)", project.identity, resolved.url, resolved.source.value)
        return resolved

    def _compute(self, project: Project, config_path: Optional[Path]) -> ResolvedBaseUrl:
        if config_path is not None:
            configured = read_base_url_scalar(config_path)
            if configured is not None:
                return ResolvedBaseUrl(url=configured, source=BaseUrlSource.CONFIG)
        inferred = infer_base_url_from_sources(project)
        if inferred is not None:
            return ResolvedBaseUrl(url=inferred, source=BaseUrlSource.INFERRED)
        return ResolvedBaseUrl.unresolved()


def infer_base_url_from_sources(project: Project) -> Optional[str]:
    constants: Dict[str, str] = {}
    arguments: List[str] = []
    files = project.files
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
        collect_string_constants(text, constants)
        arguments.extend(match.group(1).strip() for match in BASE_URL_CALL.finditer(text))
    return pick_base_url(arguments, constants)


def pick_base_url(arguments: List[str], constants: Dict[str, str]) -> Optional[str]:
    """Choose a base URL from collected ``baseUrl(...)`` arguments."""
    for argument in arguments:
        literal = normalize_base_url(argument)
        if literal is not None:
            return literal
    for argument in arguments:
        if not _IDENTIFIER.fullmatch(argument):
            continue
        for name in (argument, argument.rsplit(".", 1)[-1]):
            value = constants.get(name)
            if value is None:
                continue
            normalized = normalize_base_url(value)
            if normalized is not None:
                return normalized
    return None


__all__ = [
    "BASE_URL_CALL",
    "BaseUrlResolver",
    "infer_base_url_from_sources",
    "pick_base_url",
    "primary_config_path",
]
