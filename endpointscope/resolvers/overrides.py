"""Applies override-document settings to scanned endpoints."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Iterable, List, Optional

from ..config import (
    EndpointConfig,
    config_mtime_ns,
    load_endpoint_config,
    resolve_config_path,
    split_absolute_url,
)
from ..logging import get_logger
from ..models import Endpoint
from ..project import Project
from ..scanners.core import normalize_path

_logger = get_logger("resolvers.overrides")


def _first_present(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None and value.strip():
            return value.strip()
    return None


def apply_config(config: EndpointConfig, endpoints: Iterable[Endpoint]) -> List[Endpoint]:
    """Return new endpoints with overrides applied; inputs are not modified.

    Function-scoped keys (``service#function``) beat service-scoped keys. An
    absolute URL in ``servicePaths`` supplies both path and base URL, and that
    base URL beats every other source.
    """
    results: List[Endpoint] = []
    for endpoint in endpoints:
        endpoint_key = f"{endpoint.service_fqn}#{endpoint.function_name}"
        service_key = endpoint.service_fqn

        base_url_override = (
            config.resolve_base_url(config.service_base_urls.get(endpoint_key))
            or config.resolve_base_url(config.service_base_urls.get(service_key))
            or config.global_base_url
        )
        path_override = _first_present(
            config.service_paths.get(endpoint_key), config.service_paths.get(service_key)
        )
        request_type = _first_present(
            config.service_request_types.get(endpoint_key),
            config.service_request_types.get(service_key),
        )
        response_type = _first_present(
            config.service_response_types.get(endpoint_key),
            config.service_response_types.get(service_key),
        )

        absolute = split_absolute_url(path_override) if path_override else None
        if absolute is not None:
            path = absolute[1]
        elif path_override is not None:
            path = normalize_path(path_override)
        else:
            path = endpoint.path

        results.append(
            replace(
                endpoint,
                path=path,
                request_type=request_type or endpoint.request_type,
                response_type=response_type or endpoint.response_type,
                base_url=(absolute[0] if absolute else None) or base_url_override or endpoint.base_url,
            )
        )
    return results


class OverrideResolver:
    """Loads the project's override document (cached by path and mtime) and applies it."""

    def load(self, project: Project) -> Optional[EndpointConfig]:
        if project.root is None:
            return None
        path = resolve_config_path(project.root)
        if path is None:
            return None
        version = (str(path), config_mtime_ns(path))
        cached = project.caches.config.get(project.identity, version=version)
        if cached is not None:
            return cached.value
        config = load_endpoint_config(path)
        project.caches.config.store(project.identity, version=version, value=config)
        _logger.debug("Loaded override document %s", _display(path, project.root))
        return config

    def apply(self, project: Project, endpoints: List[Endpoint]) -> List[Endpoint]:
        if not endpoints:
            return endpoints
        config = self.load(project)
        if config is None:
            return endpoints
        return apply_config(config, endpoints)


def _display(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


__all__ = ["OverrideResolver", "apply_config"]
