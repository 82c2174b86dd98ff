"""Shared endpoint normalization and merge helpers."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..logging import get_logger, log_duration
from ..models import Endpoint
from .base import ScanContext, ScanStrategy

_logger = get_logger("scanners")

IdentityKey = Tuple[str, str, str, str]


def is_absolute_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def normalize_path(path: Optional[str]) -> str:
    """Return ``path`` with exactly one leading slash; blank input becomes ``/``.

    Absolute URLs are returned unchanged.
    """
    if path is None:
        return "/"
    result = path.strip()
    if not result:
        return "/"
    if is_absolute_url(result):
        return result
    return "/" + result.lstrip("/")


def method_upper(value: Optional[str]) -> str:
    """Normalize HTTP verbs to uppercase."""
    return (value or "").strip().upper()


def identity_key(endpoint: Endpoint) -> IdentityKey:
    return (
        method_upper(endpoint.http_method),
        endpoint.service_fqn,
        endpoint.function_name,
        endpoint.path,
    )


def sort_key(endpoint: Endpoint) -> Tuple[str, str, str, str]:
    return (endpoint.service_fqn, endpoint.path, endpoint.function_name, endpoint.http_method)


def normalize_endpoint(endpoint: Endpoint) -> Endpoint:
    method = method_upper(endpoint.http_method)
    path = normalize_path(endpoint.path)
    if method == endpoint.http_method and path == endpoint.path:
        return endpoint
    return Endpoint(
        http_method=method,
        path=path,
        service_fqn=endpoint.service_fqn,
        function_name=endpoint.function_name,
        request_type=endpoint.request_type,
        response_type=endpoint.response_type,
        base_url=endpoint.base_url,
    )


class EndpointCollector:
    """Accumulates endpoints, keeping the first one seen for each identity key."""

    def __init__(self) -> None:
        self._seen: Dict[IdentityKey, Endpoint] = {}

    def add(self, endpoint: Endpoint) -> bool:
        normalized = normalize_endpoint(endpoint)
        key = identity_key(normalized)
        if key in self._seen:
            return False
        self._seen[key] = normalized
        return True

    def extend(self, endpoints: Iterable[Endpoint]) -> int:
        return sum(1 for endpoint in endpoints if self.add(endpoint))

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, endpoint: Endpoint) -> bool:
        return identity_key(normalize_endpoint(endpoint)) in self._seen

    def results(self) -> List[Endpoint]:
        return sorted(self._seen.values(), key=sort_key)


class StrategyRegistry:
    """Runs scan strategies in order and merges their output."""

    def __init__(self, strategies: Sequence[ScanStrategy]) -> None:
        self._strategies = list(strategies)

    @property
    def names(self) -> List[str]:
        return [strategy.name for strategy in self._strategies]

    def run(self, context: ScanContext) -> List[Endpoint]:
        collector = EndpointCollector()
        for strategy in self._strategies:
            with log_duration(_logger, f"Strategy {strategy.name}"):
                added = collector.extend(strategy.scan(context))
            _logger.debug("Strategy %s contributed %d endpoints", strategy.name, added)
        return collector.results()


__all__ = [
    "EndpointCollector",
    "IdentityKey",
    "StrategyRegistry",
    "identity_key",
    "is_absolute_url",
    "method_upper",
    "normalize_endpoint",
    "normalize_path",
    "sort_key",
]
