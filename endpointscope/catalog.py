"""Filtering, sorting and recency tracking over scanned endpoints."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import AuthRequirement, Endpoint, EndpointKey, EndpointListMetadata
from .scanners.core import sort_key


class SortMode(str, Enum):
    SERVICE = "service"
    PATH = "path"
    METHOD = "method"
    RECENT = "recent"


class AuthFilter(str, Enum):
    ANY = "any"
    REQUIRED = "required"
    OPTIONAL = "optional"
    NONE = "none"


class RecentSelections:
    """Remembers when each endpoint was last selected, by a monotonic sequence."""

    def __init__(self) -> None:
        self._sequence = 0
        self._seen: Dict[EndpointKey, int] = {}
        self._lock = threading.Lock()

    def touch(self, endpoint: Endpoint) -> int:
        with self._lock:
            self._sequence += 1
            self._seen = {**self._seen, EndpointKey.from_endpoint(endpoint): self._sequence}
            return self._sequence

    def rank(self, endpoint: Endpoint) -> int:
        """Selection sequence of ``endpoint``; ``0`` when never selected."""
        return self._seen.get(EndpointKey.from_endpoint(endpoint), 0)

    def __len__(self) -> int:
        return len(self._seen)


def matches_query(endpoint: Endpoint, query: str) -> bool:
    """Case-insensitive substring search over path, service, function and response type."""
    needle = query.strip().lower()
    if not needle:
        return True
    haystack = (
        endpoint.path,
        endpoint.service_fqn,
        endpoint.function_name,
        endpoint.response_type or "",
    )
    return any(needle in value.lower() for value in haystack)


def matches_auth(metadata: Optional[EndpointListMetadata], wanted: AuthFilter) -> bool:
    if wanted is AuthFilter.ANY:
        return True
    if metadata is None or metadata.auth_requirement is None:
        return False
    return metadata.auth_requirement is AuthRequirement(wanted.value)


@dataclass(frozen=True)
class CatalogQuery:
    text: str = ""
    method: Optional[str] = None
    auth: AuthFilter = AuthFilter.ANY
    sort: SortMode = SortMode.SERVICE


def filter_endpoints(
    endpoints: Iterable[Endpoint],
    query: CatalogQuery,
    metadata: Mapping[EndpointKey, EndpointListMetadata] | None = None,
) -> List[Endpoint]:
    method = query.method.strip().upper() if query.method else None
    results: List[Endpoint] = []
    for endpoint in endpoints:
        if method and endpoint.http_method != method:
            continue
        if not matches_query(endpoint, query.text):
            continue
        if query.auth is not AuthFilter.ANY:
            meta = (metadata or {}).get(EndpointKey.from_endpoint(endpoint))
            if not matches_auth(meta, query.auth):
                continue
        results.append(endpoint)
    return results


def sort_endpoints(
    endpoints: Sequence[Endpoint],
    mode: SortMode,
    recent: RecentSelections | None = None,
) -> List[Endpoint]:
    keys: Dict[SortMode, Callable[[Endpoint], Tuple]] = {
        SortMode.SERVICE: sort_key,
        SortMode.PATH: lambda ep: (ep.path, ep.http_method, ep.service_fqn),
        SortMode.METHOD: lambda ep: (ep.http_method, ep.path, ep.service_fqn),
    }
    if mode is SortMode.RECENT:
        tracker = recent or RecentSelections()
        return sorted(
            endpoints,
            key=lambda ep: (-tracker.rank(ep), *sort_key(ep)),
        )
    return sorted(endpoints, key=keys[mode])


def search(
    endpoints: Iterable[Endpoint],
    query: CatalogQuery,
    *,
    metadata: Mapping[EndpointKey, EndpointListMetadata] | None = None,
    recent: RecentSelections | None = None,
) -> List[Endpoint]:
    """Filter then sort ``endpoints`` according to ``query``."""
    return sort_endpoints(filter_endpoints(endpoints, query, metadata), query.sort, recent)


def group_by_service(endpoints: Iterable[Endpoint]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for endpoint in endpoints:
        counts[endpoint.service_fqn] = counts.get(endpoint.service_fqn, 0) + 1
    return dict(sorted(counts.items()))


def metadata_by_key(
    endpoints: Sequence[Endpoint], metadata: Sequence[EndpointListMetadata]
) -> Dict[EndpointKey, EndpointListMetadata]:
    return {EndpointKey.from_endpoint(ep): meta for ep, meta in zip(endpoints, metadata)}


@dataclass(frozen=True)
class CatalogView:
    """One listing as shown to a user: the matching endpoints, their badges and per-service counts."""

    endpoints: List[Endpoint]
    metadata: Dict[EndpointKey, EndpointListMetadata]
    groups: Dict[str, int]

    def metadata_for(self, endpoint: Endpoint) -> Optional[EndpointListMetadata]:
        return self.metadata.get(EndpointKey.from_endpoint(endpoint))


def build_view(
    endpoints: Iterable[Endpoint],
    query: CatalogQuery,
    *,
    list_metadata: Callable[[Sequence[Endpoint]], Sequence[EndpointListMetadata]] | None = None,
    include_metadata: bool = False,
    recent: RecentSelections | None = None,
) -> CatalogView:
    """Filter, sort and group ``endpoints``.

    Metadata is only computed when the auth filter or the caller needs it,
    and only for endpoints that survived the text and method filters.
    """
    candidates = filter_endpoints(endpoints, replace(query, auth=AuthFilter.ANY))
    metadata: Dict[EndpointKey, EndpointListMetadata] = {}
    if list_metadata is not None and (include_metadata or query.auth is not AuthFilter.ANY):
        metadata = metadata_by_key(candidates, list_metadata(candidates))
    listed = search(candidates, query, metadata=metadata, recent=recent)
    if not include_metadata:
        metadata = {}
    return CatalogView(endpoints=listed, metadata=metadata, groups=group_by_service(listed))


__all__ = [
    "AuthFilter",
    "CatalogQuery",
    "CatalogView",
    "RecentSelections",
    "SortMode",
    "build_view",
    "filter_endpoints",
    "group_by_service",
    "matches_auth",
    "matches_query",
    "metadata_by_key",
    "search",
    "sort_endpoints",
]
