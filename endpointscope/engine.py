"""Engine entry points: scan, base URL resolution and per-endpoint details."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .config import EngineSettings
from .details import DetailResolver
from .logging import get_logger, log_duration
from .models import Endpoint, EndpointDocDetails, EndpointListMetadata, ResolvedBaseUrl
from .project import Project
from .resolvers import BaseUrlResolver, OverrideResolver
from .scanners import TREE_SITTER_AVAILABLE, ScanContext, StrategyRegistry, build_strategies
from .scanners.core import sort_key


class EndpointEngine:
    """Discovers endpoints and resolves their details for one or more projects.

    The engine itself is stateless between calls; every cache lives on the
    :class:`~endpointscope.project.Project` it is handed.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        *,
        base_urls: BaseUrlResolver | None = None,
        overrides: OverrideResolver | None = None,
        details: DetailResolver | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.base_urls = base_urls or BaseUrlResolver()
        self.overrides = overrides or OverrideResolver()
        self.details = details or DetailResolver(self.base_urls, self.overrides)
        self.registry = StrategyRegistry(build_strategies(self.settings.strategies))
        self.logger = get_logger("engine")

    @property
    def use_syntax_tree(self) -> bool:
        if self.settings.use_syntax_tree is None:
            return TREE_SITTER_AVAILABLE
        return self.settings.use_syntax_tree and TREE_SITTER_AVAILABLE

    def scan(self, project: Project) -> List[Endpoint]:
        """Run every enabled strategy, merge, apply overrides and sort."""
        project.sync()
        base_url = self.base_urls.resolve(project)
        context = ScanContext(project=project, base_url=base_url, use_syntax_tree=self.use_syntax_tree)
        with log_duration(self.logger, f"Scan of {project.identity}"):
            endpoints = self.registry.run(context)
        endpoints = self.overrides.apply(project, endpoints)
        endpoints = sorted(endpoints, key=sort_key)
        self.logger.debug(
            "Scan of %s produced %d endpoints (strategies: %s)",
            project.identity,
            len(endpoints),
            ", ".join(self.registry.names),
        )
        return endpoints

    def resolve_base_url(self, project: Project) -> Optional[str]:
        project.sync()
        return self.base_urls.resolve(project)

    def resolve_base_url_with_source(self, project: Project) -> ResolvedBaseUrl:
        project.sync()
        return self.base_urls.resolve_with_source(project)

    def resolve_details(self, project: Project, endpoint: Endpoint) -> EndpointDocDetails:
        project.sync()
        return self.details.resolve(project, endpoint)

    def find_endpoint(
        self,
        endpoints: Iterable[Endpoint],
        *,
        service: str,
        function: str,
        method: str | None = None,
        path: str | None = None,
    ) -> Endpoint:
        """Select a scanned endpoint by owner and name; raise ``LookupError`` when absent."""
        for endpoint in endpoints:
            if endpoint.service_fqn != service or endpoint.function_name != function:
                continue
            if method is not None and endpoint.http_method != method.strip().upper():
                continue
            if path is not None and endpoint.path != path:
                continue
            return endpoint
        raise LookupError(f"No endpoint {service}#{function} found")

    def list_metadata(
        self, project: Project, endpoints: Sequence[Endpoint]
    ) -> List[EndpointListMetadata]:
        """Lightweight per-endpoint facts for list views, one per input endpoint."""
        project.sync()
        return [self._metadata(project, endpoint) for endpoint in endpoints]

    def _metadata(self, project: Project, endpoint: Endpoint) -> EndpointListMetadata:
        try:
            details = self.details.resolve(project, endpoint)
        except Exception as exc:  # noqa: BLE001
            self.logger.debug(
                "Detail resolution failed for %s#%s: %s", endpoint.service_fqn, endpoint.function_name, exc
            )
            return EndpointListMetadata(
                auth_requirement=None,
                query_count=0,
                has_multipart=False,
                has_form_fields=False,
                base_url_resolved=bool(endpoint.base_url),
                partial=True,
            )
        return EndpointListMetadata(
            auth_requirement=details.auth_requirement,
            query_count=len(details.query_params),
            has_multipart=bool(details.part_params) or details.has_part_map,
            has_form_fields=bool(details.field_params) or details.has_field_map,
            base_url_resolved=bool(endpoint.base_url),
            partial=False,
        )


@dataclass(frozen=True)
class RefreshToken:
    """Identifies one scan request; only the newest token may commit."""

    sequence: int


class EndpointService:
    """Holds the last committed scan of one project.

    Scans may overlap. Each begins with :meth:`begin_refresh`, and a result is
    published only if no newer refresh started in the meantime.
    """

    def __init__(self, engine: EndpointEngine | None = None) -> None:
        self.engine = engine or EndpointEngine()
        self._lock = threading.Lock()
        self._sequence = 0
        self._endpoints: List[Endpoint] = []
        self._status: Optional[str] = None
        self.logger = get_logger("engine.service")

    @property
    def endpoints(self) -> List[Endpoint]:
        return list(self._endpoints)

    @property
    def last_refresh_status(self) -> Optional[str]:
        return self._status

    def begin_refresh(self) -> RefreshToken:
        with self._lock:
            self._sequence += 1
            return RefreshToken(self._sequence)

    def is_current(self, token: RefreshToken) -> bool:
        return token.sequence == self._sequence

    def commit(self, token: RefreshToken, endpoints: Sequence[Endpoint]) -> bool:
        with self._lock:
            if token.sequence != self._sequence:
                self.logger.debug("Discarding superseded scan %d (latest %d)", token.sequence, self._sequence)
                return False
            self._endpoints = list(endpoints)
            self._status = f"Found {len(self._endpoints)} endpoints"
            return True

    def refresh(self, project: Project) -> bool:
        """Scan ``project`` and publish the result unless a newer refresh superseded it."""
        token = self.begin_refresh()
        endpoints = self.engine.scan(project)
        return self.commit(token, endpoints)


__all__ = ["EndpointEngine", "EndpointService", "RefreshToken"]
