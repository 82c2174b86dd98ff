"""FastAPI application exposing endpoint discovery as a local service."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

try:  # pragma: no cover - optional dependency
    from fastapi import Depends, FastAPI
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel

    _FASTAPI_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - service mode optional
    FastAPI = None  # type: ignore[assignment]
    Depends = None  # type: ignore[assignment]
    JSONResponse = None  # type: ignore[assignment]
    BaseModel = object  # type: ignore[assignment]
    _FASTAPI_AVAILABLE = False

from ..catalog import AuthFilter, CatalogQuery, CatalogView, RecentSelections, SortMode, build_view
from ..engine import EndpointEngine, EndpointService
from ..models import Endpoint
from ..project import Project, load_project


class ProjectRequest(BaseModel):
    path: str


class ScanRequest(BaseModel):
    path: str
    query: str = ""
    method: Optional[str] = None
    auth: AuthFilter = AuthFilter.ANY
    sort: SortMode = SortMode.SERVICE
    include_metadata: bool = False


class DetailsRequest(BaseModel):
    path: str
    service: str
    function: str
    method: Optional[str] = None
    endpoint_path: Optional[str] = None


class EndpointModel(BaseModel):
    http_method: str
    path: str
    service_fqn: str
    function_name: str
    request_type: Optional[str] = None
    response_type: Optional[str] = None
    base_url: Optional[str] = None


class ListedEndpoint(EndpointModel):
    metadata: Optional[Dict[str, Any]] = None


class ScanResponse(BaseModel):
    status: str
    matched: int
    endpoints: List[ListedEndpoint]
    groups: Dict[str, int]


class BaseUrlResponse(BaseModel):
    base_url: Optional[str] = None
    source: str


class DetailsResponse(BaseModel):
    endpoint: EndpointModel
    details: Dict[str, Any]


class HealthResponse(BaseModel):
    status: str


@dataclass
class ProjectSession:
    """Per-root state kept between requests: the last committed scan and recent selections."""

    project: Project
    service: EndpointService
    recent: RecentSelections = field(default_factory=RecentSelections)


class ScanSuperseded(RuntimeError):
    """A newer scan of the same project started before this one finished."""


class ProjectRegistry:
    """Keeps one :class:`Project` per root so its caches survive across requests."""

    def __init__(self, loader: Callable[[str], Project] = load_project) -> None:
        self._loader = loader
        self._projects: Dict[str, Project] = {}
        self._sessions: Dict[str, ProjectSession] = {}
        self._lock = threading.RLock()

    def get(self, path: str) -> Project:
        key = str(Path(path).expanduser().resolve())
        with self._lock:
            project = self._projects.get(key)
            if project is None:
                project = self._loader(key)
                self._projects[key] = project
            return project

    def session(self, path: str, engine: EndpointEngine) -> ProjectSession:
        key = str(Path(path).expanduser().resolve())
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = ProjectSession(project=self.get(key), service=EndpointService(engine))
                self._sessions[key] = session
            return session


_INSTALL_HINT = "Service mode needs the optional extras: pip install 'endpointscope[service]'"

# Unknown project roots and unknown endpoints both surface as 404s.
_NOT_FOUND_ERRORS = (FileNotFoundError, NotADirectoryError, LookupError)


def _require_fastapi() -> None:
    if not _FASTAPI_AVAILABLE:
        raise RuntimeError(_INSTALL_HINT)


def _default_engine() -> EndpointEngine:
    return EndpointEngine()


def _listed(endpoint: Endpoint, view: CatalogView) -> ListedEndpoint:
    found = view.metadata_for(endpoint)
    return ListedEndpoint(**endpoint.to_dict(), metadata=found.to_dict() if found else None)


async def _in_executor(func: Callable[[], Any]) -> Any:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:  # pragma: no cover - fallback path when not in async context
        return func()
    return await loop.run_in_executor(None, func)


def create_app(
    engine_factory: Callable[[], EndpointEngine] = _default_engine,
    registry: ProjectRegistry | None = None,
) -> FastAPI:
    """Create the FastAPI application exposing scan, base URL and detail lookups."""

    _require_fastapi()
    app = FastAPI(title="endpointscope", version="0.1.0")
    projects = registry or ProjectRegistry()
    engine_instance = engine_factory()

    async def get_engine() -> EndpointEngine:
        return engine_instance

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/scan", response_model=ScanResponse)
    async def scan(
        payload: ScanRequest,
        engine: EndpointEngine = Depends(get_engine),
    ) -> ScanResponse:
        def _run() -> ScanResponse:
            session = projects.session(payload.path, engine)
            if not session.service.refresh(session.project):
                raise ScanSuperseded("Scan superseded by a newer request")
            query = CatalogQuery(
                text=payload.query,
                method=payload.method,
                auth=payload.auth,
                sort=payload.sort,
            )
            view = build_view(
                session.service.endpoints,
                query,
                list_metadata=lambda found: engine.list_metadata(session.project, found),
                include_metadata=payload.include_metadata,
                recent=session.recent,
            )
            return ScanResponse(
                status=session.service.last_refresh_status or "",
                matched=len(view.endpoints),
                endpoints=[_listed(endpoint, view) for endpoint in view.endpoints],
                groups=view.groups,
            )

        return await _in_executor(_run)

    @app.post("/base-url", response_model=BaseUrlResponse)
    async def base_url(
        payload: ProjectRequest,
        engine: EndpointEngine = Depends(get_engine),
    ) -> BaseUrlResponse:
        resolved = await _in_executor(
            lambda: engine.resolve_base_url_with_source(projects.get(payload.path))
        )
        return BaseUrlResponse(base_url=resolved.url, source=resolved.source.value)

    @app.post("/details", response_model=DetailsResponse)
    async def details(
        payload: DetailsRequest,
        engine: EndpointEngine = Depends(get_engine),
    ) -> DetailsResponse:
        def _run() -> DetailsResponse:
            session = projects.session(payload.path, engine)
            project = session.project
            endpoint = engine.find_endpoint(
                engine.scan(project),
                service=payload.service,
                function=payload.function,
                method=payload.method,
                path=payload.endpoint_path,
            )
            resolved = engine.resolve_details(project, endpoint)
            session.recent.touch(endpoint)
            return DetailsResponse(endpoint=EndpointModel(**endpoint.to_dict()), details=resolved.to_dict())

        return await _in_executor(_run)

    async def not_found(_: Any, exc: Exception) -> JSONResponse:
        message = exc.args[0] if isinstance(exc, LookupError) and exc.args else str(exc)
        return JSONResponse(status_code=404, content={"detail": message})

    async def superseded(_: Any, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    for error_type in _NOT_FOUND_ERRORS:
        app.add_exception_handler(error_type, not_found)
    app.add_exception_handler(ScanSuperseded, superseded)

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - starts a server
    """Serve the endpointscope API with uvicorn until interrupted."""
    _require_fastapi()
    try:
        import uvicorn
    except ModuleNotFoundError as exc:
        raise RuntimeError(_INSTALL_HINT) from exc

    app = create_app()
    uvicorn.run(app, host=host, port=port)


__all__ = ["ProjectRegistry", "ProjectSession", "ScanSuperseded", "create_app", "run_service"]
