"""Core data models shared across endpointscope components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Endpoint:
    """Normalized record describing one discovered HTTP operation."""

    http_method: str
    path: str
    service_fqn: str
    function_name: str
    request_type: Optional[str] = None
    response_type: Optional[str] = None
    base_url: Optional[str] = None

    @property
    def key(self) -> "EndpointKey":
        return EndpointKey.from_endpoint(self)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, order=True)
class EndpointKey:
    """Stable lookup key for caches, selection and recency tracking."""

    http_method: str
    path: str
    service_fqn: str
    function_name: str

    @classmethod
    def from_endpoint(cls, endpoint: Endpoint) -> "EndpointKey":
        return cls(
            http_method=endpoint.http_method.upper(),
            path=endpoint.path,
            service_fqn=endpoint.service_fqn,
            function_name=endpoint.function_name,
        )


class BaseUrlSource(str, Enum):
    """Provenance of a resolved base URL."""

    CONFIG = "config"
    INFERRED = "inferred"
    NONE = "none"


@dataclass(frozen=True)
class ResolvedBaseUrl:
    url: Optional[str]
    source: BaseUrlSource = BaseUrlSource.NONE

    @classmethod
    def unresolved(cls) -> "ResolvedBaseUrl":
        return cls(url=None, source=BaseUrlSource.NONE)


class AuthRequirement(str, Enum):
    """Whether an endpoint requires, optionally accepts, or omits an Authorization header."""

    NONE = "none"
    OPTIONAL = "optional"
    REQUIRED = "required"


@dataclass(frozen=True)
class EndpointDocDetails:
    """Per-endpoint enrichment resolved on demand."""

    provider: Optional[str] = None
    source_file: Optional[str] = None
    source_line: Optional[int] = None
    base_url_from_config: bool = False
    path_params: Tuple[str, ...] = ()
    query_params: Tuple[str, ...] = ()
    has_query_map: bool = False
    header_params: Tuple[str, ...] = ()
    has_header_map: bool = False
    field_params: Tuple[str, ...] = ()
    has_field_map: bool = False
    part_params: Tuple[str, ...] = ()
    has_part_map: bool = False
    has_dynamic_url: bool = False
    has_body: bool = False
    static_headers: Tuple[str, ...] = ()
    auth_requirement: AuthRequirement = AuthRequirement.NONE
    request_schema_json: Optional[str] = None
    request_example_json: Optional[str] = None
    response_schema_json: Optional[str] = None
    response_example_json: Optional[str] = None

    @classmethod
    def empty(cls) -> "EndpointDocDetails":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["auth_requirement"] = self.auth_requirement.value
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data


@dataclass(frozen=True)
class EndpointListMetadata:
    """Lightweight per-endpoint facts used for list badges and filters."""

    auth_requirement: Optional[AuthRequirement]
    query_count: int
    has_multipart: bool
    has_form_fields: bool
    base_url_resolved: bool
    partial: bool

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["auth_requirement"] = self.auth_requirement.value if self.auth_requirement else None
        return data


@dataclass(frozen=True)
class SourceFile:
    """A project source file known to the file content provider."""

    path: str
    size: int = 0
    mtime_ns: int = 0

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass
class SourceManifest:
    """Normalized view of the scannable source files under a project root."""

    root: str
    files: List[SourceFile] = field(default_factory=list)

    def fingerprint(self) -> Tuple[Tuple[str, int, int], ...]:
        return tuple(sorted((f.path, f.size, f.mtime_ns) for f in self.files))


__all__ = [
    "AuthRequirement",
    "BaseUrlSource",
    "Endpoint",
    "EndpointDocDetails",
    "EndpointKey",
    "EndpointListMetadata",
    "ResolvedBaseUrl",
    "SourceFile",
    "SourceManifest",
]
