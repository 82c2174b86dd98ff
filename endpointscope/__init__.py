"""Endpoint discovery for Kotlin/Java HTTP client code."""

from .config import EndpointConfig, EngineSettings
from .engine import EndpointEngine, EndpointService
from .models import (
    AuthRequirement,
    Endpoint,
    EndpointDocDetails,
    EndpointKey,
    EndpointListMetadata,
    ResolvedBaseUrl,
)
from .project import Project, in_memory_project, load_project

__all__ = [
    "AuthRequirement",
    "Endpoint",
    "EndpointConfig",
    "EndpointDocDetails",
    "EndpointEngine",
    "EndpointKey",
    "EndpointListMetadata",
    "EndpointService",
    "EngineSettings",
    "Project",
    "ResolvedBaseUrl",
    "in_memory_project",
    "load_project",
]
