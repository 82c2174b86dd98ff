"""On-demand per-endpoint details: parameters, headers, auth and JSON samples."""

from .resolver import DetailResolver, auth_requirement
from .samples import JsonSamples, SampleBuilder, SampleMode

__all__ = ["DetailResolver", "JsonSamples", "SampleBuilder", "SampleMode", "auth_requirement"]
