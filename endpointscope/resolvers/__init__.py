"""Base URL and override resolution."""

from .base_url import BaseUrlResolver, infer_base_url_from_sources, pick_base_url
from .overrides import OverrideResolver, apply_config

__all__ = [
    "BaseUrlResolver",
    "OverrideResolver",
    "apply_config",
    "infer_base_url_from_sources",
    "pick_base_url",
]
