"""Optional HTTP service mode."""

from .app import ProjectRegistry, create_app, run_service

__all__ = ["ProjectRegistry", "create_app", "run_service"]
