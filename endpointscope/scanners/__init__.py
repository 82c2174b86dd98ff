"""Endpoint scan strategies."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .annotations import AnnotationStrategy
from .base import ScanContext, ScanStrategy, SourceUnit
from .builder_chain import BuilderChainStrategy
from .core import EndpointCollector, StrategyRegistry, identity_key, method_upper, normalize_path
from .syntax import TREE_SITTER_AVAILABLE, SyntaxReader
from .wrapper import WrapperMethodStrategy

STRATEGY_NAMES = ("annotation", "builder_chain", "wrapper")


def build_strategies(
    names: Optional[Iterable[str]] = None,
    *,
    syntax: Optional[SyntaxReader] = None,
) -> List[ScanStrategy]:
    """Instantiate strategies by name, always in the canonical order."""
    wanted = set(STRATEGY_NAMES if names is None else names)
    unknown = wanted.difference(STRATEGY_NAMES)
    if unknown:
        raise ValueError(f"Unknown scan strategies: {', '.join(sorted(unknown))}")
    strategies: List[ScanStrategy] = []
    if "annotation" in wanted:
        strategies.append(AnnotationStrategy())
    if "builder_chain" in wanted:
        strategies.append(BuilderChainStrategy(syntax))
    if "wrapper" in wanted:
        strategies.append(WrapperMethodStrategy())
    return strategies


__all__ = [
    "AnnotationStrategy",
    "BuilderChainStrategy",
    "EndpointCollector",
    "STRATEGY_NAMES",
    "ScanContext",
    "ScanStrategy",
    "SourceUnit",
    "StrategyRegistry",
    "SyntaxReader",
    "TREE_SITTER_AVAILABLE",
    "WrapperMethodStrategy",
    "build_strategies",
    "identity_key",
    "method_upper",
    "normalize_path",
]
