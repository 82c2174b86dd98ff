"""Scan strategy contract and the per-scan context shared by strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Optional, Protocol, Tuple

from ..logging import get_logger
from ..models import Endpoint, SourceFile
from ..project import Project
from ..source_index import SourceTextIndex, collect_string_constants, package_of

_logger = get_logger("scanners")


@dataclass
class SourceUnit:
    """One readable source file with lazily derived views."""

    file: SourceFile
    text: str
    _package: Optional[str] = None
    _index: Optional[SourceTextIndex] = None
    _constants: Optional[Dict[str, str]] = None

    @property
    def path(self) -> str:
        return self.file.path

    @property
    def package_name(self) -> str:
        if self._package is None:
            self._package = package_of(self.text)
        return self._package

    @property
    def index(self) -> SourceTextIndex:
        if self._index is None:
            self._index = SourceTextIndex.build(self.file.name, self.package_name, self.text)
        return self._index

    @property
    def constants(self) -> Dict[str, str]:
        if self._constants is None:
            self._constants = collect_string_constants(self.text)
        return self._constants

    @property
    def is_kotlin(self) -> bool:
        return self.path.endswith((".kt", ".kts"))


@dataclass
class ScanContext:
    """Inputs of one scan: the project, its base URL and a read-once file cache."""

    project: Project
    base_url: Optional[str] = None
    use_syntax_tree: bool = False
    _units: Optional[Tuple[SourceUnit, ...]] = field(default=None, repr=False)

    def units(self) -> Iterator[SourceUnit]:
        if self._units is None:
            self._units = tuple(self._load_units())
        return iter(self._units)

    def _load_units(self) -> Iterable[SourceUnit]:
        files = self.project.files
        for source in files.iter_source_files():
            if not source.path.endswith((".kt", ".java")):
                continue
            try:
                text = files.read_text(source.path)
            except (OSError, UnicodeDecodeError) as exc:
                _logger.debug("Skipping unreadable file %s: %s", source.path, exc)
                continue
            if text is None:
                continue
            yield SourceUnit(file=source, text=text)


class ScanStrategy(Protocol):
    """One independent scanning algorithm producing candidate endpoints."""

    name: str

    def scan(self, context: ScanContext) -> Iterable[Endpoint]:
        ...


__all__ = ["ScanContext", "ScanStrategy", "SourceUnit"]
