"""Project context: host collaborators plus the caches owned by one project."""

from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from .logging import get_logger
from .models import SourceFile, SourceManifest
from .repo_scanner import RepoScanner
from .stores import BoundedCache, VersionedCache

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .symbols import ClassSymbol, MethodSymbol

_logger = get_logger("project")


class FileContentProvider(Protocol):
    """Read-only access to project source files."""

    def iter_source_files(self) -> Iterable[SourceFile]:
        ...

    def read_text(self, relative_path: str) -> Optional[str]:
        ...


class SymbolIndex(Protocol):
    """Declared types, methods and annotations of the project."""

    def find_annotated_methods(self, annotation_fqn: str) -> Iterable["MethodSymbol"]:
        ...

    def find_class(self, fqn: str) -> Optional["ClassSymbol"]:
        ...

    def find_classes_by_short_name(self, name: str) -> Sequence["ClassSymbol"]:
        ...


class ModificationTracker(Protocol):
    """Monotonic counter that increases on any relevant source edit."""

    @property
    def modification_count(self) -> int:
        ...

    def poll(self) -> int:
        ...


@dataclass
class ProjectCaches:
    """Caches owned by a single project; nothing here is process-global."""

    base_url: VersionedCache = field(default_factory=VersionedCache)
    config: VersionedCache = field(default_factory=VersionedCache)
    details: BoundedCache = field(default_factory=BoundedCache)


@dataclass
class Project:
    """Everything the engine needs to know about one project."""

    identity: str
    root: Optional[Path]
    files: FileContentProvider
    symbols: SymbolIndex
    tracker: ModificationTracker
    caches: ProjectCaches = field(default_factory=ProjectCaches)

    @property
    def version(self) -> int:
        return self.tracker.modification_count

    def sync(self) -> int:
        """Let the tracker notice edits made since the last call."""
        return self.tracker.poll()


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class CounterTracker:
    """Tracker whose counter is bumped explicitly by the host."""

    def __init__(self, start: int = 0) -> None:
        self._count = start
        self._lock = threading.Lock()

    @property
    def modification_count(self) -> int:
        return self._count

    def bump(self) -> int:
        with self._lock:
            self._count += 1
            return self._count

    def poll(self) -> int:
        return self._count


class InMemoryFiles:
    """File content provider backed by a ``path -> text`` mapping."""

    def __init__(
        self,
        files: Mapping[str, str] | None = None,
        tracker: CounterTracker | None = None,
    ) -> None:
        self._texts: Dict[str, str] = {}
        self._stamps: Dict[str, int] = {}
        self.tracker = tracker or CounterTracker()
        for path, text in (files or {}).items():
            self.write(path, text)

    def write(self, path: str, text: str) -> None:
        self._texts = {**self._texts, path: text}
        self._stamps = {**self._stamps, path: self.tracker.bump()}

    def remove(self, path: str) -> None:
        if path not in self._texts:
            return
        self._texts = {key: value for key, value in self._texts.items() if key != path}
        self._stamps = {key: value for key, value in self._stamps.items() if key != path}
        self.tracker.bump()

    def iter_source_files(self) -> Iterable[SourceFile]:
        texts = self._texts
        stamps = self._stamps
        for path in sorted(texts):
            yield SourceFile(path=path, size=len(texts[path]), mtime_ns=stamps.get(path, 0))

    def read_text(self, relative_path: str) -> Optional[str]:
        return self._texts.get(relative_path)


# ---------------------------------------------------------------------------
# Filesystem collaborators
# ---------------------------------------------------------------------------


class FileSystemFiles:
    """File content provider backed by a :class:`SourceManifest`."""

    def __init__(self, root: Path, manifest: SourceManifest, *, max_file_bytes: int | None = None) -> None:
        self.root = root
        self.manifest = manifest
        self.max_file_bytes = max_file_bytes

    def iter_source_files(self) -> Iterable[SourceFile]:
        for source in self.manifest.files:
            if self.max_file_bytes is not None and source.size > self.max_file_bytes:
                _logger.debug("Skipping oversized file %s (%d bytes)", source.path, source.size)
                continue
            yield source

    def read_text(self, relative_path: str) -> Optional[str]:
        path = self.root / relative_path
        try:
            return path.read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            _logger.debug("Unable to read %s: %s", path, exc)
            return None


class StampTracker:
    """Bumps its counter whenever the source manifest fingerprint changes."""

    def __init__(self, root: Path, files: FileSystemFiles, scanner: RepoScanner | None = None) -> None:
        self._root = root
        self._files = files
        self._scanner = scanner or RepoScanner()
        self._count = 0
        self._fingerprint = _digest(files.manifest)
        self._lock = threading.Lock()

    @property
    def modification_count(self) -> int:
        return self._count

    def poll(self) -> int:
        manifest = self._scanner.scan(self._root)
        fingerprint = _digest(manifest)
        with self._lock:
            if fingerprint != self._fingerprint:
                self._fingerprint = fingerprint
                self._files.manifest = manifest
                self._count += 1
                _logger.debug("Source tree changed; modification count is now %d", self._count)
            return self._count


def _digest(manifest: SourceManifest) -> str:
    digest = hashlib.sha256()
    for path, size, mtime_ns in manifest.fingerprint():
        digest.update(f"{path}\0{size}\0{mtime_ns}\n".encode("utf-8"))
    return digest.hexdigest()


def load_project(
    root: str | Path,
    *,
    scanner: RepoScanner | None = None,
    max_file_bytes: int | None = None,
    detail_cache_size: int | None = None,
) -> Project:
    """Build a :class:`Project` over a directory on disk."""
    from .symbols import SourceSymbolIndex

    scanner = scanner or RepoScanner()
    manifest = scanner.scan(root)
    root_path = Path(manifest.root)
    files = FileSystemFiles(root_path, manifest, max_file_bytes=max_file_bytes)
    tracker = StampTracker(root_path, files, scanner)
    caches = ProjectCaches()
    if detail_cache_size is not None:
        caches.details = BoundedCache(max_entries=detail_cache_size)
    _logger.debug("Loaded project %s with %d source files", root_path, len(manifest.files))
    return Project(
        identity=str(root_path),
        root=root_path,
        files=files,
        symbols=SourceSymbolIndex(files, tracker),
        tracker=tracker,
        caches=caches,
    )


def in_memory_project(
    files: Mapping[str, str] | None = None,
    *,
    identity: str = "memory",
    root: Optional[Path] = None,
    classes: Optional[List["ClassSymbol"]] = None,
) -> Project:
    """Build a project from in-memory sources and, optionally, a fixed symbol table."""
    from .symbols import InMemorySymbolIndex, SourceSymbolIndex

    provider = InMemoryFiles(files)
    tracker = provider.tracker
    symbols: SymbolIndex
    if classes is not None:
        symbols = InMemorySymbolIndex(classes)
    else:
        symbols = SourceSymbolIndex(provider, tracker)
    return Project(identity=identity, root=root, files=provider, symbols=symbols, tracker=tracker)


__all__ = [
    "CounterTracker",
    "FileContentProvider",
    "FileSystemFiles",
    "InMemoryFiles",
    "ModificationTracker",
    "Project",
    "ProjectCaches",
    "StampTracker",
    "SymbolIndex",
    "in_memory_project",
    "load_project",
]
