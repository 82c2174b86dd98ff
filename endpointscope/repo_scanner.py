"""Repository scanning and source manifest building utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .logging import get_logger
from .models import SourceFile, SourceManifest

_EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        ".gradle",
        ".idea",
        ".endpointscope",
        "node_modules",
        "__pycache__",
        "build",
        "out",
        "target",
    }
)

SOURCE_SUFFIXES = (".kt", ".java")

_logger = get_logger("repo_scanner")


@dataclass(frozen=True)
class IgnoreRule:
    """One `.gitignore` line, relative to the directory that declared it."""

    pattern: str
    negate: bool = False
    directory_only: bool = False
    rooted: bool = False

    @classmethod
    def parse(cls, line: str) -> Optional["IgnoreRule"]:
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        negate = text.startswith("!")
        if negate:
            text = text[1:]
        directory_only = text.endswith("/")
        text = text.rstrip("/")
        # A slash anywhere but the end pins the pattern to the declaring directory.
        rooted = "/" in text
        text = text.lstrip("/")
        if not text:
            return None
        return cls(text, negate=negate, directory_only=directory_only, rooted=rooted)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.rooted:
            return fnmatchcase(rel_path, self.pattern)
        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


@dataclass
class IgnoreRules:
    """Rules collected from every `.gitignore` between the root and a directory."""

    scopes: List[Tuple[str, List[IgnoreRule]]] = field(default_factory=list)

    def extended(self, rel_dir: str, gitignore: Path) -> "IgnoreRules":
        rules = _read_rules(gitignore)
        if not rules:
            return self
        return IgnoreRules(self.scopes + [(rel_dir, rules)])

    def ignores(self, rel_path: str, is_dir: bool) -> bool:
        ignored = False
        for base, rules in self.scopes:
            if base:
                if not rel_path.startswith(f"{base}/"):
                    continue
                local = rel_path[len(base) + 1 :]
            else:
                local = rel_path
            for rule in rules:
                if rule.matches(local, is_dir):
                    ignored = not rule.negate
        return ignored


def _read_rules(path: Path) -> List[IgnoreRule]:
    if not path.is_file():
        return []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        _logger.debug("Unreadable ignore file %s: %s", path, exc)
        return []
    return [rule for rule in map(IgnoreRule.parse, lines) if rule is not None]


def _join(rel_dir: str, name: str) -> str:
    return f"{rel_dir}/{name}" if rel_dir else name


class RepoScanner:
    """Walks a project tree to produce a manifest of Kotlin and Java sources."""

    def scan(self, root: str | Path) -> SourceManifest:
        """Return a manifest of scannable source files with their stamps."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Project path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {root}")

        files: List[SourceFile] = []
        for rel_path in self._walk(root_path):
            try:
                stat_result = (root_path / rel_path).stat()
            except OSError as exc:
                _logger.debug("Skipping %s: %s", rel_path, exc)
                continue
            files.append(SourceFile(rel_path, stat_result.st_size, stat_result.st_mtime_ns))

        _logger.debug("Manifest for %s holds %d source files", root_path, len(files))
        return SourceManifest(root=str(root_path), files=files)

    def _walk(self, root: Path) -> Iterator[str]:
        rules_by_dir = {"": IgnoreRules().extended("", root / ".gitignore")}
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            rel_dir = "" if current == root else current.relative_to(root).as_posix()
            rules = rules_by_dir.pop(rel_dir)

            kept = []
            for name in sorted(dirnames):
                rel_path = _join(rel_dir, name)
                if name in _EXCLUDED_DIRS or rules.ignores(rel_path, True):
                    continue
                kept.append(name)
                rules_by_dir[rel_path] = rules.extended(rel_path, current / name / ".gitignore")
            dirnames[:] = kept

            for name in sorted(filenames):
                rel_path = _join(rel_dir, name)
                if name.endswith(SOURCE_SUFFIXES) and not rules.ignores(rel_path, False):
                    yield rel_path


__all__ = ["IgnoreRule", "IgnoreRules", "RepoScanner", "SOURCE_SUFFIXES"]
