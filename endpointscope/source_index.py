"""Declaration index over raw Kotlin/Java source text.

The index answers one question: which class and function lexically own a
character offset. It uses the nearest declaration at or before the offset,
which is correct for ordinary code and does not need a parser.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

PACKAGE_PATTERN = re.compile(r"(?m)^\s*package\s+([A-Za-z_][A-Za-z0-9_.]*)")

_CLASS_PATTERN = re.compile(
    r"(?m)^[ \t]*(?:@[^\n]+\s*)*"
    r"(?:(?:public|private|protected|internal|abstract|final|open|sealed|data|enum|annotation|static)\s+)*"
    r"(?:class|interface|object|enum\s+class)\s+([A-Za-z_][A-Za-z0-9_]*)"
)
_KOTLIN_FUNCTION_PATTERN = re.compile(
    r"(?m)^[ \t]*(?:@[^\n]+\s*)*"
    r"(?:(?:public|private|protected|internal|suspend|inline|override|open|abstract|tailrec|operator|infix|external|final|actual|expect)\s+)*"
    r"fun\s+(?:<[^>\n]*>\s*)?(?:[A-Za-z_][A-Za-z0-9_<>?]*\.)?([A-Za-z_][A-Za-z0-9_]*)\s*\([^)]*\)\s*"
    r"(?::\s*([^{=\n]+))?"
)
_JAVA_METHOD_PATTERN = re.compile(
    r"(?m)^[ \t]*(?:@[^\n]+\s*)*"
    r"(?:(?:public|protected|private|static|final|synchronized|abstract|native|default|strictfp)\s+)*"
    r"([A-Za-z_][A-Za-z0-9_<>,.?\[\] ]*)\s+([A-Za-z_][A-Za-z0-9_]*)\s*\([^;\n{]*\)\s*"
    r"(?:throws[^{\n]+)?\{"
)
_JAVA_NON_METHOD_WORDS = {
    "if",
    "for",
    "while",
    "switch",
    "catch",
    "return",
    "new",
    "else",
    "throw",
    "synchronized",
    "try",
    "do",
    "class",
    "interface",
    "object",
    "enum",
    "fun",
    "val",
    "var",
    "when",
}

_KOTLIN_CONSTANT_PATTERN = re.compile(
    r"(?:const\s+)?val\s+([A-Za-z_][A-Za-z0-9_]*)\s*(?::\s*String\s*)?=\s*\"([^\"]+)\""
)
_JAVA_CONSTANT_PATTERN = re.compile(r"String\s+([A-Za-z_][A-Za-z0-9_]*)\s*=\s*\"([^\"]+)\"")


@dataclass(frozen=True)
class FunctionDecl:
    offset: int
    name: str
    return_type: Optional[str]


@dataclass(frozen=True)
class SourceContext:
    """Owner of a heuristic match."""

    service_fqn: str
    function_name: str
    declared_response_type: Optional[str]


@dataclass(frozen=True)
class SourceTextIndex:
    """Ordered class and function declarations for one file."""

    file_base_name: str
    package_name: str
    class_decls: Tuple[Tuple[int, str], ...]
    function_decls: Tuple[FunctionDecl, ...]
    text_length: int = 0

    @classmethod
    def build(cls, file_name: str, package_name: str, text: str) -> "SourceTextIndex":
        file_base_name = file_name.rsplit("/", 1)[-1].rsplit(".", 1)[0]
        class_decls = sorted(
            ((match.start(), match.group(1)) for match in _CLASS_PATTERN.finditer(text)),
            key=lambda item: item[0],
        )

        is_java = file_name.endswith(".java")
        is_kotlin = file_name.endswith((".kt", ".kts"))

        function_decls: List[FunctionDecl] = []
        for match in _KOTLIN_FUNCTION_PATTERN.finditer("" if is_java else text):
            return_type = (match.group(2) or "").strip() or None
            function_decls.append(FunctionDecl(match.start(), match.group(1), return_type))
        for match in _JAVA_METHOD_PATTERN.finditer("" if is_kotlin else text):
            return_type = " ".join(match.group(1).split())
            name = match.group(2).strip()
            if name in _JAVA_NON_METHOD_WORDS:
                continue
            if return_type.split(" ", 1)[0] in _JAVA_NON_METHOD_WORDS:
                continue
            function_decls.append(FunctionDecl(match.start(), name, return_type))
        function_decls.sort(key=lambda decl: decl.offset)

        return cls(
            file_base_name=file_base_name,
            package_name=package_name,
            class_decls=tuple(class_decls),
            function_decls=tuple(function_decls),
            text_length=len(text),
        )

    def qualify(self, class_name: str) -> str:
        return f"{self.package_name}.{class_name}" if self.package_name else class_name

    def class_at(self, offset: int) -> str:
        position = bisect_right([start for start, _ in self.class_decls], offset)
        if position == 0:
            return self.file_base_name
        return self.class_decls[position - 1][1]

    def function_at(self, offset: int) -> Optional[FunctionDecl]:
        position = bisect_right([decl.offset for decl in self.function_decls], offset)
        if position == 0:
            return None
        return self.function_decls[position - 1]

    def context_for_offset(self, offset: int) -> SourceContext:
        function = self.function_at(offset)
        return SourceContext(
            service_fqn=self.qualify(self.class_at(offset)),
            function_name=function.name if function else f"requestAt{offset}",
            declared_response_type=function.return_type if function else None,
        )

    def function_spans(self, name: str) -> List[Tuple[int, int]]:
        """Return ``(start, end)`` spans for every function called ``name``.

        A span ends where the next declared function starts.
        """
        spans: List[Tuple[int, int]] = []
        for index, decl in enumerate(self.function_decls):
            if decl.name != name:
                continue
            end = self.text_length
            if index + 1 < len(self.function_decls):
                end = self.function_decls[index + 1].offset
            spans.append((decl.offset, end))
        return spans


def package_of(text: str) -> str:
    match = PACKAGE_PATTERN.search(text)
    return match.group(1) if match else ""


def collect_string_constants(text: str, into: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Collect simple ``NAME = "literal"`` assignments; the first definition wins."""
    constants: Dict[str, str] = {} if into is None else into
    for pattern in (_KOTLIN_CONSTANT_PATTERN, _JAVA_CONSTANT_PATTERN):
        for match in pattern.finditer(text):
            constants.setdefault(match.group(1), match.group(2))
    return constants


def lookup_constant(name: str, constants: Mapping[str, str]) -> Optional[str]:
    """Resolve ``name`` exactly, then by its last dotted segment."""
    if name in constants:
        return constants[name]
    short = name.rsplit(".", 1)[-1]
    return constants.get(short)


def line_of(text: str, index: int) -> int:
    """Return 1-based line number for a character index."""
    return text.count("\n", 0, index) + 1


__all__ = [
    "FunctionDecl",
    "SourceContext",
    "SourceTextIndex",
    "collect_string_constants",
    "line_of",
    "lookup_constant",
    "package_of",
]
