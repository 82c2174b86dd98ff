"""Symbol model and symbol index implementations.

:class:`InMemorySymbolIndex` serves a fixed table of symbols (tests, hosts with
their own indexer). :class:`SourceSymbolIndex` derives the table from Kotlin and
Java sources with a best-effort declaration parser: comments and string bodies
are masked, bodies are brace-matched, and only declarations that sit directly in
a class body are treated as members.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from .logging import get_logger
from .project import FileContentProvider, ModificationTracker
from .source_index import line_of, package_of

_logger = get_logger("symbols")

RETROFIT_HTTP_PACKAGE = "retrofit2.http"

WELL_KNOWN_ANNOTATIONS: Dict[str, FrozenSet[str]] = {
    RETROFIT_HTTP_PACKAGE: frozenset(
        {
            "GET",
            "POST",
            "PUT",
            "PATCH",
            "DELETE",
            "HEAD",
            "OPTIONS",
            "HTTP",
            "Body",
            "Path",
            "Param",
            "Query",
            "QueryMap",
            "QueryName",
            "Header",
            "HeaderMap",
            "Headers",
            "Field",
            "FieldMap",
            "FormUrlEncoded",
            "Multipart",
            "Part",
            "PartMap",
            "Url",
            "Streaming",
            "Tag",
        }
    ),
}

_STRING_LITERAL = re.compile(r'"((?:[^"\\]|\\.)*)"')


@dataclass(frozen=True)
class AnnotationSymbol:
    """An annotation usage with its raw argument texts."""

    fqn: str
    arguments: Tuple[Tuple[Optional[str], str], ...] = ()

    @property
    def short_name(self) -> str:
        return self.fqn.rsplit(".", 1)[-1]

    def attribute(self, name: str) -> Optional[str]:
        """Raw text of a named argument; ``value`` also matches the first positional one."""
        for arg_name, raw in self.arguments:
            if arg_name == name:
                return raw
        if name == "value":
            return self.positional()
        return None

    def positional(self) -> Optional[str]:
        for arg_name, raw in self.arguments:
            if arg_name is None:
                return raw
        return None

    def string_value(self, name: str = "value") -> Optional[str]:
        raw = self.attribute(name)
        if raw is None:
            return None
        return _strip_quotes(raw)

    def string_values(self) -> List[str]:
        """Every string literal across all arguments, in order."""
        values: List[str] = []
        for _, raw in self.arguments:
            values.extend(match.group(1) for match in _STRING_LITERAL.finditer(raw))
        return values


@dataclass(frozen=True)
class ParameterSymbol:
    name: str
    type_text: str
    annotations: Tuple[AnnotationSymbol, ...] = ()

    def annotation(self, fqn: str) -> Optional[AnnotationSymbol]:
        return next((ann for ann in self.annotations if ann.fqn == fqn), None)


@dataclass(frozen=True)
class MethodSymbol:
    name: str
    owner_fqn: str
    return_type: Optional[str] = None
    parameters: Tuple[ParameterSymbol, ...] = ()
    annotations: Tuple[AnnotationSymbol, ...] = ()
    is_static: bool = False
    file: Optional[str] = None
    line: Optional[int] = None
    source: Optional[str] = None

    def annotation(self, fqn: str) -> Optional[AnnotationSymbol]:
        return next((ann for ann in self.annotations if ann.fqn == fqn), None)


@dataclass(frozen=True)
class FieldSymbol:
    name: str
    type_text: str
    is_static: bool = False


@dataclass(frozen=True)
class ClassSymbol:
    fqn: str
    kind: str = "class"
    annotations: Tuple[AnnotationSymbol, ...] = ()
    fields: Tuple[FieldSymbol, ...] = ()
    methods: Tuple[MethodSymbol, ...] = ()
    enum_constants: Tuple[str, ...] = ()
    file: Optional[str] = None
    line: Optional[int] = None

    @property
    def name(self) -> str:
        return self.fqn.rsplit(".", 1)[-1]

    @property
    def is_enum(self) -> bool:
        return self.kind == "enum"


def _strip_quotes(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


# ---------------------------------------------------------------------------
# Index implementations
# ---------------------------------------------------------------------------


class _SymbolTable:
    def __init__(self, classes: Iterable[ClassSymbol]) -> None:
        self.by_fqn: Dict[str, ClassSymbol] = {}
        self.by_short_name: Dict[str, List[ClassSymbol]] = {}
        self.by_annotation: Dict[str, List[MethodSymbol]] = {}
        for cls in classes:
            if cls.fqn in self.by_fqn:
                continue
            self.by_fqn[cls.fqn] = cls
            self.by_short_name.setdefault(cls.name, []).append(cls)
            for method in cls.methods:
                for ann in method.annotations:
                    self.by_annotation.setdefault(ann.fqn, []).append(method)


class InMemorySymbolIndex:
    """Symbol index over a fixed list of classes."""

    def __init__(self, classes: Iterable[ClassSymbol]) -> None:
        self._table = _SymbolTable(classes)

    def find_annotated_methods(self, annotation_fqn: str) -> Iterable[MethodSymbol]:
        return list(self._table.by_annotation.get(annotation_fqn, ()))

    def find_class(self, fqn: str) -> Optional[ClassSymbol]:
        return self._table.by_fqn.get(fqn)

    def find_classes_by_short_name(self, name: str) -> Sequence[ClassSymbol]:
        return list(self._table.by_short_name.get(name, ()))


class SourceSymbolIndex:
    """Symbol index parsed from project sources, rebuilt when the tracker moves."""

    def __init__(
        self,
        files: FileContentProvider,
        tracker: Optional[ModificationTracker] = None,
    ) -> None:
        self._files = files
        self._tracker = tracker
        self._table: Optional[_SymbolTable] = None
        self._built_for: Optional[int] = None
        self._parsed: Dict[str, Tuple[Tuple[int, int], List[ClassSymbol]]] = {}
        self._lock = threading.Lock()

    def find_annotated_methods(self, annotation_fqn: str) -> Iterable[MethodSymbol]:
        return list(self._ensure().by_annotation.get(annotation_fqn, ()))

    def find_class(self, fqn: str) -> Optional[ClassSymbol]:
        return self._ensure().by_fqn.get(fqn)

    def find_classes_by_short_name(self, name: str) -> Sequence[ClassSymbol]:
        return list(self._ensure().by_short_name.get(name, ()))

    def _ensure(self) -> _SymbolTable:
        version = self._tracker.modification_count if self._tracker is not None else None
        table = self._table
        if table is not None and version is not None and self._built_for == version:
            return table
        with self._lock:
            if self._table is not None and version is not None and self._built_for == version:
                return self._table
            table = self._rebuild()
            self._table = table
            self._built_for = version
            return table

    def _rebuild(self) -> _SymbolTable:
        parsed: Dict[str, Tuple[Tuple[int, int], List[ClassSymbol]]] = {}
        classes: List[ClassSymbol] = []
        for source in self._files.iter_source_files():
            stamp = (source.size, source.mtime_ns)
            cached = self._parsed.get(source.path)
            if cached is not None and cached[0] == stamp:
                parsed[source.path] = cached
                classes.extend(cached[1])
                continue
            text = self._files.read_text(source.path)
            if text is None:
                continue
            try:
                declared = parse_declarations(source.path, text)
            except Exception as exc:  # noqa: BLE001
                _logger.debug("Skipping unparseable file %s: %s", source.path, exc)
                continue
            parsed[source.path] = (stamp, declared)
            classes.extend(declared)
        self._parsed = parsed
        _logger.debug("Symbol index built with %d classes", len(classes))
        return _SymbolTable(classes)


# ---------------------------------------------------------------------------
# Declaration parser
# ---------------------------------------------------------------------------

_MODIFIERS = {
    "public",
    "private",
    "protected",
    "internal",
    "static",
    "final",
    "abstract",
    "open",
    "sealed",
    "data",
    "inner",
    "override",
    "suspend",
    "inline",
    "operator",
    "infix",
    "tailrec",
    "external",
    "synchronized",
    "native",
    "default",
    "strictfp",
    "transient",
    "volatile",
    "lateinit",
    "const",
    "actual",
    "expect",
    "value",
    "companion",
    "fun",
}
_TYPE_KEYWORDS = {
    "return",
    "new",
    "else",
    "throw",
    "class",
    "interface",
    "enum",
    "package",
    "import",
    "val",
    "var",
    "fun",
    "if",
    "for",
    "while",
    "switch",
    "catch",
    "case",
}

_IMPORT_PATTERN = re.compile(
    r"(?m)^\s*import\s+(?:static\s+)?([A-Za-z_][\w.]*?)(\.\*)?(?:\s+as\s+([A-Za-z_]\w*))?\s*;?\s*$"
)
_CLASS_DECL_PATTERN = re.compile(
    r"(?<![\w.:@])(enum\s+class|annotation\s+class|@interface|class|interface|object|enum|record)"
    r"\s+([A-Za-z_]\w*)"
)
_ANNOTATION_PATTERN = re.compile(r"@(?:[A-Za-z]+:)?([A-Za-z_][\w.]*)")
_KOTLIN_FUN_PATTERN = re.compile(r"(?<![\w.])fun\s+(?:<[^>{}]*>\s*)?([A-Za-z_][\w.]*)\s*\(")
_JAVA_METHOD_PATTERN = re.compile(
    r"(?<![\w.])([A-Za-z_][\w.]*(?:\s*<[^;{}()=]*>)?(?:\s*\[\s*\])*)\s+([A-Za-z_]\w*)\s*\("
)
_KOTLIN_PROPERTY_PATTERN = re.compile(
    r"(?<![\w.])(?:val|var)\s+([A-Za-z_]\w*)\s*:\s*([^=\n{]+)"
)
_JAVA_FIELD_PATTERN = re.compile(
    r"([A-Za-z_][\w.]*(?:\s*<[^;{}()=]*>)?(?:\s*\[\s*\])*)\s+([A-Za-z_]\w*)\s*(?:=[^;]*)?;"
)
_WORD_BEFORE = re.compile(r"([A-Za-z_]\w*)\s*$")


def mask_source(text: str) -> str:
    """Blank comments and string contents, keeping offsets and newlines intact."""
    chars = list(text)
    length = len(text)

    def blank(start: int, end: int) -> None:
        for position in range(start, min(end, length)):
            if chars[position] != "\n":
                chars[position] = " "

    index = 0
    while index < length:
        char = text[index]
        if char == "/" and text.startswith("//", index):
            end = text.find("\n", index)
            end = length if end < 0 else end
            blank(index, end)
            index = end
            continue
        if char == "/" and text.startswith("/*", index):
            end = text.find("*/", index + 2)
            end = length if end < 0 else end + 2
            blank(index, end)
            index = end
            continue
        if text.startswith('"""', index):
            end = text.find('"""', index + 3)
            end = length if end < 0 else end
            blank(index + 3, end)
            index = end + 3
            continue
        if char in {'"', "'"}:
            end = index + 1
            while end < length and text[end] != char and text[end] != "\n":
                end += 2 if text[end] == "\\" else 1
            blank(index + 1, end)
            index = end + 1
            continue
        index += 1
    return "".join(chars)


def find_matching(masked: str, open_index: int) -> int:
    """Index of the bracket closing the one at ``open_index``, or -1."""
    pairs = {"{": "}", "(": ")", "[": "]", "<": ">"}
    opener = masked[open_index]
    closer = pairs[opener]
    depth = 0
    for index in range(open_index, len(masked)):
        char = masked[index]
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return index
    return -1


def _flatten(masked: str, start: int, end: int) -> str:
    """Blank everything nested inside braces within ``masked[start:end]``."""
    chars = list(masked[start:end])
    depth = 0
    for index, char in enumerate(chars):
        if char == "{":
            depth += 1
            if depth > 1:
                chars[index] = " "
            continue
        if char == "}":
            depth -= 1
            if depth >= 1:
                chars[index] = " "
            continue
        if depth > 1 and char != "\n":
            chars[index] = " "
    return "".join(chars)


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside brackets and string literals."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    quote: Optional[str] = None
    escaped = False
    for char in text:
        if quote is not None:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in {'"', "'"}:
            quote = char
        elif char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(depth - 1, 0)
        elif char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


class _ImportResolver:
    def __init__(self, package: str, text: str) -> None:
        self.package = package
        self.explicit: Dict[str, str] = {}
        self.wildcards: List[str] = []
        for match in _IMPORT_PATTERN.finditer(text):
            target, star, alias = match.group(1), match.group(2), match.group(3)
            if star:
                self.wildcards.append(target)
            else:
                self.explicit[alias or target.rsplit(".", 1)[-1]] = target

    def resolve(self, name: str) -> str:
        if name in self.explicit:
            return self.explicit[name]
        head, _, rest = name.partition(".")
        if rest and head in self.explicit:
            return f"{self.explicit[head]}.{rest}"
        if "." in name and name[0].islower():
            return name
        for package in self.wildcards:
            if name in WELL_KNOWN_ANNOTATIONS.get(package, frozenset()):
                return f"{package}.{name}"
        return f"{self.package}.{name}" if self.package else name


@dataclass
class _ClassSpan:
    name: str
    kind: str
    decl_start: int
    header_end: int
    body_open: int
    body_close: int
    ctor: Optional[Tuple[int, int]]
    fqn: str = ""
    prefix_start: int = 0
    annotations: Tuple[AnnotationSymbol, ...] = ()
    modifiers: Set[str] = field(default_factory=set)


class _FileParser:
    def __init__(self, path: str, text: str) -> None:
        self.path = path
        self.text = text
        self.masked = mask_source(text)
        self.is_kotlin = path.endswith((".kt", ".kts"))
        self.package = package_of(self.masked)
        self.imports = _ImportResolver(self.package, self.masked)
        self.annotation_ends: Dict[int, Tuple[int, str, str]] = {}
        for match in _ANNOTATION_PATTERN.finditer(self.masked):
            name = match.group(1)
            if name == "interface":
                continue
            end = match.end()
            args = ""
            lookahead = end
            while lookahead < len(self.masked) and self.masked[lookahead] in " \t":
                lookahead += 1
            if lookahead < len(self.masked) and self.masked[lookahead] == "(":
                close = find_matching(self.masked, lookahead)
                if close > 0:
                    args = self.text[lookahead + 1 : close]
                    end = close + 1
            self.annotation_ends[end] = (match.start(), name, args)

    # -- helpers -----------------------------------------------------------

    def _annotation(self, name: str, args: str) -> AnnotationSymbol:
        arguments: List[Tuple[Optional[str], str]] = []
        for part in split_top_level(args):
            named = re.match(r"^([A-Za-z_]\w*)\s*=(?!=)\s*(.+)$", part, re.DOTALL)
            if named:
                arguments.append((named.group(1), named.group(2).strip()))
            else:
                arguments.append((None, part.strip()))
        return AnnotationSymbol(fqn=self.imports.resolve(name), arguments=tuple(arguments))

    def _prefix(self, position: int) -> Tuple[int, Tuple[AnnotationSymbol, ...], Set[str]]:
        """Annotations and modifiers directly before a declaration keyword."""
        annotations: List[AnnotationSymbol] = []
        modifiers: Set[str] = set()
        start = position
        cursor = position
        while cursor > 0:
            back = cursor
            while back > 0 and self.masked[back - 1].isspace():
                back -= 1
            if back in self.annotation_ends:
                ann_start, name, args = self.annotation_ends[back]
                annotations.insert(0, self._annotation(name, args))
                cursor = start = ann_start
                continue
            word = _WORD_BEFORE.search(self.masked, max(0, back - 40), back)
            if word and word.group(1) in _MODIFIERS:
                modifiers.add(word.group(1))
                cursor = start = word.start(1)
                continue
            break
        return start, tuple(annotations), modifiers

    def _parameters(self, raw: str) -> Tuple[ParameterSymbol, ...]:
        params: List[ParameterSymbol] = []
        for part in split_top_level(raw):
            remaining = part.strip()
            annotations: List[AnnotationSymbol] = []
            while remaining.startswith("@"):
                match = _ANNOTATION_PATTERN.match(remaining)
                if not match:
                    break
                name = match.group(1)
                rest = remaining[match.end() :]
                args = ""
                stripped = rest.lstrip()
                if stripped.startswith("("):
                    offset = len(rest) - len(stripped)
                    close = find_matching(mask_source(stripped), 0)
                    if close < 0:
                        break
                    args = stripped[1:close]
                    rest = rest[offset + close + 1 :]
                annotations.append(self._annotation(name, args))
                remaining = rest.strip()
            words = remaining.split()
            while words and words[0] in _MODIFIERS | {"val", "var", "vararg", "final"}:
                words.pop(0)
            remaining = " ".join(words)
            if not remaining:
                continue
            colon = _top_level_index(remaining, ":")
            if colon > 0:
                name = remaining[:colon].strip()
                type_text = remaining[colon + 1 :]
                default = _top_level_index(type_text, "=")
                if default >= 0:
                    type_text = type_text[:default]
            else:
                java = re.match(r"^(.*?)\s*([A-Za-z_]\w*)$", remaining, re.DOTALL)
                if not java or not java.group(1):
                    continue
                type_text, name = java.group(1), java.group(2)
            params.append(
                ParameterSymbol(
                    name=name.strip(),
                    type_text=_clean_type(type_text),
                    annotations=tuple(annotations),
                )
            )
        return tuple(params)

    # -- classes -----------------------------------------------------------

    def _scan_header(self, position: int) -> Tuple[int, int, Optional[Tuple[int, int]]]:
        masked = self.masked
        depth = 0
        ctor_start: Optional[int] = None
        ctor: Optional[Tuple[int, int]] = None
        seen_colon = False
        index = position
        while index < len(masked):
            char = masked[index]
            if char in "(<[":
                if char == "(" and depth == 0 and ctor is None and not seen_colon:
                    ctor_start = index
                depth += 1
            elif char in ")>]":
                depth = max(depth - 1, 0)
                if char == ")" and depth == 0 and ctor_start is not None and ctor is None:
                    ctor = (ctor_start + 1, index)
            elif depth == 0:
                if char == "{":
                    return index, index, ctor
                if char in ";}=":
                    return -1, index, ctor
                if char == ":":
                    seen_colon = True
                if char == "\n":
                    upcoming = masked[index + 1 : index + 200].lstrip()
                    if not upcoming.startswith(
                        ("{", ":", ",", "(", "<", ")", "implements", "extends", "where", "permits")
                    ):
                        return -1, index, ctor
            index += 1
        return -1, len(masked), ctor

    def _class_spans(self) -> List[_ClassSpan]:
        spans: List[_ClassSpan] = []
        for match in _CLASS_DECL_PATTERN.finditer(self.masked):
            keyword = " ".join(match.group(1).split())
            if keyword == "enum" and self.is_kotlin:
                continue
            kind = {
                "enum class": "enum",
                "enum": "enum",
                "interface": "interface",
                "@interface": "annotation",
                "annotation class": "annotation",
                "object": "object",
            }.get(keyword, "class")
            body_open, header_end, ctor = self._scan_header(match.end())
            body_close = find_matching(self.masked, body_open) if body_open >= 0 else -1
            prefix_start, annotations, modifiers = self._prefix(match.start())
            spans.append(
                _ClassSpan(
                    name=match.group(2),
                    kind=kind,
                    decl_start=match.start(),
                    header_end=header_end,
                    body_open=body_open,
                    body_close=body_close,
                    ctor=ctor,
                    prefix_start=prefix_start,
                    annotations=annotations,
                    modifiers=modifiers,
                )
            )

        stack: List[_ClassSpan] = []
        for span in spans:
            while stack and not (stack[-1].body_open < span.decl_start < stack[-1].body_close):
                stack.pop()
            parent = stack[-1].fqn if stack else self.package
            span.fqn = f"{parent}.{span.name}" if parent else span.name
            if span.body_open >= 0 and span.body_close > span.body_open:
                stack.append(span)
        return spans

    # -- members -----------------------------------------------------------

    def _member_view(self, span: _ClassSpan, spans: Sequence[_ClassSpan]) -> str:
        """Class body with nested bodies and nested class headers blanked."""
        view = list(_flatten(self.masked, span.body_open, span.body_close + 1))
        for other in spans:
            if other is span:
                continue
            if span.body_open < other.decl_start < span.body_close:
                for position in range(other.prefix_start, min(other.header_end, span.body_close)):
                    relative = position - span.body_open
                    if 0 <= relative < len(view) and view[relative] != "\n":
                        view[relative] = " "
        return "".join(view)

    def _methods(self, span: _ClassSpan, view: str) -> List[MethodSymbol]:
        methods: List[MethodSymbol] = []
        pattern = _KOTLIN_FUN_PATTERN if self.is_kotlin else _JAVA_METHOD_PATTERN
        for match in pattern.finditer(view):
            absolute = span.body_open + match.start()
            paren = span.body_open + match.end() - 1
            if self.is_kotlin:
                name = match.group(1).rsplit(".", 1)[-1]
                return_type = None
            else:
                type_text = match.group(1).strip()
                name = match.group(2)
                if type_text in _TYPE_KEYWORDS or type_text in _MODIFIERS or name in _TYPE_KEYWORDS:
                    continue
                return_type = _clean_type(type_text)
            close = find_matching(self.masked, paren)
            if close < 0:
                continue
            parameters = self._parameters(self.text[paren + 1 : close])
            end = close + 1
            tail = self.masked[end:]
            if self.is_kotlin:
                stripped = tail.lstrip()
                if stripped.startswith(":"):
                    type_match = re.match(r"\s*:\s*([^{=\n]+)", tail)
                    if type_match:
                        return_type = _clean_type(self.text[end + type_match.start(1) : end + type_match.end(1)])
                        end += type_match.end()
                else:
                    return_type = "Unit"
            else:
                throws = re.match(r"\s*throws[^{;]+", tail)
                if throws:
                    end += throws.end()
            body_end = self._declaration_end(end)
            prefix_start, annotations, modifiers = self._prefix(absolute)
            methods.append(
                MethodSymbol(
                    name=name,
                    owner_fqn=span.fqn,
                    return_type=return_type,
                    parameters=parameters,
                    annotations=annotations,
                    is_static="static" in modifiers,
                    file=self.path,
                    line=line_of(self.text, absolute),
                    source=self.text[prefix_start:body_end],
                )
            )
        return methods

    def _declaration_end(self, position: int) -> int:
        index = position
        while index < len(self.masked) and self.masked[index] in " \t\r\n":
            index += 1
        if index < len(self.masked) and self.masked[index] == "{":
            close = find_matching(self.masked, index)
            return close + 1 if close > 0 else len(self.masked)
        newline = self.masked.find("\n", index)
        return len(self.masked) if newline < 0 else newline

    def _fields(self, span: _ClassSpan, view: str) -> List[FieldSymbol]:
        fields: List[FieldSymbol] = []
        if self.is_kotlin:
            if span.ctor is not None:
                for param in split_top_level(self.text[span.ctor[0] : span.ctor[1]]):
                    cleaned = re.sub(r"@(?:[A-Za-z]+:)?[\w.]+(?:\([^)]*\))?", " ", param)
                    match = re.search(r"(?<![\w.])(?:val|var)\s+([A-Za-z_]\w*)\s*:\s*([^=]+)", cleaned)
                    if match:
                        fields.append(FieldSymbol(match.group(1), _clean_type(match.group(2))))
            for match in _KOTLIN_PROPERTY_PATTERN.finditer(view):
                start = span.body_open + match.start(2)
                end = span.body_open + match.end(2)
                fields.append(FieldSymbol(match.group(1), _clean_type(self.text[start:end])))
            return fields
        for match in _JAVA_FIELD_PATTERN.finditer(view):
            type_text = match.group(1).strip()
            if type_text in _TYPE_KEYWORDS or type_text in _MODIFIERS:
                continue
            absolute = span.body_open + match.start()
            _, _, modifiers = self._prefix(absolute)
            fields.append(
                FieldSymbol(match.group(2), _clean_type(type_text), is_static="static" in modifiers)
            )
        return fields

    def _enum_constants(self, view: str) -> Tuple[str, ...]:
        inner = view[1:-1] if view.startswith("{") else view
        section = inner.split(";", 1)[0]
        constants: List[str] = []
        for item in split_top_level(section):
            cleaned = re.sub(r"@[\w.]+(?:\([^)]*\))?", " ", item).strip()
            match = re.match(r"^([A-Za-z_]\w*)\s*(?:\(.*\))?\s*$", cleaned, re.DOTALL)
            if match:
                constants.append(match.group(1))
        return tuple(constants)

    def parse(self) -> List[ClassSymbol]:
        spans = self._class_spans()
        classes: List[ClassSymbol] = []
        for span in spans:
            methods: List[MethodSymbol] = []
            fields: List[FieldSymbol] = []
            enum_constants: Tuple[str, ...] = ()
            if span.body_open >= 0 and span.body_close > span.body_open:
                view = self._member_view(span, spans)
                methods = self._methods(span, view)
                fields = self._fields(span, view)
                if span.kind == "enum":
                    enum_constants = self._enum_constants(view)
            elif self.is_kotlin:
                fields = self._fields(span, "")
            classes.append(
                ClassSymbol(
                    fqn=span.fqn,
                    kind=span.kind,
                    annotations=span.annotations,
                    fields=_distinct_fields(fields),
                    methods=tuple(methods),
                    enum_constants=enum_constants,
                    file=self.path,
                    line=line_of(self.text, span.decl_start),
                )
            )
        return classes


def _top_level_index(text: str, target: str) -> int:
    depth = 0
    for index, char in enumerate(text):
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(depth - 1, 0)
        elif char == target and depth == 0:
            return index
    return -1


def _clean_type(type_text: str) -> str:
    return " ".join(type_text.split()).replace("< ", "<").replace(" >", ">")


def _distinct_fields(fields: Sequence[FieldSymbol]) -> Tuple[FieldSymbol, ...]:
    seen: Set[str] = set()
    result: List[FieldSymbol] = []
    for item in fields:
        if item.name in seen:
            continue
        seen.add(item.name)
        result.append(item)
    return tuple(result)


def parse_declarations(path: str, text: str) -> List[ClassSymbol]:
    """Parse class-level declarations from one Kotlin or Java file."""
    return _FileParser(path, text).parse()


__all__ = [
    "AnnotationSymbol",
    "ClassSymbol",
    "FieldSymbol",
    "InMemorySymbolIndex",
    "MethodSymbol",
    "ParameterSymbol",
    "RETROFIT_HTTP_PACKAGE",
    "SourceSymbolIndex",
    "WELL_KNOWN_ANNOTATIONS",
    "mask_source",
    "parse_declarations",
    "split_top_level",
]
