"""Optional tree-sitter view of Kotlin and Java method bodies.

The view is reduced to plain data (:class:`MethodSyntax`, :class:`CallSite`) so
that everything downstream can be exercised without a parser installed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..logging import get_logger

try:  # pragma: no cover - optional dependency
    from tree_sitter import Parser
    from tree_sitter_languages import get_language

    TREE_SITTER_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    Parser = None  # type: ignore[assignment]
    get_language = None  # type: ignore[assignment]
    TREE_SITTER_AVAILABLE = False

_logger = get_logger("scanners.syntax")

_CLASS_NODES = {
    "class_declaration",
    "interface_declaration",
    "enum_declaration",
    "object_declaration",
    "record_declaration",
}
_JAVA_METHOD_NODES = {"method_declaration"}
_KOTLIN_METHOD_NODES = {"function_declaration"}


@dataclass(frozen=True)
class CallSite:
    """A method call: ``receiver.method_name(arguments...)``."""

    method_name: str
    receiver: str
    arguments: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MethodSyntax:
    name: str
    offset: int
    owner: Tuple[str, ...]
    parameters: Tuple[Tuple[str, str], ...]
    return_type: Optional[str]
    source: str
    calls: Tuple[CallSite, ...] = ()

    def signature_text(self) -> str:
        return ",".join(f"{name}:{type_text}" for name, type_text in self.parameters)


def language_for_path(path: str) -> Optional[str]:
    lower = path.lower()
    if lower.endswith(".java"):
        return "java"
    if lower.endswith((".kt", ".kts")):
        return "kotlin"
    return None


class SyntaxReader:
    """Parses files into :class:`MethodSyntax` records, one parser per language."""

    def __init__(self, enabled: Optional[bool] = None) -> None:
        self._enabled = TREE_SITTER_AVAILABLE if enabled is None else enabled and TREE_SITTER_AVAILABLE
        self._parsers: Dict[str, Parser] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    def methods(self, path: str, text: str) -> List[MethodSyntax]:
        if not self._enabled:
            return []
        language_key = language_for_path(path)
        if language_key is None:
            return []
        parser = self._get_parser(language_key)
        if parser is None:
            return []
        source_bytes = text.encode("utf-8")
        tree = parser.parse(source_bytes)
        reader = _TreeWalker(language_key, source_bytes)
        return reader.collect(tree.root_node)

    def _get_parser(self, language_key: str) -> Optional[Parser]:
        parser = self._parsers.get(language_key)
        if parser is not None:
            return parser
        if not TREE_SITTER_AVAILABLE:
            return None
        language = get_language(language_key)
        parser = Parser()
        if hasattr(parser, "set_language"):
            parser.set_language(language)
        else:
            parser.language = language
        self._parsers[language_key] = parser
        return parser


class _TreeWalker:
    def __init__(self, language_key: str, source_bytes: bytes) -> None:
        self.language_key = language_key
        self.source_bytes = source_bytes

    def text(self, node) -> str:  # type: ignore[no-untyped-def]
        return self.source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")

    def char_offset(self, node) -> int:  # type: ignore[no-untyped-def]
        return len(self.source_bytes[: node.start_byte].decode("utf-8", errors="ignore"))

    def collect(self, root) -> List[MethodSyntax]:  # type: ignore[no-untyped-def]
        methods: List[MethodSyntax] = []
        stack = [(root, ())]
        while stack:
            node, owner = stack.pop()
            if node.type in _CLASS_NODES:
                name = self._class_name(node)
                if name:
                    owner = owner + (name,)
            if self.language_key == "java" and node.type in _JAVA_METHOD_NODES:
                method = self._java_method(node, owner)
                if method is not None:
                    methods.append(method)
            elif self.language_key == "kotlin" and node.type in _KOTLIN_METHOD_NODES:
                method = self._kotlin_method(node, owner)
                if method is not None:
                    methods.append(method)
            for child in reversed(node.children):
                stack.append((child, owner))
        methods.sort(key=lambda item: item.offset)
        return methods

    def _class_name(self, node) -> Optional[str]:  # type: ignore[no-untyped-def]
        name_node = node.child_by_field_name("name")
        if name_node is None:
            name_node = next(
                (child for child in node.children if child.type in {"type_identifier", "simple_identifier"}),
                None,
            )
        return self.text(name_node) if name_node is not None else None

    # -- Java ----------------------------------------------------------------

    def _java_method(self, node, owner: Tuple[str, ...]) -> Optional[MethodSyntax]:  # type: ignore[no-untyped-def]
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        parameters: List[Tuple[str, str]] = []
        params_node = node.child_by_field_name("parameters")
        if params_node is not None:
            for child in params_node.named_children:
                if child.type not in {"formal_parameter", "spread_parameter"}:
                    continue
                type_node = child.child_by_field_name("type")
                param_name = child.child_by_field_name("name")
                if type_node is None or param_name is None:
                    continue
                parameters.append((self.text(param_name), self.text(type_node)))
        type_node = node.child_by_field_name("type")
        body = node.child_by_field_name("body")
        return MethodSyntax(
            name=self.text(name_node),
            offset=self.char_offset(node),
            owner=owner,
            parameters=tuple(parameters),
            return_type=self.text(type_node) if type_node is not None else None,
            source=self.text(node),
            calls=tuple(self._java_calls(body)) if body is not None else (),
        )

    def _java_calls(self, body) -> List[CallSite]:  # type: ignore[no-untyped-def]
        calls: List[CallSite] = []
        stack = [body]
        while stack:
            node = stack.pop()
            if node.type == "method_invocation":
                name_node = node.child_by_field_name("name")
                receiver = node.child_by_field_name("object")
                arguments = node.child_by_field_name("arguments")
                if name_node is not None:
                    calls.append(
                        CallSite(
                            method_name=self.text(name_node),
                            receiver=self.text(receiver) if receiver is not None else "",
                            arguments=tuple(
                                self.text(arg) for arg in (arguments.named_children if arguments else [])
                            ),
                        )
                    )
            stack.extend(reversed(node.children))
        return calls

    # -- Kotlin --------------------------------------------------------------

    def _kotlin_method(self, node, owner: Tuple[str, ...]) -> Optional[MethodSyntax]:  # type: ignore[no-untyped-def]
        name: Optional[str] = None
        parameters: List[Tuple[str, str]] = []
        return_type: Optional[str] = None
        body = None
        seen_params = False
        for child in node.children:
            if child.type == "simple_identifier" and name is None:
                name = self.text(child)
            elif child.type == "function_value_parameters":
                seen_params = True
                for param in child.named_children:
                    if param.type != "parameter":
                        continue
                    ident = next((c for c in param.named_children if c.type == "simple_identifier"), None)
                    type_node = next((c for c in param.named_children if c.type != "simple_identifier"), None)
                    if ident is not None and type_node is not None:
                        parameters.append((self.text(ident), self.text(type_node)))
            elif child.type == "function_body":
                body = child
            elif seen_params and child.type in {"user_type", "nullable_type", "function_type"}:
                return_type = self.text(child)
        if not name:
            return None
        return MethodSyntax(
            name=name,
            offset=self.char_offset(node),
            owner=owner,
            parameters=tuple(parameters),
            return_type=return_type,
            source=self.text(node),
            calls=tuple(self._kotlin_calls(body)) if body is not None else (),
        )

    def _kotlin_calls(self, body) -> List[CallSite]:  # type: ignore[no-untyped-def]
        calls: List[CallSite] = []
        stack = [body]
        while stack:
            node = stack.pop()
            if node.type == "call_expression" and node.children:
                callee = node.children[0]
                suffix = next((c for c in node.children if c.type == "call_suffix"), None)
                call = self._kotlin_call(callee, suffix)
                if call is not None:
                    calls.append(call)
            stack.extend(reversed(node.children))
        return calls

    def _kotlin_call(self, callee, suffix) -> Optional[CallSite]:  # type: ignore[no-untyped-def]
        arguments: Tuple[str, ...] = ()
        if suffix is not None:
            value_arguments = next((c for c in suffix.children if c.type == "value_arguments"), None)
            if value_arguments is not None:
                arguments = tuple(
                    self.text(arg) for arg in value_arguments.named_children if arg.type == "value_argument"
                )
        if callee.type == "navigation_expression" and len(callee.children) >= 2:
            nav_suffix = callee.children[-1]
            ident = next((c for c in nav_suffix.children if c.type == "simple_identifier"), None)
            if ident is None:
                return None
            return CallSite(
                method_name=self.text(ident),
                receiver=self.text(callee.children[0]),
                arguments=arguments,
            )
        if callee.type == "simple_identifier":
            return CallSite(method_name=self.text(callee), receiver="", arguments=arguments)
        return None


__all__ = [
    "CallSite",
    "MethodSyntax",
    "SyntaxReader",
    "TREE_SITTER_AVAILABLE",
    "language_for_path",
]
