from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from tree_sitter import Language, Node, Parser, Tree
from tree_sitter_language_pack import get_language

from .config import LANGUAGE_NAME, NODESETS

_LANGUAGE: Language | None = None


@dataclass(frozen=True)
class ParseDiagnostic:
    line: int  # 1-based
    column: int
    message: str
    start_byte: int = 0
    end_byte: int = 0

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}: {self.message}"


@dataclass(frozen=True)
class SourceDocument:
    """Original module text and the tree parsed from it. Never mutated."""
    text: str
    source_bytes: bytes
    tree: Tree
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def newline(self) -> str:
        return "\r\n" if "\r\n" in self.text else "\n"


def load_language() -> Language:
    # Load the compiled grammar once
    global _LANGUAGE
    if _LANGUAGE is None:
        _LANGUAGE = get_language(LANGUAGE_NAME)
    return _LANGUAGE


def create_parser(lang: Language) -> Parser:
    return Parser(lang)


def node_text(node: Node, src: bytes) -> str:
    return src[node.start_byte: node.end_byte].decode("utf-8", errors="replace")


def collect_diagnostics(root: Node, src: bytes) -> List[ParseDiagnostic]:
    """ERROR and missing nodes, in document order."""
    out: List[ParseDiagnostic] = []

    def visit(n: Node) -> None:
        if n.is_missing:
            out.append(ParseDiagnostic(n.start_point[0] + 1, n.start_point[1], f"missing '{n.type}'",
                                       n.start_byte, n.end_byte))
            return
        if n.type in NODESETS["error"]:
            snippet = node_text(n, src).strip().splitlines()
            near = snippet[0][:40] if snippet else ""
            out.append(ParseDiagnostic(n.start_point[0] + 1, n.start_point[1], f"syntax error near {near!r}",
                                       n.start_byte, n.end_byte))
            return
        if n.has_error:
            for ch in n.children:
                visit(ch)

    if root.has_error:
        visit(root)
    return out


def parse_source(text: str) -> SourceDocument:
    source_bytes = text.encode("utf-8")
    parser = create_parser(load_language())
    tree = parser.parse(source_bytes)
    return SourceDocument(
        text=text,
        source_bytes=source_bytes,
        tree=tree,
        diagnostics=collect_diagnostics(tree.root_node, source_bytes),
    )
