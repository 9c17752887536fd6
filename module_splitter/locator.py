from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from tree_sitter import Node

from .config import FILTER_KEYWORD, NODESETS, SCOPE_QUALIFIERS
from .ts_utils import ParseDiagnostic, SourceDocument, node_text

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionNode:
    name: str
    keyword: str  # function | filter | workflow
    start_byte: int
    end_byte: int
    start_line: int  # 1-based
    end_line: int
    text: str

    @property
    def is_filter(self) -> bool:
        return self.keyword == FILTER_KEYWORD

    @property
    def file_stem(self) -> str:
        """Name without a scope qualifier such as ``script:``."""
        lowered = self.name.lower()
        for prefix in SCOPE_QUALIFIERS:
            if lowered.startswith(prefix):
                return self.name[len(prefix):]
        return self.name


def _function_name(n: Node, src: bytes) -> Optional[str]:
    for ch in n.children:
        if ch.type in NODESETS["function_name"]:
            return node_text(ch, src).strip()
    # grammar builds without a function_name node: keyword is followed by the name
    if len(n.children) > 1:
        return node_text(n.children[1], src).strip() or None
    return None


def _to_function_node(n: Node, src: bytes) -> Optional[FunctionNode]:
    name = _function_name(n, src)
    if not name:
        log.warning("Skipping callable without a name at line %d", n.start_point[0] + 1)
        return None
    keyword = node_text(n.children[0], src).lower() if n.children else "function"
    return FunctionNode(
        name=name,
        keyword=keyword,
        start_byte=n.start_byte,
        end_byte=n.end_byte,
        start_line=n.start_point[0] + 1,
        end_line=n.end_point[0] + 1,
        text=node_text(n, src),
    )


def locate_functions(document: SourceDocument) -> List[FunctionNode]:
    """Callable statements that sit directly in the module's outermost statement list.

    Only wrapper nodes of that list are descended; callable bodies, control-flow
    blocks and ERROR regions are not, so nested helpers stay inside their parent.
    """
    src = document.source_bytes
    found: List[FunctionNode] = []

    def walk(n: Node) -> None:
        for ch in n.children:
            if ch.type in NODESETS["function"]:
                fn = _to_function_node(ch, src)
                if fn is not None:
                    found.append(fn)
            elif ch.type in NODESETS["top_level_container"]:
                walk(ch)

    walk(document.root)
    log.debug("Located %d top-level callables: %s", len(found), [f.name for f in found])
    return found


def diagnostics_outside(diagnostics: Iterable[ParseDiagnostic], functions: Iterable[FunctionNode]) -> List[ParseDiagnostic]:
    """Drop diagnostics that lie entirely inside a located callable.

    Callable text is copied verbatim, so a grammar complaint inside it does not
    affect what gets extracted or what is left in the module.
    """
    spans = [(f.start_byte, f.end_byte) for f in functions]
    kept: List[ParseDiagnostic] = []
    for d in diagnostics:
        if any(start <= d.start_byte and d.end_byte <= end for start, end in spans):
            log.debug("Ignoring parse problem inside an extracted callable: %s", d)
            continue
        kept.append(d)
    return kept
