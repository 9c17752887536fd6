from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from tree_sitter import Node, TreeCursor

from .config import NODESETS
from .locator import locate_functions
from .ts_utils import parse_source


@dataclass
class DumpOpts:
    show_text: bool = True
    text_limit: int = 60
    max_nodes: int = 5000
    max_depth: Optional[int] = None
    show_bytes: bool = False
    indent: str = "  "


def _span_str(n: Node) -> str:
    sL, sC = n.start_point
    eL, eC = n.end_point
    return f"{sL+1}:{sC}-{eL+1}:{eC}"


def _snippet(n: Node, src: bytes, limit: int) -> str:
    s = src[n.start_byte:n.end_byte].decode("utf-8", errors="replace")
    s = s.replace("\r", "").replace("\n", " ")
    if len(s) > limit:
        s = s[:limit] + "…"
    return s


def _field_name(cur: TreeCursor) -> Optional[str]:
    name = cur.field_name
    if isinstance(name, bytes):
        name = name.decode("utf-8", errors="replace")
    return name


def _dump(root: Node, src: bytes, opts: DumpOpts, marked: set[int]) -> List[str]:
    cur = root.walk()
    lines: List[str] = []
    count = 0

    def emit(n: Node, depth: int, field: Optional[str]) -> None:
        nonlocal count
        pieces = [opts.indent * depth]
        if n.start_byte in marked and n.type in NODESETS["function"]:
            pieces.append("* ")
        if field:
            pieces.append(f"{field}: ")
        pieces += [n.type, f" [{_span_str(n)}]"]
        if opts.show_bytes:
            pieces.append(f" <{n.start_byte}-{n.end_byte}>")
        if opts.show_text and n.is_named:
            pieces += [" :: ", _snippet(n, src, opts.text_limit)]
        lines.append("".join(pieces))
        count += 1

    def walk(depth: int) -> None:
        if count >= opts.max_nodes:
            return
        emit(cur.node, depth, _field_name(cur))
        if opts.max_depth is not None and depth >= opts.max_depth:
            return
        if cur.goto_first_child():
            try:
                while True:
                    walk(depth + 1)
                    if not cur.goto_next_sibling():
                        break
            finally:
                cur.goto_parent()

    walk(0)
    if count >= opts.max_nodes:
        lines.append(f"{opts.indent}… (truncated at {opts.max_nodes} nodes)")
    return lines


def module_ast_to_string(source_code: str, filename: str = "<module>", opts: Optional[DumpOpts] = None) -> str:
    """Dump the module tree; callables that would be extracted are marked with ``*``."""
    if opts is None:
        opts = DumpOpts()
    doc = parse_source(source_code)
    located = locate_functions(doc)
    header = [
        f"# file={filename}",
        f"# top-level callables: {', '.join(f.name for f in located) or '-'}",
    ]
    for d in doc.diagnostics:
        header.append(f"# diagnostic: {d}")
    header.append("")
    return "\n".join(header + _dump(doc.root, doc.source_bytes, opts, {f.start_byte for f in located}))
