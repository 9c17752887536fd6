"""
Rewriting of the original module once every callable has a confirmed target file.

Spans are removed from a copy of the original bytes in descending start order so
that the offsets recorded by the parser stay valid for every remaining span.
Whatever is left is normalised, scanned for ``Export-ModuleMember`` calls that
cannot be merged automatically, and followed by the generated loader block.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Collection, FrozenSet, Iterable, List, Tuple

from tree_sitter import Node

from .config import LOADER_REGION, NODESETS, PUBLISH_DIRECTIVE, STRING_NODE_SUFFIXES
from .extract import ExtractionPlan
from .locator import FunctionNode
from .ts_utils import SourceDocument, node_text, parse_source

log = logging.getLogger(__name__)

_LOADER_BLOCK = re.compile(
    r"^[ \t]*#region[ \t]+" + re.escape(LOADER_REGION) + r".*?^[ \t]*#endregion[^\r\n]*(?:\r?\n)?",
    re.MULTILINE | re.DOTALL,
)


@dataclass(frozen=True)
class RewritePlan:
    spans: List[FunctionNode]  # descending by start_byte
    loader: str


@dataclass
class RewriteResult:
    text: str
    directive_lines: List[int] = field(default_factory=list)
    replaced_loader: bool = False
    warnings: List[str] = field(default_factory=list)


def build_rewrite_plan(plan: ExtractionPlan, loader: str) -> RewritePlan:
    if plan.any_skip:
        raise ValueError("A rewrite plan requires an extraction plan without skips")
    spans = sorted((o.function for o in plan.writes), key=lambda f: f.start_byte, reverse=True)
    return RewritePlan(spans=spans, loader=loader)


def remove_spans(data: bytes, spans: Iterable[Tuple[int, int]]) -> bytes:
    """Delete ``[start, end)`` ranges from ``data``; ranges must not overlap."""
    buf = bytearray(data)
    floor = len(buf) + 1
    for start, end in sorted(spans, key=lambda s: s[0], reverse=True):
        if not (0 <= start <= end <= len(data)):
            raise ValueError(f"Span ({start}, {end}) outside of {len(data)} bytes")
        if end > floor:
            raise ValueError(f"Span ({start}, {end}) overlaps a span starting at {floor}")
        del buf[start:end]
        floor = start
    return bytes(buf)


def string_literal_rows(text: str) -> FrozenSet[int]:
    """0-based rows that sit inside a multi-line string or here-string of ``text``.

    The row a literal opens on is not included; its blank-line content starts
    on the next row.
    """
    doc = parse_source(text)
    rows: set[int] = set()

    def visit(n: Node) -> None:
        if n.is_named and n.type.endswith(STRING_NODE_SUFFIXES):
            start_row, end_row = n.start_point[0], n.end_point[0]
            rows.update(range(start_row + 1, end_row + 1))
            return
        for ch in n.children:
            visit(ch)

    visit(doc.root)
    return frozenset(rows)


def collapse_blank_lines(text: str, protected_rows: Collection[int] = frozenset()) -> str:
    """Turn runs of three or more blank lines into one and trim surrounding whitespace lines.

    Rows in ``protected_rows`` (string literal content) are kept as they are and
    break a run.
    """
    out: List[str] = []
    run: List[str] = []

    def flush() -> None:
        if len(run) >= 3:
            out.append("\r" if run[0].endswith("\r") else "")
        else:
            out.extend(run)
        run.clear()

    for row, line in enumerate(text.split("\n")):
        if not line.strip() and row not in protected_rows:
            if out:
                run.append(line)
            continue
        flush()
        out.append(line)
    flush()
    return "\n".join(out).rstrip()


def strip_loader_block(text: str) -> Tuple[str, bool]:
    stripped, n = _LOADER_BLOCK.subn("", text)
    return stripped, n > 0


def find_publish_directives(text: str) -> List[int]:
    """1-based lines of Export-ModuleMember commands found in ``text``."""
    if PUBLISH_DIRECTIVE not in text.lower():
        return []
    doc = parse_source(text)
    lines: List[int] = []

    def visit(n: Node) -> None:
        if n.type in NODESETS["command_name"]:
            # module-qualified form: Microsoft.PowerShell.Core\Export-ModuleMember
            name = node_text(n, doc.source_bytes).strip().rsplit("\\", 1)[-1]
            if name.lower() == PUBLISH_DIRECTIVE:
                lines.append(n.start_point[0] + 1)
            return
        for ch in n.children:
            visit(ch)

    visit(doc.root)
    return lines


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def render_loader(public_dir: str, private_dir: str, extension: str = ".ps1", newline: str = "\n") -> str:
    pattern = _ps_quote(f"*{extension}")
    lines = [
        f"#region {LOADER_REGION}",
        f"$Private = @(Get-ChildItem -Path (Join-Path -Path $PSScriptRoot -ChildPath {_ps_quote(private_dir)}) "
        f"-Filter {pattern} -File -ErrorAction SilentlyContinue | Sort-Object -Property Name)",
        f"$Public = @(Get-ChildItem -Path (Join-Path -Path $PSScriptRoot -ChildPath {_ps_quote(public_dir)}) "
        f"-Filter {pattern} -File -ErrorAction SilentlyContinue | Sort-Object -Property Name)",
        "",
        "# internal helpers first: published functions may call them",
        "foreach ($Import in @($Private + $Public)) {",
        "    try {",
        "        . $Import.FullName",
        "    }",
        "    catch {",
        '        Write-Error -Message "Failed to import function $($Import.FullName): $_"',
        "    }",
        "}",
        "",
        "Export-ModuleMember -Function $Public.BaseName",
        "#endregion",
    ]
    return newline.join(lines) + newline


def apply_rewrite(document: SourceDocument, rewrite_plan: RewritePlan) -> RewriteResult:
    newline = document.newline
    remaining = remove_spans(
        document.source_bytes,
        [(f.start_byte, f.end_byte) for f in rewrite_plan.spans],
    ).decode("utf-8")

    remaining, replaced = strip_loader_block(remaining)
    if replaced:
        log.info("Replacing previously generated loader block")
    remaining = collapse_blank_lines(remaining, string_literal_rows(remaining))

    result = RewriteResult(text="", replaced_loader=replaced)
    result.directive_lines = find_publish_directives(remaining)
    for line in result.directive_lines:
        msg = (f"Export-ModuleMember left in module code (line {line} of the rewritten module); "
               f"it is not merged with the generated export list")
        log.warning(msg)
        result.warnings.append(msg)

    if remaining:
        result.text = remaining + newline + newline + rewrite_plan.loader
    else:
        result.text = rewrite_plan.loader
    return result
