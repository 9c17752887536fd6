from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .extract import ExtractionOutcome, Status
from .ts_utils import ParseDiagnostic


@dataclass
class SplitReport:
    module_path: Path
    dry_run: bool = False
    outcomes: List[ExtractionOutcome] = field(default_factory=list)
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)
    blocked: bool = False
    rewritten: bool = False
    backup_path: Optional[Path] = None

    @property
    def extracted_count(self) -> int:
        if self.blocked:
            return 0
        if self.dry_run:
            return sum(1 for o in self.outcomes if o.status is Status.WRITE)
        return len(self.written)

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.outcomes if o.is_skip)

    @property
    def withheld_count(self) -> int:
        if not self.blocked:
            return 0
        return sum(1 for o in self.outcomes if o.status is Status.WRITE)

    @property
    def ok(self) -> bool:
        return not self.blocked

    def action_for(self, outcome: ExtractionOutcome) -> str:
        if outcome.is_skip:
            return f"skip ({outcome.reason.value})"
        if self.blocked:
            return "withheld"
        if self.dry_run:
            return "would write"
        if outcome.path in self.written:
            return "written"
        return "not written"

    def all_warnings(self) -> List[str]:
        return [f"parse: {d}" for d in self.diagnostics] + list(self.warnings)

    def pretty_print(self, max_width: int = 80) -> str:
        """
        Markdown table of per-callable outcomes followed by stats.

        Columns:
          | # | Callable | Kind | Lines | Action | Target |
        """
        headers = ["#", "Callable", "Kind", "Lines", "Action", "Target"]
        md_lines = [f"**{self.module_path.name}**" + (" (dry run)" if self.dry_run else ""), ""]
        if self.outcomes:
            md_lines.append("| " + " | ".join(headers) + " |")
            md_lines.append("|" + "|".join(["---"] * len(headers)) + "|")
            for idx, o in enumerate(self.outcomes, 1):
                fn = o.function
                target = str(o.path) if o.path else ""
                row = [
                    str(idx),
                    fn.name,
                    fn.keyword,
                    f"{fn.start_line}-{fn.end_line}",
                    self.action_for(o),
                    textwrap.shorten(target, width=max_width, placeholder="…"),
                ]
                md_lines.append("| " + " | ".join(row) + " |")
        else:
            md_lines.append("No top-level callables found; nothing to do.")

        stats = [
            "",
            "**Stats:**",
            f"- Extracted: {self.extracted_count}",
            f"- Skipped: {self.skipped_count}",
        ]
        if self.blocked:
            stats.append(f"- Withheld: {self.withheld_count} (module left unchanged)")
        if self.dry_run and self.outcomes and not self.blocked:
            stats.append(f"- Would remove {len(self.outcomes)} span(s) from {self.module_path.name}")
            if self.backup_path:
                stats.append(f"- Would back up to: {self.backup_path}")
        elif self.rewritten:
            stats.append(f"- Module rewritten; backup: {self.backup_path}")

        warnings = self.all_warnings()
        if warnings:
            stats.append("")
            stats.append("**Warnings:**")
            for w in warnings:
                stats.append(f"- {w}")
        return "\n".join(md_lines + stats)
