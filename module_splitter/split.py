"""
Split a PowerShell script module into one file per top-level callable.

Flow: parse -> locate -> plan extractions -> guard -> rewrite -> backup ->
write extracted files -> overwrite. Every decision is taken before the first write;
in dry-run mode the run stops there and only reports what would happen.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .backup import backup_path_for, create_backup
from .config import SplitterConfig
from .extract import plan_extractions, write_extractions
from .io import read_module, resolve_module_path, write_text
from .locator import diagnostics_outside, locate_functions
from .report import SplitReport
from .rewrite import apply_rewrite, build_rewrite_plan, render_loader
from .ts_utils import parse_source

log = logging.getLogger(__name__)


def split_module(path: Union[str, Path], config: Optional[SplitterConfig] = None) -> SplitReport:
    """Extract every top-level callable of ``path`` and rewrite the module around a loader.

    :param path: Path to the ``.psm1`` file.
    :param config: Run configuration; only ``dry_run`` changes behaviour, the
        other fields name the directories, extension and backup suffix.
    :return: Report with per-callable outcomes and warnings.
    :raises InputError: If the module cannot be used as input.
    :raises WriteError: If an extracted file or the module cannot be written.
    :raises BackupError: If the module cannot be backed up before the overwrite.
    """
    config = config or SplitterConfig()
    module_path = resolve_module_path(path)
    text, has_bom = read_module(module_path)
    document = parse_source(text)
    functions = locate_functions(document)

    report = SplitReport(module_path=module_path, dry_run=config.dry_run,
                         diagnostics=diagnostics_outside(document.diagnostics, functions))
    for diag in report.diagnostics:
        log.warning("Parse problem in %s at %s; callables in that region may be missed", module_path.name, diag)

    if not functions:
        log.info("No top-level callables in %s; nothing to do", module_path.name)
        return report

    plan = plan_extractions(
        functions,
        module_path.parent / config.public_dir,
        extension=config.extension,
    )
    report.outcomes = list(plan.outcomes)

    if plan.any_skip:
        report.blocked = True
        log.warning(
            "%d of %d callables cannot be extracted; %s is left unchanged and nothing was written",
            len(plan.skips), len(plan.outcomes), module_path.name,
        )
        return report

    loader = render_loader(config.public_dir, config.private_dir, config.extension, document.newline)
    rewrite_plan = build_rewrite_plan(plan, loader)
    result = apply_rewrite(document, rewrite_plan)
    report.warnings.extend(result.warnings)

    if config.dry_run:
        report.backup_path = backup_path_for(module_path, config.backup_suffix)
        for outcome in plan.writes:
            log.info("[dry-run] would write %s (%d bytes)", outcome.path, len(outcome.function.text.encode("utf-8")))
        for fn in rewrite_plan.spans:
            log.info("[dry-run] would remove %s '%s' (lines %d-%d)", fn.keyword, fn.name, fn.start_line, fn.end_line)
        log.info("[dry-run] would back up %s to %s", module_path.name, report.backup_path)
        return report

    report.backup_path = create_backup(module_path, config.backup_suffix)
    # Not transactional: a WriteError here leaves earlier files in place.
    report.written = write_extractions(plan, bom=has_bom)
    write_text(module_path, result.text, bom=has_bom)
    report.rewritten = True
    log.info("Rewrote %s: %d callables extracted", module_path.name, len(report.written))
    return report
