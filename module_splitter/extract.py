from __future__ import annotations

import enum
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .io import write_text_exclusive
from .locator import FunctionNode

log = logging.getLogger(__name__)

_INVALID_STEM = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class Status(str, enum.Enum):
    WRITE = "write"
    SKIP = "skip"


class SkipReason(str, enum.Enum):
    ALREADY_EXISTS = "AlreadyExists"
    DUPLICATE_NAME = "DuplicateName"
    INVALID_NAME = "InvalidName"


@dataclass(frozen=True)
class ExtractionOutcome:
    function: FunctionNode
    status: Status
    path: Optional[Path] = None
    reason: Optional[SkipReason] = None

    @classmethod
    def write(cls, function: FunctionNode, path: Path) -> "ExtractionOutcome":
        return cls(function, Status.WRITE, path=path)

    @classmethod
    def skip(cls, function: FunctionNode, reason: SkipReason, path: Optional[Path] = None) -> "ExtractionOutcome":
        return cls(function, Status.SKIP, path=path, reason=reason)

    @property
    def is_skip(self) -> bool:
        return self.status is Status.SKIP


def any_skip(outcomes: Iterable[ExtractionOutcome]) -> bool:
    """True if one collision must withhold the rewrite of the whole module."""
    return any(o.is_skip for o in outcomes)


@dataclass(frozen=True)
class ExtractionPlan:
    outcomes: List[ExtractionOutcome] = field(default_factory=list)

    @property
    def any_skip(self) -> bool:
        return any_skip(self.outcomes)

    @property
    def writes(self) -> List[ExtractionOutcome]:
        return [o for o in self.outcomes if o.status is Status.WRITE]

    @property
    def skips(self) -> List[ExtractionOutcome]:
        return [o for o in self.outcomes if o.is_skip]


def output_path_for(function: FunctionNode, public_dir: Path, extension: str) -> Path:
    return public_dir / f"{function.file_stem}{extension}"


def _is_valid_stem(stem: str) -> bool:
    return bool(stem) and stem not in {".", ".."} and not _INVALID_STEM.search(stem)


def plan_extractions(
    functions: Iterable[FunctionNode],
    public_dir: Path,
    *,
    extension: str = ".ps1",
    exists: Callable[[Path], bool] = os.path.exists,
) -> ExtractionPlan:
    """Decide Write/Skip per callable from a snapshot of which target files exist.

    Pure apart from the ``exists`` callable; nothing is written here.
    """
    outcomes: List[ExtractionOutcome] = []
    claimed: set[str] = set()
    for fn in functions:
        if not _is_valid_stem(fn.file_stem):
            log.warning("Cannot derive a file name from callable '%s'", fn.name)
            outcomes.append(ExtractionOutcome.skip(fn, SkipReason.INVALID_NAME))
            continue
        path = output_path_for(fn, public_dir, extension)
        key = fn.file_stem.lower()
        if key in claimed:
            log.warning("Callable '%s' is defined more than once; %s already claimed", fn.name, path.name)
            outcomes.append(ExtractionOutcome.skip(fn, SkipReason.DUPLICATE_NAME, path))
            continue
        claimed.add(key)
        if exists(path):
            log.warning("Target %s already exists; skipping '%s'", path, fn.name)
            outcomes.append(ExtractionOutcome.skip(fn, SkipReason.ALREADY_EXISTS, path))
            continue
        log.debug("Planned %s -> %s", fn.name, path)
        outcomes.append(ExtractionOutcome.write(fn, path))
    return ExtractionPlan(outcomes)


def write_extractions(plan: ExtractionPlan, bom: bool = False) -> List[Path]:
    """Write every planned file verbatim, with a UTF-8 BOM when the module had one.

    Raises WriteError on the first failure; files written before it are kept.
    """
    if plan.any_skip:
        raise ValueError("Refusing to write extractions from a plan that contains skips")
    written: List[Path] = []
    for outcome in plan.writes:
        write_text_exclusive(outcome.path, outcome.function.text, bom=bom)
        log.info("Extracted %s -> %s", outcome.function.name, outcome.path)
        written.append(outcome.path)
    return written
