from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .errors import BackupError

log = logging.getLogger(__name__)


def backup_path_for(module_path: Path, suffix: str = ".bak") -> Path:
    return module_path.with_name(module_path.name + suffix)


def create_backup(module_path: Path, suffix: str = ".bak") -> Path:
    """Copy the module verbatim next to itself before it gets overwritten.

    An older backup at the same path is replaced.

    :raises BackupError: If the copy cannot be made; the caller must not
        touch the module afterwards.
    """
    target = backup_path_for(module_path, suffix)
    if target.exists():
        log.warning("Replacing existing backup %s", target)
    try:
        shutil.copy2(module_path, target)
        identical = target.read_bytes() == module_path.read_bytes()
    except OSError as e:
        raise BackupError(f"Cannot back up {module_path} to {target}: {e}") from e
    if not identical:
        raise BackupError(f"Backup {target} does not match {module_path}")
    log.info("Backed up %s -> %s", module_path.name, target)
    return target
