from __future__ import annotations


class SplitterError(Exception):
    """Base class for fatal errors that stop a split run."""


class InputError(SplitterError):
    """Module path is missing, is not a file, or is not a script module."""


class BackupError(SplitterError):
    """Original module could not be copied before the overwrite."""


class WriteError(SplitterError):
    """An extracted file or the rewritten module could not be written."""

    def __init__(self, path, cause: Exception) -> None:
        super().__init__(f"Failed to write {path}: {cause}")
        self.path = path
        self.cause = cause
