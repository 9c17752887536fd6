"""PowerShell module splitter package.

Keep the package init lightweight: importing it must not load the tree-sitter
grammar. Public entry points are exposed lazily via __getattr__.
"""

__all__ = ["split_module", "SplitterConfig", "SplitReport"]


def __getattr__(name: str):
    if name == "split_module":
        from .split import split_module
        return split_module
    if name == "SplitterConfig":
        from .config import SplitterConfig
        return SplitterConfig
    if name == "SplitReport":
        from .report import SplitReport
        return SplitReport
    raise AttributeError(name)
