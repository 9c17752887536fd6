# Common pytest fixtures for module_splitter tests.
# The project root (directory that contains `module_splitter/`) is put on sys.path.
import sys
from pathlib import Path

import pytest

PKG_ROOT = Path(__file__).resolve().parents[1]
if str(PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(PKG_ROOT))

SCENARIO_MODULE = (
    'function Get-Widget { param($Name) "hi $Name" }\n'
    'function Set-Widget { param($Name) Get-Widget $Name }'
)


@pytest.fixture()
def make_module(tmp_path):
    """Write a .psm1 file under tmp_path and return its path."""
    def _make(text: str, name: str = "Widgets.psm1") -> Path:
        path = tmp_path / name
        path.write_bytes(text.encode("utf-8"))
        return path
    return _make


@pytest.fixture()
def scenario_module(make_module):
    return make_module(SCENARIO_MODULE)
