# Centralized grammar node sets and run configuration (no heavy imports here).
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

import yaml  # type: ignore

log = logging.getLogger(__name__)

LANGUAGE_NAME = "powershell"

# Node types used by the tree-sitter PowerShell grammar.
NODESETS = {
    "function": {"function_statement"},
    # wrappers of the outermost statement list that may be descended into
    "top_level_container": {"statement_list", "script_block", "script_block_body"},
    "function_name": {"function_name"},
    "command_name": {"command_name"},
    "error": {"ERROR"},
}

FILTER_KEYWORD = "filter"
SCOPE_QUALIFIERS = ("global:", "script:", "local:", "private:")
PUBLISH_DIRECTIVE = "export-modulemember"
# quoted and here-string literal node types end with one of these
STRING_NODE_SUFFIXES = ("string_literal", "string_characters")

SUPPORTED_EXTENSIONS = {".psm1"}

LOADER_REGION = "Module loader (generated by module-splitter)"

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


@dataclass(frozen=True)
class SplitterConfig:
    dry_run: bool = False
    public_dir: str = "Public"
    private_dir: str = "Private"
    extension: str = ".ps1"
    backup_suffix: str = ".bak"
    log_level: str = "INFO"


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    val = str(raw).strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    log.warning("Unrecognised boolean value %r; keeping %s", raw, default)
    return default


def load_config_file(path: str) -> Dict[str, Any]:
    """Read the ``splitter`` section of a YAML configuration file.

    :param path: Path to the YAML file.
    :return: Dict of configuration values (possibly empty).
    :raises FileNotFoundError: If the file does not exist.
    :raises ValueError: If the section is malformed or has unknown keys.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {path}")
    except yaml.YAMLError as exc:
        raise ValueError(f"Failed to load configuration from {path}: {exc}")

    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {path} must be a mapping")
    section = data.get("splitter", {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'splitter' section in {path} must be a mapping")

    known = {f.name for f in fields(SplitterConfig)}
    extra = set(section) - known
    if extra:
        raise ValueError(f"Unknown configuration keys in {path}: {sorted(extra)}")
    log.debug("Splitter config from %s: %s", path, section)
    return dict(section)


def build_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> SplitterConfig:
    """Layer defaults, YAML file, environment and explicit overrides (lowest to highest)."""
    env = os.environ if environ is None else environ
    cfg = SplitterConfig()

    if config_path:
        file_values = load_config_file(config_path)
        if "dry_run" in file_values:
            file_values["dry_run"] = _parse_bool(str(file_values["dry_run"]), cfg.dry_run)
        cfg = replace(cfg, **file_values)

    cfg = replace(
        cfg,
        dry_run=_parse_bool(env.get("MODULE_SPLITTER_DRY_RUN"), cfg.dry_run),
        backup_suffix=env.get("MODULE_SPLITTER_BACKUP_SUFFIX") or cfg.backup_suffix,
        log_level=env.get("LOG_LEVEL") or cfg.log_level,
    )

    if overrides:
        cfg = replace(cfg, **{k: v for k, v in overrides.items() if v is not None})

    if not cfg.extension.startswith("."):
        cfg = replace(cfg, extension=f".{cfg.extension}")
    if not cfg.backup_suffix:
        raise ValueError("backup_suffix must not be empty")
    return cfg
