from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import build_config
from .errors import InputError, SplitterError
from .io import read_module, resolve_module_path
from .split import split_module

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BLOCKED = 1
EXIT_FATAL = 2


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="module-splitter",
        description=(
            "Move every top-level function of a PowerShell script module into "
            "Public/<name>.ps1 and replace them with a generated loader."
        ),
    )
    p.add_argument("module", help="Path to the .psm1 file")
    p.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Report what would be written, removed and backed up without touching any file.",
    )
    p.add_argument("--config", required=False, help="Optional YAML configuration file (section 'splitter').")
    p.add_argument("--log-level", required=False, help="Logging level, e.g. DEBUG, INFO, WARNING.")
    p.add_argument("--dump-ast", action="store_true", help="Print the parsed tree of the module and exit.")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    load_dotenv(dotenv_path=".env")

    try:
        cfg = build_config(args.config, overrides={"dry_run": args.dry_run, "log_level": args.log_level})
    except (FileNotFoundError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FATAL

    level_name = (cfg.log_level or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        if args.dump_ast:
            from .debug_ast import module_ast_to_string
            path = resolve_module_path(args.module)
            text, _bom = read_module(path)
            print(module_ast_to_string(text, path.name))
            return EXIT_OK
        report = split_module(Path(args.module), cfg)
    except InputError as e:
        log.error("%s", e)
        return EXIT_FATAL
    except SplitterError as e:
        log.error("Aborted: %s", e)
        return EXIT_FATAL

    print(report.pretty_print())
    return EXIT_OK if report.ok else EXIT_BLOCKED


if __name__ == "__main__":
    sys.exit(main())
