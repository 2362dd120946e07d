# run.py
# Entry point. Wiring only: registries come from host modules, logic
# lives in the library.
#
#   toolflow verify workflow.json --functions myapp.functions
#   toolflow export --budget 8000 --defaults math text
#   toolflow functions --functions myapp.functions

import argparse
import importlib
import json
import sys
from pathlib import Path
from typing import Sequence

from toolflow import config, display
from toolflow.registry import FunctionRegistry, get_registry
from toolflow.tools import CATEGORIES, register_default_functions


def _load_functions(registry: FunctionRegistry, modules: list[str], defaults: list[str] | None) -> None:
    """
    Import host modules so their registrations run.

    A module may register at import time against get_registry(), or expose
    `register_functions(registry)`.
    """
    if defaults is not None:
        register_default_functions(registry, defaults)
    for name in modules:
        module = importlib.import_module(name)
        hook = getattr(module, "register_functions", None)
        if callable(hook):
            hook(registry)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolflow",
        description="Export function schemas and statically verify workflow documents.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--functions",
        action="append",
        default=[],
        metavar="MODULE",
        help="Module that registers functions (repeatable).",
    )
    common.add_argument(
        "--defaults",
        nargs="*",
        choices=list(CATEGORIES),
        default=None,
        metavar="CATEGORY",
        help=f"Load built-in functions; no value loads all ({', '.join(CATEGORIES)}).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    verify = sub.add_parser("verify", parents=[common], help="Verify a workflow JSON file.")
    verify.add_argument("workflow", type=Path, help="Path to the workflow JSON document.")

    export = sub.add_parser("export", parents=[common], help="Export tool schemas in chunks.")
    export.add_argument("--budget", type=int, default=config.CHUNK_BUDGET)
    export.add_argument("--json", action="store_true", help="Print the chunks as JSON.")

    sub.add_parser("functions", parents=[common], help="List visible registered functions.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    display.configure_logging(config.LOG_LEVEL)

    registry = get_registry()
    _load_functions(registry, args.functions, args.defaults)

    if args.command == "verify":
        try:
            document = json.loads(args.workflow.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            display.halt(f"Cannot read workflow {args.workflow}: {exc}")
            return 2
        actions = document.get("actions") if isinstance(document, dict) else None
        display.verification_start(str(args.workflow), len(actions) if isinstance(actions, list) else 0)
        result = registry.verify(document)
        display.verification_report(result)
        return 0 if result.valid else 1

    if args.command == "export":
        chunks = registry.split_tool_schemas(args.budget)
        if args.json:
            display.tool_json(chunks)
        else:
            display.tool_chunks(chunks, args.budget)
        return 0

    display.function_table(registry.metadata())
    return 0


if __name__ == "__main__":
    sys.exit(main())
