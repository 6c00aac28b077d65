#!/usr/bin/env python3
"""
Action Hub headless validation

Purpose:
- Run a validation pass outside Blender against importable Python modules
- Data asset subjects are found among the live instances the imported modules create
- Component subjects are found on the owners listed in a module-level HUB_OWNERS list
  (HostObject instances)
- Optionally file failures into the hub JSON store as Quality ToDo items

Usage:
  python tools/run_validation.py --subject mygame.assets:Weapon --import mygame.catalog
  python tools/run_validation.py --subject mygame.props:Door --import mygame.level1 --scope Level1/Doors --file
  python tools/run_validation.py --subject mygame.assets:Weapon --import mygame.catalog --json

Exit codes: 0 passed, 1 failures found, 2 configuration error.
"""
from __future__ import annotations

import argparse
import importlib
import json
import os
import sys
from typing import Any, List

# Import within repo context
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from action_hub.core.errors import ActionHubError, ConfigurationError  # noqa: E402
from action_hub.core.host import HostObject, InMemoryHost  # noqa: E402
from action_hub.core.workspace import Workspace  # noqa: E402
from action_hub.utils.blender_helpers import get_settings  # noqa: E402
from action_hub.utils.storage import JsonStore  # noqa: E402
from action_hub.validation.engine import ValidationOptions  # noqa: E402


def _import_modules(names: List[str]) -> List[Any]:
    modules = []
    for name in names:
        try:
            modules.append(importlib.import_module(name))
        except ImportError as ex:
            raise ConfigurationError(f"Could not import '{name}': {ex}") from ex
    return modules


def _collect_owners(modules: List[Any]) -> List[HostObject]:
    owners: List[HostObject] = []
    for module in modules:
        owners.extend(getattr(module, "HUB_OWNERS", None) or [])
    return owners


def _progress(checked: int, total: int, failures: int) -> None:
    if total and (checked == total or checked % 50 == 0):
        print(f"  checked {checked}/{total} ({failures} failures)", file=sys.stderr)


def run(args: argparse.Namespace) -> int:
    settings = get_settings(force_reload=True)
    modules = _import_modules(args.imports)

    store = JsonStore(args.store or settings.store_path)
    categories = store.load_categories()
    host = InMemoryHost(
        categories=categories,
        work_items=store.load_work_items(categories),
        owners=_collect_owners(modules),
        confirm_answer=args.file,
    )
    run_contract = settings.run_contract_after_required and not args.skip_contract_on_missing
    workspace = Workspace(
        host,
        options=ValidationOptions(run_contract_after_required_failure=run_contract),
        quality_priority=settings.quality_priority,
        search_roots=settings.search_roots,
    )

    scope = args.scope or None
    report, filed = workspace.validate_and_report(args.subject, scope, progress=_progress)

    for item in filed:
        store.save_item(item)
    if filed:
        print(f"Filed {len(filed)} issue(s) into {store.path}", file=sys.stderr)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(report.summary())

    return 0 if report.passed else 1


def main():
    ap = argparse.ArgumentParser(description="Action Hub headless validation")
    ap.add_argument("--subject", required=True, help="Subject class as module:Class")
    ap.add_argument("--import", dest="imports", action="append", default=[],
                    help="Module to import before scanning (repeatable)")
    ap.add_argument("--scope", action="append", default=[],
                    help="Search root (repeatable); defaults to the configured search roots")
    ap.add_argument("--file", action="store_true", help="File failures as Quality ToDo items in the hub store")
    ap.add_argument("--store", type=str, default="", help="Hub store path (defaults to the configured store)")
    ap.add_argument("--skip-contract-on-missing", action="store_true",
                    help="Do not run validate() on instances with unset required fields")
    ap.add_argument("--json", action="store_true", help="Print the report as JSON")
    args = ap.parse_args()

    try:
        code = run(args)
    except ConfigurationError as ex:
        print(f"Configuration error: {ex}", file=sys.stderr)
        code = 2
    except ActionHubError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
