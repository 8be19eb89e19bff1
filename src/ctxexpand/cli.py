"""Command-line interface for ctxexpand."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from ctxexpand import __version__
from ctxexpand.config import (
    ProjectConfig,
    find_project_root,
    get_db_path,
    load_config,
    save_config,
    set_config_value,
)
from ctxexpand.exceptions import ConfigError, CtxExpandError
from ctxexpand.ui.console import Console

console = Console()


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No ctxexpand project found. Run 'ctxexpand init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _load_config(root: Path) -> ProjectConfig:
    try:
        return load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)


def _open_store(root: Path, config: ProjectConfig):
    """Open the hierarchy store, erroring out if nothing was imported yet."""
    from ctxexpand.hierarchy.store import HierarchyStore

    db_path = get_db_path(root, config)
    if not db_path.exists():
        console.error("No hierarchy found. Run 'ctxexpand import <snapshot>' first.")
        sys.exit(1)
    return HierarchyStore(db_path)


@click.group()
@click.version_option(version=__version__, prog_name="ctxexpand")
@click.option("--verbose", "-v", is_flag=True, help="Log expansion details to stderr.")
def main(verbose: bool):
    """ctxexpand - hierarchical context for knowledge-graph search results."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option(
    "--mode",
    type=click.Choice(["balanced", "full"]),
    default=None,
    help="Default access mode.",
)
def init(path: str | None, mode: str | None):
    """Create a ctxexpand project (.ctxexpand/config.json)."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing ctxexpand for: {root}")

    config = _load_config(root)
    config.name = root.name
    config.root_path = str(root)
    if mode:
        config = set_config_value(config, "expansion.access_mode", mode)

    save_config(root, config)
    console.success("Configuration saved")


@main.command("import")
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False))
@click.option("--path", "-p", default=None, help="Path to the project root.")
def import_cmd(snapshot: str, path: str | None):
    """Load a hierarchy snapshot (JSON) into the project store."""
    from ctxexpand.hierarchy.graph import load_snapshot
    from ctxexpand.hierarchy.store import HierarchyStore

    root = _get_project_root(path)
    config = _load_config(root)

    try:
        graph = load_snapshot(snapshot)
    except CtxExpandError as e:
        console.error(str(e))
        sys.exit(1)

    store = HierarchyStore(get_db_path(root, config))
    store.save(graph, metadata={"snapshot": str(Path(snapshot).resolve())})
    stats = store.stats()
    store.close()

    console.success(
        f"Imported {stats['containers']} pages and {stats['nodes']} blocks "
        f"from {snapshot}"
    )


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def stats(path: str | None):
    """Show what the hierarchy store contains."""
    root = _get_project_root(path)
    store = _open_store(root, _load_config(root))
    console.show_stats(store.stats())
    store.close()


@main.command()
@click.argument("ids", nargs=-1, required=True)
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option(
    "--mode", "-m",
    type=click.Choice(["balanced", "full"]),
    default=None,
    help="Access mode (default: from config).",
)
@click.option("--budget", "-b", default=None, type=int, help="Total character budget.")
@click.option("--consumed", default=0, type=int, help="Characters already used elsewhere.")
@click.option("--no-truncation", is_flag=True, help="Ignore all budgets and caps.")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Log expansion details to stderr.")
def expand(
    ids: tuple[str, ...], path: str | None, mode: str | None, budget: int | None,
    consumed: int, no_truncation: bool, as_json: bool, verbose: bool,
):
    """Expand matched block/page ids with their hierarchical context.

    Examples:

        ctxexpand expand abcDEF123 ghiJKL456

        ctxexpand expand "page-1" --mode full --budget 120000
    """
    from ctxexpand.context.engine import ContextExpander, effective_budget
    from ctxexpand.context.models import AccessMode

    if verbose:
        logging.getLogger("ctxexpand").setLevel(logging.DEBUG)

    root = _get_project_root(path)
    config = _load_config(root)
    store = _open_store(root, config)

    access_mode = AccessMode(mode) if mode else config.expansion.access_mode
    total_budget = budget if budget is not None else config.expansion.total_budget
    no_truncation = no_truncation or config.expansion.no_truncation

    results = store.lookup(list(ids))
    missing = [i for i in ids if i not in {r.id for r in results}]
    for uid in missing:
        console.warning(f"Unknown id: {uid}")
    if not results:
        console.error("None of the given ids exist in the hierarchy.")
        store.close()
        sys.exit(1)

    expander = ContextExpander(
        store, deadline_seconds=config.expansion.deadline_seconds or None
    )
    try:
        expanded = asyncio.run(
            expander.expand(
                results,
                total_budget=total_budget,
                consumed=consumed,
                access_mode=access_mode,
                no_truncation=no_truncation,
            )
        )
    except CtxExpandError as e:
        console.error(str(e))
        sys.exit(1)
    finally:
        store.close()

    if as_json:
        click.echo(
            json.dumps([r.model_dump(mode="json", exclude={"expanded"}) for r in expanded], indent=2)
        )
        return

    console.show_expansion(
        expanded, effective_budget(total_budget, consumed, access_mode, no_truncation)
    )
    console.show_texts(expanded)


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage ctxexpand configuration."""
    root = _get_project_root(path)
    config = _load_config(root)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(mode="json"), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: ctxexpand config get <key>")
            sys.exit(1)
        data = config.model_dump(mode="json")
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: ctxexpand config set <key> <value>")
            sys.exit(1)
        try:
            # Try to parse as JSON for non-string values
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ConfigError as e:
            console.error(str(e))
            sys.exit(1)


if __name__ == "__main__":
    main()
