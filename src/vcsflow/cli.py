"""vcsflow CLI: split and rejoin flow files by hand.

Commands:
    vcsflow split FLOWS        rewrite FLOWS as slim main file + sidecars (in place)
    vcsflow join FLOWS         print the reconstituted document (or write it with -o)
    vcsflow show FLOWS         table of offloaded properties and coordinates

The host integration does not need any of these; they are for migrating an
existing monolithic flows.json and for inspecting a split one.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any

import click

from vcsflow.config import TranscodeConfig, load_config
from vcsflow.decoder import decode_flows
from vcsflow.errors import TranscodeError
from vcsflow.staging import GitStager
from vcsflow.storage import LocalFileStorage, VcsFriendlyStorage

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg(flows: Path) -> TranscodeConfig:
    try:
        return load_config(flows.parent)
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _check_flow_path(flows: Path, cfg: TranscodeConfig) -> None:
    if not cfg.is_flow_path(flows):
        msg = f"{flows} is not a flow file (expected a file named {cfg.flow_file})"
        raise click.ClickException(msg)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except (TranscodeError, OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


async def _read_full(flows: Path, cfg: TranscodeConfig) -> Any:
    storage = VcsFriendlyStorage(LocalFileStorage(), config=cfg)
    return await storage.read_file(str(flows), None, None, cfg.flow_type)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="vcsflow")
@click.option("-v", "--verbose", is_flag=True, help="Log every node processed")
def cli(verbose: bool) -> None:
    """VCS-friendly flow files."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(message)s",
    )


# ---------------------------------------------------------------------------
# vcsflow split
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("flows", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--backup", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Copy the current main file here before rewriting it")
@click.option("--stage", is_flag=True, help="git add the main file and touched sidecars")
def split(flows: Path, backup: Path | None, stage: bool) -> None:
    """Rewrite FLOWS into a slim main file plus sidecar files."""
    flows = flows.resolve()
    cfg = _load_cfg(flows)
    _check_flow_path(flows, cfg)

    async def _split() -> Any:
        doc = await _read_full(flows, cfg)
        if doc is None:
            msg = f"{flows} is empty"
            raise click.ClickException(msg)
        storage = VcsFriendlyStorage(
            LocalFileStorage(),
            config=cfg,
            stager=GitStager(flows.parent) if stage else None,
        )
        return await storage.write_file(str(flows), doc, str(backup) if backup else None)

    result = _run(_split())
    offloaded = sum(len(n.get(cfg.manifest_key, [])) for n in result.flows)
    click.echo(f"{len(result.flows)} nodes, {offloaded} offloaded properties, {result.coordinates} coordinates")
    if stage:
        click.echo(f"Staged {len(result.staging) + 1} path(s)")


# ---------------------------------------------------------------------------
# vcsflow join
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("flows", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write here instead of stdout")
def join(flows: Path, output: Path | None) -> None:
    """Print FLOWS with offloaded properties and coordinates restored."""
    flows = flows.resolve()
    cfg = _load_cfg(flows)
    _check_flow_path(flows, cfg)

    doc = _run(_read_full(flows, cfg))
    text = json.dumps(doc if doc is not None else [], indent=cfg.indent, ensure_ascii=False)
    if output is None:
        click.echo(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        click.echo(f"Wrote {output}", err=True)


# ---------------------------------------------------------------------------
# vcsflow show
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("flows", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def show(flows: Path) -> None:
    """Show which properties of which nodes live in sidecar files."""
    from rich.console import Console
    from rich.table import Table

    flows = flows.resolve()
    cfg = _load_cfg(flows)
    _check_flow_path(flows, cfg)

    raw = _run(LocalFileStorage().read_file(str(flows), None, None, cfg.flow_type)) or []
    manifests = {n.get("id"): list(n.get(cfg.manifest_key) or []) for n in raw}
    doc = _run(decode_flows(copy.deepcopy(raw), flows, cfg))

    table = Table(title=str(flows), show_header=True, header_style="bold")
    table.add_column("Node", no_wrap=True)
    table.add_column("Type", style="dim")
    table.add_column("Offloaded")
    table.add_column("x, y", justify="right")

    n_offloaded = 0
    for node in doc:
        entries = manifests.get(node.get("id"), [])
        n_offloaded += len(entries)
        pos = f"{node['x']}, {node['y']}" if "x" in node and "y" in node else "[dim]-[/dim]"
        table.add_row(str(node.get("id", "")), str(node.get("type", "")), ", ".join(entries), pos)

    console = Console()
    console.print(table)
    console.print(f"{len(doc)} nodes, {n_offloaded} offloaded properties")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
