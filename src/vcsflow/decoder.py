"""Read transcoder: rebuild a full flow document from the main file and sidecars."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from vcsflow.config import DEFAULT_CONFIG
from vcsflow.errors import DuplicateNodeIdError, UnknownOffloadEntryError, UnsafeOffloadPathError
from vcsflow.rules import is_safe_name, offload_rules, sidecar_name, split_manifest_entry
from vcsflow.sidecars import read_text

if TYPE_CHECKING:
    from vcsflow.config import TranscodeConfig

logger = logging.getLogger("vcsflow.decoder")

_Load = tuple[dict[str, Any], str, Path]   # (node, prop, sidecar path)


def _index_nodes(flows: list[dict[str, Any]], path: str) -> dict[str, dict[str, Any]]:
    lookup: dict[str, dict[str, Any]] = {}
    for node in flows:
        node_id = node.get("id")
        if node_id is None:
            continue
        if node_id in lookup:
            raise DuplicateNodeIdError(node_id, path)
        lookup[node_id] = node
    return lookup


def _plan_loads(
    flows: list[dict[str, Any]],
    directory: Path,
    config: TranscodeConfig,
) -> list[_Load]:
    """Validate every manifest and list the sidecar reads it asks for."""
    loads: list[_Load] = []
    for node in flows:
        manifest = node.get(config.manifest_key)
        if not manifest or node.get("id") is None:
            continue
        node_id = str(node["id"])
        rule = offload_rules(node.get("type"), config.rules)
        for entry in manifest:
            if not isinstance(entry, str) or not is_safe_name(entry):
                raise UnsafeOffloadPathError(node_id, str(entry))
            name = sidecar_name(node_id, entry)
            if not is_safe_name(name):
                raise UnsafeOffloadPathError(node_id, name)
            prop, ext = split_manifest_entry(entry)
            if rule.get(prop) != ext:
                raise UnknownOffloadEntryError(node_id, entry, node.get("type"))
            loads.append((node, prop, directory / name))
    return loads


async def _load_sidecar(node: dict[str, Any], prop: str, path: Path) -> None:
    node[prop] = await read_text(path)


async def _read_coordinates(path: Path) -> list[Any]:
    """Read coord.json. Missing file → []; other failures are logged → []."""
    try:
        coord = json.loads(await read_text(path))
    except FileNotFoundError:
        return []
    except (OSError, ValueError) as exc:
        logger.warning("Error reading coordinates from %s: %s", path.name, exc)
        return []
    if not isinstance(coord, list):
        logger.warning("Error reading coordinates from %s: expected a list, got %s", path.name, type(coord).__name__)
        return []
    return coord


def _apply_coordinates(coord: list[Any], lookup: dict[str, dict[str, Any]]) -> int:
    applied = 0
    for i in range(0, len(coord) - 2, 3):
        node_id = coord[i]
        if not isinstance(node_id, str):
            continue
        node = lookup.get(node_id)
        if node is not None:
            node["x"] = coord[i + 1]
            node["y"] = coord[i + 2]
            applied += 1
    return applied


async def decode_flows(
    flows: list[dict[str, Any]],
    path: str | os.PathLike[str],
    config: TranscodeConfig = DEFAULT_CONFIG,
) -> list[dict[str, Any]]:
    """Reinject offloaded properties and coordinates into flows (in place).

    Raises DuplicateNodeIdError / UnsafeOffloadPathError / UnknownOffloadEntryError
    before touching any sidecar. A missing sidecar named by a manifest raises
    FileNotFoundError. A missing or broken coord.json only drops coordinates.
    """
    path_str = os.fspath(path)
    directory = Path(path_str).parent
    logger.info("Loading flow file [%s]", path_str)

    lookup = _index_nodes(flows, path_str)
    loads = _plan_loads(flows, directory, config)

    coord_task = asyncio.ensure_future(_read_coordinates(config.coord_path(path_str)))
    try:
        batch_size = max(1, config.read_batch_size)
        for start in range(0, len(loads), batch_size):
            batch = loads[start:start + batch_size]
            results = await asyncio.gather(
                *(_load_sidecar(node, prop, p) for node, prop, p in batch),
                return_exceptions=True,
            )
            for outcome in results:
                if isinstance(outcome, BaseException):
                    raise outcome
        coord = await coord_task
    finally:
        if not coord_task.done():
            coord_task.cancel()

    applied = _apply_coordinates(coord, lookup)
    for node in flows:
        node.pop(config.manifest_key, None)
    logger.debug("restored %d sidecar(s) and %d coordinate(s)", len(loads), applied)
    return flows
