"""Write transcoder: split a flow document into a slim main file plus sidecars.

For each node:
    - properties with an offload rule whose value qualifies are written to
      <dir>/<id>.<prop>.<ext>, removed from the node and listed in its manifest
    - rule properties that stay inline get any stale sidecar deleted
    - x/y move to <dir>/coord.json as flat [id, x, y, ...] triples

coord.json is rewritten in full every pass and never reported for staging.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from vcsflow.config import DEFAULT_CONFIG
from vcsflow.errors import UnsafeOffloadPathError
from vcsflow.rules import (
    is_safe_name,
    manifest_entry,
    offload_rules,
    should_offload,
    sidecar_name,
)
from vcsflow.sidecars import remove_quietly, write_text
from vcsflow.staging import StagingReporter

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from vcsflow.config import TranscodeConfig

logger = logging.getLogger("vcsflow.encoder")


@dataclass
class EncodeResult:
    """Outcome of one encoder pass."""

    flows: list[dict[str, Any]]
    text: str
    staging: StagingReporter = field(default_factory=StagingReporter)
    coordinates: int = 0

    @property
    def touched(self) -> list[str]:
        return self.staging.paths


def parse_flows(content: str | list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Normalize JSON text to a document."""
    if isinstance(content, (str, bytes)):
        return json.loads(content)  # type: ignore[no-any-return]
    return content


def dump_flows(flows: list[dict[str, Any]], config: TranscodeConfig = DEFAULT_CONFIG) -> str:
    return json.dumps(flows, indent=config.indent, ensure_ascii=False)


async def _remove_stale(path: Path) -> None:
    if await remove_quietly(path):
        logger.debug("removed stale sidecar %s", path)


def _encode_node(
    node: dict[str, Any],
    directory: Path,
    config: TranscodeConfig,
    staging: StagingReporter,
    pending: list[Awaitable[Any]],
    coord: list[Any],
) -> None:
    node.pop(config.manifest_key, None)
    node_id = node.get("id")
    if node_id is None:
        return

    rule = offload_rules(node.get("type"), config.rules)
    if rule:
        logger.debug("Processing %s node [%s]", node.get("type"), node_id)
    manifest: list[str] = []
    for prop, ext in rule.items():
        entry = manifest_entry(prop, ext)
        name = sidecar_name(str(node_id), entry)
        if not is_safe_name(name):
            raise UnsafeOffloadPathError(str(node_id), name)
        path = directory / name
        value = node.get(prop)
        if should_offload(value, node_type=node.get("type"), prop=prop, min_length=config.min_length):
            pending.append(write_text(path, value))
            manifest.append(entry)
            del node[prop]
        else:
            pending.append(_remove_stale(path))
        staging.record(path)
    if manifest:
        node[config.manifest_key] = manifest

    if "x" in node and "y" in node:
        coord.extend((node_id, node.pop("x"), node.pop("y")))


async def encode_flows(
    content: str | list[dict[str, Any]],
    path: str | os.PathLike[str],
    config: TranscodeConfig = DEFAULT_CONFIG,
    *,
    clone: bool = True,
) -> EncodeResult:
    """Write sidecars for the flow document destined for path.

    The caller's document is left untouched (unless clone=False, for callers
    that already hold a private copy); the rewritten document and its
    serialized text are returned together with the touched sidecar paths.
    """
    flows = parse_flows(content)
    if clone and not isinstance(content, (str, bytes)):
        flows = copy.deepcopy(flows)
    directory = Path(path).parent
    logger.info("Processing flow file [%s]", os.fspath(path))

    staging = StagingReporter()
    pending: list[Awaitable[Any]] = []
    coord: list[Any] = []
    try:
        for node in flows:
            _encode_node(node, directory, config, staging, pending, coord)
    except BaseException:
        # Nothing has been awaited yet; close the queued coroutines
        for aw in pending:
            aw.close()  # type: ignore[attr-defined]
        raise

    pending.append(write_text(config.coord_path(path), json.dumps(coord)))
    results = await asyncio.gather(*pending, return_exceptions=True)
    for outcome in results:
        if isinstance(outcome, BaseException):
            raise outcome

    return EncodeResult(
        flows=flows,
        text=dump_flows(flows, config),
        staging=staging,
        coordinates=len(coord) // 3,
    )
