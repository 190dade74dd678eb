"""Storage adapter: a VCS-friendly decorator around the host's raw flow storage.

The host hands its raw storage (anything with the RawStorage methods) to
VcsFriendlyStorage and uses the result in its place:

    storage = VcsFriendlyStorage(LocalFileStorage(), stager=GitStager())
    await storage.write_file("/proj/flows.json", flows, "/proj/.flows.json.backup")
    flows = await storage.read_file("/proj/flows.json", backup, [], "flow")

Only paths ending in <sep>flows.json are transcoded; every other file
(credentials, settings, ...) passes straight through to the raw storage.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import aiofiles.os

from vcsflow.config import DEFAULT_CONFIG
from vcsflow.decoder import decode_flows
from vcsflow.encoder import EncodeResult, encode_flows, parse_flows
from vcsflow.errors import FlowPathError
from vcsflow.serializer import WriteSerializer
from vcsflow.sidecars import read_text, write_text

if TYPE_CHECKING:
    from vcsflow.config import TranscodeConfig
    from vcsflow.staging import Stager

logger = logging.getLogger("vcsflow.storage")


class RawStorage(Protocol):
    async def write_file(self, path: str, content: str, backup_path: str | None) -> None: ...

    async def read_file(
        self, path: str, backup_path: str | None, empty_response: Any, type_tag: str
    ) -> Any: ...


# ---------------------------------------------------------------------------
# Raw storage
# ---------------------------------------------------------------------------


class LocalFileStorage:
    """Plain JSON files on the local disk, with an optional backup copy.

    write_file copies the current file to backup_path, then writes through a
    temp file and an atomic rename. read_file falls back to the backup when the
    main file is missing, empty or unparsable, and returns empty_response when
    neither yields anything.
    """

    async def write_file(self, path: str, content: str, backup_path: str | None) -> None:
        target = Path(path)
        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        if backup_path and await aiofiles.os.path.exists(target):
            await asyncio.to_thread(shutil.copyfile, target, backup_path)
        tmp = target.with_name(target.name + ".$$$")
        await write_text(tmp, content)
        await aiofiles.os.replace(tmp, target)

    async def _read_json(self, path: str | None) -> Any:
        if not path:
            return None
        try:
            text = await read_text(path)
        except FileNotFoundError:
            return None
        if not text.strip():
            return None
        return json.loads(text)

    async def read_file(
        self, path: str, backup_path: str | None, empty_response: Any, type_tag: str
    ) -> Any:
        try:
            data = await self._read_json(path)
        except ValueError:
            if not backup_path or not await aiofiles.os.path.exists(backup_path):
                raise
            logger.warning("Error parsing %s file [%s], trying backup", type_tag, path)
            data = None
        if data is None and backup_path:
            data = await self._read_json(backup_path)
            if data is not None:
                logger.warning("Restored %s file from backup [%s]", type_tag, backup_path)
        if data is None:
            return empty_response
        return data


# ---------------------------------------------------------------------------
# VCS-friendly decorator
# ---------------------------------------------------------------------------


class VcsFriendlyStorage:
    """Wraps a RawStorage so flow documents are split into sidecar files."""

    def __init__(
        self,
        raw: RawStorage,
        *,
        config: TranscodeConfig = DEFAULT_CONFIG,
        stager: Stager | None = None,
        serializer: WriteSerializer | None = None,
    ) -> None:
        self.raw = raw
        self.config = config
        self.stager = stager
        self.serializer = serializer or WriteSerializer()

    async def write_file(
        self,
        path: str | os.PathLike[str],
        content: str | list[dict[str, Any]],
        backup_path: str | None = None,
    ) -> EncodeResult | None:
        """Persist content at path. Flow files go through the transcoder.

        Returns the EncodeResult for flow files, None for pass-through writes.
        """
        path_str = os.fspath(path)
        if not self.config.is_flow_path(path_str):
            text = content if isinstance(content, str) else json.dumps(content, indent=self.config.indent)
            await self.raw.write_file(path_str, text, backup_path)
            return None
        # Snapshot now: the host may keep editing its live document while this
        # save waits behind an earlier one
        flows = parse_flows(content)
        if not isinstance(content, str):
            flows = copy.deepcopy(flows)
        return await self.serializer.run(path_str, self._save_flows, path_str, flows, backup_path)

    async def _save_flows(
        self, path: str, flows: list[dict[str, Any]], backup_path: str | None
    ) -> EncodeResult:
        result = await encode_flows(flows, path, self.config, clone=False)
        await self.raw.write_file(path, result.text, backup_path)
        if self.stager is not None:
            staged = self.stager.stage(result.staging.extend_request([path], path))
            if inspect.isawaitable(staged):
                await staged
        return result

    async def read_file(
        self,
        path: str | os.PathLike[str],
        backup_path: str | None,
        empty_response: Any,
        type_tag: str,
    ) -> Any:
        """Load path through the raw storage, reconstituting flow documents."""
        path_str = os.fspath(path)
        data = await self.raw.read_file(path_str, backup_path, empty_response, type_tag)
        if data is empty_response or type_tag != self.config.flow_type:
            return data
        if not self.config.is_flow_path(path_str):
            raise FlowPathError(path_str, self.config.flow_suffix)
        return await decode_flows(data, path_str, self.config)
