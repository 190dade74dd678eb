"""Async sidecar file I/O (aiofiles).

Sidecars hold raw property text: UTF-8, no framing and no newline translation,
so a payload reads back exactly as it was written.
"""

from __future__ import annotations

import contextlib
import os

import aiofiles
import aiofiles.os


async def read_text(path: str | os.PathLike[str]) -> str:
    async with aiofiles.open(path, encoding="utf-8", newline="") as f:
        return await f.read()


async def write_text(path: str | os.PathLike[str], text: str) -> None:
    async with aiofiles.open(path, "w", encoding="utf-8", newline="") as f:
        await f.write(text)


async def remove_quietly(path: str | os.PathLike[str]) -> bool:
    """Delete path. Returns False if it was already gone."""
    with contextlib.suppress(FileNotFoundError):
        await aiofiles.os.remove(path)
        return True
    return False
