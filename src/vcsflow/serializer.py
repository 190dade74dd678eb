"""Per-path write serialization.

Saves of the same flow file rewrite the same sidecar directory, so they must
not overlap: each new request for a key waits for the previous one to settle
(successfully or not) and then runs. Requests for different keys run
concurrently. A key is dropped from the registry as soon as its newest task
settles, so the registry only holds keys with work in flight.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("vcsflow.serializer")

T = TypeVar("T")


class WriteSerializer:
    """Chain of tasks per key; at most one runs per key at any time."""

    def __init__(self) -> None:
        self._tails: dict[str, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return len(self._tails)

    def __contains__(self, key: object) -> bool:
        return key in self._tails

    def pending(self, key: str) -> asyncio.Task[Any] | None:
        """The newest task admitted for key, if it has not settled yet."""
        return self._tails.get(key)

    def submit(
        self,
        key: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> asyncio.Task[T]:
        """Queue func(*args) behind any in-flight work for key.

        Registration happens synchronously, so requests run in the order
        submit() was called. Must be called from a running event loop.
        """
        prev = self._tails.get(key)
        if prev is not None:
            logger.debug("queueing write for %s behind in-flight pass", key)
        task: asyncio.Task[T] = asyncio.ensure_future(self._run_after(prev, func, args))
        self._tails[key] = task
        task.add_done_callback(functools.partial(self._retire, key))
        return task

    async def run(self, key: str, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        return await self.submit(key, func, *args)

    @staticmethod
    async def _run_after(
        prev: asyncio.Task[Any] | None,
        func: Callable[..., Awaitable[T]],
        args: tuple[Any, ...],
    ) -> T:
        if prev is not None:
            # Only the ordering matters here; prev's own caller sees its outcome
            await asyncio.wait([prev])
        return await func(*args)

    def _retire(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._tails.get(key) is task:
            del self._tails[key]
