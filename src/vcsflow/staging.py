"""Staging: which sidecar paths an encoder pass touched, and handing them to git.

Each encoder pass owns its own StagingReporter, so concurrent passes for
different flow files never share a list.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, Protocol

from vcsflow.errors import StagingError

logger = logging.getLogger("vcsflow.staging")


class Stager(Protocol):
    """Version-control collaborator. May return an awaitable."""

    def stage(self, paths: list[str]) -> Any: ...


class StagingReporter:
    """Ordered, de-duplicated set of sidecar paths touched by one encoder pass."""

    def __init__(self, paths: Iterable[str | os.PathLike[str]] = ()) -> None:
        self._paths: dict[str, None] = {}
        for p in paths:
            self.record(p)

    def record(self, path: str | os.PathLike[str]) -> None:
        self._paths[os.fspath(path)] = None

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, os.PathLike)) and os.fspath(path) in self._paths

    def __repr__(self) -> str:
        return f"StagingReporter({self.paths!r})"

    def extend_request(self, files: list[str], flow_file: str | os.PathLike[str]) -> list[str]:
        """Add the touched paths to a staging request that includes flow_file.

        Requests that do not stage the flow file are returned unchanged.
        """
        flow = os.fspath(flow_file)
        if flow not in files:
            return files
        extra = [p for p in self._paths if p not in files]
        return [*files, *extra]


class GitStager:
    """Stage paths with git in the repository that contains them.

    Files that still exist are added; files that were removed are dropped from
    the index (a no-op for paths git never tracked).
    """

    def __init__(self, cwd: Path | str | None = None, timeout: float = 30) -> None:
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout

    def _run(self, args: list[str], cwd: Path) -> None:
        try:
            subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as exc:
            msg = f"git {args[0]} failed: {exc.stderr.strip() or exc}"
            raise StagingError(msg) from exc
        except (subprocess.TimeoutExpired, FileNotFoundError) as exc:
            msg = f"git {args[0]} failed: {exc}"
            raise StagingError(msg) from exc

    def stage(self, paths: list[str]) -> None:
        if not paths:
            return
        cwd = self.cwd or Path(paths[0]).parent
        present = [p for p in paths if Path(p).exists()]
        removed = [p for p in paths if not Path(p).exists()]
        if present:
            self._run(["add", "--", *present], cwd)
        if removed:
            self._run(["rm", "--cached", "--ignore-unmatch", "--quiet", "--", *removed], cwd)
        logger.info("staged %d path(s), unstaged %d removed path(s)", len(present), len(removed))
