"""Exceptions raised by the transcoder.

Structural problems (duplicate ids, tampered manifests, misrouted reads) abort
the whole save/load. Missing sidecar files keep their builtin OSError types.
"""

from __future__ import annotations


class TranscodeError(Exception):
    """Base class for flow transcoding failures."""


class DuplicateNodeIdError(TranscodeError, ValueError):
    def __init__(self, node_id: str, path: str) -> None:
        self.node_id = node_id
        self.path = path
        super().__init__(f"Duplicate node id [{node_id}] in flow file [{path}]")


class UnsafeOffloadPathError(TranscodeError, ValueError):
    """A sidecar file name would escape the flow directory."""

    def __init__(self, node_id: str, entry: str) -> None:
        self.node_id = node_id
        self.entry = entry
        super().__init__(f"Invalid offload path [{entry}] in node {node_id}")


class UnknownOffloadEntryError(TranscodeError, ValueError):
    """A manifest entry names a property/extension with no offload rule."""

    def __init__(self, node_id: str, entry: str, node_type: str | None) -> None:
        self.node_id = node_id
        self.entry = entry
        self.node_type = node_type
        super().__init__(
            f"Offload entry [{entry}] in node {node_id} does not match any rule for type {node_type!r}"
        )


class FlowPathError(TranscodeError, ValueError):
    def __init__(self, path: str, suffix: str) -> None:
        self.path = path
        super().__init__(f"Flow read requested for [{path}], expected a path ending in {suffix!r}")


class StagingError(TranscodeError, RuntimeError):
    """The version-control stager rejected a set of paths."""
