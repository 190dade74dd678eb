"""Offload rules: which node properties may live in sidecar files.

The rule table maps a node type to {property: extension}. Whether a rule
actually offloads is decided per save from the current value, so the same
property can move in and out of its sidecar between saves.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath, PureWindowsPath
from typing import Any

logger = logging.getLogger("vcsflow.rules")

RuleTable = dict[str, dict[str, str]]

DEFAULT_RULES: RuleTable = {
    "function": {"func": "js", "initialize": "js", "finalize": "js"},
    "ui_template": {"format": "htm"},
}

# Single-line strings shorter than this stay inline
OFFLOAD_MIN_LENGTH = 200


def offload_rules(node_type: Any, rules: RuleTable = DEFAULT_RULES) -> dict[str, str]:
    """Return {property: extension} for node_type (empty for unknown types)."""
    if not isinstance(node_type, str):
        return {}
    return rules.get(node_type, {})


def should_offload(
    value: Any,
    *,
    node_type: Any = None,
    prop: str = "",
    min_length: int = OFFLOAD_MIN_LENGTH,
) -> bool:
    """True when value is a non-empty string that is multi-line or long."""
    if not value:
        return False
    if not isinstance(value, str):
        logger.warning("%s in %s is not a string, leaving it inline", prop, node_type)
        return False
    return "\n" in value or len(value) >= min_length


def manifest_entry(prop: str, ext: str) -> str:
    return f"{prop}.{ext}"


def split_manifest_entry(entry: str) -> tuple[str, str]:
    """Split "prop.ext" at the last dot. An entry without a dot has no extension."""
    prop, dot, ext = entry.rpartition(".")
    if not dot:
        return entry, ""
    return prop, ext


def sidecar_name(node_id: str, entry: str) -> str:
    return f"{node_id}.{entry}"


def is_safe_name(name: str) -> bool:
    """True if name is a relative path without parent-directory segments.

    Checked against both POSIX and Windows path rules so a flow written on one
    platform cannot smuggle a path out on the other.
    """
    if not name:
        return False
    for flavour in (PurePosixPath, PureWindowsPath):
        p = flavour(name)
        if p.is_absolute() or p.anchor or ".." in p.parts:
            return False
    return True
