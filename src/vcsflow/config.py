"""TranscodeConfig: naming conventions and offload rules for flow documents.

Every field has a default, and the defaults are what the storage adapter uses
when no config is given. A project may tune them with an optional
vcsflow.toml, found by walking upward from the flow directory:

    [vcsflow]
    # flow_file = "flows.json"      # main document name
    # coord_file = "coord.json"     # coordinate sidecar name
    # manifest_key = "_offload"     # per-node list of offloaded "prop.ext"
    # min_length = 200              # single-line strings this long are offloaded
    # read_batch_size = 10          # concurrent sidecar reads on load
    # indent = 4                    # pretty-print width of the main document

    [rules.function]
    func = "js"
    initialize = "js"

    [rules.ui_template]
    format = "htm"

[rules.<type>] tables are merged over the built-in table: a listed property
replaces the built-in extension, unlisted properties keep theirs.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from vcsflow.rules import DEFAULT_RULES, RuleTable

_CONFIG_FILENAME = "vcsflow.toml"


@dataclass(frozen=True)
class TranscodeConfig:
    """Resolved transcoding settings."""

    rules: RuleTable = field(default_factory=lambda: {k: dict(v) for k, v in DEFAULT_RULES.items()})
    flow_file: str = "flows.json"
    coord_file: str = "coord.json"
    manifest_key: str = "_offload"
    flow_type: str = "flow"          # type tag the host passes when reading a flow document
    min_length: int = 200
    read_batch_size: int = 10
    indent: int = 4

    @property
    def flow_suffix(self) -> str:
        return os.sep + self.flow_file

    def is_flow_path(self, path: str | os.PathLike[str]) -> bool:
        return os.fspath(path).endswith(self.flow_suffix)

    def coord_path(self, flow_path: str | os.PathLike[str]) -> Path:
        return Path(flow_path).parent / self.coord_file

    def with_rules(self, extra: dict[str, dict[str, str]]) -> TranscodeConfig:
        """Return a copy whose rule table has `extra` merged in."""
        merged = {k: dict(v) for k, v in self.rules.items()}
        for node_type, props in extra.items():
            merged.setdefault(node_type, {}).update({str(p): str(ext) for p, ext in props.items()})
        return replace(self, rules=merged)


DEFAULT_CONFIG = TranscodeConfig()


def _find_config(start: Path) -> Path | None:
    """Walk upward from start looking for vcsflow.toml."""
    for directory in (start, *start.parents):
        candidate = directory / _CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


def load_config(root: Path | str | None = None) -> TranscodeConfig:
    """Load vcsflow.toml from root (or upward from cwd). Missing file → defaults."""
    start = Path(root) if root else Path.cwd()
    if start.is_file():
        start = start.parent
    config_path = _find_config(start.resolve())
    if config_path is None:
        return DEFAULT_CONFIG

    with config_path.open("rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    section = raw.get("vcsflow", {})
    cfg = TranscodeConfig(
        flow_file=str(section.get("flow_file", DEFAULT_CONFIG.flow_file)),
        coord_file=str(section.get("coord_file", DEFAULT_CONFIG.coord_file)),
        manifest_key=str(section.get("manifest_key", DEFAULT_CONFIG.manifest_key)),
        flow_type=str(section.get("flow_type", DEFAULT_CONFIG.flow_type)),
        min_length=int(section.get("min_length", DEFAULT_CONFIG.min_length)),
        read_batch_size=max(1, int(section.get("read_batch_size", DEFAULT_CONFIG.read_batch_size))),
        indent=int(section.get("indent", DEFAULT_CONFIG.indent)),
    )
    rules = raw.get("rules", {})
    if rules:
        cfg = cfg.with_rules(rules)
    return cfg
