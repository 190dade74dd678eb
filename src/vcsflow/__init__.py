"""VCS-friendly flow storage: one flow document, many small files.

Layout (per flow directory):
    flows.json              # nodes minus offloaded properties and x/y (git-tracked)
    <id>.<prop>.<ext>       # one raw-text sidecar per offloaded property (git-tracked)
    coord.json              # [id, x, y, id, x, y, ...] for every placed node

flows.json node with offloaded code:
    {"id": "n1", "type": "function", "_offload": ["func.js"]}

A string property listed in the rule table is offloaded when it spans several
lines or is at least 200 characters long; otherwise it stays inline and any
stale sidecar is deleted. coord.json is rewritten on every save and never
staged, so moving nodes around the canvas does not show up in reviews.
"""

from vcsflow.config import DEFAULT_CONFIG, TranscodeConfig, load_config
from vcsflow.decoder import decode_flows
from vcsflow.encoder import EncodeResult, encode_flows
from vcsflow.errors import (
    DuplicateNodeIdError,
    FlowPathError,
    StagingError,
    TranscodeError,
    UnknownOffloadEntryError,
    UnsafeOffloadPathError,
)
from vcsflow.rules import DEFAULT_RULES, should_offload
from vcsflow.serializer import WriteSerializer
from vcsflow.staging import GitStager, StagingReporter
from vcsflow.storage import LocalFileStorage, VcsFriendlyStorage

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_RULES",
    "DuplicateNodeIdError",
    "EncodeResult",
    "FlowPathError",
    "GitStager",
    "LocalFileStorage",
    "StagingError",
    "StagingReporter",
    "TranscodeConfig",
    "TranscodeError",
    "UnknownOffloadEntryError",
    "UnsafeOffloadPathError",
    "VcsFriendlyStorage",
    "WriteSerializer",
    "decode_flows",
    "encode_flows",
    "load_config",
    "should_offload",
]
