from __future__ import annotations

import asyncio
import copy
import json
import logging

import pytest

from conftest import LONG_LINE, sample_flows
from vcsflow import decoder
from vcsflow.decoder import decode_flows
from vcsflow.encoder import encode_flows
from vcsflow.errors import DuplicateNodeIdError, UnknownOffloadEntryError, UnsafeOffloadPathError


def _decode(flows, path, **kwargs):
    return asyncio.run(decode_flows(flows, path, **kwargs))


def _split(flows, path):
    """Encode and return the main document as it would be read back from disk."""
    result = asyncio.run(encode_flows(flows, path))
    return json.loads(result.text)


def test_round_trip(flow_path, flows):
    original = copy.deepcopy(flows)
    main = _split(flows, flow_path)
    assert _decode(main, flow_path) == original


def test_round_trip_preserves_order_and_long_lines(flow_path):
    flows = [
        {"id": f"f{i}", "type": "function", "func": LONG_LINE + str(i), "x": i, "y": -i}
        for i in range(30)
    ]
    main = _split(copy.deepcopy(flows), flow_path)
    assert [n["id"] for n in main] == [f"f{i}" for i in range(30)]
    assert _decode(main, flow_path) == flows


def test_scenario_decode(flow_path):
    d = flow_path.parent
    (d / "n1.func.js").write_text("line1\nline2")
    (d / "coord.json").write_text('["n1",100,200]')
    main = [{"id": "n1", "type": "function", "_offload": ["func.js"]}]
    assert _decode(main, flow_path) == [
        {"id": "n1", "type": "function", "func": "line1\nline2", "x": 100, "y": 200}
    ]


def test_sidecar_text_is_byte_exact(flow_path):
    d = flow_path.parent
    (d / "a.func.js").write_bytes("ä\r\nb\n".encode())
    main = [{"id": "a", "type": "function", "_offload": ["func.js"]}]
    assert _decode(main, flow_path)[0]["func"] == "ä\r\nb\n"


def test_coordinates_survive_round_trip(flow_path):
    main = _split([{"id": "a", "type": "inject", "x": 100, "y": 200}], flow_path)
    assert main == [{"id": "a", "type": "inject"}]
    assert _decode(main, flow_path) == [{"id": "a", "type": "inject", "x": 100, "y": 200}]


def test_duplicate_id_fails_before_any_read(flow_path, monkeypatch):
    reads = []

    async def fake_read(path):
        reads.append(path)
        return ""

    monkeypatch.setattr(decoder, "read_text", fake_read)
    main = [
        {"id": "a", "type": "function", "_offload": ["func.js"]},
        {"id": "b", "type": "debug"},
        {"id": "a", "type": "debug"},
    ]
    with pytest.raises(DuplicateNodeIdError, match=r"Duplicate node id \[a\]"):
        _decode(main, flow_path)
    assert reads == []


@pytest.mark.parametrize("entry", ["../escape.js", "/tmp/escape.js", "sub/../../escape.js"])
def test_traversal_in_manifest_is_fatal(flow_path, entry, monkeypatch):
    reads = []

    async def fake_read(path):
        reads.append(path)
        return ""

    monkeypatch.setattr(decoder, "read_text", fake_read)
    main = [{"id": "a", "type": "function", "_offload": [entry]}]
    with pytest.raises(UnsafeOffloadPathError) as info:
        _decode(main, flow_path)
    assert info.value.node_id == "a"
    assert reads == []


def test_unsafe_node_id_in_manifest_is_fatal(flow_path):
    main = [{"id": "../x", "type": "function", "_offload": ["func.js"]}]
    with pytest.raises(UnsafeOffloadPathError):
        _decode(main, flow_path)


@pytest.mark.parametrize("entry", ["secret.txt", "func.htm", "format.htm", "func"])
def test_manifest_must_match_a_rule(flow_path, entry):
    main = [{"id": "a", "type": "function", "_offload": [entry]}]
    with pytest.raises(UnknownOffloadEntryError):
        _decode(main, flow_path)


def test_missing_sidecar_is_fatal(flow_path):
    main = [{"id": "a", "type": "function", "_offload": ["func.js"]}]
    with pytest.raises(FileNotFoundError):
        _decode(main, flow_path)


def test_missing_coordinate_file_is_tolerated(flow_path, caplog):
    main = [{"id": "a", "type": "inject"}, {"id": "b", "type": "debug"}]
    with caplog.at_level(logging.WARNING):
        assert _decode(main, flow_path) == [{"id": "a", "type": "inject"}, {"id": "b", "type": "debug"}]
    assert caplog.text == ""


@pytest.mark.parametrize("content", ["{not json", '{"a": 1}'])
def test_broken_coordinate_file_is_logged_and_skipped(flow_path, caplog, content):
    (flow_path.parent / "coord.json").write_text(content)
    with caplog.at_level(logging.WARNING, logger="vcsflow.decoder"):
        assert _decode([{"id": "a", "type": "inject"}], flow_path) == [{"id": "a", "type": "inject"}]
    assert "Error reading coordinates from coord.json" in caplog.text


def test_unknown_ids_in_coordinate_file_are_ignored(flow_path):
    (flow_path.parent / "coord.json").write_text(json.dumps(["gone", 1, 2, "a", 3, 4, "trailing"]))
    assert _decode([{"id": "a", "type": "inject"}], flow_path) == [
        {"id": "a", "type": "inject", "x": 3, "y": 4}
    ]


def test_reads_are_batched(flow_path, monkeypatch):
    in_flight = 0
    peak = 0

    async def fake_read(path):
        nonlocal in_flight, peak
        if str(path).endswith("coord.json"):
            raise FileNotFoundError(path)
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return "a\nb"

    monkeypatch.setattr(decoder, "read_text", fake_read)
    main = [{"id": f"n{i}", "type": "function", "_offload": ["func.js"]} for i in range(25)]
    result = _decode(main, flow_path)
    assert peak == 10
    assert all(n["func"] == "a\nb" for n in result)


def test_manifest_is_removed_after_decode(flow_path):
    main = _split(sample_flows(), flow_path)
    assert any("_offload" in n for n in main)
    assert not any("_offload" in n for n in _decode(main, flow_path))
