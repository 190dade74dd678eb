"""Shared fixtures for the vcsflow test suite."""

from __future__ import annotations

from typing import Any

import pytest

LONG_LINE = "x" * 250


def sample_flows() -> list[dict[str, Any]]:
    return [
        {"id": "tab1", "type": "tab", "label": "Flow 1"},
        {
            "id": "n1",
            "type": "function",
            "z": "tab1",
            "name": "double",
            "func": "msg.payload *= 2;\nreturn msg;",
            "initialize": "",
            "outputs": 1,
            "x": 100,
            "y": 200,
            "wires": [["n2"]],
        },
        {
            "id": "n2",
            "type": "ui_template",
            "z": "tab1",
            "format": "<div>\n  {{msg.payload}}\n</div>",
            "x": 300.5,
            "y": 40,
            "wires": [],
        },
        {"id": "n3", "type": "debug", "z": "tab1", "x": 500, "y": 200, "wires": []},
        {"id": "n4", "type": "function", "z": "tab1", "func": "return msg;", "x": 0, "y": 0},
    ]


@pytest.fixture
def flows() -> list[dict[str, Any]]:
    return sample_flows()


@pytest.fixture
def flow_path(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    return project / "flows.json"
