from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import pytest

from speedsensor.config import load_config

SAMPLE_RESULT: Dict[str, Any] = {
    "type": "result",
    "timestamp": "2024-05-01T12:00:00Z",
    "ping": {"jitter": 0.412, "latency": 11.873, "low": 11.2, "high": 12.9},
    "download": {"bandwidth": 125000000, "bytes": 1516004088, "elapsed": 12006},
    "upload": {"bandwidth": 4375000, "bytes": 52810320, "elapsed": 12103},
    "packetLoss": 0.0,
    "isp": "Example Telecom",
    "interface": {
        "internalIp": "192.168.1.20",
        "name": "eth0",
        "macAddr": "AA:BB:CC:DD:EE:FF",
        "isVpn": False,
        "externalIp": "203.0.113.7",
    },
    "server": {
        "id": 12345,
        "host": "speedtest.example.net",
        "port": 8080,
        "name": "Example ISP",
        "location": "Amsterdam",
        "country": "Netherlands",
        "ip": "198.51.100.4",
    },
    "result": {"id": "abcd-1234", "url": "https://www.speedtest.net/result/c/abcd-1234"},
}


@pytest.fixture
def sample_payload() -> Dict[str, Any]:
    return copy.deepcopy(SAMPLE_RESULT)


@pytest.fixture
def sample_output(sample_payload) -> str:
    return json.dumps(sample_payload)


@pytest.fixture
def program_root(tmp_path: Path) -> Path:
    """A program directory holding a placeholder speedtest binary."""
    root = tmp_path / "sensor"
    root.mkdir()
    binary = root / "speedtest"
    binary.write_text("#!/bin/sh\n", encoding="utf-8")
    (root / "speedtest.exe").write_text("", encoding="utf-8")
    return root


@pytest.fixture
def app_config(program_root: Path):
    return load_config(root_dir=program_root)


class FakeRunner:
    """Replays canned CLI outputs and records every command it receives."""

    def __init__(self, outputs: List[str]):
        self.outputs = list(outputs)
        self.calls: List[List[str]] = []

    def __call__(self, command: List[str]) -> str:
        self.calls.append(list(command))
        if len(self.outputs) > 1:
            return self.outputs.pop(0)
        return self.outputs[0]


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture(autouse=True)
def _reset_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def fake_runner():
    return FakeRunner
