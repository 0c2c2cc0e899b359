"""Shared dataclasses for speedtest measurements."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

RESULT_KIND = "result"


class ResultDecodeError(ValueError):
    """Raised when a speedtest payload lacks a required field."""


@dataclass(frozen=True)
class ServerInfo:
    id: Optional[int]
    name: Optional[str]
    location: Optional[str]
    country: Optional[str]
    host: Optional[str]
    ip: Optional[str]


@dataclass(frozen=True)
class InterfaceInfo:
    internal_ip: Optional[str]
    external_ip: Optional[str]
    is_vpn: Optional[bool]


@dataclass(frozen=True)
class PingStats:
    latency: float
    jitter: float


@dataclass(frozen=True)
class SpeedtestResult:
    """Decoded result of one successful Ookla CLI run.

    Bandwidth values stay in bytes per second, as reported by the CLI.
    """

    result_kind: str
    server: ServerInfo
    interface: InterfaceInfo
    isp: Optional[str]
    ping: PingStats
    download_bandwidth: int
    upload_bandwidth: int
    packet_loss: Optional[float]

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "SpeedtestResult":
        if not isinstance(data, dict):
            raise ResultDecodeError(f"expected a JSON object, got {type(data).__name__}")

        kind = data.get("type")
        if kind != RESULT_KIND:
            raise ResultDecodeError(f"unexpected result type {kind!r}")

        ping = _mapping(data, "ping")
        server = _optional_mapping(data, "server")
        interface = _optional_mapping(data, "interface")

        return cls(
            result_kind=kind,
            server=ServerInfo(
                id=server.get("id"),
                name=server.get("name"),
                location=server.get("location"),
                country=server.get("country"),
                host=server.get("host"),
                ip=server.get("ip"),
            ),
            interface=InterfaceInfo(
                internal_ip=interface.get("internalIp"),
                external_ip=interface.get("externalIp"),
                is_vpn=interface.get("isVpn"),
            ),
            isp=data.get("isp"),
            ping=PingStats(
                latency=_number(ping, "latency", "ping"),
                jitter=_number(ping, "jitter", "ping"),
            ),
            download_bandwidth=int(_number(_mapping(data, "download"), "bandwidth", "download")),
            upload_bandwidth=int(_number(_mapping(data, "upload"), "bandwidth", "upload")),
            packet_loss=_optional_number(data, "packetLoss"),
        )


@dataclass(frozen=True)
class MeasurementFailure:
    """Returned instead of a result once every attempt has failed."""

    attempts: int
    reason: str
    last_response: str = ""


def _mapping(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ResultDecodeError(f"missing or invalid '{key}' section")
    return value


def _optional_mapping(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _number(section: Dict[str, Any], key: str, path: str) -> float:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResultDecodeError(f"missing or non-numeric '{path}.{key}'")
    if not _finite(value):
        raise ResultDecodeError(f"non-finite '{path}.{key}'")
    return float(value)


def _optional_number(section: Dict[str, Any], key: str) -> Optional[float]:
    value = section.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResultDecodeError(f"non-numeric '{key}'")
    if not _finite(value):
        raise ResultDecodeError(f"non-finite '{key}'")
    return float(value)


def _finite(value: Any) -> bool:
    try:
        return math.isfinite(value)
    except OverflowError:
        return False
