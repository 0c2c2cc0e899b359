"""Decode raw Ookla CLI output into measurement records."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .models import RESULT_KIND, ResultDecodeError, SpeedtestResult

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseOutcome:
    kind: Optional[str]
    result: Optional[SpeedtestResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.kind == RESULT_KIND


def parse_output(text: str) -> ParseOutcome:
    """Parse the combined stdout/stderr text of one CLI run.

    Never raises: malformed output yields an outcome with ``error`` set.
    """
    payload = _decode_payload(text or "")
    if payload is None:
        return ParseOutcome(kind=None, error="no JSON object in speedtest output")

    kind = payload.get("type")
    if kind != RESULT_KIND:
        message = payload.get("message") or payload.get("error") or "no result"
        return ParseOutcome(kind=kind, error=f"speedtest reported {kind!r}: {message}")

    try:
        result = SpeedtestResult.from_payload(payload)
    except ResultDecodeError as exc:
        return ParseOutcome(kind=kind, error=str(exc))
    return ParseOutcome(kind=kind, result=result)


def _decode_payload(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except ValueError:
        pass
    else:
        return data if isinstance(data, dict) else None

    # stderr log lines may be interleaved with the JSON line
    candidates: List[Dict[str, Any]] = []
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
        except ValueError:
            LOGGER.debug("Skipping undecodable line: %s", line)
            continue
        if isinstance(data, dict):
            candidates.append(data)

    for data in reversed(candidates):
        if data.get("type") == RESULT_KIND:
            return data
    return candidates[-1] if candidates else None
