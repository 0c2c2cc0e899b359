"""PRTG XML report rendering for speedtest results."""

from __future__ import annotations

import logging
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal
from pathlib import Path
from typing import Optional, TextIO, Tuple, Union

from .measurements.models import MeasurementFailure, SpeedtestResult

LOGGER = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
BYTES_PER_MEGABIT = Decimal(125000)
ERROR_TEXT = "error"
# Room for every digit of the largest finite float plus the fraction.
ROUNDING_CONTEXT = Context(prec=400)


@dataclass(frozen=True)
class Channel:
    name: str
    unit: str
    value: Decimal
    is_float: bool = True
    show_chart: bool = True
    show_table: bool = True


@dataclass(frozen=True)
class Report:
    channels: Tuple[Channel, ...] = ()
    error_text: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error_text is not None


def round_value(value: Union[int, float, Decimal], precision: int) -> Decimal:
    """Round half away from zero to ``precision`` decimal digits."""
    number = value if isinstance(value, Decimal) else Decimal(repr(value))
    rounded = number.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP, context=ROUNDING_CONTEXT)
    if rounded.is_zero():
        rounded = rounded.copy_abs()
    return rounded


def bandwidth_to_mbps(bytes_per_second: int) -> Decimal:
    return ROUNDING_CONTEXT.divide(Decimal(bytes_per_second), BYTES_PER_MEGABIT)


def build_report(outcome: Union[SpeedtestResult, MeasurementFailure], precision: int) -> Report:
    if isinstance(outcome, MeasurementFailure):
        return Report(error_text=ERROR_TEXT)

    # No packet loss figure means the path could not measure it; report 0.
    packet_loss = outcome.packet_loss if outcome.packet_loss is not None else 0

    channels = (
        Channel("Download Speed", "Mb/s", round_value(bandwidth_to_mbps(outcome.download_bandwidth), precision)),
        Channel("Upload Speed", "Mb/s", round_value(bandwidth_to_mbps(outcome.upload_bandwidth), precision)),
        Channel("Latency", "ms", round_value(outcome.ping.latency, precision)),
        Channel("Jitter", "ms", round_value(outcome.ping.jitter, precision)),
        Channel("Packet Loss", "%", round_value(packet_loss, precision)),
    )
    return Report(channels=channels)


def _flag(value: bool) -> str:
    return "1" if value else "0"


def render_xml(report: Report) -> str:
    root = ET.Element("prtg")
    if report.is_error:
        ET.SubElement(root, "error").text = "1"
        ET.SubElement(root, "text").text = report.error_text
    else:
        for channel in report.channels:
            result = ET.SubElement(root, "result")
            ET.SubElement(result, "channel").text = channel.name
            ET.SubElement(result, "customunit").text = channel.unit
            ET.SubElement(result, "float").text = _flag(channel.is_float)
            ET.SubElement(result, "value").text = format(channel.value, "f")
            ET.SubElement(result, "showchart").text = _flag(channel.show_chart)
            ET.SubElement(result, "showtable").text = _flag(channel.show_table)

    ET.indent(root, space="  ")
    return f"{XML_DECLARATION}\n{ET.tostring(root, encoding='unicode')}\n"


def write_report(document: str, output_path: Optional[Path] = None, stream: Optional[TextIO] = None) -> None:
    """Write the document to stdout and, when configured, overwrite ``output_path``."""
    stream = stream or sys.stdout
    stream.write(document)
    stream.flush()

    if output_path is None:
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as handle:
        handle.write(document)
    LOGGER.info("Report written to %s", output_path)
