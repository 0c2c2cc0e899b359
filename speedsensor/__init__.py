"""Application bootstrap helpers."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TextIO, Union

from .config import AppConfig, InvocationParams, load_config, resolve_params
from .logging_setup import configure_logging
from .measurements.models import MeasurementFailure, SpeedtestResult
from .measurements.speedtest_runner import CommandRunner, run_speedtest
from .report import build_report, render_xml, write_report

__version__ = "1.0.0"


class SensorContext:
    """Holds the configuration and collaborators for one sensor run."""

    def __init__(
        self,
        config: AppConfig,
        params: InvocationParams,
        run_command: Optional[CommandRunner] = None,
        sleep: Callable[[float], None] = time.sleep,
        setup_logging: bool = True,
    ):
        self.config = config
        self.params = params
        self.run_command = run_command
        self.sleep = sleep
        self.log_path = configure_logging(config, params) if setup_logging else None

    def measure(self) -> Union[SpeedtestResult, MeasurementFailure]:
        return run_speedtest(self.config, self.params, run_command=self.run_command, sleep=self.sleep)

    def run(self, stream: Optional[TextIO] = None) -> str:
        """Measure, render and emit the PRTG document; returns the document."""
        outcome = self.measure()
        report = build_report(outcome, self.params.precision)
        document = render_xml(report)
        write_report(document, self.params.output_path, stream=stream)
        return document


def bootstrap(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    root_dir: Optional[Path] = None,
    **context_kwargs: Any,
) -> SensorContext:
    """Load configuration, validate parameters and wire dependencies."""

    config = load_config(config_path, root_dir=root_dir)
    params = resolve_params(config, overrides)
    return SensorContext(config, params, **context_kwargs)
