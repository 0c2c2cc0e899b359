"""Run the Ookla Speedtest CLI with a bounded retry loop."""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..config import AppConfig, InvocationParams
from .binary import DependencyMissing, ensure_ookla_binary
from .models import MeasurementFailure, SpeedtestResult
from .parser import parse_output

LOGGER = logging.getLogger(__name__)

CommandRunner = Callable[[List[str]], str]

__all__ = [
    "DependencyMissing",
    "build_command",
    "run_speedtest",
    "run_speedtest_with_retries",
]


def build_command(binary_path: Path, params: InvocationParams) -> List[str]:
    """Argument vector for the CLI; passed to the OS without a shell."""
    command = [str(binary_path)]
    if params.server_id:
        command.append(f"--server-id={params.server_id}")
    if params.accept_gdpr:
        command.append("--accept-gdpr")
    command += [
        "--format=json",
        f"--precision={params.precision}",
        "--accept-license",
    ]
    return command


def _run_process(command: List[str]) -> str:
    completed = subprocess.run(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    if completed.returncode != 0:
        LOGGER.debug("speedtest exited with status %s", completed.returncode)
    return completed.stdout or ""


def run_speedtest(
    config: AppConfig,
    params: InvocationParams,
    run_command: Optional[CommandRunner] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Union[SpeedtestResult, MeasurementFailure]:
    """Locate the CLI and measure; raises DependencyMissing if it is absent."""
    binary_path = ensure_ookla_binary(config)
    command = build_command(binary_path, params)
    return run_speedtest_with_retries(
        command,
        max_retries=params.max_retries,
        retry_delay=config.speedtest.retry_delay_seconds,
        run_command=run_command or _run_process,
        sleep=sleep,
    )


def run_speedtest_with_retries(
    command: List[str],
    max_retries: int,
    retry_delay: float,
    run_command: CommandRunner,
    sleep: Callable[[float], None] = time.sleep,
) -> Union[SpeedtestResult, MeasurementFailure]:
    attempts = max_retries + 1
    reason = "no attempts made"
    response = ""

    for attempt in range(attempts):
        LOGGER.info("Running speedtest (attempt %d of %d): %s", attempt + 1, attempts, command)
        try:
            response = run_command(command)
        except (OSError, ValueError) as exc:
            # ValueError covers arguments the OS rejects, such as embedded NULs
            response = ""
            reason = f"could not start speedtest: {exc}"
        else:
            outcome = parse_output(response)
            if outcome.ok:
                result = outcome.result
                LOGGER.info(
                    "Speedtest succeeded via %s (down %d B/s / up %d B/s)",
                    result.server.name,
                    result.download_bandwidth,
                    result.upload_bandwidth,
                )
                return result
            reason = outcome.error or "unknown failure"

        LOGGER.warning("Speedtest attempt %d failed: %s", attempt + 1, reason)
        LOGGER.debug("Raw speedtest response: %s", response)
        if attempt + 1 < attempts:
            sleep(retry_delay)

    LOGGER.warning("Speedtest failed after %d attempts: %s", attempts, reason)
    return MeasurementFailure(attempts=attempts, reason=reason, last_response=response)
