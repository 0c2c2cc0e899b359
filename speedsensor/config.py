"""Configuration loading helpers for the speedtest sensor."""

from __future__ import annotations

import math
import platform
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

PRECISION_RANGE = (0, 8)
RETRIES_RANGE = (0, 4)

DEFAULT_OOKLA_URLS = {
    "linux_x86_64": "https://install.speedtest.net/app/cli/ookla-speedtest-1.2.0-linux-x86_64.tgz",
    "linux_aarch64": "https://install.speedtest.net/app/cli/ookla-speedtest-1.2.0-linux-aarch64.tgz",
    "darwin_x86_64": "https://install.speedtest.net/app/cli/ookla-speedtest-1.2.0-macosx-universal.tgz",
    "darwin_aarch64": "https://install.speedtest.net/app/cli/ookla-speedtest-1.2.0-macosx-universal.tgz",
    "windows_x86_64": "https://install.speedtest.net/app/cli/ookla-speedtest-1.2.0-win64.zip",
}


class ConfigError(ValueError):
    """Raised for invalid settings before any measurement is attempted."""


@dataclass
class PathsConfig:
    bin_dir: Path
    logs_dir: Path


@dataclass
class OoklaConfig:
    auto_download: bool = False
    binary_name: str = "speedtest"
    urls: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_OOKLA_URLS))


@dataclass
class SpeedtestConfig:
    server_id: Optional[str] = None
    precision: int = 1
    max_retries: int = 2
    accept_gdpr: bool = False
    retry_delay_seconds: float = 5


@dataclass
class ReportConfig:
    output_path: Optional[str] = None


@dataclass
class LoggingConfig:
    level: str = "ERROR"
    debug: bool = False


@dataclass
class AppConfig:
    root_dir: Path
    paths: PathsConfig
    ookla: OoklaConfig
    speedtest: SpeedtestConfig
    report: ReportConfig
    logging: LoggingConfig

    @property
    def ookla_platform_key(self) -> str:
        system = platform.system().lower()
        machine = platform.machine().lower()
        if machine in ("amd64", "x86_64"):
            machine = "x86_64"
        elif machine in ("arm64", "aarch64"):
            machine = "aarch64"
        return f"{system}_{machine}"


@dataclass(frozen=True)
class InvocationParams:
    """Validated parameters for a single sensor run."""

    server_id: Optional[str] = None
    output_path: Optional[Path] = None
    precision: int = 1
    max_retries: int = 2
    accept_gdpr: bool = False
    debug: bool = False

    def __post_init__(self) -> None:
        _check_range("precision", self.precision, PRECISION_RANGE)
        _check_range("max_retries", self.max_retries, RETRIES_RANGE)
        _check_flag("accept_gdpr", self.accept_gdpr)
        _check_flag("debug", self.debug)
        if self.server_id is not None:
            if not str(self.server_id).strip():
                raise ConfigError("server_id cannot be empty")
            if "\x00" in str(self.server_id):
                raise ConfigError("server_id contains a NUL character")


def _check_range(name: str, value: Any, bounds: tuple) -> None:
    low, high = bounds
    # bool is an int subclass; "true" is not a valid digit count.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise ConfigError(f"{name} must be between {low} and {high}, got {value}")


def _check_flag(name: str, value: Any) -> None:
    # YAML "false" or "no" in quotes arrives as a truthy string.
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got {value!r}")


def _check_delay(value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"retry_delay_seconds must be a number, got {value!r}")
    if not math.isfinite(value) or value < 0:
        raise ConfigError(f"retry_delay_seconds must be zero or more, got {value}")


def program_dir() -> Path:
    """Directory holding the running executable or launched script.

    Scheduled runs start from an arbitrary working directory, so relative
    paths are anchored here rather than at ``Path.cwd()``.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(sys.argv[0] or ".").resolve().parent


def resolve_output_path(raw: Optional[str], base: Path) -> Optional[Path]:
    if raw is None or str(raw) == "":
        return None
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def _as_path(base: Path, maybe_path: Any) -> Path:
    if not maybe_path or not isinstance(maybe_path, str):
        raise ConfigError("Path configuration entries cannot be empty")
    return (base / maybe_path).resolve()


def _section_values(data: Dict[str, Any], name: str, cls) -> Dict[str, Any]:
    values = data.get(name) or {}
    if not isinstance(values, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in section '{name}': {', '.join(unknown)}")
    return values


def _section(data: Dict[str, Any], name: str, cls) -> Any:
    return cls(**_section_values(data, name, cls))


def load_config(path: Optional[str] = None, root_dir: Optional[Path] = None) -> AppConfig:
    """Load sensor configuration from an optional YAML file."""

    root_dir = Path(root_dir) if root_dir else program_dir()
    if path:
        source_path = Path(path)
        if not source_path.is_absolute():
            source_path = root_dir / source_path
        if not source_path.exists():
            raise ConfigError(f"Missing configuration file at {source_path}")
    else:
        source_path = root_dir / "config.yaml"

    data: Dict[str, Any] = {}
    if source_path.exists():
        try:
            with source_path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {source_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root in {source_path} must be a mapping")

    paths_data = _section_values(data, "paths", PathsConfig)
    paths = PathsConfig(
        bin_dir=_as_path(root_dir, paths_data.get("bin_dir", ".")),
        logs_dir=_as_path(root_dir, paths_data.get("logs_dir", "logs")),
    )

    try:
        config = AppConfig(
            root_dir=root_dir,
            paths=paths,
            ookla=_section(data, "ookla", OoklaConfig),
            speedtest=_section(data, "speedtest", SpeedtestConfig),
            report=_section(data, "report", ReportConfig),
            logging=_section(data, "logging", LoggingConfig),
        )
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc

    _check_delay(config.speedtest.retry_delay_seconds)
    _check_flag("auto_download", config.ookla.auto_download)
    if not isinstance(config.logging.level, str):
        raise ConfigError(f"logging level must be a name such as ERROR, got {config.logging.level!r}")
    return config


def resolve_params(config: AppConfig, overrides: Optional[Dict[str, Any]] = None) -> InvocationParams:
    """Merge command-line overrides over file settings and validate the result.

    Overrides set to ``None`` fall back to the configuration file value.
    """
    overrides = {key: value for key, value in (overrides or {}).items() if value is not None}
    speedtest = config.speedtest

    server_id = overrides.get("server_id", speedtest.server_id)
    raw_output = overrides.get("output_path", config.report.output_path)

    return InvocationParams(
        server_id=str(server_id) if server_id is not None else None,
        output_path=resolve_output_path(raw_output, config.root_dir),
        precision=overrides.get("precision", speedtest.precision),
        max_retries=overrides.get("max_retries", speedtest.max_retries),
        accept_gdpr=overrides.get("accept_gdpr") or speedtest.accept_gdpr,
        debug=overrides.get("debug") or config.logging.debug,
    )
