"""Locate, download and install the Ookla Speedtest CLI binary."""

from __future__ import annotations

import logging
import os
import platform
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path

import requests

from ..config import AppConfig

LOGGER = logging.getLogger(__name__)


class DependencyMissing(FileNotFoundError):
    """The speedtest executable is not installed next to the program."""


INSTALL_ERRORS = (requests.RequestException, OSError, RuntimeError, ValueError, tarfile.TarError, zipfile.BadZipFile)


def get_ookla_binary_path(config: AppConfig) -> Path:
    suffix = ".exe" if platform.system().lower().startswith("win") else ""
    binary_name = config.ookla.binary_name
    if suffix and not binary_name.endswith(suffix):
        binary_name = f"{binary_name}{suffix}"
    return config.paths.bin_dir / binary_name


def ensure_ookla_binary(config: AppConfig) -> Path:
    binary_path = get_ookla_binary_path(config)
    if binary_path.exists():
        return binary_path

    if not config.ookla.auto_download:
        raise DependencyMissing(
            f"Missing Ookla CLI binary at {binary_path}. Install it there or enable ookla.auto_download."
        )

    try:
        install_ookla_binary(config, binary_path)
    except INSTALL_ERRORS as exc:
        raise DependencyMissing(f"Could not download Ookla CLI to {binary_path}: {exc}") from exc
    return binary_path


def update_ookla_binary(config: AppConfig) -> Path:
    """Download a fresh CLI beside the current one, then swap it in.

    The installed binary is only replaced once the new one is complete, so a
    failed download leaves the sensor runnable.
    """
    binary_path = get_ookla_binary_path(config)
    staging_path = binary_path.with_name(f"{binary_path.name}.download")
    try:
        install_ookla_binary(config, staging_path)
        os.replace(staging_path, binary_path)
    except INSTALL_ERRORS as exc:
        raise DependencyMissing(f"Could not update Ookla CLI at {binary_path}: {exc}") from exc
    finally:
        if staging_path.exists():
            staging_path.unlink()
    LOGGER.info("Ookla CLI updated at %s", binary_path)
    return binary_path


def install_ookla_binary(config: AppConfig, binary_path: Path) -> Path:
    platform_key = config.ookla_platform_key
    LOGGER.info("Detected platform: %s", platform_key)

    url = config.ookla.urls.get(platform_key)
    if not url:
        raise ValueError(
            f"No Ookla download URL configured for platform {platform_key}. "
            f"Supported platforms: {sorted(config.ookla.urls)}"
        )

    binary_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = _download_ookla_artifact(url)
    try:
        _install_ookla_artifact(temp_path, url, binary_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()

    binary_path.chmod(0o755)
    return binary_path


def _download_ookla_artifact(url: str) -> Path:
    LOGGER.info("Downloading Ookla CLI from %s", url)
    response = requests.get(url, timeout=120)
    response.raise_for_status()

    with tempfile.NamedTemporaryFile(delete=False) as temp_file:
        temp_file.write(response.content)
        return Path(temp_file.name)


def _install_ookla_artifact(temp_path: Path, url: str, destination: Path) -> None:
    if url.endswith(".exe"):
        shutil.move(str(temp_path), destination)
        return

    if url.endswith(".zip"):
        with zipfile.ZipFile(temp_path, "r") as archive:
            member = next((m for m in archive.namelist() if m.endswith("speedtest.exe")), None)
            if not member:
                raise RuntimeError("zip archive did not contain speedtest.exe binary")
            with archive.open(member) as source, destination.open("wb") as target:
                shutil.copyfileobj(source, target)
        return

    if url.endswith(".tgz"):
        with tarfile.open(temp_path, "r:gz") as archive:
            member = next(
                (m for m in archive.getmembers() if m.isfile() and Path(m.name).name == "speedtest"),
                None,
            )
            if not member:
                raise RuntimeError("tarball did not contain speedtest binary")
            source = archive.extractfile(member)
            if source is None:
                raise RuntimeError("speedtest member in tarball is not readable")
            with source, destination.open("wb") as target:
                shutil.copyfileobj(source, target)
        return

    raise RuntimeError("Unknown Ookla download artifact")
