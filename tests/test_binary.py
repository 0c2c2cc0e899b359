from __future__ import annotations

import io
import tarfile
import zipfile
from pathlib import Path

import pytest
import requests

import updater
from speedsensor.config import load_config
from speedsensor.measurements import binary
from speedsensor.measurements.binary import (
    DependencyMissing,
    ensure_ookla_binary,
    get_ookla_binary_path,
    update_ookla_binary,
)


class _Response:
    def __init__(self, content: bytes, status: int = 200):
        self.content = content
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")


def _tgz(payload: bytes) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, data in (("speedtest.md", b"docs"), ("speedtest", payload)):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _zip(payload: bytes) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("speedtest.exe", payload)
    return buffer.getvalue()


@pytest.fixture
def linux_config(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(binary.platform, "system", lambda: "Linux")
    monkeypatch.setattr(binary.platform, "machine", lambda: "x86_64")
    config = load_config(root_dir=tmp_path)
    config.ookla.urls = {"linux_x86_64": "https://downloads.example/speedtest-linux.tgz"}
    return config


def test_binary_path_in_program_dir(linux_config, tmp_path):
    assert get_ookla_binary_path(linux_config) == tmp_path.resolve() / "speedtest"


def test_windows_binary_gets_exe_suffix(tmp_path, monkeypatch):
    monkeypatch.setattr(binary.platform, "system", lambda: "Windows")
    config = load_config(root_dir=tmp_path)

    assert get_ookla_binary_path(config).name == "speedtest.exe"


def test_missing_binary_without_auto_download(linux_config, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("no download expected")

    monkeypatch.setattr(binary.requests, "get", fail)

    with pytest.raises(DependencyMissing):
        ensure_ookla_binary(linux_config)


def test_auto_download_extracts_tarball(linux_config, monkeypatch):
    linux_config.ookla.auto_download = True
    monkeypatch.setattr(binary.requests, "get", lambda url, timeout: _Response(_tgz(b"ELF")))

    path = ensure_ookla_binary(linux_config)

    assert path.read_bytes() == b"ELF"


def test_zip_artifact(tmp_path):
    archive = tmp_path / "cli.zip"
    archive.write_bytes(_zip(b"MZ"))
    destination = tmp_path / "speedtest.exe"

    binary._install_ookla_artifact(archive, "https://example/cli.zip", destination)

    assert destination.read_bytes() == b"MZ"


def test_download_failure_is_dependency_missing(linux_config, monkeypatch):
    linux_config.ookla.auto_download = True
    monkeypatch.setattr(binary.requests, "get", lambda url, timeout: _Response(b"", status=404))

    with pytest.raises(DependencyMissing):
        ensure_ookla_binary(linux_config)


def test_unknown_platform_is_dependency_missing(linux_config, monkeypatch):
    linux_config.ookla.auto_download = True
    linux_config.ookla.urls = {}

    with pytest.raises(DependencyMissing):
        ensure_ookla_binary(linux_config)


def test_update_swaps_in_new_binary(linux_config, monkeypatch):
    existing = get_ookla_binary_path(linux_config)
    existing.write_bytes(b"old")
    monkeypatch.setattr(binary.requests, "get", lambda url, timeout: _Response(_tgz(b"new")))

    assert update_ookla_binary(linux_config) == existing

    assert existing.read_bytes() == b"new"
    assert sorted(p.name for p in existing.parent.iterdir()) == ["speedtest"]


def test_failed_update_keeps_current_binary(linux_config, monkeypatch):
    existing = get_ookla_binary_path(linux_config)
    existing.write_bytes(b"old")
    monkeypatch.setattr(binary.requests, "get", lambda url, timeout: _Response(b"", status=500))

    with pytest.raises(DependencyMissing):
        update_ookla_binary(linux_config)

    assert existing.read_bytes() == b"old"
    assert not existing.with_name("speedtest.download").exists()


def test_corrupt_archive_keeps_current_binary(linux_config, monkeypatch):
    existing = get_ookla_binary_path(linux_config)
    existing.write_bytes(b"old")
    monkeypatch.setattr(binary.requests, "get", lambda url, timeout: _Response(b"not a tarball"))

    with pytest.raises(DependencyMissing):
        update_ookla_binary(linux_config)

    assert existing.read_bytes() == b"old"


def test_updater_reports_failure_with_exit_code(linux_config, monkeypatch, capsys):
    get_ookla_binary_path(linux_config).write_bytes(b"old")
    monkeypatch.setattr(updater, "load_config", lambda path: linux_config)
    monkeypatch.setattr(binary.requests, "get", lambda url, timeout: _Response(b"", status=500))

    assert updater.main([]) == 3

    assert "Could not update" in capsys.readouterr().err


def test_updater_installs_binary(linux_config, monkeypatch, capsys):
    monkeypatch.setattr(updater, "load_config", lambda path: linux_config)
    monkeypatch.setattr(binary.requests, "get", lambda url, timeout: _Response(_tgz(b"new")))

    assert updater.main([]) == 0

    assert get_ookla_binary_path(linux_config).read_bytes() == b"new"
    assert "installed" in capsys.readouterr().out


def test_updater_rejects_bad_config(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr("speedsensor.config.program_dir", lambda: tmp_path)
    (tmp_path / "config.yaml").write_text("ookla:\n  auto_download: 'yes'\n", encoding="utf-8")

    assert updater.main([]) == 2

    assert "auto_download" in capsys.readouterr().err
