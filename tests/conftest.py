import io
import json
import logging
import subprocess

import pytest
from rich.console import Console

import auto_updater


class FakeRunner:
    """Stand-in for subprocess.run that records calls and keeps a crontab."""

    def __init__(self):
        self.calls = []
        self.inputs = []
        self.responses = {}
        self.crontab = None

    def respond(self, cmd, returncode=0, stdout="", raises=None):
        self.responses[tuple(cmd)] = raises if raises is not None else (returncode, stdout)

    def __call__(self, cmd, input=None, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.inputs.append(input)

        response = self.responses.get(tuple(cmd))
        if isinstance(response, BaseException):
            raise response
        if response is not None:
            returncode, stdout = response
            return subprocess.CompletedProcess(cmd, returncode, stdout)

        if cmd == ["crontab", "-l"]:
            if self.crontab is None:
                return subprocess.CompletedProcess(cmd, 1, "no crontab for root\n")
            return subprocess.CompletedProcess(cmd, 0, self.crontab)
        if cmd == ["crontab", "-"]:
            self.crontab = input
            return subprocess.CompletedProcess(cmd, 0, "")
        return subprocess.CompletedProcess(cmd, 0, "")

    @property
    def commands(self):
        return [" ".join(c) for c in self.calls]

    def ran(self, program):
        return any(c[0] == program for c in self.calls)


@pytest.fixture
def fake_run(monkeypatch):
    runner = FakeRunner()
    monkeypatch.setattr(auto_updater.subprocess, "run", runner)
    return runner


@pytest.fixture(autouse=True)
def captured_console(monkeypatch):
    out = io.StringIO()
    monkeypatch.setattr(auto_updater, "console", Console(file=out, width=120, force_terminal=False))
    return out


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr(auto_updater.os, "geteuid", lambda: 0)


@pytest.fixture
def host_paths(tmp_path, monkeypatch):
    """Point every probed system path into tmp_path."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setattr(auto_updater, "OS_RELEASE_FILE", tmp_path / "os-release")
    monkeypatch.setattr(auto_updater, "ALPINE_RELEASE_FILE", tmp_path / "alpine-release")
    monkeypatch.setattr(auto_updater, "APK_CACHE_DIR", tmp_path / "cache" / "apk")
    monkeypatch.setattr(
        auto_updater,
        "CRON_DAEMON_SCRIPTS",
        (str(tmp_path / "init.d" / "crond"), str(tmp_path / "init.d" / "cron")),
    )
    monkeypatch.setattr(
        auto_updater,
        "BACKEND_REGISTRY",
        tuple((backend, str(bin_dir / backend.value)) for backend, _ in auto_updater.BACKEND_REGISTRY),
    )
    return tmp_path


def make_executable(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n")
    path.chmod(0o755)
    return path


@pytest.fixture
def install_backend(host_paths):
    def _install(name):
        return make_executable(host_paths / "bin" / name)

    return _install


@pytest.fixture
def config_file(tmp_path):
    """Write a config file that keeps every writable path inside tmp_path."""

    def _write(systemd=False):
        marker = tmp_path / "run-systemd"
        if systemd:
            marker.mkdir(exist_ok=True)
        settings = {
            "logging": {
                "file": str(tmp_path / "log" / "auto-updater.log"),
                "fallback_dir": str(tmp_path / "home" / ".auto-updater"),
            },
            "execution": {"lock_file": str(tmp_path / "run" / "auto-updater.lock")},
            "schedule": {
                "unit_dir": str(tmp_path / "systemd"),
                "init_marker": str(marker),
            },
        }
        path = tmp_path / "config.json"
        path.write_text(json.dumps(settings))
        return path

    return _write
