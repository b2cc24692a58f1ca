"""Shared fixtures: isolated DEMO_* environment, resolved config, and a fake ``sh``."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import sh

from demo_bootstrap import console
from demo_bootstrap.config import resolve_config


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    # Keep long paths on one line so captured output can be searched.
    monkeypatch.setattr(console, "width", 500)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("DEMO_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def demo_env(monkeypatch, tmp_path: Path):
    """Point every path setting at tmp_path and disable network preflight."""
    monkeypatch.setenv("DEMO_INSTALL_DIR", str(tmp_path / "install"))
    monkeypatch.setenv("DEMO_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("DEMO_GITOPS_REMOTE_URL", str(tmp_path / "remote.git"))
    monkeypatch.setenv("DEMO_NETWORK_CHECK_HOSTS", "[]")
    monkeypatch.setenv("DEMO_MIN_FREE_DISK_GB", "0")
    return tmp_path


@pytest.fixture
def cfg(demo_env):
    return resolve_config()


class FakeCommand:
    def __init__(self, owner: "FakeSh", name: str) -> None:
        self.owner = owner
        self.name = name

    def __call__(self, *args, **kwargs):
        self.owner.calls.append((self.name, args, kwargs))
        handler = self.owner.handlers.get(self.name)
        if handler is None:
            return ""
        return handler(*args, **kwargs)


class FakeSh:
    """Stands in for the ``sh`` module: records calls, returns canned output.

    ``handlers`` maps a command name to a callable receiving the call's
    arguments; it may return output or raise ``sh`` exceptions.
    """

    ErrorReturnCode = sh.ErrorReturnCode
    ErrorReturnCode_1 = sh.ErrorReturnCode_1
    CommandNotFound = sh.CommandNotFound

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple, dict]] = []
        self.handlers: dict = {}

    def __getattr__(self, name: str) -> FakeCommand:
        if name.startswith("__"):
            raise AttributeError(name)
        return FakeCommand(self, name)

    def Command(self, name: str) -> FakeCommand:
        return FakeCommand(self, name)

    def commands(self, name: str) -> list[tuple]:
        return [args for cmd, args, _ in self.calls if cmd == name]


def command_error(cmd: str = "cmd", stderr: bytes = b"boom") -> sh.ErrorReturnCode:
    return sh.ErrorReturnCode_1(cmd, b"", stderr)


@pytest.fixture
def fake_sh():
    return FakeSh()


K3S_KUBECONFIG = """\
apiVersion: v1
kind: Config
clusters:
- cluster:
    certificate-authority-data: Q0EK
    server: https://127.0.0.1:6443
  name: default
contexts:
- context:
    cluster: default
    user: default
  name: default
current-context: default
users:
- name: default
  user:
    client-certificate-data: Q0VSVAo=
    client-key-data: S0VZCg==
"""


def nodes_json(*ready: bool) -> str:
    import json

    items = [
        {
            "metadata": {"name": f"node-{i}"},
            "status": {"conditions": [
                {"type": "MemoryPressure", "status": "False"},
                {"type": "Ready", "status": "True" if flag else "False"},
            ]},
        }
        for i, flag in enumerate(ready)
    ]
    return json.dumps({"items": items})


class FakeProvisioner:
    """In-memory provisioner recording lifecycle calls."""

    name = "fake"

    def __init__(self, cfg, ready_after: int | None = 0, kubeconfig: str = K3S_KUBECONFIG,
                 host: str = "192.168.64.5", port: int = 6443) -> None:
        self.cfg = cfg
        self.calls: list[str] = []
        self.created = False
        self.ready_after = ready_after
        self.node_queries = 0
        self.kubeconfig = kubeconfig
        self.host = host
        self.port = port

    @property
    def instance_name(self) -> str:
        return self.cfg.cluster.cluster_name

    def reset(self) -> None:
        self.calls.append("reset")

    def create(self) -> None:
        self.calls.append("create")
        self.created = True

    def nodes_json(self):
        self.node_queries += 1
        if not self.created or self.ready_after is None:
            return None
        self.ready_after -= 1
        return nodes_json(self.ready_after < 0)

    def read_kubeconfig(self) -> str:
        return self.kubeconfig

    def external_host(self) -> str:
        return self.host

    def api_endpoint(self):
        return self.host, self.port

    def logs(self, tail: int) -> str:
        return "k3s: failed to start containerd"
