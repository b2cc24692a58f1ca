# /*
# Copyright 2026 The Demo Bootstrap Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Kubeconfig materialization: loopback rewrite, validation, and 0600 write."""

from __future__ import annotations

import ipaddress
import os
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

import yaml
from rich.panel import Panel

from demo_bootstrap import console, logger
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import LOOPBACK_HOSTS
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.provisioners import ClusterProvisioner

STEP = "kubeconfig"


def _format_netloc(host: str, port: int | None) -> str:
    try:
        if ipaddress.ip_address(host).version == 6:
            host = f"[{host}]"
    except ValueError:
        pass
    return f"{host}:{port}" if port else host


def rewrite_server(server: str, host: str, port: int) -> str:
    """Point *server* at ``host:port`` if it names a loopback or wildcard address.

    Args:
        server: Cluster server URL from the kubeconfig (e.g. ``https://127.0.0.1:6443``).
        host: Externally reachable host.
        port: Externally reachable API port.

    Returns:
        The rewritten URL, or *server* unchanged if it is not loopback.
    """
    parts = urlsplit(server)
    if parts.hostname not in LOOPBACK_HOSTS:
        return server
    return urlunsplit(parts._replace(netloc=_format_netloc(host, port)))


def rewrite_kubeconfig(text: str, host: str, port: int) -> dict:
    """Parse a kubeconfig and rewrite every loopback cluster server.

    Raises:
        BootstrapError: If the text is not a valid kubeconfig.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise BootstrapError(STEP, f"kubeconfig is not valid YAML: {err}") from err
    validate_kubeconfig(data)
    for entry in data["clusters"]:
        cluster = entry["cluster"]
        rewritten = rewrite_server(cluster["server"], host, port)
        if rewritten != cluster["server"]:
            logger.info("Rewrote cluster %s server %s -> %s", entry.get("name"), cluster["server"], rewritten)
            cluster["server"] = rewritten
    return data


def validate_kubeconfig(data) -> None:
    """Check that *data* has at least one cluster with a server and one user.

    Raises:
        BootstrapError: If the structure is incomplete.
    """
    if not isinstance(data, dict):
        raise BootstrapError(STEP, "kubeconfig is empty or not a mapping")
    clusters = data.get("clusters") or []
    if not clusters or not all(isinstance(c, dict) and (c.get("cluster") or {}).get("server") for c in clusters):
        raise BootstrapError(STEP, "kubeconfig has no cluster with a server address")
    if not data.get("users"):
        raise BootstrapError(STEP, "kubeconfig has no user credentials")


def write_kubeconfig(data: dict, path: Path) -> None:
    """Write the kubeconfig owner-read/write only, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    path.chmod(0o600)


def materialize_kubeconfig(provisioner: ClusterProvisioner, cfg: BootstrapConfig) -> Path:
    """Copy the k3s kubeconfig to the host and point it at the instance.

    Args:
        provisioner: Backend owning the cluster instance.
        cfg: Resolved bootstrap configuration with the destination path.

    Returns:
        Path of the written kubeconfig.

    Raises:
        BootstrapError: If the kubeconfig cannot be read or is invalid.
    """
    console.print(Panel.fit("Writing kubeconfig", style="bold blue"))
    host, port = provisioner.api_endpoint()
    data = rewrite_kubeconfig(provisioner.read_kubeconfig(), host, port)
    write_kubeconfig(data, cfg.kubeconfig_path)
    console.print(f"[green]\u2705 Kubeconfig written to {cfg.kubeconfig_path} (API at {host}:{port})[/green]")
    return cfg.kubeconfig_path


def require_kubeconfig(cfg: BootstrapConfig) -> Path:
    """Return the kubeconfig path, failing if it is absent or invalid.

    Raises:
        BootstrapError: If no valid kubeconfig exists at the configured path.
    """
    path = cfg.kubeconfig_path
    if not path.is_file():
        raise BootstrapError(STEP, f"kubeconfig not found at {path}", "demo-bootstrap create cluster")
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as err:
        raise BootstrapError(STEP, f"cannot load {path}: {err}", "demo-bootstrap create cluster") from err
    validate_kubeconfig(data)
    return path
