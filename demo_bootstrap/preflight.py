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

"""Dependency resolution and environment validation."""

from __future__ import annotations

import json
import os
import platform
import re
import shutil
import socket
from pathlib import Path

import docker
import sh
from rich.panel import Panel

from demo_bootstrap import console, logger
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import (
    BACKEND_CONTAINER,
    BACKEND_HOST,
    BACKEND_K3D,
    BACKEND_VM,
    COMMON_REQUIRED_COMMANDS,
    HELM_DOWNLOAD_URL,
    KUBECTL_DOWNLOAD_URL,
    NETWORK_CHECK_TIMEOUT_SECONDS,
    PACKAGE_MANAGERS,
    PACKAGE_NAMES,
)
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.utils import command_exists, is_root, privileged

STEP = "preflight"

_ARCH_NAMES = {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64"}


# ============================================================================
# Required commands
# ============================================================================

def required_commands(backend: str) -> list[str]:
    """List the CLI tools a run needs for the given backend.

    Args:
        backend: Provisioner backend name.

    Returns:
        Command names in the order they are checked.
    """
    commands = list(COMMON_REQUIRED_COMMANDS)
    if backend == BACKEND_VM:
        commands.append("multipass")
    elif backend == BACKEND_K3D:
        commands.extend(["k3d", "docker"])
    elif backend == BACKEND_HOST and not is_root():
        commands.append("sudo")
    return commands


def detect_package_manager() -> str | None:
    """Return the first supported package manager found on PATH, if any."""
    for manager in PACKAGE_MANAGERS:
        if command_exists(manager):
            return manager
    return None


def install_package(manager: str, cmd: str) -> None:
    """Install the package providing *cmd* with *manager*.

    Args:
        manager: Package manager command (``brew``, ``apt-get``, ...).
        cmd: Command that should exist after the install.

    Raises:
        BootstrapError: If the package manager reports a failure.
    """
    names = PACKAGE_NAMES.get(manager, {}).get(cmd, (cmd,))
    console.print(f"[yellow]\u2139\ufe0f  Installing {cmd} via {manager}...[/yellow]")
    logger.info("Installing %s via %s (%s)", cmd, manager, " ".join(names))
    try:
        if manager == "brew":
            sh.brew("install", *names)
        else:
            privileged(manager, "install", "-y", *names)
    except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
        raise BootstrapError(STEP, f"failed to install {cmd} via {manager}: {err}",
                             f"{manager} install {' '.join(names)}") from err


def ensure_commands(commands: list[str]) -> None:
    """Install any missing command, aborting on the first one that cannot be installed.

    Args:
        commands: Command names that must be available.

    Raises:
        BootstrapError: If a command is missing and cannot be installed.
    """
    manager: str | None = None
    for cmd in commands:
        if command_exists(cmd):
            continue
        manager = manager or detect_package_manager()
        if manager is None:
            raise BootstrapError(STEP, f"required command '{cmd}' not found and no package manager is available",
                                 f"install {cmd} manually")
        install_package(manager, cmd)
        if not command_exists(cmd):
            raise BootstrapError(STEP, f"'{cmd}' is still missing after installing it via {manager}")
    console.print("[green]\u2705 All required tools are available[/green]")


# ============================================================================
# kubectl version constraint
# ============================================================================

def parse_minor(version: str) -> int | None:
    """Extract the minor version from ``v1.29.4``, ``v1.29.4+k3s1`` or ``29+``."""
    match = re.match(r"^v?\d+\.(\d+)", version)
    if match:
        return int(match.group(1))
    match = re.match(r"^(\d+)", version)
    return int(match.group(1)) if match else None


def kubectl_client_minor() -> int | None:
    """Return the installed kubectl client minor version, or None if unknown."""
    try:
        out = sh.kubectl("version", "--client", "-o", "json")
    except (sh.ErrorReturnCode, sh.CommandNotFound):
        return None
    try:
        client = json.loads(str(out)).get("clientVersion", {})
    except json.JSONDecodeError:
        return None
    return parse_minor(str(client.get("minor", "")))


def install_pinned_kubectl(version: str, bin_dir: Path) -> Path:
    """Download a pinned kubectl into *bin_dir* and put it first on PATH.

    Args:
        version: kubectl release (e.g. ``v1.29.4``).
        bin_dir: Directory holding downloaded binaries.

    Returns:
        Path of the installed kubectl binary.

    Raises:
        BootstrapError: If the download fails.
    """
    os_name = platform.system().lower()
    arch = _ARCH_NAMES.get(platform.machine().lower(), platform.machine().lower())
    url = KUBECTL_DOWNLOAD_URL.format(version=version, os=os_name, arch=arch)
    bin_dir.mkdir(parents=True, exist_ok=True)
    dest = bin_dir / "kubectl"
    console.print(f"[yellow]\u2139\ufe0f  Installing kubectl {version} into {bin_dir}...[/yellow]")
    try:
        sh.curl("-fsSLo", str(dest), url)
    except sh.ErrorReturnCode as err:
        raise BootstrapError(STEP, f"failed to download kubectl {version}: {err}", f"curl -fsSLO {url}") from err
    dest.chmod(0o755)
    os.environ["PATH"] = f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}"
    return dest


def ensure_kubectl_version(cfg: BootstrapConfig) -> None:
    """Reinstall the pinned kubectl when the client is outside the allowed skew.

    Args:
        cfg: Resolved bootstrap configuration.
    """
    target = parse_minor(cfg.cluster.k3s_version)
    current = kubectl_client_minor()
    if target is not None and current is not None and abs(current - target) <= cfg.tools.kubectl_minor_skew:
        console.print(f"[green]\u2705 kubectl 1.{current} is within range of k3s 1.{target}[/green]")
        return
    logger.info("kubectl minor %s outside range of k3s minor %s; installing %s",
                current, target, cfg.tools.kubectl_version)
    install_pinned_kubectl(cfg.tools.kubectl_version, cfg.bin_dir)


# ============================================================================
# Helm client version
# ============================================================================

def parse_major_minor(version: str) -> tuple[int, int] | None:
    """Extract ``(major, minor)`` from ``v3.15.4`` or ``v3.15.4+gfa9efb0``."""
    match = re.match(r"^v?(\d+)\.(\d+)", version.strip())
    return (int(match.group(1)), int(match.group(2))) if match else None


def helm_client_version() -> tuple[int, int] | None:
    try:
        out = sh.helm("version", "--short")
    except (sh.ErrorReturnCode, sh.CommandNotFound):
        return None
    return parse_major_minor(str(out))


def install_pinned_helm(version: str, bin_dir: Path) -> Path:
    """Download the pinned Helm release tarball and unpack the binary into *bin_dir*.

    Raises:
        BootstrapError: If the download or extraction fails.
    """
    os_name = platform.system().lower()
    arch = _ARCH_NAMES.get(platform.machine().lower(), platform.machine().lower())
    url = HELM_DOWNLOAD_URL.format(version=version, os=os_name, arch=arch)
    bin_dir.mkdir(parents=True, exist_ok=True)
    archive = bin_dir / f"helm-{version}.tar.gz"
    console.print(f"[yellow]\u2139\ufe0f  Installing helm {version} into {bin_dir}...[/yellow]")
    try:
        sh.curl("-fsSLo", str(archive), url)
        sh.tar("-xzf", str(archive), "-C", str(bin_dir), "--strip-components=1", f"{os_name}-{arch}/helm")
    except sh.ErrorReturnCode as err:
        raise BootstrapError(STEP, f"failed to install helm {version}: {err}", f"curl -fsSLO {url}") from err
    finally:
        archive.unlink(missing_ok=True)
    dest = bin_dir / "helm"
    dest.chmod(0o755)
    os.environ["PATH"] = f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}"
    return dest


def ensure_helm_version(cfg: BootstrapConfig) -> None:
    """Install the pinned Helm unless the client is at least as new within the same major."""
    pinned = parse_major_minor(cfg.tools.helm_version)
    current = helm_client_version()
    if pinned and current and current[0] == pinned[0] and current[1] >= pinned[1]:
        console.print(f"[green]\u2705 helm {current[0]}.{current[1]} satisfies {cfg.tools.helm_version}[/green]")
        return
    logger.info("helm client %s does not satisfy %s; installing it", current, cfg.tools.helm_version)
    install_pinned_helm(cfg.tools.helm_version, cfg.bin_dir)


# ============================================================================
# Environment checks
# ============================================================================

def _nearest_existing(path: Path) -> Path:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return Path("/")


def check_disk_space(path: Path, min_free_gb: int) -> None:
    """Verify free disk space where the install directory will live.

    Raises:
        BootstrapError: If less than *min_free_gb* GiB is free.
    """
    target = _nearest_existing(path)
    free_gb = shutil.disk_usage(target).free / (1024 ** 3)
    if free_gb < min_free_gb:
        raise BootstrapError(STEP, f"only {free_gb:.1f} GiB free at {target}, need {min_free_gb} GiB",
                             f"df -h {target}")
    console.print(f"[green]\u2705 {free_gb:.1f} GiB free at {target}[/green]")


def check_network(targets: list[str]) -> None:
    """Verify that each ``host:port`` target accepts a TCP connection.

    Raises:
        BootstrapError: If any target is unreachable.
    """
    for target in targets:
        host, _, port = target.rpartition(":")
        if not host:
            host, port = port, "443"
        try:
            with socket.create_connection((host, int(port)), timeout=NETWORK_CHECK_TIMEOUT_SECONDS):
                pass
        except (OSError, ValueError) as err:
            raise BootstrapError(STEP, f"cannot reach {target}: {err}", f"curl -sI https://{host}") from err
    if targets:
        console.print(f"[green]\u2705 Network reachable ({', '.join(targets)})[/green]")


def check_container_runtime() -> None:
    """Verify that a Docker-compatible API (Docker or Podman) answers.

    Raises:
        BootstrapError: If the runtime cannot be reached.
    """
    try:
        client = docker.from_env()
    except docker.errors.DockerException as err:
        raise BootstrapError(STEP, f"no Docker-compatible runtime reachable: {err}",
                             "podman machine start  (or start Docker, or export DOCKER_HOST)") from err
    try:
        client.ping()
    except (docker.errors.DockerException, OSError) as err:
        raise BootstrapError(STEP, f"container runtime did not answer: {err}", "podman machine start") from err
    finally:
        client.close()
    console.print("[green]\u2705 Container runtime is reachable[/green]")


def run_preflight(cfg: BootstrapConfig) -> None:
    """Check and install CLI tools, then validate the host environment.

    Args:
        cfg: Resolved bootstrap configuration.

    Raises:
        BootstrapError: If any dependency or environment check fails.
    """
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    logger.info("Preflight for backend %s", cfg.backend)
    ensure_commands(required_commands(cfg.backend))
    ensure_kubectl_version(cfg)
    ensure_helm_version(cfg)
    if cfg.backend == BACKEND_CONTAINER:
        check_container_runtime()
    check_disk_space(cfg.paths.install_dir, cfg.paths.min_free_disk_gb)
    check_network(cfg.paths.network_check_hosts)
    if cfg.gitops.enabled and not cfg.gitops.remote_url:
        raise BootstrapError(STEP, "GitOps sync is enabled but no remote URL is set",
                             "export DEMO_GITOPS_REMOTE_URL=<url>  (or pass --skip-gitops)")
