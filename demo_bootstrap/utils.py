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

"""Utility functions for kubectl, bounded polling, and command checks."""

from __future__ import annotations

import base64
import binascii
import os
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import sh
import yaml
from tenacity import retry, retry_if_result, stop_after_attempt, wait_fixed


T = TypeVar("T")


def command_exists(cmd: str) -> bool:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Returns:
        True if the command resolves on PATH.
    """
    try:
        found = sh.which(cmd)
    except sh.ErrorReturnCode:
        return False
    return bool(found)


def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def privileged(*args: str, **kwargs):
    """Run a command as root, going through sudo unless already root.

    Args:
        *args: Command and its arguments.
        **kwargs: Extra ``sh`` special keyword arguments (``_in``, ``_env``, ...).

    Returns:
        The ``sh`` command result.
    """
    if is_root():
        return sh.Command(args[0])(*args[1:], **kwargs)
    return sh.sudo(*args, **kwargs)


def run_kubectl(
    args: list[str],
    kubeconfig: Path | None = None,
    timeout: int = 30,
    stdin: str | None = None,
) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh so that stdout and stderr stay separate,
    which the jsonpath queries and "not found" checks rely on.

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        kubeconfig: Kubeconfig file to use, or None for kubectl's default.
        timeout: Maximum seconds to wait for the command to complete.
        stdin: Text fed to kubectl's standard input, if any.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    cmd = ["kubectl"]
    if kubeconfig is not None:
        cmd += ["--kubeconfig", str(kubeconfig)]
    try:
        result = subprocess.run(
            [*cmd, *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            input=stdin,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def apply_manifests(docs: list[dict], kubeconfig: Path, timeout: int = 60) -> tuple[bool, str]:
    """Apply a list of manifests with a single ``kubectl apply -f -``.

    Args:
        docs: Kubernetes resources as dictionaries.
        kubeconfig: Kubeconfig file to use.
        timeout: Maximum seconds to wait for kubectl.

    Returns:
        Tuple of (success, stderr).
    """
    payload = yaml.safe_dump_all(docs, default_flow_style=False, sort_keys=False)
    ok, _, stderr = run_kubectl(["apply", "-f", "-"], kubeconfig=kubeconfig, timeout=timeout, stdin=payload)
    return ok, stderr


def poll_until(probe: Callable[[], T | None], max_attempts: int, interval: float) -> T | None:
    """Call *probe* until it returns a truthy value or attempts run out.

    A falsy result means "not ready yet" and is retried after *interval*
    seconds. Exceptions raised by *probe* are not retried.

    Args:
        probe: Zero-argument callable returning a value once the condition holds.
        max_attempts: Maximum number of probe calls.
        interval: Fixed seconds to sleep between calls.

    Returns:
        The first truthy probe result, or None if every attempt came back empty.
    """

    @retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda result: not result),
        retry_error_callback=lambda _state: None,
    )
    def _attempt() -> T | None:
        return probe()

    return _attempt()


def attempts_for(timeout: int, interval: int) -> int:
    """Convert a timeout into a number of fixed-interval attempts."""
    return max(1, -(-timeout // max(interval, 1)))


def decode_secret_value(b64_text: str) -> str | None:
    """Decode a base64-encoded Kubernetes secret value.

    Args:
        b64_text: Base64-encoded string from a Kubernetes secret.

    Returns:
        The decoded UTF-8 string, or None if the input is empty or malformed.
    """
    if not b64_text.strip():
        return None
    try:
        return base64.b64decode(b64_text.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
