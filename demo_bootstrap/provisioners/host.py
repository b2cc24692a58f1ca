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

"""Bare-host k3s provisioner (on-premises VM with sudo)."""

from __future__ import annotations

import socket

import sh

from demo_bootstrap import console, logger
from demo_bootstrap.constants import (
    BACKEND_HOST,
    K3S_HOST_STATE_DIRS,
    K3S_INSTALL_URL,
    K3S_KUBECONFIG_PATH,
    K3S_UNINSTALL_SCRIPT,
)
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.provisioners.base import ClusterProvisioner, k3s_server_args
from demo_bootstrap.utils import privileged


class HostProvisioner(ClusterProvisioner):
    """Installs k3s directly on the machine running the bootstrap."""

    name = BACKEND_HOST

    def reset(self) -> None:
        console.print("[yellow]\u2139\ufe0f  Uninstalling k3s from this host...[/yellow]")
        try:
            privileged(K3S_UNINSTALL_SCRIPT)
            console.print("[green]\u2705 k3s uninstalled[/green]")
        except (sh.ErrorReturnCode, sh.CommandNotFound):
            console.print("[yellow]\u26a0\ufe0f  k3s is not installed or was already removed[/yellow]")
        privileged("rm", "-rf", *K3S_HOST_STATE_DIRS)
        logger.info("Removed host state directories %s", ", ".join(K3S_HOST_STATE_DIRS))

    def create(self) -> None:
        args = k3s_server_args(self.cfg, listen_port=self.cfg.cluster.api_port)
        console.print(f"[yellow]\u2139\ufe0f  Installing k3s {self.cfg.cluster.k3s_version} on this host...[/yellow]")
        logger.info("k3s server args: %s", " ".join(args))
        try:
            script = str(sh.curl("-sfL", K3S_INSTALL_URL))
            # sudo drops the caller environment, so the version goes through env(1).
            privileged("env", f"INSTALL_K3S_VERSION={self.cfg.cluster.k3s_version}",
                       "sh", "-s", "-", "server", *args, _in=script)
        except sh.ErrorReturnCode as err:
            raise BootstrapError("cluster", f"k3s install script failed: {err}",
                                 "sudo journalctl -u k3s --no-pager | tail -n 50") from err

    def nodes_json(self) -> str | None:
        try:
            return str(privileged("k3s", "kubectl", "get", "nodes", "-o", "json"))
        except (sh.ErrorReturnCode, sh.CommandNotFound):
            return None

    def read_kubeconfig(self) -> str:
        try:
            return str(privileged("cat", K3S_KUBECONFIG_PATH))
        except sh.ErrorReturnCode as err:
            raise BootstrapError("kubeconfig", f"cannot read {K3S_KUBECONFIG_PATH}: {err}",
                                 f"sudo ls -l {K3S_KUBECONFIG_PATH}") from err

    def external_host(self) -> str:
        """Return the advertise-address override or the host's primary address.

        ``hostname -I`` lists addresses in interface order; the first one is
        the address other machines use. Hosts without it (macOS) fall back to
        resolving the hostname.
        """
        if self.cfg.cluster.advertise_address:
            return self.cfg.cluster.advertise_address
        try:
            addresses = str(sh.hostname("-I")).split()
        except (sh.ErrorReturnCode, sh.CommandNotFound):
            addresses = []
        if addresses:
            return addresses[0]
        return socket.gethostbyname(socket.gethostname())

    def logs(self, tail: int) -> str:
        try:
            return str(privileged("journalctl", "-u", "k3s", "-n", str(tail), "--no-pager"))
        except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
            return f"(k3s logs unavailable: {err})"
