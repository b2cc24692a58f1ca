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

"""Multipass VM provisioner for a local virtualized host."""

from __future__ import annotations

import json
import shlex

import sh

from demo_bootstrap import console, logger
from demo_bootstrap.constants import BACKEND_VM, K3S_INSTALL_URL, K3S_KUBECONFIG_PATH
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.provisioners.base import ClusterProvisioner, k3s_server_args


class VmProvisioner(ClusterProvisioner):
    """Launches an Ubuntu VM with multipass and installs k3s inside it."""

    name = BACKEND_VM

    def _exec(self, *args: str):
        return sh.multipass("exec", self.instance_name, "--", *args)

    def _info(self) -> dict | None:
        try:
            out = sh.multipass("info", self.instance_name, "--format", "json")
        except sh.ErrorReturnCode:
            return None
        return json.loads(str(out)).get("info", {}).get(self.instance_name)

    def reset(self) -> None:
        console.print(f"[yellow]\u2139\ufe0f  Deleting VM '{self.instance_name}'...[/yellow]")
        try:
            sh.multipass("delete", "--purge", self.instance_name)
            console.print(f"[green]\u2705 VM '{self.instance_name}' deleted[/green]")
        except sh.ErrorReturnCode:
            console.print(f"[yellow]\u26a0\ufe0f  VM '{self.instance_name}' not found or already deleted[/yellow]")

    def create(self) -> None:
        cluster = self.cfg.cluster
        info = self._info()
        try:
            if info is None:
                console.print(f"[yellow]\u2139\ufe0f  Launching VM '{self.instance_name}' "
                              f"({cluster.cpus} cpu / {cluster.memory} / {cluster.disk})...[/yellow]")
                sh.multipass(
                    "launch",
                    "--name", self.instance_name,
                    "--cpus", str(cluster.cpus),
                    "--memory", cluster.memory,
                    "--disk", cluster.disk,
                    cluster.vm_image,
                )
            elif info.get("state") != "Running":
                sh.multipass("start", self.instance_name)

            args = k3s_server_args(self.cfg, listen_port=cluster.api_port)
            install = (
                f"curl -sfL {K3S_INSTALL_URL} | "
                f"INSTALL_K3S_VERSION={shlex.quote(cluster.k3s_version)} sh -s - server {shlex.join(args)}"
            )
            console.print(f"[yellow]\u2139\ufe0f  Installing k3s {cluster.k3s_version} inside the VM...[/yellow]")
            logger.info("VM install command: %s", install)
            self._exec("bash", "-c", install)
        except sh.ErrorReturnCode as err:
            raise BootstrapError("cluster", f"failed to provision VM '{self.instance_name}': {err}",
                                 f"multipass info {self.instance_name}") from err

    def nodes_json(self) -> str | None:
        try:
            return str(self._exec("sudo", "k3s", "kubectl", "get", "nodes", "-o", "json"))
        except sh.ErrorReturnCode:
            return None

    def read_kubeconfig(self) -> str:
        try:
            return str(self._exec("sudo", "cat", K3S_KUBECONFIG_PATH))
        except sh.ErrorReturnCode as err:
            raise BootstrapError("kubeconfig", f"cannot read {K3S_KUBECONFIG_PATH} in the VM: {err}",
                                 f"multipass shell {self.instance_name}") from err

    def external_host(self) -> str:
        if self.cfg.cluster.advertise_address:
            return self.cfg.cluster.advertise_address
        info = self._info() or {}
        addresses = info.get("ipv4") or []
        if not addresses:
            raise BootstrapError("kubeconfig", f"VM '{self.instance_name}' has no IPv4 address",
                                 f"multipass info {self.instance_name}")
        return addresses[0]

    def logs(self, tail: int) -> str:
        try:
            return str(self._exec("sudo", "journalctl", "-u", "k3s", "-n", str(tail), "--no-pager"))
        except sh.ErrorReturnCode as err:
            return f"(k3s logs unavailable: {err})"
