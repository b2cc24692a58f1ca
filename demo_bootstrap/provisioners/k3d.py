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

"""k3d (k3s-in-Docker) provisioner."""

from __future__ import annotations

import sh
from tenacity import retry, stop_after_attempt, wait_fixed

from demo_bootstrap import console
from demo_bootstrap.constants import BACKEND_K3D, CLUSTER_CREATE_RETRY_WAIT_SECONDS, K3D_CLUSTER_TIMEOUT
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.provisioners.base import ClusterProvisioner, k3s_server_args


class K3dProvisioner(ClusterProvisioner):
    """Creates a single-server k3d cluster."""

    name = BACKEND_K3D

    @property
    def server_container(self) -> str:
        return f"k3d-{self.instance_name}-server-0"

    def reset(self) -> None:
        console.print(f"[yellow]\u2139\ufe0f  Deleting k3d cluster '{self.instance_name}'...[/yellow]")
        try:
            sh.k3d("cluster", "delete", self.instance_name)
            console.print(f"[green]\u2705 Cluster '{self.instance_name}' deleted[/green]")
        except sh.ErrorReturnCode_1:
            console.print(f"[yellow]\u26a0\ufe0f  Cluster '{self.instance_name}' not found or already deleted[/yellow]")

    def create(self) -> None:
        """Create the k3d cluster with retry logic.

        Raises:
            BootstrapError: If the cluster cannot be created after all retries.
        """
        cluster = self.cfg.cluster
        k3s_args: list[str] = []
        for arg in k3s_server_args(self.cfg):
            k3s_args += ["--k3s-arg", f"{arg}@server:*"]

        @retry(
            stop=stop_after_attempt(cluster.max_retries),
            wait=wait_fixed(CLUSTER_CREATE_RETRY_WAIT_SECONDS),
            reraise=True,
        )
        def _attempt() -> None:
            try:
                sh.k3d("cluster", "delete", self.instance_name)
                console.print("[yellow]   Removed existing cluster[/yellow]")
            except sh.ErrorReturnCode_1:
                console.print("[yellow]   No existing cluster found[/yellow]")

            sh.k3d(
                "cluster", "create", self.instance_name,
                "--servers", "1",
                "--agents", "0",
                "--image", cluster.k3s_image,
                "--api-port", str(cluster.api_port),
                "--servers-memory", cluster.memory,
                "--kubeconfig-update-default=false",
                *k3s_args,
                "--timeout", K3D_CLUSTER_TIMEOUT,
                "--wait",
            )

        try:
            _attempt()
        except sh.ErrorReturnCode as err:
            raise BootstrapError("cluster", f"k3d cluster create failed after {cluster.max_retries} attempts: {err}",
                                 f"k3d cluster list; docker logs {self.server_container}") from err

    def nodes_json(self) -> str | None:
        try:
            return str(sh.docker("exec", self.server_container, "kubectl", "get", "nodes", "-o", "json"))
        except (sh.ErrorReturnCode, sh.CommandNotFound):
            return None

    def read_kubeconfig(self) -> str:
        try:
            return str(sh.k3d("kubeconfig", "get", self.instance_name))
        except sh.ErrorReturnCode as err:
            raise BootstrapError("kubeconfig", f"k3d kubeconfig get failed: {err}",
                                 f"k3d kubeconfig get {self.instance_name}") from err

    def external_host(self) -> str:
        return self.cfg.cluster.advertise_address or "127.0.0.1"

    def logs(self, tail: int) -> str:
        try:
            return str(sh.docker("logs", "--tail", str(tail), self.server_container, _err_to_out=True))
        except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
            return f"(k3d server logs unavailable: {err})"
