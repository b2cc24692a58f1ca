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

"""k3s-in-a-container provisioner for laptops running Docker or Podman.

The Docker SDK talks to any Docker-compatible API, so Podman works by
pointing ``DOCKER_HOST`` at its socket (``podman machine inspect`` prints it).
"""

from __future__ import annotations

import shutil
from pathlib import Path

import docker

from demo_bootstrap import console, logger
from demo_bootstrap.constants import (
    BACKEND_CONTAINER,
    DEFAULT_API_PORT,
    K3S_CONTAINER_CONFIG_DIR,
    K3S_CONTAINER_DATA_DIR,
    K3S_CONTAINER_KUBECONFIG,
    REL_CONTAINER_CONFIG_DIR,
    REL_CONTAINER_DATA_DIR,
)
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.provisioners.base import ClusterProvisioner, k3s_server_args


class ContainerProvisioner(ClusterProvisioner):
    """Runs the rancher/k3s image as a privileged container.

    Attributes:
        data_dir: Host directory mounted as the k3s data directory.
        config_dir: Host directory mounted as /etc/rancher/k3s, where k3s writes its kubeconfig.
    """

    name = BACKEND_CONTAINER

    def __init__(self, cfg, client: docker.DockerClient | None = None) -> None:
        super().__init__(cfg)
        self._client = client
        self.data_dir = cfg.paths.install_dir / REL_CONTAINER_DATA_DIR
        self.config_dir = cfg.paths.install_dir / REL_CONTAINER_CONFIG_DIR

    @property
    def kubeconfig_in_container(self) -> str:
        return f"{K3S_CONTAINER_CONFIG_DIR}/{K3S_CONTAINER_KUBECONFIG}"

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as err:
                raise BootstrapError("cluster", f"no Docker-compatible runtime reachable: {err}",
                                     "podman machine start") from err
        return self._client

    def _container(self):
        try:
            return self.client.containers.get(self.instance_name)
        except docker.errors.NotFound:
            return None

    def _remove_dir(self, path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except PermissionError as err:
            raise BootstrapError("reset", f"cannot remove {path}: {err}", f"sudo rm -rf {path}") from err

    def reset(self) -> None:
        container = self._container()
        if container is None:
            console.print(f"[yellow]\u26a0\ufe0f  Container '{self.instance_name}' not found or already deleted[/yellow]")
        else:
            container.remove(force=True)
            console.print(f"[green]\u2705 Container '{self.instance_name}' removed[/green]")
        self._remove_dir(self.data_dir)
        self._remove_dir(self.config_dir)

    def create(self) -> None:
        existing = self._container()
        if existing is not None:
            # A container that never became Ready is replaced, not reused.
            existing.remove(force=True)
            console.print("[yellow]   Removed existing container[/yellow]")
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        run_kwargs = dict(
            image=self.cfg.cluster.k3s_image,
            command=["server", *k3s_server_args(self.cfg)],
            name=self.instance_name,
            hostname=self.instance_name,
            detach=True,
            privileged=True,
            restart_policy={"Name": "unless-stopped"},
            tmpfs={"/run": "", "/var/run": ""},
            volumes={
                str(self.data_dir): {"bind": K3S_CONTAINER_DATA_DIR, "mode": "rw"},
                str(self.config_dir): {"bind": K3S_CONTAINER_CONFIG_DIR, "mode": "rw"},
            },
            environment={
                "K3S_KUBECONFIG_OUTPUT": self.kubeconfig_in_container,
                "K3S_KUBECONFIG_MODE": "644",
                "K3S_NODE_NAME": self.instance_name,
            },
            nano_cpus=self.cfg.cluster.cpus * 1_000_000_000,
            mem_limit=self.cfg.cluster.memory.lower(),
        )
        if self.cfg.cluster.host_network:
            run_kwargs["network_mode"] = "host"
        else:
            run_kwargs["ports"] = {f"{DEFAULT_API_PORT}/tcp": self.cfg.cluster.api_port}

        console.print(f"[yellow]\u2139\ufe0f  Starting k3s container '{self.instance_name}' "
                      f"from {self.cfg.cluster.k3s_image}...[/yellow]")
        logger.info("Container run options: %s", {k: v for k, v in run_kwargs.items() if k != "environment"})
        try:
            self.client.containers.run(**run_kwargs)
        except (docker.errors.ImageNotFound, docker.errors.APIError) as err:
            raise BootstrapError("cluster", f"failed to start k3s container: {err}",
                                 f"docker logs {self.instance_name}") from err

    def nodes_json(self) -> str | None:
        container = self._container()
        if container is None:
            return None
        try:
            result = container.exec_run(
                ["kubectl", "--kubeconfig", self.kubeconfig_in_container, "get", "nodes", "-o", "json"]
            )
        except docker.errors.APIError:
            return None
        if result.exit_code != 0:
            return None
        return result.output.decode("utf-8", errors="replace")

    def read_kubeconfig(self) -> str:
        path = self.config_dir / K3S_CONTAINER_KUBECONFIG
        try:
            return path.read_text()
        except OSError as err:
            raise BootstrapError("kubeconfig", f"cannot read {path}: {err}",
                                 f"docker logs {self.instance_name}") from err

    def external_host(self) -> str:
        return self.cfg.cluster.advertise_address or "127.0.0.1"

    def api_endpoint(self) -> tuple[str, int]:
        if self.cfg.cluster.host_network:
            return self.external_host(), DEFAULT_API_PORT
        return self.external_host(), self.cfg.cluster.api_port

    def logs(self, tail: int) -> str:
        container = self._container()
        if container is None:
            return f"(container '{self.instance_name}' not found)"
        return container.logs(tail=tail).decode("utf-8", errors="replace")
