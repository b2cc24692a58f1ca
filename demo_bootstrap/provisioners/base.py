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

"""Cluster provisioner interface and shared k3s arguments."""

from __future__ import annotations

from abc import ABC, abstractmethod

from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import DEFAULT_API_PORT


def k3s_server_args(cfg: BootstrapConfig, listen_port: int | None = None) -> list[str]:
    """Build the k3s server flags shared by every backend.

    The bundled service load balancer is disabled when MetalLB takes over
    LoadBalancer services. An advertise address is added to the API server
    certificate so the rewritten kubeconfig can verify it.

    Args:
        cfg: Resolved bootstrap configuration.
        listen_port: API server port to request from k3s, or None for its default.

    Returns:
        List of ``--flag=value`` strings for ``k3s server``.
    """
    disabled = list(dict.fromkeys(cfg.cluster.disabled_components))
    if cfg.load_balancer.enabled and "servicelb" not in disabled:
        disabled.append("servicelb")
    args = [f"--disable={component}" for component in disabled]
    if cfg.cluster.disable_network_policy:
        args.append("--disable-network-policy")
    args.append(f"--flannel-backend={cfg.cluster.flannel_backend}")
    args.append("--write-kubeconfig-mode=644")
    if listen_port is not None and listen_port != DEFAULT_API_PORT:
        args.append(f"--https-listen-port={listen_port}")
    if cfg.cluster.advertise_address:
        args.append(f"--tls-san={cfg.cluster.advertise_address}")
    return args


class ClusterProvisioner(ABC):
    """Creates, inspects, and tears down one k3s cluster instance.

    Attributes:
        name: Backend name, as used in configuration.
        cfg: Resolved bootstrap configuration.
    """

    name = ""

    def __init__(self, cfg: BootstrapConfig) -> None:
        self.cfg = cfg

    @property
    def instance_name(self) -> str:
        return self.cfg.cluster.cluster_name

    @abstractmethod
    def reset(self) -> None:
        """Remove the instance and its persisted state, tolerating absence."""

    @abstractmethod
    def create(self) -> None:
        """Create the instance and install k3s inside it."""

    @abstractmethod
    def nodes_json(self) -> str | None:
        """Return ``kubectl get nodes -o json`` from inside the instance, or None if unreachable."""

    @abstractmethod
    def read_kubeconfig(self) -> str:
        """Return the kubeconfig generated by k3s."""

    @abstractmethod
    def external_host(self) -> str:
        """Return the address at which the host can reach the instance."""

    def api_endpoint(self) -> tuple[str, int]:
        """Return the (host, port) the rewritten kubeconfig should point at."""
        return self.external_host(), self.cfg.cluster.api_port

    @abstractmethod
    def logs(self, tail: int) -> str:
        """Return the last *tail* lines of the k3s server log."""
