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

"""Argo CD UI exposure and external-address polling."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path

from rich.panel import Panel

from demo_bootstrap import console, logger
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import (
    ARGOCD_HTTPS_PORT_NAME,
    ARGOCD_SERVER_SERVICE,
    NS_ARGOCD,
    SERVICE_TYPE_LOAD_BALANCER,
    SERVICE_TYPE_NODE_PORT,
)
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.provisioners import ClusterProvisioner
from demo_bootstrap.utils import poll_until, run_kubectl

STEP = "expose"


class ServiceExposer(ABC):
    """Makes one service reachable from outside the cluster.

    Attributes:
        service_type: Kubernetes service type this exposer sets.
        kubeconfig: Kubeconfig of the target cluster.
        namespace: Namespace of the service.
        service: Service name.
    """

    service_type = ""

    def __init__(self, kubeconfig: Path, namespace: str = NS_ARGOCD, service: str = ARGOCD_SERVER_SERVICE) -> None:
        self.kubeconfig = kubeconfig
        self.namespace = namespace
        self.service = service

    def expose(self) -> None:
        """Patch the service type.

        Raises:
            BootstrapError: If the patch is rejected.
        """
        patch = json.dumps({"spec": {"type": self.service_type}})
        ok, _, stderr = run_kubectl(
            ["-n", self.namespace, "patch", "svc", self.service, "-p", patch],
            kubeconfig=self.kubeconfig,
        )
        if not ok:
            raise BootstrapError(STEP, f"failed to patch service {self.service}: {stderr.strip()}",
                                 f"kubectl --kubeconfig {self.kubeconfig} -n {self.namespace} get svc {self.service}")
        console.print(f"[green]\u2705 Service {self.namespace}/{self.service} set to {self.service_type}[/green]")

    def _service(self) -> dict | None:
        ok, stdout, _ = run_kubectl(
            ["-n", self.namespace, "get", "svc", self.service, "-o", "json"],
            kubeconfig=self.kubeconfig,
        )
        if not ok:
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError:
            return None

    @abstractmethod
    def probe(self) -> str | None:
        """Make one attempt to find the external URL; None means not assigned yet."""

    def pending_hint(self) -> str:
        return f"kubectl --kubeconfig {self.kubeconfig} -n {self.namespace} get svc {self.service}"


class LoadBalancerExposer(ServiceExposer):
    """Waits for the load-balancer controller to assign an ingress address."""

    service_type = SERVICE_TYPE_LOAD_BALANCER

    def probe(self) -> str | None:
        svc = self._service()
        if svc is None:
            return None
        ingress = svc.get("status", {}).get("loadBalancer", {}).get("ingress") or []
        if not ingress:
            return None
        address = ingress[0].get("ip") or ingress[0].get("hostname")
        return f"https://{address}" if address else None


class NodePortExposer(ServiceExposer):
    """Pairs the https node port with the cluster instance's address."""

    service_type = SERVICE_TYPE_NODE_PORT

    def __init__(self, kubeconfig: Path, host: str, **kwargs) -> None:
        super().__init__(kubeconfig, **kwargs)
        self.host = host

    def probe(self) -> str | None:
        svc = self._service()
        if svc is None:
            return None
        ports = svc.get("spec", {}).get("ports") or []
        https = [p for p in ports if p.get("name") == ARGOCD_HTTPS_PORT_NAME] or ports
        node_port = https[0].get("nodePort") if https else None
        return f"https://{self.host}:{node_port}" if node_port else None


def get_exposer(cfg: BootstrapConfig, provisioner: ClusterProvisioner, kubeconfig: Path) -> ServiceExposer:
    """Return the exposer for the configured service type."""
    if cfg.exposure.service_type == SERVICE_TYPE_NODE_PORT:
        return NodePortExposer(kubeconfig, host=provisioner.external_host())
    return LoadBalancerExposer(kubeconfig)


def expose_gitops_ui(exposer: ServiceExposer, cfg: BootstrapConfig) -> str | None:
    """Expose the Argo CD server and poll for its external URL.

    Exhausting the attempt budget only produces a warning; the rest of the
    environment does not depend on the UI being reachable.

    Args:
        exposer: Service exposer for the configured service type.
        cfg: Resolved bootstrap configuration with the polling budget.

    Returns:
        The external URL, or None if none was assigned in time.

    Raises:
        BootstrapError: If the service cannot be patched.
    """
    console.print(Panel.fit(f"Exposing Argo CD ({exposer.service_type})", style="bold blue"))
    exposer.expose()
    attempts = cfg.exposure.max_attempts
    interval = cfg.exposure.poll_interval
    console.print(f"[yellow]\u2139\ufe0f  Waiting for an external address ({attempts} attempts, {interval}s apart)...[/yellow]")
    url = poll_until(exposer.probe, attempts, interval)
    if url is None:
        logger.warning("No external address for %s/%s after %d attempts; check later with: %s",
                       exposer.namespace, exposer.service, attempts, exposer.pending_hint())
        console.print("[yellow]\u26a0\ufe0f  External address still pending; check later with:[/yellow]")
        console.print(f"[yellow]   {exposer.pending_hint()}[/yellow]")
        return None
    console.print(f"[green]\u2705 Argo CD reachable at {url}[/green]")
    return url
