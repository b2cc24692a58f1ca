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

"""Optional MetalLB install with an L2 address pool."""

from __future__ import annotations

from pathlib import Path

from rich.panel import Panel
from tenacity import retry, stop_after_attempt, wait_fixed

from demo_bootstrap import console, logger
from demo_bootstrap.components import ChartSpec, add_helm_repos, install_chart, wait_for_deployments
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import (
    HELM_REPO_METALLB,
    METALLB_CONTROLLER_DEPLOYMENT,
    METALLB_WEBHOOK_MAX_RETRIES,
    METALLB_WEBHOOK_POLL_INTERVAL_SECONDS,
    NS_METALLB,
)
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.utils import apply_manifests

STEP = "load-balancer"
METALLB_API_VERSION = "metallb.io/v1beta1"


def metallb_chart(cfg: BootstrapConfig) -> ChartSpec:
    return ChartSpec(
        release="metallb", chart="metallb", repo=HELM_REPO_METALLB,
        version=cfg.tools.metallb_version, namespace=NS_METALLB,
        values={
            "controller.resources.requests.cpu": "50m",
            "controller.resources.requests.memory": "64Mi",
        },
    )


def address_pool_manifests(ip_pool: str, pool_name: str, advertisement_name: str,
                           namespace: str = NS_METALLB) -> list[dict]:
    """Build the IPAddressPool and the L2Advertisement that announces it.

    Args:
        ip_pool: Address range (CIDR or ``first-last``).
        pool_name: Name of the IPAddressPool.
        advertisement_name: Name of the L2Advertisement.
        namespace: MetalLB namespace.

    Returns:
        The two resources, pool first.

    Raises:
        ValueError: If any field is empty.
    """
    for label, value in (("ip_pool", ip_pool), ("pool_name", pool_name),
                         ("advertisement_name", advertisement_name)):
        if not value:
            raise ValueError(f"{label} must not be empty")
    pool = {
        "apiVersion": METALLB_API_VERSION,
        "kind": "IPAddressPool",
        "metadata": {"name": pool_name, "namespace": namespace},
        "spec": {"addresses": [ip_pool]},
    }
    advertisement = {
        "apiVersion": METALLB_API_VERSION,
        "kind": "L2Advertisement",
        "metadata": {"name": advertisement_name, "namespace": namespace},
        "spec": {"ipAddressPools": [pool_name]},
    }
    return [pool, advertisement]


@retry(
    stop=stop_after_attempt(METALLB_WEBHOOK_MAX_RETRIES),
    wait=wait_fixed(METALLB_WEBHOOK_POLL_INTERVAL_SECONDS),
    reraise=True,
)
def _apply_address_pool(docs: list[dict], kubeconfig: Path) -> None:
    """Apply the pool resources with retry for webhook readiness.

    Raises:
        RuntimeError: If the MetalLB webhook keeps rejecting the apply.
    """
    ok, stderr = apply_manifests(docs, kubeconfig)
    if not ok:
        logger.info("MetalLB address pool apply failed, retrying: %s", stderr.strip())
        raise RuntimeError(f"MetalLB webhook not ready: {stderr.strip()}")


def setup_load_balancer(cfg: BootstrapConfig, kubeconfig: Path) -> bool:
    """Install MetalLB and apply the address pool, or skip when disabled.

    Args:
        cfg: Resolved bootstrap configuration.
        kubeconfig: Kubeconfig of the target cluster.

    Returns:
        True if MetalLB was set up, False if the step was skipped.

    Raises:
        BootstrapError: If the install fails, the controller never becomes
            Available, or the address pool cannot be applied.
    """
    lb = cfg.load_balancer
    if not lb.enabled:
        console.print("[yellow]\u2139\ufe0f  Skipping MetalLB (DEMO_METALLB_ENABLED is false)[/yellow]")
        logger.info("MetalLB disabled; skipping")
        return False

    console.print(Panel.fit(f"Setting up MetalLB (pool {lb.ip_pool})", style="bold blue"))
    spec = metallb_chart(cfg)
    add_helm_repos([spec.repo])
    install_chart(spec, kubeconfig, step=STEP)
    wait_for_deployments(NS_METALLB, lb.ready_timeout, kubeconfig, step=STEP,
                         selector=METALLB_CONTROLLER_DEPLOYMENT)

    try:
        docs = address_pool_manifests(lb.ip_pool, lb.pool_name, lb.advertisement_name)
    except ValueError as err:
        raise BootstrapError("config", str(err), "export DEMO_METALLB_IP_POOL=<cidr-or-range>") from err
    console.print(f"[yellow]\u2139\ufe0f  Applying address pool '{lb.pool_name}' and advertisement "
                  f"'{lb.advertisement_name}'...[/yellow]")
    try:
        _apply_address_pool(docs, kubeconfig)
    except RuntimeError as err:
        raise BootstrapError(STEP, str(err), f"kubectl --kubeconfig {kubeconfig} -n {NS_METALLB} get pods") from err
    console.print(f"[green]\u2705 MetalLB is serving {lb.ip_pool}[/green]")
    return True
