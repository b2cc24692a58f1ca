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

"""Helm installation of the management tools: cert-manager, Kamaji, Argo CD, Crossplane, Sveltos."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import sh
from rich.panel import Panel

from demo_bootstrap import console, logger
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import (
    HELM_REPO_ARGO,
    HELM_REPO_CLASTIX,
    HELM_REPO_CROSSPLANE,
    HELM_REPO_JETSTACK,
    HELM_REPO_SVELTOS,
    NS_ARGOCD,
    NS_CERT_MANAGER,
    NS_CROSSPLANE,
    NS_KAMAJI,
    NS_SVELTOS,
)
from demo_bootstrap.errors import BootstrapError

STEP = "tools"


@dataclass(frozen=True)
class ChartSpec:
    """One Helm release to install or upgrade.

    Attributes:
        release: Helm release name.
        chart: Chart name within its repository.
        repo: (name, url) of the Helm repository.
        version: Pinned chart version.
        namespace: Target namespace, created on demand.
        values: ``--set`` overrides, mostly minimal resource requests.
        prerequisite: Whether dependents must wait for this release's deployments.
    """

    release: str
    chart: str
    repo: tuple[str, str]
    version: str
    namespace: str
    values: dict[str, str] = field(default_factory=dict)
    prerequisite: bool = False

    @property
    def chart_ref(self) -> str:
        return f"{self.repo[0]}/{self.chart}"


def tool_charts(cfg: BootstrapConfig) -> list[ChartSpec]:
    """Return the management tool charts in install order.

    cert-manager comes first because Kamaji requests its webhook
    certificates from it.

    Args:
        cfg: Resolved bootstrap configuration with pinned versions.

    Returns:
        Ordered list of chart specs.
    """
    tools = cfg.tools
    charts = [
        ChartSpec(
            release="cert-manager", chart="cert-manager", repo=HELM_REPO_JETSTACK,
            version=tools.cert_manager_version, namespace=NS_CERT_MANAGER,
            values={
                "crds.enabled": "true",
                "resources.requests.cpu": "50m",
                "resources.requests.memory": "64Mi",
            },
            prerequisite=True,
        ),
        ChartSpec(
            release="kamaji", chart="kamaji", repo=HELM_REPO_CLASTIX,
            version=tools.kamaji_version, namespace=NS_KAMAJI,
            values={
                "image.tag": "latest",
                "resources.requests.cpu": "100m",
                "resources.requests.memory": "128Mi",
            },
        ),
        ChartSpec(
            release="argocd", chart="argo-cd", repo=HELM_REPO_ARGO,
            version=tools.argocd_version, namespace=NS_ARGOCD,
            values={
                "crds.install": "true",
                "server.service.type": cfg.exposure.service_type,
                "server.resources.requests.cpu": "50m",
                "server.resources.requests.memory": "64Mi",
            },
        ),
        ChartSpec(
            release="crossplane", chart="crossplane", repo=HELM_REPO_CROSSPLANE,
            version=tools.crossplane_version, namespace=NS_CROSSPLANE,
            values={
                "resourcesCrossplane.requests.cpu": "100m",
                "resourcesCrossplane.requests.memory": "128Mi",
            },
        ),
        ChartSpec(
            release="sveltos", chart="projectsveltos", repo=HELM_REPO_SVELTOS,
            version=tools.sveltos_version, namespace=NS_SVELTOS,
            values={
                "resources.requests.cpu": "50m",
                "resources.requests.memory": "64Mi",
            },
        ),
    ]
    if tools.sveltos_dashboard:
        charts.append(ChartSpec(
            release="sveltos-dashboard", chart="sveltos-dashboard", repo=HELM_REPO_SVELTOS,
            version=tools.sveltos_dashboard_version, namespace=NS_SVELTOS,
        ))
    return charts


# ============================================================================
# Helm operations
# ============================================================================

def add_helm_repos(repos: list[tuple[str, str]]) -> None:
    """Register Helm repositories and refresh their indexes.

    Raises:
        BootstrapError: If a repository cannot be added or updated.
    """
    unique = list(dict.fromkeys(repos))
    try:
        for name, url in unique:
            sh.helm("repo", "add", name, url, "--force-update")
        sh.helm("repo", "update", *[name for name, _ in unique])
    except sh.ErrorReturnCode as err:
        raise BootstrapError(STEP, f"failed to register Helm repositories: {err.stderr.decode(errors='replace')}",
                             "helm repo list") from err
    console.print(f"[green]\u2705 Helm repositories ready ({', '.join(name for name, _ in unique)})[/green]")


def install_chart(spec: ChartSpec, kubeconfig: Path, step: str = STEP) -> None:
    """Install or upgrade one chart at its pinned version.

    Raises:
        BootstrapError: If helm reports a failure.
    """
    console.print(f"[yellow]\u2139\ufe0f  Installing {spec.release} {spec.version} into {spec.namespace}...[/yellow]")
    set_args = [item for key, value in spec.values.items() for item in ("--set", f"{key}={value}")]
    try:
        sh.helm(
            "upgrade", "--install", spec.release, spec.chart_ref,
            "--version", spec.version,
            "--namespace", spec.namespace,
            "--create-namespace",
            *set_args,
            "--kubeconfig", str(kubeconfig),
        )
    except sh.ErrorReturnCode as err:
        raise BootstrapError(step, f"{spec.release} installation failed: {err.stderr.decode(errors='replace')}",
                             f"helm status {spec.release} -n {spec.namespace}") from err
    logger.info("Installed %s %s in %s", spec.release, spec.version, spec.namespace)
    console.print(f"[green]\u2705 {spec.release} installed[/green]")


def wait_for_deployments(namespace: str, timeout: int, kubeconfig: Path, step: str = STEP,
                         selector: str | None = None) -> None:
    """Wait until deployments in *namespace* report Available.

    Args:
        namespace: Namespace to wait on.
        timeout: Maximum seconds to wait.
        kubeconfig: Kubeconfig file to use.
        step: Step name reported on failure.
        selector: Single deployment name, or None for every deployment.

    Raises:
        BootstrapError: If the deployments are not Available in time.
    """
    target = [f"deployment/{selector}"] if selector else ["deployment", "--all"]
    console.print(f"[yellow]\u2139\ufe0f  Waiting up to {timeout}s for deployments in {namespace}...[/yellow]")
    try:
        sh.kubectl(
            "wait", "--for=condition=Available", *target,
            "-n", namespace,
            f"--timeout={timeout}s",
            "--kubeconfig", str(kubeconfig),
        )
    except sh.ErrorReturnCode as err:
        raise BootstrapError(step, f"deployments in {namespace} not Available after {timeout}s",
                             f"kubectl --kubeconfig {kubeconfig} -n {namespace} get pods") from err
    console.print(f"[green]\u2705 Deployments in {namespace} are available[/green]")


def install_tools(cfg: BootstrapConfig, kubeconfig: Path) -> None:
    """Install the management tools in dependency order.

    Args:
        cfg: Resolved bootstrap configuration.
        kubeconfig: Kubeconfig of the target cluster.

    Raises:
        BootstrapError: On the first failed install or readiness wait.
    """
    console.print(Panel.fit("Installing management tools", style="bold blue"))
    charts = tool_charts(cfg)
    add_helm_repos([spec.repo for spec in charts])
    for spec in charts:
        install_chart(spec, kubeconfig)
        if spec.prerequisite:
            wait_for_deployments(spec.namespace, cfg.tools.prerequisite_timeout, kubeconfig)
