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

"""Orchestration functions that compose the steps into the bootstrap procedure."""

from __future__ import annotations

from rich.panel import Panel

from demo_bootstrap import console, logger
from demo_bootstrap.cluster import create_or_reuse, reset_cluster
from demo_bootstrap.components import install_tools
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.exposure import ServiceExposer, expose_gitops_ui, get_exposer
from demo_bootstrap.gitops import register_watch, sync_gitops_repo
from demo_bootstrap.kubeconfig import materialize_kubeconfig
from demo_bootstrap.loadbalancer import setup_load_balancer
from demo_bootstrap.preflight import run_preflight
from demo_bootstrap.provisioners import ClusterProvisioner, get_provisioner
from demo_bootstrap.report import report


def run_reset(cfg: BootstrapConfig, provisioner: ClusterProvisioner | None = None) -> None:
    """Tear down the cluster instance and the installation directory.

    Args:
        cfg: Resolved bootstrap configuration.
        provisioner: Backend to reset, or None for the configured one.
    """
    reset_cluster(provisioner or get_provisioner(cfg), cfg)


def run_bootstrap(
    cfg: BootstrapConfig,
    provisioner: ClusterProvisioner | None = None,
    exposer: ServiceExposer | None = None,
) -> str | None:
    """Run the whole procedure, from preflight to the final report.

    Every step is idempotent, so re-running after a failure converges to
    the same end state.

    Args:
        cfg: Resolved bootstrap configuration.
        provisioner: Backend for the cluster instance, or None for the configured one.
        exposer: Argo CD service exposer, or None for the configured service type.

    Returns:
        The external Argo CD URL, or None if it was still pending.

    Raises:
        BootstrapError: On the first fatal step failure.
    """
    provisioner = provisioner or get_provisioner(cfg)
    logger.info("Bootstrap started: variant=%s backend=%s", cfg.cluster.variant, provisioner.name)
    console.print(Panel.fit(f"Bootstrapping the {cfg.cluster.variant} demo environment", style="bold magenta"))

    run_preflight(cfg)
    if cfg.cluster.reset:
        reset_cluster(provisioner, cfg)
    create_or_reuse(provisioner, cfg)
    kubeconfig = materialize_kubeconfig(provisioner, cfg)

    install_tools(cfg, kubeconfig)
    setup_load_balancer(cfg, kubeconfig)

    exposer = exposer or get_exposer(cfg, provisioner, kubeconfig)
    url = expose_gitops_ui(exposer, cfg)

    if cfg.gitops.enabled:
        sync_gitops_repo(cfg)
        register_watch(cfg, kubeconfig)
    else:
        console.print("[yellow]\u2139\ufe0f  Skipping GitOps repository sync (disabled)[/yellow]")

    report(cfg, kubeconfig, url)
    return url
