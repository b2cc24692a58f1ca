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

"""Cluster reset, bring-up, and node readiness."""

from __future__ import annotations

import json
import shutil

from rich.panel import Panel

from demo_bootstrap import console, logger
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import CLUSTER_LOG_TAIL_LINES
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.provisioners import ClusterProvisioner
from demo_bootstrap.utils import attempts_for, poll_until


def nodes_ready(nodes_json: str | None) -> bool:
    """Return True when the node list is non-empty and every node is Ready.

    Args:
        nodes_json: Output of ``kubectl get nodes -o json``, or None.

    Returns:
        True if every node reports a ``Ready`` condition with status ``True``.
    """
    if not nodes_json:
        return False
    try:
        items = json.loads(nodes_json).get("items", [])
    except (json.JSONDecodeError, AttributeError):
        return False
    if not items:
        return False
    for node in items:
        conditions = node.get("status", {}).get("conditions", [])
        if not any(c.get("type") == "Ready" and c.get("status") == "True" for c in conditions):
            return False
    return True


# ============================================================================
# Reset
# ============================================================================

def reset_cluster(provisioner: ClusterProvisioner, cfg: BootstrapConfig) -> None:
    """Tear down the cluster instance and delete the installation directory.

    Args:
        provisioner: Backend owning the cluster instance.
        cfg: Resolved bootstrap configuration.
    """
    console.print(Panel.fit(f"Resetting cluster '{cfg.cluster.cluster_name}'", style="bold blue"))
    logger.info("Resetting %s instance %s", provisioner.name, provisioner.instance_name)
    provisioner.reset()
    if cfg.paths.install_dir.exists():
        try:
            shutil.rmtree(cfg.paths.install_dir)
        except OSError as err:
            raise BootstrapError("reset", f"cannot remove {cfg.paths.install_dir}: {err}",
                                 f"sudo rm -rf {cfg.paths.install_dir}") from err
        console.print(f"[yellow]   Removed {cfg.paths.install_dir}[/yellow]")
    console.print("[green]\u2705 Previous state removed[/green]")


# ============================================================================
# Bring-up
# ============================================================================

def wait_for_nodes(provisioner: ClusterProvisioner, cfg: BootstrapConfig) -> None:
    """Poll the instance until every node reports Ready.

    Args:
        provisioner: Backend owning the cluster instance.
        cfg: Resolved bootstrap configuration with the readiness timeout.

    Raises:
        BootstrapError: If the nodes are not Ready within the timeout.
    """
    timeout = cfg.cluster.ready_timeout
    interval = cfg.cluster.ready_poll_interval
    console.print(f"[yellow]\u2139\ufe0f  Waiting up to {timeout}s for all nodes to be ready...[/yellow]")
    ready = poll_until(lambda: nodes_ready(provisioner.nodes_json()), attempts_for(timeout, interval), interval)
    if not ready:
        logs = provisioner.logs(CLUSTER_LOG_TAIL_LINES)
        logger.error("Last %d lines of k3s logs:\n%s", CLUSTER_LOG_TAIL_LINES, logs)
        console.print(f"[red]Last {CLUSTER_LOG_TAIL_LINES} lines of k3s logs:[/red]")
        console.print(logs, markup=False, highlight=False)
        raise BootstrapError("cluster", f"nodes not Ready after {timeout}s",
                             "re-run with DEMO_RESET=true for a clean instance")
    console.print("[green]\u2705 All nodes are ready[/green]")


def create_or_reuse(provisioner: ClusterProvisioner, cfg: BootstrapConfig) -> bool:
    """Create the cluster instance unless a ready one already exists.

    Args:
        provisioner: Backend owning the cluster instance.
        cfg: Resolved bootstrap configuration.

    Returns:
        True if a new instance was created, False if an existing one was reused.

    Raises:
        BootstrapError: If creation fails or the nodes never become Ready.
    """
    console.print(Panel.fit(f"Bringing up k3s cluster ({provisioner.name})", style="bold blue"))
    if nodes_ready(provisioner.nodes_json()):
        console.print(f"[green]\u2705 Cluster '{provisioner.instance_name}' is already running and ready[/green]")
        logger.info("Reusing ready instance %s", provisioner.instance_name)
        return False
    logger.info("Creating %s instance %s", provisioner.name, provisioner.instance_name)
    provisioner.create()
    wait_for_nodes(provisioner, cfg)
    return True
