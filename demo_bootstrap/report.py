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

"""Final access report."""

from __future__ import annotations

from pathlib import Path

from rich.panel import Panel

from demo_bootstrap import console, logger
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import ARGOCD_ADMIN_SECRET, ARGOCD_ADMIN_USER, ARGOCD_SERVER_SERVICE, NS_ARGOCD
from demo_bootstrap.utils import decode_secret_value, run_kubectl


def read_admin_password(kubeconfig: Path) -> str | None:
    """Return the decoded Argo CD initial admin password, or None if unavailable."""
    ok, stdout, stderr = run_kubectl(
        ["-n", NS_ARGOCD, "get", "secret", ARGOCD_ADMIN_SECRET, "-o", "jsonpath={.data.password}"],
        kubeconfig=kubeconfig,
    )
    if not ok:
        logger.info("Cannot read %s: %s", ARGOCD_ADMIN_SECRET, stderr.strip())
        return None
    return decode_secret_value(stdout)


def report(cfg: BootstrapConfig, kubeconfig: Path, url: str | None) -> None:
    """Print how to reach the environment.

    The admin password is printed once and never written to the session log.

    Args:
        cfg: Resolved bootstrap configuration.
        kubeconfig: Kubeconfig of the target cluster.
        url: External Argo CD URL, or None if it was not assigned in time.
    """
    console.print(Panel.fit("Environment ready", style="bold green"))
    password = read_admin_password(kubeconfig)

    console.print("[yellow]Argo CD:[/yellow]")
    if url:
        console.print(f"  url             : {url}")
    else:
        console.print("  url             : pending, check with")
        console.print(f"                    kubectl --kubeconfig {kubeconfig} -n {NS_ARGOCD} "
                      f"get svc {ARGOCD_SERVER_SERVICE}")
    console.print(f"  username        : {ARGOCD_ADMIN_USER}")
    if password:
        console.print(f"  password        : {password}", highlight=False)
    else:
        logger.warning("Argo CD admin secret %s/%s not available", NS_ARGOCD, ARGOCD_ADMIN_SECRET)
        console.print("[yellow]\u26a0\ufe0f  Admin password not available yet; retrieve it later with:[/yellow]")
        console.print(f"[yellow]   kubectl --kubeconfig {kubeconfig} -n {NS_ARGOCD} get secret "
                      f"{ARGOCD_ADMIN_SECRET} -o jsonpath='{{.data.password}}' | base64 -d[/yellow]")

    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  kubeconfig      : {kubeconfig}")
    console.print(f"  export KUBECONFIG={kubeconfig}", highlight=False)
    if cfg.log_file is not None:
        console.print(f"  session log     : {cfg.log_file}")
    if cfg.gitops.enabled:
        console.print("[yellow]GitOps:[/yellow]")
        console.print(f"  working_copy    : {cfg.gitops_dir}")
        console.print(f"  watching        : {cfg.gitops.remote_url} ({cfg.gitops.watch_path}@{cfg.gitops.branch})")
    logger.info("Bootstrap complete; kubeconfig at %s, Argo CD url %s", kubeconfig, url or "pending")
