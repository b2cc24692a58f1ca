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

"""GitOps repository sync and Argo CD watch registration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import sh
import yaml
from rich.panel import Panel

from demo_bootstrap import console, logger
from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import (
    GITOPS_COMMIT_MESSAGE,
    GITOPS_LAYOUT,
    IN_CLUSTER_API_SERVER,
    NS_ARGOCD,
    QUICKSTART_ENVIRONMENTS,
    TENANT_KUBERNETES_VERSION,
)
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.utils import apply_manifests

STEP = "gitops"

README_TEXT = """\
# Multi-Tenant Kubernetes Demo Platform

This repository provides a GitOps-driven platform for managing multiple Kubernetes
tenant clusters from a k3s management cluster. Argo CD watches it and reconciles
the tenant control planes under kamaji-clusters/.

See documentation/ for quickstart guides.
"""

CREDENTIALS_HINT = (
    "configure git credentials for the remote (ssh-add, a credential helper, or a token in the URL)"
)


@dataclass
class SyncResult:
    """Outcome of one repository sync.

    Attributes:
        origin: How the working copy was obtained: ``updated``, ``cloned`` or ``initialized``.
        created: Placeholder files and directories created by this run.
        committed: Whether a commit was made.
        pushed: Whether the branch was pushed.
    """

    origin: str
    created: list[str]
    committed: bool = False
    pushed: bool = False


def _git_env() -> dict[str, str]:
    # Never block on an interactive credential prompt.
    return {**os.environ, "GIT_TERMINAL_PROMPT": "0"}


def _git(repo_dir: Path, *args: str, **kwargs):
    return sh.git("-C", str(repo_dir), *args, _env=_git_env(), **kwargs)


def _succeeds(repo_dir: Path, *args: str) -> bool:
    return _git(repo_dir, *args, _ok_code=[0, 1, 128], _return_cmd=True).exit_code == 0


# ============================================================================
# Working copy
# ============================================================================

def remote_reachable(url: str) -> bool:
    """Return True if ``git ls-remote`` can list *url* with the current credentials."""
    try:
        sh.git("ls-remote", url, _env=_git_env())
    except sh.ErrorReturnCode as err:
        logger.info("git ls-remote %s failed: %s", url, err.stderr.decode(errors="replace").strip())
        return False
    return True


def checkout_branch(repo_dir: Path, branch: str) -> None:
    """Switch to *branch*, tracking origin's copy when only the remote has it."""
    if _succeeds(repo_dir, "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"):
        _git(repo_dir, "checkout", branch)
    elif _succeeds(repo_dir, "rev-parse", "--verify", "--quiet", f"refs/remotes/origin/{branch}"):
        _git(repo_dir, "checkout", "-b", branch, "--track", f"origin/{branch}")
    elif _succeeds(repo_dir, "rev-parse", "--verify", "--quiet", "HEAD"):
        _git(repo_dir, "checkout", "-b", branch)
    else:
        # No commits yet: point the unborn HEAD at the branch.
        _git(repo_dir, "symbolic-ref", "HEAD", f"refs/heads/{branch}")


def update_working_copy(repo_dir: Path, branch: str) -> None:
    """Fetch and fast-forward an existing working copy.

    A failed fetch or fast-forward only warns, since the repository may have
    been edited upstream on purpose.
    """
    console.print(f"[yellow]\u2139\ufe0f  Updating existing working copy at {repo_dir}...[/yellow]")
    try:
        _git(repo_dir, "fetch", "origin")
    except sh.ErrorReturnCode as err:
        logger.warning("git fetch failed in %s: %s", repo_dir, err.stderr.decode(errors="replace").strip())
        console.print("[yellow]\u26a0\ufe0f  Could not fetch from origin; continuing with the local copy[/yellow]")
    try:
        checkout_branch(repo_dir, branch)
    except sh.ErrorReturnCode as err:
        raise BootstrapError(STEP, f"cannot check out {branch} in {repo_dir}: "
                                   f"{err.stderr.decode(errors='replace').strip()}",
                             f"git -C {repo_dir} status") from err
    if not _succeeds(repo_dir, "rev-parse", "--verify", "--quiet", f"origin/{branch}"):
        return
    try:
        _git(repo_dir, "merge", "--ff-only", f"origin/{branch}")
    except sh.ErrorReturnCode as err:
        logger.warning("Fast-forward of %s to origin/%s failed: %s",
                       repo_dir, branch, err.stderr.decode(errors="replace").strip())
        console.print(f"[yellow]\u26a0\ufe0f  Could not fast-forward {branch} (diverged from origin); keeping local history[/yellow]")


def clone_or_init(repo_dir: Path, remote_url: str, branch: str) -> str:
    """Clone *remote_url*, or start a new repository with it registered as origin.

    Returns:
        ``cloned`` or ``initialized``.

    Raises:
        BootstrapError: If the clone or init itself fails.
    """
    try:
        if remote_reachable(remote_url):
            console.print(f"[yellow]\u2139\ufe0f  Cloning {remote_url}...[/yellow]")
            repo_dir.parent.mkdir(parents=True, exist_ok=True)
            sh.git("clone", remote_url, str(repo_dir), _env=_git_env())
            checkout_branch(repo_dir, branch)
            return "cloned"
        console.print(f"[yellow]\u26a0\ufe0f  {remote_url} is unreachable; initializing a new repository[/yellow]")
        repo_dir.mkdir(parents=True, exist_ok=True)
        _git(repo_dir, "init")
        _git(repo_dir, "remote", "add", "origin", remote_url)
        checkout_branch(repo_dir, branch)
        return "initialized"
    except sh.ErrorReturnCode as err:
        raise BootstrapError(STEP, f"cannot prepare working copy at {repo_dir}: "
                                   f"{err.stderr.decode(errors='replace').strip()}",
                             f"ls -la {repo_dir}") from err


# ============================================================================
# Layout and placeholders
# ============================================================================

def tenant_manifest(variant: str, service_type: str) -> dict:
    """Build the placeholder Kamaji TenantControlPlane for *variant*."""
    return {
        "apiVersion": "kamaji.clastix.io/v1alpha1",
        "kind": "TenantControlPlane",
        "metadata": {"name": f"tenant-{variant}-demo", "namespace": "default"},
        "spec": {
            "controlPlane": {
                "deployment": {"replicas": 1},
                "service": {"serviceType": service_type},
            },
            "kubernetes": {
                "version": TENANT_KUBERNETES_VERSION,
                "kubelet": {"cgroupfs": "systemd"},
            },
            "networkProfile": {"port": 6443},
            "addons": {"coreDNS": {}, "kubeProxy": {}},
        },
    }


def placeholder_files(cfg: BootstrapConfig) -> dict[str, tuple[str, bool]]:
    """Return ``{relative path: (content, executable)}`` for every placeholder."""
    variant = cfg.cluster.variant
    files: dict[str, tuple[str, bool]] = {"README.md": (README_TEXT, False)}
    for env in QUICKSTART_ENVIRONMENTS:
        files[f"documentation/quickstart-{env}.md"] = (f"# Quickstart for {env} environment\n", False)
    files[f"kamaji-clusters/tenant-{variant}-demo.yaml"] = (
        yaml.safe_dump(tenant_manifest(variant, cfg.exposure.service_type), sort_keys=False),
        False,
    )
    files[f"scripts/bootstrap-{variant}.sh"] = (
        f"#!/bin/bash\n# Placeholder for bootstrap-{variant}.sh\n"
        f'echo "Bootstrap script for {variant} environment"\n',
        True,
    )
    return files


def ensure_layout(repo_dir: Path) -> list[str]:
    """Create missing layout directories and return the ones created."""
    created = []
    for rel in GITOPS_LAYOUT:
        path = repo_dir / rel
        if not path.is_dir():
            path.mkdir(parents=True, exist_ok=True)
            created.append(f"{rel}/")
    return created


def write_placeholders(repo_dir: Path, files: dict[str, tuple[str, bool]]) -> list[str]:
    """Write placeholder files that do not exist yet; existing files are never touched."""
    created = []
    for rel, (content, executable) in files.items():
        path = repo_dir / rel
        if path.exists():
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if executable:
            path.chmod(0o755)
        created.append(rel)
    return created


# ============================================================================
# Commit and push
# ============================================================================

def commit_changes(repo_dir: Path, cfg: BootstrapConfig) -> bool:
    """Stage everything and commit only when the index differs from HEAD.

    Returns:
        True if a commit was made.
    """
    _git(repo_dir, "add", "-A")
    if _git(repo_dir, "diff", "--cached", "--quiet", _ok_code=[0, 1], _return_cmd=True).exit_code == 0:
        console.print("[yellow]\u2139\ufe0f  No changes to commit in the GitOps repository[/yellow]")
        return False
    _git(
        repo_dir,
        "-c", f"user.name={cfg.gitops.author_name}",
        "-c", f"user.email={cfg.gitops.author_email}",
        "commit", "-m", GITOPS_COMMIT_MESSAGE,
    )
    console.print(f"[green]\u2705 Committed: {GITOPS_COMMIT_MESSAGE}[/green]")
    return True


def has_upstream(repo_dir: Path) -> bool:
    return _succeeds(repo_dir, "rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}")


def ahead_behind(repo_dir: Path) -> tuple[int, int]:
    """Return (commits only on HEAD, commits only on the upstream branch)."""
    out = str(_git(repo_dir, "rev-list", "--left-right", "--count", "HEAD...@{u}")).split()
    return int(out[0]), int(out[1])


def needs_push(repo_dir: Path) -> bool:
    """Return True when the branch has work origin has not received.

    A commit from an earlier run whose push was rejected still counts.
    """
    if not _succeeds(repo_dir, "rev-parse", "--verify", "--quiet", "HEAD"):
        return False
    if not has_upstream(repo_dir):
        return True
    ahead, behind = ahead_behind(repo_dir)
    if ahead and behind:
        logger.warning("%s diverged from its upstream (%d ahead, %d behind); push skipped", repo_dir, ahead, behind)
        console.print("[yellow]\u26a0\ufe0f  Local branch has diverged from origin; not pushing[/yellow]")
        return False
    return ahead > 0


def push_branch(repo_dir: Path, branch: str, remote_url: str) -> None:
    """Push *branch* to origin and set its upstream.

    Raises:
        BootstrapError: If the remote rejects the push.
    """
    try:
        _git(repo_dir, "push", "-u", "origin", branch)
    except sh.ErrorReturnCode as err:
        raise BootstrapError(STEP, f"failed to push {branch} to {remote_url}: "
                                   f"{err.stderr.decode(errors='replace').strip()}",
                             CREDENTIALS_HINT) from err
    console.print(f"[green]\u2705 Pushed {branch} to {remote_url}[/green]")


def sync_gitops_repo(cfg: BootstrapConfig) -> SyncResult:
    """Clone or update the GitOps repository, add missing placeholders, commit, and push.

    Args:
        cfg: Resolved bootstrap configuration.

    Returns:
        What the sync did.

    Raises:
        BootstrapError: If the working copy cannot be prepared or the push is rejected.
    """
    gitops = cfg.gitops
    repo_dir = cfg.gitops_dir
    if not gitops.remote_url:
        raise BootstrapError(STEP, "no GitOps remote URL is set", "export DEMO_GITOPS_REMOTE_URL=<url>")
    console.print(Panel.fit(f"Syncing GitOps repository ({gitops.remote_url})", style="bold blue"))

    if (repo_dir / ".git").exists():
        update_working_copy(repo_dir, gitops.branch)
        origin = "updated"
    else:
        origin = clone_or_init(repo_dir, gitops.remote_url, gitops.branch)

    created = ensure_layout(repo_dir)
    created += write_placeholders(repo_dir, placeholder_files(cfg))
    for rel in created:
        logger.info("Created %s in %s", rel, repo_dir)
    result = SyncResult(origin=origin, created=created)

    try:
        result.committed = commit_changes(repo_dir, cfg)
    except sh.ErrorReturnCode as err:
        raise BootstrapError(STEP, f"git commit failed: {err.stderr.decode(errors='replace').strip()}",
                             f"git -C {repo_dir} status") from err

    if not gitops.push:
        console.print("[yellow]\u2139\ufe0f  Push disabled (DEMO_GITOPS_PUSH=false); leaving commits local[/yellow]")
    elif needs_push(repo_dir):
        push_branch(repo_dir, gitops.branch, gitops.remote_url)
        result.pushed = True
    console.print(f"[green]\u2705 GitOps repository ready at {repo_dir}[/green]")
    return result


# ============================================================================
# Argo CD watch
# ============================================================================

def application_manifest(cfg: BootstrapConfig) -> dict:
    """Build the Argo CD Application that watches the GitOps repository."""
    return {
        "apiVersion": "argoproj.io/v1alpha1",
        "kind": "Application",
        "metadata": {"name": cfg.gitops.app_name, "namespace": NS_ARGOCD},
        "spec": {
            "project": "default",
            "source": {
                "repoURL": cfg.gitops.remote_url,
                "path": cfg.gitops.watch_path,
                "targetRevision": cfg.gitops.branch,
            },
            "destination": {"server": IN_CLUSTER_API_SERVER, "namespace": "default"},
            "syncPolicy": {
                "automated": {"prune": True, "selfHeal": True},
                "syncOptions": ["CreateNamespace=true"],
            },
        },
    }


def register_watch(cfg: BootstrapConfig, kubeconfig: Path) -> None:
    """Apply the Argo CD Application for the GitOps repository.

    Raises:
        BootstrapError: If the Application cannot be applied.
    """
    console.print(Panel.fit(f"Registering Argo CD application '{cfg.gitops.app_name}'", style="bold blue"))
    ok, stderr = apply_manifests([application_manifest(cfg)], kubeconfig)
    if not ok:
        raise BootstrapError(STEP, f"failed to apply Argo CD Application: {stderr.strip()}",
                             f"kubectl --kubeconfig {kubeconfig} -n {NS_ARGOCD} get applications")
    console.print(f"[green]\u2705 Argo CD watches {cfg.gitops.remote_url} "
                  f"({cfg.gitops.watch_path} on {cfg.gitops.branch})[/green]")
