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

"""Post-install setup subcommands (expose, gitops, report)."""

from __future__ import annotations

import typer

from demo_bootstrap.commands import load_config
from demo_bootstrap.exposure import expose_gitops_ui, get_exposer
from demo_bootstrap.gitops import register_watch, sync_gitops_repo
from demo_bootstrap.kubeconfig import require_kubeconfig
from demo_bootstrap.provisioners import get_provisioner
from demo_bootstrap.report import report as print_report

app = typer.Typer(help="Post-install setup steps.")


@app.command()
def expose(
    variant: str | None = typer.Option(None, "--variant", help="Target environment (laptop, onprem, vm, k3d)"),
) -> None:
    """Expose the Argo CD UI and wait for its external address."""
    cfg = load_config(variant=variant, skip_gitops=True)
    kubeconfig = require_kubeconfig(cfg)
    expose_gitops_ui(get_exposer(cfg, get_provisioner(cfg), kubeconfig), cfg)


@app.command()
def gitops(
    variant: str | None = typer.Option(None, "--variant", help="Target environment (laptop, onprem, vm, k3d)"),
    skip_watch: bool = typer.Option(False, "--skip-watch", help="Only sync the repository"),
) -> None:
    """Sync the GitOps repository and register the Argo CD application."""
    cfg = load_config(variant=variant)
    sync_gitops_repo(cfg)
    if not skip_watch:
        register_watch(cfg, require_kubeconfig(cfg))


@app.command()
def report(
    variant: str | None = typer.Option(None, "--variant", help="Target environment (laptop, onprem, vm, k3d)"),
) -> None:
    """Print the Argo CD URL, admin credentials, and kubeconfig location."""
    cfg = load_config(variant=variant)
    kubeconfig = require_kubeconfig(cfg)
    url = get_exposer(cfg, get_provisioner(cfg), kubeconfig).probe()
    print_report(cfg, kubeconfig, url)
