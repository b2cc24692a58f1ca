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

"""Install subcommands (tools, load-balancer)."""

from __future__ import annotations

import typer

from demo_bootstrap.commands import load_config
from demo_bootstrap.components import install_tools
from demo_bootstrap.kubeconfig import require_kubeconfig
from demo_bootstrap.loadbalancer import setup_load_balancer

app = typer.Typer(help="Install components.")


@app.command()
def tools(
    variant: str | None = typer.Option(None, "--variant", help="Target environment (laptop, onprem, vm, k3d)"),
) -> None:
    """Install cert-manager, Kamaji, Argo CD, Crossplane, and Sveltos via Helm."""
    cfg = load_config(variant=variant, skip_gitops=True)
    install_tools(cfg, require_kubeconfig(cfg))


@app.command("load-balancer")
def load_balancer(
    pool: str | None = typer.Option(None, "--pool", help="MetalLB address range (enables MetalLB)"),
) -> None:
    """Install MetalLB and apply the address pool (skipped unless enabled)."""
    cfg = load_config(metallb_pool=pool, skip_gitops=True)
    setup_load_balancer(cfg, require_kubeconfig(cfg))
