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

"""Create subcommands (cluster)."""

from __future__ import annotations

import typer

from demo_bootstrap.cluster import create_or_reuse, reset_cluster
from demo_bootstrap.commands import load_config
from demo_bootstrap.kubeconfig import materialize_kubeconfig
from demo_bootstrap.preflight import run_preflight
from demo_bootstrap.provisioners import get_provisioner

app = typer.Typer(help="Create infrastructure resources.")


@app.command()
def cluster(
    variant: str | None = typer.Option(None, "--variant", help="Target environment (laptop, onprem, vm, k3d)"),
    reset: bool | None = typer.Option(None, "--reset/--no-reset", help="Tear down prior state first"),
    skip_preflight: bool = typer.Option(False, "--skip-preflight", help="Skip dependency and environment checks"),
) -> None:
    """Create (or reuse) the k3s cluster and write its kubeconfig."""
    cfg = load_config(variant=variant, reset=reset, skip_gitops=True)
    provisioner = get_provisioner(cfg)
    if not skip_preflight:
        run_preflight(cfg)
    if cfg.cluster.reset:
        reset_cluster(provisioner, cfg)
    create_or_reuse(provisioner, cfg)
    materialize_kubeconfig(provisioner, cfg)
