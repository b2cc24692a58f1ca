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

"""Delete subcommands (cluster)."""

from __future__ import annotations

import typer

from demo_bootstrap.commands import load_config
from demo_bootstrap.orchestrator import run_reset

app = typer.Typer(help="Delete infrastructure resources.")


@app.command()
def cluster(
    variant: str | None = typer.Option(None, "--variant", help="Target environment (laptop, onprem, vm, k3d)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete the cluster instance, its data, and the installation directory."""
    cfg = load_config(variant=variant, skip_gitops=True)
    if not yes:
        typer.confirm(
            f"Delete cluster '{cfg.cluster.cluster_name}' ({cfg.backend}) and {cfg.paths.install_dir}?",
            abort=True,
        )
    run_reset(cfg)
