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

"""
cli.py - Unified CLI for the k3s demo environment bootstrap.

Subcommands:
    run          Full procedure: preflight, cluster, tools, MetalLB, exposure, GitOps, report
    create       Create infrastructure resources (cluster)
    delete       Delete infrastructure resources (cluster)
    install      Install components (tools, load-balancer)
    setup        Post-install steps (expose, gitops, report)
    show-config  Print the resolved configuration

Examples:
    # Full bootstrap with defaults (no flags needed)
    demo-bootstrap run

    # On-prem variant with a clean reset and MetalLB
    DEMO_METALLB_ENABLED=true DEMO_METALLB_IP_POOL=192.168.1.240-192.168.1.250 \\
        demo-bootstrap run --variant onprem

    # Re-install the tools on an existing cluster
    demo-bootstrap install tools

    # Delete the cluster and the installation directory
    demo-bootstrap delete cluster --yes

For detailed usage information, run: demo-bootstrap --help
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer

from demo_bootstrap import configure_logging, console, logger
from demo_bootstrap.commands import create_cmd, delete_cmd, install_cmd, load_config, setup_cmd
from demo_bootstrap.config import display_config
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.orchestrator import run_bootstrap

app = typer.Typer(
    help="Bootstrap a k3s demo environment with Kamaji, Argo CD, Crossplane, and Sveltos.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize terminal logging for all subcommands."""
    configure_logging()


@app.command()
def run(
    variant: str | None = typer.Option(None, "--variant", help="Target environment (laptop, onprem, vm, k3d)"),
    reset: bool | None = typer.Option(None, "--reset/--no-reset", help="Tear down prior state first"),
    skip_gitops: bool = typer.Option(False, "--skip-gitops", help="Skip the GitOps repository sync"),
    metallb_pool: str | None = typer.Option(None, "--metallb-pool", help="Enable MetalLB with this address range"),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="Directory for the session log"),
) -> None:
    """Run the full bootstrap procedure."""
    cfg = load_config(
        variant=variant,
        reset=reset,
        skip_gitops=skip_gitops,
        metallb_pool=metallb_pool,
        log_dir=log_dir,
    )
    display_config(cfg)
    run_bootstrap(cfg)


@app.command("show-config")
def show_config(
    variant: str | None = typer.Option(None, "--variant", help="Target environment (laptop, onprem, vm, k3d)"),
) -> None:
    """Print the resolved configuration without changing anything."""
    display_config(load_config(variant=variant))


app.add_typer(create_cmd.app, name="create")
app.add_typer(delete_cmd.app, name="delete")
app.add_typer(install_cmd.app, name="install")
app.add_typer(setup_cmd.app, name="setup")


def main(args: list[str] | None = None) -> None:
    """Console-script entry point; exits 1 on any fatal error."""
    try:
        app(args=args)
    except BootstrapError as err:
        logger.error("%s", err)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected failure")
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
