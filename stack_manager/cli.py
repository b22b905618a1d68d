# /*
# Copyright 2026 The DevSecOps Stack Authors.
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
cli.py - Local DevSecOps stack management.

Subcommands:
    cluster       Manage the minikube cluster (start, status, delete)
    deploy        Deploy the stack with Helm (all, chart)
    argocd        Install and configure ArgoCD (deploy)
    kong          Kong admin API registration (register, apply-declarative, services)
    port-forward  Local tunnels to cluster services (start, stop)

Examples:
    # Full stack (minikube + charts + routes + port forwards)
    stack-manager deploy all

    # Register routes against a forwarded admin API
    KONG_ADMIN_URL=http://localhost:8001 stack-manager kong register

    # In-cluster job, validation only
    DRY_RUN=true stack-manager kong register --in-cluster --services-only

    # Kong tunnels on 8000/8001/8002
    stack-manager port-forward start kong
"""

from __future__ import annotations

import logging
import sys

import typer

from stack_manager import console
from stack_manager.commands import (
    argocd_cmd,
    cluster_cmd,
    deploy_cmd,
    kong_cmd,
    portforward_cmd,
)

app = typer.Typer(
    help="Local DevSecOps stack management.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(cluster_cmd.app, name="cluster")
app.add_typer(deploy_cmd.app, name="deploy")
app.add_typer(argocd_cmd.app, name="argocd")
app.add_typer(kong_cmd.app, name="kong")
app.add_typer(portforward_cmd.app, name="port-forward")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
