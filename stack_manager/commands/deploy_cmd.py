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

"""Deploy subcommands (all, chart)."""

from __future__ import annotations

import typer

from stack_manager.config import HelmConfig, chart_releases
from stack_manager.helm import deploy_chart
from stack_manager.orchestrator import run_full_deploy
from stack_manager.report import StepReport

app = typer.Typer(help="Deploy the stack with Helm.")


@app.command("all")
def deploy_all(
    skip_cluster: bool = typer.Option(False, "--skip-cluster", help="Skip minikube start and addons"),
    skip_kong: bool = typer.Option(False, "--skip-kong", help="Skip the Kong chart"),
    skip_monitoring: bool = typer.Option(False, "--skip-monitoring", help="Skip the monitoring charts"),
    skip_cicd: bool = typer.Option(False, "--skip-cicd", help="Skip the Jenkins chart"),
    skip_routes: bool = typer.Option(False, "--skip-routes", help="Skip Kong route registration"),
    skip_port_forward: bool = typer.Option(False, "--skip-port-forward", help="Skip local port forwards"),
    charts_root: str | None = typer.Option(None, "--charts-root", help="Directory chart paths are relative to"),
) -> None:
    """Full stack: minikube + kong + monitoring + jenkins + routes + port forwards.

    Chart failures do not stop the run; the exit code is 1 if any step failed.
    """
    helm_cfg = HelmConfig()
    if charts_root is not None:
        helm_cfg = helm_cfg.model_copy(update={"charts_root": charts_root})
    report = run_full_deploy(
        skip_cluster=skip_cluster,
        skip_kong=skip_kong,
        skip_monitoring=skip_monitoring,
        skip_cicd=skip_cicd,
        skip_routes=skip_routes,
        skip_port_forward=skip_port_forward,
        helm_cfg=helm_cfg,
    )
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("chart")
def chart(
    name: str = typer.Argument(..., help="Release name from stack.yaml"),
) -> None:
    """Install or upgrade a single chart release."""
    (release,) = chart_releases([name])
    report = StepReport()
    if not deploy_chart(release, HelmConfig(), report):
        raise typer.Exit(code=1)
