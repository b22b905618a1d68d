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

"""Cluster subcommands (start, status, delete)."""

from __future__ import annotations

import typer

from stack_manager import console
from stack_manager.cluster import delete_cluster, enable_addons, is_running, start_cluster
from stack_manager.config import MinikubeConfig

app = typer.Typer(help="Manage the local minikube cluster.")


def _minikube_config(profile: str | None, driver: str | None = None,
                     cpus: int | None = None, memory: int | None = None) -> MinikubeConfig:
    cfg = MinikubeConfig()
    overrides: dict = {}
    if profile is not None:
        overrides["profile"] = profile
    if driver is not None:
        overrides["driver"] = driver
    if cpus is not None:
        overrides["cpus"] = cpus
    if memory is not None:
        overrides["memory"] = memory
    if overrides:
        cfg = MinikubeConfig.model_validate({**cfg.model_dump(), **overrides})
    return cfg


@app.command()
def start(
    profile: str | None = typer.Option(None, "--profile", help="Minikube profile"),
    driver: str | None = typer.Option(None, "--driver", help="Minikube driver"),
    cpus: int | None = typer.Option(None, "--cpus", help="CPUs for the node"),
    memory: int | None = typer.Option(None, "--memory", help="Memory in MB for the node"),
) -> None:
    """Start minikube (if needed) and enable addons."""
    cfg = _minikube_config(profile, driver, cpus, memory)
    start_cluster(cfg)
    enable_addons(cfg)


@app.command()
def status(
    profile: str | None = typer.Option(None, "--profile", help="Minikube profile"),
) -> None:
    """Exit 0 if the cluster is running, 1 otherwise."""
    cfg = _minikube_config(profile)
    if is_running(cfg):
        console.print(f"[green]✓ Minikube profile '{cfg.profile}' is running[/green]")
        return
    console.print(f"[red]✗ Minikube profile '{cfg.profile}' is not running[/red]")
    raise typer.Exit(code=1)


@app.command()
def delete(
    profile: str | None = typer.Option(None, "--profile", help="Minikube profile"),
) -> None:
    """Delete the minikube profile."""
    delete_cluster(_minikube_config(profile))
