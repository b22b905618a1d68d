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

"""Minikube cluster lifecycle, addons, and pod readiness."""

from __future__ import annotations

import sh
from rich.panel import Panel

from stack_manager import console, logger
from stack_manager.config import MinikubeConfig
from stack_manager.utils import run_kubectl


# ============================================================================
# Cluster operations
# ============================================================================

def is_running(cfg: MinikubeConfig) -> bool:
    """Return True when ``minikube status`` reports a running profile."""
    try:
        sh.minikube("status", "-p", cfg.profile)
        return True
    except sh.ErrorReturnCode:
        return False


def start_cluster(cfg: MinikubeConfig) -> None:
    """Start minikube unless the profile is already running.

    Args:
        cfg: Minikube configuration with driver and resource sizes.
    """
    console.print(Panel.fit("Setting up Minikube", style="bold blue"))
    if is_running(cfg):
        console.print("[yellow]ℹ Minikube is already running[/yellow]")
        return

    console.print("[yellow]ℹ Starting Minikube...[/yellow]")
    sh.minikube(
        "start",
        "-p", cfg.profile,
        f"--driver={cfg.driver}",
        f"--container-runtime={cfg.container_runtime}",
        f"--cpus={cfg.cpus}",
        f"--memory={cfg.memory}",
    )
    console.print("[green]✓ Minikube started successfully[/green]")


def enable_addons(cfg: MinikubeConfig) -> None:
    """Enable minikube addons; failures are reported but never raised."""
    console.print("[yellow]ℹ Enabling Minikube addons...[/yellow]")
    for addon in cfg.addons:
        try:
            sh.minikube("addons", "enable", addon, "-p", cfg.profile)
        except sh.ErrorReturnCode:
            console.print(f"[yellow]ℹ {addon} addon already enabled or unavailable[/yellow]")
    console.print("[green]✓ Minikube addon configuration complete[/green]")


def delete_cluster(cfg: MinikubeConfig) -> None:
    """Delete the minikube profile."""
    console.print(f"[yellow]ℹ Deleting Minikube profile '{cfg.profile}'...[/yellow]")
    try:
        sh.minikube("delete", "-p", cfg.profile)
        console.print(f"[green]✓ Profile '{cfg.profile}' deleted[/green]")
    except sh.ErrorReturnCode:
        console.print(f"[yellow]⚠️  Profile '{cfg.profile}' not found or already deleted[/yellow]")


def check_cluster_access() -> None:
    """Verify the current kube context answers.

    Raises:
        RuntimeError: If the cluster is not reachable.
    """
    ok, _, stderr = run_kubectl(["cluster-info"])
    if not ok:
        logger.debug("cluster-info failed: %s", stderr.strip())
        raise RuntimeError("Cannot connect to Kubernetes cluster")


def wait_for_pods(namespace: str, selector: str, timeout: str) -> bool:
    """Wait for pods matching *selector* to become ready.

    Returns:
        True when the pods became ready within *timeout*.
    """
    try:
        sh.kubectl(
            "wait", "--for=condition=ready", "pod",
            "-l", selector,
            "-n", namespace,
            f"--timeout={timeout}",
        )
        return True
    except sh.ErrorReturnCode as e:
        logger.debug("kubectl wait failed: %s", e.stderr)
        return False
