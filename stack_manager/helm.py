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

"""Helm chart deployment with stuck-release recovery and result tracking."""

from __future__ import annotations

import json
import time
from pathlib import Path

import sh

from stack_manager import console, logger
from stack_manager.config import ChartRelease, HelmConfig
from stack_manager.constants import HELM_PENDING_STATUSES, HELM_ROLLBACK_SETTLE_SECONDS
from stack_manager.report import StepReport


# ============================================================================
# Release status
# ============================================================================

def release_status(release: str, namespace: str) -> str | None:
    """Return the helm status of *release* in *namespace*, or None if absent.

    Raises:
        RuntimeError: If ``helm list`` output is not valid JSON.
    """
    try:
        output = sh.helm("list", "-n", namespace, "-a", "-o", "json")
    except sh.ErrorReturnCode as e:
        logger.debug("helm list failed in %s: %s", namespace, e.stderr)
        return None
    try:
        releases = json.loads(str(output) or "[]")
    except json.JSONDecodeError as err:
        raise RuntimeError(f"Unexpected helm list output for namespace {namespace}") from err
    for entry in releases:
        if entry.get("name") == release:
            return entry.get("status")
    return None


def recover_stuck_release(release: str, namespace: str) -> bool:
    """Roll back a release left in a pending state by an interrupted run.

    Returns:
        True if a rollback was attempted.
    """
    status = release_status(release, namespace)
    if status not in HELM_PENDING_STATUSES:
        return False

    console.print(f"[yellow]ℹ Found stuck release '{release}' in namespace '{namespace}' with status: {status}[/yellow]")
    console.print("[yellow]ℹ Rolling back stuck release...[/yellow]")
    try:
        sh.helm("rollback", release, "-n", namespace)
    except sh.ErrorReturnCode as e:
        logger.warning("Rollback of %s failed: %s", release, e.stderr)
    time.sleep(HELM_ROLLBACK_SETTLE_SECONDS)
    console.print(f"[green]✓ Rollback completed for {release}[/green]")
    return True


# ============================================================================
# Deployment
# ============================================================================

def build_install_args(release: ChartRelease, cfg: HelmConfig) -> list[str]:
    """Build ``helm upgrade --install`` arguments for a release."""
    root = Path(cfg.charts_root)
    args = [
        "upgrade", "--install", release.name, str(root / release.chart),
        "-n", release.namespace,
        "--create-namespace",
    ]
    values_file = root / cfg.values_file
    if values_file.exists():
        args += ["-f", str(values_file)]
    args += ["--wait", "--timeout", release.timeout]
    return args


def deploy_chart(release: ChartRelease, cfg: HelmConfig, report: StepReport) -> bool:
    """Install or upgrade a chart, recording the outcome in *report*.

    A helm failure is recorded and reported, never raised, so the caller can
    continue with the remaining charts.

    Returns:
        True if the release deployed successfully.
    """
    recover_stuck_release(release.name, release.namespace)

    console.print(f"[yellow]ℹ Deploying {release.name}...[/yellow]")
    try:
        sh.helm(*build_install_args(release, cfg))
    except sh.ErrorReturnCode as e:
        logger.debug("helm upgrade %s failed: %s", release.name, e.stderr)
        console.print(f"[red]✗ {release.name} deployment failed (continuing with other deployments)[/red]")
        report.record(release.name, False)
        return False

    console.print(f"[green]✓ {release.name} deployed successfully[/green]")
    report.record(release.name, True)
    return True


def deploy_charts(releases: list[ChartRelease], cfg: HelmConfig, report: StepReport) -> None:
    """Deploy each release in order, continuing past failures."""
    for release in releases:
        deploy_chart(release, cfg, report)
