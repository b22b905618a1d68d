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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

import time
from pathlib import Path

from rich.panel import Panel
from rich.table import Table

from stack_manager import console
from stack_manager.argocd import (
    admin_password,
    apply_applications,
    configure_base_path,
    install_argocd,
    list_applications,
    restart_server,
    wait_for_server,
)
from stack_manager.cluster import (
    check_cluster_access,
    enable_addons,
    start_cluster,
    wait_for_pods,
)
from stack_manager.config import (
    ArgoCDConfig,
    HelmConfig,
    KongConfig,
    MinikubeConfig,
    PortForward,
    PortForwardConfig,
    chart_group,
    port_forward_profile,
)
from stack_manager.constants import (
    KONG_POD_SELECTOR,
    KONG_PROXY_PORT_LOCAL,
    KONG_PROXY_PORT_STACK,
    KONG_READY_TIMEOUT,
    NS_KONG,
    PF_ADMIN_NAME,
    PF_PROFILE_KONG,
    PF_PROFILE_STACK,
    SERVICES_STABILIZE_SECONDS,
    TOOLS_ARGOCD_DEPLOY,
    TOOLS_FULL_DEPLOY,
    stack_value,
)
from stack_manager.helm import deploy_charts
from stack_manager.kong import KongAdminClient, KongAdminError, apply_service_configs
from stack_manager.portforward import port_forward, start_profile, stop_profile
from stack_manager.report import StepReport, print_summary
from stack_manager.utils import ensure_namespace, require_command

# ============================================================================
# Internal helpers
# ============================================================================


def _check_prerequisites(tools: tuple[str, ...]) -> None:
    """Raises RuntimeError naming the first missing tool."""
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    for cmd in tools:
        require_command(cmd)
    console.print("[green]✓ All required tools are installed[/green]")


def _admin_forward(forwards: list[PortForward]) -> PortForward:
    for pf in forwards:
        if pf.name == PF_ADMIN_NAME:
            return pf
    raise RuntimeError(f"No {PF_ADMIN_NAME} port forward in the profile")


def _run_gateway(helm_cfg: HelmConfig, report: StepReport) -> None:
    console.print(Panel.fit("Deploying Kong Gateway", style="bold blue"))
    try:
        ensure_namespace(NS_KONG)
    except RuntimeError as e:
        console.print(f"[yellow]ℹ {e}[/yellow]")
    deploy_charts(chart_group("gateway"), helm_cfg, report)

    if report.succeeded("kong"):
        console.print("[yellow]ℹ Waiting for Kong to be ready...[/yellow]")
        if wait_for_pods(NS_KONG, KONG_POD_SELECTOR, KONG_READY_TIMEOUT):
            console.print("[green]✓ Kong is ready[/green]")
        else:
            console.print("[red]✗ Kong pods not ready (continuing anyway)[/red]")


def _register_gateway_services(kong_cfg: KongConfig, admin_pf: PortForward, report: StepReport) -> None:
    """Push each declarative service file through a temporary admin tunnel."""
    console.print(Panel.fit("Registering Kong Routes", style="bold blue"))
    console.print("[yellow]ℹ Waiting for all services to stabilize...[/yellow]")
    time.sleep(SERVICES_STABILIZE_SECONDS)

    config_dir = Path(kong_cfg.config_dir)
    entries = stack_value("gateway_services", default=[])
    console.print("[yellow]ℹ Setting up Kong Admin API port-forward...[/yellow]")
    try:
        with port_forward(admin_pf):
            client = KongAdminClient(f"http://localhost:{admin_pf.local_port}", timeout=kong_cfg.request_timeout)
            for entry in entries:
                step = f"kong-route:{entry['name']}"
                path = config_dir / entry["file"]
                console.print(f"[yellow]ℹ Registering route for {entry['name']}...[/yellow]")
                if not path.is_file():
                    console.print(f"[red]✗ Config file not found: {path}[/red]")
                    report.record(step, False)
                    continue
                try:
                    client.post_declarative_config(path)
                except KongAdminError as e:
                    console.print(f"[red]✗ Failed to register route for {entry['name']}: {e}[/red]")
                    report.record(step, False)
                    continue
                console.print(f"[green]✓ Route registered for {entry['name']}[/green]")
                report.record(step, True)
    except RuntimeError as e:
        console.print(f"[red]✗ {e}[/red]")
        report.record("kong-routes", False)
        return
    console.print("[green]✓ All Kong routes registered[/green]")


def print_access_info(proxy_port: int, forwards: list[PortForward], argocd_password: str | None = None) -> None:
    """Print gateway and direct URLs for the running port forwards."""
    table = Table(title="Access URLs", show_header=True, header_style="bold")
    table.add_column("Service")
    table.add_column("URL")
    for pf in forwards:
        table.add_row(f"{pf.service} (direct)", f"http://localhost:{pf.local_port}")
    for entry in stack_value("gateway_paths", default=[]):
        table.add_row(entry["name"], f"http://localhost:{proxy_port}{entry['path']}")
    console.print(table)
    if argocd_password is not None:
        console.print(f"[yellow]ArgoCD credentials:[/yellow] admin / [green]{argocd_password}[/green]")


# ============================================================================
# Public API
# ============================================================================


def run_full_deploy(
    *,
    skip_cluster: bool = False,
    skip_kong: bool = False,
    skip_monitoring: bool = False,
    skip_cicd: bool = False,
    skip_routes: bool = False,
    skip_port_forward: bool = False,
    minikube_cfg: MinikubeConfig | None = None,
    helm_cfg: HelmConfig | None = None,
    kong_cfg: KongConfig | None = None,
    pf_cfg: PortForwardConfig | None = None,
) -> StepReport:
    """Bring up minikube, deploy every chart, register routes and open tunnels.

    Chart and route failures are recorded in the returned report and do not
    stop the run.

    Raises:
        RuntimeError: If a required tool is missing or minikube cannot start.
    """
    minikube_cfg = minikube_cfg or MinikubeConfig()
    helm_cfg = helm_cfg or HelmConfig()
    kong_cfg = kong_cfg or KongConfig()
    pf_cfg = pf_cfg or PortForwardConfig()
    report = StepReport()

    _check_prerequisites(TOOLS_FULL_DEPLOY)

    if not skip_cluster:
        start_cluster(minikube_cfg)
        enable_addons(minikube_cfg)

    if not skip_kong:
        _run_gateway(helm_cfg, report)

    if not skip_monitoring:
        console.print(Panel.fit("Deploying Monitoring Stack", style="bold blue"))
        deploy_charts(chart_group("monitoring"), helm_cfg, report)

    if not skip_cicd:
        console.print(Panel.fit("Deploying CI/CD Stack", style="bold blue"))
        deploy_charts(chart_group("cicd"), helm_cfg, report)

    forwards = port_forward_profile(PF_PROFILE_STACK)
    if not skip_routes:
        _register_gateway_services(kong_cfg, _admin_forward(forwards), report)

    if not skip_port_forward:
        console.print(Panel.fit("Setting up Port Forwards", style="bold blue"))
        start_profile(forwards, Path(pf_cfg.pid_dir))
        console.print("[green]✓ Port forwards established[/green]")
        print_access_info(KONG_PROXY_PORT_STACK, forwards)
        console.print("To stop all port-forwards, run: stack-manager port-forward stop")

    print_summary(report, "Deployment Summary", "Successfully Deployed", "Failed Deployments")
    if report.ok:
        console.print("[green]✓ DevSecOps Stack is fully deployed and ready![/green]")
    else:
        console.print("[yellow]Note: Failed deployments may be due to:[/yellow]")
        console.print("  - Network/DNS issues (check: minikube ssh, then ping registry-1.docker.io)")
        console.print("  - Resource constraints (check: kubectl top nodes)")
        console.print("  - Image pull issues (check: kubectl describe pod -n <namespace>)")
        console.print("[yellow]ℹ DevSecOps Stack partially deployed. Check failed deployments above.[/yellow]")
    return report


def run_argocd_deploy(
    *,
    skip_port_forward: bool = False,
    argocd_cfg: ArgoCDConfig | None = None,
    pf_cfg: PortForwardConfig | None = None,
) -> str:
    """Install ArgoCD behind the gateway base path and sync applications.

    Returns:
        The initial ArgoCD admin password.

    Raises:
        RuntimeError: If kubectl is missing, the cluster is unreachable, or an
            ArgoCD step fails.
    """
    argocd_cfg = argocd_cfg or ArgoCDConfig()
    pf_cfg = pf_cfg or PortForwardConfig()

    _check_prerequisites(TOOLS_ARGOCD_DEPLOY)
    check_cluster_access()

    install_argocd(argocd_cfg)
    wait_for_server(argocd_cfg)
    configure_base_path(argocd_cfg)
    apply_applications(argocd_cfg)
    password = admin_password(argocd_cfg)
    console.print("[green]✓ Password retrieved[/green]")
    restart_server(argocd_cfg)

    forwards: list[PortForward] = []
    if not skip_port_forward:
        forwards = run_port_forwards(PF_PROFILE_KONG, pf_cfg)

    print_access_info(KONG_PROXY_PORT_LOCAL, forwards, argocd_password=password)
    console.print("[yellow]Application Status:[/yellow]")
    console.print(list_applications(argocd_cfg), markup=False, highlight=False)
    return password


def run_port_forwards(profile: str, pf_cfg: PortForwardConfig | None = None) -> list[PortForward]:
    """Replace existing tunnels of a profile with fresh ones."""
    pf_cfg = pf_cfg or PortForwardConfig()
    forwards = port_forward_profile(profile)

    console.print(Panel.fit(f"Setting up port forwarding ({profile})", style="bold blue"))
    console.print("[yellow]ℹ Cleaning up existing port forwards...[/yellow]")
    stop_profile(forwards)
    start_profile(forwards, Path(pf_cfg.pid_dir))
    console.print("[green]✅ All port forwards are active![/green]")
    return forwards


def run_route_registration(kong_cfg: KongConfig | None = None, *, services_only: bool = False) -> StepReport:
    """Register every declarative service file against the admin API.

    Raises:
        KongAdminError: If the admin API is unreachable.
        ServiceConfigError: If the config directory holds no service files.
    """
    kong_cfg = kong_cfg or KongConfig()
    console.print(Panel.fit("Apply Kong Routes", style="bold blue"))
    console.print(f"Kong Admin URL: {kong_cfg.admin_url}")
    console.print(f"Config Directory: {kong_cfg.config_dir}")

    client = KongAdminClient(kong_cfg.admin_url, timeout=kong_cfg.request_timeout)
    if not kong_cfg.dry_run:
        console.print("Checking Kong Admin API connectivity...")
        try:
            client.ping()
        except KongAdminError:
            console.print("Please ensure:")
            console.print("  1. Kong is running")
            console.print("  2. Port forwarding is active: stack-manager port-forward start kong")
            console.print("  3. Or set KONG_ADMIN_URL environment variable")
            raise
        console.print("[green]✅ Kong Admin API is accessible[/green]")

    report = apply_service_configs(
        client, Path(kong_cfg.config_dir), dry_run=kong_cfg.dry_run, services_only=services_only,
    )
    print_summary(report, "Summary", "✅ Successful", "❌ Failed")

    if kong_cfg.dry_run:
        console.print("[yellow]🔍 DRY RUN completed - no changes were made[/yellow]")
    elif report.ok:
        print_services(client)
    return report


def print_services(client: KongAdminClient) -> None:
    """Print the services currently configured in Kong."""
    table = Table(title="Kong Services", show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Host")
    table.add_column("Port")
    table.add_column("Path")
    for svc in client.list_services():
        table.add_row(
            str(svc.get("name", "")),
            str(svc.get("host", "")),
            str(svc.get("port", "")),
            str(svc.get("path") or ""),
        )
    console.print(table)
