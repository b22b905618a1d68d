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

"""Kong subcommands (register, apply-declarative, services)."""

from __future__ import annotations

from pathlib import Path

import typer

from stack_manager import console
from stack_manager.config import KongConfig
from stack_manager.constants import IN_CLUSTER_KONG_ADMIN_URL
from stack_manager.kong import KongAdminClient
from stack_manager.orchestrator import print_services, run_route_registration

app = typer.Typer(help="Register services and routes with the Kong admin API.")


def _kong_config(admin_url: str | None, config_dir: str | None = None,
                 dry_run: bool | None = None, in_cluster: bool = False) -> KongConfig:
    cfg = KongConfig()
    overrides: dict = {}
    if in_cluster:
        overrides["admin_url"] = IN_CLUSTER_KONG_ADMIN_URL
    if admin_url is not None:
        overrides["admin_url"] = admin_url
    if config_dir is not None:
        overrides["config_dir"] = config_dir
    if dry_run:
        overrides["dry_run"] = True
    if overrides:
        cfg = KongConfig.model_validate({**cfg.model_dump(), **overrides})
    return cfg


@app.command()
def register(
    admin_url: str | None = typer.Option(None, "--admin-url", help="Kong admin URL (overrides KONG_ADMIN_URL)"),
    config_dir: str | None = typer.Option(None, "--config-dir", help="Directory of *-service.yaml files"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate and report without changes (or DRY_RUN=true)"),
    services_only: bool = typer.Option(False, "--services-only", help="Only create/update service objects"),
    in_cluster: bool = typer.Option(False, "--in-cluster", help="Use the in-cluster admin service URL"),
) -> None:
    """Apply every declarative service file; exit 1 if any file failed."""
    cfg = _kong_config(admin_url, config_dir, dry_run, in_cluster)
    report = run_route_registration(cfg, services_only=services_only)
    if not report.ok:
        console.print(f"[yellow]⚠️  Completed with {len(report.failed)} error(s)[/yellow]")
        raise typer.Exit(code=1)
    console.print("[green]✅ All routes applied successfully![/green]")


@app.command("apply-declarative")
def apply_declarative(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Declarative config files"),
    admin_url: str | None = typer.Option(None, "--admin-url", help="Kong admin URL"),
) -> None:
    """Load declarative files through POST /config (DB-less Kong)."""
    cfg = _kong_config(admin_url)
    client = KongAdminClient(cfg.admin_url, timeout=cfg.request_timeout)
    for path in files:
        client.post_declarative_config(path)
        console.print(f"[green]✓ Loaded {path}[/green]")


@app.command()
def services(
    admin_url: str | None = typer.Option(None, "--admin-url", help="Kong admin URL"),
) -> None:
    """List the services configured in Kong."""
    cfg = _kong_config(admin_url)
    print_services(KongAdminClient(cfg.admin_url, timeout=cfg.request_timeout))
