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

"""Port-forward subcommands (start, stop)."""

from __future__ import annotations

from pathlib import Path

import typer

from stack_manager import console
from stack_manager.config import PortForwardConfig
from stack_manager.constants import PF_PROFILE_KONG
from stack_manager.orchestrator import run_port_forwards
from stack_manager.portforward import stop_from_pid_files

app = typer.Typer(help="Manage local port forwards to cluster services.")


@app.command()
def start(
    profile: str = typer.Argument(PF_PROFILE_KONG, help="Profile from stack.yaml (kong, kong-nodeport, stack)"),
) -> None:
    """Replace existing port forwards of a profile with fresh ones."""
    run_port_forwards(profile)


@app.command()
def stop() -> None:
    """Stop port forwards recorded in PID files."""
    pid_dir = Path(PortForwardConfig().pid_dir)
    stopped = stop_from_pid_files(pid_dir)
    if not stopped:
        console.print("[yellow]ℹ No port forwards recorded[/yellow]")
        return
    for name in stopped:
        console.print(f"[green]✓ Stopped {name}[/green]")
