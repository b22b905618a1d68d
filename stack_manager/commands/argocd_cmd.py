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

"""ArgoCD subcommands."""

from __future__ import annotations

import typer

from stack_manager.config import ArgoCDConfig
from stack_manager.orchestrator import run_argocd_deploy

app = typer.Typer(help="Install and configure ArgoCD.")


@app.command()
def deploy(
    namespace: str | None = typer.Option(None, "--namespace", help="ArgoCD namespace"),
    applications_dir: str | None = typer.Option(None, "--applications-dir", help="Application manifests directory"),
    skip_port_forward: bool = typer.Option(False, "--skip-port-forward", help="Skip Kong port forwards"),
) -> None:
    """Install ArgoCD, serve it under its base path, and apply applications."""
    cfg = ArgoCDConfig()
    overrides: dict = {}
    if namespace is not None:
        overrides["namespace"] = namespace
    if applications_dir is not None:
        overrides["applications_dir"] = applications_dir
    if overrides:
        cfg = ArgoCDConfig.model_validate({**cfg.model_dump(), **overrides})
    run_argocd_deploy(skip_port_forward=skip_port_forward, argocd_cfg=cfg)
