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

"""Configuration classes and stack layout models."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stack_manager.constants import (
    ARGOCD_INSTALL_MANIFEST,
    DEFAULT_ARGOCD_APPLICATIONS_DIR,
    DEFAULT_ARGOCD_BASE_PATH,
    DEFAULT_HELM_TIMEOUT,
    DEFAULT_KONG_ADMIN_URL,
    DEFAULT_KONG_CONFIG_DIR,
    DEFAULT_KONG_REQUEST_TIMEOUT,
    DEFAULT_MINIKUBE_ADDONS,
    DEFAULT_MINIKUBE_CPUS,
    DEFAULT_MINIKUBE_DRIVER,
    DEFAULT_MINIKUBE_MEMORY_MB,
    DEFAULT_MINIKUBE_PROFILE,
    DEFAULT_MINIKUBE_RUNTIME,
    DEFAULT_PID_DIR,
    DEFAULT_VALUES_FILE,
    NS_ARGOCD,
    stack_value,
)


# ============================================================================
# Configuration classes
# ============================================================================

class MinikubeConfig(BaseSettings):
    """Minikube cluster configuration, auto-loaded from STACK_MINIKUBE_* env vars.

    Attributes:
        profile: Minikube profile name.
        driver: VM or container driver passed to ``minikube start``.
        container_runtime: Container runtime inside the node.
        cpus: Number of CPUs allocated to the node.
        memory: Memory in MB allocated to the node.
        addons: Addons enabled after start.
    """

    model_config = SettingsConfigDict(env_prefix="STACK_MINIKUBE_", extra="ignore")

    profile: str = DEFAULT_MINIKUBE_PROFILE
    driver: str = DEFAULT_MINIKUBE_DRIVER
    container_runtime: str = DEFAULT_MINIKUBE_RUNTIME
    cpus: int = Field(default=DEFAULT_MINIKUBE_CPUS, ge=1, le=64)
    memory: int = Field(default=DEFAULT_MINIKUBE_MEMORY_MB, ge=1024)
    addons: list[str] = Field(default_factory=lambda: list(DEFAULT_MINIKUBE_ADDONS))


class HelmConfig(BaseSettings):
    """Helm deployment settings, auto-loaded from STACK_HELM_* env vars.

    Attributes:
        values_file: Global values file passed with ``-f`` when it exists.
        charts_root: Directory chart paths in stack.yaml are relative to.
    """

    model_config = SettingsConfigDict(env_prefix="STACK_HELM_", extra="ignore")

    values_file: str = DEFAULT_VALUES_FILE
    charts_root: str = "."


class KongConfig(BaseSettings):
    """Kong admin API settings, auto-loaded from KONG_* env vars.

    ``DRY_RUN`` is honoured without prefix so the in-cluster job keeps its
    parameter name.

    Attributes:
        admin_url: Base URL of the Kong admin API.
        config_dir: Directory holding ``*-service.yaml`` files.
        request_timeout: Per-request timeout in seconds.
        dry_run: Report planned changes without calling the admin API.
    """

    model_config = SettingsConfigDict(env_prefix="KONG_", extra="ignore", populate_by_name=True)

    admin_url: str = Field(default=DEFAULT_KONG_ADMIN_URL, pattern=r"^https?://")
    config_dir: str = DEFAULT_KONG_CONFIG_DIR
    request_timeout: float = Field(default=DEFAULT_KONG_REQUEST_TIMEOUT, gt=0)
    dry_run: bool = Field(default=False, validation_alias=AliasChoices("DRY_RUN", "KONG_DRY_RUN"))


class ArgoCDConfig(BaseSettings):
    """ArgoCD install settings, auto-loaded from STACK_ARGOCD_* env vars.

    Attributes:
        namespace: Namespace ArgoCD is installed into.
        manifest_url: Upstream install manifest.
        base_path: Path ArgoCD is served under behind Kong.
        applications_dir: Directory of Application manifests to apply.
    """

    model_config = SettingsConfigDict(env_prefix="STACK_ARGOCD_", extra="ignore")

    namespace: str = NS_ARGOCD
    manifest_url: str = ARGOCD_INSTALL_MANIFEST
    base_path: str = Field(default=DEFAULT_ARGOCD_BASE_PATH, pattern=r"^/")
    applications_dir: str = DEFAULT_ARGOCD_APPLICATIONS_DIR


class PortForwardConfig(BaseSettings):
    """Port-forward bookkeeping, auto-loaded from STACK_* env vars."""

    model_config = SettingsConfigDict(env_prefix="STACK_", extra="ignore")

    pid_dir: str = DEFAULT_PID_DIR


# ============================================================================
# Stack layout
# ============================================================================

@dataclass(frozen=True)
class ChartRelease:
    """A Helm release of a local chart.

    Attributes:
        name: Helm release name.
        chart: Chart path relative to the charts root.
        namespace: Target namespace, created on install.
        timeout: Helm ``--timeout`` value.
    """

    name: str
    chart: str
    namespace: str
    timeout: str = DEFAULT_HELM_TIMEOUT


@dataclass(frozen=True)
class PortForward:
    """A ``kubectl port-forward`` to a cluster service."""

    name: str
    namespace: str
    service: str
    local_port: int
    remote_port: int

    @property
    def target(self) -> str:
        return f"svc/{self.service}"

    @property
    def ports(self) -> str:
        return f"{self.local_port}:{self.remote_port}"


def chart_releases(names: list[str] | None = None) -> list[ChartRelease]:
    """Return chart releases from stack.yaml, optionally filtered by name.

    Args:
        names: Release names to keep, in the given order; None for all.

    Returns:
        List of chart releases.

    Raises:
        KeyError: If a requested release is not defined.
    """
    releases = {entry["name"]: ChartRelease(**entry) for entry in stack_value("charts", default=[])}
    if names is None:
        return list(releases.values())
    missing = [name for name in names if name not in releases]
    if missing:
        raise KeyError(f"Unknown chart release(s): {', '.join(missing)}")
    return [releases[name] for name in names]


def chart_group(group: str) -> list[ChartRelease]:
    """Return the releases of a named chart group (gateway, monitoring, cicd)."""
    return chart_releases(stack_value("chart_groups", group, default=[]))


def port_forward_profile(profile: str) -> list[PortForward]:
    """Return the port forwards of a named profile.

    Raises:
        KeyError: If the profile is not defined in stack.yaml.
    """
    entries = stack_value("port_forwards", profile)
    if entries is None:
        known = ", ".join(sorted(stack_value("port_forwards", default={})))
        raise KeyError(f"Unknown port-forward profile '{profile}' (known: {known})")
    return [PortForward(**entry) for entry in entries]
