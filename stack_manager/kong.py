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

"""Kong declarative service configs and admin API registration.

A service file describes one gateway service:

    services:
      - name: grafana
        url: http://grafana.monitoring.svc.cluster.local:3000
        routes:
          - name: grafana-route
            paths: [/grafana]
            strip_path: true
        plugins:
          - name: cors

Only the first entry of ``services`` is registered. Registration upserts the
service, upserts each route once per listed path, and adds each plugin that
is not yet attached to the service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import quote

import requests
import yaml
from pydantic import BaseModel, Field, ValidationError

from stack_manager import console, logger
from stack_manager.constants import SERVICE_FILE_GLOB, SERVICE_FILE_SUFFIX
from stack_manager.report import StepReport


class ServiceConfigError(ValueError):
    """A declarative service file is unreadable or has the wrong shape."""


class KongAdminError(RuntimeError):
    """The Kong admin API was unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ============================================================================
# Declarative config models
# ============================================================================

class KongRoute(BaseModel):
    name: str = ""
    paths: list[str] = Field(default_factory=list)
    strip_path: bool = True


class KongPlugin(BaseModel):
    name: str = ""
    config: dict[str, Any] | None = None


class KongService(BaseModel):
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    routes: list[KongRoute] = Field(default_factory=list)
    plugins: list[KongPlugin] = Field(default_factory=list)


def display_name(path: Path) -> str:
    """Return the file stem without its ``-service`` suffix."""
    stem = path.stem
    if stem.endswith(SERVICE_FILE_SUFFIX):
        stem = stem[: -len(SERVICE_FILE_SUFFIX)]
    return stem


def discover_service_files(config_dir: Path) -> list[Path]:
    """Return ``*-service.yaml`` files in *config_dir*, sorted by name."""
    if not config_dir.is_dir():
        return []
    return sorted(p for p in config_dir.glob(SERVICE_FILE_GLOB) if p.is_file())


def load_service_config(path: Path) -> KongService:
    """Parse a declarative file and return its first service.

    Raises:
        ServiceConfigError: If the file is missing or not UTF-8, is not valid YAML, or has
            no usable service definition.
    """
    try:
        text = path.read_text()
    except OSError as err:
        raise ServiceConfigError(f"Config file not found: {path}") from err
    except UnicodeDecodeError as err:
        raise ServiceConfigError(f"Cannot decode {path} as UTF-8") from err
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise ServiceConfigError(f"Invalid YAML syntax in {path}") from err

    services = document.get("services") if isinstance(document, dict) else None
    if not isinstance(services, list) or not services:
        raise ServiceConfigError(f"No service definition found in {path}")
    try:
        return KongService.model_validate(services[0])
    except ValidationError as err:
        raise ServiceConfigError(f"Missing service name or URL in {path}") from err


# ============================================================================
# Admin API client
# ============================================================================

class KongAdminClient:
    """Thin client for the Kong admin API."""

    def __init__(self, admin_url: str, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        self.admin_url = admin_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.admin_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        logger.debug("%s %s", method, path)
        try:
            resp = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as err:
            raise KongAdminError(f"Cannot connect to Kong Admin API at {self.admin_url}: {err}") from err
        if not 200 <= resp.status_code < 300:
            raise KongAdminError(f"{method} {path} failed (HTTP {resp.status_code})", resp.status_code)
        return resp

    def _paginate(self, path: str) -> Iterator[dict]:
        next_path: str | None = path
        while next_path:
            resp = self._request("GET", next_path)
            try:
                body = resp.json()
            except ValueError as err:
                raise KongAdminError(f"GET {next_path} returned a non-JSON body") from err
            if not isinstance(body, dict):
                raise KongAdminError(f"GET {next_path} returned an unexpected body")
            yield from body.get("data", [])
            next_path = body.get("next")

    def ping(self) -> None:
        """Check that the admin API answers ``GET /``."""
        self._request("GET", "/")

    def put_service(self, name: str, url: str) -> None:
        self._request("PUT", f"/services/{quote(name, safe='')}", json={"name": name, "url": url})

    def put_route(self, service: str, route: KongRoute) -> None:
        """Upsert *route* once per path, in the order the paths are listed."""
        path = f"/services/{quote(service, safe='')}/routes/{quote(route.name, safe='')}"
        for route_path in route.paths:
            self._request("PUT", path, json={
                "name": route.name,
                "paths": [route_path],
                "strip_path": route.strip_path,
            })

    def list_plugins(self, service: str) -> list[str]:
        """Return the names of plugins attached to *service*."""
        return [p.get("name", "") for p in self._paginate(f"/services/{quote(service, safe='')}/plugins")]

    def add_plugin(self, service: str, plugin: KongPlugin) -> None:
        body: dict[str, Any] = {"name": plugin.name}
        if plugin.config:
            body["config"] = plugin.config
        self._request("POST", f"/services/{quote(service, safe='')}/plugins", json=body)

    def list_services(self) -> list[dict]:
        return list(self._paginate("/services"))

    def post_declarative_config(self, path: Path) -> None:
        """Load a declarative file through ``POST /config`` (DB-less mode)."""
        with open(path, "rb") as fh:
            self._request("POST", "/config", files={"config": (path.name, fh)})


# ============================================================================
# Registration
# ============================================================================

@dataclass
class ServiceResult:
    """What registering one service did (or would do, in dry-run mode)."""

    name: str
    url: str
    dry_run: bool = False
    routes: list[str] = field(default_factory=list)
    plugins_added: list[str] = field(default_factory=list)
    plugins_present: list[str] = field(default_factory=list)


def register_service(
    client: KongAdminClient,
    service: KongService,
    *,
    dry_run: bool = False,
    services_only: bool = False,
) -> ServiceResult:
    """Register one service with its routes and plugins.

    Args:
        client: Admin API client.
        service: Parsed service definition.
        dry_run: Report planned changes without calling the admin API.
        services_only: Upsert only the service object.

    Returns:
        The registration result.

    Raises:
        KongAdminError: If any admin API call fails.
    """
    result = ServiceResult(name=service.name, url=service.url, dry_run=dry_run)
    console.print(f"  Service: {service.name}")
    console.print(f"  URL: {service.url}")

    routes = [] if services_only else [r for r in service.routes if r.name and r.paths]
    plugins = [] if services_only else [p for p in service.plugins if p.name]

    if dry_run:
        console.print(f"[yellow]🔍 DRY RUN - Would create/update service: {service.name}[/yellow]")
        for route in routes:
            console.print(f"[yellow]   would register route {route.name} -> {route.paths}[/yellow]")
            result.routes.append(route.name)
        for plugin in plugins:
            console.print(f"[yellow]   would ensure plugin {plugin.name}[/yellow]")
            result.plugins_added.append(plugin.name)
        return result

    client.put_service(service.name, service.url)
    console.print("[green]  ✅ Service configured[/green]")

    for route in routes:
        client.put_route(service.name, route)
        result.routes.append(route.name)
        console.print(f"[green]  ✅ Route: {route.name} -> {route.paths}[/green]")

    if plugins:
        attached = set(client.list_plugins(service.name))
        for plugin in plugins:
            if plugin.name in attached:
                result.plugins_present.append(plugin.name)
                continue
            client.add_plugin(service.name, plugin)
            attached.add(plugin.name)
            result.plugins_added.append(plugin.name)
            console.print(f"[green]  ✅ Plugin: {plugin.name}[/green]")
    return result


def apply_service_configs(
    client: KongAdminClient,
    config_dir: Path,
    *,
    dry_run: bool = False,
    services_only: bool = False,
) -> StepReport:
    """Register every ``*-service.yaml`` in *config_dir*.

    A failing file is reported and counted; the remaining files are still
    processed.

    Raises:
        ServiceConfigError: If the directory holds no service files.
    """
    files = discover_service_files(config_dir)
    if not files:
        raise ServiceConfigError(f"No service configuration files found in {config_dir}")
    console.print(f"Found {len(files)} service configuration(s)")

    report = StepReport()
    for path in files:
        name = display_name(path)
        console.rule(f"Processing: {name}")
        try:
            service = load_service_config(path)
            register_service(client, service, dry_run=dry_run, services_only=services_only)
        except (ServiceConfigError, KongAdminError) as e:
            logger.debug("registration of %s failed", path, exc_info=True)
            console.print(f"[red]❌ {e}[/red]")
            report.record(name, False)
            continue
        console.print(f"[green]✅ {name} configuration complete[/green]")
        report.record(name, True)
    return report
