from __future__ import annotations

from pathlib import Path

import pytest

from stack_manager import orchestrator
from stack_manager.config import ChartRelease, KongConfig, PortForwardConfig
from stack_manager.kong import KongAdminError
from tests.conftest import GRAFANA_SERVICE


@pytest.fixture
def quiet_steps(monkeypatch: pytest.MonkeyPatch, no_sleep) -> dict[str, list]:
    """Replace external steps with recorders."""
    seen: dict[str, list] = {"deployed": [], "waited": [], "profiles": []}

    def fake_deploy_charts(releases: list[ChartRelease], cfg, report) -> None:
        for release in releases:
            ok = release.name != "loki"
            seen["deployed"].append(release.name)
            report.record(release.name, ok)

    monkeypatch.setattr(orchestrator, "require_command", lambda cmd: None)
    monkeypatch.setattr(orchestrator, "start_cluster", lambda cfg: None)
    monkeypatch.setattr(orchestrator, "enable_addons", lambda cfg: None)
    monkeypatch.setattr(orchestrator, "ensure_namespace", lambda ns: None)
    monkeypatch.setattr(orchestrator, "deploy_charts", fake_deploy_charts)
    monkeypatch.setattr(orchestrator, "wait_for_pods", lambda ns, sel, timeout: seen["waited"].append(ns) or True)
    monkeypatch.setattr(orchestrator, "start_profile", lambda forwards, pid_dir: seen["profiles"].append(forwards))
    return seen


def test_full_deploy_continues_past_chart_failure(quiet_steps, tmp_path: Path) -> None:
    report = orchestrator.run_full_deploy(skip_routes=True, pf_cfg=PortForwardConfig(pid_dir=str(tmp_path)))

    assert quiet_steps["deployed"] == ["kong", "prometheus", "loki", "grafana", "alertmanager", "jenkins"]
    assert quiet_steps["waited"] == ["kong"]
    assert report.failed == ["loki"]
    assert not report.ok
    assert [pf.name for pf in quiet_steps["profiles"][0]] == ["kong-proxy", "kong-admin", "prometheus", "grafana"]


def test_full_deploy_missing_tool_aborts(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(cmd: str) -> None:
        raise RuntimeError(f"{cmd} is not installed. Please install it first.")

    monkeypatch.setattr(orchestrator, "require_command", missing)

    with pytest.raises(RuntimeError, match="minikube is not installed"):
        orchestrator.run_full_deploy()


def test_gateway_registration_records_each_file(quiet_steps, monkeypatch: pytest.MonkeyPatch,
                                                write_service, tmp_path: Path) -> None:
    write_service("grafana", GRAFANA_SERVICE)
    write_service("jenkins", GRAFANA_SERVICE)
    posted: list[str] = []

    class FakeClient:
        def __init__(self, admin_url: str, timeout: float = 10.0) -> None:
            self.admin_url = admin_url

        def post_declarative_config(self, path: Path) -> None:
            if path.name.startswith("jenkins"):
                raise KongAdminError("POST /config failed (HTTP 400)", 400)
            posted.append(path.name)

    class FakeTunnel:
        def __init__(self, pf) -> None:
            self.pf = pf

        def __enter__(self):
            return None

        def __exit__(self, *exc) -> bool:
            return False

    monkeypatch.setattr(orchestrator, "KongAdminClient", FakeClient)
    monkeypatch.setattr(orchestrator, "port_forward", FakeTunnel)
    kong_cfg = KongConfig(config_dir=str(tmp_path / "declarative-configs"))

    report = orchestrator.run_full_deploy(
        skip_cluster=True, skip_kong=True, skip_monitoring=True, skip_cicd=True,
        skip_port_forward=True, kong_cfg=kong_cfg,
    )

    assert posted == ["grafana-service.yaml"]
    assert report.successful == ["kong-route:Grafana"]
    assert report.failed == ["kong-route:Prometheus", "kong-route:Alertmanager", "kong-route:Jenkins"]
