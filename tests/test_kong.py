from __future__ import annotations

from pathlib import Path

import pytest

from stack_manager.kong import (
    KongAdminClient,
    KongAdminError,
    ServiceConfigError,
    apply_service_configs,
    discover_service_files,
    display_name,
    load_service_config,
    register_service,
)
from tests.conftest import GRAFANA_SERVICE, FakeResponse, HtmlResponse

ADMIN = "http://kong.test:8001"


@pytest.fixture
def client(fake_session) -> KongAdminClient:
    return KongAdminClient(ADMIN, session=fake_session)


# ============================================================================
# Declarative config parsing
# ============================================================================

def test_load_service_config_reads_first_service(write_service) -> None:
    path = write_service("grafana", GRAFANA_SERVICE)

    service = load_service_config(path)

    assert service.name == "grafana"
    assert service.url == "http://grafana.monitoring.svc.cluster.local:3000"
    assert [r.name for r in service.routes] == ["grafana-route"]
    assert service.routes[0].paths == ["/grafana", "/dashboards"]
    assert service.routes[0].strip_path is False
    assert [p.name for p in service.plugins] == ["cors", "rate-limiting"]
    assert service.plugins[1].config == {"minute": 100}


def test_strip_path_defaults_to_true(write_service) -> None:
    path = write_service("jenkins", """\
        services:
          - name: jenkins
            url: http://jenkins:8080
            routes:
              - name: jenkins-route
                paths: [/jenkins]
        """)

    assert load_service_config(path).routes[0].strip_path is True


@pytest.mark.parametrize(
    "content, message",
    [
        ("services: [name: x\n", "Invalid YAML"),
        ("foo: bar\n", "No service definition"),
        ("services: []\n", "No service definition"),
        ("", "No service definition"),
        ("services:\n  - name: x\n", "Missing service name or URL"),
        ("services:\n  - url: http://x\n", "Missing service name or URL"),
    ],
)
def test_load_service_config_rejects_bad_files(write_service, content: str, message: str) -> None:
    path = write_service("bad", content)

    with pytest.raises(ServiceConfigError, match=message):
        load_service_config(path)


def test_load_service_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ServiceConfigError, match="not found"):
        load_service_config(tmp_path / "nope-service.yaml")


def test_load_service_config_rejects_non_utf8(tmp_path: Path) -> None:
    path = tmp_path / "latin-service.yaml"
    path.write_bytes(b"services:\n  - name: \xff\xfe\n")

    with pytest.raises(ServiceConfigError, match="Cannot decode"):
        load_service_config(path)


def test_discover_service_files_sorted_and_filtered(write_service, tmp_path: Path) -> None:
    write_service("prometheus", GRAFANA_SERVICE)
    write_service("grafana", GRAFANA_SERVICE)
    (tmp_path / "declarative-configs" / "notes.yaml").write_text("x: 1\n")

    files = discover_service_files(tmp_path / "declarative-configs")

    assert [f.name for f in files] == ["grafana-service.yaml", "prometheus-service.yaml"]
    assert display_name(files[0]) == "grafana"


def test_discover_service_files_missing_dir(tmp_path: Path) -> None:
    assert discover_service_files(tmp_path / "missing") == []


# ============================================================================
# Registration
# ============================================================================

def test_register_service_issues_expected_calls(write_service, client, fake_session) -> None:
    fake_session.responses[("GET", "/services/grafana/plugins")] = FakeResponse(
        200, {"data": [{"name": "cors"}], "next": None},
    )
    service = load_service_config(write_service("grafana", GRAFANA_SERVICE))

    result = register_service(client, service)

    assert [(m, p) for m, p, _ in fake_session.calls] == [
        ("PUT", "/services/grafana"),
        ("PUT", "/services/grafana/routes/grafana-route"),
        ("PUT", "/services/grafana/routes/grafana-route"),
        ("GET", "/services/grafana/plugins"),
        ("POST", "/services/grafana/plugins"),
    ]
    assert fake_session.calls[0][2]["json"] == {
        "name": "grafana", "url": "http://grafana.monitoring.svc.cluster.local:3000",
    }
    assert fake_session.calls[1][2]["json"] == {"name": "grafana-route", "paths": ["/grafana"], "strip_path": False}
    assert fake_session.calls[2][2]["json"]["paths"] == ["/dashboards"]
    assert fake_session.calls[4][2]["json"] == {"name": "rate-limiting", "config": {"minute": 100}}
    assert result.plugins_present == ["cors"]
    assert result.plugins_added == ["rate-limiting"]


def test_plugin_check_matches_names_not_substrings(write_service, client, fake_session) -> None:
    fake_session.responses[("GET", "/services/grafana/plugins")] = FakeResponse(
        200, {"data": [{"name": "cors-extended"}], "next": None},
    )
    service = load_service_config(write_service("grafana", GRAFANA_SERVICE))

    result = register_service(client, service)

    assert result.plugins_added == ["cors", "rate-limiting"]


def test_register_service_skips_incomplete_entries(write_service, client, fake_session) -> None:
    path = write_service("svc", """\
        services:
          - name: svc
            url: http://svc
            routes:
              - name: no-paths
              - paths: [/anonymous]
            plugins:
              - config: {}
        """)

    register_service(client, load_service_config(path))

    assert [(m, p) for m, p, _ in fake_session.calls] == [("PUT", "/services/svc")]


def test_dry_run_makes_no_requests(write_service, client, fake_session) -> None:
    service = load_service_config(write_service("grafana", GRAFANA_SERVICE))

    result = register_service(client, service, dry_run=True)

    assert fake_session.calls == []
    assert result.dry_run
    assert result.routes == ["grafana-route"]


def test_services_only_upserts_service(write_service, client, fake_session) -> None:
    service = load_service_config(write_service("grafana", GRAFANA_SERVICE))

    register_service(client, service, services_only=True)

    assert [(m, p) for m, p, _ in fake_session.calls] == [("PUT", "/services/grafana")]


def test_non_2xx_raises_admin_error(write_service, client, fake_session) -> None:
    fake_session.responses[("PUT", "/services/grafana")] = FakeResponse(400, {"message": "bad"})
    service = load_service_config(write_service("grafana", GRAFANA_SERVICE))

    with pytest.raises(KongAdminError) as exc_info:
        register_service(client, service)

    assert exc_info.value.status_code == 400


def test_connection_error_raises_admin_error(client, fake_session) -> None:
    fake_session.raise_on.add(("GET", "/"))

    with pytest.raises(KongAdminError, match="Cannot connect"):
        client.ping()


def test_apply_service_configs_continues_after_failure(write_service, client, fake_session, tmp_path) -> None:
    write_service("broken", "services: [name: x\n")
    write_service("grafana", GRAFANA_SERVICE)

    report = apply_service_configs(client, tmp_path / "declarative-configs")

    assert report.failed == ["broken"]
    assert report.successful == ["grafana"]
    assert not report.ok
    assert ("PUT", "/services/grafana") in [(m, p) for m, p, _ in fake_session.calls]


def test_apply_service_configs_counts_http_failures(write_service, client, fake_session, tmp_path) -> None:
    write_service("grafana", GRAFANA_SERVICE)
    fake_session.responses[("PUT", "/services/grafana")] = FakeResponse(500)

    report = apply_service_configs(client, tmp_path / "declarative-configs")

    assert report.failed == ["grafana"]


def test_apply_service_configs_skips_undecodable_file(write_service, client, tmp_path) -> None:
    write_service("grafana", GRAFANA_SERVICE)
    (tmp_path / "declarative-configs" / "aaa-service.yaml").write_bytes(b"services:\n  - name: \xff\xfe\n")

    report = apply_service_configs(client, tmp_path / "declarative-configs")

    assert report.failed == ["aaa"]
    assert report.successful == ["grafana"]


def test_apply_service_configs_continues_after_non_json_body(write_service, client, fake_session, tmp_path) -> None:
    write_service("grafana", GRAFANA_SERVICE)
    write_service("jenkins", GRAFANA_SERVICE.replace("grafana", "jenkins"))
    fake_session.responses[("GET", "/services/grafana/plugins")] = HtmlResponse(200)

    report = apply_service_configs(client, tmp_path / "declarative-configs")

    assert report.failed == ["grafana"]
    assert report.successful == ["jenkins"]
    assert ("PUT", "/services/jenkins") in [(m, p) for m, p, _ in fake_session.calls]


def test_apply_service_configs_empty_dir(client, tmp_path: Path) -> None:
    with pytest.raises(ServiceConfigError, match="No service configuration files"):
        apply_service_configs(client, tmp_path)


# ============================================================================
# Admin client
# ============================================================================

def test_list_services_follows_pagination(client, fake_session) -> None:
    fake_session.responses[("GET", "/services")] = FakeResponse(
        200, {"data": [{"name": "a"}], "next": "/services?offset=abc"},
    )
    fake_session.responses[("GET", "/services?offset=abc")] = FakeResponse(
        200, {"data": [{"name": "b"}], "next": None},
    )

    assert [s["name"] for s in client.list_services()] == ["a", "b"]


def test_list_services_rejects_non_json_body(client, fake_session) -> None:
    fake_session.responses[("GET", "/services")] = HtmlResponse(200)

    with pytest.raises(KongAdminError, match="non-JSON"):
        client.list_services()


def test_list_services_rejects_non_object_body(client, fake_session) -> None:
    fake_session.responses[("GET", "/services")] = FakeResponse(200, ["grafana"])

    with pytest.raises(KongAdminError, match="unexpected body"):
        client.list_services()


def test_post_declarative_config_uploads_file(write_service, client, fake_session) -> None:
    path = write_service("grafana", GRAFANA_SERVICE)

    client.post_declarative_config(path)

    method, url_path, kwargs = fake_session.calls[0]
    assert (method, url_path) == ("POST", "/config")
    assert kwargs["files"]["config"][0] == "grafana-service.yaml"


def test_admin_url_trailing_slash_is_normalised(fake_session) -> None:
    KongAdminClient(ADMIN + "/", session=fake_session).ping()

    assert fake_session.calls[0][:2] == ("GET", "/")
