"""Shared fixtures: fake requests session, fake sh module, service files."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlsplit

import pytest
import requests
import sh


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = {} if body is None else body

    def json(self) -> Any:
        return self._body


class HtmlResponse(FakeResponse):
    """A 2xx answer whose body is not JSON, as served by a misrouted proxy."""

    def json(self) -> Any:
        raise requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)


class FakeSession:
    """Records admin API calls and answers from a (method, path) table."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []
        self.responses: dict[tuple[str, str], FakeResponse] = {}
        self.raise_on: set[tuple[str, str]] = set()

    def request(self, method: str, url: str, timeout: float | None = None, **kwargs: Any) -> FakeResponse:
        parts = urlsplit(url)
        path = parts.path + (f"?{parts.query}" if parts.query else "")
        self.calls.append((method, path, kwargs))
        if (method, path) in self.raise_on:
            raise requests.ConnectionError("connection refused")
        if (method, path) in self.responses:
            return self.responses[(method, path)]
        if method == "GET":
            return FakeResponse(200, {"data": [], "next": None})
        return FakeResponse(200, {})

    def writes(self) -> list[tuple[str, str, dict]]:
        return [call for call in self.calls if call[0] != "GET"]


class FakeSh:
    """Stand-in for the ``sh`` module: records commands, fails on request."""

    ErrorReturnCode = sh.ErrorReturnCode
    ErrorReturnCode_1 = sh.ErrorReturnCode_1

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.outputs: dict[tuple[str, str], str] = {}
        self.failures: set[tuple[str, str]] = set()

    def __getattr__(self, name: str) -> Callable[..., str]:
        if name.startswith("_"):
            raise AttributeError(name)

        def command(*args: Any, **kwargs: Any) -> str:
            args = tuple(str(a) for a in args)
            self.calls.append((name, args))
            key = (name, args[0] if args else "")
            if key in self.failures:
                raise sh.ErrorReturnCode_1(f"{name} {' '.join(args)}", b"", b"failed")
            return self.outputs.get(key, "")

        return command

    def commands(self, name: str) -> list[tuple[str, ...]]:
        return [args for cmd, args in self.calls if cmd == name]


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fake_sh() -> FakeSh:
    return FakeSh()


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("time.sleep", lambda _seconds: None)


GRAFANA_SERVICE = """\
    services:
      - name: grafana
        url: http://grafana.monitoring.svc.cluster.local:3000
        routes:
          - name: grafana-route
            paths:
              - /grafana
              - /dashboards
            strip_path: false
        plugins:
          - name: cors
          - name: rate-limiting
            config:
              minute: 100
    """


@pytest.fixture
def write_service(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a ``<name>-service.yaml`` file into a config dir under tmp_path."""
    config_dir = tmp_path / "declarative-configs"
    config_dir.mkdir()

    def _write(name: str, content: str) -> Path:
        path = config_dir / f"{name}-service.yaml"
        path.write_text(textwrap.dedent(content))
        return path

    return _write
