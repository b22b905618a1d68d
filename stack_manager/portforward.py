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

"""Background ``kubectl port-forward`` processes and their PID files."""

from __future__ import annotations

import os
import signal
import socket
import subprocess
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import sh
from tenacity import RetryError, retry, retry_if_result, stop_after_attempt, wait_fixed

from stack_manager import console, logger
from stack_manager.config import PortForward
from stack_manager.constants import (
    PID_FILE_SUFFIX,
    PORT_FORWARD_CLEANUP_SETTLE_SECONDS,
    PORT_READY_MAX_RETRIES,
    PORT_READY_POLL_INTERVAL_SECONDS,
)


def pid_file(pid_dir: Path, name: str) -> Path:
    return pid_dir / f"{name}{PID_FILE_SUFFIX}"


def stop_matching(pattern: str) -> None:
    """Kill port-forward processes whose command line matches *pattern*."""
    try:
        sh.pkill("-f", f"port-forward.*{pattern}")
    except sh.ErrorReturnCode_1:
        logger.debug("no port-forward matching %s", pattern)


def stop_profile(forwards: list[PortForward]) -> None:
    """Kill existing port forwards to the services of a profile."""
    for service in dict.fromkeys(pf.target for pf in forwards):
        stop_matching(service)
    time.sleep(PORT_FORWARD_CLEANUP_SETTLE_SECONDS)


def start_port_forward(pf: PortForward, pid_dir: Path | None = None) -> subprocess.Popen:
    """Start a detached port-forward and optionally record its PID.

    Args:
        pf: Port forward to start.
        pid_dir: Directory for the ``<name>-pf.pid`` file, or None.

    Returns:
        The running process.
    """
    proc = subprocess.Popen(
        ["kubectl", "port-forward", "-n", pf.namespace, pf.target, pf.ports],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
    logger.debug("port-forward %s started with pid %d", pf.name, proc.pid)
    if pid_dir is not None:
        pid_dir.mkdir(parents=True, exist_ok=True)
        pid_file(pid_dir, pf.name).write_text(f"{proc.pid}\n")
    return proc


def _port_open(port: int, host: str = "127.0.0.1") -> bool:
    try:
        with socket.create_connection((host, port), timeout=PORT_READY_POLL_INTERVAL_SECONDS):
            return True
    except OSError:
        return False


@retry(
    stop=stop_after_attempt(PORT_READY_MAX_RETRIES),
    wait=wait_fixed(PORT_READY_POLL_INTERVAL_SECONDS),
    retry=retry_if_result(lambda ok: not ok),
)
def _poll_port(port: int) -> bool:
    return _port_open(port)


def wait_for_port(port: int) -> bool:
    """Wait until a local port accepts TCP connections.

    Returns:
        True if the port opened before the retries ran out.
    """
    try:
        return _poll_port(port)
    except RetryError:
        return False


def start_profile(forwards: list[PortForward], pid_dir: Path) -> list[tuple[PortForward, subprocess.Popen]]:
    """Start every port forward of a profile and wait for the local ports."""
    started = []
    for pf in forwards:
        proc = start_port_forward(pf, pid_dir)
        started.append((pf, proc))
    for pf, proc in started:
        if wait_for_port(pf.local_port):
            console.print(f"  ✓ {pf.service}: http://localhost:{pf.local_port} (PID: {proc.pid})")
        else:
            console.print(f"[yellow]  ⚠️  {pf.service}: port {pf.local_port} not answering yet (PID: {proc.pid})[/yellow]")
    return started


@contextmanager
def port_forward(pf: PortForward) -> Iterator[subprocess.Popen]:
    """Run a port forward for the duration of the block.

    Raises:
        RuntimeError: If the local port never opens.
    """
    proc = start_port_forward(pf)
    try:
        if not wait_for_port(pf.local_port):
            raise RuntimeError(f"Port-forward to {pf.target} on port {pf.local_port} did not become ready")
        yield proc
    finally:
        proc.terminate()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()


def stop_from_pid_files(pid_dir: Path) -> list[str]:
    """Terminate processes recorded in ``*-pf.pid`` files and remove the files.

    Returns:
        Names of the port forwards whose PID files were processed.
    """
    stopped = []
    for path in sorted(pid_dir.glob(f"*{PID_FILE_SUFFIX}")):
        name = path.name[: -len(PID_FILE_SUFFIX)]
        try:
            pid = int(path.read_text().strip())
            os.kill(pid, signal.SIGTERM)
        except ValueError:
            logger.warning("Ignoring malformed PID file %s", path)
        except ProcessLookupError:
            logger.debug("port-forward %s already gone", name)
        path.unlink(missing_ok=True)
        stopped.append(name)
    return stopped
