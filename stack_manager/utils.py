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

"""Utility functions for kubectl, namespaces, and command checks."""

from __future__ import annotations

import subprocess

import sh

from stack_manager import logger


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"{cmd} is not installed. Please install it first.") from err


def run_kubectl(args: list[str], timeout: int = 30, stdin: str | None = None) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh where the caller inspects stdout and stderr
    separately (e.g. filtering known apply warnings).

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        timeout: Maximum seconds to wait for the command to complete.
        stdin: Text piped to kubectl's stdin.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    logger.debug("kubectl %s", " ".join(args))
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            input=stdin,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def ensure_namespace(namespace: str) -> None:
    """Create a namespace if it does not exist (client dry-run piped into apply).

    Raises:
        RuntimeError: If the namespace cannot be applied.
    """
    ok, manifest, stderr = run_kubectl(["create", "namespace", namespace, "--dry-run=client", "-o", "yaml"])
    if ok:
        ok, _, stderr = run_kubectl(["apply", "-f", "-"], stdin=manifest)
    if not ok:
        raise RuntimeError(f"Failed to create namespace {namespace}: {stderr.strip()}")
