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

"""Constants, stack layout loading, and stack_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent


def load_stack_layout() -> dict:
    """Load chart, port-forward and gateway layout from stack.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    layout_file = PACKAGE_DIR / "stack.yaml"
    with open(layout_file) as f:
        return yaml.safe_load(f)


STACK = load_stack_layout()


def stack_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the STACK dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = STACK
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Required tools --
TOOLS_FULL_DEPLOY = ("minikube", "kubectl", "helm")
TOOLS_ARGOCD_DEPLOY = ("kubectl",)

# -- Namespaces --
NS_KONG = "kong"
NS_ARGOCD = "argocd"

# -- Helm --
HELM_PENDING_STATUSES = ("pending-install", "pending-upgrade", "pending-rollback")
HELM_ROLLBACK_SETTLE_SECONDS = 2
DEFAULT_HELM_TIMEOUT = "5m"
DEFAULT_VALUES_FILE = "values-global.yaml"

# -- Minikube defaults --
DEFAULT_MINIKUBE_PROFILE = "minikube"
DEFAULT_MINIKUBE_DRIVER = "podman"
DEFAULT_MINIKUBE_RUNTIME = "cri-o"
DEFAULT_MINIKUBE_CPUS = 4
DEFAULT_MINIKUBE_MEMORY_MB = 8192
DEFAULT_MINIKUBE_ADDONS = ("metrics-server", "storage-provisioner")

# -- Kong --
DEFAULT_KONG_ADMIN_URL = "http://localhost:8001"
IN_CLUSTER_KONG_ADMIN_URL = "http://kong-admin.gateway.svc.cluster.local:8001"
DEFAULT_KONG_CONFIG_DIR = "charts/kong/declarative-configs"
DEFAULT_KONG_REQUEST_TIMEOUT = 10.0
SERVICE_FILE_GLOB = "*-service.yaml"
SERVICE_FILE_SUFFIX = "-service"
KONG_POD_SELECTOR = "app=kong"
KONG_READY_TIMEOUT = "300s"
KONG_PROXY_PORT_STACK = 32000
KONG_PROXY_PORT_LOCAL = 8000
PF_PROFILE_STACK = "stack"
PF_PROFILE_KONG = "kong"
PF_ADMIN_NAME = "kong-admin"
SERVICES_STABILIZE_SECONDS = 10

# -- ArgoCD --
ARGOCD_INSTALL_MANIFEST = "https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml"
ARGOCD_SERVER_SELECTOR = "app.kubernetes.io/name=argocd-server"
ARGOCD_SERVER_DEPLOYMENT = "argocd-server"
ARGOCD_PARAMS_CONFIGMAP = "argocd-cmd-params-cm"
ARGOCD_ADMIN_SECRET = "argocd-initial-admin-secret"
ARGOCD_CRD_WARNING = "CustomResourceDefinition"
DEFAULT_ARGOCD_BASE_PATH = "/argocd"
DEFAULT_ARGOCD_APPLICATIONS_DIR = "charts/argocd/applications"
ARGOCD_READY_TIMEOUT = "300s"
ARGOCD_ROLLOUT_TIMEOUT = "120s"
ARGOCD_PATCH_MAX_RETRIES = 6
ARGOCD_PATCH_POLL_INTERVAL_SECONDS = 5

# -- Port forwarding --
DEFAULT_PID_DIR = "/tmp"
PID_FILE_SUFFIX = "-pf.pid"
PORT_READY_MAX_RETRIES = 20
PORT_READY_POLL_INTERVAL_SECONDS = 0.5
PORT_FORWARD_CLEANUP_SETTLE_SECONDS = 2
