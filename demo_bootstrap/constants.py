# /*
# Copyright 2026 The Demo Bootstrap Authors.
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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load pinned versions from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Variants and backends --
VARIANT_LAPTOP = "laptop"
VARIANT_ONPREM = "onprem"
VARIANT_VM = "vm"
VARIANT_K3D = "k3d"

BACKEND_HOST = "host"
BACKEND_CONTAINER = "container"
BACKEND_VM = "vm"
BACKEND_K3D = "k3d"

# -- Cluster defaults --
DEFAULT_CLUSTER_NAME = "k3s-demo"
DEFAULT_CPUS = 2
DEFAULT_MEMORY = "4G"
DEFAULT_DISK = "20G"
DEFAULT_API_PORT = 6443
DEFAULT_FLANNEL_BACKEND = "vxlan"
DEFAULT_DISABLED_COMPONENTS = ("traefik",)
DEFAULT_K3S_VERSION = "v1.29.4+k3s1"
DEFAULT_K3S_IMAGE = "docker.io/rancher/k3s:v1.29.4-k3s1"
DEFAULT_VM_IMAGE = "22.04"
CLUSTER_READY_TIMEOUT_SECONDS = 60
CLUSTER_READY_POLL_INTERVAL_SECONDS = 5
CLUSTER_LOG_TAIL_LINES = 20
CLUSTER_CREATE_MAX_RETRIES = 3
CLUSTER_CREATE_RETRY_WAIT_SECONDS = 10
K3D_CLUSTER_TIMEOUT = "120s"

# -- k3s install --
K3S_INSTALL_URL = "https://get.k3s.io"
K3S_UNINSTALL_SCRIPT = "/usr/local/bin/k3s-uninstall.sh"
K3S_KUBECONFIG_PATH = "/etc/rancher/k3s/k3s.yaml"
K3S_HOST_STATE_DIRS = ("/etc/rancher", "/var/lib/rancher", "/var/lib/kubelet")
K3S_CONTAINER_DATA_DIR = "/var/lib/rancher/k3s"
K3S_CONTAINER_CONFIG_DIR = "/etc/rancher/k3s"
K3S_CONTAINER_KUBECONFIG = "kubeconfig.yaml"
LOOPBACK_HOSTS = frozenset({"127.0.0.1", "localhost", "::1", "0.0.0.0"})

# -- Paths --
DEFAULT_INSTALL_DIR = Path.home() / ".k3s-demo"
DEFAULT_LOG_DIR = Path(tempfile.gettempdir())
REL_KUBECONFIG = "config/kubeconfig.yaml"
REL_BIN_DIR = "bin"
REL_CONTAINER_DATA_DIR = "k3s-data"
REL_CONTAINER_CONFIG_DIR = "k3s-config"
REL_GITOPS_DIR = "demo-environment-gitops"

# -- Preflight --
DEFAULT_MIN_FREE_DISK_GB = 10
DEFAULT_NETWORK_CHECK_HOSTS = ("get.k3s.io:443", "github.com:443")
NETWORK_CHECK_TIMEOUT_SECONDS = 5
COMMON_REQUIRED_COMMANDS = ("git", "kubectl", "helm", "curl")
DEFAULT_KUBECTL_MINOR_SKEW = 1
KUBECTL_DOWNLOAD_URL = "https://dl.k8s.io/release/{version}/bin/{os}/{arch}/kubectl"
HELM_DOWNLOAD_URL = "https://get.helm.sh/helm-{version}-{os}-{arch}.tar.gz"
PACKAGE_MANAGERS = ("brew", "apt-get", "dnf", "yum")
# Package names that differ from the command name, per package manager.
PACKAGE_NAMES: dict[str, dict[str, tuple[str, ...]]] = {
    "brew": {"kubectl": ("kubernetes-cli",), "multipass": ("--cask", "multipass")},
}

# -- Namespaces --
NS_CERT_MANAGER = "cert-manager"
NS_KAMAJI = "kamaji-system"
NS_ARGOCD = "argocd"
NS_CROSSPLANE = "crossplane-system"
NS_SVELTOS = "projectsveltos"
NS_METALLB = "metallb-system"

# -- Helm repos --
HELM_REPO_JETSTACK = ("jetstack", "https://charts.jetstack.io")
HELM_REPO_CLASTIX = ("clastix", "https://clastix.github.io/charts")
HELM_REPO_ARGO = ("argo", "https://argoproj.github.io/argo-helm")
HELM_REPO_CROSSPLANE = ("crossplane-stable", "https://charts.crossplane.io/stable")
HELM_REPO_SVELTOS = ("projectsveltos", "https://projectsveltos.github.io/helm-charts")
HELM_REPO_METALLB = ("metallb", "https://metallb.github.io/metallb")

# -- Tool readiness --
PREREQUISITE_READY_TIMEOUT_SECONDS = 180
METALLB_READY_TIMEOUT_SECONDS = 120
METALLB_WEBHOOK_MAX_RETRIES = 12
METALLB_WEBHOOK_POLL_INTERVAL_SECONDS = 5
METALLB_CONTROLLER_DEPLOYMENT = "metallb-controller"
DEFAULT_METALLB_POOL_NAME = "demo-pool"
DEFAULT_METALLB_ADVERTISEMENT_NAME = "demo-l2"

# -- Argo CD --
ARGOCD_SERVER_SERVICE = "argocd-server"
ARGOCD_ADMIN_SECRET = "argocd-initial-admin-secret"
ARGOCD_ADMIN_USER = "admin"
ARGOCD_HTTPS_PORT_NAME = "https"
SERVICE_TYPE_LOAD_BALANCER = "LoadBalancer"
SERVICE_TYPE_NODE_PORT = "NodePort"
EXPOSURE_MAX_ATTEMPTS = 6
EXPOSURE_POLL_INTERVAL_SECONDS = 10
IN_CLUSTER_API_SERVER = "https://kubernetes.default.svc"

# -- GitOps --
DEFAULT_GITOPS_BRANCH = "main"
DEFAULT_GITOPS_APP_NAME = "gitops-demo"
DEFAULT_GITOPS_WATCH_PATH = "kamaji-clusters"
DEFAULT_GIT_AUTHOR_NAME = "Demo Bootstrap"
DEFAULT_GIT_AUTHOR_EMAIL = "demo-bootstrap@localhost"
GITOPS_COMMIT_MESSAGE = "Update GitOps repository structure"
GITOPS_LAYOUT = (
    "documentation",
    "infra-setup/metal3",
    "infra-setup/metallb",
    "infra-setup/crossplane-provider",
    "kamaji-clusters",
    "base-addons",
    "demos/f5-bnk",
    "demos/f5-spk",
    "demos/other-products",
    "clusters-apps/example-app1",
    "clusters-apps/example-app2",
    "scripts",
)
QUICKSTART_ENVIRONMENTS = ("laptop", "onprem", "cloud")
TENANT_KUBERNETES_VERSION = "v1.29.0"
