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

"""Configuration classes, variant presets, and config resolution/display."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from demo_bootstrap import console
from demo_bootstrap.constants import (
    BACKEND_CONTAINER,
    BACKEND_HOST,
    BACKEND_K3D,
    BACKEND_VM,
    CLUSTER_CREATE_MAX_RETRIES,
    CLUSTER_READY_POLL_INTERVAL_SECONDS,
    CLUSTER_READY_TIMEOUT_SECONDS,
    DEFAULT_API_PORT,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_CPUS,
    DEFAULT_DISABLED_COMPONENTS,
    DEFAULT_DISK,
    DEFAULT_FLANNEL_BACKEND,
    DEFAULT_GIT_AUTHOR_EMAIL,
    DEFAULT_GIT_AUTHOR_NAME,
    DEFAULT_GITOPS_APP_NAME,
    DEFAULT_GITOPS_BRANCH,
    DEFAULT_GITOPS_WATCH_PATH,
    DEFAULT_INSTALL_DIR,
    DEFAULT_K3S_IMAGE,
    DEFAULT_K3S_VERSION,
    DEFAULT_KUBECTL_MINOR_SKEW,
    DEFAULT_LOG_DIR,
    DEFAULT_MEMORY,
    DEFAULT_METALLB_ADVERTISEMENT_NAME,
    DEFAULT_METALLB_POOL_NAME,
    DEFAULT_MIN_FREE_DISK_GB,
    DEFAULT_NETWORK_CHECK_HOSTS,
    DEFAULT_VM_IMAGE,
    EXPOSURE_MAX_ATTEMPTS,
    EXPOSURE_POLL_INTERVAL_SECONDS,
    METALLB_READY_TIMEOUT_SECONDS,
    PREREQUISITE_READY_TIMEOUT_SECONDS,
    REL_BIN_DIR,
    REL_GITOPS_DIR,
    REL_KUBECONFIG,
    SERVICE_TYPE_LOAD_BALANCER,
    VARIANT_K3D,
    VARIANT_LAPTOP,
    VARIANT_ONPREM,
    VARIANT_VM,
    dep_value,
)
from demo_bootstrap.errors import BootstrapError

Variant = Literal["laptop", "onprem", "vm", "k3d"]
Backend = Literal["host", "container", "vm", "k3d"]
ServiceType = Literal["LoadBalancer", "NodePort"]

_SIZE_PATTERN = r"^\d+[mMgG]?$"


# ============================================================================
# Configuration classes
# ============================================================================

class ClusterConfig(BaseSettings):
    """Cluster instance configuration, auto-loaded from DEMO_* env vars.

    Attributes:
        variant: Target environment preset (laptop, onprem, vm, k3d).
        backend: Provisioner backend override, or None to follow the variant.
        cluster_name: Name of the VM, container, or k3d cluster.
        cpus: CPU count for the instance.
        memory: Memory size for the instance (e.g. ``4G``).
        disk: Disk size for VM instances (e.g. ``20G``).
        k3s_version: k3s release installed by the install script.
        k3s_image: k3s image used by container-based backends.
        vm_image: Ubuntu release launched by the VM backend.
        disabled_components: Bundled k3s components to disable.
        disable_network_policy: Whether to disable the built-in network-policy engine.
        flannel_backend: Flannel backend passed to k3s.
        api_port: Host port for the Kubernetes API on container backends.
        host_network: Whether the k3s container uses host networking.
        advertise_address: Externally reachable address override.
        ready_timeout: Seconds to wait for all nodes to report Ready.
        ready_poll_interval: Seconds between node readiness checks.
        max_retries: Maximum cluster creation attempts on the k3d backend.
        reset: Whether to tear down prior state before bring-up.
    """

    model_config = SettingsConfigDict(env_prefix="DEMO_", extra="ignore")

    variant: Variant = VARIANT_LAPTOP
    backend: Backend | None = None
    cluster_name: str = Field(default=DEFAULT_CLUSTER_NAME, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    cpus: int = Field(default=DEFAULT_CPUS, ge=1, le=64)
    memory: str = Field(default=DEFAULT_MEMORY, pattern=_SIZE_PATTERN)
    disk: str = Field(default=DEFAULT_DISK, pattern=_SIZE_PATTERN)
    k3s_version: str = Field(default=dep_value("k3s", "version", default=DEFAULT_K3S_VERSION),
                             pattern=r"^v\d+\.\d+\.\d+\+k3s\d+$")
    k3s_image: str = dep_value("k3s", "image", default=DEFAULT_K3S_IMAGE)
    vm_image: str = DEFAULT_VM_IMAGE
    disabled_components: list[str] = Field(default_factory=lambda: list(DEFAULT_DISABLED_COMPONENTS))
    disable_network_policy: bool = False
    flannel_backend: str = DEFAULT_FLANNEL_BACKEND
    api_port: int = Field(default=DEFAULT_API_PORT, ge=1, le=65535)
    host_network: bool = False
    advertise_address: str | None = None
    ready_timeout: int = Field(default=CLUSTER_READY_TIMEOUT_SECONDS, ge=5, le=1800)
    ready_poll_interval: int = Field(default=CLUSTER_READY_POLL_INTERVAL_SECONDS, ge=1, le=60)
    max_retries: int = Field(default=CLUSTER_CREATE_MAX_RETRIES, ge=1, le=10)
    reset: bool = False


class ToolsConfig(BaseSettings):
    """Pinned chart and client versions, auto-loaded from DEMO_* env vars.

    Attributes:
        cert_manager_version: cert-manager Helm chart version.
        kamaji_version: Kamaji Helm chart version.
        argocd_version: Argo CD Helm chart version.
        crossplane_version: Crossplane Helm chart version.
        sveltos_version: Sveltos Helm chart version.
        sveltos_dashboard: Whether to install the Sveltos dashboard next to the controller.
        sveltos_dashboard_version: Sveltos dashboard Helm chart version.
        metallb_version: MetalLB Helm chart version.
        kubectl_version: kubectl release to install when the client is out of range.
        kubectl_minor_skew: Allowed minor-version distance between kubectl and k3s.
        helm_version: Helm release to install when the client is older than this or another major.
        prerequisite_timeout: Seconds to wait for a prerequisite tool to become Available.
    """

    model_config = SettingsConfigDict(env_prefix="DEMO_", extra="ignore")

    cert_manager_version: str = dep_value("charts", "cert_manager", "version", default="v1.17.2")
    kamaji_version: str = dep_value("charts", "kamaji", "version", default="0.0.0+latest")
    argocd_version: str = dep_value("charts", "argocd", "version", default="8.0.10")
    crossplane_version: str = dep_value("charts", "crossplane", "version", default="1.20.0")
    sveltos_version: str = dep_value("charts", "sveltos", "version", default="0.54.0")
    sveltos_dashboard: bool = True
    sveltos_dashboard_version: str = dep_value("charts", "sveltos_dashboard", "version", default="0.54.0")
    metallb_version: str = dep_value("charts", "metallb", "version", default="0.14.9")
    kubectl_version: str = Field(default=dep_value("kubectl", "version", default="v1.29.4"),
                                 pattern=r"^v\d+\.\d+\.\d+$")
    kubectl_minor_skew: int = Field(default=DEFAULT_KUBECTL_MINOR_SKEW, ge=0, le=3)
    helm_version: str = Field(default=dep_value("helm", "version", default="v3.15.4"),
                              pattern=r"^v\d+\.\d+\.\d+$")
    prerequisite_timeout: int = Field(default=PREREQUISITE_READY_TIMEOUT_SECONDS, ge=10)


class LoadBalancerConfig(BaseSettings):
    """MetalLB configuration, auto-loaded from DEMO_METALLB_* env vars.

    Attributes:
        enabled: Whether to install MetalLB and apply an address pool.
        ip_pool: Address range handed to MetalLB (CIDR or ``a-b`` range).
        pool_name: Name of the IPAddressPool resource.
        advertisement_name: Name of the L2Advertisement resource.
        ready_timeout: Seconds to wait for the MetalLB controller.
    """

    model_config = SettingsConfigDict(env_prefix="DEMO_METALLB_", extra="ignore")

    enabled: bool = False
    ip_pool: str = ""
    pool_name: str = DEFAULT_METALLB_POOL_NAME
    advertisement_name: str = DEFAULT_METALLB_ADVERTISEMENT_NAME
    ready_timeout: int = Field(default=METALLB_READY_TIMEOUT_SECONDS, ge=10)

    @field_validator("ip_pool")
    @classmethod
    def _strip_pool(cls, value: str) -> str:
        return value.strip()


class ExposureConfig(BaseSettings):
    """Argo CD UI exposure, auto-loaded from DEMO_ARGOCD_* env vars.

    Attributes:
        service_type: Service type used to expose the Argo CD server.
        max_attempts: Number of external-address polling attempts.
        poll_interval: Seconds between external-address polling attempts.
    """

    model_config = SettingsConfigDict(env_prefix="DEMO_ARGOCD_", extra="ignore")

    service_type: ServiceType = SERVICE_TYPE_LOAD_BALANCER
    max_attempts: int = Field(default=EXPOSURE_MAX_ATTEMPTS, ge=1, le=100)
    poll_interval: int = Field(default=EXPOSURE_POLL_INTERVAL_SECONDS, ge=0, le=300)


class GitOpsConfig(BaseSettings):
    """GitOps repository settings, auto-loaded from DEMO_GITOPS_* env vars.

    Attributes:
        enabled: Whether to sync the repository and register the Argo CD watch.
        remote_url: Remote repository URL watched by Argo CD.
        branch: Branch to sync and watch.
        repo_dir: Local working copy, or None for ``<install_dir>/demo-environment-gitops``.
        app_name: Name of the Argo CD Application.
        watch_path: Repository path Argo CD syncs from.
        push: Whether local commits are pushed to the remote.
        author_name: Commit author name.
        author_email: Commit author email.
    """

    model_config = SettingsConfigDict(env_prefix="DEMO_GITOPS_", extra="ignore")

    enabled: bool = True
    remote_url: str = ""
    branch: str = DEFAULT_GITOPS_BRANCH
    repo_dir: Path | None = None
    app_name: str = DEFAULT_GITOPS_APP_NAME
    watch_path: str = DEFAULT_GITOPS_WATCH_PATH
    push: bool = True
    author_name: str = DEFAULT_GIT_AUTHOR_NAME
    author_email: str = DEFAULT_GIT_AUTHOR_EMAIL


class PathsConfig(BaseSettings):
    """Filesystem and preflight settings, auto-loaded from DEMO_* env vars.

    Attributes:
        install_dir: Directory for binaries, generated config, and state.
        kubeconfig_path: Host-local kubeconfig, or None for ``<install_dir>/config/kubeconfig.yaml``.
        log_dir: Directory for session log files.
        min_free_disk_gb: Minimum free disk space at the install directory.
        network_check_hosts: ``host:port`` targets that must be reachable.
    """

    model_config = SettingsConfigDict(env_prefix="DEMO_", extra="ignore")

    install_dir: Path = DEFAULT_INSTALL_DIR
    kubeconfig_path: Path | None = None
    log_dir: Path = DEFAULT_LOG_DIR
    min_free_disk_gb: int = Field(default=DEFAULT_MIN_FREE_DISK_GB, ge=0)
    network_check_hosts: list[str] = Field(default_factory=lambda: list(DEFAULT_NETWORK_CHECK_HOSTS))


# ============================================================================
# Variant presets
# ============================================================================

VARIANT_BACKENDS: dict[str, str] = {
    VARIANT_LAPTOP: BACKEND_CONTAINER,
    VARIANT_ONPREM: BACKEND_HOST,
    VARIANT_VM: BACKEND_VM,
    VARIANT_K3D: BACKEND_K3D,
}

# Only fields the operator did not set explicitly are filled from a preset.
VARIANT_PRESETS: dict[str, dict[str, dict[str, Any]]] = {
    VARIANT_LAPTOP: {},
    VARIANT_ONPREM: {
        "cluster": {"reset": True, "disable_network_policy": True},
        "gitops": {"push": False},
    },
    VARIANT_VM: {},
    VARIANT_K3D: {},
}


def _apply_preset(model: BaseSettings, preset: dict[str, Any]) -> Any:
    """Fill preset values for fields that were not set explicitly.

    Args:
        model: Settings model loaded from the environment.
        preset: Field overrides for the selected variant.

    Returns:
        A copy of *model* with the unset preset fields applied.
    """
    update = {key: value for key, value in preset.items() if key not in model.model_fields_set}
    return model.model_copy(update=update) if update else model


# ============================================================================
# Aggregate configuration
# ============================================================================

@dataclass(frozen=True)
class BootstrapConfig:
    """Resolved configuration passed to every step of the procedure.

    Attributes:
        cluster: Cluster instance configuration.
        tools: Pinned tool versions.
        load_balancer: MetalLB configuration.
        exposure: Argo CD UI exposure configuration.
        gitops: GitOps repository configuration.
        paths: Filesystem and preflight configuration.
        log_file: Session log file, or None when logging to the terminal only.
    """

    cluster: ClusterConfig
    tools: ToolsConfig
    load_balancer: LoadBalancerConfig
    exposure: ExposureConfig
    gitops: GitOpsConfig
    paths: PathsConfig
    log_file: Path | None = None

    @property
    def backend(self) -> str:
        return self.cluster.backend or VARIANT_BACKENDS[self.cluster.variant]

    @property
    def kubeconfig_path(self) -> Path:
        return self.paths.kubeconfig_path or self.paths.install_dir / REL_KUBECONFIG

    @property
    def gitops_dir(self) -> Path:
        return self.gitops.repo_dir or self.paths.install_dir / REL_GITOPS_DIR

    @property
    def bin_dir(self) -> Path:
        return self.paths.install_dir / REL_BIN_DIR


def validate_config(cfg: BootstrapConfig) -> None:
    """Check cross-field constraints that single fields cannot express.

    Args:
        cfg: Resolved bootstrap configuration.

    Raises:
        BootstrapError: If the load-balancer is enabled without an address pool.
    """
    if cfg.load_balancer.enabled and not cfg.load_balancer.ip_pool:
        raise BootstrapError(
            "config",
            "MetalLB is enabled but no address pool was given",
            "export DEMO_METALLB_IP_POOL=<cidr-or-range>",
        )


def resolve_config(
    variant: str | None = None,
    reset: bool | None = None,
    skip_gitops: bool = False,
    metallb_pool: str | None = None,
    log_dir: Path | None = None,
) -> BootstrapConfig:
    """Merge CLI overrides, environment variables, presets, and defaults.

    Resolution priority: CLI arguments > DEMO_* environment variables >
    variant preset > defaults.

    Args:
        variant: CLI override for the target variant, or None.
        reset: CLI override for the clean-reset toggle, or None.
        skip_gitops: Whether to skip the GitOps repository sync.
        metallb_pool: CLI override enabling MetalLB with this pool, or None.
        log_dir: CLI override for the log directory, or None.

    Returns:
        The validated BootstrapConfig.

    Raises:
        BootstrapError: If any environment value fails validation.
    """
    try:
        cluster = ClusterConfig()
        tools = ToolsConfig()
        load_balancer = LoadBalancerConfig()
        exposure = ExposureConfig()
        gitops = GitOpsConfig()
        paths = PathsConfig()
    except ValidationError as err:
        raise BootstrapError("config", f"invalid configuration: {err}") from err

    if variant is not None:
        if variant not in VARIANT_BACKENDS:
            raise BootstrapError("config", f"unknown variant '{variant}'",
                                 f"use one of {', '.join(VARIANT_BACKENDS)}")
        cluster = cluster.model_copy(update={"variant": variant})

    preset = VARIANT_PRESETS[cluster.variant]
    cluster = _apply_preset(cluster, preset.get("cluster", {}))
    gitops = _apply_preset(gitops, preset.get("gitops", {}))

    # CLI overrides (CLI > env > preset > default)
    if reset is not None:
        cluster = cluster.model_copy(update={"reset": reset})
    if skip_gitops:
        gitops = gitops.model_copy(update={"enabled": False})
    if metallb_pool is not None:
        load_balancer = load_balancer.model_copy(update={"enabled": True, "ip_pool": metallb_pool.strip()})
    if log_dir is not None:
        paths = paths.model_copy(update={"log_dir": log_dir})

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    cfg = BootstrapConfig(
        cluster=cluster,
        tools=tools,
        load_balancer=load_balancer,
        exposure=exposure,
        gitops=gitops,
        paths=paths,
        log_file=paths.log_dir / f"bootstrap-{cluster.variant}-{timestamp}.log",
    )
    validate_config(cfg)
    return cfg


# ============================================================================
# Display
# ============================================================================

def display_config(cfg: BootstrapConfig) -> None:
    """Print the configuration relevant to this run.

    Args:
        cfg: Resolved bootstrap configuration.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))

    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  variant         : {cfg.cluster.variant}")
    console.print(f"  backend         : {cfg.backend}")
    console.print(f"  cluster_name    : {cfg.cluster.cluster_name}")
    console.print(f"  sizing          : {cfg.cluster.cpus} cpu / {cfg.cluster.memory} / {cfg.cluster.disk}")
    console.print(f"  k3s_version     : {cfg.cluster.k3s_version}")
    console.print(f"  disabled        : {', '.join(cfg.cluster.disabled_components) or '(none)'}")
    console.print(f"  network_policy  : {'disabled' if cfg.cluster.disable_network_policy else 'enabled'}")
    console.print(f"  reset           : {cfg.cluster.reset}")

    console.print("[yellow]Tools:[/yellow]")
    console.print(f"  cert-manager    : {cfg.tools.cert_manager_version}")
    console.print(f"  kamaji          : {cfg.tools.kamaji_version}")
    console.print(f"  argocd          : {cfg.tools.argocd_version}")
    console.print(f"  crossplane      : {cfg.tools.crossplane_version}")
    console.print(f"  sveltos         : {cfg.tools.sveltos_version}")
    if cfg.tools.sveltos_dashboard:
        console.print(f"  sveltos-dash    : {cfg.tools.sveltos_dashboard_version}")
    console.print(f"  helm (client)   : {cfg.tools.helm_version}")

    console.print("[yellow]MetalLB:[/yellow]")
    if cfg.load_balancer.enabled:
        console.print(f"  version         : {cfg.tools.metallb_version}")
        console.print(f"  ip_pool         : {cfg.load_balancer.ip_pool}")
    else:
        console.print("  (disabled)")

    if cfg.gitops.enabled:
        console.print("[yellow]GitOps:[/yellow]")
        console.print(f"  remote_url      : {cfg.gitops.remote_url or '(unset)'}")
        console.print(f"  branch          : {cfg.gitops.branch}")
        console.print(f"  working_copy    : {cfg.gitops_dir}")
        console.print(f"  push            : {cfg.gitops.push}")

    console.print("[yellow]Paths:[/yellow]")
    console.print(f"  install_dir     : {cfg.paths.install_dir}")
    console.print(f"  kubeconfig      : {cfg.kubeconfig_path}")
    console.print(f"  log_file        : {cfg.log_file}")
