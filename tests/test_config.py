from pathlib import Path

import pytest

from demo_bootstrap.config import resolve_config
from demo_bootstrap.errors import BootstrapError


def test_defaults_follow_laptop_variant(demo_env: Path):
    cfg = resolve_config()
    assert cfg.cluster.variant == "laptop"
    assert cfg.backend == "container"
    assert cfg.cluster.reset is False
    assert cfg.load_balancer.enabled is False
    assert cfg.kubeconfig_path == demo_env / "install" / "config" / "kubeconfig.yaml"
    assert cfg.gitops_dir == demo_env / "install" / "demo-environment-gitops"
    assert cfg.log_file.parent == demo_env / "logs"
    assert cfg.log_file.name.startswith("bootstrap-laptop-")


def test_onprem_preset_fills_unset_fields(demo_env):
    cfg = resolve_config(variant="onprem")
    assert cfg.backend == "host"
    assert cfg.cluster.reset is True
    assert cfg.cluster.disable_network_policy is True
    assert cfg.gitops.push is False


def test_environment_beats_preset(demo_env, monkeypatch):
    monkeypatch.setenv("DEMO_RESET", "false")
    monkeypatch.setenv("DEMO_GITOPS_PUSH", "true")
    cfg = resolve_config(variant="onprem")
    assert cfg.cluster.reset is False
    assert cfg.gitops.push is True
    assert cfg.cluster.disable_network_policy is True


def test_cli_beats_environment(demo_env, monkeypatch):
    monkeypatch.setenv("DEMO_RESET", "false")
    monkeypatch.setenv("DEMO_VARIANT", "vm")
    cfg = resolve_config(variant="k3d", reset=True)
    assert cfg.cluster.variant == "k3d"
    assert cfg.backend == "k3d"
    assert cfg.cluster.reset is True


def test_backend_override(demo_env, monkeypatch):
    monkeypatch.setenv("DEMO_BACKEND", "k3d")
    assert resolve_config(variant="laptop").backend == "k3d"


def test_metallb_enabled_without_pool_is_fatal(demo_env, monkeypatch):
    monkeypatch.setenv("DEMO_METALLB_ENABLED", "true")
    with pytest.raises(BootstrapError) as exc:
        resolve_config()
    assert exc.value.step == "config"
    assert "DEMO_METALLB_IP_POOL" in exc.value.remedy


def test_metallb_pool_from_cli_enables_load_balancer(demo_env):
    cfg = resolve_config(metallb_pool=" 198.51.100.0/28 ")
    assert cfg.load_balancer.enabled is True
    assert cfg.load_balancer.ip_pool == "198.51.100.0/28"


def test_metallb_pool_from_environment_is_stripped(demo_env, monkeypatch):
    monkeypatch.setenv("DEMO_METALLB_ENABLED", "true")
    monkeypatch.setenv("DEMO_METALLB_IP_POOL", "  10.0.0.240-10.0.0.250 ")
    assert resolve_config().load_balancer.ip_pool == "10.0.0.240-10.0.0.250"


def test_unknown_variant_is_fatal(demo_env):
    with pytest.raises(BootstrapError, match="unknown variant"):
        resolve_config(variant="mainframe")


@pytest.mark.parametrize("name,value", [
    ("DEMO_CPUS", "0"),
    ("DEMO_MEMORY", "lots"),
    ("DEMO_K3S_VERSION", "1.29"),
    ("DEMO_CLUSTER_NAME", "Bad_Name"),
    ("DEMO_ARGOCD_SERVICE_TYPE", "ClusterIP"),
])
def test_invalid_environment_values_are_fatal(demo_env, monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(BootstrapError) as exc:
        resolve_config()
    assert exc.value.step == "config"


def test_skip_gitops_disables_sync(demo_env):
    assert resolve_config(skip_gitops=True).gitops.enabled is False


def test_log_dir_override(demo_env, tmp_path):
    cfg = resolve_config(log_dir=tmp_path / "elsewhere")
    assert cfg.log_file.parent == tmp_path / "elsewhere"


def test_pinned_versions_come_from_dependencies_file(demo_env):
    cfg = resolve_config()
    assert cfg.cluster.k3s_version.startswith("v1.")
    assert cfg.tools.cert_manager_version
    assert cfg.tools.argocd_version
