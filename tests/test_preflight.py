import json
import os

import pytest
from conftest import command_error

from demo_bootstrap import preflight
from demo_bootstrap.config import resolve_config
from demo_bootstrap.errors import BootstrapError


# ============================================================================
# Required commands
# ============================================================================

@pytest.mark.parametrize("backend,extra", [
    ("container", []),
    ("vm", ["multipass"]),
    ("k3d", ["k3d", "docker"]),
])
def test_required_commands_per_backend(backend, extra):
    assert preflight.required_commands(backend) == ["git", "kubectl", "helm", "curl", *extra]


def test_host_backend_needs_sudo_unless_root(monkeypatch):
    monkeypatch.setattr(preflight, "is_root", lambda: False)
    assert preflight.required_commands("host")[-1] == "sudo"
    monkeypatch.setattr(preflight, "is_root", lambda: True)
    assert "sudo" not in preflight.required_commands("host")


def test_missing_command_is_installed(monkeypatch):
    installed = set()
    monkeypatch.setattr(preflight, "command_exists", lambda cmd: cmd != "helm" or "helm" in installed)
    monkeypatch.setattr(preflight, "detect_package_manager", lambda: "apt-get")
    monkeypatch.setattr(preflight, "install_package", lambda manager, cmd: installed.add(cmd))
    preflight.ensure_commands(["git", "helm"])
    assert installed == {"helm"}


def test_missing_command_without_package_manager_is_fatal(monkeypatch):
    monkeypatch.setattr(preflight, "command_exists", lambda cmd: cmd == "git")
    monkeypatch.setattr(preflight, "detect_package_manager", lambda: None)
    with pytest.raises(BootstrapError) as exc:
        preflight.ensure_commands(["git", "helm", "curl"])
    assert exc.value.step == "preflight"
    assert "'helm'" in exc.value.message


def test_command_still_missing_after_install_is_fatal(monkeypatch):
    monkeypatch.setattr(preflight, "command_exists", lambda cmd: False)
    monkeypatch.setattr(preflight, "detect_package_manager", lambda: "dnf")
    monkeypatch.setattr(preflight, "install_package", lambda manager, cmd: None)
    with pytest.raises(BootstrapError, match="still missing"):
        preflight.ensure_commands(["helm"])


def test_install_package_uses_brew_names(monkeypatch, fake_sh):
    monkeypatch.setattr(preflight, "sh", fake_sh)
    preflight.install_package("brew", "kubectl")
    assert fake_sh.commands("brew") == [("install", "kubernetes-cli")]


def test_install_package_failure_is_fatal(monkeypatch):
    def failing(*args, **kwargs):
        raise command_error("apt-get", b"E: Unable to locate package helm")

    monkeypatch.setattr(preflight, "privileged", failing)
    with pytest.raises(BootstrapError, match="failed to install helm"):
        preflight.install_package("apt-get", "helm")


# ============================================================================
# kubectl version constraint
# ============================================================================

@pytest.mark.parametrize("version,minor", [
    ("v1.29.4", 29),
    ("v1.29.4+k3s1", 29),
    ("1.30.0", 30),
    ("29+", 29),
    ("", None),
    ("latest", None),
])
def test_parse_minor(version, minor):
    assert preflight.parse_minor(version) == minor


def test_kubectl_client_minor_reads_json(monkeypatch, fake_sh):
    fake_sh.handlers["kubectl"] = lambda *a, **k: json.dumps({"clientVersion": {"major": "1", "minor": "30"}})
    monkeypatch.setattr(preflight, "sh", fake_sh)
    assert preflight.kubectl_client_minor() == 30


@pytest.mark.parametrize("current,installs", [(29, False), (30, False), (28, False), (27, True), (31, True), (None, True)])
def test_kubectl_outside_skew_is_replaced(cfg, monkeypatch, current, installs):
    installed = []
    monkeypatch.setattr(preflight, "kubectl_client_minor", lambda: current)
    monkeypatch.setattr(preflight, "install_pinned_kubectl", lambda version, bin_dir: installed.append(version))
    preflight.ensure_kubectl_version(cfg)
    assert installed == (["v1.29.4"] if installs else [])


def test_install_pinned_kubectl_prepends_bin_dir(monkeypatch, fake_sh, tmp_path):
    def download(*args, **kwargs):
        (tmp_path / "bin" / "kubectl").write_text("#!/bin/sh\n")

    fake_sh.handlers["curl"] = download
    monkeypatch.setattr(preflight, "sh", fake_sh)
    monkeypatch.setenv("PATH", "/usr/bin")
    dest = preflight.install_pinned_kubectl("v1.29.4", tmp_path / "bin")
    assert os.access(dest, os.X_OK)
    assert os.environ["PATH"].split(os.pathsep)[0] == str(tmp_path / "bin")
    assert "/release/v1.29.4/bin/" in fake_sh.commands("curl")[0][-1]


@pytest.mark.parametrize("output,expected", [
    ("v3.15.4+gfa9efb0\n", (3, 15)),
    ("v3.9.0", (3, 9)),
    ("not helm", None),
])
def test_helm_client_version_parses_short_output(monkeypatch, fake_sh, output, expected):
    fake_sh.handlers["helm"] = lambda *a, **k: output
    monkeypatch.setattr(preflight, "sh", fake_sh)
    assert preflight.helm_client_version() == expected
    assert fake_sh.commands("helm") == [("version", "--short")]


@pytest.mark.parametrize("current,installs", [
    ((3, 15), False), ((3, 16), False), ((3, 14), True), ((2, 17), True), ((4, 0), True), (None, True),
])
def test_helm_older_than_pin_is_replaced(cfg, monkeypatch, current, installs):
    installed = []
    monkeypatch.setattr(preflight, "helm_client_version", lambda: current)
    monkeypatch.setattr(preflight, "install_pinned_helm", lambda version, bin_dir: installed.append(version))
    preflight.ensure_helm_version(cfg)
    assert installed == (["v3.15.4"] if installs else [])


def test_install_pinned_helm_unpacks_binary(monkeypatch, fake_sh, tmp_path):
    bin_dir = tmp_path / "bin"

    def download(*args, **kwargs):
        (bin_dir / "helm-v3.15.4.tar.gz").write_bytes(b"archive")

    def unpack(*args, **kwargs):
        (bin_dir / "helm").write_text("#!/bin/sh\n")

    fake_sh.handlers["curl"] = download
    fake_sh.handlers["tar"] = unpack
    monkeypatch.setattr(preflight, "sh", fake_sh)
    monkeypatch.setenv("PATH", "/usr/bin")
    dest = preflight.install_pinned_helm("v3.15.4", bin_dir)
    assert os.access(dest, os.X_OK)
    assert not (bin_dir / "helm-v3.15.4.tar.gz").exists()
    assert os.environ["PATH"].split(os.pathsep)[0] == str(bin_dir)
    assert fake_sh.commands("curl")[0][-1].startswith("https://get.helm.sh/helm-v3.15.4-")
    assert fake_sh.commands("tar")[0][-1].endswith("/helm")


def test_install_pinned_helm_download_failure_is_fatal(monkeypatch, fake_sh, tmp_path):
    def download(*args, **kwargs):
        raise command_error("curl", b"404")

    fake_sh.handlers["curl"] = download
    monkeypatch.setattr(preflight, "sh", fake_sh)
    with pytest.raises(BootstrapError, match="failed to install helm v3.15.4"):
        preflight.install_pinned_helm("v3.15.4", tmp_path / "bin")
    assert fake_sh.commands("tar") == []


# ============================================================================
# Environment checks
# ============================================================================

def test_disk_space_below_minimum_is_fatal(tmp_path):
    with pytest.raises(BootstrapError, match="GiB free"):
        preflight.check_disk_space(tmp_path / "not" / "yet" / "created", 10 ** 6)


def test_disk_space_checks_nearest_existing_parent(tmp_path, capsys):
    preflight.check_disk_space(tmp_path / "missing", 0)
    assert str(tmp_path) in capsys.readouterr().err


def test_unreachable_network_target_is_fatal():
    with pytest.raises(BootstrapError, match="cannot reach"):
        preflight.check_network(["127.0.0.1:notaport"])


def test_run_preflight_requires_remote_when_gitops_enabled(demo_env, monkeypatch):
    monkeypatch.delenv("DEMO_GITOPS_REMOTE_URL")
    monkeypatch.setattr(preflight, "ensure_commands", lambda commands: None)
    monkeypatch.setattr(preflight, "ensure_kubectl_version", lambda cfg: None)
    monkeypatch.setattr(preflight, "ensure_helm_version", lambda cfg: None)
    monkeypatch.setattr(preflight, "check_container_runtime", lambda: None)
    with pytest.raises(BootstrapError, match="no remote URL"):
        preflight.run_preflight(resolve_config())
    preflight.run_preflight(resolve_config(skip_gitops=True))


def test_run_preflight_checks_runtime_only_for_container_backend(demo_env, monkeypatch):
    checked = []
    monkeypatch.setattr(preflight, "ensure_commands", lambda commands: None)
    monkeypatch.setattr(preflight, "ensure_kubectl_version", lambda cfg: None)
    monkeypatch.setattr(preflight, "ensure_helm_version", lambda cfg: None)
    monkeypatch.setattr(preflight, "check_container_runtime", lambda: checked.append(True))
    preflight.run_preflight(resolve_config(variant="k3d"))
    assert checked == []
    preflight.run_preflight(resolve_config(variant="laptop"))
    assert checked == [True]
