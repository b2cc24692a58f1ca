import json

import pytest

from demo_bootstrap import exposure
from demo_bootstrap.errors import BootstrapError


class KubectlStub:
    """Serves ``get svc`` from a queue of service documents and records patches."""

    def __init__(self, services, patch_ok=True):
        self.services = list(services)
        self.patch_ok = patch_ok
        self.patches = []

    def __call__(self, args, kubeconfig=None, timeout=30, stdin=None):
        if "patch" in args:
            self.patches.append(json.loads(args[args.index("-p") + 1]))
            return (True, "", "") if self.patch_ok else (False, "", "forbidden")
        if not self.services:
            return False, "", "not found"
        svc = self.services.pop(0) if len(self.services) > 1 else self.services[0]
        return True, json.dumps(svc), ""


def _lb(ingress=None):
    return {"spec": {"type": "LoadBalancer"}, "status": {"loadBalancer": {"ingress": ingress} if ingress else {}}}


@pytest.fixture
def stub(monkeypatch):
    def install(services, patch_ok=True):
        kubectl = KubectlStub(services, patch_ok)
        monkeypatch.setattr(exposure, "run_kubectl", kubectl)
        return kubectl
    return install


def test_load_balancer_probe_reads_ingress_ip(stub, tmp_path):
    stub([_lb([{"ip": "198.51.100.1"}])])
    assert exposure.LoadBalancerExposer(tmp_path / "kc").probe() == "https://198.51.100.1"


def test_load_balancer_probe_reads_ingress_hostname(stub, tmp_path):
    stub([_lb([{"hostname": "argocd.lab.local"}])])
    assert exposure.LoadBalancerExposer(tmp_path / "kc").probe() == "https://argocd.lab.local"


def test_load_balancer_probe_pending(stub, tmp_path):
    stub([_lb()])
    assert exposure.LoadBalancerExposer(tmp_path / "kc").probe() is None


def test_node_port_probe_uses_https_port(stub, tmp_path):
    stub([{"spec": {"type": "NodePort", "ports": [
        {"name": "http", "port": 80, "nodePort": 30080},
        {"name": "https", "port": 443, "nodePort": 30443},
    ]}}])
    assert exposure.NodePortExposer(tmp_path / "kc", host="10.0.0.5").probe() == "https://10.0.0.5:30443"


def test_expose_patches_type_and_polls_until_assigned(cfg, stub, tmp_path, monkeypatch):
    monkeypatch.setattr(cfg.exposure, "poll_interval", 0)
    kubectl = stub([_lb(), _lb(), _lb([{"ip": "198.51.100.7"}])])
    url = exposure.expose_gitops_ui(exposure.LoadBalancerExposer(tmp_path / "kc"), cfg)
    assert url == "https://198.51.100.7"
    assert kubectl.patches == [{"spec": {"type": "LoadBalancer"}}]


def test_exhausted_polling_is_a_warning_not_an_error(cfg, stub, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cfg.exposure, "poll_interval", 0)
    stub([_lb()])
    assert exposure.expose_gitops_ui(exposure.LoadBalancerExposer(tmp_path / "kc"), cfg) is None
    err = capsys.readouterr().err
    assert "pending" in err
    assert "get svc argocd-server" in err


def test_rejected_patch_is_fatal(cfg, stub, tmp_path):
    stub([_lb()], patch_ok=False)
    with pytest.raises(BootstrapError) as exc:
        exposure.expose_gitops_ui(exposure.LoadBalancerExposer(tmp_path / "kc"), cfg)
    assert exc.value.step == "expose"


def test_get_exposer_follows_service_type(demo_env, monkeypatch, tmp_path):
    from conftest import FakeProvisioner

    from demo_bootstrap.config import resolve_config

    cfg = resolve_config()
    assert isinstance(exposure.get_exposer(cfg, FakeProvisioner(cfg), tmp_path), exposure.LoadBalancerExposer)
    monkeypatch.setenv("DEMO_ARGOCD_SERVICE_TYPE", "NodePort")
    cfg = resolve_config()
    exposer = exposure.get_exposer(cfg, FakeProvisioner(cfg, host="10.9.8.7"), tmp_path)
    assert isinstance(exposer, exposure.NodePortExposer)
    assert exposer.host == "10.9.8.7"
