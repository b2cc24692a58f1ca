import pytest

from demo_bootstrap import components, loadbalancer
from demo_bootstrap.config import resolve_config
from demo_bootstrap.errors import BootstrapError


@pytest.fixture
def applied(monkeypatch, fake_sh):
    monkeypatch.setattr(components, "sh", fake_sh)
    docs: list[dict] = []

    def fake_apply(manifests, kubeconfig, timeout=60):
        docs.extend(manifests)
        return True, ""

    monkeypatch.setattr(loadbalancer, "apply_manifests", fake_apply)
    return docs


def test_disabled_load_balancer_is_skipped_entirely(cfg, applied, fake_sh, tmp_path):
    assert loadbalancer.setup_load_balancer(cfg, tmp_path / "kubeconfig") is False
    assert fake_sh.calls == []
    assert applied == []


def test_enabled_pool_creates_one_pool_and_one_advertisement(demo_env, applied, fake_sh, tmp_path):
    cfg = resolve_config(metallb_pool="198.51.100.0/28")
    assert loadbalancer.setup_load_balancer(cfg, tmp_path / "kubeconfig") is True

    pools = [d for d in applied if d["kind"] == "IPAddressPool"]
    ads = [d for d in applied if d["kind"] == "L2Advertisement"]
    assert len(pools) == 1 and len(ads) == 1
    assert pools[0]["metadata"]["namespace"] == "metallb-system"
    assert ads[0]["metadata"]["namespace"] == "metallb-system"
    assert pools[0]["spec"]["addresses"] == ["198.51.100.0/28"]
    assert ads[0]["spec"]["ipAddressPools"] == [pools[0]["metadata"]["name"]]

    helm_calls = fake_sh.commands("helm")
    assert any(args[:3] == ("upgrade", "--install", "metallb") for args in helm_calls)
    wait = fake_sh.commands("kubectl")[0]
    assert "deployment/metallb-controller" in wait


def test_controller_never_ready_is_fatal(demo_env, applied, fake_sh, tmp_path):
    from conftest import command_error

    def wait_times_out(*args, **kwargs):
        raise command_error("kubectl", b"timed out")

    fake_sh.handlers["kubectl"] = wait_times_out
    cfg = resolve_config(metallb_pool="198.51.100.0/28")
    with pytest.raises(BootstrapError) as exc:
        loadbalancer.setup_load_balancer(cfg, tmp_path / "kubeconfig")
    assert exc.value.step == "load-balancer"
    assert applied == []


def test_address_pool_manifests_reject_empty_fields():
    with pytest.raises(ValueError, match="ip_pool"):
        loadbalancer.address_pool_manifests("", "pool", "l2")
    with pytest.raises(ValueError, match="pool_name"):
        loadbalancer.address_pool_manifests("10.0.0.0/28", "", "l2")


def test_address_pool_manifests_use_configured_names():
    pool, ad = loadbalancer.address_pool_manifests("10.0.0.240-10.0.0.250", "lab", "lab-l2")
    assert pool["apiVersion"] == ad["apiVersion"] == "metallb.io/v1beta1"
    assert pool["metadata"]["name"] == "lab"
    assert ad["metadata"]["name"] == "lab-l2"
    assert ad["spec"]["ipAddressPools"] == ["lab"]
