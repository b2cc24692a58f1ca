import logging

import pytest
from typer.testing import CliRunner

from demo_bootstrap import cli
from demo_bootstrap.commands import delete_cmd
from demo_bootstrap.errors import BootstrapError

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


def test_show_config_prints_resolved_values(demo_env, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["show-config", "--variant", "k3d"])
    assert exc.value.code == 0
    err = capsys.readouterr().err
    assert "variant         : k3d" in err
    assert "backend         : k3d" in err


def test_session_log_is_created(demo_env):
    with pytest.raises(SystemExit):
        cli.main(["show-config"])
    assert list((demo_env / "logs").glob("bootstrap-laptop-*.log"))


def test_fatal_step_exits_nonzero(demo_env, monkeypatch):
    def failing(cfg):
        raise BootstrapError("tools", "helm install argocd failed", "helm status argocd -n argocd")

    monkeypatch.setattr(cli, "run_bootstrap", failing)
    with pytest.raises(SystemExit) as exc:
        cli.main(["run", "--skip-gitops"])
    assert exc.value.code == 1


def test_unexpected_failure_exits_nonzero(demo_env, monkeypatch, capsys):
    def broken(cfg):
        raise ValueError("unexpected kubeconfig layout")

    monkeypatch.setattr(cli, "run_bootstrap", broken)
    with pytest.raises(SystemExit) as exc:
        cli.main(["run"])
    assert exc.value.code == 1
    assert "unexpected kubeconfig layout" in capsys.readouterr().err


def test_invalid_variant_exits_nonzero(demo_env):
    with pytest.raises(SystemExit) as exc:
        cli.main(["show-config", "--variant", "mainframe"])
    assert exc.value.code == 1


def test_delete_asks_for_confirmation(demo_env, monkeypatch):
    resets = []
    monkeypatch.setattr(delete_cmd, "run_reset", lambda cfg: resets.append(cfg.cluster.cluster_name))
    result = runner.invoke(cli.app, ["delete", "cluster"], input="n\n")
    assert result.exit_code == 1
    assert resets == []
    result = runner.invoke(cli.app, ["delete", "cluster", "--yes"])
    assert result.exit_code == 0
    assert resets == ["k3s-demo"]
