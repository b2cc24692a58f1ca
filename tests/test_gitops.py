import os
import shutil
from pathlib import Path

import pytest
import sh

from demo_bootstrap import gitops
from demo_bootstrap.config import resolve_config
from demo_bootstrap.errors import BootstrapError

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

IDENTITY = ("-c", "user.name=Operator", "-c", "user.email=operator@example.com")


def git(*args, cwd: Path):
    return str(sh.git(*args, _cwd=str(cwd)))


@pytest.fixture
def remote(demo_env) -> Path:
    path = demo_env / "remote.git"
    sh.git("init", "--bare", str(path))
    sh.git("--git-dir", str(path), "symbolic-ref", "HEAD", "refs/heads/main")
    return path


def clone_elsewhere(remote: Path, dest: Path) -> Path:
    sh.git("clone", str(remote), str(dest))
    return dest


# ============================================================================
# Placeholders (no git needed)
# ============================================================================

def test_placeholder_set_follows_variant_and_service_type(cfg):
    files = gitops.placeholder_files(cfg)
    assert "README.md" in files
    assert {f"documentation/quickstart-{env}.md" for env in ("laptop", "onprem", "cloud")} <= set(files)
    content, executable = files["scripts/bootstrap-laptop.sh"]
    assert executable and content.startswith("#!/bin/bash")
    tenant, _ = files["kamaji-clusters/tenant-laptop-demo.yaml"]
    assert "kind: TenantControlPlane" in tenant
    assert "serviceType: LoadBalancer" in tenant


def test_write_placeholders_never_overwrites(tmp_path, cfg):
    (tmp_path / "README.md").write_text("operator notes\n")
    created = gitops.write_placeholders(tmp_path, gitops.placeholder_files(cfg))
    assert "README.md" not in created
    assert (tmp_path / "README.md").read_text() == "operator notes\n"
    assert os.access(tmp_path / "scripts" / "bootstrap-laptop.sh", os.X_OK)
    assert gitops.write_placeholders(tmp_path, gitops.placeholder_files(cfg)) == []


def test_ensure_layout_creates_only_missing_directories(tmp_path):
    (tmp_path / "kamaji-clusters").mkdir()
    created = gitops.ensure_layout(tmp_path)
    assert "kamaji-clusters/" not in created
    assert "infra-setup/metallb/" in created
    assert gitops.ensure_layout(tmp_path) == []


def test_application_manifest_watches_repository(cfg):
    app = gitops.application_manifest(cfg)
    assert app["kind"] == "Application"
    assert app["metadata"]["namespace"] == "argocd"
    assert app["spec"]["source"] == {
        "repoURL": cfg.gitops.remote_url,
        "path": "kamaji-clusters",
        "targetRevision": "main",
    }
    assert app["spec"]["syncPolicy"]["automated"] == {"prune": True, "selfHeal": True}
    assert "CreateNamespace=true" in app["spec"]["syncPolicy"]["syncOptions"]


def test_register_watch_failure_is_fatal(cfg, monkeypatch, tmp_path):
    monkeypatch.setattr(gitops, "apply_manifests", lambda docs, kubeconfig: (False, "no matches for kind"))
    with pytest.raises(BootstrapError) as exc:
        gitops.register_watch(cfg, tmp_path / "kc")
    assert exc.value.step == "gitops"


def test_missing_remote_url_is_fatal(demo_env, monkeypatch):
    monkeypatch.delenv("DEMO_GITOPS_REMOTE_URL")
    with pytest.raises(BootstrapError, match="remote URL"):
        gitops.sync_gitops_repo(resolve_config())


# ============================================================================
# Repository sync against a local bare remote
# ============================================================================

@requires_git
def test_first_sync_clones_commits_and_pushes(cfg, remote):
    result = gitops.sync_gitops_repo(cfg)
    assert result.origin == "cloned"
    assert result.committed and result.pushed
    assert (cfg.gitops_dir / "demos" / "f5-bnk").is_dir()
    assert (cfg.gitops_dir / "kamaji-clusters" / "tenant-laptop-demo.yaml").is_file()
    assert "tenant-laptop-demo.yaml" in str(sh.git("--git-dir", str(remote), "ls-tree", "-r", "main"))


@requires_git
def test_second_sync_changes_nothing(cfg, remote):
    gitops.sync_gitops_repo(cfg)
    head = git("rev-parse", "HEAD", cwd=cfg.gitops_dir)
    result = gitops.sync_gitops_repo(cfg)
    assert result.origin == "updated"
    assert result.created == []
    assert not result.committed and not result.pushed
    assert git("rev-parse", "HEAD", cwd=cfg.gitops_dir) == head


@requires_git
def test_operator_edits_survive_resync(cfg, remote):
    gitops.sync_gitops_repo(cfg)
    tenant = cfg.gitops_dir / "kamaji-clusters" / "tenant-laptop-demo.yaml"
    tenant.write_text("# edited by the operator\n")
    gitops.sync_gitops_repo(cfg)
    assert tenant.read_text() == "# edited by the operator\n"


@requires_git
def test_existing_working_copy_fast_forwards(cfg, remote, tmp_path):
    gitops.sync_gitops_repo(cfg)
    other = clone_elsewhere(remote, tmp_path / "other")
    (other / "base-addons").mkdir(exist_ok=True)
    (other / "base-addons" / "monitoring.yaml").write_text("kind: List\n")
    git("add", "-A", cwd=other)
    git(*IDENTITY, "commit", "-m", "add monitoring", cwd=other)
    git("push", "origin", "main", cwd=other)

    gitops.sync_gitops_repo(cfg)
    assert (cfg.gitops_dir / "base-addons" / "monitoring.yaml").read_text() == "kind: List\n"


@requires_git
def test_diverged_history_only_warns(cfg, remote, tmp_path, capsys):
    gitops.sync_gitops_repo(cfg)
    other = clone_elsewhere(remote, tmp_path / "other")
    (other / "upstream.txt").write_text("upstream\n")
    git("add", "-A", cwd=other)
    git(*IDENTITY, "commit", "-m", "upstream change", cwd=other)
    git("push", "origin", "main", cwd=other)

    (cfg.gitops_dir / "local.txt").write_text("local\n")
    git("add", "-A", cwd=cfg.gitops_dir)
    git(*IDENTITY, "commit", "-m", "local change", cwd=cfg.gitops_dir)

    result = gitops.sync_gitops_repo(cfg)
    assert result.origin == "updated"
    assert not result.pushed
    err = capsys.readouterr().err
    assert "Could not fast-forward" in err
    assert "diverged from origin; not pushing" in err
    assert not (cfg.gitops_dir / "upstream.txt").exists()


@requires_git
def test_unreachable_remote_falls_back_to_init(demo_env, monkeypatch):
    monkeypatch.setenv("DEMO_GITOPS_REMOTE_URL", str(demo_env / "missing.git"))
    monkeypatch.setenv("DEMO_GITOPS_PUSH", "false")
    cfg = resolve_config()
    result = gitops.sync_gitops_repo(cfg)
    assert result.origin == "initialized"
    assert result.committed and not result.pushed
    assert git("remote", "get-url", "origin", cwd=cfg.gitops_dir).strip() == str(demo_env / "missing.git")
    assert git("symbolic-ref", "--short", "HEAD", cwd=cfg.gitops_dir).strip() == "main"


@requires_git
def test_rejected_push_is_fatal(demo_env, monkeypatch):
    monkeypatch.setenv("DEMO_GITOPS_REMOTE_URL", str(demo_env / "missing.git"))
    cfg = resolve_config()
    with pytest.raises(BootstrapError) as exc:
        gitops.sync_gitops_repo(cfg)
    assert exc.value.step == "gitops"
    assert "credentials" in exc.value.remedy


@requires_git
def test_succeeds_reports_git_exit_status(tmp_path):
    repo = tmp_path / "repo"
    sh.git("init", str(repo))
    assert gitops._succeeds(repo, "rev-parse", "--verify", "--quiet", "HEAD") is False
    (repo / "a.txt").write_text("a\n")
    git("add", "-A", cwd=repo)
    git(*IDENTITY, "commit", "-m", "first", cwd=repo)
    assert gitops._succeeds(repo, "rev-parse", "--verify", "--quiet", "HEAD") is True


@requires_git
def test_commit_rejected_earlier_is_pushed_on_rerun(cfg, remote, tmp_path):
    seed = clone_elsewhere(remote, tmp_path / "seed")
    (seed / "seed.txt").write_text("seed\n")
    git("add", "-A", cwd=seed)
    git(*IDENTITY, "commit", "-m", "seed", cwd=seed)
    git("push", "origin", "main", cwd=seed)

    hook = remote / "hooks" / "pre-receive"
    hook.write_text("#!/bin/sh\nexit 1\n")
    hook.chmod(0o755)
    with pytest.raises(BootstrapError):
        gitops.sync_gitops_repo(cfg)

    hook.unlink()
    result = gitops.sync_gitops_repo(cfg)
    assert not result.committed
    assert result.pushed
    local_head = git("rev-parse", "HEAD", cwd=cfg.gitops_dir).strip()
    remote_head = str(sh.git("--git-dir", str(remote), "rev-parse", "main")).strip()
    assert remote_head == local_head


@requires_git
def test_refused_checkout_is_a_gitops_error(cfg, remote):
    gitops.sync_gitops_repo(cfg)
    readme = cfg.gitops_dir / "README.md"
    git("checkout", "-b", "scratch", cwd=cfg.gitops_dir)
    readme.write_text("scratch branch notes\n")
    git("add", "-A", cwd=cfg.gitops_dir)
    git(*IDENTITY, "commit", "-m", "scratch", cwd=cfg.gitops_dir)
    readme.write_text("uncommitted edit\n")

    with pytest.raises(BootstrapError) as exc:
        gitops.sync_gitops_repo(cfg)
    assert exc.value.step == "gitops"
    assert "cannot check out main" in exc.value.message
    assert exc.value.remedy == f"git -C {cfg.gitops_dir} status"
