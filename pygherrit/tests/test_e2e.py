"""End-to-end tests against real git repositories and a fake GitHub."""

import shutil
import subprocess
from pathlib import Path
from typing import Tuple

import pytest
from click.testing import CliRunner

from pygherrit.cmd.gherrit import main as cli_main
from pygherrit.config import Config
from pygherrit.errors import ConflictError, GitError
from pygherrit.git import RealGit
from pygherrit.github import GitHubClient
from pygherrit.sync import StackSync
from pygherrit.tests.fakes import FakeGithub
from pygherrit.typing import HeadKind

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    return result.stdout.strip()


def commit(work: Path, filename: str, title: str, stack_id: str) -> str:
    (work / filename).write_text(f"{title}\n")
    git(work, "add", filename)
    git(work, "commit", "-q", "-m", title, "-m", f"gherrit-pr-id: {stack_id}")
    return git(work, "rev-parse", "HEAD")


def remote_refs(remote: Path) -> dict:
    refs = {}
    for line in git(remote, "for-each-ref", "--format=%(objectname) %(refname)").splitlines():
        sha, ref = line.split(" ", 1)
        refs[ref] = sha
    return refs


@pytest.fixture
def repos(tmp_path: Path) -> Tuple[Path, Path]:
    """A work tree on branch feature, cloned from a bare remote with one commit on main."""
    remote = tmp_path / "remote.git"
    work = tmp_path / "work"
    git(tmp_path, "init", "-q", "--bare", "--initial-branch=main", str(remote))
    git(tmp_path, "init", "-q", "--initial-branch=main", str(work))
    git(work, "config", "user.name", "Test User")
    git(work, "config", "user.email", "test@example.com")
    git(work, "remote", "add", "origin", str(remote))
    (work / "README.md").write_text("# test\n")
    git(work, "add", "README.md")
    git(work, "commit", "-q", "-m", "Initial commit")
    git(work, "push", "-q", "origin", "main")
    git(work, "fetch", "-q", "origin")
    git(work, "checkout", "-q", "-b", "feature")
    return work, remote


@pytest.fixture
def real_sync(repos: Tuple[Path, Path], config: Config, github: GitHubClient) -> StackSync:
    work, _ = repos
    return StackSync(config, github, RealGit(config, path=str(work)))


class TestRealGit:
    def test_primitives(self, repos: Tuple[Path, Path], config: Config) -> None:
        work, _ = repos
        first = commit(work, "a.txt", "Add a", "GA1")
        real = RealGit(config, path=str(work))

        assert real.current_branch().branch == "feature"
        assert real.current_branch().kind == HeadKind.ATTACHED
        base = real.rev_parse("refs/remotes/origin/main")
        assert base is not None
        assert real.rev_parse("refs/heads/does-not-exist") is None
        assert real.is_ancestor(base, first)
        assert not real.is_ancestor(first, base)
        assert real.rev_walk(first, base) == [first]
        assert "gherrit-pr-id: GA1" in real.commit_message(first)
        assert real.config_string("gherrit.unset") is None

        real.update_ref("refs/tags/gherrit/GA1/v1", first)
        assert real.list_refs("refs/tags/gherrit/") == {"refs/tags/gherrit/GA1/v1": first}
        with pytest.raises(GitError):
            real.update_ref("refs/tags/gherrit/GA1/v1", first)

    def test_detached_head(self, repos: Tuple[Path, Path], config: Config) -> None:
        work, _ = repos
        commit(work, "a.txt", "Add a", "GA1")
        git(work, "checkout", "-q", "--detach")
        assert RealGit(config, path=str(work)).current_branch().kind == HeadKind.DETACHED


class TestRealSync:
    def test_sync_then_amend(self, repos: Tuple[Path, Path], real_sync: StackSync,
                             fake_github: FakeGithub) -> None:
        work, remote = repos
        a = commit(work, "a.txt", "Add a", "GA1")
        b = commit(work, "b.txt", "Add b", "GB2")

        real_sync.sync()

        refs = remote_refs(remote)
        assert refs["refs/heads/GA1"] == a
        assert refs["refs/heads/GB2"] == b
        assert refs["refs/tags/gherrit/GA1/v1"] == a
        assert refs["refs/tags/gherrit/GB2/v1"] == b
        assert git(work, "rev-parse", "refs/tags/gherrit/GB2/v1") == b
        assert [pr.base_ref for pr in fake_github.prs.values()] == ["main", "GA1"]

        (work / "b.txt").write_text("better b\n")
        git(work, "commit", "-q", "-a", "--amend", "--no-edit")
        b2 = git(work, "rev-parse", "HEAD")

        real_sync.sync()

        refs = remote_refs(remote)
        assert refs["refs/heads/GB2"] == b2
        assert refs["refs/tags/gherrit/GB2/v1"] == b
        assert refs["refs/tags/gherrit/GB2/v2"] == b2
        assert "refs/tags/gherrit/GA1/v2" not in refs
        assert "gherrit/GB2/v1..gherrit/GB2/v2" in fake_github.prs[2].body

    def test_stale_clone_does_not_overwrite_newer_version(self, repos: Tuple[Path, Path], real_sync: StackSync,
                                                          config: Config, github: GitHubClient,
                                                          fake_github: FakeGithub) -> None:
        work, remote = repos
        first = commit(work, "a.txt", "Add a", "GA1")
        real_sync.sync()

        # A second developer picks up the change, amends it and publishes v2
        other = work.parent / "other"
        git(work.parent, "clone", "-q", str(remote), str(other))
        git(other, "config", "user.name", "Other User")
        git(other, "config", "user.email", "other@example.com")
        git(other, "checkout", "-q", "-b", "feature", "origin/GA1")
        (other / "a.txt").write_text("better a\n")
        git(other, "commit", "-q", "-a", "--amend", "--no-edit")
        second = git(other, "rev-parse", "HEAD")
        StackSync(config, github, RealGit(config, path=str(other))).sync()
        assert remote_refs(remote)["refs/tags/gherrit/GA1/v2"] == second

        # The first clone syncs its unchanged, now outdated stack
        with pytest.raises(ConflictError):
            real_sync.sync()

        refs = remote_refs(remote)
        assert refs["refs/heads/GA1"] == second
        assert refs["refs/tags/gherrit/GA1/v1"] == first
        assert "gherrit/GA1/v1..gherrit/GA1/v2" in fake_github.prs[1].body

    def test_concurrent_tag_rejects_whole_batch(self, repos: Tuple[Path, Path], real_sync: StackSync,
                                                fake_github: FakeGithub) -> None:
        work, remote = repos
        a = commit(work, "a.txt", "Add a", "GA1")
        commit(work, "b.txt", "Add b", "GB2")
        # Another machine already published GB2 v1
        git(work, "push", "-q", "origin", f"{a}:refs/tags/gherrit/GB2/v1")

        with pytest.raises(ConflictError):
            real_sync.sync()

        refs = remote_refs(remote)
        assert "refs/heads/GA1" not in refs
        assert "refs/tags/gherrit/GA1/v1" not in refs
        assert fake_github.mutations == 0


class TestCLI:
    @pytest.fixture(autouse=True)
    def isolate(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # -C changes the working directory of the whole process
        monkeypatch.chdir(Path.cwd())
        monkeypatch.setattr(cli_main, "setup_logging", lambda verbose: None)

    def test_pre_push_skips_unmanaged_branch(self, repos: Tuple[Path, Path]) -> None:
        work, remote = repos
        commit(work, "a.txt", "Add a", "GA1")

        result = CliRunner().invoke(cli_main.cli, ["hook", "pre-push", "-C", str(work), "origin", str(remote)])

        assert result.exit_code == 0, result.output
        assert "refs/heads/GA1" not in remote_refs(remote)

    def test_pre_push_rejects_invalid_managed_state(self, repos: Tuple[Path, Path]) -> None:
        work, _ = repos
        git(work, "config", "branch.feature.gherritManaged", "sometimes")

        result = CliRunner().invoke(cli_main.cli, ["hook", "pre-push", "-C", str(work)])

        assert result.exit_code == 1

    def test_pre_push_rejects_detached_head(self, repos: Tuple[Path, Path]) -> None:
        work, _ = repos
        git(work, "checkout", "-q", "--detach")

        result = CliRunner().invoke(cli_main.cli, ["hook", "pre-push", "-C", str(work)])

        assert result.exit_code == 1

    @pytest.mark.parametrize("contents", [
        "tool:\n  push_batch_size: 0\n",
        "tool: [unbalanced\n",
        "- just\n- a list\n",
    ])
    def test_invalid_config_file_is_reported(self, repos: Tuple[Path, Path], contents: str,
                                             caplog: pytest.LogCaptureFixture) -> None:
        work, _ = repos
        (work / ".gherrit.yaml").write_text(contents)

        result = CliRunner().invoke(cli_main.cli, ["status", "-C", str(work)])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert ".gherrit.yaml" in caplog.text

    def test_outside_repository(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli_main.cli, ["status", "-C", str(tmp_path)])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)

    def test_aliases(self) -> None:
        result = CliRunner().invoke(cli_main.cli, ["up", "--help"])
        assert result.exit_code == 0
        assert "--pretend" in result.output
        result = CliRunner().invoke(cli_main.cli, ["st", "--help"])
        assert result.exit_code == 0
        assert "--json" in result.output
