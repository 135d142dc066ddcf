"""Unit tests for configuration parsing."""

import pytest
from pydantic import ValidationError

from pygherrit.config import Config, default_config
from pygherrit.config.config_parser import find_default_branch, parse_config, parse_remote_url
from pygherrit.config.models import RepoConfig, ToolConfig
from pygherrit.tests.fakes import FakeGit


class TestParseRemoteURL:
    @pytest.mark.parametrize("url, expected", [
        ("git@github.com:owner/repo.git", ("github.com", "owner", "repo")),
        ("git@github.com:owner/repo", ("github.com", "owner", "repo")),
        ("https://github.com/owner/repo.git", ("github.com", "owner", "repo")),
        ("https://user@github.com/owner/repo/", ("github.com", "owner", "repo")),
        ("ssh://git@github.com:22/owner/repo.git", ("github.com", "owner", "repo")),
        ("git@git.example.com:team/project.git", ("git.example.com", "team", "project")),
        ("gh-work:owner/repo.git", ("gh-work", "owner", "repo")),
    ])
    def test_known_shapes(self, url: str, expected: tuple) -> None:
        assert parse_remote_url(url) == expected

    @pytest.mark.parametrize("url", ["/srv/git/repo.git", "https://github.com/", "owner"])
    def test_unparseable(self, url: str) -> None:
        assert parse_remote_url(url) is None


class TestParseConfig:
    def test_defaults_from_remote(self, fake_git: FakeGit) -> None:
        fake_git.config["remote.origin.url"] = "git@github.com:owner/repo.git"
        config = Config(parse_config(fake_git))

        assert config.repo.remote == "origin"
        assert config.repo.default_branch == "main"
        assert config.repo.github_repo_owner == "owner"
        assert config.repo.github_repo_name == "repo"
        assert config.repo.tag_namespace == "gherrit"
        assert config.repo.repo_url == "https://github.com/owner/repo"
        assert config.tool.push_batch_size == 80
        assert config.tool.forge_batch_size == 50

    def test_git_config_keys(self, fake_git: FakeGit) -> None:
        fake_git.config.update({
            "gherrit.remote": "upstream",
            "gherrit.defaultBranch": "trunk",
            "gherrit.tagNamespace": "stack",
            "remote.upstream.url": "https://github.com/org/tool.git",
        })
        config = Config(parse_config(fake_git))

        assert config.repo.upstream == "upstream/trunk"
        assert config.repo.tag_namespace == "stack"
        assert config.repo.github_repo_owner == "org"

    def test_enterprise_host_from_remote(self, fake_git: FakeGit) -> None:
        fake_git.config["remote.origin.url"] = "git@git.example.com:team/project.git"
        config = Config(parse_config(fake_git))

        assert config.repo.github_host == "git.example.com"
        assert config.repo.graphql_url == "https://git.example.com/api/graphql"
        assert config.repo.api_base_url == "https://git.example.com/api/v3"

    def test_ssh_alias_keeps_default_host(self, fake_git: FakeGit) -> None:
        fake_git.config["remote.origin.url"] = "gh-work:owner/repo.git"
        config = Config(parse_config(fake_git))
        assert config.repo.github_host == "github.com"
        assert config.repo.graphql_url == "https://api.github.com/graphql"

    def test_pretend_from_git_config(self, fake_git: FakeGit) -> None:
        assert Config(parse_config(fake_git)).tool.pretend is False
        fake_git.config["gherrit.pretend"] = "true"
        assert Config(parse_config(fake_git)).tool.pretend is True

    def test_default_branch_from_remote_head(self, fake_git: FakeGit) -> None:
        fake_git.symbolic_refs["refs/remotes/origin/HEAD"] = "refs/remotes/origin/develop"
        assert find_default_branch(fake_git, "origin") == "develop"
        del fake_git.symbolic_refs["refs/remotes/origin/HEAD"]
        assert find_default_branch(fake_git, "origin") == "main"

    def test_yaml_file_overrides_git_config(self, fake_git: FakeGit, tmp_path) -> None:  # type: ignore[no-untyped-def]
        fake_git.work_tree = str(tmp_path)
        fake_git.config["gherrit.tagNamespace"] = "from-git"
        fake_git.config["remote.origin.url"] = "git@github.com:owner/repo.git"
        (tmp_path / ".gherrit.yaml").write_text(
            "repo:\n"
            "  tag_namespace: from-file\n"
            "  github_repo_name: renamed\n"
            "tool:\n"
            "  push_batch_size: 10\n"
            "  body_size_limit: 65536\n"
        )
        config = Config(parse_config(fake_git))

        assert config.repo.tag_namespace == "from-file"
        assert config.repo.github_repo_owner == "owner"
        assert config.repo.github_repo_name == "renamed"
        assert config.tool.push_batch_size == 10
        assert config.tool.body_size_limit == 65536

    def test_empty_yaml_file(self, fake_git: FakeGit, tmp_path) -> None:  # type: ignore[no-untyped-def]
        fake_git.work_tree = str(tmp_path)
        (tmp_path / ".gherrit.yaml").write_text("")
        assert Config(parse_config(fake_git)).tool.pretend is False

    def test_yaml_must_be_a_mapping(self, fake_git: FakeGit, tmp_path) -> None:  # type: ignore[no-untyped-def]
        fake_git.work_tree = str(tmp_path)
        (tmp_path / ".gherrit.yaml").write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            parse_config(fake_git)


class TestModels:
    def test_batch_sizes_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ToolConfig(push_batch_size=0)
        with pytest.raises(ValidationError):
            ToolConfig(forge_batch_size=-1)

    def test_repo_url_needs_owner_and_name(self) -> None:
        assert RepoConfig().repo_url == ""
        assert RepoConfig(github_repo_owner="o").repo_url == ""

    def test_default_config(self) -> None:
        config = default_config()
        assert config.repo.upstream == "origin/main"
        assert config.tool.max_workers == 6
