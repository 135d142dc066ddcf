"""Shared fixtures."""

import logging
from typing import Callable

import pytest

from pygherrit.config import Config
from pygherrit.github import GitHubClient
from pygherrit.sync import StackSync
from pygherrit.tests.fakes import FakeGit, FakeGithub

logger = logging.getLogger(__name__)


@pytest.fixture
def config() -> Config:
    return Config({
        'repo': {
            'remote': 'origin',
            'default_branch': 'main',
            'github_repo_owner': 'owner',
            'github_repo_name': 'repo',
        },
        'tool': {},
    })


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def fake_github() -> FakeGithub:
    return FakeGithub()


@pytest.fixture
def github(config: Config, fake_github: FakeGithub) -> GitHubClient:
    return GitHubClient(config, fake_github)


@pytest.fixture
def make_sync(config: Config, github: GitHubClient, fake_git: FakeGit) -> Callable[..., StackSync]:
    def make(pretend: bool = False) -> StackSync:
        return StackSync(config, github, fake_git, pretend=pretend)
    return make
