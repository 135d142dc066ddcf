"""Adapter classes to wrap PyGithub objects with our protocol interfaces."""

from typing import Dict, Optional
import logging

from github import Auth, Github

from .types import GitHubRequester, GraphQLResponseType

logger = logging.getLogger(__name__)


class PyGithubRequesterAdapter(GitHubRequester):
    """Adapter for PyGithub's requester to handle GraphQL."""

    def __init__(self, requester: GitHubRequester) -> None:
        self._requester = requester

    def requestJsonAndCheck(
        self, verb: str, url: str, parameters: Optional[Dict[str, object]] = None,
        headers: Optional[Dict[str, str]] = None, input: Optional[Dict[str, object]] = None
    ) -> GraphQLResponseType:
        """Make a request and return (headers, data)."""
        response_headers, data = self._requester.requestJsonAndCheck(
            verb, url, parameters=parameters, headers=headers, input=input
        )
        # Ensure headers is never None
        return (response_headers or {}, data)


class PyGithubAdapter:
    """Adapter for the main PyGithub object."""

    def __init__(self, github: Github) -> None:
        self._github = github
        self._requester_adapter: Optional[PyGithubRequesterAdapter] = None

    @classmethod
    def from_token(cls, token: str, base_url: str) -> 'PyGithubAdapter':
        """Authenticate against github.com or a GitHub Enterprise API."""
        return cls(Github(auth=Auth.Token(token), base_url=base_url))

    @property
    def _Github__requester(self) -> GitHubRequester:
        """Access the requester for GraphQL calls."""
        if self._requester_adapter is None:
            # Use getattr to avoid type checker issues with private attributes
            real_requester = getattr(self._github, '_Github__requester')
            self._requester_adapter = PyGithubRequesterAdapter(real_requester)
        return self._requester_adapter
