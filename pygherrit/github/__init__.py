"""GitHub interfaces and implementation."""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, cast

import yaml
from github.GithubException import GithubException

from ..config.models import GherritConfig
from ..errors import DataConsistencyError, TransportError
from ..util import OutboundLimiter, chunked
from . import graphql
from .types import (
    CreatePullRequestPayload, GitHubRequester, GraphQLResponse, GraphQLResponseType,
    PRState, RepositoryNode, RepositoryPullRequests, UpdatePullRequestPayload,
    parse_graphql_response,
)

# Get module logger
logger = logging.getLogger(__name__)

PR_FIELDS = "id number url title body baseRefName headRefName state"
ALL_STATES = [graphql.Enum("OPEN"), graphql.Enum("CLOSED"), graphql.Enum("MERGED")]
NEWEST_FIRST = {"field": graphql.Enum("CREATED_AT"), "direction": graphql.Enum("DESC")}


@dataclass
class PullRequest:
    """Pull request info."""
    number: int
    handle: str  # GraphQL node id, needed for mutations
    url: str
    title: str
    base_ref: str
    head_ref: str
    state: PRState = PRState.OPEN
    body: Optional[str] = None

    def __str__(self) -> str:
        return f"PR #{self.number} - {self.title}"


@dataclass
class NewPullRequest:
    """A pull request to open for one stack entry."""
    head_ref: str
    base_ref: str
    title: str
    body: str


@dataclass
class PullRequestUpdate:
    """Replacement title, base and body for an existing pull request."""
    pull_request: PullRequest
    base_ref: str
    title: str
    body: str


class PyGithubProtocol(Protocol):
    """The part of a PyGithub Github object (real or fake) we rely on."""
    @property
    def _Github__requester(self) -> GitHubRequester:
        ...


def find_github_token(host: str = "github.com") -> Optional[str]:
    """Find GitHub token from environment or the gh CLI config."""
    # First try environment variables
    for var in ("GITHUB_TOKEN", "GH_TOKEN"):
        token = os.environ.get(var)
        if token:
            return token

    # Then try gh CLI config at ~/.config/gh/hosts.yml
    gh_config_path = Path.home() / ".config" / "gh" / "hosts.yml"
    try:
        if gh_config_path.exists():
            with open(gh_config_path, "r") as f:
                gh_config = yaml.safe_load(f)
            if isinstance(gh_config, dict) and isinstance(gh_config.get(host), dict):
                token = gh_config[host].get("oauth_token")
                if isinstance(token, str) and token:
                    return token
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error reading gh CLI config: {e}")
    return None


def _error_text(resp: GraphQLResponse) -> str:
    if not resp.errors:
        return "no error details"
    return "; ".join(e.message for e in resp.errors)


class GitHubClient:
    """Batched GraphQL access to one repository's pull requests."""

    def __init__(self, config: GherritConfig, github_client: PyGithubProtocol,
                 limiter: Optional[OutboundLimiter] = None):
        self.config = config
        self.client = github_client
        self.limiter = limiter or OutboundLimiter(config.tool.max_workers)
        self._repository: Optional[RepositoryNode] = None

    @property
    def owner(self) -> str:
        return self.config.repo.github_repo_owner or ""

    @property
    def name(self) -> str:
        return self.config.repo.github_repo_name or ""

    def graphql(self, document: str) -> GraphQLResponse:
        """POST one GraphQL document.

        Errors alongside data are logged and returned so callers can inspect
        each aliased item; errors without any data raise TransportError.
        """
        # Access private requester - need cast since it's not part of the protocol
        req = cast(GitHubRequester, getattr(self.client, '_Github__requester'))
        logger.debug(f"GraphQL document:\n{document}")
        try:
            with self.limiter.slot():
                result: GraphQLResponseType = req.requestJsonAndCheck(
                    "POST", self.config.repo.graphql_url, input={"query": document})
        except (GithubException, OSError) as e:
            raise TransportError(f"GitHub GraphQL request failed: {e}")

        _headers, data = result
        resp = parse_graphql_response(data)
        if resp.data is None:
            raise TransportError(f"GitHub GraphQL request failed: {_error_text(resp)}")
        if resp.errors:
            logger.warning(f"GitHub GraphQL reported errors: {_error_text(resp)}")
        return resp

    def get_repository(self) -> RepositoryNode:
        """Node id and URL of the configured repository, fetched once."""
        if self._repository is None:
            logger.info(f"> github repository {self.owner}/{self.name}")
            document = "query { %s }" % graphql.field_call(
                "repository", {"owner": self.owner, "name": self.name}, "id url")
            resp = self.graphql(document)
            node = cast(Dict[str, object], resp.data).get("repository")
            if node is None:
                raise TransportError(
                    f"Repository {self.owner}/{self.name} not found: {_error_text(resp)}")
            self._repository = RepositoryNode.model_validate(node)
        return self._repository

    def find_pull_requests(self, head_refs: Sequence[str]) -> Dict[str, PullRequest]:
        """Newest pull request in any state for each head branch, keyed by branch."""
        found: Dict[str, PullRequest] = {}
        batches = chunked(list(head_refs), self.config.tool.forge_batch_size)
        for index, batch in enumerate(batches, start=1):
            logger.info(f"> github list pull requests ({len(batch)} branches, "
                        f"batch {index}/{len(batches)})")
            fields = [
                graphql.field_call(
                    "repository", {"owner": self.owner, "name": self.name},
                    graphql.field_call("pullRequests", {
                        "headRefName": head_ref,
                        "states": ALL_STATES,
                        "first": 1,
                        "orderBy": NEWEST_FIRST,
                    }, f"nodes {{ {PR_FIELDS} }}"))
                for head_ref in batch
            ]
            resp = self.graphql(graphql.document("query", fields))
            data = cast(Dict[str, object], resp.data)
            for i, head_ref in enumerate(batch):
                item = data.get(graphql.alias(i))
                if item is None:
                    raise TransportError(
                        f"Failed to look up pull requests for {head_ref}: {_error_text(resp)}")
                nodes = RepositoryPullRequests.model_validate(item).pullRequests.nodes
                if not nodes:
                    continue
                node = nodes[0]
                found[head_ref] = PullRequest(
                    number=node.number, handle=node.id, url=node.url, title=node.title,
                    base_ref=node.baseRefName, head_ref=node.headRefName,
                    state=node.state, body=node.body)
                logger.debug(f"  {head_ref}: #{node.number} ({node.state.value})")
        return found

    def create_pull_requests(self, requests: Sequence[NewPullRequest]) -> List[PullRequest]:
        """Open pull requests in batches; results keep the order of requests."""
        repository = self.get_repository()
        created: List[PullRequest] = []
        batches = chunked(list(requests), self.config.tool.forge_batch_size)
        for index, batch in enumerate(batches, start=1):
            logger.info(f"> github create {len(batch)} pull requests "
                        f"(batch {index}/{len(batches)})")
            fields = [
                "createPullRequest(input: %s) { pullRequest { id number url } }" % graphql.input_object({
                    "repositoryId": repository.id,
                    "baseRefName": r.base_ref,
                    "headRefName": r.head_ref,
                    "title": r.title,
                    "body": r.body,
                })
                for r in batch
            ]
            resp = self.graphql(graphql.document("mutation", fields))
            data = cast(Dict[str, object], resp.data)
            for i, r in enumerate(batch):
                item = data.get(graphql.alias(i))
                payload = CreatePullRequestPayload.model_validate(item) if item else None
                if payload is None or payload.pullRequest is None:
                    raise DataConsistencyError(
                        f"GitHub did not return the pull request created for {r.head_ref}: "
                        f"{_error_text(resp)}")
                node = payload.pullRequest
                logger.info(f"Created PR #{node.number}: {node.url}")
                created.append(PullRequest(
                    number=node.number, handle=node.id, url=node.url, title=r.title,
                    base_ref=r.base_ref, head_ref=r.head_ref, body=r.body))
        return created

    def update_pull_requests(self, updates: Sequence[PullRequestUpdate]) -> None:
        """Apply title/base/body updates in batches."""
        batches = chunked(list(updates), self.config.tool.forge_batch_size)
        for index, batch in enumerate(batches, start=1):
            logger.info(f"> github update {len(batch)} pull requests "
                        f"(batch {index}/{len(batches)})")
            fields = [
                "updatePullRequest(input: %s) { pullRequest { id number } }" % graphql.input_object({
                    "pullRequestId": u.pull_request.handle,
                    "baseRefName": u.base_ref,
                    "title": u.title,
                    "body": u.body,
                })
                for u in batch
            ]
            resp = self.graphql(graphql.document("mutation", fields))
            data = cast(Dict[str, object], resp.data)
            for i, u in enumerate(batch):
                item = data.get(graphql.alias(i))
                payload = UpdatePullRequestPayload.model_validate(item) if item else None
                if payload is None or payload.pullRequest is None:
                    raise TransportError(
                        f"The batched GraphQL mutation failed to update PR {u.pull_request.handle} "
                        f"(#{u.pull_request.number}): {_error_text(resp)}")
                logger.info(f"Updated PR #{u.pull_request.number}: {u.pull_request.url}")
