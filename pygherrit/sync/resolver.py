"""Find the pull request behind each stack entry."""

import logging
from typing import Dict, List, Sequence, Tuple

from ..errors import ForgeStateError
from ..github import GitHubClient, PullRequest
from ..github.types import PRState
from ..typing import Commit

logger = logging.getLogger(__name__)


class PullRequestResolver:
    """Looks up existing pull requests and refuses to touch finished ones."""

    def __init__(self, github: GitHubClient):
        self.github = github

    def lookup(self, commits: Sequence[Commit]) -> Dict[str, PullRequest]:
        """Newest pull request per identifier, in any state."""
        return self.github.find_pull_requests([c.stack_id for c in commits])

    def resolve(self, commits: Sequence[Commit]) -> Dict[str, PullRequest]:
        """Open pull requests keyed by identifier.

        Raises ForgeStateError listing every entry whose pull request was
        closed or merged; pushing to those would silently go nowhere.
        """
        found = self.lookup(commits)
        offenders: List[Tuple[str, int, str]] = []
        for c in commits:
            pr = found.get(c.stack_id)
            if pr is not None and pr.state != PRState.OPEN:
                offenders.append((c.stack_id, pr.number, pr.state.value))
        if offenders:
            raise ForgeStateError(offenders)
        logger.debug(f"{len(found)} of {len(commits)} stack entries already have PRs")
        return found
