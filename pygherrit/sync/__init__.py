"""Stack synchronization: local commits -> version refs -> pull requests."""

import sys
import logging
from typing import Dict, IO, List, Optional

from ..config.models import GherritConfig
from ..errors import UserInputError
from ..git import get_local_commit_stack, is_private_stack
from ..git.publish import RefVersionPublisher
from ..github import GitHubClient, PullRequest
from ..pretty import print_header, print_json, state_label
from ..typing import GitInterface, HeadKind, HeadState
from ..util import ensure
from .resolver import PullRequestResolver
from .synchronizer import PullRequestSynchronizer, StackEntry, build_entries

logger = logging.getLogger(__name__)

__all__ = ["StackSync", "StackEntry", "build_entries",
           "PullRequestResolver", "PullRequestSynchronizer"]


class StackSync:
    """Runs one synchronization of the current branch's stack."""

    def __init__(self, config: GherritConfig, github: GitHubClient, git_cmd: GitInterface,
                 pretend: bool = False):
        """Initialize with config, GitHub and git clients."""
        self.config = config
        self.github = github
        self.git_cmd = git_cmd
        self.pretend = pretend or config.tool.pretend
        self.output: IO[str] = sys.stdout

    def _head(self) -> HeadState:
        head = self.git_cmd.current_branch()
        if head.kind == HeadKind.DETACHED:
            raise UserInputError(
                "HEAD is detached. Check out the branch holding your stack first.")
        return head

    def sync(self) -> List[PullRequest]:
        """Publish the stack and bring its pull requests up to date.

        Nothing is pushed unless every existing PR in the stack is still
        open, and nothing reaches GitHub unless the push succeeded.
        """
        head = self._head()
        commits = get_local_commit_stack(self.config, self.git_cmd)
        if not commits:
            logger.info(f"No commits above {self.config.repo.upstream}, nothing to sync")
            return []
        logger.info(f"Syncing {len(commits)} commits on {head.branch}")

        existing = PullRequestResolver(self.github).resolve(commits)

        publisher = RefVersionPublisher(self.config, self.git_cmd, self.pretend)
        versions = publisher.publish(commits)

        branch: Optional[str] = None
        if head.kind == HeadKind.ATTACHED and not is_private_stack(self.git_cmd, ensure(head.branch)):
            branch = head.branch

        entries = build_entries(commits, versions, self.config.repo.default_branch)
        synchronizer = PullRequestSynchronizer(self.config, self.github, self.pretend)
        return synchronizer.sync(entries, existing, branch)

    def status(self, as_json: bool = False) -> None:
        """Show every stack entry with its pull request, top of the stack first."""
        commits = get_local_commit_stack(self.config, self.git_cmd)
        found = PullRequestResolver(self.github).lookup(commits) if commits else {}

        rows: List[Dict[str, object]] = []
        for c in reversed(commits):
            pr = found.get(c.stack_id)
            rows.append({
                "id": c.stack_id,
                "commit": c.commit_hash,
                "title": c.title,
                "number": pr.number if pr else None,
                "state": pr.state.value if pr else None,
                "url": pr.url if pr else None,
            })

        if as_json:
            print_json(rows, file=self.output)
            return

        print_header("Pull Requests", use_emoji=True, file=self.output)
        print("", file=self.output)
        if not rows:
            print("   stack is empty\n", file=self.output)
            return
        for row in rows:
            number = f"#{row['number']}" if row["number"] else "-"
            print(f"   {number} {row['title']} [{state_label(row['state'])}]",
                  file=self.output)
            if row["url"]:
                print(f"      {row['url']}", file=self.output)
        print("", file=self.output)
