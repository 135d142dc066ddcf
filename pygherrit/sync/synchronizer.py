"""Create and update the pull requests of a stack."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from ..config.models import GherritConfig
from ..github import GitHubClient, NewPullRequest, PullRequest, PullRequestUpdate
from ..github.body import BodyContext, PrBodyComposer, clean_body
from ..typing import Commit
from ..util import normalize_body

logger = logging.getLogger(__name__)


@dataclass
class StackEntry:
    """One commit's place in the stack."""
    commit: Commit
    version: int
    base_ref: str
    parent_id: Optional[str] = None
    child_id: Optional[str] = None

    @property
    def stack_id(self) -> str:
        return self.commit.stack_id


def build_entries(commits: Sequence[Commit], versions: Mapping[str, int],
                  default_branch: str) -> List[StackEntry]:
    """Chain commits so each PR targets the branch of the commit below it."""
    entries: List[StackEntry] = []
    for i, c in enumerate(commits):
        parent = commits[i - 1].stack_id if i > 0 else None
        child = commits[i + 1].stack_id if i + 1 < len(commits) else None
        entries.append(StackEntry(
            commit=c,
            version=versions.get(c.stack_id, 1),
            base_ref=parent or default_branch,
            parent_id=parent,
            child_id=child,
        ))
    return entries


class PullRequestSynchronizer:
    """Makes every entry's PR match its commit: title, base branch and body."""

    def __init__(self, config: GherritConfig, github: GitHubClient, pretend: bool = False):
        self.config = config
        self.github = github
        self.pretend = pretend
        self.composer = PrBodyComposer(config)

    def sync(self, entries: Sequence[StackEntry], existing: Mapping[str, PullRequest],
             branch: Optional[str] = None) -> List[PullRequest]:
        """Create missing PRs, then update the ones that changed.

        Returns the stack's PRs bottom first. In pretend mode nothing is
        created, so entries without a PR are left out.
        """
        prs: Dict[str, PullRequest] = dict(existing)
        missing = [e for e in entries if e.stack_id not in prs]
        if missing:
            requests = [
                NewPullRequest(head_ref=e.stack_id, base_ref=e.base_ref,
                               title=e.commit.title, body=clean_body(e.commit.body))
                for e in missing
            ]
            if self.pretend:
                for r in requests:
                    logger.info(f"[PRETEND] Would create PR {r.head_ref} -> {r.base_ref}: {r.title}")
            else:
                for created in self.github.create_pull_requests(requests):
                    prs[created.head_ref] = created

        numbers = [prs[e.stack_id].number for e in entries if e.stack_id in prs]
        updates: List[PullRequestUpdate] = []
        for e in entries:
            pr = prs.get(e.stack_id)
            if pr is None:
                continue
            body = self.composer.render(BodyContext(
                stack_id=e.stack_id,
                commit_body=e.commit.body,
                version=e.version,
                base_ref=e.base_ref,
                parent_id=e.parent_id,
                child_id=e.child_id,
                branch=branch,
                stack_numbers=numbers,
                current_number=pr.number,
            ))
            if (pr.title == e.commit.title and pr.base_ref == e.base_ref
                    and normalize_body(pr.body) == normalize_body(body)):
                logger.debug(f"PR #{pr.number} is up to date")
                continue
            updates.append(PullRequestUpdate(pr, base_ref=e.base_ref, title=e.commit.title, body=body))

        if not updates:
            logger.info("All pull requests are up to date")
        elif self.pretend:
            for u in updates:
                logger.info(f"[PRETEND] Would update PR #{u.pull_request.number} "
                            f"(base {u.base_ref}): {u.title}")
        else:
            self.github.update_pull_requests(updates)
            for u in updates:
                u.pull_request.title = u.title
                u.pull_request.base_ref = u.base_ref
                u.pull_request.body = u.body

        return [prs[e.stack_id] for e in entries if e.stack_id in prs]
