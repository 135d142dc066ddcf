"""Push stack commits to per-identifier branches and version tags."""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from . import branch_ref, tag_ref
from ..config.models import GherritConfig
from ..errors import ConflictError, GherritError, GitError, TransportError
from ..typing import Commit, GitInterface, RefUpdate
from ..util import chunked

logger = logging.getLogger(__name__)

# ls-remote takes explicit refspecs on the command line; past this many we
# list every head instead of risking the platform's command-length limit.
MAX_SPECIFIC_REFSPECS = 50

_TAG_RE_TEMPLATE = r'^refs/tags/{namespace}/(?P<id>[^/]+)/v(?P<version>\d+)$'

# GitHub answers every push of a new branch with this hint; it is noise here.
_CREATE_PR_HINT_RE = re.compile(
    r"(?m)\n?^remote:\s*\nremote: Create a pull request for '.*' on GitHub by visiting:\s*\n"
    r"remote:\s*https://\S+\nremote:\s*$"
)

_CONFLICT_MARKERS = ("stale info", "[rejected]", "already exists", "atomic push failed",
                     "atomic transaction failed")


def filter_push_diagnostics(text: str) -> str:
    """Strip transport noise from push stderr, keeping everything else."""
    output: List[str] = []
    remote_block: List[str] = []

    def flush() -> None:
        if not remote_block:
            return
        cleaned = _CREATE_PR_HINT_RE.sub("", "\n".join(remote_block))
        if cleaned.strip():
            output.append(cleaned)
        remote_block.clear()

    for line in text.splitlines():
        if line.lstrip().startswith("remote:"):
            remote_block.append(line)
        else:
            flush()
            output.append(line)
    flush()
    return "\n".join(output).strip()


@dataclass
class PlannedPush:
    """What one commit needs on the remote."""
    commit: Commit
    version: int
    new_version: bool
    updates: List[RefUpdate] = field(default_factory=list)


class RefVersionPublisher:
    """Publishes commits as refs/heads/<id> plus refs/tags/<ns>/<id>/v<N>."""

    def __init__(self, config: GherritConfig, git_cmd: GitInterface, pretend: bool = False):
        self.config = config
        self.git_cmd = git_cmd
        self.pretend = pretend
        self._tag_re = re.compile(_TAG_RE_TEMPLATE.format(
            namespace=re.escape(config.repo.tag_namespace)))

    def local_versions(self) -> Dict[str, Dict[int, str]]:
        """Version tags known locally: stack id -> {version: commit hash}."""
        prefix = f"refs/tags/{self.config.repo.tag_namespace}/"
        versions: Dict[str, Dict[int, str]] = {}
        for ref, sha in self.git_cmd.list_refs(prefix).items():
            match = self._tag_re.match(ref)
            if match:
                versions.setdefault(match.group('id'), {})[int(match.group('version'))] = sha
        return versions

    def remote_branch_values(self, stack_ids: Sequence[str]) -> Dict[str, str]:
        """Last known remote value of each identifier's branch.

        A failed listing is not fatal: we continue as if every branch were
        absent, and the push's own leases still reject anything stale.
        """
        if not stack_ids:
            return {}
        if len(stack_ids) > MAX_SPECIFIC_REFSPECS:
            patterns = ["refs/heads/*"]
        else:
            patterns = [branch_ref(s) for s in stack_ids]
        try:
            remote_refs = self.git_cmd.ls_remote(self.config.repo.remote, patterns)
        except GherritError as e:
            logger.warning(f"Failed to list remote branches, assuming they are absent: {e}")
            return {}
        values: Dict[str, str] = {}
        for stack_id in stack_ids:
            sha = remote_refs.get(branch_ref(stack_id))
            if sha:
                values[stack_id] = sha
        return values

    def plan(self, commits: Sequence[Commit]) -> List[PlannedPush]:
        """Work out the version and ref updates for every commit."""
        local = self.local_versions()
        remote = self.remote_branch_values([c.stack_id for c in commits])

        planned: List[PlannedPush] = []
        for c in commits:
            versions = local.get(c.stack_id, {})
            latest = max(versions) if versions else 0
            remote_value: Optional[str] = remote.get(c.stack_id)

            # The branch may only move from a version this clone has seen
            if (remote_value and remote_value != c.commit_hash
                    and remote_value not in versions.values()):
                raise ConflictError(
                    f"{branch_ref(c.stack_id)} on {self.config.repo.remote} is at "
                    f"{remote_value[:12]}, which is not a version of {c.stack_id} known here; "
                    "someone else has pushed a newer version.\n"
                    f"{self._refetch_hint()}"
                )

            if latest and versions[latest] == c.commit_hash:
                logger.debug(f"Commit {c.commit_hash[:8]} already tagged as v{latest}")
                push = PlannedPush(c, latest, new_version=False)
            else:
                push = PlannedPush(c, latest + 1, new_version=True)
                push.updates.append(RefUpdate(tag_ref(self.config, c.stack_id, push.version),
                                              c.commit_hash, expected=None))

            if remote_value != c.commit_hash:
                push.updates.insert(0, RefUpdate(branch_ref(c.stack_id), c.commit_hash,
                                                 expected=remote_value))
            planned.append(push)
        return planned

    def publish(self, commits: Sequence[Commit]) -> Dict[str, int]:
        """Push every commit that changed and return the version of each id."""
        planned = self.plan(commits)
        versions = {p.commit.stack_id: p.version for p in planned}
        pending = [p for p in planned if p.updates]
        if not pending:
            logger.info("All refs are up to date")
            return versions

        batches = chunked(pending, self.config.tool.push_batch_size)
        remote = self.config.repo.remote
        for index, batch in enumerate(batches, start=1):
            updates = [u for p in batch for u in p.updates]
            if self.pretend:
                logger.info(f"[PRETEND] Would push batch {index}/{len(batches)} to {remote}:")
                for u in updates:
                    logger.info(f"  {u.ref} ({u.new_value[:8]})")
                continue

            logger.info(f"Pushing {len(batch)} commits to {remote} "
                        f"(batch {index}/{len(batches)})...")
            result = self.git_cmd.push(remote, updates)
            diagnostics = filter_push_diagnostics(result.diagnostics)
            if not result.success:
                self._raise_push_failure(diagnostics)
            if diagnostics:
                logger.info(diagnostics)
            self._record_versions(batch)
        return versions

    def _record_versions(self, batch: Sequence[PlannedPush]) -> None:
        """Create the pushed version tags locally so later syncs count from them."""
        for p in batch:
            if not p.new_version:
                continue
            ref = tag_ref(self.config, p.commit.stack_id, p.version)
            try:
                self.git_cmd.update_ref(ref, p.commit.commit_hash, expected=None)
            except GitError as e:
                raise ConflictError(
                    f"Pushed {ref} but another process created it locally first: {e}")

    def _refetch_hint(self) -> str:
        remote = self.config.repo.remote
        namespace = self.config.repo.tag_namespace
        return (f"Re-fetch and try again: git fetch {remote} "
                f"'+refs/tags/{namespace}/*:refs/tags/{namespace}/*' && git pull --rebase")

    def _raise_push_failure(self, diagnostics: str) -> None:
        if any(marker in diagnostics for marker in _CONFLICT_MARKERS):
            raise ConflictError(
                "Another push updated this stack concurrently; nothing in this batch was applied.\n"
                f"{diagnostics}\n"
                f"{self._refetch_hint()}"
            )
        raise TransportError(f"git push to {self.config.repo.remote} failed:\n{diagnostics}")
