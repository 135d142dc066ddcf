"""Git interfaces and implementation."""

import os
import re
import shlex
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import git
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from ..config.models import GherritConfig
from ..errors import (
    DuplicateIdentifierError, GitError, MissingIdentifierError, NotBasedError,
    PendingAutosquashError, TransportError, UserInputError,
)
from ..typing import Commit, GitInterface, HeadState, PushResult, RefUpdate
from ..util import OutboundLimiter

# Get module logger
logger = logging.getLogger(__name__)

AUTOSQUASH_PREFIXES = ("fixup!", "squash!", "amend!")

GHERRIT_PR_ID_RE = re.compile(r'^gherrit-pr-id: (\S+)\r?$', re.MULTILINE)
LINK_TRAILER_RE = re.compile(r'^Link: \S*/id/(\S+)\r?$', re.MULTILINE)


class ManagedState(Enum):
    """Value of branch.<name>.gherritManaged."""
    UNMANAGED = "unmanaged"
    PRIVATE = "private"
    PUBLIC = "public"


def get_managed_state(git_cmd: GitInterface, branch: str) -> ManagedState:
    """Read whether branch is a stack we should sync."""
    value = git_cmd.config_string(f"branch.{branch}.gherritManaged")
    if value in (None, "false"):
        return ManagedState.UNMANAGED
    if value in ("managedPrivate", "true"):
        return ManagedState.PRIVATE
    if value == "managedPublic":
        return ManagedState.PUBLIC
    raise UserInputError(
        f"Invalid gherritManaged value: '{value}'. "
        "Expected 'managedPublic', 'managedPrivate', 'true', or 'false'."
    )


def is_private_stack(git_cmd: GitInterface, branch: str) -> bool:
    """A stack is private when its branch pushes to the local repository."""
    return git_cmd.config_string(f"branch.{branch}.pushRemote") == "."


def extract_stack_id(body: str) -> Optional[str]:
    """Find the stack identifier trailer in a commit body."""
    match = GHERRIT_PR_ID_RE.search(body) or LINK_TRAILER_RE.search(body)
    return match.group(1) if match else None


def split_message(message: str) -> Tuple[str, str]:
    """Split a raw commit message into (title, body)."""
    title, _, body = message.replace("\r\n", "\n").strip("\n").partition("\n")
    return title.strip(), body.strip()


def is_autosquash(title: str) -> bool:
    return title.startswith(AUTOSQUASH_PREFIXES)


def find_base(config: GherritConfig, git_cmd: GitInterface) -> Tuple[str, str]:
    """Resolve the default branch to (ref name, commit hash)."""
    remote = config.repo.remote
    branch = config.repo.default_branch
    for ref in (f"refs/remotes/{remote}/{branch}", f"refs/heads/{branch}"):
        commit_hash = git_cmd.rev_parse(ref)
        if commit_hash:
            return ref, commit_hash
    raise NotBasedError(
        "HEAD", f"{remote}/{branch}",
        f"git fetch {remote} && git rebase {remote}/{branch}",
    )


def get_local_commit_stack(config: GherritConfig, git_cmd: GitInterface) -> List[Commit]:
    """Get local commit stack. Returns commits ordered with bottom commit first.

    Raises a UserInputError subclass when the stack is not based on the
    default branch, still holds autosquash commits, or has commits without
    (or with duplicated) identifiers.
    """
    upstream = config.repo.upstream
    base_ref, base_hash = find_base(config, git_cmd)
    head_hash = git_cmd.rev_parse("HEAD")
    if head_hash is None:
        raise UserInputError("HEAD does not point at a commit")

    if not git_cmd.is_ancestor(base_hash, head_hash):
        raise NotBasedError("HEAD", base_ref, f"git rebase {upstream}")

    hashes = list(reversed(git_cmd.rev_walk(head_hash, base_hash)))
    logger.debug(f"Stack has {len(hashes)} commits above {base_ref}")
    if not hashes:
        return []

    # Reading messages is local work, so it may run in parallel
    with ThreadPoolExecutor(max_workers=config.tool.max_workers) as executor:
        messages = list(executor.map(git_cmd.commit_message, hashes))
    parsed = [split_message(m) for m in messages]

    pending = [h for h, (title, _) in zip(hashes, parsed) if is_autosquash(title)]
    if pending:
        raise PendingAutosquashError(pending, upstream)

    commits: List[Commit] = []
    for commit_hash, (title, body) in zip(hashes, parsed):
        stack_id = extract_stack_id(body)
        if stack_id is None:
            raise MissingIdentifierError(commit_hash, title)
        commits.append(Commit.from_strings(commit_hash, stack_id, title, body))

    check_for_duplicate_ids(commits)

    for c in commits:
        logger.debug(f"  {c.commit_hash[:8]}: id={c.stack_id}, title='{c.title}'")
    return commits


def check_for_duplicate_ids(commits: Sequence[Commit]) -> None:
    """Raise DuplicateIdentifierError if two commits share a stack id."""
    seen: Dict[str, List[Tuple[str, str]]] = {}
    for c in commits:
        seen.setdefault(c.stack_id, []).append((c.commit_hash, c.title))
    duplicates = {k: v for k, v in seen.items() if len(v) > 1}
    if duplicates:
        raise DuplicateIdentifierError(duplicates)


def branch_ref(stack_id: str) -> str:
    """Remote branch carrying a stack entry. The branch is named after the id."""
    return f"refs/heads/{stack_id}"


def tag_ref(config: GherritConfig, stack_id: str, version: int) -> str:
    return f"refs/tags/{config.repo.tag_namespace}/{stack_id}/v{version}"


class RealGit:
    """Real Git implementation on top of GitPython."""

    def __init__(self, config: GherritConfig, path: Optional[str] = None,
                 limiter: Optional[OutboundLimiter] = None):
        """Initialize with config and the repository path (defaults to cwd)."""
        self.config: GherritConfig = config
        self.limiter = limiter or OutboundLimiter(config.tool.max_workers)
        try:
            self.repo = git.Repo(path or os.getcwd(), search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise GitError("Not in a git repository")

    def _execute(self, args: Sequence[str]) -> Tuple[int, str, str]:
        """Run git with args and return (status, stdout, stderr) without raising."""
        logger.info(f"> git {' '.join(shlex.quote(a) for a in args)}")
        status, stdout, stderr = self.repo.git.execute(
            ["git", *args], with_extended_output=True, with_exceptions=False)
        return status, stdout, stderr

    def _must(self, args: Sequence[str]) -> str:
        status, stdout, stderr = self._execute(args)
        if status != 0:
            raise GitError(f"git {' '.join(args)} failed: {stderr.strip()}")
        return stdout

    def current_branch(self) -> HeadState:
        status, stdout, _ = self._execute(["symbolic-ref", "--quiet", "--short", "HEAD"])
        if status == 0 and stdout.strip():
            return HeadState.attached(stdout.strip())

        # Detached; a rebase in progress still knows which branch it rewrites
        git_dir = self.repo.git_dir
        for state_dir in ("rebase-merge", "rebase-apply"):
            head_name = os.path.join(git_dir, state_dir, "head-name")
            try:
                with open(head_name) as f:
                    name = f.read().strip()
            except FileNotFoundError:
                continue
            if name.startswith("refs/heads/"):
                name = name[len("refs/heads/"):]
            if name and name != "detached HEAD":
                return HeadState.pending(name)
        return HeadState.detached()

    def config_string(self, key: str) -> Optional[str]:
        status, stdout, stderr = self._execute(["config", "--get", key])
        if status == 1:
            return None
        if status != 0:
            raise GitError(f"Failed to read config {key}: {stderr.strip()}")
        return stdout.strip()

    def config_bool(self, key: str) -> Optional[bool]:
        status, stdout, stderr = self._execute(["config", "--type=bool", "--get", key])
        if status == 1:
            return None
        if status != 0:
            raise GitError(f"Failed to read config {key}: {stderr.strip()}")
        return stdout.strip() == "true"

    def rev_parse(self, rev: str) -> Optional[str]:
        status, stdout, _ = self._execute(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        if status != 0:
            return None
        return stdout.strip()

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        status, _, stderr = self._execute(["merge-base", "--is-ancestor", ancestor, descendant])
        if status not in (0, 1):
            raise GitError(f"merge-base failed: {stderr.strip()}")
        return status == 0

    def rev_walk(self, head: str, stop: str) -> List[str]:
        output = self._must(["rev-list", "--topo-order", head, "--not", stop])
        return [line for line in output.splitlines() if line.strip()]

    def commit_message(self, commit_hash: str) -> str:
        return self._must(["log", "-1", "--format=%B", commit_hash])

    def list_refs(self, prefix: str) -> Dict[str, str]:
        output = self._must(["for-each-ref", "--format=%(objectname) %(refname)", prefix])
        refs: Dict[str, str] = {}
        for line in output.splitlines():
            if not line.strip():
                continue
            sha, ref = line.split(" ", 1)
            refs[ref] = sha
        return refs

    def update_ref(self, ref: str, new_value: str, expected: Optional[str] = None) -> None:
        # An all-zero old value asks git to verify the ref does not exist
        old_value = expected or "0" * len(new_value)
        status, _, stderr = self._execute(
            ["update-ref", "-m", "gherrit: record pushed version", ref, new_value, old_value])
        if status != 0:
            raise GitError(f"Failed to update {ref}: {stderr.strip()}")

    def push(self, remote: str, updates: Sequence[RefUpdate]) -> PushResult:
        args = ["push", "--quiet", "--no-verify", "--atomic"]
        args.extend(u.lease() for u in updates)
        args.append(remote)
        args.extend(u.refspec() for u in updates)
        with self.limiter.slot():
            status, _, stderr = self._execute(args)
        return PushResult(status == 0, stderr)

    def ls_remote(self, remote: str, patterns: Sequence[str]) -> Dict[str, str]:
        with self.limiter.slot():
            status, stdout, stderr = self._execute(["ls-remote", remote, *patterns])
        if status != 0:
            raise TransportError(f"git ls-remote {remote} failed: {stderr.strip()}")
        refs: Dict[str, str] = {}
        for line in stdout.splitlines():
            parts = line.split("\t")
            if len(parts) == 2:
                refs[parts[1]] = parts[0]
        return refs

    def symbolic_ref(self, name: str) -> Optional[str]:
        status, stdout, _ = self._execute(["symbolic-ref", "--quiet", name])
        if status != 0:
            return None
        return stdout.strip()

    def remote_url(self, remote: str) -> Optional[str]:
        status, stdout, _ = self._execute(["remote", "get-url", remote])
        if status != 0:
            return None
        return stdout.strip()

    def toplevel(self) -> Optional[str]:
        return self.repo.working_tree_dir
