"""Common types used across the codebase."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, NewType, Optional, Protocol, Sequence

# Identifiers are opaque: both the legacy I<40 hex> and newer G<hash> shapes
# are plain strings to us.
StackID = NewType('StackID', str)
CommitHash = NewType('CommitHash', str)


@dataclass
class Commit:
    """A commit in the local stack."""
    commit_hash: CommitHash
    stack_id: StackID
    title: str
    body: str = ""

    @classmethod
    def from_strings(cls, commit_hash: str, stack_id: str, title: str, body: str = "") -> 'Commit':
        """Create a Commit from plain strings."""
        return cls(CommitHash(commit_hash), StackID(stack_id), title, body)

    def __str__(self) -> str:
        return f"{self.commit_hash[:8]} {self.title}"


class HeadKind(Enum):
    """Where HEAD points."""
    ATTACHED = "attached"
    PENDING = "pending"  # detached in the middle of a rebase of a branch
    DETACHED = "detached"


@dataclass(frozen=True)
class HeadState:
    """HEAD resolution, with the branch name when there is one."""
    kind: HeadKind
    branch: Optional[str] = None

    @classmethod
    def attached(cls, branch: str) -> 'HeadState':
        return cls(HeadKind.ATTACHED, branch)

    @classmethod
    def pending(cls, branch: str) -> 'HeadState':
        return cls(HeadKind.PENDING, branch)

    @classmethod
    def detached(cls) -> 'HeadState':
        return cls(HeadKind.DETACHED)


@dataclass(frozen=True)
class RefUpdate:
    """A compare-and-swap update of one remote ref.

    ``expected`` is the value the ref must currently have; ``None`` means the
    ref must not exist yet.
    """
    ref: str
    new_value: str
    expected: Optional[str] = None

    def refspec(self) -> str:
        return f"{self.new_value}:{self.ref}"

    def lease(self) -> str:
        return f"--force-with-lease={self.ref}:{self.expected or ''}"


@dataclass(frozen=True)
class PushResult:
    """Outcome of one atomic push."""
    success: bool
    diagnostics: str = ""


class GitInterface(Protocol):
    """Git-level primitives the synchronizer consumes."""

    def current_branch(self) -> HeadState:
        ...

    def config_string(self, key: str) -> Optional[str]:
        ...

    def config_bool(self, key: str) -> Optional[bool]:
        ...

    def rev_parse(self, rev: str) -> Optional[str]:
        """Resolve rev to a commit hash, or None if it does not exist."""
        ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        ...

    def rev_walk(self, head: str, stop: str) -> List[str]:
        """Commits reachable from head but not from stop, newest first."""
        ...

    def commit_message(self, commit_hash: str) -> str:
        ...

    def list_refs(self, prefix: str) -> Dict[str, str]:
        """Local refs under prefix, mapped to the hash they point at."""
        ...

    def update_ref(self, ref: str, new_value: str, expected: Optional[str] = None) -> None:
        """Compare-and-swap a local ref; expected None means it must not exist."""
        ...

    def push(self, remote: str, updates: Sequence[RefUpdate]) -> PushResult:
        """Push all updates as one atomic transfer."""
        ...

    def ls_remote(self, remote: str, patterns: Sequence[str]) -> Dict[str, str]:
        ...

    def symbolic_ref(self, name: str) -> Optional[str]:
        ...

    def remote_url(self, remote: str) -> Optional[str]:
        ...

    def toplevel(self) -> Optional[str]:
        ...
