"""Exceptions raised while synchronizing a stack."""

from typing import Dict, List, Sequence, Tuple


class GherritError(Exception):
    """Base class for every error pygherrit reports to the user."""


class GitError(GherritError):
    """A local git primitive failed."""


class UserInputError(GherritError):
    """The local stack is not in a shape we can sync. Nothing was mutated."""


class NotBasedError(UserInputError):
    """HEAD is not a descendant of the default branch."""

    def __init__(self, head: str, base: str, remediation: str):
        self.head = head
        self.base = base
        super().__init__(
            f"{head} is not based on {base}.\n"
            f"Rebase your stack first: {remediation}"
        )


class PendingAutosquashError(UserInputError):
    """The stack still contains fixup!/squash!/amend! commits."""

    def __init__(self, commit_hashes: Sequence[str], upstream: str):
        self.commit_hashes = list(commit_hashes)
        self.upstream = upstream
        listed = "\n".join(f"  {h[:12]}" for h in self.commit_hashes)
        super().__init__(
            "Stack contains pending fixup/squash/amend commits:\n"
            f"{listed}\n"
            f"Squash them first with: git rebase -i --autosquash {upstream}"
        )


class MissingIdentifierError(UserInputError):
    """A commit carries no gherrit-pr-id trailer."""

    def __init__(self, commit_hash: str, title: str):
        self.commit_hash = commit_hash
        super().__init__(
            f"Commit {commit_hash[:12]} ({title!r}) missing gherrit-pr-id trailer.\n"
            "Make sure the commit-msg hook is installed, then reword the commit."
        )


class DuplicateIdentifierError(UserInputError):
    """Two or more commits in the stack share an identifier."""

    def __init__(self, duplicates: Dict[str, List[Tuple[str, str]]]):
        self.duplicates = duplicates
        lines = ["Multiple commits in the stack share the same gherrit-pr-id:"]
        for stack_id, commits in duplicates.items():
            lines.append(f"  {stack_id}:")
            for commit_hash, title in commits:
                lines.append(f"    {commit_hash[:12]} {title}")
        lines.append(
            "Each commit needs a unique identifier. This usually happens after a "
            "cherry-pick; remove the trailer from the copy and let the hook add a new one."
        )
        super().__init__("\n".join(lines))


class ConflictError(GherritError):
    """A compare-and-swap ref update was rejected by the remote."""


class ForgeStateError(GherritError):
    """At least one pull request in the stack is already closed or merged."""

    def __init__(self, offenders: Sequence[Tuple[str, int, str]]):
        self.offenders = list(offenders)
        lines = []
        for stack_id, number, state in self.offenders:
            lines.append(f"Cannot push to {state.lower()} PR #{number} ({stack_id})")
        lines.append(
            "Reopen the pull request on GitHub, or give the commit a new "
            "gherrit-pr-id trailer to open a new one."
        )
        super().__init__("\n".join(lines))


class TransportError(GherritError):
    """A network round (git push, ls-remote or GraphQL) failed."""


class DataConsistencyError(GherritError):
    """A batched GitHub response is missing an item we asked for."""
