"""Renders pull request descriptions.

Layout of a generated body::

    <banner comment>

    <commit body, cleaned>

    ---

    This PR is on branch [b](../tree/b).     (public stacks only)

    - #3
    - #2 ⬅
    - #1

    **Latest Update:** ...                   (version > 1 only)
    <details> patch history table </details>
    <metadata warning comment>
    <!-- gherrit-meta: {...} -->
"""

import json
import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..config.models import GherritConfig

logger = logging.getLogger(__name__)

BANNER = ("<!-- WARNING: This PR description is automatically generated by GHerrit. "
          "Any manual edits will be overwritten on the next push. -->")
META_WARNING = ("<!-- WARNING: GHerrit relies on the following metadata to work properly. "
                "DO NOT EDIT OR REMOVE. -->")
CURRENT_MARKER = " ⬅"

# Full-history labels read "vs v3"; past this many versions they shrink to "v3"
SHORT_LABEL_MAX_VERSIONS = 8

_TRAILER_RE = re.compile(r'^(?:gherrit-pr-id: \S+|Link: \S*/id/\S+)[ \t]*$\n?', re.MULTILINE)
_GENERATED_COMMENT_RE = re.compile(
    r'(?:' + re.escape(BANNER) + '|' + re.escape(META_WARNING) + r'|<!-- gherrit-meta: .*? -->)\n?')


def clean_body(body: str) -> str:
    """Drop identifier trailers and anything an earlier render injected."""
    body = body.replace("\r\n", "\n")
    body = _TRAILER_RE.sub("", body)
    body = _GENERATED_COMMENT_RE.sub("", body)
    return body.strip()


def metadata_comment(stack_id: str, parent: Optional[str], child: Optional[str]) -> str:
    meta = json.dumps({"id": stack_id, "parent": parent, "child": child}, ensure_ascii=False)
    return f"<!-- gherrit-meta: {meta} -->"


@dataclass
class BodyContext:
    """Everything needed to render one stack entry's description."""
    stack_id: str
    commit_body: str
    version: int
    base_ref: str
    parent_id: Optional[str] = None
    child_id: Optional[str] = None
    branch: Optional[str] = None  # None for private stacks or a detached HEAD
    stack_numbers: List[int] = field(default_factory=list)  # bottom of the stack first
    current_number: Optional[int] = None


class PrBodyComposer:
    """Builds the canonical body for each pull request in a stack."""

    def __init__(self, config: GherritConfig):
        self.config = config

    @property
    def repo_url(self) -> str:
        return self.config.repo.repo_url

    def _tag(self, stack_id: str, version: int) -> str:
        return f"{self.config.repo.tag_namespace}/{stack_id}/v{version}"

    def render(self, ctx: BodyContext) -> str:
        """Render the body, falling back to a sparse history table if too large."""
        body = self._render(ctx, sparse=False)
        size = len(body.encode("utf-8"))
        if size > self.config.tool.body_size_limit:
            logger.debug(f"Body for {ctx.stack_id} is {size} bytes, "
                         "rendering a sparse history table")
            body = self._render(ctx, sparse=True)
        return body

    def _render(self, ctx: BodyContext, sparse: bool) -> str:
        branch_line = ""
        if ctx.branch:
            branch_line = f"This PR is on branch [{ctx.branch}](../tree/{ctx.branch}).\n\n"
        history = ""
        if ctx.version > 1 and self.repo_url:
            history = self.history_table(ctx.stack_id, ctx.version, ctx.base_ref, sparse)
        meta = metadata_comment(ctx.stack_id, ctx.parent_id, ctx.child_id)
        return (
            f"{BANNER}\n\n{clean_body(ctx.commit_body)}\n\n---\n\n"
            f"{branch_line}{self.stack_list(ctx.stack_numbers, ctx.current_number)}\n"
            f"{history}\n{META_WARNING}\n{meta}"
        )

    @staticmethod
    def stack_list(numbers: List[int], current: Optional[int]) -> str:
        """Markdown list of the stack's PRs, top of the stack first."""
        lines = []
        for number in reversed(numbers):
            marker = CURRENT_MARKER if number == current else ""
            lines.append(f"- #{number}{marker}")
        return "\n".join(lines)

    def history_table(self, stack_id: str, latest: int, base_ref: str, sparse: bool = False) -> str:
        """Comparison links between every pair of versions and the base.

        Row v<r> links to the diff from the base and from each earlier
        version. In sparse mode only the base column, the diagonal (each
        version against its predecessor) and the latest row keep their links.
        """
        repo = self.repo_url
        prefix = "vs " if latest <= SHORT_LABEL_MAX_VERSIONS else ""
        out = [
            f"\n\n**Latest Update:** v{latest} - [Compare vs v{latest - 1}]"
            f"({repo}/compare/{self._tag(stack_id, latest - 1)}..{self._tag(stack_id, latest)})\n\n",
            "<details>\n<summary><strong>📚 Full Patch History</strong></summary>\n\n",
            "*Links show the diff between the row version and the column version.*\n\n",
            "| Version | Base |" + "".join(f" v{v} |" for v in range(1, latest)) + "\n",
            "| :--- | :--- |" + " :--- |" * (latest - 1) + "\n",
        ]
        for row in range(latest, 0, -1):
            cells = [f"[{prefix}Base]({repo}/compare/{base_ref}..{self._tag(stack_id, row)})"]
            for col in range(1, latest):
                keep = col < row and (not sparse or col == row - 1 or row == latest)
                if keep:
                    cells.append(f"[{prefix}v{col}]({repo}/compare/"
                                 f"{self._tag(stack_id, col)}..{self._tag(stack_id, row)})")
                else:
                    cells.append("")
            out.append(f"| v{row} |" + "".join(f" {c} |" if c else " |" for c in cells) + "\n")
        out.append("\n</details>")
        return "".join(out)
