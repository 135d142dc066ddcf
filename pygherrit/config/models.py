"""Pydantic models for config types."""

from typing import Optional
from pydantic import BaseModel, Field

class RepoConfig(BaseModel):
    """Repository configuration."""
    remote: str = "origin"
    default_branch: str = "main"
    github_host: str = "github.com"
    github_repo_owner: Optional[str] = None
    github_repo_name: Optional[str] = None
    tag_namespace: str = "gherrit"

    class Config:
        """Pydantic config."""
        extra = "allow"

    @property
    def upstream(self) -> str:
        """Short name of the base branch on the remote, e.g. origin/main."""
        return f"{self.remote}/{self.default_branch}"

    @property
    def repo_url(self) -> str:
        """Web URL of the repository, empty if owner/name are unknown."""
        if not self.github_repo_owner or not self.github_repo_name:
            return ""
        return f"https://{self.github_host}/{self.github_repo_owner}/{self.github_repo_name}"

    @property
    def graphql_url(self) -> str:
        """GraphQL endpoint for github.com or a GitHub Enterprise host."""
        if self.github_host == "github.com":
            return "https://api.github.com/graphql"
        return f"https://{self.github_host}/api/graphql"

    @property
    def api_base_url(self) -> str:
        if self.github_host == "github.com":
            return "https://api.github.com"
        return f"https://{self.github_host}/api/v3"

class ToolConfig(BaseModel):
    """Tool configuration."""
    push_batch_size: int = Field(default=80, ge=1)  # ~4 ref operations per commit
    forge_batch_size: int = Field(default=50, ge=1)
    max_workers: int = Field(default=6, ge=1)
    body_size_limit: int = Field(default=131072, ge=1)  # a quarter of GitHub's limit
    pretend: bool = False

    class Config:
        """Pydantic config."""
        extra = "allow"

class GherritConfig(BaseModel):
    """Full pygherrit configuration."""
    repo: RepoConfig = Field(default_factory=RepoConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)

    class Config:
        """Pydantic config."""
        extra = "allow"
