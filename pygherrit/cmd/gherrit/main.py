"""CLI entry point."""

import os
import sys
import click
import yaml
import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar
from click import Context
from pydantic import ValidationError

from ... import setup_logging
from ...config import Config, default_config
from ...config.config_parser import CONFIG_FILE_NAME, parse_config
from ...errors import GherritError, UserInputError
from ...git import ManagedState, RealGit, get_managed_state
from ...github import GitHubClient, find_github_token
from ...github.adapters import PyGithubAdapter
from ...sync import StackSync
from ...typing import HeadKind
from ...util import OutboundLimiter

# Get module logger
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def check(err: Exception) -> None:
    """Log a user-facing error and exit."""
    logger.error(f"{err}")
    sys.exit(1)


def reports_errors(func: F) -> F:
    """Turn GherritError into a logged message and exit status 1."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except GherritError as e:
            check(e)
    return wrapper  # type: ignore[return-value]


class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None, **attrs: Any) -> None:
        """Initialize with aliases map."""
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, command: str) -> None:
        """Add an alias for a command."""
        self.aliases[alias] = command

    def get_command(self, ctx: Context, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases."""
        if cmd_name in self.aliases:
            cmd_name = self.aliases[cmd_name]
        return super().get_command(ctx, cmd_name)


@click.group(cls=AliasedGroup)
@click.pass_context
def cli(ctx: Context) -> None:
    """GHerrit - sync a local commit stack to dependent GitHub pull requests."""
    ctx.obj = {}


def setup_git(directory: Optional[str] = None) -> Tuple[Config, RealGit, GitHubClient]:
    """Setup Git command, config and GitHub client."""
    if directory:
        os.chdir(directory)

    # RealGit refuses to start outside a repository
    git_cmd = RealGit(default_config())

    try:
        config = Config(parse_config(git_cmd))
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        raise UserInputError(f"Invalid configuration in {CONFIG_FILE_NAME} or git config:\n{e}")
    limiter = OutboundLimiter(config.tool.max_workers)
    git_cmd = RealGit(config, limiter=limiter)

    if not config.repo.github_repo_owner or not config.repo.github_repo_name:
        raise UserInputError(
            f"Could not determine the GitHub repository from remote '{config.repo.remote}'. "
            "Set repo.github_repo_owner and repo.github_repo_name in .gherrit.yaml."
        )

    token = find_github_token(config.repo.github_host)
    if not token:
        raise UserInputError(
            "No GitHub token found. Try one of:\n"
            "1. Set GITHUB_TOKEN or GH_TOKEN\n"
            "2. Log in with 'gh auth login'"
        )
    github_client = PyGithubAdapter.from_token(token, config.repo.api_base_url)
    github = GitHubClient(config, github_client, limiter=limiter)
    return config, git_cmd, github


directory_option = click.option(
    '-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
    help='Run as if gherrit was started in DIRECTORY instead of the current working directory')
verbose_option = click.option(
    '-v', '--verbose', count=True,
    help="Increase verbosity (can be used multiple times for more verbosity)")
pretend_option = click.option(
    '--pretend', is_flag=True,
    help="Don't actually push or create/update pull requests, just show what would happen")


@cli.command(name="sync", help="Push the stack and create or update its pull requests")
@directory_option
@verbose_option
@pretend_option
@reports_errors
def sync(directory: Optional[str], verbose: int, pretend: bool) -> None:
    """Sync command."""
    setup_logging(verbose)
    config, git_cmd, github = setup_git(directory)
    StackSync(config, github, git_cmd, pretend=pretend).sync()


@cli.group(name="hook", help="Entry points called from git hooks")
def hook() -> None:
    pass


@hook.command(name="pre-push", help="Sync managed branches before git pushes them")
@click.argument('remote', required=False)
@click.argument('url', required=False)
@directory_option
@verbose_option
@pretend_option
@reports_errors
def pre_push(remote: Optional[str], url: Optional[str], directory: Optional[str],
             verbose: int, pretend: bool) -> None:
    """Pre-push hook command."""
    setup_logging(verbose)
    if directory:
        os.chdir(directory)
    git_cmd = RealGit(default_config())
    head = git_cmd.current_branch()
    if head.kind == HeadKind.DETACHED or not head.branch:
        raise UserInputError("HEAD is detached. Check out the branch holding your stack first.")

    state = get_managed_state(git_cmd, head.branch)
    if state == ManagedState.UNMANAGED:
        logger.info(f"Branch '{head.branch}' is not managed by gherrit; pushing normally")
        return

    logger.debug(f"Pre-push for {remote or '?'} ({url or '?'}), branch {head.branch} is {state.value}")
    config, git_cmd, github = setup_git()
    StackSync(config, github, git_cmd, pretend=pretend).sync()


@cli.command(name="status", help="Show the stack and its pull requests")
@directory_option
@verbose_option
@click.option('--json', 'as_json', is_flag=True, help="Print the stack as JSON")
@reports_errors
def status(directory: Optional[str], verbose: int, as_json: bool) -> None:
    """Status command."""
    setup_logging(verbose)
    config, git_cmd, github = setup_git(directory)
    StackSync(config, github, git_cmd).status(as_json=as_json)


cli.add_alias("up", "sync")
cli.add_alias("st", "status")


def main() -> None:
    """Main entry point."""
    cli(obj={})

if __name__ == "__main__":
    main()
