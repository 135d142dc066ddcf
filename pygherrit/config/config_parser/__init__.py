"""Config parser logic."""

import os
import re
import logging
from typing import Any, Dict, Optional, Tuple

import yaml

from ...typing import GitInterface

# Get module logger
logger = logging.getLogger(__name__)

RepoConfig = Dict[str, Any]  # Use Any since yaml can return various types
Config = Dict[str, RepoConfig]

CONFIG_FILE_NAME = ".gherrit.yaml"

# git config key -> repo config field
GIT_CONFIG_KEYS = {
    'gherrit.remote': 'remote',
    'gherrit.defaultBranch': 'default_branch',
    'gherrit.tagNamespace': 'tag_namespace',
    'gherrit.githubHost': 'github_host',
}

def parse_config(git_cmd: GitInterface) -> Config:
    """Parse config from git config and the repository's .gherrit.yaml."""
    config: Config = {
        'repo': {
            'remote': 'origin',
            'github_host': 'github.com',
            'tag_namespace': 'gherrit',
        },
        'tool': {},
    }

    for key, field_name in GIT_CONFIG_KEYS.items():
        value = git_cmd.config_string(key)
        if value:
            config['repo'][field_name] = value

    pretend = git_cmd.config_bool('gherrit.pretend')
    if pretend is not None:
        config['tool']['pretend'] = pretend

    toplevel = git_cmd.toplevel()
    if toplevel:
        file_config = load_config_file(os.path.join(toplevel, CONFIG_FILE_NAME))
        for section in ('repo', 'tool'):
            if isinstance(file_config.get(section), dict):
                config[section].update(file_config[section])

    remote = config['repo']['remote']
    if not config['repo'].get('default_branch'):
        config['repo']['default_branch'] = find_default_branch(git_cmd, remote)

    # Try to extract repo owner/name from git remote if not in config
    if not config['repo'].get('github_repo_owner') or not config['repo'].get('github_repo_name'):
        remote_url = git_cmd.remote_url(remote)
        parsed = parse_remote_url(remote_url) if remote_url else None
        if parsed:
            host, owner, name = parsed
            if not config['repo'].get('github_repo_owner'):
                config['repo']['github_repo_owner'] = owner
            if not config['repo'].get('github_repo_name'):
                config['repo']['github_repo_name'] = name
            # A GitHub Enterprise remote implies its host unless one was configured.
            # Dotless hosts are ssh aliases and tell us nothing.
            if (config['repo']['github_host'] == 'github.com'
                    and '.' in host and not host.endswith('github.com')):
                config['repo']['github_host'] = host
        else:
            logger.warning(f"Could not determine GitHub owner/name from remote '{remote}'")

    return config

def load_config_file(path: str) -> Dict[str, Any]:
    """Load a .gherrit.yaml file, returning an empty dict when it is absent."""
    try:
        with open(path, 'r') as f:
            logger.debug(f"Found {path}, loading...")
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    logger.debug(f"Config from {CONFIG_FILE_NAME}: {data}")
    return data

def find_default_branch(git_cmd: GitInterface, remote: str) -> str:
    """Default branch of remote, from refs/remotes/<remote>/HEAD, else main."""
    target = git_cmd.symbolic_ref(f"refs/remotes/{remote}/HEAD")
    if target:
        prefix = f"{remote}/"
        short = target.split("refs/remotes/", 1)[-1]
        if short.startswith(prefix):
            return short[len(prefix):]
    return "main"

_SCP_URL = re.compile(r'^(?:[^@/]+@)?(?P<host>[^:/]+):(?P<path>[^/].*)$')
_URL = re.compile(r'^[a-z+]+://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?/(?P<path>.+)$')

def parse_remote_url(url: str) -> Optional[Tuple[str, str, str]]:
    """Split a remote URL into (host, owner, name).

    Handles SSH (git@github.com:owner/repo.git) and HTTPS
    (https://github.com/owner/repo.git) forms.
    """
    url = url.strip()
    match = _URL.match(url) or _SCP_URL.match(url)
    if not match:
        return None
    path = match.group('path').rstrip('/')
    if path.endswith('.git'):
        path = path[:-len('.git')]
    parts = path.split('/')
    if len(parts) < 2 or not parts[-2] or not parts[-1]:
        return None
    return match.group('host'), parts[-2], parts[-1]
