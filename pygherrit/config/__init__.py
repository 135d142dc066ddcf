"""Config module."""

from typing import Dict, Any
from .models import RepoConfig, ToolConfig, GherritConfig

class Config(GherritConfig):
    """Config object holding repository and tool config, built from a parsed dict."""
    def __init__(self, config: Dict[str, Dict[str, Any]]):
        """Initialize with parsed config dict."""
        super().__init__(
            repo=RepoConfig.model_validate(config.get('repo', {})),
            tool=ToolConfig.model_validate(config.get('tool', {})),
        )

def default_config() -> Config:
    """Get default config without parsing git."""
    return Config({
        'repo': {
            'remote': 'origin',
            'default_branch': 'main',
        },
        'tool': {},
    })
