"""
Persistent settings for the weekly report: token, organizations and
favorite repositories.
"""

import json
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional


DEFAULT_CONFIG_PATH = Path.home() / '.commit-tracker-config.json'


def default_config() -> Dict:
    return {'organizations': [], 'favoriteRepos': {}, 'token': None}


class ConfigManager:
    """Load and save the JSON config file."""

    def __init__(self, config_path=DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path).expanduser()
        self.config = self.load()

    def load(self) -> Dict:
        """Read the config file, falling back to defaults when it is missing or broken."""
        if not self.config_path.exists():
            return default_config()
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Error loading config: {e}", file=sys.stderr)
            return default_config()
        if not isinstance(data, dict):
            print(f"Error loading config: {self.config_path} does not contain an object",
                  file=sys.stderr)
            return default_config()

        config = default_config()
        config.update({key: value for key, value in data.items() if value is not None})
        return config

    def save(self) -> None:
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)
        except OSError as e:
            print(f"Error saving config: {e}", file=sys.stderr)

    def get_token(self) -> Optional[str]:
        return self.config.get('token') or os.environ.get('GITHUB_TOKEN')

    def get_organizations(self) -> List[str]:
        return self.config.get('organizations') or []

    def get_favorite_repos(self, org: str) -> List[str]:
        return (self.config.get('favoriteRepos') or {}).get(org, [])

    def add_organization(self, org: str) -> None:
        organizations = self.config.setdefault('organizations', [])
        if org not in organizations:
            organizations.append(org)
            self.save()

    def add_favorite_repos(self, org: str, repos: List[str]) -> None:
        favorites = self.config.setdefault('favoriteRepos', {}).setdefault(org, [])
        for repo in repos:
            if repo not in favorites:
                favorites.append(repo)
        self.save()

    def set_token(self, token: str) -> None:
        self.config['token'] = token
        self.save()
