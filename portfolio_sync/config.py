"""
Configuration management for portfolio-sync.
"""
import os
import copy
import json
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

# Default configuration
DEFAULT_CONFIG = {
    "notion": {
        "api_url": "https://api.notion.com/v1",
        "version": "2022-06-28",
        "page_size": 100
    },
    "rate_limiting": {
        "requests_per_second": 3,
        "max_concurrent": 5,
        "timeout_seconds": 30
    },
    "retry": {
        "max_tries": 1
    },
    "assets": {
        "directory": "assets/images/projects",
        "max_redirects": 5,
        "timeout_seconds": 30
    },
    "output": {
        "directory": "data"
    },
    "processing": {
        "concurrent": False
    },
    "logging": {
        "level": "INFO",
        "file": None
    },
    "pipelines": {
        "articles": {
            "api_key_env": "NOTION_API_KEY",
            "collection_env": "NOTION_DATABASE_ID",
            "output_file": "articles.json",
            "list_key": "articles",
            "content_format": "html",
            "materialize_images": False,
            "properties": {
                "published": "Published",
                "title": ["Title", "Name"],
                "title_en": "Title_EN",
                "description": "Description",
                "date": "Date",
                "category": "Category",
                "tags": "Tags",
                "read_time": "ReadTime",
                "featured": "Featured"
            }
        },
        "projects": {
            "api_key_env": "NOTION_API_KEY",
            "collection_env": "NOTION_PROJECTS_DATABASE_ID",
            "output_file": "projects.json",
            "list_key": "projects",
            "content_format": "html",
            "materialize_images": True,
            "properties": {
                "published": "Publish",
                "title": ["Name", "Title"],
                "summary": ["Summary", "Description"],
                "date": "Date",
                "categories": "Categories",
                "cover_files": "Cover Image",
                "preview_link": "Preview Link",
                "read_time": "ReadTime",
                "featured": "Featured"
            }
        }
    }
}

ENV_PREFIX = 'PORTFOLIO_SYNC_'


class ConfigError(Exception):
    """Raised for unrecoverable setup problems (missing credentials, bad config file)."""


class Config:
    """
    Configuration manager for portfolio-sync.
    """
    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize the Config.

        Args:
            config_path: Path to a YAML or JSON configuration file
            environ: Environment mapping to read overrides and credentials from
                (defaults to ``os.environ`` after loading ``.env``)
        """
        if environ is None:
            load_dotenv()
            environ = os.environ
        self.config_path = config_path
        self.environ = environ
        self.config = self._load_config()

    def _load_config(self) -> Dict:
        """
        Load configuration from file or use defaults.

        Returns:
            Configuration dictionary
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path:
            path = Path(self.config_path)
            if not path.exists():
                raise ConfigError(f"Config file not found: {self.config_path}")
            if path.suffix.lower() in ['.yaml', '.yml']:
                with open(path, 'r', encoding='utf-8') as f:
                    user_config = yaml.safe_load(f) or {}
            elif path.suffix.lower() == '.json':
                with open(path, 'r', encoding='utf-8') as f:
                    user_config = json.load(f)
            else:
                raise ConfigError(f"Unsupported config file format: {path.suffix}")

            self._update_dict(config, user_config)

        self._override_from_env(config)

        return config

    def _update_dict(self, target: Dict, source: Dict) -> None:
        """
        Recursively update a dictionary.

        Args:
            target: Target dictionary to update
            source: Source dictionary with new values
        """
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._update_dict(target[key], value)
            else:
                target[key] = value

    def _override_from_env(self, config: Dict, prefix: str = ENV_PREFIX) -> None:
        """
        Override configuration with environment variables.

        ``PORTFOLIO_SYNC_RATE_LIMITING__MAX_CONCURRENT=2`` sets
        ``rate_limiting.max_concurrent``; a double underscore separates levels.

        Args:
            config: Configuration dictionary to update
            prefix: Prefix for environment variables
        """
        for key, value in self.environ.items():
            if not key.startswith(prefix):
                continue
            parts = key[len(prefix):].lower().split('__')

            current = config
            for part in parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]

            try:
                current[parts[-1]] = json.loads(value)
            except json.JSONDecodeError:
                current[parts[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-separated key path (e.g., 'assets.directory')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        current = self.config
        for part in key.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def pipeline(self, name: str) -> Dict:
        """Return the settings block of a named pipeline ('articles' or 'projects')."""
        settings = self.get(f'pipelines.{name}')
        if not settings:
            raise ConfigError(f"Unknown pipeline: {name}")
        return settings

    def require_env(self, name: str) -> str:
        """
        Read a required environment variable.

        Raises:
            ConfigError: if the variable is unset or empty
        """
        value = self.environ.get(name)
        if not value:
            raise ConfigError(f"{name} is not set")
        return value
