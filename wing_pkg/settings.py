#!/usr/bin/env python3
"""
Settings loader for Wing static site generator.
Supports configuration from .wing, wing.json, wing.yml or wing.yaml files.
"""

import os
import json
import logging
import yaml
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional, Tuple

from .errors import ConfigError

LINK_TYPES = ('relative', 'absolute')
OPTIMISATION_LEVELS = ('none', 'low', 'high')


@dataclass(frozen=True)
class WingConfig:
    """Build configuration. Read-only for the duration of a build."""

    rss: bool = False
    site_map: bool = False
    link_type: str = 'relative'
    optimisation_level: str = 'none'
    pre_scripts: Tuple[str, ...] = field(default_factory=tuple)
    post_scripts: Tuple[str, ...] = field(default_factory=tuple)
    site_url: Optional[str] = None
    site_title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the configuration keyed the way the config file spells it."""
        values = asdict(self)
        return {
            file_key: list(values[attr]) if isinstance(values[attr], tuple) else values[attr]
            for file_key, attr in WingSettings.KEYS.items()
        }


class WingSettings:
    """Load and validate Wing configuration settings."""

    # Config file key -> WingConfig attribute
    KEYS = {
        'rss': 'rss',
        'siteMap': 'site_map',
        'linkType': 'link_type',
        'optimisationLevel': 'optimisation_level',
        'preScripts': 'pre_scripts',
        'postScripts': 'post_scripts',
        'siteUrl': 'site_url',
        'siteTitle': 'site_title',
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['.wing', 'wing.json', 'wing.yml', 'wing.yaml']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.config_file_path = None
        self.logger = logging.getLogger('Wing.settings')

    def load_settings(self) -> WingConfig:
        """
        Load settings from the configuration file if it exists.

        A missing file gives the defaults. A file that cannot be read or parsed
        also gives the defaults, with a warning; it never stops a build.

        Returns:
            The validated configuration
        """
        config_file = self._find_config_file()
        if not config_file:
            self.logger.debug("No configuration file found, using defaults")
            return WingConfig()

        self.config_file_path = config_file
        try:
            loaded_settings = self._load_config_file(config_file)
        except ConfigError as e:
            self.logger.warning(f"{e}. Using default configuration.")
            return WingConfig()

        config = self._validate(loaded_settings)
        self.logger.debug(f"Loaded configuration from: {os.path.relpath(config_file, self.config_dir)}")
        return config

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.isfile(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of raw configuration values
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (IOError, OSError) as e:
            raise ConfigError(f"Error reading configuration file {config_path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file {config_path}: {e}")
        except UnicodeDecodeError as e:
            raise ConfigError(f"Configuration file {config_path} is not valid UTF-8: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {config_path} must contain a key/value mapping")
        return data

    def _validate(self, raw: Dict[str, Any]) -> WingConfig:
        """Build a WingConfig, replacing each invalid value with its default."""
        defaults = WingConfig()
        values = {}

        for key, value in raw.items():
            attr = self.KEYS.get(key)
            if attr is None:
                self.logger.debug(f"Ignoring unknown configuration key: {key}")
                continue
            try:
                values[attr] = self._coerce(key, attr, value)
            except ConfigError as e:
                self.logger.warning(f"{e}. Using default {getattr(defaults, attr)!r}.")

        return WingConfig(**values)

    def _coerce(self, key: str, attr: str, value: Any) -> Any:
        if attr in ('rss', 'site_map'):
            if not isinstance(value, bool):
                raise ConfigError(f"'{key}' must be true or false, got {value!r}")
            return value
        if attr == 'link_type':
            if value not in LINK_TYPES:
                raise ConfigError(f"'{key}' must be one of {', '.join(LINK_TYPES)}, got {value!r}")
            return value
        if attr == 'optimisation_level':
            if value not in OPTIMISATION_LEVELS:
                raise ConfigError(f"'{key}' must be one of {', '.join(OPTIMISATION_LEVELS)}, got {value!r}")
            return value
        if attr in ('pre_scripts', 'post_scripts'):
            if not isinstance(value, list) or not all(isinstance(cmd, str) for cmd in value):
                raise ConfigError(f"'{key}' must be a list of command strings")
            return tuple(value)
        # site_url, site_title
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"'{key}' must be a string")
        if attr == 'site_url' and value:
            return value.rstrip('/')
        return value

    @staticmethod
    def write_default(path: str) -> str:
        """
        Write the default configuration as pretty JSON.

        Args:
            path: Destination file

        Returns:
            Path to the created file
        """
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(WingConfig().to_dict(), f, indent=4)
            f.write('\n')
        return path
