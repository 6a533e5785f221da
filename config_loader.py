"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG: Dict[str, Any] = {
    'convert': {
        'output_directory': None,
        'merge': False,
        'merged_filename': None,
        'localize': False,
        'overwrite': True,
        'skip_unchanged': True,
        'front_matter': False,
        'skip_ids': ['titlepage'],
        'image_directory': 'images',
        'static_directory': 'static'
    },
    'download': {
        'max_workers': 4,
        'timeout': 30,
        'user_agent': None
    },
    'logging': {
        'level': None,
        'file': None
    }
}

BOOLEAN_FIELDS = (
    'convert.merge',
    'convert.localize',
    'convert.overwrite',
    'convert.skip_unchanged',
    'convert.front_matter'
)


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file fall back to :data:`DEFAULT_CONFIG`.

        Args:
            config_path: Path to YAML configuration file, or None for defaults only

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if config_path is None:
            return copy.deepcopy(DEFAULT_CONFIG)

        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        config_data = cls._substitute_env_vars_recursive(config_data)
        return cls._with_defaults(config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        for field in BOOLEAN_FIELDS:
            value = get_nested(config, field, False)
            if not isinstance(value, bool):
                raise ValueError(f"{field} must be a boolean")

        for field in ('download.max_workers', 'download.timeout'):
            value = get_nested(config, field, 1)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{field} must be a positive number")
        if not isinstance(get_nested(config, 'download.max_workers', 4), int):
            raise ValueError("download.max_workers must be a positive integer")

        for field in ('convert.image_directory', 'convert.static_directory'):
            value = get_nested(config, field)
            if not value or not isinstance(value, str):
                raise ValueError(f"{field} must be a non-empty string")
            if '/' in value or '\\' in value:
                raise ValueError(f"{field} must be a plain directory name: {value}")

        output_dir = get_nested(config, 'convert.output_directory')
        if output_dir and os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"convert.output_directory '{output_dir}' is not a directory")

        merged_filename = get_nested(config, 'convert.merged_filename')
        if merged_filename is not None:
            if not isinstance(merged_filename, str) or not merged_filename.endswith('.md'):
                raise ValueError("convert.merged_filename must end with '.md'")
            if '/' in merged_filename or '\\' in merged_filename:
                raise ValueError(f"convert.merged_filename must be a plain file name: {merged_filename}")

        skip_ids = get_nested(config, 'convert.skip_ids', [])
        if not isinstance(skip_ids, list):
            raise ValueError("convert.skip_ids must be a list of manifest ids")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)
        for section in ('convert', 'download', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'output', None):
            merged['convert']['output_directory'] = args.output

        if getattr(args, 'merge', False):
            merged['convert']['merge'] = True

        # a merged file name implies merging
        if getattr(args, 'merged_name', None):
            merged['convert']['merge'] = True
            merged['convert']['merged_filename'] = args.merged_name

        if getattr(args, 'localize', False):
            merged['convert']['localize'] = True

        if getattr(args, 'front_matter', False):
            merged['convert']['front_matter'] = True

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        if getattr(args, 'log_level', None):
            merged['logging']['level'] = args.log_level

        return merged

    @classmethod
    def _with_defaults(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        merged = copy.deepcopy(DEFAULT_CONFIG)
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key].update(value)
            else:
                merged[key] = value
        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value; unknown ones are kept."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "download.timeout")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config
    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
