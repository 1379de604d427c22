"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

# Built-in defaults; a run without a config file is driven by the environment
DEFAULT_CONFIG: Dict[str, Any] = {
    'marketo': {
        'client_id': '${MARKETO_CLIENT_ID}',
        'client_secret': '${MARKETO_CLIENT_SECRET}',
        'identity_url': '${MARKETO_IDENTITY_URL}',
        'rest_url': '${MARKETO_REST_URL}',
        'verify_ssl': True
    },
    'export': {
        'output_directory': './marketo-exports',
        'create_zip': False,
        'batch_size': 5,
        'batch_delay': 0.3,
        'page_size': 200,
        'max_pages': 50,
        'page_delay': 0.5,
        'preview_placeholders': True,
        'write_text_metadata': True,
        'require_content': False,
        'section_separator': '\n\n',
        'compression_level': 5,
        'progress_bars': True
    },
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 2.0,
        'rate_limit': 0.0,
        'token_refresh_skew': 300
    },
    'logging': {
        'level': None,
        'file': None
    },
    'server': {
        'host': '127.0.0.1',
        'port': 3000,
        'exports_root': './exports'
    }
}

REQUIRED_FIELDS = {
    'marketo.client_id': 'MARKETO_CLIENT_ID',
    'marketo.client_secret': 'MARKETO_CLIENT_SECRET',
    'marketo.identity_url': 'MARKETO_IDENTITY_URL',
    'marketo.rest_url': 'MARKETO_REST_URL'
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from an optional YAML file layered over the defaults,
        then substitute environment variables.

        Args:
            config_path: Path to YAML configuration file (None = defaults only)

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If an explicit config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
            ValueError: If the file does not contain a mapping
        """
        config_data = copy.deepcopy(DEFAULT_CONFIG)

        if config_path:
            if not os.path.exists(config_path):
                raise FileNotFoundError(f"Configuration file not found: {config_path}")

            with open(config_path, 'r', encoding='utf-8') as f:
                file_data = yaml.safe_load(f) or {}

            if not isinstance(file_data, dict):
                raise ValueError("Configuration file must contain a dictionary")

            config_data = cls._deep_merge(config_data, file_data)

        return cls._substitute_env_vars_recursive(config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        All missing credentials are reported together.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        missing = cls._missing_required_fields(config)
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        cls._validate_url(get_nested(config, 'marketo.identity_url'), 'marketo.identity_url')
        cls._validate_url(get_nested(config, 'marketo.rest_url'), 'marketo.rest_url')

        for path in ('export.batch_size', 'export.page_size', 'export.max_pages'):
            value = get_nested(config, path)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{path} must be a positive integer")

        page_size = get_nested(config, 'export.page_size')
        if page_size > 200:
            raise ValueError("export.page_size cannot exceed 200 (Marketo maximum)")

        for path in ('export.batch_delay', 'export.page_delay', 'advanced.rate_limit',
                     'advanced.token_refresh_skew'):
            value = get_nested(config, path, 0)
            if not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"{path} must be a non-negative number")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        level = get_nested(config, 'export.compression_level', 5)
        if not isinstance(level, int) or not 0 <= level <= 9:
            raise ValueError("export.compression_level must be an integer between 0 and 9")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments namespace

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)
        for section in ('export', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'output', None):
            merged['export']['output_directory'] = args.output

        if getattr(args, 'zip', None):
            merged['export']['create_zip'] = True

        if getattr(args, 'batch_size', None) is not None:
            merged['export']['batch_size'] = args.batch_size

        if getattr(args, 'page_size', None) is not None:
            merged['export']['page_size'] = args.page_size

        if getattr(args, 'max_pages', None) is not None:
            merged['export']['max_pages'] = args.max_pages

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        verbose = getattr(args, 'verbose', 0) or 0
        if verbose >= 2:
            merged['logging']['level'] = 'DEBUG'
        elif verbose == 1:
            merged['logging']['level'] = 'INFO'

        return merged

    @classmethod
    def _deep_merge(cls, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        merged = copy.deepcopy(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = cls._deep_merge(merged[key], value)
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
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @classmethod
    def _missing_required_fields(cls, config: Dict[str, Any]) -> List[str]:
        """Return the names to report for every unset required field."""
        missing = []
        for path, env_name in REQUIRED_FIELDS.items():
            value = get_nested(config, path)
            if value is None or value == '':
                missing.append(env_name)
            elif isinstance(value, str) and '${' in value:
                match = cls.ENV_VAR_PATTERN.search(value)
                missing.append(match.group(1) if match else env_name)
        return missing

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "marketo.rest_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
