"""
Centralized configuration management for the channel comment harvester.

Configuration is loaded from multiple sources with the following priority:
1. Config file (settings.yaml settings section) - highest priority
2. Environment variables - fallback for every setting
3. Default values - lowest priority

The API key itself never lives in the config file. It is read from a plain
text key file whose path is configurable (api_key_file).

Usage:
    from config import get_config, load_api_key

    config = get_config()
    api_key = load_api_key(config.api_key_file)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml


# Default configuration values
DEFAULTS = {
    # Credentials
    "api_key_file": "apikey.txt",

    # Output
    "output_dir": ".",

    # Logging settings
    "log_dir": "logs",
    "log_level": "DEBUG",
    "console_log_level": "INFO",

    # Comment fetching
    "comment_workers": 1,
    "skip_disabled_comments": False,

    # Quota settings
    "quota_limit": 0,  # 0 = unlimited, tally only
    "quota_warn_threshold": 0.8,
}


class CredentialError(Exception):
    """Raised when the API key file is missing, unreadable or empty."""
    pass


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"Not a boolean: {value!r}")


@dataclass
class Config:
    """
    Configuration container with typed access to all settings.

    Settings are loaded from config file with environment variable fallbacks.
    """

    # Credentials
    api_key_file: str = DEFAULTS["api_key_file"]

    # Output
    output_dir: str = DEFAULTS["output_dir"]

    # Logging settings
    log_dir: str = DEFAULTS["log_dir"]
    log_level: str = DEFAULTS["log_level"]
    console_log_level: str = DEFAULTS["console_log_level"]

    # Comment fetching
    comment_workers: int = DEFAULTS["comment_workers"]
    skip_disabled_comments: bool = DEFAULTS["skip_disabled_comments"]

    # Quota settings
    quota_limit: int = DEFAULTS["quota_limit"]
    quota_warn_threshold: float = DEFAULTS["quota_warn_threshold"]

    # Source tracking (for debugging)
    _config_file: Optional[str] = None


# Global config instance (singleton pattern)
_config: Optional[Config] = None


def _load_yaml_settings(config_path: str) -> dict:
    """Load settings section from YAML config file."""
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
        return (config or {}).get("settings", {}) or {}
    except FileNotFoundError:
        return {}
    except Exception as e:
        print(f"Warning: Could not load config file {config_path}: {e}")
        return {}


def _get_env_or_default(key: str, default, cast_type=None):
    """Get value from environment variable or return default."""
    env_value = os.environ.get(key)
    if env_value is None:
        return default
    if cast_type is not None:
        try:
            return cast_type(env_value)
        except (ValueError, TypeError):
            return default
    return env_value


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from file and environment variables.

    Args:
        config_path: Path to YAML config file (optional).
                    If not provided, tries default locations.

    Returns:
        Config object with all settings loaded.
    """
    if config_path is None:
        candidates = [
            "config/settings.yaml",
            "settings.yaml",
        ]
        for candidate in candidates:
            if Path(candidate).exists():
                config_path = candidate
                break

    yaml_settings = {}
    if config_path and Path(config_path).exists():
        yaml_settings = _load_yaml_settings(config_path)

    # Priority: yaml > env > default
    def get_setting(yaml_key: str, env_key: str, default, cast_type=None):
        if yaml_key in yaml_settings:
            value = yaml_settings[yaml_key]
            if cast_type is not None:
                try:
                    return cast_type(value)
                except (ValueError, TypeError):
                    pass
            return value
        return _get_env_or_default(env_key, default, cast_type)

    return Config(
        api_key_file=get_setting("api_key_file", "YOUTUBE_API_KEY_FILE", DEFAULTS["api_key_file"]),

        output_dir=get_setting("output_dir", "OUTPUT_DIR", DEFAULTS["output_dir"]),

        log_dir=get_setting("log_dir", "LOG_DIR", DEFAULTS["log_dir"]),
        log_level=get_setting("log_level", "LOG_LEVEL", DEFAULTS["log_level"]),
        console_log_level=get_setting("console_log_level", "CONSOLE_LOG_LEVEL", DEFAULTS["console_log_level"]),

        comment_workers=get_setting("comment_workers", "COMMENT_WORKERS", DEFAULTS["comment_workers"], int),
        skip_disabled_comments=get_setting("skip_disabled_comments", "SKIP_DISABLED_COMMENTS", DEFAULTS["skip_disabled_comments"], _to_bool),

        quota_limit=get_setting("quota_limit", "YOUTUBE_QUOTA_LIMIT", DEFAULTS["quota_limit"], int),
        quota_warn_threshold=get_setting("quota_warn_threshold", "QUOTA_WARN_THRESHOLD", DEFAULTS["quota_warn_threshold"], float),

        _config_file=config_path,
    )


def get_config(config_path: Optional[str] = None, reload: bool = False) -> Config:
    """
    Get the global configuration instance.

    Uses singleton pattern - loads config once and reuses it.

    Args:
        config_path: Path to config file (only used on first load or reload)
        reload: If True, force reload of configuration
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config


def set_config(config: Optional[Config]) -> None:
    """
    Set the global configuration instance.

    Useful for testing or when config needs to be set programmatically.
    Passing None forces the next get_config() call to reload.
    """
    global _config
    _config = config


def load_api_key(key_file: str) -> str:
    """
    Read the YouTube API key from a local text file.

    Only the first non-blank line is used; surrounding whitespace is stripped.

    Raises:
        CredentialError: If the file is missing, unreadable or holds no key.
    """
    path = Path(key_file)
    try:
        content = path.read_text(encoding='utf-8')
    except FileNotFoundError:
        raise CredentialError(f"API key file not found: {path}")
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialError(f"Could not read API key file {path}: {e}")

    for line in content.splitlines():
        key = line.strip()
        if key:
            return key

    raise CredentialError(f"API key file is empty: {path}")
