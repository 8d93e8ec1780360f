#!/usr/bin/env python3

import os
import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import logging
import sys

import yaml

from .exit_codes import ConfigError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("regsync")

# Upper bound on concurrently running units, whatever the config says
MAX_WORKERS = 6
MAX_RETRIES = 3


def default_max_workers() -> int:
    """Worker pool bound: min(CPU count, 6)."""
    return min(os.cpu_count() or 1, MAX_WORKERS)


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. REGSYNC_CONFIG environment variable
    2. ~/.regsync/ directory
    """
    if 'REGSYNC_CONFIG' in os.environ:
        path = Path(os.environ['REGSYNC_CONFIG'])
        if path.exists():
            return path

    regsync_dir = Path.home() / '.regsync'
    for filename in ['config.json', 'config.toml', 'config.yaml', 'config.yml']:
        path = regsync_dir / filename
        if path.exists() and path.stat().st_size > 10:  # Not empty/trivial
            return path

    # If no file exists, return default path for saving
    return regsync_dir / 'config.json'


def load_config():
    """Load configuration from file."""
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    if config_path.exists():
        try:
            if config_path.suffix.lower() in ['.toml']:
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif config_path.suffix.lower() in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                with open(config_path, 'r') as f:
                    file_config = json.load(f)

            config = merge_configs(config, file_config)
        except Exception as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    config = apply_env_overrides(config)

    return config


def get_default_config():
    """Get default configuration."""
    return {
        "general": {
            "max_workers": MAX_WORKERS,
            "command_timeout_seconds": 0,  # 0 = no timeout
            "retries": MAX_RETRIES,
        },
        "skopeo": {
            "path": "skopeo",
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        },
    }


def generate_config_example():
    """Write an example configuration file to ~/.regsync/config.json.example."""
    config = get_default_config()
    config_path = Path.home() / '.regsync' / 'config.json.example'
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)

    logger.info(f"An example configuration file has been saved to {config_path}")
    return config_path


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: REGSYNC_SECTION_KEY
    For example: REGSYNC_GENERAL_MAX_WORKERS=2
    """
    env_prefix = "REGSYNC_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == "REGSYNC_CONFIG":
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', '1', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', '0', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                if i + best_match_len == len(key_parts):
                    current_level[matched_key] = typed_value
                    break

                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    break
            else:
                break

    return config


def configure_logging(config, debug: bool = False) -> None:
    """Apply the [logging] section (or --debug) to the regsync logger."""
    log_config = config.get('logging', {})
    level = 'DEBUG' if debug else str(log_config.get('level', 'INFO')).upper()
    logger.setLevel(getattr(logging, level, logging.INFO))


# Source YAML (--source-yaml)

@dataclass(frozen=True)
class RegistryConfig:
    """One registry entry of a source YAML file."""
    tls_verify: bool = True
    cert_dir: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    images: Dict[str, List[str]] = field(default_factory=dict)


class _SourceLoader(yaml.SafeLoader):
    """SafeLoader that keeps numeric-looking scalars (tags like 3.10) as written."""


_SourceLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp) for tag, regexp in resolvers
        if tag not in ('tag:yaml.org,2002:int', 'tag:yaml.org,2002:float', 'tag:yaml.org,2002:timestamp')
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _parse_registry(registry: str, entry: Any) -> RegistryConfig:
    if entry is None:
        entry = {}
    if not isinstance(entry, dict):
        raise ConfigError(f"Registry '{registry}': expected a mapping")

    tls_verify = entry.get('tls-verify', True)
    if not isinstance(tls_verify, bool):
        raise ConfigError(f"Registry '{registry}': 'tls-verify' must be true or false")

    credentials = entry.get('credentials') or {}
    if not isinstance(credentials, dict):
        raise ConfigError(f"Registry '{registry}': 'credentials' must be a mapping")

    images_entry = entry.get('images') or {}
    if not isinstance(images_entry, dict):
        raise ConfigError(f"Registry '{registry}': 'images' must map repository names to tag lists")

    images: Dict[str, List[str]] = {}
    for repo_name, tags in images_entry.items():
        if tags is None:
            tags = []
        if not isinstance(tags, list):
            raise ConfigError(f"Registry '{registry}', image '{repo_name}': tags must be a list")
        images[str(repo_name)] = [str(tag) for tag in tags]

    cert_dir = entry.get('cert-dir')
    return RegistryConfig(
        tls_verify=tls_verify,
        cert_dir=str(cert_dir) if cert_dir else None,
        username=credentials.get('username'),
        password=credentials.get('password'),
        images=images,
    )


def load_source_config(path) -> Dict[str, RegistryConfig]:
    """
    Load a multi-registry source YAML file.

    Raises:
        ConfigError: file missing, unreadable, or not in the expected shape
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = yaml.load(f, Loader=_SourceLoader)
    except OSError as e:
        raise ConfigError(f"Cannot read source YAML {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid source YAML {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Source YAML {path} must map registry hosts to settings")

    return {str(registry): _parse_registry(str(registry), entry) for registry, entry in data.items()}
