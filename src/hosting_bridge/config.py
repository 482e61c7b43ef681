"""Configuration loading for hosting backends.

The configuration hierarchy, lowest precedence first:

- built-in defaults (``DEFAULT_CONFIG``)
- a YAML file (``HOSTING_CONFIG`` or an explicit path)
- environment variables, falling back to `.env.defaults` / `.env`

Credentials are only ever read here and handed to the registry; they are
never logged.
"""
from __future__ import annotations

import copy
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

from .exceptions import ConfigurationError
from .normalize import to_bool, to_int

logger = logging.getLogger(__name__)

MAX_CONFIG_SIZE = 1024 * 1024  # 1MB
ENV_FILES = ('.env.defaults', '.env')

DEFAULT_CONFIG: Dict[str, Any] = {
    'default': 'forge',
    'cache': {
        'enabled': True,
        'prefix': 'hosting:',
        'ttl': {
            'servers': 300,
            'sites': 300,
            'ssl': 3600,
            'databases': 600,
            'deployments': 0,
        },
    },
    'rate_limits': {
        'enabled': True,
        'per_minute': None,
    },
    'providers': {
        'forge': {
            'driver': 'forge',
            'api_token': None,
            'api_url': 'https://forge.laravel.com/api/v1',
        },
        'ploi': {
            'driver': 'ploi',
            'api_token': None,
            'api_url': 'https://ploi.io/api',
        },
    },
}

# env var -> (section path, value parser)
ENV_OVERRIDES = {
    'HOSTING_PROVIDER': (('default',), str),
    'HOSTING_CACHE_ENABLED': (('cache', 'enabled'), to_bool),
    'HOSTING_RATE_LIMIT_ENABLED': (('rate_limits', 'enabled'), to_bool),
    'HOSTING_RATE_LIMIT_PER_MINUTE': (('rate_limits', 'per_minute'), to_int),
    'FORGE_API_TOKEN': (('providers', 'forge', 'api_token'), str),
    'FORGE_API_URL': (('providers', 'forge', 'api_url'), str),
    'PLOI_API_TOKEN': (('providers', 'ploi', 'api_token'), str),
    'PLOI_API_URL': (('providers', 'ploi', 'api_url'), str),
}


def default_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(path: str | os.PathLike | None = None) -> Dict[str, Any]:
    """Build the effective configuration.

    Args:
        path: YAML file to load. Defaults to ``HOSTING_CONFIG`` when set;
            with neither, only defaults and environment apply.

    Returns:
        Configuration dict in the shape of ``DEFAULT_CONFIG``

    Raises:
        ConfigurationError: If the file is missing, too large, not valid
            YAML, or does not contain a mapping at its root
    """
    config = default_config()

    if path is None:
        path = get_setting('HOSTING_CONFIG')

    if path:
        _merge(config, read_config_file(path))

    apply_env_overrides(config)
    return config


def read_config_file(path: str | os.PathLike) -> Dict[str, Any]:
    """Load and validate a YAML configuration file."""
    config_path = Path(path)
    try:
        file_size = config_path.stat().st_size
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}", str(config_path)) from e

    # Security: Limit config file size to 1MB
    if file_size > MAX_CONFIG_SIZE:
        logger.error(f"Configuration file too large: {file_size} bytes")
        raise ConfigurationError(f"Configuration file too large: {file_size} bytes", str(config_path))

    try:
        with config_path.open('r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}", str(config_path)) from e

    if data is None:
        return {}

    # Validate config structure
    if not isinstance(data, dict):
        logger.error("Invalid configuration: root must be a dictionary")
        raise ConfigurationError("Invalid configuration: root must be a dictionary", str(config_path))

    logger.info(f"Configuration loaded from {config_path}")
    return data


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay environment variables (or their `.env` defaults) onto ``config``."""
    for key, (section_path, parse) in ENV_OVERRIDES.items():
        raw = get_setting(key)
        if raw is None or raw == '':
            continue

        value = parse(raw)
        if value is None:
            raise ConfigurationError(f"Invalid value for {key}: {raw!r}")

        target = config
        for part in section_path[:-1]:
            target = target.setdefault(part, {})
        target[section_path[-1]] = value
    return config


def get_setting(key: str, fallback: str | None = None) -> str | None:
    """Environment variable first, then the `.env` files, then fallback."""
    value = os.environ.get(key)
    if value is not None:
        return value
    return load_defaults().get(key, fallback)


def _env_search_dirs() -> list[Path]:
    checkout = Path(__file__).resolve().parents[2]
    dirs = [checkout]
    try:
        cwd = Path.cwd().resolve()
    except OSError:
        # working directory was removed underneath us
        return dirs
    if cwd != checkout:
        dirs.append(cwd)
    return dirs


def read_env_files(dirs: list[Path]) -> Dict[str, str]:
    """Merge ``ENV_FILES`` found in ``dirs``.

    Every `.env.defaults` is applied before any `.env`, so a local `.env`
    overrides shipped defaults regardless of which directory holds it.
    """
    merged: Dict[str, str] = {}
    for name in ENV_FILES:
        for directory in dirs:
            path = directory / name
            if path.is_file():
                merged.update(_parse_env_file(path))
    return merged


@lru_cache(maxsize=1)
def load_defaults() -> Dict[str, str]:
    """Backend credentials and overrides kept in `.env` files.

    Looks in the source checkout and the working directory. Installed
    deployments usually have neither and rely on real environment variables.
    """
    return read_env_files(_env_search_dirs())


def _parse_env_file(env_path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    with env_path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            line = line.removeprefix("export ")
            key, sep, value = line.partition("=")
            if not sep:
                continue
            value = value.strip()
            if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
                value = value[1:-1]
            values[key.strip()] = value
    return values
