"""Run configuration.

Settings come from, in order of precedence:
1. Command line arguments
2. Environment variables (BOSH_DIRECTOR_URL, BOSH_USERNAME, ...)
3. Optional YAML config file (--config)
4. Defaults
"""

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from install_bat.common import ConfigError
from install_bat.director import DEFAULT_TIMEOUT
from install_bat.installer import RenderOptions
from install_bat.manifest import DEFAULT_REQUIRED_RELEASES

# Environment variable -> settings key
ENV_VARS = {
    'BOSH_DIRECTOR_URL': 'director_url',
    'INSTALL_BAT_OUTPUT_DIR': 'output_dir',
    'BOSH_USERNAME': 'username',
    'BOSH_PASSWORD': 'password',
    'BOSH_CA_CERT': 'ca_cert',
    'BOSH_INSECURE': 'insecure',
}

_TRUTHY = {'1', 'true', 'yes', 'on'}


@dataclass
class Settings:
    """Resolved settings for a single run."""
    director_url: str
    output_dir: Path
    username: str = 'admin'
    password: str = 'admin'
    insecure: bool = False
    ca_cert: Optional[Path] = None
    timeout: int = DEFAULT_TIMEOUT
    required_releases: frozenset = field(default_factory=lambda: DEFAULT_REQUIRED_RELEASES)
    windows_username: Optional[str] = None
    windows_password: Optional[str] = None
    external_ip: Optional[str] = None

    @property
    def render_options(self) -> RenderOptions:
        return RenderOptions(
            windows_username=self.windows_username,
            windows_password=self.windows_password,
            external_ip=self.external_ip,
        )


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def _optional_str(value) -> Optional[str]:
    # YAML turns values like 1234 into ints
    return None if value is None else str(value)


def load_config_file(path: Path) -> dict:
    """Load a YAML config file.

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def get_config_from_env() -> dict:
    """Get configuration from environment variables."""
    config = {}
    for env_var, key in ENV_VARS.items():
        if value := os.environ.get(env_var):
            config[key] = value
    return config


def load_settings(args: argparse.Namespace) -> Settings:
    """Merge CLI args, environment and config file into Settings.

    Raises:
        ConfigError: If director URL or output directory is missing
    """
    merged: dict = {}
    config_path = getattr(args, 'config', None)
    if config_path:
        merged.update(load_config_file(Path(config_path)))
    merged.update(get_config_from_env())

    for key in ('director_url', 'output_dir', 'username', 'password', 'ca_cert',
                'timeout', 'windows_username', 'windows_password', 'external_ip'):
        value = getattr(args, key, None)
        if value is not None:
            merged[key] = value
    if getattr(args, 'insecure', False):
        merged['insecure'] = True
    if getattr(args, 'releases', None):
        merged['releases'] = args.releases

    if not merged.get('director_url'):
        raise ConfigError("Director URL required (argument or BOSH_DIRECTOR_URL)")
    if not merged.get('output_dir'):
        raise ConfigError("Output directory required (argument or INSTALL_BAT_OUTPUT_DIR)")

    releases = merged.get('releases') or DEFAULT_REQUIRED_RELEASES
    if isinstance(releases, str):
        releases = [releases]

    try:
        timeout = int(merged.get('timeout', DEFAULT_TIMEOUT))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid timeout: {merged.get('timeout')}") from e

    ca_cert = merged.get('ca_cert')

    return Settings(
        director_url=str(merged['director_url']),
        output_dir=Path(merged['output_dir']),
        username=str(merged.get('username', 'admin')),
        password=str(merged.get('password', 'admin')),
        insecure=_as_bool(merged.get('insecure', False)),
        ca_cert=Path(ca_cert) if ca_cert else None,
        timeout=timeout,
        required_releases=frozenset(str(r) for r in releases),
        windows_username=_optional_str(merged.get('windows_username')),
        windows_password=_optional_str(merged.get('windows_password')),
        external_ip=_optional_str(merged.get('external_ip')),
    )
