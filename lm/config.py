"""
Credential store

Credentials live in a YAML file, ~/.lm.yml by default (LM_CONFIG overrides):

    username: me@example.com
    access_token: ...
    refresh_token: ...
    installation_key:
      secret: <base64>
      private_key: <base64 PKCS#8 DER>
      installation_id: <uuid>
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .crypto.installation_key import InstallationKey
from .errors import ConfigError
from .types import Credentials

_LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LM_CONFIG"
CONFIG_FILENAME = ".lm.yml"
REQUIRED_FIELDS = ("username", "access_token", "refresh_token")


@dataclass
class Config:
    """Contents of the credential file"""
    username: str
    access_token: str
    refresh_token: str
    installation_key: Optional[InstallationKey] = None

    @classmethod
    def from_credentials(cls, credentials: Credentials) -> "Config":
        return cls(
            username=credentials.username,
            access_token=credentials.access_token,
            refresh_token=credentials.refresh_token,
            installation_key=credentials.installation_key,
        )

    def to_credentials(self) -> Credentials:
        return Credentials(
            username=self.username,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            installation_key=self.installation_key,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "username": self.username,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
        }
        if self.installation_key is not None:
            data["installation_key"] = self.installation_key.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """
        Raises:
            ConfigError: If a required field is missing
            KeyDecodingError: If the installation key is corrupted
        """
        if any(not isinstance(data.get(name), str) for name in REQUIRED_FIELDS):
            raise ConfigError("Configuration incomplete. Please run 'lm login' first.")

        raw_key = data.get("installation_key")
        return cls(
            username=data["username"],
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            installation_key=InstallationKey.from_dict(raw_key) if raw_key else None,
        )


def get_config_path() -> Path:
    """Path of the credential file"""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / CONFIG_FILENAME


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} is not a mapping")
    return data


def _write_yaml(path: Path, data: Dict[str, Any]) -> None:
    try:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        # Holds tokens and a private key
        path.chmod(0o600)
    except OSError as e:
        raise ConfigError(f"Failed to write config file {path}: {e}")


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load stored credentials.

    Raises:
        ConfigError: If the file is missing, unreadable or incomplete
        KeyDecodingError: If the stored installation key is corrupted
    """
    path = path or get_config_path()
    if not path.exists():
        raise ConfigError("Configuration file not found. Please run 'lm login' first.")

    config = Config.from_dict(_read_yaml(path))
    _LOGGER.debug("Loaded configuration for user: %s", config.username)
    return config


def save_config(config: Config, path: Optional[Path] = None) -> None:
    """Write credentials, replacing the whole file"""
    path = path or get_config_path()
    _write_yaml(path, config.to_dict())
    _LOGGER.debug("Saved configuration for user: %s", config.username)


def load_installation_key(path: Optional[Path] = None) -> Optional[InstallationKey]:
    """
    Load just the installation key, even from a file without tokens.

    Returns:
        The key, or None if the file or section does not exist

    Raises:
        KeyDecodingError: If the stored key is corrupted
    """
    path = path or get_config_path()
    if not path.exists():
        return None

    raw_key = _read_yaml(path).get("installation_key")
    if not raw_key:
        return None

    key = InstallationKey.from_dict(raw_key)
    _LOGGER.debug("Loaded installation key: %s", key.installation_id)
    return key


def save_installation_key(key: InstallationKey, path: Optional[Path] = None) -> None:
    """Write only the installation_key section, keeping the rest of the file"""
    path = path or get_config_path()
    data = _read_yaml(path) if path.exists() else {}
    data["installation_key"] = key.to_dict()
    _write_yaml(path, data)
    _LOGGER.debug("Saved installation key: %s", key.installation_id)


def clear_config(path: Optional[Path] = None) -> None:
    """Remove the credential file (logout)"""
    path = path or get_config_path()
    if not path.exists():
        _LOGGER.warning("Configuration file does not exist, nothing to clear")
        return

    try:
        path.unlink()
    except OSError as e:
        raise ConfigError(f"Failed to remove config file {path}: {e}")
    _LOGGER.debug("Configuration file cleared")
