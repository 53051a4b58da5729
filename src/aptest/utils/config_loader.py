"""
Settings and credential loading.

Tool settings come from an optional ``aptest.yaml`` next to ``Move.toml``;
anything it does not set falls back to the defaults below. The account to
fund is read from the Aptos CLI's own ``.aptos/config.yaml``.
"""
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from aptest.errors import ConfigError

logger = logging.getLogger(__name__)

SETTINGS_FILE = "aptest.yaml"


@dataclass(frozen=True)
class Settings:
    """Binaries, endpoints and constants used to run the local network."""

    aptos_cli: str = "aptos"
    npm_cli: str = "npm"
    validator_command: List[str] = field(default_factory=lambda: ["aptos-node", "--test"])
    faucet_command: List[str] = field(default_factory=lambda: ["aptos-faucet"])
    chain_id: str = "TESTING"
    faucet_address: str = "0.0.0.0"
    faucet_port: int = 8000
    validator_url: str = "http://localhost:8080"
    faucet_url: str = "http://localhost:8000"
    root_key_marker: str = "Aptos root key path"
    # The validator never closes stdout, so readiness is judged from a fixed-size
    # first read that is large enough to hold the root key line.
    snapshot_bytes: int = 450
    health_path: str = "/v1"
    probe_interval: float = 1.0
    shutdown_grace_seconds: float = 5.0
    test_command: List[str] = field(default_factory=lambda: ["npm", "run", "test"])
    account_config: str = ".aptos/config.yaml"
    profile: str = "default"
    log_file: str = "validator.log"

    @property
    def health_url(self) -> str:
        return self.validator_url.rstrip("/") + "/" + self.health_path.lstrip("/")


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load tool settings, overlaying an optional YAML file on the defaults.

    Args:
        path: Settings file. If None, ``aptest.yaml`` in the working directory
            is used when it exists.

    Returns:
        Settings: resolved settings.

    Raises:
        ConfigError: If an explicitly given file is missing, the YAML is
            malformed, or it contains unknown keys.
    """
    explicit = path is not None
    settings_path = Path(path) if explicit else Path.cwd() / SETTINGS_FILE

    if not settings_path.exists():
        if explicit:
            raise ConfigError(f"Settings file not found: {settings_path}")
        logger.debug("No %s found, using default settings", SETTINGS_FILE)
        return Settings()

    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse settings file {settings_path}", str(e)) from e

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {settings_path} must contain a mapping")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(
            f"Unknown keys in settings file {settings_path}",
            ", ".join(str(key) for key in unknown),
        )

    logger.debug("Loaded settings overrides from %s: %s", settings_path, sorted(data))
    return replace(Settings(), **_coerce(data))


def _coerce(data: Dict[str, Any]) -> Dict[str, Any]:
    """Accept shell-style strings for command settings."""
    coerced = dict(data)
    for key in ("validator_command", "faucet_command", "test_command"):
        value = coerced.get(key)
        if isinstance(value, str):
            coerced[key] = value.split()
    return coerced


def fetch_account(config_path: str = ".aptos/config.yaml", profile: str = "default") -> str:
    """
    Read the account address of a profile from the Aptos CLI config file.

    Args:
        config_path: Path to the config written by ``aptos init``.
        profile: Profile whose account is returned.

    Returns:
        str: The account address.

    Raises:
        ConfigError: If the file is missing, unparsable, or has no account
            for the profile.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Couldn't find {config_path}. Did you run aptos init?")

    try:
        with open(path, "r", encoding="utf-8") as f:
            config_yaml = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError("Could not parse aptos config file", str(e)) from e

    profiles = config_yaml.get("profiles") if isinstance(config_yaml, dict) else None
    entry = profiles.get(profile) if isinstance(profiles, dict) else None
    account = entry.get("account") if isinstance(entry, dict) else None

    if not account or not isinstance(account, str):
        raise ConfigError(f"Could not find a {profile} account in config file {config_path}")
    return account
