# epix_claim/vesting/config.py
import os
import configparser
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from epix_claim.vesting.core.errors import ConfigurationError
from epix_claim.vesting.core.units import EPIX

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./state/vesting.db"
DEFAULT_VESTING_PERIOD = 365 * 24 * 60 * 60
DEFAULT_SNAPSHOT_API_URL = "https://snapapi.epix.zone"

ENV_PREFIX = "EPIX_VESTING_"

# Keys coerced to positive integers
INT_KEYS = ("vesting_period", "snapshot_timeout", "batch_size", "max_deposit_chunk")


def default_config():
    return {
        "database_url": DEFAULT_DATABASE_URL,
        "vesting_period": DEFAULT_VESTING_PERIOD,
        "admin_address": "",
        "snapshot_api_url": DEFAULT_SNAPSHOT_API_URL,
        "snapshot_timeout": 10,
        "batch_size": 50,
        "max_deposit_chunk": 1_000_000 * EPIX
    }


def _config_file_candidates():
    return [
        Path("./config/vesting.cfg"),                  # Repository config
        Path("./vesting.cfg"),                         # Root directory config
        Path.home() / ".epix_claim" / "vesting.cfg",   # User config
    ]


def _read_config_file(config_file: Path):
    """Read a JSON config file, falling back to INI with a [Vesting] section."""
    try:
        with open(config_file, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError:
        config_parser = configparser.ConfigParser()
        config_parser.read(config_file)
        if "Vesting" not in config_parser:
            logger.warning(f"Config file {config_file} has no [Vesting] section")
            return {}
        return dict(config_parser["Vesting"])


def load_vesting_config(config_override=None, config_file=None):
    """
    Load vesting configuration from multiple sources with precedence.

    Precedence:
    1. Environment Variables (EPIX_VESTING_*), after loading a .env file
    2. `config_override` dictionary (if provided)
    3. Config file (JSON or INI): `config_file` if given, else the first of
       ./config/vesting.cfg, ./vesting.cfg, ~/.epix_claim/vesting.cfg
    4. Default values

    Args:
        config_override: Optional dictionary to override loaded config.
        config_file: Optional explicit config file path.

    Returns:
        dict: The final vesting configuration.

    Raises:
        ConfigurationError: If a value cannot be converted or is out of range.
    """
    load_dotenv()
    config = default_config()

    candidates = [Path(config_file)] if config_file else _config_file_candidates()
    for candidate in candidates:
        if candidate.exists():
            try:
                file_config = _read_config_file(candidate)
            except OSError as e:
                raise ConfigurationError(f"Error reading vesting config file {candidate}: {e}")
            config.update(file_config)
            logger.info(f"Loaded vesting config from: {candidate}")
            break
    else:
        logger.debug("No vesting configuration file found, using defaults")

    if config_override and isinstance(config_override, dict):
        config.update(config_override)
        logger.debug(f"Vesting config updated with override dict: {sorted(config_override)}")

    env_config = {}
    for key in default_config():
        value = os.environ.get(ENV_PREFIX + key.upper())
        if value is not None:
            env_config[key] = value
    if env_config:
        config.update(env_config)
        logger.info(f"Vesting config updated with environment variables: {sorted(env_config)}")

    for key in INT_KEYS:
        try:
            config[key] = int(config[key])
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid integer for {key}: {config[key]!r}")
        if config[key] <= 0:
            raise ConfigurationError(f"{key} must be positive, got {config[key]}")

    config["snapshot_api_url"] = str(config["snapshot_api_url"]).rstrip("/")
    return config


def save_vesting_config(config, config_path="./config/vesting.cfg"):
    """
    Save vesting configuration to a JSON file.

    Args:
        config: Dictionary containing vesting configuration to save.
        config_path: Destination file.

    Returns:
        Path: The file written.
    """
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(config, f, indent=4)
    logger.info(f"Vesting configuration saved to: {path}")
    return path
