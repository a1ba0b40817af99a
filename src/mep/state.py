"""Module that holds the configuration + logging setup"""

import logging
import os
from os import path

import toml

from .maps import VAR_TO_DIR

config = {}

logger = logging.getLogger(__name__)


def get_nested_value(dictionary, keys_list):
    """
    Get a value from a nested dictionary using a list of keys.

    Args:
        dictionary (dict): The dictionary to traverse
        keys_list (list): List of keys to navigate the dictionary

    Returns:
        The value at the specified path or None if not found
    """
    current = dictionary

    try:
        for key in keys_list:
            current = current[key]
        return current
    except (KeyError, TypeError):
        return None


def deep_merge(base: dict, override: dict) -> dict:
    """Merge `override` into a copy of `base`, descending into tables."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def config_setup() -> None:
    """Create the user config folder and an empty config file if missing."""
    if not path.exists(VAR_TO_DIR["CONFIG"]):
        os.makedirs(VAR_TO_DIR["CONFIG"])
    if not path.exists(path.join(VAR_TO_DIR["CONFIG"], "config.toml")):
        with open(path.join(VAR_TO_DIR["CONFIG"], "config.toml"), "w"):
            pass


def load_config(user_config_path: str | None = None) -> dict:
    """
    Load the bundled configuration and merge the user's TOML file over it.

    Args:
        user_config_path (str | None): Path of the user's config file.
            Defaults to `config.toml` inside the platform config directory.

    Returns:
        dict: The merged configuration, also stored in `state.config`.
    """
    global config
    with open(path.join(path.dirname(__file__), "config/config.toml"), "r") as f:
        defaults = toml.loads(f.read())

    if user_config_path is None:
        user_config_path = path.join(VAR_TO_DIR["CONFIG"], "config.toml")
    overrides = {}
    if path.exists(user_config_path):
        with open(user_config_path, "r") as f:
            overrides = toml.loads(f.read())

    config = deep_merge(defaults, overrides)
    return config


def setup_logging(level: str | None = None) -> str:
    """
    Send log records to a file, the terminal belongs to the script list.

    Args:
        level (str | None): Logging level name, defaults to the configured one.

    Returns:
        str: Path of the log file.
    """
    level = (level or get_nested_value(config, ["logging", "level"]) or "INFO").upper()
    file_name = get_nested_value(config, ["logging", "file"]) or "mep.log"
    if not path.exists(VAR_TO_DIR["LOG"]):
        os.makedirs(VAR_TO_DIR["LOG"])
    log_path = path.join(VAR_TO_DIR["LOG"], file_name)

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger("mep")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    logger.debug("logging to %s at %s", log_path, level)
    return log_path
