"""Configuration overrides for runtime tunables.

Precedence, lowest to highest: ``Constants`` defaults, YAML config file,
environment variables, CLI arguments.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import yaml

from constants import Constants

logger = logging.getLogger(__name__)

# YAML key -> (Constants attribute, type)
_CONFIG_KEYS = {
    "registry": ("REGISTRY_URL_NPM", str),
    "timeout": ("REQUEST_TIMEOUT", float),
    "download_timeout": ("DOWNLOAD_TIMEOUT", float),
    "retries": ("HTTP_RETRY_MAX", int),
    "download_retries": ("DOWNLOAD_RETRY_MAX", int),
    "concurrency": ("DOWNLOAD_CONCURRENCY", int),
    "host_package": ("HOST_PACKAGE_NAME", str),
}


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    """Load the ``install`` section (or the whole mapping) of a YAML config file.

    Args:
        config_path: Path to the YAML file.

    Returns:
        Configuration dict, empty when the file is absent.
    """
    if not config_path:
        return {}
    if not os.path.isfile(config_path):
        logger.warning("Config file not found: %s", config_path)
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        return {}
    section = data.get("install", data)
    return section if isinstance(section, dict) else {}


def apply_config(config: Dict[str, Any]) -> None:
    """Apply config file values onto ``Constants``; unknown keys are ignored."""
    for key, value in config.items():
        target = _CONFIG_KEYS.get(key)
        if target is None:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        attr, cast = target
        try:
            setattr(Constants, attr, cast(value))
        except (TypeError, ValueError):
            logger.warning("Invalid value for %s: %r", key, value)


def apply_env_overrides() -> None:
    """Apply DEPINSTALL_REGISTRY / DEPINSTALL_TIMEOUT from the environment."""
    registry = os.environ.get(Constants.REGISTRY_ENV)
    if registry and registry.strip():
        Constants.REGISTRY_URL_NPM = registry.strip()
    timeout = os.environ.get(Constants.TIMEOUT_ENV)
    if timeout:
        try:
            Constants.REQUEST_TIMEOUT = float(timeout)
        except ValueError:
            logger.warning("Invalid %s value: %s", Constants.TIMEOUT_ENV, timeout)


def apply_cli_overrides(args: Any) -> None:
    """Apply CLI overrides, which take precedence over config and environment."""
    if getattr(args, "REGISTRY", None):
        Constants.REGISTRY_URL_NPM = args.REGISTRY
    if getattr(args, "TIMEOUT", None) is not None:
        Constants.REQUEST_TIMEOUT = float(args.TIMEOUT)
    if getattr(args, "RETRIES", None) is not None:
        Constants.HTTP_RETRY_MAX = int(args.RETRIES)
