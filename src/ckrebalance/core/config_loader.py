"""
config_loader.py
- Loads and previews the YAML configuration file for the rebalancer.
- Missing or malformed files raise ConfigError so the run aborts before any I/O.
"""

import os
import yaml
from loguru import logger

from ckrebalance.core.errors import ConfigError

def load_yaml(path):
    """Load a YAML mapping from disk. Raises ConfigError if it cannot be read or parsed."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data

def preview_yaml(path, name=None):
    """
    Log a human-readable preview of a YAML file with secrets masked.
    Typically used at startup with --debug to verify which config was picked up.
    """
    if not os.path.exists(path):
        logger.warning(f"[config] File not found: {path}")
        return

    try:
        with open(path, "r") as f:
            lines = f.read().strip().splitlines()
    except OSError as e:
        logger.error(f"[config] Could not preview {path}: {e}")
        return

    masked = []
    for line in lines:
        key = line.split(":", 1)[0].strip()
        if key.endswith("password") and ":" in line:
            line = f"{line.split(':', 1)[0]}: ****"
        masked.append(line)
    logger.debug(f"[config] Loaded {name or path}:\n" + "\n".join(f"│ {line}" for line in masked))
