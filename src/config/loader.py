"""YAML loader for the site profile.

Two sources configure the assistant:

  1. ``config/config.yaml`` -- content checked into the repo (organisation
     name, contact details, link allowlist, FAQ rules), read here.
  2. ``.env`` / environment variables -- plumbing (keys, models, paths,
     thresholds), read by :class:`src.config.settings.Settings`.

The two do not overlap; nothing in the YAML is overridden from the
environment.
"""

from pathlib import Path

import yaml


def load_config(path: str = "config/config.yaml") -> dict:
    """Load the YAML config file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The parsed mapping, or ``{}`` when the file does not exist (the
        built-in profile is used then).

    Raises:
        ValueError: If the file's top level is not a mapping.
    """
    config_path = Path(path)
    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        # yaml.safe_load prevents arbitrary code execution from YAML.
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return loaded
