"""
Configuration management for the photo grouper.
"""

import os
import re
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Dict, Any, Optional, Union

import yaml

logger = logging.getLogger(__name__)


@dataclass
class GroupingConfig:
    """Tunable parameters shared by every grouping stage."""
    time_threshold: int = 15  # minutes, reporting only
    max_time_gap: int = 60  # minutes, hard ceiling for joining a cluster
    iso_tolerance: float = 400.0  # ~2 stops
    aperture_tolerance: float = 1.5  # ~1.5 stops
    max_cluster_size: int = 25
    max_standalone_representatives: int = 3
    max_workers: int = 8
    signal_report_name: str = "culling_report.json"

    def __post_init__(self):
        minimums = {
            'max_time_gap': 0,
            'max_cluster_size': 1,
            'max_standalone_representatives': 0,
            'max_workers': 1,
        }
        for name, minimum in minimums.items():
            value = getattr(self, name)
            if value < minimum:
                raise ValueError(f"{name} must be at least {minimum}, got {value}")
        if self.iso_tolerance < 0 or self.aperture_tolerance < 0:
            raise ValueError("Exposure tolerances must not be negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GroupingConfig':
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            if value is None:
                continue
            default = known[key].default
            values[key] = type(default)(value)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _expand_env_vars(obj: Union[Dict, Any]) -> Union[Dict, Any]:
    """
    Recursively expand environment variables in config values.
    Supports ${VAR_NAME} syntax.
    """
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        pattern = r'\$\{([^}]+)\}'
        def replace_var(match):
            return os.getenv(match.group(1), match.group(0))
        return re.sub(pattern, replace_var, obj)
    else:
        return obj


def load_config(config_path: Optional[Union[str, Path]] = None) -> GroupingConfig:
    """
    Load grouping configuration from a YAML file.

    The file may hold the settings at the top level or under a
    ``grouping:`` key. Missing files fall back to the defaults.

    Args:
        config_path: Path to config file. If None, defaults are returned.

    Returns:
        GroupingConfig instance
    """
    if config_path is None:
        return GroupingConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}. Using defaults.")
        return GroupingConfig()

    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        logger.warning(f"Config file {config_path} is not a mapping. Using defaults.")
        return GroupingConfig()

    raw = _expand_env_vars(raw)
    section = raw.get('grouping', raw)
    config = GroupingConfig.from_dict(section)
    logger.info(f"Loaded configuration from {config_path}")
    return config
