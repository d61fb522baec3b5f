"""
Engine settings loaded from environment variables and YAML files.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "FSM_"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() == 'true'


@dataclass
class FSMSettings:
    """
    Tunables for a machine's observability.

    Attributes:
        metrics_enabled: Export Prometheus metrics on dispatch
        history_size: Number of transitions kept by get_history(), 0 disables it
        dev_mode: Record a repr() of the payload with every history entry
        log_level: Level used by configure_logging()
    """
    metrics_enabled: bool = True
    history_size: int = 20
    dev_mode: bool = False
    log_level: str = "INFO"

    def __post_init__(self):
        if self.history_size < 0:
            raise ValueError(f"history_size must be >= 0, got {self.history_size}")
        self.log_level = self.log_level.upper()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_env(cls) -> "FSMSettings":
        """Build settings from FSM_* environment variables"""
        return cls(**cls._read_env())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FSMSettings":
        """Build settings from a mapping, ignoring unknown keys"""
        return cls(**cls._coerce(data))

    @classmethod
    def from_file(cls, filepath: Union[str, Path]) -> "FSMSettings":
        """Load settings from a YAML file"""
        return cls(**cls._read_file(filepath))

    @classmethod
    def load(cls, filepath: Optional[Union[str, Path]] = None) -> "FSMSettings":
        """
        Merge environment and file settings.

        Values from ``filepath`` take precedence over the environment.
        """
        values = cls._read_env()
        if filepath is not None:
            values.update(cls._read_file(filepath))
        return cls(**values)

    @classmethod
    def _read_env(cls) -> Dict[str, Any]:
        """Read FSM_* variables, skipping malformed values with a warning"""
        values: Dict[str, Any] = {}
        for f in fields(cls):
            env_name = ENV_PREFIX + f.name.upper()
            env_value = os.getenv(env_name)
            if env_value is None:
                continue
            try:
                coerced = cls._coerce({f.name: env_value})
                cls(**coerced)
            except ValueError as e:
                logger.warning(f"Ignoring invalid {env_name}={env_value!r}: {e}")
                continue
            values.update(coerced)
        return values

    @classmethod
    def _read_file(cls, filepath: Union[str, Path]) -> Dict[str, Any]:
        filepath = Path(filepath)

        with open(filepath, 'r') as f:
            data = yaml.safe_load(f)

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {filepath} must contain a mapping")

        # Settings may be nested under an 'fsm' section
        if isinstance(data.get('fsm'), dict):
            data = data['fsm']

        logger.debug(f"Loaded FSM settings from {filepath}")
        return cls._coerce(data)

    @classmethod
    def _coerce(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}

        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown FSM setting: {key}")
                continue
            if key in ('metrics_enabled', 'dev_mode'):
                values[key] = _parse_bool(value)
            elif key == 'history_size':
                values[key] = int(value)
            else:
                values[key] = str(value)

        return values
