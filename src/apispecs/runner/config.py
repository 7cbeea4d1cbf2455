"""
API Specs Run Configuration

Execution settings for a collection run, loadable from YAML.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from ..common import MAX_BODY_SIZE
from ..errors import ApiSpecsError

DEFAULT_USER_AGENT = 'api-specs/1.0'


class ConfigError(ApiSpecsError):
    kind = "ConfigError"


@dataclass
class RunConfig:
    """Configuration for request execution."""

    # Transport
    timeout: float = 30.0  # Per-request timeout in seconds
    follow_redirects: bool = True
    max_redirects: int = 10
    verify_ssl: bool = True
    user_agent: str = DEFAULT_USER_AGENT

    # Scheduling
    concurrency: int = 1  # 1 = strictly sequential, collection order

    # Capture
    max_body_size: int = MAX_BODY_SIZE  # Bodies beyond this are truncated with a marker

    # Logging
    log_level: str = "INFO"

    # Runtime scope, highest variable precedence
    runtime_variables: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.validate()

    def validate(self):
        """
        Check value ranges.

        Raises:
            ConfigError: If a setting is out of range
        """
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_redirects < 0:
            raise ConfigError(f"max_redirects must not be negative, got {self.max_redirects}")
        if self.max_body_size < 0:
            raise ConfigError(f"max_body_size must not be negative, got {self.max_body_size}")
        if not isinstance(self.log_level, str) or \
                self.log_level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RunConfig':
        """Create config from dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        values = dict(data)
        if 'runtime_variables' in values:
            if not isinstance(values['runtime_variables'] or {}, dict):
                raise ConfigError("runtime_variables must be a mapping")
            values['runtime_variables'] = {
                str(k): str(v) for k, v in (values['runtime_variables'] or {}).items()
            }
        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigError(f"Invalid config: {e}") from e

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'RunConfig':
        """Load config from YAML file."""
        path = Path(yaml_path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        return cls.from_dict(data)

    def with_overrides(self, **overrides: Any) -> 'RunConfig':
        """Return a copy with the non-None overrides applied."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['runtime_variables'] = dict(self.runtime_variables)
        for key, value in overrides.items():
            if value is None:
                continue
            if key == 'runtime_variables':
                data[key].update(value)
            else:
                data[key] = value
        return RunConfig.from_dict(data)
