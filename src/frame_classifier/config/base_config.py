"""
Base configuration classes for the frame classifier pipeline.
Provides common configuration utilities and validation.
"""

import json
import yaml
from dataclasses import dataclass, asdict, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict


def _to_plain(value: Any) -> Any:
    """Convert enums and tuples into YAML/JSON friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


@dataclass
class BaseConfig:
    """
    Base configuration class with common settings.
    All configuration sections inherit from this.
    """

    def __post_init__(self):
        """Post-initialization validation."""
        self.validate()

    def validate(self):
        """Validate configuration parameters. Overridden by subclasses."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return _to_plain(asdict(self))

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def save(self, filepath: str):
        """Save configuration to file."""
        filepath = Path(filepath)
        if filepath.suffix == '.json':
            with open(filepath, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
        elif filepath.suffix in ['.yaml', '.yml']:
            with open(filepath, 'w') as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseConfig':
        """
        Build configuration from a plain dictionary.

        Nested dataclass sections are built recursively, enum fields are
        converted from their string values and lists become tuples.
        """
        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")

        kwargs = {}
        for name, value in data.items():
            field_type = known[name].type
            if isinstance(field_type, type) and is_dataclass(field_type) and isinstance(value, dict):
                kwargs[name] = field_type.from_dict(value)
            elif isinstance(field_type, type) and issubclass(field_type, Enum):
                kwargs[name] = field_type(value)
            elif isinstance(value, list):
                kwargs[name] = tuple(value)
            else:
                kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def load(cls, filepath: str) -> 'BaseConfig':
        """Load configuration from file."""
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        if filepath.suffix == '.json':
            with open(filepath, 'r') as f:
                data = json.load(f)
        elif filepath.suffix in ['.yaml', '.yml']:
            with open(filepath, 'r') as f:
                data = yaml.safe_load(f) or {}
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")

        return cls.from_dict(data)
