"""
Configuration management for ogremax.

Provides the loader configuration dataclass and JSON persistence helpers.
"""

import json
from dataclasses import dataclass, field, asdict
from typing import Dict, Any
from pathlib import Path

from ..core.constants import (
    DEFAULT_ENCODING,
    DOCUMENT_SUFFIX,
    MATERIAL_SUFFIX,
    WIDE_INDEX_THRESHOLD,
)
from ..core.errors import LoaderStateError


@dataclass
class LoaderConfig:
    """
    Configuration for AssetLoader.

    Attributes:
        texture_path: Base path handed to the texture resolver
        encoding: Text encoding of fetched documents
        document_suffix: Suffix appended to referenced mesh / skeleton names
        material_suffix: Suffix of the material script next to a scene
        wide_index_threshold: Vertex count above which indices become uint32
        extra: Unrecognized keys, kept for round trips
    """

    texture_path: str = ''
    encoding: str = DEFAULT_ENCODING
    document_suffix: str = DOCUMENT_SUFFIX
    material_suffix: str = MATERIAL_SUFFIX
    wide_index_threshold: int = WIDE_INDEX_THRESHOLD

    # Additional fields
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.texture_path, str):
            raise LoaderStateError(
                f"texture_path must be a string, got {type(self.texture_path).__name__}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'LoaderConfig':
        """Create config from dictionary."""
        known_fields = {f.name for f in cls.__dataclass_fields__.values()} - {'extra'}
        known_kwargs = {k: v for k, v in config_dict.items() if k in known_fields}
        extra_kwargs = dict(config_dict.get('extra', {}))
        extra_kwargs.update({
            k: v for k, v in config_dict.items()
            if k not in known_fields and k != 'extra'
        })

        config = cls(**known_kwargs)
        config.extra = extra_kwargs
        return config

    def update(self, **kwargs) -> 'LoaderConfig':
        """Return a new config with updated values."""
        config_dict = self.to_dict()
        config_dict.update(kwargs)
        return LoaderConfig.from_dict(config_dict)


def load_config(filepath: str) -> LoaderConfig:
    """
    Load configuration from JSON file.

    Args:
        filepath: Path to JSON config file

    Returns:
        LoaderConfig object
    """
    filepath = Path(filepath)
    with open(filepath, 'r') as f:
        config_dict = json.load(f)
    return LoaderConfig.from_dict(config_dict)


def save_config(config: LoaderConfig, filepath: str) -> None:
    """
    Save configuration to JSON file.

    Args:
        config: LoaderConfig object to save
        filepath: Output file path
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)
