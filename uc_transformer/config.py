"""
Configuration for the factory call transformer and the bundle build.
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class OutputConfig:
    """Configuration for distribution file handling.

    Attributes:
        validate_before_write: Whether to parse generated code before writing
        atomic_write: Whether to use atomic file writes
    """

    validate_before_write: bool = True
    atomic_write: bool = True


@dataclass
class FormatterConfig:
    """Configuration for post-processing of distribution files."""

    # Whether formatting is enabled
    enabled: bool = False

    # Line length for the formatter
    line_length: int = 100

    # Python version target (e.g., "py312", "py313")
    target_version: str = "py312"


@dataclass
class UcConfig:
    """Configuration options for one transformation run."""

    # Name of the serialization framework module exposing the factories
    library: str = "churi"

    # Default distribution file, relative to the source root (guessed when unset)
    dist: str | None = None

    # Directory to create the temporary build directory in (system default when unset)
    temp_dir: str | None = None

    # Directory to emit rewritten modules and distribution files to
    out_dir: str | None = None

    # Formatter configuration
    formatter: FormatterConfig = field(default_factory=FormatterConfig)

    # Output configuration
    output: OutputConfig = field(default_factory=OutputConfig)

    @staticmethod
    def from_dict(d: dict) -> UcConfig:
        """Create a config from a dictionary."""
        config = UcConfig()
        for k, v in d.items():
            if k == "formatter" and isinstance(v, dict):
                config.formatter = FormatterConfig(**v)
            elif k == "output" and isinstance(v, dict):
                config.output = OutputConfig(**v)
            elif hasattr(config, k):
                setattr(config, k, v)
        return config

    @staticmethod
    def from_file(path: str | Path) -> UcConfig:
        """Load a config from a JSON file."""
        with open(path, encoding="utf-8") as f:
            return UcConfig.from_dict(json.load(f))

    @staticmethod
    def from_pyproject(path: str | Path) -> UcConfig | None:
        """Load a config from the ``[tool.uc_transformer]`` table of a pyproject.toml.

        Returns:
            The config, or None if the file or the table is missing
        """
        path = Path(path)
        if not path.is_file():
            return None
        with open(path, "rb") as f:
            data = tomllib.load(f)
        table = data.get("tool", {}).get("uc_transformer")
        if table is None:
            return None
        return UcConfig.from_dict(table)

    def to_dict(self) -> dict:
        """Convert config to a dictionary."""
        return {
            "library": self.library,
            "dist": self.dist,
            "temp_dir": self.temp_dir,
            "out_dir": self.out_dir,
            "formatter": {
                "enabled": self.formatter.enabled,
                "line_length": self.formatter.line_length,
                "target_version": self.formatter.target_version,
            },
            "output": {
                "validate_before_write": self.output.validate_before_write,
                "atomic_write": self.output.atomic_write,
            },
        }
