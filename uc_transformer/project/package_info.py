"""
Project metadata used to guess default distribution file locations.
"""

from __future__ import annotations

import logging
import re
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .program import Program

logger = logging.getLogger(__name__)

DIST_FILE_SUFFIX = "uc_lib.py"


class PackageInfo:
    """Locates the main package of a program."""

    def __init__(self, program: Program, name: str | None = None):
        self._program = program
        self.name = name

    @classmethod
    def load(cls, program: Program) -> PackageInfo:
        """Read the project name from the nearest pyproject.toml, if any."""
        for directory in (program.root_dir, program.root_dir.parent):
            pyproject = directory / "pyproject.toml"
            if not program.exists(pyproject):
                continue
            data = tomllib.loads(program.read_text(pyproject))
            name = data.get("project", {}).get("name")
            if name:
                logger.debug("Project name %r read from %s", name, pyproject)
                return cls(program, name)
        return cls(program)

    @property
    def main_package(self) -> str | None:
        """Top-level package holding the project's entry point."""
        if self.name:
            package = re.sub(r"[-.]+", "_", self.name).lower()
            if self._program.has_module(package):
                return package
        packages = {
            module
            for module in (self._program.module_name(p) for p in self._program.module_paths())
            if module and "." not in module and self._program.module_path(module).name == "__init__.py"
        }
        if len(packages) == 1:
            return packages.pop()
        return None

    @property
    def index_dir(self) -> Path:
        """Directory distribution files are placed in by default."""
        package = self.main_package
        if package is None:
            return self._program.root_dir
        return self._program.module_path(package).parent

    def guess_dist_file(self, bundle_name: str | None = None) -> Path:
        """Guess a distribution file path.

        Args:
            bundle_name: Snake-cased name of a named bundle, or None for the default bundle
        """
        file_name = f"{bundle_name}_{DIST_FILE_SUFFIX}" if bundle_name else DIST_FILE_SUFFIX
        return self.index_dir / file_name
