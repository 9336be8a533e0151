"""
State shared by the transformer and the bundler during one run.
"""

from __future__ import annotations

import logging
import tempfile
from functools import cached_property
from pathlib import Path

from .build.bundle_registry import BundleRegistry
from .config import UcConfig
from .diagnostics import report_errors
from .errors import Diagnostic
from .project.package_info import PackageInfo
from .project.program import Program
from .project.symbols import SymbolTable
from .rewrite.library import UcLibrary
from .rewrite.names import NameRegistry
from .rewrite.root_dir import RootDirTracker

logger = logging.getLogger(__name__)


class UcSetup:
    """Owns the program, configuration and registries of a run."""

    def __init__(self, program: Program, config: UcConfig | None = None):
        self.program = program
        self.config = config or UcConfig()
        self.names = NameRegistry()
        self.root = RootDirTracker()
        self.library = UcLibrary(self)
        self.bundle_registry = BundleRegistry(self)

    @property
    def symbols(self) -> SymbolTable:
        return self.program.symbols

    @cached_property
    def package_info(self) -> PackageInfo:
        return PackageInfo.load(self.program)

    @cached_property
    def default_dist(self) -> Path:
        """Distribution file of the default bundle."""
        if self.config.dist:
            return (self.program.root_dir / self.config.dist).resolve()
        return self.package_info.guess_dist_file()

    def dist_output_path(self, dist_file: Path) -> Path:
        """Path a distribution file is actually written to.

        Distribution files are relocated under ``out_dir`` when one is configured,
        next to the rewritten modules.
        """
        if not self.config.out_dir:
            return dist_file
        try:
            relative = dist_file.relative_to(self.program.root_dir)
        except ValueError:
            return dist_file
        return Path(self.config.out_dir).resolve() / relative

    def create_temp_dir(self) -> Path:
        temp_dir = Path(tempfile.mkdtemp(prefix="uc-compiler-", dir=self.config.temp_dir))
        logger.debug("Created build directory %s", temp_dir)
        return temp_dir

    def report_errors(self, diagnostics: list[Diagnostic]) -> bool:
        """Print diagnostics.

        Returns:
            Whether any of them is an error
        """
        return report_errors(diagnostics)
