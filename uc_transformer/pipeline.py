"""
One run of the transformer: rewrite a program, then build its distribution modules.
"""

from __future__ import annotations

import ast
import logging
from collections.abc import Mapping
from pathlib import Path

from .build.bundler import UcBundler
from .config import UcConfig
from .project.program import Program
from .rewrite.transformer import UcTransformer
from .uc_setup import UcSetup

logger = logging.getLogger(__name__)


class UcPipeline:
    """Rewrites factory calls of a program and builds distribution modules."""

    def __init__(
        self,
        root_dir: str | Path,
        config: UcConfig | None = None,
        vfs: Mapping[str | Path, str] | None = None,
        module_files: list[str | Path] | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            root_dir: Source root of the program
            config: Run configuration
            vfs: In-memory files overlaying the source root
            module_files: Modules to process. Discovered below the root when omitted.
        """
        self.program = Program(root_dir, module_files=module_files, vfs=vfs)
        self.setup = UcSetup(self.program, config)
        self.bundler = UcBundler(self.setup)
        self.transformer = UcTransformer(self.setup, self.bundler)
        self._rewritten: dict[Path, ast.Module] | None = None

    def transform(self) -> dict[Path, ast.Module]:
        """Rewrite the program once.

        Returns:
            Final forms of rewritten modules, by file path

        Raises:
            UcSourceError: If a factory call can not be rewritten
        """
        if self._rewritten is None:
            self._rewritten = self.transformer.transform_program()
            logger.info("Rewritten %d of %d modules", len(self._rewritten), len(self.program.module_paths()))
        return self._rewritten

    def final_text(self, path: Path) -> str:
        """Final text of a program module, rewritten or not."""
        module = self.transform().get(path)
        if module is None:
            return self.program.read_text(path)
        return ast.unparse(module) + "\n"

    def emit(self, out_dir: str | Path) -> list[Path]:
        """Write every program module in its final form under ``out_dir``."""
        out_dir = Path(out_dir)
        written = []
        for path in self.program.module_paths():
            target = out_dir / path.relative_to(self.program.root_dir)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(self.final_text(path), encoding="utf-8")
            written.append(target)
        logger.info("Emitted %d modules to %s", len(written), out_dir)
        return written

    def build(self) -> None:
        """Rewrite the program and write its distribution modules.

        Raises:
            UcSourceError: If a factory call can not be rewritten
            UcBuildError: If the bundler program can not be built
        """
        self.transform()
        self.bundler.compile()

    def run(self) -> None:
        """Rewrite, emit to the configured output directory, and build."""
        self.transform()
        if self.setup.config.out_dir:
            self.emit(self.setup.config.out_dir)
        self.bundler.compile()
