"""
Atomic writer of generated distribution modules.

The synthesized bundler program writes every distribution module through
this writer, so that an interrupted or failed generation never leaves a
half-written module behind.
"""

from __future__ import annotations

import ast
import logging
import tempfile
from pathlib import Path

from ..config import FormatterConfig, OutputConfig
from ..errors import UcError
from .formatters import Formatter, RuffFormatter

logger = logging.getLogger(__name__)


class DistWriter:
    """Writes distribution modules with validation.

    Uses a two-phase commit approach:
    1. Write to a temporary file in the target directory
    2. Validate the content
    3. Atomically replace the target file
    """

    def __init__(
        self,
        output: OutputConfig | None = None,
        formatter_config: FormatterConfig | None = None,
        formatter: Formatter | None = None,
    ):
        self.output = output or OutputConfig()
        self.formatter_config = formatter_config or FormatterConfig()
        self._formatter = formatter

    @classmethod
    def from_dict(cls, d: dict) -> DistWriter:
        """Create a writer from the ``output`` and ``formatter`` tables of a config dict."""
        return cls(
            output=OutputConfig(**d.get("output", {})),
            formatter_config=FormatterConfig(**d.get("formatter", {})),
        )

    @property
    def formatter(self) -> Formatter:
        if self._formatter is None:
            self._formatter = RuffFormatter()
        return self._formatter

    def write(self, path: str | Path, content: str) -> Path:
        """Write a distribution module.

        Args:
            path: Target file path
            content: Generated module text

        Returns:
            The written path

        Raises:
            UcError: If validation fails
            OSError: If file operations fail
        """
        path = Path(path)

        if self.formatter_config.enabled:
            content = self.formatter.format(content, self.formatter_config)

        if self.output.validate_before_write:
            self._validate(path, content)

        path.parent.mkdir(parents=True, exist_ok=True)

        if not self.output.atomic_write:
            path.write_text(content, encoding="utf-8")
            logger.info("Written %s", path)
            return path

        # Same directory ensures atomic rename on the same filesystem
        temp_fd, temp_path_str = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            text=True,
        )
        temp_path = Path(temp_path_str)

        try:
            with open(temp_fd, "w", encoding="utf-8") as f:
                f.write(content)
            temp_path.replace(path)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise

        logger.info("Written %s", path)

        return path

    @staticmethod
    def _validate(path: Path, content: str) -> None:
        try:
            ast.parse(content, filename=str(path))
        except SyntaxError as e:
            raise UcError(f"Generated module {path} is not valid Python: {e}") from e
