"""
Program model: the modules of a project and their parsed trees.

A program is rooted at a source directory that acts as a ``sys.path`` entry.
Module files below it are parsed lazily with the built-in ast module. An
in-memory overlay (``vfs``) takes precedence over files on disk, which lets
tests describe whole projects without touching the filesystem.
"""

from __future__ import annotations

import ast
import logging
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import UcSourceError
from .symbols import SymbolTable, resolve_import_module

logger = logging.getLogger(__name__)

# Directories never scanned for modules
EXCLUDED_DIRS = {
    "__pycache__",
    "build",
    "dist",
    "node_modules",
    "site-packages",
    "venv",
}


def create_vfs(root_dir: Path, files: Mapping[str | Path, str]) -> dict[Path, str]:
    """Resolve overlay file names against ``root_dir``."""
    return {(root_dir / file_path).resolve(): content for file_path, content in files.items()}


@dataclass(eq=False)
class SourceUnit:
    """A parsed module of the program."""

    path: Path
    module: str
    text: str
    tree: ast.Module = field(repr=False)

    @property
    def is_package(self) -> bool:
        return self.path.name == "__init__.py"

    @property
    def package(self) -> str:
        """Name of the package relative imports of this module are resolved against."""
        if self.is_package:
            return self.module
        return self.module.rpartition(".")[0]

    def line(self, lineno: int) -> str | None:
        lines = self.text.splitlines()
        if 0 < lineno <= len(lines):
            return lines[lineno - 1]
        return None


class Program:
    """The set of modules below a source root."""

    def __init__(
        self,
        root_dir: str | Path,
        module_files: list[str | Path] | None = None,
        vfs: Mapping[str | Path, str] | None = None,
    ):
        """
        Initialize the program.

        Args:
            root_dir: Source root, i.e. the directory put on ``sys.path``
            module_files: Module files to include. Discovered below the root when omitted.
            vfs: In-memory files overlaying the filesystem, relative to the root
        """
        self.root_dir = Path(root_dir).resolve()
        self.vfs = create_vfs(self.root_dir, vfs or {})
        if module_files is None:
            paths = self._discover()
        else:
            paths = [(self.root_dir / p).resolve() for p in module_files]
        self._modules: dict[str, Path] = {}
        for path in sorted(paths):
            module = self.module_name(path)
            if module is not None:
                self._modules.setdefault(module, path)
        self._units: dict[str, SourceUnit] = {}
        self.symbols = SymbolTable(self)

    def _discover(self) -> set[Path]:
        paths = {path for path in self.vfs if path.suffix == ".py"}
        for dirpath, dirnames, filenames in os.walk(self.root_dir):
            dirnames[:] = [d for d in dirnames if d not in EXCLUDED_DIRS and not d.startswith(".")]
            for filename in filenames:
                if filename.endswith(".py"):
                    paths.add(Path(dirpath, filename).resolve())
        return paths

    def module_name(self, path: str | Path) -> str | None:
        """Get the dotted module name of a file, or None if it is outside the root."""
        path = Path(path).resolve()
        if path.suffix != ".py":
            return None
        try:
            relative = path.relative_to(self.root_dir)
        except ValueError:
            return None
        parts = list(relative.with_suffix("").parts)
        if parts[-1] == "__init__":
            parts.pop()
        if not parts:
            return None
        return ".".join(parts)

    def module_path(self, module: str) -> Path | None:
        return self._modules.get(module)

    def has_module(self, module: str) -> bool:
        return module in self._modules

    def module_paths(self) -> list[Path]:
        return list(self._modules.values())

    def exists(self, path: Path) -> bool:
        path = path.resolve()
        return path in self.vfs or path.exists()

    def read_text(self, path: Path) -> str:
        path = path.resolve()
        if path in self.vfs:
            return self.vfs[path]
        return path.read_text(encoding="utf-8")

    def get_unit(self, module: str) -> SourceUnit | None:
        """Get the parsed unit of a project module, or None for modules outside the program."""
        unit = self._units.get(module)
        if unit is not None:
            return unit
        path = self._modules.get(module)
        if path is None:
            return None
        text = self.read_text(path)
        try:
            tree = ast.parse(text, filename=str(path))
        except SyntaxError as e:
            raise UcSourceError(
                f"Failed to parse module {module}: {e.msg}",
                path=path,
                line=e.lineno,
                column=(e.offset - 1) if e.offset else None,
                source_line=e.text.rstrip("\n") if e.text else None,
            ) from e
        unit = SourceUnit(path=path, module=module, text=text, tree=tree)
        self._units[module] = unit
        return unit

    def source_units(self) -> list[SourceUnit]:
        """List program units so that imported modules precede their importers."""
        ordered: list[SourceUnit] = []
        visited: set[str] = set()

        def visit(module: str) -> None:
            if module in visited:
                return
            visited.add(module)
            unit = self.get_unit(module)
            if unit is None:
                return
            for dependency in self._dependencies(unit):
                visit(dependency)
            ordered.append(unit)

        for module in sorted(self._modules):
            visit(module)

        return ordered

    def _dependencies(self, unit: SourceUnit) -> Iterator[str]:
        for node in ast.walk(unit.tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    yield from self._with_parents(alias.name)
            elif isinstance(node, ast.ImportFrom):
                module = resolve_import_module(unit.package, node.level, node.module)
                if module is None:
                    continue
                yield from self._with_parents(module)
                for alias in node.names:
                    submodule = f"{module}.{alias.name}"
                    if self.has_module(submodule):
                        yield submodule

    def _with_parents(self, module: str) -> Iterator[str]:
        parts = module.split(".")
        for i in range(1, len(parts) + 1):
            name = ".".join(parts[:i])
            if self.has_module(name):
                yield name
