"""
Recognition of the serialization framework's factory exports.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..project.symbols import Symbol

if TYPE_CHECKING:
    from ..project.program import SourceUnit
    from ..uc_setup import UcSetup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryExports:
    """Canonical symbols of the three factory functions."""

    create_uc_bundle: Symbol
    create_uc_deserializer: Symbol
    create_uc_serializer: Symbol


class UcLibrary:
    """Watches import statements and resolves the framework's factory exports.

    Exports are resolved on the first import of the framework module and
    never recomputed afterwards.
    """

    def __init__(self, setup: UcSetup):
        self._setup = setup
        self._exports: LibraryExports | None = None

    @property
    def name(self) -> str:
        return self._setup.config.library

    @property
    def exports(self) -> LibraryExports | None:
        return self._exports

    def observe(self, unit: SourceUnit, statement: ast.Import | ast.ImportFrom) -> None:
        if self._exports is not None:
            return  # No need to inspect further.

        if self._is_lib_import(statement):
            self._refer(unit)

    def _is_lib_import(self, statement: ast.Import | ast.ImportFrom) -> bool:
        if isinstance(statement, ast.ImportFrom):
            return statement.level == 0 and statement.module == self.name
        return any(alias.name == self.name or alias.name.startswith(self.name + ".") for alias in statement.names)

    def _refer(self, unit: SourceUnit) -> None:
        symbols = self._setup.symbols

        def export(name: str) -> Symbol:
            return symbols.resolve_member(self.name, name) or Symbol(self.name, name)

        self._exports = LibraryExports(
            create_uc_bundle=export("create_uc_bundle"),
            create_uc_deserializer=export("create_uc_deserializer"),
            create_uc_serializer=export("create_uc_serializer"),
        )
        logger.debug("Library %s referred from %s: %s", self.name, unit.path, self._exports)
