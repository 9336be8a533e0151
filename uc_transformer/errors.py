"""
Errors raised while rewriting factory calls and building distribution modules.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .project.program import SourceUnit


class DiagnosticCategory(str, Enum):
    """Severity of a reported diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    MESSAGE = "message"


@dataclass
class Diagnostic:
    """A message located in a source file.

    Attributes:
        message: Human-readable description
        category: Severity
        path: Source file the message refers to, if any
        line: 1-based line number, if known
        column: 0-based column offset, if known
        source_line: Text of the offending line, used to render a caret
    """

    message: str
    category: DiagnosticCategory = DiagnosticCategory.ERROR
    path: Path | None = None
    line: int | None = None
    column: int | None = None
    source_line: str | None = None

    @property
    def is_error(self) -> bool:
        return self.category is DiagnosticCategory.ERROR

    def location(self) -> str:
        if self.path is None:
            return ""
        if self.line is None:
            return str(self.path)
        return f"{self.path}:{self.line}:{(self.column or 0) + 1}"


class UcError(Exception):
    """Base class of all errors raised by uc_transformer."""

    pass


class UcSourceError(UcError):
    """Raised when a factory call site can not be rewritten.

    This can happen when:
    - An options literal is not a dict display or ``dict(...)`` call
    - An option value can not be constant-folded or resolved
    - A bundle is not declared as a module-level name assignment
    - A model refers to a name bound inside a function, class or comprehension
    - A distribution file lies outside the source root

    The error keeps enough context to be rendered against the original source.
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
        source_line: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.path = path
        self.line = line
        self.column = column
        self.source_line = source_line

    @classmethod
    def at(cls, unit: SourceUnit, node: ast.AST, message: str) -> UcSourceError:
        """Create an error located at ``node`` of ``unit``."""
        line = getattr(node, "lineno", None)
        return cls(
            message,
            path=unit.path,
            line=line,
            column=getattr(node, "col_offset", None),
            source_line=unit.line(line) if line else None,
        )

    def diagnostic(self) -> Diagnostic:
        return Diagnostic(
            self.message,
            DiagnosticCategory.ERROR,
            path=self.path,
            line=self.line,
            column=self.column,
            source_line=self.source_line,
        )

    def __str__(self) -> str:
        location = self.diagnostic().location()
        return f"{location}: {self.message}" if location else self.message


class UcBuildError(UcError):
    """Raised when the synthesized bundler program can not be built."""

    def __init__(self, message: str, diagnostics: list[Diagnostic] | None = None):
        super().__init__(message)
        self.diagnostics = diagnostics or []
