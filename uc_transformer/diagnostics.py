"""
Diagnostic reporting.

Diagnostics are printed to stderr in the ``path:line:col - error: message``
shape, followed by the offending source line and a caret.
"""

from __future__ import annotations

from collections.abc import Iterable

import click

from .errors import Diagnostic, DiagnosticCategory

CATEGORY_COLORS = {
    DiagnosticCategory.ERROR: "red",
    DiagnosticCategory.WARNING: "yellow",
    DiagnosticCategory.MESSAGE: "blue",
}


def format_diagnostic(diagnostic: Diagnostic, color: bool = True) -> str:
    """Render a single diagnostic, optionally with ANSI colors."""

    def style(text: str, **kwargs) -> str:
        return click.style(text, **kwargs) if color else text

    parts = []
    location = diagnostic.location()
    if location:
        parts.append(style(location, fg="cyan") + " - ")
    parts.append(style(diagnostic.category.value, fg=CATEGORY_COLORS[diagnostic.category]))
    parts.append(f" UC: {diagnostic.message}")
    lines = ["".join(parts)]

    if diagnostic.source_line is not None and diagnostic.line is not None:
        gutter = str(diagnostic.line)
        lines.append("")
        lines.append(style(gutter, reverse=True) + " " + diagnostic.source_line)
        caret_offset = " " * (len(gutter) + 1 + (diagnostic.column or 0))
        lines.append(caret_offset + style("^", fg=CATEGORY_COLORS[diagnostic.category]))

    return "\n".join(lines)


def report_errors(diagnostics: Iterable[Diagnostic], color: bool | None = None) -> bool:
    """Print diagnostics to stderr.

    Returns:
        True if at least one diagnostic has error severity
    """
    diagnostics = list(diagnostics)
    if not diagnostics:
        return False

    for diagnostic in diagnostics:
        click.echo(format_diagnostic(diagnostic, color=color is not False), err=True, color=color)
        click.echo("", err=True)

    return any(diagnostic.is_error for diagnostic in diagnostics)
