"""
Post-processing formatters for distribution modules.
"""

from __future__ import annotations

from .base import Formatter
from .ruff_formatter import RuffFormatter

__all__ = [
    "Formatter",
    "RuffFormatter",
]
