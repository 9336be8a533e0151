"""
Project model: modules, symbol resolution and package metadata.
"""

from __future__ import annotations

from .package_info import PackageInfo
from .program import Program, SourceUnit
from .symbols import UNRESOLVED, Symbol, SymbolTable

__all__ = [
    "Program",
    "SourceUnit",
    "Symbol",
    "SymbolTable",
    "PackageInfo",
    "UNRESOLVED",
]
