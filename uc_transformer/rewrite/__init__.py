"""
Rewriting of factory call sites.

The call-site transformer is imported from ``rewrite.transformer`` directly.
"""

from __future__ import annotations

from .editor import FileEditor
from .library import LibraryExports, UcLibrary
from .names import NameRegistry
from .options_literal import OptionsLiteral, OptionValue
from .root_dir import RootDirTracker

__all__ = [
    "FileEditor",
    "LibraryExports",
    "NameRegistry",
    "OptionValue",
    "OptionsLiteral",
    "RootDirTracker",
    "UcLibrary",
]
