"""
Collision-free identifier allocation.
"""

from __future__ import annotations

import ast
from collections.abc import Iterable


class NameRegistry:
    """Allocates identifiers that differ from every name reserved before.

    The first request for a name gets it as is, subsequent requests get
    numbered variants (``name_1``, ``name_2``, ...).
    """

    def __init__(self, reserved: Iterable[str] = ()):
        self._names: set[str] = set(reserved)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def reserve_name(self, suggested: str) -> str:
        if suggested not in self._names:
            self._names.add(suggested)
            return suggested

        i = 1
        while True:
            name = f"{suggested}_{i}"
            if name not in self._names:
                self._names.add(name)
                return name
            i += 1

    @classmethod
    def for_module(cls, tree: ast.Module) -> NameRegistry:
        """Create a registry reserving every identifier used in a module."""
        names: set[str] = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Name):
                names.add(node.id)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                names.add(node.name)
            elif isinstance(node, ast.arg):
                names.add(node.arg)
            elif isinstance(node, ast.alias):
                names.add(node.asname or node.name.partition(".")[0])
            elif isinstance(node, (ast.Global, ast.Nonlocal)):
                names.update(node.names)
            elif isinstance(node, ast.ExceptHandler) and node.name:
                names.add(node.name)
        return cls(names)
