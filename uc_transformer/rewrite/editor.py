"""
Deferred, non-destructive rewriting of module trees.

Replacements are recorded while the original tree is traversed and only
materialized afterwards, so that a statement can be replaced by several
statements and its replacement can be computed after its descendants have
been rewritten. The original tree is never mutated: nodes are shallowly
copied when one of their children changes.
"""

from __future__ import annotations

import ast
import copy
import functools
from collections.abc import Callable

Replacement = ast.AST | list[ast.AST]


class FileEditor:
    """Records node replacements and emits the rewritten module."""

    def __init__(self, tree: ast.Module):
        self._tree = tree
        self._mappings: dict[ast.AST, Callable[[], Replacement]] = {}

    @property
    def tree(self) -> ast.Module:
        return self._tree

    @property
    def has_mappings(self) -> bool:
        return bool(self._mappings)

    def map_node(self, node: ast.AST, mapping: Callable[[], Replacement]) -> None:
        """Record a replacement of ``node``, computed on first emission."""
        self._mappings[node] = functools.cache(mapping)

    def emit(self, node: ast.AST) -> Replacement:
        """Emit the replacement of ``node`` if one is recorded, or the node with its children rewritten."""
        mapping = self._mappings.get(node)
        if mapping is not None:
            return mapping()
        return self.emit_node(node)

    def emit_node(self, node: ast.AST) -> ast.AST:
        """Emit ``node`` with rewritten children, ignoring a replacement of the node itself."""
        changed = False
        fields = {}

        for name, value in ast.iter_fields(node):
            if isinstance(value, list):
                items = []
                for item in value:
                    if not isinstance(item, ast.AST):
                        items.append(item)
                        continue
                    emitted = self.emit(item)
                    if isinstance(emitted, list):
                        items.extend(emitted)
                        changed = True
                    else:
                        items.append(emitted)
                        changed = changed or emitted is not item
                fields[name] = items
            elif isinstance(value, ast.AST):
                emitted = self.emit(value)
                if isinstance(emitted, list):
                    raise TypeError(f"Can not replace {type(value).__name__} with multiple nodes")
                changed = changed or emitted is not value
                fields[name] = emitted

        if not changed:
            return node

        result = copy.copy(node)
        for name, value in fields.items():
            setattr(result, name, value)

        self._mappings.setdefault(node, lambda: result)

        return result

    def emit_module(self) -> ast.Module:
        return self.emit_node(self._tree)
