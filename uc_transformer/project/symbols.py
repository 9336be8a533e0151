"""
Static symbol resolution over the modules of a program.

Resolves references to their canonical (defining) symbols by following
import aliases, re-exports and ``name = other_name`` assignments, and folds
references to module or class constants into their values.
"""

from __future__ import annotations

import ast
import builtins
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .program import Program


# Returned by constant folding when a value can not be computed statically
UNRESOLVED: Any = object()


@dataclass(frozen=True)
class Symbol:
    """Canonical identity of a module or of a name defined in a module.

    Attributes:
        module: Dotted name of the defining module
        name: Name within the module (dotted for class members), empty for the module itself
    """

    module: str
    name: str = ""

    @property
    def is_module(self) -> bool:
        return not self.name

    @property
    def local_name(self) -> str:
        """Last component of the symbol's name."""
        return (self.name or self.module).rpartition(".")[2]

    def __str__(self) -> str:
        return f"{self.module}.{self.name}" if self.name else self.module


class BindingKind(str, Enum):
    IMPORT_FROM = "import_from"
    MODULE = "module"
    ALIAS = "alias"
    DEFINITION = "definition"


@dataclass
class Binding:
    """A module-level name binding."""

    kind: BindingKind
    node: ast.AST
    target_module: str = ""
    target_name: str = ""
    value: ast.expr | None = None


@dataclass
class ModuleScope:
    """Module-level bindings of a program module."""

    bindings: dict[str, Binding] = field(default_factory=dict)
    star_imports: list[str] = field(default_factory=list)


def resolve_import_module(package: str, level: int, module: str | None) -> str | None:
    """Resolve the target module of a (possibly relative) import.

    Args:
        package: Package of the importing module
        level: Number of leading dots
        module: Module part of the import, if any

    Returns:
        Absolute module name, or None if the import reaches beyond the top-level package
    """
    if level == 0:
        return module
    parts = package.split(".") if package else []
    if level - 1 > len(parts):
        return None
    base = parts[: len(parts) - (level - 1)]
    if module:
        base.append(module)
    if not base:
        return None
    return ".".join(base)


class SymbolTable:
    """Resolves references within the program to canonical symbols."""

    def __init__(self, program: Program):
        self._program = program
        self._scopes: dict[str, ModuleScope] = {}

    def scope(self, module: str) -> ModuleScope | None:
        """Get module-level bindings of a program module, or None for external modules."""
        scope = self._scopes.get(module)
        if scope is not None:
            return scope
        unit = self._program.get_unit(module)
        if unit is None:
            return None
        scope = ModuleScope()
        self._collect(unit.package, unit.tree.body, scope)
        self._scopes[module] = scope
        return scope

    def _collect(self, package: str, body: list[ast.stmt], scope: ModuleScope) -> None:
        for stmt in body:
            if isinstance(stmt, ast.ImportFrom):
                target = resolve_import_module(package, stmt.level, stmt.module)
                if target is None:
                    continue
                for alias in stmt.names:
                    if alias.name == "*":
                        scope.star_imports.append(target)
                        continue
                    scope.bindings[alias.asname or alias.name] = Binding(
                        BindingKind.IMPORT_FROM, stmt, target_module=target, target_name=alias.name
                    )
            elif isinstance(stmt, ast.Import):
                for alias in stmt.names:
                    if alias.asname:
                        scope.bindings[alias.asname] = Binding(BindingKind.MODULE, stmt, target_module=alias.name)
                    else:
                        top = alias.name.partition(".")[0]
                        scope.bindings[top] = Binding(BindingKind.MODULE, stmt, target_module=top)
            elif isinstance(stmt, ast.Assign):
                for target in stmt.targets:
                    if isinstance(target, ast.Name):
                        scope.bindings[target.id] = self._assignment(stmt, stmt.value)
            elif isinstance(stmt, ast.AnnAssign):
                if isinstance(stmt.target, ast.Name) and stmt.value is not None:
                    scope.bindings[stmt.target.id] = self._assignment(stmt, stmt.value)
            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                scope.bindings[stmt.name] = Binding(BindingKind.DEFINITION, stmt)
            elif isinstance(stmt, ast.If):
                self._collect(package, stmt.body, scope)
                self._collect(package, stmt.orelse, scope)
            elif isinstance(stmt, ast.Try):
                self._collect(package, stmt.body, scope)
                for handler in stmt.handlers:
                    self._collect(package, handler.body, scope)
                self._collect(package, stmt.orelse, scope)
                self._collect(package, stmt.finalbody, scope)

    @staticmethod
    def _assignment(stmt: ast.stmt, value: ast.expr) -> Binding:
        if isinstance(value, (ast.Name, ast.Attribute)):
            return Binding(BindingKind.ALIAS, stmt, value=value)
        return Binding(BindingKind.DEFINITION, stmt, value=value)

    def resolve_member(self, module: str, name: str, _seen: frozenset = frozenset()) -> Symbol | None:
        """Resolve ``module.name`` to its canonical symbol.

        Names of modules outside the program are canonical as is.

        Returns:
            The canonical symbol, or None if the name is not bound in a program module
        """
        key = (module, name)
        if key in _seen:
            return Symbol(module, name)
        _seen = _seen | {key}

        scope = self.scope(module)
        if scope is None:
            return Symbol(module, name)

        binding = scope.bindings.get(name)
        if binding is None:
            submodule = f"{module}.{name}"
            if self._program.has_module(submodule):
                return Symbol(submodule)
            for star_module in scope.star_imports:
                star_scope = self.scope(star_module)
                if star_scope is None or name in star_scope.bindings:
                    found = self.resolve_member(star_module, name, _seen)
                    if found is not None:
                        return found
            return None

        if binding.kind is BindingKind.IMPORT_FROM:
            return self.resolve_member(binding.target_module, binding.target_name, _seen)
        if binding.kind is BindingKind.MODULE:
            return Symbol(binding.target_module)
        if binding.kind is BindingKind.ALIAS:
            return self._resolve_expression(module, binding.value, _seen)
        return Symbol(module, name)

    def resolve_expression(self, module: str, expr: ast.expr) -> Symbol | None:
        """Resolve a name or attribute chain used in ``module`` to its canonical symbol."""
        return self._resolve_expression(module, expr, frozenset())

    def _resolve_expression(self, module: str, expr: ast.expr, seen: frozenset) -> Symbol | None:
        if isinstance(expr, ast.Name):
            found = self.resolve_member(module, expr.id, seen)
            if found is None and hasattr(builtins, expr.id):
                return Symbol("builtins", expr.id)
            return found
        if isinstance(expr, ast.Attribute):
            base = self._resolve_expression(module, expr.value, seen)
            if base is None:
                return None
            if base.is_module:
                return self.resolve_member(base.module, expr.attr, seen)
            return Symbol(base.module, f"{base.name}.{expr.attr}")
        return None

    def constant_value(self, module: str, expr: ast.expr) -> Any:
        """Fold an expression used in ``module`` into a constant value.

        Supports literals, negated numbers, literal containers, and references
        to module constants, class constants and enum members.

        Returns:
            The value, or ``UNRESOLVED``
        """
        return self._fold(module, expr, frozenset())

    def _fold(self, module: str, expr: ast.expr, seen: frozenset) -> Any:
        if isinstance(expr, ast.Constant):
            return expr.value
        if isinstance(expr, ast.UnaryOp) and isinstance(expr.op, (ast.USub, ast.UAdd)):
            operand = self._fold(module, expr.operand, seen)
            if isinstance(operand, (int, float)) and not isinstance(operand, bool):
                return -operand if isinstance(expr.op, ast.USub) else operand
            return UNRESOLVED
        if isinstance(expr, (ast.List, ast.Tuple, ast.Set, ast.Dict)):
            try:
                return ast.literal_eval(expr)
            except (ValueError, TypeError):
                return UNRESOLVED
        if isinstance(expr, ast.Subscript):
            container = self._fold(module, expr.value, seen)
            key = self._fold(module, expr.slice, seen)
            if container is UNRESOLVED or key is UNRESOLVED:
                return UNRESOLVED
            try:
                return container[key]
            except (KeyError, IndexError, TypeError):
                return UNRESOLVED
        if isinstance(expr, (ast.Name, ast.Attribute)):
            symbol = self._resolve_expression(module, expr, frozenset())
            if symbol is None or symbol in seen:
                return UNRESOLVED
            return self._fold_symbol(symbol, seen | {symbol})
        return UNRESOLVED

    def _fold_symbol(self, symbol: Symbol, seen: frozenset) -> Any:
        if symbol.is_module:
            return UNRESOLVED
        scope = self.scope(symbol.module)
        if scope is None:
            return UNRESOLVED
        head, _, member = symbol.name.partition(".")
        binding = scope.bindings.get(head)
        if binding is None:
            return UNRESOLVED
        if not member:
            if binding.kind is BindingKind.DEFINITION and binding.value is not None:
                return self._fold(symbol.module, binding.value, seen)
            return UNRESOLVED
        if isinstance(binding.node, ast.ClassDef) and "." not in member:
            for stmt in binding.node.body:
                if isinstance(stmt, ast.Assign):
                    if any(isinstance(t, ast.Name) and t.id == member for t in stmt.targets):
                        return self._fold(symbol.module, stmt.value, seen)
                elif isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
                    if isinstance(stmt.target, ast.Name) and stmt.target.id == member:
                        return self._fold(symbol.module, stmt.value, seen)
        return UNRESOLVED
