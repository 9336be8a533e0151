"""
Reader of options passed to factory calls as dict literals.

Options may be passed either as a dict display with string keys::

    create_uc_serializer(Model, {"bundle": my_bundle, "mode": "compact"})

or as a ``dict(...)`` call with keyword arguments::

    create_uc_serializer(Model, dict(bundle=my_bundle, mode="compact"))

Option values are resolved lazily, when requested.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING, Any

from ..errors import UcSourceError
from ..project.symbols import UNRESOLVED, Symbol

if TYPE_CHECKING:
    from ..project.program import SourceUnit
    from ..uc_setup import UcSetup


class OptionsLiteral:
    """Named options extracted from a literal."""

    def __init__(self, setup: UcSetup, unit: SourceUnit, target: str, node: ast.expr | None = None):
        """
        Initialize the options.

        Args:
            setup: Setup of the current run
            unit: Module the literal belongs to
            target: Name of the options' owner, used in error messages
            node: The literal, or None when options are absent

        Raises:
            UcSourceError: If the node is not an options literal
        """
        self.setup = setup
        self.unit = unit
        self.target = target
        self.node = node
        self._options: dict[str, OptionValue] = {}

        if node is None:
            return

        if isinstance(node, ast.Dict):
            for key, value in zip(node.keys, node.values):
                if key is None or not isinstance(key, ast.Constant) or not isinstance(key.value, str):
                    raise UcSourceError.at(unit, key or value, f"Can not extract {target} option")
                self._options[key.value] = OptionValue(self, key.value, value)
        elif self._is_dict_call(node):
            for keyword in node.keywords:
                if keyword.arg is None:
                    raise UcSourceError.at(unit, keyword, f"Can not extract {target} option")
                self._options[keyword.arg] = OptionValue(self, keyword.arg, keyword.value)
        else:
            raise UcSourceError.at(unit, node, f"{target} options have to be passed as dict literal")

    def _is_dict_call(self, node: ast.expr) -> bool:
        if not isinstance(node, ast.Call) or node.args:
            return False
        return self.setup.symbols.resolve_expression(self.unit.module, node.func) == Symbol("builtins", "dict")

    @property
    def options(self) -> dict[str, OptionValue]:
        return self._options

    def get(self, name: str) -> OptionValue | None:
        return self._options.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._options


class OptionValue:
    """Lazily resolved value of a single option."""

    def __init__(self, options: OptionsLiteral, name: str, node: ast.expr):
        self._options = options
        self.name = name
        self.node = node

    def _error(self, message: str) -> UcSourceError:
        return UcSourceError.at(self._options.unit, self.node, message)

    def get_symbol(self) -> Symbol | None:
        """Resolve the option to a canonical symbol.

        Returns:
            The symbol, or None if the option is explicitly set to None

        Raises:
            UcSourceError: If the value can not be resolved
        """
        if isinstance(self.node, ast.Constant) and self.node.value is None:
            return None

        symbol = None
        if isinstance(self.node, (ast.Name, ast.Attribute)):
            unit = self._options.unit
            symbol = self._options.setup.symbols.resolve_expression(unit.module, self.node)

        if symbol is None:
            raise self._error(f"Can not resolve option {self.name} in {self._options.target}")

        return symbol

    def get_value(self) -> Any:
        """Resolve the option to a constant value.

        Raises:
            UcSourceError: If the value can not be constant-folded
        """
        unit = self._options.unit
        value = self._options.setup.symbols.constant_value(unit.module, self.node)

        if value is UNRESOLVED:
            raise self._error(f"Can not resolve value of option {self.name} in {self._options.target}")

        return value

    def get_string(self) -> str | None:
        value = self.get_value()

        if value is None or isinstance(value, str):
            return value

        raise self._error(f"Value of option {self.name} in {self._options.target} expected to be a string constant")

    def get_bool(self) -> bool | None:
        value = self.get_value()

        if value is None or isinstance(value, bool):
            return value

        raise self._error(f"Value of option {self.name} in {self._options.target} expected to be a boolean constant")
