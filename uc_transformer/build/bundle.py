"""
Bundles of generated functions sharing one distribution module.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..rewrite.options_literal import OptionsLiteral

if TYPE_CHECKING:
    from ..project.program import SourceUnit
    from ..project.symbols import Symbol
    from ..uc_setup import UcSetup

logger = logging.getLogger(__name__)


class TaskKind(str, Enum):
    """Kind of a generated function."""

    DESERIALIZER = "deserializer"
    SERIALIZER = "serializer"

    @property
    def factory_name(self) -> str:
        return "create_uc_deserializer" if self is TaskKind.DESERIALIZER else "create_uc_serializer"

    @property
    def suggested_name(self) -> str:
        return "read_value" if self is TaskKind.DESERIALIZER else "write_value"

    @property
    def compiler_name(self) -> str:
        return "UcdCompiler" if self is TaskKind.DESERIALIZER else "UcsCompiler"


@dataclass(frozen=True, eq=False)
class CompileTask:
    """Request to generate one function.

    Attributes:
        kind: Whether a deserializer or a serializer is generated
        fn_id: Name of the generated function within the distribution module
        model_id: Name of the hoisted model binding within the source module
        from_path: Source file the factory call was found in
        from_module: Dotted name of that source module
        options: Call-site options other than ``bundle``, resolved to Python values
        bundle: Bundle the function is emitted to
    """

    kind: TaskKind
    fn_id: str
    model_id: str
    from_path: Path
    from_module: str
    options: dict[str, Any] = field(default_factory=dict)
    bundle: Bundle | None = field(default=None, repr=False)


@dataclass
class BundlePlan:
    """Drained tasks of a bundle."""

    dist_file: Path
    deserializers: list[CompileTask]
    serializers: list[CompileTask]


class Bundle:
    """Collects compile tasks emitted to one distribution module."""

    def __init__(self, setup: UcSetup, dist_file: Path):
        self._setup = setup
        self._dist_file = Path(dist_file)
        self._deserializers: list[CompileTask] = []
        self._serializers: list[CompileTask] = []
        self._drained = False

    @property
    def dist_file(self) -> Path:
        return self._dist_file

    @property
    def has_tasks(self) -> bool:
        return bool(self._deserializers or self._serializers)

    def configure(self, unit: SourceUnit, symbol: Symbol, node: ast.expr | None) -> None:
        """Apply the options of a bundle declaration.

        The ``dist`` option overrides the distribution file, relative to the
        directory of the declaring module.
        """
        options = OptionsLiteral(self._setup, unit, symbol.local_name, node)
        dist_option = options.get("dist")
        dist = dist_option.get_string() if dist_option is not None else None

        if dist is not None:
            self._dist_file = (unit.path.parent / dist).resolve()
            logger.debug("Bundle %s emitted to %s", symbol, self._dist_file)

    def compile_uc_deserializer(self, task: CompileTask) -> None:
        self._deserializers.append(task)

    def compile_uc_serializer(self, task: CompileTask) -> None:
        self._serializers.append(task)

    def drain(self) -> BundlePlan:
        """Take pending tasks.

        Raises:
            RuntimeError: If the bundle has been drained already
        """
        if self._drained:
            raise RuntimeError(f"Bundle {self._dist_file} drained already")
        self._drained = True

        plan = BundlePlan(self._dist_file, self._deserializers, self._serializers)
        self._deserializers = []
        self._serializers = []

        return plan

    def __repr__(self) -> str:
        return f"Bundle({str(self._dist_file)!r})"
