"""
Rewriting of serialization framework factory calls.

Every call to ``create_uc_deserializer`` or ``create_uc_serializer`` is
replaced by a reference to a function imported from a distribution module
that does not exist yet. The call's model argument is hoisted into a
module-level binding, and a compile task is registered with the bundle the
function belongs to. ``create_uc_bundle`` calls declare named bundles.

Each rewritten module is emitted in two forms:

- the final form, where calls are replaced by imported functions;
- the build form, where calls keep calling the factory with the hoisted
  model. The build form is what the bundler program imports models from.
"""

from __future__ import annotations

import ast
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..build.bundle import Bundle, CompileTask, TaskKind
from ..errors import UcSourceError
from ..project.symbols import Symbol
from .editor import FileEditor
from .names import NameRegistry
from .options_literal import OptionsLiteral

if TYPE_CHECKING:
    from ..project.program import SourceUnit
    from ..uc_setup import UcSetup

logger = logging.getLogger(__name__)

UC_MODEL_SUFFIX = "__model"
UC_MODEL_NAME = "uc_model"


class UcTasks(ABC):
    """Receiver of the transformer's output."""

    @abstractmethod
    def replace_source_unit(self, unit: SourceUnit, final: ast.Module, build: ast.Module) -> None:
        """Accept the rewritten forms of a module."""

    @abstractmethod
    def compile_uc_deserializer(self, task: CompileTask) -> None:
        """Accept a deserializer compile task."""

    @abstractmethod
    def compile_uc_serializer(self, task: CompileTask) -> None:
        """Accept a serializer compile task."""


@dataclass
class GeneratedImport:
    """Import of a generated function into a rewritten module."""

    fn_id: str
    alias: str
    bundle: Bundle
    node: ast.Call


class FileTransformer:
    """Rewrite state of a single module."""

    def __init__(self, setup: UcSetup, unit: SourceUnit):
        self.setup = setup
        self.unit = unit
        self.editor = FileEditor(unit.tree)
        self.build_editor = FileEditor(unit.tree)
        self.names = NameRegistry.for_module(unit.tree)
        self.scopes: list[set[str]] = []
        self._imports: list[GeneratedImport] = []

    @property
    def editors(self) -> tuple[FileEditor, FileEditor]:
        return self.editor, self.build_editor

    @property
    def changed(self) -> bool:
        return self.editor.has_mappings

    def is_local(self, name: str) -> bool:
        """Whether ``name`` is bound in a function, class or comprehension being traversed."""
        return any(name in scope for scope in self.scopes)

    def add_import(self, generated: GeneratedImport) -> None:
        self._imports.append(generated)

    def emit(self) -> ast.Module:
        """Emit the final form of the module."""
        module = self.editor.emit_module()
        if not self._imports:
            return module

        imports = [self._import_statement(generated) for generated in self._imports]
        body = list(module.body)
        index = _import_insert_index(body)
        module = ast.Module(body=body[:index] + imports + body[index:], type_ignores=module.type_ignores)
        return ast.fix_missing_locations(module)

    def emit_build(self) -> ast.Module:
        """Emit the build form of the module."""
        return ast.fix_missing_locations(self.build_editor.emit_module())

    def _import_statement(self, generated: GeneratedImport) -> ast.ImportFrom:
        module, level = self.import_module_of(generated.bundle.dist_file, generated.node)
        alias = None if generated.alias == generated.fn_id else generated.alias
        return ast.ImportFrom(module=module, names=[ast.alias(name=generated.fn_id, asname=alias)], level=level)

    def import_module_of(self, dist_file: Path, node: ast.AST) -> tuple[str | None, int]:
        """Compute the import of a distribution file from this module.

        Returns:
            Module name and relative import level. The import is relative when
            both modules share a package, and absolute otherwise.

        Raises:
            UcSourceError: If the distribution file lies outside the source root
        """
        target = self.setup.program.module_name(dist_file)
        if target is None:
            raise UcSourceError.at(
                self.unit,
                node,
                f"Distribution file {dist_file} is not a module within {self.setup.program.root_dir}",
            )

        package = self.unit.package.split(".") if self.unit.package else []
        target_parts = target.split(".")
        common = 0
        while common < len(package) and common < len(target_parts) - 1 and package[common] == target_parts[common]:
            common += 1

        if not common:
            return target, 0

        return ".".join(target_parts[common:]), len(package) - common + 1


class StatementTransformer:
    """Collects statements to hoist before a module-level statement."""

    def __init__(self, file_tfm: FileTransformer, statement: ast.stmt):
        self.file_tfm = file_tfm
        self.statement = statement
        self.bundle: Bundle | None = None
        self._prefix: list[Callable[[FileEditor], ast.stmt]] = []

    @property
    def unit(self) -> SourceUnit:
        return self.file_tfm.unit

    def add_prefix(self, prefix: Callable[[FileEditor], ast.stmt]) -> None:
        """Add a statement to hoist, built separately for each emitted form."""
        self._prefix.append(prefix)

    def transform(self) -> None:
        if not self._prefix:
            return

        for editor in self.file_tfm.editors:
            self._map_statement(editor)

    def _map_statement(self, editor: FileEditor) -> None:
        statement = self.statement

        def mapping() -> list[ast.AST]:
            prefix = [ast.copy_location(build(editor), statement) for build in self._prefix]
            return [*prefix, editor.emit_node(statement)]

        editor.map_node(statement, mapping)


class UcTransformer:
    """Discovers and rewrites factory calls in the modules of a program."""

    def __init__(self, setup: UcSetup, tasks: UcTasks):
        self._setup = setup
        self._tasks = tasks

    def transform_program(self) -> dict[Path, ast.Module]:
        """Rewrite every module of the program.

        Returns:
            Final forms of the modules that were rewritten, by file path
        """
        rewritten = {}
        for unit in self._setup.program.source_units():
            module = self.transform(unit)
            if module is not unit.tree:
                rewritten[unit.path] = module
        return rewritten

    def transform(self, unit: SourceUnit) -> ast.Module:
        """Rewrite a single module.

        Returns:
            The final form of the module, or its original tree if nothing was rewritten
        """
        file_tfm = FileTransformer(self._setup, unit)

        for statement in unit.tree.body:
            self._transform(statement, None, file_tfm, None)

        if not file_tfm.changed:
            return unit.tree

        final = file_tfm.emit()
        self._tasks.replace_source_unit(unit, final, file_tfm.emit_build())
        logger.debug("Rewritten %s", unit.path)

        return final

    def _transform(
        self,
        node: ast.AST,
        parent: ast.AST | None,
        file_tfm: FileTransformer,
        st_tfm: StatementTransformer | None,
    ) -> None:
        if isinstance(node, ast.stmt):
            if isinstance(node, (ast.Import, ast.ImportFrom)):
                self._setup.library.observe(file_tfm.unit, node)
                return
            if st_tfm is None:
                self._statement(node, file_tfm)
                return

        if isinstance(node, ast.Call) and self._call(node, parent, st_tfm):
            return

        self._each(node, file_tfm, st_tfm)

    def _each(self, node: ast.AST, file_tfm: FileTransformer, st_tfm: StatementTransformer | None) -> None:
        scope = _scope_names(node)
        if scope is not None:
            file_tfm.scopes.append(scope)
        try:
            for child in ast.iter_child_nodes(node):
                self._transform(child, node, file_tfm, st_tfm)
        finally:
            if scope is not None:
                file_tfm.scopes.pop()

    def _statement(self, statement: ast.stmt, file_tfm: FileTransformer) -> None:
        # Models are hoisted before the module-level statement, however deep the call is.
        st_tfm = StatementTransformer(file_tfm, statement)
        self._each(statement, file_tfm, st_tfm)
        st_tfm.transform()

    def _call(self, node: ast.Call, parent: ast.AST | None, st_tfm: StatementTransformer) -> bool:
        exports = self._setup.library.exports
        if exports is None:
            # No imports of the library yet.
            return False

        head = _head_name(node.func)
        if head is not None and st_tfm.file_tfm.is_local(head):
            return False

        callee = self._setup.symbols.resolve_expression(st_tfm.unit.module, node.func)
        if callee is None:
            return False

        if callee == exports.create_uc_bundle:
            self._create_bundle(node, st_tfm)
            return True
        if callee not in (exports.create_uc_deserializer, exports.create_uc_serializer):
            return False
        if not node.args or isinstance(node.args[0], ast.Starred):
            # Model argument required.
            return False

        if callee == exports.create_uc_deserializer:
            self._create_deserializer(node, parent, st_tfm)
        else:
            self._create_serializer(node, parent, st_tfm)

        return True

    def _create_deserializer(self, node: ast.Call, parent: ast.AST | None, st_tfm: StatementTransformer) -> None:
        task = self._extract_model(node, parent, st_tfm, TaskKind.DESERIALIZER)
        self._tasks.compile_uc_deserializer(task)

    def _create_serializer(self, node: ast.Call, parent: ast.AST | None, st_tfm: StatementTransformer) -> None:
        task = self._extract_model(node, parent, st_tfm, TaskKind.SERIALIZER)
        self._tasks.compile_uc_serializer(task)

    def _create_bundle(self, node: ast.Call, st_tfm: StatementTransformer) -> None:
        unit = st_tfm.unit
        statement = st_tfm.statement
        target = _declared_name(statement, node)

        if target is None:
            raise UcSourceError.at(unit, node, "Bundle expected to be declared as module-level constant")

        symbol = self._setup.symbols.resolve_member(unit.module, target) or Symbol(unit.module, target)
        bundle = self._setup.bundle_registry.get_bundle(symbol)
        bundle.configure(unit, symbol, node.args[0] if node.args else None)

        # Factory calls within the declaration belong to the declared bundle.
        enclosing = st_tfm.bundle
        st_tfm.bundle = bundle
        try:
            self._each(node, st_tfm.file_tfm, st_tfm)
        finally:
            st_tfm.bundle = enclosing

    def _extract_model(
        self,
        node: ast.Call,
        parent: ast.AST | None,
        st_tfm: StatementTransformer,
        kind: TaskKind,
    ) -> CompileTask:
        file_tfm = st_tfm.file_tfm
        unit = st_tfm.unit
        setup = self._setup

        options = OptionsLiteral(setup, unit, kind.factory_name, node.args[1] if len(node.args) > 1 else None)
        if "bundle" in options or st_tfm.bundle is None:
            bundle = setup.bundle_registry.resolve_bundle(options)
        else:
            bundle = st_tfm.bundle
        task_options = {}
        for name, value in options.options.items():
            if name == "bundle":
                continue
            option = value.get_value()
            if option is not None:
                task_options[name] = option

        model = node.args[0]
        for ref in ast.walk(model):
            if isinstance(ref, ast.Name) and file_tfm.is_local(ref.id):
                raise UcSourceError.at(
                    unit,
                    ref,
                    f"Model of {kind.factory_name}() refers to {ref.id!r}, which is not a module-level name",
                )

        # Rewrite nested calls first, so that their models are hoisted before this one.
        for child in ast.iter_child_nodes(node):
            self._transform(child, node, file_tfm, st_tfm)

        decl_name = _declaration_name(node, parent)
        model_id = file_tfm.names.reserve_name(decl_name + UC_MODEL_SUFFIX if decl_name else UC_MODEL_NAME)
        fn_id = setup.names.reserve_name(decl_name or kind.suggested_name)
        fn_alias = file_tfm.names.reserve_name(fn_id)

        st_tfm.add_prefix(
            lambda editor: ast.Assign(
                targets=[ast.Name(id=model_id, ctx=ast.Store())],
                value=editor.emit(model),
            )
        )

        file_tfm.editor.map_node(node, lambda: ast.copy_location(ast.Name(id=fn_alias, ctx=ast.Load()), node))
        build_editor = file_tfm.build_editor
        build_editor.map_node(
            node,
            lambda: ast.copy_location(
                ast.Call(
                    func=build_editor.emit(node.func),
                    args=[ast.Name(id=model_id, ctx=ast.Load()), *(build_editor.emit(arg) for arg in node.args[1:])],
                    keywords=[build_editor.emit(keyword) for keyword in node.keywords],
                ),
                node,
            ),
        )
        file_tfm.add_import(GeneratedImport(fn_id=fn_id, alias=fn_alias, bundle=bundle, node=node))

        task = CompileTask(
            kind=kind,
            fn_id=fn_id,
            model_id=model_id,
            from_path=unit.path,
            from_module=unit.module,
            options=task_options,
            bundle=bundle,
        )
        logger.debug("%s %s of %s registered for %s", kind.value.capitalize(), fn_id, unit.path, bundle.dist_file)

        return task


def _declared_name(statement: ast.stmt, node: ast.Call) -> str | None:
    """Name assigned by a ``name = <node>`` statement."""
    if isinstance(statement, ast.Assign) and statement.value is node:
        if len(statement.targets) == 1 and isinstance(statement.targets[0], ast.Name):
            return statement.targets[0].id
    elif isinstance(statement, ast.AnnAssign) and statement.value is node:
        if isinstance(statement.target, ast.Name):
            return statement.target.id
    return None


def _declaration_name(node: ast.Call, parent: ast.AST | None) -> str | None:
    """Name a factory call result is bound to, if any."""
    if isinstance(parent, ast.stmt):
        return _declared_name(parent, node)
    if isinstance(parent, ast.keyword):
        return parent.arg
    if isinstance(parent, ast.Dict):
        for key, value in zip(parent.keys, parent.values):
            if value is node and isinstance(key, ast.Constant) and isinstance(key.value, str) and key.value.isidentifier():
                return key.value
    return None


_SCOPE_NODES = (
    ast.FunctionDef,
    ast.AsyncFunctionDef,
    ast.Lambda,
    ast.ClassDef,
    ast.ListComp,
    ast.SetComp,
    ast.DictComp,
    ast.GeneratorExp,
)


def _scope_names(node: ast.AST) -> set[str] | None:
    """Names bound in the scope ``node`` opens, or None if it opens no scope.

    Nested scopes are not entered, except for the names of nested functions
    and classes, which are bound in the enclosing one. Names declared
    ``global`` are left out.
    """
    if not isinstance(node, _SCOPE_NODES):
        return None

    names: set[str] = set()
    declared: set[str] = set()

    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
        args = node.args
        for arg in [*args.posonlyargs, *args.args, *args.kwonlyargs, args.vararg, args.kwarg]:
            if arg is not None:
                names.add(arg.arg)

    if isinstance(node, ast.Lambda):
        pending: list[ast.AST] = [node.body]
    elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
        pending = list(node.body)
    else:
        pending = [generator.target for generator in node.generators]

    while pending:
        child = pending.pop()
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(child.name)
            continue
        if isinstance(child, _SCOPE_NODES):
            continue
        if isinstance(child, ast.Name) and isinstance(child.ctx, ast.Store):
            names.add(child.id)
        elif isinstance(child, ast.alias):
            names.add(child.asname or child.name.partition(".")[0])
        elif isinstance(child, ast.Global):
            declared.update(child.names)
        elif isinstance(child, (ast.ExceptHandler, ast.MatchAs, ast.MatchStar)) and child.name:
            names.add(child.name)
        pending.extend(ast.iter_child_nodes(child))

    return names - declared


def _head_name(node: ast.expr) -> str | None:
    """Leftmost name of a dotted reference."""
    while isinstance(node, ast.Attribute):
        node = node.value
    return node.id if isinstance(node, ast.Name) else None


def _import_insert_index(body: list[ast.stmt]) -> int:
    """Find index after the module docstring and ``__future__`` imports."""
    index = 0
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant) and isinstance(body[0].value.value, str):
        index = 1
    while index < len(body) and isinstance(body[index], ast.ImportFrom) and body[index].module == "__future__":
        index += 1
    return index
