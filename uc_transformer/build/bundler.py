"""
Build orchestrator.

Collects compile tasks from the transformer, synthesizes a bundler module that
invokes the framework's code generator, and runs it against the build form of
the program in a disposable directory.
"""

from __future__ import annotations

import ast
import importlib
import importlib.util
import logging
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import jinja2

from ..errors import Diagnostic, UcBuildError
from ..rewrite.names import NameRegistry
from ..rewrite.transformer import UcTasks
from .bundle import CompileTask

if TYPE_CHECKING:
    from ..project.program import SourceUnit
    from ..uc_setup import UcSetup

logger = logging.getLogger(__name__)

CURRENT_DIR = Path(__file__).parent.parent.resolve()

BUNDLER_FILE_NAME = "uc_lib_bundler"

# Names the bundler module defines itself
BUNDLER_RESERVED_NAMES = (
    "DIST_WRITER",
    "DistWriter",
    "UcdCompiler",
    "UcsCompiler",
    "generate",
    "ucd_compiler",
    "ucs_compiler",
)


@dataclass
class BundlerSource:
    """Synthesized bundler module."""

    path: Path
    source_text: str


@dataclass
class _BundlerModel:
    fn_id: str
    model_id: str
    module: str
    alias: str
    options: dict


class UcBundler(UcTasks):
    """Receives rewritten modules and compile tasks, and builds distribution modules."""

    def __init__(self, setup: UcSetup):
        self._setup = setup
        self._vfs: dict[Path, str] = {}
        self.jinja_env = jinja2.Environment(lstrip_blocks=True, trim_blocks=True, keep_trailing_newline=True)
        self.jinja_env.filters["pyrepr"] = repr
        self.bundler_template = self.jinja_env.from_string(
            (CURRENT_DIR / "templates/bundler.py.jinja2").read_text(encoding="utf-8")
        )

    @property
    def vfs(self) -> dict[Path, str]:
        """Build forms of the rewritten modules, by file path."""
        return self._vfs

    def replace_source_unit(self, unit: SourceUnit, final: ast.Module, build: ast.Module) -> None:
        self._vfs[unit.path] = ast.unparse(build) + "\n"
        self._setup.root.update_root_dir(unit.path)

    def compile_uc_deserializer(self, task: CompileTask) -> None:
        task.bundle.compile_uc_deserializer(task)

    def compile_uc_serializer(self, task: CompileTask) -> None:
        task.bundle.compile_uc_serializer(task)

    def emit_bundler(self) -> BundlerSource | None:
        """Synthesize the bundler module.

        Drains every bundle with pending tasks.

        Returns:
            The bundler module, or None if there is nothing to build
        """
        root_dir = self._setup.root.root_dir
        bundles = [bundle for bundle in self._setup.bundle_registry.bundles() if bundle.has_tasks]
        if root_dir is None or not bundles:
            return None

        names = NameRegistry(BUNDLER_RESERVED_NAMES)
        models: list[_BundlerModel] = []
        contexts = []
        kinds = set()

        for bundle in bundles:
            plan = bundle.drain()
            context = {
                "fn_name": names.reserve_name("emit_bundle"),
                "dist_file": str(self._setup.dist_output_path(plan.dist_file)),
                "deserializers": [],
                "serializers": [],
            }
            for key, tasks in (("deserializers", plan.deserializers), ("serializers", plan.serializers)):
                for task in tasks:
                    kinds.add(task.kind)
                    model = _BundlerModel(
                        fn_id=task.fn_id,
                        model_id=task.model_id,
                        module=task.from_module,
                        alias=names.reserve_name(task.model_id),
                        options=dict(task.options),
                    )
                    models.append(model)
                    context[key].append(model)
            contexts.append(context)

        config = self._setup.config
        source_text = self.bundler_template.render(
            library=self._setup.library.name,
            compiler_imports=sorted(kind.compiler_name for kind in kinds) + ["generate"],
            models=models,
            bundles=contexts,
            writer_config={
                "formatter": config.to_dict()["formatter"],
                "output": config.to_dict()["output"],
            },
        )

        return BundlerSource(path=root_dir / f"{BUNDLER_FILE_NAME}.py", source_text=source_text)

    def compile(self) -> None:
        """Build distribution modules.

        Raises:
            UcBuildError: If the build form of the program does not compile,
                or the bundler module is missing from it
        """
        bundler = self.emit_bundler()
        if bundler is None:
            logger.debug("Nothing to build")
            return

        temp_dir = self._setup.create_temp_dir()
        try:
            entry = self._materialize(temp_dir, bundler)
            self._check(temp_dir)
            if entry is None or not entry.is_file():
                raise UcBuildError("Schema compiler not emitted")
            self._execute(temp_dir, entry)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
            logger.debug("Removed build directory %s", temp_dir)

    def _materialize(self, temp_dir: Path, bundler: BundlerSource) -> Path | None:
        program = self._setup.program
        files = {path: None for path in program.module_paths()}
        files.update({path: None for path in program.vfs})
        files.update(self._vfs)
        files[bundler.path] = bundler.source_text

        entry = None
        for path, text in files.items():
            try:
                relative = path.relative_to(program.root_dir)
            except ValueError:
                continue
            target = temp_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text if text is not None else program.read_text(path), encoding="utf-8")
            if path == bundler.path:
                entry = target

        logger.debug("Materialized %d files in %s", len(files), temp_dir)

        return entry

    def _check(self, temp_dir: Path) -> None:
        diagnostics = []
        for path in sorted(temp_dir.rglob("*.py")):
            text = path.read_text(encoding="utf-8")
            try:
                compile(text, str(path), "exec")
            except SyntaxError as e:
                diagnostics.append(
                    Diagnostic(
                        e.msg,
                        path=self._setup.program.root_dir / path.relative_to(temp_dir),
                        line=e.lineno,
                        column=(e.offset - 1) if e.offset else None,
                        source_line=e.text.rstrip("\n") if e.text else None,
                    )
                )

        if self._setup.report_errors(diagnostics):
            raise UcBuildError("Failed to emit schema compiler", diagnostics)

    def _execute(self, temp_dir: Path, entry: Path) -> None:
        program = self._setup.program
        shadowed = {
            module: sys.modules.pop(module)
            for module in [name for name in sys.modules if program.has_module(name) or name == BUNDLER_FILE_NAME]
        }
        sys_path = list(sys.path)
        sys.path.insert(0, str(temp_dir))
        importlib.invalidate_caches()

        logger.debug("Executing %s", entry)
        try:
            spec = importlib.util.spec_from_file_location(BUNDLER_FILE_NAME, entry)
            module = importlib.util.module_from_spec(spec)
            sys.modules[BUNDLER_FILE_NAME] = module
            spec.loader.exec_module(module)
        finally:
            sys.path[:] = sys_path
            for name, module in list(sys.modules.items()):
                module_file = getattr(module, "__file__", None)
                if module_file and Path(module_file).resolve().is_relative_to(temp_dir.resolve()):
                    del sys.modules[name]
            sys.modules.pop(BUNDLER_FILE_NAME, None)
            sys.modules.update(shadowed)
