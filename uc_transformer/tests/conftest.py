"""
Shared fixtures: an in-memory serialization framework and project factory.
"""

from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from uc_transformer.config import UcConfig
from uc_transformer.pipeline import UcPipeline
from uc_transformer.project.program import Program
from uc_transformer.uc_setup import UcSetup

FAKE_LIBRARY = "fake_churi"

# Runtime factories. Only placeholders: real functions are generated.
FAKE_FACTORIES = '''
def create_uc_bundle(options=None):
    return dict(options or {})


def create_uc_deserializer(model, options=None):
    def read_value(data):
        raise NotImplementedError(f"Deserializer of {model!r} is not compiled")

    return read_value


def create_uc_serializer(model, options=None):
    def write_value(value):
        raise NotImplementedError(f"Serializer of {model!r} is not compiled")

    return write_value
'''

# Generator emitting one trivial function per model.
FAKE_COMPILER = '''
def _describe(entry):
    model = entry["model"]
    options = {key: value for key, value in entry.items() if key != "model"}
    name = getattr(model, "__name__", type(model).__name__)
    return f"{name} {options!r}" if options else name


class UcdCompiler:
    def __init__(self, models):
        self.models = models

    def bootstrap(self):
        return "\\n\\n".join(
            f"def {fn_id}(data):\\n    # {_describe(entry)}\\n    return data\\n" for fn_id, entry in self.models.items()
        )


class UcsCompiler:
    def __init__(self, models):
        self.models = models

    def bootstrap(self):
        return "\\n\\n".join(
            f"def {fn_id}(value):\\n    # {_describe(entry)}\\n    return str(value)\\n" for fn_id, entry in self.models.items()
        )


def generate(setup):
    return "# Generated functions\\n\\n\\n" + "\\n\\n".join(setup)
'''

FAKE_LIBRARY_FILES = {
    f"{FAKE_LIBRARY}/__init__.py": "from .factories import create_uc_bundle, create_uc_deserializer, create_uc_serializer\n",
    f"{FAKE_LIBRARY}/factories.py": FAKE_FACTORIES,
    f"{FAKE_LIBRARY}/compiler.py": FAKE_COMPILER,
}


class Project:
    """A throwaway project below a temporary source root."""

    def __init__(self, root: Path, files: dict[str, str], config: UcConfig):
        self.root = root
        self.files = {**FAKE_LIBRARY_FILES, "app/__init__.py": "", **files}
        self.config = config
        self.program = Program(root, vfs=self.files)
        self.setup = UcSetup(self.program, config)

    def unit(self, module: str):
        return self.program.get_unit(module)


@pytest.fixture
def uc_config() -> UcConfig:
    return UcConfig(library=FAKE_LIBRARY, dist="app/uc_lib.py")


@pytest.fixture
def make_project(tmp_path, uc_config):
    """Create a project from module texts keyed by path relative to the source root."""

    def make(files: dict[str, str], config: UcConfig | None = None) -> Project:
        return Project(tmp_path, files, config or uc_config)

    return make


@pytest.fixture
def make_pipeline(tmp_path, uc_config):
    """Create a pipeline over module texts, below ``root`` or the temporary directory."""

    def make(files: dict[str, str], root: Path | None = None, config: UcConfig | None = None) -> UcPipeline:
        vfs = {**FAKE_LIBRARY_FILES, "app/__init__.py": "", **{path: dedent(text) for path, text in files.items()}}
        return UcPipeline(root or tmp_path, config or uc_config, vfs=vfs)

    return make
