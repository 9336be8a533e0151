"""Serializer factory call transformer

Rewrites ``create_uc_deserializer`` / ``create_uc_serializer`` calls into
imports of functions generated ahead of time, and builds the distribution
modules holding those functions.
"""

__version__ = "0.1.0"

from .build.bundle import Bundle, CompileTask, TaskKind
from .build.bundler import UcBundler
from .build.dist_writer import DistWriter
from .config import FormatterConfig, OutputConfig, UcConfig
from .errors import UcBuildError, UcError, UcSourceError
from .pipeline import UcPipeline
from .project.program import Program
from .rewrite.transformer import UcTransformer
from .uc_setup import UcSetup

__all__ = [
    "UcPipeline",
    "UcConfig",
    "FormatterConfig",
    "OutputConfig",
    "UcSetup",
    "Program",
    "UcTransformer",
    "UcBundler",
    "Bundle",
    "CompileTask",
    "TaskKind",
    "DistWriter",
    "UcError",
    "UcSourceError",
    "UcBuildError",
]
