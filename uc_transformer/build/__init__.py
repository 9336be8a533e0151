"""
Building of distribution modules.
"""

from __future__ import annotations

from .bundle import Bundle, BundlePlan, CompileTask, TaskKind
from .bundle_registry import BundleRegistry
from .dist_writer import DistWriter

__all__ = [
    "Bundle",
    "BundlePlan",
    "BundleRegistry",
    "CompileTask",
    "DistWriter",
    "TaskKind",
]
