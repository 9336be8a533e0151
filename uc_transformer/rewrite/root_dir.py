"""
Tracks the common ancestor directory of rewritten modules.
"""

from __future__ import annotations

import os
from pathlib import Path


class RootDirTracker:
    """Narrows a root directory to the common ancestor of every added file."""

    def __init__(self):
        self._root_dir: Path | None = None

    @property
    def root_dir(self) -> Path | None:
        return self._root_dir

    def update_root_dir(self, file_path: Path) -> Path:
        directory = Path(file_path).resolve().parent

        if self._root_dir is None:
            self._root_dir = directory
        else:
            self._root_dir = Path(os.path.commonpath([self._root_dir, directory]))

        return self._root_dir
