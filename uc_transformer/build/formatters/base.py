"""
Formatting of generated distribution modules.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ...config import FormatterConfig


class Formatter(ABC):
    """Post-processes the text of a distribution module before it is written.

    A formatter must never change what the module does. The dist writer
    validates the formatted text again before replacing the file.
    """

    @abstractmethod
    def format(self, code: str, config: FormatterConfig) -> str:
        """Return ``code`` reformatted according to ``config``, or unchanged if it can not be."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the external tool behind this formatter can be run."""
