"""
Registry of the default bundle and named bundles.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from .bundle import Bundle

if TYPE_CHECKING:
    from ..project.symbols import Symbol
    from ..rewrite.options_literal import OptionsLiteral
    from ..uc_setup import UcSetup

logger = logging.getLogger(__name__)

_WORD_PATTERN = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+")


def to_snake_case(text: str) -> str:
    """Convert camelCase, PascalCase or CONSTANT_CASE to snake_case."""
    return "_".join(word.lower() for word in _WORD_PATTERN.findall(text))


class BundleRegistry:
    """Creates bundles on first request."""

    def __init__(self, setup: UcSetup):
        self._setup = setup
        self._default_bundle: Bundle | None = None
        self._bundles: dict[Symbol, Bundle] = {}

    @property
    def default_bundle(self) -> Bundle:
        if self._default_bundle is None:
            self._default_bundle = Bundle(self._setup, self._setup.default_dist)
            logger.debug("Default bundle emitted to %s", self._default_bundle.dist_file)
        return self._default_bundle

    def get_bundle(self, symbol: Symbol) -> Bundle:
        """Get the bundle declared by ``symbol``, creating it if necessary."""
        bundle = self._bundles.get(symbol)
        if bundle is not None:
            return bundle

        dist_file = self._setup.package_info.guess_dist_file(to_snake_case(symbol.local_name))
        bundle = Bundle(self._setup, dist_file)
        self._bundles[symbol] = bundle
        logger.debug("Bundle %s emitted to %s", symbol, dist_file)

        return bundle

    def resolve_bundle(self, options: OptionsLiteral) -> Bundle:
        """Select the bundle named by the ``bundle`` option, or the default one."""
        option = options.get("bundle")
        symbol = option.get_symbol() if option is not None else None

        return self.get_bundle(symbol) if symbol is not None else self.default_bundle

    def bundles(self) -> list[Bundle]:
        """List bundles, the default one first if it was ever requested."""
        bundles = [self._default_bundle] if self._default_bundle is not None else []
        return bundles + list(self._bundles.values())
