"""
Registry of extractor strategies keyed by fitting-engine name.

The registry starts empty. The host application decides which extractors
are available and registers them explicitly, typically once at startup:

>>> registry = ExtractorRegistry()
>>> register_builtin_extractors(registry)
>>> structure = registry.extract("statsmodels", fit_m, fit_y, "X", "M")
"""

from __future__ import annotations

import importlib.util
from typing import Any

from loguru import logger

from ..exceptions import ConfigurationError, ExtractorNotFoundError
from .base import Extractor


class ExtractorRegistry:
    """Mapping from engine name to extractor function."""

    def __init__(self):
        self._extractors: dict[str, Extractor] = {}

    def register(self, name: str, extractor: Extractor, *, replace: bool = False) -> None:
        """Register ``extractor`` under ``name``.

        Raises
        ------
        ConfigurationError
            If the name is empty, the extractor is not callable, or the name
            is taken and ``replace`` is False.
        """
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"Extractor name must be a non-empty string, got {name!r}")
        if not callable(extractor):
            raise ConfigurationError(f"Extractor for {name!r} must be callable")
        if name in self._extractors and not replace:
            raise ConfigurationError(
                f"An extractor is already registered for {name!r}; pass replace=True"
            )
        self._extractors[name] = extractor
        logger.info(f"Registered extractor '{name}'")

    def unregister(self, name: str) -> None:
        self.get(name)
        del self._extractors[name]

    def get(self, name: str) -> Extractor:
        try:
            return self._extractors[name]
        except KeyError:
            available = ", ".join(self.names()) or "none"
            raise ExtractorNotFoundError(
                f"No extractor registered for engine {name!r} (available: {available})"
            ) from None

    def names(self) -> list[str]:
        return sorted(self._extractors)

    def extract(self, name: str, *args: Any, **kwargs: Any):
        """Run the extractor registered under ``name``."""
        return self.get(name)(*args, **kwargs)

    def __contains__(self, name: object) -> bool:
        return name in self._extractors

    def __len__(self) -> int:
        return len(self._extractors)

    def __repr__(self) -> str:
        return f"ExtractorRegistry({self.names()})"


def statsmodels_available() -> bool:
    """Whether the optional statsmodels dependency can be imported."""
    return importlib.util.find_spec("statsmodels") is not None


def register_builtin_extractors(registry: ExtractorRegistry) -> list[str]:
    """Register the extractors shipped with medfit.

    Returns the names that were registered.

    Raises
    ------
    ConfigurationError
        If statsmodels is not installed.
    """
    if not statsmodels_available():
        raise ConfigurationError(
            "statsmodels is required for the built-in extractors; "
            "install it with `pip install medfit[models]`"
        )
    from .statsmodels_glm import extract_statsmodels, extract_statsmodels_serial

    registry.register("statsmodels", extract_statsmodels)
    registry.register("statsmodels-serial", extract_statsmodels_serial)
    return ["statsmodels", "statsmodels-serial"]


__all__ = [
    "ExtractorRegistry",
    "register_builtin_extractors",
    "statsmodels_available",
]
