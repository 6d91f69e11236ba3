"""
Extractors turning fitted models into mediation structures.

Extractors are looked up in an :class:`ExtractorRegistry` that the host
application fills explicitly; importing this package registers nothing.

- base: block-diagonal covariance combination and naming helpers
- registry: ExtractorRegistry and the built-in registration hook
- statsmodels_glm: extractors for statsmodels linear models and GLMs
"""

from .base import (
    Extractor,
    combine_block_diagonal,
    predictors_without_intercept,
    prefix_names,
)
from .registry import (
    ExtractorRegistry,
    register_builtin_extractors,
    statsmodels_available,
)

__all__ = [
    "Extractor",
    "ExtractorRegistry",
    "combine_block_diagonal",
    "predictors_without_intercept",
    "prefix_names",
    "register_builtin_extractors",
    "statsmodels_available",
]
