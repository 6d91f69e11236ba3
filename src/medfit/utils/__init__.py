"""Utility modules for medfit."""

from .statistics import (
    covariance_factor,
    draw_multivariate_normal,
    percentile_interval,
    replicate_generators,
)

__all__ = [
    "covariance_factor",
    "draw_multivariate_normal",
    "percentile_interval",
    "replicate_generators",
]
