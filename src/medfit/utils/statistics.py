"""Statistical utility functions for medfit.

This module provides the numeric building blocks of the bootstrap engine:
percentile confidence intervals, a square-root factor of a covariance
matrix, and batched multivariate normal draws.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from numpy.typing import NDArray


# Relative tolerance on eigenvalues when deciding positive semi-definiteness
PSD_TOLERANCE = 1e-8


def percentile_interval(
    samples: NDArray,
    ci_level: float = 0.95,
    axis: int = 0,
) -> tuple[float, float]:
    """Compute an equal-tailed percentile interval.

    Parameters
    ----------
    samples : NDArray
        Replicate values.
    ci_level : float, default=0.95
        Probability mass inside the interval.
    axis : int, default=0
        Axis along which to compute quantiles.

    Returns
    -------
    tuple[float, float]
        The ``alpha/2`` and ``1 - alpha/2`` empirical quantiles, where
        ``alpha = 1 - ci_level``.

    Notes
    -----
    Quantiles use linear interpolation between order statistics (numpy's
    default), which matches the usual "type 7" sample quantile.
    """
    alpha = 1.0 - ci_level
    lower, upper = np.quantile(samples, [alpha / 2, 1 - alpha / 2], axis=axis)
    return lower, upper


def covariance_factor(covariance: NDArray) -> NDArray:
    """Return ``L`` with ``L @ L.T == covariance``.

    A Cholesky factorization is used when the matrix is positive definite.
    Positive semi-definite but singular matrices (for example a parameter
    with zero variance) fall back to a symmetric eigen-decomposition.

    Raises
    ------
    ConfigurationError
        If the matrix is not square, not finite, not symmetric, or has a
        materially negative eigenvalue.
    """
    cov = np.asarray(covariance, dtype=float)
    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise ConfigurationError(f"Covariance must be a square matrix, got shape {cov.shape}")
    if not np.all(np.isfinite(cov)):
        raise ConfigurationError("Covariance contains non-finite values")
    if cov.size == 0:
        return cov.copy()

    scale = max(1.0, float(np.max(np.abs(cov))))
    if not np.allclose(cov, cov.T, rtol=0.0, atol=PSD_TOLERANCE * scale):
        raise ConfigurationError("Covariance matrix is not symmetric")

    try:
        return np.linalg.cholesky(cov)
    except np.linalg.LinAlgError:
        pass

    eigenvalues, eigenvectors = np.linalg.eigh((cov + cov.T) / 2)
    if eigenvalues.min() < -PSD_TOLERANCE * max(1.0, float(np.abs(eigenvalues).max())):
        raise ConfigurationError(
            "Covariance matrix is not positive semi-definite "
            f"(smallest eigenvalue {eigenvalues.min():.3g})"
        )
    return eigenvectors * np.sqrt(np.clip(eigenvalues, 0.0, None))


def draw_multivariate_normal(
    mean: NDArray,
    covariance: NDArray,
    generators: Sequence[np.random.Generator],
) -> NDArray:
    """Draw one multivariate normal vector per generator.

    Standard normal vectors are taken from each generator in turn and
    transformed in a single batch, ``theta = mean + Z @ L.T``.

    Parameters
    ----------
    mean : NDArray
        Mean vector of length ``p``.
    covariance : NDArray
        ``(p, p)`` covariance matrix.
    generators : sequence of numpy.random.Generator
        One generator per draw; draw ``i`` depends only on ``generators[i]``.

    Returns
    -------
    NDArray
        Array of shape ``(len(generators), p)``.
    """
    mu = np.asarray(mean, dtype=float)
    factor = covariance_factor(covariance)
    p = mu.shape[0]
    if factor.shape != (p, p):
        raise ConfigurationError(
            f"Mean has length {p} but covariance has shape {factor.shape}"
        )
    if not generators:
        return np.empty((0, p))
    z = np.vstack([gen.standard_normal(p) for gen in generators])
    return mu + z @ factor.T


def replicate_generators(
    seed: int | np.random.SeedSequence | None,
    n: int,
) -> tuple[np.random.SeedSequence, list[np.random.SeedSequence]]:
    """Spawn one independent seed sequence per replicate index.

    Returns the root sequence (whose ``entropy`` reproduces the run) and the
    list of children, so replicate ``i`` always uses child ``i`` whatever
    worker evaluates it.
    """
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    # Children are keyed off the root without advancing its spawn counter, so a
    # caller-owned sequence yields the same replicates on every run.
    children = [
        np.random.SeedSequence(
            root.entropy,
            spawn_key=(*root.spawn_key, i),
            pool_size=root.pool_size,
        )
        for i in range(n)
    ]
    return root, children


__all__ = [
    "PSD_TOLERANCE",
    "percentile_interval",
    "covariance_factor",
    "draw_multivariate_normal",
    "replicate_generators",
]
