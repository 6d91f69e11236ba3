"""
Bootstrap inference for mediation statistics.

Three regimes are supported:

- ``parametric``: parameter vectors are drawn from a multivariate normal
  centred on the point estimates with the fitted covariance.
- ``nonparametric``: observation rows are resampled with replacement and
  the statistic (typically a refit) is evaluated on each resampled table.
- ``plugin``: the statistic is evaluated once at the point estimates.

Every replicate draws from its own random stream spawned from the master
seed, so a seeded run gives identical replicates whether it is evaluated
sequentially or on a worker pool.

Examples
--------
>>> from medfit import bootstrap, effect_statistic
>>> outcome = bootstrap(
...     effect_statistic(structure, "indirect"),
...     method="parametric",
...     structure=structure,
...     n_boot=2000,
...     seed=42,
... )
>>> outcome.ci_lower, outcome.ci_upper
"""

from __future__ import annotations

import math
import pickle
import warnings
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Hashable, Sequence

import numpy as np
import pandas as pd
from loguru import logger

from .config import BootstrapConfig, BootstrapMethod, ExecutorBackend
from .exceptions import (
    BootstrapFailureWarning,
    ConfigurationError,
    InsufficientReplicatesError,
    ResamplingFailure,
)
from .results import BootstrapOutcome
from .structures import ParametricModel
from .utils.statistics import (
    draw_multivariate_normal,
    percentile_interval,
    replicate_generators,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

StatisticFn = Callable[[Any], Any]


# =============================================================================
# Replicate evaluation (module level so process pools can pickle it)
# =============================================================================


def _to_scalar(value: Any) -> float:
    """Convert a statistic's return value to a float."""
    try:
        arr = np.asarray(value, dtype=float)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"statistic_fn must return a numeric scalar, got {type(value).__name__}"
        ) from e
    if arr.size != 1:
        raise ConfigurationError(
            f"statistic_fn must return a scalar, got an array of shape {arr.shape}"
        )
    return float(arr.reshape(-1)[0])


def _parameter_vector(names: Sequence[Hashable], values: NDArray) -> pd.Series:
    return pd.Series(values, index=list(names))


def _evaluate_parametric(
    statistic_fn: StatisticFn,
    names: Sequence[Hashable],
    draws: NDArray,
) -> list[float]:
    return [_to_scalar(statistic_fn(_parameter_vector(names, row))) for row in draws]


def _evaluate_nonparametric(
    statistic_fn: StatisticFn,
    table: pd.DataFrame,
    tasks: Sequence[tuple[int, np.random.SeedSequence]],
) -> list[tuple[int, float | None, ResamplingFailure | None]]:
    n_rows = len(table)
    results = []
    for index, seed in tasks:
        rng = np.random.default_rng(seed)
        rows = rng.integers(0, n_rows, size=n_rows)
        resampled = table.iloc[rows].reset_index(drop=True)
        try:
            value = _to_scalar(statistic_fn(resampled))
            if not math.isfinite(value):
                raise ValueError(f"statistic returned a non-finite value ({value})")
        except Exception as e:
            results.append((index, None, ResamplingFailure(index, f"{type(e).__name__}: {e}")))
        else:
            results.append((index, value, None))
    return results


# =============================================================================
# Engine
# =============================================================================


class BootstrapEngine:
    """Run bootstrap replicates of a scalar statistic.

    Parameters
    ----------
    config : BootstrapConfig, optional
        Engine settings; defaults to ``BootstrapConfig()``.

    Examples
    --------
    >>> engine = BootstrapEngine(BootstrapConfig(n_boot=500, parallel=True))
    >>> outcome = engine.run(lambda df: df["y"].mean(), "nonparametric", table=df, seed=1)
    """

    def __init__(self, config: BootstrapConfig | None = None):
        self.config = config if config is not None else BootstrapConfig()

    def run(
        self,
        statistic_fn: StatisticFn,
        method: BootstrapMethod | str = BootstrapMethod.PARAMETRIC,
        structure: ParametricModel | None = None,
        table: pd.DataFrame | None = None,
        *,
        n_boot: int | None = None,
        ci_level: float | None = None,
        parallel: bool | None = None,
        seed: int | np.random.SeedSequence | None = None,
    ) -> BootstrapOutcome:
        """Bootstrap ``statistic_fn`` with the given regime.

        Parameters
        ----------
        statistic_fn : callable
            For ``parametric`` and ``plugin``, receives a parameter vector
            (a Series keyed like the structure's estimates). For
            ``nonparametric``, receives a resampled DataFrame. Must return
            a scalar.
        method : {"parametric", "nonparametric", "plugin"}
            Resampling regime.
        structure : ParametricModel, optional
            Required for ``parametric`` and ``plugin``.
        table : pd.DataFrame, optional
            Observation table, required for ``nonparametric``.
        n_boot, ci_level, parallel : optional
            Per-call overrides of the engine configuration.
        seed : int or SeedSequence, optional
            Master seed. Replicates are reproducible given the seed.

        Returns
        -------
        BootstrapOutcome

        Raises
        ------
        ConfigurationError
            If the required input is missing, settings are out of range, or
            the covariance matrix cannot be factorized.
        InsufficientReplicatesError
            If too many nonparametric replicates fail.
        """
        if not callable(statistic_fn):
            raise ConfigurationError("statistic_fn must be callable")
        method = _parse_method(method)

        if method == BootstrapMethod.PLUGIN:
            return self._run_plugin(statistic_fn, structure)

        config = self.config.with_overrides(n_boot=n_boot, ci_level=ci_level, parallel=parallel)
        if method == BootstrapMethod.PARAMETRIC:
            return self._run_parametric(statistic_fn, structure, config, seed)
        return self._run_nonparametric(statistic_fn, table, config, seed)

    # -------------------------------------------------------------------------
    # Regimes
    # -------------------------------------------------------------------------

    def _run_plugin(self, statistic_fn: StatisticFn, structure: Any) -> BootstrapOutcome:
        names, estimates, _ = _require_structure(structure, BootstrapMethod.PLUGIN)
        estimate = _to_scalar(statistic_fn(_parameter_vector(names, estimates)))
        nan = float("nan")
        return BootstrapOutcome(
            estimate=estimate,
            ci_lower=nan,
            ci_upper=nan,
            ci_level=nan,
            replicate_distribution=np.empty(0),
            n_boot=0,
            method=BootstrapMethod.PLUGIN,
        )

    def _run_parametric(
        self,
        statistic_fn: StatisticFn,
        structure: Any,
        config: BootstrapConfig,
        seed: int | np.random.SeedSequence | None,
    ) -> BootstrapOutcome:
        names, estimates, covariance = _require_structure(structure, BootstrapMethod.PARAMETRIC)
        root, children = replicate_generators(seed, config.n_boot)
        logger.debug(
            f"Parametric bootstrap: n_boot={config.n_boot}, p={len(names)}, "
            f"seed entropy={root.entropy}"
        )

        draws = draw_multivariate_normal(
            estimates, covariance, [np.random.default_rng(c) for c in children]
        )
        estimate = _to_scalar(statistic_fn(_parameter_vector(names, estimates)))

        chunks = np.array_split(draws, self._n_chunks(config))
        evaluate = partial(_evaluate_parametric, statistic_fn, names)
        distribution = np.array(
            [value for part in self._map(evaluate, chunks, config) for value in part]
        )
        return _build_outcome(estimate, distribution, config, BootstrapMethod.PARAMETRIC)

    def _run_nonparametric(
        self,
        statistic_fn: StatisticFn,
        table: Any,
        config: BootstrapConfig,
        seed: int | np.random.SeedSequence | None,
    ) -> BootstrapOutcome:
        if table is None:
            raise ConfigurationError(
                "table is required for nonparametric bootstrap "
                "(pass the original observations, e.g. structure.source_data)"
            )
        if not isinstance(table, pd.DataFrame):
            raise ConfigurationError(
                f"table must be a pandas DataFrame, got {type(table).__name__}"
            )
        if len(table) == 0:
            raise ConfigurationError("table must contain at least one row")

        root, children = replicate_generators(seed, config.n_boot)
        logger.debug(
            f"Nonparametric bootstrap: n_boot={config.n_boot}, n_obs={len(table)}, "
            f"seed entropy={root.entropy}"
        )
        estimate = _to_scalar(statistic_fn(table))

        tasks = list(enumerate(children))
        chunk_bounds = np.array_split(np.arange(len(tasks)), self._n_chunks(config))
        chunks = [[tasks[i] for i in bounds] for bounds in chunk_bounds if len(bounds)]
        evaluate = partial(_evaluate_nonparametric, statistic_fn, table)
        results = [item for part in self._map(evaluate, chunks, config) for item in part]

        failures = [failure for _, _, failure in results if failure is not None]
        for failure in failures:
            logger.warning(f"Bootstrap {failure}")
        distribution = np.array([value for _, value, failure in results if failure is None])

        n_failed = len(failures)
        n_successful = config.n_boot - n_failed
        if n_successful < config.min_successful:
            raise InsufficientReplicatesError(
                config.n_boot,
                n_successful,
                f"at least {config.min_successful} successful replicates are required",
            )
        if n_failed / config.n_boot > config.max_failure_fraction:
            raise InsufficientReplicatesError(
                config.n_boot,
                n_successful,
                f"failure fraction {n_failed / config.n_boot:.2f} exceeds "
                f"{config.max_failure_fraction:.2f}",
            )
        if n_failed:
            message = (
                f"{n_failed} of {config.n_boot} bootstrap replicates failed and were excluded"
            )
            logger.warning(message)
            warnings.warn(message, BootstrapFailureWarning, stacklevel=3)

        return _build_outcome(
            estimate, distribution, config, BootstrapMethod.NONPARAMETRIC, n_failed=n_failed
        )

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def _n_chunks(self, config: BootstrapConfig) -> int:
        if not config.parallel:
            return 1
        return min(config.n_boot, config.resolved_workers() * config.chunks_per_worker)

    def _map(self, func: Callable, chunks: Sequence, config: BootstrapConfig) -> list:
        """Apply ``func`` to each chunk, returning results in chunk order."""
        if not config.parallel or len(chunks) <= 1:
            return [func(chunk) for chunk in chunks]

        n_workers = config.resolved_workers()
        logger.debug(
            f"Evaluating {len(chunks)} chunks on {n_workers} {config.backend.value} workers"
        )
        executor: Executor
        if config.backend == ExecutorBackend.PROCESS:
            try:
                pickle.dumps(func)
            except (pickle.PicklingError, AttributeError, TypeError) as e:
                raise ConfigurationError(
                    "The process backend requires a picklable statistic and inputs "
                    f"({e}); use a module-level function or backend=\"thread\""
                ) from e
            executor = ProcessPoolExecutor(max_workers=n_workers)
        else:
            executor = ThreadPoolExecutor(max_workers=n_workers)
        with executor:
            return list(executor.map(func, chunks))


# =============================================================================
# Helpers
# =============================================================================


def _parse_method(method: BootstrapMethod | str) -> BootstrapMethod:
    try:
        return BootstrapMethod(method)
    except ValueError as e:
        raise ConfigurationError(
            f"method must be one of {[m.value for m in BootstrapMethod]}, got {method!r}"
        ) from e


def _require_structure(
    structure: Any, method: BootstrapMethod
) -> tuple[tuple[Hashable, ...], NDArray, NDArray]:
    if structure is None:
        raise ConfigurationError(f"structure is required for the {method.value} method")
    if not isinstance(structure, ParametricModel):
        raise ConfigurationError(
            f"structure must provide as_parametric_model(), got {type(structure).__name__}"
        )
    names, estimates, covariance = structure.as_parametric_model()
    return tuple(names), np.asarray(estimates, dtype=float), np.asarray(covariance, dtype=float)


def _build_outcome(
    estimate: float,
    distribution: NDArray,
    config: BootstrapConfig,
    method: BootstrapMethod,
    n_failed: int = 0,
) -> BootstrapOutcome:
    lower, upper = percentile_interval(distribution, config.ci_level)
    return BootstrapOutcome(
        estimate=estimate,
        ci_lower=float(lower),
        ci_upper=float(upper),
        ci_level=config.ci_level,
        replicate_distribution=distribution,
        n_boot=int(distribution.size),
        method=method,
        n_failed=n_failed,
    )


def bootstrap(
    statistic_fn: StatisticFn,
    method: BootstrapMethod | str = BootstrapMethod.PARAMETRIC,
    structure: ParametricModel | None = None,
    table: pd.DataFrame | None = None,
    n_boot: int | None = None,
    ci_level: float | None = None,
    parallel: bool | None = None,
    seed: int | np.random.SeedSequence | None = None,
    *,
    config: BootstrapConfig | None = None,
    **settings: Any,
) -> BootstrapOutcome:
    """Bootstrap a scalar statistic of a mediation structure or data table.

    Parameters
    ----------
    statistic_fn : callable
        Statistic to evaluate per replicate; see :meth:`BootstrapEngine.run`.
    method : {"parametric", "nonparametric", "plugin"}
        Resampling regime.
    structure : MediationStructure or SerialMediationStructure, optional
        Required for ``parametric`` and ``plugin``.
    table : pd.DataFrame, optional
        Required for ``nonparametric``.
    n_boot : int, optional
        Number of replicates (configuration default 1000).
    ci_level : float, optional
        Confidence level, strictly between 0 and 1 (default 0.95).
    parallel : bool, optional
        Evaluate replicates on a worker pool (default False).
    seed : int, optional
        Master seed for reproducible replicates.
    config : BootstrapConfig, optional
        Base configuration; the explicit arguments above override it.
    **settings
        Further :class:`BootstrapConfig` fields such as ``n_workers``,
        ``backend`` or ``max_failure_fraction``.

    Returns
    -------
    BootstrapOutcome
    """
    base = config if config is not None else BootstrapConfig()
    if settings:
        base = base.with_overrides(**settings)
    engine = BootstrapEngine(base)
    return engine.run(
        statistic_fn,
        method,
        structure=structure,
        table=table,
        n_boot=n_boot,
        ci_level=ci_level,
        parallel=parallel,
        seed=seed,
    )


__all__ = ["BootstrapEngine", "bootstrap"]
