"""
Extractor for statsmodels regression results.

Supports linear models (OLS, WLS, GLS) and GLMs, fitted either through the
formula interface or with arrays. Parameter names are prefixed with the
sub-model they come from: ``m_`` for the mediator model and ``y_`` for the
outcome model (``m1_``, ``m2_``, ... for the stages of a serial chain).
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

import numpy as np
import pandas as pd
from loguru import logger

from ..exceptions import ConfigurationError
from ..structures import MediationStructure, SerialMediationStructure
from .base import (
    combine_block_diagonal,
    predictors_without_intercept,
    prefix_names,
    source_table,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass
class _FittedModel:
    """What the extractor needs from one statsmodels results object."""

    names: list[str]
    params: NDArray
    covariance: NDArray
    nobs: int
    sigma: float | None
    converged: bool
    label: str
    response: str
    frame: pd.DataFrame | None

    def coefficient(self, name: str, role: str) -> float:
        try:
            return float(self.params[self.names.index(name)])
        except ValueError:
            raise ConfigurationError(
                f"{role} variable '{name}' not found in the {self.response!r} model "
                f"coefficients {self.names}"
            ) from None


def _describe(results: Any) -> _FittedModel:
    if not hasattr(results, "params") or not hasattr(results, "cov_params"):
        raise ConfigurationError(
            f"Expected a fitted statsmodels results object, got {type(results).__name__}"
        )
    model = results.model
    params = results.params
    if isinstance(params, pd.Series):
        names = [str(n) for n in params.index]
        values = params.to_numpy(dtype=float)
    else:
        names = [str(n) for n in model.exog_names]
        values = np.asarray(params, dtype=float)

    family = getattr(model, "family", None)
    if family is None:
        gaussian, converged = True, True
    else:
        from statsmodels.genmod.families import Gaussian

        gaussian = isinstance(family, Gaussian)
        converged = bool(getattr(results, "converged", True))

    return _FittedModel(
        names=names,
        params=values,
        covariance=np.asarray(results.cov_params(), dtype=float),
        nobs=int(results.nobs),
        sigma=float(np.sqrt(results.scale)) if gaussian else None,
        converged=converged,
        label=f"statsmodels.{type(model).__name__}",
        response=str(model.endog_names),
        frame=getattr(model.data, "frame", None),
    )


def _direct_path(
    outcome: _FittedModel, treatment: str
) -> tuple[float, bool]:
    """Return ``(c_prime, present)``; a missing direct path is fixed at 0."""
    if treatment in outcome.names:
        return outcome.coefficient(treatment, "Treatment"), True
    message = (
        f"Treatment '{treatment}' is not a predictor of the outcome model; "
        "the direct effect is fixed at 0"
    )
    logger.warning(message)
    warnings.warn(message, UserWarning, stacklevel=3)
    return 0.0, False


def _combine(
    fits: Sequence[_FittedModel], prefixes: Sequence[str]
) -> tuple[list[str], NDArray, NDArray]:
    names: list[str] = []
    for fit, prefix in zip(fits, prefixes):
        names.extend(prefix_names(prefix, fit.names))
    estimates = np.concatenate([fit.params for fit in fits])
    covariance = combine_block_diagonal(*(fit.covariance for fit in fits))
    return names, estimates, covariance


def _append_fixed_zero(
    names: list[str], estimates: NDArray, covariance: NDArray, name: str
) -> tuple[list[str], NDArray, NDArray]:
    """Add a parameter held at 0 with zero variance."""
    return (
        [*names, name],
        np.append(estimates, 0.0),
        combine_block_diagonal(covariance, np.zeros((1, 1))),
    )


def _observations(fits: Sequence[_FittedModel]) -> int:
    counts = {fit.nobs for fit in fits}
    if len(counts) > 1:
        logger.warning(f"Sub-models were fitted on different numbers of observations: {counts}")
    return fits[-1].nobs


def extract_statsmodels(
    mediator_model: Any,
    outcome_model: Any,
    treatment: str,
    mediator: str,
    outcome: str | None = None,
    data: pd.DataFrame | None = None,
) -> MediationStructure:
    """Build a :class:`MediationStructure` from two statsmodels fits.

    Parameters
    ----------
    mediator_model : statsmodels results
        Fit of the mediator on the treatment (and covariates).
    outcome_model : statsmodels results
        Fit of the outcome on treatment, mediator (and covariates).
    treatment, mediator : str
        Variable names as they appear among the coefficients.
    outcome : str, optional
        Outcome name; defaults to the outcome model's response.
    data : pd.DataFrame, optional
        Original observations; defaults to the formula data frame.

    Returns
    -------
    MediationStructure
        The combined covariance is block-diagonal in the two sub-models.
    """
    fit_m = _describe(mediator_model)
    fit_y = _describe(outcome_model)

    a_path = fit_m.coefficient(treatment, "Treatment")
    b_path = fit_y.coefficient(mediator, "Mediator")
    c_prime, has_direct = _direct_path(fit_y, treatment)

    names, estimates, covariance = _combine([fit_m, fit_y], ["m", "y"])
    if not has_direct:
        names, estimates, covariance = _append_fixed_zero(
            names, estimates, covariance, f"y_{treatment}"
        )

    n_obs = _observations([fit_m, fit_y])
    label = fit_m.label if fit_m.label == fit_y.label else f"{fit_m.label}+{fit_y.label}"
    return MediationStructure(
        a_path=a_path,
        b_path=b_path,
        c_prime=c_prime,
        estimates=estimates,
        covariance=covariance,
        parameter_names=tuple(names),
        treatment_name=treatment,
        mediator_name=mediator,
        outcome_name=outcome or fit_y.response,
        n_obs=n_obs,
        sigma_mediator=fit_m.sigma,
        sigma_outcome=fit_y.sigma,
        mediator_predictors=predictors_without_intercept(fit_m.names),
        outcome_predictors=predictors_without_intercept(fit_y.names),
        source_data=source_table(data if data is not None else fit_y.frame, n_obs),
        converged=fit_m.converged and fit_y.converged,
        source_label=label,
        path_labels={"a": f"m_{treatment}", "b": f"y_{mediator}", "c_prime": f"y_{treatment}"},
    )


def extract_statsmodels_serial(
    mediator_models: Sequence[Any],
    outcome_model: Any,
    treatment: str,
    mediators: Sequence[str],
    outcome: str | None = None,
    data: pd.DataFrame | None = None,
) -> SerialMediationStructure:
    """Build a :class:`SerialMediationStructure` from statsmodels fits.

    ``mediator_models[i]`` is the fit for ``mediators[i]``; the first stage
    must include the treatment and each later stage the previous mediator.
    """
    if len(mediators) < 2:
        raise ConfigurationError(
            f"Serial mediation requires at least 2 mediators, got {len(mediators)}"
        )
    if len(mediator_models) != len(mediators):
        raise ConfigurationError(
            f"Got {len(mediator_models)} mediator models for {len(mediators)} mediators"
        )
    fits = [_describe(m) for m in mediator_models]
    fit_y = _describe(outcome_model)

    a_path = fits[0].coefficient(treatment, "Treatment")
    d_path = [
        fits[i + 1].coefficient(mediators[i], "Mediator") for i in range(len(mediators) - 1)
    ]
    b_path = fit_y.coefficient(mediators[-1], "Mediator")
    c_prime, has_direct = _direct_path(fit_y, treatment)

    prefixes = [f"m{i + 1}" for i in range(len(fits))]
    names, estimates, covariance = _combine([*fits, fit_y], [*prefixes, "y"])
    if not has_direct:
        names, estimates, covariance = _append_fixed_zero(
            names, estimates, covariance, f"y_{treatment}"
        )

    # d paths follow the m{i+1}_ naming and resolve by convention
    path_labels = {"a": f"m1_{treatment}", "b": f"y_{mediators[-1]}", "c_prime": f"y_{treatment}"}

    n_obs = _observations([*fits, fit_y])
    return SerialMediationStructure(
        a_path=a_path,
        d_path=tuple(d_path),
        b_path=b_path,
        c_prime=c_prime,
        estimates=estimates,
        covariance=covariance,
        parameter_names=tuple(names),
        treatment_name=treatment,
        mediator_names=tuple(mediators),
        outcome_name=outcome or fit_y.response,
        n_obs=n_obs,
        sigma_mediators=tuple(fit.sigma for fit in fits),
        sigma_outcome=fit_y.sigma,
        mediator_predictors=tuple(predictors_without_intercept(fit.names) for fit in fits),
        outcome_predictors=predictors_without_intercept(fit_y.names),
        source_data=source_table(data if data is not None else fit_y.frame, n_obs),
        converged=all(fit.converged for fit in fits) and fit_y.converged,
        source_label=fits[0].label,
        path_labels=path_labels,
    )


__all__ = ["extract_statsmodels", "extract_statsmodels_serial"]
