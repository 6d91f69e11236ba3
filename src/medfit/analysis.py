"""Fitting conveniences built on statsmodels.

``fit_mediation`` fits a mediator and an outcome model from formulas and
extracts the combined structure. ``med`` builds the formulas from variable
names and can bootstrap the indirect effect in the same call.

Examples
--------
>>> from medfit.analysis import med
>>> result = med(df, treatment="X", mediator="M", outcome="Y", boot=True, seed=1)
>>> print(result.quick())
NIE = 0.212 [0.121, 0.314] | NDE = 0.287 | PM = 42.5%
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

import pandas as pd
from loguru import logger

from .bootstrap import bootstrap
from .config import BootstrapMethod
from .effects import MediationEffects, effect_statistic
from .exceptions import ConfigurationError
from .extractors.registry import statsmodels_available
from .extractors.statsmodels_glm import extract_statsmodels
from .results import BootstrapOutcome
from .structures import MediationStructure, SerialMediationStructure

if TYPE_CHECKING:
    from statsmodels.genmod.families import Family


def _split_formula(formula: str, label: str) -> tuple[str, str]:
    if not isinstance(formula, str) or formula.count("~") != 1:
        raise ConfigurationError(f"{label} must be a formula string of the form 'y ~ x', got {formula!r}")
    lhs, rhs = (part.strip() for part in formula.split("~"))
    if not lhs or not rhs:
        raise ConfigurationError(f"{label} must have both a response and predictors: {formula!r}")
    return lhs, rhs


def _mentions(expression: str, variable: str) -> bool:
    return re.search(rf"(?<![\w.]){re.escape(variable)}(?![\w.])", expression) is not None


def _fit(formula: str, data: pd.DataFrame, family: Family | None) -> Any:
    import statsmodels.formula.api as smf

    if family is None:
        return smf.ols(formula, data=data).fit()
    return smf.glm(formula, data=data, family=family).fit()


def fit_mediation(
    formula_y: str,
    formula_m: str,
    data: pd.DataFrame,
    treatment: str,
    mediator: str,
    family_y: Family | None = None,
    family_m: Family | None = None,
) -> MediationStructure:
    """Fit the mediator and outcome models and extract their structure.

    Parameters
    ----------
    formula_y : str
        Outcome model, e.g. ``"Y ~ X + M + C"``.
    formula_m : str
        Mediator model, e.g. ``"M ~ X + C"``.
    data : pd.DataFrame
        Observations.
    treatment, mediator : str
        Column names of the treatment and the mediator.
    family_y, family_m : statsmodels Family, optional
        GLM families; ordinary least squares is used when omitted.

    Returns
    -------
    MediationStructure

    Raises
    ------
    ConfigurationError
        If statsmodels is missing or the variables and formulas disagree.
    """
    if not statsmodels_available():
        raise ConfigurationError("fit_mediation requires statsmodels (pip install medfit[models])")
    if not isinstance(data, pd.DataFrame) or data.empty:
        raise ConfigurationError("data must be a non-empty pandas DataFrame")
    for role, name in (("treatment", treatment), ("mediator", mediator)):
        if not isinstance(name, str) or name not in data.columns:
            raise ConfigurationError(f"{role} variable {name!r} not found in data")

    outcome, rhs_y = _split_formula(formula_y, "formula_y")
    response_m, rhs_m = _split_formula(formula_m, "formula_m")
    if response_m != mediator:
        raise ConfigurationError(
            f"formula_m must have the mediator '{mediator}' as its response, got '{response_m}'"
        )
    if not _mentions(rhs_m, treatment):
        raise ConfigurationError(f"Treatment '{treatment}' not found in formula_m")
    if not _mentions(rhs_y, treatment):
        raise ConfigurationError(f"Treatment '{treatment}' not found in formula_y")
    if not _mentions(rhs_y, mediator):
        raise ConfigurationError(f"Mediator '{mediator}' not found in formula_y")

    logger.debug(f"Fitting mediator model '{formula_m}' and outcome model '{formula_y}'")
    fit_m = _fit(formula_m, data, family_m)
    fit_y = _fit(formula_y, data, family_y)
    return extract_statsmodels(fit_m, fit_y, treatment, mediator, outcome=outcome, data=data)


@dataclass(frozen=True)
class MediationAnalysis:
    """A fitted structure with an optional bootstrap of its indirect effect."""

    structure: MediationStructure | SerialMediationStructure
    bootstrap: BootstrapOutcome | None = None

    @property
    def effects(self) -> MediationEffects:
        return self.structure.effects()

    def quick(self, digits: int = 3) -> str:
        """One-line summary: ``NIE = x [lo, hi] | NDE = y | PM = z%``."""
        effects = self.effects
        ci = ""
        if self.bootstrap is not None and self.bootstrap.method != BootstrapMethod.PLUGIN:
            ci = f" [{self.bootstrap.ci_lower:.{digits}g}, {self.bootstrap.ci_upper:.{digits}g}]"
        line = (
            f"NIE = {effects.indirect:.{digits}g}{ci} | "
            f"NDE = {effects.direct:.{digits}g} | "
            f"PM = {100 * effects.proportion_mediated:.{digits}g}%"
        )
        if isinstance(self.structure, SerialMediationStructure):
            line = f"[{self.structure.n_mediators} mediators] {line}"
        return line


def med(
    data: pd.DataFrame,
    treatment: str,
    mediator: str,
    outcome: str,
    covariates: Sequence[str] = (),
    boot: bool = False,
    n_boot: int = 1000,
    ci_level: float = 0.95,
    seed: int | None = None,
) -> MediationAnalysis:
    """Simple mediation analysis from column names.

    Fits ``mediator ~ treatment + covariates`` and
    ``outcome ~ treatment + mediator + covariates`` by least squares and,
    when ``boot`` is True, runs a parametric bootstrap of the indirect effect.
    """
    if not isinstance(data, pd.DataFrame) or data.empty:
        raise ConfigurationError("data must be a non-empty pandas DataFrame")
    covariates = list(covariates)
    for role, name in [("treatment", treatment), ("mediator", mediator), ("outcome", outcome)] + [
        ("covariate", c) for c in covariates
    ]:
        if name not in data.columns:
            raise ConfigurationError(f"{role} variable {name!r} not found in data")

    extra = "".join(f" + {c}" for c in covariates)
    structure = fit_mediation(
        formula_y=f"{outcome} ~ {treatment} + {mediator}{extra}",
        formula_m=f"{mediator} ~ {treatment}{extra}",
        data=data,
        treatment=treatment,
        mediator=mediator,
    )
    outcome_ = None
    if boot:
        outcome_ = bootstrap(
            effect_statistic(structure, "indirect"),
            method=BootstrapMethod.PARAMETRIC,
            structure=structure,
            n_boot=n_boot,
            ci_level=ci_level,
            seed=seed,
        )
    return MediationAnalysis(structure=structure, bootstrap=outcome_)


__all__ = ["MediationAnalysis", "fit_mediation", "med"]
