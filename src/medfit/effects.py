"""
Mediation effect calculations.

Effects are computed from the coefficients along the mediation chain:

- indirect effect: product of every coefficient on the chain
  (``a * b``, or ``a * prod(d) * b`` for serial chains)
- direct effect: ``c_prime``
- total effect: indirect + direct
- proportion mediated: indirect / total

The same arithmetic is applied to a structure's point estimates and to a
single parameter vector drawn by the parametric bootstrap.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from functools import reduce
from operator import mul
from typing import TYPE_CHECKING, Any, Hashable, Mapping, Sequence

import numpy as np
import pandas as pd
from loguru import logger
from scipy import stats

from .exceptions import ConfigurationError, DegenerateEffectWarning

if TYPE_CHECKING:
    from .structures import MediationStructure, SerialMediationStructure

    Structure = MediationStructure | SerialMediationStructure


EFFECT_KINDS = ("indirect", "direct", "total", "proportion_mediated")

# Short labels used in coefficient tables
EFFECT_LABELS = {
    "indirect": "nie",
    "direct": "nde",
    "total": "te",
    "proportion_mediated": "pm",
}


@dataclass(frozen=True)
class MediationEffects:
    """Decomposition of the total effect.

    Attributes
    ----------
    indirect : float
        Natural indirect effect (product of the chain coefficients).
    direct : float
        Natural direct effect (``c_prime``).
    total : float
        ``indirect + direct``.
    proportion_mediated : float
        ``indirect / total``; NaN when the total effect is ~0.
    """

    indirect: float
    direct: float
    total: float
    proportion_mediated: float

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "indirect": self.indirect,
            "direct": self.direct,
            "total": self.total,
            "proportion_mediated": self.proportion_mediated,
        }

    def as_series(self) -> pd.Series:
        """Effects labelled ``nie``, ``nde``, ``te`` and ``pm``."""
        return pd.Series(
            {EFFECT_LABELS[k]: v for k, v in self.to_dict().items()}, dtype=float
        )


def chain_product(chain: Sequence[float]) -> float:
    """Multiply the chain coefficients from the treatment side outwards."""
    if not chain:
        raise ConfigurationError("Mediation chain must contain at least one coefficient")
    return float(reduce(mul, chain))


def proportion_mediated(indirect: float, total: float) -> float:
    """``indirect / total``, or NaN with a warning when ``total`` is ~0."""
    if abs(total) < np.finfo(float).eps:
        message = "Total effect is approximately zero; proportion mediated is undefined."
        logger.debug(message)
        warnings.warn(message, DegenerateEffectWarning, stacklevel=3)
        return float("nan")
    return indirect / total


def decompose(chain: Sequence[float], direct: float) -> MediationEffects:
    """Build the effect decomposition from chain coefficients and ``c_prime``."""
    indirect = chain_product(chain)
    direct = float(direct)
    total = indirect + direct
    return MediationEffects(
        indirect=indirect,
        direct=direct,
        total=total,
        proportion_mediated=proportion_mediated(indirect, total),
    )


class EffectCalculator:
    """Pure functions computing mediation effects.

    Every method reads its inputs only; nothing is cached or mutated.
    """

    @staticmethod
    def indirect_effect(structure: Structure) -> float:
        return chain_product(structure.chain())

    @staticmethod
    def direct_effect(structure: Structure) -> float:
        return structure.c_prime

    @staticmethod
    def total_effect(structure: Structure) -> float:
        return EffectCalculator.indirect_effect(structure) + structure.c_prime

    @staticmethod
    def proportion_mediated(structure: Structure) -> float:
        indirect = EffectCalculator.indirect_effect(structure)
        return proportion_mediated(indirect, indirect + structure.c_prime)

    @staticmethod
    def from_structure(structure: Structure) -> MediationEffects:
        """Effects at the structure's point estimates."""
        return decompose(structure.chain(), structure.c_prime)

    @staticmethod
    def from_parameters(
        structure: Structure,
        theta: Mapping[Hashable, float] | pd.Series | Sequence[float],
    ) -> MediationEffects:
        """Effects for a parameter vector keyed like ``structure.estimates``.

        Parameters
        ----------
        structure : MediationStructure or SerialMediationStructure
            Supplies the location of each path coefficient.
        theta : Series, mapping, or sequence
            A parameter vector. Plain sequences are read positionally in
            the order of ``structure.parameter_names``.
        """
        labels = structure.resolve_path_labels()
        if not isinstance(theta, (pd.Series, Mapping)):
            theta = pd.Series(np.asarray(theta, dtype=float), index=list(structure.parameter_names))
        chain = [float(theta[labels[key]]) for key in structure.chain_keys()]
        return decompose(chain, float(theta[labels["c_prime"]]))


def effects(structure: Structure) -> MediationEffects:
    """Indirect, direct, total effect and proportion mediated of ``structure``."""
    return EffectCalculator.from_structure(structure)


# =============================================================================
# Effects as bootstrap statistics
# =============================================================================


class EffectStatistic:
    """Statistic function evaluating one effect on a parameter vector.

    Instances hold only the parameter labels, so they can be sent to a
    process pool.

    Examples
    --------
    >>> stat = effect_statistic(structure, "indirect")
    >>> outcome = bootstrap(stat, "parametric", structure=structure, seed=1)
    """

    def __init__(self, chain_labels: Sequence[Hashable], direct_label: Hashable, kind: str):
        if kind not in EFFECT_KINDS:
            raise ConfigurationError(f"kind must be one of {EFFECT_KINDS}, got {kind!r}")
        self.chain_labels = tuple(chain_labels)
        self.direct_label = direct_label
        self.kind = kind

    def __call__(self, theta: Mapping[Hashable, float] | pd.Series) -> float:
        chain = [float(theta[label]) for label in self.chain_labels]
        if self.kind == "indirect":
            return chain_product(chain)
        if self.kind == "direct":
            return float(theta[self.direct_label])
        effects_ = decompose(chain, float(theta[self.direct_label]))
        return getattr(effects_, self.kind)

    def __repr__(self) -> str:
        return f"EffectStatistic(kind={self.kind!r}, chain={list(self.chain_labels)})"


def effect_statistic(structure: Structure, kind: str = "indirect") -> EffectStatistic:
    """Statistic function for ``kind`` usable with the parametric bootstrap."""
    labels = structure.resolve_path_labels()
    return EffectStatistic(
        [labels[key] for key in structure.chain_keys()], labels["c_prime"], kind
    )


# =============================================================================
# Normal-approximation inference
# =============================================================================


def _path_covariance(structure: Structure) -> tuple[list[str], np.ndarray]:
    """Path keys and the covariance sub-matrix of their coefficients."""
    labels = structure.resolve_path_labels()
    keys = list(structure.paths())
    position = {name: i for i, name in enumerate(structure.parameter_names)}
    idx = [position[labels[key]] for key in keys]
    return keys, np.asarray(structure.covariance)[np.ix_(idx, idx)]


def effect_standard_errors(structure: Structure) -> dict[str, float]:
    """Delta-method standard errors of the four effects.

    The gradient of the chain product with respect to each coefficient is
    the product of the remaining coefficients. The full path covariance is
    used, so cross-model terms contribute whenever the extractor supplied
    them.
    """
    keys, cov = _path_covariance(structure)
    values = structure.paths()
    chain_keys = structure.chain_keys()

    grad_indirect = np.zeros(len(keys))
    for key in chain_keys:
        others = [values[k] for k in chain_keys if k != key]
        grad_indirect[keys.index(key)] = reduce(mul, others, 1.0)
    grad_direct = np.zeros(len(keys))
    grad_direct[keys.index("c_prime")] = 1.0
    grad_total = grad_indirect + grad_direct

    indirect = chain_product([values[k] for k in chain_keys])
    total = indirect + values["c_prime"]
    if abs(total) < np.finfo(float).eps:
        grad_pm = np.full(len(keys), np.nan)
    else:
        grad_pm = (grad_indirect * total - indirect * grad_total) / total**2

    def _se(grad: np.ndarray) -> float:
        return float(np.sqrt(max(grad @ cov @ grad, 0.0)))

    return {
        "indirect": _se(grad_indirect),
        "direct": _se(grad_direct),
        "total": _se(grad_total),
        "proportion_mediated": _se(grad_pm),
    }


def path_standard_errors(structure: Structure) -> dict[str, float]:
    """Standard errors of the path coefficients from the covariance diagonal."""
    keys, cov = _path_covariance(structure)
    return {key: float(np.sqrt(max(cov[i, i], 0.0))) for i, key in enumerate(keys)}


def normal_intervals(
    structure: Structure, kind: str = "paths", level: float = 0.95
) -> pd.DataFrame:
    """Wald intervals ``estimate +/- z * se`` for paths or effects."""
    if not 0.0 < level < 1.0:
        raise ConfigurationError(f"level must be between 0 and 1 (exclusive), got {level}")
    z = stats.norm.ppf(1 - (1 - level) / 2)

    if kind == "paths":
        estimates = structure.paths()
        errors = path_standard_errors(structure)
    elif kind == "effects":
        point = EffectCalculator.from_structure(structure).to_dict()
        se = effect_standard_errors(structure)
        estimates = {EFFECT_LABELS[k]: v for k, v in point.items()}
        errors = {EFFECT_LABELS[k]: v for k, v in se.items()}
    else:
        raise ConfigurationError(f"kind must be 'paths' or 'effects', got {kind!r}")

    lower_pct = f"{100 * (1 - level) / 2:g} %"
    upper_pct = f"{100 * (1 - (1 - level) / 2):g} %"
    rows: dict[str, Any] = {
        term: {lower_pct: est - z * errors[term], upper_pct: est + z * errors[term]}
        for term, est in estimates.items()
    }
    return pd.DataFrame.from_dict(rows, orient="index")


__all__ = [
    "EFFECT_KINDS",
    "MediationEffects",
    "EffectCalculator",
    "EffectStatistic",
    "chain_product",
    "decompose",
    "effect_standard_errors",
    "effect_statistic",
    "effects",
    "normal_intervals",
    "path_standard_errors",
    "proportion_mediated",
]
