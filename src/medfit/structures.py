"""
Fitted mediation structures.

A structure holds the path coefficients of a mediator/outcome model pair,
the full parameter vector with its covariance matrix, and metadata about
the fit. Structures are validated once at construction and are immutable
afterwards; the estimate and covariance arrays are stored read-only.

Two variants are provided:

- :class:`MediationStructure` for a single mediator (X -> M -> Y).
- :class:`SerialMediationStructure` for a chain of ``k >= 2`` mediators
  (X -> M1 -> ... -> Mk -> Y).

Both satisfy :class:`ParametricModel`, the capability the bootstrap engine
relies on.
"""

from __future__ import annotations

import numbers
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Hashable,
    Mapping,
    Protocol,
    Sequence,
    runtime_checkable,
)

import numpy as np
import pandas as pd

from .effects import EffectCalculator, MediationEffects, normal_intervals
from .exceptions import ConfigurationError, ValidationError

if TYPE_CHECKING:
    from numpy.typing import NDArray


@runtime_checkable
class ParametricModel(Protocol):
    """Anything exposing a named parameter vector and its covariance."""

    def as_parametric_model(
        self,
    ) -> tuple[tuple[Hashable, ...], NDArray, NDArray]:
        """Return ``(names, estimates, covariance)``."""
        ...


# =============================================================================
# Field validators
# =============================================================================


def _check_scalar(
    name: str,
    value: Any,
    *,
    optional: bool = False,
    nonnegative: bool = False,
) -> float | None:
    if value is None:
        if optional:
            return None
        raise ValidationError(f"{name} is required")
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real):
        raise ValidationError(
            f"{name} must be a scalar numeric value, got {type(value).__name__}"
        )
    value = float(value)
    if nonnegative and not value >= 0:
        raise ValidationError(f"{name} must be a non-negative scalar, got {value}")
    return value


def _check_name(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{name} must be a non-empty string, got {value!r}")
    return value


def _check_names(name: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ValidationError(f"{name} must be a sequence of strings, got {value!r}")
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(f"{name} must contain only strings, got {item!r}")
    return tuple(value)


def _normalize_parameters(
    estimates: Any,
    covariance: Any,
    parameter_names: Sequence[Hashable] | None,
) -> tuple[NDArray, NDArray, tuple[Hashable, ...]]:
    """Validate the estimate vector against its covariance matrix."""
    inferred_names: list[Hashable] | None = None
    if isinstance(estimates, pd.Series):
        inferred_names = list(estimates.index)
        values = estimates.to_numpy()
    elif isinstance(estimates, Mapping):
        inferred_names = list(estimates.keys())
        values = list(estimates.values())
    else:
        values = estimates

    try:
        est = np.array(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"estimates must be numeric: {e}") from e
    if est.ndim != 1:
        raise ValidationError(f"estimates must be a 1-D vector, got shape {est.shape}")

    try:
        cov = np.array(covariance, dtype=float)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"covariance must be numeric: {e}") from e
    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise ValidationError(f"covariance must be a square matrix, got shape {cov.shape}")
    if est.shape[0] != cov.shape[0]:
        raise ValidationError(
            f"Number of estimates ({est.shape[0]}) must match covariance "
            f"dimensions ({cov.shape[0]})"
        )

    if parameter_names is not None:
        names = tuple(parameter_names)
    elif inferred_names is not None:
        names = tuple(inferred_names)
    else:
        names = tuple(range(est.shape[0]))
    if len(names) != est.shape[0]:
        raise ValidationError(
            f"parameter_names has {len(names)} entries but there are "
            f"{est.shape[0]} estimates"
        )
    if len(set(names)) != len(names):
        raise ValidationError("parameter names must be unique")

    est.flags.writeable = False
    cov.flags.writeable = False
    return est, cov, names


def _check_observations(n_obs: Any, source_data: Any) -> int:
    if isinstance(n_obs, (bool, np.bool_)) or not isinstance(n_obs, numbers.Integral):
        raise ValidationError(f"n_obs must be a positive integer, got {n_obs!r}")
    if n_obs < 1:
        raise ValidationError(f"n_obs must be a positive integer, got {n_obs}")
    if source_data is not None:
        if not isinstance(source_data, pd.DataFrame):
            raise ValidationError(
                f"source_data must be a pandas DataFrame, got {type(source_data).__name__}"
            )
        if len(source_data) != n_obs:
            raise ValidationError(
                f"Number of rows in source_data ({len(source_data)}) must match "
                f"n_obs ({n_obs})"
            )
    return int(n_obs)


def _check_path_labels(
    path_labels: Mapping[str, Hashable] | None,
    paths: Mapping[str, float],
    names: tuple[Hashable, ...],
    estimates: NDArray,
) -> Mapping[str, Hashable] | None:
    if path_labels is None:
        return None
    if not isinstance(path_labels, Mapping):
        raise ValidationError("path_labels must be a mapping of path key to parameter name")
    position = {name: i for i, name in enumerate(names)}
    labels = dict(path_labels)
    for key, label in labels.items():
        if key not in paths:
            raise ValidationError(
                f"Unknown path key {key!r} in path_labels; expected one of {list(paths)}"
            )
        if label not in position:
            raise ValidationError(f"path_labels[{key!r}] = {label!r} is not a parameter name")
        labelled = float(estimates[position[label]])
        if not np.isclose(labelled, paths[key], rtol=1e-8, atol=1e-12):
            raise ValidationError(
                f"path_labels[{key!r}] = {label!r} holds {labelled!r}, "
                f"which does not match {key} = {paths[key]!r}"
            )
    return MappingProxyType(labels)


# =============================================================================
# Shared behaviour
# =============================================================================


class _StructureMixin(ABC):
    """Accessors common to both structure variants."""

    estimates: NDArray
    covariance: NDArray
    parameter_names: tuple[Hashable, ...]
    n_obs: int
    converged: bool
    source_label: str
    path_labels: Mapping[str, Hashable] | None

    @abstractmethod
    def paths(self) -> dict[str, float]:
        """Path coefficients keyed by path name."""

    @abstractmethod
    def chain_keys(self) -> tuple[str, ...]:
        """Path keys multiplied together to form the indirect effect."""

    @abstractmethod
    def _conventional_labels(self) -> dict[str, str]:
        """Parameter names the extractors give each path."""

    def __getstate__(self) -> dict[str, Any]:
        state = dict(self.__dict__)
        if state.get("path_labels") is not None:
            state["path_labels"] = dict(state["path_labels"])
        return state

    def __setstate__(self, state: dict[str, Any]) -> None:
        if state.get("path_labels") is not None:
            state["path_labels"] = MappingProxyType(state["path_labels"])
        self.__dict__.update(state)

    def as_parametric_model(
        self,
    ) -> tuple[tuple[Hashable, ...], NDArray, NDArray]:
        return self.parameter_names, self.estimates, self.covariance

    @property
    def nobs(self) -> int:
        return self.n_obs

    def chain(self) -> tuple[float, ...]:
        """Coefficients along the mediation chain, treatment side first."""
        values = self.paths()
        return tuple(values[key] for key in self.chain_keys())

    def estimate_series(self) -> pd.Series:
        """Point estimates keyed by parameter name."""
        return pd.Series(np.array(self.estimates), index=list(self.parameter_names))

    def vcov(self) -> pd.DataFrame:
        """Covariance matrix labelled by parameter name."""
        names = list(self.parameter_names)
        return pd.DataFrame(np.array(self.covariance), index=names, columns=names)

    def resolve_path_labels(self) -> dict[str, Hashable]:
        """Map every path key to the parameter that holds it.

        Explicit ``path_labels`` take precedence; remaining keys fall back to
        the ``m_``/``y_`` naming used by the extractors.

        Raises
        ------
        ConfigurationError
            If some path cannot be located in ``parameter_names``.
        """
        labels: dict[str, Hashable] = dict(self._conventional_labels())
        if self.path_labels:
            labels.update(self.path_labels)
        known = set(self.parameter_names)
        missing = {key: label for key, label in labels.items() if label not in known}
        if missing:
            raise ConfigurationError(
                "Cannot locate path coefficients among parameter names: "
                + ", ".join(f"{k} -> {v!r}" for k, v in missing.items())
                + ". Pass path_labels explicitly."
            )
        return labels

    def effects(self) -> MediationEffects:
        return EffectCalculator.from_structure(self)

    def coef(self, kind: str = "paths") -> pd.Series:
        """Path coefficients, effects, or both.

        Parameters
        ----------
        kind : {"paths", "effects", "all"}
        """
        if kind == "paths":
            return pd.Series(self.paths(), dtype=float)
        if kind == "effects":
            return self.effects().as_series()
        if kind == "all":
            return pd.concat([self.coef("paths"), self.coef("effects")])
        raise ConfigurationError(f"kind must be 'paths', 'effects' or 'all', got {kind!r}")

    def confint(self, kind: str = "paths", level: float = 0.95) -> pd.DataFrame:
        """Normal-approximation confidence intervals.

        Path standard errors come from the covariance diagonal; effect
        standard errors use the delta method.
        """
        return normal_intervals(self, kind=kind, level=level)

    def summary(self) -> pd.DataFrame:
        """Table of paths and effects with delta-method standard errors."""
        from .tidy import tidy

        return tidy(self, kind="all", conf_int=True).set_index("term")

    def _metadata(self) -> dict[str, Any]:
        return {
            "n_obs": self.n_obs,
            "converged": self.converged,
            "source_label": self.source_label,
            "parameters": dict(zip(map(str, self.parameter_names), self.estimates.tolist())),
        }


# =============================================================================
# Simple mediation
# =============================================================================


@dataclass(frozen=True, eq=False)
class MediationStructure(_StructureMixin):
    """Fitted single-mediator structure (X -> M -> Y).

    Attributes
    ----------
    a_path, b_path, c_prime : float
        Treatment->mediator, mediator->outcome and direct
        treatment->outcome coefficients.
    estimates : NDArray
        All fitted parameters. A Series or mapping supplies the names.
    covariance : NDArray
        Square covariance matrix aligned with ``estimates``.
    treatment_name, mediator_name, outcome_name : str
        Variable identifiers.
    n_obs : int
        Number of observations used in the fit.
    parameter_names : tuple, optional
        Keys of ``estimates``; positions ``0..p-1`` when no names exist.
    sigma_mediator, sigma_outcome : float, optional
        Residual standard deviations, absent for non-Gaussian models.
    mediator_predictors, outcome_predictors : tuple[str, ...]
        Predictors of each sub-model excluding the intercept.
    source_data : pd.DataFrame, optional
        The observation table the models were fitted on.
    converged : bool
        Whether both sub-models converged.
    source_label : str
        Identity of the fitting engine.
    path_labels : dict, optional
        Maps ``"a"``, ``"b"``, ``"c_prime"`` to parameter names.
    """

    a_path: float
    b_path: float
    c_prime: float
    estimates: NDArray
    covariance: NDArray
    treatment_name: str
    mediator_name: str
    outcome_name: str
    n_obs: int
    parameter_names: tuple[Hashable, ...] | None = None
    sigma_mediator: float | None = None
    sigma_outcome: float | None = None
    mediator_predictors: tuple[str, ...] = ()
    outcome_predictors: tuple[str, ...] = ()
    source_data: pd.DataFrame | None = field(default=None, repr=False)
    converged: bool = True
    source_label: str = ""
    path_labels: Mapping[str, Hashable] | None = None

    def __post_init__(self):
        set_ = object.__setattr__
        set_(self, "a_path", _check_scalar("a_path", self.a_path))
        set_(self, "b_path", _check_scalar("b_path", self.b_path))
        set_(self, "c_prime", _check_scalar("c_prime", self.c_prime))

        est, cov, names = _normalize_parameters(
            self.estimates, self.covariance, self.parameter_names
        )
        set_(self, "estimates", est)
        set_(self, "covariance", cov)
        set_(self, "parameter_names", names)

        set_(
            self,
            "sigma_mediator",
            _check_scalar("sigma_mediator", self.sigma_mediator, optional=True, nonnegative=True),
        )
        set_(
            self,
            "sigma_outcome",
            _check_scalar("sigma_outcome", self.sigma_outcome, optional=True, nonnegative=True),
        )

        _check_name("treatment_name", self.treatment_name)
        _check_name("mediator_name", self.mediator_name)
        _check_name("outcome_name", self.outcome_name)
        set_(
            self,
            "mediator_predictors",
            _check_names("mediator_predictors", self.mediator_predictors),
        )
        set_(
            self,
            "outcome_predictors",
            _check_names("outcome_predictors", self.outcome_predictors),
        )

        set_(self, "n_obs", _check_observations(self.n_obs, self.source_data))
        if not isinstance(self.converged, (bool, np.bool_)):
            raise ValidationError(f"converged must be a boolean, got {self.converged!r}")
        set_(self, "converged", bool(self.converged))
        if not isinstance(self.source_label, str):
            raise ValidationError("source_label must be a string")
        set_(
            self,
            "path_labels",
            _check_path_labels(self.path_labels, self.paths(), names, est),
        )

    def paths(self) -> dict[str, float]:
        return {"a": self.a_path, "b": self.b_path, "c_prime": self.c_prime}

    def chain_keys(self) -> tuple[str, ...]:
        return ("a", "b")

    def _conventional_labels(self) -> dict[str, str]:
        return {
            "a": f"m_{self.treatment_name}",
            "b": f"y_{self.mediator_name}",
            "c_prime": f"y_{self.treatment_name}",
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": "simple",
            "treatment": self.treatment_name,
            "mediator": self.mediator_name,
            "outcome": self.outcome_name,
            "paths": self.paths(),
            "effects": self.effects().to_dict(),
            "sigma_mediator": self.sigma_mediator,
            "sigma_outcome": self.sigma_outcome,
            **self._metadata(),
        }


# =============================================================================
# Serial mediation
# =============================================================================


@dataclass(frozen=True, eq=False)
class SerialMediationStructure(_StructureMixin):
    """Fitted serial mediation chain (X -> M1 -> ... -> Mk -> Y), ``k >= 2``.

    ``d_path[i]`` is the coefficient of mediator ``i`` in the model for
    mediator ``i + 1``. ``mediator_predictors[i]`` lists the predictors of
    mediator ``i``'s model and may include earlier mediators. The remaining
    attributes mirror :class:`MediationStructure`.
    """

    a_path: float
    d_path: tuple[float, ...]
    b_path: float
    c_prime: float
    estimates: NDArray
    covariance: NDArray
    treatment_name: str
    mediator_names: tuple[str, ...]
    outcome_name: str
    n_obs: int
    parameter_names: tuple[Hashable, ...] | None = None
    sigma_mediators: tuple[float, ...] | None = None
    sigma_outcome: float | None = None
    mediator_predictors: tuple[tuple[str, ...], ...] | None = None
    outcome_predictors: tuple[str, ...] = ()
    source_data: pd.DataFrame | None = field(default=None, repr=False)
    converged: bool = True
    source_label: str = ""
    path_labels: Mapping[str, Hashable] | None = None

    def __post_init__(self):
        set_ = object.__setattr__
        mediators = _check_names("mediator_names", self.mediator_names)
        k = len(mediators)
        if k < 2:
            raise ValidationError(
                f"Serial mediation requires at least 2 mediators, got {k}"
            )
        for name in mediators:
            _check_name("mediator_names", name)
        if len(set(mediators)) != k:
            raise ValidationError(f"mediator_names must be unique, got {list(mediators)}")
        set_(self, "mediator_names", mediators)

        set_(self, "a_path", _check_scalar("a_path", self.a_path))
        set_(self, "b_path", _check_scalar("b_path", self.b_path))
        set_(self, "c_prime", _check_scalar("c_prime", self.c_prime))
        if isinstance(self.d_path, (str, bytes)) or not isinstance(
            self.d_path, (Sequence, np.ndarray)
        ):
            raise ValidationError(
                f"d_path must be a sequence of {k - 1} scalars, got {self.d_path!r}"
            )
        if len(self.d_path) != k - 1:
            raise ValidationError(
                f"d_path must have length {k - 1} for {k} mediators, got {len(self.d_path)}"
            )
        set_(
            self,
            "d_path",
            tuple(_check_scalar(f"d_path[{i}]", d) for i, d in enumerate(self.d_path)),
        )

        est, cov, names = _normalize_parameters(
            self.estimates, self.covariance, self.parameter_names
        )
        set_(self, "estimates", est)
        set_(self, "covariance", cov)
        set_(self, "parameter_names", names)

        if self.sigma_mediators is not None:
            if not isinstance(self.sigma_mediators, (Sequence, np.ndarray)) or len(
                self.sigma_mediators
            ) != k:
                raise ValidationError(
                    f"sigma_mediators must have length {k}, got {self.sigma_mediators!r}"
                )
            set_(
                self,
                "sigma_mediators",
                tuple(
                    _check_scalar(f"sigma_mediators[{i}]", s, optional=True, nonnegative=True)
                    for i, s in enumerate(self.sigma_mediators)
                ),
            )
        set_(
            self,
            "sigma_outcome",
            _check_scalar("sigma_outcome", self.sigma_outcome, optional=True, nonnegative=True),
        )

        _check_name("treatment_name", self.treatment_name)
        _check_name("outcome_name", self.outcome_name)
        predictors = self.mediator_predictors
        if predictors is None:
            # each stage depends on the treatment and every earlier mediator
            predictors = tuple(
                (self.treatment_name, *mediators[:i]) for i in range(k)
            )
        if isinstance(predictors, str) or len(predictors) != k:
            raise ValidationError(f"mediator_predictors must have length {k}")
        set_(
            self,
            "mediator_predictors",
            tuple(
                _check_names(f"mediator_predictors[{i}]", p)
                for i, p in enumerate(predictors)
            ),
        )
        set_(
            self,
            "outcome_predictors",
            _check_names("outcome_predictors", self.outcome_predictors),
        )

        set_(self, "n_obs", _check_observations(self.n_obs, self.source_data))
        if not isinstance(self.converged, (bool, np.bool_)):
            raise ValidationError(f"converged must be a boolean, got {self.converged!r}")
        set_(self, "converged", bool(self.converged))
        if not isinstance(self.source_label, str):
            raise ValidationError("source_label must be a string")
        set_(
            self,
            "path_labels",
            _check_path_labels(self.path_labels, self.paths(), names, est),
        )

    @property
    def n_mediators(self) -> int:
        return len(self.mediator_names)

    def _d_keys(self) -> list[str]:
        if self.n_mediators == 2:
            return ["d"]
        return [f"d{i + 2}{i + 1}" for i in range(self.n_mediators - 1)]

    def paths(self) -> dict[str, float]:
        values = {"a": self.a_path}
        values.update(zip(self._d_keys(), self.d_path))
        values["b"] = self.b_path
        values["c_prime"] = self.c_prime
        return values

    def chain_keys(self) -> tuple[str, ...]:
        return ("a", *self._d_keys(), "b")

    def _conventional_labels(self) -> dict[str, str]:
        labels = {"a": f"m1_{self.treatment_name}"}
        for i, key in enumerate(self._d_keys()):
            labels[key] = f"m{i + 2}_{self.mediator_names[i]}"
        labels["b"] = f"y_{self.mediator_names[-1]}"
        labels["c_prime"] = f"y_{self.treatment_name}"
        return labels

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": "serial",
            "treatment": self.treatment_name,
            "mediators": list(self.mediator_names),
            "outcome": self.outcome_name,
            "paths": self.paths(),
            "effects": self.effects().to_dict(),
            "sigma_mediators": (
                list(self.sigma_mediators) if self.sigma_mediators is not None else None
            ),
            "sigma_outcome": self.sigma_outcome,
            **self._metadata(),
        }


__all__ = [
    "ParametricModel",
    "MediationStructure",
    "SerialMediationStructure",
]
